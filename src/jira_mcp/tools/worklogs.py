"""jira_worklogs tool: list, add, update and delete time-tracking entries."""
import logging
from typing import Any

from ..api.adf import adf_to_text
from ..api.exceptions import ValidationError
from ..audit.models import AuditAction, AuditResource
from .base import ToolContext, ToolResult, execute_mutation, require, run_tool, to_text
from .schemas import JiraWorklogsInput

logger = logging.getLogger(__name__)


def simplify_worklog(worklog: dict[str, Any]) -> dict[str, Any]:
    author = worklog.get("author") or {}
    return {
        "id": worklog.get("id"),
        "author": author.get("displayName"),
        "time_spent": worklog.get("timeSpent"),
        "time_spent_seconds": worklog.get("timeSpentSeconds"),
        "started": worklog.get("started"),
        "comment": adf_to_text(worklog.get("comment")) or None,
    }


async def _list(ctx: ToolContext, params: JiraWorklogsInput) -> str:
    page = await ctx.worklogs.list_worklogs(params.issue_key, params.start_at, params.max_results)
    worklogs = page["values"]
    return to_text({
        "issue_key": params.issue_key,
        "worklogs": [simplify_worklog(w) for w in worklogs],
        "total": page["total"],
        "total_seconds": sum(w.get("timeSpentSeconds") or 0 for w in worklogs),
        "is_last": page["isLast"],
    })


async def _add(ctx: ToolContext, params: JiraWorklogsInput) -> ToolResult:
    time_spent = require(params.time_spent, "time_spent", "add")
    started = require(params.started, "started", "add")

    return await execute_mutation(
        ctx,
        AuditAction.CREATE,
        AuditResource.WORKLOG,
        {"issue": params.issue_key, "time_spent": time_spent, "started": started, "comment": params.comment},
        operation=lambda: ctx.worklogs.add_worklog(params.issue_key, time_spent, started, params.comment),
        render=lambda worklog: to_text({
            "success": True,
            "message": f"Logged {time_spent} on {params.issue_key}",
            "worklog": simplify_worklog(worklog),
        }),
        dry_run=params.dry_run,
        confirmed=params.confirm,
        result_id=lambda worklog: worklog.get("id"),
    )


async def _update(ctx: ToolContext, params: JiraWorklogsInput) -> ToolResult:
    worklog_id = require(params.worklog_id, "worklog_id", "update")
    if not (params.time_spent or params.started or params.comment):
        raise ValidationError(
            "At least one of time_spent, started or comment is required for update action",
            errors={"fields": ["No fields to update"]},
        )

    return await execute_mutation(
        ctx,
        AuditAction.UPDATE,
        AuditResource.WORKLOG,
        {
            "issue": params.issue_key,
            "time_spent": params.time_spent,
            "started": params.started,
            "comment": params.comment,
        },
        operation=lambda: ctx.worklogs.update_worklog(
            params.issue_key,
            worklog_id,
            time_spent=params.time_spent,
            started=params.started,
            comment=params.comment,
        ),
        render=lambda worklog: to_text({
            "success": True,
            "message": f"Worklog {worklog_id} updated",
            "worklog": simplify_worklog(worklog),
        }),
        resource_id=worklog_id,
        dry_run=params.dry_run,
        confirmed=params.confirm,
    )


async def _delete(ctx: ToolContext, params: JiraWorklogsInput) -> ToolResult:
    worklog_id = require(params.worklog_id, "worklog_id", "delete")

    return await execute_mutation(
        ctx,
        AuditAction.DELETE,
        AuditResource.WORKLOG,
        {"issue": params.issue_key},
        operation=lambda: ctx.worklogs.delete_worklog(params.issue_key, worklog_id),
        render=lambda _: to_text({"success": True, "message": f"Worklog {worklog_id} deleted"}),
        resource_id=worklog_id,
        dry_run=params.dry_run,
        confirmed=params.confirm,
    )


ACTIONS = {
    "list": _list,
    "add": _add,
    "update": _update,
    "delete": _delete,
}


async def handle_jira_worklogs(ctx: ToolContext, params: JiraWorklogsInput):
    return await ACTIONS[params.action](ctx, params)


async def jira_worklogs(ctx: ToolContext, **arguments: Any) -> ToolResult:
    return await run_tool("jira_worklogs", JiraWorklogsInput, handle_jira_worklogs, ctx, arguments)


__all__ = ["handle_jira_worklogs", "jira_worklogs", "simplify_worklog"]
