"""jira_sprints tool: sprint reads, creation, updates and moving issues.

The board is taken from board_id, or looked up from project_key (scrum
boards first). create and move_issues are ungated; update needs confirm.
"""
import logging
from typing import Any

from ..api.exceptions import ValidationError
from ..audit.models import AuditAction, AuditResource
from .base import ToolContext, ToolResult, execute_mutation, require, run_tool, to_text
from .issues import simplify_issue
from .schemas import JiraSprintsInput

logger = logging.getLogger(__name__)


def _date(value: Any) -> Any:
    return value.split("T")[0] if isinstance(value, str) else value


def simplify_sprint(sprint: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": sprint.get("id"),
        "name": sprint.get("name"),
        "state": sprint.get("state"),
        "start": _date(sprint.get("startDate")),
        "end": _date(sprint.get("endDate")),
        "goal": sprint.get("goal"),
    }


def _sprint_text(sprint: dict[str, Any], full: bool) -> str:
    return to_text(sprint if full else simplify_sprint(sprint))


# ============================================
# Reads
# ============================================

async def _list(ctx: ToolContext, params: JiraSprintsInput) -> str:
    board_id = await ctx.sprints.resolve_board_id(params.board_id, params.project_key)
    page = await ctx.sprints.list_sprints(
        board_id, params.state, params.start_at, params.max_results
    )
    if params.full:
        return to_text(page)
    return to_text({
        "board_id": board_id,
        "sprints": [simplify_sprint(s) for s in page["values"]],
        "total": page["total"],
        "has_more": not page["isLast"],
    })


async def _get(ctx: ToolContext, params: JiraSprintsInput) -> str:
    sprint_id = require(params.sprint_id, "sprint_id", "get")
    return _sprint_text(await ctx.sprints.get_sprint(sprint_id), params.full)


async def _get_issues(ctx: ToolContext, params: JiraSprintsInput) -> str:
    sprint_id = require(params.sprint_id, "sprint_id", "get_issues")
    page = await ctx.sprints.get_sprint_issues(
        sprint_id, params.start_at, params.max_results, params.jql
    )
    if params.full:
        return to_text(page)
    return to_text({
        "sprint_id": sprint_id,
        "issues": [simplify_issue(i) for i in page["values"]],
        "total": page["total"],
        "has_more": not page["isLast"],
    })


async def _get_active(ctx: ToolContext, params: JiraSprintsInput) -> str:
    board_id = await ctx.sprints.resolve_board_id(params.board_id, params.project_key)
    sprint = await ctx.sprints.get_active_sprint(board_id)
    if sprint is None:
        return to_text({"board_id": board_id, "message": "No active sprint found"})
    return _sprint_text(sprint, params.full)


# ============================================
# Mutations
# ============================================

async def _create(ctx: ToolContext, params: JiraSprintsInput) -> ToolResult:
    name = require(params.name, "name", "create")
    board_id = await ctx.sprints.resolve_board_id(params.board_id, params.project_key)

    return await execute_mutation(
        ctx,
        AuditAction.CREATE,
        AuditResource.SPRINT,
        {
            "board": board_id,
            "name": name,
            "start_date": params.start_date,
            "end_date": params.end_date,
            "goal": params.goal,
        },
        operation=lambda: ctx.sprints.create_sprint(
            board_id, name, params.start_date, params.end_date, params.goal
        ),
        render=lambda sprint: to_text({"success": True, "sprint": simplify_sprint(sprint)}),
        dry_run=params.dry_run,
        confirmed=params.confirm,
        result_id=lambda sprint: str(sprint["id"]) if sprint.get("id") is not None else None,
    )


async def _update(ctx: ToolContext, params: JiraSprintsInput) -> ToolResult:
    sprint_id = require(params.sprint_id, "sprint_id", "update")
    changes = {
        "name": params.name,
        "state": params.state,
        "start_date": params.start_date,
        "end_date": params.end_date,
        "goal": params.goal,
    }
    if all(value is None for value in changes.values()):
        raise ValidationError(
            "At least one of name, state, start_date, end_date or goal is required for update action",
            errors={"fields": ["No fields to update"]},
        )

    return await execute_mutation(
        ctx,
        AuditAction.UPDATE,
        AuditResource.SPRINT,
        changes,
        operation=lambda: ctx.sprints.update_sprint(sprint_id, **changes),
        render=lambda sprint: to_text({"success": True, "sprint": simplify_sprint(sprint)}),
        resource_id=str(sprint_id),
        dry_run=params.dry_run,
        confirmed=params.confirm,
    )


async def _move_issues(ctx: ToolContext, params: JiraSprintsInput) -> ToolResult:
    sprint_id = require(params.sprint_id, "sprint_id", "move_issues")
    if not params.issue_keys:
        raise ValidationError.missing_field("issue_keys", "move_issues")
    issue_keys = list(params.issue_keys)

    return await execute_mutation(
        ctx,
        AuditAction.MOVE,
        AuditResource.SPRINT,
        {"issues": issue_keys},
        operation=lambda: ctx.sprints.move_issues_to_sprint(sprint_id, issue_keys),
        render=lambda _: to_text({
            "success": True,
            "message": f"Moved {len(issue_keys)} issues to sprint {sprint_id}",
            "issue_keys": issue_keys,
        }),
        resource_id=str(sprint_id),
        dry_run=params.dry_run,
        confirmed=params.confirm,
    )


ACTIONS = {
    "list": _list,
    "get": _get,
    "get_issues": _get_issues,
    "get_active": _get_active,
    "create": _create,
    "update": _update,
    "move_issues": _move_issues,
}


async def handle_jira_sprints(ctx: ToolContext, params: JiraSprintsInput):
    return await ACTIONS[params.action](ctx, params)


async def jira_sprints(ctx: ToolContext, **arguments: Any) -> ToolResult:
    return await run_tool("jira_sprints", JiraSprintsInput, handle_jira_sprints, ctx, arguments)


__all__ = ["handle_jira_sprints", "jira_sprints", "simplify_sprint"]
