"""jira_comments tool: list, get, add, update and delete issue comments."""
import logging
from typing import Any

from ..api.adf import adf_to_text
from ..audit.models import AuditAction, AuditResource
from .base import ToolContext, ToolResult, execute_mutation, require, run_tool, to_text
from .schemas import JiraCommentsInput

logger = logging.getLogger(__name__)


def simplify_comment(comment: dict[str, Any]) -> dict[str, Any]:
    author = comment.get("author") or {}
    return {
        "id": comment.get("id"),
        "author": author.get("displayName"),
        "created": comment.get("created"),
        "updated": comment.get("updated"),
        "body": adf_to_text(comment.get("body")),
    }


async def _list(ctx: ToolContext, params: JiraCommentsInput) -> str:
    if params.fetch_all:
        comments = [c async for c in ctx.comments.iter_comments(params.issue_key)]
        return to_text({
            "issue_key": params.issue_key,
            "comments": [simplify_comment(c) for c in comments],
            "total": len(comments),
            "is_last": True,
        })

    page = await ctx.comments.list_comments(params.issue_key, params.start_at, params.max_results)
    return to_text({
        "issue_key": params.issue_key,
        "comments": [simplify_comment(c) for c in page["values"]],
        "total": page["total"],
        "is_last": page["isLast"],
    })


async def _get(ctx: ToolContext, params: JiraCommentsInput) -> str:
    comment_id = require(params.comment_id, "comment_id", "get")
    comment = await ctx.comments.get_comment(params.issue_key, comment_id)
    return to_text(simplify_comment(comment))


async def _add(ctx: ToolContext, params: JiraCommentsInput) -> ToolResult:
    body = require(params.body, "body", "add")
    visibility = None
    if params.visibility_type and params.visibility_value:
        visibility = {"type": params.visibility_type, "value": params.visibility_value}

    return await execute_mutation(
        ctx,
        AuditAction.CREATE,
        AuditResource.COMMENT,
        {"issue": params.issue_key, "body": body, "visibility": visibility},
        operation=lambda: ctx.comments.add_comment(params.issue_key, body, visibility),
        render=lambda comment: to_text({
            "success": True,
            "message": f"Comment added to {params.issue_key}",
            "comment": simplify_comment(comment),
        }),
        dry_run=params.dry_run,
        confirmed=params.confirm,
        result_id=lambda comment: comment.get("id"),
    )


async def _update(ctx: ToolContext, params: JiraCommentsInput) -> ToolResult:
    comment_id = require(params.comment_id, "comment_id", "update")
    body = require(params.body, "body", "update")

    return await execute_mutation(
        ctx,
        AuditAction.UPDATE,
        AuditResource.COMMENT,
        {"issue": params.issue_key, "body": body},
        operation=lambda: ctx.comments.update_comment(params.issue_key, comment_id, body),
        render=lambda comment: to_text({
            "success": True,
            "message": f"Comment {comment_id} updated",
            "comment": simplify_comment(comment),
        }),
        resource_id=comment_id,
        dry_run=params.dry_run,
        confirmed=params.confirm,
    )


async def _delete(ctx: ToolContext, params: JiraCommentsInput) -> ToolResult:
    comment_id = require(params.comment_id, "comment_id", "delete")

    return await execute_mutation(
        ctx,
        AuditAction.DELETE,
        AuditResource.COMMENT,
        {"issue": params.issue_key},
        operation=lambda: ctx.comments.delete_comment(params.issue_key, comment_id),
        render=lambda _: to_text({"success": True, "message": f"Comment {comment_id} deleted"}),
        resource_id=comment_id,
        dry_run=params.dry_run,
        confirmed=params.confirm,
    )


ACTIONS = {
    "list": _list,
    "get": _get,
    "add": _add,
    "update": _update,
    "delete": _delete,
}


async def handle_jira_comments(ctx: ToolContext, params: JiraCommentsInput):
    return await ACTIONS[params.action](ctx, params)


async def jira_comments(ctx: ToolContext, **arguments: Any) -> ToolResult:
    return await run_tool("jira_comments", JiraCommentsInput, handle_jira_comments, ctx, arguments)


__all__ = ["handle_jira_comments", "jira_comments", "simplify_comment"]
