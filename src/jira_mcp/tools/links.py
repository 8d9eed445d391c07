"""jira_links tool: issue links, epic links and remote (web) links.

Actions:
    get_link_types, list, list_remote   read-only
    create, link_to_epic                audited as link
    remove                              audited as unlink
    create_remote, remove_remote        audited as create/delete of a remote_link
"""
import logging
from typing import Any, Optional

from ..api.exceptions import ValidationError
from ..audit.models import AuditAction, AuditResource
from .base import ToolContext, ToolResult, execute_mutation, require, run_tool, to_text
from .schemas import JiraLinksInput

logger = logging.getLogger(__name__)


def simplify_link(link: dict[str, Any]) -> dict[str, Any]:
    """One issue link from the point of view of the issue that holds it."""
    linked = link.get("inwardIssue") or link.get("outwardIssue") or {}
    link_type = link.get("type") or {}
    return {
        "id": link.get("id"),
        "type": link_type.get("name"),
        "direction": "inward" if link.get("inwardIssue") else "outward",
        "linked_issue": linked.get("key"),
        "linked_summary": (linked.get("fields") or {}).get("summary"),
    }


def simplify_remote_link(link: dict[str, Any]) -> dict[str, Any]:
    link_object = link.get("object") or {}
    return {
        "id": link.get("id"),
        "url": link_object.get("url"),
        "title": link_object.get("title"),
        "summary": link_object.get("summary"),
    }


def _success(message: str, **extra: Any) -> str:
    return to_text({"success": True, "message": message, **extra})


# ============================================
# Reads
# ============================================

async def _get_link_types(ctx: ToolContext, params: JiraLinksInput) -> str:
    types = await ctx.links.get_link_types()
    if params.full:
        return to_text(types)
    return to_text({
        "link_types": [
            {"name": t.get("name"), "inward": t.get("inward"), "outward": t.get("outward")}
            for t in types
        ]
    })


async def _list(ctx: ToolContext, params: JiraLinksInput) -> str:
    issue_key = require(params.issue_key, "issue_key", "list")
    links = await ctx.links.get_issue_links(issue_key)
    if params.full:
        return to_text(links)
    return to_text({"issue_key": issue_key, "links": [simplify_link(link) for link in links]})


async def _list_remote(ctx: ToolContext, params: JiraLinksInput) -> str:
    issue_key = require(params.issue_key, "issue_key", "list_remote")
    links = await ctx.links.get_remote_links(issue_key)
    if params.full:
        return to_text(links)
    return to_text({"issue_key": issue_key, "remote_links": [simplify_remote_link(link) for link in links]})


# ============================================
# Mutations
# ============================================

async def _create(ctx: ToolContext, params: JiraLinksInput) -> ToolResult:
    if not (params.issue_key and params.target_issue_key and params.link_type):
        raise ValidationError(
            "issue_key, target_issue_key and link_type are required for create action",
            errors={
                name: ["Field required"]
                for name in ("issue_key", "target_issue_key", "link_type")
                if not getattr(params, name)
            },
        )
    source, target, link_type = params.issue_key, params.target_issue_key, params.link_type

    return await execute_mutation(
        ctx,
        AuditAction.LINK,
        AuditResource.LINK,
        {"target": target, "link_type": link_type, "comment": params.comment},
        operation=lambda: ctx.links.create_issue_link(source, target, link_type, params.comment),
        render=lambda _: _success(f'Created "{link_type}" link from {source} to {target}'),
        resource_id=source,
        dry_run=params.dry_run,
        confirmed=params.confirm,
    )


async def _remove(ctx: ToolContext, params: JiraLinksInput) -> ToolResult:
    link_id = require(params.link_id, "link_id", "remove")
    return await execute_mutation(
        ctx,
        AuditAction.UNLINK,
        AuditResource.LINK,
        {"issue": params.issue_key},
        operation=lambda: ctx.links.remove_issue_link(link_id),
        render=lambda _: _success(f"Removed link {link_id}"),
        resource_id=link_id,
        dry_run=params.dry_run,
        confirmed=params.confirm,
    )


async def _link_to_epic(ctx: ToolContext, params: JiraLinksInput) -> ToolResult:
    issue_key = require(params.issue_key, "issue_key", "link_to_epic")
    epic_key: Optional[str] = params.epic_key or None
    return await execute_mutation(
        ctx,
        AuditAction.LINK if epic_key else AuditAction.UNLINK,
        AuditResource.ISSUE,
        {"epic": epic_key},
        operation=lambda: ctx.issues.link_to_epic(issue_key, epic_key),
        render=lambda _: _success(
            f"Linked {issue_key} to epic {epic_key}" if epic_key else f"Unlinked {issue_key} from epic"
        ),
        resource_id=issue_key,
        dry_run=params.dry_run,
        confirmed=params.confirm,
    )


async def _create_remote(ctx: ToolContext, params: JiraLinksInput) -> ToolResult:
    issue_key = require(params.issue_key, "issue_key", "create_remote")
    url = require(params.url, "url", "create_remote")
    title = require(params.title, "title", "create_remote")

    return await execute_mutation(
        ctx,
        AuditAction.CREATE,
        AuditResource.REMOTE_LINK,
        {"issue": issue_key, "url": url, "title": title, "summary": params.summary},
        operation=lambda: ctx.links.create_remote_link(
            issue_key, url, title, params.summary, params.icon_url
        ),
        render=lambda link: _success(
            f"Added remote link to {issue_key}",
            remote_link={"id": link.get("id"), "url": url, "title": title},
        ),
        dry_run=params.dry_run,
        confirmed=params.confirm,
        result_id=lambda link: str(link["id"]) if link.get("id") is not None else None,
    )


async def _remove_remote(ctx: ToolContext, params: JiraLinksInput) -> ToolResult:
    issue_key = require(params.issue_key, "issue_key", "remove_remote")
    remote_link_id = require(params.remote_link_id, "remote_link_id", "remove_remote")

    return await execute_mutation(
        ctx,
        AuditAction.DELETE,
        AuditResource.REMOTE_LINK,
        {"issue": issue_key},
        operation=lambda: ctx.links.remove_remote_link(issue_key, remote_link_id),
        render=lambda _: _success(f"Removed remote link {remote_link_id}"),
        resource_id=str(remote_link_id),
        dry_run=params.dry_run,
        confirmed=params.confirm,
    )


ACTIONS = {
    "get_link_types": _get_link_types,
    "list": _list,
    "create": _create,
    "remove": _remove,
    "link_to_epic": _link_to_epic,
    "list_remote": _list_remote,
    "create_remote": _create_remote,
    "remove_remote": _remove_remote,
}


async def handle_jira_links(ctx: ToolContext, params: JiraLinksInput):
    return await ACTIONS[params.action](ctx, params)


async def jira_links(ctx: ToolContext, **arguments: Any) -> ToolResult:
    return await run_tool("jira_links", JiraLinksInput, handle_jira_links, ctx, arguments)


__all__ = ["handle_jira_links", "jira_links", "simplify_link", "simplify_remote_link"]
