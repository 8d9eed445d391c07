#!/usr/bin/env python3
"""jira_issues tool: issue reads, search and gated mutations.

Actions:
    get, search, get_transitions, get_changelog   read-only
    create, update, delete, transition, assign,   mutating; audited as
    link_to_epic                                  create, update, delete,
                                                  transition, assign, link
                                                  (unlink when clearing the epic)
"""
import logging
from typing import Any, Optional

from ..api.adf import adf_to_text, is_adf_document
from ..api.exceptions import NotFoundError, ValidationError
from ..api.issues import MINIMAL_ISSUE_FIELDS
from ..audit.models import AuditAction, AuditResource
from .base import ToolContext, ToolResult, execute_mutation, require, run_tool, to_text
from .schemas import JiraIssuesInput

logger = logging.getLogger(__name__)

FULL_ISSUE_FIELDS = ["*all"]


# ============================================
# Response Shaping
# ============================================

def _name(value: Optional[dict], key: str = "name") -> Optional[str]:
    return value.get(key) if isinstance(value, dict) else None


def simplify_issue(issue: dict[str, Any]) -> dict[str, Any]:
    """Reduce an issue to the handful of fields an agent usually needs."""
    fields = issue.get("fields") or {}
    return {
        "key": issue.get("key"),
        "summary": fields.get("summary"),
        "status": _name(fields.get("status")),
        "type": _name(fields.get("issuetype")),
        "priority": _name(fields.get("priority")),
        "assignee": _name(fields.get("assignee"), "displayName"),
        "parent": _name(fields.get("parent"), "key"),
        "updated": fields.get("updated"),
    }


def format_issue(issue: dict[str, Any], full: bool = False) -> str:
    if not full:
        return to_text(simplify_issue(issue))
    fields = dict(issue.get("fields") or {})
    if is_adf_document(fields.get("description")):
        fields["description"] = adf_to_text(fields["description"])
    return to_text({**issue, "fields": fields})


def _simplify_changelog(changelog: dict[str, Any]) -> dict[str, Any]:
    entries = []
    for entry in changelog.get("values", []):
        entries.append({
            "id": entry.get("id"),
            "author": _name(entry.get("author"), "displayName"),
            "created": (entry.get("created") or "").split("T")[0],
            "changes": [
                {"field": item.get("field"), "from": item.get("fromString"), "to": item.get("toString")}
                for item in entry.get("items", [])
            ],
        })
    return {"changelog": entries, "total": changelog.get("total", len(entries))}


def _done(issue_key: str, message: str) -> str:
    return to_text({"success": True, "issue_key": issue_key, "message": message})


# ============================================
# Actions
# ============================================

async def _get(ctx: ToolContext, params: JiraIssuesInput) -> str:
    issue_key = require(params.issue_key, "issue_key", "get")
    fields = FULL_ISSUE_FIELDS if params.full else MINIMAL_ISSUE_FIELDS
    issue = await ctx.issues.get_issue(issue_key, fields=fields)
    return format_issue(issue, params.full)


async def _search(ctx: ToolContext, params: JiraIssuesInput) -> str:
    jql = require(params.jql, "jql", "search")
    fields = FULL_ISSUE_FIELDS if params.full else None
    if params.fetch_all:
        issues = [
            issue
            async for issue in ctx.issues.iter_search(jql, fields=fields, max_items=params.max_items)
        ]
        return to_text({
            "issues": issues if params.full else [simplify_issue(i) for i in issues],
            "count": len(issues),
            "truncated": len(issues) >= params.max_items,
        })

    response = await ctx.issues.search_issues(
        jql,
        max_results=params.max_results,
        fields=fields,
        next_page_token=params.next_page_token,
    )
    issues = response.get("issues", [])
    return to_text({
        "issues": issues if params.full else [simplify_issue(i) for i in issues],
        "count": len(issues),
        "next_page_token": response.get("nextPageToken"),
    })


async def _get_transitions(ctx: ToolContext, params: JiraIssuesInput) -> str:
    issue_key = require(params.issue_key, "issue_key", "get_transitions")
    transitions = await ctx.issues.get_transitions(issue_key)
    return to_text({
        "transitions": [
            {"id": t.get("id"), "name": t.get("name"), "to": _name(t.get("to"))}
            for t in transitions
        ]
    })


async def _get_changelog(ctx: ToolContext, params: JiraIssuesInput) -> str:
    issue_key = require(params.issue_key, "issue_key", "get_changelog")
    changelog = await ctx.issues.get_changelog(issue_key, max_results=params.max_results)
    return to_text(_simplify_changelog(changelog))


async def _create(ctx: ToolContext, params: JiraIssuesInput) -> ToolResult:
    project_key = require(params.project_key, "project_key", "create")
    summary = require(params.summary, "summary", "create")
    issue_type = require(params.issue_type, "issue_type", "create")

    audit_input = {
        "project": project_key,
        "summary": summary,
        "issue_type": issue_type,
        "description": params.description,
        "priority": params.priority,
        "assignee": params.assignee,
        "labels": params.labels,
        "components": params.components,
        "parent": params.parent_key,
        "custom_fields": params.custom_fields,
    }

    return await execute_mutation(
        ctx,
        AuditAction.CREATE,
        AuditResource.ISSUE,
        audit_input,
        operation=lambda: ctx.issues.create_issue(
            project_key=project_key,
            summary=summary,
            issue_type=issue_type,
            description=params.description,
            priority=params.priority,
            assignee=params.assignee,
            labels=params.labels,
            components=params.components,
            parent_key=params.parent_key,
            custom_fields=params.custom_fields,
        ),
        render=lambda issue: format_issue(issue),
        dry_run=params.dry_run,
        confirmed=params.confirm,
        result_id=lambda issue: issue.get("key"),
    )


async def _update(ctx: ToolContext, params: JiraIssuesInput) -> ToolResult:
    issue_key = require(params.issue_key, "issue_key", "update")

    audit_input = {
        "summary": params.summary,
        "description": params.description,
        "priority": params.priority,
        "assignee": params.assignee,
        "labels": params.labels,
        "components": params.components,
        "custom_fields": params.custom_fields,
    }
    if all(value is None for value in audit_input.values()):
        raise ValidationError(
            "At least one field to change is required for update action",
            errors={"fields": ["No fields to update"]},
        )

    return await execute_mutation(
        ctx,
        AuditAction.UPDATE,
        AuditResource.ISSUE,
        audit_input,
        operation=lambda: ctx.issues.update_issue(
            issue_key,
            summary=params.summary,
            description=params.description,
            priority=params.priority,
            assignee=params.assignee,
            labels=params.labels,
            components=params.components,
            custom_fields=params.custom_fields,
        ),
        render=lambda _: _done(issue_key, "Issue updated"),
        resource_id=issue_key,
        dry_run=params.dry_run,
        confirmed=params.confirm,
    )


async def _delete(ctx: ToolContext, params: JiraIssuesInput) -> ToolResult:
    issue_key = require(params.issue_key, "issue_key", "delete")
    return await execute_mutation(
        ctx,
        AuditAction.DELETE,
        AuditResource.ISSUE,
        {"delete_subtasks": params.delete_subtasks},
        operation=lambda: ctx.issues.delete_issue(issue_key, params.delete_subtasks),
        render=lambda _: _done(issue_key, "Issue deleted"),
        resource_id=issue_key,
        dry_run=params.dry_run,
        confirmed=params.confirm,
    )


async def _resolve_transition(ctx: ToolContext, issue_key: str, name: str) -> str:
    """Map a transition name (case-insensitive) to its ID."""
    transitions = await ctx.issues.get_transitions(issue_key)
    for transition in transitions:
        if (transition.get("name") or "").lower() == name.lower():
            return transition["id"]
    available = ", ".join(t.get("name", "") for t in transitions) or "none"
    raise NotFoundError(
        "Transition",
        name,
        details={"issue_key": issue_key, "available": available},
    )


async def _transition(ctx: ToolContext, params: JiraIssuesInput) -> ToolResult:
    issue_key = require(params.issue_key, "issue_key", "transition")

    transition_id = params.transition_id
    if not transition_id and params.transition_name:
        transition_id = await _resolve_transition(ctx, issue_key, params.transition_name)
    if not transition_id:
        raise ValidationError(
            "transition_id or transition_name is required for transition action",
            errors={"transition_id": ["Field required"]},
        )

    audit_input = {
        "transition_id": transition_id,
        "transition_name": params.transition_name,
        "comment": params.comment,
    }
    return await execute_mutation(
        ctx,
        AuditAction.TRANSITION,
        AuditResource.ISSUE,
        audit_input,
        operation=lambda: ctx.issues.transition_issue(issue_key, transition_id, params.comment),
        render=lambda _: _done(issue_key, "Issue transitioned"),
        resource_id=issue_key,
        dry_run=params.dry_run,
        confirmed=params.confirm,
    )


async def _assign(ctx: ToolContext, params: JiraIssuesInput) -> ToolResult:
    issue_key = require(params.issue_key, "issue_key", "assign")
    account_id = params.assignee or None
    return await execute_mutation(
        ctx,
        AuditAction.ASSIGN,
        AuditResource.ISSUE,
        {"assignee": account_id},
        operation=lambda: ctx.issues.assign_issue(issue_key, account_id),
        render=lambda _: _done(issue_key, "Issue assigned" if account_id else "Issue unassigned"),
        resource_id=issue_key,
        dry_run=params.dry_run,
        confirmed=params.confirm,
    )


async def _link_to_epic(ctx: ToolContext, params: JiraIssuesInput) -> ToolResult:
    issue_key = require(params.issue_key, "issue_key", "link_to_epic")
    epic_key = params.epic_key or None
    return await execute_mutation(
        ctx,
        AuditAction.LINK if epic_key else AuditAction.UNLINK,
        AuditResource.ISSUE,
        {"epic": epic_key},
        operation=lambda: ctx.issues.link_to_epic(issue_key, epic_key),
        render=lambda _: _done(
            issue_key, f"Linked to epic {epic_key}" if epic_key else "Unlinked from epic"
        ),
        resource_id=issue_key,
        dry_run=params.dry_run,
        confirmed=params.confirm,
    )


ACTIONS = {
    "get": _get,
    "create": _create,
    "update": _update,
    "delete": _delete,
    "search": _search,
    "transition": _transition,
    "assign": _assign,
    "get_transitions": _get_transitions,
    "link_to_epic": _link_to_epic,
    "get_changelog": _get_changelog,
}


async def handle_jira_issues(ctx: ToolContext, params: JiraIssuesInput):
    return await ACTIONS[params.action](ctx, params)


async def jira_issues(ctx: ToolContext, **arguments: Any) -> ToolResult:
    """Validate raw arguments and run the jira_issues tool."""
    return await run_tool("jira_issues", JiraIssuesInput, handle_jira_issues, ctx, arguments)


__all__ = ["format_issue", "handle_jira_issues", "jira_issues", "simplify_issue"]
