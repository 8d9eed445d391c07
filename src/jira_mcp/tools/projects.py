"""jira_projects tool: project lookups and release version management."""
import logging
from typing import Any

from ..api.exceptions import ValidationError
from ..audit.models import AuditAction, AuditResource
from .base import ToolContext, ToolResult, execute_mutation, require, run_tool, to_text
from .schemas import JiraProjectsInput

logger = logging.getLogger(__name__)


def simplify_project(project: dict[str, Any]) -> dict[str, Any]:
    lead = project.get("lead") or {}
    return {
        "key": project.get("key"),
        "name": project.get("name"),
        "type": project.get("projectTypeKey"),
        "lead": lead.get("displayName"),
    }


def simplify_version(version: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": version.get("id"),
        "name": version.get("name"),
        "released": version.get("released", False),
        "archived": version.get("archived", False),
        "release_date": version.get("releaseDate"),
    }


def _version_done(message: str, version: dict[str, Any]) -> str:
    return to_text({"success": True, "message": message, "version": simplify_version(version)})


# ============================================
# Reads
# ============================================

async def _list(ctx: ToolContext, params: JiraProjectsInput) -> str:
    page = await ctx.projects.list_projects(params.start_at, params.max_results)
    if params.full:
        return to_text(page)
    return to_text({
        "projects": [simplify_project(p) for p in page["values"]],
        "total": page["total"],
        "has_more": not page["isLast"],
    })


async def _get(ctx: ToolContext, params: JiraProjectsInput) -> str:
    project_key = require(params.project_key, "project_key", "get")
    project = await ctx.projects.get_project(project_key)
    if params.full:
        return to_text(project)
    return to_text({
        **simplify_project(project),
        "description": project.get("description") or None,
        "issue_types": [t.get("name") for t in project.get("issueTypes", [])],
    })


async def _get_components(ctx: ToolContext, params: JiraProjectsInput) -> str:
    project_key = require(params.project_key, "project_key", "get_components")
    components = await ctx.projects.get_components(project_key)
    return to_text({
        "project_key": project_key,
        "components": [{"id": c.get("id"), "name": c.get("name")} for c in components],
    })


async def _get_versions(ctx: ToolContext, params: JiraProjectsInput) -> str:
    project_key = require(params.project_key, "project_key", "get_versions")
    versions = await ctx.projects.get_versions(project_key)
    if params.full:
        return to_text(versions)
    return to_text({
        "project_key": project_key,
        "versions": [simplify_version(v) for v in versions],
    })


# ============================================
# Version Mutations
# ============================================

async def _create_version(ctx: ToolContext, params: JiraProjectsInput) -> ToolResult:
    project_key = require(params.project_key, "project_key", "create_version")
    name = require(params.name, "name", "create_version")

    return await execute_mutation(
        ctx,
        AuditAction.CREATE,
        AuditResource.VERSION,
        {
            "project": project_key,
            "name": name,
            "description": params.description,
            "start_date": params.start_date,
            "release_date": params.release_date,
        },
        operation=lambda: ctx.projects.create_version(
            project_key, name, params.description, params.start_date, params.release_date
        ),
        render=lambda version: _version_done(f"Version {name} created in {project_key}", version),
        dry_run=params.dry_run,
        confirmed=params.confirm,
        result_id=lambda version: version.get("id"),
    )


async def _update_version(ctx: ToolContext, params: JiraProjectsInput) -> ToolResult:
    version_id = require(params.version_id, "version_id", "update_version")
    changes = {
        "name": params.name,
        "description": params.description,
        "start_date": params.start_date,
        "release_date": params.release_date,
        "archived": params.archived,
    }
    if all(value is None for value in changes.values()):
        raise ValidationError(
            "At least one of name, description, start_date, release_date or archived "
            "is required for update_version action",
            errors={"fields": ["No fields to update"]},
        )

    return await execute_mutation(
        ctx,
        AuditAction.UPDATE,
        AuditResource.VERSION,
        changes,
        operation=lambda: ctx.projects.update_version(version_id, **changes),
        render=lambda version: _version_done(f"Version {version_id} updated", version),
        resource_id=version_id,
        dry_run=params.dry_run,
        confirmed=params.confirm,
    )


async def _release_version(ctx: ToolContext, params: JiraProjectsInput) -> ToolResult:
    version_id = require(params.version_id, "version_id", "release_version")

    return await execute_mutation(
        ctx,
        AuditAction.UPDATE,
        AuditResource.VERSION,
        {"released": True, "release_date": params.release_date},
        operation=lambda: ctx.projects.release_version(version_id, params.release_date),
        render=lambda version: _version_done(f"Version {version_id} released", version),
        resource_id=version_id,
        dry_run=params.dry_run,
        confirmed=params.confirm,
    )


async def _delete_version(ctx: ToolContext, params: JiraProjectsInput) -> ToolResult:
    version_id = require(params.version_id, "version_id", "delete_version")

    return await execute_mutation(
        ctx,
        AuditAction.DELETE,
        AuditResource.VERSION,
        {
            "move_fix_issues_to": params.move_fix_issues_to,
            "move_affected_issues_to": params.move_affected_issues_to,
        },
        operation=lambda: ctx.projects.delete_version(
            version_id, params.move_fix_issues_to, params.move_affected_issues_to
        ),
        render=lambda _: to_text({"success": True, "message": f"Version {version_id} deleted"}),
        resource_id=version_id,
        dry_run=params.dry_run,
        confirmed=params.confirm,
    )


ACTIONS = {
    "list": _list,
    "get": _get,
    "get_components": _get_components,
    "get_versions": _get_versions,
    "create_version": _create_version,
    "update_version": _update_version,
    "release_version": _release_version,
    "delete_version": _delete_version,
}


async def handle_jira_projects(ctx: ToolContext, params: JiraProjectsInput):
    return await ACTIONS[params.action](ctx, params)


async def jira_projects(ctx: ToolContext, **arguments: Any) -> ToolResult:
    return await run_tool("jira_projects", JiraProjectsInput, handle_jira_projects, ctx, arguments)


__all__ = ["handle_jira_projects", "jira_projects", "simplify_project", "simplify_version"]
