"""
FastMCP Server for Jira Cloud

Exposes Jira issues, comments, worklogs, links, sprints and projects as MCP
tools. Every mutating action passes through the audit layer (dry-run
preview, confirmation for update/delete, session and file audit log) and
every HTTP call through a rate-limited, retrying client.

Usage:
    python server.py                              # stdio transport (default)
    python server.py --transport http --port 8000 # HTTP transport
    python server.py --dry-run                    # start with dry-run mode on
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from contextlib import asynccontextmanager
from typing import Any, Optional

from dotenv import load_dotenv
from fastmcp import Context, FastMCP
from fastmcp.exceptions import ToolError
from starlette.requests import Request
from starlette.responses import JSONResponse

from src.jira_mcp import __version__
from src.jira_mcp.api.client import JiraClient
from src.jira_mcp.api.exceptions import AuthenticationError, ConfigurationError
from src.jira_mcp.audit.log import AuditLog
from src.jira_mcp.config import load_config
from src.jira_mcp.tools import (
    ToolContext,
    ToolResult,
    jira_audit,
    jira_comments,
    jira_issues,
    jira_links,
    jira_projects,
    jira_sprints,
    jira_worklogs,
)

load_dotenv()

logger = logging.getLogger(__name__)

# =============================================================================
# Lifespan
# =============================================================================

# Reference for the health endpoint, which has no MCP context
_TOOL_CONTEXT: Optional[ToolContext] = None


@asynccontextmanager
async def lifespan(server: FastMCP):
    """Open the Jira client, check credentials and build the shared audit log."""
    global _TOOL_CONTEXT

    settings = load_config()

    client = JiraClient(
        settings.base_url,
        settings.email,
        settings.api_token,
        requests_per_minute=settings.rate_limit,
        timeout=settings.request_timeout,
    )
    await client.__aenter__()

    try:
        if await client.validate_connection():
            logger.info(f"Connected to {settings.base_url}")
        else:
            logger.warning(f"Could not reach {settings.base_url}; tools will retry on demand")
    except AuthenticationError as e:
        logger.warning(f"Jira rejected the configured credentials: {e.message}")

    audit_log = AuditLog(settings.audit_config(), dry_run=settings.dry_run)
    if settings.dry_run:
        logger.info("Starting in dry-run mode")

    tool_context = ToolContext(client=client, audit_log=audit_log)
    _TOOL_CONTEXT = tool_context

    try:
        yield {"tool_context": tool_context}
    finally:
        _TOOL_CONTEXT = None
        await client.close()


# =============================================================================
# FastMCP Server
# =============================================================================

mcp = FastMCP(
    name="Jira",
    instructions=(
        "This server manages Jira Cloud issues, comments, worklogs, issue links, "
        "sprints, projects and release versions. "
        "Mutating actions can be previewed with dry_run=true. "
        "Update and delete actions require confirm=true. "
        "Use jira_audit to review changes made in this session or to toggle dry-run mode."
    ),
    lifespan=lifespan,
)


# =============================================================================
# Health Check Endpoint (for HTTP transport)
# =============================================================================


@mcp.custom_route("/health", methods=["GET"])
async def health_check(request: Request) -> JSONResponse:
    """Health check endpoint for Docker/Kubernetes liveness checks."""
    body: dict[str, Any] = {
        "status": "healthy",
        "service": "jira-mcp",
        "version": __version__,
        "tools": 7,
    }
    if _TOOL_CONTEXT is not None:
        body["dry_run_mode"] = _TOOL_CONTEXT.audit_log.is_dry_run_mode()
        body["rate_limit_remaining"] = _TOOL_CONTEXT.client.remaining_rate_limit
    return JSONResponse(body)


# =============================================================================
# Helper Functions
# =============================================================================


def get_tool_context(ctx: Context) -> ToolContext:
    """Get the shared tool context from the lifespan context."""
    return ctx.request_context.lifespan_context["tool_context"]


def unwrap(result: ToolResult) -> str:
    """Return the result text, raising ToolError so MCP flags failures."""
    if result.is_error:
        raise ToolError(result.text)
    return result.text


# =============================================================================
# Tools
# =============================================================================


@mcp.tool(name="jira_issues", annotations={"readOnlyHint": False, "destructiveHint": True})
async def jira_issues_tool(
    ctx: Context,
    action: str,
    issue_key: Optional[str] = None,
    full: bool = False,
    dry_run: bool = False,
    confirm: bool = False,
    project_key: Optional[str] = None,
    summary: Optional[str] = None,
    issue_type: Optional[str] = None,
    description: Optional[str] = None,
    priority: Optional[str] = None,
    assignee: Optional[str] = None,
    labels: Optional[list[str]] = None,
    components: Optional[list[str]] = None,
    parent_key: Optional[str] = None,
    custom_fields: Optional[dict[str, Any]] = None,
    jql: Optional[str] = None,
    max_results: int = 50,
    next_page_token: Optional[str] = None,
    fetch_all: bool = False,
    max_items: int = 1000,
    transition_id: Optional[str] = None,
    transition_name: Optional[str] = None,
    comment: Optional[str] = None,
    delete_subtasks: bool = False,
    epic_key: Optional[str] = None,
) -> str:
    """Manage Jira issues.

    Actions:
        - get: Issue details (full=true for all fields)
        - create: New issue (project_key, summary, issue_type)
        - update: Change fields (requires confirm=true or dry_run=true)
        - delete: Delete issue (requires confirm=true or dry_run=true)
        - search: JQL search (jql, max_results, next_page_token;
          fetch_all=true follows every page up to max_items)
        - transition: Change status (transition_id or transition_name)
        - assign: Assign (assignee account ID) or unassign (omit assignee)
        - get_transitions: Available status transitions
        - link_to_epic: Set or clear (omit epic_key) the parent epic
        - get_changelog: Issue history

    Safety: dry_run=true previews any change without executing it.
    """
    arguments = dict(locals())
    arguments.pop("ctx")
    return unwrap(await jira_issues(get_tool_context(ctx), **arguments))


@mcp.tool(name="jira_comments", annotations={"readOnlyHint": False, "destructiveHint": True})
async def jira_comments_tool(
    ctx: Context,
    action: str,
    issue_key: str,
    comment_id: Optional[str] = None,
    body: Optional[str] = None,
    visibility_type: Optional[str] = None,
    visibility_value: Optional[str] = None,
    start_at: int = 0,
    max_results: int = 50,
    fetch_all: bool = False,
    dry_run: bool = False,
    confirm: bool = False,
) -> str:
    """Manage issue comments.

    Actions:
        - list: Comments on an issue, newest first (fetch_all=true for every page)
        - get: One comment (comment_id)
        - add: New comment (body; optional visibility_type group|role + visibility_value)
        - update: Replace a comment's body (requires confirm=true or dry_run=true)
        - delete: Remove a comment (requires confirm=true or dry_run=true)
    """
    arguments = dict(locals())
    arguments.pop("ctx")
    return unwrap(await jira_comments(get_tool_context(ctx), **arguments))


@mcp.tool(name="jira_worklogs", annotations={"readOnlyHint": False, "destructiveHint": True})
async def jira_worklogs_tool(
    ctx: Context,
    action: str,
    issue_key: str,
    worklog_id: Optional[str] = None,
    time_spent: Optional[str] = None,
    started: Optional[str] = None,
    comment: Optional[str] = None,
    start_at: int = 0,
    max_results: int = 50,
    dry_run: bool = False,
    confirm: bool = False,
) -> str:
    """Manage time tracking on issues.

    Actions:
        - list: Worklogs on an issue
        - add: Log work (time_spent like "1h 30m", started timestamp)
        - update: Change a worklog (requires confirm=true or dry_run=true)
        - delete: Remove a worklog (requires confirm=true or dry_run=true)
    """
    arguments = dict(locals())
    arguments.pop("ctx")
    return unwrap(await jira_worklogs(get_tool_context(ctx), **arguments))


@mcp.tool(name="jira_links", annotations={"readOnlyHint": False, "destructiveHint": True})
async def jira_links_tool(
    ctx: Context,
    action: str,
    issue_key: Optional[str] = None,
    full: bool = False,
    target_issue_key: Optional[str] = None,
    link_type: Optional[str] = None,
    comment: Optional[str] = None,
    link_id: Optional[str] = None,
    epic_key: Optional[str] = None,
    remote_link_id: Optional[int] = None,
    url: Optional[str] = None,
    title: Optional[str] = None,
    summary: Optional[str] = None,
    icon_url: Optional[str] = None,
    dry_run: bool = False,
    confirm: bool = False,
) -> str:
    """Manage links between issues and web links on issues.

    Actions:
        - get_link_types: Available link types (Blocks, Relates, ...)
        - list: Links on an issue (issue_key)
        - create: Link issue_key to target_issue_key with link_type
        - remove: Delete an issue link (link_id)
        - link_to_epic: Set or clear (omit epic_key) the parent epic
        - list_remote: Web links on an issue
        - create_remote: Add a web link (url, title, optional summary/icon_url)
        - remove_remote: Delete a web link (remote_link_id; requires confirm=true or dry_run=true)
    """
    arguments = dict(locals())
    arguments.pop("ctx")
    return unwrap(await jira_links(get_tool_context(ctx), **arguments))


@mcp.tool(name="jira_sprints", annotations={"readOnlyHint": False, "destructiveHint": False})
async def jira_sprints_tool(
    ctx: Context,
    action: str,
    board_id: Optional[int] = None,
    project_key: Optional[str] = None,
    sprint_id: Optional[int] = None,
    full: bool = False,
    state: Optional[str] = None,
    start_at: int = 0,
    max_results: int = 50,
    jql: Optional[str] = None,
    name: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    goal: Optional[str] = None,
    issue_keys: Optional[list[str]] = None,
    dry_run: bool = False,
    confirm: bool = False,
) -> str:
    """Manage sprints. Pass board_id, or project_key to use the project's board.

    Actions:
        - list: Sprints on the board (optional state future|active|closed)
        - get: One sprint (sprint_id)
        - get_issues: Issues in a sprint (sprint_id, optional jql)
        - get_active: The board's active sprint
        - create: New sprint (name, optional start_date, end_date, goal)
        - update: Change a sprint (requires confirm=true or dry_run=true)
        - move_issues: Move issue_keys into sprint_id
    """
    arguments = dict(locals())
    arguments.pop("ctx")
    return unwrap(await jira_sprints(get_tool_context(ctx), **arguments))


@mcp.tool(name="jira_projects", annotations={"readOnlyHint": False, "destructiveHint": True})
async def jira_projects_tool(
    ctx: Context,
    action: str,
    project_key: Optional[str] = None,
    full: bool = False,
    start_at: int = 0,
    max_results: int = 50,
    version_id: Optional[str] = None,
    name: Optional[str] = None,
    description: Optional[str] = None,
    start_date: Optional[str] = None,
    release_date: Optional[str] = None,
    archived: Optional[bool] = None,
    move_fix_issues_to: Optional[str] = None,
    move_affected_issues_to: Optional[str] = None,
    dry_run: bool = False,
    confirm: bool = False,
) -> str:
    """Browse projects and manage release versions.

    Actions:
        - list: Projects visible to the user
        - get: Project details (project_key)
        - get_components: Project components
        - get_versions: Project versions
        - create_version: New version (project_key, name)
        - update_version: Change a version (requires confirm=true or dry_run=true)
        - release_version: Mark released, today unless release_date (requires confirm=true)
        - delete_version: Delete a version (requires confirm=true or dry_run=true)
    """
    arguments = dict(locals())
    arguments.pop("ctx")
    return unwrap(await jira_projects(get_tool_context(ctx), **arguments))


@mcp.tool(name="jira_audit", annotations={"readOnlyHint": False})
async def jira_audit_tool(
    ctx: Context,
    action: str,
    enabled: Optional[bool] = None,
    count: int = 50,
    require_confirmation: Optional[bool] = None,
    log_to_file: Optional[bool] = None,
    log_to_console: Optional[bool] = None,
) -> str:
    """Manage audit logging and safety features.

    Actions:
        - get_status: Dry-run mode, session stats and audit settings
        - set_dry_run: Enable/disable dry-run mode (enabled)
        - get_session_log: Changes made in this session
        - get_recent_log: Recent entries from the audit log file (count)
        - clear_session: Clear the session audit log
        - configure: Update require_confirmation, log_to_file, log_to_console

    Dry-run mode: when enabled, every create/update/delete shows what WOULD
    happen without making changes.
    """
    arguments = dict(locals())
    arguments.pop("ctx")
    return unwrap(await jira_audit(get_tool_context(ctx), **arguments))


# =============================================================================
# Server Entry Point
# =============================================================================


def configure_logging(level: str) -> None:
    """Log to stderr; stdout carries the MCP stdio protocol."""
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    logging.getLogger("aiohttp").setLevel(logging.WARNING)


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Jira MCP Server")
    parser.add_argument(
        "--transport",
        choices=["stdio", "http", "streamable-http"],
        default="stdio",
        help="Transport protocol (default: stdio)",
    )
    parser.add_argument(
        "--host",
        type=str,
        default="0.0.0.0",
        help="Host to bind to for HTTP transport (default: 0.0.0.0)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port for HTTP transport (default: 8000)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Start with dry-run mode enabled (no changes are sent to Jira)",
    )
    args = parser.parse_args(argv)

    if args.dry_run:
        os.environ["JIRA_MCP_DRY_RUN"] = "true"

    try:
        settings = load_config()
    except ConfigurationError as e:
        print(f"Configuration error: {e.message}", file=sys.stderr)
        sys.exit(1)

    configure_logging(settings.log_level)

    if args.transport in ("http", "streamable-http"):
        mcp.run(
            transport="streamable-http",
            host=args.host,
            port=args.port,
        )
    else:
        mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
