"""MCP tool handlers.

Each tool exposes an async ``jira_<name>(ctx, **arguments) -> ToolResult``
entry point that validates its arguments and never raises.
"""
from .audit import jira_audit
from .base import (
    ToolContext,
    ToolResult,
    confirmation_required,
    error_result,
    execute_mutation,
    run_tool,
    to_text,
)
from .comments import jira_comments
from .issues import jira_issues
from .links import jira_links
from .projects import jira_projects
from .sprints import jira_sprints
from .worklogs import jira_worklogs

__all__ = [
    "ToolContext",
    "ToolResult",
    "confirmation_required",
    "error_result",
    "execute_mutation",
    "run_tool",
    "to_text",
    "jira_audit",
    "jira_comments",
    "jira_issues",
    "jira_links",
    "jira_projects",
    "jira_sprints",
    "jira_worklogs",
]
