#!/usr/bin/env python3
"""Shared plumbing for the Jira MCP tool handlers.

Every tool handler receives a ToolContext holding the shared JiraClient and
AuditLog, and returns a ToolResult. Mutating actions go through
execute_mutation(), the one place the gating sequence is implemented:

    Request
      ├─ effective dry-run ──────────────→ Simulated  (logged, no upstream call)
      └─ confirmation check
           ├─ not confirmed ─────────────→ Rejected   (not an error, no upstream call)
           └─ permitted → upstream call
                ├─ ok ───────────────────→ Success    (logged)
                └─ raises ───────────────→ Failure    (logged, then re-raised)

run_tool() is the handler boundary: it validates raw arguments with the
tool's pydantic schema and turns any exception into an error ToolResult.
"""
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Union

import pydantic

from ..api.client import JiraClient
from ..api.comments import CommentsAPI
from ..api.exceptions import JiraError, ValidationError, format_error_message
from ..api.issues import IssuesAPI
from ..api.links import LinksAPI
from ..api.projects import ProjectsAPI
from ..api.sprints import SprintsAPI
from ..api.worklogs import WorklogsAPI
from ..audit.log import CONFIRMATION_HINT, AuditLog
from ..audit.models import AuditAction, AuditResource, AuditResult

logger = logging.getLogger(__name__)


# ============================================
# Context and Results
# ============================================

@dataclass
class ToolContext:
    """Everything a handler may touch, created once per server lifespan.

    Attributes:
        client: Shared JiraClient (owns the rate limiter)
        audit_log: Shared AuditLog (owns dry-run flag and session log)
    """
    client: JiraClient
    audit_log: AuditLog
    issues: IssuesAPI = field(init=False)
    comments: CommentsAPI = field(init=False)
    worklogs: WorklogsAPI = field(init=False)
    links: LinksAPI = field(init=False)
    sprints: SprintsAPI = field(init=False)
    projects: ProjectsAPI = field(init=False)

    def __post_init__(self):
        self.issues = IssuesAPI(self.client)
        self.comments = CommentsAPI(self.client)
        self.worklogs = WorklogsAPI(self.client)
        self.links = LinksAPI(self.client)
        self.sprints = SprintsAPI(self.client)
        self.projects = ProjectsAPI(self.client)


@dataclass(frozen=True)
class ToolResult:
    """Text returned to the MCP caller; ``is_error`` marks genuine failures."""
    text: str
    is_error: bool = False


def to_text(data: Any) -> str:
    """Render structured data for the caller as indented JSON."""
    return json.dumps(data, indent=2, ensure_ascii=False, default=str)


def confirmation_required(message: str) -> ToolResult:
    """The structured rejection returned when a gated action lacks confirm."""
    return ToolResult(
        to_text({
            "status": "confirmation_required",
            "error": "Confirmation required",
            "message": message,
            "hint": CONFIRMATION_HINT,
        })
    )


def error_result(error: object) -> ToolResult:
    return ToolResult(format_error_message(error), is_error=True)


def require(value: Any, field_name: str, action: str) -> Any:
    """Return ``value`` or raise ValidationError if it was not supplied."""
    if value is None or value == "":
        raise ValidationError.missing_field(field_name, action)
    return value


def _error_text(error: BaseException) -> str:
    if isinstance(error, JiraError):
        return error.message
    return str(error)


# ============================================
# Gated Mutation
# ============================================

async def execute_mutation(
    ctx: ToolContext,
    action: AuditAction,
    resource: AuditResource,
    audit_input: dict[str, Any],
    operation: Callable[[], Awaitable[Any]],
    render: Callable[[Any], Union[str, ToolResult]],
    resource_id: Optional[str] = None,
    dry_run: bool = False,
    confirmed: Optional[bool] = None,
    result_id: Optional[Callable[[Any], Optional[str]]] = None,
) -> ToolResult:
    """Run one mutating action through dry-run, confirmation and audit.

    Args:
        ctx: Tool context
        action: Audit action recorded for this mutation
        resource: Audit resource type
        audit_input: Caller parameters to record and preview
        operation: Zero-argument coroutine factory that performs the upstream call
        render: Turns the operation's return value into the success text
        resource_id: Target key/ID when known before the call
        dry_run: Per-request dry-run flag (ORed with the global flag)
        confirmed: Caller's confirm flag
        result_id: Extracts the resource ID from the result (e.g. a created key)

    Returns:
        Dry-run preview, confirmation-required rejection, or rendered success

    Raises:
        Whatever ``operation`` raises, after the failure has been audited
    """
    audit = ctx.audit_log

    if audit.is_dry_run(dry_run):
        audit.log_audit(
            action, resource, audit_input, AuditResult.DRY_RUN,
            resource_id=resource_id, dry_run=True,
        )
        return ToolResult(audit.create_dry_run_summary(action, resource, resource_id, audit_input))

    check = audit.validate_confirmation(action, confirmed, dry_run)
    if not check.valid:
        logger.info(f"Rejected unconfirmed {action.value} on {resource.value} {resource_id or ''}")
        return confirmation_required(check.message)

    try:
        outcome = await operation()
    except Exception as e:
        audit.log_audit(
            action, resource, audit_input, AuditResult.FAILURE,
            resource_id=resource_id, error=_error_text(e),
        )
        raise

    if result_id is not None:
        resource_id = result_id(outcome) or resource_id
    audit.log_audit(action, resource, audit_input, AuditResult.SUCCESS, resource_id=resource_id)

    rendered = render(outcome)
    return rendered if isinstance(rendered, ToolResult) else ToolResult(rendered)


# ============================================
# Handler Boundary
# ============================================

Handler = Callable[[ToolContext, Any], Awaitable[Union[str, ToolResult]]]


async def run_tool(
    name: str,
    schema: type[pydantic.BaseModel],
    handler: Handler,
    ctx: ToolContext,
    arguments: dict[str, Any],
) -> ToolResult:
    """Validate ``arguments`` and run ``handler``; never raises.

    None-valued arguments are dropped so schema defaults apply.
    """
    try:
        params = schema.model_validate({k: v for k, v in arguments.items() if v is not None})
    except pydantic.ValidationError as e:
        error = ValidationError.from_pydantic(e)
        logger.warning(f"{name}: {error.message}")
        return error_result(error)

    try:
        result = await handler(ctx, params)
    except Exception as e:
        logger.error(f"{name} {getattr(params, 'action', '')} failed: {e}")
        return error_result(e)

    return result if isinstance(result, ToolResult) else ToolResult(result)


__all__ = [
    "Handler",
    "ToolContext",
    "ToolResult",
    "confirmation_required",
    "error_result",
    "execute_mutation",
    "require",
    "run_tool",
    "to_text",
]
