"""Human-readable rendering of audit data.

Everything here is pure: no state, no I/O. Output is meant to be shown
directly to the agent or the user driving it.
"""
import json
from typing import Any, Iterable, Optional, Union

from .models import (
    REDACTED,
    AuditAction,
    AuditEntry,
    AuditResource,
    AuditResult,
    is_sensitive_key,
    parse_timestamp,
)

DELIMITER = "═" * 59

LOG_VALUE_LIMIT = 500
LOG_TRUNCATION_MARKER = "... [truncated]"

SUMMARY_VALUE_LIMIT = 100
SUMMARY_TRUNCATION_MARKER = "..."

ACTION_EMOJI = {
    AuditAction.CREATE: "✨",
    AuditAction.UPDATE: "📝",
    AuditAction.DELETE: "🗑️",
    AuditAction.TRANSITION: "➡️",
    AuditAction.ASSIGN: "👤",
    AuditAction.LINK: "🔗",
    AuditAction.UNLINK: "🔓",
    AuditAction.MOVE: "📦",
}
FAILURE_EMOJI = "❌"
DRY_RUN_EMOJI = "🔍"
DEFAULT_EMOJI = "📋"


def action_emoji(action: AuditAction, result: AuditResult) -> str:
    """Failures and simulations override the per-action icon."""
    if result == AuditResult.FAILURE:
        return FAILURE_EMOJI
    if result == AuditResult.DRY_RUN:
        return DRY_RUN_EMOJI
    return ACTION_EMOJI.get(action, DEFAULT_EMOJI)


def sanitize_for_log(data: dict[str, Any]) -> dict[str, Any]:
    """Prepare an input mapping for a log line.

    Sensitive keys become REDACTED; strings longer than 500 characters are cut
    to 500 and marked as truncated.
    """
    sanitized: dict[str, Any] = {}
    for key, value in data.items():
        if is_sensitive_key(key):
            sanitized[key] = REDACTED
        elif isinstance(value, str) and len(value) > LOG_VALUE_LIMIT:
            sanitized[key] = value[:LOG_VALUE_LIMIT] + LOG_TRUNCATION_MARKER
        else:
            sanitized[key] = value
    return sanitized


def _summary_value(value: Any) -> str:
    if isinstance(value, str) and len(value) > SUMMARY_VALUE_LIMIT:
        return value[:SUMMARY_VALUE_LIMIT] + SUMMARY_TRUNCATION_MARKER
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"), default=str)


def create_dry_run_summary(
    action: Union[AuditAction, str],
    resource: Union[AuditResource, str],
    resource_id: Optional[str],
    input: dict[str, Any],
) -> str:
    """Render the preview shown instead of performing a mutation.

    Example:
        create_dry_run_summary("update", "issue", "PROJ-123", {"summary": "New title"})

        renders, between delimiter lines, a DRY-RUN banner followed by:

          Action:   UPDATE
          Resource: issue
          Target:   PROJ-123

          Proposed Changes:
            • summary: "New title"
    """
    action = AuditAction(action)
    resource = AuditResource(resource)

    lines = [
        DELIMITER,
        f"  {DRY_RUN_EMOJI} DRY-RUN MODE - No changes will be made",
        DELIMITER,
        "",
        f"  Action:   {action.value.upper()}",
        f"  Resource: {resource.value}",
    ]
    if resource_id:
        lines.append(f"  Target:   {resource_id}")

    lines.extend(["", "  Proposed Changes:"])
    for key, value in input.items():
        if value is not None:
            lines.append(f"    • {key}: {_summary_value(value)}")

    lines.extend([
        "",
        DELIMITER,
        "  To execute this change, disable dry-run mode or",
        "  set dry_run: false in your request.",
        DELIMITER,
    ])
    return "\n".join(lines)


def _display_time(timestamp: str) -> str:
    try:
        return parse_timestamp(timestamp).strftime("%Y-%m-%d %H:%M:%S UTC")
    except ValueError:
        return timestamp


def format_audit_log(entries: Iterable[AuditEntry]) -> str:
    """Render audit entries as a readable listing, oldest first."""
    entries = list(entries)
    if not entries:
        return "No audit entries found."

    lines = [DELIMITER, f"  {DEFAULT_EMOJI} AUDIT LOG", DELIMITER, ""]
    for entry in entries:
        dry_run_label = " [DRY-RUN]" if entry.dry_run else ""
        lines.append(
            f"{action_emoji(entry.action, entry.result)} "
            f"{_display_time(entry.timestamp)}{dry_run_label}"
        )
        lines.append(
            f"   {entry.action.value.upper()} {entry.resource.value} {entry.resource_id or ''}".rstrip()
        )
        lines.append(f"   Result: {entry.result.value}")
        if entry.error:
            lines.append(f"   Error: {entry.error}")
        lines.append("")

    return "\n".join(lines)


__all__ = [
    "DELIMITER",
    "action_emoji",
    "create_dry_run_summary",
    "format_audit_log",
    "sanitize_for_log",
]
