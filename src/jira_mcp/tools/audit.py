"""jira_audit tool: inspect the audit trail and adjust safety settings.

Actions:
    get_status       Dry-run flag, session entry count and audit config
    set_dry_run      Turn dry-run mode on or off for every later call
    get_session_log  Entries recorded in this session
    get_recent_log   Last ``count`` entries from the audit file
    clear_session    Empty the session log (the file is untouched)
    configure        Change require_confirmation / log_to_file / log_to_console
"""
import logging
from typing import Any

from ..api.exceptions import ValidationError
from .base import ToolContext, ToolResult, require, run_tool, to_text
from .schemas import JiraAuditInput

logger = logging.getLogger(__name__)

CONFIGURABLE = ("require_confirmation", "log_to_file", "log_to_console")


async def handle_jira_audit(ctx: ToolContext, params: JiraAuditInput) -> str:
    audit = ctx.audit_log
    action = params.action

    if action == "get_status":
        status = audit.get_status()
        status["rate_limit_remaining"] = ctx.client.remaining_rate_limit
        status["hint"] = (
            "Use set_dry_run to enable/disable dry-run mode. "
            "Use get_session_log to view changes made in this session."
        )
        return to_text(status)

    if action == "set_dry_run":
        enabled = require(params.enabled, "enabled", "set_dry_run")
        audit.set_dry_run_mode(enabled)
        return to_text({
            "success": True,
            "dry_run_mode": enabled,
            "message": (
                "Dry-run mode enabled. No changes will be made to Jira."
                if enabled
                else "Dry-run mode disabled. Changes will be applied to Jira."
            ),
        })

    if action == "get_session_log":
        entries = audit.get_session_log()
        if not entries:
            return to_text({"message": "No changes have been made in this session.", "entries": []})
        return audit.format_audit_log(entries)

    if action == "get_recent_log":
        entries = audit.get_recent_entries(params.count)
        if not entries:
            return to_text({"message": "No audit entries found in the log file.", "entries": []})
        return audit.format_audit_log(entries)

    if action == "clear_session":
        audit.clear_session_log()
        return to_text({"success": True, "message": "Session audit log cleared."})

    # configure
    changes = {
        name: getattr(params, name)
        for name in CONFIGURABLE
        if getattr(params, name) is not None
    }
    if not changes:
        raise ValidationError(
            "At least one configuration option must be provided for configure action",
            errors={name: ["Provide a boolean"] for name in CONFIGURABLE},
        )
    audit.configure(**changes)
    return to_text({"success": True, "message": "Audit configuration updated.", "config": changes})


async def jira_audit(ctx: ToolContext, **arguments: Any) -> ToolResult:
    return await run_tool("jira_audit", JiraAuditInput, handle_jira_audit, ctx, arguments)


__all__ = ["handle_jira_audit", "jira_audit"]
