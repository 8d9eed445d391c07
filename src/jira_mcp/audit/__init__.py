"""Audit trail, dry-run mode and confirmation gating for Jira mutations.

Classes:
    AuditLog: Session log, audit file, dry-run flag and confirmation gate
    AuditConfig: Audit switches (console/file logging, confirmation rules)
    AuditEntry: One immutable record of a mutation attempt
"""
from .formatting import (
    action_emoji,
    create_dry_run_summary,
    format_audit_log,
    sanitize_for_log,
)
from .log import (
    CONFIRMATION_HINT,
    DEFAULT_AUDIT_LOG_FILE,
    AuditConfig,
    AuditLog,
    ConfirmationResult,
)
from .models import (
    REDACTED,
    AuditAction,
    AuditEntry,
    AuditResource,
    AuditResult,
    redact_secrets,
)

__all__ = [
    "AuditLog",
    "AuditConfig",
    "ConfirmationResult",
    "CONFIRMATION_HINT",
    "DEFAULT_AUDIT_LOG_FILE",
    "AuditAction",
    "AuditEntry",
    "AuditResource",
    "AuditResult",
    "REDACTED",
    "redact_secrets",
    "action_emoji",
    "create_dry_run_summary",
    "format_audit_log",
    "sanitize_for_log",
]
