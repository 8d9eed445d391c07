#!/usr/bin/env python3
"""Audit Log with Dry-Run and Confirmation Gating.

Every mutating tool call consults an AuditLog before touching Jira and reports
its outcome back to it afterwards. The AuditLog owns four pieces of state:

    - The dry-run flag (ORed with any per-request dry-run flag)
    - The AuditConfig (changed only through configure())
    - The in-memory session log
    - The append-only JSONL audit file (optional)

All state is guarded by a lock, so configuration changes and log appends
stay atomic even when tools run in worker threads. The audit file is written
after the lock is released.

Example:
    audit = AuditLog(AuditConfig(log_file_path="/var/log/jira-audit.log"))

    check = audit.validate_confirmation(AuditAction.DELETE, confirmed=False)
    if not check.valid:
        return check.message

    audit.log_audit(AuditAction.DELETE, AuditResource.ISSUE, {"delete_subtasks": False},
                    AuditResult.SUCCESS, resource_id="PROJ-1")
"""
import dataclasses
import json
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union

from . import formatting
from .models import (
    AuditAction,
    AuditEntry,
    AuditResource,
    AuditResult,
    redact_secrets,
    thaw,
    utc_timestamp,
)

logger = logging.getLogger(__name__)

# Console audit lines go to a stable logger name so deployments can route them
audit_logger = logging.getLogger("jira_mcp.audit")

DEFAULT_AUDIT_LOG_FILE = "./jira-audit.log"

CONFIRMATION_HINT = "Set confirm: true to proceed, or use dry_run: true to preview changes."


# ============================================
# Configuration
# ============================================

@dataclass(frozen=True)
class AuditConfig:
    """Audit behaviour switches.

    Attributes:
        enabled: Record entries at all
        log_to_console: Emit one log line per entry on the jira_mcp.audit logger
        log_to_file: Append one JSON line per entry to log_file_path
        log_file_path: Audit file location
        require_confirmation: Master switch for confirmation gating
        confirmation_required_actions: Actions gated when require_confirmation is on
    """
    enabled: bool = True
    log_to_console: bool = True
    log_to_file: bool = True
    log_file_path: str = DEFAULT_AUDIT_LOG_FILE
    require_confirmation: bool = True
    confirmation_required_actions: frozenset = field(
        default_factory=lambda: frozenset({AuditAction.UPDATE, AuditAction.DELETE})
    )

    def __post_init__(self):
        # Accept plain strings and any iterable from callers
        actions = frozenset(AuditAction(a) for a in self.confirmation_required_actions)
        object.__setattr__(self, "confirmation_required_actions", actions)

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "log_to_console": self.log_to_console,
            "log_to_file": self.log_to_file,
            "log_file_path": self.log_file_path,
            "require_confirmation": self.require_confirmation,
            "confirmation_required_actions": sorted(
                a.value for a in self.confirmation_required_actions
            ),
        }


@dataclass(frozen=True)
class ConfirmationResult:
    """Outcome of validate_confirmation. ``message`` is set only when invalid."""
    valid: bool
    message: Optional[str] = None


# ============================================
# The Audit Log
# ============================================

class AuditLog:
    """Session audit trail plus the dry-run and confirmation gates.

    One instance is shared by every tool handler of a server; tests build
    their own instances for isolation.
    """

    def __init__(self, config: Optional[AuditConfig] = None, dry_run: bool = False):
        self._config = config or AuditConfig()
        self._dry_run = dry_run
        self._entries: list[AuditEntry] = []
        self._lock = threading.Lock()
        # Serializes file appends only, so readers never wait on disk I/O
        self._file_lock = threading.Lock()

    # ----------------------------------------
    # Dry-Run Mode
    # ----------------------------------------

    def set_dry_run_mode(self, enabled: bool) -> None:
        with self._lock:
            self._dry_run = enabled
        logger.info(f"Dry-run mode {'enabled' if enabled else 'disabled'}")

    def is_dry_run_mode(self) -> bool:
        with self._lock:
            return self._dry_run

    def is_dry_run(self, request_dry_run: Optional[bool] = False) -> bool:
        """Effective dry-run state for one request: global flag OR request flag."""
        return self.is_dry_run_mode() or bool(request_dry_run)

    # ----------------------------------------
    # Configuration
    # ----------------------------------------

    @property
    def config(self) -> AuditConfig:
        with self._lock:
            return self._config

    def configure(self, **changes: Any) -> AuditConfig:
        """Merge ``changes`` into the current config; other fields are kept.

        Raises:
            ValueError: If a key is not an AuditConfig field
        """
        known = {f.name for f in dataclasses.fields(AuditConfig)}
        unknown = sorted(set(changes) - known)
        if unknown:
            raise ValueError(f"Unknown audit config option(s): {', '.join(unknown)}")

        with self._lock:
            self._config = dataclasses.replace(self._config, **changes)
            updated = self._config
        logger.info(f"Audit configuration updated: {updated.to_dict()}")
        return updated

    # ----------------------------------------
    # Confirmation Gate
    # ----------------------------------------

    def requires_confirmation(self, action: Union[AuditAction, str]) -> bool:
        config = self.config
        return config.require_confirmation and AuditAction(action) in config.confirmation_required_actions

    def validate_confirmation(
        self,
        action: Union[AuditAction, str],
        confirmed: Optional[bool] = None,
        dry_run: Optional[bool] = False,
    ) -> ConfirmationResult:
        """Decide whether a mutation may proceed.

        Valid when the action is not gated, gating is disabled, the call is
        effectively a dry run, or ``confirmed`` is exactly True.
        """
        action = AuditAction(action)
        if not self.requires_confirmation(action):
            return ConfirmationResult(valid=True)
        if self.is_dry_run(dry_run):
            return ConfirmationResult(valid=True)
        if confirmed is True:
            return ConfirmationResult(valid=True)
        return ConfirmationResult(
            valid=False,
            message=(
                f"Action '{action.value}' requires explicit confirmation. "
                "Set 'confirm: true' to proceed."
            ),
        )

    # ----------------------------------------
    # Recording
    # ----------------------------------------

    def log_audit(
        self,
        action: Union[AuditAction, str],
        resource: Union[AuditResource, str],
        input: dict[str, Any],
        result: Union[AuditResult, str],
        resource_id: Optional[str] = None,
        error: Optional[str] = None,
        dry_run: Optional[bool] = False,
    ) -> Optional[AuditEntry]:
        """Record one mutation attempt.

        Returns:
            The stored entry, or None when auditing is disabled
        """
        result = AuditResult(result)

        with self._lock:
            config = self._config
            if not config.enabled:
                return None

            entry = AuditEntry(
                timestamp=utc_timestamp(),
                action=AuditAction(action),
                resource=AuditResource(resource),
                input=redact_secrets(input),
                result=result,
                resource_id=resource_id,
                error=error,
                dry_run=self._dry_run or bool(dry_run) or result == AuditResult.DRY_RUN,
            )
            self._entries.append(entry)

        if config.log_to_file:
            self._append_to_file(config.log_file_path, entry)

        if config.log_to_console:
            self._emit(entry)

        return entry

    def _emit(self, entry: AuditEntry) -> None:
        emoji = formatting.action_emoji(entry.action, entry.result)
        label = " [DRY-RUN]" if entry.dry_run else ""
        target = f" {entry.resource_id}" if entry.resource_id else ""
        sanitized = json.dumps(
            formatting.sanitize_for_log(thaw(entry.input)), ensure_ascii=False, default=str
        )
        message = (
            f"{emoji} AUDIT{label}: {entry.action.value} {entry.resource.value}{target} "
            f"result={entry.result.value} input={sanitized}"
        )
        if entry.error:
            message += f" error={entry.error}"
        audit_logger.info(message)

    def _append_to_file(self, path: str, entry: AuditEntry) -> None:
        """Append one JSON line. Failures are logged, never raised."""
        try:
            with self._file_lock, open(path, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry.to_dict(), ensure_ascii=False, default=str) + "\n")
        except OSError as e:
            logger.error(f"Failed to write to audit log file {path}: {e}")

    # ----------------------------------------
    # Reading
    # ----------------------------------------

    def get_session_log(self) -> list[AuditEntry]:
        """Snapshot of this session's entries; later logging does not change it."""
        with self._lock:
            return list(self._entries)

    def get_recent_entries(self, count: int = 50) -> list[AuditEntry]:
        """Last ``count`` entries from the audit file, skipping unreadable lines."""
        if count <= 0:
            return []

        path = Path(self.config.log_file_path)
        if not path.exists():
            return []

        try:
            lines = [line for line in path.read_text(encoding="utf-8").splitlines() if line.strip()]
        except OSError as e:
            logger.error(f"Failed to read audit log file {path}: {e}")
            return []

        entries = []
        for line in lines[-count:]:
            try:
                entries.append(AuditEntry.from_dict(json.loads(line)))
            except (ValueError, KeyError, TypeError):
                logger.debug(f"Skipping unparseable audit line: {line[:80]}")
        return entries

    def clear_session_log(self) -> None:
        """Empty the in-memory log. The audit file is untouched."""
        with self._lock:
            self._entries.clear()

    # ----------------------------------------
    # Presentation
    # ----------------------------------------

    def create_dry_run_summary(
        self,
        action: Union[AuditAction, str],
        resource: Union[AuditResource, str],
        resource_id: Optional[str],
        input: dict[str, Any],
    ) -> str:
        return formatting.create_dry_run_summary(action, resource, resource_id, input)

    def format_audit_log(self, entries: Optional[list[AuditEntry]] = None) -> str:
        """Format ``entries`` (default: the session log) for display."""
        if entries is None:
            entries = self.get_session_log()
        return formatting.format_audit_log(entries)

    def get_status(self) -> dict[str, Any]:
        config = self.config
        return {
            "dry_run_mode": self.is_dry_run_mode(),
            "session_entries": len(self.get_session_log()),
            "config": config.to_dict(),
        }


__all__ = [
    "AuditConfig",
    "AuditLog",
    "CONFIRMATION_HINT",
    "ConfirmationResult",
    "DEFAULT_AUDIT_LOG_FILE",
]
