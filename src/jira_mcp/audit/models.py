"""Audit Log Data Models.

Defines the value types recorded by the audit log:
    - AuditAction: what kind of mutation was attempted
    - AuditResource: what kind of Jira object it targeted
    - AuditResult: how it ended (success, failure, or simulated)
    - AuditEntry: one immutable record, serialized as one JSON line on disk

Secret-looking input keys are redacted when an entry is built, so neither the
session log nor the audit file ever holds the original value. The stored input
is a deep, read-only copy: dicts become mappingproxies and lists become tuples.
"""
import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional

REDACTED = "[REDACTED]"

# Case-insensitive substrings that mark an input key as sensitive
SENSITIVE_KEY_PARTS = ("password", "token", "secret", "key", "credential")


class AuditAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    TRANSITION = "transition"
    ASSIGN = "assign"
    LINK = "link"
    UNLINK = "unlink"
    MOVE = "move"


class AuditResource(str, Enum):
    ISSUE = "issue"
    COMMENT = "comment"
    WORKLOG = "worklog"
    SPRINT = "sprint"
    VERSION = "version"
    LINK = "link"
    REMOTE_LINK = "remote_link"


class AuditResult(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    DRY_RUN = "dry-run"


def is_sensitive_key(key: str) -> bool:
    lowered = key.lower()
    return any(part in lowered for part in SENSITIVE_KEY_PARTS)


def redact_secrets(data: Mapping[str, Any]) -> dict[str, Any]:
    """Return a deep copy of ``data`` with sensitive keys replaced by REDACTED."""
    return {
        key: REDACTED if is_sensitive_key(key) else copy.deepcopy(value)
        for key, value in data.items()
    }


def freeze(value: Any) -> Any:
    """Read-only deep copy of a JSON-like value."""
    if isinstance(value, Mapping):
        return MappingProxyType({key: freeze(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze(item) for item in value)
    return value


def thaw(value: Any) -> Any:
    """Inverse of freeze: plain dicts and lists, safe to hand out or serialize."""
    if isinstance(value, Mapping):
        return {key: thaw(item) for key, item in value.items()}
    if isinstance(value, tuple):
        return [thaw(item) for item in value]
    return value


def utc_timestamp() -> str:
    """Current time as ISO-8601 UTC with millisecond precision and a Z suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


@dataclass(frozen=True)
class AuditEntry:
    """One recorded mutation attempt.

    Attributes:
        timestamp: ISO-8601 UTC time the entry was logged
        action: Attempted action
        resource: Targeted resource type
        input: Caller-supplied parameters, read-only, with secrets redacted
        result: Outcome of the attempt
        resource_id: Key or ID of the target, when known
        error: Failure message for result == FAILURE
        dry_run: True when the attempt was simulated (never sent upstream)
    """
    timestamp: str
    action: AuditAction
    resource: AuditResource
    input: Mapping[str, Any] = field(default_factory=dict)
    result: AuditResult = AuditResult.SUCCESS
    resource_id: Optional[str] = None
    error: Optional[str] = None
    dry_run: bool = False

    def __post_init__(self):
        object.__setattr__(self, "input", freeze(self.input))

    def to_dict(self) -> dict[str, Any]:
        """Convert to the JSON-ready form written to the audit file."""
        return {
            "timestamp": self.timestamp,
            "action": self.action.value,
            "resource": self.resource.value,
            "resource_id": self.resource_id,
            "input": thaw(self.input),
            "result": self.result.value,
            "error": self.error,
            "dry_run": self.dry_run,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AuditEntry":
        """Rebuild an entry from its ``to_dict`` form.

        Raises:
            KeyError: If a required field is missing
            ValueError: If action, resource or result is not a known value
        """
        return cls(
            timestamp=data["timestamp"],
            action=AuditAction(data["action"]),
            resource=AuditResource(data["resource"]),
            input=data.get("input") or {},
            result=AuditResult(data["result"]),
            resource_id=data.get("resource_id"),
            error=data.get("error"),
            dry_run=bool(data.get("dry_run", False)),
        )


__all__ = [
    "AuditAction",
    "AuditEntry",
    "AuditResource",
    "AuditResult",
    "REDACTED",
    "SENSITIVE_KEY_PARTS",
    "freeze",
    "is_sensitive_key",
    "parse_timestamp",
    "redact_secrets",
    "thaw",
    "utc_timestamp",
]
