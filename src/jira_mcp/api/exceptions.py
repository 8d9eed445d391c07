#!/usr/bin/env python3
"""Exception Hierarchy for the Jira MCP server.

This module provides a structured exception hierarchy for every failure the
server can surface: startup configuration, caller input, authentication,
upstream API responses, local and upstream throttling, and transport errors.

Design Principles:
    - All exceptions inherit from JiraError
    - Every exception carries a machine-readable code and an ErrorKind tag
    - Exceptions preserve context (details, cause, timestamp)
    - Recoverability drives the client's retry policy

Exception Hierarchy:
    JiraError (base)
    ├── ConfigurationError (fatal - fix settings)
    ├── ValidationError (caller input - field-level messages)
    ├── AuthenticationError (bad credentials - never retried)
    ├── APIError (non-2xx response - retried unless 403/404)
    ├── RateLimitError (local bucket empty or upstream 429)
    ├── NotFoundError (resource absent - never retried)
    └── NetworkError (transport failure - retried)
        └── RequestTimeoutError
"""
import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    """Discriminator tag carried by every JiraError."""

    CONFIGURATION = "configuration"
    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    API = "api"
    RATE_LIMIT = "rate_limit"
    NOT_FOUND = "not_found"
    NETWORK = "network"


# ============================================
# Base Exception
# ============================================

class JiraError(Exception):
    """Base exception for all Jira MCP errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code (e.g., "JIRA_API_ERROR")
        details: Additional context as a dictionary
        timestamp: When the error occurred
        cause: The original exception that caused this error
        recoverable: Whether this error might be recoverable with retry
    """

    kind: ErrorKind = ErrorKind.API

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        recoverable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or "JIRA_MCP_ERROR"
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc)
        self.cause = cause
        self.recoverable = recoverable

        if cause:
            self.__cause__ = cause

    def __str__(self) -> str:
        parts = [self.message]
        if self.code:
            parts.insert(0, f"[{self.code}]")
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            parts.append(f"({detail_str})")
        return " ".join(parts)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code!r}, "
            f"details={self.details!r}, "
            f"recoverable={self.recoverable})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "kind": self.kind.value,
            "message": self.message,
            "code": self.code,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
            "recoverable": self.recoverable,
            "cause": str(self.cause) if self.cause else None,
        }


# ============================================
# Startup and Input Errors
# ============================================

class ConfigurationError(JiraError):
    """Raised when configuration is missing or invalid.

    These errors are fatal at startup; the server cannot run until the
    environment is fixed.
    """

    kind = ErrorKind.CONFIGURATION

    def __init__(
        self,
        message: str,
        missing_keys: Optional[list[str]] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if missing_keys:
            details["missing_keys"] = missing_keys
        super().__init__(
            message,
            code="CONFIGURATION_ERROR",
            details=details,
            recoverable=False,
            **kwargs,
        )
        self.missing_keys = missing_keys or []


class ValidationError(JiraError):
    """Raised when caller input is malformed.

    Attributes:
        errors: Mapping of field path to the list of messages for that field
    """

    kind = ErrorKind.VALIDATION

    def __init__(
        self,
        message: str,
        errors: Optional[dict[str, list[str]]] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if errors:
            details["errors"] = errors
        super().__init__(
            message,
            code="VALIDATION_ERROR",
            details=details,
            recoverable=False,
            **kwargs,
        )
        self.errors = errors or {}

    @classmethod
    def from_pydantic(cls, exc) -> "ValidationError":
        """Build a ValidationError from a pydantic ValidationError."""
        errors: dict[str, list[str]] = {}
        for issue in exc.errors():
            path = ".".join(str(part) for part in issue.get("loc", ())) or "root"
            errors.setdefault(path, []).append(issue.get("msg", "Invalid value"))
        fields = ", ".join(errors)
        return cls(f"Validation failed: {fields}", errors=errors, cause=exc)

    @classmethod
    def missing_field(cls, field: str, action: str) -> "ValidationError":
        """Shortcut for a required field that was not supplied."""
        return cls(
            f"{field} is required for {action} action",
            errors={field: ["Field required"]},
        )


class AuthenticationError(JiraError):
    """Raised when Jira rejects the configured credentials (HTTP 401)."""

    kind = ErrorKind.AUTHENTICATION

    def __init__(self, message: str = "Authentication failed", **kwargs):
        super().__init__(
            message,
            code="AUTHENTICATION_ERROR",
            recoverable=False,
            **kwargs,
        )


# ============================================
# API Errors
# ============================================

class APIError(JiraError):
    """Raised when the Jira API answers with a non-2xx status.

    Attributes:
        status_code: HTTP status code
        response_body: Parsed JSON body, or raw text when it was not JSON
        endpoint: API path that was called
        method: HTTP method
    """

    kind = ErrorKind.API

    # Statuses that are final on first occurrence
    NON_RETRYABLE_STATUSES = frozenset({401, 403, 404})

    def __init__(
        self,
        message: str,
        status_code: int,
        response_body: Any = None,
        endpoint: Optional[str] = None,
        method: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        details["status_code"] = status_code
        if endpoint:
            details["endpoint"] = endpoint
        if method:
            details["method"] = method

        kwargs.setdefault("recoverable", status_code not in self.NON_RETRYABLE_STATUSES)
        kwargs.setdefault("code", "JIRA_API_ERROR")

        super().__init__(message, details=details, **kwargs)
        self.status_code = status_code
        self.response_body = response_body
        self.endpoint = endpoint
        self.method = method

    @classmethod
    def from_response(
        cls,
        status_code: int,
        reason: Optional[str],
        body_text: str,
        endpoint: Optional[str] = None,
        method: Optional[str] = None,
    ) -> "APIError":
        """Create an APIError from a failed HTTP response.

        The body is parsed as JSON when possible; otherwise the raw text is
        kept and the message falls back to the reason phrase.
        """
        try:
            body: Any = json.loads(body_text) if body_text else None
        except ValueError:
            body = body_text

        fallback = reason or f"HTTP {status_code}"
        message = cls.extract_message(body, fallback)
        return cls(
            message,
            status_code=status_code,
            response_body=body,
            endpoint=endpoint,
            method=method,
        )

    @staticmethod
    def extract_message(body: Any, fallback: str) -> str:
        """Pick the most useful message out of a Jira error body.

        Precedence: errorMessages (joined) > message > error > fallback.
        """
        if isinstance(body, dict):
            error_messages = body.get("errorMessages")
            if isinstance(error_messages, list):
                return ", ".join(str(m) for m in error_messages)
            if isinstance(body.get("message"), str):
                return body["message"]
            if isinstance(body.get("error"), str):
                return body["error"]
        return fallback

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["status_code"] = self.status_code
        data["response_body"] = self.response_body
        return data


class RateLimitError(JiraError):
    """Raised when the local token bucket is empty or Jira returns HTTP 429.

    Attributes:
        retry_after_ms: Milliseconds to wait before the next attempt
        upstream: True when the limit was reported by Jira, not the local bucket
    """

    kind = ErrorKind.RATE_LIMIT

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        retry_after_ms: int = 60_000,
        upstream: bool = False,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        details["retry_after_ms"] = retry_after_ms
        super().__init__(
            message,
            code="RATE_LIMIT_ERROR",
            details=details,
            recoverable=True,
            **kwargs,
        )
        self.retry_after_ms = retry_after_ms
        self.upstream = upstream

    @property
    def retry_after(self) -> float:
        """Seconds to wait before retrying."""
        return self.retry_after_ms / 1000


class NotFoundError(JiraError):
    """Raised when a named resource does not exist."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, resource_type: str, resource_id: str, **kwargs):
        details = kwargs.pop("details", {})
        details["resource_type"] = resource_type
        details["resource_id"] = resource_id
        super().__init__(
            f"{resource_type} not found: {resource_id}",
            code="NOT_FOUND_ERROR",
            details=details,
            recoverable=False,
            **kwargs,
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


# ============================================
# Network Errors (Recoverable)
# ============================================

class NetworkError(JiraError):
    """Raised when the request never produced an HTTP response."""

    kind = ErrorKind.NETWORK

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("code", "NETWORK_ERROR")
        kwargs.setdefault("recoverable", True)
        super().__init__(message, **kwargs)


class RequestTimeoutError(NetworkError):
    """Raised when a request exceeds the transport timeout."""

    def __init__(
        self,
        message: str = "Request timed out",
        timeout_seconds: Optional[float] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if timeout_seconds:
            details["timeout_seconds"] = timeout_seconds
        super().__init__(
            message,
            code="TIMEOUT_ERROR",
            details=details,
            **kwargs,
        )


# ============================================
# Tool Boundary Formatting
# ============================================

def format_error_message(error: object) -> str:
    """Render any raised value as the text returned to the MCP caller."""
    if isinstance(error, JiraError):
        return f"Error [{error.code}]: {error.message}"
    if isinstance(error, Exception):
        return f"Error: {error}"
    return f"Unknown error: {error}"


__all__ = [
    "ErrorKind",
    "JiraError",
    "ConfigurationError",
    "ValidationError",
    "AuthenticationError",
    "APIError",
    "RateLimitError",
    "NotFoundError",
    "NetworkError",
    "RequestTimeoutError",
    "format_error_message",
]
