#!/usr/bin/env python3
"""Server configuration from environment variables.

Values are read from the process environment after loading a ``.env`` file
from the working directory (python-dotenv), so local development can keep
credentials out of the shell history.

Environment Variables:
    JIRA_BASE_URL                   Jira site, e.g. https://acme.atlassian.net (required)
    JIRA_EMAIL                      Account email for Basic auth (required)
    JIRA_API_TOKEN                  Atlassian API token (required)
    JIRA_MCP_LOG_LEVEL              DEBUG | INFO | WARNING | ERROR (default INFO)
    JIRA_MCP_RATE_LIMIT             Requests per minute (default 100)
    JIRA_MCP_TIMEOUT                Per-request timeout in seconds (default 30)
    JIRA_MCP_DRY_RUN                Start with dry-run mode on (default false)
    JIRA_MCP_AUDIT_LOG_FILE         Audit file path (default ./jira-audit.log)
    JIRA_MCP_AUDIT_TO_FILE          Write the audit file (default true)
    JIRA_MCP_REQUIRE_CONFIRMATION   Gate update/delete behind confirm (default true)
"""
import os
from dataclasses import dataclass
from typing import Mapping, Optional
from urllib.parse import urlparse

from dotenv import load_dotenv

from .api.exceptions import ConfigurationError
from .audit.log import DEFAULT_AUDIT_LOG_FILE, AuditConfig

load_dotenv()

REQUIRED_KEYS = ("JIRA_BASE_URL", "JIRA_EMAIL", "JIRA_API_TOKEN")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class JiraSettings:
    """Validated server settings."""
    base_url: str
    email: str
    api_token: str
    log_level: str = "INFO"
    rate_limit: int = 100
    request_timeout: float = 30.0
    dry_run: bool = False
    audit_log_file: str = DEFAULT_AUDIT_LOG_FILE
    audit_log_to_file: bool = True
    require_confirmation: bool = True

    def audit_config(self) -> AuditConfig:
        return AuditConfig(
            log_to_file=self.audit_log_to_file,
            log_file_path=self.audit_log_file,
            require_confirmation=self.require_confirmation,
        )

    def __repr__(self) -> str:
        # Never print the token
        return (
            f"JiraSettings(base_url={self.base_url!r}, email={self.email!r}, "
            f"log_level={self.log_level!r}, rate_limit={self.rate_limit}, "
            f"dry_run={self.dry_run})"
        )


def _parse_bool(name: str, raw: Optional[str], default: bool) -> bool:
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ConfigurationError(f"{name} must be a boolean (true/false), got {raw!r}")


def _parse_number(name: str, raw: Optional[str], default, cast):
    if raw is None or raw.strip() == "":
        return default
    try:
        value = cast(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}")
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {raw!r}")
    return value


def load_config(env: Optional[Mapping[str, str]] = None) -> JiraSettings:
    """Build JiraSettings from ``env`` (defaults to os.environ).

    Raises:
        ConfigurationError: If a required key is missing or a value is invalid
    """
    env = os.environ if env is None else env

    missing = [key for key in REQUIRED_KEYS if not env.get(key, "").strip()]
    if missing:
        raise ConfigurationError(
            f"Missing required environment variables: {', '.join(missing)}",
            missing_keys=missing,
        )

    base_url = env["JIRA_BASE_URL"].strip().rstrip("/")
    parsed = urlparse(base_url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ConfigurationError(f"JIRA_BASE_URL must be an http(s) URL, got {base_url!r}")

    email = env["JIRA_EMAIL"].strip()
    if "@" not in email:
        raise ConfigurationError(f"JIRA_EMAIL must be an email address, got {email!r}")

    log_level = env.get("JIRA_MCP_LOG_LEVEL", "INFO").strip().upper() or "INFO"
    if log_level not in LOG_LEVELS:
        raise ConfigurationError(
            f"JIRA_MCP_LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}, got {log_level!r}"
        )

    return JiraSettings(
        base_url=base_url,
        email=email,
        api_token=env["JIRA_API_TOKEN"].strip(),
        log_level=log_level,
        rate_limit=_parse_number("JIRA_MCP_RATE_LIMIT", env.get("JIRA_MCP_RATE_LIMIT"), 100, int),
        request_timeout=_parse_number("JIRA_MCP_TIMEOUT", env.get("JIRA_MCP_TIMEOUT"), 30.0, float),
        dry_run=_parse_bool("JIRA_MCP_DRY_RUN", env.get("JIRA_MCP_DRY_RUN"), False),
        audit_log_file=env.get("JIRA_MCP_AUDIT_LOG_FILE", "").strip() or DEFAULT_AUDIT_LOG_FILE,
        audit_log_to_file=_parse_bool(
            "JIRA_MCP_AUDIT_TO_FILE", env.get("JIRA_MCP_AUDIT_TO_FILE"), True
        ),
        require_confirmation=_parse_bool(
            "JIRA_MCP_REQUIRE_CONFIRMATION", env.get("JIRA_MCP_REQUIRE_CONFIRMATION"), True
        ),
    )


__all__ = ["JiraSettings", "LOG_LEVELS", "REQUIRED_KEYS", "load_config"]
