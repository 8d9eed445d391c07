#!/usr/bin/env python3
"""Unit tests for environment configuration loading."""
import sys

import pytest

sys.path.insert(0, str(__file__).rsplit("/tests", 1)[0])
from src.jira_mcp.api.exceptions import ConfigurationError
from src.jira_mcp.config import load_config


BASE_ENV = {
    "JIRA_BASE_URL": "https://acme.atlassian.net/",
    "JIRA_EMAIL": "dev@acme.com",
    "JIRA_API_TOKEN": "secret-token",
}


def env(**overrides):
    return {**BASE_ENV, **overrides}


class TestLoadConfig:
    """Test load_config validation and defaults."""

    def test_defaults(self):
        settings = load_config(BASE_ENV)

        assert settings.base_url == "https://acme.atlassian.net"
        assert settings.log_level == "INFO"
        assert settings.rate_limit == 100
        assert settings.request_timeout == 30.0
        assert settings.dry_run is False
        assert settings.audit_log_file == "./jira-audit.log"
        assert settings.require_confirmation is True

    def test_missing_keys(self):
        with pytest.raises(ConfigurationError) as exc_info:
            load_config({"JIRA_BASE_URL": "https://acme.atlassian.net"})

        assert exc_info.value.missing_keys == ["JIRA_EMAIL", "JIRA_API_TOKEN"]

    def test_bad_url(self):
        with pytest.raises(ConfigurationError, match="JIRA_BASE_URL"):
            load_config(env(JIRA_BASE_URL="acme.atlassian.net"))

    def test_bad_email(self):
        with pytest.raises(ConfigurationError, match="JIRA_EMAIL"):
            load_config(env(JIRA_EMAIL="dev"))

    def test_bad_log_level(self):
        with pytest.raises(ConfigurationError, match="JIRA_MCP_LOG_LEVEL"):
            load_config(env(JIRA_MCP_LOG_LEVEL="chatty"))

    def test_overrides(self):
        settings = load_config(env(
            JIRA_MCP_LOG_LEVEL="debug",
            JIRA_MCP_RATE_LIMIT="20",
            JIRA_MCP_TIMEOUT="5.5",
            JIRA_MCP_DRY_RUN="yes",
            JIRA_MCP_AUDIT_LOG_FILE="/tmp/audit.log",
            JIRA_MCP_AUDIT_TO_FILE="false",
            JIRA_MCP_REQUIRE_CONFIRMATION="0",
        ))

        assert settings.log_level == "DEBUG"
        assert settings.rate_limit == 20
        assert settings.request_timeout == 5.5
        assert settings.dry_run is True

        config = settings.audit_config()
        assert config.log_file_path == "/tmp/audit.log"
        assert config.log_to_file is False
        assert config.require_confirmation is False

    @pytest.mark.parametrize("name,value", [
        ("JIRA_MCP_RATE_LIMIT", "lots"),
        ("JIRA_MCP_RATE_LIMIT", "0"),
        ("JIRA_MCP_TIMEOUT", "-1"),
        ("JIRA_MCP_DRY_RUN", "maybe"),
    ])
    def test_invalid_values(self, name, value):
        with pytest.raises(ConfigurationError, match=name):
            load_config(env(**{name: value}))

    def test_repr_hides_token(self):
        assert "secret-token" not in repr(load_config(BASE_ENV))
