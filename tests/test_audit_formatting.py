#!/usr/bin/env python3
"""Unit tests for audit rendering: dry-run previews, log listings, sanitization."""
import sys

sys.path.insert(0, str(__file__).rsplit("/tests", 1)[0])
from src.jira_mcp.audit.formatting import (
    DELIMITER,
    action_emoji,
    create_dry_run_summary,
    format_audit_log,
    sanitize_for_log,
)
from src.jira_mcp.audit.models import (
    REDACTED,
    AuditAction,
    AuditEntry,
    AuditResource,
    AuditResult,
    redact_secrets,
)


class TestDryRunSummary:
    """Test the preview shown instead of a mutation."""

    def test_update_issue_summary(self):
        text = create_dry_run_summary("update", "issue", "PROJ-123", {"summary": "New title"})

        lines = text.split("\n")
        assert lines[0] == DELIMITER
        assert "DRY-RUN MODE - No changes will be made" in lines[1]
        assert "  Action:   UPDATE" in lines
        assert "  Resource: issue" in lines
        assert "  Target:   PROJ-123" in lines
        assert '    • summary: "New title"' in lines
        assert "  set dry_run: false in your request." in lines
        assert lines[-1] == DELIMITER

    def test_none_values_skipped(self):
        text = create_dry_run_summary("create", "issue", None, {"summary": "x", "priority": None})

        assert "priority" not in text
        assert "Target:" not in text

    def test_long_strings_truncated(self):
        text = create_dry_run_summary("create", "comment", None, {"body": "a" * 150})
        assert f"    • body: {'a' * 100}..." in text

    def test_structured_values_as_compact_json(self):
        text = create_dry_run_summary("create", "issue", None, {"labels": ["ui", "bug"]})
        assert '    • labels: ["ui","bug"]' in text


class TestFormatAuditLog:
    def test_empty(self):
        assert format_audit_log([]) == "No audit entries found."

    def test_entries(self):
        entries = [
            AuditEntry(
                timestamp="2024-05-01T12:30:00.000Z",
                action=AuditAction.DELETE,
                resource=AuditResource.ISSUE,
                result=AuditResult.FAILURE,
                resource_id="PROJ-9",
                error="Issue does not exist",
            ),
            AuditEntry(
                timestamp="2024-05-01T12:31:00.000Z",
                action=AuditAction.CREATE,
                resource=AuditResource.COMMENT,
                result=AuditResult.DRY_RUN,
                dry_run=True,
            ),
        ]

        text = format_audit_log(entries)

        assert "AUDIT LOG" in text
        assert "❌ 2024-05-01 12:30:00 UTC" in text
        assert "   DELETE issue PROJ-9" in text
        assert "   Error: Issue does not exist" in text
        assert "🔍 2024-05-01 12:31:00 UTC [DRY-RUN]" in text
        assert "   CREATE comment\n" in text


class TestSanitization:
    def test_redacts_and_truncates(self):
        sanitized = sanitize_for_log({"apiToken": "abc", "body": "x" * 501, "n": 1})

        assert sanitized["apiToken"] == REDACTED
        assert sanitized["body"] == "x" * 500 + "... [truncated]"
        assert sanitized["n"] == 1

    def test_redact_secrets_is_case_insensitive(self):
        redacted = redact_secrets({"PASSWORD": "p", "Client_Secret": "s", "summary": "ok"})
        assert redacted == {"PASSWORD": REDACTED, "Client_Secret": REDACTED, "summary": "ok"}

    def test_emoji(self):
        assert action_emoji(AuditAction.CREATE, AuditResult.SUCCESS) == "✨"
        assert action_emoji(AuditAction.CREATE, AuditResult.FAILURE) == "❌"
        assert action_emoji(AuditAction.CREATE, AuditResult.DRY_RUN) == "🔍"


class TestAuditEntry:
    def test_dict_round_trip(self):
        entry = AuditEntry(
            timestamp="2024-05-01T12:30:00.000Z",
            action=AuditAction.TRANSITION,
            resource=AuditResource.ISSUE,
            input={"transition": "Done"},
            resource_id="PROJ-1",
        )
        assert AuditEntry.from_dict(entry.to_dict()) == entry
