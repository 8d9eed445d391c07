#!/usr/bin/env python3
"""Unit tests for the AuditLog.

Tests cover:
    - Dry-run flag composition (global OR request)
    - Confirmation gating for update/delete
    - Session log recording, snapshots and secret redaction
    - JSONL audit file append and recent-entry reading
    - Console audit lines on the jira_mcp.audit logger
"""
import json
import logging
import sys
from unittest.mock import patch

import pytest

sys.path.insert(0, str(__file__).rsplit("/tests", 1)[0])
from src.jira_mcp.audit.log import AuditConfig, AuditLog
from src.jira_mcp.audit.models import (
    REDACTED,
    AuditAction,
    AuditEntry,
    AuditResource,
    AuditResult,
)


@pytest.fixture
def audit_file(tmp_path):
    return tmp_path / "jira-audit.log"


@pytest.fixture
def audit(audit_file):
    return AuditLog(AuditConfig(log_file_path=str(audit_file), log_to_console=False))


@pytest.fixture
def memory_audit():
    return AuditLog(AuditConfig(log_to_file=False, log_to_console=False))


# ============================================
# Dry-Run Tests
# ============================================

class TestDryRun:
    """Test dry-run flag composition."""

    def test_default_off(self, memory_audit):
        assert memory_audit.is_dry_run_mode() is False
        assert memory_audit.is_dry_run() is False

    def test_request_flag(self, memory_audit):
        assert memory_audit.is_dry_run(True) is True

    def test_global_flag_wins(self, memory_audit):
        memory_audit.set_dry_run_mode(True)
        assert memory_audit.is_dry_run(False) is True

    def test_initial_flag(self):
        audit = AuditLog(AuditConfig(log_to_file=False), dry_run=True)
        assert audit.is_dry_run_mode() is True


# ============================================
# Confirmation Tests
# ============================================

class TestConfirmation:
    """Test the confirmation gate."""

    def test_delete_without_confirm_is_refused(self, memory_audit):
        result = memory_audit.validate_confirmation(AuditAction.DELETE, confirmed=False)

        assert result.valid is False
        assert result.message == (
            "Action 'delete' requires explicit confirmation. Set 'confirm: true' to proceed."
        )

    def test_missing_confirm_is_refused(self, memory_audit):
        assert memory_audit.validate_confirmation("update").valid is False

    def test_confirmed(self, memory_audit):
        result = memory_audit.validate_confirmation(AuditAction.DELETE, confirmed=True)
        assert result.valid is True
        assert result.message is None

    def test_dry_run_skips_confirmation(self, memory_audit):
        assert memory_audit.validate_confirmation("delete", confirmed=False, dry_run=True).valid

    def test_ungated_actions(self, memory_audit):
        for action in ("create", "transition", "assign", "link"):
            assert memory_audit.validate_confirmation(action).valid

    def test_gating_disabled(self, memory_audit):
        memory_audit.configure(require_confirmation=False)
        assert memory_audit.validate_confirmation("delete").valid

    def test_custom_gated_actions(self):
        audit = AuditLog(AuditConfig(
            log_to_file=False,
            confirmation_required_actions=["create"],
        ))
        assert audit.requires_confirmation(AuditAction.CREATE)
        assert not audit.requires_confirmation(AuditAction.DELETE)


# ============================================
# Configuration Tests
# ============================================

class TestConfigure:
    def test_merges_changes(self, memory_audit):
        updated = memory_audit.configure(log_to_console=True)

        assert updated.log_to_console is True
        assert updated.log_to_file is False
        assert memory_audit.config is updated

    def test_unknown_option(self, memory_audit):
        with pytest.raises(ValueError, match="bogus"):
            memory_audit.configure(bogus=True)


# ============================================
# Recording Tests
# ============================================

class TestLogAudit:
    """Test session recording."""

    def test_entry_recorded(self, memory_audit):
        entry = memory_audit.log_audit(
            AuditAction.UPDATE,
            AuditResource.ISSUE,
            {"summary": "New title"},
            AuditResult.SUCCESS,
            resource_id="PROJ-123",
        )

        log = memory_audit.get_session_log()
        assert log == [entry]
        assert entry.timestamp.endswith("Z")
        assert entry.dry_run is False

    def test_dry_run_result_marks_entry(self, memory_audit):
        entry = memory_audit.log_audit("create", "issue", {}, "dry-run")
        assert entry.dry_run is True

    def test_global_dry_run_marks_entry(self, memory_audit):
        memory_audit.set_dry_run_mode(True)
        entry = memory_audit.log_audit("create", "issue", {}, "success")
        assert entry.dry_run is True

    def test_secrets_are_redacted(self, memory_audit):
        entry = memory_audit.log_audit(
            "update", "issue", {"api_token": "abc", "summary": "x"}, "success"
        )
        assert entry.input == {"api_token": REDACTED, "summary": "x"}

    def test_snapshot_is_independent(self, memory_audit):
        memory_audit.log_audit("create", "issue", {}, "success")
        snapshot = memory_audit.get_session_log()

        memory_audit.log_audit("delete", "issue", {}, "success")

        assert len(snapshot) == 1
        assert len(memory_audit.get_session_log()) == 2

    def test_entry_input_is_isolated(self, memory_audit):
        """Neither the caller's dict nor a snapshot can change a stored entry."""
        labels = ["a"]
        memory_audit.log_audit(
            "update", "issue", {"summary": "s", "labels": labels}, "success"
        )
        snapshot = memory_audit.get_session_log()

        with pytest.raises(TypeError):
            snapshot[0].input["summary"] = "changed"
        labels.append("later")

        stored = memory_audit.get_session_log()[0]
        assert stored.input["summary"] == "s"
        assert stored.input["labels"] == ("a",)
        assert stored.to_dict()["input"] == {"summary": "s", "labels": ["a"]}

    def test_nested_input_is_read_only(self, memory_audit):
        entry = memory_audit.log_audit(
            "update", "issue", {"fields": {"labels": ["a"]}}, "success"
        )

        with pytest.raises(TypeError):
            entry.input["fields"]["labels"] = []
        with pytest.raises(AttributeError):
            entry.input["fields"]["labels"].append("b")

    def test_clear_session(self, memory_audit):
        memory_audit.log_audit("create", "issue", {}, "success")
        memory_audit.clear_session_log()
        assert memory_audit.get_session_log() == []

    def test_disabled_records_nothing(self, audit_file):
        audit = AuditLog(AuditConfig(enabled=False, log_file_path=str(audit_file)))

        assert audit.log_audit("create", "issue", {}, "success") is None
        assert audit.get_session_log() == []
        assert not audit_file.exists()


# ============================================
# Audit File Tests
# ============================================

class TestAuditFile:
    """Test the JSONL audit file."""

    def test_one_json_line_per_entry(self, audit, audit_file):
        audit.log_audit("create", "comment", {"body": "hi"}, "success", resource_id="100")
        audit.log_audit("delete", "issue", {}, "failure", resource_id="PROJ-1", error="nope")

        lines = audit_file.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 2
        first = json.loads(lines[0])
        assert first["action"] == "create"
        assert first["resource"] == "comment"
        assert first["resource_id"] == "100"
        assert first["input"] == {"body": "hi"}
        assert json.loads(lines[1])["input"] == {}
        assert json.loads(lines[1])["error"] == "nope"

    def test_recent_entries(self, audit):
        for i in range(5):
            audit.log_audit("update", "issue", {"n": i}, "success", resource_id=f"PROJ-{i}")

        recent = audit.get_recent_entries(3)

        assert [e.resource_id for e in recent] == ["PROJ-2", "PROJ-3", "PROJ-4"]
        assert all(isinstance(e, AuditEntry) for e in recent)

    def test_recent_skips_bad_lines(self, audit, audit_file):
        audit.log_audit("create", "issue", {}, "success", resource_id="PROJ-1")
        with open(audit_file, "a", encoding="utf-8") as f:
            f.write("not json\n")
            f.write(json.dumps({"action": "create"}) + "\n")
        audit.log_audit("create", "issue", {}, "success", resource_id="PROJ-2")

        recent = audit.get_recent_entries(10)

        assert [e.resource_id for e in recent] == ["PROJ-1", "PROJ-2"]

    def test_recent_without_file(self, tmp_path):
        audit = AuditLog(AuditConfig(log_file_path=str(tmp_path / "missing.log")))
        assert audit.get_recent_entries() == []

    def test_recent_non_positive_count(self, audit):
        audit.log_audit("create", "issue", {}, "success")
        assert audit.get_recent_entries(0) == []

    def test_write_failure_does_not_raise(self, tmp_path, caplog):
        audit = AuditLog(AuditConfig(
            log_file_path=str(tmp_path / "no-such-dir" / "audit.log"),
            log_to_console=False,
        ))

        with caplog.at_level(logging.ERROR):
            entry = audit.log_audit("create", "issue", {}, "success")

        assert entry is not None
        assert audit.get_session_log() == [entry]
        assert "Failed to write to audit log file" in caplog.text

    def test_file_written_outside_state_lock(self, audit):
        """Disk I/O never blocks readers of the session log."""
        lock_held = []

        def record(path, entry):
            lock_held.append(audit._lock.locked())

        with patch.object(audit, "_append_to_file", side_effect=record) as append:
            audit.log_audit("create", "issue", {}, "success")

        append.assert_called_once()
        assert lock_held == [False]

    def test_clear_session_keeps_file(self, audit, audit_file):
        audit.log_audit("create", "issue", {}, "success")
        audit.clear_session_log()
        assert len(audit.get_recent_entries()) == 1


# ============================================
# Console Line Tests
# ============================================

class TestConsoleLine:
    def test_console_line(self, caplog):
        audit = AuditLog(AuditConfig(log_to_file=False, log_to_console=True))

        with caplog.at_level(logging.INFO, logger="jira_mcp.audit"):
            audit.log_audit(
                "delete", "issue", {"password": "hunter2", "note": "x" * 600}, "dry-run",
                resource_id="PROJ-1",
            )

        record = next(r for r in caplog.records if r.name == "jira_mcp.audit")
        assert "AUDIT [DRY-RUN]: delete issue PROJ-1 result=dry-run" in record.message
        assert "hunter2" not in record.message
        assert "... [truncated]" in record.message

    def test_console_disabled(self, memory_audit, caplog):
        with caplog.at_level(logging.INFO, logger="jira_mcp.audit"):
            memory_audit.log_audit("create", "issue", {}, "success")

        assert not [r for r in caplog.records if r.name == "jira_mcp.audit"]


class TestStatus:
    def test_status(self, memory_audit):
        memory_audit.log_audit("create", "issue", {}, "success")

        status = memory_audit.get_status()

        assert status["dry_run_mode"] is False
        assert status["session_entries"] == 1
        assert status["config"]["confirmation_required_actions"] == ["delete", "update"]
