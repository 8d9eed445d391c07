#!/usr/bin/env python3
"""Unit tests for the jira_issues tool and the shared mutation gate.

Tests cover:
    - Argument validation at the tool boundary
    - Dry-run previews: audited, never sent upstream
    - Confirmation gating for update/delete
    - Success and failure auditing
    - Read actions (get, search, transitions, changelog)

A MagicMock JiraClient with AsyncMock verbs sits under the real endpoint
wrappers and a real in-memory AuditLog.
"""
import json
import sys
from unittest.mock import AsyncMock, MagicMock

import pytest

sys.path.insert(0, str(__file__).rsplit("/tests", 1)[0])
from src.jira_mcp.api.exceptions import APIError
from src.jira_mcp.audit.log import AuditConfig, AuditLog
from src.jira_mcp.audit.models import AuditAction, AuditResource, AuditResult
from src.jira_mcp.tools.base import ToolContext
from src.jira_mcp.tools.issues import jira_issues, simplify_issue


ISSUE = {
    "id": "10001",
    "key": "PROJ-123",
    "fields": {
        "summary": "Login button misaligned",
        "status": {"name": "To Do"},
        "issuetype": {"name": "Bug"},
        "priority": {"name": "High"},
        "assignee": {"displayName": "Jane Doe", "accountId": "acc-1"},
        "parent": {"key": "PROJ-1"},
        "updated": "2024-05-01T10:00:00.000+0000",
        "description": {
            "type": "doc",
            "version": 1,
            "content": [{"type": "paragraph", "content": [{"type": "text", "text": "Off by 2px"}]}],
        },
    },
}


@pytest.fixture
def mock_client():
    client = MagicMock()
    client.get = AsyncMock(return_value={})
    client.post = AsyncMock(return_value={})
    client.put = AsyncMock(return_value={})
    client.delete = AsyncMock(return_value={})
    client.remaining_rate_limit = 100
    return client


@pytest.fixture
def audit():
    return AuditLog(AuditConfig(log_to_file=False, log_to_console=False))


@pytest.fixture
def ctx(mock_client, audit):
    return ToolContext(client=mock_client, audit_log=audit)


def no_upstream_writes(client):
    return not (client.post.called or client.put.called or client.delete.called)


# ============================================
# Boundary Validation
# ============================================

class TestValidation:
    """Test argument validation at the tool boundary."""

    @pytest.mark.asyncio
    async def test_unknown_action(self, ctx):
        result = await jira_issues(ctx, action="explode")

        assert result.is_error
        assert result.text.startswith("Error [VALIDATION_ERROR]: Validation failed: action")

    @pytest.mark.asyncio
    async def test_unknown_field(self, ctx):
        result = await jira_issues(ctx, action="get", issue_key="PROJ-1", colour="red")
        assert result.is_error

    @pytest.mark.asyncio
    async def test_missing_issue_key(self, ctx, mock_client):
        result = await jira_issues(ctx, action="get")

        assert result.is_error
        assert result.text == "Error [VALIDATION_ERROR]: issue_key is required for get action"
        mock_client.get.assert_not_called()

    @pytest.mark.asyncio
    async def test_none_arguments_use_defaults(self, ctx, mock_client):
        mock_client.get.return_value = {"issues": []}

        result = await jira_issues(ctx, action="search", jql="project = PROJ", max_results=None)

        assert not result.is_error
        assert mock_client.get.call_args.kwargs["params"]["maxResults"] == 50

    @pytest.mark.asyncio
    async def test_max_results_bounds(self, ctx):
        result = await jira_issues(ctx, action="search", jql="x", max_results=500)
        assert result.is_error

    @pytest.mark.asyncio
    async def test_update_without_fields(self, ctx, mock_client):
        result = await jira_issues(ctx, action="update", issue_key="PROJ-1", confirm=True)

        assert result.is_error
        assert "At least one field" in result.text
        assert no_upstream_writes(mock_client)


# ============================================
# Dry-Run
# ============================================

class TestDryRun:
    """Test dry-run previews."""

    @pytest.mark.asyncio
    async def test_request_dry_run_update(self, ctx, mock_client, audit):
        """update with dry_run: preview returned, one DRY_RUN entry, no upstream call."""
        result = await jira_issues(
            ctx, action="update", issue_key="PROJ-123", summary="New title", dry_run=True
        )

        assert not result.is_error
        assert "DRY-RUN MODE" in result.text
        assert "  Target:   PROJ-123" in result.text
        assert '    • summary: "New title"' in result.text
        assert no_upstream_writes(mock_client)

        log = audit.get_session_log()
        assert len(log) == 1
        assert log[0].action == AuditAction.UPDATE
        assert log[0].resource == AuditResource.ISSUE
        assert log[0].result == AuditResult.DRY_RUN
        assert log[0].resource_id == "PROJ-123"
        assert log[0].dry_run is True

    @pytest.mark.asyncio
    async def test_global_dry_run_create(self, ctx, mock_client, audit):
        audit.set_dry_run_mode(True)

        result = await jira_issues(
            ctx, action="create", project_key="PROJ", summary="New bug", issue_type="Bug"
        )

        assert "DRY-RUN MODE" in result.text
        assert '    • project: "PROJ"' in result.text
        assert "priority" not in result.text
        assert no_upstream_writes(mock_client)
        assert audit.get_session_log()[0].result == AuditResult.DRY_RUN

    @pytest.mark.asyncio
    async def test_dry_run_delete_needs_no_confirm(self, ctx, mock_client):
        result = await jira_issues(ctx, action="delete", issue_key="PROJ-1", dry_run=True)

        assert "DRY-RUN MODE" in result.text
        assert no_upstream_writes(mock_client)


# ============================================
# Confirmation Gate
# ============================================

class TestConfirmation:
    """Test confirmation gating."""

    @pytest.mark.asyncio
    async def test_delete_without_confirm(self, ctx, mock_client, audit):
        result = await jira_issues(ctx, action="delete", issue_key="PROJ-123")

        assert not result.is_error
        body = json.loads(result.text)
        assert body["status"] == "confirmation_required"
        assert body["error"] == "Confirmation required"
        assert body["message"] == (
            "Action 'delete' requires explicit confirmation. Set 'confirm: true' to proceed."
        )
        assert "dry_run: true" in body["hint"]
        assert no_upstream_writes(mock_client)
        assert audit.get_session_log() == []

    @pytest.mark.asyncio
    async def test_hint_names_real_parameters(self, ctx, mock_client):
        """Following the confirmation hint yields a preview, not a validation error."""
        await jira_issues(ctx, action="delete", issue_key="PROJ-123")

        result = await jira_issues(ctx, action="delete", issue_key="PROJ-123", dry_run=True)

        assert not result.is_error
        assert "DRY-RUN MODE" in result.text
        assert "set dry_run: false" in result.text
        assert no_upstream_writes(mock_client)

    @pytest.mark.asyncio
    async def test_delete_confirmed(self, ctx, mock_client, audit):
        result = await jira_issues(
            ctx, action="delete", issue_key="PROJ-123", confirm=True, delete_subtasks=True
        )

        assert json.loads(result.text)["success"] is True
        mock_client.delete.assert_called_once_with(
            "/rest/api/3/issue/PROJ-123", params={"deleteSubtasks": True}
        )
        entry = audit.get_session_log()[0]
        assert entry.result == AuditResult.SUCCESS
        assert entry.input == {"delete_subtasks": True}

    @pytest.mark.asyncio
    async def test_create_is_not_gated(self, ctx, mock_client, audit):
        mock_client.post.return_value = {"id": "10001", "key": "PROJ-123"}
        mock_client.get.return_value = ISSUE

        result = await jira_issues(
            ctx, action="create", project_key="PROJ", summary="Login button misaligned",
            issue_type="Bug",
        )

        assert json.loads(result.text)["key"] == "PROJ-123"
        entry = audit.get_session_log()[0]
        assert entry.action == AuditAction.CREATE
        assert entry.result == AuditResult.SUCCESS
        assert entry.resource_id == "PROJ-123"

    @pytest.mark.asyncio
    async def test_gating_disabled(self, ctx, mock_client, audit):
        audit.configure(require_confirmation=False)

        result = await jira_issues(ctx, action="update", issue_key="PROJ-1", summary="x")

        assert json.loads(result.text)["success"] is True
        mock_client.put.assert_called_once()


# ============================================
# Upstream Failures
# ============================================

class TestFailures:
    @pytest.mark.asyncio
    async def test_failure_is_audited_and_reported(self, ctx, mock_client, audit):
        mock_client.put.side_effect = APIError("Issue does not exist", status_code=404)

        result = await jira_issues(
            ctx, action="update", issue_key="PROJ-9", summary="x", confirm=True
        )

        assert result.is_error
        assert result.text == "Error [JIRA_API_ERROR]: Issue does not exist"
        entry = audit.get_session_log()[0]
        assert entry.result == AuditResult.FAILURE
        assert entry.error == "Issue does not exist"
        assert entry.resource_id == "PROJ-9"

    @pytest.mark.asyncio
    async def test_unexpected_exception(self, ctx, mock_client):
        mock_client.get.side_effect = RuntimeError("boom")

        result = await jira_issues(ctx, action="get", issue_key="PROJ-1")

        assert result.is_error
        assert result.text == "Error: boom"


# ============================================
# Reads and Other Mutations
# ============================================

class TestActions:
    """Test individual actions."""

    @pytest.mark.asyncio
    async def test_get_compact(self, ctx, mock_client):
        mock_client.get.return_value = ISSUE

        result = await jira_issues(ctx, action="get", issue_key="PROJ-123")

        assert json.loads(result.text) == simplify_issue(ISSUE)
        assert json.loads(result.text)["assignee"] == "Jane Doe"

    @pytest.mark.asyncio
    async def test_get_full_flattens_description(self, ctx, mock_client):
        mock_client.get.return_value = ISSUE

        result = await jira_issues(ctx, action="get", issue_key="PROJ-123", full=True)

        assert json.loads(result.text)["fields"]["description"] == "Off by 2px"
        assert mock_client.get.call_args.kwargs["params"]["fields"] == ["*all"]

    @pytest.mark.asyncio
    async def test_search(self, ctx, mock_client):
        mock_client.get.return_value = {"issues": [ISSUE], "nextPageToken": "abc"}

        result = await jira_issues(ctx, action="search", jql="project = PROJ")

        body = json.loads(result.text)
        assert body["count"] == 1
        assert body["issues"][0]["key"] == "PROJ-123"
        assert body["next_page_token"] == "abc"

    @pytest.mark.asyncio
    async def test_search_fetch_all(self, ctx, mock_client):
        async def pages(*args, **kwargs):
            yield [ISSUE]
            yield [{**ISSUE, "key": "PROJ-124"}]

        mock_client.paginate_tokens = MagicMock(side_effect=pages)

        result = await jira_issues(
            ctx, action="search", jql="project = PROJ", fetch_all=True, max_items=200
        )

        body = json.loads(result.text)
        assert [i["key"] for i in body["issues"]] == ["PROJ-123", "PROJ-124"]
        assert body["truncated"] is False
        assert "next_page_token" not in body
        assert mock_client.paginate_tokens.call_args.kwargs["max_items"] == 200
        mock_client.get.assert_not_called()

    @pytest.mark.asyncio
    async def test_transition_by_name(self, ctx, mock_client, audit):
        mock_client.get.return_value = {
            "transitions": [{"id": "21", "name": "In Progress"}, {"id": "31", "name": "Done"}]
        }

        result = await jira_issues(
            ctx, action="transition", issue_key="PROJ-1", transition_name="done"
        )

        assert json.loads(result.text)["success"] is True
        assert mock_client.post.call_args.kwargs["json_body"] == {"transition": {"id": "31"}}
        assert audit.get_session_log()[0].action == AuditAction.TRANSITION

    @pytest.mark.asyncio
    async def test_transition_unknown_name(self, ctx, mock_client):
        mock_client.get.return_value = {"transitions": [{"id": "21", "name": "In Progress"}]}

        result = await jira_issues(
            ctx, action="transition", issue_key="PROJ-1", transition_name="Closed"
        )

        assert result.is_error
        assert "Transition not found: Closed" in result.text
        mock_client.post.assert_not_called()

    @pytest.mark.asyncio
    async def test_transition_requires_target(self, ctx):
        result = await jira_issues(ctx, action="transition", issue_key="PROJ-1")
        assert result.is_error
        assert "transition_id or transition_name" in result.text

    @pytest.mark.asyncio
    async def test_unassign(self, ctx, mock_client, audit):
        result = await jira_issues(ctx, action="assign", issue_key="PROJ-1")

        assert json.loads(result.text)["message"] == "Issue unassigned"
        assert mock_client.put.call_args.kwargs["json_body"] == {"accountId": None}
        assert audit.get_session_log()[0].action == AuditAction.ASSIGN

    @pytest.mark.asyncio
    async def test_link_to_epic(self, ctx, mock_client, audit):
        await jira_issues(ctx, action="link_to_epic", issue_key="PROJ-2", epic_key="PROJ-1")

        assert mock_client.put.call_args.kwargs["json_body"] == {"fields": {"parent": {"key": "PROJ-1"}}}
        entry = audit.get_session_log()[0]
        assert entry.action == AuditAction.LINK
        assert entry.input == {"epic": "PROJ-1"}

    @pytest.mark.asyncio
    async def test_clear_epic_is_unlink(self, ctx, mock_client, audit):
        await jira_issues(ctx, action="link_to_epic", issue_key="PROJ-2")

        assert mock_client.put.call_args.kwargs["json_body"] == {"fields": {"parent": None}}
        assert audit.get_session_log()[0].action == AuditAction.UNLINK

    @pytest.mark.asyncio
    async def test_get_changelog(self, ctx, mock_client):
        mock_client.get.return_value = {
            "total": 1,
            "values": [{
                "id": "500",
                "author": {"displayName": "Jane Doe"},
                "created": "2024-05-01T10:00:00.000+0000",
                "items": [{"field": "status", "fromString": "To Do", "toString": "Done"}],
            }],
        }

        result = await jira_issues(ctx, action="get_changelog", issue_key="PROJ-1")

        body = json.loads(result.text)
        assert body["total"] == 1
        assert body["changelog"][0]["created"] == "2024-05-01"
        assert body["changelog"][0]["changes"] == [{"field": "status", "from": "To Do", "to": "Done"}]
