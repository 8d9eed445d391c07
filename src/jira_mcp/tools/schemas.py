"""
Pydantic input schemas for the Jira MCP tools.

Each tool takes an ``action`` plus the fields that action needs. Fields that
only some actions use are optional here; the handlers check them per action
and raise ValidationError naming the missing field.
"""

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Shared
# =============================================================================


class ToolInput(BaseModel):
    """Base for all tool inputs: unknown fields are rejected."""

    model_config = ConfigDict(extra="forbid")


class MutationInput(ToolInput):
    """Safety flags accepted by every tool that can change Jira."""

    dry_run: bool = Field(
        False, description="Preview changes without executing. Recommended for destructive actions."
    )
    confirm: bool = Field(
        False, description="Confirm a gated action (update/delete) unless dry_run is set."
    )


# =============================================================================
# jira_issues
# =============================================================================


IssueAction = Literal[
    "get",
    "create",
    "update",
    "delete",
    "search",
    "transition",
    "assign",
    "get_transitions",
    "link_to_epic",
    "get_changelog",
]


class JiraIssuesInput(MutationInput):
    """Input for the jira_issues tool."""

    action: IssueAction
    issue_key: Optional[str] = Field(None, description='Issue key, e.g. "PROJ-123"')
    full: bool = Field(False, description="Return full issue data instead of a compact view")

    # create / update
    project_key: Optional[str] = None
    summary: Optional[str] = None
    issue_type: Optional[str] = Field(None, description='e.g. "Bug", "Story", "Task"')
    description: Optional[str] = None
    priority: Optional[str] = None
    assignee: Optional[str] = Field(None, description="Account ID; empty or null unassigns")
    labels: Optional[list[str]] = None
    components: Optional[list[str]] = None
    parent_key: Optional[str] = None
    custom_fields: Optional[dict[str, Any]] = None

    # search / changelog
    jql: Optional[str] = None
    max_results: int = Field(50, ge=1, le=100)
    next_page_token: Optional[str] = None
    fetch_all: bool = Field(False, description="Follow every result page (search)")
    max_items: int = Field(1000, ge=1, le=1000, description="Ceiling for fetch_all")

    # transition
    transition_id: Optional[str] = None
    transition_name: Optional[str] = None
    comment: Optional[str] = None

    # delete
    delete_subtasks: bool = False

    # link_to_epic
    epic_key: Optional[str] = Field(None, description="Epic key; null unlinks")


# =============================================================================
# jira_comments
# =============================================================================


class JiraCommentsInput(MutationInput):
    """Input for the jira_comments tool."""

    action: Literal["list", "get", "add", "update", "delete"]
    issue_key: str
    comment_id: Optional[str] = None
    body: Optional[str] = None
    visibility_type: Optional[Literal["group", "role"]] = None
    visibility_value: Optional[str] = None
    start_at: int = Field(0, ge=0)
    max_results: int = Field(50, ge=1, le=100)
    fetch_all: bool = Field(False, description="Return every comment instead of one page (list)")


# =============================================================================
# jira_worklogs
# =============================================================================


class JiraWorklogsInput(MutationInput):
    """Input for the jira_worklogs tool."""

    action: Literal["list", "add", "update", "delete"]
    issue_key: str
    worklog_id: Optional[str] = None
    time_spent: Optional[str] = Field(None, description='Jira duration, e.g. "1h 30m"')
    started: Optional[str] = Field(None, description="Start time, e.g. 2024-01-15T09:00:00.000+0000")
    comment: Optional[str] = None
    start_at: int = Field(0, ge=0)
    max_results: int = Field(50, ge=1, le=100)


# =============================================================================
# jira_links
# =============================================================================


class JiraLinksInput(MutationInput):
    """Input for the jira_links tool."""

    action: Literal[
        "get_link_types",
        "list",
        "create",
        "remove",
        "link_to_epic",
        "list_remote",
        "create_remote",
        "remove_remote",
    ]
    issue_key: Optional[str] = None
    full: bool = False

    # create / remove
    target_issue_key: Optional[str] = None
    link_type: Optional[str] = Field(None, description='e.g. "Blocks", "Relates", "Duplicates"')
    comment: Optional[str] = None
    link_id: Optional[str] = None

    # link_to_epic
    epic_key: Optional[str] = Field(None, description="Epic key; null unlinks")

    # remote links
    remote_link_id: Optional[int] = Field(None, ge=1)
    url: Optional[str] = None
    title: Optional[str] = None
    summary: Optional[str] = None
    icon_url: Optional[str] = None


# =============================================================================
# jira_sprints
# =============================================================================


SprintState = Literal["future", "active", "closed"]


class JiraSprintsInput(MutationInput):
    """Input for the jira_sprints tool."""

    action: Literal["list", "get", "get_issues", "get_active", "create", "update", "move_issues"]
    board_id: Optional[int] = Field(None, ge=1, description="Defaults to the project's board")
    project_key: Optional[str] = Field(None, description="Used to find the board when board_id is omitted")
    sprint_id: Optional[int] = Field(None, ge=1)
    full: bool = False

    state: Optional[SprintState] = None
    start_at: int = Field(0, ge=0)
    max_results: int = Field(50, ge=1, le=100)
    jql: Optional[str] = Field(None, description="Extra JQL filter (get_issues)")

    # create / update
    name: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    goal: Optional[str] = None

    # move_issues
    issue_keys: Optional[list[str]] = None


# =============================================================================
# jira_projects
# =============================================================================


class JiraProjectsInput(MutationInput):
    """Input for the jira_projects tool."""

    action: Literal[
        "list",
        "get",
        "get_components",
        "get_versions",
        "create_version",
        "update_version",
        "release_version",
        "delete_version",
    ]
    project_key: Optional[str] = None
    full: bool = False
    start_at: int = Field(0, ge=0)
    max_results: int = Field(50, ge=1, le=100)

    # versions
    version_id: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    start_date: Optional[str] = None
    release_date: Optional[str] = None
    archived: Optional[bool] = None
    move_fix_issues_to: Optional[str] = None
    move_affected_issues_to: Optional[str] = None


# =============================================================================
# jira_audit
# =============================================================================


class JiraAuditInput(ToolInput):
    """Input for the jira_audit tool."""

    action: Literal[
        "get_status",
        "set_dry_run",
        "get_session_log",
        "get_recent_log",
        "clear_session",
        "configure",
    ]
    enabled: Optional[bool] = Field(None, description="Dry-run on/off (set_dry_run)")
    count: int = Field(50, ge=1, description="Entries to read (get_recent_log)")
    require_confirmation: Optional[bool] = None
    log_to_file: Optional[bool] = None
    log_to_console: Optional[bool] = None


__all__ = [
    "JiraAuditInput",
    "JiraCommentsInput",
    "JiraIssuesInput",
    "JiraLinksInput",
    "JiraProjectsInput",
    "JiraSprintsInput",
    "JiraWorklogsInput",
    "MutationInput",
    "ToolInput",
]
