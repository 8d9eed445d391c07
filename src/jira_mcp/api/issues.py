#!/usr/bin/env python3
"""Issue Operations for the Jira Cloud REST API.

This module provides the IssuesAPI class: request shaping for issue reads,
searches and mutations. It composes a JiraClient and knows nothing about
audit logging or confirmation; the tool layer owns that.

API Details:
    - Issue:        /rest/api/3/issue/{key}
    - Transitions:  /rest/api/3/issue/{key}/transitions
    - Assignee:     /rest/api/3/issue/{key}/assignee
    - Changelog:    /rest/api/3/issue/{key}/changelog
    - Search:       /rest/api/3/search/jql (nextPageToken pagination)

Example:
    async with JiraClient() as client:
        issues = IssuesAPI(client)
        issue = await issues.create_issue(
            project_key="PROJ",
            summary="Login button misaligned",
            issue_type="Bug",
        )
        await issues.assign_issue(issue["key"], "5b10a2844c20165700ede21g")
"""
import logging
from typing import Any, AsyncIterator, Optional

from .adf import text_to_adf
from .client import JiraClient

logger = logging.getLogger(__name__)

# Fields requested by default when searching; keeps responses compact
MINIMAL_ISSUE_FIELDS = [
    "summary",
    "status",
    "assignee",
    "priority",
    "issuetype",
    "updated",
    "parent",
]

SEARCH_PATH = "/rest/api/3/search/jql"


def _issue_path(issue_key: str, suffix: str = "") -> str:
    return f"/rest/api/3/issue/{issue_key}{suffix}"


class IssuesAPI:
    """Issue reads and writes.

    Attributes:
        client: JiraClient instance for API communication
    """

    def __init__(self, client: JiraClient):
        self.client = client

    # ----------------------------------------
    # Reads
    # ----------------------------------------

    async def get_issue(
        self,
        issue_key: str,
        fields: Optional[list[str]] = None,
        expand: Optional[list[str]] = None,
    ) -> dict[str, Any]:
        """Fetch an issue by key or ID."""
        logger.debug(f"Getting issue {issue_key}")
        return await self.client.get(
            _issue_path(issue_key),
            params={"fields": fields or None, "expand": expand or None},
        )

    async def search_issues(
        self,
        jql: str,
        max_results: int = 50,
        fields: Optional[list[str]] = None,
        next_page_token: Optional[str] = None,
    ) -> dict[str, Any]:
        """Run one page of a JQL search.

        Returns:
            Raw response with ``issues`` and, when more results exist,
            ``nextPageToken``
        """
        logger.debug(f"Searching issues: {jql}")
        return await self.client.get(
            SEARCH_PATH,
            params={
                "jql": jql,
                "maxResults": max_results,
                "fields": fields or MINIMAL_ISSUE_FIELDS,
                "nextPageToken": next_page_token,
            },
        )

    async def iter_search(
        self,
        jql: str,
        fields: Optional[list[str]] = None,
        max_items: int = 1000,
    ) -> AsyncIterator[dict[str, Any]]:
        """Yield issues matching ``jql`` one at a time, up to ``max_items``."""
        async for page in self.client.paginate_tokens(
            SEARCH_PATH,
            items_key="issues",
            params={"jql": jql, "fields": fields or MINIMAL_ISSUE_FIELDS},
            max_items=max_items,
        ):
            for issue in page:
                yield issue

    async def get_transitions(self, issue_key: str) -> list[dict[str, Any]]:
        """List the transitions currently available for an issue."""
        response = await self.client.get(_issue_path(issue_key, "/transitions"))
        return response.get("transitions", [])

    async def get_changelog(
        self,
        issue_key: str,
        start_at: int = 0,
        max_results: int = 100,
    ) -> dict[str, Any]:
        """Fetch one page of an issue's change history."""
        return await self.client.get(
            _issue_path(issue_key, "/changelog"),
            params={"startAt": start_at, "maxResults": max_results},
        )

    # ----------------------------------------
    # Writes
    # ----------------------------------------

    async def create_issue(
        self,
        project_key: str,
        summary: str,
        issue_type: str,
        description: Optional[str] = None,
        priority: Optional[str] = None,
        assignee: Optional[str] = None,
        labels: Optional[list[str]] = None,
        components: Optional[list[str]] = None,
        parent_key: Optional[str] = None,
        custom_fields: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        """Create an issue and return the full created issue."""
        logger.debug(f"Creating issue in project {project_key}")

        fields: dict[str, Any] = {
            "project": {"key": project_key},
            "summary": summary,
            "issuetype": {"name": issue_type},
        }
        if description:
            fields["description"] = text_to_adf(description)
        if priority:
            fields["priority"] = {"name": priority}
        if assignee:
            fields["assignee"] = {"accountId": assignee}
        if labels:
            fields["labels"] = labels
        if components:
            fields["components"] = [{"name": name} for name in components]
        if parent_key:
            fields["parent"] = {"key": parent_key}
        if custom_fields:
            fields.update(custom_fields)

        created = await self.client.post("/rest/api/3/issue", json_body={"fields": fields})
        return await self.get_issue(created["key"])

    async def update_issue(
        self,
        issue_key: str,
        summary: Optional[str] = None,
        description: Optional[str] = None,
        priority: Optional[str] = None,
        assignee: Optional[str] = None,
        labels: Optional[list[str]] = None,
        components: Optional[list[str]] = None,
        custom_fields: Optional[dict[str, Any]] = None,
    ) -> None:
        """Update the given fields. Omitted (None) fields are left untouched.

        An empty-string description or assignee clears the field.
        """
        logger.debug(f"Updating issue {issue_key}")

        fields: dict[str, Any] = {}
        if summary is not None:
            fields["summary"] = summary
        if description is not None:
            fields["description"] = text_to_adf(description) if description else None
        if priority is not None:
            fields["priority"] = {"name": priority}
        if assignee is not None:
            fields["assignee"] = {"accountId": assignee} if assignee else None
        if labels is not None:
            fields["labels"] = labels
        if components is not None:
            fields["components"] = [{"name": name} for name in components]
        if custom_fields:
            fields.update(custom_fields)

        await self.client.put(_issue_path(issue_key), json_body={"fields": fields})

    async def delete_issue(self, issue_key: str, delete_subtasks: bool = False) -> None:
        logger.debug(f"Deleting issue {issue_key} (subtasks={delete_subtasks})")
        await self.client.delete(
            _issue_path(issue_key),
            params={"deleteSubtasks": delete_subtasks},
        )

    async def transition_issue(
        self,
        issue_key: str,
        transition_id: str,
        comment: Optional[str] = None,
    ) -> None:
        """Move an issue through a workflow transition, optionally commenting."""
        logger.debug(f"Transitioning issue {issue_key} via {transition_id}")

        body: dict[str, Any] = {"transition": {"id": transition_id}}
        if comment:
            body["update"] = {"comment": [{"add": {"body": text_to_adf(comment)}}]}

        await self.client.post(_issue_path(issue_key, "/transitions"), json_body=body)

    async def assign_issue(self, issue_key: str, account_id: Optional[str]) -> None:
        """Assign an issue; ``None`` unassigns it."""
        await self.client.put(
            _issue_path(issue_key, "/assignee"),
            json_body={"accountId": account_id},
        )

    async def link_to_epic(self, issue_key: str, epic_key: Optional[str]) -> None:
        """Set (or clear, with ``None``) the issue's parent epic."""
        parent = {"key": epic_key} if epic_key else None
        await self.client.put(
            _issue_path(issue_key),
            json_body={"fields": {"parent": parent}},
        )


__all__ = ["IssuesAPI", "MINIMAL_ISSUE_FIELDS"]
