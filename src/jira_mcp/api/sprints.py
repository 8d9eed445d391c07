#!/usr/bin/env python3
"""Sprint and Board Operations for the Jira Software (Agile) API.

This module provides the SprintsAPI class. Sprint listing and creation are
scoped to a board; callers may pass a board ID directly or a project key,
in which case the project's default board is looked up once and cached.

API Details:
    - Boards:        /rest/agile/1.0/board?projectKeyOrId=...
    - Board sprints: /rest/agile/1.0/board/{boardId}/sprint
    - Sprint:        /rest/agile/1.0/sprint/{sprintId}
    - Sprint issues: /rest/agile/1.0/sprint/{sprintId}/issue

Board preference when resolving a project: scrum, then kanban, then the
first board returned.
"""
import logging
from typing import Any, Optional

from .client import JiraClient
from .exceptions import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

AGILE_BASE = "/rest/agile/1.0"

SPRINT_ISSUE_FIELDS = ["summary", "status", "assignee", "priority", "issuetype", "created", "updated"]

BOARD_TYPE_PREFERENCE = ("scrum", "kanban")


def _page(response: dict[str, Any], items_key: str, start_at: int, max_results: int) -> dict[str, Any]:
    items = response.get(items_key) or []
    total = response.get("total", len(items))
    start = response.get("startAt", start_at)
    is_last = response.get("isLast")
    if is_last is None:
        is_last = start + len(items) >= total
    return {
        "startAt": start,
        "maxResults": response.get("maxResults", max_results),
        "total": total,
        "values": items,
        "isLast": is_last,
    }


def pick_default_board(boards: list[dict[str, Any]]) -> Optional[dict[str, Any]]:
    """Choose the board sprint operations should use for a project."""
    for board_type in BOARD_TYPE_PREFERENCE:
        for board in boards:
            if board.get("type") == board_type:
                return board
    return boards[0] if boards else None


class SprintsAPI:
    """Boards and sprints.

    Attributes:
        client: JiraClient instance for API communication
    """

    def __init__(self, client: JiraClient):
        self.client = client
        self._board_cache: dict[str, int] = {}

    # ----------------------------------------
    # Boards
    # ----------------------------------------

    async def list_boards(
        self,
        project_key: Optional[str] = None,
        board_type: Optional[str] = None,
        start_at: int = 0,
        max_results: int = 50,
    ) -> dict[str, Any]:
        response = await self.client.get(
            f"{AGILE_BASE}/board",
            params={
                "projectKeyOrId": project_key,
                "type": board_type,
                "startAt": start_at,
                "maxResults": max_results,
            },
        )
        return _page(response, "values", start_at, max_results)

    async def resolve_board_id(
        self,
        board_id: Optional[int] = None,
        project_key: Optional[str] = None,
    ) -> int:
        """Return ``board_id`` or the default board of ``project_key``.

        Raises:
            ValidationError: If neither argument is given
            NotFoundError: If the project has no boards
        """
        if board_id:
            return board_id
        if not project_key:
            raise ValidationError(
                "Either board_id or project_key must be provided for sprint operations",
                errors={"board_id": ["Required when project_key is missing"]},
            )

        cache_key = project_key.upper()
        if cache_key in self._board_cache:
            return self._board_cache[cache_key]

        page = await self.list_boards(project_key)
        board = pick_default_board(page["values"])
        if board is None:
            raise NotFoundError("Board", f"project {project_key}")

        logger.debug(f"Resolved board {board.get('id')} ({board.get('type')}) for {project_key}")
        self._board_cache[cache_key] = board["id"]
        return board["id"]

    def clear_board_cache(self) -> None:
        self._board_cache.clear()

    # ----------------------------------------
    # Sprint Reads
    # ----------------------------------------

    async def list_sprints(
        self,
        board_id: int,
        state: Optional[str] = None,
        start_at: int = 0,
        max_results: int = 50,
    ) -> dict[str, Any]:
        logger.debug(f"Listing sprints for board {board_id}")
        response = await self.client.get(
            f"{AGILE_BASE}/board/{board_id}/sprint",
            params={"state": state, "startAt": start_at, "maxResults": max_results},
        )
        return _page(response, "values", start_at, max_results)

    async def get_sprint(self, sprint_id: int) -> dict[str, Any]:
        return await self.client.get(f"{AGILE_BASE}/sprint/{sprint_id}")

    async def get_active_sprint(self, board_id: int) -> Optional[dict[str, Any]]:
        page = await self.list_sprints(board_id, state="active", max_results=1)
        return page["values"][0] if page["values"] else None

    async def get_sprint_issues(
        self,
        sprint_id: int,
        start_at: int = 0,
        max_results: int = 50,
        jql: Optional[str] = None,
    ) -> dict[str, Any]:
        response = await self.client.get(
            f"{AGILE_BASE}/sprint/{sprint_id}/issue",
            params={
                "startAt": start_at,
                "maxResults": max_results,
                "jql": jql,
                "fields": SPRINT_ISSUE_FIELDS,
            },
        )
        return _page(response, "issues", start_at, max_results)

    # ----------------------------------------
    # Sprint Writes
    # ----------------------------------------

    async def create_sprint(
        self,
        board_id: int,
        name: str,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        goal: Optional[str] = None,
    ) -> dict[str, Any]:
        logger.debug(f"Creating sprint {name!r} on board {board_id}")
        body = {
            "name": name,
            "originBoardId": board_id,
            "startDate": start_date,
            "endDate": end_date,
            "goal": goal,
        }
        return await self.client.post(
            f"{AGILE_BASE}/sprint",
            json_body={k: v for k, v in body.items() if v is not None},
        )

    async def update_sprint(self, sprint_id: int, **changes: Any) -> dict[str, Any]:
        """Partially update a sprint.

        Args:
            sprint_id: Sprint to change
            **changes: Any of name, state, start_date, end_date, goal (None skipped)
        """
        logger.debug(f"Updating sprint {sprint_id}")
        field_names = {
            "name": "name",
            "state": "state",
            "start_date": "startDate",
            "end_date": "endDate",
            "goal": "goal",
        }
        body = {
            field_names[name]: value
            for name, value in changes.items()
            if value is not None and name in field_names
        }
        # POST is Jira's partial update; PUT would reset omitted fields
        return await self.client.post(f"{AGILE_BASE}/sprint/{sprint_id}", json_body=body)

    async def move_issues_to_sprint(self, sprint_id: int, issue_keys: list[str]) -> None:
        logger.debug(f"Moving {len(issue_keys)} issues to sprint {sprint_id}")
        await self.client.post(
            f"{AGILE_BASE}/sprint/{sprint_id}/issue", json_body={"issues": list(issue_keys)}
        )


__all__ = ["BOARD_TYPE_PREFERENCE", "SprintsAPI", "pick_default_board"]
