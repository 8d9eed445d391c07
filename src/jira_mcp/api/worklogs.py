"""Issue worklog operations (/rest/api/3/issue/{key}/worklog)."""
import logging
from typing import Any, Optional

from .adf import text_to_adf
from .client import JiraClient

logger = logging.getLogger(__name__)


class WorklogsAPI:
    """Time-tracking entries on issues."""

    def __init__(self, client: JiraClient):
        self.client = client

    @staticmethod
    def _path(issue_key: str, worklog_id: Optional[str] = None) -> str:
        path = f"/rest/api/3/issue/{issue_key}/worklog"
        return f"{path}/{worklog_id}" if worklog_id else path

    async def list_worklogs(
        self,
        issue_key: str,
        start_at: int = 0,
        max_results: int = 50,
    ) -> dict[str, Any]:
        """Fetch one page of worklogs in the same shape as CommentsAPI.list_comments."""
        logger.debug(f"Getting worklogs for {issue_key}")
        response = await self.client.get(
            self._path(issue_key),
            params={"startAt": start_at, "maxResults": max_results},
        )
        worklogs = response.get("worklogs", [])
        total = response.get("total", len(worklogs))
        start = response.get("startAt", start_at)
        return {
            "startAt": start,
            "maxResults": response.get("maxResults", max_results),
            "total": total,
            "values": worklogs,
            "isLast": start + len(worklogs) >= total,
        }

    async def add_worklog(
        self,
        issue_key: str,
        time_spent: str,
        started: str,
        comment: Optional[str] = None,
    ) -> dict[str, Any]:
        """Log work.

        Args:
            issue_key: Issue key or ID
            time_spent: Jira duration string (e.g., "1h 30m", "2d")
            started: Start timestamp (e.g., "2024-01-15T09:00:00.000+0000")
            comment: Optional plain-text comment
        """
        logger.debug(f"Adding worklog to {issue_key}: {time_spent}")
        body: dict[str, Any] = {"timeSpent": time_spent, "started": started}
        if comment:
            body["comment"] = text_to_adf(comment)
        return await self.client.post(self._path(issue_key), json_body=body)

    async def update_worklog(
        self,
        issue_key: str,
        worklog_id: str,
        time_spent: Optional[str] = None,
        started: Optional[str] = None,
        comment: Optional[str] = None,
    ) -> dict[str, Any]:
        logger.debug(f"Updating worklog {worklog_id} on {issue_key}")
        body: dict[str, Any] = {}
        if time_spent:
            body["timeSpent"] = time_spent
        if started:
            body["started"] = started
        if comment:
            body["comment"] = text_to_adf(comment)
        return await self.client.put(self._path(issue_key, worklog_id), json_body=body)

    async def delete_worklog(self, issue_key: str, worklog_id: str) -> None:
        logger.debug(f"Deleting worklog {worklog_id} on {issue_key}")
        await self.client.delete(self._path(issue_key, worklog_id))


__all__ = ["WorklogsAPI"]
