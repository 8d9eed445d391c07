"""Issue comment operations (/rest/api/3/issue/{key}/comment)."""
import logging
from typing import Any, AsyncIterator, Optional

from .adf import text_to_adf
from .client import JiraClient

logger = logging.getLogger(__name__)


class CommentsAPI:
    """Comment reads and writes for a single Jira site."""

    def __init__(self, client: JiraClient):
        self.client = client

    @staticmethod
    def _path(issue_key: str, comment_id: Optional[str] = None) -> str:
        path = f"/rest/api/3/issue/{issue_key}/comment"
        return f"{path}/{comment_id}" if comment_id else path

    async def list_comments(
        self,
        issue_key: str,
        start_at: int = 0,
        max_results: int = 50,
    ) -> dict[str, Any]:
        """Fetch one page of comments, newest first.

        Returns:
            Dict with startAt, maxResults, total, values and isLast
        """
        logger.debug(f"Getting comments for {issue_key}")
        response = await self.client.get(
            self._path(issue_key),
            params={"startAt": start_at, "maxResults": max_results, "orderBy": "-created"},
        )
        comments = response.get("comments", [])
        total = response.get("total", len(comments))
        start = response.get("startAt", start_at)
        return {
            "startAt": start,
            "maxResults": response.get("maxResults", max_results),
            "total": total,
            "values": comments,
            "isLast": start + len(comments) >= total,
        }

    async def iter_comments(
        self,
        issue_key: str,
        max_items: Optional[int] = None,
    ) -> AsyncIterator[dict[str, Any]]:
        async for page in self.client.paginate(
            self._path(issue_key),
            items_key="comments",
            params={"orderBy": "-created"},
            max_items=max_items,
        ):
            for comment in page:
                yield comment

    async def get_comment(self, issue_key: str, comment_id: str) -> dict[str, Any]:
        return await self.client.get(self._path(issue_key, comment_id))

    async def add_comment(
        self,
        issue_key: str,
        body: str,
        visibility: Optional[dict[str, str]] = None,
    ) -> dict[str, Any]:
        """Add a comment. ``visibility`` is e.g. {"type": "role", "value": "Developers"}."""
        logger.debug(f"Adding comment to {issue_key}")
        request_body: dict[str, Any] = {"body": text_to_adf(body)}
        if visibility:
            request_body["visibility"] = visibility
        return await self.client.post(self._path(issue_key), json_body=request_body)

    async def update_comment(self, issue_key: str, comment_id: str, body: str) -> dict[str, Any]:
        logger.debug(f"Updating comment {comment_id} on {issue_key}")
        return await self.client.put(
            self._path(issue_key, comment_id),
            json_body={"body": text_to_adf(body)},
        )

    async def delete_comment(self, issue_key: str, comment_id: str) -> None:
        logger.debug(f"Deleting comment {comment_id} on {issue_key}")
        await self.client.delete(self._path(issue_key, comment_id))


__all__ = ["CommentsAPI"]
