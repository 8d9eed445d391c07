"""Issue link and remote link operations.

API Details:
    - Link types:   /rest/api/3/issueLinkType
    - Issue links:  /rest/api/3/issueLink[/{id}]
    - Remote links: /rest/api/3/issue/{key}/remotelink[/{id}]
"""
import logging
from typing import Any, Optional

from .adf import text_to_adf
from .client import JiraClient

logger = logging.getLogger(__name__)


class LinksAPI:
    """Links between issues, and web links attached to an issue."""

    def __init__(self, client: JiraClient):
        self.client = client

    async def get_link_types(self) -> list[dict[str, Any]]:
        """Available link types, e.g. Blocks (blocks / is blocked by)."""
        response = await self.client.get("/rest/api/3/issueLinkType")
        return response.get("issueLinkTypes", [])

    async def get_issue_links(self, issue_key: str) -> list[dict[str, Any]]:
        logger.debug(f"Getting links for {issue_key}")
        response = await self.client.get(
            f"/rest/api/3/issue/{issue_key}", params={"fields": "issuelinks"}
        )
        return (response.get("fields") or {}).get("issuelinks") or []

    async def create_issue_link(
        self,
        outward_issue_key: str,
        inward_issue_key: str,
        link_type: str,
        comment: Optional[str] = None,
    ) -> None:
        """Link two issues. ``outward_issue_key`` is the source (it "blocks" the target)."""
        logger.debug(f"Linking {outward_issue_key} -> {inward_issue_key} ({link_type})")
        body: dict[str, Any] = {
            "type": {"name": link_type},
            "inwardIssue": {"key": inward_issue_key},
            "outwardIssue": {"key": outward_issue_key},
        }
        if comment:
            body["comment"] = {"body": text_to_adf(comment)}
        await self.client.post("/rest/api/3/issueLink", json_body=body)

    async def remove_issue_link(self, link_id: str) -> None:
        logger.debug(f"Removing issue link {link_id}")
        await self.client.delete(f"/rest/api/3/issueLink/{link_id}")

    async def get_remote_links(self, issue_key: str) -> list[dict[str, Any]]:
        response = await self.client.get(f"/rest/api/3/issue/{issue_key}/remotelink")
        return response if isinstance(response, list) else []

    async def create_remote_link(
        self,
        issue_key: str,
        url: str,
        title: str,
        summary: Optional[str] = None,
        icon_url: Optional[str] = None,
    ) -> dict[str, Any]:
        """Attach a web link to an issue.

        Returns:
            Jira's response, holding the new remote link ``id``
        """
        logger.debug(f"Adding remote link to {issue_key}: {url}")
        link_object: dict[str, Any] = {"url": url, "title": title}
        if summary:
            link_object["summary"] = summary
        if icon_url:
            link_object["icon"] = {"url16x16": icon_url}
        return await self.client.post(
            f"/rest/api/3/issue/{issue_key}/remotelink", json_body={"object": link_object}
        )

    async def remove_remote_link(self, issue_key: str, remote_link_id: int) -> None:
        logger.debug(f"Removing remote link {remote_link_id} from {issue_key}")
        await self.client.delete(f"/rest/api/3/issue/{issue_key}/remotelink/{remote_link_id}")


__all__ = ["LinksAPI"]
