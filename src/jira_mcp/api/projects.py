"""Project and version operations (/rest/api/3/project, /rest/api/3/version)."""
import logging
from datetime import date
from typing import Any, Optional

from .client import JiraClient

logger = logging.getLogger(__name__)


class ProjectsAPI:
    """Project lookups and release versions."""

    def __init__(self, client: JiraClient):
        self.client = client

    async def list_projects(self, start_at: int = 0, max_results: int = 50) -> dict[str, Any]:
        response = await self.client.get(
            "/rest/api/3/project/search",
            params={"startAt": start_at, "maxResults": max_results, "expand": "description,lead"},
        )
        values = response.get("values", [])
        return {
            "startAt": response.get("startAt", start_at),
            "maxResults": response.get("maxResults", max_results),
            "total": response.get("total", len(values)),
            "values": values,
            "isLast": response.get("isLast", True),
        }

    async def get_project(self, project_key: str) -> dict[str, Any]:
        return await self.client.get(
            f"/rest/api/3/project/{project_key}",
            params={"expand": "description,lead,issueTypes"},
        )

    async def get_components(self, project_key: str) -> list[dict[str, Any]]:
        response = await self.client.get(f"/rest/api/3/project/{project_key}/components")
        return response if isinstance(response, list) else []

    async def get_versions(self, project_key: str) -> list[dict[str, Any]]:
        response = await self.client.get(f"/rest/api/3/project/{project_key}/versions")
        return response if isinstance(response, list) else []

    async def create_version(
        self,
        project_key: str,
        name: str,
        description: Optional[str] = None,
        start_date: Optional[str] = None,
        release_date: Optional[str] = None,
    ) -> dict[str, Any]:
        """Create a version, resolving the project's numeric ID first."""
        project = await self.client.get(f"/rest/api/3/project/{project_key}")
        logger.debug(f"Creating version {name!r} in {project_key}")
        body = {
            "projectId": project["id"],
            "name": name,
            "description": description,
            "startDate": start_date,
            "releaseDate": release_date,
            "released": False,
            "archived": False,
        }
        return await self.client.post(
            "/rest/api/3/version",
            json_body={k: v for k, v in body.items() if v is not None},
        )

    async def update_version(self, version_id: str, **changes: Any) -> dict[str, Any]:
        """Change a version.

        Args:
            version_id: Version to change
            **changes: Any of name, description, start_date, release_date,
                released, archived (None skipped)
        """
        field_names = {
            "name": "name",
            "description": "description",
            "start_date": "startDate",
            "release_date": "releaseDate",
            "released": "released",
            "archived": "archived",
        }
        body = {
            field_names[name]: value
            for name, value in changes.items()
            if value is not None and name in field_names
        }
        logger.debug(f"Updating version {version_id}: {sorted(body)}")
        return await self.client.put(f"/rest/api/3/version/{version_id}", json_body=body)

    async def release_version(
        self, version_id: str, release_date: Optional[str] = None
    ) -> dict[str, Any]:
        """Mark a version released, dated today unless ``release_date`` is given."""
        return await self.update_version(
            version_id,
            released=True,
            release_date=release_date or date.today().isoformat(),
        )

    async def delete_version(
        self,
        version_id: str,
        move_fix_issues_to: Optional[str] = None,
        move_affected_issues_to: Optional[str] = None,
    ) -> None:
        logger.debug(f"Deleting version {version_id}")
        await self.client.delete(
            f"/rest/api/3/version/{version_id}",
            params={
                "moveFixIssuesTo": move_fix_issues_to,
                "moveAffectedIssuesTo": move_affected_issues_to,
            },
        )


__all__ = ["ProjectsAPI"]
