"""
Project CRUD against ``/api/v1/projects``.

Usage:
    from seo_dashboard.projects import ProjectsService

    projects = ProjectsService(api)
    page = await projects.list_projects(limit=20)
    created = await projects.create_project(ProjectCreate(name="Site", seed_url="https://example.com"))
"""

from __future__ import annotations

import logging
from typing import Optional, Union

from seo_dashboard.client import ApiClient
from seo_dashboard.models import Page, Project, ProjectCreate, ProjectUpdate

logger = logging.getLogger("seo_client")


class ProjectsService:
    """Typed wrapper for the project endpoints."""

    def __init__(self, api: ApiClient):
        self.api = api

    async def list_projects(self, skip: int = 0, limit: int = 100) -> Page[Project]:
        body = await self.api.get("/projects/", params={"skip": skip, "limit": limit})
        return Page.from_body(body, Project.from_dict)

    async def create_project(self, project: Union[ProjectCreate, dict]) -> Project:
        payload = project.to_dict() if isinstance(project, ProjectCreate) else dict(project)
        body = await self.api.post("/projects/", json_data=payload)
        created = Project.from_dict(body)
        logger.info("Created project %s (%s)", created.id, created.seed_url)
        return created

    async def get_project(self, project_id: str) -> Project:
        body = await self.api.get("/projects/{id}", path_params={"id": project_id})
        return Project.from_dict(body)

    async def update_project(self, project_id: str, update: Union[ProjectUpdate, dict]) -> Project:
        payload = update.to_dict() if isinstance(update, ProjectUpdate) else dict(update)
        body = await self.api.put(
            "/projects/{id}", path_params={"id": project_id}, json_data=payload
        )
        return Project.from_dict(body)

    async def delete_project(self, project_id: str) -> Optional[str]:
        """Delete a project. Returns the backend's confirmation message, if any."""
        body = await self.api.delete("/projects/{id}", path_params={"id": project_id})
        logger.info("Deleted project %s", project_id)
        if isinstance(body, dict):
            return body.get("message")
        return None
