"""
Site audit endpoints: enqueue runs, poll their status and page through
the crawled pages and detected issues of a finished run.
"""

from __future__ import annotations

import logging
from typing import Optional, Union

from seo_dashboard.client import ApiClient
from seo_dashboard.models import (
    AuditIssue,
    AuditRun,
    CrawledPage,
    IssueSeverity,
    IssueType,
    Page,
)

logger = logging.getLogger("seo_client")


class AuditsService:
    """Typed wrapper for ``/projects/{project_id}/audits``."""

    def __init__(self, api: ApiClient):
        self.api = api

    async def start_audit(self, project_id: str) -> AuditRun:
        """Create a new audit run and queue it for execution."""
        body = await self.api.post(
            "/projects/{project_id}/audits/", path_params={"project_id": project_id}
        )
        run = AuditRun.from_dict(body)
        logger.info("Queued audit %s for project %s", run.id, project_id)
        return run

    async def list_audits(self, project_id: str, skip: int = 0, limit: int = 100) -> Page[AuditRun]:
        body = await self.api.get(
            "/projects/{project_id}/audits/",
            path_params={"project_id": project_id},
            params={"skip": skip, "limit": limit},
        )
        return Page.from_body(body, AuditRun.from_dict)

    async def get_audit(self, project_id: str, audit_id: str) -> AuditRun:
        body = await self.api.get(
            "/projects/{project_id}/audits/{audit_id}",
            path_params={"project_id": project_id, "audit_id": audit_id},
        )
        return AuditRun.from_dict(body)

    async def get_audit_issues(
        self,
        project_id: str,
        audit_id: str,
        *,
        skip: int = 0,
        limit: int = 100,
        severity: Optional[Union[IssueSeverity, str]] = None,
        issue_type: Optional[Union[IssueType, str]] = None,
        is_new: Optional[bool] = None,
    ) -> Page[AuditIssue]:
        """Page through issues, optionally filtered by severity, type or novelty."""
        body = await self.api.get(
            "/projects/{project_id}/audits/{audit_id}/issues",
            path_params={"project_id": project_id, "audit_id": audit_id},
            params={
                "skip": skip,
                "limit": limit,
                "severity": severity,
                "issue_type": issue_type,
                "is_new": is_new,
            },
        )
        return Page.from_body(body, AuditIssue.from_dict)

    async def get_audit_pages(
        self,
        project_id: str,
        audit_id: str,
        *,
        skip: int = 0,
        limit: int = 100,
        status_code: Optional[int] = None,
        is_rendered: Optional[bool] = None,
    ) -> Page[CrawledPage]:
        body = await self.api.get(
            "/projects/{project_id}/audits/{audit_id}/pages",
            path_params={"project_id": project_id, "audit_id": audit_id},
            params={
                "skip": skip,
                "limit": limit,
                "status_code": status_code,
                "is_rendered": is_rendered,
            },
        )
        return Page.from_body(body, CrawledPage.from_dict)

    async def get_page_detail(self, project_id: str, audit_id: str, page_id: str) -> CrawledPage:
        body = await self.api.get(
            "/projects/{project_id}/audits/{audit_id}/pages/{page_id}",
            path_params={"project_id": project_id, "audit_id": audit_id, "page_id": page_id},
        )
        return CrawledPage.from_dict(body)
