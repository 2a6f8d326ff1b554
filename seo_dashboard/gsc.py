"""
Google Search Console analytics and the Google OAuth linkage.

Covers property linking, sync/backfill triggers, the query/page/
opportunity reports, keyword clusters, and the ``/integrations/google``
endpoints. Starting OAuth only returns the authorization URL; sending
the user there is the caller's job.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Union

from seo_dashboard.client import ApiClient
from seo_dashboard.models import (
    Cluster,
    ClusterDetail,
    GoogleIntegrationStatus,
    GoogleService,
    GSCPageRow,
    GSCProperty,
    GSCQueryRow,
    OAuthStart,
    OpportunityRow,
    OpportunityType,
    Page,
    SortOrder,
    TaskAccepted,
)

logger = logging.getLogger("seo_client")

# Sort keys accepted by the query/page/opportunity reports
REPORT_SORT_KEYS = ("clicks", "impressions", "ctr", "position")
DEFAULT_BACKFILL_DAYS = 90


def _report_params(
    skip: int,
    limit: int,
    start_date: Optional[str],
    end_date: Optional[str],
    sort_by: Optional[str],
    sort_order: Optional[Union[SortOrder, str]],
) -> Dict[str, Any]:
    if sort_by is not None and sort_by not in REPORT_SORT_KEYS:
        raise ValueError(f"sort_by must be one of {', '.join(REPORT_SORT_KEYS)}, got {sort_by!r}")
    return {
        "skip": skip,
        "limit": limit,
        "start_date": start_date,
        "end_date": end_date,
        "sort_by": sort_by,
        "sort_order": sort_order,
    }


class GSCService:
    """Typed wrapper for ``/projects/{project_id}/gsc`` and Google integrations."""

    def __init__(self, api: ApiClient):
        self.api = api

    # -- Properties ---------------------------------------------------------

    async def list_properties(self, project_id: str) -> Page[GSCProperty]:
        body = await self.api.get(
            "/projects/{project_id}/gsc/properties", path_params={"project_id": project_id}
        )
        return Page.from_body(body, GSCProperty.from_dict)

    async def link_property(self, project_id: str, site_url: str) -> GSCProperty:
        body = await self.api.post(
            "/projects/{project_id}/gsc/properties",
            path_params={"project_id": project_id},
            json_data={"site_url": site_url},
        )
        logger.info("Linked GSC property %s to project %s", site_url, project_id)
        return GSCProperty.from_dict(body)

    async def unlink_property(self, project_id: str) -> Any:
        return await self.api.delete(
            "/projects/{project_id}/gsc/properties", path_params={"project_id": project_id}
        )

    async def trigger_sync(self, project_id: str) -> TaskAccepted:
        body = await self.api.post(
            "/projects/{project_id}/gsc/sync", path_params={"project_id": project_id}
        )
        return TaskAccepted.from_dict(body if isinstance(body, dict) else {})

    async def trigger_backfill(self, project_id: str, days: int = DEFAULT_BACKFILL_DAYS) -> TaskAccepted:
        if days < 1:
            raise ValueError("Backfill days must be a positive integer")
        body = await self.api.post(
            "/projects/{project_id}/gsc/backfill",
            path_params={"project_id": project_id},
            json_data={"days": days},
        )
        return TaskAccepted.from_dict(body if isinstance(body, dict) else {})

    # -- Reports ------------------------------------------------------------

    async def get_queries(
        self,
        project_id: str,
        *,
        skip: int = 0,
        limit: int = 100,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        sort_by: Optional[str] = None,
        sort_order: Optional[Union[SortOrder, str]] = None,
    ) -> Page[GSCQueryRow]:
        body = await self.api.get(
            "/projects/{project_id}/gsc/queries",
            path_params={"project_id": project_id},
            params=_report_params(skip, limit, start_date, end_date, sort_by, sort_order),
        )
        return Page.from_body(body, GSCQueryRow.from_dict)

    async def get_pages(
        self,
        project_id: str,
        *,
        skip: int = 0,
        limit: int = 100,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        sort_by: Optional[str] = None,
        sort_order: Optional[Union[SortOrder, str]] = None,
    ) -> Page[GSCPageRow]:
        body = await self.api.get(
            "/projects/{project_id}/gsc/pages",
            path_params={"project_id": project_id},
            params=_report_params(skip, limit, start_date, end_date, sort_by, sort_order),
        )
        return Page.from_body(body, GSCPageRow.from_dict)

    async def get_opportunities(
        self,
        project_id: str,
        *,
        opportunity_type: Optional[Union[OpportunityType, str]] = None,
        skip: int = 0,
        limit: int = 100,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        sort_by: Optional[str] = None,
        sort_order: Optional[Union[SortOrder, str]] = None,
    ) -> Page[OpportunityRow]:
        params = _report_params(skip, limit, start_date, end_date, sort_by, sort_order)
        params["opportunity_type"] = opportunity_type
        body = await self.api.get(
            "/projects/{project_id}/gsc/opportunities",
            path_params={"project_id": project_id},
            params=params,
        )
        return Page.from_body(body, OpportunityRow.from_dict)

    # -- Clusters -----------------------------------------------------------

    async def list_clusters(self, project_id: str, skip: int = 0, limit: int = 100) -> Page[Cluster]:
        body = await self.api.get(
            "/projects/{project_id}/gsc/clusters",
            path_params={"project_id": project_id},
            params={"skip": skip, "limit": limit},
        )
        return Page.from_body(body, Cluster.from_dict)

    async def get_cluster(self, project_id: str, cluster_id: str) -> ClusterDetail:
        body = await self.api.get(
            "/projects/{project_id}/gsc/clusters/{cluster_id}",
            path_params={"project_id": project_id, "cluster_id": cluster_id},
        )
        return ClusterDetail.from_dict(body)

    async def generate_clusters(self, project_id: str) -> TaskAccepted:
        body = await self.api.post(
            "/projects/{project_id}/gsc/clusters/generate",
            path_params={"project_id": project_id},
        )
        return TaskAccepted.from_dict(body if isinstance(body, dict) else {})

    # -- Google integration -------------------------------------------------

    async def get_integration_status(self) -> GoogleIntegrationStatus:
        body = await self.api.get("/integrations/google/status")
        return GoogleIntegrationStatus.from_dict(body)

    async def start_oauth(self, service: Union[GoogleService, str] = GoogleService.GSC) -> OAuthStart:
        """Ask the backend for the Google consent URL for ``service`` (gsc or ads)."""
        service = GoogleService(service)
        body = await self.api.get("/integrations/google/connect", params={"service": service})
        return OAuthStart.from_dict(body)

    async def disconnect(self, service: Union[GoogleService, str]) -> Optional[str]:
        service = GoogleService(service)
        body = await self.api.delete(
            "/integrations/google/{service}", path_params={"service": service.value}
        )
        logger.info("Disconnected Google %s integration", service.value)
        if isinstance(body, dict):
            return body.get("message")
        return None
