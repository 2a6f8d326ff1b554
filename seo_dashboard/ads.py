"""
Google Ads campaign performance and the SEO/PPC keyword overlap report.
"""

from __future__ import annotations

from typing import Optional, Union

from seo_dashboard.client import ApiClient
from seo_dashboard.models import (
    CampaignsReport,
    OverlapType,
    SEOPPCOverlapReport,
    SortOrder,
    TaskAccepted,
)


class AdsService:
    """Typed wrapper for ``/projects/{project_id}/ads``."""

    def __init__(self, api: ApiClient):
        self.api = api

    async def get_campaigns(self, project_id: str, period_days: Optional[int] = None) -> CampaignsReport:
        body = await self.api.get(
            "/projects/{project_id}/ads/campaigns",
            path_params={"project_id": project_id},
            params={"period_days": period_days},
        )
        return CampaignsReport.from_dict(body)

    async def get_overlap(
        self,
        project_id: str,
        *,
        overlap_type: Optional[Union[OverlapType, str]] = None,
        sort_by: Optional[str] = None,
        sort_order: Optional[Union[SortOrder, str]] = None,
        limit: Optional[int] = None,
    ) -> SEOPPCOverlapReport:
        """Keyword overlap between paid and organic; ``overlap_type=None`` means all rows."""
        body = await self.api.get(
            "/projects/{project_id}/ads/seo-overlap",
            path_params={"project_id": project_id},
            params={
                "overlap_type": overlap_type,
                "sort_by": sort_by,
                "sort_order": sort_order,
                "limit": limit,
            },
        )
        return SEOPPCOverlapReport.from_dict(body)

    async def trigger_sync(self, project_id: str) -> TaskAccepted:
        body = await self.api.post(
            "/projects/{project_id}/ads/sync", path_params={"project_id": project_id}
        )
        return TaskAccepted.from_dict(body if isinstance(body, dict) else {})
