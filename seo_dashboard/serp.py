"""
Rank tracker: tracked keyword CRUD, on-demand refresh, rank history and
SERP snapshots under ``/projects/{project_id}/serp/keywords``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional, Union

from seo_dashboard.client import ApiClient
from seo_dashboard.models import (
    KeywordTarget,
    KeywordTargetCreate,
    Page,
    RankObservation,
    SerpSnapshot,
)

logger = logging.getLogger("seo_client")


class SerpService:
    """Typed wrapper for the rank-tracker endpoints."""

    def __init__(self, api: ApiClient):
        self.api = api

    async def list_keywords(self, project_id: str, skip: int = 0, limit: int = 100) -> Page[KeywordTarget]:
        body = await self.api.get(
            "/projects/{project_id}/serp/keywords",
            path_params={"project_id": project_id},
            params={"skip": skip, "limit": limit},
        )
        return Page.from_body(body, KeywordTarget.from_dict)

    async def get_keyword(self, project_id: str, keyword_id: str) -> KeywordTarget:
        body = await self.api.get(
            "/projects/{project_id}/serp/keywords/{keyword_id}",
            path_params={"project_id": project_id, "keyword_id": keyword_id},
        )
        return KeywordTarget.from_dict(body)

    async def create_keyword(self, project_id: str, target: Union[KeywordTargetCreate, dict]) -> KeywordTarget:
        payload = target.to_dict() if isinstance(target, KeywordTargetCreate) else dict(target)
        body = await self.api.post(
            "/projects/{project_id}/serp/keywords",
            path_params={"project_id": project_id},
            json_data=payload,
        )
        created = KeywordTarget.from_dict(body)
        logger.info("Tracking keyword %r (%s/%s)", created.keyword, created.locale, created.device)
        return created

    async def refresh_keyword(self, project_id: str, keyword_id: str) -> KeywordTarget:
        body = await self.api.post(
            "/projects/{project_id}/serp/keywords/{keyword_id}/refresh",
            path_params={"project_id": project_id, "keyword_id": keyword_id},
        )
        return KeywordTarget.from_dict(body)

    async def refresh_all(self, project_id: str, keywords: Optional[List[KeywordTarget]] = None) -> Dict[str, Union[KeywordTarget, Exception]]:
        """
        Queue a refresh for every active keyword concurrently.

        Failures do not cancel the other refreshes; the result maps each
        keyword id to its refreshed target or the exception it raised.
        """
        if keywords is None:
            keywords = (await self.list_keywords(project_id)).data
        active = [kw for kw in keywords if kw.is_active]
        results = await asyncio.gather(
            *(self.refresh_keyword(project_id, kw.id) for kw in active),
            return_exceptions=True,
        )
        outcome: Dict[str, Union[KeywordTarget, Exception]] = {}
        for kw, result in zip(active, results):
            if isinstance(result, Exception):
                logger.warning("Refresh failed for keyword %s: %s", kw.id, result)
            outcome[kw.id] = result
        return outcome

    async def get_rank_history(
        self, project_id: str, keyword_id: str, skip: int = 0, limit: int = 100
    ) -> Page[RankObservation]:
        body = await self.api.get(
            "/projects/{project_id}/serp/keywords/{keyword_id}/history",
            path_params={"project_id": project_id, "keyword_id": keyword_id},
            params={"skip": skip, "limit": limit},
        )
        return Page.from_body(body, RankObservation.from_dict)

    async def get_snapshots(
        self, project_id: str, keyword_id: str, skip: int = 0, limit: int = 100
    ) -> Page[SerpSnapshot]:
        body = await self.api.get(
            "/projects/{project_id}/serp/keywords/{keyword_id}/snapshots",
            path_params={"project_id": project_id, "keyword_id": keyword_id},
            params={"skip": skip, "limit": limit},
        )
        return Page.from_body(body, SerpSnapshot.from_dict)

    async def get_latest_snapshot(self, project_id: str, keyword_id: str) -> SerpSnapshot:
        body = await self.api.get(
            "/projects/{project_id}/serp/keywords/{keyword_id}/snapshots/latest",
            path_params={"project_id": project_id, "keyword_id": keyword_id},
        )
        return SerpSnapshot.from_dict(body)
