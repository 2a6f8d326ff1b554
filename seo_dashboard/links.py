"""
Backlink analysis for a domain.

Referring domains, individual backlinks and anchor texts for one domain,
plus competitive views against up to a handful of competitor domains:
``overlap`` lists domains linking to both the target and a competitor,
``intersect`` lists domains linking only to competitors (the link gap).
"""

from __future__ import annotations

from typing import Iterable, List, Optional

from seo_dashboard.client import ApiClient
from seo_dashboard.models import (
    AnchorRow,
    BacklinkRow,
    IntersectDomain,
    OverlapDomain,
    Page,
    RefDomainRow,
)


def _competitor_list(competitors: Iterable[str]) -> List[str]:
    cleaned = [c.strip() for c in competitors if c and c.strip()]
    if not cleaned:
        raise ValueError("At least one competitor domain is required")
    return cleaned


class LinksService:
    """Typed wrapper for ``/links/domain/{domain}``."""

    def __init__(self, api: ApiClient):
        self.api = api

    async def get_ref_domains(self, domain: str, skip: int = 0, limit: int = 100) -> Page[RefDomainRow]:
        body = await self.api.get(
            "/links/domain/{domain}/refdomains",
            path_params={"domain": domain},
            params={"skip": skip, "limit": limit},
        )
        return Page.from_body(body, RefDomainRow.from_dict)

    async def get_backlinks(
        self,
        domain: str,
        *,
        ref_domain: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> Page[BacklinkRow]:
        """Backlinks pointing at ``domain``, optionally only those from ``ref_domain``."""
        body = await self.api.get(
            "/links/domain/{domain}/backlinks",
            path_params={"domain": domain},
            params={"ref_domain": ref_domain, "skip": skip, "limit": limit},
        )
        return Page.from_body(body, BacklinkRow.from_dict)

    async def get_anchors(self, domain: str, skip: int = 0, limit: int = 100) -> Page[AnchorRow]:
        body = await self.api.get(
            "/links/domain/{domain}/anchors",
            path_params={"domain": domain},
            params={"skip": skip, "limit": limit},
        )
        return Page.from_body(body, AnchorRow.from_dict)

    async def get_overlap(self, domain: str, competitors: Iterable[str]) -> Page[OverlapDomain]:
        body = await self.api.get(
            "/links/domain/{domain}/overlap",
            path_params={"domain": domain},
            params={"competitors": _competitor_list(competitors)},
        )
        return Page.from_body(body, OverlapDomain.from_dict)

    async def get_intersect(self, domain: str, competitors: Iterable[str]) -> Page[IntersectDomain]:
        body = await self.api.get(
            "/links/domain/{domain}/intersect",
            path_params={"domain": domain},
            params={"competitors": _competitor_list(competitors)},
        )
        return Page.from_body(body, IntersectDomain.from_dict)
