"""
Traffic panel: GA4 sessions/users, GSC clicks and CrUX vitals joined per
day on the backend, plus manual CSV import for sites without connected
sources.

CSV files must carry the columns ``date, ga4_sessions, ga4_users,
gsc_clicks, lcp, cls``; the backend parses them and reports how many rows
it stored.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Union

from seo_dashboard.client import ApiClient
from seo_dashboard.models import CsvImportResult, TrafficPanel, TrafficSources
from seo_dashboard.validation import validate_csv_upload

logger = logging.getLogger("seo_client")

DEFAULT_PERIOD_DAYS = 28


class TrafficService:
    """Typed wrapper for ``/projects/{project_id}/traffic``."""

    def __init__(self, api: ApiClient):
        self.api = api

    async def get_panel(self, project_id: str, period_days: int = DEFAULT_PERIOD_DAYS) -> TrafficPanel:
        body = await self.api.get(
            "/projects/{project_id}/traffic/panel",
            path_params={"project_id": project_id},
            params={"period_days": period_days or DEFAULT_PERIOD_DAYS},
        )
        return TrafficPanel.from_dict(body)

    async def get_sources(self, project_id: str) -> TrafficSources:
        body = await self.api.get(
            "/projects/{project_id}/traffic/sources",
            path_params={"project_id": project_id},
        )
        return TrafficSources.from_dict(body)

    async def import_csv(self, project_id: str, csv_path: Union[str, Path]) -> CsvImportResult:
        """
        Upload a traffic CSV as multipart form field ``file``.

        Raises
        ------
        FormValidationError
            If the path does not name an existing ``.csv`` file.
        """
        path = validate_csv_upload(csv_path)
        content = path.read_bytes()
        body = await self.api.post(
            "/projects/{project_id}/traffic/import-csv",
            path_params={"project_id": project_id},
            files={"file": (path.name, content, "text/csv")},
        )
        result = CsvImportResult.from_dict(body if isinstance(body, dict) else {})
        logger.info("Imported %d traffic rows from %s", result.rows_imported, path.name)
        return result
