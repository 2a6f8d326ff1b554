"""
Pure display formatters for dashboard values.

Nothing here performs I/O; every function maps already-computed server
data to a string or a small summary structure.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Union
from urllib.parse import urlparse

from seo_dashboard.models import AnchorRow, CampaignPerformance

Timestamp = Union[str, datetime, None]

MICROS_PER_UNIT = 1_000_000
PLACEHOLDER = "--"


def parse_timestamp(value: Timestamp) -> Optional[datetime]:
    """Parse an ISO 8601 string (``Z`` suffix allowed). Naive values are taken as UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def format_duration(start: Timestamp, end: Timestamp) -> str:
    """
    Elapsed time between two timestamps.

    >>> format_duration(None, None)
    'Not started'
    >>> format_duration("2026-01-01T00:00:00Z", None)
    'In progress'
    >>> format_duration("2026-01-01T00:00:00Z", "2026-01-01T00:01:05Z")
    '1m 5s'
    """
    started = parse_timestamp(start)
    if started is None:
        return "Not started"
    finished = parse_timestamp(end)
    if finished is None:
        return "In progress"

    seconds = int((finished - started).total_seconds() // 1)
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        return f"{seconds // 60}m {seconds % 60}s"
    return f"{seconds // 3600}h {(seconds % 3600) // 60}m"


def format_timestamp(value: Timestamp) -> str:
    """``Jan 5, 2026, 3:04 PM`` style; ``Not started`` when missing."""
    dt = parse_timestamp(value)
    if dt is None:
        return "Not started"
    hour = dt.hour % 12 or 12
    meridiem = "AM" if dt.hour < 12 else "PM"
    return f"{dt:%b} {dt.day}, {dt.year}, {hour}:{dt.minute:02d} {meridiem}"


def format_date(value: Timestamp) -> str:
    dt = parse_timestamp(value)
    if dt is None:
        return PLACEHOLDER
    return dt.date().isoformat()


def format_currency(micros: Union[int, float]) -> str:
    """Ads amounts arrive in micros: ``1_500_000`` → ``$1.50``."""
    amount = micros / MICROS_PER_UNIT
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,.2f}"


def format_number(value: Union[int, float, None]) -> str:
    if value is None:
        return PLACEHOLDER
    if isinstance(value, float) and not value.is_integer():
        return f"{value:,.3f}".rstrip("0").rstrip(".")
    return f"{int(value):,}"


def format_percentage(ratio: Optional[float]) -> str:
    """CTR and similar ratios: ``0.1234`` → ``12.34%``."""
    if ratio is None:
        return PLACEHOLDER
    return f"{ratio * 100:.2f}%"


def format_position(position: Optional[float]) -> str:
    if position is None:
        return PLACEHOLDER
    return f"{position:.1f}"


def format_file_size(size_bytes: int) -> str:
    return f"{size_bytes / 1024:.2f} KB"


def hostname(url: str) -> str:
    return urlparse(url).hostname or ""


def url_path(url: str) -> str:
    """Path component of ``url``; ``/`` for a bare origin."""
    return urlparse(url).path or "/"


# ---------------------------------------------------------------------------
# Ads summaries
# ---------------------------------------------------------------------------


@dataclass
class CampaignTotals:
    impressions: int = 0
    clicks: int = 0
    cost_micros: int = 0
    conversions: float = 0.0

    @property
    def avg_ctr(self) -> float:
        return self.clicks / self.impressions if self.impressions > 0 else 0.0

    @property
    def avg_cpc_micros(self) -> float:
        return self.cost_micros / self.clicks if self.clicks > 0 else 0.0


def campaign_totals(campaigns: Iterable[CampaignPerformance]) -> CampaignTotals:
    totals = CampaignTotals()
    for campaign in campaigns:
        totals.impressions += campaign.impressions
        totals.clicks += campaign.clicks
        totals.cost_micros += campaign.cost_micros
        totals.conversions += campaign.conversions
    return totals


# ---------------------------------------------------------------------------
# Anchor text distribution
# ---------------------------------------------------------------------------


@dataclass
class AnchorShare:
    anchor_text: str
    count: int
    percentage: float
    bar_ratio: float  # relative to the largest shown anchor


def anchor_distribution(anchors: Iterable[AnchorRow], max_items: int = 10) -> List[AnchorShare]:
    """
    Top ``max_items`` anchors with their share of all backlinks.

    The backend's ``percentage`` is used when present; otherwise it is
    computed over every anchor passed in, not only the ones shown.
    """
    rows = list(anchors)
    total = sum(row.backlinks for row in rows)
    shown = rows[:max_items]
    largest = max((row.backlinks for row in shown), default=0)

    shares: List[AnchorShare] = []
    for row in shown:
        if row.percentage is not None:
            pct = float(row.percentage)
        else:
            pct = (row.backlinks / total * 100) if total else 0.0
        shares.append(AnchorShare(
            anchor_text=row.anchor_text or "(empty)",
            count=row.backlinks,
            percentage=pct,
            bar_ratio=(row.backlinks / largest) if largest else 0.0,
        ))
    return shares
