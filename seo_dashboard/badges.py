"""
Enum-to-badge maps for statuses, severities and rank positions.

Every function is total over its enum and returns a defined fallback for
values the backend may add later, so rendering never fails on an
unexpected string.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Union

from seo_dashboard.models import (
    IN_PROGRESS_AUDIT_STATUSES,
    AuditStatus,
    IssueSeverity,
    ObservationStatus,
    OpportunityType,
    OverlapType,
    coerce_enum,
)

logger = logging.getLogger("badges")


@dataclass(frozen=True)
class Badge:
    """Label plus style hints for one rendered badge."""
    label: str
    variant: str = "default"  # default | secondary | destructive | outline
    css_class: str = ""
    spinner: bool = False


# ---------------------------------------------------------------------------
# Audits
# ---------------------------------------------------------------------------

AUDIT_STATUS_BADGES: Dict[AuditStatus, Badge] = {
    AuditStatus.QUEUED: Badge("Queued", "secondary"),
    AuditStatus.CRAWLING: Badge("Crawling", "default"),
    AuditStatus.RENDERING: Badge("Rendering", "default"),
    AuditStatus.ANALYZING: Badge("Analyzing", "default"),
    AuditStatus.DIFFING: Badge("Diffing", "default"),
    AuditStatus.COMPLETED: Badge("Completed", "outline", "text-green-600 border-green-600"),
    AuditStatus.FAILED: Badge("Failed", "destructive"),
}

SEVERITY_BADGES: Dict[IssueSeverity, Badge] = {
    IssueSeverity.CRITICAL: Badge("Critical", "outline", "bg-red-100 text-red-800 border-red-200"),
    IssueSeverity.HIGH: Badge("High", "outline", "bg-orange-100 text-orange-800 border-orange-200"),
    IssueSeverity.MEDIUM: Badge("Medium", "outline", "bg-yellow-100 text-yellow-800 border-yellow-200"),
    IssueSeverity.LOW: Badge("Low", "outline", "bg-blue-100 text-blue-800 border-blue-200"),
}


def _humanize(value: object) -> str:
    raw = value.value if isinstance(value, Enum) else str(value)
    return raw.replace("_", " ").strip().capitalize() or "Unknown"


def audit_status_badge(status: Union[AuditStatus, str]) -> Badge:
    """In-progress statuses carry a spinner."""
    status = coerce_enum(AuditStatus, status)
    badge = AUDIT_STATUS_BADGES.get(status)  # type: ignore[arg-type]
    if badge is None:
        return Badge(_humanize(status), "secondary")
    if status in IN_PROGRESS_AUDIT_STATUSES:
        return Badge(badge.label, badge.variant, badge.css_class, spinner=True)
    return badge


def issue_severity_badge(severity: Union[IssueSeverity, str]) -> Badge:
    severity = coerce_enum(IssueSeverity, severity)
    return SEVERITY_BADGES.get(severity) or Badge(_humanize(severity), "outline")  # type: ignore[arg-type]


def issue_type_label(issue_type: object) -> str:
    """``missing_h1`` → ``Missing H1``; acronyms are upper-cased."""
    label = _humanize(issue_type)
    for token in ("h1", "4xx", "5xx", "https"):
        label = label.replace(token, token.upper())
    return label


# ---------------------------------------------------------------------------
# Keywords / GSC
# ---------------------------------------------------------------------------

OPPORTUNITY_BADGES: Dict[OpportunityType, Badge] = {
    OpportunityType.LOW_CTR: Badge("Low CTR", "default", "bg-orange-100 text-orange-800"),
    OpportunityType.POSITION_8_20: Badge("Position 8-20", "default", "bg-blue-100 text-blue-800"),
    OpportunityType.RISING: Badge("Rising", "default", "bg-green-100 text-green-800"),
    OpportunityType.FALLING: Badge("Falling", "default", "bg-red-100 text-red-800"),
}


def opportunity_badge(opportunity_type: Union[OpportunityType, str]) -> Badge:
    """Unknown types show their raw value with the secondary variant."""
    opportunity_type = coerce_enum(OpportunityType, opportunity_type)
    badge = OPPORTUNITY_BADGES.get(opportunity_type)  # type: ignore[arg-type]
    if badge is None:
        raw = opportunity_type.value if isinstance(opportunity_type, Enum) else str(opportunity_type)
        return Badge(raw, "secondary")
    return badge


# ---------------------------------------------------------------------------
# Rank tracker
# ---------------------------------------------------------------------------


def position_badge(position: Optional[int]) -> Badge:
    """Top 3 green, top 10 blue, anything else plain; no rank shows ``--``."""
    if position is None:
        return Badge("--", "outline", "font-mono")
    if position <= 3:
        return Badge(f"#{position}", "default", "font-mono bg-green-600 text-white border-green-600")
    if position <= 10:
        return Badge(f"#{position}", "secondary", "font-mono bg-blue-600 text-white border-blue-600")
    return Badge(f"#{position}", "outline", "font-mono")


class PositionDeltaConvention(str, Enum):
    """How the backend signs ``position_change``."""
    PREVIOUS_MINUS_CURRENT = "previous_minus_current"  # rank 10 -> 5 gives +5
    CURRENT_MINUS_PREVIOUS = "current_minus_previous"  # rank 10 -> 5 gives -5


def _convention_from_env() -> PositionDeltaConvention:
    raw = os.getenv("SEO_POSITION_DELTA_CONVENTION", PositionDeltaConvention.PREVIOUS_MINUS_CURRENT.value)
    try:
        return PositionDeltaConvention(raw.strip().lower())
    except ValueError:
        logger.warning("Unknown SEO_POSITION_DELTA_CONVENTION %r, using previous_minus_current", raw)
        return PositionDeltaConvention.PREVIOUS_MINUS_CURRENT


DEFAULT_POSITION_DELTA_CONVENTION = _convention_from_env()


def is_rank_improvement(
    change: Optional[int],
    convention: PositionDeltaConvention = DEFAULT_POSITION_DELTA_CONVENTION,
) -> Optional[bool]:
    """
    True when ``change`` means the keyword moved up (to a smaller rank
    number), False when it moved down, None for no change or no data.
    """
    if change is None or change == 0:
        return None
    if convention is PositionDeltaConvention.PREVIOUS_MINUS_CURRENT:
        return change > 0
    return change < 0


@dataclass(frozen=True)
class PositionChange:
    label: str
    trend: str  # up | down | flat
    css_class: str = ""


def position_change_badge(
    change: Optional[int],
    convention: PositionDeltaConvention = DEFAULT_POSITION_DELTA_CONVENTION,
) -> PositionChange:
    """``+N`` in green for places gained, ``-N`` in red for places lost."""
    improved = is_rank_improvement(change, convention)
    if improved is None:
        return PositionChange("--", "flat", "text-muted-foreground")
    places = abs(change)  # type: ignore[arg-type]
    if improved:
        return PositionChange(f"+{places}", "up", "text-green-600")
    return PositionChange(f"-{places}", "down", "text-red-600")


def refresh_status_badge(status: Optional[Union[ObservationStatus, str]]) -> Optional[Badge]:
    """Badge for a keyword's last refresh or an observation; None when never refreshed."""
    if status is None:
        return None
    status = coerce_enum(ObservationStatus, status)
    raw = status.value if isinstance(status, Enum) else str(status)
    if status == ObservationStatus.SUCCESS:
        return Badge(raw, "default")
    if status == ObservationStatus.FAILED:
        return Badge(raw, "destructive")
    return Badge(raw, "secondary")


# ---------------------------------------------------------------------------
# PPC
# ---------------------------------------------------------------------------

OVERLAP_BADGES: Dict[OverlapType, Badge] = {
    OverlapType.BOTH: Badge("Both", "default"),
    OverlapType.PAID_ONLY: Badge("Paid Only", "secondary"),
    OverlapType.ORGANIC_ONLY: Badge("Organic Only", "outline"),
}

CAMPAIGN_STATUS_VARIANTS = {
    "ENABLED": "default",
    "PAUSED": "secondary",
    "REMOVED": "destructive",
}


def overlap_badge(overlap_type: Union[OverlapType, str]) -> Badge:
    overlap_type = coerce_enum(OverlapType, overlap_type)
    return OVERLAP_BADGES.get(overlap_type) or Badge(_humanize(overlap_type), "outline")  # type: ignore[arg-type]


def campaign_status_badge(status: Optional[str]) -> Badge:
    raw = (status or "UNKNOWN").upper()
    return Badge(raw, CAMPAIGN_STATUS_VARIANTS.get(raw, "outline"))
