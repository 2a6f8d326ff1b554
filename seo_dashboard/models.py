"""
Typed DTOs mirrored from the SEO backend.

Every response shape is a ``@dataclass`` with a tolerant ``from_dict``:
unknown keys are ignored, missing optional keys default to ``None`` and
enum fields keep unknown backend strings as plain ``str`` instead of
raising. Nullable fields are declared ``Optional`` so absence handling is
explicit at every call site.

The backend owns every invariant; nothing here mutates server state.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Generic, Iterator, List, Optional, Type, TypeVar, Union
from urllib.parse import urlparse

T = TypeVar("T")
E = TypeVar("E", bound=Enum)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class AuditStatus(str, Enum):
    """Lifecycle of an audit run (state machine lives server-side)."""
    QUEUED = "queued"
    CRAWLING = "crawling"
    RENDERING = "rendering"
    ANALYZING = "analyzing"
    DIFFING = "diffing"
    COMPLETED = "completed"
    FAILED = "failed"


IN_PROGRESS_AUDIT_STATUSES = frozenset({
    AuditStatus.QUEUED,
    AuditStatus.CRAWLING,
    AuditStatus.RENDERING,
    AuditStatus.ANALYZING,
    AuditStatus.DIFFING,
})


class IssueSeverity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class IssueType(str, Enum):
    """Issue classes detected by the crawler, grouped by default severity."""
    # Critical
    SERVER_ERROR_5XX = "server_error_5xx"
    REDIRECT_LOOP = "redirect_loop"
    REDIRECT_CHAIN = "redirect_chain"
    BROKEN_INTERNAL_LINK = "broken_internal_link"
    # High
    CLIENT_ERROR_4XX = "client_error_4xx"
    MISSING_TITLE = "missing_title"
    DUPLICATE_TITLE = "duplicate_title"
    MISSING_META_DESCRIPTION = "missing_meta_description"
    # Medium
    TITLE_TOO_LONG = "title_too_long"
    TITLE_TOO_SHORT = "title_too_short"
    META_DESC_TOO_LONG = "meta_desc_too_long"
    META_DESC_TOO_SHORT = "meta_desc_too_short"
    MISSING_H1 = "missing_h1"
    MULTIPLE_H1 = "multiple_h1"
    MISSING_CANONICAL = "missing_canonical"
    CANONICAL_MISMATCH = "canonical_mismatch"
    NON_HTTPS = "non_https"
    # Low
    THIN_CONTENT = "thin_content"
    ORPHAN_PAGE = "orphan_page"


class OpportunityType(str, Enum):
    LOW_CTR = "low_ctr"
    POSITION_8_20 = "position_8_20"
    RISING = "rising"
    FALLING = "falling"


class Device(str, Enum):
    DESKTOP = "desktop"
    MOBILE = "mobile"
    TABLET = "tablet"


class SearchEngine(str, Enum):
    GOOGLE = "google"
    BING = "bing"


class ObservationStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    RATE_LIMITED = "rate_limited"


class OverlapType(str, Enum):
    BOTH = "both"
    PAID_ONLY = "paid_only"
    ORGANIC_ONLY = "organic_only"


class GoogleService(str, Enum):
    GSC = "gsc"
    ADS = "ads"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


def coerce_enum(enum_cls: Type[E], value: Any) -> Union[E, Any]:
    """Return the enum member for ``value`` or ``value`` itself if unknown."""
    if value is None or isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        return value


def enum_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


# ---------------------------------------------------------------------------
# Base record
# ---------------------------------------------------------------------------

class _Record:
    """Shared (de)serialization for backend DTOs."""

    @classmethod
    def _filter(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        valid_fields = cls.__dataclass_fields__  # type: ignore[attr-defined]
        return {k: v for k, v in data.items() if k in valid_fields}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        return cls(**cls._filter(dict(data or {})))

    def to_dict(self) -> Dict[str, Any]:
        return _plain(asdict(self))  # type: ignore[call-overload]


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_plain(v) for v in value]
    return value


# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------

@dataclass
class Page(Generic[T]):
    """A ``{data, count}`` list response."""
    data: List[T] = field(default_factory=list)
    count: int = 0

    @classmethod
    def from_body(cls, body: Any, item: Callable[[Dict[str, Any]], T]) -> Page[T]:
        """Build a page, accepting either ``count`` or ``total`` for the size."""
        if isinstance(body, list):
            return cls(data=[item(row) for row in body], count=len(body))
        body = body or {}
        rows = body.get("data") or []
        count = body.get("count", body.get("total", len(rows)))
        return cls(data=[item(row) for row in rows], count=int(count or 0))

    def __iter__(self) -> Iterator[T]:
        return iter(self.data)

    def __len__(self) -> int:
        return len(self.data)


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------

@dataclass
class ProjectSettings(_Record):
    """Crawl, render and schedule settings stored on a project."""
    max_pages: int = 500
    max_depth: int = 5
    crawl_concurrency: int = 5
    user_agent: str = ""
    respect_robots_txt: bool = True
    include_subdomains: bool = False
    strip_query_params: bool = True
    include_patterns: List[str] = field(default_factory=list)
    exclude_patterns: List[str] = field(default_factory=list)
    enable_js_rendering: bool = False
    js_render_mode: str = "auto"
    max_render_pages: int = 50
    render_timeout_ms: int = 30000
    audit_frequency: str = "manual"
    gsc_sync_frequency: str = "daily"
    serp_refresh_frequency: str = "daily"
    keep_audit_runs: int = 10
    keep_serp_days: int = 90


@dataclass
class ProjectCreate(_Record):
    name: str
    seed_url: str
    description: Optional[str] = None
    settings: Optional[ProjectSettings] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"name": self.name, "seed_url": self.seed_url}
        if self.description is not None:
            payload["description"] = self.description
        if self.settings is not None:
            payload["settings"] = self.settings.to_dict()
        return payload


@dataclass
class ProjectUpdate(_Record):
    name: Optional[str] = None
    seed_url: Optional[str] = None
    description: Optional[str] = None
    settings: Optional[ProjectSettings] = None

    def to_dict(self) -> Dict[str, Any]:
        """Only fields that were set are sent, so the backend leaves others alone."""
        payload: Dict[str, Any] = {}
        for key in ("name", "seed_url", "description"):
            value = getattr(self, key)
            if value is not None:
                payload[key] = value
        if self.settings is not None:
            payload["settings"] = self.settings.to_dict()
        return payload


@dataclass
class Project(_Record):
    id: str
    name: str
    seed_url: str
    description: Optional[str] = None
    created_by_id: Optional[str] = None
    settings: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    last_audit_at: Optional[str] = None
    last_gsc_sync_at: Optional[str] = None
    last_serp_refresh_at: Optional[str] = None
    last_links_snapshot_at: Optional[str] = None
    last_ppc_sync_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Project:
        data = cls._filter(dict(data))
        data["settings"] = data.get("settings") or {}
        return cls(**data)

    @property
    def domain(self) -> str:
        """Hostname of the seed URL; the key for link analysis."""
        return urlparse(self.seed_url).hostname or ""

    @property
    def parsed_settings(self) -> ProjectSettings:
        return ProjectSettings.from_dict(self.settings)


# ---------------------------------------------------------------------------
# Audits
# ---------------------------------------------------------------------------

@dataclass
class AuditRunStats(_Record):
    total_pages: int = 0
    pages_ok: int = 0
    pages_redirect: int = 0
    pages_error: int = 0
    total_issues: int = 0
    issues_critical: int = 0
    issues_high: int = 0
    issues_medium: int = 0
    issues_low: int = 0

    def issues_by_severity(self) -> Dict[IssueSeverity, int]:
        return {
            IssueSeverity.CRITICAL: self.issues_critical,
            IssueSeverity.HIGH: self.issues_high,
            IssueSeverity.MEDIUM: self.issues_medium,
            IssueSeverity.LOW: self.issues_low,
        }


@dataclass
class AuditRun(_Record):
    id: str
    project_id: str
    status: Union[AuditStatus, str]
    config: Dict[str, Any] = field(default_factory=dict)
    stats: Optional[AuditRunStats] = None
    progress_pct: float = 0.0
    progress_message: Optional[str] = None
    started_at: Optional[str] = None
    finished_at: Optional[str] = None
    error_message: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> AuditRun:
        data = cls._filter(dict(data))
        data["status"] = coerce_enum(AuditStatus, data.get("status"))
        data["config"] = data.get("config") or {}
        if data.get("stats") is not None:
            data["stats"] = AuditRunStats.from_dict(data["stats"])
        return cls(**data)

    @property
    def is_running(self) -> bool:
        return self.status in IN_PROGRESS_AUDIT_STATUSES


@dataclass
class CrawledPage(_Record):
    id: str
    audit_run_id: str
    url: str
    final_url: str = ""
    depth: int = 0
    status_code: int = 0
    content_type: Optional[str] = None
    response_time_ms: Optional[int] = None
    redirect_chain: Optional[List[Dict[str, Any]]] = None
    title: Optional[str] = None
    meta_description: Optional[str] = None
    canonical: Optional[str] = None
    h1_count: Optional[int] = None
    first_h1: Optional[str] = None
    word_count: Optional[int] = None
    meta_robots: Optional[str] = None
    is_rendered: bool = False
    rendered_at: Optional[str] = None
    rendered_title: Optional[str] = None
    rendered_meta_description: Optional[str] = None
    rendered_h1_count: Optional[int] = None
    rendered_word_count: Optional[int] = None
    content_hash: Optional[str] = None
    crawled_at: Optional[str] = None


@dataclass
class AuditIssue(_Record):
    id: str
    audit_run_id: str
    page_url: str
    issue_type: Union[IssueType, str]
    severity: Union[IssueSeverity, str]
    details: Dict[str, Any] = field(default_factory=dict)
    first_seen_run_id: Optional[str] = None
    is_new: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> AuditIssue:
        data = cls._filter(dict(data))
        data["issue_type"] = coerce_enum(IssueType, data.get("issue_type"))
        data["severity"] = coerce_enum(IssueSeverity, data.get("severity"))
        data["details"] = data.get("details") or {}
        return cls(**data)


# ---------------------------------------------------------------------------
# Google Search Console
# ---------------------------------------------------------------------------

@dataclass
class GSCProperty(_Record):
    id: str
    project_id: str
    site_url: str
    permission_level: Optional[str] = None
    verified: bool = False
    linked_at: Optional[str] = None
    last_sync_at: Optional[str] = None
    sync_status: str = "pending"
    sync_error: Optional[str] = None
    search_type: str = "web"


@dataclass
class GSCQueryRow(_Record):
    query: str
    clicks: int = 0
    impressions: int = 0
    ctr: float = 0.0
    position: float = 0.0


@dataclass
class GSCPageRow(_Record):
    page: str
    clicks: int = 0
    impressions: int = 0
    ctr: float = 0.0
    position: float = 0.0


@dataclass
class OpportunityRow(_Record):
    query: str
    opportunity_type: Union[OpportunityType, str]
    impressions: int = 0
    clicks: int = 0
    ctr: float = 0.0
    position: float = 0.0
    potential_clicks: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> OpportunityRow:
        data = cls._filter(dict(data))
        data["opportunity_type"] = coerce_enum(OpportunityType, data.get("opportunity_type"))
        return cls(**data)


@dataclass
class ClusterMember(_Record):
    id: str
    cluster_id: str
    query: str
    weight: float = 0.0


@dataclass
class Cluster(_Record):
    id: str
    project_id: str
    label: str
    algorithm: str = ""
    created_at: Optional[str] = None
    total_clicks: int = 0
    total_impressions: int = 0
    avg_position: float = 0.0
    query_count: int = 0


@dataclass
class ClusterDetail(Cluster):
    members: List[ClusterMember] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ClusterDetail:
        data = cls._filter(dict(data))
        data["members"] = [ClusterMember.from_dict(m) for m in data.get("members") or []]
        return cls(**data)


@dataclass
class GoogleIntegrationStatus(_Record):
    gsc_connected: bool = False
    ads_connected: bool = False
    gsc_email: Optional[str] = None
    ads_email: Optional[str] = None


@dataclass
class OAuthStart(_Record):
    authorization_url: str
    state: str = ""


# ---------------------------------------------------------------------------
# Links
# ---------------------------------------------------------------------------

@dataclass
class RefDomainRow(_Record):
    ref_domain: str
    backlinks: int = 0
    dofollow: int = 0
    nofollow: int = 0
    first_seen: Optional[str] = None
    last_seen: Optional[str] = None


@dataclass
class BacklinkRow(_Record):
    source_url: str
    target_url: str
    source_domain: str = ""
    anchor_text: Optional[str] = None
    is_nofollow: bool = False
    first_seen: Optional[str] = None
    last_seen: Optional[str] = None


@dataclass
class AnchorRow(_Record):
    anchor_text: str
    backlinks: int = 0
    ref_domains: int = 0
    percentage: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> AnchorRow:
        # Some backend versions suffix the counters with ``_count``.
        data = dict(data)
        if "backlinks" not in data and "backlinks_count" in data:
            data["backlinks"] = data["backlinks_count"]
        if "ref_domains" not in data and "ref_domains_count" in data:
            data["ref_domains"] = data["ref_domains_count"]
        return cls(**cls._filter(data))


@dataclass
class OverlapDomain(_Record):
    domain: str
    links_to_a: int = 0
    links_to_b: int = 0
    total_backlinks: int = 0


@dataclass
class IntersectDomain(_Record):
    domain: str
    backlinks_count: int = 0
    dofollow_count: int = 0
    nofollow_count: int = 0


# ---------------------------------------------------------------------------
# SERP / rank tracker
# ---------------------------------------------------------------------------

@dataclass
class KeywordTarget(_Record):
    id: str
    project_id: str
    keyword: str
    locale: str = "us"
    device: Union[Device, str] = Device.DESKTOP
    search_engine: Union[SearchEngine, str] = SearchEngine.GOOGLE
    provider_key: str = ""
    refresh_frequency_hours: int = 24
    is_active: bool = True
    latest_position: Optional[int] = None
    position_change: Optional[int] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    last_refresh_at: Optional[str] = None
    last_refresh_status: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> KeywordTarget:
        data = cls._filter(dict(data))
        if "device" in data:
            data["device"] = coerce_enum(Device, data["device"])
        if "search_engine" in data:
            data["search_engine"] = coerce_enum(SearchEngine, data["search_engine"])
        return cls(**data)


@dataclass
class KeywordTargetCreate(_Record):
    keyword: str
    locale: str = "us"
    device: Device = Device.DESKTOP
    search_engine: Optional[SearchEngine] = None
    provider_key: Optional[str] = None
    refresh_frequency_hours: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        payload = {k: v for k, v in super().to_dict().items() if v is not None}
        return payload


@dataclass
class RankObservation(_Record):
    id: str
    keyword_target_id: str
    observed_at: str
    rank: int
    status: Union[ObservationStatus, str] = ObservationStatus.PENDING
    url: Optional[str] = None
    domain: Optional[str] = None
    title: Optional[str] = None
    snippet: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> RankObservation:
        data = cls._filter(dict(data))
        if "status" in data:
            data["status"] = coerce_enum(ObservationStatus, data["status"])
        return cls(**data)


@dataclass
class SerpResult(_Record):
    position: int
    url: str
    domain: str = ""
    title: str = ""
    snippet: str = ""
    displayed_url: Optional[str] = None


@dataclass
class SerpSnapshot(_Record):
    id: str
    keyword_target_id: str
    captured_at: str
    results: List[SerpResult] = field(default_factory=list)
    total_results: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> SerpSnapshot:
        data = cls._filter(dict(data))
        data["results"] = [SerpResult.from_dict(r) for r in data.get("results") or []]
        return cls(**data)


# ---------------------------------------------------------------------------
# Traffic
# ---------------------------------------------------------------------------

@dataclass
class TrafficDataPoint(_Record):
    date: str
    ga4_sessions: Optional[int] = None
    ga4_users: Optional[int] = None
    gsc_clicks: Optional[int] = None
    lcp: Optional[float] = None  # Largest Contentful Paint, seconds
    cls: Optional[float] = None  # Cumulative Layout Shift


@dataclass
class TrafficPanel(_Record):
    data: List[TrafficDataPoint] = field(default_factory=list)
    sources_available: Dict[str, bool] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> TrafficPanel:
        data = dict(data or {})
        return cls(
            data=[TrafficDataPoint.from_dict(p) for p in data.get("data") or []],
            sources_available={
                "ga4": bool((data.get("sources_available") or {}).get("ga4")),
                "gsc": bool((data.get("sources_available") or {}).get("gsc")),
                "crux": bool((data.get("sources_available") or {}).get("crux")),
            },
        )


@dataclass
class TrafficSources(_Record):
    ga4_connected: bool = False
    gsc_connected: bool = False
    crux_available: bool = False


@dataclass
class CsvImportResult(_Record):
    message: str = ""
    rows_imported: int = 0


# ---------------------------------------------------------------------------
# Ads / PPC
# ---------------------------------------------------------------------------

@dataclass
class CampaignPerformance(_Record):
    campaign_id: str
    campaign_name: str
    impressions: int = 0
    clicks: int = 0
    cost_micros: int = 0
    conversions: float = 0.0
    ctr: float = 0.0
    average_cpc_micros: int = 0
    conversions_value: float = 0.0
    status: str = ""


@dataclass
class CampaignsReport(_Record):
    data: List[CampaignPerformance] = field(default_factory=list)
    count: int = 0
    period_days: int = 30

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> CampaignsReport:
        data = dict(data or {})
        rows = [CampaignPerformance.from_dict(c) for c in data.get("data") or []]
        return cls(data=rows, count=int(data.get("count", len(rows))), period_days=int(data.get("period_days", 30)))


@dataclass
class SEOPPCOverlapKeyword(_Record):
    keyword: str
    overlap_type: Union[OverlapType, str]
    paid_clicks: int = 0
    paid_cost_micros: int = 0
    organic_clicks: int = 0
    organic_position: float = 0.0
    opportunity_score: float = 0.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> SEOPPCOverlapKeyword:
        data = cls._filter(dict(data))
        data["overlap_type"] = coerce_enum(OverlapType, data.get("overlap_type"))
        return cls(**data)


@dataclass
class OverlapSummary(_Record):
    total_keywords: int = 0
    overlap_count: int = 0
    paid_only_count: int = 0
    organic_only_count: int = 0


@dataclass
class SEOPPCOverlapReport(_Record):
    data: List[SEOPPCOverlapKeyword] = field(default_factory=list)
    count: int = 0
    summary: OverlapSummary = field(default_factory=OverlapSummary)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> SEOPPCOverlapReport:
        data = dict(data or {})
        rows = [SEOPPCOverlapKeyword.from_dict(k) for k in data.get("data") or []]
        return cls(
            data=rows,
            count=int(data.get("count", len(rows))),
            summary=OverlapSummary.from_dict(data.get("summary") or {}),
        )


@dataclass
class TaskAccepted(_Record):
    """Acknowledgement for endpoints that enqueue background work."""
    message: str = ""
    task_id: Optional[str] = None
