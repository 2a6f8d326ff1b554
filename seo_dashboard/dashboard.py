"""
SEO Dashboard facade: one object for every view of the dashboard.

Wraps the per-resource services with a shared :class:`QueryCache` so that
reads are served through the cache and every mutation invalidates the
queries it makes stale. Audit runs and the rank tracker are kept live by
:class:`Poller` instances that write each fetched value back into the
cache, so subscribers see progress as it happens.

Cache keys (prefix invalidation applies):
    ("projects",)                              project list pages
    ("projects", project_id)                   one project
    ("audits", project_id)                     audit list pages
    ("audits", project_id, audit_id, ...)      one run, its issues and pages
    ("gsc", project_id, ...)                   properties, reports, clusters
    ("links", domain, ...)                     backlink analysis
    ("rank-tracker", project_id, ...)          keywords, history, snapshots
    ("traffic-panel", project_id, period)      traffic panel
    ("traffic-sources", project_id)            connected traffic sources
    ("ads", project_id, ...)                   campaigns and SEO/PPC overlap
    ("integrations", "google")                 Google connection status

Usage:
    from seo_dashboard.dashboard import SeoDashboard

    async with SeoDashboard() as dash:
        projects = await dash.list_projects()
        run = await dash.start_audit(projects.data[0].id)
        final = await dash.wait_for_audit(run.project_id, run.id)
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

from seo_dashboard.ads import AdsService
from seo_dashboard.audits import AuditsService
from seo_dashboard.client import ApiClient, ClientConfig, _run_sync
from seo_dashboard.gsc import DEFAULT_BACKFILL_DAYS, GSCService
from seo_dashboard.links import LinksService
from seo_dashboard.models import (
    AuditIssue,
    AuditRun,
    CampaignsReport,
    Cluster,
    ClusterDetail,
    CrawledPage,
    CsvImportResult,
    GoogleIntegrationStatus,
    GoogleService,
    GSCPageRow,
    GSCProperty,
    GSCQueryRow,
    KeywordTarget,
    KeywordTargetCreate,
    OAuthStart,
    OpportunityRow,
    Page,
    Project,
    ProjectCreate,
    ProjectUpdate,
    RankObservation,
    SEOPPCOverlapReport,
    SerpSnapshot,
    TaskAccepted,
    TrafficPanel,
    TrafficSources,
    enum_value,
)
from seo_dashboard.polling import (
    AUDIT_POLL_INTERVAL,
    RANK_TRACKER_POLL_INTERVAL,
    Poller,
    always,
    any_audit_in_progress,
    audit_in_progress,
)
from seo_dashboard.projects import ProjectsService
from seo_dashboard.query_cache import QueryCache
from seo_dashboard.serp import SerpService
from seo_dashboard.traffic import DEFAULT_PERIOD_DAYS, TrafficService

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logger = logging.getLogger("seo_dashboard")
logger.setLevel(logging.INFO)

if not logger.handlers:
    _handler = logging.StreamHandler()
    _handler.setFormatter(
        logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    logger.addHandler(_handler)

# Per-project key roots dropped when a project is deleted.
PROJECT_SCOPED_ROOTS = ("audits", "gsc", "rank-tracker", "traffic-panel", "traffic-sources", "ads")


def _filters_key(**filters: Any) -> Tuple[Tuple[str, Any], ...]:
    """Hashable, order-independent form of the filters sent with a query."""
    return tuple(sorted((k, enum_value(v)) for k, v in filters.items() if v is not None))


class SeoDashboard:
    """
    Cached, observable access to every backend resource.

    Parameters
    ----------
    config : ClientConfig, optional
        Connection settings; ignored when ``api`` is given.
    api : ApiClient, optional
        Pre-built transport (tests pass a mocked one).
    cache : QueryCache, optional
        Shared cache; a new one is created by default.
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        api: Optional[ApiClient] = None,
        cache: Optional[QueryCache] = None,
    ):
        self.api = api if api is not None else ApiClient(config)
        self.cache = cache if cache is not None else QueryCache()

        self.projects = ProjectsService(self.api)
        self.audits = AuditsService(self.api)
        self.gsc = GSCService(self.api)
        self.links = LinksService(self.api)
        self.serp = SerpService(self.api)
        self.traffic = TrafficService(self.api)
        self.ads = AdsService(self.api)

        self._pollers: Dict[Tuple[Any, ...], Poller] = {}
        logger.debug("SeoDashboard initialized against %s", self.api.config.base_url)

    # ======================================================================
    # Projects
    # ======================================================================

    async def list_projects(self, skip: int = 0, limit: int = 100, *, force: bool = False) -> Page[Project]:
        return await self.cache.fetch(
            ("projects", "list", skip, limit),
            lambda: self.projects.list_projects(skip=skip, limit=limit),
            force=force,
        )

    async def get_project(self, project_id: str, *, force: bool = False) -> Project:
        return await self.cache.fetch(
            ("projects", project_id),
            lambda: self.projects.get_project(project_id),
            force=force,
        )

    async def create_project(self, project: Union[ProjectCreate, dict]) -> Project:
        created = await self.projects.create_project(project)
        self.cache.invalidate(("projects",))
        self.cache.set_data(("projects", created.id), created)
        return created

    async def update_project(self, project_id: str, update: Union[ProjectUpdate, dict]) -> Project:
        updated = await self.projects.update_project(project_id, update)
        self.cache.invalidate(("projects",))
        self.cache.set_data(("projects", project_id), updated)
        return updated

    async def delete_project(self, project_id: str) -> Optional[str]:
        message = await self.projects.delete_project(project_id)
        await self._stop_project_pollers(project_id)
        self.cache.remove(("projects", project_id))
        for root in PROJECT_SCOPED_ROOTS:
            self.cache.remove((root, project_id))
        self.cache.invalidate(("projects",))
        return message

    # ======================================================================
    # Audits
    # ======================================================================

    async def list_audits(self, project_id: str, skip: int = 0, limit: int = 100, *, force: bool = False) -> Page[AuditRun]:
        return await self.cache.fetch(
            ("audits", project_id, "list", skip, limit),
            lambda: self.audits.list_audits(project_id, skip=skip, limit=limit),
            force=force,
        )

    async def get_audit(self, project_id: str, audit_id: str, *, force: bool = False) -> AuditRun:
        return await self.cache.fetch(
            ("audits", project_id, audit_id),
            lambda: self.audits.get_audit(project_id, audit_id),
            force=force,
        )

    async def start_audit(self, project_id: str) -> AuditRun:
        run = await self.audits.start_audit(project_id)
        self.cache.invalidate(("audits", project_id))
        self.cache.set_data(("audits", project_id, run.id), run)
        self.cache.invalidate(("projects", project_id))
        return run

    async def get_audit_issues(self, project_id: str, audit_id: str, *, force: bool = False, **filters: Any) -> Page[AuditIssue]:
        """Filters are passed through to :meth:`AuditsService.get_audit_issues`."""
        return await self.cache.fetch(
            ("audits", project_id, audit_id, "issues", _filters_key(**filters)),
            lambda: self.audits.get_audit_issues(project_id, audit_id, **filters),
            force=force,
        )

    async def get_audit_pages(self, project_id: str, audit_id: str, *, force: bool = False, **filters: Any) -> Page[CrawledPage]:
        return await self.cache.fetch(
            ("audits", project_id, audit_id, "pages", _filters_key(**filters)),
            lambda: self.audits.get_audit_pages(project_id, audit_id, **filters),
            force=force,
        )

    async def get_page_detail(self, project_id: str, audit_id: str, page_id: str) -> CrawledPage:
        return await self.cache.fetch(
            ("audits", project_id, audit_id, "page", page_id),
            lambda: self.audits.get_page_detail(project_id, audit_id, page_id),
        )

    def watch_audit(
        self,
        project_id: str,
        audit_id: str,
        on_update: Optional[Callable[[AuditRun], None]] = None,
        *,
        interval: float = AUDIT_POLL_INTERVAL,
        max_polls: Optional[int] = None,
    ) -> Poller:
        """
        Poll one audit run every ``interval`` seconds until it completes or
        fails. Each fetched run is written to the cache; when the run
        reaches a terminal state the audit list and the project (its
        ``last_audit_at``) are invalidated.
        """
        key = ("audits", project_id, audit_id)

        def _on_update(run: AuditRun) -> None:
            if not audit_in_progress(run):
                self.cache.invalidate(("audits", project_id, "list"))
                self.cache.invalidate(("projects", project_id))
            if on_update is not None:
                on_update(run)

        return self._start_poller(
            key,
            lambda: self.get_audit(project_id, audit_id, force=True),
            audit_in_progress,
            interval,
            on_update=_on_update,
            max_polls=max_polls,
        )

    async def wait_for_audit(self, project_id: str, audit_id: str, **kwargs: Any) -> AuditRun:
        """Await the terminal state of an audit run. Accepts :meth:`watch_audit` options."""
        poller = self.watch_audit(project_id, audit_id, **kwargs)
        return await poller.wait()

    def watch_audits(
        self,
        project_id: str,
        on_update: Optional[Callable[[Page[AuditRun]], None]] = None,
        *,
        interval: float = AUDIT_POLL_INTERVAL,
    ) -> Poller:
        """Poll the audit list while any run in it is still in progress."""
        return self._start_poller(
            ("audits", project_id, "list"),
            lambda: self.list_audits(project_id, force=True),
            any_audit_in_progress,
            interval,
            on_update=on_update,
        )

    # ======================================================================
    # Google Search Console
    # ======================================================================

    async def list_gsc_properties(self, project_id: str, *, force: bool = False) -> Page[GSCProperty]:
        return await self.cache.fetch(
            ("gsc", project_id, "properties"),
            lambda: self.gsc.list_properties(project_id),
            force=force,
        )

    async def link_gsc_property(self, project_id: str, site_url: str) -> GSCProperty:
        prop = await self.gsc.link_property(project_id, site_url)
        self.cache.invalidate(("gsc", project_id))
        self.cache.invalidate(("traffic-sources", project_id))
        return prop

    async def unlink_gsc_property(self, project_id: str) -> Any:
        result = await self.gsc.unlink_property(project_id)
        self.cache.invalidate(("gsc", project_id))
        self.cache.invalidate(("traffic-sources", project_id))
        return result

    async def sync_gsc(self, project_id: str) -> TaskAccepted:
        accepted = await self.gsc.trigger_sync(project_id)
        self.cache.invalidate(("gsc", project_id))
        self.cache.invalidate(("projects", project_id))
        return accepted

    async def backfill_gsc(self, project_id: str, days: int = DEFAULT_BACKFILL_DAYS) -> TaskAccepted:
        accepted = await self.gsc.trigger_backfill(project_id, days)
        self.cache.invalidate(("gsc", project_id))
        return accepted

    async def get_gsc_queries(self, project_id: str, *, force: bool = False, **filters: Any) -> Page[GSCQueryRow]:
        return await self.cache.fetch(
            ("gsc", project_id, "queries", _filters_key(**filters)),
            lambda: self.gsc.get_queries(project_id, **filters),
            force=force,
        )

    async def get_gsc_pages(self, project_id: str, *, force: bool = False, **filters: Any) -> Page[GSCPageRow]:
        return await self.cache.fetch(
            ("gsc", project_id, "pages", _filters_key(**filters)),
            lambda: self.gsc.get_pages(project_id, **filters),
            force=force,
        )

    async def get_gsc_opportunities(self, project_id: str, *, force: bool = False, **filters: Any) -> Page[OpportunityRow]:
        return await self.cache.fetch(
            ("gsc", project_id, "opportunities", _filters_key(**filters)),
            lambda: self.gsc.get_opportunities(project_id, **filters),
            force=force,
        )

    async def list_clusters(self, project_id: str, *, force: bool = False) -> Page[Cluster]:
        return await self.cache.fetch(
            ("gsc", project_id, "clusters"),
            lambda: self.gsc.list_clusters(project_id),
            force=force,
        )

    async def get_cluster(self, project_id: str, cluster_id: str) -> ClusterDetail:
        return await self.cache.fetch(
            ("gsc", project_id, "clusters", cluster_id),
            lambda: self.gsc.get_cluster(project_id, cluster_id),
        )

    async def generate_clusters(self, project_id: str) -> TaskAccepted:
        accepted = await self.gsc.generate_clusters(project_id)
        self.cache.invalidate(("gsc", project_id, "clusters"))
        return accepted

    # -- Google integration -------------------------------------------------

    async def get_integration_status(self, *, force: bool = False) -> GoogleIntegrationStatus:
        return await self.cache.fetch(
            ("integrations", "google"),
            self.gsc.get_integration_status,
            force=force,
        )

    async def start_google_oauth(self, service: Union[GoogleService, str] = GoogleService.GSC) -> OAuthStart:
        """Returns the consent URL; the connection status is refetched on next read."""
        start = await self.gsc.start_oauth(service)
        self.cache.invalidate(("integrations",))
        return start

    async def disconnect_google(self, service: Union[GoogleService, str]) -> Optional[str]:
        message = await self.gsc.disconnect(service)
        self.cache.invalidate(("integrations",))
        return message

    # ======================================================================
    # Links
    # ======================================================================

    async def get_ref_domains(self, domain: str, skip: int = 0, limit: int = 100):
        return await self.cache.fetch(
            ("links", domain, "refdomains", skip, limit),
            lambda: self.links.get_ref_domains(domain, skip=skip, limit=limit),
        )

    async def get_backlinks(self, domain: str, *, ref_domain: Optional[str] = None, skip: int = 0, limit: int = 100):
        return await self.cache.fetch(
            ("links", domain, "backlinks", ref_domain, skip, limit),
            lambda: self.links.get_backlinks(domain, ref_domain=ref_domain, skip=skip, limit=limit),
        )

    async def get_anchors(self, domain: str, skip: int = 0, limit: int = 100):
        return await self.cache.fetch(
            ("links", domain, "anchors", skip, limit),
            lambda: self.links.get_anchors(domain, skip=skip, limit=limit),
        )

    async def get_link_overlap(self, domain: str, competitors: Iterable[str]):
        competitors = list(competitors)
        return await self.cache.fetch(
            ("links", domain, "overlap", tuple(competitors)),
            lambda: self.links.get_overlap(domain, competitors),
        )

    async def get_link_intersect(self, domain: str, competitors: Iterable[str]):
        competitors = list(competitors)
        return await self.cache.fetch(
            ("links", domain, "intersect", tuple(competitors)),
            lambda: self.links.get_intersect(domain, competitors),
        )

    # ======================================================================
    # Rank tracker
    # ======================================================================

    async def list_keywords(self, project_id: str, *, force: bool = False) -> Page[KeywordTarget]:
        return await self.cache.fetch(
            ("rank-tracker", project_id),
            lambda: self.serp.list_keywords(project_id),
            force=force,
        )

    async def add_keyword(self, project_id: str, target: Union[KeywordTargetCreate, dict]) -> KeywordTarget:
        created = await self.serp.create_keyword(project_id, target)
        self.cache.invalidate(("rank-tracker", project_id))
        return created

    async def refresh_keyword(self, project_id: str, keyword_id: str) -> KeywordTarget:
        refreshed = await self.serp.refresh_keyword(project_id, keyword_id)
        self.cache.invalidate(("rank-tracker", project_id))
        return refreshed

    async def refresh_all_keywords(self, project_id: str) -> Dict[str, Union[KeywordTarget, Exception]]:
        """Refresh every active keyword; one failure never blocks the rest."""
        keywords = await self.list_keywords(project_id)
        outcome = await self.serp.refresh_all(project_id, keywords.data)
        self.cache.invalidate(("rank-tracker", project_id))
        self.cache.invalidate(("projects", project_id))
        failed = sum(1 for r in outcome.values() if isinstance(r, Exception))
        logger.info("Refreshed %d keyword(s) for %s, %d failed", len(outcome) - failed, project_id, failed)
        return outcome

    async def get_rank_history(self, project_id: str, keyword_id: str, *, force: bool = False) -> Page[RankObservation]:
        return await self.cache.fetch(
            ("rank-tracker", project_id, keyword_id, "history"),
            lambda: self.serp.get_rank_history(project_id, keyword_id),
            force=force,
        )

    async def get_latest_snapshot(self, project_id: str, keyword_id: str, *, force: bool = False) -> SerpSnapshot:
        return await self.cache.fetch(
            ("rank-tracker", project_id, keyword_id, "snapshots", "latest"),
            lambda: self.serp.get_latest_snapshot(project_id, keyword_id),
            force=force,
        )

    async def get_snapshots(self, project_id: str, keyword_id: str) -> Page[SerpSnapshot]:
        return await self.cache.fetch(
            ("rank-tracker", project_id, keyword_id, "snapshots"),
            lambda: self.serp.get_snapshots(project_id, keyword_id),
        )

    def watch_rank_tracker(
        self,
        project_id: str,
        on_update: Optional[Callable[[Page[KeywordTarget]], None]] = None,
        *,
        interval: float = RANK_TRACKER_POLL_INTERVAL,
    ) -> Poller:
        """Refetch the keyword list every ``interval`` seconds until stopped."""
        return self._start_poller(
            ("rank-tracker", project_id),
            lambda: self.list_keywords(project_id, force=True),
            always,
            interval,
            on_update=on_update,
        )

    # ======================================================================
    # Traffic
    # ======================================================================

    async def get_traffic_panel(self, project_id: str, period_days: int = DEFAULT_PERIOD_DAYS, *, force: bool = False) -> TrafficPanel:
        return await self.cache.fetch(
            ("traffic-panel", project_id, period_days),
            lambda: self.traffic.get_panel(project_id, period_days),
            force=force,
        )

    async def get_traffic_sources(self, project_id: str, *, force: bool = False) -> TrafficSources:
        return await self.cache.fetch(
            ("traffic-sources", project_id),
            lambda: self.traffic.get_sources(project_id),
            force=force,
        )

    async def import_traffic_csv(self, project_id: str, csv_path: Union[str, Path]) -> CsvImportResult:
        result = await self.traffic.import_csv(project_id, csv_path)
        self.cache.invalidate(("traffic-panel", project_id))
        self.cache.invalidate(("traffic-sources", project_id))
        return result

    # ======================================================================
    # Ads
    # ======================================================================

    async def get_campaigns(self, project_id: str, period_days: Optional[int] = None, *, force: bool = False) -> CampaignsReport:
        return await self.cache.fetch(
            ("ads", project_id, "campaigns", period_days),
            lambda: self.ads.get_campaigns(project_id, period_days),
            force=force,
        )

    async def get_ppc_overlap(self, project_id: str, *, force: bool = False, **filters: Any) -> SEOPPCOverlapReport:
        return await self.cache.fetch(
            ("ads", project_id, "seo-overlap", _filters_key(**filters)),
            lambda: self.ads.get_overlap(project_id, **filters),
            force=force,
        )

    async def sync_ads(self, project_id: str) -> TaskAccepted:
        accepted = await self.ads.trigger_sync(project_id)
        self.cache.invalidate(("ads", project_id))
        self.cache.invalidate(("projects", project_id))
        return accepted

    # ======================================================================
    # Pollers and lifecycle
    # ======================================================================

    def _start_poller(
        self,
        key: Tuple[Any, ...],
        fetch: Callable[[], Any],
        keep_polling: Callable[[Any], bool],
        interval: float,
        *,
        on_update: Optional[Callable[[Any], None]] = None,
        max_polls: Optional[int] = None,
    ) -> Poller:
        existing = self._pollers.get(key)
        if existing is not None and existing.running:
            # One poller per key.
            existing.cancel()
        poller = Poller(
            fetch,
            keep_polling,
            interval,
            on_update=on_update,
            max_polls=max_polls,
            name="/".join(str(part) for part in key),
        )
        self._pollers[key] = poller
        poller.start()
        return poller

    @property
    def active_pollers(self) -> List[Poller]:
        return [p for p in self._pollers.values() if p.running]

    async def _stop_project_pollers(self, project_id: str) -> None:
        for key in [k for k in self._pollers if len(k) > 1 and k[1] == project_id]:
            await self._pollers.pop(key).stop()

    async def stop_polling(self) -> None:
        """Stop every poller started by this dashboard."""
        pollers = list(self._pollers.values())
        self._pollers.clear()
        for poller in pollers:
            await poller.stop()

    async def close(self) -> None:
        await self.stop_polling()
        self.cache.clear()
        await self.api.close()

    def close_sync(self) -> None:
        """Synchronous wrapper for close()."""
        _run_sync(self.close())

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def __repr__(self) -> str:
        return f"SeoDashboard({self.api.config!r}, {len(self.cache)} cached, {len(self.active_pollers)} polling)"


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

_dashboard: Optional[SeoDashboard] = None


def get_dashboard(config: Optional[ClientConfig] = None) -> SeoDashboard:
    """
    Get or create the singleton SeoDashboard instance.

    Parameters
    ----------
    config : ClientConfig, optional
        Only used on first call.
    """
    global _dashboard
    if _dashboard is None:
        _dashboard = SeoDashboard(config=config)
    return _dashboard
