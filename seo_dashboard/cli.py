"""
SEO Dashboard CLI

Command-line front end for the SEO analytics backend: projects, site
audits, Search Console reports, backlinks, the rank tracker, traffic and
Google Ads.

Usage:
    seo-dashboard <group> <command> [options]
    python -m seo_dashboard <group> <command> [options]

Examples:
    seo-dashboard projects list
    seo-dashboard projects create --name "Blog" --seed-url https://example.com
    seo-dashboard audits start PROJECT_ID --watch
    seo-dashboard gsc opportunities PROJECT_ID --type low_ctr
    seo-dashboard links overlap example.com --competitor rival.com --competitor other.org
    seo-dashboard serp add PROJECT_ID "best running shoes" --device mobile
    seo-dashboard traffic import-csv PROJECT_ID ./traffic.csv
    seo-dashboard ads overlap PROJECT_ID --type paid_only
"""

from __future__ import annotations

import argparse
import asyncio
import csv
import logging
import sys
from typing import Any, Awaitable, Callable, List, Optional

from seo_dashboard import __version__
from seo_dashboard.badges import (
    DEFAULT_POSITION_DELTA_CONVENTION,
    PositionDeltaConvention,
    audit_status_badge,
    campaign_status_badge,
    issue_severity_badge,
    issue_type_label,
    opportunity_badge,
    overlap_badge,
    position_badge,
    position_change_badge,
    refresh_status_badge,
)
from seo_dashboard.client import ApiError, ClientConfig, ValidationError
from seo_dashboard.dashboard import SeoDashboard
from seo_dashboard.formatting import (
    anchor_distribution,
    campaign_totals,
    format_currency,
    format_date,
    format_duration,
    format_number,
    format_percentage,
    format_position,
    format_timestamp,
    url_path,
)
from seo_dashboard.models import Device, GoogleService, IssueSeverity, OpportunityType, OverlapType
from seo_dashboard.polling import AUDIT_POLL_INTERVAL, PollingTimeout
from seo_dashboard.validation import (
    CompetitorList,
    FormValidationError,
    check_csv_header,
    validate_csv_upload,
    validate_keyword_form,
    validate_project_form,
    validate_project_update,
)

logger = logging.getLogger("seo_cli")

CommandFn = Callable[[SeoDashboard, argparse.Namespace], Awaitable[int]]


# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------


def _format_table(headers: List[str], rows: List[List[Any]], max_col: int = 60) -> str:
    """Format data as an aligned ASCII table."""
    if not rows:
        return "(no data)"

    def _cell(value: Any) -> str:
        text = "" if value is None else str(value)
        return text if len(text) <= max_col else text[: max_col - 3] + "..."

    cells = [[_cell(v) for v in row] for row in rows]
    widths = [len(h) for h in headers]
    for row in cells:
        for i, cell in enumerate(row[: len(widths)]):
            widths[i] = max(widths[i], len(cell))

    lines = [
        " | ".join(h.ljust(widths[i]) for i, h in enumerate(headers)),
        "-+-".join("-" * w for w in widths),
    ]
    for row in cells:
        padded = row + [""] * (len(headers) - len(row))
        lines.append(" | ".join(padded[i].ljust(widths[i]) for i in range(len(headers))))
    return "\n".join(lines)


def _print_page(title: str, headers: List[str], rows: List[List[Any]], count: int) -> None:
    print(f"{title} ({len(rows)} of {count})\n")
    print(_format_table(headers, rows))


def _audit_line(run) -> str:
    badge = audit_status_badge(run.status)
    spinner = " ..." if badge.spinner else ""
    message = f" - {run.progress_message}" if run.progress_message else ""
    return f"[{badge.label}{spinner}] {run.progress_pct:.0f}%{message}"


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------


async def _cmd_projects_list(dash: SeoDashboard, args: argparse.Namespace) -> int:
    page = await dash.list_projects(skip=args.skip, limit=args.limit)
    rows = [
        [p.id, p.name, p.seed_url, format_timestamp(p.last_audit_at), format_date(p.created_at)]
        for p in page
    ]
    _print_page("Projects", ["ID", "Name", "Seed URL", "Last audit", "Created"], rows, page.count)
    return 0


async def _cmd_projects_show(dash: SeoDashboard, args: argparse.Namespace) -> int:
    p = await dash.get_project(args.project_id)
    print(f"{p.name} ({p.id})")
    print(f"  Seed URL:      {p.seed_url}")
    print(f"  Description:   {p.description or '-'}")
    print(f"  Last audit:    {format_timestamp(p.last_audit_at)}")
    print(f"  Last GSC sync: {format_timestamp(p.last_gsc_sync_at)}")
    print(f"  Last SERP:     {format_timestamp(p.last_serp_refresh_at)}")
    print(f"  Last PPC sync: {format_timestamp(p.last_ppc_sync_at)}")
    settings = p.parsed_settings
    print(f"  Crawl:         {settings.max_pages} pages, depth {settings.max_depth}, JS {'on' if settings.enable_js_rendering else 'off'}")
    return 0


async def _cmd_projects_create(dash: SeoDashboard, args: argparse.Namespace) -> int:
    payload = validate_project_form(args.name, args.seed_url, args.description)
    project = await dash.create_project(payload)
    print(f"Created project {project.name} ({project.id})")
    return 0


async def _cmd_projects_update(dash: SeoDashboard, args: argparse.Namespace) -> int:
    update = validate_project_update(args.name, args.seed_url, args.description)
    if not update.to_dict():
        print("Nothing to update.")
        return 0
    project = await dash.update_project(args.project_id, update)
    print(f"Updated project {project.name} ({project.id})")
    return 0


async def _cmd_projects_delete(dash: SeoDashboard, args: argparse.Namespace) -> int:
    message = await dash.delete_project(args.project_id)
    print(message or f"Deleted project {args.project_id}")
    return 0


# ---------------------------------------------------------------------------
# Audits
# ---------------------------------------------------------------------------


async def _watch(dash: SeoDashboard, project_id: str, audit_id: str, interval: float) -> int:
    final = await dash.wait_for_audit(
        project_id,
        audit_id,
        on_update=lambda run: print(_audit_line(run)),
        interval=interval,
    )
    print(f"\nAudit {final.id}: {audit_status_badge(final.status).label} in {format_duration(final.started_at, final.finished_at)}")
    if final.error_message:
        print(f"  Error: {final.error_message}")
    if final.stats:
        counts = ", ".join(f"{n} {sev.value}" for sev, n in final.stats.issues_by_severity().items())
        print(f"  {final.stats.total_pages} pages, {final.stats.total_issues} issues ({counts})")
    return 0 if audit_status_badge(final.status).variant != "destructive" else 1


async def _cmd_audits_start(dash: SeoDashboard, args: argparse.Namespace) -> int:
    run = await dash.start_audit(args.project_id)
    print(f"Queued audit {run.id}")
    if args.watch:
        return await _watch(dash, args.project_id, run.id, args.interval)
    return 0


async def _cmd_audits_watch(dash: SeoDashboard, args: argparse.Namespace) -> int:
    return await _watch(dash, args.project_id, args.audit_id, args.interval)


async def _cmd_audits_list(dash: SeoDashboard, args: argparse.Namespace) -> int:
    page = await dash.list_audits(args.project_id)
    rows = [
        [
            run.id,
            audit_status_badge(run.status).label,
            f"{run.progress_pct:.0f}%",
            run.stats.total_pages if run.stats else "-",
            run.stats.total_issues if run.stats else "-",
            format_timestamp(run.started_at),
            format_duration(run.started_at, run.finished_at),
        ]
        for run in page
    ]
    _print_page("Audits", ["ID", "Status", "Progress", "Pages", "Issues", "Started", "Duration"], rows, page.count)
    return 0


async def _cmd_audits_issues(dash: SeoDashboard, args: argparse.Namespace) -> int:
    page = await dash.get_audit_issues(
        args.project_id,
        args.audit_id,
        severity=args.severity,
        issue_type=args.issue_type,
        is_new=True if args.new else None,
        skip=args.skip,
        limit=args.limit,
    )
    rows = [
        [
            issue_severity_badge(issue.severity).label,
            issue_type_label(issue.issue_type),
            issue.page_url,
            "new" if issue.is_new else "",
        ]
        for issue in page
    ]
    _print_page("Issues", ["Severity", "Type", "Page", ""], rows, page.count)
    return 0


async def _cmd_audits_pages(dash: SeoDashboard, args: argparse.Namespace) -> int:
    page = await dash.get_audit_pages(
        args.project_id,
        args.audit_id,
        status_code=args.status_code,
        skip=args.skip,
        limit=args.limit,
    )
    rows = [
        [p.status_code, url_path(p.url), p.depth, p.title or "-", p.word_count if p.word_count is not None else "-"]
        for p in page
    ]
    _print_page("Pages", ["Status", "Path", "Depth", "Title", "Words"], rows, page.count)
    return 0


# ---------------------------------------------------------------------------
# Search Console
# ---------------------------------------------------------------------------


def _report_filters(args: argparse.Namespace) -> dict:
    return {
        "start_date": args.start_date,
        "end_date": args.end_date,
        "sort_by": args.sort_by,
        "sort_order": args.sort_order,
        "limit": args.limit,
    }


async def _cmd_gsc_properties(dash: SeoDashboard, args: argparse.Namespace) -> int:
    page = await dash.list_gsc_properties(args.project_id)
    rows = [[p.site_url, p.permission_level or "-", p.sync_status, format_timestamp(p.last_sync_at)] for p in page]
    _print_page("GSC properties", ["Site", "Permission", "Sync", "Last sync"], rows, page.count)
    return 0


async def _cmd_gsc_link(dash: SeoDashboard, args: argparse.Namespace) -> int:
    prop = await dash.link_gsc_property(args.project_id, args.site_url)
    print(f"Linked {prop.site_url}")
    return 0


async def _cmd_gsc_sync(dash: SeoDashboard, args: argparse.Namespace) -> int:
    if args.backfill:
        accepted = await dash.backfill_gsc(args.project_id, args.backfill)
    else:
        accepted = await dash.sync_gsc(args.project_id)
    print(accepted.message or "Sync queued")
    return 0


async def _cmd_gsc_queries(dash: SeoDashboard, args: argparse.Namespace) -> int:
    page = await dash.get_gsc_queries(args.project_id, **_report_filters(args))
    rows = [
        [r.query, format_number(r.clicks), format_number(r.impressions), format_percentage(r.ctr), format_position(r.position)]
        for r in page
    ]
    _print_page("Queries", ["Query", "Clicks", "Impressions", "CTR", "Position"], rows, page.count)
    return 0


async def _cmd_gsc_pages(dash: SeoDashboard, args: argparse.Namespace) -> int:
    page = await dash.get_gsc_pages(args.project_id, **_report_filters(args))
    rows = [
        [url_path(r.page), format_number(r.clicks), format_number(r.impressions), format_percentage(r.ctr), format_position(r.position)]
        for r in page
    ]
    _print_page("Pages", ["Page", "Clicks", "Impressions", "CTR", "Position"], rows, page.count)
    return 0


async def _cmd_gsc_opportunities(dash: SeoDashboard, args: argparse.Namespace) -> int:
    page = await dash.get_gsc_opportunities(args.project_id, opportunity_type=args.type, **_report_filters(args))
    rows = [
        [
            r.query,
            opportunity_badge(r.opportunity_type).label,
            format_number(r.impressions),
            format_percentage(r.ctr),
            format_position(r.position),
            format_number(r.potential_clicks),
        ]
        for r in page
    ]
    _print_page("Opportunities", ["Query", "Type", "Impressions", "CTR", "Position", "Potential"], rows, page.count)
    return 0


async def _cmd_gsc_clusters(dash: SeoDashboard, args: argparse.Namespace) -> int:
    if args.generate:
        accepted = await dash.generate_clusters(args.project_id)
        print(accepted.message or "Cluster generation queued")
        return 0
    if args.cluster_id:
        detail = await dash.get_cluster(args.project_id, args.cluster_id)
        print(f"{detail.label}: {detail.query_count} queries, {format_number(detail.total_clicks)} clicks\n")
        print(_format_table(["Query", "Weight"], [[m.query, f"{m.weight:.2f}"] for m in detail.members]))
        return 0
    page = await dash.list_clusters(args.project_id)
    rows = [
        [c.id, c.label, c.query_count, format_number(c.total_clicks), format_number(c.total_impressions), format_position(c.avg_position)]
        for c in page
    ]
    _print_page("Clusters", ["ID", "Label", "Queries", "Clicks", "Impressions", "Avg pos"], rows, page.count)
    return 0


# ---------------------------------------------------------------------------
# Google integrations
# ---------------------------------------------------------------------------


async def _cmd_integrations_status(dash: SeoDashboard, args: argparse.Namespace) -> int:
    status = await dash.get_integration_status()
    rows = [
        ["Search Console", "connected" if status.gsc_connected else "not connected", status.gsc_email or "-"],
        ["Google Ads", "connected" if status.ads_connected else "not connected", status.ads_email or "-"],
    ]
    print(_format_table(["Service", "Status", "Account"], rows))
    return 0


async def _cmd_integrations_connect(dash: SeoDashboard, args: argparse.Namespace) -> int:
    start = await dash.start_google_oauth(args.service)
    print("Open this URL to authorize access:")
    print(start.authorization_url)
    return 0


async def _cmd_integrations_disconnect(dash: SeoDashboard, args: argparse.Namespace) -> int:
    message = await dash.disconnect_google(args.service)
    print(message or f"Disconnected {args.service}")
    return 0


# ---------------------------------------------------------------------------
# Links
# ---------------------------------------------------------------------------


def _competitors(args: argparse.Namespace) -> List[str]:
    return CompetitorList(args.competitor or [], max_competitors=args.max_competitors).domains


async def _cmd_links_refdomains(dash: SeoDashboard, args: argparse.Namespace) -> int:
    page = await dash.get_ref_domains(args.domain, limit=args.limit)
    rows = [[r.ref_domain, format_number(r.backlinks), r.dofollow, r.nofollow, format_date(r.last_seen)] for r in page]
    _print_page("Referring domains", ["Domain", "Backlinks", "Dofollow", "Nofollow", "Last seen"], rows, page.count)
    return 0


async def _cmd_links_backlinks(dash: SeoDashboard, args: argparse.Namespace) -> int:
    page = await dash.get_backlinks(args.domain, ref_domain=args.ref_domain, limit=args.limit)
    rows = [
        [b.source_url, url_path(b.target_url), b.anchor_text or "-", "nofollow" if b.is_nofollow else "dofollow"]
        for b in page
    ]
    _print_page("Backlinks", ["Source", "Target", "Anchor", "Rel"], rows, page.count)
    return 0


async def _cmd_links_anchors(dash: SeoDashboard, args: argparse.Namespace) -> int:
    page = await dash.get_anchors(args.domain, limit=args.limit)
    shares = anchor_distribution(page.data, max_items=args.top)
    rows = [[s.anchor_text, format_number(s.count), f"{s.percentage:.1f}%", "#" * round(s.bar_ratio * 20)] for s in shares]
    _print_page("Anchors", ["Anchor", "Backlinks", "Share", ""], rows, page.count)
    return 0


async def _cmd_links_overlap(dash: SeoDashboard, args: argparse.Namespace) -> int:
    page = await dash.get_link_overlap(args.domain, _competitors(args))
    rows = [[d.domain, d.links_to_a, d.links_to_b, format_number(d.total_backlinks)] for d in page]
    _print_page("Link overlap", ["Domain", "Links to target", "Links to competitor", "Total"], rows, page.count)
    return 0


async def _cmd_links_intersect(dash: SeoDashboard, args: argparse.Namespace) -> int:
    page = await dash.get_link_intersect(args.domain, _competitors(args))
    rows = [[d.domain, format_number(d.backlinks_count), d.dofollow_count, d.nofollow_count] for d in page]
    _print_page("Link gap", ["Domain", "Backlinks", "Dofollow", "Nofollow"], rows, page.count)
    return 0


# ---------------------------------------------------------------------------
# Rank tracker
# ---------------------------------------------------------------------------


def _keyword_rows(keywords, convention: PositionDeltaConvention) -> List[List[Any]]:
    rows = []
    for kw in keywords:
        refresh = refresh_status_badge(kw.last_refresh_status)
        rows.append([
            kw.id,
            kw.keyword,
            f"{kw.locale}/{getattr(kw.device, 'value', kw.device)}",
            position_badge(kw.latest_position).label,
            position_change_badge(kw.position_change, convention).label,
            refresh.label if refresh else "-",
            format_timestamp(kw.last_refresh_at) if kw.last_refresh_at else "-",
        ])
    return rows


async def _cmd_serp_list(dash: SeoDashboard, args: argparse.Namespace) -> int:
    convention = PositionDeltaConvention(args.delta_convention or DEFAULT_POSITION_DELTA_CONVENTION)
    headers = ["ID", "Keyword", "Locale", "Position", "Change", "Refresh", "Last refresh"]

    if not args.watch:
        page = await dash.list_keywords(args.project_id)
        _print_page("Tracked keywords", headers, _keyword_rows(page, convention), page.count)
        return 0

    def _show(page) -> None:
        print(_format_table(headers, _keyword_rows(page, convention)))
        print()

    poller = dash.watch_rank_tracker(args.project_id, on_update=_show)
    try:
        await poller.wait()
    finally:
        await poller.stop()
    return 0


async def _cmd_serp_add(dash: SeoDashboard, args: argparse.Namespace) -> int:
    target = validate_keyword_form(args.keyword, args.locale, args.device)
    created = await dash.add_keyword(args.project_id, target)
    print(f"Tracking {created.keyword!r} ({created.id})")
    return 0


async def _cmd_serp_refresh(dash: SeoDashboard, args: argparse.Namespace) -> int:
    if args.keyword_id:
        kw = await dash.refresh_keyword(args.project_id, args.keyword_id)
        print(f"Refreshed {kw.keyword!r}: {position_badge(kw.latest_position).label}")
        return 0

    outcome = await dash.refresh_all_keywords(args.project_id)
    failed = {kid: exc for kid, exc in outcome.items() if isinstance(exc, Exception)}
    print(f"Refreshed {len(outcome) - len(failed)}/{len(outcome)} keyword(s)")
    for kid, exc in failed.items():
        print(f"  {kid}: {exc}")
    return 1 if failed else 0


async def _cmd_serp_history(dash: SeoDashboard, args: argparse.Namespace) -> int:
    page = await dash.get_rank_history(args.project_id, args.keyword_id)
    rows = [
        [format_timestamp(o.observed_at), position_badge(o.rank).label, getattr(o.status, "value", o.status), o.url or "-"]
        for o in page
    ]
    _print_page("Rank history", ["Observed", "Rank", "Status", "URL"], rows, page.count)
    return 0


async def _cmd_serp_snapshot(dash: SeoDashboard, args: argparse.Namespace) -> int:
    snap = await dash.get_latest_snapshot(args.project_id, args.keyword_id)
    print(f"Snapshot captured {format_timestamp(snap.captured_at)}\n")
    rows = [[r.position, r.domain, r.title, url_path(r.url)] for r in snap.results]
    print(_format_table(["#", "Domain", "Title", "Path"], rows))
    return 0


# ---------------------------------------------------------------------------
# Traffic
# ---------------------------------------------------------------------------


async def _cmd_traffic_panel(dash: SeoDashboard, args: argparse.Namespace) -> int:
    panel = await dash.get_traffic_panel(args.project_id, args.period)
    available = ", ".join(name for name, on in panel.sources_available.items() if on) or "none"
    print(f"Traffic (last {args.period} days, sources: {available})\n")
    rows = [
        [
            p.date,
            format_number(p.ga4_sessions),
            format_number(p.ga4_users),
            format_number(p.gsc_clicks),
            f"{p.lcp:.2f}s" if p.lcp is not None else "--",
            f"{p.cls:.3f}" if p.cls is not None else "--",
        ]
        for p in panel.data
    ]
    print(_format_table(["Date", "Sessions", "Users", "GSC clicks", "LCP", "CLS"], rows))
    return 0


async def _cmd_traffic_sources(dash: SeoDashboard, args: argparse.Namespace) -> int:
    sources = await dash.get_traffic_sources(args.project_id)
    rows = [
        ["GA4", "yes" if sources.ga4_connected else "no"],
        ["Search Console", "yes" if sources.gsc_connected else "no"],
        ["CrUX", "yes" if sources.crux_available else "no"],
    ]
    print(_format_table(["Source", "Available"], rows))
    return 0


async def _cmd_traffic_import(dash: SeoDashboard, args: argparse.Namespace) -> int:
    path = validate_csv_upload(args.csv_path)
    try:
        missing = check_csv_header(path)
    except (UnicodeDecodeError, csv.Error) as exc:
        # Header check only; the upload still goes ahead.
        logger.warning("Could not read header of %s: %s", path.name, exc)
        missing = []
    if missing:
        logger.warning("CSV %s is missing column(s): %s", path.name, ", ".join(missing))
    result = await dash.import_traffic_csv(args.project_id, path)
    print(f"Imported {result.rows_imported} row(s)")
    return 0


# ---------------------------------------------------------------------------
# Ads
# ---------------------------------------------------------------------------


async def _cmd_ads_campaigns(dash: SeoDashboard, args: argparse.Namespace) -> int:
    report = await dash.get_campaigns(args.project_id, args.period)
    rows = [
        [
            c.campaign_name,
            campaign_status_badge(c.status).label,
            format_number(c.impressions),
            format_number(c.clicks),
            format_percentage(c.ctr),
            format_currency(c.average_cpc_micros),
            format_currency(c.cost_micros),
            format_number(c.conversions),
        ]
        for c in report.data
    ]
    _print_page(
        f"Campaigns (last {report.period_days} days)",
        ["Campaign", "Status", "Impr.", "Clicks", "CTR", "Avg CPC", "Cost", "Conv."],
        rows,
        report.count,
    )
    totals = campaign_totals(report.data)
    print(
        f"\nTotal: {format_number(totals.impressions)} impressions, {format_number(totals.clicks)} clicks, "
        f"{format_currency(totals.cost_micros)} spent, CTR {format_percentage(totals.avg_ctr)}, "
        f"avg CPC {format_currency(totals.avg_cpc_micros)}"
    )
    return 0


async def _cmd_ads_overlap(dash: SeoDashboard, args: argparse.Namespace) -> int:
    report = await dash.get_ppc_overlap(
        args.project_id,
        overlap_type=args.type,
        sort_by=args.sort_by,
        sort_order=args.sort_order,
        limit=args.limit,
    )
    s = report.summary
    print(f"{s.total_keywords} keywords: {s.overlap_count} both, {s.paid_only_count} paid only, {s.organic_only_count} organic only\n")
    rows = [
        [
            k.keyword,
            overlap_badge(k.overlap_type).label,
            format_number(k.paid_clicks),
            format_currency(k.paid_cost_micros),
            format_number(k.organic_clicks),
            format_position(k.organic_position) if k.organic_position else "--",
            f"{k.opportunity_score:.1f}",
        ]
        for k in report.data
    ]
    print(_format_table(["Keyword", "Overlap", "Paid clicks", "Paid cost", "Organic clicks", "Position", "Score"], rows))
    return 0


async def _cmd_ads_sync(dash: SeoDashboard, args: argparse.Namespace) -> int:
    accepted = await dash.sync_ads(args.project_id)
    print(accepted.message or "Ads sync queued")
    return 0


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def _add_paging(parser: argparse.ArgumentParser, limit: int = 50) -> None:
    parser.add_argument("--skip", type=int, default=0, help="Rows to skip")
    parser.add_argument("--limit", type=int, default=limit, help=f"Rows to fetch (default {limit})")


def _add_report_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("project_id")
    parser.add_argument("--start-date", help="YYYY-MM-DD")
    parser.add_argument("--end-date", help="YYYY-MM-DD")
    parser.add_argument("--sort-by", choices=["clicks", "impressions", "ctr", "position"])
    parser.add_argument("--sort-order", choices=["asc", "desc"])
    parser.add_argument("--limit", type=int, default=50)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="seo-dashboard",
        description="SEO analytics dashboard client",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--base-url", help="Backend root URL (default: $SEO_API_BASE_URL)")
    parser.add_argument("--token", help="Bearer token (default: $SEO_API_TOKEN)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    groups = parser.add_subparsers(dest="group")

    # -- projects --
    projects = groups.add_parser("projects", help="Manage projects").add_subparsers(dest="command")
    p = projects.add_parser("list", help="List projects")
    _add_paging(p, limit=100)
    p.set_defaults(func=_cmd_projects_list)
    p = projects.add_parser("show", help="Show one project")
    p.add_argument("project_id")
    p.set_defaults(func=_cmd_projects_show)
    p = projects.add_parser("create", help="Create a project")
    p.add_argument("--name", required=True)
    p.add_argument("--seed-url", required=True)
    p.add_argument("--description")
    p.set_defaults(func=_cmd_projects_create)
    p = projects.add_parser("update", help="Update a project")
    p.add_argument("project_id")
    p.add_argument("--name")
    p.add_argument("--seed-url")
    p.add_argument("--description")
    p.set_defaults(func=_cmd_projects_update)
    p = projects.add_parser("delete", help="Delete a project")
    p.add_argument("project_id")
    p.set_defaults(func=_cmd_projects_delete)

    # -- audits --
    audits = groups.add_parser("audits", help="Site audits").add_subparsers(dest="command")
    p = audits.add_parser("list", help="List audit runs")
    p.add_argument("project_id")
    p.set_defaults(func=_cmd_audits_list)
    p = audits.add_parser("start", help="Start an audit")
    p.add_argument("project_id")
    p.add_argument("--watch", action="store_true", help="Poll until the audit finishes")
    p.add_argument("--interval", type=float, default=AUDIT_POLL_INTERVAL)
    p.set_defaults(func=_cmd_audits_start)
    p = audits.add_parser("watch", help="Poll an audit until it finishes")
    p.add_argument("project_id")
    p.add_argument("audit_id")
    p.add_argument("--interval", type=float, default=AUDIT_POLL_INTERVAL)
    p.set_defaults(func=_cmd_audits_watch)
    p = audits.add_parser("issues", help="List issues of an audit")
    p.add_argument("project_id")
    p.add_argument("audit_id")
    p.add_argument("--severity", choices=[s.value for s in IssueSeverity])
    p.add_argument("--issue-type")
    p.add_argument("--new", action="store_true", help="Only issues new in this run")
    _add_paging(p)
    p.set_defaults(func=_cmd_audits_issues)
    p = audits.add_parser("pages", help="List crawled pages of an audit")
    p.add_argument("project_id")
    p.add_argument("audit_id")
    p.add_argument("--status-code", type=int)
    _add_paging(p)
    p.set_defaults(func=_cmd_audits_pages)

    # -- gsc --
    gsc = groups.add_parser("gsc", help="Google Search Console").add_subparsers(dest="command")
    p = gsc.add_parser("properties", help="List linked properties")
    p.add_argument("project_id")
    p.set_defaults(func=_cmd_gsc_properties)
    p = gsc.add_parser("link", help="Link a GSC property")
    p.add_argument("project_id")
    p.add_argument("site_url")
    p.set_defaults(func=_cmd_gsc_link)
    p = gsc.add_parser("sync", help="Trigger a sync (or a backfill with --backfill DAYS)")
    p.add_argument("project_id")
    p.add_argument("--backfill", type=int, metavar="DAYS")
    p.set_defaults(func=_cmd_gsc_sync)
    p = gsc.add_parser("queries", help="Top queries")
    _add_report_args(p)
    p.set_defaults(func=_cmd_gsc_queries)
    p = gsc.add_parser("pages", help="Top pages")
    _add_report_args(p)
    p.set_defaults(func=_cmd_gsc_pages)
    p = gsc.add_parser("opportunities", help="Keyword opportunities")
    _add_report_args(p)
    p.add_argument("--type", choices=[t.value for t in OpportunityType])
    p.set_defaults(func=_cmd_gsc_opportunities)
    p = gsc.add_parser("clusters", help="Keyword clusters")
    p.add_argument("project_id")
    p.add_argument("cluster_id", nargs="?")
    p.add_argument("--generate", action="store_true", help="Queue cluster generation")
    p.set_defaults(func=_cmd_gsc_clusters)

    # -- integrations --
    integrations = groups.add_parser("integrations", help="Google account connections").add_subparsers(dest="command")
    p = integrations.add_parser("status", help="Connection status")
    p.set_defaults(func=_cmd_integrations_status)
    p = integrations.add_parser("connect", help="Print the Google authorization URL")
    p.add_argument("service", choices=[s.value for s in GoogleService])
    p.set_defaults(func=_cmd_integrations_connect)
    p = integrations.add_parser("disconnect", help="Disconnect a Google service")
    p.add_argument("service", choices=[s.value for s in GoogleService])
    p.set_defaults(func=_cmd_integrations_disconnect)

    # -- links --
    links = groups.add_parser("links", help="Backlink analysis").add_subparsers(dest="command")
    p = links.add_parser("refdomains", help="Referring domains")
    p.add_argument("domain")
    p.add_argument("--limit", type=int, default=50)
    p.set_defaults(func=_cmd_links_refdomains)
    p = links.add_parser("backlinks", help="Backlinks")
    p.add_argument("domain")
    p.add_argument("--ref-domain")
    p.add_argument("--limit", type=int, default=50)
    p.set_defaults(func=_cmd_links_backlinks)
    p = links.add_parser("anchors", help="Anchor text distribution")
    p.add_argument("domain")
    p.add_argument("--limit", type=int, default=100)
    p.add_argument("--top", type=int, default=10)
    p.set_defaults(func=_cmd_links_anchors)
    for name, func, help_text in (
        ("overlap", _cmd_links_overlap, "Domains linking to the target and competitors"),
        ("intersect", _cmd_links_intersect, "Domains linking only to competitors"),
    ):
        p = links.add_parser(name, help=help_text)
        p.add_argument("domain")
        p.add_argument("--competitor", action="append", required=True, help="Repeat for each competitor")
        p.add_argument("--max-competitors", type=int, default=5)
        p.set_defaults(func=func)

    # -- serp --
    serp = groups.add_parser("serp", help="Rank tracker").add_subparsers(dest="command")
    p = serp.add_parser("list", help="Tracked keywords")
    p.add_argument("project_id")
    p.add_argument("--watch", action="store_true", help="Refresh the table every 30 seconds")
    p.add_argument("--delta-convention", choices=[c.value for c in PositionDeltaConvention])
    p.set_defaults(func=_cmd_serp_list)
    p = serp.add_parser("add", help="Track a keyword")
    p.add_argument("project_id")
    p.add_argument("keyword")
    p.add_argument("--locale", default="us")
    p.add_argument("--device", default=Device.DESKTOP.value, choices=[d.value for d in Device])
    p.set_defaults(func=_cmd_serp_add)
    p = serp.add_parser("refresh", help="Refresh one keyword, or all active ones")
    p.add_argument("project_id")
    p.add_argument("keyword_id", nargs="?")
    p.set_defaults(func=_cmd_serp_refresh)
    p = serp.add_parser("history", help="Rank history of a keyword")
    p.add_argument("project_id")
    p.add_argument("keyword_id")
    p.set_defaults(func=_cmd_serp_history)
    p = serp.add_parser("snapshot", help="Latest SERP snapshot of a keyword")
    p.add_argument("project_id")
    p.add_argument("keyword_id")
    p.set_defaults(func=_cmd_serp_snapshot)

    # -- traffic --
    traffic = groups.add_parser("traffic", help="Traffic panel").add_subparsers(dest="command")
    p = traffic.add_parser("panel", help="Daily traffic and vitals")
    p.add_argument("project_id")
    p.add_argument("--period", type=int, default=28, help="Days (default 28)")
    p.set_defaults(func=_cmd_traffic_panel)
    p = traffic.add_parser("sources", help="Connected traffic sources")
    p.add_argument("project_id")
    p.set_defaults(func=_cmd_traffic_sources)
    p = traffic.add_parser("import-csv", help="Import traffic from a CSV file")
    p.add_argument("project_id")
    p.add_argument("csv_path")
    p.set_defaults(func=_cmd_traffic_import)

    # -- ads --
    ads = groups.add_parser("ads", help="Google Ads").add_subparsers(dest="command")
    p = ads.add_parser("campaigns", help="Campaign performance")
    p.add_argument("project_id")
    p.add_argument("--period", type=int, help="Days (backend default 30)")
    p.set_defaults(func=_cmd_ads_campaigns)
    p = ads.add_parser("overlap", help="SEO/PPC keyword overlap")
    p.add_argument("project_id")
    p.add_argument("--type", choices=[t.value for t in OverlapType])
    p.add_argument("--sort-by")
    p.add_argument("--sort-order", choices=["asc", "desc"])
    p.add_argument("--limit", type=int)
    p.set_defaults(func=_cmd_ads_overlap)
    p = ads.add_parser("sync", help="Trigger an Ads sync")
    p.add_argument("project_id")
    p.set_defaults(func=_cmd_ads_sync)

    return parser


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


async def _run_command(func: CommandFn, args: argparse.Namespace) -> int:
    config = ClientConfig.from_env(base_url=args.base_url, token=args.token)
    async with SeoDashboard(config=config) as dash:
        return await func(dash, args)


def main(argv: Optional[List[str]] = None) -> int:
    """
    CLI entry point. Returns an exit code (0 = success, 1 = error, 2 = usage error).
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    func = getattr(args, "func", None)
    if func is None:
        parser.print_help()
        return 2

    try:
        return asyncio.run(_run_command(func, args))
    except ValidationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        for name, message in exc.field_errors().items():
            print(f"  {name}: {message}", file=sys.stderr)
        return 1
    except FormValidationError as exc:
        print("Error: invalid input", file=sys.stderr)
        for name, message in exc.errors.items():
            print(f"  {name}: {message}", file=sys.stderr)
        return 1
    except PollingTimeout as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except (ApiError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nAborted.")
        return 130


if __name__ == "__main__":
    sys.exit(main())
