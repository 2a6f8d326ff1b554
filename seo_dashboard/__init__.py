"""
SEO Dashboard Client

Async client, query cache and CLI for the SEO analytics backend:
projects, site audits, Search Console, backlinks, rank tracking,
traffic and Google Ads.

Usage:
    from seo_dashboard.dashboard import get_dashboard

    dash = get_dashboard()
    projects = await dash.list_projects()
    run = await dash.start_audit(projects.data[0].id)
    final = await dash.wait_for_audit(run.project_id, run.id)
"""

__version__ = "1.0.0"
