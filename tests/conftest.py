"""
Shared fixtures for the SEO dashboard client test suite.

Provides sample backend payloads and reusable aiohttp mocks so that all
tests run WITHOUT a backend.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from seo_dashboard.client import ApiClient, ClientConfig


# ---------------------------------------------------------------------------
# HTTP mock fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_aiohttp_response():
    """Create a mock aiohttp response factory."""

    def _make(status=200, json_data=None, text="", headers=None):
        resp = AsyncMock()
        resp.status = status
        resp.json = AsyncMock(return_value=json_data if json_data is not None else {})
        resp.text = AsyncMock(return_value=text)
        resp.headers = headers or {"Content-Type": "application/json"}
        resp.__aenter__ = AsyncMock(return_value=resp)
        resp.__aexit__ = AsyncMock(return_value=False)
        return resp

    return _make


def _make_mock_session(*responses):
    """Create a mock aiohttp session whose .request() is an async context manager.

    The client uses ``async with session.request(method, url, **kwargs) as resp``.
    Each call yields the next response; the last one repeats.
    """
    mock_session = AsyncMock()
    queue = list(responses)

    def _request(*args, **kwargs):
        resp = queue.pop(0) if len(queue) > 1 else queue[0]
        ctx = AsyncMock()
        ctx.__aenter__ = AsyncMock(return_value=resp)
        ctx.__aexit__ = AsyncMock(return_value=False)
        return ctx

    mock_session.request = MagicMock(side_effect=_request)
    mock_session.close = AsyncMock()
    mock_session.closed = False
    return mock_session


@pytest.fixture
def make_session():
    """Factory fixture for mocked sessions; see ``_make_mock_session``."""
    return _make_mock_session


@pytest.fixture
def api():
    """ApiClient pointed at a fake backend with retries disabled."""
    return ApiClient(ClientConfig(base_url="http://seo.test", token="secret", max_retries=0))


@pytest.fixture
def fake_api():
    """An ApiClient stand-in whose verb methods are AsyncMocks."""
    mock = MagicMock(spec=ApiClient)
    mock.config = ClientConfig(base_url="http://seo.test")
    mock.get = AsyncMock(return_value={})
    mock.post = AsyncMock(return_value={})
    mock.put = AsyncMock(return_value={})
    mock.delete = AsyncMock(return_value={})
    mock.close = AsyncMock()
    return mock


# ---------------------------------------------------------------------------
# Sample payloads
# ---------------------------------------------------------------------------

@pytest.fixture
def project_payload():
    return {
        "id": "p1",
        "name": "Example",
        "seed_url": "https://www.example.com/blog",
        "description": None,
        "created_by_id": "u1",
        "settings": {"max_pages": 200, "enable_js_rendering": True},
        "created_at": "2026-01-05T15:04:00Z",
        "updated_at": "2026-01-05T15:04:00Z",
        "last_audit_at": None,
        "future_field": "ignored",
    }


@pytest.fixture
def audit_payload():
    def _make(status="crawling", **overrides):
        data = {
            "id": "a1",
            "project_id": "p1",
            "status": status,
            "config": {},
            "stats": None,
            "progress_pct": 40.0,
            "progress_message": "Crawled 40 of 100 pages",
            "started_at": "2026-01-05T15:00:00Z",
            "finished_at": None,
            "error_message": None,
            "created_at": "2026-01-05T14:59:00Z",
        }
        data.update(overrides)
        return data

    return _make


@pytest.fixture
def audit_stats_payload():
    return {
        "total_pages": 100,
        "pages_ok": 90,
        "pages_redirect": 5,
        "pages_error": 5,
        "total_issues": 12,
        "issues_critical": 1,
        "issues_high": 2,
        "issues_medium": 4,
        "issues_low": 5,
    }


@pytest.fixture
def keyword_payload():
    def _make(keyword_id="k1", **overrides):
        data = {
            "id": keyword_id,
            "project_id": "p1",
            "keyword": "running shoes",
            "locale": "us",
            "device": "desktop",
            "search_engine": "google",
            "provider_key": "serpapi",
            "refresh_frequency_hours": 24,
            "is_active": True,
            "latest_position": 4,
            "position_change": 2,
            "last_refresh_at": "2026-01-05T15:04:00Z",
            "last_refresh_status": "success",
        }
        data.update(overrides)
        return data

    return _make


@pytest.fixture
def campaigns_payload():
    return {
        "data": [
            {
                "campaign_id": "c1",
                "campaign_name": "Brand",
                "impressions": 1000,
                "clicks": 50,
                "cost_micros": 25_000_000,
                "conversions": 3.0,
                "ctr": 0.05,
                "average_cpc_micros": 500_000,
                "status": "ENABLED",
            },
            {
                "campaign_id": "c2",
                "campaign_name": "Generic",
                "impressions": 3000,
                "clicks": 150,
                "cost_micros": 75_000_000,
                "conversions": 1.5,
                "ctr": 0.05,
                "average_cpc_micros": 500_000,
                "status": "PAUSED",
            },
        ],
        "count": 2,
        "period_days": 30,
    }


@pytest.fixture
def traffic_csv(tmp_path):
    path = tmp_path / "traffic.csv"
    path.write_text(
        "date,ga4_sessions,ga4_users,gsc_clicks,lcp,cls\n"
        "2026-01-01,120,100,40,2.1,0.05\n"
        "2026-01-02,130,105,42,2.0,0.04\n",
        encoding="utf-8",
    )
    return path
