"""
Tests for the HTTP transport.

Tests cover ClientConfig, the path/query marshaling helpers and ApiClient
request handling (error mapping, retry, multipart) with mocked HTTP.
"""

from unittest.mock import AsyncMock, patch

import aiohttp
import pytest

from seo_dashboard.audits import AuditsService
from seo_dashboard.client import (
    ApiClient,
    ApiError,
    AuthenticationError,
    ClientConfig,
    ConfigurationError,
    NotFoundError,
    RateLimitError,
    ValidationError,
    build_path,
    clean_params,
)
from seo_dashboard.models import IssueSeverity


# ===================================================================
# TestClientConfig
# ===================================================================

class TestClientConfig:
    """Test ClientConfig construction and derived values."""

    @pytest.mark.unit
    def test_from_env(self, monkeypatch):
        """Environment variables populate the config."""
        monkeypatch.setenv("SEO_API_BASE_URL", "https://seo.example.com/")
        monkeypatch.setenv("SEO_API_TOKEN", "abc")
        monkeypatch.setenv("SEO_API_TIMEOUT", "12.5")
        monkeypatch.setenv("SEO_API_MAX_RETRIES", "5")
        config = ClientConfig.from_env()
        assert config.base_url == "https://seo.example.com/"
        assert config.token == "abc"
        assert config.timeout == 12.5
        assert config.max_retries == 5

    @pytest.mark.unit
    def test_overrides_win_over_env(self, monkeypatch):
        """Explicit arguments take precedence; None overrides are ignored."""
        monkeypatch.setenv("SEO_API_BASE_URL", "https://env.example.com")
        config = ClientConfig.from_env(base_url="https://arg.example.com", token=None)
        assert config.base_url == "https://arg.example.com"

    @pytest.mark.unit
    def test_bad_numeric_env_falls_back(self, monkeypatch):
        monkeypatch.setenv("SEO_API_TIMEOUT", "soon")
        assert ClientConfig.from_env().timeout == 30.0

    @pytest.mark.unit
    def test_api_root_strips_trailing_slash(self):
        config = ClientConfig(base_url="https://seo.example.com/")
        assert config.api_root == "https://seo.example.com/api/v1"

    @pytest.mark.unit
    def test_api_root_requires_base_url(self):
        with pytest.raises(ConfigurationError):
            ClientConfig(base_url="").api_root

    @pytest.mark.unit
    def test_auth_header(self):
        assert ClientConfig(token="t0k").auth_header == "Bearer t0k"
        assert ClientConfig(token="").auth_header == ""

    @pytest.mark.unit
    def test_repr_hides_token(self):
        assert "t0k" not in repr(ClientConfig(token="t0k"))


# ===================================================================
# TestMarshaling
# ===================================================================

class TestMarshaling:
    """Test build_path and clean_params."""

    @pytest.mark.unit
    def test_build_path_quotes_values(self):
        path = build_path("/links/domain/{domain}/anchors", {"domain": "a b/c"})
        assert path == "/links/domain/a%20b%2Fc/anchors"

    @pytest.mark.unit
    def test_build_path_unknown_placeholder(self):
        with pytest.raises(ValueError):
            build_path("/projects/{id}", {"project_id": "p1"})

    @pytest.mark.unit
    def test_build_path_unfilled_placeholder(self):
        with pytest.raises(ValueError):
            build_path("/projects/{project_id}/audits/{audit_id}", {"project_id": "p1"})

    @pytest.mark.unit
    def test_clean_params(self):
        params = clean_params({
            "skip": 0,
            "severity": IssueSeverity.HIGH,
            "is_new": True,
            "is_rendered": False,
            "issue_type": None,
            "competitors": ["a.com", "b.com"],
        })
        assert params == {
            "skip": "0",
            "severity": "high",
            "is_new": "true",
            "is_rendered": "false",
            "competitors": "a.com,b.com",
        }


# ===================================================================
# TestApiClient
# ===================================================================

class TestApiClient:
    """Test ApiClient.request with mocked HTTP."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_get_success(self, api, mock_aiohttp_response, make_session):
        """GET builds the full URL, cleans params and returns the JSON body."""
        session = make_session(mock_aiohttp_response(200, {"data": [], "count": 0}))

        with patch.object(api, "_get_session", return_value=session):
            body = await api.get("/projects/", params={"skip": 0, "limit": 10, "q": None})

        assert body == {"data": [], "count": 0}
        args, kwargs = session.request.call_args
        assert args == ("GET", "http://seo.test/api/v1/projects/")
        assert kwargs["params"] == {"skip": "0", "limit": "10"}
        assert "json" not in kwargs

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_post_sends_json(self, api, mock_aiohttp_response, make_session):
        session = make_session(mock_aiohttp_response(201, {"id": "p1"}))

        with patch.object(api, "_get_session", return_value=session):
            await api.post("/projects/", json_data={"name": "x"})

        _, kwargs = session.request.call_args
        assert kwargs["json"] == {"name": "x"}

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_non_json_body_falls_back_to_text(self, api, mock_aiohttp_response, make_session):
        resp = mock_aiohttp_response(200, text="plain")
        resp.json = AsyncMock(side_effect=ValueError("not json"))
        session = make_session(resp)

        with patch.object(api, "_get_session", return_value=session):
            assert await api.get("/health") == "plain"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_422_raises_validation_error(self, api, mock_aiohttp_response, make_session):
        """422 responses surface the backend detail as field errors."""
        detail = {
            "detail": [
                {"loc": ["body", "seed_url"], "msg": "invalid or missing URL scheme", "type": "value_error.url"},
                {"loc": ["body", "name"], "msg": "field required", "type": "value_error.missing"},
            ]
        }
        session = make_session(mock_aiohttp_response(422, detail))

        with patch.object(api, "_get_session", return_value=session):
            with pytest.raises(ValidationError) as exc_info:
                await api.post("/projects/", json_data={})

        err = exc_info.value
        assert err.status_code == 422
        assert err.field_errors() == {
            "seed_url": "invalid or missing URL scheme",
            "name": "field required",
        }
        assert "invalid or missing URL scheme" in str(err)

    @pytest.mark.unit
    def test_validation_error_string_detail(self):
        err = ValidationError("bad", status_code=422, response_body={"detail": "Project name taken"})
        assert err.field_errors() == {"__root__": "Project name taken"}

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,exc_type", [
        (401, AuthenticationError),
        (403, AuthenticationError),
        (404, NotFoundError),
        (429, RateLimitError),
        (500, ApiError),
    ])
    async def test_error_mapping(self, api, mock_aiohttp_response, make_session, status, exc_type):
        session = make_session(mock_aiohttp_response(status, {"detail": "nope"}))

        with patch.object(api, "_get_session", return_value=session):
            with pytest.raises(exc_type) as exc_info:
                await api.get("/projects/{id}", path_params={"id": "p1"})

        assert exc_info.value.status_code == status
        assert exc_info.value.response_body == {"detail": "nope"}

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_retries_transient_get(self, mock_aiohttp_response, make_session):
        """A 503 followed by 200 succeeds after one backoff sleep."""
        client = ApiClient(ClientConfig(base_url="http://seo.test", max_retries=2))
        session = make_session(
            mock_aiohttp_response(503, {"detail": "busy"}),
            mock_aiohttp_response(200, {"ok": True}),
        )

        with patch.object(client, "_get_session", return_value=session), \
                patch("seo_dashboard.client.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            body = await client.get("/projects/")

        assert body == {"ok": True}
        assert session.request.call_count == 2
        mock_sleep.assert_awaited_once_with(1.0)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_retry_after_header_honoured(self, mock_aiohttp_response, make_session):
        client = ApiClient(ClientConfig(base_url="http://seo.test", max_retries=1))
        session = make_session(
            mock_aiohttp_response(429, {}, headers={"Retry-After": "5"}),
            mock_aiohttp_response(200, {"ok": True}),
        )

        with patch.object(client, "_get_session", return_value=session), \
                patch("seo_dashboard.client.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            await client.get("/projects/")

        mock_sleep.assert_awaited_once_with(5.0)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_rate_limit_after_retries_exhausted(self, mock_aiohttp_response, make_session):
        client = ApiClient(ClientConfig(base_url="http://seo.test", max_retries=1))
        session = make_session(mock_aiohttp_response(429, {}))

        with patch.object(client, "_get_session", return_value=session), \
                patch("seo_dashboard.client.asyncio.sleep", new_callable=AsyncMock):
            with pytest.raises(RateLimitError):
                await client.get("/projects/")

        assert session.request.call_count == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_post_not_retried_on_500(self, mock_aiohttp_response, make_session):
        """A POST that may have been applied is never replayed on 500."""
        client = ApiClient(ClientConfig(base_url="http://seo.test", max_retries=3))
        session = make_session(mock_aiohttp_response(500, {"detail": "boom"}))

        with patch.object(client, "_get_session", return_value=session), \
                patch("seo_dashboard.client.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            with pytest.raises(ApiError) as exc_info:
                await client.post("/projects/p1/audits/")

        assert exc_info.value.status_code == 500
        assert session.request.call_count == 1
        mock_sleep.assert_not_awaited()

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [429, 503])
    async def test_post_sent_once_even_when_server_busy(self, mock_aiohttp_response, make_session, status):
        """Starting an audit must not queue a second run behind a busy proxy."""
        client = ApiClient(ClientConfig(base_url="http://seo.test", max_retries=3))
        session = make_session(
            mock_aiohttp_response(status, {"detail": "busy"}),
            mock_aiohttp_response(201, {"id": "a1", "project_id": "p1", "status": "queued"}),
        )

        with patch.object(client, "_get_session", return_value=session), \
                patch("seo_dashboard.client.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            with pytest.raises(ApiError) as exc_info:
                await AuditsService(client).start_audit("p1")

        assert exc_info.value.status_code == status
        assert session.request.call_count == 1
        mock_sleep.assert_not_awaited()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_post_not_retried_on_network_error(self, make_session, mock_aiohttp_response):
        client = ApiClient(ClientConfig(base_url="http://seo.test", max_retries=3))
        session = make_session(mock_aiohttp_response(200))
        session.request.side_effect = aiohttp.ClientConnectionError("reset")

        with patch.object(client, "_get_session", return_value=session), \
                patch("seo_dashboard.client.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            with pytest.raises(ApiError, match="Network error"):
                await client.post("/projects/p1/serp/keywords/k1/refresh")

        assert session.request.call_count == 1
        mock_sleep.assert_not_awaited()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_network_error_raises_api_error(self, api, make_session, mock_aiohttp_response):
        session = make_session(mock_aiohttp_response(200))
        session.request.side_effect = aiohttp.ClientConnectionError("refused")

        with patch.object(api, "_get_session", return_value=session):
            with pytest.raises(ApiError, match="Network error"):
                await api.get("/projects/")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_multipart_upload(self, api, mock_aiohttp_response, make_session):
        """files= is sent as multipart form data."""
        session = make_session(mock_aiohttp_response(200, {"rows_imported": 2}))

        with patch.object(api, "_get_session", return_value=session):
            await api.post(
                "/projects/{project_id}/traffic/import-csv",
                path_params={"project_id": "p1"},
                files={"file": ("t.csv", b"date\n", "text/csv")},
            )

        args, kwargs = session.request.call_args
        assert args[1] == "http://seo.test/api/v1/projects/p1/traffic/import-csv"
        assert isinstance(kwargs["data"], aiohttp.FormData)
        assert "json" not in kwargs

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_close_closes_session(self, api):
        session = AsyncMock()
        session.closed = False
        api._session = session
        await api.close()
        session.close.assert_awaited_once()
        assert api._session is None

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_async_context_manager(self):
        async with ApiClient(ClientConfig(base_url="http://seo.test")) as client:
            assert isinstance(client, ApiClient)
