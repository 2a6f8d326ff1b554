"""
HTTP transport for the SEO dashboard backend.

Async client for the ``/api/v1`` REST surface of the SEO analytics backend.
Handles session management, bearer authentication, path/query marshaling,
retry with exponential backoff on transient failures, and mapping HTTP error
codes (most importantly 422 validation errors) onto typed exceptions.

The per-resource wrappers (projects, audits, gsc, links, serp, traffic, ads)
sit on top of :class:`ApiClient` and never touch aiohttp directly.

Usage:
    from seo_dashboard.client import ApiClient, ClientConfig

    async with ApiClient(ClientConfig.from_env()) as api:
        body = await api.get("/projects/", params={"limit": 10})

Configuration (environment):
    SEO_API_BASE_URL       Backend root, default http://localhost:8000
    SEO_API_TOKEN          Bearer token (optional)
    SEO_API_TIMEOUT        Request timeout in seconds, default 30
    SEO_API_MAX_RETRIES    Retries on transient errors, default 3
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple
from urllib.parse import quote

import aiohttp

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logger = logging.getLogger("seo_client")
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

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DEFAULT_BASE_URL = "http://localhost:8000"
API_PREFIX = "/api/v1"
USER_AGENT = "seo-dashboard-client/1.0"

# Retry configuration
MAX_RETRIES = 3
RETRY_BASE_DELAY = 1.0  # seconds
RETRY_STATUS_CODES = {429, 500, 502, 503, 504}

# Only these methods are retried; a POST may already have been applied.
IDEMPOTENT_METHODS = {"GET", "HEAD", "OPTIONS", "PUT", "DELETE"}

DEFAULT_TIMEOUT = 30.0


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ApiError(Exception):
    """Base exception for backend API errors."""

    def __init__(self, message: str, status_code: int = 0, response_body: Any = ""):
        self.status_code = status_code
        self.response_body = response_body
        super().__init__(message)


class ValidationError(ApiError):
    """Raised on 422 responses. Carries the backend's ``detail`` payload."""

    @property
    def detail(self) -> Any:
        if isinstance(self.response_body, dict):
            return self.response_body.get("detail")
        return None

    def field_errors(self) -> Dict[str, str]:
        """
        Flatten a FastAPI-style ``detail`` list into ``{field: message}``.

        ``loc`` entries look like ``["body", "seed_url"]``; the leading
        location segment is dropped. A string ``detail`` maps to ``"__root__"``.
        """
        detail = self.detail
        if isinstance(detail, str):
            return {"__root__": detail}
        errors: Dict[str, str] = {}
        if not isinstance(detail, list):
            return errors
        for item in detail:
            if not isinstance(item, dict):
                continue
            loc = [str(part) for part in item.get("loc", [])]
            if len(loc) > 1 and loc[0] in ("body", "query", "path"):
                loc = loc[1:]
            key = ".".join(loc) or "__root__"
            errors.setdefault(key, str(item.get("msg", "Invalid value")))
        return errors


class AuthenticationError(ApiError):
    """Raised on 401/403 responses."""
    pass


class NotFoundError(ApiError):
    """Raised on 404 responses."""
    pass


class RateLimitError(ApiError):
    """Raised on 429 responses after all retries exhausted."""
    pass


class ConfigurationError(ApiError):
    """Raised when the client is missing required configuration."""
    pass


# ---------------------------------------------------------------------------
# ClientConfig dataclass
# ---------------------------------------------------------------------------


@dataclass
class ClientConfig:
    """Connection settings for the backend."""

    base_url: str = DEFAULT_BASE_URL
    token: str = ""
    timeout: float = DEFAULT_TIMEOUT
    max_retries: int = MAX_RETRIES
    user_agent: str = USER_AGENT

    @classmethod
    def from_env(cls, **overrides: Any) -> ClientConfig:
        """
        Build a config from ``SEO_API_*`` environment variables.

        Keyword arguments that are not ``None`` take precedence over the
        environment.
        """
        values: Dict[str, Any] = {
            "base_url": os.getenv("SEO_API_BASE_URL", DEFAULT_BASE_URL),
            "token": os.getenv("SEO_API_TOKEN", ""),
            "timeout": _env_float("SEO_API_TIMEOUT", DEFAULT_TIMEOUT),
            "max_retries": int(_env_float("SEO_API_MAX_RETRIES", MAX_RETRIES)),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    @property
    def api_root(self) -> str:
        """Base URL including the ``/api/v1`` prefix, without trailing slash."""
        if not self.base_url:
            raise ConfigurationError("No backend base URL configured (SEO_API_BASE_URL)")
        return self.base_url.rstrip("/") + API_PREFIX

    @property
    def auth_header(self) -> str:
        if not self.token:
            return ""
        return f"Bearer {self.token}"

    def __repr__(self) -> str:
        auth = "token" if self.token else "anonymous"
        return f"ClientConfig({self.base_url!r}, {auth})"


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "")
    if not raw:
        return float(default)
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r", name, raw)
        return float(default)


# ---------------------------------------------------------------------------
# Marshaling helpers
# ---------------------------------------------------------------------------


def build_path(template: str, path_params: Optional[Mapping[str, Any]] = None) -> str:
    """
    Interpolate ``{name}`` placeholders in an endpoint template.

    Values are percent-encoded so ids and domains cannot escape their
    path segment.

    >>> build_path("/projects/{id}", {"id": "a b"})
    '/projects/a%20b'
    """
    path = template
    for name, value in (path_params or {}).items():
        placeholder = "{" + name + "}"
        if placeholder not in path:
            raise ValueError(f"Path template {template!r} has no placeholder {placeholder}")
        path = path.replace(placeholder, quote(str(value), safe=""))
    if "{" in path:
        raise ValueError(f"Unfilled placeholder in path {path!r}")
    return path


def clean_params(params: Optional[Mapping[str, Any]]) -> Dict[str, str]:
    """
    Prepare query parameters for the wire.

    ``None`` values are dropped, booleans become ``true``/``false``, enums
    send their value and lists/tuples are comma-joined.
    """
    cleaned: Dict[str, str] = {}
    for key, value in (params or {}).items():
        if value is None:
            continue
        if isinstance(value, bool):
            cleaned[key] = "true" if value else "false"
        elif isinstance(value, (list, tuple)):
            cleaned[key] = ",".join(str(getattr(v, "value", v)) for v in value)
        else:
            cleaned[key] = str(getattr(value, "value", value))
    return cleaned


# ---------------------------------------------------------------------------
# Async event loop helpers
# ---------------------------------------------------------------------------


def _run_sync(coro):
    """Run an async coroutine synchronously."""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        loop = None

    if loop and loop.is_running():
        # Already inside a running loop (e.g. Jupyter): run on a worker thread.
        import concurrent.futures

        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            future = pool.submit(asyncio.run, coro)
            return future.result(timeout=120)
    else:
        return asyncio.run(coro)


# ---------------------------------------------------------------------------
# ApiClient
# ---------------------------------------------------------------------------


class ApiClient:
    """
    Async client for the SEO backend REST API.

    Parameters
    ----------
    config : ClientConfig, optional
        Connection settings. Defaults to :meth:`ClientConfig.from_env`.

    Examples
    --------
    >>> api = ApiClient(ClientConfig(base_url="https://seo.example.com", token="t"))
    >>> project = await api.get("/projects/{id}", path_params={"id": "p1"})
    """

    def __init__(self, config: Optional[ClientConfig] = None):
        self.config = config or ClientConfig.from_env()
        self._session: Optional[aiohttp.ClientSession] = None

    # -- Session management -------------------------------------------------

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session."""
        if self._session is None or self._session.closed:
            headers = {
                "User-Agent": self.config.user_agent,
                "Accept": "application/json",
            }
            if self.config.auth_header:
                headers["Authorization"] = self.config.auth_header

            connector = aiohttp.TCPConnector(limit=10, ttl_dns_cache=300)
            timeout_config = aiohttp.ClientTimeout(total=self.config.timeout)
            self._session = aiohttp.ClientSession(
                headers=headers,
                connector=connector,
                timeout=timeout_config,
            )
        return self._session

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    def close_sync(self) -> None:
        """Synchronous wrapper for close()."""
        _run_sync(self.close())

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    # -- Core HTTP method with retry ----------------------------------------

    async def request(
        self,
        method: str,
        path: str,
        *,
        path_params: Optional[Mapping[str, Any]] = None,
        params: Optional[Mapping[str, Any]] = None,
        json_data: Optional[Any] = None,
        files: Optional[Dict[str, Tuple[str, bytes, str]]] = None,
    ) -> Any:
        """
        Make an API request, retrying idempotent methods on transient errors.

        POST is sent exactly once: the backend may already have acted on it.

        Parameters
        ----------
        method : str
            HTTP verb.
        path : str
            Endpoint template relative to ``/api/v1``, e.g. ``/projects/{id}``.
        path_params : mapping, optional
            Values for the template placeholders.
        params : mapping, optional
            Query parameters, cleaned with :func:`clean_params`.
        json_data : any, optional
            JSON request body.
        files : dict, optional
            Multipart upload fields as ``{field: (filename, content, content_type)}``.
            A fresh form is built on every attempt.

        Returns
        -------
        Parsed JSON body (or text when the body is not JSON).

        Raises
        ------
        ValidationError
            On 422 responses.
        AuthenticationError
            On 401 or 403 responses.
        NotFoundError
            On 404 responses.
        RateLimitError
            On 429 after all retries exhausted.
        ApiError
            On other non-2xx responses or network failure after retries.
        """
        method = method.upper()
        url = self.config.api_root + build_path(path, path_params)
        query = clean_params(params)
        max_retries = self.config.max_retries if method in IDEMPOTENT_METHODS else 0

        session = await self._get_session()
        last_error: Optional[Exception] = None

        for attempt in range(max_retries + 1):
            try:
                logger.debug(
                    "API %s %s (attempt %d/%d)",
                    method,
                    url,
                    attempt + 1,
                    max_retries + 1,
                )

                kwargs: Dict[str, Any] = {}
                if json_data is not None:
                    kwargs["json"] = json_data
                if files:
                    kwargs["data"] = _build_form(files)
                if query:
                    kwargs["params"] = query

                async with session.request(method, url, **kwargs) as resp:
                    status = resp.status
                    resp_headers = dict(resp.headers)

                    try:
                        body = await resp.json(content_type=None)
                    except (json.JSONDecodeError, ValueError):
                        body = await resp.text()

                    if status in RETRY_STATUS_CODES and attempt < max_retries:
                        delay = RETRY_BASE_DELAY * (2 ** attempt)
                        retry_after = resp_headers.get("Retry-After")
                        if retry_after:
                            try:
                                delay = max(delay, float(retry_after))
                            except ValueError:
                                pass
                        logger.warning(
                            "Retryable error %d from %s, retrying in %.1fs",
                            status,
                            url,
                            delay,
                        )
                        await asyncio.sleep(delay)
                        continue

                    if status >= 400:
                        _raise_for_status(status, body, method, url, max_retries)

                    return body

            except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
                last_error = exc
                if attempt < max_retries:
                    delay = RETRY_BASE_DELAY * (2 ** attempt)
                    logger.warning(
                        "Network error on %s (%s), retrying in %.1fs: %s",
                        url,
                        type(exc).__name__,
                        delay,
                        str(exc),
                    )
                    await asyncio.sleep(delay)
                else:
                    raise ApiError(
                        f"Network error after {max_retries} retries for {method} {url}: {exc}"
                    ) from exc

        raise ApiError(f"Request failed after {max_retries} retries: {last_error}")

    async def get(self, path: str, **kwargs: Any) -> Any:
        """GET an endpoint relative to ``/api/v1``."""
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs: Any) -> Any:
        """POST to an endpoint relative to ``/api/v1``."""
        return await self.request("POST", path, **kwargs)

    async def put(self, path: str, **kwargs: Any) -> Any:
        """PUT to an endpoint relative to ``/api/v1``."""
        return await self.request("PUT", path, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> Any:
        """DELETE an endpoint relative to ``/api/v1``."""
        return await self.request("DELETE", path, **kwargs)

    def __repr__(self) -> str:
        return f"ApiClient({self.config!r})"


def _build_form(files: Dict[str, Tuple[str, bytes, str]]) -> aiohttp.FormData:
    form = aiohttp.FormData()
    for field_name, (filename, content, content_type) in files.items():
        form.add_field(field_name, content, filename=filename, content_type=content_type)
    return form


def _error_message(body: Any) -> str:
    if isinstance(body, dict):
        detail = body.get("detail", body.get("message"))
        if isinstance(detail, str):
            return detail
        if isinstance(detail, list) and detail:
            first = detail[0]
            if isinstance(first, dict):
                return str(first.get("msg", first))
        return str(body)
    return str(body)


def _raise_for_status(status: int, body: Any, method: str, url: str, retries: int) -> None:
    message = _error_message(body)

    if status == 422:
        raise ValidationError(
            f"Validation Error: {message}",
            status_code=422,
            response_body=body,
        )

    if status in (401, 403):
        raise AuthenticationError(
            f"Authentication failed for {method} {url}: HTTP {status}",
            status_code=status,
            response_body=body,
        )

    if status == 404:
        raise NotFoundError(
            f"Resource not found: {url}",
            status_code=404,
            response_body=body,
        )

    if status == 429:
        raise RateLimitError(
            f"Rate limited on {url} after {retries} retries",
            status_code=429,
            response_body=body,
        )

    raise ApiError(
        f"HTTP {status} from {method} {url}: {message}",
        status_code=status,
        response_body=body,
    )
