"""
Observable client-side query cache.

Maps a query key (a tuple such as ``("audits", project_id, audit_id)``) to
the last fetched value, when it was fetched, and the in-flight request if
one is running. Identical concurrent fetches share one request, writes
invalidate by key prefix, and subscribers are told about every change so
views can re-render or refetch.

Usage:
    cache = QueryCache(stale_time=30)
    audit = await cache.fetch(("audits", pid, aid), lambda: audits.get_audit(pid, aid))

    unsubscribe = cache.subscribe(("audits", pid), on_change)
    cache.invalidate(("audits", pid))   # marks every audit of the project stale
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Union

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logger = logging.getLogger("query_cache")
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

# Seconds a fetched value counts as fresh. 0 means every fetch() goes to the
# backend (concurrent callers still share one request).
DEFAULT_STALE_TIME = float(os.getenv("SEO_CACHE_STALE_SECONDS", "0") or 0)

QueryKey = Tuple[Any, ...]
Fetcher = Callable[[], Awaitable[Any]]


class CacheEvent(str, Enum):
    UPDATED = "updated"
    INVALIDATED = "invalidated"
    REMOVED = "removed"
    ERROR = "error"


Listener = Callable[[QueryKey, CacheEvent, "CacheEntry"], None]


def normalize_key(key: Union[str, QueryKey, List[Any]]) -> QueryKey:
    """Turn ``"projects"`` or ``["projects", 1]`` into a tuple key."""
    if isinstance(key, tuple):
        return key
    if isinstance(key, list):
        return tuple(key)
    return (key,)


def key_matches(key: QueryKey, prefix: QueryKey) -> bool:
    return key[: len(prefix)] == prefix


# ---------------------------------------------------------------------------
# CacheEntry dataclass
# ---------------------------------------------------------------------------


@dataclass
class CacheEntry:
    """State of one cached query."""

    key: QueryKey
    data: Any = None
    updated_at: Optional[float] = None
    error: Optional[BaseException] = None
    invalidated: bool = False
    generation: int = 0
    in_flight: Optional[asyncio.Future] = None

    @property
    def has_data(self) -> bool:
        return self.updated_at is not None

    @property
    def is_fetching(self) -> bool:
        return self.in_flight is not None and not self.in_flight.done()

    def is_stale(self, stale_time: float, now: float) -> bool:
        if not self.has_data or self.invalidated:
            return True
        return (now - self.updated_at) >= stale_time  # type: ignore[operator]


# ---------------------------------------------------------------------------
# QueryCache
# ---------------------------------------------------------------------------


class QueryCache:
    """
    Key-value store of fetched backend data with de-duplication,
    prefix invalidation and change subscriptions.

    Parameters
    ----------
    stale_time : float
        Seconds a value stays fresh. Fresh values are returned by
        :meth:`fetch` without a request.
    clock : callable
        Monotonic time source, injectable for tests.
    """

    def __init__(self, stale_time: float = DEFAULT_STALE_TIME, clock: Callable[[], float] = time.monotonic):
        self.stale_time = stale_time
        self._clock = clock
        self._entries: Dict[QueryKey, CacheEntry] = {}
        self._listeners: List[Tuple[QueryKey, Listener]] = []

    # -- Reads --------------------------------------------------------------

    def get_entry(self, key: Union[str, QueryKey]) -> Optional[CacheEntry]:
        return self._entries.get(normalize_key(key))

    def get_data(self, key: Union[str, QueryKey], default: Any = None) -> Any:
        entry = self.get_entry(key)
        if entry is None or not entry.has_data:
            return default
        return entry.data

    def keys(self) -> List[QueryKey]:
        return list(self._entries)

    async def fetch(
        self,
        key: Union[str, QueryKey],
        fetcher: Fetcher,
        *,
        stale_time: Optional[float] = None,
        force: bool = False,
    ) -> Any:
        """
        Return the value for ``key``, calling ``fetcher`` when needed.

        A fresh value is returned immediately. If a request for the key is
        already running, the caller waits on that request instead of
        starting another. Otherwise ``fetcher`` runs and its result is stored.
        Errors propagate to every waiter and leave previous data in place.
        """
        key = normalize_key(key)
        entry = self._entries.get(key)
        if entry is None:
            entry = CacheEntry(key=key)
            self._entries[key] = entry

        if entry.is_fetching:
            logger.debug("Joining in-flight request for %s", key)
            return await asyncio.shield(entry.in_flight)  # type: ignore[arg-type]

        window = self.stale_time if stale_time is None else stale_time
        if not force and not entry.is_stale(window, self._clock()):
            logger.debug("Cache hit for %s", key)
            return entry.data

        task = asyncio.ensure_future(self._run(entry, fetcher, entry.generation))
        entry.in_flight = task
        return await asyncio.shield(task)

    async def _run(self, entry: CacheEntry, fetcher: Fetcher, started_generation: int) -> Any:
        try:
            data = await fetcher()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            entry.error = exc
            entry.in_flight = None
            self._notify(entry, CacheEvent.ERROR)
            raise
        finally:
            entry.in_flight = None

        entry.data = data
        entry.error = None
        entry.updated_at = self._clock()
        # An invalidation that landed mid-request means this value is already old.
        entry.invalidated = entry.generation != started_generation
        self._notify(entry, CacheEvent.UPDATED)
        return data

    # -- Writes -------------------------------------------------------------

    def set_data(self, key: Union[str, QueryKey], data: Any) -> CacheEntry:
        """Store ``data`` directly, e.g. the body returned by a mutation."""
        key = normalize_key(key)
        entry = self._entries.setdefault(key, CacheEntry(key=key))
        entry.data = data
        entry.error = None
        entry.updated_at = self._clock()
        entry.invalidated = False
        self._notify(entry, CacheEvent.UPDATED)
        return entry

    def invalidate(self, prefix: Union[str, QueryKey] = ()) -> List[QueryKey]:
        """Mark every entry under ``prefix`` stale. Returns the affected keys."""
        prefix = normalize_key(prefix) if prefix != () else ()
        affected = [k for k in self._entries if key_matches(k, prefix)]
        for key in affected:
            entry = self._entries[key]
            entry.invalidated = True
            entry.generation += 1
            self._notify(entry, CacheEvent.INVALIDATED)
        if affected:
            logger.debug("Invalidated %d entr%s under %s", len(affected), "y" if len(affected) == 1 else "ies", prefix)
        return affected

    def remove(self, prefix: Union[str, QueryKey] = ()) -> List[QueryKey]:
        """Drop entries under ``prefix``, cancelling their in-flight requests."""
        prefix = normalize_key(prefix) if prefix != () else ()
        removed = [k for k in self._entries if key_matches(k, prefix)]
        for key in removed:
            entry = self._entries.pop(key)
            if entry.is_fetching:
                entry.in_flight.cancel()  # type: ignore[union-attr]
            self._notify(entry, CacheEvent.REMOVED)
        return removed

    def clear(self) -> None:
        self.remove(())

    def cancel(self, key: Union[str, QueryKey]) -> bool:
        """Cancel the running request for ``key``; waiters get CancelledError."""
        entry = self.get_entry(key)
        if entry is None or not entry.is_fetching:
            return False
        entry.in_flight.cancel()  # type: ignore[union-attr]
        return True

    # -- Subscriptions ------------------------------------------------------

    def subscribe(self, prefix: Union[str, QueryKey], listener: Listener) -> Callable[[], None]:
        """
        Call ``listener(key, event, entry)`` for changes under ``prefix``.

        Returns a function that removes the subscription.
        """
        record = (normalize_key(prefix) if prefix != () else (), listener)
        self._listeners.append(record)

        def unsubscribe() -> None:
            if record in self._listeners:
                self._listeners.remove(record)

        return unsubscribe

    def _notify(self, entry: CacheEntry, event: CacheEvent) -> None:
        for prefix, listener in list(self._listeners):
            if not key_matches(entry.key, prefix):
                continue
            try:
                listener(entry.key, event, entry)
            except Exception as exc:
                logger.error("Cache listener for %s raised: %s", prefix, exc)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"QueryCache({len(self._entries)} entries, stale_time={self.stale_time})"
