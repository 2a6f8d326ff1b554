"""
Conditional interval polling.

A :class:`Poller` re-fetches a value on a fixed interval for as long as a
predicate over the latest value says to keep going. Audits poll every 5
seconds while their status is queued/crawling/rendering/analyzing/diffing
and stop once they complete or fail; the rank tracker list polls every 30
seconds unconditionally.

A failed fetch is logged and retried on the next tick; polling never dies
on a transient error.

Usage:
    from seo_dashboard.polling import AUDIT_POLL_INTERVAL, audit_in_progress, poll_until

    final = await poll_until(
        lambda: audits.get_audit(pid, aid),
        audit_in_progress,
        interval=AUDIT_POLL_INTERVAL,
        on_update=lambda run: print(run.progress_pct),
    )
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Iterable, Optional, Union

from seo_dashboard.models import IN_PROGRESS_AUDIT_STATUSES, AuditRun, AuditStatus, Page

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logger = logging.getLogger("polling")
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

AUDIT_POLL_INTERVAL = 5.0  # seconds
RANK_TRACKER_POLL_INTERVAL = 30.0  # seconds


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------


def audit_in_progress(audit: Optional[Union[AuditRun, AuditStatus, str]]) -> bool:
    """
    True while an audit is in a non-terminal state.

    Accepts an :class:`AuditRun`, a status, or ``None`` (nothing fetched
    yet, which keeps polling so the first value arrives).
    """
    if audit is None:
        return True
    status = audit.status if isinstance(audit, AuditRun) else audit
    return status in IN_PROGRESS_AUDIT_STATUSES


def any_audit_in_progress(audits: Optional[Union[Page[AuditRun], Iterable[AuditRun]]]) -> bool:
    """List views keep polling while at least one audit is still running."""
    if audits is None:
        return False
    return any(audit_in_progress(run) for run in audits)


def always(_value: Any) -> bool:
    return True


# ---------------------------------------------------------------------------
# Poller
# ---------------------------------------------------------------------------


class PollingTimeout(Exception):
    """Raised when ``max_polls`` is exhausted while the predicate still holds."""

    def __init__(self, message: str, last_value: Any = None):
        self.last_value = last_value
        super().__init__(message)


class Poller:
    """
    Cancellable repeating fetch on the asyncio loop.

    Parameters
    ----------
    fetch : callable
        Zero-argument coroutine function returning the latest value.
    keep_polling : callable
        Predicate over the latest value; polling stops when it returns False.
    interval : float
        Seconds between the end of one fetch and the start of the next.
    on_update : callable, optional
        Called with every successfully fetched value.
    on_error : callable, optional
        Called with every fetch exception before the next retry.
    max_polls : int, optional
        Upper bound on fetch attempts; exceeding it raises PollingTimeout.
    """

    def __init__(
        self,
        fetch: Callable[[], Awaitable[Any]],
        keep_polling: Callable[[Any], bool],
        interval: float = AUDIT_POLL_INTERVAL,
        *,
        on_update: Optional[Callable[[Any], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
        max_polls: Optional[int] = None,
        name: str = "poller",
    ):
        self.fetch = fetch
        self.keep_polling = keep_polling
        self.interval = interval
        self.on_update = on_update
        self.on_error = on_error
        self.max_polls = max_polls
        self.name = name

        self.last_value: Any = None
        self.attempts = 0
        self.errors = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        """Start polling in the background. Must be called inside a running loop."""
        if self.running:
            logger.warning("Poller %s is already running.", self.name)
            return self._task  # type: ignore[return-value]
        self._task = asyncio.ensure_future(self._poll_loop())
        logger.info("Poller %s started (every %.1fs).", self.name, self.interval)
        return self._task

    def cancel(self) -> bool:
        """Stop the repeating timer without waiting for it to unwind."""
        if not self.running:
            return False
        self._task.cancel()  # type: ignore[union-attr]
        return True

    async def stop(self) -> None:
        """Cancel polling and wait until the loop has exited."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        except Exception as exc:
            logger.debug("Poller %s ended with %s", self.name, exc)
        logger.info("Poller %s stopped.", self.name)

    async def wait(self) -> Any:
        """Wait for polling to finish and return the last fetched value."""
        if self._task is None:
            self.start()
        return await self._task  # type: ignore[misc]

    async def _poll_loop(self) -> Any:
        while True:
            self.attempts += 1
            try:
                value = await self.fetch()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                self.errors += 1
                logger.warning("Poller %s fetch failed (attempt %d): %s", self.name, self.attempts, exc)
                if self.on_error is not None:
                    self.on_error(exc)
            else:
                self.last_value = value
                if self.on_update is not None:
                    self.on_update(value)
                if not self.keep_polling(value):
                    logger.info("Poller %s finished after %d fetch(es).", self.name, self.attempts)
                    return value

            if self.max_polls is not None and self.attempts >= self.max_polls:
                raise PollingTimeout(
                    f"Poller {self.name} gave up after {self.attempts} fetch(es)",
                    last_value=self.last_value,
                )
            await asyncio.sleep(self.interval)

    def __repr__(self) -> str:
        state = "running" if self.running else "idle"
        return f"Poller({self.name!r}, {state}, attempts={self.attempts})"


async def poll_until(
    fetch: Callable[[], Awaitable[Any]],
    keep_polling: Callable[[Any], bool],
    interval: float = AUDIT_POLL_INTERVAL,
    **kwargs: Any,
) -> Any:
    """Poll until ``keep_polling`` is False and return the final value."""
    poller = Poller(fetch, keep_polling, interval, **kwargs)
    return await poller.wait()
