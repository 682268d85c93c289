"""
Adaptive live listener — push-like workspace updates over conditional polling.

Interval policy:
- Starts at ``min_interval``.
- Unchanged poll (304, or 200 with the same content hash): grows additively by
  ``backoff_step`` up to ``max_interval``.
- Changed content: resets to ``min_interval`` and delivers via ``on_data``.
- Transient failure: doubles up to ``max_interval`` and reports via ``on_error``.
- 401/403/404: stops for good and reports ``SessionExpiredError`` via
  ``on_session_expired``.
- Every delay is multiplied by a random jitter factor.

Hidden hosts are not polled; the listener re-checks at ``min_interval``.
Becoming visible again, or a network reconnect, runs a cycle immediately.

Delivery is decided by a hash of the decrypted payload. The server's
``Last-Modified`` value is only used as the ``If-Modified-Since`` token.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import random
from typing import Any, Callable, Optional, Protocol

from workspace_sync.environment import EnvironmentSignal, HeadlessEnvironment, Unsubscribe
from workspace_sync.errors import SessionExpiredError
from workspace_sync.transport.http import FetchResult
from workspace_sync.workspaces import WorkspacesAPI

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Clock(Protocol):
    def call_later(self, delay: float, callback: Callable[[], Any]) -> TimerHandle: ...


def content_hash(payload: Any) -> str:
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class AdaptiveLiveListener:
    def __init__(
        self,
        workspaces: WorkspacesAPI,
        user_id: str,
        on_data: Callable[[Any], None],
        on_error: Optional[Callable[[Exception], None]] = None,
        on_session_expired: Optional[Callable[[SessionExpiredError], None]] = None,
        *,
        environment: Optional[EnvironmentSignal] = None,
        clock: Optional[Clock] = None,
        jitter: Optional[Callable[[], float]] = None,
        collection: Optional[str] = None,
    ):
        config = workspaces.config
        self._workspaces = workspaces
        self._user_id = user_id
        self._collection = collection
        self._on_data = on_data
        self._on_error = on_error
        self._on_session_expired = on_session_expired
        self._environment = environment or HeadlessEnvironment()
        self._clock = clock
        self._jitter = jitter or (lambda: random.uniform(config.jitter_low, config.jitter_high))

        self.min_interval = config.min_interval
        self.max_interval = config.max_interval
        self.backoff_step = config.backoff_step

        self.active = False
        self.current_interval = self.min_interval
        self.last_modified: Optional[str] = None
        self.last_hash: Optional[str] = None
        self.last_delay: Optional[float] = None

        self._closed = False
        self._attempt = 0
        self._in_flight: Optional[asyncio.Future[FetchResult]] = None
        self._timer: Optional[TimerHandle] = None
        self._cycle_task: Optional[asyncio.Task[None]] = None
        self._unsubscribers: list[Unsubscribe] = []
        self._stopped = asyncio.Event()

    def __repr__(self) -> str:
        return (
            f"AdaptiveLiveListener(user_id={self._user_id!r}, active={self.active}, "
            f"interval={self.current_interval:.1f}s)"
        )

    # --- lifecycle ---

    def start(self) -> Optional[asyncio.Task[None]]:
        """Begin polling. Returns the task running the first cycle."""
        if self.active or self._closed:
            return None
        self.active = True
        self._unsubscribers = [
            self._environment.on_visible(self._wake),
            self._environment.on_reconnect(self._wake),
        ]
        return self._kick()

    def stop(self) -> None:
        """Stop polling. Idempotent; no callback fires after this returns."""
        self.active = False
        self._closed = True
        if self._in_flight is not None and not self._in_flight.done():
            self._in_flight.cancel()
        self._in_flight = None
        self._cancel_timer()
        unsubscribers, self._unsubscribers = self._unsubscribers, []
        for unsubscribe in unsubscribers:
            unsubscribe()
        self._stopped.set()

    async def settle(self) -> None:
        """Wait for the cycle currently running, if any."""
        task = self._cycle_task
        if task is not None and not task.done():
            await asyncio.wait({task})

    async def wait_stopped(self) -> None:
        await self._stopped.wait()

    # --- scheduling ---

    def _wake(self) -> None:
        if not self.active:
            return
        logger.debug("Workspace sync for %s resumed; polling now", self._user_id)
        self.current_interval = self.min_interval
        self._kick()

    def _kick(self) -> Optional[asyncio.Task[None]]:
        self._cancel_timer()
        if not self.active:
            return None
        self._cycle_task = asyncio.ensure_future(self.poll())
        return self._cycle_task

    def _schedule(self, delay: float) -> None:
        if not self.active:
            return
        self._cancel_timer()
        self.last_delay = delay * self._jitter()
        clock = self._clock or asyncio.get_running_loop()
        self._timer = clock.call_later(self.last_delay, self._kick)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    # --- one cycle ---

    async def poll(self) -> None:
        """Run one poll cycle."""
        if not self.active:
            return

        if not self._environment.is_visible():
            self._schedule(self.min_interval)
            return

        if self._in_flight is not None and not self._in_flight.done():
            self._in_flight.cancel()

        self._attempt += 1
        attempt = self._attempt
        request = asyncio.ensure_future(self._workspaces.fetch(
            self._user_id,
            collection=self._collection,
            if_modified_since=self.last_modified,
        ))
        self._in_flight = request
        try:
            await asyncio.wait({request})
        except asyncio.CancelledError:
            request.cancel()
            raise

        # Superseded by a newer attempt, or stopped while waiting.
        if request.cancelled() or attempt != self._attempt or not self.active:
            return
        self._in_flight = None

        error = request.exception()
        if error is None:
            self._handle_result(request.result())
        elif isinstance(error, SessionExpiredError):
            self._expire(error)
        elif isinstance(error, Exception):
            self._fail(error)
        else:
            raise error

    def _handle_result(self, result: FetchResult) -> None:
        if result.not_found:
            self._expire(SessionExpiredError("Workspace not found", status_code=404))
            return
        if result.not_modified:
            self._unchanged()
            return

        self.last_modified = result.last_modified
        try:
            payload = self._workspaces.decode(result.data, self._user_id, self._collection)
        except Exception as e:
            self._fail(e)
            return

        if payload is None:
            self._unchanged()
            return

        digest = content_hash(payload)
        if digest == self.last_hash:
            self._unchanged()
            return

        self.last_hash = digest
        self.current_interval = self.min_interval
        self._schedule(self.current_interval)
        self._notify(self._on_data, payload)

    def _unchanged(self) -> None:
        self.current_interval = min(self.current_interval + self.backoff_step, self.max_interval)
        self._schedule(self.current_interval)

    def _fail(self, error: Exception) -> None:
        logger.warning("Workspace sync for %s failed, retrying: %s", self._user_id, error)
        self.current_interval = min(self.current_interval * 2, self.max_interval)
        self._schedule(self.current_interval)
        if self._on_error:
            self._notify(self._on_error, error)

    def _expire(self, error: SessionExpiredError) -> None:
        logger.warning("Workspace sync for %s lost authorization (HTTP %s); stopping",
                       self._user_id, error.status_code)
        self.stop()
        if self._on_session_expired:
            self._notify(self._on_session_expired, error)

    def _notify(self, callback: Callable[[Any], None], value: Any) -> None:
        try:
            callback(value)
        except Exception:
            logger.exception("Workspace sync callback %r for %s raised", callback, self._user_id)
