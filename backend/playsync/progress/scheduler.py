"""Recurring scan for progress records that need re-synchronization."""

import asyncio
import contextlib
import logging
import time
from collections.abc import Callable

from .models import ProgressState, ProgressTrackingState
from .store import ProgressStateStore


logger = logging.getLogger(__name__)

SYNCABLE_STATES = frozenset({ProgressTrackingState.ACTIVE, ProgressTrackingState.PAUSED})


class SyncScheduler:
    """Periodically signal records that have gone stale.

    A record is stale once ``interval_ms`` or more has elapsed since its
    ``last_synced_at``. Only active and paused records are considered.
    The scan runs as an asyncio task on the loop that called ``start()``.
    """

    def __init__(
        self,
        store: ProgressStateStore,
        on_sync_required: Callable[[ProgressState], None],
        interval_ms: int = 10000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if interval_ms <= 0:
            msg = "Sync interval must be positive"
            raise ValueError(msg)
        self._store = store
        self._on_sync_required = on_sync_required
        self._interval_ms = interval_ms
        self._clock = clock
        self._task: asyncio.Task[None] | None = None
        self._running = False

    @property
    def interval_ms(self) -> int:
        return self._interval_ms

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Start the recurring scan. No-op when already running.

        Raises RuntimeError when called outside a running event loop.
        """
        if self._running:
            return
        loop = asyncio.get_running_loop()
        self._running = True
        self._task = loop.create_task(self._run(), name="progress-sync-scheduler")
        logger.info(f"Progress sync scheduler started (interval {self._interval_ms}ms)")

    def stop(self) -> None:
        """Cancel the recurring scan. No-op when not running."""
        if not self._running:
            return
        self._running = False
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
        logger.info("Progress sync scheduler stopped")

    async def wait_stopped(self) -> None:
        """Stop the scan and wait for its task to finish unwinding."""
        task = self._task
        self.stop()
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    def tick(self) -> list[ProgressState]:
        """Signal every stale record once and return them."""
        now = self._clock()
        threshold = self._interval_ms / 1000
        stale = [
            state
            for state in self._store.values()
            if state.state in SYNCABLE_STATES and now - state.last_synced_at >= threshold
        ]
        for state in stale:
            self._on_sync_required(state)
        if stale:
            logger.debug(f"Sync required for {len(stale)} stale progress record(s)")
        return stale

    async def _run(self) -> None:
        interval = self._interval_ms / 1000
        while self._running:
            await asyncio.sleep(interval)
            # stop() may have run while this task was waiting to resume
            if not self._running:
                break
            try:
                self.tick()
            except Exception:
                logger.exception("Progress sync scan failed")
