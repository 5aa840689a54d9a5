"""
Dispatch Scheduler — periodic, start/stop-controlled dispatch cycles.

State machine:
    Stopped --start()--> Running --stop()--> Stopped
    start() while Running and stop() while Stopped are logged no-ops.

The loop runs one cycle immediately, then one per interval. Stopping sets
the loop's own stop event: an in-flight cycle always runs to completion,
the next one never starts.
"""
from __future__ import annotations

import asyncio
import threading
import structlog
from typing import Optional

from core.dispatcher import DispatchService
from models.schemas import DispatchReport

logger = structlog.get_logger()

DEFAULT_INTERVAL_SECONDS = 120.0
DEFAULT_BATCH_SIZE = 2


class DispatchScheduler:
    """
    Owns the run-state (running flag + stop event of the active loop).

    start/stop/is_running are guarded by one lock and never await, so they
    are safe to call from request handlers. start() must be called from
    inside a running event loop.
    """

    def __init__(
        self,
        service: DispatchService,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        self.service = service
        self.interval = interval_seconds
        self.batch_size = batch_size

        self._lock = threading.Lock()
        self._running = False
        self._stop_event: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None

        # Serializes cycles across loop generations (fast stop → start).
        self._cycle_lock = asyncio.Lock()

    def start(self) -> bool:
        """Start the loop. Returns False when it was already running."""
        with self._lock:
            if self._running:
                logger.info("scheduler_already_running")
                return False

            stop_event = asyncio.Event()
            self._stop_event = stop_event
            self._running = True
            self._task = asyncio.get_running_loop().create_task(
                self._run(stop_event), name="dispatch_scheduler",
            )
            self._task.add_done_callback(self._on_task_done)

        logger.info("scheduler_started", interval_s=self.interval, batch_size=self.batch_size)
        return True

    def stop(self) -> bool:
        """Signal the loop to stop. Returns False when it was not running."""
        with self._lock:
            if not self._running:
                logger.info("scheduler_not_running")
                return False

            self._stop_event.set()
            self._stop_event = None
            self._running = False

        logger.info("scheduler_stopped")
        return True

    def is_running(self) -> bool:
        with self._lock:
            return self._running

    async def dispatch(self, limit: Optional[int] = None) -> DispatchReport:
        """Run one cycle now, never overlapping a scheduled one. Errors propagate."""
        async with self._cycle_lock:
            return await self.service.send_pending_messages(limit or self.batch_size)

    async def run_once(self) -> Optional[DispatchReport]:
        """Run one scheduled cycle; errors are logged and swallowed."""
        logger.info("scheduler_tick", batch_size=self.batch_size)
        try:
            return await self.dispatch()
        except Exception as e:
            logger.error("scheduler_cycle_failed", error=str(e), error_type=e.__class__.__name__)
            return None

    async def shutdown(self, timeout: float = 10.0) -> None:
        """Stop and wait for the current cycle to finish (app shutdown)."""
        self.stop()
        task = self._task
        if task is None or task.done():
            return
        try:
            await asyncio.wait_for(asyncio.shield(task), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("scheduler_shutdown_timeout", timeout_s=timeout)
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _run(self, stop_event: asyncio.Event) -> None:
        while not stop_event.is_set():
            await self.run_once()
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                continue
        logger.debug("scheduler_loop_exited")

    @staticmethod
    def _on_task_done(task: asyncio.Task) -> None:
        """Log unexpected loop death."""
        if task.cancelled():
            return
        exc = task.exception()
        if exc:
            logger.error("scheduler_task_died", error=str(exc))
