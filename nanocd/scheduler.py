"""Fixed-interval driver for reconciliation cycles.

Ticks fire every ``interval_seconds`` measured from the first tick, not
from the end of the previous cycle. A tick that lands while a cycle is
still running is skipped, so at most one cycle runs per process.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import structlog

from nanocd.models.results import CycleReport
from nanocd.observability.metrics import cycles_total

_log = structlog.get_logger(component="scheduler")

_DEFAULT_SHUTDOWN_GRACE = 30.0


class CycleScheduler:
    """Runs *run_cycle* on a timer until stopped.

    Args:
        run_cycle:        Coroutine function performing one cycle.
        interval_seconds: Tick period.
        on_start:         Called by ``start()`` before the first tick; the
                          reconciler's ``resume`` so a restarted scheduler
                          processes workloads again.
        on_stop:          Called first thing in ``stop()``; the reconciler's
                          ``request_stop`` so the running cycle winds down.
        shutdown_grace:   Seconds ``stop()`` waits for the in-flight cycle
                          before cancelling it.
    """

    def __init__(
        self,
        run_cycle: Callable[[], Awaitable[CycleReport]],
        interval_seconds: float,
        on_start: Callable[[], None] | None = None,
        on_stop: Callable[[], None] | None = None,
        shutdown_grace: float = _DEFAULT_SHUTDOWN_GRACE,
    ) -> None:
        self._run_cycle = run_cycle
        self._interval = max(1.0, float(interval_seconds))
        self._on_start = on_start
        self._on_stop = on_stop
        self._shutdown_grace = shutdown_grace
        self._lock = asyncio.Lock()
        self._stopping = asyncio.Event()
        self._loop_task: asyncio.Task[None] | None = None
        self._cycle_task: asyncio.Task[None] | None = None
        self.last_report: CycleReport | None = None
        self.skipped_ticks = 0

    @property
    def is_cycle_running(self) -> bool:
        return self._lock.locked() or (self._cycle_task is not None and not self._cycle_task.done())

    async def start(self) -> None:
        """Launch the timer loop as a background task. Idempotent."""
        if self._loop_task is not None and not self._loop_task.done():
            return
        self._stopping.clear()
        if self._on_start is not None:
            self._on_start()
        self._loop_task = asyncio.create_task(self._loop(), name="cycle-scheduler")
        _log.info("scheduler_started", interval_seconds=self._interval)

    def tick(self) -> bool:
        """Start a cycle in the background unless one is already running.

        Returns True if a cycle was started.
        """
        if self.is_cycle_running:
            self.skipped_ticks += 1
            cycles_total.labels(result="skipped_overlap").inc()
            _log.warning("cycle_tick_skipped", reason="previous cycle still running")
            return False
        self._cycle_task = asyncio.create_task(self.run_once(), name="reconcile-cycle")
        return True

    async def run_once(self) -> CycleReport | None:
        """Run one cycle under the process-wide cycle lock and keep its report."""
        async with self._lock:
            try:
                report = await self._run_cycle()
            except Exception as exc:  # noqa: BLE001
                cycles_total.labels(result="failed").inc()
                _log.error("cycle_failed", error=str(exc), exc_type=type(exc).__name__)
                return None
            self.last_report = report
            return report

    async def stop(self) -> None:
        """Stop ticking and let the in-flight cycle finish its started workloads."""
        self._stopping.set()
        if self._on_stop is not None:
            self._on_stop()

        if self._loop_task is not None:
            await asyncio.gather(self._loop_task, return_exceptions=True)
            self._loop_task = None

        task = self._cycle_task
        if task is not None and not task.done():
            _log.info("scheduler_waiting_for_cycle", grace_seconds=self._shutdown_grace)
            try:
                await asyncio.wait_for(asyncio.shield(task), timeout=self._shutdown_grace)
            except TimeoutError:
                _log.warning("cycle_cancelled_on_shutdown", grace_seconds=self._shutdown_grace)
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)
        _log.info("scheduler_stopped")

    async def _loop(self) -> None:
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        while not self._stopping.is_set():
            self.tick()
            next_tick += self._interval
            # A cycle that overran several periods does not trigger a burst of
            # catch-up ticks.
            now = loop.time()
            if next_tick < now:
                next_tick = now + self._interval - ((now - next_tick) % self._interval)
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=next_tick - now)
            except TimeoutError:
                pass
