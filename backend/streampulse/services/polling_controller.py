"""
StreamPulse - Metrics Polling Controller
Drives periodic metric acquisition and feeds the history buffer.
"""
import asyncio
import inspect
from typing import Awaitable, Callable, List, Mapping, Optional, Set

from loguru import logger

from streampulse.core.config import settings
from streampulse.schemas.system import SystemMetrics, ObsProcessMetrics, MonitorState
from streampulse.services.history_buffer import HistoryBuffer, now_ms
from streampulse.services.severity import SeverityThresholds, classify_metrics, worst_tier
from streampulse.services.system_monitor import BaseMetricsSource

# Called with the snapshot and the timestamp it was recorded under
SnapshotListener = Callable[[SystemMetrics, int], Optional[Awaitable[None]]]

# Process metrics are supplementary and polled at half the rate
PROCESS_INTERVAL_FACTOR = 2


def _describe_error(error: BaseException) -> str:
    return str(error) or error.__class__.__name__


class PollingHandle:
    """
    Scoped ownership of a running poll.

    Release it explicitly or use it as an async context manager; releasing
    twice is harmless.
    """

    def __init__(self, controller: "PollingController", generation: int, interval_ms: int):
        self._controller = controller
        self._generation = generation
        self.interval_ms = interval_ms

    @property
    def active(self) -> bool:
        return self._controller._is_current(self._generation)

    async def release(self) -> None:
        await self._controller._release(self._generation)

    async def __aenter__(self) -> "PollingHandle":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.release()


class PollingController:
    """
    Owns the two polling timers and the latest metric state.

    The source is injected so tests can substitute a fake. Every dispatched
    fetch carries a sequence number; a response older than the last applied
    one is dropped, and nothing is applied once the handle is released.
    """

    def __init__(
        self,
        source: BaseMetricsSource,
        history: Optional[HistoryBuffer] = None,
        thresholds: Optional[Mapping[str, SeverityThresholds]] = None,
        default_interval_ms: Optional[int] = None
    ):
        self.source = source
        self.history = history if history is not None else HistoryBuffer(settings.history_capacity)
        self.thresholds = thresholds
        self.default_interval_ms = default_interval_ms or settings.metrics_interval_ms

        self.last_snapshot: Optional[SystemMetrics] = None
        self.process_metrics: Optional[ObsProcessMetrics] = None
        self.error: Optional[str] = None
        self.last_update: Optional[int] = None

        self._generation = 0
        self._running = False
        self._handle: Optional[PollingHandle] = None
        self._timers: List[asyncio.Task] = []
        self._inflight: Set[asyncio.Task] = set()
        self._system_inflight = 0

        self._system_seq = 0
        self._system_applied = 0
        self._process_seq = 0
        self._process_applied = 0

        self._listeners: List[SnapshotListener] = []

    @property
    def running(self) -> bool:
        return self._running

    @property
    def loading(self) -> bool:
        return self._system_inflight > 0

    def add_listener(self, callback: SnapshotListener) -> None:
        """Add a callback invoked with every applied snapshot and its timestamp"""
        self._listeners.append(callback)

    def remove_listener(self, callback: SnapshotListener) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def acquire(self, interval_ms: Optional[int] = None) -> PollingHandle:
        """
        Start polling and return the handle that owns it.

        Must be called from within the running event loop. If polling is
        already active the existing handle is returned unchanged.
        """
        if self._handle is not None and self._handle.active:
            logger.warning(
                f"Polling already running every {self._handle.interval_ms}ms; "
                f"ignoring request for {interval_ms}ms"
            )
            return self._handle

        interval = interval_ms if interval_ms is not None else self.default_interval_ms
        if interval <= 0:
            raise ValueError("Polling interval must be positive")

        self._generation += 1
        self._running = True
        handle = PollingHandle(self, self._generation, interval)
        self._handle = handle

        # Initial fetch of each kind, then the periodic timers
        self._dispatch_system()
        self._dispatch_process()
        self._timers = [
            asyncio.create_task(self._timer_loop(interval / 1000, self._dispatch_system)),
            asyncio.create_task(
                self._timer_loop(interval * PROCESS_INTERVAL_FACTOR / 1000, self._dispatch_process)
            ),
        ]

        logger.info(f"Metrics polling started (every {interval}ms)")
        return handle

    async def start(self, interval_ms: Optional[int] = None) -> Callable[[], Awaitable[None]]:
        """Start polling and return a stop callable"""
        return self.acquire(interval_ms).release

    async def refresh(self) -> bool:
        """Fetch system metrics once, outside the timers"""
        self._system_seq += 1
        return await self._fetch_system(self._system_seq, self._generation)

    def clear_history(self) -> None:
        self.history.clear()

    def state(self) -> MonitorState:
        severities = {}
        overall = "normal"
        if self.last_snapshot is not None:
            tiers = classify_metrics(self.last_snapshot, self.thresholds)
            severities = {domain: tier.value for domain, tier in tiers.items()}
            overall = worst_tier(tiers.values()).value

        return MonitorState(
            metrics=self.last_snapshot,
            process_metrics=self.process_metrics,
            severities=severities,
            overall_severity=overall,
            running=self._running,
            loading=self.loading,
            error=self.error,
            last_update=self.last_update
        )

    def _is_current(self, generation: int) -> bool:
        return self._running and generation == self._generation

    async def _release(self, generation: int) -> None:
        if not self._is_current(generation):
            return

        self._running = False
        # Responses from the released generation are ignored from here on
        self._generation += 1
        self._handle = None

        tasks = self._timers + list(self._inflight)
        self._timers = []
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        logger.info("Metrics polling stopped")

    def _track(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    async def _timer_loop(self, period: float, dispatch: Callable[[], None]) -> None:
        while True:
            try:
                await asyncio.sleep(period)
                dispatch()
            except asyncio.CancelledError:
                break

    def _dispatch_system(self) -> None:
        self._system_seq += 1
        self._track(self._fetch_system(self._system_seq, self._generation))

    def _dispatch_process(self) -> None:
        self._process_seq += 1
        self._track(self._fetch_process(self._process_seq, self._generation))

    def _accepts(self, generation: int, seq: int, applied: int) -> bool:
        if generation != self._generation:
            logger.debug(f"Dropping response #{seq} received after polling stopped")
            return False
        if seq < applied:
            logger.debug(f"Dropping stale response #{seq} (already applied #{applied})")
            return False
        return True

    async def _fetch_system(self, seq: int, generation: int) -> bool:
        self._system_inflight += 1
        try:
            metrics = await self.source.fetch_system_metrics()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if self._accepts(generation, seq, self._system_applied):
                self._system_applied = seq
                # Keep the previous snapshot on screen; the next tick may recover
                self.error = _describe_error(e)
                logger.warning(f"System metrics fetch failed: {self.error}")
            return False
        finally:
            self._system_inflight -= 1

        if not self._accepts(generation, seq, self._system_applied):
            return False

        self._system_applied = seq
        timestamp = now_ms()
        self.last_snapshot = metrics
        self.history.record(metrics, timestamp)
        self.error = None
        self.last_update = timestamp

        await self._notify(metrics, timestamp)
        return True

    async def _fetch_process(self, seq: int, generation: int) -> None:
        try:
            result = await self.source.fetch_process_metrics()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # Most likely the capture software is not running
            logger.debug(f"Process metrics unavailable: {_describe_error(e)}")
            result = None

        if not self._accepts(generation, seq, self._process_applied):
            return

        self._process_applied = seq
        self.process_metrics = result

    async def _notify(self, metrics: SystemMetrics, timestamp: int) -> None:
        for callback in list(self._listeners):
            try:
                result = callback(metrics, timestamp)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Snapshot listener error: {e}")
