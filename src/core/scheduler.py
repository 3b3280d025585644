"""Cycle scheduling for the watcher and indexer.

Each cycle type has its own CycleRunner with an explicit Idle/Running state.
A timer fire while the cycle is still running is skipped, never queued, which
bounds resource usage when a feed is slow. The two runners use independent
timers and may overlap each other; they write disjoint store fields.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, List, Optional

from core.errors import FeedFetchError
from core.indexer import MetadataIndexer
from core.ports import OperatorAlertPort
from core.watcher import AvailabilityWatcher, StopCheck

LOGGER = logging.getLogger(__name__)

CycleFn = Callable[[StopCheck], Awaitable[object]]


class CycleState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


class WatcherPhase(str, Enum):
    BASELINE = "baseline"
    ARMED = "armed"


class CycleRunner:
    """Re-entrancy guard and error boundary around one cycle type."""

    def __init__(self, name: str, cycle: CycleFn, operator: Optional[OperatorAlertPort] = None) -> None:
        self.name = name
        self._cycle = cycle
        self._operator = operator
        self._state = CycleState.IDLE
        self._inflight: Optional[asyncio.Task] = None
        self._stopping = False
        self.runs = 0
        self.skipped = 0

    @property
    def state(self) -> CycleState:
        return self._state

    def fire(self) -> Optional[asyncio.Task]:
        """Start the cycle unless one is already running or shutdown began."""

        if self._stopping:
            return None
        if self._state is CycleState.RUNNING:
            self.skipped += 1
            LOGGER.info("Skipping %s cycle - previous cycle still in progress", self.name)
            return None

        # State flips before the task is scheduled so a second fire in the
        # same loop iteration is already rejected.
        self._state = CycleState.RUNNING
        self._inflight = asyncio.get_running_loop().create_task(self._run())
        return self._inflight

    def request_stop(self) -> None:
        self._stopping = True

    def stop_requested(self) -> bool:
        return self._stopping

    async def drain(self) -> None:
        """Wait for the in-flight cycle, if any, to reach its end."""

        task = self._inflight
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    async def _run(self) -> None:
        try:
            await self._cycle(self.stop_requested)
            self.runs += 1
        except FeedFetchError as exc:
            LOGGER.error("%s cycle aborted: %s", self.name.capitalize(), exc)
            await self._report(f"{self.name} cycle failed: {exc}")
        except Exception as exc:
            LOGGER.exception("%s cycle crashed", self.name.capitalize())
            await self._report(f"{self.name} cycle crashed: {exc}")
        finally:
            self._state = CycleState.IDLE
            self._inflight = None

    async def _report(self, message: str) -> None:
        if self._operator is None:
            return
        try:
            await self._operator.send_error(message)
        except Exception:
            LOGGER.exception("Failed to send operator alert")


class Scheduler:
    """Drives the watcher and the optional indexer on fixed periods."""

    def __init__(
        self,
        watcher: AvailabilityWatcher,
        watcher_interval: float,
        indexer: Optional[MetadataIndexer] = None,
        indexer_interval: Optional[float] = None,
        operator: Optional[OperatorAlertPort] = None,
    ) -> None:
        if indexer is not None and not indexer_interval:
            raise ValueError("indexer_interval is required when an indexer is configured")
        self._watcher = watcher
        self._indexer = indexer
        self.watcher_phase = WatcherPhase.BASELINE
        self.watcher_runner = CycleRunner("watcher", self._run_watcher, operator)
        self.indexer_runner: Optional[CycleRunner] = None
        self._intervals = [(self.watcher_runner, watcher_interval)]
        if indexer is not None:
            self.indexer_runner = CycleRunner("indexer", self._run_indexer, operator)
            self._intervals.append((self.indexer_runner, float(indexer_interval)))
        self._stop_event: Optional[asyncio.Event] = None
        self._timers: List[asyncio.Task] = []

    async def start(self) -> None:
        """Start one timer per cycle type; the first fire is immediate."""

        if self._timers:
            return
        self._stop_event = asyncio.Event()
        for runner, interval in self._intervals:
            self._timers.append(asyncio.create_task(self._timer(runner, interval)))
        LOGGER.info(
            "Scheduler started: %s",
            ", ".join(f"{runner.name} every {interval:g}s" for runner, interval in self._intervals),
        )

    async def shutdown(self) -> None:
        """Cancel pending timers and let in-flight cycles reach a commit point."""

        if self._stop_event is not None:
            self._stop_event.set()
        runners = [runner for runner, _ in self._intervals]
        for runner in runners:
            runner.request_stop()
        if self._timers:
            await asyncio.gather(*self._timers, return_exceptions=True)
            self._timers = []
        for runner in runners:
            await runner.drain()
        LOGGER.info("Scheduler stopped")

    async def _timer(self, runner: CycleRunner, interval: float) -> None:
        assert self._stop_event is not None
        while not self._stop_event.is_set():
            runner.fire()
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                continue

    async def _run_watcher(self, should_stop: StopCheck) -> None:
        baseline = self.watcher_phase is WatcherPhase.BASELINE
        report = await self._watcher.run_cycle(baseline=baseline, should_stop=should_stop)
        # Only a completed baseline arms detection; an aborted one is retried.
        if baseline and not report.stopped:
            self.watcher_phase = WatcherPhase.ARMED
            LOGGER.info("Baseline complete; transition detection armed")

    async def _run_indexer(self, should_stop: StopCheck) -> None:
        assert self._indexer is not None
        await self._indexer.run_cycle(should_stop=should_stop)
