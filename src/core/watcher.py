"""Watcher cycle: counter feed -> detection -> verification -> store -> dispatch.

The per-resource order is strict and restart-safe:
1) Read the stored predecessor and detect a rising edge
2) Verify the transition (bounded concurrency across resources)
3) Persist metadata, then the new count
4) Dispatch at most one alert

Counts are replaced on every cycle whether or not an alert fired, so a plateau
can never re-trigger. A resource whose store write failed is left untouched
and simply re-evaluated on the next cycle, except when the failed write was
its baseline: that resource is baselined again rather than evaluated.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional, Set

from core.errors import DispatchError, StoreError
from core.filters import ResourceFilter
from core.models import AlertReason, AlertRecord, Confirmed, CounterReading, TransitionEvent
from core.ports import CounterFeedPort, MetadataFeedPort, NotifierPort, StoragePort
from core.triggers import detect
from core.verification import MetadataSnapshot, VerificationPipeline

LOGGER = logging.getLogger(__name__)

StopCheck = Callable[[], bool]


def never_stop() -> bool:
    return False


@dataclass
class CycleReport:
    """Counters collected during one watcher cycle."""

    baseline: bool = False
    readings: int = 0
    counts_committed: int = 0
    transitions: int = 0
    confirmed: int = 0
    rejected: int = 0
    filtered: int = 0
    alerts_sent: int = 0
    dispatch_failures: int = 0
    store_errors: int = 0
    unexpected_errors: int = 0
    stopped: bool = False


class AvailabilityWatcher:
    """Runs one watcher cycle against the store and the feeds."""

    def __init__(
        self,
        storage: StoragePort,
        counter_feed: CounterFeedPort,
        metadata_feed: MetadataFeedPort,
        pipeline: VerificationPipeline,
        notifier: NotifierPort,
        resource_filter: Optional[ResourceFilter] = None,
    ) -> None:
        self._storage = storage
        self._counter_feed = counter_feed
        self._metadata_feed = metadata_feed
        self._pipeline = pipeline
        self._notifier = notifier
        self._filter = resource_filter or (lambda record: True)
        # Resources whose baseline count could not be written. They are
        # baselined again instead of evaluated, so a missing row never looks
        # like a new listing.
        self._unbaselined: Set[int] = set()

    async def run_cycle(self, *, baseline: bool, should_stop: StopCheck = never_stop) -> CycleReport:
        """Run one cycle. FeedFetchError propagates before any store write."""

        report = CycleReport(baseline=baseline)
        readings = await self._counter_feed.fetch_counts()
        report.readings = len(readings)

        if baseline:
            # Nothing has been compared yet in this process, so every count
            # is recorded as the predecessor for the next cycle.
            for reading in readings:
                if should_stop():
                    report.stopped = True
                    break
                if self._commit_count(reading.resource_id, reading.count, report):
                    self._unbaselined.discard(reading.resource_id)
                else:
                    self._unbaselined.add(reading.resource_id)
            LOGGER.info(
                "Baseline recorded for %s of %s resources",
                report.counts_committed,
                report.readings,
            )
            return report

        snapshot = MetadataSnapshot(await self._metadata_feed.fetch_metadata())
        LOGGER.debug("Metadata snapshot holds %s resources", len(snapshot))

        events: List[TransitionEvent] = []
        for reading in readings:
            if should_stop():
                report.stopped = True
                break
            event = self._detect(reading, report)
            if event is None:
                continue
            events.append(event)

        report.transitions = len(events)
        if events and not report.stopped:
            results = await asyncio.gather(
                *(self._handle_transition(event, snapshot, report) for event in events),
                return_exceptions=True,
            )
            for event, result in zip(events, results):
                if isinstance(result, Exception):
                    report.unexpected_errors += 1
                    LOGGER.error(
                        "Unexpected error while handling resource %s",
                        event.resource_id,
                        exc_info=result,
                    )
                elif isinstance(result, BaseException):
                    raise result

        LOGGER.info(
            "Watcher cycle complete: readings=%s, transitions=%s, confirmed=%s, "
            "rejected=%s, alerts=%s, store_errors=%s",
            report.readings,
            report.transitions,
            report.confirmed,
            report.rejected,
            report.alerts_sent,
            report.store_errors,
        )
        return report

    def _detect(self, reading: CounterReading, report: CycleReport) -> Optional[TransitionEvent]:
        if reading.resource_id in self._unbaselined:
            if self._commit_count(reading.resource_id, reading.count, report):
                self._unbaselined.discard(reading.resource_id)
                LOGGER.info("Late baseline recorded for resource %s", reading.resource_id)
            return None

        try:
            record = self._storage.get(reading.resource_id)
        except StoreError:
            report.store_errors += 1
            LOGGER.exception("Store read failed for resource %s; skipping this cycle", reading.resource_id)
            return None

        event = detect(reading, record)
        if event is None:
            self._commit_count(reading.resource_id, reading.count, report)
            return None

        LOGGER.info(
            "Trigger detected for resource %s: %s -> %s",
            event.resource_id,
            "unknown" if event.previous_count is None else event.previous_count,
            event.new_count,
        )
        return event

    async def _handle_transition(
        self,
        event: TransitionEvent,
        snapshot: MetadataSnapshot,
        report: CycleReport,
    ) -> None:
        verdict = await self._pipeline.verify(event, snapshot)

        if not isinstance(verdict, Confirmed):
            report.rejected += 1
            LOGGER.info(
                "Transition for %s rejected (%s): %s",
                event.resource_id,
                verdict.reason.value,
                verdict.detail,
            )
            self._commit_count(event.resource_id, event.new_count, report)
            return

        report.confirmed += 1
        record = verdict.record
        # Metadata goes first: if the count write fails afterwards the
        # transition is still visible to the next cycle.
        try:
            self._storage.upsert_metadata(record)
        except StoreError:
            report.store_errors += 1
            LOGGER.exception("Store write failed for resource %s; skipping this cycle", event.resource_id)
            return
        if not self._commit_count(event.resource_id, event.new_count, report):
            return

        if not self._filter(record):
            report.filtered += 1
            LOGGER.info(
                "Resource %s confirmed but filtered out (type %r)",
                event.resource_id,
                record.project_type,
            )
            return

        reason = AlertReason.for_event(event)
        try:
            await self._notifier.send(record, reason)
        except DispatchError:
            # The count is already committed, so the alert is considered acted
            # upon and will not fire again on the next cycle.
            report.dispatch_failures += 1
            LOGGER.exception("Alert dispatch failed for resource %s", event.resource_id)
            return

        report.alerts_sent += 1
        LOGGER.info(
            "Alert sent for %s (%s, via %s, units=%s)",
            event.resource_id,
            reason.value,
            verdict.source.value,
            record.available_units,
        )
        try:
            self._storage.save_alert(
                AlertRecord(
                    resource_id=event.resource_id,
                    reason=reason.value,
                    source=verdict.source.value,
                    units=record.available_units,
                    name=record.name,
                    created_at=datetime.now(timezone.utc),
                )
            )
        except StoreError:
            LOGGER.exception("Failed to log alert for resource %s", event.resource_id)

    def _commit_count(self, resource_id: int, count: int, report: CycleReport) -> bool:
        try:
            self._storage.upsert_count(resource_id, count)
        except StoreError:
            report.store_errors += 1
            LOGGER.exception("Store write failed for resource %s; skipping this cycle", resource_id)
            return False
        report.counts_committed += 1
        return True
