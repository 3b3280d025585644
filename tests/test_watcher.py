from __future__ import annotations

import asyncio
from typing import Optional

import pytest

from core.errors import DispatchError, FeedFetchError, LookupFailure, StoreError, ValidationLookupError
from core.filters import build_resource_filter
from core.models import (
    AlertReason,
    AlertRecord,
    CounterReading,
    ResourceMetadata,
    ResourceRecord,
)
from core.verification import VerificationPipeline
from core.watcher import AvailabilityWatcher


class FakeStorage:
    def __init__(self) -> None:
        self.counts: dict[int, int] = {}
        self.metadata: dict[int, ResourceMetadata] = {}
        self.alerts: list[AlertRecord] = []
        self.fail_ids: set[int] = set()
        self.writes = 0

    def get(self, resource_id: int) -> Optional[ResourceRecord]:
        if resource_id in self.fail_ids:
            raise StoreError("disk I/O error", resource_id=resource_id)
        if resource_id not in self.counts and resource_id not in self.metadata:
            return None
        return ResourceRecord(
            resource_id=resource_id,
            available_count=self.counts.get(resource_id),
            metadata=self.metadata.get(resource_id),
        )

    def upsert_count(self, resource_id: int, count: int) -> None:
        if resource_id in self.fail_ids:
            raise StoreError("disk I/O error", resource_id=resource_id)
        self.writes += 1
        self.counts[resource_id] = count

    def upsert_metadata(self, metadata: ResourceMetadata) -> None:
        if metadata.resource_id in self.fail_ids:
            raise StoreError("disk I/O error", resource_id=metadata.resource_id)
        self.writes += 1
        self.metadata[metadata.resource_id] = metadata

    def save_alert(self, alert: AlertRecord) -> None:
        self.alerts.append(alert)


class FakeCounterFeed:
    def __init__(self, counts: Optional[dict[int, int]] = None) -> None:
        self.counts = counts or {}
        self.error: Optional[Exception] = None

    async def fetch_counts(self) -> list[CounterReading]:
        if self.error is not None:
            raise self.error
        return [CounterReading(resource_id=rid, count=count) for rid, count in self.counts.items()]


class FakeMetadataFeed:
    def __init__(self, records: Optional[list[ResourceMetadata]] = None) -> None:
        self.records = records or []
        self.error: Optional[Exception] = None
        self.calls = 0

    async def fetch_metadata(self) -> list[ResourceMetadata]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.records)


class FakeLookup:
    """Confirms whatever the counter feed currently says unless told otherwise."""

    def __init__(self, counter_feed: FakeCounterFeed) -> None:
        self._counter_feed = counter_feed
        self.overrides: dict[int, object] = {}

    async def lookup(self, resource_id: int) -> ResourceMetadata:
        override = self.overrides.get(resource_id)
        if isinstance(override, Exception):
            raise override
        if override is not None:
            return override
        units = self._counter_feed.counts.get(resource_id, 0)
        return ResourceMetadata(
            resource_id=resource_id,
            name=f"project {resource_id}",
            available_units=units,
            project_type="lands_moh_land",
            bookable=True,
        )


class FakeNotifier:
    def __init__(self) -> None:
        self.sent: list[tuple[ResourceMetadata, AlertReason]] = []
        self.fail = False

    async def send(self, record: ResourceMetadata, reason: AlertReason) -> None:
        if self.fail:
            raise DispatchError("bot api down")
        self.sent.append((record, reason))


class Harness:
    def __init__(self, project_types: Optional[list[str]] = None) -> None:
        self.storage = FakeStorage()
        self.counters = FakeCounterFeed()
        self.metadata = FakeMetadataFeed()
        self.lookup = FakeLookup(self.counters)
        self.notifier = FakeNotifier()
        self.watcher = AvailabilityWatcher(
            storage=self.storage,
            counter_feed=self.counters,
            metadata_feed=self.metadata,
            pipeline=VerificationPipeline(self.lookup, concurrency=2),
            notifier=self.notifier,
            resource_filter=build_resource_filter(project_types or []),
        )

    def cycle(self, counts: dict[int, int], *, baseline: bool = False):
        self.counters.counts = counts
        return asyncio.run(self.watcher.run_cycle(baseline=baseline))


def test_first_cycle_records_baseline_without_alerts() -> None:
    harness = Harness()
    report = harness.cycle({1: 10, 2: 0, 3: 3}, baseline=True)

    assert harness.storage.counts == {1: 10, 2: 0, 3: 3}
    assert harness.notifier.sent == []
    assert report.transitions == 0
    assert harness.metadata.calls == 0


def test_no_duplicate_alerts_over_plateau_and_restock() -> None:
    harness = Harness()
    confirmed_at = []
    # Index 0 is "absent": the resource is not in the feed yet.
    sequence = [None, 5, 5, 0, 5]
    harness.cycle({}, baseline=True)
    for index, count in enumerate(sequence):
        report = harness.cycle({} if count is None else {1: count})
        if report.confirmed:
            confirmed_at.append(index)

    assert confirmed_at == [1, 4]
    reasons = [reason for _, reason in harness.notifier.sent]
    assert reasons == [AlertReason.NEW_LISTING, AlertReason.RESTOCKED]


def test_rejected_transition_still_replaces_count() -> None:
    harness = Harness()
    harness.storage.counts[1] = 0
    harness.lookup.overrides[1] = ResourceMetadata(resource_id=1, available_units=0, bookable=True)

    report = harness.cycle({1: 4})

    assert report.rejected == 1
    assert harness.storage.counts[1] == 4
    assert harness.notifier.sent == []
    # The plateau never re-triggers, even once the lookup agrees.
    harness.lookup.overrides.clear()
    assert harness.cycle({1: 4}).transitions == 0


def test_fallback_confirmation_uses_metadata_and_live_count() -> None:
    harness = Harness()
    harness.storage.counts[1] = 0
    harness.metadata.records = [
        ResourceMetadata(resource_id=1, name="From search", available_units=1, project_type="lands_moh_land")
    ]
    harness.lookup.overrides[1] = ValidationLookupError(1, LookupFailure.NETWORK, "timeout")

    harness.cycle({1: 8})

    assert len(harness.notifier.sent) == 1
    record, reason = harness.notifier.sent[0]
    assert record.name == "From search"
    assert record.available_units == 8
    assert reason is AlertReason.RESTOCKED
    assert harness.storage.metadata[1].available_units == 8
    assert harness.storage.alerts[0].source == "metadata_fallback"


def test_store_error_skips_only_that_resource() -> None:
    harness = Harness()
    harness.storage.counts.update({1: 0, 2: 0})
    harness.storage.fail_ids.add(1)

    report = harness.cycle({1: 3, 2: 3})

    assert report.store_errors == 1
    assert [record.resource_id for record, _ in harness.notifier.sent] == [2]
    assert harness.storage.counts[2] == 3


def test_failed_count_write_suppresses_dispatch_until_next_cycle() -> None:
    harness = Harness()
    harness.storage.counts[1] = 0

    original = harness.storage.upsert_count

    def flaky_upsert(resource_id: int, count: int) -> None:
        raise StoreError("database is locked", resource_id=resource_id)

    harness.storage.upsert_count = flaky_upsert
    report = harness.cycle({1: 2})
    assert report.store_errors == 1
    assert harness.notifier.sent == []

    harness.storage.upsert_count = original
    harness.cycle({1: 2})
    assert len(harness.notifier.sent) == 1


def test_dispatch_error_is_not_retried_next_cycle() -> None:
    harness = Harness()
    harness.storage.counts[1] = 0
    harness.notifier.fail = True

    report = harness.cycle({1: 6})
    assert report.dispatch_failures == 1
    assert harness.storage.counts[1] == 6

    harness.notifier.fail = False
    assert harness.cycle({1: 6}).transitions == 0
    assert harness.notifier.sent == []


def test_counter_feed_failure_aborts_before_store_writes() -> None:
    harness = Harness()
    harness.counters.error = FeedFetchError("counters", "HTTP 503")

    with pytest.raises(FeedFetchError):
        asyncio.run(harness.watcher.run_cycle(baseline=False))
    assert harness.storage.writes == 0


def test_metadata_feed_failure_aborts_before_store_writes() -> None:
    harness = Harness()
    harness.metadata.error = FeedFetchError("search", "no response received")

    with pytest.raises(FeedFetchError):
        harness.cycle({1: 3, 2: 0})
    assert harness.storage.writes == 0


def test_project_type_filter_persists_but_does_not_alert() -> None:
    harness = Harness(project_types=["lands_moh_land"])
    harness.storage.counts[1] = 0
    harness.lookup.overrides[1] = ResourceMetadata(
        resource_id=1, available_units=2, bookable=True, project_type="apartments"
    )

    report = harness.cycle({1: 2})

    assert report.filtered == 1
    assert harness.notifier.sent == []
    assert harness.storage.counts[1] == 2
    assert harness.storage.metadata[1].project_type == "apartments"


def test_stop_request_leaves_remaining_resources_for_next_cycle() -> None:
    harness = Harness()
    harness.counters.counts = {1: 1, 2: 1, 3: 1}
    checks = iter([False, True, True, True])

    report = asyncio.run(harness.watcher.run_cycle(baseline=True, should_stop=lambda: next(checks)))

    assert report.stopped
    assert harness.storage.counts == {1: 1}


def test_failed_baseline_write_is_rebaselined_not_alerted() -> None:
    harness = Harness()
    harness.storage.fail_ids.add(1)
    report = harness.cycle({1: 5, 2: 3}, baseline=True)
    assert report.store_errors == 1
    harness.storage.fail_ids.clear()

    report = harness.cycle({1: 5, 2: 3})

    assert report.transitions == 0
    assert harness.notifier.sent == []
    assert harness.storage.counts == {1: 5, 2: 3}

    harness.cycle({1: 0})
    harness.cycle({1: 5})
    assert [(record.resource_id, reason) for record, reason in harness.notifier.sent] == [
        (1, AlertReason.RESTOCKED)
    ]


def test_rebaseline_retries_until_the_write_succeeds() -> None:
    harness = Harness()
    harness.storage.fail_ids.add(1)
    harness.cycle({1: 5}, baseline=True)

    # Still failing: the resource stays pending and nothing is evaluated.
    assert harness.cycle({1: 5}).store_errors == 1
    harness.storage.fail_ids.clear()
    harness.cycle({1: 5})

    assert harness.notifier.sent == []
    assert harness.storage.counts[1] == 5
