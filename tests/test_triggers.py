from __future__ import annotations

import pytest

from core.models import CounterReading, ResourceMetadata, ResourceRecord
from core.triggers import TransitionKind, classify, detect


@pytest.mark.parametrize(
    ("previous", "new", "expected"),
    [
        (None, 5, TransitionKind.TRANSITION),
        (0, 3, TransitionKind.TRANSITION),
        (None, 1, TransitionKind.TRANSITION),
        (2, 0, TransitionKind.NO_CHANGE),
        (4, 9, TransitionKind.NO_CHANGE),
        (9, 4, TransitionKind.NO_CHANGE),
        (0, 0, TransitionKind.NO_CHANGE),
        (None, 0, TransitionKind.NO_CHANGE),
        (5, 5, TransitionKind.NO_CHANGE),
    ],
)
def test_classify_only_fires_on_rising_edge(previous, new, expected) -> None:
    assert classify(previous, new) is expected


def test_detect_without_record_reports_unknown_predecessor() -> None:
    event = detect(CounterReading(resource_id=7, count=4), None)
    assert event is not None
    assert event.previous_count is None
    assert event.new_count == 4


def test_detect_treats_indexer_only_record_as_unknown() -> None:
    record = ResourceRecord(
        resource_id=7,
        available_count=None,
        metadata=ResourceMetadata(resource_id=7, name="North"),
    )
    event = detect(CounterReading(resource_id=7, count=2), record)
    assert event is not None
    assert event.previous_count is None


def test_detect_ignores_plateau() -> None:
    record = ResourceRecord(resource_id=7, available_count=5, metadata=None)
    assert detect(CounterReading(resource_id=7, count=5), record) is None
