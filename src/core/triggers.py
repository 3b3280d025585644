"""Rising-edge trigger detection (core domain)."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from core.models import CounterReading, ResourceRecord, TransitionEvent


class TransitionKind(str, Enum):
    NO_CHANGE = "no_change"
    TRANSITION = "transition"


def classify(previous_count: Optional[int], new_count: int) -> TransitionKind:
    """Classify a count change.

    Only the rising edge from empty or unknown to non-empty is a transition.
    Depletion and fluctuations between positive values are never alerted on.
    """

    if (previous_count is None or previous_count == 0) and new_count > 0:
        return TransitionKind.TRANSITION
    return TransitionKind.NO_CHANGE


def detect(reading: CounterReading, record: Optional[ResourceRecord]) -> Optional[TransitionEvent]:
    """Return a TransitionEvent when the reading is a rising edge over the stored record."""

    previous = record.available_count if record is not None else None
    if classify(previous, reading.count) is not TransitionKind.TRANSITION:
        return None
    return TransitionEvent(
        resource_id=reading.resource_id,
        previous_count=previous,
        new_count=reading.count,
    )
