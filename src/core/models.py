"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any feed-specific payload shapes.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Optional, Union


@dataclass(frozen=True)
class ResourceMetadata:
    """Enrichment block for one project, as reported by a metadata source."""

    resource_id: int
    name: str = ""
    available_units: int = 0
    min_price: float = 0.0
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    city: str = ""
    region: str = ""
    project_type: str = ""
    bookable: bool = False
    developer: str = ""
    views_count: int = 0
    banner_url: str = ""

    def with_units(self, units: int) -> "ResourceMetadata":
        return replace(self, available_units=units)


@dataclass(frozen=True)
class ResourceRecord:
    """Persisted state for one monitored project.

    available_count is None when the project has only been seen by the
    indexer; that state is "unknown", which is distinct from a count of 0.
    """

    resource_id: int
    available_count: Optional[int]
    metadata: Optional[ResourceMetadata]
    last_seen_by_watcher: Optional[datetime] = None
    last_seen_by_indexer: Optional[datetime] = None


@dataclass(frozen=True)
class CounterReading:
    """One normalized (id, count) pair from the counter feed."""

    resource_id: int
    count: int


@dataclass(frozen=True)
class TransitionEvent:
    """A rising edge from empty/unknown to available, alive for one cycle."""

    resource_id: int
    previous_count: Optional[int]
    new_count: int


class AlertReason(str, Enum):
    NEW_LISTING = "new_listing"
    RESTOCKED = "restocked"
    AVAILABLE = "available"

    @classmethod
    def for_event(cls, event: TransitionEvent) -> "AlertReason":
        if event.previous_count is None:
            return cls.NEW_LISTING
        return cls.RESTOCKED


class VerdictSource(str, Enum):
    VALIDATION = "validation"
    METADATA_FALLBACK = "metadata_fallback"


class RejectReason(str, Enum):
    FALSE_POSITIVE = "false_positive"


@dataclass(frozen=True)
class Confirmed:
    """The transition is genuine; record carries the freshest enrichment."""

    event: TransitionEvent
    record: ResourceMetadata
    source: VerdictSource


@dataclass(frozen=True)
class Rejected:
    """The transition was refuted or could not be corroborated."""

    event: TransitionEvent
    reason: RejectReason
    detail: str = ""


VerificationVerdict = Union[Confirmed, Rejected]


@dataclass(frozen=True)
class AlertRecord:
    """Persisted representation of one dispatched alert."""

    resource_id: int
    reason: str
    source: str
    units: int
    name: str
    created_at: datetime
