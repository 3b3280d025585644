"""Ports (interfaces) used by the core pipeline.

Ports define the minimal contracts for storage, feed, and notification
adapters so that the core can be reused with different backends.
"""

from __future__ import annotations

from typing import List, Optional, Protocol

from core.models import AlertReason, AlertRecord, CounterReading, ResourceMetadata, ResourceRecord


class StoragePort(Protocol):
    """Storage operations required by the core pipeline.

    Every method raises StoreError on I/O failure.
    """

    def get(self, resource_id: int) -> Optional[ResourceRecord]:
        ...

    def upsert_count(self, resource_id: int, count: int) -> None:
        ...

    def upsert_metadata(self, metadata: ResourceMetadata) -> None:
        ...

    def save_alert(self, alert: AlertRecord) -> None:
        ...


class CounterFeedPort(Protocol):
    """Fast id -> count feed. Raises FeedFetchError."""

    async def fetch_counts(self) -> List[CounterReading]:
        ...


class MetadataFeedPort(Protocol):
    """Slow bulk metadata feed. Raises FeedFetchError."""

    async def fetch_metadata(self) -> List[ResourceMetadata]:
        ...


class ValidationLookupPort(Protocol):
    """Authoritative per-resource lookup. Raises ValidationLookupError."""

    async def lookup(self, resource_id: int) -> ResourceMetadata:
        ...


class NotifierPort(Protocol):
    """Alert delivery. Raises DispatchError."""

    async def send(self, record: ResourceMetadata, reason: AlertReason) -> None:
        ...


class OperatorAlertPort(Protocol):
    """Operator-facing error reports for cycle-level failures."""

    async def send_error(self, message: str) -> None:
        ...
