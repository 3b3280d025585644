"""Transition verification pipeline (core domain).

A counter-feed transition is only trusted after it has been corroborated:

1) Metadata corroboration against the snapshot fetched once per cycle.
   A missing entry is expected (the search feed lags) and never rejects.
2) Authoritative validation lookup. Its answer is final when it has one;
   when it fails for any reason (including a 404) the snapshot entry, if
   any, is used instead.

The pipeline never raises ValidationLookupError to its caller.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Iterable, Optional

from core.errors import ValidationLookupError
from core.models import (
    Confirmed,
    Rejected,
    RejectReason,
    ResourceMetadata,
    TransitionEvent,
    VerdictSource,
    VerificationVerdict,
)
from core.ports import ValidationLookupPort

LOGGER = logging.getLogger(__name__)


class MetadataSnapshot:
    """One-shot lookup table over a metadata feed response."""

    def __init__(self, records: Iterable[ResourceMetadata] = ()) -> None:
        self._by_id: Dict[int, ResourceMetadata] = {}
        for record in records:
            self._by_id[record.resource_id] = record

    def get(self, resource_id: int) -> Optional[ResourceMetadata]:
        return self._by_id.get(resource_id)

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, resource_id: object) -> bool:
        return resource_id in self._by_id


class VerificationPipeline:
    """Corroborates transitions with bounded concurrency on the lookup."""

    def __init__(self, lookup: ValidationLookupPort, concurrency: int = 3) -> None:
        if concurrency < 1:
            raise ValueError("verification concurrency must be at least 1")
        self._lookup = lookup
        self._semaphore = asyncio.Semaphore(concurrency)

    async def verify(self, event: TransitionEvent, snapshot: MetadataSnapshot) -> VerificationVerdict:
        """Return the verdict for one transition."""

        # Stage 1: the snapshot value is remembered but never used to reject;
        # the search feed is slower and may be stale in either direction.
        fallback = snapshot.get(event.resource_id)
        if fallback is None:
            LOGGER.debug("Resource %s missing from metadata snapshot", event.resource_id)

        # Stage 2: the validation lookup is the source of truth.
        try:
            async with self._semaphore:
                validated = await self._lookup.lookup(event.resource_id)
        except ValidationLookupError as exc:
            return self._degrade(event, fallback, exc)

        if validated.bookable and validated.available_units > 0:
            return Confirmed(event=event, record=validated, source=VerdictSource.VALIDATION)

        return Rejected(
            event=event,
            reason=RejectReason.FALSE_POSITIVE,
            detail=f"bookable={validated.bookable} units={validated.available_units}",
        )

    @staticmethod
    def _degrade(
        event: TransitionEvent,
        fallback: Optional[ResourceMetadata],
        exc: ValidationLookupError,
    ) -> VerificationVerdict:
        # Only an explicit "not bookable" or "no units" answer rejects; a
        # lookup that produced no answer defers to the search feed.
        if fallback is None:
            return Rejected(
                event=event,
                reason=RejectReason.FALSE_POSITIVE,
                detail=f"{exc}; no metadata fallback",
            )

        LOGGER.warning("%s; falling back to metadata snapshot", exc)
        # The counter feed is the source of truth for availability, so the
        # live count replaces whatever the snapshot declared.
        return Confirmed(
            event=event,
            record=fallback.with_units(event.new_count),
            source=VerdictSource.METADATA_FALLBACK,
        )
