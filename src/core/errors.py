"""Typed failures shared by the core and its adapters.

Each error is recovered at the boundary of the unit that caused it: feed
failures abort a whole cycle, lookup and store failures only affect a single
resource, and dispatch failures are logged and never retried in-cycle.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class LandwatchError(Exception):
    """Base class for every landwatch failure."""


class FeedFetchError(LandwatchError):
    """Network or parse failure on the Counter or Metadata Feed."""

    def __init__(self, feed: str, message: str) -> None:
        super().__init__(f"{feed} feed: {message}")
        self.feed = feed


class LookupFailure(str, Enum):
    NOT_FOUND = "not_found"
    NETWORK = "network"
    MALFORMED = "malformed"


class ValidationLookupError(LandwatchError):
    """Per-resource failure of the authoritative validation lookup."""

    def __init__(self, resource_id: int, kind: LookupFailure, message: str = "") -> None:
        detail = f": {message}" if message else ""
        super().__init__(f"validation lookup for {resource_id} failed ({kind.value}){detail}")
        self.resource_id = resource_id
        self.kind = kind


class StoreError(LandwatchError):
    """I/O failure inside the resource store."""

    def __init__(self, message: str, resource_id: Optional[int] = None) -> None:
        super().__init__(message)
        self.resource_id = resource_id


class DispatchError(LandwatchError):
    """The alert dispatcher could not deliver a notification."""
