"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(frozen=True)
class WatcherConfig:
    """Watcher cycle settings."""

    interval_seconds: float
    verify_concurrency: int = 3
    project_types: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class IndexerConfig:
    """Indexer cycle settings."""

    enabled: bool
    interval_seconds: float


@dataclass(frozen=True)
class FeedConfig:
    """Endpoints and transport limits consumed by the feed adapters."""

    counters_url: str
    search_url: str
    validation_url: str
    timeout_seconds: float = 30.0
    validation_rate_per_second: float = 2.0
    raw_dump_dir: Optional[str] = None
