"""Configurable predicates over confirmed resources."""

from __future__ import annotations

from typing import Callable, Iterable

from core.models import ResourceMetadata

ResourceFilter = Callable[[ResourceMetadata], bool]


def build_resource_filter(project_types: Iterable[str]) -> ResourceFilter:
    """Return a predicate accepting only the configured project types.

    An empty list accepts everything so the filter can be switched off from
    config without touching the pipeline.
    """

    allowed = {value.strip() for value in project_types if value and value.strip()}
    if not allowed:
        return lambda record: True

    def _accepts(record: ResourceMetadata) -> bool:
        return record.project_type in allowed

    return _accepts
