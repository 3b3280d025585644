"""Feed payload to core model mapping.

This keeps the JSON shapes of the counters, search, and validation endpoints
out of the core. Absent fields default to empty/zero; only a broken envelope
is an error.
"""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional

from core.models import CounterReading, ResourceMetadata

LOGGER = logging.getLogger(__name__)


class PayloadError(ValueError):
    """The payload envelope does not have the expected structure."""


def _as_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _as_float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _optional_float(value: Any) -> Optional[float]:
    if value in (None, ""):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _nested(attrs: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = attrs.get(key)
    return value if isinstance(value, Mapping) else {}


def parse_counters(payload: Any) -> List[CounterReading]:
    """Normalize {"buy_units_count": {"<id>": <count>}} into readings.

    Unparsable counts default to 0; entries whose id is not an integer are
    dropped because they cannot be keyed in the store.
    """

    if not isinstance(payload, Mapping) or not isinstance(payload.get("buy_units_count"), Mapping):
        raise PayloadError("missing buy_units_count object")

    readings: List[CounterReading] = []
    for raw_id, raw_count in payload["buy_units_count"].items():
        try:
            resource_id = int(raw_id)
        except (TypeError, ValueError):
            LOGGER.warning("Dropping counter entry with non-numeric id %r", raw_id)
            continue
        count = max(_as_int(raw_count), 0)
        readings.append(CounterReading(resource_id=resource_id, count=count))
    return readings


def metadata_from_attributes(
    attrs: Mapping[str, Any],
    resource_id: Optional[int] = None,
    name_key: str = "project_name",
) -> ResourceMetadata:
    """Build ResourceMetadata from an "attributes" object of either endpoint."""

    if resource_id is None:
        resource_id = _as_int(attrs.get("resource_id"), default=-1)
        if resource_id < 0:
            raise PayloadError("attributes without a numeric resource_id")

    stats = _nested(attrs, "units_statistic_data")
    location = _nested(attrs, "location")
    return ResourceMetadata(
        resource_id=resource_id,
        name=str(attrs.get(name_key) or ""),
        available_units=max(_as_int(stats.get("available_units_count")), 0),
        min_price=_as_float(stats.get("min_non_bene_price")),
        latitude=_optional_float(location.get("lat")),
        longitude=_optional_float(location.get("lon")),
        city=str(_nested(attrs, "city_obj").get("name_ar") or ""),
        region=str(_nested(attrs, "region_obj").get("name_ar") or ""),
        project_type=str(attrs.get("project_type") or ""),
        bookable=attrs.get("bookable") is True,
        developer=str(attrs.get("developer_name") or ""),
        views_count=_as_int(attrs.get("views_count")),
        banner_url=str(attrs.get("banner_url") or ""),
    )


def parse_search(payload: Any) -> List[ResourceMetadata]:
    """Normalize the search feed {"data": [{"attributes": {...}}]}."""

    if not isinstance(payload, Mapping) or not isinstance(payload.get("data"), list):
        raise PayloadError("missing data array")

    records: List[ResourceMetadata] = []
    for item in payload["data"]:
        attrs = _nested(item, "attributes") if isinstance(item, Mapping) else {}
        try:
            records.append(metadata_from_attributes(attrs))
        except PayloadError:
            LOGGER.warning("Dropping search entry without resource_id")
    return records


def parse_validation(resource_id: int, payload: Any) -> ResourceMetadata:
    """Normalize the validation endpoint {"data": {"attributes": {...}}}."""

    if not isinstance(payload, Mapping) or not isinstance(payload.get("data"), Mapping):
        raise PayloadError("missing data object")
    attrs = payload["data"].get("attributes")
    if not isinstance(attrs, Mapping):
        raise PayloadError("missing attributes object")
    return metadata_from_attributes(attrs, resource_id=resource_id, name_key="name")
