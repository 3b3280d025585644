"""HTTP adapter for the counters, search, and validation endpoints.

One httpx.AsyncClient backs all three ports. Transport and payload problems
are translated into the core's typed errors here so the core never sees
httpx exceptions or raw JSON.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, List, Optional
from urllib.parse import urlparse

import httpx

from adapters.feed_mapper import PayloadError, parse_counters, parse_search, parse_validation
from adapters.rate_limit import RateLimiter
from adapters.retry import retry_async
from core.config import FeedConfig
from core.errors import FeedFetchError, LookupFailure, ValidationLookupError
from core.models import CounterReading, ResourceMetadata

LOGGER = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
    "Accept": "application/json",
}
# The validation endpoint is per project and slow; a short timeout keeps one
# stuck lookup from holding the whole cycle.
VALIDATION_TIMEOUT = 10.0


class SakaniClient:
    """Satisfies CounterFeedPort, MetadataFeedPort, and ValidationLookupPort."""

    def __init__(
        self,
        config: FeedConfig,
        *,
        session: Optional[httpx.AsyncClient] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ) -> None:
        self._config = config
        self._session = session or httpx.AsyncClient(timeout=config.timeout_seconds, headers=DEFAULT_HEADERS)
        self._rate_limiter = rate_limiter or RateLimiter(rate=config.validation_rate_per_second)

    async def close(self) -> None:
        await self._session.aclose()

    async def fetch_counts(self) -> List[CounterReading]:
        payload = await self._get_feed("counters", self._config.counters_url)
        try:
            readings = parse_counters(payload)
        except PayloadError as exc:
            raise FeedFetchError("counters", f"invalid response structure: {exc}") from exc
        LOGGER.info("Received %s project counters", len(readings))
        return readings

    async def fetch_metadata(self) -> List[ResourceMetadata]:
        payload = await self._get_feed("search", self._config.search_url)
        try:
            records = parse_search(payload)
        except PayloadError as exc:
            raise FeedFetchError("search", f"invalid response structure: {exc}") from exc
        LOGGER.info("Received %s search projects", len(records))
        return records

    async def lookup(self, resource_id: int) -> ResourceMetadata:
        try:
            record = await self._validate(resource_id)
        except ValidationLookupError as exc:
            self._dump(f"validation_error_{resource_id}", {"error": str(exc), "kind": exc.kind.value})
            raise
        LOGGER.debug(
            "Validation for %s: bookable=%s units=%s",
            resource_id,
            record.bookable,
            record.available_units,
        )
        return record

    async def _validate(self, resource_id: int) -> ResourceMetadata:
        url = f"{self._config.validation_url.rstrip('/')}/{resource_id}"
        await self._rate_limiter.wait_for_host(urlparse(url).netloc)
        LOGGER.debug("Validating project %s", resource_id)
        try:
            response = await self._session.get(
                url,
                params={"include": "amenities"},
                timeout=min(VALIDATION_TIMEOUT, self._config.timeout_seconds),
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 404:
                raise ValidationLookupError(resource_id, LookupFailure.NOT_FOUND) from exc
            raise ValidationLookupError(
                resource_id, LookupFailure.NETWORK, f"HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise ValidationLookupError(resource_id, LookupFailure.NETWORK, type(exc).__name__) from exc

        try:
            payload = response.json()
            record = parse_validation(resource_id, payload)
        except (ValueError, PayloadError) as exc:
            raise ValidationLookupError(resource_id, LookupFailure.MALFORMED, str(exc)) from exc

        self._dump(f"validation_{resource_id}", payload)
        return record

    async def _get_feed(self, feed: str, url: str) -> Any:
        try:
            response = await retry_async(self._session.get)(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise FeedFetchError(
                feed, f"HTTP {exc.response.status_code} - {exc.response.reason_phrase}"
            ) from exc
        except httpx.HTTPError as exc:
            raise FeedFetchError(feed, f"no response received ({type(exc).__name__})") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise FeedFetchError(feed, "response is not valid JSON") from exc
        self._dump(f"{feed}_api_raw_response", payload)
        return payload

    def _dump(self, label: str, payload: Any) -> None:
        directory = self._config.raw_dump_dir
        if not directory:
            return
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S-%f")
        path = os.path.join(directory, f"{timestamp}_{label}.json")
        try:
            os.makedirs(directory, exist_ok=True)
            with open(path, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, ensure_ascii=False, indent=2)
        except OSError as exc:
            LOGGER.warning("Could not save raw payload to %s: %s", path, exc)
