"""Request spacing for the per-project validation endpoint.

The bulk feeds are fetched once per cycle and need no spacing. Validation
lookups fan out, one per suspected transition, and a burst of restocks would
otherwise hit the same host with several requests at once. Lookups still run
under the pipeline's concurrency cap; this only spaces their start times.
"""

from __future__ import annotations

import asyncio
import time
from collections import defaultdict


class RateLimiter:
    """Keeps at least 1/rate seconds between requests to one host."""

    def __init__(self, *, rate: float = 2.0) -> None:
        if rate <= 0:
            raise ValueError("validation_rate_per_second must be positive")
        self.rate = rate
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._last_request: dict[str, float] = {}

    async def wait_for_host(self, host: str) -> None:
        async with self._locks[host]:
            last = self._last_request.get(host)
            if last is not None:
                remaining = 1.0 / self.rate - (time.monotonic() - last)
                if remaining > 0:
                    await asyncio.sleep(remaining)
            self._last_request[host] = time.monotonic()
