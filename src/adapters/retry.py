"""Backoff for the bulk feed requests.

The counters and search endpoints drop connections under load. A short
retry keeps one flaky request from aborting a whole watcher or indexer
cycle. HTTP status errors are not retried; they surface as FeedFetchError
and the next timer fire tries again.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import random
from collections.abc import Awaitable, Callable

import httpx

LOGGER = logging.getLogger(__name__)

RETRY_EXCEPTIONS = (httpx.TransportError, asyncio.TimeoutError)


def retry_async(func: Callable[..., Awaitable], attempts: int = 3, base_delay: float = 1.0):
    """Wrap func so transport failures are retried with jittered doubling delays."""

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        delay = base_delay
        for attempt in range(1, attempts + 1):
            try:
                return await func(*args, **kwargs)
            except RETRY_EXCEPTIONS as exc:
                if attempt == attempts:
                    raise
                LOGGER.warning(
                    "Feed request failed (%s), attempt %s of %s; retrying in %.1fs",
                    type(exc).__name__,
                    attempt,
                    attempts,
                    delay,
                )
                await asyncio.sleep(delay + random.random() * base_delay)
                delay *= 2

    return wrapper
