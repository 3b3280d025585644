from __future__ import annotations

import asyncio
import time

import pytest

from adapters.rate_limit import RateLimiter


def test_requests_to_one_host_are_spaced() -> None:
    async def _run() -> float:
        limiter = RateLimiter(rate=20.0)
        start = time.monotonic()
        for _ in range(3):
            await limiter.wait_for_host("sakani.sa")
        return time.monotonic() - start

    # First request is immediate, the next two wait 0.05s each.
    assert asyncio.run(_run()) >= 0.09


def test_hosts_are_spaced_independently() -> None:
    async def _run() -> float:
        limiter = RateLimiter(rate=1.0)
        start = time.monotonic()
        await limiter.wait_for_host("a.test")
        await limiter.wait_for_host("b.test")
        return time.monotonic() - start

    assert asyncio.run(_run()) < 0.5


def test_rate_must_be_positive() -> None:
    with pytest.raises(ValueError):
        RateLimiter(rate=0)
