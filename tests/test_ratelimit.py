"""Inbound rate limiter: window quota, burst cap and record cleanup."""

from __future__ import annotations

import pytest

from dogebridge.api.ratelimit import RateLimiter
from dogebridge.errors import RateLimited
from dogebridge.models.config import RateLimitConfig

from tests.mocks import FakeClock


def _spread(limiter: RateLimiter, clock: FakeClock, key: str, n: int) -> list[bool]:
    """Issue ``n`` requests 1.5s apart so the burst window never binds."""
    results = []
    for _ in range(n):
        results.append(limiter.check(key))
        clock.advance(1.5)
    return results


# ── Test 1: window quota ────────────────────────────────────────


async def test_eleventh_request_in_window_rejected():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=10, window_seconds=60, clock=clock)

    results = _spread(limiter, clock, "1.2.3.4", 11)

    assert results[:10] == [True] * 10
    assert results[10] is False
    assert limiter.remaining("1.2.3.4") == 0


async def test_admitted_again_after_window():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=10, window_seconds=60, clock=clock)
    _spread(limiter, clock, "client", 10)
    assert limiter.check("client") is False

    clock.now = limiter.reset_time("client")

    assert limiter.check("client") is True
    assert limiter.remaining("client") == 9


async def test_keys_are_independent():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=1, window_seconds=60, clock=clock)

    assert limiter.check("a") is True
    assert limiter.check("a") is False
    assert limiter.check("b") is True


# ── Test 2: burst cap ───────────────────────────────────────────


async def test_burst_limit_within_one_second():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=10, window_seconds=60, burst_limit=3, clock=clock)

    assert [limiter.check("k") for _ in range(4)] == [True, True, True, False]
    assert limiter.burst_remaining("k") == 0

    clock.advance(1.0)
    assert limiter.check("k") is True
    assert limiter.remaining("k") == 6


async def test_default_burst_is_one_and_a_half_quota():
    assert RateLimiter(max_requests=10).burst_limit == 15
    assert RateLimiter(max_requests=3).burst_limit == 5


# ── Test 3: acquire ─────────────────────────────────────────────


async def test_acquire_raises_with_retry_after():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=2, window_seconds=60, clock=clock)
    limiter.acquire("k")
    clock.advance(2)
    limiter.acquire("k")
    clock.advance(8)

    with pytest.raises(RateLimited) as exc_info:
        limiter.acquire("k")

    assert exc_info.value.client_key == "k"
    assert exc_info.value.retry_after == pytest.approx(50)


async def test_acquire_burst_rejection_suggests_burst_window():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=10, window_seconds=60, burst_limit=1, clock=clock)
    limiter.acquire("k")

    with pytest.raises(RateLimited) as exc_info:
        limiter.acquire("k")

    assert exc_info.value.retry_after == 1.0


# ── Test 4: bookkeeping ─────────────────────────────────────────


async def test_cleanup_drops_expired_records():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=5, window_seconds=60, clock=clock)
    limiter.check("old")
    clock.advance(30)
    limiter.check("new")
    clock.advance(30)

    assert limiter.cleanup() == 1
    assert len(limiter) == 1
    assert limiter.remaining("new") == 4


async def test_remaining_for_unknown_key_is_full_quota():
    limiter = RateLimiter(max_requests=7, clock=FakeClock())
    assert limiter.remaining("nobody") == 7
    assert limiter.burst_remaining("nobody") == limiter.burst_limit


async def test_reset_forgets_client():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=1, clock=clock)
    limiter.check("k")
    limiter.reset("k")
    assert limiter.check("k") is True


async def test_from_config():
    cfg = RateLimitConfig(max_requests=4, window_seconds=30, burst_limit=2)
    limiter = RateLimiter.from_config(cfg, clock=FakeClock())
    assert limiter.max_requests == 4
    assert limiter.window_seconds == 30
    assert limiter.burst_limit == 2
