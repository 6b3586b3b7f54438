"""Circuit breaker, retry backoff and the resilient caller wrapping both."""

from __future__ import annotations

import asyncio

import pytest

from dogebridge.errors import CircuitOpenError, InvalidAddress, RpcError
from dogebridge.resilience.circuit import CircuitBreaker, CircuitState
from dogebridge.resilience.retry import RetryPolicy, retry_with_backoff

from tests.conftest import make_caller
from tests.mocks import FakeClock, RecordingSleep


class Flaky:
    """Async callable failing ``failures`` times before returning ``result``."""

    def __init__(self, failures: int, exc: Exception | None = None, result: str = "ok") -> None:
        self.failures = failures
        self.exc = exc or RpcError("connection refused")
        self.result = result
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.exc
        return self.result


# ── Test 1: breaker opens at threshold ──────────────────────────


async def test_breaker_opens_after_threshold_failures():
    """Five consecutive transient failures open the circuit."""
    clock = FakeClock()
    breaker = CircuitBreaker("doge", failure_threshold=5, reset_timeout=60, clock=clock)
    op = Flaky(failures=100)

    for _ in range(5):
        with pytest.raises(RpcError):
            await breaker.call(op)

    assert breaker.state == CircuitState.OPEN
    assert breaker.failure_count == 5
    assert breaker.last_failure_time == clock.now


async def test_open_breaker_rejects_without_calling():
    """While open, calls fail fast and the operation is never invoked."""
    clock = FakeClock()
    breaker = CircuitBreaker("doge", failure_threshold=2, reset_timeout=60, clock=clock)
    op = Flaky(failures=100)
    for _ in range(2):
        with pytest.raises(RpcError):
            await breaker.call(op)

    clock.advance(10)
    with pytest.raises(CircuitOpenError) as exc_info:
        await breaker.call(op)

    assert op.calls == 2
    assert exc_info.value.retry_after == pytest.approx(50)


# ── Test 2: cool-down closes the breaker ────────────────────────


async def test_breaker_closes_after_cooldown():
    """Once reset_timeout elapses the counter resets and calls flow again."""
    clock = FakeClock()
    breaker = CircuitBreaker("doge", failure_threshold=2, reset_timeout=60, clock=clock)
    for _ in range(2):
        with pytest.raises(RpcError):
            await breaker.call(Flaky(failures=1))

    clock.advance(59.9)
    assert breaker.state == CircuitState.OPEN

    clock.advance(0.1)
    assert breaker.state == CircuitState.CLOSED
    assert breaker.failure_count == 0
    assert await breaker.call(Flaky(failures=0)) == "ok"


async def test_success_resets_failure_count():
    """A success between failures keeps the breaker closed."""
    breaker = CircuitBreaker("doge", failure_threshold=3, clock=FakeClock())
    for _ in range(2):
        with pytest.raises(RpcError):
            await breaker.call(Flaky(failures=1))
    await breaker.call(Flaky(failures=0))
    with pytest.raises(RpcError):
        await breaker.call(Flaky(failures=1))

    assert breaker.failure_count == 1
    assert breaker.state == CircuitState.CLOSED


async def test_validation_errors_do_not_count():
    """Input-level failures pass through without touching the counter."""
    breaker = CircuitBreaker("doge", failure_threshold=1, clock=FakeClock())
    with pytest.raises(InvalidAddress):
        await breaker.call(Flaky(failures=1, exc=InvalidAddress("bad")))
    with pytest.raises(RpcError):
        await breaker.call(Flaky(failures=1, exc=RpcError("rejected", code=-26)))

    assert breaker.failure_count == 0
    assert breaker.state == CircuitState.CLOSED


async def test_snapshot_reports_state():
    clock = FakeClock()
    breaker = CircuitBreaker("soroban", failure_threshold=1, clock=clock)
    with pytest.raises(RpcError):
        await breaker.call(Flaky(failures=1))

    snap = breaker.snapshot()
    assert snap.name == "soroban"
    assert snap.state == "open"
    assert snap.failure_count == 1
    assert snap.last_failure_time == clock.now


# ── Test 3: retry with backoff ──────────────────────────────────


async def test_retry_backoff_delays():
    """Delays grow exponentially and carry the jitter term."""
    sleep = RecordingSleep()
    op = Flaky(failures=2)
    policy = RetryPolicy(max_retries=3, initial_delay=1.0, max_delay=30.0, max_jitter=1.0)

    result = await retry_with_backoff(op, policy, sleep=sleep, rng=lambda: 0.5)

    assert result == "ok"
    assert op.calls == 3
    assert sleep.delays == [1.5, 2.5]


async def test_retry_gives_up_with_last_error():
    sleep = RecordingSleep()
    op = Flaky(failures=10)

    with pytest.raises(RpcError):
        await retry_with_backoff(op, RetryPolicy(max_retries=3), sleep=sleep, rng=lambda: 0.0)

    assert op.calls == 3
    assert sleep.delays == [1.0, 2.0]


async def test_delay_is_capped():
    policy = RetryPolicy(initial_delay=1.0, max_delay=30.0, max_jitter=1.0)
    assert policy.delay_for(10, rng=lambda: 0.0) == 30.0
    assert policy.delay_for(10, rng=lambda: 1.0) == 31.0


async def test_non_retryable_raises_immediately():
    """Validation errors are not retried."""
    sleep = RecordingSleep()
    op = Flaky(failures=1, exc=InvalidAddress("nope"))

    with pytest.raises(InvalidAddress):
        await retry_with_backoff(op, RetryPolicy(max_retries=5), sleep=sleep)

    assert op.calls == 1
    assert sleep.delays == []


# ── Test 4: resilient caller ────────────────────────────────────


async def test_caller_retries_transient_then_succeeds():
    sleep = RecordingSleep()
    caller = make_caller("doge", sleep=sleep)
    op = Flaky(failures=2)

    assert await caller.call(op) == "ok"
    assert op.calls == 3
    assert sleep.delays == [1.0, 2.0]
    assert caller.breaker.failure_count == 0


async def test_caller_stops_retrying_once_breaker_opens():
    """The failure that opens the breaker is surfaced without further attempts."""
    sleep = RecordingSleep()
    caller = make_caller("doge", failure_threshold=2, max_retries=5, sleep=sleep)
    op = Flaky(failures=100)

    with pytest.raises(RpcError):
        await caller.call(op)

    assert op.calls == 2
    assert len(sleep.delays) == 1

    with pytest.raises(CircuitOpenError):
        await caller.call(op)
    assert op.calls == 2


async def test_caller_passes_arguments():
    caller = make_caller()

    async def add(a, b, scale=1):
        return (a + b) * scale

    assert await caller.call(add, 2, 3, scale=10) == 50


async def test_caller_wrap_decorator():
    caller = make_caller()
    calls = []

    @caller.wrap
    async def fetch(x):
        calls.append(x)
        return x * 2

    assert await fetch(21) == 42
    assert fetch.__name__ == "fetch"
    assert calls == [21]


async def test_caller_timeout_counts_as_failure():
    """A hung attempt is cut off and recorded against the breaker."""
    caller = make_caller("soroban", max_retries=1, timeout=0.01)

    async def hang():
        await asyncio.sleep(5)

    with pytest.raises(asyncio.TimeoutError):
        await caller.call(hang)

    assert caller.breaker.failure_count == 1
    assert caller.snapshot().state == "closed"
