"""ResilientCaller - retry + circuit breaker + per-call timeout over any remote operation."""

from __future__ import annotations

import asyncio
import functools
import random
from typing import Any, Awaitable, Callable, TypeVar

from dogebridge.errors import is_transient
from dogebridge.models.config import BreakerConfig, RetryConfig
from dogebridge.models.snapshots import CircuitSnapshot
from dogebridge.resilience.circuit import CircuitBreaker, CircuitState
from dogebridge.resilience.retry import RetryPolicy, retry_with_backoff

T = TypeVar("T")


class ResilientCaller:
    """Wraps remote calls for one dependency (Dogecoin RPC, Soroban RPC, ...).

    Every attempt first consults the circuit breaker, so an open circuit
    fails fast with CircuitOpenError and no backoff delay is incurred. Each
    attempt is bounded by ``timeout``; there is no deadline across attempts.
    """

    def __init__(
        self,
        breaker: CircuitBreaker,
        policy: RetryPolicy | None = None,
        timeout: float | None = 30.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Callable[[], float] = random.random,
    ) -> None:
        self.breaker = breaker
        self.policy = policy or RetryPolicy()
        self._timeout = timeout
        self._sleep = sleep
        self._rng = rng

    @classmethod
    def from_config(
        cls, name: str, retry: RetryConfig, breaker: BreakerConfig,
    ) -> ResilientCaller:
        return cls(
            CircuitBreaker(name, breaker.failure_threshold, breaker.reset_timeout),
            RetryPolicy.from_config(retry),
            timeout=retry.call_timeout,
        )

    @property
    def name(self) -> str:
        return self.breaker.name

    async def call(self, fn: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """Invoke ``fn(*args, **kwargs)`` with retry, breaker and timeout applied."""

        async def _bounded() -> T:
            if self._timeout is None:
                return await fn(*args, **kwargs)
            return await asyncio.wait_for(fn(*args, **kwargs), self._timeout)

        async def _attempt() -> T:
            return await self.breaker.call(_bounded)

        def _retryable(exc: BaseException) -> bool:
            # Once this failure has opened the breaker, surface it without waiting
            return is_transient(exc) and self.breaker.state == CircuitState.CLOSED

        return await retry_with_backoff(
            _attempt,
            self.policy,
            is_retryable=_retryable,
            sleep=self._sleep,
            rng=self._rng,
            description=f"{self.name}:{getattr(fn, '__name__', 'call')}",
        )

    def wrap(self, fn: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        """Decorator form of :meth:`call`."""

        @functools.wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            return await self.call(fn, *args, **kwargs)

        return wrapper

    def snapshot(self) -> CircuitSnapshot:
        return self.breaker.snapshot()
