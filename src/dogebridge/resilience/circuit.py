"""Circuit breaker guarding a single remote dependency."""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Any, Awaitable, Callable, TypeVar

from dogebridge.errors import CircuitOpenError, is_transient
from dogebridge.models.snapshots import CircuitSnapshot

log = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"


class CircuitBreaker:
    """Closed/Open breaker with a timed cool-down.

    Each transient failure increments a counter and stamps the failure time.
    When the counter reaches ``failure_threshold`` the breaker opens and
    rejects calls with CircuitOpenError until ``reset_timeout`` seconds have
    passed since the last failure; the counter then resets and calls flow
    again. There is no half-open state: the first call after the cool-down
    is a normal Closed-state call.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        reset_timeout: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self._failure_threshold = failure_threshold
        self._reset_timeout = reset_timeout
        self._clock = clock
        self._failures = 0
        self._last_failure: float | None = None

    @property
    def failure_count(self) -> int:
        return self._failures

    @property
    def last_failure_time(self) -> float | None:
        return self._last_failure

    @property
    def state(self) -> CircuitState:
        return CircuitState.OPEN if self._is_open() else CircuitState.CLOSED

    def _is_open(self) -> bool:
        if self._failures < self._failure_threshold:
            return False
        assert self._last_failure is not None
        if self._clock() - self._last_failure < self._reset_timeout:
            return True
        log.info("Circuit '%s' cool-down elapsed, closing", self.name)
        self._failures = 0
        return False

    def check(self) -> None:
        """Raise CircuitOpenError if calls are currently being rejected."""
        if self._is_open():
            assert self._last_failure is not None
            retry_after = self._reset_timeout - (self._clock() - self._last_failure)
            raise CircuitOpenError(self.name, max(retry_after, 0.0))

    def record_success(self) -> None:
        self._failures = 0

    def record_failure(self) -> None:
        self._failures += 1
        self._last_failure = self._clock()
        if self._failures == self._failure_threshold:
            log.warning(
                "Circuit '%s' opened after %d consecutive failures (cool-down %.0fs)",
                self.name, self._failures, self._reset_timeout,
            )

    def reset(self) -> None:
        self._failures = 0
        self._last_failure = None

    async def call(self, operation: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """Run ``operation`` under the breaker.

        Only transient failures count against the dependency; input-level
        errors pass through without touching the counter.
        """
        self.check()
        try:
            result = await operation(*args, **kwargs)
        except Exception as exc:
            if is_transient(exc):
                self.record_failure()
            raise
        self.record_success()
        return result

    def snapshot(self) -> CircuitSnapshot:
        return CircuitSnapshot(
            name=self.name,
            state=self.state.value,
            failure_count=self._failures,
            last_failure_time=self._last_failure,
        )
