"""Retry with exponential backoff and jitter."""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from dogebridge.errors import is_transient
from dogebridge.models.config import RetryConfig

log = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryPolicy:
    max_retries: int = 3  # total attempts, including the first
    initial_delay: float = 1.0
    max_delay: float = 30.0
    max_jitter: float = 1.0

    @classmethod
    def from_config(cls, cfg: RetryConfig) -> RetryPolicy:
        return cls(
            max_retries=cfg.max_retries,
            initial_delay=cfg.initial_delay,
            max_delay=cfg.max_delay,
            max_jitter=cfg.max_jitter,
        )

    def delay_for(self, attempt: int, rng: Callable[[], float] = random.random) -> float:
        """Backoff before the retry that follows failed ``attempt`` (0-based)."""
        base = min(self.initial_delay * (2 ** attempt), self.max_delay)
        return base + rng() * self.max_jitter


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    is_retryable: Callable[[BaseException], bool] = is_transient,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    rng: Callable[[], float] = random.random,
    description: str = "operation",
) -> T:
    """Run ``operation`` up to ``policy.max_retries`` times.

    Non-retryable errors propagate immediately. When every attempt fails the
    last error is re-raised.
    """
    attempts = max(policy.max_retries, 1)
    for attempt in range(attempts):
        try:
            return await operation()
        except Exception as exc:
            if not is_retryable(exc) or attempt == attempts - 1:
                raise
            delay = policy.delay_for(attempt, rng)
            log.warning(
                "%s failed (attempt %d/%d): %s; retrying in %.2fs",
                description, attempt + 1, attempts, exc, delay,
            )
            await sleep(delay)
    raise AssertionError("unreachable")
