"""Per-client admission control for inbound API calls."""

from __future__ import annotations

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from typing import Callable

from dogebridge.errors import RateLimited
from dogebridge.models.config import RateLimitConfig

log = logging.getLogger(__name__)

BURST_WINDOW = 1.0  # seconds


@dataclass
class RateLimitRecord:
    count: int
    reset_time: float
    burst_count: int
    last_burst_reset: float


class RateLimiter:
    """Window quota per client key plus a 1-second burst cap.

    A client's window opens with its first admitted request and lasts
    ``window_seconds``; once it has passed the next request starts a fresh
    window. Independently, no more than ``burst_limit`` requests are
    admitted within any one burst window.
    """

    def __init__(
        self,
        max_requests: int = 10,
        window_seconds: float = 60.0,
        burst_limit: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.burst_limit = burst_limit or math.ceil(max_requests * 1.5)
        self._clock = clock
        self._records: dict[str, RateLimitRecord] = {}

    @classmethod
    def from_config(cls, cfg: RateLimitConfig, clock: Callable[[], float] = time.monotonic) -> RateLimiter:
        return cls(cfg.max_requests, cfg.window_seconds, cfg.burst_limit, clock=clock)

    def _new_record(self, now: float) -> RateLimitRecord:
        return RateLimitRecord(
            count=1, reset_time=now + self.window_seconds, burst_count=1, last_burst_reset=now,
        )

    def check(self, key: str) -> bool:
        """Admit (and count) one request for ``key``, or return False."""
        now = self._clock()
        record = self._records.get(key)
        if record is None or now >= record.reset_time:
            self._records[key] = self._new_record(now)
            return True

        if now - record.last_burst_reset >= BURST_WINDOW:
            record.burst_count = 0
            record.last_burst_reset = now
        if record.burst_count >= self.burst_limit:
            return False
        if record.count >= self.max_requests:
            return False

        record.count += 1
        record.burst_count += 1
        return True

    def acquire(self, key: str) -> None:
        """Like :meth:`check` but raises RateLimited on rejection."""
        if not self.check(key):
            retry_after = max(self.reset_time(key) - self._clock(), 0.0)
            if self.remaining(key) > 0:
                retry_after = BURST_WINDOW
            log.info("Rate limited %s (retry in %.1fs)", key, retry_after)
            raise RateLimited(key, retry_after)

    def remaining(self, key: str) -> int:
        record = self._records.get(key)
        if record is None or self._clock() >= record.reset_time:
            return self.max_requests
        return max(0, self.max_requests - record.count)

    def burst_remaining(self, key: str) -> int:
        record = self._records.get(key)
        if record is None or self._clock() - record.last_burst_reset >= BURST_WINDOW:
            return self.burst_limit
        return max(0, self.burst_limit - record.burst_count)

    def reset_time(self, key: str) -> float:
        """Clock value at which ``key``'s current window ends."""
        record = self._records.get(key)
        return record.reset_time if record else self._clock() + self.window_seconds

    def reset(self, key: str) -> None:
        self._records.pop(key, None)

    def cleanup(self) -> int:
        """Drop expired client records. Returns how many were removed."""
        now = self._clock()
        expired = [k for k, r in self._records.items() if now >= r.reset_time]
        for key in expired:
            del self._records[key]
        if expired:
            log.debug("Purged %d expired rate-limit records", len(expired))
        return len(expired)

    def __len__(self) -> int:
        return len(self._records)

    async def run_cleanup(self, interval: float = 60.0) -> None:
        """Purge expired records every ``interval`` seconds until cancelled."""
        while True:
            await asyncio.sleep(interval)
            self.cleanup()
