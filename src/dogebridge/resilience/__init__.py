"""Resilience primitives for unreliable remote nodes."""

from dogebridge.resilience.caller import ResilientCaller
from dogebridge.resilience.circuit import CircuitBreaker, CircuitState
from dogebridge.resilience.retry import RetryPolicy, retry_with_backoff

__all__ = [
    "ResilientCaller",
    "CircuitBreaker", "CircuitState",
    "RetryPolicy", "retry_with_backoff",
]
