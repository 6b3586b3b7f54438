"""Exception taxonomy shared by every bridge component."""

from __future__ import annotations

import asyncio

import httpx


class BridgeError(Exception):
    """Root of all dogebridge errors."""


class ConfigurationError(BridgeError):
    """Bad endpoint, bad key format, missing contract id. Fatal at startup."""


class RpcError(BridgeError):
    """A remote node returned an error or could not be reached."""

    # Dogecoin Core codes that mean the request itself is wrong; retrying cannot help.
    PERMANENT_CODES = frozenset({-3, -5, -8, -22, -25, -26, -27})

    def __init__(self, message: str, code: int | None = None, method: str | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.method = method

    @property
    def permanent(self) -> bool:
        return self.code in self.PERMANENT_CODES


class ValidationError(BridgeError, ValueError):
    """Permanent, input-level failure. Never retried."""


class InvalidAddress(ValidationError):
    pass


class InvalidAmount(ValidationError):
    pass


class InvalidTxid(ValidationError):
    pass


class DustThreshold(ValidationError):
    """Payout amount is below the chain's minimum output value."""

    def __init__(self, amount: int, threshold: int) -> None:
        super().__init__(f"amount {amount} is below dust threshold {threshold}")
        self.amount = amount
        self.threshold = threshold


class InsufficientFunds(BridgeError):
    """The payout pool cannot cover amount + fee."""

    def __init__(self, required: int, available: int) -> None:
        super().__init__(f"insufficient funds: need {required}, have {available}")
        self.required = required
        self.available = available


class SettlementRejected(BridgeError):
    """The settlement contract refused a call (simulation or on-chain failure)."""

    def __init__(self, function: str, reason: str) -> None:
        super().__init__(f"{function} rejected: {reason}")
        self.function = function
        self.reason = reason


class AlreadyProcessed(BridgeError):
    """Idempotency short-circuit. Callers that re-submit treat it as success."""

    def __init__(self, key: str) -> None:
        super().__init__(f"already processed: {key}")
        self.key = key


class CircuitOpenError(BridgeError):
    """The dependency's circuit breaker is open; try later."""

    def __init__(self, name: str, retry_after: float) -> None:
        super().__init__(f"circuit '{name}' is open (retry in {retry_after:.1f}s)")
        self.name = name
        self.retry_after = retry_after


class RateLimited(BridgeError):
    """Inbound request rejected by the rate limiter."""

    def __init__(self, client_key: str, retry_after: float) -> None:
        super().__init__(f"rate limit exceeded for {client_key}")
        self.client_key = client_key
        self.retry_after = retry_after


def is_transient(exc: BaseException) -> bool:
    """True for failures worth retrying: RPC errors, timeouts, transport errors."""
    if isinstance(exc, (ValidationError, InsufficientFunds, AlreadyProcessed,
                        CircuitOpenError, ConfigurationError, SettlementRejected)):
        return False
    if isinstance(exc, RpcError):
        return not exc.permanent
    return isinstance(exc, (asyncio.TimeoutError, TimeoutError, httpx.TransportError))
