"""JSON-serializable snapshot models for the inbound API."""

from __future__ import annotations

from dataclasses import dataclass, field, asdict
from typing import Any


def _to_dict(obj: Any) -> dict:
    """Recursively convert a dataclass to a plain dict."""
    return asdict(obj)


@dataclass
class CircuitSnapshot:
    name: str
    state: str  # "closed" | "open"
    failure_count: int
    last_failure_time: float | None = None


@dataclass
class WithdrawalSnapshot:
    """A withdrawal request as seen by API clients."""

    request_id: str
    holder: str
    recipient_address: str
    amount: int  # koinu
    amount_doge: str  # "12.50000000 DOGE"
    status: str
    txid: str | None = None
    fee: int | None = None
    error: str | None = None
    requested_at: str = ""
    updated_at: str = ""


@dataclass
class ActivityEntry:
    """A single line in the activity feed."""

    timestamp: str  # ISO 8601
    event_type: str
    txid: str | None = None
    address: str | None = None
    amount: int | None = None  # koinu
    message: str = ""


@dataclass
class BridgeSnapshot:
    """Relay state in one serializable object."""

    operator_doge_address: str
    operator_stellar_address: str
    uptime_seconds: int

    watched_addresses: int
    deposits_minted: int
    deposits_failed: int

    withdrawals_pending: int
    withdrawals_processing: int
    withdrawals_completed: int
    withdrawals_failed: int

    circuits: list[CircuitSnapshot] = field(default_factory=list)
    recent_activity: list[ActivityEntry] = field(default_factory=list)

    def to_dict(self) -> dict:
        return _to_dict(self)
