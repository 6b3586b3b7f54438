"""Data models for the dogebridge relay."""

from dogebridge.models.events import (
    BurnEvent,
    DepositEvent,
    MintEvent,
    WithdrawalRequestedEvent,
)
from dogebridge.models.records import (
    ActionResult,
    ActivityRecord,
    DepositAddress,
    DepositRecord,
    DepositStatus,
    MintResult,
    PayoutTransaction,
    PendingWithdrawal,
    UnspentOutput,
    WithdrawalStatus,
)
from dogebridge.models.config import (
    BreakerConfig,
    BridgeConfig,
    DogeNetwork,
    RateLimitConfig,
    RetryConfig,
)
from dogebridge.models.snapshots import (
    ActivityEntry,
    BridgeSnapshot,
    CircuitSnapshot,
    WithdrawalSnapshot,
)

__all__ = [
    "BurnEvent", "DepositEvent", "MintEvent", "WithdrawalRequestedEvent",
    "ActionResult", "ActivityRecord", "DepositAddress", "DepositRecord",
    "DepositStatus", "MintResult", "PayoutTransaction", "PendingWithdrawal",
    "UnspentOutput", "WithdrawalStatus",
    "BreakerConfig", "BridgeConfig", "DogeNetwork", "RateLimitConfig", "RetryConfig",
    "ActivityEntry", "BridgeSnapshot", "CircuitSnapshot", "WithdrawalSnapshot",
]
