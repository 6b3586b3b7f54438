"""Internal record types for relay state and operation results."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class WithdrawalStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (WithdrawalStatus.COMPLETED, WithdrawalStatus.FAILED)


class DepositStatus(str, Enum):
    MINTING = "minting"
    MINTED = "minted"
    SKIPPED = "skipped"  # already minted on-chain before this process saw it
    FAILED = "failed"


@dataclass
class DepositAddress:
    """A per-user deposit address and the key that controls it.

    Owned exclusively by the AddressManager.
    """

    address: str
    owner_id: str  # Stellar account that receives the minted wDOGE
    signing_key: bytes = field(repr=False)  # 32-byte secp256k1 secret
    observed_balance: int = 0  # koinu, absolute value from the last scan
    created_at: str = ""  # ISO 8601


@dataclass(frozen=True)
class UnspentOutput:
    """A source-chain UTXO as reported by listunspent. Never mutated."""

    txid: str
    vout: int
    value: int  # koinu
    confirmations: int
    script_pubkey: str = ""  # hex
    address: str = ""


@dataclass
class PendingWithdrawal:
    """A settlement-chain withdrawal request moving through the payout state machine."""

    request_id: str
    holder: str  # Stellar address that burned
    recipient_address: str  # Dogecoin payout address
    amount: int  # koinu
    requested_at: str = ""  # ISO 8601
    status: WithdrawalStatus = WithdrawalStatus.PENDING
    error: str | None = None
    txid: str | None = None  # source-chain payout txid once broadcast
    fee: int | None = None
    updated_at: str = ""
    finished_at: float | None = None  # monotonic time of the terminal transition


@dataclass
class DepositRecord:
    """Orchestrator bookkeeping for one deposit txid."""

    txid: str
    address: str
    owner_id: str
    amount: int
    deposit_id: str  # hex sha256(txid), the settlement-chain idempotency key
    status: DepositStatus = DepositStatus.MINTING
    mint_tx_hash: str | None = None
    error: str | None = None
    created_at: str = ""
    updated_at: str = ""


@dataclass
class MintResult:
    """Result of a mint() submission on the settlement chain."""

    success: bool
    recipient: str
    amount: int
    deposit_id: str
    tx_hash: str | None = None
    error: str | None = None


@dataclass
class PayoutTransaction:
    """A signed source-chain payout, ready to broadcast."""

    txid: str
    raw_hex: str
    inputs: list[UnspentOutput]
    amount: int
    fee: int
    change: int  # 0 when the excess was absorbed into the fee
    recipient: str
    change_address: str | None = None

    @property
    def total_in(self) -> int:
        return sum(u.value for u in self.inputs)


@dataclass
class ActivityRecord:
    """A single activity log entry."""

    id: int
    event_type: str
    txid: str | None
    address: str | None
    amount: int | None  # koinu
    message: str
    created_at: str


@dataclass
class ActionResult:
    """Result of an API-initiated action."""

    success: bool
    message: str
