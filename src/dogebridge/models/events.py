"""Bridge events: source-chain deposits and settlement-chain contract events."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class DepositEvent:
    """A confirmed deposit to a watched Dogecoin address.

    Emitted at most once per txid by the DepositMonitor.
    """

    txid: str
    address: str
    amount: int  # koinu, summed over the tx's outputs to this address
    confirmations: int


@dataclass(frozen=True)
class MintEvent:
    """Emitted by the token contract when wDOGE is minted (MINT topic)."""

    to: str  # Stellar address
    amount: int
    ledger_sequence: int


@dataclass(frozen=True)
class BurnEvent:
    """Emitted by the token contract when wDOGE is burned (BURN topic)."""

    holder: str  # Stellar address
    amount: int
    ledger_sequence: int


@dataclass(frozen=True)
class WithdrawalRequestedEvent:
    """A holder burned wDOGE and asked for DOGE at a source-chain address (WITHDRAW topic)."""

    request_id: str
    holder: str  # Stellar address
    doge_address: str
    amount: int  # koinu
    ledger_sequence: int
