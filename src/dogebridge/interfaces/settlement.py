"""SettlementChain protocol - wrapped-token contract calls."""

from __future__ import annotations

from typing import Protocol

from dogebridge.models.records import MintResult


class SettlementChain(Protocol):
    """Mint/burn surface of the wDOGE token contract."""

    async def mint(self, recipient: str, amount: int, deposit_id: bytes) -> MintResult:
        """Mint ``amount`` to ``recipient``, keyed by ``deposit_id`` for idempotency."""
        ...

    async def burn(self, holder: str, amount: int) -> str:
        """Burn ``amount`` from ``holder``. Raises SettlementRejected if the contract refuses."""
        ...

    async def is_deposit_processed(self, deposit_id: bytes) -> bool:
        ...

    async def confirm_withdrawal(self, request_id: int, doge_txid: str) -> str:
        """Record the payout txid against a withdrawal request."""
        ...
