"""SourceChainRpc protocol - the Dogecoin node operations the relay needs."""

from __future__ import annotations

from typing import Protocol

from dogebridge.models.records import UnspentOutput


class SourceChainRpc(Protocol):
    """Dogecoin Core JSON-RPC subset."""

    async def list_unspent(
        self,
        min_conf: int = 0,
        max_conf: int = 9_999_999,
        addresses: list[str] | None = None,
    ) -> list[UnspentOutput]:
        """UTXOs with confirmations in [min_conf, max_conf], optionally per address."""
        ...

    async def send_raw_transaction(self, raw_hex: str) -> str:
        """Broadcast a signed transaction. Returns its txid."""
        ...

    async def get_block_count(self) -> int:
        ...
