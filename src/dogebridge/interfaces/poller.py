"""EventPoller protocol - polls Soroban RPC for contract events."""

from __future__ import annotations

from typing import Protocol, Union

from dogebridge.models.events import BurnEvent, MintEvent, WithdrawalRequestedEvent

ContractEvent = Union[MintEvent, BurnEvent, WithdrawalRequestedEvent]


class EventPoller(Protocol):
    """Polls for new wDOGE contract events."""

    async def poll(self) -> list[ContractEvent]:
        """Fetch new events since last cursor. Returns deserialized events."""
        ...

    @property
    def cursor(self) -> str | None:
        ...

    def set_cursor(self, cursor: str) -> None:
        """Restore cursor from persisted state."""
        ...
