"""StateStore protocol - activity log, withdrawal archive and poll cursor."""

from __future__ import annotations

from typing import Protocol

from dogebridge.models.records import ActivityRecord, PendingWithdrawal


class StateStore(Protocol):
    """Keeps relay history out of the in-memory working sets."""

    # ── Lifecycle ──────────────────────────────────────────

    async def initialize(self) -> None:
        """Create tables if they don't exist."""
        ...

    async def close(self) -> None:
        ...

    # ── Cursor ─────────────────────────────────────────────

    async def get_cursor(self) -> str | None:
        ...

    async def set_cursor(self, cursor: str) -> None:
        ...

    # ── Withdrawal archive ─────────────────────────────────

    async def archive_withdrawal(self, withdrawal: PendingWithdrawal) -> None:
        ...

    async def get_archived_withdrawal(self, request_id: str) -> PendingWithdrawal | None:
        ...

    async def is_withdrawal_archived(self, request_id: str) -> bool:
        ...

    async def get_archived_withdrawals(self, limit: int = 100) -> list[PendingWithdrawal]:
        ...

    async def count_archived_withdrawals(self, status: str | None = None) -> int:
        ...

    # ── Activity ───────────────────────────────────────────

    async def log_activity(
        self,
        event_type: str,
        message: str,
        txid: str | None = None,
        address: str | None = None,
        amount: int | None = None,
    ) -> None:
        ...

    async def get_recent_activity(self, limit: int = 50) -> list[ActivityRecord]:
        ...
