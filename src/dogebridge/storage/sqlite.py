"""SQLite implementation of the StateStore protocol."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import aiosqlite

from dogebridge.models.records import ActivityRecord, PendingWithdrawal, WithdrawalStatus

SCHEMA = """
-- Settlement event cursor for resumption
CREATE TABLE IF NOT EXISTS cursor (
    id INTEGER PRIMARY KEY CHECK (id = 1),
    event_cursor TEXT NOT NULL,
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
);

-- Terminal withdrawals evicted from the in-memory table
CREATE TABLE IF NOT EXISTS withdrawal_archive (
    request_id TEXT PRIMARY KEY,
    holder TEXT NOT NULL,
    recipient_address TEXT NOT NULL,
    amount INTEGER NOT NULL,
    status TEXT NOT NULL,
    txid TEXT,
    fee INTEGER,
    error TEXT,
    requested_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    archived_at TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_withdrawal_archive_status ON withdrawal_archive(status);

-- Activity log
CREATE TABLE IF NOT EXISTS activity_log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    event_type TEXT NOT NULL,
    txid TEXT,
    address TEXT,
    amount INTEGER,
    message TEXT NOT NULL,
    created_at TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_activity_created ON activity_log(created_at);
"""

MEMORY_DB = ":memory:"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SQLiteStateStore:
    """SQLite-backed implementation of the StateStore protocol.

    Defaults to an in-memory database, so nothing outlives the process
    unless a file path is configured.
    """

    def __init__(self, db_path: str = MEMORY_DB) -> None:
        self._db_path = db_path
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        if self._db_path != MEMORY_DB:
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._db = await aiosqlite.connect(self._db_path)
        self._db.row_factory = aiosqlite.Row
        await self._db.executescript(SCHEMA)
        await self._db.commit()

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    @property
    def db(self) -> aiosqlite.Connection:
        assert self._db is not None, "Store not initialized. Call initialize() first."
        return self._db

    # ── Cursor ─────────────────────────────────────────────

    async def get_cursor(self) -> str | None:
        async with self.db.execute("SELECT event_cursor FROM cursor WHERE id=1") as cur:
            row = await cur.fetchone()
            return row["event_cursor"] if row else None

    async def set_cursor(self, cursor: str) -> None:
        await self.db.execute(
            "INSERT INTO cursor (id, event_cursor, updated_at) VALUES (1, ?, ?)"
            " ON CONFLICT(id) DO UPDATE SET event_cursor=excluded.event_cursor,"
            " updated_at=excluded.updated_at",
            (cursor, _now()),
        )
        await self.db.commit()

    # ── Withdrawal archive ─────────────────────────────────

    async def archive_withdrawal(self, withdrawal: PendingWithdrawal) -> None:
        await self.db.execute(
            "INSERT OR REPLACE INTO withdrawal_archive"
            " (request_id, holder, recipient_address, amount, status, txid, fee, error,"
            "  requested_at, updated_at, archived_at)"
            " VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                withdrawal.request_id, withdrawal.holder, withdrawal.recipient_address,
                withdrawal.amount, withdrawal.status.value, withdrawal.txid, withdrawal.fee,
                withdrawal.error, withdrawal.requested_at, withdrawal.updated_at, _now(),
            ),
        )
        await self.db.commit()

    async def get_archived_withdrawal(self, request_id: str) -> PendingWithdrawal | None:
        async with self.db.execute(
            "SELECT * FROM withdrawal_archive WHERE request_id=?", (request_id,)
        ) as cur:
            row = await cur.fetchone()
            return _row_to_withdrawal(row) if row else None

    async def is_withdrawal_archived(self, request_id: str) -> bool:
        async with self.db.execute(
            "SELECT 1 FROM withdrawal_archive WHERE request_id=?", (request_id,)
        ) as cur:
            return await cur.fetchone() is not None

    async def get_archived_withdrawals(self, limit: int = 100) -> list[PendingWithdrawal]:
        async with self.db.execute(
            "SELECT * FROM withdrawal_archive ORDER BY archived_at DESC LIMIT ?", (limit,)
        ) as cur:
            return [_row_to_withdrawal(row) async for row in cur]

    async def count_archived_withdrawals(self, status: str | None = None) -> int:
        if status is None:
            sql, params = "SELECT COUNT(*) AS n FROM withdrawal_archive", ()
        else:
            sql, params = "SELECT COUNT(*) AS n FROM withdrawal_archive WHERE status=?", (status,)
        async with self.db.execute(sql, params) as cur:
            row = await cur.fetchone()
            return row["n"]

    # ── Activity log ───────────────────────────────────────

    async def log_activity(
        self,
        event_type: str,
        message: str,
        txid: str | None = None,
        address: str | None = None,
        amount: int | None = None,
    ) -> None:
        await self.db.execute(
            "INSERT INTO activity_log (event_type, txid, address, amount, message, created_at)"
            " VALUES (?, ?, ?, ?, ?, ?)",
            (event_type, txid, address, amount, message, _now()),
        )
        await self.db.commit()

    async def get_recent_activity(self, limit: int = 50) -> list[ActivityRecord]:
        async with self.db.execute(
            "SELECT * FROM activity_log ORDER BY created_at DESC, id DESC LIMIT ?", (limit,)
        ) as cur:
            return [
                ActivityRecord(
                    id=row["id"],
                    event_type=row["event_type"],
                    txid=row["txid"],
                    address=row["address"],
                    amount=row["amount"],
                    message=row["message"],
                    created_at=row["created_at"],
                )
                async for row in cur
            ]


def _row_to_withdrawal(row: aiosqlite.Row) -> PendingWithdrawal:
    return PendingWithdrawal(
        request_id=row["request_id"],
        holder=row["holder"],
        recipient_address=row["recipient_address"],
        amount=row["amount"],
        requested_at=row["requested_at"],
        status=WithdrawalStatus(row["status"]),
        error=row["error"],
        txid=row["txid"],
        fee=row["fee"],
        updated_at=row["updated_at"],
    )
