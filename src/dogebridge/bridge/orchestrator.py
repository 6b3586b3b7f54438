"""BridgeOrchestrator - deposits to mints, payouts to settlement bookkeeping."""

from __future__ import annotations

import asyncio
import hashlib
import logging
from datetime import datetime, timezone

from dogebridge.bridge.withdrawal_monitor import WithdrawalMonitor, settlement_request_id
from dogebridge.dogecoin.addresses import AddressManager
from dogebridge.dogecoin.tx import validate_txid
from dogebridge.errors import AlreadyProcessed, BridgeError
from dogebridge.interfaces.settlement import SettlementChain
from dogebridge.interfaces.store import StateStore
from dogebridge.models.events import DepositEvent
from dogebridge.models.records import DepositRecord, DepositStatus, PendingWithdrawal
from dogebridge.resilience.caller import ResilientCaller

log = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def deposit_id_for(txid: str) -> bytes:
    """Settlement-chain idempotency key for a source-chain deposit."""
    return hashlib.sha256(bytes.fromhex(validate_txid(txid))).digest()


class BridgeOrchestrator:
    """Consumes DepositEvents and mints exactly once per source txid.

    The processed set is owned here and only touched by the queue consumer,
    so a txid enters it before the first settlement call is made. A mint
    that fails after retries leaves the txid processed and the record
    ``failed``; :meth:`reconcile_deposit` re-drives it.
    """

    def __init__(
        self,
        addresses: AddressManager,
        settlement: SettlementChain,
        caller: ResilientCaller,
        deposits: asyncio.Queue[DepositEvent],
        store: StateStore | None = None,
        withdrawals: WithdrawalMonitor | None = None,
    ) -> None:
        self._addresses = addresses
        self._settlement = settlement
        self._caller = caller
        self._deposits = deposits
        self._store = store
        self._withdrawals = withdrawals
        self._records: dict[str, DepositRecord] = {}
        self._processed: set[str] = set()
        self._task: asyncio.Task | None = None

    # ── Deposits ──────────────────────────────────────────────

    async def handle_deposit(self, event: DepositEvent) -> DepositRecord:
        """Mint for one deposit. Raises AlreadyProcessed for a repeated txid."""
        if event.txid in self._processed:
            raise AlreadyProcessed(event.txid)

        stamp = _now()
        record = DepositRecord(
            txid=event.txid,
            address=event.address,
            owner_id="",
            amount=event.amount,
            deposit_id="",
            created_at=stamp,
            updated_at=stamp,
        )
        self._records[event.txid] = record
        self._processed.add(event.txid)

        await self._activity(
            "deposit_detected", f"Deposit of {event.amount} koinu confirmed",
            txid=event.txid, address=event.address, amount=event.amount,
        )
        return await self._settle(record)

    async def _settle(self, record: DepositRecord) -> DepositRecord:
        record.status = DepositStatus.MINTING
        record.error = None

        details = self._addresses.get_address_details(record.address)
        if details is None:
            return await self._fail(record, f"unknown deposit address {record.address}")
        record.owner_id = details.owner_id

        try:
            deposit_id = deposit_id_for(record.txid)
        except BridgeError as exc:
            return await self._fail(record, str(exc))
        record.deposit_id = deposit_id.hex()

        try:
            if await self._caller.call(self._settlement.is_deposit_processed, deposit_id):
                record.status = DepositStatus.SKIPPED
                record.updated_at = _now()
                log.info("Deposit %s was already minted on-chain, skipping", record.txid)
                return record
            result = await self._caller.call(
                self._settlement.mint, record.owner_id, record.amount, deposit_id,
            )
        except Exception as exc:
            return await self._fail(record, str(exc))

        if not result.success:
            return await self._fail(record, result.error or "mint failed")

        record.status = DepositStatus.MINTED
        record.mint_tx_hash = result.tx_hash
        record.updated_at = _now()
        log.info(
            "Minted %d to %s for deposit %s (tx=%s)",
            record.amount, record.owner_id, record.txid, (result.tx_hash or "?")[:16],
        )
        await self._activity(
            "minted", f"Minted {record.amount} to {record.owner_id[:8]}...",
            txid=record.txid, address=record.address, amount=record.amount,
        )
        return record

    async def _fail(self, record: DepositRecord, error: str) -> DepositRecord:
        record.status = DepositStatus.FAILED
        record.error = error
        record.updated_at = _now()
        log.error("Deposit %s failed: %s", record.txid, error)
        await self._activity(
            "mint_failed", f"Mint failed: {error}",
            txid=record.txid, address=record.address, amount=record.amount,
        )
        return record

    async def reconcile_deposit(self, txid: str) -> DepositRecord:
        """Retry the settlement side of a failed deposit."""
        record = self._records.get(txid)
        if record is None:
            raise BridgeError(f"unknown deposit {txid}")
        if record.status in (DepositStatus.MINTED, DepositStatus.SKIPPED):
            raise AlreadyProcessed(txid)
        log.info("Reconciling deposit %s", txid)
        return await self._settle(record)

    def get_deposit(self, txid: str) -> DepositRecord | None:
        return self._records.get(txid)

    def deposits(self) -> list[DepositRecord]:
        return list(self._records.values())

    def count(self, status: DepositStatus) -> int:
        return sum(1 for r in self._records.values() if r.status == status)

    # ── Withdrawals ───────────────────────────────────────────

    async def on_withdrawal_completed(self, w: PendingWithdrawal) -> None:
        """Record the payout txid on the settlement chain. Failures only log."""
        if not w.txid:
            return
        request_id = settlement_request_id(w.request_id)
        if request_id is None:
            log.debug("Withdrawal %s was not requested on-chain, not confirming", w.request_id)
            return
        try:
            await self._caller.call(self._settlement.confirm_withdrawal, request_id, w.txid)
            log.info("Confirmed withdrawal %s on-chain (payout %s)", w.request_id, w.txid)
        except Exception as exc:
            log.warning("confirm_withdrawal failed for %s: %s", w.request_id, exc)

    async def reconcile_withdrawal(self, request_id: str, source_txid: str) -> PendingWithdrawal:
        """Mark a withdrawal completed whose payout was found broadcast on-chain."""
        if self._withdrawals is None:
            raise BridgeError("withdrawals are not handled by this orchestrator")
        w = self._withdrawals.reconcile(request_id, source_txid)
        await self._activity(
            "withdrawal_reconciled", f"Withdrawal {request_id} reconciled",
            txid=w.txid, address=w.recipient_address, amount=w.amount,
        )
        await self.on_withdrawal_completed(w)
        return w

    # ── Lifecycle ─────────────────────────────────────────────

    async def drain(self) -> list[DepositRecord]:
        """Handle every DepositEvent currently queued."""
        handled = []
        while not self._deposits.empty():
            record = await self._consume_one()
            if record is not None:
                handled.append(record)
        return handled

    async def _consume_one(self) -> DepositRecord | None:
        event = await self._deposits.get()
        try:
            return await self.handle_deposit(event)
        except AlreadyProcessed:
            log.info("Deposit %s already processed", event.txid)
            return None
        finally:
            self._deposits.task_done()

    async def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._consume_loop(), name="deposit-consumer")

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def _consume_loop(self) -> None:
        while True:
            try:
                await self._consume_one()
            except Exception:
                log.error("Deposit handling failed", exc_info=True)

    async def _activity(self, event_type: str, message: str, **kwargs) -> None:
        if self._store is not None:
            await self._store.log_activity(event_type, message, **kwargs)
