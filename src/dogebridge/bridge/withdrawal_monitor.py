"""WithdrawalMonitor - owns the pending-withdrawal table and its work queue."""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Callable

from dogebridge.bridge.withdrawals import WithdrawalProcessor
from dogebridge.dogecoin.tx import validate_txid
from dogebridge.errors import AlreadyProcessed, BridgeError, InvalidAmount
from dogebridge.interfaces.poller import ContractEvent, EventPoller
from dogebridge.interfaces.store import StateStore
from dogebridge.models.events import WithdrawalRequestedEvent
from dogebridge.models.records import PendingWithdrawal, WithdrawalStatus
from dogebridge.resilience.caller import ResilientCaller

log = logging.getLogger(__name__)

DEFAULT_RETENTION = 86400

# Withdrawal ids carry their origin: chain:<u64 request id> or api:<caller id>
CHAIN_PREFIX = "chain:"
API_PREFIX = "api:"


def chain_withdrawal_id(request_id: str | int) -> str:
    return f"{CHAIN_PREFIX}{request_id}"


def api_withdrawal_id(request_id: str) -> str:
    return f"{API_PREFIX}{request_id}"


def settlement_request_id(withdrawal_id: str) -> int | None:
    """The contract's u64 request id, or None for withdrawals not requested on-chain."""
    if not withdrawal_id.startswith(CHAIN_PREFIX):
        return None
    raw = withdrawal_id[len(CHAIN_PREFIX):]
    return int(raw) if raw.isdigit() else None



def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class WithdrawalMonitor:
    """Turns settlement-chain withdrawal events into payouts.

    Requests land in ``_pending`` and their ids on an asyncio.Queue; a
    single consumer hands them to the WithdrawalProcessor one at a time, so
    the UTXO pool is never spent by two payouts at once. Terminal requests
    stay in memory for ``retention`` seconds and are then archived to the
    state store.
    """

    def __init__(
        self,
        processor: WithdrawalProcessor,
        poller: EventPoller | None = None,
        caller: ResilientCaller | None = None,
        store: StateStore | None = None,
        poll_interval: float = 5,
        retention: float = DEFAULT_RETENTION,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._processor = processor
        self._poller = poller
        self._caller = caller
        self._store = store
        self._poll_interval = poll_interval
        self._retention = retention
        self._clock = clock
        self._pending: dict[str, PendingWithdrawal] = {}
        self._queue: asyncio.Queue[str] = asyncio.Queue()
        self._tasks: list[asyncio.Task] = []
        self._running = False

    # ── Intake ────────────────────────────────────────────────

    async def submit(
        self, request_id: str, holder: str, recipient_address: str, amount: int,
    ) -> PendingWithdrawal:
        """Register a withdrawal request and queue it for payout.

        Raises AlreadyProcessed for a request id seen before, live or archived.
        """
        if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
            raise InvalidAmount(f"withdrawal amount must be a positive integer, got {amount!r}")
        if self._store is not None and await self._store.is_withdrawal_archived(request_id):
            raise AlreadyProcessed(request_id)
        # No await between the check and the insert
        if request_id in self._pending:
            raise AlreadyProcessed(request_id)

        stamp = _now()
        w = PendingWithdrawal(
            request_id=request_id,
            holder=holder,
            recipient_address=recipient_address,
            amount=amount,
            requested_at=stamp,
            updated_at=stamp,
        )
        self._pending[request_id] = w
        self._queue.put_nowait(request_id)
        log.info("Queued withdrawal %s: %d koinu to %s", request_id, amount, recipient_address)
        if self._store is not None:
            await self._store.log_activity(
                "withdrawal_requested", f"Withdrawal {request_id} requested by {holder[:8]}...",
                address=recipient_address, amount=amount,
            )
        return w

    async def handle_event(self, event: ContractEvent) -> PendingWithdrawal | None:
        if not isinstance(event, WithdrawalRequestedEvent):
            return None
        withdrawal_id = chain_withdrawal_id(event.request_id)
        try:
            return await self.submit(
                withdrawal_id, event.holder, event.doge_address, event.amount,
            )
        except AlreadyProcessed:
            log.info("Withdrawal %s already seen, ignoring event", withdrawal_id)
            return None
        except InvalidAmount as exc:
            log.warning("Ignoring withdrawal event %s: %s", event.request_id, exc)
            return None

    async def poll_once(self) -> int:
        """Fetch settlement events once and queue any new withdrawals."""
        if self._poller is None:
            return 0
        if self._caller is not None:
            events = await self._caller.call(self._poller.poll)
        else:
            events = await self._poller.poll()

        queued = 0
        for event in events:
            if await self.handle_event(event) is not None:
                queued += 1

        if self._store is not None and self._poller.cursor:
            await self._store.set_cursor(self._poller.cursor)
        return queued

    # ── Processing ────────────────────────────────────────────

    async def process_next(self) -> PendingWithdrawal | None:
        """Wait for the next queued request and process it."""
        request_id = await self._queue.get()
        try:
            w = self._pending.get(request_id)
            if w is None:
                return None
            try:
                return await self._processor.process(w)
            except AlreadyProcessed:
                log.debug("Withdrawal %s no longer pending", request_id)
                return w
        finally:
            self._queue.task_done()

    async def drain(self) -> list[PendingWithdrawal]:
        """Process everything currently queued."""
        done = []
        while not self._queue.empty():
            w = await self.process_next()
            if w is not None:
                done.append(w)
        return done

    def validate(self, recipient_address: str, amount: int) -> None:
        """Reject a request the processor would fail without touching the network."""
        self._processor.validate_request(recipient_address, amount)

    def reconcile(self, request_id: str, source_txid: str) -> PendingWithdrawal:
        """Mark a pending or failed request completed after its payout was found on-chain."""
        txid = validate_txid(source_txid)
        w = self._pending.get(request_id)
        if w is None:
            raise BridgeError(f"unknown withdrawal {request_id}")
        if w.status == WithdrawalStatus.COMPLETED:
            raise AlreadyProcessed(request_id)
        if w.status == WithdrawalStatus.PROCESSING:
            raise BridgeError(f"withdrawal {request_id} is still processing")
        w.txid = txid
        w.error = None
        w.status = WithdrawalStatus.COMPLETED
        w.updated_at = _now()
        w.finished_at = self._clock()
        log.info("Reconciled withdrawal %s with payout %s", request_id, txid)
        return w

    # ── Queries ───────────────────────────────────────────────

    def get(self, request_id: str) -> PendingWithdrawal | None:
        return self._pending.get(request_id)

    async def lookup(self, request_id: str) -> PendingWithdrawal | None:
        """Live table first, then the archive."""
        w = self._pending.get(request_id)
        if w is None and self._store is not None:
            w = await self._store.get_archived_withdrawal(request_id)
        return w

    def withdrawals(self) -> list[PendingWithdrawal]:
        return list(self._pending.values())

    def count(self, status: WithdrawalStatus) -> int:
        return sum(1 for w in self._pending.values() if w.status == status)

    @property
    def queue_size(self) -> int:
        return self._queue.qsize()

    # ── Retention ─────────────────────────────────────────────

    async def prune(self) -> int:
        """Archive and evict terminal requests older than the retention period."""
        now = self._clock()
        expired = [
            w for w in self._pending.values()
            if w.status.terminal and w.finished_at is not None
            and now - w.finished_at >= self._retention
        ]
        for w in expired:
            if self._store is not None:
                await self._store.archive_withdrawal(w)
            del self._pending[w.request_id]
        if expired:
            log.info("Archived %d finished withdrawals", len(expired))
        return len(expired)

    # ── Lifecycle ─────────────────────────────────────────────

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._tasks.append(asyncio.create_task(self._consume_loop(), name="withdrawal-consumer"))
        self._tasks.append(asyncio.create_task(self._prune_loop(), name="withdrawal-prune"))
        if self._poller is not None:
            if self._store is not None:
                cursor = await self._store.get_cursor()
                if cursor:
                    self._poller.set_cursor(cursor)
                    log.info("Resuming settlement events from cursor %s", cursor)
            self._tasks.append(asyncio.create_task(self._event_loop(), name="withdrawal-events"))
        log.info("Withdrawal monitor started")

    async def stop(self) -> None:
        self._running = False
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks.clear()
        log.info("Withdrawal monitor stopped")

    async def _event_loop(self) -> None:
        while self._running:
            try:
                await self.poll_once()
            except Exception:
                log.error("Settlement event poll failed", exc_info=True)
            await asyncio.sleep(self._poll_interval)

    async def _consume_loop(self) -> None:
        while self._running:
            try:
                await self.process_next()
            except Exception:
                log.error("Withdrawal processing failed", exc_info=True)

    async def _prune_loop(self) -> None:
        interval = max(min(self._retention / 4, 3600), 1)
        while self._running:
            await asyncio.sleep(interval)
            try:
                await self.prune()
            except Exception:
                log.error("Withdrawal prune failed", exc_info=True)
