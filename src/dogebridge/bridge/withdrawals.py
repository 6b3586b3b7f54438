"""WithdrawalProcessor - pays out one withdrawal request on the source chain."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Awaitable, Callable

from dogebridge.dogecoin.coinselect import TransactionBuilder
from dogebridge.dogecoin.keys import script_for_address
from dogebridge.dogecoin.rpc import MAX_CONFIRMATIONS
from dogebridge.errors import AlreadyProcessed, RpcError
from dogebridge.interfaces.source import SourceChainRpc
from dogebridge.interfaces.store import StateStore
from dogebridge.models.records import PendingWithdrawal, WithdrawalStatus
from dogebridge.resilience.caller import ResilientCaller

log = logging.getLogger(__name__)

CompletionHook = Callable[[PendingWithdrawal], Awaitable[None]]

RPC_ALREADY_IN_CHAIN = -27


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _already_accepted(exc: RpcError) -> bool:
    """The node already has this exact transaction (an earlier attempt landed)."""
    if exc.code == RPC_ALREADY_IN_CHAIN:
        return True
    msg = str(exc).lower()
    return "already in block chain" in msg or "txn-already-in-mempool" in msg or "txn-already-known" in msg


class WithdrawalProcessor:
    """Drives a PendingWithdrawal through processing to completed or failed.

    Only a ``pending`` request is accepted; everything else raises
    AlreadyProcessed so a request can never produce a second broadcast.
    Failures are terminal and recorded on the request with the error text.
    """

    def __init__(
        self,
        rpc: SourceChainRpc,
        caller: ResilientCaller,
        builder: TransactionBuilder,
        store: StateStore | None = None,
        on_completed: CompletionHook | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._rpc = rpc
        self._caller = caller
        self._builder = builder
        self._store = store
        self._on_completed = on_completed
        self._clock = clock

    @property
    def payout_address(self) -> str:
        return self._builder.change_address

    def set_completion_hook(self, hook: CompletionHook | None) -> None:
        self._on_completed = hook

    def validate_request(self, recipient_address: str, amount: int) -> None:
        """Input checks that need no network: amount, dust, recipient format."""
        self._builder.check_amount(amount)
        script_for_address(recipient_address, self._builder.key.network)

    def _transition(self, w: PendingWithdrawal, status: WithdrawalStatus) -> None:
        w.status = status
        w.updated_at = _now()
        if status.terminal:
            w.finished_at = self._clock()

    async def process(self, w: PendingWithdrawal) -> PendingWithdrawal:
        if w.status != WithdrawalStatus.PENDING:
            raise AlreadyProcessed(w.request_id)

        self._transition(w, WithdrawalStatus.PROCESSING)
        log.info(
            "Processing withdrawal %s: %d koinu to %s",
            w.request_id, w.amount, w.recipient_address,
        )

        try:
            # Input checks first, so bad requests never touch the node or the pool
            self.validate_request(w.recipient_address, w.amount)

            utxos = await self._caller.call(
                self._rpc.list_unspent, 1, MAX_CONFIRMATIONS, [self.payout_address],
            )
            payout = self._builder.build_payout(w.recipient_address, w.amount, utxos)

            try:
                txid = await self._caller.call(self._rpc.send_raw_transaction, payout.raw_hex)
            except RpcError as exc:
                if not _already_accepted(exc):
                    raise
                log.warning("Payout %s was already accepted by the node", payout.txid)
                txid = payout.txid
        except Exception as exc:
            w.error = str(exc)
            self._transition(w, WithdrawalStatus.FAILED)
            log.error("Withdrawal %s failed: %s", w.request_id, exc)
            await self._activity(
                "withdrawal_failed", f"Withdrawal {w.request_id} failed: {exc}",
                address=w.recipient_address, amount=w.amount,
            )
            return w

        w.txid = txid
        w.fee = payout.fee
        self._transition(w, WithdrawalStatus.COMPLETED)
        log.info("Withdrawal %s completed (txid=%s fee=%d)", w.request_id, txid, payout.fee)
        await self._activity(
            "withdrawal_completed", f"Paid withdrawal {w.request_id}",
            txid=txid, address=w.recipient_address, amount=w.amount,
        )

        if self._on_completed is not None:
            try:
                await self._on_completed(w)
            except Exception as exc:
                log.warning("Completion hook for withdrawal %s failed: %s", w.request_id, exc)
        return w

    async def _activity(self, event_type: str, message: str, **kwargs) -> None:
        if self._store is not None:
            await self._store.log_activity(event_type, message, **kwargs)
