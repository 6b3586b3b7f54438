"""BridgeAPI - the inbound surface that UI/HTTP layers call into."""

from __future__ import annotations

import logging
import time
from typing import Sequence

from stellar_sdk import StrKey

from dogebridge.api.ratelimit import RateLimiter
from dogebridge.bridge.orchestrator import BridgeOrchestrator
from dogebridge.bridge.withdrawal_monitor import (
    API_PREFIX,
    CHAIN_PREFIX,
    WithdrawalMonitor,
    api_withdrawal_id,
)
from dogebridge.dogecoin.addresses import AddressManager
from dogebridge.dogecoin.keys import script_for_address
from dogebridge.dogecoin.monitor import DepositMonitor
from dogebridge.dogecoin.rpc import koinu_to_doge
from dogebridge.errors import AlreadyProcessed, InvalidAddress
from dogebridge.interfaces.settlement import SettlementChain
from dogebridge.interfaces.store import StateStore
from dogebridge.models.config import DogeNetwork
from dogebridge.models.records import DepositStatus, PendingWithdrawal, WithdrawalStatus
from dogebridge.models.snapshots import ActivityEntry, BridgeSnapshot, WithdrawalSnapshot
from dogebridge.resilience.caller import ResilientCaller

log = logging.getLogger(__name__)


def _doge_str(koinu: int) -> str:
    return f"{koinu_to_doge(koinu):f} DOGE"


def _withdrawal_to_snapshot(w: PendingWithdrawal) -> WithdrawalSnapshot:
    return WithdrawalSnapshot(
        request_id=w.request_id,
        holder=w.holder,
        recipient_address=w.recipient_address,
        amount=w.amount,
        amount_doge=_doge_str(w.amount),
        status=w.status.value,
        txid=w.txid,
        fee=w.fee,
        error=w.error,
        requested_at=w.requested_at,
        updated_at=w.updated_at,
    )


def _check_stellar_account(account_id: str) -> None:
    if not isinstance(account_id, str) or not StrKey.is_valid_ed25519_public_key(account_id):
        raise InvalidAddress(f"not a Stellar account id: {account_id!r}")


def _qualified_id(request_id: str) -> str:
    if request_id.startswith((CHAIN_PREFIX, API_PREFIX)):
        return request_id
    return api_withdrawal_id(request_id)


class BridgeAPI:
    """Rate-limited entry points for deposit and withdrawal requests.

    Mutating calls consult the RateLimiter first and raise RateLimited
    before any relay state is touched. A withdrawal is only queued after
    the holder's wDOGE has been burned on the settlement chain.
    """

    def __init__(
        self,
        addresses: AddressManager,
        deposit_monitor: DepositMonitor,
        withdrawals: WithdrawalMonitor,
        orchestrator: BridgeOrchestrator,
        limiter: RateLimiter,
        settlement: SettlementChain,
        settlement_caller: ResilientCaller,
        store: StateStore | None = None,
        network: DogeNetwork = DogeNetwork.MAINNET,
        operator_doge_address: str = "",
        operator_stellar_address: str = "",
        callers: Sequence[ResilientCaller] = (),
        start_time: float | None = None,
    ) -> None:
        self._addresses = addresses
        self._deposit_monitor = deposit_monitor
        self._withdrawals = withdrawals
        self._orchestrator = orchestrator
        self._limiter = limiter
        self._settlement = settlement
        self._settlement_caller = settlement_caller
        self._burning: set[str] = set()
        self._store = store
        self._network = network
        self._operator_doge = operator_doge_address
        self._operator_stellar = operator_stellar_address
        self._callers = list(callers)
        self._start_time = time.monotonic() if start_time is None else start_time

    # ── Actions ────────────────────────────────────────────

    async def request_deposit_address(self, client_key: str, owner_id: str) -> str:
        """Issue a new deposit address for ``owner_id`` and start watching it."""
        self._limiter.acquire(client_key)
        _check_stellar_account(owner_id)
        address = self._addresses.generate_deposit_address(owner_id)
        self._deposit_monitor.watch(address)
        if self._store is not None:
            await self._store.log_activity(
                "address_issued", f"Deposit address issued to {owner_id[:8]}...", address=address,
            )
        return address

    async def submit_withdrawal(
        self,
        client_key: str,
        request_id: str,
        holder: str,
        doge_address: str,
        amount: int,
    ) -> WithdrawalSnapshot:
        """Burn ``amount`` wDOGE from ``holder`` and queue the matching payout.

        The request is stored as ``api:<request_id>``. Raises AlreadyProcessed
        for a known request id; a refused or failed burn propagates and
        nothing is queued.
        """
        self._limiter.acquire(client_key)
        _check_stellar_account(holder)
        script_for_address(doge_address, self._network)
        self._withdrawals.validate(doge_address, amount)

        withdrawal_id = api_withdrawal_id(request_id)
        # No await between the check and the reservation
        if withdrawal_id in self._burning:
            raise AlreadyProcessed(withdrawal_id)
        self._burning.add(withdrawal_id)
        try:
            if await self._withdrawals.lookup(withdrawal_id) is not None:
                raise AlreadyProcessed(withdrawal_id)
            burn_tx = await self._settlement_caller.call(self._settlement.burn, holder, amount)
            log.info("Burned %d from %s for withdrawal %s (tx=%s)",
                     amount, holder, withdrawal_id, (burn_tx or "?")[:16])
            w = await self._withdrawals.submit(withdrawal_id, holder, doge_address, amount)
        finally:
            self._burning.discard(withdrawal_id)
        return _withdrawal_to_snapshot(w)

    # ── Queries ────────────────────────────────────────────

    async def get_withdrawal(self, request_id: str) -> WithdrawalSnapshot | None:
        """Look up by full id (``chain:7``, ``api:x``); a bare id is an API id."""
        w = await self._withdrawals.lookup(_qualified_id(request_id))
        return _withdrawal_to_snapshot(w) if w else None

    def get_user_addresses(self, owner_id: str) -> list[str]:
        return sorted(self._addresses.get_user_addresses(owner_id))

    async def get_status(self) -> BridgeSnapshot:
        activity = await self._store.get_recent_activity(20) if self._store else []
        archived_completed = archived_failed = 0
        if self._store is not None:
            archived_completed = await self._store.count_archived_withdrawals("completed")
            archived_failed = await self._store.count_archived_withdrawals("failed")

        return BridgeSnapshot(
            operator_doge_address=self._operator_doge,
            operator_stellar_address=self._operator_stellar,
            uptime_seconds=int(time.monotonic() - self._start_time),
            watched_addresses=len(self._deposit_monitor.watched()),
            deposits_minted=self._orchestrator.count(DepositStatus.MINTED),
            deposits_failed=self._orchestrator.count(DepositStatus.FAILED),
            withdrawals_pending=self._withdrawals.count(WithdrawalStatus.PENDING),
            withdrawals_processing=self._withdrawals.count(WithdrawalStatus.PROCESSING),
            withdrawals_completed=self._withdrawals.count(WithdrawalStatus.COMPLETED) + archived_completed,
            withdrawals_failed=self._withdrawals.count(WithdrawalStatus.FAILED) + archived_failed,
            circuits=[c.snapshot() for c in self._callers],
            recent_activity=[
                ActivityEntry(
                    timestamp=a.created_at,
                    event_type=a.event_type,
                    txid=a.txid,
                    address=a.address,
                    amount=a.amount,
                    message=a.message,
                )
                for a in activity
            ],
        )
