"""Deposit monitor - scans watched addresses for confirmed deposits."""

from __future__ import annotations

import asyncio
import logging

from dogebridge.dogecoin.addresses import AddressManager
from dogebridge.dogecoin.rpc import MAX_CONFIRMATIONS
from dogebridge.interfaces.source import SourceChainRpc
from dogebridge.models.events import DepositEvent
from dogebridge.models.records import UnspentOutput
from dogebridge.resilience.caller import ResilientCaller

log = logging.getLogger(__name__)

DEFAULT_REQUIRED_CONFIRMATIONS = 6


class DepositMonitor:
    """Polls listunspent for each watched address and emits DepositEvents.

    A deposit is emitted at most once per txid for the lifetime of this
    object: the txid enters the processed set before the event is queued.
    Outputs sharing a txid at one address are aggregated into a single
    event whose confirmations is the minimum across those outputs.

    The processed set is keyed by txid alone, so a single transaction that
    pays two watched addresses yields one event (for whichever address is
    scanned first).
    """

    def __init__(
        self,
        rpc: SourceChainRpc,
        caller: ResilientCaller,
        queue: asyncio.Queue[DepositEvent],
        required_confirmations: int = DEFAULT_REQUIRED_CONFIRMATIONS,
        poll_interval: float = 60,
        address_manager: AddressManager | None = None,
    ) -> None:
        self._rpc = rpc
        self._caller = caller
        self._queue = queue
        self._required = required_confirmations
        self._poll_interval = poll_interval
        self._addresses = address_manager
        self._watched: dict[str, None] = {}  # insertion-ordered set
        self._processed: set[str] = set()
        self._task: asyncio.Task | None = None
        self._running = False

    # ── Watch list ────────────────────────────────────────────

    def watch(self, address: str) -> None:
        if address not in self._watched:
            self._watched[address] = None
            log.info("Watching %s for deposits", address)

    def unwatch(self, address: str) -> None:
        self._watched.pop(address, None)

    def watched(self) -> list[str]:
        return list(self._watched)

    def is_processed(self, txid: str) -> bool:
        return txid in self._processed

    @property
    def processed_count(self) -> int:
        return len(self._processed)

    @property
    def running(self) -> bool:
        return self._running

    # ── Scanning ──────────────────────────────────────────────

    async def poll_once(self) -> list[DepositEvent]:
        """Scan every watched address once. Returns the events emitted."""
        emitted: list[DepositEvent] = []
        for address in list(self._watched):
            try:
                utxos = await self._caller.call(
                    self._rpc.list_unspent, 0, MAX_CONFIRMATIONS, [address],
                )
            except Exception as exc:
                log.warning("Deposit scan for %s failed: %s", address, exc)
                continue

            if self._addresses is not None:
                self._addresses.update_balance(address, sum(u.value for u in utxos))

            for event in self._collect(address, utxos):
                self._processed.add(event.txid)
                self._queue.put_nowait(event)
                emitted.append(event)
                log.info(
                    "Deposit %s: %d koinu to %s (%d confirmations)",
                    event.txid, event.amount, address, event.confirmations,
                )
        return emitted

    def _collect(self, address: str, utxos: list[UnspentOutput]) -> list[DepositEvent]:
        by_txid: dict[str, list[UnspentOutput]] = {}
        for utxo in utxos:
            by_txid.setdefault(utxo.txid, []).append(utxo)

        events = []
        for txid, outputs in by_txid.items():
            if txid in self._processed:
                continue
            confirmations = min(u.confirmations for u in outputs)
            if confirmations < self._required:
                continue
            events.append(DepositEvent(
                txid=txid,
                address=address,
                amount=sum(u.value for u in outputs),
                confirmations=confirmations,
            ))
        return events

    # ── Lifecycle ─────────────────────────────────────────────

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._loop(), name="deposit-monitor")
        log.info(
            "Deposit monitor started (interval=%ss, confirmations=%d)",
            self._poll_interval, self._required,
        )

    async def stop(self) -> None:
        """Stop polling and forget the watch list. Processed txids are kept."""
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self._watched.clear()
        log.info("Deposit monitor stopped")

    async def _loop(self) -> None:
        while self._running:
            try:
                await self.poll_once()
            except Exception:
                log.error("Deposit monitor pass failed", exc_info=True)
            await asyncio.sleep(self._poll_interval)
