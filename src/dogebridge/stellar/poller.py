"""Soroban event poller - polls RPC for MINT/BURN/WITHDRAW contract events."""

from __future__ import annotations

import logging

from stellar_sdk import Address, SorobanServerAsync, scval, xdr
from stellar_sdk.exceptions import BaseRequestError
from stellar_sdk.soroban_rpc import EventFilter, EventFilterType, EventInfo

from dogebridge.errors import RpcError
from dogebridge.interfaces.poller import ContractEvent
from dogebridge.models.events import BurnEvent, MintEvent, WithdrawalRequestedEvent

log = logging.getLogger(__name__)

# Pre-computed XDR base64 for topic symbols used in filters
_TOPIC_MINT = scval.to_symbol("MINT").to_xdr()
_TOPIC_BURN = scval.to_symbol("BURN").to_xdr()
_TOPIC_WITHDRAW = scval.to_symbol("WITHDRAW").to_xdr()

# Event values emitted by the contract:
#   MINT:     [to: Address, amount: i128]
#   BURN:     [from: Address, amount: i128]
#   WITHDRAW: [request_id: u64, from: Address, doge_address: String, amount: i128]


def _addr_to_str(addr: object) -> str:
    if isinstance(addr, Address):
        return addr.address
    return str(addr)


def _decode_topic(topic_xdr: str) -> str:
    val = xdr.SCVal.from_xdr(topic_xdr)
    return scval.from_symbol(val)


def _text(val: xdr.SCVal) -> str:
    raw = scval.from_string(val)
    return raw.decode("utf-8") if isinstance(raw, bytes) else str(raw)


def parse_event(info: EventInfo) -> ContractEvent | None:
    """Parse a raw EventInfo into one of our event types, or None."""
    if len(info.topic) < 1:
        return None

    try:
        event_kind = _decode_topic(info.topic[0])
    except Exception:
        log.debug("Could not decode topic[0] for event %s", info.id)
        return None

    try:
        fields = scval.from_vec(xdr.SCVal.from_xdr(info.value))
    except Exception:
        log.warning("Could not decode value XDR for event %s", info.id)
        return None

    try:
        if event_kind == "MINT":
            return MintEvent(
                to=_addr_to_str(scval.from_address(fields[0])),
                amount=scval.from_int128(fields[1]),
                ledger_sequence=info.ledger,
            )
        if event_kind == "BURN":
            return BurnEvent(
                holder=_addr_to_str(scval.from_address(fields[0])),
                amount=scval.from_int128(fields[1]),
                ledger_sequence=info.ledger,
            )
        if event_kind == "WITHDRAW":
            return WithdrawalRequestedEvent(
                request_id=str(scval.from_uint64(fields[0])),
                holder=_addr_to_str(scval.from_address(fields[1])),
                doge_address=_text(fields[2]),
                amount=scval.from_int128(fields[3]),
                ledger_sequence=info.ledger,
            )
        log.debug("Ignoring event kind: %s", event_kind)
        return None
    except Exception as exc:
        log.warning("Failed to parse %s event %s: %s", event_kind, info.id, exc)
        return None


class SorobanEventPoller:
    """Polls Soroban RPC for wDOGE contract events.

    Keeps a paging cursor (event ID) so restarts can resume where the
    last poll stopped.
    """

    def __init__(
        self,
        rpc_url: str,
        contract_id: str,
        start_ledger: int | None = None,
        server: SorobanServerAsync | None = None,
    ) -> None:
        self._server = server or SorobanServerAsync(rpc_url)
        self._contract_id = contract_id
        self._cursor: str | None = None
        self._start_ledger = start_ledger
        self._filters = [
            EventFilter(
                event_type=EventFilterType.CONTRACT,
                contract_ids=[contract_id],
                topics=[[_TOPIC_MINT, _TOPIC_BURN, _TOPIC_WITHDRAW]],
            )
        ]

    @property
    def cursor(self) -> str | None:
        return self._cursor

    def set_cursor(self, cursor: str) -> None:
        """Restore cursor from persisted state."""
        self._cursor = cursor

    async def close(self) -> None:
        await self._server.close()

    async def _fetch(self):
        if self._cursor:
            return await self._server.get_events(
                filters=self._filters, cursor=self._cursor, limit=100,
            )
        start = self._start_ledger
        if start is None:
            latest = await self._server.get_latest_ledger()
            start = latest.sequence
            log.info("No cursor, starting from latest ledger %d", start)
        return await self._server.get_events(
            start_ledger=start, filters=self._filters, limit=100,
        )

    async def poll(self) -> list[ContractEvent]:
        """Fetch new events since the last cursor.

        The first call without a cursor starts at ``start_ledger`` or at
        the latest ledger reported by the RPC.
        """
        try:
            response = await self._fetch()
        except BaseRequestError as exc:
            raise RpcError(f"getEvents: {exc}", method="getEvents") from exc

        events: list[ContractEvent] = []
        for info in response.events:
            if not info.in_successful_contract_call:
                continue
            parsed = parse_event(info)
            if parsed is not None:
                events.append(parsed)
                log.debug("Parsed %s event at ledger %d", type(parsed).__name__, info.ledger)

        if response.events:
            self._cursor = response.events[-1].id
        elif response.cursor:
            self._cursor = response.cursor

        if events:
            log.info("Polled %d events (cursor: %s)", len(events), self._cursor)
        return events
