"""Dogecoin Core JSON-RPC client."""

from __future__ import annotations

import itertools
import logging
from decimal import Decimal
from typing import Any

import httpx

from dogebridge.errors import InvalidAmount, RpcError
from dogebridge.models.records import UnspentOutput

log = logging.getLogger(__name__)

KOINU_PER_DOGE = 100_000_000
MAX_CONFIRMATIONS = 9_999_999


def doge_to_koinu(amount: Any) -> int:
    """Convert a DOGE amount as returned by RPC (float or string) to koinu."""
    koinu = Decimal(str(amount)) * KOINU_PER_DOGE
    if koinu != koinu.to_integral_value():
        raise InvalidAmount(f"amount {amount} has more than 8 decimal places")
    return int(koinu)


def koinu_to_doge(koinu: int) -> Decimal:
    return (Decimal(koinu) / KOINU_PER_DOGE).quantize(Decimal("0.00000001"))


class DogeRpcClient:
    """Talks to a dogecoind node over its HTTP JSON-RPC interface.

    Node errors arrive as ``{"result": null, "error": {"code", "message"}}``
    (usually with HTTP 500) and are raised as RpcError. Transport failures
    are raised as RpcError too, chained to the httpx exception.
    """

    def __init__(
        self,
        rpc_url: str = "http://127.0.0.1:22555",
        rpc_user: str = "",
        rpc_password: str = "",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = rpc_url.rstrip("/") + "/"
        self._client = httpx.AsyncClient(
            auth=(rpc_user, rpc_password) if rpc_user else None,
            timeout=httpx.Timeout(timeout, connect=10),
            transport=transport,
        )
        self._ids = itertools.count(1)

    async def close(self) -> None:
        await self._client.aclose()

    async def call(self, method: str, *params: Any) -> Any:
        payload = {
            "jsonrpc": "1.0",
            "id": next(self._ids),
            "method": method,
            "params": list(params),
        }
        try:
            resp = await self._client.post(self._url, json=payload)
        except httpx.HTTPError as exc:
            raise RpcError(f"{method}: {exc.__class__.__name__}: {exc}", method=method) from exc

        if resp.status_code in (401, 403):
            raise RpcError(f"{method}: RPC authentication failed (HTTP {resp.status_code})", method=method)
        try:
            data = resp.json()
        except ValueError as exc:
            raise RpcError(f"{method}: HTTP {resp.status_code} with non-JSON body", method=method) from exc
        if not isinstance(data, dict):
            raise RpcError(
                f"{method}: HTTP {resp.status_code} with unexpected {type(data).__name__} body", method=method,
            )

        error = data.get("error")
        if isinstance(error, str):
            raise RpcError(f"{method}: {error}", method=method)
        if error:
            raise RpcError(
                f"{method}: {error.get('message', error)}",
                code=error.get("code"),
                method=method,
            )
        if resp.status_code >= 400:
            raise RpcError(f"{method}: HTTP {resp.status_code}", method=method)
        return data.get("result")

    async def list_unspent(
        self,
        min_conf: int = 0,
        max_conf: int = MAX_CONFIRMATIONS,
        addresses: list[str] | None = None,
    ) -> list[UnspentOutput]:
        params: list[Any] = [min_conf, max_conf]
        if addresses is not None:
            params.append(list(addresses))
        result = await self.call("listunspent", *params)
        return [
            UnspentOutput(
                txid=u["txid"],
                vout=int(u["vout"]),
                value=doge_to_koinu(u["amount"]),
                confirmations=int(u.get("confirmations", 0)),
                script_pubkey=u.get("scriptPubKey", ""),
                address=u.get("address", ""),
            )
            for u in result or []
        ]

    async def send_raw_transaction(self, raw_hex: str) -> str:
        txid = await self.call("sendrawtransaction", raw_hex)
        log.info("Broadcast transaction %s", txid)
        return txid

    async def get_block_count(self) -> int:
        return int(await self.call("getblockcount"))
