"""Tier 2 fixtures: a local JSON-RPC server speaking the dogecoind dialect."""

from __future__ import annotations

import base64
from dataclasses import dataclass, field

import pytest
from aiohttp import web

from dogebridge.dogecoin.keys import sha256d
from dogebridge.dogecoin.rpc import DogeRpcClient

RPC_USER = "bridge"
RPC_PASSWORD = "hunter2"


@dataclass
class NodeState:
    """What the fake node knows: unspent outputs per address and broadcasts."""

    unspent: dict[str, list[dict]] = field(default_factory=dict)
    broadcasts: list[str] = field(default_factory=list)
    mempool: set[str] = field(default_factory=set)
    height: int = 5_000_000
    warming_up: bool = False

    def add_output(self, address: str, txid: str, vout: int, amount: str, confirmations: int,
                   script_pubkey: str = "") -> None:
        self.unspent.setdefault(address, []).append({
            "txid": txid,
            "vout": vout,
            "address": address,
            "amount": float(amount),
            "confirmations": confirmations,
            "scriptPubKey": script_pubkey,
            "spendable": True,
        })


def _rpc_error(req_id, code: int, message: str) -> web.Response:
    return web.json_response(
        {"result": None, "error": {"code": code, "message": message}, "id": req_id}, status=500,
    )


def _authorized(request: web.Request) -> bool:
    expected = base64.b64encode(f"{RPC_USER}:{RPC_PASSWORD}".encode()).decode()
    return request.headers.get("Authorization") == f"Basic {expected}"


def make_app(state: NodeState) -> web.Application:
    async def handle_rpc(request: web.Request) -> web.Response:
        if not _authorized(request):
            return web.Response(status=401)
        body = await request.json()
        req_id = body.get("id")
        method = body.get("method")
        params = body.get("params", [])

        if state.warming_up:
            return _rpc_error(req_id, -28, "Loading block index...")

        if method == "getblockcount":
            result = state.height
        elif method == "listunspent":
            min_conf, max_conf = params[0], params[1]
            addresses = params[2] if len(params) > 2 else list(state.unspent)
            result = [
                u for a in addresses for u in state.unspent.get(a, [])
                if min_conf <= u["confirmations"] <= max_conf
            ]
        elif method == "sendrawtransaction":
            raw = params[0]
            try:
                txid = sha256d(bytes.fromhex(raw))[::-1].hex()
            except ValueError:
                return _rpc_error(req_id, -22, "TX decode failed")
            if txid in state.mempool:
                return _rpc_error(req_id, -27, "transaction already in block chain")
            state.mempool.add(txid)
            state.broadcasts.append(raw)
            result = txid
        else:
            return _rpc_error(req_id, -32601, "Method not found")

        return web.json_response({"result": result, "error": None, "id": req_id})

    app = web.Application()
    app.router.add_post("/", handle_rpc)
    return app


@pytest.fixture
async def dogecoind():
    """Start the fake node on an ephemeral port. Yields (url, state)."""
    state = NodeState()
    runner = web.AppRunner(make_app(state))
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", 0)
    await site.start()
    host, port = runner.addresses[0][:2]
    yield f"http://{host}:{port}", state
    await runner.cleanup()


@pytest.fixture
async def node_rpc(dogecoind):
    """DogeRpcClient talking to the fake node over real HTTP."""
    url, _ = dogecoind
    client = DogeRpcClient(url, RPC_USER, RPC_PASSWORD, timeout=5)
    yield client
    await client.close()
