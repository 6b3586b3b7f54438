"""Mock implementations of all external-facing components."""

from __future__ import annotations

from dogebridge.dogecoin.keys import sha256d
from dogebridge.errors import RpcError
from dogebridge.interfaces.poller import ContractEvent
from dogebridge.models.records import MintResult, UnspentOutput


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Stands in for asyncio.sleep; records requested delays, never waits."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class MockDogeRpc:
    """Implements SourceChainRpc. UTXOs are staged per address."""

    def __init__(self) -> None:
        self.utxos: dict[str, list[UnspentOutput]] = {}
        self.failing_addresses: set[str] = set()
        self.broadcast_error: RpcError | None = None
        self.list_calls: list[tuple[int, int, list[str] | None]] = []
        self.broadcasts: list[str] = []
        self.block_count = 5_000_000

    def add_utxo(self, address: str, utxo: UnspentOutput) -> None:
        """Test helper: make ``utxo`` visible at ``address``."""
        self.utxos.setdefault(address, []).append(utxo)

    def set_confirmations(self, address: str, confirmations: int) -> None:
        """Test helper: bump every UTXO at ``address`` to ``confirmations``."""
        self.utxos[address] = [
            UnspentOutput(u.txid, u.vout, u.value, confirmations, u.script_pubkey, u.address)
            for u in self.utxos.get(address, [])
        ]

    async def list_unspent(
        self,
        min_conf: int = 0,
        max_conf: int = 9_999_999,
        addresses: list[str] | None = None,
    ) -> list[UnspentOutput]:
        self.list_calls.append((min_conf, max_conf, addresses))
        wanted = addresses if addresses is not None else list(self.utxos)
        result = []
        for address in wanted:
            if address in self.failing_addresses:
                raise RpcError(f"listunspent: node unavailable for {address}", code=-28)
            result.extend(
                u for u in self.utxos.get(address, [])
                if min_conf <= u.confirmations <= max_conf
            )
        return result

    async def send_raw_transaction(self, raw_hex: str) -> str:
        self.broadcasts.append(raw_hex)
        if self.broadcast_error is not None:
            raise self.broadcast_error
        return sha256d(bytes.fromhex(raw_hex))[::-1].hex()

    async def get_block_count(self) -> int:
        return self.block_count


class MockSettlementChain:
    """Implements SettlementChain protocol."""

    def __init__(self, succeed: bool = True, error: str | None = None) -> None:
        self.succeed = succeed
        self._error = error
        self.minted_ids: set[bytes] = set()
        self.mint_calls: list[tuple[str, int, bytes]] = []
        self.burn_calls: list[tuple[str, int]] = []
        self.confirm_calls: list[tuple[int, str]] = []
        self.mint_raises: Exception | None = None
        self.burn_raises: Exception | None = None
        self.confirm_raises: Exception | None = None

    async def mint(self, recipient: str, amount: int, deposit_id: bytes) -> MintResult:
        self.mint_calls.append((recipient, amount, deposit_id))
        if self.mint_raises is not None:
            raise self.mint_raises
        if not self.succeed:
            return MintResult(
                success=False, recipient=recipient, amount=amount,
                deposit_id=deposit_id.hex(), error=self._error or "simulation_failed:unknown",
            )
        self.minted_ids.add(deposit_id)
        return MintResult(
            success=True, recipient=recipient, amount=amount,
            deposit_id=deposit_id.hex(), tx_hash=f"mint_tx_{len(self.mint_calls)}",
        )

    async def burn(self, holder: str, amount: int) -> str:
        self.burn_calls.append((holder, amount))
        if self.burn_raises is not None:
            raise self.burn_raises
        return f"burn_tx_{len(self.burn_calls)}"

    async def is_deposit_processed(self, deposit_id: bytes) -> bool:
        return deposit_id in self.minted_ids

    async def confirm_withdrawal(self, request_id: int, doge_txid: str) -> str:
        self.confirm_calls.append((request_id, doge_txid))
        if self.confirm_raises is not None:
            raise self.confirm_raises
        return f"confirm_tx_{request_id}"


class MockPoller:
    """Implements EventPoller protocol. Returns pre-loaded event lists."""

    def __init__(self) -> None:
        self.events: list[ContractEvent] = []
        self._cursor: str | None = None
        self.poll_count = 0

    async def poll(self) -> list[ContractEvent]:
        self.poll_count += 1
        result = list(self.events)
        self.events.clear()
        if result:
            self._cursor = f"{result[-1].ledger_sequence}-1"
        return result

    @property
    def cursor(self) -> str | None:
        return self._cursor

    def set_cursor(self, cursor: str) -> None:
        self._cursor = cursor

    def enqueue(self, *events: ContractEvent) -> None:
        """Test helper: stage events for next poll."""
        self.events.extend(events)
