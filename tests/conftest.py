"""Shared fixtures for dogebridge tests."""

from __future__ import annotations

import asyncio

import pytest
from pytest_metadata.plugin import metadata_key
from stellar_sdk import Keypair

from dogebridge.api.bridge_api import BridgeAPI
from dogebridge.api.ratelimit import RateLimiter
from dogebridge.bridge.orchestrator import BridgeOrchestrator
from dogebridge.bridge.withdrawal_monitor import WithdrawalMonitor
from dogebridge.bridge.withdrawals import WithdrawalProcessor
from dogebridge.dogecoin.addresses import AddressManager
from dogebridge.dogecoin.coinselect import TransactionBuilder
from dogebridge.dogecoin.monitor import DepositMonitor
from dogebridge.models.config import BridgeConfig, DogeNetwork
from dogebridge.resilience.caller import ResilientCaller
from dogebridge.resilience.circuit import CircuitBreaker
from dogebridge.resilience.retry import RetryPolicy
from dogebridge.storage.sqlite import SQLiteStateStore

from tests.factories import operator_key
from tests.mocks import FakeClock, MockDogeRpc, MockPoller, MockSettlementChain, RecordingSleep

TEST_SECRET = "SBWVJTD3F5ETMVWCNI7MM4HUAPUSCUXXMUEJZJTPRWRJGXW2BF4SVQTK"
TEST_PUBLIC = Keypair.from_secret(TEST_SECRET).public_key

CONTRACT_ID = "CCEDYFIHUCJFITWEOT7BWUO2HBQQ72L244ZXQ4YNOC6FYRDN3MKDQFK7"

EXPLORER_BASE = "https://stellar.expert/explorer/testnet"

# Fee and dust used by the payout scenarios: fee 50, change above 100 is kept
SCENARIO_FEE = 50
SCENARIO_DUST = 100


# ── Report metadata ──────────────────────────────────────────────


def pytest_configure(config):
    """Add bridge info to the HTML report Environment table."""
    meta = config.stash.setdefault(metadata_key, {})
    meta["Source chain"] = "Dogecoin (mocked RPC)"
    meta["Settlement chain"] = "Stellar Soroban (mocked contract)"
    meta["wDOGE Contract"] = CONTRACT_ID


def explorer_link(kind: str, id: str) -> str:
    """HTML anchor to the Stellar testnet explorer for the report."""
    return f'<a href="{EXPLORER_BASE}/{kind}/{id}" target="_blank">{id}</a>'


def pytest_html_results_summary(prefix, summary, postfix):
    """Put the contract and operator accounts at the top of the HTML report."""
    prefix.append(
        '<div style="margin:8px 0;padding:10px;border:1px solid #dee2e6;font-family:monospace;">'
        "<strong>Settlement chain</strong><br/>"
        f'wDOGE contract: {explorer_link("contract", CONTRACT_ID)}<br/>'
        f'Operator: {explorer_link("account", TEST_PUBLIC)}'
        "</div>"
    )


def make_test_config(**overrides) -> BridgeConfig:
    """Build a BridgeConfig suitable for testing."""
    defaults = dict(
        poll_interval=1,
        event_poll_interval=1,
        doge_network=DogeNetwork.MAINNET,
        doge_rpc_url="http://127.0.0.1:22555",
        doge_rpc_user="bridge",
        doge_rpc_password="secret",
        doge_wif=operator_key().to_wif(),
        stellar_rpc_url="https://soroban-testnet.stellar.org",
        network_passphrase="Test SDF Network ; September 2015",
        contract_id=CONTRACT_ID,
        stellar_secret=TEST_SECRET,
        db_path=":memory:",
    )
    defaults.update(overrides)
    return BridgeConfig(**defaults)


def make_caller(
    name: str = "test",
    failure_threshold: int = 5,
    reset_timeout: float = 60.0,
    max_retries: int = 3,
    clock: FakeClock | None = None,
    sleep: RecordingSleep | None = None,
    timeout: float | None = 5.0,
) -> ResilientCaller:
    """ResilientCaller that never really sleeps and has no jitter."""
    breaker = CircuitBreaker(name, failure_threshold, reset_timeout, clock=clock or FakeClock())
    return ResilientCaller(
        breaker,
        RetryPolicy(max_retries=max_retries, initial_delay=1.0, max_delay=30.0, max_jitter=1.0),
        timeout=timeout,
        sleep=sleep or RecordingSleep(),
        rng=lambda: 0.0,
    )


@pytest.fixture
def test_config():
    """Default BridgeConfig for tests."""
    return make_test_config()


@pytest.fixture
async def store():
    """Initialized in-memory SQLiteStateStore."""
    s = SQLiteStateStore(":memory:")
    await s.initialize()
    yield s
    await s.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def mock_rpc():
    return MockDogeRpc()


@pytest.fixture
def mock_chain():
    return MockSettlementChain(succeed=True)


@pytest.fixture
def mock_poller():
    return MockPoller()


@pytest.fixture
def doge_caller():
    return make_caller("dogecoin")


@pytest.fixture
def stellar_caller():
    return make_caller("soroban")


@pytest.fixture
def addresses():
    return AddressManager(DogeNetwork.MAINNET)


@pytest.fixture
def operator():
    return operator_key()


@pytest.fixture
def builder(operator):
    """Payout builder with the scenario fee and dust threshold."""
    return TransactionBuilder(
        operator, fee_rate=1000, dust_threshold=SCENARIO_DUST, fixed_fee=SCENARIO_FEE,
    )


@pytest.fixture
async def deposit_queue():
    return asyncio.Queue()


@pytest.fixture
def deposit_monitor(mock_rpc, doge_caller, deposit_queue, addresses):
    return DepositMonitor(
        mock_rpc, doge_caller, deposit_queue,
        required_confirmations=6, poll_interval=1, address_manager=addresses,
    )


@pytest.fixture
def processor(mock_rpc, doge_caller, builder, store, clock):
    return WithdrawalProcessor(mock_rpc, doge_caller, builder, store=store, clock=clock)


@pytest.fixture
async def withdrawal_monitor(processor, mock_poller, stellar_caller, store, clock):
    return WithdrawalMonitor(
        processor,
        poller=mock_poller,
        caller=stellar_caller,
        store=store,
        poll_interval=1,
        retention=3600,
        clock=clock,
    )


@pytest.fixture
async def orchestrator(addresses, mock_chain, stellar_caller, deposit_queue, store,
                       withdrawal_monitor, processor):
    """Fully wired BridgeOrchestrator with mocked chains."""
    orch = BridgeOrchestrator(
        addresses, mock_chain, stellar_caller, deposit_queue,
        store=store, withdrawals=withdrawal_monitor,
    )
    processor.set_completion_hook(orch.on_withdrawal_completed)
    return orch


@pytest.fixture
def limiter(clock):
    return RateLimiter(max_requests=10, window_seconds=60.0, burst_limit=15, clock=clock)


@pytest.fixture
async def bridge_api(addresses, deposit_monitor, withdrawal_monitor, orchestrator,
                     limiter, store, operator, doge_caller, stellar_caller, mock_chain):
    return BridgeAPI(
        addresses, deposit_monitor, withdrawal_monitor, orchestrator, limiter,
        mock_chain, stellar_caller,
        store=store,
        network=DogeNetwork.MAINNET,
        operator_doge_address=operator.address,
        operator_stellar_address=TEST_PUBLIC,
        callers=[doge_caller, stellar_caller],
        start_time=0.0,
    )
