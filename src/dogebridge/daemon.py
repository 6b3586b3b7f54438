"""Bridge daemon - wires all components together."""

from __future__ import annotations

import asyncio
import logging
import signal
import time

from stellar_sdk import Keypair

from dogebridge.api.bridge_api import BridgeAPI
from dogebridge.api.ratelimit import RateLimiter
from dogebridge.bridge.orchestrator import BridgeOrchestrator
from dogebridge.bridge.withdrawal_monitor import WithdrawalMonitor
from dogebridge.bridge.withdrawals import WithdrawalProcessor
from dogebridge.dogecoin.addresses import AddressManager
from dogebridge.dogecoin.coinselect import TransactionBuilder
from dogebridge.dogecoin.keys import DogeKey
from dogebridge.dogecoin.monitor import DepositMonitor
from dogebridge.dogecoin.rpc import DogeRpcClient
from dogebridge.models.config import BridgeConfig
from dogebridge.models.events import DepositEvent
from dogebridge.resilience.caller import ResilientCaller
from dogebridge.stellar.poller import SorobanEventPoller
from dogebridge.stellar.token import SorobanTokenClient
from dogebridge.storage.sqlite import SQLiteStateStore

log = logging.getLogger(__name__)


class BridgeDaemon:
    """Dogecoin <-> wDOGE relay.

    Runs the deposit scanner, the settlement event listener, the deposit
    consumer, withdrawal payouts, withdrawal pruning and rate-limit cleanup
    as independent asyncio tasks until :meth:`stop` is called.
    """

    def __init__(self, cfg: BridgeConfig) -> None:
        self._cfg = cfg
        self._running = False
        self._stopped = asyncio.Event()
        self._start_time = time.monotonic()
        self._cleanup_task: asyncio.Task | None = None

        doge_key = DogeKey.from_wif(cfg.doge_wif, cfg.doge_network)
        keypair = Keypair.from_secret(cfg.stellar_secret)
        self._doge_address = doge_key.address
        self._public_key = keypair.public_key

        # Remote dependencies, each behind its own breaker
        self.doge_caller = ResilientCaller.from_config("dogecoin", cfg.retry, cfg.breaker)
        self.stellar_caller = ResilientCaller.from_config("soroban", cfg.retry, cfg.breaker)

        self.store = SQLiteStateStore(cfg.db_path)
        self.rpc = DogeRpcClient(
            cfg.doge_rpc_url, cfg.doge_rpc_user, cfg.doge_rpc_password, cfg.retry.call_timeout,
        )
        self.token = SorobanTokenClient(
            cfg.contract_id, cfg.stellar_rpc_url, cfg.network_passphrase, keypair,
        )
        self.poller = SorobanEventPoller(cfg.stellar_rpc_url, cfg.contract_id)

        # Source-chain side
        self.addresses = AddressManager(cfg.doge_network)
        self.deposits: asyncio.Queue[DepositEvent] = asyncio.Queue()
        self.deposit_monitor = DepositMonitor(
            self.rpc, self.doge_caller, self.deposits,
            required_confirmations=cfg.min_confirmations,
            poll_interval=cfg.poll_interval,
            address_manager=self.addresses,
        )
        self.builder = TransactionBuilder(
            doge_key, cfg.fee_rate, cfg.dust_threshold, cfg.fixed_fee,
        )

        # Relay
        self.processor = WithdrawalProcessor(
            self.rpc, self.doge_caller, self.builder, store=self.store,
        )
        self.withdrawals = WithdrawalMonitor(
            self.processor,
            poller=self.poller,
            caller=self.stellar_caller,
            store=self.store,
            poll_interval=cfg.event_poll_interval,
            retention=cfg.withdrawal_retention,
        )
        self.orchestrator = BridgeOrchestrator(
            self.addresses, self.token, self.stellar_caller, self.deposits,
            store=self.store, withdrawals=self.withdrawals,
        )
        self.processor.set_completion_hook(self.orchestrator.on_withdrawal_completed)

        # Inbound API
        self.limiter = RateLimiter.from_config(cfg.rate_limit)
        self.api = BridgeAPI(
            self.addresses, self.deposit_monitor, self.withdrawals, self.orchestrator,
            self.limiter, self.token, self.stellar_caller,
            store=self.store,
            network=cfg.doge_network,
            operator_doge_address=self._doge_address,
            operator_stellar_address=self._public_key,
            callers=[self.doge_caller, self.stellar_caller],
            start_time=self._start_time,
        )

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Initialize the store and launch every loop."""
        log.info("Starting dogebridge daemon")
        log.info("  Dogecoin: %s (%s)", self._cfg.doge_rpc_url, self._cfg.doge_network.value)
        log.info("  Payout address: %s", self._doge_address)
        log.info("  Stellar: %s", self._cfg.stellar_rpc_url)
        log.info("  Operator: %s", self._public_key)
        log.info("  Contract: %s", self._cfg.contract_id)

        await self.store.initialize()
        await self.store.log_activity("daemon_started", "Daemon started")

        self._running = True
        self._stopped.clear()
        await self.orchestrator.start()
        await self.withdrawals.start()
        await self.deposit_monitor.start()
        self._cleanup_task = asyncio.create_task(
            self.limiter.run_cleanup(self._cfg.rate_limit.cleanup_interval),
            name="ratelimit-cleanup",
        )

    async def stop(self) -> None:
        """Cancel all loops, clear watch state and close clients."""
        if not self._running:
            return
        log.info("Stop requested")
        self._running = False

        await self.deposit_monitor.stop()
        await self.withdrawals.stop()
        await self.orchestrator.stop()
        if self._cleanup_task is not None:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None

        pending = self.withdrawals.queue_size
        if pending:
            log.warning("%d withdrawal(s) were still queued at shutdown", pending)

        await self.rpc.close()
        await self.token.close()
        await self.poller.close()
        await self.store.log_activity("daemon_stopped", "Daemon stopped")
        await self.store.close()
        self._stopped.set()
        log.info("Daemon shut down cleanly")

    async def wait_stopped(self) -> None:
        await self._stopped.wait()


async def run_daemon(cfg: BridgeConfig) -> None:
    """Entry point for running the daemon until SIGINT/SIGTERM."""
    daemon = BridgeDaemon(cfg)

    loop = asyncio.get_running_loop()

    def _signal_handler():
        asyncio.ensure_future(daemon.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _signal_handler)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass

    await daemon.start()
    await daemon.wait_stopped()
