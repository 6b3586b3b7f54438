"""Configuration models for the bridge daemon."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class DogeNetwork(str, Enum):
    """Dogecoin network the source-chain side runs against."""

    MAINNET = "mainnet"
    TESTNET = "testnet"
    REGTEST = "regtest"


@dataclass
class RetryConfig:
    """Retry-with-backoff parameters (seconds)."""

    max_retries: int = 3  # total attempts
    initial_delay: float = 1.0
    max_delay: float = 30.0
    max_jitter: float = 1.0
    call_timeout: float = 30.0  # per attempt


@dataclass
class BreakerConfig:
    """Circuit breaker thresholds."""

    failure_threshold: int = 5
    reset_timeout: float = 60.0  # seconds of cool-down after the last failure


@dataclass
class RateLimitConfig:
    """Inbound API admission control."""

    max_requests: int = 10
    window_seconds: float = 60.0
    burst_limit: int = 15  # per 1-second burst window
    cleanup_interval: float = 60.0


@dataclass
class BridgeConfig:
    """Complete bridge configuration."""

    # Daemon
    poll_interval: int = 60  # seconds between deposit scans
    event_poll_interval: int = 5  # seconds between settlement event polls
    withdrawal_retention: int = 86400  # seconds terminal withdrawals stay in memory

    # Dogecoin
    doge_network: DogeNetwork = DogeNetwork.MAINNET
    doge_rpc_url: str = "http://127.0.0.1:22555"
    doge_rpc_user: str = ""
    doge_rpc_password: str = ""
    doge_wif: str = ""  # operator payout key, loaded from env var DOGEBRIDGE_DOGE_WIF
    min_confirmations: int = 6
    fee_rate: int = 1000  # koinu per byte
    dust_threshold: int = 546  # koinu
    fixed_fee: int | None = None  # koinu per payout; overrides fee_rate sizing

    # Stellar
    stellar_network: str = "testnet"
    stellar_rpc_url: str = "https://soroban-testnet.stellar.org"
    network_passphrase: str = "Test SDF Network ; September 2015"
    contract_id: str = ""  # wDOGE token contract
    stellar_secret: str = ""  # loaded from env var DOGEBRIDGE_STELLAR_SECRET

    # Resilience
    retry: RetryConfig = field(default_factory=RetryConfig)
    breaker: BreakerConfig = field(default_factory=BreakerConfig)

    # Inbound API
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)

    # Storage
    db_path: str = ":memory:"
