"""Configuration loading: TOML file + environment variables, and validation."""

from __future__ import annotations

import os
from pathlib import Path
from urllib.parse import urlparse

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:
    import tomli as tomllib  # type: ignore[no-redef]

from stellar_sdk import StrKey

from dogebridge.dogecoin.keys import DogeKey
from dogebridge.errors import ConfigurationError
from dogebridge.models.config import BridgeConfig, DogeNetwork

NETWORK_PASSPHRASES = {
    "testnet": "Test SDF Network ; September 2015",
    "mainnet": "Public Global Stellar Network ; September 2015",
}


def load_config(
    config_path: str | Path | None = None,
    env_prefix: str = "DOGEBRIDGE_",
) -> BridgeConfig:
    """Load bridge configuration from a TOML file and env vars.

    Priority (highest wins):
        1. Environment variables (DOGEBRIDGE_DOGE_WIF, etc.)
        2. TOML config file
        3. Defaults from BridgeConfig
    """
    raw: dict = {}
    if config_path is not None:
        p = Path(config_path).expanduser()
        if p.exists():
            with open(p, "rb") as f:
                raw = tomllib.load(f)

    cfg = BridgeConfig()

    # ── Daemon section ─────────────────────────────────────
    daemon = raw.get("daemon", {})
    if v := daemon.get("poll_interval"):
        cfg.poll_interval = int(v)
    if v := daemon.get("event_poll_interval"):
        cfg.event_poll_interval = int(v)
    if v := daemon.get("withdrawal_retention"):
        cfg.withdrawal_retention = int(v)

    # ── Dogecoin section ───────────────────────────────────
    doge = raw.get("dogecoin", {})
    if v := doge.get("network"):
        cfg.doge_network = _doge_network(v)
    if v := doge.get("rpc_url"):
        cfg.doge_rpc_url = str(v)
    if v := doge.get("rpc_user"):
        cfg.doge_rpc_user = str(v)
    if v := doge.get("rpc_password"):
        cfg.doge_rpc_password = str(v)
    if v := doge.get("wif"):
        cfg.doge_wif = str(v)
    if (v := doge.get("min_confirmations")) is not None:
        cfg.min_confirmations = int(v)
    if (v := doge.get("fee_rate")) is not None:
        cfg.fee_rate = int(v)
    if (v := doge.get("dust_threshold")) is not None:
        cfg.dust_threshold = int(v)
    if (v := doge.get("fixed_fee")) is not None:
        cfg.fixed_fee = int(v)

    # ── Stellar section ────────────────────────────────────
    stellar = raw.get("stellar", {})
    if v := stellar.get("network"):
        cfg.stellar_network = str(v)
        cfg.network_passphrase = NETWORK_PASSPHRASES.get(cfg.stellar_network, cfg.network_passphrase)
    if v := stellar.get("rpc_url"):
        cfg.stellar_rpc_url = str(v)
    if v := stellar.get("network_passphrase"):
        cfg.network_passphrase = str(v)
    if v := stellar.get("contract_id"):
        cfg.contract_id = str(v)
    if v := stellar.get("secret"):
        cfg.stellar_secret = str(v)

    # ── Resilience section ─────────────────────────────────
    res = raw.get("resilience", {})
    if (v := res.get("max_retries")) is not None:
        cfg.retry.max_retries = int(v)
    if (v := res.get("initial_delay")) is not None:
        cfg.retry.initial_delay = float(v)
    if (v := res.get("max_delay")) is not None:
        cfg.retry.max_delay = float(v)
    if (v := res.get("max_jitter")) is not None:
        cfg.retry.max_jitter = float(v)
    if (v := res.get("call_timeout")) is not None:
        cfg.retry.call_timeout = float(v)
    if (v := res.get("failure_threshold")) is not None:
        cfg.breaker.failure_threshold = int(v)
    if (v := res.get("reset_timeout")) is not None:
        cfg.breaker.reset_timeout = float(v)

    # ── Rate limit section ─────────────────────────────────
    rl = raw.get("rate_limit", {})
    if (v := rl.get("max_requests")) is not None:
        cfg.rate_limit.max_requests = int(v)
    if (v := rl.get("window_seconds")) is not None:
        cfg.rate_limit.window_seconds = float(v)
    if (v := rl.get("burst_limit")) is not None:
        cfg.rate_limit.burst_limit = int(v)
    if (v := rl.get("cleanup_interval")) is not None:
        cfg.rate_limit.cleanup_interval = float(v)

    # ── Storage section ────────────────────────────────────
    storage = raw.get("storage", {})
    if v := storage.get("db_path"):
        cfg.db_path = str(v)

    # ── Environment variable overrides (highest priority) ──
    if v := os.environ.get(f"{env_prefix}DOGE_RPC_URL"):
        cfg.doge_rpc_url = v
    if v := os.environ.get(f"{env_prefix}DOGE_RPC_USER"):
        cfg.doge_rpc_user = v
    if v := os.environ.get(f"{env_prefix}DOGE_RPC_PASSWORD"):
        cfg.doge_rpc_password = v
    if v := os.environ.get(f"{env_prefix}DOGE_WIF"):
        cfg.doge_wif = v
    if v := os.environ.get(f"{env_prefix}NETWORK"):
        cfg.doge_network = _doge_network(v)
    if v := os.environ.get(f"{env_prefix}MIN_CONFIRMATIONS"):
        try:
            cfg.min_confirmations = int(v)
        except ValueError as exc:
            raise ConfigurationError(f"{env_prefix}MIN_CONFIRMATIONS must be an integer") from exc
    if v := os.environ.get(f"{env_prefix}STELLAR_SECRET"):
        cfg.stellar_secret = v
    if v := os.environ.get(f"{env_prefix}STELLAR_RPC_URL"):
        cfg.stellar_rpc_url = v
    if v := os.environ.get(f"{env_prefix}CONTRACT_ID"):
        cfg.contract_id = v

    if cfg.db_path != ":memory:":
        cfg.db_path = str(Path(cfg.db_path).expanduser())

    return cfg


def _doge_network(value: str) -> DogeNetwork:
    try:
        return DogeNetwork(str(value).lower())
    except ValueError as exc:
        raise ConfigurationError(f"unknown Dogecoin network {value!r}") from exc


def _check_url(name: str, url: str) -> None:
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ConfigurationError(f"{name} must be an http(s) URL, got {url!r}")


def validate_config(cfg: BridgeConfig, require_keys: bool = True) -> None:
    """Reject configurations the daemon cannot safely run with.

    ``require_keys=False`` skips the signing key and contract checks, for
    commands that only read from the nodes.
    """
    _check_url("dogecoin rpc_url", cfg.doge_rpc_url)
    _check_url("stellar rpc_url", cfg.stellar_rpc_url)

    if cfg.min_confirmations < 1:
        raise ConfigurationError("min_confirmations must be at least 1")
    if cfg.fee_rate < 0:
        raise ConfigurationError("fee_rate must not be negative")
    if cfg.dust_threshold < 0:
        raise ConfigurationError("dust_threshold must not be negative")
    if cfg.fixed_fee is not None and cfg.fixed_fee < 0:
        raise ConfigurationError("fixed_fee must not be negative")

    if cfg.breaker.failure_threshold < 1:
        raise ConfigurationError("failure_threshold must be at least 1")
    if cfg.breaker.reset_timeout < 1:
        raise ConfigurationError("reset_timeout must be at least 1 second")
    if cfg.retry.max_retries < 1:
        raise ConfigurationError("max_retries must be at least 1")
    if cfg.retry.initial_delay < 0 or cfg.retry.max_delay < 0 or cfg.retry.max_jitter < 0:
        raise ConfigurationError("retry delays must not be negative")
    if cfg.retry.call_timeout <= 0:
        raise ConfigurationError("call_timeout must be positive")

    rl = cfg.rate_limit
    if rl.max_requests < 1 or rl.window_seconds <= 0 or rl.burst_limit < 1:
        raise ConfigurationError("rate limits must be positive")

    if not require_keys:
        return

    if not cfg.doge_wif:
        raise ConfigurationError("no Dogecoin operator key (set DOGEBRIDGE_DOGE_WIF)")
    try:
        DogeKey.from_wif(cfg.doge_wif, cfg.doge_network)
    except ValueError as exc:
        raise ConfigurationError(f"malformed Dogecoin WIF: {exc}") from exc

    if not StrKey.is_valid_ed25519_secret_seed(cfg.stellar_secret):
        raise ConfigurationError("malformed or missing Stellar secret (set DOGEBRIDGE_STELLAR_SECRET)")
    if not cfg.contract_id:
        raise ConfigurationError("no wDOGE contract id configured")
    if not StrKey.is_valid_contract(cfg.contract_id):
        raise ConfigurationError(f"malformed contract id {cfg.contract_id!r}")
