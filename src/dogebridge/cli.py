"""CLI entry point for the dogebridge daemon."""

from __future__ import annotations

import asyncio
import logging
import sys

import click
from stellar_sdk import Keypair

from dogebridge.config import load_config, validate_config
from dogebridge.daemon import run_daemon
from dogebridge.dogecoin.keys import DogeKey
from dogebridge.dogecoin.rpc import MAX_CONFIRMATIONS, DogeRpcClient, koinu_to_doge
from dogebridge.errors import BridgeError, ConfigurationError
from dogebridge.models.config import DogeNetwork
from dogebridge.stellar.token import SorobanTokenClient


def _doge(koinu: int) -> str:
    return f"{koinu_to_doge(koinu):f} DOGE"


def _fail(message: str, hint: str | None = None) -> None:
    click.echo(f"Error: {message}", err=True)
    if hint:
        click.echo(hint, err=True)
    sys.exit(1)


def _load(ctx: click.Context, require_keys: bool = True):
    cfg = load_config(ctx.obj["config_path"])
    try:
        validate_config(cfg, require_keys=require_keys)
    except ConfigurationError as exc:
        _fail(str(exc))
    return cfg


def _require_wif(cfg) -> DogeKey:
    if not cfg.doge_wif:
        _fail("No Dogecoin operator key configured.", "Set DOGEBRIDGE_DOGE_WIF or [dogecoin] wif in config.")
    try:
        return DogeKey.from_wif(cfg.doge_wif, cfg.doge_network)
    except ValueError as exc:
        _fail(f"malformed Dogecoin WIF: {exc}")


@click.group()
@click.option("-c", "--config", "config_path", default=None, help="Path to config TOML file")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """dogebridge - Dogecoin <-> Stellar wDOGE bridge relay."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose

    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


# ── Daemon ─────────────────────────────────────────────


@cli.command()
@click.pass_context
def run(ctx: click.Context) -> None:
    """Start the bridge relay."""
    cfg = _load(ctx)
    click.echo(f"Starting dogebridge ({cfg.doge_network.value} <-> {cfg.stellar_network})")
    asyncio.run(run_daemon(cfg))


# ── Info ───────────────────────────────────────────────


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show bridge configuration."""
    cfg = load_config(ctx.obj["config_path"])
    click.echo(f"Dogecoin:       {cfg.doge_network.value}")
    click.echo(f"  RPC URL:      {cfg.doge_rpc_url}")
    click.echo(f"  RPC user:     {cfg.doge_rpc_user or '(not set)'}")
    click.echo(f"  Confirmations:{cfg.min_confirmations:>3}")
    click.echo(f"  Fee rate:     {cfg.fee_rate} koinu/byte")
    click.echo(f"  Dust:         {cfg.dust_threshold} koinu")
    click.echo(f"  Operator key: {'***configured***' if cfg.doge_wif else '(not set)'}")
    click.echo(f"Stellar:        {cfg.stellar_network}")
    click.echo(f"  RPC URL:      {cfg.stellar_rpc_url}")
    click.echo(f"  Contract:     {cfg.contract_id or '(not set)'}")
    click.echo(f"  Secret:       {'***configured***' if cfg.stellar_secret else '(not set)'}")
    click.echo(f"Breaker:        {cfg.breaker.failure_threshold} failures / {cfg.breaker.reset_timeout:.0f}s")
    click.echo(
        f"Rate limit:     {cfg.rate_limit.max_requests} per {cfg.rate_limit.window_seconds:.0f}s"
        f" (burst {cfg.rate_limit.burst_limit})"
    )
    click.echo(f"DB path:        {cfg.db_path}")
    try:
        validate_config(cfg)
    except ConfigurationError as exc:
        click.echo(f"Config:         INVALID ({exc})")
    else:
        click.echo("Config:         OK")


# ── Keys ───────────────────────────────────────────────


@cli.command()
@click.option(
    "--network", type=click.Choice([n.value for n in DogeNetwork]), default=None,
    help="Dogecoin network (defaults to the configured one)",
)
@click.pass_context
def keygen(ctx: click.Context, network: str | None) -> None:
    """Generate a new Dogecoin operator key."""
    cfg = load_config(ctx.obj["config_path"])
    net = DogeNetwork(network) if network else cfg.doge_network
    key = DogeKey.generate(net)
    click.echo(f"Address: {key.address}")
    click.echo(f"WIF:     {key.to_wif()}")
    click.echo("Store the WIF in DOGEBRIDGE_DOGE_WIF. It is not saved anywhere.", err=True)


@cli.command()
@click.pass_context
def address(ctx: click.Context) -> None:
    """Show the operator payout address for the configured key."""
    cfg = load_config(ctx.obj["config_path"])
    key = _require_wif(cfg)
    click.echo(key.address)


# ── Chain actions ──────────────────────────────────────


@cli.command()
@click.pass_context
def balance(ctx: click.Context) -> None:
    """Show the operator's spendable Dogecoin balance."""
    cfg = _load(ctx, require_keys=False)
    key = _require_wif(cfg)

    async def _balance():
        rpc = DogeRpcClient(
            cfg.doge_rpc_url, cfg.doge_rpc_user, cfg.doge_rpc_password, cfg.retry.call_timeout,
        )
        try:
            utxos = await rpc.list_unspent(1, MAX_CONFIRMATIONS, [key.address])
        finally:
            await rpc.close()
        total = sum(u.value for u in utxos)
        click.echo(f"Address:  {key.address}")
        click.echo(f"Outputs:  {len(utxos)}")
        click.echo(f"Balance:  {total} koinu ({_doge(total)})")

    try:
        asyncio.run(_balance())
    except BridgeError as exc:
        _fail(str(exc))


@cli.command()
@click.option("--amount", type=int, required=True, help="Amount of wDOGE to burn, in koinu")
@click.pass_context
def burn(ctx: click.Context, amount: int) -> None:
    """Burn wDOGE held by the operator account."""
    if amount <= 0:
        _fail("amount must be positive")
    cfg = _load(ctx)

    async def _burn():
        keypair = Keypair.from_secret(cfg.stellar_secret)
        token = SorobanTokenClient(
            cfg.contract_id, cfg.stellar_rpc_url, cfg.network_passphrase, keypair,
        )
        try:
            return await token.burn(keypair.public_key, amount)
        finally:
            await token.close()

    try:
        tx_hash = asyncio.run(_burn())
    except Exception as exc:
        _fail(f"burn failed: {exc}")
    click.echo(f"Burned {amount} koinu ({_doge(amount)}), tx={tx_hash}")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
