"""Command-line interface: key generation, config display and operator address."""

from __future__ import annotations

import os

import pytest
from click.testing import CliRunner

from dogebridge.cli import cli
from dogebridge.dogecoin.keys import DogeKey, is_valid_address
from dogebridge.models.config import DogeNetwork

from tests.conftest import CONTRACT_ID, TEST_SECRET
from tests.factories import operator_key


@pytest.fixture
def runner(monkeypatch):
    for name in list(os.environ):
        if name.startswith("DOGEBRIDGE_"):
            monkeypatch.delenv(name)
    return CliRunner()


def test_keygen_prints_usable_key(runner):
    result = runner.invoke(cli, ["keygen", "--network", "testnet"])

    assert result.exit_code == 0
    lines = dict(line.split(":", 1) for line in result.stdout.splitlines() if ":" in line)
    address = lines["Address"].strip()
    wif = lines["WIF"].strip()
    assert is_valid_address(address, DogeNetwork.TESTNET)
    assert DogeKey.from_wif(wif, DogeNetwork.TESTNET).address == address


def test_address_from_env_wif(runner):
    key = operator_key()
    result = runner.invoke(cli, ["address"], env={"DOGEBRIDGE_DOGE_WIF": key.to_wif()})

    assert result.exit_code == 0
    assert result.stdout.strip() == key.address


def test_address_without_wif_fails(runner):
    result = runner.invoke(cli, ["address"])
    assert result.exit_code == 1
    assert "No Dogecoin operator key" in result.output


def test_status_masks_secrets(runner):
    env = {
        "DOGEBRIDGE_DOGE_WIF": operator_key().to_wif(),
        "DOGEBRIDGE_STELLAR_SECRET": TEST_SECRET,
        "DOGEBRIDGE_CONTRACT_ID": CONTRACT_ID,
        "DOGEBRIDGE_DOGE_RPC_PASSWORD": "s3cret-pass",
    }
    result = runner.invoke(cli, ["status"], env=env)

    assert result.exit_code == 0
    assert TEST_SECRET not in result.stdout
    assert env["DOGEBRIDGE_DOGE_WIF"] not in result.stdout
    assert "s3cret-pass" not in result.stdout
    assert CONTRACT_ID in result.stdout
    assert "Config:         OK" in result.stdout


def test_status_reports_invalid_config(runner):
    result = runner.invoke(cli, ["status"])
    assert result.exit_code == 0
    assert "INVALID" in result.stdout


def test_burn_rejects_non_positive_amount(runner):
    result = runner.invoke(cli, ["burn", "--amount", "0"])
    assert result.exit_code == 1
    assert "amount must be positive" in result.output


def test_run_refuses_invalid_config(runner):
    result = runner.invoke(cli, ["run"])
    assert result.exit_code == 1
    assert "Error:" in result.output
