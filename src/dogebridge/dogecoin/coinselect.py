"""Coin selection, fee estimation, and payout transaction building."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from dogebridge.dogecoin.keys import DogeKey, script_for_address
from dogebridge.dogecoin.tx import Transaction, TxIn, TxOut, validate_txid
from dogebridge.errors import DustThreshold, InsufficientFunds, InvalidAmount
from dogebridge.models.records import PayoutTransaction, UnspentOutput

log = logging.getLogger(__name__)

# Legacy P2PKH size model (bytes)
TX_OVERHEAD_BYTES = 10
INPUT_BYTES = 148
OUTPUT_BYTES = 34

DEFAULT_FEE_RATE = 1000  # koinu per byte
DEFAULT_DUST_THRESHOLD = 546


def estimate_size(n_inputs: int, n_outputs: int) -> int:
    return TX_OVERHEAD_BYTES + INPUT_BYTES * n_inputs + OUTPUT_BYTES * n_outputs


def estimate_fee(n_inputs: int, n_outputs: int, fee_rate: int = DEFAULT_FEE_RATE) -> int:
    return math.ceil(estimate_size(n_inputs, n_outputs) * fee_rate)


@dataclass
class CoinSelection:
    inputs: list[UnspentOutput]
    total: int
    fee: int
    change: int  # 0 when absorbed into the fee


def select_coins(
    utxos: list[UnspentOutput],
    amount: int,
    *,
    fee_rate: int = DEFAULT_FEE_RATE,
    dust_threshold: int = DEFAULT_DUST_THRESHOLD,
    fee: int | None = None,
) -> CoinSelection:
    """Greedy largest-first selection covering ``amount`` plus fee.

    The fee is re-estimated as inputs are added, assuming a change output.
    Change at or below ``dust_threshold`` is folded into the fee, so
    ``total == amount + fee + change`` always holds.
    """
    pool = sorted(utxos, key=lambda u: u.value, reverse=True)
    selected: list[UnspentOutput] = []
    total = 0
    needed = fee if fee is not None else estimate_fee(1, 2, fee_rate)

    for utxo in pool:
        selected.append(utxo)
        total += utxo.value
        needed = fee if fee is not None else estimate_fee(len(selected), 2, fee_rate)
        if total >= amount + needed:
            break
    else:
        raise InsufficientFunds(amount + needed, total)

    change = total - amount - needed
    if change > dust_threshold:
        return CoinSelection(selected, total, needed, change)
    return CoinSelection(selected, total, total - amount, 0)


class TransactionBuilder:
    """Builds and signs operator payouts from the operator's UTXO pool."""

    def __init__(
        self,
        key: DogeKey,
        fee_rate: int = DEFAULT_FEE_RATE,
        dust_threshold: int = DEFAULT_DUST_THRESHOLD,
        fixed_fee: int | None = None,
    ) -> None:
        self.key = key
        self.fee_rate = fee_rate
        self.dust_threshold = dust_threshold
        self.fixed_fee = fixed_fee

    @property
    def change_address(self) -> str:
        return self.key.address

    def check_amount(self, amount: int) -> None:
        """Reject non-positive or dust payout amounts. No network access."""
        if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
            raise InvalidAmount(f"payout amount must be a positive integer, got {amount!r}")
        if amount < self.dust_threshold:
            raise DustThreshold(amount, self.dust_threshold)

    def _spendable(self, utxos: list[UnspentOutput]) -> list[UnspentOutput]:
        own_script = self.key.script_pubkey.hex()
        spendable = []
        for utxo in utxos:
            validate_txid(utxo.txid)
            if utxo.vout < 0 or utxo.value <= 0:
                raise InvalidAmount(f"malformed outpoint {utxo.txid}:{utxo.vout} value={utxo.value}")
            if utxo.script_pubkey and utxo.script_pubkey.lower() != own_script:
                log.debug("Skipping %s:%d, not locked to the operator key", utxo.txid, utxo.vout)
                continue
            spendable.append(utxo)
        return spendable

    def build(
        self, recipient: str, amount: int, utxos: list[UnspentOutput], fee: int | None = None,
    ) -> tuple[Transaction, CoinSelection]:
        self.check_amount(amount)
        recipient_script = script_for_address(recipient, self.key.network)
        if fee is None:
            fee = self.fixed_fee
        if fee is not None and fee < 0:
            raise InvalidAmount(f"fee must not be negative, got {fee}")

        selection = select_coins(
            self._spendable(utxos), amount,
            fee_rate=self.fee_rate, dust_threshold=self.dust_threshold, fee=fee,
        )

        tx = Transaction(
            inputs=[TxIn(u.txid, u.vout) for u in selection.inputs],
            outputs=[TxOut(amount, recipient_script)],
        )
        if selection.change:
            tx.outputs.append(TxOut(selection.change, self.key.script_pubkey))

        script_code = self.key.script_pubkey
        for index in range(len(tx.inputs)):
            tx.sign_input(index, self.key, script_code)
        return tx, selection

    def build_payout(
        self, recipient: str, amount: int, utxos: list[UnspentOutput], fee: int | None = None,
    ) -> PayoutTransaction:
        """Select, build, and sign a payout of ``amount`` koinu to ``recipient``."""
        tx, selection = self.build(recipient, amount, utxos, fee)
        payout = PayoutTransaction(
            txid=tx.txid,
            raw_hex=tx.to_hex(),
            inputs=selection.inputs,
            amount=amount,
            fee=selection.fee,
            change=selection.change,
            recipient=recipient,
            change_address=self.change_address if selection.change else None,
        )
        log.info(
            "Built payout %s: %d koinu to %s (inputs=%d fee=%d change=%d)",
            payout.txid, amount, recipient, len(selection.inputs), payout.fee, payout.change,
        )
        return payout
