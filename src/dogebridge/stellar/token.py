"""Soroban wDOGE token client - mint, burn and withdrawal confirmation."""

from __future__ import annotations

import logging
from typing import Sequence

from stellar_sdk import Keypair, scval, xdr
from stellar_sdk.contract import ContractClientAsync
from stellar_sdk.contract.exceptions import (
    SendTransactionFailedError,
    SimulationFailedError,
    TransactionFailedError,
    TransactionStillPendingError,
)
from stellar_sdk.exceptions import BaseRequestError

from dogebridge.errors import RpcError, SettlementRejected
from dogebridge.models.records import MintResult

log = logging.getLogger(__name__)

# Contract error substrings
_ERROR_DUPLICATE_DEPOSIT = "DuplicateDeposit"
_ERROR_INSUFFICIENT_BALANCE = "InsufficientBalance"
_ERROR_UNAUTHORIZED = "Unauthorized"


def _classify_error(exc: Exception) -> str:
    msg = str(exc)
    if _ERROR_DUPLICATE_DEPOSIT in msg:
        return "duplicate_deposit"
    if _ERROR_INSUFFICIENT_BALANCE in msg:
        return "insufficient_balance"
    if _ERROR_UNAUTHORIZED in msg:
        return "unauthorized"
    return "unknown"


class SorobanTokenClient:
    """Calls the wDOGE contract as the bridge operator.

    Contract rejections (simulation or on-chain failure) are reported in
    the returned result or raised as permanent errors; RPC transport
    problems surface as RpcError so callers can retry them.
    """

    def __init__(
        self,
        contract_id: str,
        rpc_url: str,
        network_passphrase: str,
        keypair: Keypair,
    ) -> None:
        self._keypair = keypair
        self._public_key = keypair.public_key
        self._client = ContractClientAsync(
            contract_id=contract_id,
            rpc_url=rpc_url,
            network_passphrase=network_passphrase,
        )

    @property
    def operator_address(self) -> str:
        return self._public_key

    async def close(self) -> None:
        await self._client.server.close()

    async def _invoke(
        self,
        function: str,
        parameters: Sequence[xdr.SCVal],
        *,
        submit: bool = True,
        parse=None,
    ):
        try:
            tx = await self._client.invoke(
                function,
                parameters,
                source=self._public_key,
                signer=self._keypair,
                parse_result_xdr_fn=parse,
            )
            if not submit:
                return tx, tx.result()
            result = await tx.sign_and_submit()
            return tx, result
        except (SendTransactionFailedError, TransactionStillPendingError, BaseRequestError) as exc:
            raise RpcError(f"{function}: {exc}", method=function) from exc

    @staticmethod
    def _tx_hash(tx) -> str:
        if tx is not None and tx.send_transaction_response:
            return tx.send_transaction_response.hash
        return ""

    async def mint(self, recipient: str, amount: int, deposit_id: bytes) -> MintResult:
        """Mint ``amount`` wDOGE to ``recipient`` for deposit ``deposit_id``."""
        log.info("Submitting mint of %d to %s (deposit %s)", amount, recipient, deposit_id.hex()[:16])
        try:
            tx, _ = await self._invoke(
                "mint",
                [scval.to_address(recipient), scval.to_int128(amount), scval.to_bytes(deposit_id)],
            )
        except SimulationFailedError as exc:
            error_type = _classify_error(exc)
            log.warning("mint simulation failed for %s: %s (%s)", deposit_id.hex()[:16], error_type, exc)
            return MintResult(
                success=False, recipient=recipient, amount=amount,
                deposit_id=deposit_id.hex(), error=f"simulation_failed:{error_type}",
            )
        except TransactionFailedError as exc:
            error_type = _classify_error(exc)
            tx_hash = self._tx_hash(exc.assembled_transaction)
            log.error("mint tx failed for %s: %s (tx=%s)", deposit_id.hex()[:16], error_type, tx_hash[:16] or "?")
            return MintResult(
                success=False, recipient=recipient, amount=amount,
                deposit_id=deposit_id.hex(), tx_hash=tx_hash or None,
                error=f"tx_failed:{error_type}",
            )

        tx_hash = self._tx_hash(tx)
        log.info("mint succeeded for %s (tx=%s)", deposit_id.hex()[:16], tx_hash[:16] or "?")
        return MintResult(
            success=True, recipient=recipient, amount=amount,
            deposit_id=deposit_id.hex(), tx_hash=tx_hash,
        )

    async def burn(self, holder: str, amount: int) -> str:
        """Burn ``amount`` wDOGE held by ``holder``. Returns the transaction hash.

        Raises SettlementRejected when the contract refuses the burn
        (insufficient balance, missing authorization).
        """
        try:
            tx, _ = await self._invoke("burn", [scval.to_address(holder), scval.to_int128(amount)])
        except (SimulationFailedError, TransactionFailedError) as exc:
            error_type = _classify_error(exc)
            log.warning("burn of %d from %s rejected: %s", amount, holder, error_type)
            raise SettlementRejected("burn", error_type) from exc
        tx_hash = self._tx_hash(tx)
        log.info("burn of %d from %s submitted (tx=%s)", amount, holder, tx_hash[:16] or "?")
        return tx_hash

    async def is_deposit_processed(self, deposit_id: bytes) -> bool:
        _, processed = await self._invoke(
            "is_processed", [scval.to_bytes(deposit_id)], submit=False, parse=scval.from_bool,
        )
        return bool(processed)

    async def confirm_withdrawal(self, request_id: int, doge_txid: str) -> str:
        tx, _ = await self._invoke(
            "confirm_withdrawal", [scval.to_uint64(int(request_id)), scval.to_string(doge_txid)],
        )
        return self._tx_hash(tx)
