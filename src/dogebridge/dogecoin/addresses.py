"""AddressManager - per-user deposit addresses and their keys."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from dogebridge.dogecoin.keys import DogeKey
from dogebridge.models.config import DogeNetwork
from dogebridge.models.records import DepositAddress

log = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class AddressManager:
    """Issues a fresh key-backed deposit address per request.

    Keys never leave this object except through :meth:`get_signing_key`;
    sweeping deposits into the payout pool is left to the operator.
    One owner may hold many addresses; each address has exactly one owner.
    """

    def __init__(self, network: DogeNetwork = DogeNetwork.MAINNET) -> None:
        self._network = network
        self._addresses: dict[str, DepositAddress] = {}
        self._by_owner: dict[str, set[str]] = {}

    def generate_deposit_address(self, owner_id: str) -> str:
        key = DogeKey.generate(self._network)
        entry = DepositAddress(
            address=key.address,
            owner_id=owner_id,
            signing_key=key.secret,
            created_at=_now(),
        )
        self._addresses[entry.address] = entry
        self._by_owner.setdefault(owner_id, set()).add(entry.address)
        log.info("Issued deposit address %s for %s", entry.address, owner_id)
        return entry.address

    def get_address_details(self, address: str) -> DepositAddress | None:
        return self._addresses.get(address)

    def get_user_addresses(self, owner_id: str) -> set[str]:
        return set(self._by_owner.get(owner_id, ()))

    def update_balance(self, address: str, balance: int) -> None:
        """Record the absolute observed balance. Unknown addresses are ignored."""
        entry = self._addresses.get(address)
        if entry is None:
            return
        entry.observed_balance = balance

    def get_signing_key(self, address: str) -> DogeKey | None:
        """Key for sweeping a deposit address. The relay itself never spends deposits."""
        entry = self._addresses.get(address)
        if entry is None:
            return None
        return DogeKey(entry.signing_key, self._network)

    def __len__(self) -> int:
        return len(self._addresses)
