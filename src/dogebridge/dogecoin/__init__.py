"""Dogecoin (source chain) side of the bridge."""

from dogebridge.dogecoin.addresses import AddressManager
from dogebridge.dogecoin.coinselect import TransactionBuilder, estimate_fee, select_coins
from dogebridge.dogecoin.keys import DogeKey, is_valid_address, validate_address
from dogebridge.dogecoin.monitor import DepositMonitor
from dogebridge.dogecoin.rpc import DogeRpcClient, doge_to_koinu, koinu_to_doge

__all__ = [
    "AddressManager",
    "TransactionBuilder", "estimate_fee", "select_coins",
    "DogeKey", "is_valid_address", "validate_address",
    "DepositMonitor",
    "DogeRpcClient", "doge_to_koinu", "koinu_to_doge",
]
