"""Stellar/Soroban (settlement chain) integration."""

from dogebridge.stellar.poller import SorobanEventPoller
from dogebridge.stellar.token import SorobanTokenClient

__all__ = ["SorobanEventPoller", "SorobanTokenClient"]
