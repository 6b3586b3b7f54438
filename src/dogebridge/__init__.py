"""dogebridge - relay between Dogecoin and a wrapped DOGE token on Stellar Soroban."""

__version__ = "0.1.0"
