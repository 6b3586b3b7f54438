"""State storage backends."""

from dogebridge.storage.sqlite import SQLiteStateStore

__all__ = ["SQLiteStateStore"]
