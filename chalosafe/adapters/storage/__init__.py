"""
Storage adapters for ChaloSafe.

SQLite-based session state persistence and the outbox used for durable
alert delivery.
"""

from .sqlite_state import SQLiteStateStore
from .sqlite_outbox import OutboxItem, SQLiteOutbox

__all__ = ["SQLiteStateStore", "SQLiteOutbox", "OutboxItem"]
