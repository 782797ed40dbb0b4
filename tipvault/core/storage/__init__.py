"""
Persistent Storage Module.

Provides SQLite-backed persistence for:
- Account states, balances and allowances
- Stake records and stake-type configuration
- Engine metadata and the event log
"""

from tipvault.core.storage.sqlite_adapter import SQLiteAdapter
from tipvault.core.storage.storage_manager import StorageManager

__all__ = ["SQLiteAdapter", "StorageManager"]
