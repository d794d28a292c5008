"""Entity store adapters."""

from issuer.storage.interface import EntityStore, Transaction
from issuer.storage.memory_store import MemoryStore
from issuer.storage.sqlite_store import SQLiteStorage, open_storage

__all__ = ["EntityStore", "MemoryStore", "SQLiteStorage", "Transaction", "open_storage"]
