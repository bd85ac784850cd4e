"""Key-value storage module."""

from .kv_store import (
    CloudKeyValueStore,
    InMemoryKeyValueStore,
    KeyValueStore,
    KeyValueStoreError,
    PendingJournal,
    SQLiteKeyValueStore,
    SQLitePendingJournal,
)
from .models import ENTRIES_JSON_KEY, UPDATED_AT_KEY, SyncRecord

__all__ = [
    "CloudKeyValueStore",
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "KeyValueStoreError",
    "PendingJournal",
    "SQLiteKeyValueStore",
    "SQLitePendingJournal",
    "SyncRecord",
    "ENTRIES_JSON_KEY",
    "UPDATED_AT_KEY",
]
