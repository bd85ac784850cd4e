"""
Key-value stores backing the sync bridge.

Provides a small string-to-string store interface and three backends:
- In-memory (process lifetime)
- SQLite (durable, schema-versioned)
- Cloud (local store plus push to a remote key-value service)

Synchronization is a request, not a guarantee. No backend reports
propagation failures to its caller.
"""

import logging
import sqlite3
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional

from ..cloud.client import CloudSyncClient, CloudSyncError

logger = logging.getLogger(__name__)


class KeyValueStoreError(Exception):
    """Raised when local key-value storage fails."""
    pass


class KeyValueStore:
    """Interface of a synchronized string key-value store."""

    def get_string(self, key: str) -> Optional[str]:
        """Return the value stored under key, or None when absent."""
        raise NotImplementedError

    def set_string(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove(self, key: str) -> None:
        raise NotImplementedError

    def keys(self) -> list[str]:
        raise NotImplementedError

    def synchronize(self) -> bool:
        """
        Request propagation of local changes.

        Returns:
            True if the request was accepted, False otherwise.
            Callers are free to ignore the result.
        """
        raise NotImplementedError

    def close(self) -> None:
        """Release resources held by the store."""
        pass


class InMemoryKeyValueStore(KeyValueStore):
    """Process-lifetime store. Nothing is propagated anywhere."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._values: dict[str, str] = dict(initial or {})

    def get_string(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set_string(self, key: str, value: str) -> None:
        self._values[key] = value

    def remove(self, key: str) -> None:
        self._values.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._values)

    def synchronize(self) -> bool:
        return True

    def __repr__(self) -> str:
        return f"InMemoryKeyValueStore(keys={len(self._values)})"


class SQLiteKeyValueStore(KeyValueStore):
    """
    SQLite-based persistent key-value store.

    Features:
    - Upsert on every write (last write wins)
    - Automatic schema migration
    - WAL journal for safe reopen after crashes

    Usage:
        store = SQLiteKeyValueStore(Path("data/refuelsync.db"))
        store.set_string("refuel_entries_json", "[]")
        store.get_string("refuel_entries_json")
    """

    SCHEMA_VERSION = 2

    CREATE_TABLE_SQL = """
        CREATE TABLE IF NOT EXISTS kv_store (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL,
            modified_at TEXT
        )
    """

    # Keys written locally and not yet pushed to the cloud
    CREATE_PENDING_TABLE_SQL = """
        CREATE TABLE IF NOT EXISTS pending_push (
            key TEXT PRIMARY KEY,
            value TEXT,
            is_removal INTEGER DEFAULT 0
        )
    """

    CREATE_METADATA_TABLE_SQL = """
        CREATE TABLE IF NOT EXISTS _metadata (
            key TEXT PRIMARY KEY,
            value TEXT
        )
    """

    def __init__(self, database_path: Path):
        """
        Initialize key-value store.

        Args:
            database_path: Path to SQLite database file
        """
        self.database_path = Path(database_path)
        self.database_path.parent.mkdir(parents=True, exist_ok=True)

        self._initialize_database()

        logger.info(f"Key-value store initialized at {self.database_path}")

    def __repr__(self) -> str:
        return f"SQLiteKeyValueStore(database_path='{self.database_path}')"

    def _initialize_database(self) -> None:
        """Create tables and record the schema version."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(self.CREATE_METADATA_TABLE_SQL)

            cursor.execute("SELECT value FROM _metadata WHERE key = 'schema_version'")
            row = cursor.fetchone()
            current_version = int(row[0]) if row else 0

            if current_version < self.SCHEMA_VERSION:
                logger.info(f"Upgrading schema from v{current_version} to v{self.SCHEMA_VERSION}")
                self._run_migrations(cursor, current_version)
                cursor.execute(
                    "INSERT OR REPLACE INTO _metadata (key, value) VALUES (?, ?)",
                    ("schema_version", str(self.SCHEMA_VERSION)),
                )

            cursor.execute(self.CREATE_TABLE_SQL)
            conn.commit()

    def _run_migrations(self, cursor: sqlite3.Cursor, from_version: int) -> None:
        """
        Run database migrations.

        Args:
            cursor: Database cursor
            from_version: Current schema version
        """
        if from_version < 2:
            cursor.execute(self.CREATE_PENDING_TABLE_SQL)

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        """
        Get a database connection with proper settings.

        Yields:
            SQLite connection in WAL mode

        Raises:
            KeyValueStoreError: If SQLite reports an error
        """
        try:
            conn = sqlite3.connect(
                self.database_path,
                timeout=30.0,
                isolation_level="DEFERRED",
            )
        except sqlite3.Error as e:
            raise KeyValueStoreError(f"Cannot open {self.database_path}: {e}") from e

        try:
            conn.execute("PRAGMA journal_mode=WAL")
            yield conn
        except sqlite3.Error as e:
            raise KeyValueStoreError(f"Key-value store operation failed: {e}") from e
        finally:
            conn.close()

    def get_string(self, key: str) -> Optional[str]:
        with self._get_connection() as conn:
            cursor = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,))
            row = cursor.fetchone()
            return row[0] if row else None

    def set_string(self, key: str, value: str) -> None:
        with self._get_connection() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO kv_store (key, value, modified_at) VALUES (?, ?, ?)",
                (key, value, datetime.now(timezone.utc).isoformat()),
            )
            conn.commit()

        logger.debug(f"Stored {len(value)} chars under {key}")

    def remove(self, key: str) -> None:
        with self._get_connection() as conn:
            conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            conn.commit()

    def keys(self) -> list[str]:
        with self._get_connection() as conn:
            cursor = conn.execute("SELECT key FROM kv_store ORDER BY key")
            return [row[0] for row in cursor.fetchall()]

    def synchronize(self) -> bool:
        # Every write is already committed to disk.
        return True

    def pending_journal(self) -> "SQLitePendingJournal":
        """Journal of unpushed cloud writes kept in this database."""
        return SQLitePendingJournal(self)

    def clear(self) -> None:
        """
        Remove every key.

        WARNING: This is destructive. Use only for testing or reset.
        """
        with self._get_connection() as conn:
            conn.execute("DELETE FROM kv_store")
            conn.commit()

        logger.warning("All stored keys cleared")


class PendingJournal:
    """
    Keys written locally but not yet pushed to the cloud.

    This base journal lives in memory. None marks a removal.
    """

    def __init__(self):
        self._entries: dict[str, Optional[str]] = {}

    def load(self) -> dict[str, Optional[str]]:
        return dict(self._entries)

    def record(self, key: str, value: Optional[str]) -> None:
        self._entries[key] = value

    def discard(self, key: str, value: Optional[str]) -> None:
        """Forget key unless it was rewritten with another value meanwhile."""
        if key in self._entries and self._entries[key] == value:
            del self._entries[key]


class SQLitePendingJournal(PendingJournal):
    """Journal kept in the pending_push table of a SQLite store."""

    def __init__(self, store: SQLiteKeyValueStore):
        self.store = store

    def load(self) -> dict[str, Optional[str]]:
        with self.store._get_connection() as conn:
            cursor = conn.execute("SELECT key, value, is_removal FROM pending_push")
            return {
                key: None if is_removal else value
                for key, value, is_removal in cursor.fetchall()
            }

    def record(self, key: str, value: Optional[str]) -> None:
        with self.store._get_connection() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO pending_push (key, value, is_removal) VALUES (?, ?, ?)",
                (key, value, 1 if value is None else 0),
            )
            conn.commit()

    def discard(self, key: str, value: Optional[str]) -> None:
        with self.store._get_connection() as conn:
            if value is None:
                conn.execute(
                    "DELETE FROM pending_push WHERE key = ? AND is_removal = 1", (key,)
                )
            else:
                conn.execute(
                    "DELETE FROM pending_push WHERE key = ? AND is_removal = 0 AND value = ?",
                    (key, value),
                )
            conn.commit()


class CloudKeyValueStore(KeyValueStore):
    """
    Local store whose changes are pushed to a remote key-value service.

    Reads and writes hit the local store only. Written keys are recorded
    in a pending journal and sent by a background worker after
    synchronize(). A failed push leaves them pending for the next
    synchronize() and is only logged. With a SQLite journal the pending
    keys survive a restart, so pull() never overwrites them.

    Usage:
        local = SQLiteKeyValueStore(path)
        store = CloudKeyValueStore(
            local=local,
            client=CloudSyncClient(base_url="https://kv.example.com", access_token="..."),
            journal=local.pending_journal(),
        )
        store.pull()
        store.set_string("refuel_entries_json", "[]")
        store.synchronize()
        store.close()
    """

    def __init__(
        self,
        local: KeyValueStore,
        client: Optional[CloudSyncClient] = None,
        journal: Optional[PendingJournal] = None,
    ):
        self.local = local
        self.client = client
        self.journal = journal if journal is not None else PendingJournal()
        self._lock = threading.Lock()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._last_push: Optional[Future] = None

        if client is not None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="cloud-push")

        pending = self.journal.load()
        if pending:
            logger.info(f"{len(pending)} keys still pending from an earlier run")

    def __repr__(self) -> str:
        return f"CloudKeyValueStore(local={self.local!r}, client={self.client!r})"

    @property
    def pending_keys(self) -> list[str]:
        """Keys written locally but not yet pushed."""
        with self._lock:
            return sorted(self.journal.load())

    def get_string(self, key: str) -> Optional[str]:
        return self.local.get_string(key)

    def set_string(self, key: str, value: str) -> None:
        with self._lock:
            self.local.set_string(key, value)
            self.journal.record(key, value)

    def remove(self, key: str) -> None:
        with self._lock:
            self.local.remove(key)
            self.journal.record(key, None)

    def keys(self) -> list[str]:
        return self.local.keys()

    def synchronize(self) -> bool:
        """
        Queue a push of the pending keys and return without waiting.

        Returns:
            False once the store is closed, True otherwise
        """
        self.local.synchronize()

        if self.client is None:
            return True

        if self._executor is None:
            logger.warning("Cloud store closed, synchronization request dropped")
            return False

        self._last_push = self._executor.submit(self._push_pending)
        return True

    def _push_pending(self) -> bool:
        """Send every pending key. Runs on the push worker."""
        with self._lock:
            batch = self.journal.load()

        if not batch:
            logger.debug("Nothing to push")
            return True

        try:
            self.client.push(batch)
        except CloudSyncError as e:
            logger.warning(f"Cloud push failed, {len(batch)} keys stay pending: {e}")
            return False

        with self._lock:
            for key, value in batch.items():
                self.journal.discard(key, value)

        logger.info(f"Pushed {len(batch)} keys to cloud")
        return True

    def flush(self) -> bool:
        """
        Wait for the most recent push to finish.

        Returns:
            Whether that push succeeded. True when nothing was queued.
        """
        if self._last_push is None:
            return True
        return self._last_push.result()

    def pull(self) -> bool:
        """
        Adopt the remote values into the local store.

        Remote values overwrite local ones, except keys with pending
        local writes.

        Returns:
            True if the remote values were fetched, False otherwise
        """
        if self.client is None:
            return True

        try:
            remote = self.client.fetch()
        except CloudSyncError as e:
            logger.warning(f"Cloud fetch failed, keeping local values: {e}")
            return False

        adopted = 0
        with self._lock:
            pending = self.journal.load()
            for key, value in remote.items():
                if key in pending:
                    continue
                if self.local.get_string(key) != value:
                    self.local.set_string(key, value)
                    adopted += 1

        logger.info(f"Fetched {len(remote)} keys from cloud, {adopted} changed locally")
        return True

    def close(self) -> None:
        """Finish queued pushes and stop the push worker."""
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
            logger.debug("Cloud push worker stopped")
        self.local.close()
