"""
Pytest configuration and shared fixtures.

Provides stores, channels and a fake cloud client for bridge testing.
"""

import pytest
from pathlib import Path
from typing import Callable, Generator, Optional
import tempfile
import time

from refuelsync.bridge import MethodChannel, SyncBridge
from refuelsync.cloud import CloudSyncError
from refuelsync.storage import (
    CloudKeyValueStore,
    InMemoryKeyValueStore,
    SQLiteKeyValueStore,
    SyncRecord,
)


# ============================================================================
# Record Fixtures
# ============================================================================

@pytest.fixture
def sample_entries_json() -> str:
    """Serialized entries as produced by the application layer."""
    return '[{"id":"e1","liters":42.5,"odometer":120340,"date":"2026-01-15"}]'


@pytest.fixture
def sample_updated_at() -> str:
    """Snapshot timestamp as produced by the application layer."""
    return "2026-01-15T14:30:00.000Z"


@pytest.fixture
def sample_record(sample_entries_json: str, sample_updated_at: str) -> SyncRecord:
    """Create a sample stored record."""
    return SyncRecord(entries_json=sample_entries_json, updated_at=sample_updated_at)


# ============================================================================
# Storage Fixtures
# ============================================================================

@pytest.fixture
def temp_db_path() -> Generator[Path, None, None]:
    """Create a temporary database path inside a throwaway directory."""
    with tempfile.TemporaryDirectory() as tmp_dir:
        yield Path(tmp_dir) / "refuelsync.db"


@pytest.fixture
def memory_store() -> InMemoryKeyValueStore:
    """Create an empty in-memory store."""
    return InMemoryKeyValueStore()


@pytest.fixture
def sqlite_store(temp_db_path: Path) -> SQLiteKeyValueStore:
    """Create a fresh SQLite store with temp database."""
    return SQLiteKeyValueStore(temp_db_path)


# ============================================================================
# Bridge Fixtures
# ============================================================================

@pytest.fixture
def bridge(memory_store: InMemoryKeyValueStore) -> SyncBridge:
    """Create a bridge over an empty in-memory store."""
    return SyncBridge(memory_store)


@pytest.fixture
def channel(bridge: SyncBridge) -> MethodChannel:
    """Create a channel with the bridge attached."""
    return bridge.attach(MethodChannel("icloud_sync"))


# ============================================================================
# Cloud Fixtures
# ============================================================================

class FakeCloudClient:
    """In-process stand-in for CloudSyncClient."""

    def __init__(self, remote: Optional[dict] = None, fail: bool = False, push_delay: float = 0.0):
        self.remote: dict = dict(remote or {})
        self.fail = fail
        self.push_delay = push_delay
        self.pushes: list[dict] = []

    def push(self, values: dict) -> None:
        if self.push_delay:
            time.sleep(self.push_delay)
        if self.fail:
            raise CloudSyncError("service unavailable", status_code=503)
        self.pushes.append(dict(values))
        for key, value in values.items():
            if value is None:
                self.remote.pop(key, None)
            else:
                self.remote[key] = value

    def fetch(self) -> dict:
        if self.fail:
            raise CloudSyncError("service unavailable", status_code=503)
        return dict(self.remote)

    def close(self) -> None:
        pass


@pytest.fixture
def fake_cloud() -> FakeCloudClient:
    """Create a reachable fake cloud with no keys."""
    return FakeCloudClient()


@pytest.fixture
def failing_cloud() -> FakeCloudClient:
    """Create a fake cloud whose every request fails."""
    return FakeCloudClient(fail=True)


@pytest.fixture
def slow_cloud() -> FakeCloudClient:
    """Create a reachable fake cloud that takes a second per push."""
    return FakeCloudClient(push_delay=1.0)


@pytest.fixture
def make_cloud_store() -> Generator[Callable[..., CloudKeyValueStore], None, None]:
    """Build cloud stores and stop their push workers after the test."""
    stores = []

    def factory(**kwargs) -> CloudKeyValueStore:
        store = CloudKeyValueStore(**kwargs)
        stores.append(store)
        return store

    yield factory

    for store in stores:
        store.close()


# ============================================================================
# Environment Fixtures
# ============================================================================

@pytest.fixture
def clean_env(monkeypatch, tmp_path: Path) -> Path:
    """Remove refuelsync variables and run from an empty directory."""
    for key in (
        "REFUELSYNC_STORAGE_BACKEND",
        "REFUELSYNC_DATABASE_PATH",
        "REFUELSYNC_CHANNEL_NAME",
        "REFUELSYNC_CLOUD_URL",
        "REFUELSYNC_CLOUD_TOKEN",
        "REFUELSYNC_CLOUD_TIMEOUT",
        "REFUELSYNC_CLOUD_MAX_RETRIES",
        "LOG_LEVEL",
    ):
        # Set first so teardown also undoes values written by .env loading
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)
    return tmp_path
