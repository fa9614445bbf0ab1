"""Shared fixtures for offlinekit tests.

Every fixture builds its objects on a per-test data directory, so no test
touches ~/.offlinekit. Feature flags are reset to their shipped values
before each test.
"""
import pytest

from offlinekit.config import features
from offlinekit.offline.queue import PendingQueue
from offlinekit.remote.memory import MemoryRemoteStore
from offlinekit.store import OfflineStore


@pytest.fixture(autouse=True)
def default_features(monkeypatch):
    """Pin feature flags to their defaults."""
    monkeypatch.setattr(features, "FEATURE_RETAIN_FAILED_REPLAYS", False)
    monkeypatch.setattr(features, "FEATURE_TEMP_ID_REMAP_ENABLED", True)
    monkeypatch.setattr(features, "FEATURE_AUTO_SYNC_ON_RECONNECT", True)


@pytest.fixture
def identity() -> str:
    return "teacher-1"


@pytest.fixture
def other_identity() -> str:
    return "teacher-2"


@pytest.fixture
def data_dir(tmp_path):
    """Root of the local pending queue."""
    return tmp_path / "offline"


@pytest.fixture
def queue(data_dir) -> PendingQueue:
    return PendingQueue(data_dir)


@pytest.fixture
def remote() -> MemoryRemoteStore:
    """Online in-memory remote store."""
    return MemoryRemoteStore()


@pytest.fixture
def store(remote, data_dir, identity) -> OfflineStore:
    """OfflineStore signed in as `identity`."""
    store = OfflineStore(remote, data_dir)
    store.on_sign_in(identity)
    return store
