"""
offlinekit - Offline-resilient persistence for the teaching dashboard

Keeps creating, updating and deleting records while the backing store is
unreachable, merges pending records into reads, and replays them once
connectivity returns. Pending writes are scoped to the signed-in identity
and purged on sign-out.
"""

__version__ = "0.1.0"

from offlinekit.core.errors import (
    OfflineKitError,
    Unavailable,
    ValidationFailed,
    NotFound,
    StorageCorrupt,
    NotAuthenticated,
)
from offlinekit.core.schemas import EntityType, Record, QueueEntry
from offlinekit.offline.sync import SyncReport
from offlinekit.remote import HttpRemoteStore, MemoryRemoteStore, RemoteStore
from offlinekit.store import OfflineStore

__all__ = [
    "OfflineStore",
    "EntityType",
    "Record",
    "QueueEntry",
    "SyncReport",
    "RemoteStore",
    "HttpRemoteStore",
    "MemoryRemoteStore",
    "OfflineKitError",
    "Unavailable",
    "ValidationFailed",
    "NotFound",
    "StorageCorrupt",
    "NotAuthenticated",
    "__version__",
]
