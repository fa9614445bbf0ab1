"""Offline persistence: pending queue, read merger, sync, session.

Mutations the remote store cannot take are queued per identity. Reads
fold queued creations in. Sync replays the queue when connectivity allows.
Sign-out purges everything the identity left behind.

Usage:
    from offlinekit.offline import PendingQueue, ReadMerger, SyncCoordinator

    queue = PendingQueue("/var/lib/offlinekit")
    records = await ReadMerger(remote, queue).read("teacher-1", EntityType.STUDENT)
    report = await SyncCoordinator(remote, queue).sync("teacher-1")
"""
from offlinekit.offline.queue import PendingQueue, identity_digest
from offlinekit.offline.merge import ReadMerger
from offlinekit.offline.sync import (
    SyncCoordinator,
    SyncReport,
    SyncState,
    ReplayResult,
)
from offlinekit.offline.session import SessionManager
from offlinekit.offline.connectivity import ConnectivityWatcher, is_connected

__all__ = [
    # Queue
    "PendingQueue",
    "identity_digest",
    # Reads
    "ReadMerger",
    # Sync
    "SyncCoordinator",
    "SyncReport",
    "SyncState",
    "ReplayResult",
    # Session
    "SessionManager",
    # Connectivity
    "ConnectivityWatcher",
    "is_connected",
]
