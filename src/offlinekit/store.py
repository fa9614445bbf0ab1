"""OfflineStore: the interface domain callers use.

Every mutation tries the remote store first and falls back to the pending
queue when the store is unavailable. Reads never fail for connectivity.
Only validation errors reach the caller.

Usage:
    store = OfflineStore(MemoryRemoteStore(), data_dir=tmp)
    store.on_sign_in("teacher-1")
    record_id = await store.save(EntityType.STUDENT, {"name": "Asha"})
    students = await store.list(EntityType.STUDENT)
    report = await store.sync()
    store.on_sign_out()
"""
from __future__ import annotations

import logging
from pathlib import Path

from offlinekit.core.constants import (
    QUEUE_AUTO_SAVED_MIRROR,
    QUEUE_OFFLINE_MUTATIONS,
    QUEUE_PENDING_DELETIONS,
    QUEUE_PENDING_UPDATES,
    RECENT_ACTIVITY_LIMIT,
    TEMP_ID_PREFIX,
)
from offlinekit.core.errors import NotAuthenticated, NotFound, Unavailable
from offlinekit.core.schemas import EntityType, QueueEntry, Record
from offlinekit.offline.connectivity import ConnectivityWatcher
from offlinekit.offline.merge import ReadMerger
from offlinekit.offline.queue import PendingQueue
from offlinekit.offline.session import SessionManager
from offlinekit.offline.sync import SyncCoordinator, SyncReport
from offlinekit.remote.base import RemoteStore

logger = logging.getLogger("offlinekit.store")


class OfflineStore:
    """Offline-resilient CRUD for one client.

    Attributes:
        remote: Remote store client
        queue: Local pending queue
        session: Active identity tracker
        merger: Read merger
        coordinator: Sync coordinator
        watcher: Connectivity watcher, syncs on reconnect
    """

    def __init__(self, remote: RemoteStore, data_dir: str | Path | None = None):
        self.remote = remote
        self.queue = PendingQueue(data_dir)
        self.session = SessionManager(self.queue)
        self.merger = ReadMerger(remote, self.queue)
        self.coordinator = SyncCoordinator(remote, self.queue)
        self.watcher = ConnectivityWatcher(on_restored=self._sync_if_signed_in)

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def on_sign_in(self, identity: str) -> None:
        self.session.on_sign_in(identity)

    def on_sign_out(self) -> int:
        """Purge all local state of the current identity."""
        return self.session.on_sign_out()

    @property
    def identity(self) -> str | None:
        return self.session.active

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def save(self, entity_type: EntityType, payload: dict) -> str:
        """Create a record.

        Returns:
            Remote id on success, temporary id when queued offline

        Raises:
            ValidationFailed: Remote store rejected the payload
            NotAuthenticated: No identity signed in
        """
        identity = self.session.require_scope()
        generation = self.queue.generation(identity)
        entity_type = EntityType(entity_type)
        auto_save = self.queue.get_settings(identity).get("auto_save", False)

        try:
            record = await self.remote.create(entity_type, payload)
            record_id = record.id
        except Unavailable as e:
            self._require_same_scope(identity, generation, f"create {entity_type.value}")
            logger.info(f"Create {entity_type.value} queued offline: {e}")
            record_id = self.queue.next_temp_id(identity)
            self.queue.append(identity, QUEUE_OFFLINE_MUTATIONS,
                              QueueEntry.create(entity_type, record_id, payload))

        if auto_save and self._same_scope(identity, generation):
            self.queue.append(identity, QUEUE_AUTO_SAVED_MIRROR,
                              QueueEntry.create(entity_type, record_id, payload))

        return record_id

    async def update(self, entity_type: EntityType, record_id: str, diff: dict) -> None:
        """Apply a partial update, queued when the store is unavailable.

        An update aimed at a record still queued for creation is queued
        behind it, whatever the connectivity.

        Raises:
            ValidationFailed: Remote store rejected the diff
            NotAuthenticated: Signed out before the update could be queued
        """
        identity = self.session.require_scope()
        generation = self.queue.generation(identity)
        entity_type = EntityType(entity_type)
        entry = QueueEntry.update(entity_type, record_id, diff)

        if self._is_queued_create(identity, entity_type, record_id):
            self.queue.append(identity, QUEUE_PENDING_UPDATES, entry)
            return

        try:
            await self.remote.update(entity_type, record_id, diff)
        except Unavailable as e:
            self._require_same_scope(identity, generation, f"update {entity_type.value}/{record_id}")
            logger.info(f"Update {entity_type.value}/{record_id} queued offline: {e}")
            self.queue.append(identity, QUEUE_PENDING_UPDATES, entry)
        except NotFound as e:
            logger.warning(f"Update target missing, ignored: {e}")

    async def delete(self, entity_type: EntityType, record_id: str) -> None:
        """Delete a record, queued when the store is unavailable."""
        identity = self.session.require_scope()
        generation = self.queue.generation(identity)
        entity_type = EntityType(entity_type)
        entry = QueueEntry.delete(entity_type, record_id)

        if self._is_queued_create(identity, entity_type, record_id):
            self.queue.append(identity, QUEUE_PENDING_DELETIONS, entry)
            return

        try:
            await self.remote.delete(entity_type, record_id)
        except Unavailable as e:
            self._require_same_scope(identity, generation, f"delete {entity_type.value}/{record_id}")
            logger.info(f"Delete {entity_type.value}/{record_id} queued offline: {e}")
            self.queue.append(identity, QUEUE_PENDING_DELETIONS, entry)
        except NotFound as e:
            logger.warning(f"Delete target missing, ignored: {e}")

    def _is_queued_create(self, identity: str, entity_type: EntityType, record_id: str) -> bool:
        """True while record_id is a temporary id waiting in offline_mutations."""
        if not record_id.startswith(TEMP_ID_PREFIX):
            return False
        return any(
            entry.entity_id == record_id
            for entry in self.queue.list_all(identity, QUEUE_OFFLINE_MUTATIONS, entity_type)
        )

    def _same_scope(self, identity: str, generation: int) -> bool:
        return self.session.active == identity and self.queue.generation(identity) == generation

    def _require_same_scope(self, identity: str, generation: int, action: str):
        """Refuse to queue a write for a scope signed out during the remote call."""
        if not self._same_scope(identity, generation):
            logger.warning(f"Signed out during {action}, write dropped")
            raise NotAuthenticated("Signed out before the write could be queued")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list(self, entity_type: EntityType, filter: dict | None = None) -> list[Record]:
        """Remote records plus queued creations; local-only when offline."""
        identity = self.session.require_scope()
        entity_type = EntityType(entity_type)
        return await self.merger.read(identity, entity_type, filter)

    async def user_data(self) -> dict[str, list[Record]]:
        """Every entity type of the current identity, keyed by entity type value."""
        return {et.value: await self.list(et) for et in EntityType}

    async def stats(self) -> dict:
        """Totals per entity type plus pending counts, mark average and recent content."""
        data = await self.user_data()
        content = data[EntityType.CONTENT.value]
        return {
            "totals": {name: len(records) for name, records in data.items()},
            "pending_totals": {
                name: sum(1 for r in records if r.is_pending)
                for name, records in data.items()
            },
            "students_by_grade": _count_by(data[EntityType.STUDENT.value], "grade"),
            "content_by_type": _count_by(content, "type"),
            "average_marks": _average(data[EntityType.MARK.value], "percentage"),
            "recent_activity": [
                {
                    "type": r.payload.get("type"),
                    "title": r.payload.get("title"),
                    "date": r.created_at,
                }
                for r in content[:RECENT_ACTIVITY_LIMIT]
            ],
        }

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    async def sync(self) -> SyncReport:
        """Replay the current identity's queue."""
        identity = self.session.require_scope()
        return await self.coordinator.sync(identity)

    async def _sync_if_signed_in(self):
        if not self.session.active:
            return None
        return await self.sync()

    async def connectivity_changed(self, online: bool):
        """Connectivity signal; syncs on offline -> online."""
        return await self.watcher.update(online)

    # ------------------------------------------------------------------
    # Settings and status
    # ------------------------------------------------------------------

    def set_auto_save(self, enabled: bool) -> dict:
        """Keep a local copy of every saved record, online or not."""
        identity = self.session.require_scope()
        return self.queue.set_settings(identity, auto_save=bool(enabled))

    def pending_counts(self) -> dict[str, int]:
        return self.queue.pending_counts(self.session.require_scope())

    def status(self) -> dict:
        identity = self.session.require_scope()
        status = self.queue.get_sync_status(identity)
        status["online"] = self.watcher.online
        status["sync_state"] = self.coordinator.state.value
        status["auto_save"] = self.queue.get_settings(identity).get("auto_save", False)
        return status


def _count_by(records: list[Record], field: str) -> dict[str, int]:
    counts: dict[str, int] = {}
    for record in records:
        value = record.payload.get(field)
        if value is None:
            continue
        counts[str(value)] = counts.get(str(value), 0) + 1
    return counts


def _average(records: list[Record], field: str) -> int:
    """Rounded mean of a numeric field, 0 when no record carries it."""
    values = []
    for record in records:
        try:
            values.append(float(record.payload[field]))
        except (KeyError, TypeError, ValueError):
            continue
    if not values:
        return 0
    return round(sum(values) / len(values))
