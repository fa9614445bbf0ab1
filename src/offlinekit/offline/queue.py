"""Local pending queue for offline operation.

Uses file-based storage (no database required) to hold mutations the
remote store could not take. Entries are replayed by the sync coordinator
when connection is restored.

Layout, one directory per identity:

    <data_dir>/<identity digest>/state.json
    <data_dir>/<identity digest>/settings.json
    <data_dir>/<identity digest>/<entity_type>/<queue_kind>.jsonl

Design constraints:
- File-based only, one JSONL file per QueueKey
- Append-only, flushed and fsynced before append returns
- Clear is one unlink, commit is one os.replace, purge is one rename
- Every line carries a payload hash; a bad line quarantines its file
"""
import fcntl
import json
import logging
import os
import shutil
import time
import uuid
from pathlib import Path

from offlinekit.core.constants import (
    DEFAULT_DATA_DIR,
    IDENTITY_DIGEST_LENGTH,
    QUEUE_KINDS,
    QUEUE_SUFFIX,
    REPLAY_QUEUE_KINDS,
    SETTINGS_FILENAME,
    STATE_FILENAME,
    TEMP_ID_PREFIX,
    TOMBSTONE_PREFIX,
)
from offlinekit.core.errors import StorageCorrupt
from offlinekit.core.receipt import dual_hash, emit_receipt, merkle, utc_now
from offlinekit.core.schemas import EntityType, QueueEntry, QueueKey

logger = logging.getLogger("offlinekit.queue")


def identity_digest(identity: str) -> str:
    """Filesystem-safe directory name for an identity."""
    return dual_hash(identity).split(":")[0][:IDENTITY_DIGEST_LENGTH]


class PendingQueue:
    """Durable, identity-scoped log of uncommitted mutations.

    Attributes:
        data_dir: Root directory holding one subdirectory per identity
    """

    def __init__(self, data_dir: str | Path | None = None):
        self.data_dir = Path(data_dir) if data_dir else DEFAULT_DATA_DIR
        self._generations: dict[str, int] = {}

    def generation(self, identity: str) -> int:
        """Number of purges of this identity seen by this queue.

        Callers that await between reading and writing compare it before
        and after, so a write never lands in a scope purged in between.
        """
        return self._generations.get(identity, 0)

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def scope_dir(self, identity: str) -> Path:
        return self.data_dir / identity_digest(identity)

    def path_for(self, key: QueueKey) -> Path:
        return self.scope_dir(key.identity) / key.entity_type.value / f"{key.queue_kind}{QUEUE_SUFFIX}"

    def keys(self, identity: str) -> list[QueueKey]:
        """Every QueueKey with a queue file on disk for this identity."""
        keys = []
        for entity_type in EntityType:
            for kind in QUEUE_KINDS:
                key = QueueKey(identity, entity_type, kind)
                if self.path_for(key).exists():
                    keys.append(key)
        return keys

    # ------------------------------------------------------------------
    # Per-identity state and settings
    # ------------------------------------------------------------------

    def _load_json(self, path: Path, default: dict) -> dict:
        if not path.exists():
            return dict(default)
        try:
            with open(path) as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise StorageCorrupt(f"{path.name} is not an object")
            return {**default, **data}
        except (OSError, ValueError, StorageCorrupt) as e:
            logger.warning(f"Unreadable {path.name}, using defaults: {e}")
            return dict(default)

    def _save_json(self, path: Path, data: dict):
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_name(f".{path.name}.{uuid.uuid4().hex}.tmp")
        with open(tmp_path, "w") as f:
            json.dump(data, f, indent=2)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)

    def _load_state(self, identity: str) -> dict:
        return self._load_json(self.scope_dir(identity) / STATE_FILENAME, {
            "local_sequence_id": 0,
            "last_temp_id": 0,
            "last_sync_time": None,
            "last_sync_batch_id": None,
        })

    def _save_state(self, identity: str, state: dict):
        self._save_json(self.scope_dir(identity) / STATE_FILENAME, state)

    def get_settings(self, identity: str) -> dict:
        """User preferences stored with the identity's queues."""
        return self._load_json(self.scope_dir(identity) / SETTINGS_FILENAME, {"auto_save": False})

    def set_settings(self, identity: str, **updates) -> dict:
        settings = {**self.get_settings(identity), **updates}
        self._save_json(self.scope_dir(identity) / SETTINGS_FILENAME, settings)
        return settings

    def next_temp_id(self, identity: str) -> str:
        """Temporary record id from the wall clock in microseconds.

        Forced strictly above the last id handed out for this identity, so
        two saves in the same microsecond (or after a clock step back) differ.
        """
        state = self._load_state(identity)
        value = max(time.time_ns() // 1000, state["last_temp_id"] + 1)
        state["last_temp_id"] = value
        self._save_state(identity, state)
        return f"{TEMP_ID_PREFIX}{value}"

    def mark_synced(self, identity: str, batch_id: str):
        state = self._load_state(identity)
        state["last_sync_time"] = utc_now()
        state["last_sync_batch_id"] = batch_id
        self._save_state(identity, state)

    # ------------------------------------------------------------------
    # Queue operations
    # ------------------------------------------------------------------

    def append(self, identity: str, queue_kind: str, entry: QueueEntry) -> QueueEntry:
        """Add an entry to the queue for later sync.

        Args:
            identity: Identity the entry belongs to
            queue_kind: One of QUEUE_KINDS
            entry: Entry to store (sequence is assigned here)

        Returns:
            The stored entry, carrying its sequence number
        """
        key = QueueKey(identity, entry.entity_type, queue_kind)

        state = self._load_state(identity)
        state["local_sequence_id"] += 1
        entry = entry.with_sequence(state["local_sequence_id"])

        path = self.path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        line = json.dumps(entry.to_dict(), sort_keys=True) + "\n"

        with open(path, "a") as f:
            fcntl.flock(f.fileno(), fcntl.LOCK_EX)
            try:
                f.write(line)
                f.flush()
                os.fsync(f.fileno())
            finally:
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)

        self._save_state(identity, state)

        emit_receipt("offline_enqueue", {
            "tenant_id": identity_digest(identity),
            "queue_kind": queue_kind,
            "entity_type": entry.entity_type.value,
            "operation": entry.operation.value,
            "entry_id": entry.entry_id,
            "local_sequence_id": entry.sequence,
        })

        return entry

    def _read_entries(self, path: Path) -> list[QueueEntry]:
        """Decode a queue file.

        Raises:
            StorageCorrupt: On any unreadable or invalid line
        """
        entries = []
        try:
            with open(path) as f:
                for line_no, line in enumerate(f, start=1):
                    if not line.strip():
                        continue
                    try:
                        data = json.loads(line)
                    except json.JSONDecodeError as e:
                        raise StorageCorrupt(f"{path.name} line {line_no}: {e}")
                    entries.append(QueueEntry.from_dict(data))
        except OSError as e:
            raise StorageCorrupt(f"Cannot read {path}: {e}")
        return entries

    def _quarantine(self, key: QueueKey, path: Path, error: StorageCorrupt):
        """Move a corrupt queue file aside so new appends start clean."""
        quarantined = path.with_name(f"{path.name}.corrupt-{uuid.uuid4().hex[:8]}")
        try:
            os.replace(path, quarantined)
        except OSError as e:
            logger.warning(f"Could not quarantine {path}: {e}")
            quarantined = None

        logger.warning(
            f"Queue {key.entity_type.value}/{key.queue_kind} unreadable, treating as empty: {error}"
        )
        emit_receipt("storage_corrupt", {
            "tenant_id": identity_digest(key.identity),
            "queue_kind": key.queue_kind,
            "entity_type": key.entity_type.value,
            "quarantined": quarantined is not None,
        })

    def list_all(
        self,
        identity: str,
        queue_kind: str,
        entity_type: EntityType | None = None,
    ) -> list[QueueEntry]:
        """Get queued entries ordered by enqueue time.

        Args:
            identity: Identity to read
            queue_kind: One of QUEUE_KINDS
            entity_type: Restrict to one entity type (None = all)

        Returns:
            Entries sorted by (enqueued_at, sequence); empty on corruption
        """
        types = [entity_type] if entity_type else list(EntityType)
        entries = []

        for et in types:
            key = QueueKey(identity, et, queue_kind)
            path = self.path_for(key)
            if not path.exists():
                continue
            try:
                entries.extend(self._read_entries(path))
            except StorageCorrupt as e:
                self._quarantine(key, path, e)

        entries.sort(key=lambda e: (e.enqueued_at, e.sequence))
        return entries

    def size(self, identity: str, queue_kind: str, entity_type: EntityType | None = None) -> int:
        return len(self.list_all(identity, queue_kind, entity_type))

    def clear(self, identity: str, queue_kind: str, entity_type: EntityType):
        """Remove every entry for one key in one step."""
        key = QueueKey(identity, entity_type, queue_kind)
        path = self.path_for(key)
        if path.exists():
            path.unlink()

        emit_receipt("queue_cleared", {
            "tenant_id": identity_digest(identity),
            "queue_kind": queue_kind,
            "entity_type": entity_type.value,
            "cleared_at": utc_now(),
        })

    def discard(
        self,
        identity: str,
        queue_kind: str,
        entity_type: EntityType,
        entry_ids: set[str],
    ) -> int:
        """Remove the given entries, leaving everything else in place.

        Only the sync coordinator calls this, to commit a drained snapshot
        without losing entries appended while it was draining.

        Returns:
            Number of entries left in the queue
        """
        key = QueueKey(identity, entity_type, queue_kind)
        path = self.path_for(key)
        if not path.exists() or not entry_ids:
            return self.size(identity, queue_kind, entity_type) if path.exists() else 0

        with open(path, "r+") as f:
            fcntl.flock(f.fileno(), fcntl.LOCK_EX)
            try:
                kept = []
                dropped = 0
                for line in f:
                    if not line.strip():
                        continue
                    try:
                        entry_id = json.loads(line).get("entry_id")
                    except (json.JSONDecodeError, AttributeError):
                        dropped += 1
                        continue
                    if entry_id not in entry_ids:
                        kept.append(line if line.endswith("\n") else line + "\n")

                if not kept:
                    path.unlink()
                else:
                    tmp_path = path.with_name(f".{path.name}.{uuid.uuid4().hex}.tmp")
                    with open(tmp_path, "w") as out:
                        out.writelines(kept)
                        out.flush()
                        os.fsync(out.fileno())
                    os.replace(tmp_path, path)
            finally:
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)

        if dropped:
            logger.warning(
                f"Queue {entity_type.value}/{queue_kind}: dropped {dropped} unreadable line(s) on commit"
            )

        emit_receipt("queue_committed", {
            "tenant_id": identity_digest(identity),
            "queue_kind": queue_kind,
            "entity_type": entity_type.value,
            "discarded_count": len(entry_ids),
            "remaining_count": len(kept),
            "dropped_unreadable": dropped,
        })

        return len(kept)

    def purge(self, identity: str) -> int:
        """Delete every key, state and setting of an identity.

        The directory is renamed to a tombstone first, so readers see either
        the whole scope or nothing.

        Returns:
            Number of queue files removed
        """
        scope = self.scope_dir(identity)
        removed = len(self.keys(identity))
        self._generations[identity] = self.generation(identity) + 1

        if scope.exists():
            tombstone = self.data_dir / f"{TOMBSTONE_PREFIX}{scope.name}-{uuid.uuid4().hex[:8]}"
            os.rename(scope, tombstone)
            shutil.rmtree(tombstone, ignore_errors=True)

        self._sweep_tombstones()

        emit_receipt("scope_purged", {
            "tenant_id": identity_digest(identity),
            "queue_files_removed": removed,
        })

        return removed

    def _sweep_tombstones(self):
        """Remove tombstones left by a purge interrupted before rmtree."""
        if not self.data_dir.exists():
            return
        for path in self.data_dir.glob(f"{TOMBSTONE_PREFIX}*"):
            shutil.rmtree(path, ignore_errors=True)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def pending_counts(self, identity: str) -> dict[str, int]:
        """Entry count per queue kind."""
        return {kind: self.size(identity, kind) for kind in QUEUE_KINDS}

    def merkle_root(self, identity: str) -> str | None:
        """Merkle root over every queued entry, None when nothing is queued."""
        entries = []
        for kind in QUEUE_KINDS:
            entries.extend(e.to_dict() for e in self.list_all(identity, kind))
        if not entries:
            return None
        return merkle(entries)

    def get_sync_status(self, identity: str) -> dict:
        state = self._load_state(identity)
        counts = self.pending_counts(identity)
        return {
            "pending_count": sum(counts[kind] for kind in REPLAY_QUEUE_KINDS),
            "pending_by_kind": counts,
            "last_sync_time": state.get("last_sync_time"),
            "last_sync_batch_id": state.get("last_sync_batch_id"),
            "local_merkle_root": self.merkle_root(identity),
            "local_sequence_id": state.get("local_sequence_id", 0),
        }
