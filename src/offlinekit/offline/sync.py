"""Sync coordinator for replaying the local queue against the remote store.

Handles the transition from offline to online state for one identity.

Sync process:
1. Snapshot every replayable queue kind (IDLE -> DRAINING)
2. Replay creates, then updates, then deletes, in snapshot order
3. Record a tagged result per entry; a failure never stops the pass
4. Discard the snapshot from the queue (DRAINING -> COMMITTED)
5. Emit the sync receipt and return the report (COMMITTED -> IDLE)

By default a failed replay is discarded with the rest of the snapshot and
is not retried. FEATURE_RETAIN_FAILED_REPLAYS keeps `unavailable`
failures queued for the next pass instead.
"""
import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum

from offlinekit.config import features
from offlinekit.core.constants import (
    REASON_ERROR,
    REASON_NOT_FOUND,
    REASON_UNAVAILABLE,
    REASON_VALIDATION_FAILED,
    REPLAY_QUEUE_KINDS,
)
from offlinekit.core.errors import NotFound, Unavailable, ValidationFailed
from offlinekit.core.receipt import emit_receipt, utc_now
from offlinekit.core.schemas import EntityType, Operation, QueueEntry
from offlinekit.remote.base import RemoteStore

from .queue import PendingQueue, identity_digest

logger = logging.getLogger("offlinekit.sync")


class SyncState(str, Enum):
    IDLE = "IDLE"
    DRAINING = "DRAINING"
    COMMITTED = "COMMITTED"


@dataclass
class ReplayResult:
    """Outcome of replaying one queue entry."""
    entry_id: str
    queue_kind: str
    entity_type: str
    operation: str
    entity_id: str
    status: str  # "succeeded" | "failed"
    reason: str | None = None
    remote_id: str | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == "succeeded"

    def to_dict(self) -> dict:
        return {
            "entry_id": self.entry_id,
            "queue_kind": self.queue_kind,
            "entity_type": self.entity_type,
            "operation": self.operation,
            "entity_id": self.entity_id,
            "status": self.status,
            "reason": self.reason,
            "remote_id": self.remote_id,
            "error": self.error,
        }


@dataclass
class SyncReport:
    """Summary of one sync pass."""
    batch_id: str
    started_at: str
    finished_at: str | None = None
    results: list[ReplayResult] = field(default_factory=list)
    retained: int = 0

    @property
    def attempted(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.succeeded)

    @property
    def failed(self) -> int:
        return self.attempted - self.succeeded

    @property
    def failures(self) -> list[ReplayResult]:
        return [r for r in self.results if not r.succeeded]

    def to_dict(self) -> dict:
        return {
            "batch_id": self.batch_id,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "attempted": self.attempted,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "retained": self.retained,
            "results": [r.to_dict() for r in self.results],
        }


Snapshot = dict[tuple[str, EntityType], list[QueueEntry]]


class SyncCoordinator:
    """Replays queued mutations once connectivity resumes.

    One pass at a time per coordinator; a second caller waits for the
    running pass and then drains whatever is left.
    """

    def __init__(self, remote: RemoteStore, queue: PendingQueue):
        self.remote = remote
        self.queue = queue
        self.state = SyncState.IDLE
        self.last_report: SyncReport | None = None
        self._lock = asyncio.Lock()

    def snapshot(self, identity: str) -> Snapshot:
        """Current entries of every replayable kind, in drain order."""
        snapshot = {}
        for kind in REPLAY_QUEUE_KINDS:
            for entity_type in EntityType:
                entries = self.queue.list_all(identity, kind, entity_type)
                if entries:
                    snapshot[(kind, entity_type)] = entries
        return snapshot

    async def sync(self, identity: str) -> SyncReport:
        """Drain and commit the queue of one identity.

        Args:
            identity: Identity whose queue is replayed

        Returns:
            SyncReport with one ReplayResult per attempted entry
        """
        async with self._lock:
            report = SyncReport(batch_id=str(uuid.uuid4()), started_at=utc_now())
            try:
                self.state = SyncState.DRAINING
                generation = self.queue.generation(identity)
                snapshot = self.snapshot(identity)

                id_map: dict[str, str] = {}
                for (kind, _entity_type), entries in snapshot.items():
                    for entry in entries:
                        report.results.append(await self._replay(kind, entry, id_map))

                self.state = SyncState.COMMITTED
                report.finished_at = utc_now()
                if self.queue.generation(identity) != generation:
                    # Scope purged mid-pass; nothing left to commit or stamp
                    logger.info("Scope purged during sync, skipping commit")
                else:
                    report.retained = self._commit(identity, snapshot, report)
                    self.queue.mark_synced(identity, report.batch_id)
            finally:
                self.state = SyncState.IDLE

            emit_receipt("offline_sync", {
                "tenant_id": identity_digest(identity),
                "batch_id": report.batch_id,
                "attempted": report.attempted,
                "succeeded": report.succeeded,
                "failed": report.failed,
                "retained": report.retained,
                "sync_timestamp": report.finished_at,
            })

            self.last_report = report
            return report

    async def _replay(self, queue_kind: str, entry: QueueEntry, id_map: dict[str, str]) -> ReplayResult:
        """Attempt one entry against the remote store."""
        target_id = entry.entity_id
        if features.FEATURE_TEMP_ID_REMAP_ENABLED and entry.operation != Operation.CREATE:
            target_id = id_map.get(target_id, target_id)

        result = ReplayResult(
            entry_id=entry.entry_id,
            queue_kind=queue_kind,
            entity_type=entry.entity_type.value,
            operation=entry.operation.value,
            entity_id=target_id,
            status="succeeded",
        )

        try:
            if entry.operation == Operation.CREATE:
                record = await self.remote.create(entry.entity_type, entry.payload)
                id_map[entry.entity_id] = record.id
                result.remote_id = record.id
            elif entry.operation == Operation.UPDATE:
                await self.remote.update(entry.entity_type, target_id, entry.payload)
            else:
                await self.remote.delete(entry.entity_type, target_id)
        except Unavailable as e:
            self._fail(result, REASON_UNAVAILABLE, e)
        except NotFound as e:
            self._fail(result, REASON_NOT_FOUND, e)
        except ValidationFailed as e:
            self._fail(result, REASON_VALIDATION_FAILED, e)
        except Exception as e:
            logger.exception(f"Unexpected error replaying {entry.entry_id}")
            self._fail(result, REASON_ERROR, e)

        return result

    @staticmethod
    def _fail(result: ReplayResult, reason: str, error: Exception):
        result.status = "failed"
        result.reason = reason
        result.error = str(error)
        logger.warning(
            f"Failed to replay {result.operation} {result.entity_type}/{result.entity_id}: "
            f"{reason} ({error})"
        )

    def _commit(self, identity: str, snapshot: Snapshot, report: SyncReport) -> int:
        """Remove drained entries from the queue.

        Returns:
            Number of snapshot entries left queued for the next pass
        """
        retry_ids = set()
        if features.FEATURE_RETAIN_FAILED_REPLAYS:
            retry_ids = {
                r.entry_id for r in report.results
                if not r.succeeded and r.reason == REASON_UNAVAILABLE
            }

        retained = 0
        for (kind, entity_type), entries in snapshot.items():
            done = {e.entry_id for e in entries if e.entry_id not in retry_ids}
            retained += len(entries) - len(done)
            self.queue.discard(identity, kind, entity_type, done)

        return retained
