"""Merge remote query results with queued creations.

Read paths:
    - ONLINE: remote records in remote order, then queued creates
    - DEGRADED: queued creates, then mirror copies not already listed

No deduplication happens between a queued create and the remote record
it becomes once synced. That window closes at the end of the sync pass.
"""
import logging

from offlinekit.core.constants import QUEUE_AUTO_SAVED_MIRROR, QUEUE_OFFLINE_MUTATIONS
from offlinekit.core.errors import Unavailable
from offlinekit.core.schemas import EntityType, Operation, Record
from offlinekit.remote.base import RemoteStore, matches

from .queue import PendingQueue

logger = logging.getLogger("offlinekit.merge")


class ReadMerger:
    """Unifies remote query results with locally queued creations."""

    def __init__(self, remote: RemoteStore, queue: PendingQueue):
        self.remote = remote
        self.queue = queue

    def queued_records(
        self,
        identity: str,
        entity_type: EntityType,
        queue_kind: str,
        filter: dict | None = None,
    ) -> list[Record]:
        """Queued CREATE entries of one kind as transient records, in enqueue order."""
        return [
            entry.to_record()
            for entry in self.queue.list_all(identity, queue_kind, entity_type)
            if entry.operation == Operation.CREATE and matches(entry.payload, filter)
        ]

    async def read(
        self,
        identity: str,
        entity_type: EntityType,
        filter: dict | None = None,
    ) -> list[Record]:
        """Records visible to one identity.

        Args:
            identity: Identity whose queue is folded in
            entity_type: Collection to read
            filter: Field-equality filter applied remotely and to queued records

        Returns:
            Remote records followed by queued records; queued records only
            when the remote store is unavailable
        """
        try:
            remote_records = await self.remote.query(entity_type, filter)
        except Unavailable as e:
            logger.info(f"Remote query for {entity_type.value} unavailable, serving local view: {e}")
            pending = self.queued_records(identity, entity_type, QUEUE_OFFLINE_MUTATIONS, filter)
            return self._degraded_view(identity, entity_type, filter, pending)

        pending = self.queued_records(identity, entity_type, QUEUE_OFFLINE_MUTATIONS, filter)
        return remote_records + pending

    def _degraded_view(
        self,
        identity: str,
        entity_type: EntityType,
        filter: dict | None,
        pending: list[Record],
    ) -> list[Record]:
        seen = {record.id for record in pending}
        records = list(pending)

        for record in self.queued_records(identity, entity_type, QUEUE_AUTO_SAVED_MIRROR, filter):
            if record.id in seen:
                continue
            seen.add(record.id)
            records.append(record)

        return records
