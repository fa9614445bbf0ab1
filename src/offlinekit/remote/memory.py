"""In-process remote store.

Stands in for the network-backed store in tests, demos and single-process
deployments. Flip `online` to simulate losing the connection.
"""
import uuid

from offlinekit.core.errors import NotFound, Unavailable, ValidationFailed
from offlinekit.core.receipt import utc_now
from offlinekit.core.schemas import EntityType, Record

from .base import RemoteStore, matches


class MemoryRemoteStore(RemoteStore):
    """Dict-backed RemoteStore.

    Attributes:
        online: When False every call raises Unavailable
        required_fields: Entity type -> fields a create must carry
        calls: (method, entity_type, id) log of every call that reached the store
    """

    def __init__(
        self,
        online: bool = True,
        required_fields: dict[EntityType, list[str]] | None = None,
    ):
        self.online = online
        self.required_fields = required_fields or {}
        self.calls: list[tuple[str, str, str | None]] = []
        self._records: dict[EntityType, dict[str, Record]] = {et: {} for et in EntityType}
        self._fail_next: list[Exception] = []

    def fail_next(self, error: Exception) -> None:
        """Queue an error for the next call, whatever the online switch says."""
        self._fail_next.append(error)

    def _check(self, method: str, entity_type: EntityType, record_id: str | None = None):
        if self._fail_next:
            raise self._fail_next.pop(0)
        if not self.online:
            raise Unavailable(f"Remote store offline ({method} {entity_type.collection})")
        self.calls.append((method, entity_type.value, record_id))

    def _validate(self, entity_type: EntityType, payload: dict):
        if not isinstance(payload, dict):
            raise ValidationFailed("Payload must be a dict", status_code=422)
        missing = [f for f in self.required_fields.get(entity_type, []) if f not in payload]
        if missing:
            raise ValidationFailed(
                f"Missing fields for {entity_type.value}: {', '.join(missing)}",
                status_code=422,
            )

    async def create(self, entity_type: EntityType, payload: dict) -> Record:
        self._check("create", entity_type)
        self._validate(entity_type, payload)

        record = Record(
            id=uuid.uuid4().hex[:20],
            entity_type=entity_type,
            payload=dict(payload),
            created_at=utc_now(),
        )
        self._records[entity_type][record.id] = record
        return record

    async def update(self, entity_type: EntityType, record_id: str, diff: dict) -> None:
        self._check("update", entity_type, record_id)
        if not isinstance(diff, dict):
            raise ValidationFailed("Diff must be a dict", status_code=422)

        record = self._records[entity_type].get(record_id)
        if record is None:
            raise NotFound(f"{entity_type.collection}/{record_id}", status_code=404)
        record.payload.update(diff)

    async def delete(self, entity_type: EntityType, record_id: str) -> None:
        self._check("delete", entity_type, record_id)

        if self._records[entity_type].pop(record_id, None) is None:
            raise NotFound(f"{entity_type.collection}/{record_id}", status_code=404)

    async def query(self, entity_type: EntityType, filter: dict | None = None) -> list[Record]:
        self._check("query", entity_type)

        # Newest first; dict order breaks ties between same-timestamp records
        records = list(self._records[entity_type].values())
        records.reverse()
        records.sort(key=lambda r: r.created_at, reverse=True)
        return [
            Record(r.id, r.entity_type, dict(r.payload), r.created_at)
            for r in records
            if matches(r.payload, filter)
        ]

    def seed(self, entity_type: EntityType, record_id: str, payload: dict) -> Record:
        """Insert a record with a known id, bypassing the online switch."""
        record = Record(id=record_id, entity_type=entity_type, payload=dict(payload), created_at=utc_now())
        self._records[entity_type][record_id] = record
        return record

    def get(self, entity_type: EntityType, record_id: str) -> Record | None:
        """Direct lookup, bypassing the online switch."""
        return self._records[entity_type].get(record_id)

    def count(self, entity_type: EntityType) -> int:
        return len(self._records[entity_type])
