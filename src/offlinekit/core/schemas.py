"""Record and queue entry types.

Types:
    EntityType: Logical collections the dashboard stores
    Operation: CREATE / UPDATE / DELETE tag of a queue entry
    Record: A domain record as seen by callers
    QueueEntry: One pending mutation, immutable once written
    QueueKey: Typed composite storage key (identity, entity type, kind)

Functions:
    validate_entry_dict: Check a decoded queue line before building an entry
"""
import uuid
from dataclasses import dataclass, field
from enum import Enum

from .constants import COLLECTIONS, QUEUE_KINDS
from .errors import StorageCorrupt
from .receipt import StopRule, dual_hash, utc_now


class EntityType(str, Enum):
    """Logical collections, in drain order."""
    CONTENT = "content"
    STUDENT = "student"
    LESSON_PLAN = "lesson_plan"
    ASSESSMENT = "assessment"
    MARK = "mark"
    IMAGE = "image"

    @property
    def collection(self) -> str:
        return COLLECTIONS[self.value]


class Operation(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


REQUIRED_ENTRY_FIELDS = [
    "entry_id", "operation", "entity_type", "entity_id",
    "payload", "enqueued_at", "sequence", "payload_hash",
]


@dataclass
class Record:
    """A domain record.

    origin is "remote" for records served by the remote store and "local"
    for records that only exist in the pending queue.
    """
    id: str
    entity_type: EntityType
    payload: dict
    created_at: str = field(default_factory=utc_now)
    origin: str = "remote"

    @property
    def is_pending(self) -> bool:
        return self.origin == "local"

    def to_dict(self) -> dict:
        """Flatten payload next to the id."""
        return {
            **self.payload,
            "id": self.id,
            "entity_type": self.entity_type.value,
            "created_at": self.created_at,
            "origin": self.origin,
        }


@dataclass(frozen=True)
class QueueKey:
    """Composite storage key. Every queue read and write goes through one."""
    identity: str
    entity_type: EntityType
    queue_kind: str

    def __post_init__(self):
        if not self.identity:
            raise StopRule("QueueKey requires an identity")
        if self.queue_kind not in QUEUE_KINDS:
            raise StopRule(f"Unknown queue kind: {self.queue_kind}")


@dataclass(frozen=True)
class QueueEntry:
    """One pending mutation.

    entity_id is the target id for UPDATE/DELETE and the temporary id for
    CREATE. sequence is assigned by the queue on append.
    """
    operation: Operation
    entity_type: EntityType
    entity_id: str
    payload: dict = field(default_factory=dict)
    enqueued_at: str = field(default_factory=utc_now)
    entry_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    sequence: int = 0
    payload_hash: str = ""

    def __post_init__(self):
        if not self.entity_id:
            raise StopRule(f"{self.operation.value} entry requires an entity_id")
        if self.operation == Operation.DELETE and self.payload:
            raise StopRule("delete entry carries no payload")
        if not self.payload_hash:
            object.__setattr__(self, "payload_hash", dual_hash(self.payload))

    @classmethod
    def create(cls, entity_type: EntityType, temp_id: str, payload: dict) -> "QueueEntry":
        return cls(Operation.CREATE, entity_type, temp_id, dict(payload))

    @classmethod
    def update(cls, entity_type: EntityType, entity_id: str, diff: dict) -> "QueueEntry":
        return cls(Operation.UPDATE, entity_type, entity_id, dict(diff))

    @classmethod
    def delete(cls, entity_type: EntityType, entity_id: str) -> "QueueEntry":
        return cls(Operation.DELETE, entity_type, entity_id)

    def with_sequence(self, sequence: int) -> "QueueEntry":
        """Copy of this entry carrying the queue-assigned sequence."""
        return QueueEntry(
            operation=self.operation,
            entity_type=self.entity_type,
            entity_id=self.entity_id,
            payload=self.payload,
            enqueued_at=self.enqueued_at,
            entry_id=self.entry_id,
            sequence=sequence,
            payload_hash=self.payload_hash,
        )

    def to_record(self) -> Record:
        """Transient record for a queued CREATE."""
        return Record(
            id=self.entity_id,
            entity_type=self.entity_type,
            payload=dict(self.payload),
            created_at=self.enqueued_at,
            origin="local",
        )

    def to_dict(self) -> dict:
        return {
            "entry_id": self.entry_id,
            "operation": self.operation.value,
            "entity_type": self.entity_type.value,
            "entity_id": self.entity_id,
            "payload": self.payload,
            "enqueued_at": self.enqueued_at,
            "sequence": self.sequence,
            "payload_hash": self.payload_hash,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "QueueEntry":
        """Rebuild an entry read back from storage.

        Raises:
            StorageCorrupt: If the line is malformed or its hash does not match
        """
        validate_entry_dict(data)
        try:
            return cls(
                operation=Operation(data["operation"]),
                entity_type=EntityType(data["entity_type"]),
                entity_id=data["entity_id"],
                payload=data["payload"],
                enqueued_at=data["enqueued_at"],
                entry_id=data["entry_id"],
                sequence=data["sequence"],
                payload_hash=data["payload_hash"],
            )
        except (ValueError, StopRule) as e:
            raise StorageCorrupt(f"Invalid queue entry: {e}")


def validate_entry_dict(data: dict) -> bool:
    """Validate a decoded queue line.

    Args:
        data: Dict decoded from one JSONL line

    Returns:
        True if valid

    Raises:
        StorageCorrupt: If a field is missing or the payload hash differs
    """
    if not isinstance(data, dict):
        raise StorageCorrupt("Queue entry must be a dict")

    for name in REQUIRED_ENTRY_FIELDS:
        if name not in data:
            raise StorageCorrupt(f"Missing required field: {name}")

    if not isinstance(data["payload"], dict):
        raise StorageCorrupt("Queue entry payload must be a dict")

    if dual_hash(data["payload"]) != data["payload_hash"]:
        raise StorageCorrupt(f"Payload hash mismatch for entry {data['entry_id']}")

    return True
