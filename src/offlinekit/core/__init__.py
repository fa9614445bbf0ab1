"""Core subpackage for offlinekit primitives.

Exports all from receipt.py, errors.py, schemas.py and the constants
callers need.
"""
from .receipt import dual_hash, emit_receipt, merkle, utc_now, StopRule
from .errors import (
    OfflineKitError,
    Unavailable,
    ValidationFailed,
    NotFound,
    StorageCorrupt,
    NotAuthenticated,
)
from .schemas import EntityType, Operation, Record, QueueEntry, QueueKey
from .constants import (
    QUEUE_OFFLINE_MUTATIONS,
    QUEUE_PENDING_UPDATES,
    QUEUE_PENDING_DELETIONS,
    QUEUE_AUTO_SAVED_MIRROR,
    QUEUE_KINDS,
    REPLAY_QUEUE_KINDS,
)

__all__ = [
    # Receipt primitives
    "dual_hash",
    "emit_receipt",
    "merkle",
    "utc_now",
    "StopRule",
    # Errors
    "OfflineKitError",
    "Unavailable",
    "ValidationFailed",
    "NotFound",
    "StorageCorrupt",
    "NotAuthenticated",
    # Types
    "EntityType",
    "Operation",
    "Record",
    "QueueEntry",
    "QueueKey",
    # Queue kinds
    "QUEUE_OFFLINE_MUTATIONS",
    "QUEUE_PENDING_UPDATES",
    "QUEUE_PENDING_DELETIONS",
    "QUEUE_AUTO_SAVED_MIRROR",
    "QUEUE_KINDS",
    "REPLAY_QUEUE_KINDS",
]
