"""Remote store contract.

Every implementation raises Unavailable for any network or backend
failure. That is the only error the rest of offlinekit treats as
"go offline for this call".
"""
from abc import ABC, abstractmethod

from offlinekit.core.schemas import EntityType, Record


class RemoteStore(ABC):
    """Async CRUD against the network-backed store."""

    @abstractmethod
    async def create(self, entity_type: EntityType, payload: dict) -> Record:
        """Create a record and return it with its durable id.

        Raises:
            Unavailable, ValidationFailed
        """

    @abstractmethod
    async def update(self, entity_type: EntityType, record_id: str, diff: dict) -> None:
        """Apply a partial diff.

        Raises:
            Unavailable, NotFound, ValidationFailed
        """

    @abstractmethod
    async def delete(self, entity_type: EntityType, record_id: str) -> None:
        """Delete a record.

        Raises:
            Unavailable, NotFound
        """

    @abstractmethod
    async def query(self, entity_type: EntityType, filter: dict | None = None) -> list[Record]:
        """Records matching field-equality filter, in the store's native order.

        Raises:
            Unavailable
        """


def matches(payload: dict, filter: dict | None) -> bool:
    """Field-equality match used by every store and by the read merger."""
    if not filter:
        return True
    return all(payload.get(key) == value for key, value in filter.items())
