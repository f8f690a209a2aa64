"""
Entity Index Interface

Remote record store boundary: search for stored entities, create and
update records.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from clinicdesk.models.core import EntityId
from clinicdesk.models.resolution import CandidateEntity


@dataclass
class PersistResult:
    """Outcome of a create or update call."""
    success: bool
    stored_entity: dict[str, Any] | None = None
    error: str | None = None
    field_errors: dict[str, Any] | None = None

    @property
    def entity_id(self) -> EntityId | None:
        if self.stored_entity:
            return self.stored_entity.get("id")
        return None


class EntityIndex(ABC):
    """
    Abstract entity index.

    `search` may raise EntityIndexError; `create` and `update` report
    failure through PersistResult instead of raising.
    """

    @abstractmethod
    async def search(self, query: str, limit: int) -> list[CandidateEntity]:
        """Return at most `limit` candidates for a partial text query."""
        pass

    @abstractmethod
    async def create(self, record: dict[str, Any]) -> PersistResult:
        pass

    @abstractmethod
    async def update(self, entity_id: EntityId, record: dict[str, Any]) -> PersistResult:
        pass
