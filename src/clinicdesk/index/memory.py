"""In-memory entity index with simple name/contact scoring."""

from dataclasses import dataclass
from itertools import count
from typing import Any

import structlog

from clinicdesk.index.base import EntityIndex, PersistResult
from clinicdesk.models.core import EntityId
from clinicdesk.models.resolution import CandidateEntity

logger = structlog.get_logger(__name__)


@dataclass
class SearchConfig:
    prefix_weight: float = 0.5
    contains_weight: float = 0.3
    contact_weight: float = 0.4
    min_score: float = 0.3


class InMemoryEntityIndex(EntityIndex):
    """
    Entity index backed by a dict.

    Candidates are scored on label prefix/substring matches and on
    phone/email matches, best first. Submitted records are kept in
    `records` by id; they are not searchable candidates.
    """

    def __init__(self, kind: str, entities: list[CandidateEntity] | None = None, config: SearchConfig | None = None):
        self.kind = kind
        self.config = config or SearchConfig()
        self._entities: dict[EntityId, CandidateEntity] = {}
        self.records: dict[EntityId, dict[str, Any]] = {}
        self._ids = count(1)
        for entity in entities or []:
            self.add(entity)

    def add(self, entity: CandidateEntity) -> EntityId:
        self._entities[entity.id] = entity
        if isinstance(entity.id, int):
            self._ids = count(max(entity.id + 1, next(self._ids)))
        return entity.id

    def get(self, entity_id: EntityId) -> CandidateEntity | None:
        return self._entities.get(entity_id)

    async def search(self, query: str, limit: int) -> list[CandidateEntity]:
        needle = query.strip().lower()
        if not needle:
            return []
        scored = []
        for entity in self._entities.values():
            score = self._calc_score(needle, entity)
            if score >= self.config.min_score:
                scored.append((score, entity))
        scored.sort(key=lambda x: x[0], reverse=True)
        return [entity for _, entity in scored[:limit]]

    async def create(self, record: dict[str, Any]) -> PersistResult:
        entity_id = next(self._ids)
        stored = {**record, "id": entity_id}
        self.records[entity_id] = stored
        logger.info("record_created", kind=self.kind, entity_id=entity_id)
        return PersistResult(success=True, stored_entity=stored)

    async def update(self, entity_id: EntityId, record: dict[str, Any]) -> PersistResult:
        if entity_id not in self.records:
            return PersistResult(success=False, error=f"Record {entity_id} not found")
        stored = {**record, "id": entity_id}
        self.records[entity_id] = stored
        logger.info("record_updated", kind=self.kind, entity_id=entity_id)
        return PersistResult(success=True, stored_entity=stored)

    def _calc_score(self, needle: str, entity: CandidateEntity) -> float:
        score = 0.0
        label = entity.label.lower()
        if label.startswith(needle):
            score += self.config.prefix_weight
        if needle in label:
            score += self.config.contains_weight
        for key in ("phone", "email"):
            value = str(entity.fields.get(key) or "").lower()
            if value and needle in value:
                score += self.config.contact_weight
                break
        return score

