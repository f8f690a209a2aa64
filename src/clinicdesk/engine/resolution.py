"""
Entity Resolution

Turns free-text search input plus entity index responses into either a
Bound block (a stored entity was selected, its fields are locked) or a
Draft block (nothing selected, everything editable).

Lookups run as background tasks on the running event loop. Only the
response to the most recently issued query is applied; anything older is
discarded on arrival. Lookup failures never propagate: they degrade to an
empty candidate list plus a `lookup_failed` notice.
"""

from abc import ABC, abstractmethod
import asyncio
from typing import Any, Callable

import structlog

from clinicdesk.config import get_settings
from clinicdesk.derived import parse_date
from clinicdesk.engine.graph import GraphTemplate, PatchOrigin, RecordGraph
from clinicdesk.index.base import EntityIndex
from clinicdesk.models.core import Block, Companion, Facility, Subject
from clinicdesk.models.resolution import (
    CandidateEntity,
    Notice,
    NoticeKind,
    ResolutionMode,
    ResolutionState,
)

logger = structlog.get_logger(__name__)

Changes = dict[Block, dict[str, Any]]

COMPANION_PREFIX = "guardian_"


# =============================================================================
# Binders
# =============================================================================

class Binder(ABC):
    """Maps resolution events for one searchable block to graph writes."""

    block: Block
    kind: str

    @abstractmethod
    def bind_changes(self, candidate: CandidateEntity) -> Changes:
        """Writes that copy a stored entity into the graph and set its origin marker."""

    @abstractmethod
    def typing_changes(self, query: str, bound: bool) -> Changes:
        """Writes for new search text. Always clears the origin marker."""

    @abstractmethod
    def create_new_changes(self, query: str) -> Changes:
        pass

    @abstractmethod
    def clear_changes(self) -> Changes:
        pass


def _blank(model_cls, defaults: dict[str, Any] | None = None) -> dict[str, Any]:
    """Empty values for every settable field of a block."""
    data = model_cls(**(defaults or {})).model_dump()
    for name in model_cls.derived_fields - {"age"}:
        data.pop(name, None)
    return data


def _pick(fields: dict[str, Any], names, prefix: str = "") -> dict[str, Any]:
    return {name: fields[prefix + name] for name in names if prefix + name in fields}


def _with_age(values: dict[str, Any], fields: dict[str, Any], prefix: str = "") -> dict[str, Any]:
    # Stored age is only a fallback; a birth date always wins
    if parse_date(values.get("birth_date")) is None:
        values["age"] = fields.get(prefix + "age")
    else:
        values.pop("age", None)
    return values


class FacilityBinder(Binder):
    """
    Facility search.

    Typing after a bind only clears the origin marker and keeps the other
    facility fields; "add new" keeps the typed name and blanks the rest.
    """

    block = Block.FACILITY
    kind = "facility"

    def bind_changes(self, candidate: CandidateEntity) -> Changes:
        values = _blank(Facility)
        values.update(_pick(candidate.fields, Facility.lockable_fields))
        if not values.get("name"):
            values["name"] = candidate.label
        values["bound_entity_id"] = candidate.id
        return {Block.FACILITY: values}

    def typing_changes(self, query: str, bound: bool) -> Changes:
        return {Block.FACILITY: {"bound_entity_id": None, "name": query}}

    def create_new_changes(self, query: str) -> Changes:
        values = _blank(Facility)
        values["name"] = query
        return {Block.FACILITY: values}

    def clear_changes(self) -> Changes:
        return {Block.FACILITY: _blank(Facility)}


class SubjectBinder(Binder):
    """
    Patient search.

    The query is the patient's name, split on the first space into given and
    family name. Typing after a bind describes a new person: inherited
    subject fields and the whole companion block return to their defaults.
    """

    block = Block.SUBJECT
    kind = "subject"

    def __init__(self, template: GraphTemplate):
        self.template = template

    def _subject_defaults(self) -> dict[str, Any]:
        return _blank(Subject, self.template.subject_defaults)

    def _companion_defaults(self) -> dict[str, Any]:
        return _blank(Companion, self.template.companion_defaults)

    @staticmethod
    def split_name(query: str) -> tuple[str, str]:
        given, _, family = query.strip().partition(" ")
        return given, family.strip()

    def bind_changes(self, candidate: CandidateEntity) -> Changes:
        fields = candidate.fields

        subject = self._subject_defaults()
        subject.update(_pick(fields, Subject.lockable_fields))
        subject = _with_age(subject, fields)
        if not subject.get("given_name") and candidate.label:
            subject["given_name"], subject["family_name"] = self.split_name(candidate.label)
        subject["bound_entity_id"] = candidate.id

        companion = self._companion_defaults()
        companion.update(_pick(fields, Companion.lockable_fields, COMPANION_PREFIX))
        companion = _with_age(companion, fields, COMPANION_PREFIX)
        if "name" not in companion or not companion["name"]:
            companion["name"] = subject.get("guardian_name", "")

        return {Block.SUBJECT: subject, Block.COMPANION: companion}

    def typing_changes(self, query: str, bound: bool) -> Changes:
        given, family = self.split_name(query)
        if not bound:
            return {Block.SUBJECT: {"bound_entity_id": None, "given_name": given, "family_name": family}}

        subject = self._subject_defaults()
        subject.update(given_name=given, family_name=family, bound_entity_id=None)
        return {Block.SUBJECT: subject, Block.COMPANION: self._companion_defaults()}

    def create_new_changes(self, query: str) -> Changes:
        return self.typing_changes(query, bound=True)

    def clear_changes(self) -> Changes:
        return {Block.SUBJECT: self._subject_defaults(), Block.COMPANION: self._companion_defaults()}


# =============================================================================
# Controller
# =============================================================================

class EntityResolutionController:
    """
    Search-query lifecycle for one searchable block.

    Usage:
        controller = EntityResolutionController(graph, index, SubjectBinder(template))
        controller.on_query_changed("Jane")      # returns immediately
        await controller.wait_idle()
        controller.on_candidate_selected(controller.state.candidates[0])
    """

    def __init__(
        self,
        graph: RecordGraph,
        index: EntityIndex,
        binder: Binder,
        min_query_length: int | None = None,
        limit: int | None = None,
        on_notice: Callable[[Notice], None] | None = None,
    ):
        settings = get_settings().engine
        self.graph = graph
        self.index = index
        self.binder = binder
        self.min_query_length = settings.min_query_length if min_query_length is None else min_query_length
        self.limit = settings.search_limit if limit is None else limit
        self.on_notice = on_notice
        self.last_notice: Notice | None = None

        self._state = ResolutionState()
        self._seq = 0
        self._tasks: set[asyncio.Task] = set()

    @property
    def state(self) -> ResolutionState:
        return self._state

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def on_query_changed(self, text: str) -> None:
        """
        Record new search text and start a lookup without awaiting it.

        Must be called from within a running event loop.
        """
        bound = self._state.mode is ResolutionMode.BOUND or self.graph.is_bound(self.binder.block)
        self.graph.patch_many(self.binder.typing_changes(text, bound), origin=PatchOrigin.RESOLUTION)
        if bound:
            logger.info("entity_unbound", block=self.binder.block.value)

        self._seq += 1
        seq = self._seq

        if len(text.strip()) < self.min_query_length:
            self._state = ResolutionState(mode=ResolutionMode.DRAFT, query=text)
            return

        self._state = ResolutionState(
            mode=ResolutionMode.DRAFT,
            query=text,
            candidates=self._state.candidates,
        )
        task = asyncio.get_running_loop().create_task(self._lookup(seq, text))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def on_candidate_selected(self, candidate: CandidateEntity) -> None:
        """Bind the block to a stored entity and lock its inherited fields."""
        self._seq += 1  # Any lookup still in flight is now stale
        self.graph.patch_many(self.binder.bind_changes(candidate), origin=PatchOrigin.RESOLUTION)
        self._state = ResolutionState(
            mode=ResolutionMode.BOUND,
            query=candidate.label or self._state.query,
            candidates=[],
            selected=candidate,
        )
        logger.info("entity_bound", block=self.binder.block.value, entity_id=candidate.id)

    def on_create_new(self) -> None:
        """Keep the typed text as a new entity and stay in Draft."""
        self._seq += 1
        self.graph.patch_many(self.binder.create_new_changes(self._state.query), origin=PatchOrigin.RESOLUTION)
        self._state = ResolutionState(mode=ResolutionMode.DRAFT, query=self._state.query)

    def on_clear(self) -> None:
        self._seq += 1
        self.graph.patch_many(self.binder.clear_changes(), origin=PatchOrigin.RESOLUTION)
        self._state = ResolutionState()

    def restore(self, query: str) -> None:
        """Align resolution state with a freshly hydrated or reset graph."""
        self._seq += 1
        mode = ResolutionMode.BOUND if self.graph.is_bound(self.binder.block) else ResolutionMode.DRAFT
        self._state = ResolutionState(mode=mode, query=query)

    async def wait_idle(self) -> None:
        """Wait until every lookup issued so far has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def cancel_pending(self) -> None:
        self._seq += 1
        for task in list(self._tasks):
            task.cancel()

    async def _lookup(self, seq: int, query: str) -> None:
        try:
            candidates = await self.index.search(query.strip(), self.limit)
        except Exception as e:
            if seq != self._seq:
                logger.debug("stale_lookup_discarded", block=self.binder.block.value, seq=seq, latest=self._seq)
                return
            logger.warning("entity_lookup_failed", block=self.binder.block.value, query=query, error=str(e))
            self._state = ResolutionState(mode=ResolutionMode.DRAFT, query=query)
            self._publish(
                Notice(
                    kind=NoticeKind.LOOKUP_FAILED,
                    message="Search is unavailable right now. You can keep entering a new record.",
                    detail={"error": str(e)},
                )
            )
            return

        if seq != self._seq:
            logger.debug("stale_lookup_discarded", block=self.binder.block.value, seq=seq, latest=self._seq)
            return

        self._state = ResolutionState(
            mode=ResolutionMode.DRAFT,
            query=query,
            candidates=[c for c in candidates if c.kind == self.binder.kind][: self.limit],
        )

    def _publish(self, notice: Notice) -> None:
        self.last_notice = notice
        if self.on_notice:
            self.on_notice(notice)
