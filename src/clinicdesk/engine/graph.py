"""
Record Graph

Normalized, mutable intake state made of four blocks:
- Facility (hospital the record is filed under)
- Subject (patient)
- Companion (spouse or guardian)
- Clinical (workflow-specific billing or assessment fields)

Every mutation runs one fixed pipeline, merge -> mirror -> derive ->
validate, against staged copies that replace the live blocks only once the
whole pipeline succeeded. Readers never see derived fields that are stale
relative to their inputs.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Iterable, Mapping, Protocol

import structlog

from clinicdesk import derived
from clinicdesk.engine.validation import GateReport, ValidationGate
from clinicdesk.exceptions import DerivedFieldError, LockedFieldError, UnknownFieldError
from clinicdesk.models.core import Block, Companion, EntityId, Facility, IntakeBlock, Subject

logger = structlog.get_logger(__name__)

FieldRef = tuple[Block, str]
Listener = Callable[["GraphSnapshot"], None]
# Computes (phone_valid, email_valid) from staged blocks
ContactValidity = Callable[[Mapping[Block, IntakeBlock]], tuple[bool, bool]]

_KEEP = object()


class PatchOrigin(str, Enum):
    """Who is writing to the graph. Only USER writes are subject to locks."""
    USER = "user"
    RESOLUTION = "resolution"
    SYSTEM = "system"


class ChargeSource(Protocol):
    def charge(self, codes: Iterable[str]) -> Decimal: ...


@dataclass
class GraphTemplate:
    """Workflow-specific shape of an empty graph."""
    clinical_model: type[IntakeBlock]
    subject_defaults: dict[str, Any] = field(default_factory=dict)
    companion_defaults: dict[str, Any] = field(default_factory=dict)
    clinical_defaults: Callable[[date], dict[str, Any]] | None = None
    # source field -> target field, written together in one patch
    mirrors: dict[FieldRef, FieldRef] = field(default_factory=dict)

    def empty_blocks(self, today: date) -> dict[Block, IntakeBlock]:
        clinical = self.clinical_defaults(today) if self.clinical_defaults else {}
        return {
            Block.FACILITY: Facility(),
            Block.SUBJECT: Subject(**self.subject_defaults),
            Block.COMPANION: Companion(**self.companion_defaults),
            Block.CLINICAL: self.clinical_model(**clinical),
        }


@dataclass(frozen=True)
class GraphSnapshot:
    """Point-in-time copy of a record graph."""
    facility: Facility
    subject: Subject
    companion: Companion
    clinical: IntakeBlock
    phone_valid: bool = True
    email_valid: bool = True
    record_id: EntityId | None = None
    revision: int = 0

    def block(self, block: Block | str) -> IntakeBlock:
        return getattr(self, Block(block).value)

    def value(self, path: str) -> Any:
        """Read a field by dotted path, e.g. "subject.given_name"."""
        block_name, _, field_name = path.partition(".")
        return getattr(self.block(block_name), field_name, None)

    @property
    def is_edit(self) -> bool:
        return self.record_id is not None


# =============================================================================
# Derivations
# =============================================================================

@dataclass(frozen=True)
class _DeriveContext:
    today: date
    catalog: ChargeSource | None


@dataclass(frozen=True)
class Derivation:
    """
    One derived field and the fields it depends on.

    `on_set_only` derivations run only when the target itself was written
    in the current patch (clamp-at-set-time). `system_override` lets a
    SYSTEM patch supply the target verbatim, as hydration from a stored
    record does.
    """
    target: FieldRef
    depends_on: frozenset[FieldRef]
    compute: Callable[[dict[Block, IntakeBlock], _DeriveContext], Any]
    on_set_only: bool = False
    system_override: bool = False


def _full_name(blocks, ctx):
    subject = blocks[Block.SUBJECT]
    parts = (subject.given_name.strip(), subject.family_name.strip())
    return " ".join(part for part in parts if part)


def _age_of(block: Block):
    def compute(blocks, ctx):
        birth_date = blocks[block].birth_date
        if birth_date is None:
            # Keep the explicit fallback age
            return _KEEP
        return derived.age(birth_date, ctx.today)
    return compute


def _bmi(blocks, ctx):
    clinical = blocks[Block.CLINICAL]
    return derived.bmi(clinical.height_cm, clinical.weight_kg)


def _line_item_charge(blocks, ctx):
    if ctx.catalog is None:
        return _KEEP
    return ctx.catalog.charge(blocks[Block.CLINICAL].selected_codes)


def _discount_amount(blocks, ctx):
    clinical = blocks[Block.CLINICAL]
    return derived.discount_amount(
        clinical.line_item_charge, clinical.discount_mode, clinical.discount_input
    )


def _grand_total(blocks, ctx):
    clinical = blocks[Block.CLINICAL]
    return derived.grand_total(clinical.line_item_charge, clinical.discount_amount)


def _paid_amount(blocks, ctx):
    clinical = blocks[Block.CLINICAL]
    return derived.clamp_paid_amount(clinical.paid_amount, clinical.grand_total)


def _due_amount(blocks, ctx):
    clinical = blocks[Block.CLINICAL]
    return derived.due_amount(clinical.grand_total, clinical.paid_amount)


def _refs(block: Block, *names: str) -> frozenset[FieldRef]:
    return frozenset((block, name) for name in names)


# Topological order: every derivation runs after the derivations it reads
DERIVATIONS: list[Derivation] = [
    Derivation((Block.SUBJECT, "full_name"), _refs(Block.SUBJECT, "given_name", "family_name"), _full_name),
    Derivation((Block.SUBJECT, "age"), _refs(Block.SUBJECT, "birth_date"), _age_of(Block.SUBJECT)),
    Derivation((Block.COMPANION, "age"), _refs(Block.COMPANION, "birth_date"), _age_of(Block.COMPANION)),
    Derivation((Block.CLINICAL, "bmi"), _refs(Block.CLINICAL, "height_cm", "weight_kg"), _bmi),
    Derivation(
        (Block.CLINICAL, "line_item_charge"),
        _refs(Block.CLINICAL, "selected_codes"),
        _line_item_charge,
        system_override=True,
    ),
    Derivation(
        (Block.CLINICAL, "discount_amount"),
        _refs(Block.CLINICAL, "line_item_charge", "discount_mode", "discount_input"),
        _discount_amount,
    ),
    Derivation(
        (Block.CLINICAL, "grand_total"),
        _refs(Block.CLINICAL, "line_item_charge", "discount_amount"),
        _grand_total,
    ),
    Derivation((Block.CLINICAL, "paid_amount"), frozenset(), _paid_amount, on_set_only=True),
    Derivation(
        (Block.CLINICAL, "due_amount"),
        _refs(Block.CLINICAL, "grand_total", "paid_amount"),
        _due_amount,
    ),
]


# =============================================================================
# Graph
# =============================================================================

class RecordGraph:
    """
    Intake record state owned by one add/edit workflow.

    Usage:
        graph = RecordGraph(template, gate=gate, catalog=LineItemCatalog.default())
        graph.patch(Block.CLINICAL, {"selected_codes": ["HB", "CBC"]})
        graph.patch(Block.CLINICAL, {"discount_input": 10})
        graph.snapshot().clinical.grand_total  # Decimal("360")
        graph.submittable
    """

    def __init__(
        self,
        template: GraphTemplate,
        gate: ValidationGate | None = None,
        catalog: ChargeSource | None = None,
        today: Callable[[], date] | None = None,
        validity: ContactValidity | None = None,
    ):
        self.template = template
        self.gate = gate or ValidationGate()
        self.catalog = catalog
        self._today = today or date.today
        self.validity = validity
        self._listeners: list[Listener] = []

        self._blocks: dict[Block, IntakeBlock] = {}
        self._phone_valid = True
        self._email_valid = True
        self._record_id: EntityId | None = None
        self._revision = 0
        self._report = GateReport(submittable=False)

        self._apply(
            self.template.empty_blocks(self._today()),
            {},
            PatchOrigin.SYSTEM,
            phone_valid=True,
            email_valid=True,
            record_id=None,
        )

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def patch(
        self,
        block: Block | str,
        fields: Mapping[str, Any],
        origin: PatchOrigin = PatchOrigin.USER,
    ) -> GraphSnapshot:
        """Merge fields into one block, re-derive and re-validate atomically."""
        return self.patch_many({Block(block): fields}, origin=origin)

    def patch_many(
        self,
        changes: Mapping[Block | str, Mapping[str, Any]],
        origin: PatchOrigin = PatchOrigin.USER,
        phone_valid: bool | None = None,
        email_valid: bool | None = None,
    ) -> GraphSnapshot:
        """Apply writes to several blocks as one observable step."""
        snapshot = self._apply(
            self._blocks,
            changes,
            origin,
            phone_valid=self._phone_valid if phone_valid is None else phone_valid,
            email_valid=self._email_valid if email_valid is None else email_valid,
            record_id=self._record_id,
        )
        logger.debug(
            "graph_patched",
            blocks=[Block(b).value for b in changes],
            origin=origin.value,
            revision=self._revision,
            submittable=self._report.submittable,
        )
        return snapshot

    def set_validity(self, phone_valid: bool | None = None, email_valid: bool | None = None) -> GraphSnapshot:
        return self.patch_many({}, origin=PatchOrigin.SYSTEM, phone_valid=phone_valid, email_valid=email_valid)

    def hydrate(
        self,
        blocks: Mapping[Block | str, Mapping[str, Any]],
        record_id: EntityId | None = None,
        phone_valid: bool = True,
        email_valid: bool = True,
    ) -> GraphSnapshot:
        """
        Replace the whole graph with a stored record.

        The supplied blocks are expected to carry the origin markers of the
        stored facility and subject, which locks their fields.
        """
        snapshot = self._apply(
            self.template.empty_blocks(self._today()),
            blocks,
            PatchOrigin.SYSTEM,
            phone_valid=phone_valid,
            email_valid=email_valid,
            record_id=record_id,
        )
        logger.info("graph_hydrated", record_id=record_id, revision=self._revision)
        return snapshot

    def reset(self) -> GraphSnapshot:
        """Replace the graph with the empty Draft template."""
        snapshot = self._apply(
            self.template.empty_blocks(self._today()),
            {},
            PatchOrigin.SYSTEM,
            phone_valid=True,
            email_valid=True,
            record_id=None,
        )
        logger.info("graph_reset", revision=self._revision)
        return snapshot

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def snapshot(self) -> GraphSnapshot:
        return GraphSnapshot(
            facility=self._blocks[Block.FACILITY].model_copy(deep=True),
            subject=self._blocks[Block.SUBJECT].model_copy(deep=True),
            companion=self._blocks[Block.COMPANION].model_copy(deep=True),
            clinical=self._blocks[Block.CLINICAL].model_copy(deep=True),
            phone_valid=self._phone_valid,
            email_valid=self._email_valid,
            record_id=self._record_id,
            revision=self._revision,
        )

    def block(self, block: Block | str) -> IntakeBlock:
        return self._blocks[Block(block)].model_copy(deep=True)

    def value(self, path: str) -> Any:
        block_name, _, field_name = path.partition(".")
        return getattr(self._blocks[Block(block_name)], field_name, None)

    @property
    def report(self) -> GateReport:
        return self._report

    @property
    def submittable(self) -> bool:
        return self._report.submittable

    @property
    def revision(self) -> int:
        return self._revision

    @property
    def record_id(self) -> EntityId | None:
        return self._record_id

    def is_bound(self, block: Block | str) -> bool:
        return is_block_bound(self._blocks, Block(block))

    def is_locked(self, block: Block | str, field_name: str) -> bool:
        """Whether a user edit of this field would be rejected right now."""
        block = Block(block)
        model = self._blocks[block]
        if field_name == "bound_entity_id" or field_name in model.derived_fields:
            return True
        return field_name in model.lockable_fields and is_block_bound(self._blocks, block)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call listener with a snapshot after every committed mutation."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # -------------------------------------------------------------------------
    # Pipeline
    # -------------------------------------------------------------------------

    def _apply(
        self,
        base: Mapping[Block, IntakeBlock],
        changes: Mapping[Block | str, Mapping[str, Any]],
        origin: PatchOrigin,
        phone_valid: bool,
        email_valid: bool,
        record_id: EntityId | None,
    ) -> GraphSnapshot:
        merged = {block: model.model_dump() for block, model in base.items()}
        explicit: set[FieldRef] = set()

        # Merge
        for raw_block, fields in changes.items():
            block = Block(raw_block)
            model_cls = type(base[block])
            for name, value in fields.items():
                if name not in model_cls.model_fields:
                    raise UnknownFieldError(
                        f"{block.value} has no field '{name}'",
                        detail={"block": block.value, "field": name},
                    )
                merged[block][name] = value
                explicit.add((block, name))

        if origin is not PatchOrigin.SYSTEM:
            _check_permissions(base, merged, explicit, origin)

        # Mirror
        for source, target in self.template.mirrors.items():
            if source in explicit:
                merged[target[0]][target[1]] = merged[source[0]][source[1]]
                explicit.add(target)

        staged = {block: type(base[block]).model_validate(data) for block, data in merged.items()}
        changed = {
            (block, name)
            for block, model in staged.items()
            for name in type(model).model_fields
            if getattr(model, name) != getattr(base[block], name)
        }

        # Derive
        ctx = _DeriveContext(today=self._today(), catalog=self.catalog)
        for derivation in DERIVATIONS:
            block, name = derivation.target
            model = staged[block]
            if name not in type(model).model_fields:
                continue
            if derivation.on_set_only:
                if derivation.target not in explicit:
                    continue
            elif not derivation.depends_on & changed:
                continue
            elif derivation.system_override and origin is PatchOrigin.SYSTEM and derivation.target in explicit:
                continue

            value = derivation.compute(staged, ctx)
            if value is _KEEP:
                continue
            if value != getattr(model, name):
                setattr(model, name, value)
                changed.add(derivation.target)

        # Validate and commit
        if self.validity is not None:
            phone_valid, email_valid = self.validity(staged)
        committed = GraphSnapshot(
            facility=staged[Block.FACILITY],
            subject=staged[Block.SUBJECT],
            companion=staged[Block.COMPANION],
            clinical=staged[Block.CLINICAL],
            phone_valid=phone_valid,
            email_valid=email_valid,
            record_id=record_id,
            revision=self._revision + 1,
        )
        report = self.gate.evaluate(committed)

        self._blocks = staged
        self._phone_valid = phone_valid
        self._email_valid = email_valid
        self._record_id = record_id
        self._revision += 1
        self._report = report

        snapshot = self.snapshot()
        for listener in list(self._listeners):
            listener(snapshot)
        return snapshot


def is_block_bound(blocks: Mapping[Block, IntakeBlock], block: Block) -> bool:
    """Whether a block carries, or inherits, a stored entity's origin marker."""
    if block is Block.FACILITY:
        return blocks[Block.FACILITY].bound_entity_id is not None
    if block in (Block.SUBJECT, Block.COMPANION):
        return blocks[Block.SUBJECT].bound_entity_id is not None
    return False


def _check_permissions(
    base: Mapping[Block, IntakeBlock],
    merged: Mapping[Block, dict[str, Any]],
    explicit: set[FieldRef],
    origin: PatchOrigin,
) -> None:
    for block, name in explicit:
        model = base[block]

        if name in model.derived_fields:
            # Age is settable only as a fallback when there is no birth date
            fallback_age = name == "age" and derived.parse_date(merged[block].get("birth_date")) is None
            if not fallback_age:
                raise DerivedFieldError(
                    f"{block.value}.{name} is derived and cannot be set",
                    detail={"block": block.value, "field": name},
                )

        if origin is not PatchOrigin.USER:
            continue

        if name == "bound_entity_id":
            raise LockedFieldError(
                f"{block.value}.bound_entity_id is managed by entity resolution",
                detail={"block": block.value, "field": name},
            )
        if name in model.lockable_fields and is_block_bound(base, block):
            raise LockedFieldError(
                f"{block.value}.{name} is locked while the record is bound",
                detail={"block": block.value, "field": name},
            )
