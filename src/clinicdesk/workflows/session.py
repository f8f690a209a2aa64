"""
Intake Session

Composition root for one add/edit workflow: owns the record graph, the
entity resolution controllers for facility and subject search, the
validation gate and the field validators, and performs submission.
"""

from datetime import date
from typing import Any, Callable, Iterable, Mapping

import structlog

from clinicdesk.catalog import LineItemCatalog
from clinicdesk.config import get_settings
from clinicdesk.derived import clinic_today
from clinicdesk.engine.graph import GraphSnapshot, RecordGraph, is_block_bound
from clinicdesk.engine.resolution import EntityResolutionController, FacilityBinder, SubjectBinder
from clinicdesk.engine.validation import FieldValidator, GateReport, ValidationGate
from clinicdesk.index.base import EntityIndex, PersistResult
from clinicdesk.models.core import Block, IntakeBlock
from clinicdesk.models.financial import DiscountMode
from clinicdesk.models.resolution import Notice, NoticeKind
from clinicdesk.workflows.base import SubmissionResult, WorkflowDefinition

logger = structlog.get_logger(__name__)

CONTACT_BLOCKS = (Block.FACILITY, Block.SUBJECT, Block.COMPANION)

GENERIC_SUBMIT_ERROR = "Failed to save the record. Please try again."


class IntakeSession:
    """
    One active intake form.

    Usage:
        session = IntakeSession(PATHOLOGY, index, facility_index=hospitals)
        session.open_add()
        session.subject_search.on_query_changed("Jane")
        session.select_line_items(["HB", "CBC"])
        result = await session.submit()
    """

    def __init__(
        self,
        workflow: WorkflowDefinition,
        index: EntityIndex,
        facility_index: EntityIndex | None = None,
        catalog: LineItemCatalog | None = None,
        validator: FieldValidator | None = None,
        on_notice: Callable[[Notice], None] | None = None,
        now: Callable[[], date] | None = None,
        min_query_length: int | None = None,
        search_limit: int | None = None,
    ):
        settings = get_settings().engine
        self.workflow = workflow
        self.index = index
        self.validator = validator or FieldValidator()
        self.on_notice = on_notice
        self.last_notice: Notice | None = None

        if catalog is None and workflow.uses_catalog:
            catalog = LineItemCatalog.default()
        self.catalog = catalog

        today = now or (lambda: clinic_today(settings.utc_offset_hours))
        self.gate = ValidationGate(workflow.rules)
        self.graph = RecordGraph(
            workflow.template,
            gate=self.gate,
            catalog=catalog,
            today=today,
            validity=self._contact_validity,
        )

        self.subject_search = EntityResolutionController(
            self.graph,
            index,
            SubjectBinder(workflow.template),
            min_query_length=min_query_length,
            limit=search_limit,
            on_notice=self._publish,
        )
        self.facility_search: EntityResolutionController | None = None
        if facility_index is not None:
            self.facility_search = EntityResolutionController(
                self.graph,
                facility_index,
                FacilityBinder(),
                min_query_length=min_query_length,
                limit=search_limit,
                on_notice=self._publish,
            )

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @property
    def controllers(self) -> list[EntityResolutionController]:
        return [c for c in (self.facility_search, self.subject_search) if c is not None]

    @property
    def is_edit(self) -> bool:
        return self.graph.record_id is not None

    def open_add(self) -> GraphSnapshot:
        self._cancel_lookups()
        snapshot = self.graph.reset()
        self._restore_controllers(snapshot)
        return snapshot

    def open_edit(self, stored: dict[str, Any]) -> GraphSnapshot:
        """Hydrate the graph from a flat stored record."""
        self._cancel_lookups()
        blocks = self.workflow.hydrate(stored)
        snapshot = self.graph.hydrate(blocks, record_id=stored.get("id"))
        self._restore_controllers(snapshot)
        return snapshot

    def close(self) -> None:
        self._cancel_lookups()
        snapshot = self.graph.reset()
        self._restore_controllers(snapshot)

    # -------------------------------------------------------------------------
    # Edits
    # -------------------------------------------------------------------------

    def update(self, block: Block | str, fields: dict[str, Any]) -> GraphSnapshot:
        """User edit of one block."""
        return self.graph.patch(block, fields)

    def set_phone(self, block: Block | str, value: str) -> GraphSnapshot:
        return self.update(block, {"phone": value})

    def set_email(self, block: Block | str, value: str) -> GraphSnapshot:
        return self.update(block, {"email": value})

    def select_line_items(self, codes: Iterable[str]) -> GraphSnapshot:
        return self.update(Block.CLINICAL, {"selected_codes": list(codes)})

    def set_discount(self, mode: DiscountMode | str, value: Any) -> GraphSnapshot:
        return self.update(Block.CLINICAL, {"discount_mode": DiscountMode(mode), "discount_input": value})

    def set_paid_amount(self, raw: Any) -> GraphSnapshot:
        """Clamped to [0, grand_total] as of now; later total changes do not re-clamp."""
        return self.update(Block.CLINICAL, {"paid_amount": raw})

    # -------------------------------------------------------------------------
    # Gate and submission
    # -------------------------------------------------------------------------

    @property
    def report(self) -> GateReport:
        return self.graph.report

    @property
    def is_submittable(self) -> bool:
        return self.graph.submittable

    async def submit(self) -> SubmissionResult:
        """
        Persist the current graph through the entity index.

        On success the graph resets; on failure it is left untouched so the
        user can correct and resubmit.
        """
        report = self.graph.report
        if not report.submittable:
            return SubmissionResult(
                success=False,
                message="Please complete the required fields.",
                failing=list(report.failing),
            )

        snapshot = self.graph.snapshot()
        payload = self.workflow.build_payload(snapshot)

        try:
            if snapshot.is_edit:
                result = await self.index.update(snapshot.record_id, payload)
            else:
                result = await self.index.create(payload)
        except Exception as e:
            logger.warning("submission_error", workflow=self.workflow.name, error=str(e))
            result = PersistResult(success=False, error=GENERIC_SUBMIT_ERROR)

        if not result.success:
            message = result.error or GENERIC_SUBMIT_ERROR
            logger.warning(
                "submission_failed",
                workflow=self.workflow.name,
                record_id=snapshot.record_id,
                error=message,
            )
            self._publish(
                Notice(kind=NoticeKind.SUBMISSION_FAILED, message=message, detail=result.field_errors)
            )
            return SubmissionResult(
                success=False,
                message=message,
                record_id=snapshot.record_id,
                field_errors=result.field_errors,
                payload=payload,
            )

        stored = result.stored_entity or {}
        record_id = result.entity_id if result.entity_id is not None else snapshot.record_id
        display_id = stored.get("displayId") or self.workflow.display_id(record_id)
        message = f"Record {display_id} saved" if display_id else "Record saved"

        logger.info("record_submitted", workflow=self.workflow.name, record_id=record_id, edit=snapshot.is_edit)
        self._publish(Notice(kind=NoticeKind.SUBMITTED, message=message))
        self.close()

        return SubmissionResult(
            success=True,
            message=message,
            record_id=record_id,
            display_id=display_id,
            payload=payload,
        )

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _contact_validity(self, blocks: Mapping[Block, IntakeBlock]) -> tuple[bool, bool]:
        # Bound blocks hold stored contacts the user cannot edit, so they are not checked
        editable = [blocks[block] for block in CONTACT_BLOCKS if not is_block_bound(blocks, block)]
        phone_valid = all(self.validator.validate_phone(model.phone) for model in editable)
        email_valid = all(self.validator.validate_email(model.email) for model in editable)
        return phone_valid, email_valid

    def _restore_controllers(self, snapshot: GraphSnapshot) -> None:
        if self.facility_search is not None:
            self.facility_search.restore(snapshot.facility.name)
        self.subject_search.restore(snapshot.subject.full_name)

    def _cancel_lookups(self) -> None:
        for controller in self.controllers:
            controller.cancel_pending()

    def _publish(self, notice: Notice) -> None:
        self.last_notice = notice
        if self.on_notice:
            self.on_notice(notice)
