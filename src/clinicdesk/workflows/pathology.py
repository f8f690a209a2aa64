"""
Pathology Workflow

Test ordering and billing. The companion block is the patient's guardian;
the clinical block is PathologyBilling, priced from the line item catalog.
"""

from datetime import date
from typing import Any

from clinicdesk.engine.graph import GraphSnapshot, GraphTemplate
from clinicdesk.engine.validation import is_present, non_empty, not_blank
from clinicdesk.models.core import Block
from clinicdesk.models.financial import DiscountMode, PathologyBilling
from clinicdesk.workflows.base import (
    HydratedBlocks,
    Payload,
    WorkflowDefinition,
    build_snapshot_payload,
    hydrate_facility,
    hydrate_subject,
    iso_date,
    money,
    present,
)


def _clinical_defaults(today: date) -> dict[str, Any]:
    return {"test_date": today}


PATHOLOGY_TEMPLATE = GraphTemplate(
    clinical_model=PathologyBilling,
    clinical_defaults=_clinical_defaults,
    mirrors={(Block.COMPANION, "name"): (Block.SUBJECT, "guardian_name")},
)

PATHOLOGY_RULES = {
    "subject.given_name": not_blank,
    "subject.gender": not_blank,
    "subject.phone": not_blank,
    "subject.birth_date": is_present,
    "subject.address": not_blank,
    "clinical.selected_codes": non_empty,
    "clinical.ordered_by_id": not_blank,
}


def build_pathology_payload(snapshot: GraphSnapshot) -> Payload:
    billing: PathologyBilling = snapshot.clinical
    pathology_info = {
        "testResults": {"tests": list(billing.selected_codes)},
        "testCharge": money(billing.line_item_charge),
        "discountType": billing.discount_mode.value,
        "discountValue": money(billing.discount_input),
        "discountAmount": money(billing.discount_amount),
        "grandTotal": money(billing.grand_total),
        "paidAmount": money(billing.paid_amount),
        "dueAmount": money(billing.due_amount),
        "testDate": iso_date(billing.test_date),
        "testCategory": billing.test_category,
        "remarks": billing.remarks,
        "isCompleted": billing.is_completed,
        "orderedById": billing.ordered_by_id,
        "doneById": billing.done_by_id,
    }
    return build_snapshot_payload(snapshot, "guardianInfo", "pathologyInfo", pathology_info)


def _selected_codes(stored: dict[str, Any]) -> list[str]:
    results = stored.get("testResults") or {}
    tests = results.get("tests", []) if isinstance(results, dict) else results
    codes = []
    for test in tests or []:
        code = test.get("code") if isinstance(test, dict) else test
        if code:
            codes.append(str(code))
    return codes


def hydrate_pathology(stored: dict[str, Any]) -> HydratedBlocks:
    """Map a flat stored pathology record onto graph blocks."""
    companion = present(
        stored,
        {
            "guardianName": "name",
            "guardianAge": "age",
            "guardianDOB": "birth_date",
            "guardianGender": "gender",
        },
    )

    clinical = present(
        stored,
        {
            "testCharge": "line_item_charge",
            "paidAmount": "paid_amount",
            "testDate": "test_date",
            "testCategory": "test_category",
            "remarks": "remarks",
            "isCompleted": "is_completed",
            "orderedById": "ordered_by_id",
            "doneById": "done_by_id",
        },
    )
    clinical["selected_codes"] = _selected_codes(stored)

    # Reproduce the stored discount; fall back to the stored amount as a fixed discount
    if stored.get("discountType") in (DiscountMode.PERCENTAGE.value, DiscountMode.FIXED_AMOUNT.value) \
            and stored.get("discountValue") is not None:
        clinical["discount_mode"] = stored["discountType"]
        clinical["discount_input"] = stored["discountValue"]
    else:
        clinical["discount_mode"] = DiscountMode.FIXED_AMOUNT
        clinical["discount_input"] = stored.get("discountAmount")

    return {
        Block.FACILITY: hydrate_facility(stored),
        Block.SUBJECT: hydrate_subject(stored),
        Block.COMPANION: companion,
        Block.CLINICAL: clinical,
    }


PATHOLOGY = WorkflowDefinition(
    name="pathology",
    display_prefix="PATH",
    companion_role="guardian",
    template=PATHOLOGY_TEMPLATE,
    rules=PATHOLOGY_RULES,
    build_payload=build_pathology_payload,
    hydrate=hydrate_pathology,
    uses_catalog=True,
)
