"""
Infertility Workflow

Case management for couples. The companion block is the spouse; the
clinical block is a FertilityAssessment with derived BMI.
"""

from typing import Any

from clinicdesk.engine.graph import GraphSnapshot, GraphTemplate
from clinicdesk.engine.validation import not_blank
from clinicdesk.models.clinical import FertilityAssessment
from clinicdesk.models.core import Block
from clinicdesk.workflows.base import (
    HydratedBlocks,
    Payload,
    WorkflowDefinition,
    build_snapshot_payload,
    hydrate_facility,
    hydrate_subject,
    iso_date,
    present,
)

INFERTILITY_TEMPLATE = GraphTemplate(
    clinical_model=FertilityAssessment,
    subject_defaults={"gender": "Female"},
    companion_defaults={"gender": "Male"},
    mirrors={(Block.COMPANION, "name"): (Block.SUBJECT, "guardian_name")},
)

INFERTILITY_RULES = {
    "subject.given_name": not_blank,
}

_CLINICAL_FIELDS = {
    "yearsMarried": "years_married",
    "yearsTrying": "years_trying",
    "infertilityType": "infertility_type",
    "para": "para",
    "gravida": "gravida",
    "weight": "weight_kg",
    "height": "height_cm",
    "bloodPressure": "blood_pressure",
    "medicalHistory": "medical_history",
    "surgicalHistory": "surgical_history",
    "menstrualHistory": "menstrual_history",
    "contraceptiveHistory": "contraceptive_history",
    "referralSource": "referral_source",
    "chiefComplaint": "chief_complaint",
    "treatmentPlan": "treatment_plan",
    "medications": "medications",
    "nextAppointment": "next_appointment",
    "status": "status",
    "notes": "notes",
}


def build_infertility_payload(snapshot: GraphSnapshot) -> Payload:
    assessment: FertilityAssessment = snapshot.clinical
    medical_info = {
        wire: getattr(assessment, name)
        for wire, name in _CLINICAL_FIELDS.items()
    }
    medical_info["nextAppointment"] = iso_date(assessment.next_appointment)
    medical_info["bmi"] = assessment.bmi
    return build_snapshot_payload(snapshot, "spouseInfo", "medicalInfo", medical_info)


def hydrate_infertility(stored: dict[str, Any]) -> HydratedBlocks:
    """Map a flat stored infertility record onto graph blocks."""
    subject = hydrate_subject(stored)
    if stored.get("husbandName") is not None:
        subject["guardian_name"] = stored["husbandName"]

    companion = present(
        stored,
        {
            "husbandName": "name",
            "husbandAge": "age",
            "husbandDOB": "birth_date",
            "spouseGender": "gender",
            "husbandOccupation": "occupation",
            "husbandPhone": "phone",
            "husbandEmail": "email",
        },
    )

    return {
        Block.FACILITY: hydrate_facility(stored),
        Block.SUBJECT: subject,
        Block.COMPANION: companion,
        Block.CLINICAL: present(stored, _CLINICAL_FIELDS),
    }


INFERTILITY = WorkflowDefinition(
    name="infertility",
    display_prefix="INF",
    companion_role="spouse",
    template=INFERTILITY_TEMPLATE,
    rules=INFERTILITY_RULES,
    build_payload=build_infertility_payload,
    hydrate=hydrate_infertility,
)
