"""
Workflow Definitions

A workflow configures the generic engine for one intake form: graph
template, required-field rules, submission payload shape and the mapping
from a stored record back into graph blocks.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Callable

from clinicdesk.derived import normalize_phone
from clinicdesk.engine.graph import GraphSnapshot, GraphTemplate
from clinicdesk.engine.validation import Predicate
from clinicdesk.models.core import Block, Companion, EntityId, Facility, Subject

Payload = dict[str, Any]
HydratedBlocks = dict[Block, dict[str, Any]]


@dataclass
class SubmissionResult:
    """Outcome of IntakeSession.submit(). Never raised, always returned."""
    success: bool
    message: str = ""
    record_id: EntityId | None = None
    display_id: str | None = None
    field_errors: dict[str, Any] | None = None
    failing: list[str] = field(default_factory=list)
    payload: Payload | None = None


@dataclass
class WorkflowDefinition:
    name: str
    display_prefix: str
    companion_role: str
    template: GraphTemplate
    rules: dict[str, Predicate]
    build_payload: Callable[[GraphSnapshot], Payload]
    hydrate: Callable[[dict[str, Any]], HydratedBlocks]
    uses_catalog: bool = False

    def display_id(self, record_id: EntityId | None) -> str | None:
        """INF-000042 style identifier for a stored record id."""
        if record_id is None:
            return None
        if isinstance(record_id, int) or str(record_id).isdigit():
            return f"{self.display_prefix}-{int(record_id):06d}"
        return f"{self.display_prefix}-{record_id}"


# =============================================================================
# Payload helpers
# =============================================================================

def iso_date(value: date | None) -> str | None:
    return value.isoformat() if value else None


def money(value: Decimal | None) -> float | None:
    return float(value) if value is not None else None


def wire_id(value: EntityId | None) -> EntityId | None:
    if isinstance(value, str) and value.isdigit():
        return int(value)
    return value


def hospital_payload(facility: Facility) -> Payload:
    return {
        "id": wire_id(facility.bound_entity_id),
        "name": facility.name,
        "address": facility.address,
        "phoneNumber": normalize_phone(facility.phone),
        "email": facility.email,
        "website": facility.website,
        "type": facility.category,
    }


def patient_payload(subject: Subject, companion: Companion) -> Payload:
    return {
        "id": wire_id(subject.bound_entity_id),
        "firstName": subject.given_name,
        "lastName": subject.family_name,
        "fullName": subject.full_name,
        "gender": subject.gender,
        "age": subject.age,
        "dateOfBirth": iso_date(subject.birth_date),
        "guardianName": companion.name or subject.guardian_name,
        "address": subject.address,
        "phoneNumber": normalize_phone(subject.phone),
        "email": subject.email,
        "bloodGroup": subject.blood_group,
        "occupation": subject.occupation,
    }


def companion_payload(companion: Companion) -> Payload:
    return {
        "name": companion.name,
        "age": companion.age,
        "dateOfBirth": iso_date(companion.birth_date),
        "gender": companion.gender,
        "occupation": companion.occupation,
        "phoneNumber": normalize_phone(companion.phone),
        "email": companion.email,
    }


# =============================================================================
# Hydration helpers
# =============================================================================

def present(stored: dict[str, Any], mapping: dict[str, str]) -> dict[str, Any]:
    """Copy stored keys that hold a value, renamed to block field names."""
    return {
        target: stored[source]
        for source, target in mapping.items()
        if stored.get(source) is not None
    }


def hydrate_facility(stored: dict[str, Any]) -> dict[str, Any]:
    values = present(
        stored,
        {
            "hospitalName": "name",
            "hospitalAddress": "address",
            "hospitalPhone": "phone",
            "hospitalEmail": "email",
            "hospitalWebsite": "website",
            "hospitalType": "category",
        },
    )
    values["bound_entity_id"] = stored.get("hospitalId")
    return values


def hydrate_subject(stored: dict[str, Any]) -> dict[str, Any]:
    values = present(
        stored,
        {
            "patientFirstName": "given_name",
            "patientLastName": "family_name",
            "patientGender": "gender",
            "patientDOB": "birth_date",
            "patientAge": "age",
            "guardianName": "guardian_name",
            "address": "address",
            "mobileNumber": "phone",
            "email": "email",
            "bloodGroup": "blood_group",
            "patientOccupation": "occupation",
        },
    )
    if "given_name" not in values and stored.get("patientFullName"):
        given, _, family = str(stored["patientFullName"]).strip().partition(" ")
        values["given_name"] = given
        values["family_name"] = family.strip()
    values["bound_entity_id"] = stored.get("patientId")
    return values


def build_snapshot_payload(
    snapshot: GraphSnapshot,
    companion_key: str,
    clinical_key: str,
    clinical: Payload,
) -> Payload:
    payload: Payload = {
        "hospital": hospital_payload(snapshot.facility),
        "patient": patient_payload(snapshot.subject, snapshot.companion),
        companion_key: companion_payload(snapshot.companion),
        clinical_key: clinical,
    }
    if snapshot.is_edit:
        payload = {"id": wire_id(snapshot.record_id), **payload}
    return payload
