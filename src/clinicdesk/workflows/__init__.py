"""
ClinicDesk Intake Workflows

Pathology billing and infertility case management, configured on the
shared reconciliation engine.
"""

from clinicdesk.workflows.base import SubmissionResult, WorkflowDefinition
from clinicdesk.workflows.infertility import INFERTILITY, build_infertility_payload, hydrate_infertility
from clinicdesk.workflows.pathology import PATHOLOGY, build_pathology_payload, hydrate_pathology
from clinicdesk.workflows.session import IntakeSession

WORKFLOWS = {
    PATHOLOGY.name: PATHOLOGY,
    INFERTILITY.name: INFERTILITY,
}

__all__ = [
    "INFERTILITY",
    "PATHOLOGY",
    "WORKFLOWS",
    "IntakeSession",
    "SubmissionResult",
    "WorkflowDefinition",
    "build_infertility_payload",
    "build_pathology_payload",
    "hydrate_infertility",
    "hydrate_pathology",
]
