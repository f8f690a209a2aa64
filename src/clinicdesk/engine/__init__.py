"""
ClinicDesk Reconciliation Engine

Record graph, entity resolution and validation gate.
"""

from clinicdesk.engine.graph import (
    DERIVATIONS,
    Derivation,
    GraphSnapshot,
    GraphTemplate,
    PatchOrigin,
    RecordGraph,
    is_block_bound,
)
from clinicdesk.engine.resolution import (
    Binder,
    EntityResolutionController,
    FacilityBinder,
    SubjectBinder,
)
from clinicdesk.engine.validation import (
    FieldValidator,
    GateReport,
    ValidationGate,
    is_present,
    non_empty,
    not_blank,
)

__all__ = [
    # Graph
    "DERIVATIONS",
    "Derivation",
    "GraphSnapshot",
    "GraphTemplate",
    "PatchOrigin",
    "RecordGraph",
    "is_block_bound",
    # Resolution
    "Binder",
    "EntityResolutionController",
    "FacilityBinder",
    "SubjectBinder",
    # Validation
    "FieldValidator",
    "GateReport",
    "ValidationGate",
    "is_present",
    "non_empty",
    "not_blank",
]
