"""
ClinicDesk Observability

Structured logging setup shared by the engine and its collaborators.
"""

from clinicdesk.observability.logging import (
    configure_logging,
    contact_redaction_processor,
    redact_contacts,
)

__all__ = [
    "configure_logging",
    "contact_redaction_processor",
    "redact_contacts",
]
