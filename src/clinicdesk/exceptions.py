"""
Engine exceptions.

Only caller contract violations are raised across component boundaries.
Lookup and submission failures are returned as values (Notice,
SubmissionResult), never raised.
"""

from typing import Any


class ClinicDeskError(Exception):
    """Base class for engine errors."""

    code = "CLINICDESK_ERROR"

    def __init__(self, message: str, code: str | None = None, detail: dict[str, Any] | None = None):
        self.message = message
        if code is not None:
            self.code = code
        self.detail = detail
        super().__init__(message)


class LockedFieldError(ClinicDeskError):
    """A user edit targeted a field locked by a bound origin marker."""

    code = "FIELD_LOCKED"


class DerivedFieldError(ClinicDeskError):
    """A derived field was set directly."""

    code = "FIELD_DERIVED"


class UnknownFieldError(ClinicDeskError):
    """A patch named a field the block does not have."""

    code = "UNKNOWN_FIELD"


class EntityIndexError(ClinicDeskError):
    """The entity index could not be reached or answered with an error."""

    code = "INDEX_UNAVAILABLE"
