"""
Validation Gate

Aggregates required-field predicates and the phone/email format flags into
one submit-enabled boolean. There is no warning state: a record is either
submittable or it is not.
"""

from dataclasses import dataclass, field
import re
from typing import Any, Callable, Mapping, Protocol

Predicate = Callable[[Any], bool]

PHONE_PATTERN = re.compile(r"^[+]?[\d\s\-\(\)]{10,}$")
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class ValidatedRecord(Protocol):
    phone_valid: bool
    email_valid: bool

    def value(self, path: str) -> Any: ...


# =============================================================================
# Predicates
# =============================================================================

def is_present(value: Any) -> bool:
    return value is not None


def not_blank(value: Any) -> bool:
    return value is not None and str(value).strip() != ""


def non_empty(value: Any) -> bool:
    return value is not None and len(value) > 0


# =============================================================================
# Field validators
# =============================================================================

class FieldValidator:
    """Format checks for contact fields. Empty values are valid."""

    def validate_phone(self, value: str | None) -> bool:
        if not value:
            return True
        return bool(PHONE_PATTERN.match(value))

    def validate_email(self, value: str | None) -> bool:
        if not value:
            return True
        return bool(EMAIL_PATTERN.match(value))


# =============================================================================
# Gate
# =============================================================================

@dataclass
class GateReport:
    """Gate outcome with the names of every failing predicate."""
    submittable: bool
    failing: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "submittable": self.submittable,
            "failing": list(self.failing),
        }


class ValidationGate:
    """
    Required-field rules keyed by dotted field path.

    Usage:
        gate = ValidationGate({
            "subject.given_name": not_blank,
            "clinical.selected_codes": non_empty,
        })
        gate.is_submittable(graph.snapshot())
    """

    def __init__(self, rules: Mapping[str, Predicate] | None = None):
        self.rules: dict[str, Predicate] = dict(rules or {})

    def evaluate(
        self,
        record: ValidatedRecord,
        phone_valid: bool | None = None,
        email_valid: bool | None = None,
    ) -> GateReport:
        failing = [
            path for path, predicate in self.rules.items()
            if not predicate(record.value(path))
        ]

        if not (record.phone_valid if phone_valid is None else phone_valid):
            failing.append("phone_valid")
        if not (record.email_valid if email_valid is None else email_valid):
            failing.append("email_valid")

        return GateReport(submittable=not failing, failing=failing)

    def is_submittable(
        self,
        record: ValidatedRecord,
        phone_valid: bool | None = None,
        email_valid: bool | None = None,
    ) -> bool:
        return self.evaluate(record, phone_valid, email_valid).submittable
