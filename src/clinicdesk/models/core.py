"""
Core Intake Models

Pydantic models for the record blocks shared by every intake workflow:
Facility (hospital), Subject (patient) and Companion (spouse or guardian).
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, ClassVar

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from clinicdesk.derived import parse_date, parse_number

EntityId = int | str


def _to_int(value: Any) -> int | None:
    number = parse_number(value)
    return int(number) if number is not None else None


def _to_float(value: Any) -> float | None:
    number = parse_number(value)
    return float(number) if number is not None else None


def _to_text(value: Any) -> str:
    return "" if value is None else str(value)


def _to_optional_text(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def _to_money(value: Any) -> Decimal:
    number = parse_number(value)
    return number if number is not None else Decimal("0")


# Lenient field types: unparseable input becomes None instead of failing validation
OptionalDate = Annotated[date | None, BeforeValidator(parse_date)]
OptionalInt = Annotated[int | None, BeforeValidator(_to_int)]
OptionalFloat = Annotated[float | None, BeforeValidator(_to_float)]
OptionalDecimal = Annotated[Decimal | None, BeforeValidator(parse_number)]
Text = Annotated[str, BeforeValidator(_to_text)]
OptionalText = Annotated[str | None, BeforeValidator(_to_optional_text)]
Money = Annotated[Decimal, BeforeValidator(_to_money)]


class Block(str, Enum):
    """Independently addressable blocks of a record graph."""
    FACILITY = "facility"
    SUBJECT = "subject"
    COMPANION = "companion"
    CLINICAL = "clinical"


class IntakeBlock(BaseModel):
    """
    Base class for record graph blocks.

    `derived_fields` are computed by the graph and never set by callers.
    `lockable_fields` become read-only to the user while the block is bound.
    """

    model_config = ConfigDict(extra="forbid")

    derived_fields: ClassVar[frozenset[str]] = frozenset()
    lockable_fields: ClassVar[frozenset[str]] = frozenset()


class Facility(IntakeBlock):
    """
    Facility entity.

    The referring hospital or clinic a record is filed under.
    """

    bound_entity_id: EntityId | None = Field(default=None, description="Origin marker: id of the stored facility")
    name: Text = Field(default="", description="Facility name")
    address: Text = ""
    phone: Text = ""
    email: Text = ""
    website: Text = ""
    category: Text = Field(default="", description="Facility type (hospital, clinic, ...)")

    lockable_fields: ClassVar[frozenset[str]] = frozenset(
        {"name", "address", "phone", "email", "website", "category"}
    )


class Subject(IntakeBlock):
    """
    Subject entity.

    The patient the intake record is about.
    """

    bound_entity_id: EntityId | None = Field(default=None, description="Origin marker: id of the stored patient")

    # Demographics
    given_name: Text = Field(default="", description="First/given name")
    family_name: Text = Field(default="", description="Last/family name")
    full_name: Text = Field(default="", description="Derived: trimmed given + family name")
    gender: Text = ""
    birth_date: OptionalDate = Field(default=None, description="Date of birth")
    age: OptionalInt = Field(default=None, description="Derived from birth_date, else an explicit fallback")
    guardian_name: Text = ""
    blood_group: Text = ""
    occupation: Text = ""

    # Contact
    phone: Text = ""
    email: Text = ""
    address: Text = ""

    derived_fields: ClassVar[frozenset[str]] = frozenset({"full_name", "age"})
    lockable_fields: ClassVar[frozenset[str]] = frozenset(
        {
            "given_name", "family_name", "gender", "birth_date", "age",
            "guardian_name", "blood_group", "occupation", "phone", "email", "address",
        }
    )


class Companion(IntakeBlock):
    """Spouse or guardian of the subject, depending on the workflow."""

    name: Text = ""
    birth_date: OptionalDate = None
    age: OptionalInt = None
    gender: Text = ""
    occupation: Text = ""
    phone: Text = ""
    email: Text = ""

    derived_fields: ClassVar[frozenset[str]] = frozenset({"age"})
    # Locked while the subject is bound: the companion came with the stored patient
    lockable_fields: ClassVar[frozenset[str]] = frozenset(
        {"name", "birth_date", "age", "gender", "occupation", "phone", "email"}
    )
