"""
Clinical Models

Measurable and free-text fields of the infertility workflow.
"""

from typing import ClassVar

from pydantic import Field, field_validator

from clinicdesk.models.core import IntakeBlock, OptionalDate, OptionalFloat, OptionalInt, Text


class FertilityAssessment(IntakeBlock):
    """
    Infertility case assessment.

    Height is always stored in centimeters; feet/inches is a display concern.
    """

    # Case
    years_married: OptionalInt = None
    years_trying: OptionalInt = None
    infertility_type: Text = ""
    para: Text = Field(default="", description="Births, as recorded (e.g. \"2+1\")")
    gravida: Text = Field(default="", description="Pregnancies, as recorded")

    # Measurements
    weight_kg: OptionalFloat = None
    height_cm: OptionalFloat = None
    bmi: OptionalFloat = Field(default=None, description="Derived from height and weight")
    blood_pressure: Text = ""

    # History
    medical_history: Text = ""
    surgical_history: Text = ""
    menstrual_history: Text = ""
    contraceptive_history: Text = ""
    referral_source: Text = ""
    chief_complaint: Text = ""

    # Plan
    treatment_plan: Text = ""
    medications: Text = ""
    next_appointment: OptionalDate = None
    status: Text = "Active"
    notes: Text = ""

    derived_fields: ClassVar[frozenset[str]] = frozenset({"bmi"})

    @field_validator("height_cm")
    @classmethod
    def positive_height(cls, value: float | None) -> float | None:
        if value is not None and value <= 0:
            return None
        return value
