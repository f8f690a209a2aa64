"""
Financial Models

Line items and the per-transaction billing block of the pathology workflow.
"""

from decimal import Decimal
from enum import Enum
from typing import ClassVar

from pydantic import BaseModel, Field

from clinicdesk.models.core import (
    IntakeBlock,
    Money,
    OptionalDate,
    OptionalDecimal,
    OptionalText,
    Text,
)


class DiscountMode(str, Enum):
    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixedAmount"


class LineItem(BaseModel):
    """A billable test or service."""

    code: str = Field(..., description="Catalog code")
    name: str
    category: str = ""
    price: Decimal = Field(default=Decimal("0"), ge=0)


class PathologyBilling(IntakeBlock):
    """
    Pathology billing block.

    Never inherited from a stored entity: billing is per transaction.
    Money amounts are Decimal in the clinic currency.
    """

    # Selection
    selected_codes: list[str] = Field(default_factory=list, description="Selected line item codes")
    line_item_charge: Money = Field(default=Decimal("0"), description="Derived: sum of selected prices")

    # Discount
    discount_mode: DiscountMode = DiscountMode.PERCENTAGE
    discount_input: OptionalDecimal = Field(default=None, description="Raw discount as entered")
    discount_amount: OptionalDecimal = Field(default=None, description="Derived discount in currency units")

    # Totals
    grand_total: Money = Decimal("0")
    paid_amount: Money = Field(default=Decimal("0"), description="Clamped to [0, grand_total] when set")
    due_amount: Money = Decimal("0")

    # Order details
    test_date: OptionalDate = None
    test_category: Text = ""
    remarks: Text = ""
    is_completed: bool = False
    ordered_by_id: OptionalText = Field(default=None, description="Ordering physician reference")
    done_by_id: OptionalText = None

    derived_fields: ClassVar[frozenset[str]] = frozenset(
        {"line_item_charge", "discount_amount", "grand_total", "due_amount"}
    )
