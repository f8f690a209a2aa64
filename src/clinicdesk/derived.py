"""
Derived Field Computation

Pure, synchronous functions that keep computed intake fields consistent
with their inputs:
- Age from birth date (whole years, calendar aware)
- BMI from height and weight
- Billing triad: discount amount -> grand total -> due amount
- Height unit conversion (display only; height is stored in centimeters)

Inputs that do not parse as numbers are treated as absent and propagate
None through dependent values. Nothing here raises on bad input.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
import calendar
import re
from typing import Any

CM_PER_INCH = Decimal("2.54")
ZERO = Decimal("0")

_NON_DIGITS = re.compile(r"\D")


@dataclass(frozen=True)
class AgeInfo:
    """Age broken down into calendar components."""
    years: int
    months: int
    days: int


@dataclass(frozen=True)
class FeetInches:
    feet: int
    inches: int


@dataclass(frozen=True)
class BillingTriad:
    """Billing amounts derived from a line item charge and a discount."""
    discount_amount: Decimal | None
    grand_total: Decimal
    due_amount: Decimal
    paid_amount_clamped: Decimal


# =============================================================================
# Parsing
# =============================================================================

def parse_number(value: Any) -> Decimal | None:
    """
    Coerce a user-entered value to a Decimal.

    Returns None for None, blanks, booleans, non-numeric text, NaN and
    infinities.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        number = value
    elif isinstance(value, (int, float)):
        number = Decimal(str(value))
    elif isinstance(value, str):
        text = value.strip().replace(",", "")
        if not text:
            return None
        try:
            number = Decimal(text)
        except InvalidOperation:
            return None
    else:
        return None

    if not number.is_finite():
        return None
    return number


def parse_date(value: Any) -> date | None:
    """Coerce a date, datetime or ISO string to a date; anything else is None."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        except ValueError:
            pass
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            return None
    return None


def _round_half_up(value: Decimal, places: str = "1") -> Decimal:
    return value.quantize(Decimal(places), rounding=ROUND_HALF_UP)


# =============================================================================
# Age
# =============================================================================

def age(birth_date: date | None, now: date) -> int | None:
    """
    Whole years between birth_date and now.

    Decrements by one when now's month/day precedes the birth month/day.
    Future birth dates yield 0.
    """
    if birth_date is None:
        return None
    years = now.year - birth_date.year - (
        (now.month, now.day) < (birth_date.month, birth_date.day)
    )
    return max(0, years)


def _add_months(d: date, months: int) -> date:
    month_index = d.month - 1 + months
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def age_breakdown(birth_date: date | None, now: date) -> AgeInfo | None:
    """Age as non-negative years, months and days."""
    if birth_date is None:
        return None
    if birth_date >= now:
        return AgeInfo(0, 0, 0)

    years = age(birth_date, now)
    anchor = _add_months(birth_date, years * 12)
    months = 0
    while _add_months(anchor, months + 1) <= now:
        months += 1
    anchor = _add_months(anchor, months)
    days = (now - anchor).days
    return AgeInfo(years=years, months=months, days=days)


def birth_date_from_age(years: int = 0, months: int = 0, days: int = 0, today: date | None = None) -> date:
    """Inverse of age_breakdown: the birth date implied by an age on `today`."""
    today = today or date.today()
    shifted = _add_months(today, -(max(0, years) * 12 + max(0, months)))
    return shifted - timedelta(days=max(0, days))


# =============================================================================
# Physical measurements
# =============================================================================

def bmi(height_cm: Any, weight_kg: Any) -> float | None:
    """
    Body mass index, rounded to one decimal place.

    None unless both inputs are present and height is positive.
    """
    height = parse_number(height_cm)
    weight = parse_number(weight_kg)
    if height is None or weight is None or height <= 0:
        return None
    meters = height / 100
    return float(_round_half_up(weight / (meters * meters), "0.1"))


def cm_to_feet_inches(cm: Any) -> FeetInches | None:
    """Display conversion. Lossy: sub-inch precision is rounded away."""
    height = parse_number(cm)
    if height is None:
        return None
    total_inches = height / CM_PER_INCH
    feet = int(total_inches // 12)
    inches = int(_round_half_up(total_inches % 12))
    return FeetInches(feet=feet, inches=inches)


def feet_inches_to_cm(feet: Any, inches: Any) -> int | None:
    """Convert feet/inches back to whole centimeters."""
    ft = parse_number(feet)
    inch = parse_number(inches)
    if ft is None and inch is None:
        return None
    total_inches = (ft or ZERO) * 12 + (inch or ZERO)
    return int(_round_half_up(total_inches * CM_PER_INCH))


# =============================================================================
# Billing
# =============================================================================

def discount_amount(line_item_charge: Any, discount_mode: str, discount_input: Any) -> Decimal | None:
    """Discount in currency units; None when no discount was entered."""
    entered = parse_number(discount_input)
    if entered is None:
        return None
    if discount_mode == "percentage":
        charge = parse_number(line_item_charge) or ZERO
        return entered * charge / 100
    return entered


def grand_total(line_item_charge: Any, discount: Decimal | None) -> Decimal:
    charge = parse_number(line_item_charge) or ZERO
    return max(ZERO, charge - (discount or ZERO))


def clamp_paid_amount(paid_amount_raw: Any, total: Decimal) -> Decimal:
    """Clamp a payment to [0, total] at the moment it is entered."""
    paid = parse_number(paid_amount_raw) or ZERO
    return min(max(paid, ZERO), max(total, ZERO))


def due_amount(total: Decimal, paid_amount: Any) -> Decimal:
    return max(ZERO, total - (parse_number(paid_amount) or ZERO))


def billing_triad(
    line_item_charge: Any,
    discount_mode: str,
    discount_input: Any,
    paid_amount_raw: Any,
) -> BillingTriad:
    """
    Compute every billing amount for one payment entry.

    Usage:
        triad = billing_triad(1000, "percentage", 10, 1200)
        triad.grand_total          # Decimal("900")
        triad.paid_amount_clamped  # Decimal("900")
        triad.due_amount           # Decimal("0")
    """
    discount = discount_amount(line_item_charge, discount_mode, discount_input)
    total = grand_total(line_item_charge, discount)
    paid = clamp_paid_amount(paid_amount_raw, total)
    return BillingTriad(
        discount_amount=discount,
        grand_total=total,
        due_amount=due_amount(total, paid),
        paid_amount_clamped=paid,
    )


# =============================================================================
# Contact and clock helpers
# =============================================================================

def normalize_phone(phone: str | None) -> str:
    """Normalize Bangladesh numbers to +880 form; other input is returned unchanged."""
    if not phone:
        return ""
    cleaned = _NON_DIGITS.sub("", phone)
    if cleaned.startswith("880"):
        return f"+{cleaned}"
    if cleaned.startswith("01") and len(cleaned) == 11:
        return f"+880{cleaned[1:]}"
    if len(cleaned) == 10:
        return f"+880{cleaned}"
    return phone


def clinic_today(utc_offset_hours: int = 6, now: datetime | None = None) -> date:
    """Today's date in clinic local time."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return (now.astimezone(timezone.utc) + timedelta(hours=utc_offset_hours)).date()
