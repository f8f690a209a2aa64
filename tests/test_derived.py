"""
Tests for derived field computation.
"""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from clinicdesk.derived import (
    age,
    age_breakdown,
    billing_triad,
    birth_date_from_age,
    bmi,
    clinic_today,
    cm_to_feet_inches,
    feet_inches_to_cm,
    normalize_phone,
    parse_date,
    parse_number,
)

NOW = date(2026, 10, 19)


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("12.5", Decimal("12.5")),
        (" 1,000 ", Decimal("1000")),
        (7, Decimal("7")),
        (0.5, Decimal("0.5")),
        ("", None),
        ("abc", None),
        (None, None),
        (True, None),
        (float("nan"), None),
        ("Infinity", None),
    ],
)
def test_parse_number(raw, expected):
    assert parse_number(raw) == expected


def test_parse_date_accepts_iso_strings_and_rejects_garbage():
    assert parse_date("1990-01-15") == date(1990, 1, 15)
    assert parse_date("1990-01-15T00:00:00.000Z") == date(1990, 1, 15)
    assert parse_date(datetime(1990, 1, 15, 8, 30)) == date(1990, 1, 15)
    assert parse_date("not-a-date") is None
    assert parse_date("") is None


class TestAge:
    """Calendar-aware whole-year age."""

    def test_thirty_years_to_the_day(self):
        assert age(date(1996, 10, 19), NOW) == 30

    def test_one_day_short_of_thirty(self):
        assert age(date(1996, 10, 20), NOW) == 29

    def test_leap_day_birthday(self):
        assert age(date(2000, 2, 29), date(2026, 2, 28)) == 25
        assert age(date(2000, 2, 29), date(2026, 3, 1)) == 26

    def test_missing_and_future_birth_dates(self):
        assert age(None, NOW) is None
        assert age(date(2027, 1, 1), NOW) == 0

    def test_breakdown_and_inverse(self):
        info = age_breakdown(date(1990, 1, 15), NOW)
        assert (info.years, info.months, info.days) == (36, 9, 4)
        assert birth_date_from_age(36, 9, 4, today=NOW) == date(1990, 1, 15)

    def test_breakdown_of_future_date_is_zero(self):
        info = age_breakdown(date(2030, 1, 1), NOW)
        assert (info.years, info.months, info.days) == (0, 0, 0)


class TestBmi:
    def test_rounds_to_one_decimal(self):
        assert bmi(170, 65) == 22.5
        assert bmi("160", "50") == 19.5

    def test_zero_weight_is_valid(self):
        assert bmi(170, 0) == 0.0

    @pytest.mark.parametrize("height,weight", [(None, 65), (170, None), (0, 65), (-10, 65), ("abc", 60)])
    def test_absent_or_invalid_inputs(self, height, weight):
        assert bmi(height, weight) is None


class TestBillingTriad:
    def test_percentage_discount_and_paid_clamp(self):
        triad = billing_triad(1000, "percentage", 10, 1200)
        assert triad.discount_amount == Decimal("100")
        assert triad.grand_total == Decimal("900")
        assert triad.paid_amount_clamped == Decimal("900")
        assert triad.due_amount == Decimal("0")

    def test_fixed_discount_larger_than_charge(self):
        triad = billing_triad(500, "fixedAmount", 600, 0)
        assert triad.discount_amount == Decimal("600")
        assert triad.grand_total == Decimal("0")
        assert triad.due_amount == Decimal("0")

    def test_absent_discount(self):
        triad = billing_triad(750, "percentage", "", 250)
        assert triad.discount_amount is None
        assert triad.grand_total == Decimal("750")
        assert triad.due_amount == Decimal("500")

    def test_negative_payment_clamps_to_zero(self):
        triad = billing_triad(300, "fixedAmount", None, -50)
        assert triad.paid_amount_clamped == Decimal("0")
        assert triad.due_amount == Decimal("300")

    def test_invariants_hold_across_inputs(self):
        for charge in (0, 1, 200, 1000, 4550):
            for mode in ("percentage", "fixedAmount"):
                for discount in (None, 0, 5, 50, 100, 5000):
                    for paid in (0, 100, 900, 100000):
                        triad = billing_triad(charge, mode, discount, paid)
                        assert triad.grand_total >= 0
                        assert 0 <= triad.paid_amount_clamped <= triad.grand_total
                        assert triad.due_amount == triad.grand_total - triad.paid_amount_clamped
                        if discount is None:
                            assert triad.grand_total == charge


class TestHeightConversion:
    def test_cm_to_feet_inches(self):
        converted = cm_to_feet_inches(170)
        assert (converted.feet, converted.inches) == (5, 7)

    def test_feet_inches_to_cm(self):
        assert feet_inches_to_cm(5, 7) == 170
        assert feet_inches_to_cm(None, None) is None

    def test_round_trip_is_within_one_cm(self):
        for cm in range(50, 251):
            converted = cm_to_feet_inches(cm)
            assert abs(feet_inches_to_cm(converted.feet, converted.inches) - cm) <= 1


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("01712345678", "+8801712345678"),
        ("880 1712-345678", "+8801712345678"),
        ("1712345678", "+8801712345678"),
        ("+1 555 0100", "+1 555 0100"),
        ("", ""),
        (None, ""),
    ],
)
def test_normalize_phone(raw, expected):
    assert normalize_phone(raw) == expected


def test_clinic_today_uses_local_offset():
    evening_utc = datetime(2026, 10, 19, 20, 0, tzinfo=timezone.utc)
    assert clinic_today(6, now=evening_utc) == date(2026, 10, 20)
    assert clinic_today(0, now=evening_utc) == date(2026, 10, 19)
