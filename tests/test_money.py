from decimal import Decimal

import pytest

from nailstudio.money import format_brl, format_cents, parse_amount, percent_of, to_cents


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("120,00", Decimal("120.00")),
        ("R$ 1.234,56", Decimal("1234.56")),
        ("35.5", Decimal("35.50")),
        (45, Decimal("45.00")),
        ("0", Decimal("0.00")),
    ],
)
def test_parse_amount_accepts_staff_formats(raw, expected):
    assert parse_amount(raw) == expected


@pytest.mark.parametrize("raw", ["abc", "", None, True, "NaN"])
def test_parse_amount_rejects_garbage(raw):
    assert parse_amount(raw) is None


def test_cents_round_trip_formats():
    assert to_cents("120,00") == 12000
    assert format_cents(12000) == "120.00"
    assert format_cents(None) is None
    assert format_brl(12050) == "R$ 120,50"


def test_percent_of_rounds_half_up():
    assert percent_of(10000, 10) == 1000
    assert percent_of(3333, Decimal("12.5")) == 417
    assert percent_of(5000, None) == 0
