"""Helpers for the decimal-string amounts used across the API.

Amounts arrive as strings typed by staff ("120,00", "R$ 35.50", "0") and are
stored as integer cents.
"""
from __future__ import annotations

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

_CURRENCY_PREFIX = re.compile(r"^\s*R\$\s*")


def _q2(x: Decimal) -> Decimal:
    return x.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def parse_amount(value: object) -> Decimal | None:
    """Parse a money value into a two-place Decimal, or None when unusable."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        raw = str(value)
    else:
        raw = _CURRENCY_PREFIX.sub("", str(value)).strip()
        if not raw:
            return None
        if "," in raw:
            # "1.234,56" -> "1234.56"
            raw = raw.replace(".", "").replace(",", ".")
    try:
        amount = Decimal(raw)
    except InvalidOperation:
        return None
    if not amount.is_finite():
        return None
    return _q2(amount)


def to_cents(value: object) -> int | None:
    amount = parse_amount(value)
    if amount is None:
        return None
    return int(amount * 100)


def format_cents(cents: int | None) -> str | None:
    """Render cents as the canonical "120.00" string."""
    if cents is None:
        return None
    return str(_q2(Decimal(cents) / 100))


def format_brl(cents: int) -> str:
    """Render cents the way staff read them, e.g. "R$ 120,00"."""
    return "R$ " + format_cents(cents).replace(".", ",")


def percent_of(cents: int, rate) -> int:
    """``rate`` percent of an amount in cents, rounded half up to whole cents."""
    if rate is None:
        return 0
    share = Decimal(cents) * Decimal(str(rate)) / 100
    return int(share.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
