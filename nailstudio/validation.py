"""Request body helpers shared by the route modules.

Each helper records a per-field message in ``errors`` instead of raising, so
a route can report every invalid field at once via ``ValidationFailed``.
"""
from __future__ import annotations

from datetime import date, datetime

from flask import request

from .errors import ValidationFailed
from .money import to_cents
from .scheduling import parse_hhmm


def json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationFailed({"body": "A JSON object is required"})
    return data


def raise_if_errors(errors: dict[str, str]) -> None:
    if errors:
        raise ValidationFailed(errors)


def required_text(data: dict, key: str, errors: dict[str, str], min_length: int = 1) -> str | None:
    value = data.get(key)
    if not isinstance(value, str) or len(value.strip()) < min_length:
        errors[key] = f"{key} is required" if min_length <= 1 else f"{key} must have at least {min_length} characters"
        return None
    return value.strip()


def optional_text(data: dict, key: str, default: str | None = "") -> str | None:
    value = data.get(key)
    if value is None:
        return default
    return str(value).strip()


def money_cents(
    data: dict, key: str, errors: dict[str, str], *, required: bool = False, default: int | None = None
) -> int | None:
    if key not in data or data[key] in (None, ""):
        if required:
            errors[key] = f"{key} is required"
        return default
    cents = to_cents(data[key])
    if cents is None or cents < 0:
        errors[key] = f"{key} must be a non-negative amount such as 10,50"
        return default
    return cents


def non_negative_int(
    data: dict, key: str, errors: dict[str, str], *, required: bool = False, default: int | None = None
) -> int | None:
    if key not in data or data[key] in (None, ""):
        if required:
            errors[key] = f"{key} is required"
        return default
    value = data[key]
    if isinstance(value, bool):
        errors[key] = f"{key} must be a non-negative integer"
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        errors[key] = f"{key} must be a non-negative integer"
        return default
    if number < 0:
        errors[key] = f"{key} must be a non-negative integer"
        return default
    return number


def iso_date(data: dict, key: str, errors: dict[str, str], *, required: bool = True) -> date | None:
    value = data.get(key)
    if value in (None, ""):
        if required:
            errors[key] = f"{key} is required"
        return None
    try:
        return datetime.fromisoformat(str(value)).date()
    except ValueError:
        errors[key] = "Invalid date format, use YYYY-MM-DD"
        return None


def hhmm(data: dict, key: str, errors: dict[str, str]):
    value = parse_hhmm(data.get(key))
    if value is None:
        errors[key] = f"{key} must be a time in HH:MM format"
    return value


def choice(data: dict, key: str, options, errors: dict[str, str], default=None):
    value = data.get(key, default)
    if value not in options:
        errors[key] = f"{key} must be one of: {', '.join(options)}"
        return default
    return value


def query_date(name: str) -> date | None:
    """Parse an optional ``YYYY-MM-DD`` query parameter."""
    value = request.args.get(name, "").strip()
    if not value:
        return None
    try:
        return datetime.fromisoformat(value).date()
    except ValueError as exc:
        raise ValidationFailed({name: "Invalid date format, use YYYY-MM-DD"}) from exc
