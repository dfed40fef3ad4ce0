"""Date helpers for the agenda: recurring series and time validation."""
from __future__ import annotations

from collections.abc import Iterator
from datetime import date, time, timedelta

FREQUENCIES = ("weekly", "biweekly")


def js_weekday(day: date) -> int:
    """Weekday numbered the way the front end sends it (0 = Sunday)."""
    return (day.weekday() + 1) % 7


def recurring_dates(
    start: date, end: date, frequency: str, day_of_week: int | None = None
) -> Iterator[date]:
    """Yield the dates of a recurring series, ``end`` included.

    ``weekly`` yields every ``day_of_week`` (0 = Sunday) between the bounds.
    ``biweekly`` yields the start date and every 14 days after it.
    """
    if frequency not in FREQUENCIES:
        raise ValueError(f"Unknown frequency: {frequency!r}")

    if frequency == "weekly":
        if day_of_week is None or not 0 <= day_of_week <= 6:
            raise ValueError("day_of_week is required for weekly series")
        current = start + timedelta(days=(day_of_week - js_weekday(start)) % 7)
    else:
        current = start

    step = timedelta(weeks=1 if frequency == "weekly" else 2)
    while current <= end:
        yield current
        current += step


def parse_hhmm(value: object) -> time | None:
    if not isinstance(value, str):
        return None
    try:
        hours, minutes = value.strip().split(":")[:2]
        return time(int(hours), int(minutes))
    except ValueError:
        return None


def overlaps(start: time, end: time, other_start: time, other_end: time) -> bool:
    return start < other_end and other_start < end
