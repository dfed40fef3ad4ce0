"""Weekly and biweekly appointment series."""
from __future__ import annotations

from datetime import date

import pytest

from nailstudio.models import Appointment
from nailstudio.scheduling import js_weekday, recurring_dates


def test_js_weekday_counts_from_sunday():
    assert js_weekday(date(2026, 1, 4)) == 0
    assert js_weekday(date(2026, 1, 5)) == 1
    assert js_weekday(date(2026, 1, 10)) == 6


def test_weekly_series_lands_on_the_requested_weekday():
    dates = list(recurring_dates(date(2026, 1, 1), date(2026, 1, 31), "weekly", day_of_week=1))

    assert dates == [date(2026, 1, 5), date(2026, 1, 12), date(2026, 1, 19), date(2026, 1, 26)]


def test_biweekly_series_includes_the_end_date():
    dates = list(recurring_dates(date(2026, 1, 1), date(2026, 1, 29), "biweekly"))

    assert dates == [date(2026, 1, 1), date(2026, 1, 15), date(2026, 1, 29)]


def test_unknown_frequency_raises():
    with pytest.raises(ValueError):
        list(recurring_dates(date(2026, 1, 1), date(2026, 2, 1), "monthly"))


@pytest.fixture
def series(salon):
    return {
        "service_ids": [salon.manicure_id, salon.pedicure_id],
        "professional_id": salon.professional_id,
        "frequency": "weekly",
        "day_of_week": 1,
        "start_date": "2026-01-01",
        "end_date": "2026-01-31",
        "start_time": "10:00",
        "end_time": "11:30",
    }


def test_create_weekly_series(client, salon, series):
    response = client.post(f"/clients/{salon.maria_id}/recurring-appointments", json=series)
    data = response.get_json()

    assert response.status_code == 201
    assert data["total"] == 4
    assert {a["status"] for a in data["appointments"]} == {"Agendado"}
    assert {a["total_amount"] for a in data["appointments"]} == {"80.00"}
    assert Appointment.query.filter_by(client_id=salon.maria_id).count() == 4


def test_weekly_series_requires_a_weekday(client, salon, series):
    del series["day_of_week"]

    response = client.post(f"/clients/{salon.maria_id}/recurring-appointments", json=series)

    assert response.status_code == 400
    assert "day_of_week" in response.get_json()["fields"]


def test_series_span_is_capped(client, salon, series):
    series["end_date"] = "2028-01-01"

    response = client.post(f"/clients/{salon.maria_id}/recurring-appointments", json=series)

    assert response.status_code == 400
    assert "end_date" in response.get_json()["fields"]
    assert Appointment.query.count() == 0


def test_series_for_unknown_client_404(client, salon, series):
    response = client.post("/clients/999/recurring-appointments", json=series)

    assert response.status_code == 404
