"""Completing an appointment: package credits, stamps and income."""
from __future__ import annotations

from datetime import date, timedelta

from conftest import add_appointment, add_client_package

from nailstudio.extensions import db
from nailstudio.models import Appointment, Client, ClientPackage, FinancialTransaction


def _complete(client, appointment_id):
    return client.put(f"/appointments/{appointment_id}/status", json={"status": "Concluído"})


def _remaining(instance_id: int) -> int:
    return db.session.get(ClientPackage, instance_id).services[0].remaining_quantity


def test_package_covered_service_consumes_a_credit_instead_of_a_stamp(client, salon):
    instance_id = add_client_package(salon.maria_id, salon.manicure_id)
    appointment_id = add_appointment(salon, [salon.manicure_id], client_id=salon.maria_id)

    response = _complete(client, appointment_id)
    data = response.get_json()

    assert response.status_code == 200
    assert data["appointment"]["status"] == "Concluído"
    assert data["completion"]["package_service_consumed"] is True
    assert data["completion"]["stamp_awarded"] is False
    assert _remaining(instance_id) == 3
    assert db.session.get(Client, salon.maria_id).stamps_earned == 0

    income = FinancialTransaction.query.one()
    assert income.category == "Serviços Prestados"
    assert income.amount_cents == 3500
    assert income.payment_method == "Pix"
    assert income.appointment_id == appointment_id
    assert income.description == "Receita Serviços: Maria Silva - Manicure"


def test_service_without_package_awards_a_stamp(client, salon):
    appointment_id = add_appointment(salon, [salon.pedicure_id], client_id=salon.maria_id, total_amount_cents=4500)

    data = _complete(client, appointment_id).get_json()

    assert data["completion"]["stamp_awarded"] is True
    assert db.session.get(Client, salon.maria_id).stamps_earned == 1
    assert FinancialTransaction.query.one().amount_cents == 4500


def test_mixed_services_consume_one_credit_and_skip_the_stamp(client, salon):
    instance_id = add_client_package(salon.maria_id, salon.manicure_id)
    appointment_id = add_appointment(
        salon, [salon.manicure_id, salon.pedicure_id], client_id=salon.maria_id, total_amount_cents=4500
    )

    data = _complete(client, appointment_id).get_json()

    assert data["completion"]["debited_service_ids"] == [salon.manicure_id]
    assert _remaining(instance_id) == 3
    assert db.session.get(Client, salon.maria_id).stamps_earned == 0


def test_client_is_resolved_by_name_when_not_linked(client, salon):
    appointment_id = add_appointment(salon, [salon.pedicure_id], client_name="  MARIA silva ")

    data = _complete(client, appointment_id).get_json()

    assert data["completion"]["client_id"] == salon.maria_id
    assert db.session.get(Appointment, appointment_id).client_id == salon.maria_id
    assert db.session.get(Client, salon.maria_id).stamps_earned == 1


def test_unknown_client_still_completes_with_a_warning(client, salon):
    appointment_id = add_appointment(salon, [salon.manicure_id], client_name="Fulana de Tal")

    response = _complete(client, appointment_id)
    data = response.get_json()

    assert response.status_code == 200
    assert data["appointment"]["status"] == "Concluído"
    assert "Atenção: Cliente não Encontrado" in [n["title"] for n in data["notices"]]
    income = FinancialTransaction.query.one()
    assert income.client_id is None
    assert income.amount_cents == 3500


def test_soonest_expiring_package_pays_first(client, salon):
    later = add_client_package(
        salon.maria_id, salon.manicure_id, expiry_date=date.today() + timedelta(days=60), position=0
    )
    sooner = add_client_package(
        salon.maria_id, salon.manicure_id, expiry_date=date.today() + timedelta(days=10), position=1
    )
    appointment_id = add_appointment(salon, [salon.manicure_id], client_id=salon.maria_id)

    _complete(client, appointment_id)

    assert _remaining(sooner) == 3
    assert _remaining(later) == 4


def test_purchase_order_can_be_configured(app, client, salon):
    app.config["PACKAGE_CONSUMPTION_ORDER"] = "purchase_order"
    first = add_client_package(
        salon.maria_id, salon.manicure_id, expiry_date=date.today() + timedelta(days=60), position=0
    )
    second = add_client_package(
        salon.maria_id, salon.manicure_id, expiry_date=date.today() + timedelta(days=10), position=1
    )
    appointment_id = add_appointment(salon, [salon.manicure_id], client_id=salon.maria_id)

    _complete(client, appointment_id)

    assert _remaining(first) == 3
    assert _remaining(second) == 4


def test_expired_package_is_not_used(client, salon):
    instance_id = add_client_package(
        salon.maria_id, salon.manicure_id, expiry_date=date.today() - timedelta(days=1)
    )
    appointment_id = add_appointment(salon, [salon.manicure_id], client_id=salon.maria_id)

    data = _complete(client, appointment_id).get_json()

    assert data["completion"]["package_service_consumed"] is False
    assert _remaining(instance_id) == 4
    assert db.session.get(Client, salon.maria_id).stamps_earned == 1


def test_package_expiring_today_is_still_used(client, salon):
    instance_id = add_client_package(salon.maria_id, salon.manicure_id, expiry_date=date.today())
    appointment_id = add_appointment(salon, [salon.manicure_id], client_id=salon.maria_id)

    _complete(client, appointment_id)

    assert _remaining(instance_id) == 3


def test_last_credit_marks_the_package_used(client, salon):
    instance_id = add_client_package(salon.maria_id, salon.manicure_id, remaining=1)
    appointment_id = add_appointment(salon, [salon.manicure_id], client_id=salon.maria_id)

    data = _complete(client, appointment_id).get_json()

    assert db.session.get(ClientPackage, instance_id).status == "Utilizado"
    assert "Pacote Concluído!" in [n["title"] for n in data["notices"]]


def test_zero_total_records_no_income(client, salon):
    appointment_id = add_appointment(
        salon, [salon.pedicure_id], client_id=salon.maria_id, total_amount_cents=0
    )

    data = _complete(client, appointment_id).get_json()

    assert data["completion"]["transaction_id"] is None
    assert FinancialTransaction.query.count() == 0


def test_completed_appointment_cannot_change_status(client, salon):
    appointment_id = add_appointment(salon, [salon.pedicure_id], client_id=salon.maria_id)
    _complete(client, appointment_id)

    response = client.put(f"/appointments/{appointment_id}/status", json={"status": "Cancelado"})

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_transition"
    assert db.session.get(Appointment, appointment_id).status == "Concluído"


def test_repeating_the_completed_status_is_a_no_op(client, salon):
    appointment_id = add_appointment(salon, [salon.pedicure_id], client_id=salon.maria_id)
    _complete(client, appointment_id)

    response = _complete(client, appointment_id)

    assert response.status_code == 200
    assert FinancialTransaction.query.count() == 1
    assert db.session.get(Client, salon.maria_id).stamps_earned == 1


def test_invalid_status_400(client, salon):
    appointment_id = add_appointment(salon, [salon.pedicure_id])

    response = client.put(f"/appointments/{appointment_id}/status", json={"status": "Em andamento"})

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_status"


def test_status_of_unknown_appointment_404(client, salon):
    response = _complete(client, 999)

    assert response.status_code == 404
    assert response.get_json()["error"] == "not_found"


def test_confirming_has_no_side_effects(client, salon):
    appointment_id = add_appointment(salon, [salon.pedicure_id], client_id=salon.maria_id)

    response = client.put(f"/appointments/{appointment_id}/status", json={"status": "Confirmado"})

    assert response.status_code == 200
    assert "completion" not in response.get_json()
    assert FinancialTransaction.query.count() == 0
    assert db.session.get(Client, salon.maria_id).stamps_earned == 0
