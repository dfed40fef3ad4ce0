"""Removing a sold package refunds it and takes back the purchase stamp."""
from __future__ import annotations

from conftest import add_client_package

from nailstudio.extensions import db
from nailstudio.models import Client, ClientPackage, FinancialTransaction


def _sell(client, salon) -> int:
    response = client.post(f"/clients/{salon.maria_id}/packages", json={"package_id": salon.package_id})
    return response.get_json()["client_package"]["id"]


def test_reversal_records_expense_and_removes_stamp(client, salon):
    instance_id = _sell(client, salon)

    response = client.delete(f"/clients/{salon.maria_id}/packages/{instance_id}")
    data = response.get_json()

    assert response.status_code == 200
    assert data["client"]["purchased_packages"] == []
    assert data["client"]["loyalty"]["stamps_earned"] == 0
    assert db.session.get(ClientPackage, instance_id) is None

    expense = FinancialTransaction.query.filter_by(type="expense").one()
    assert expense.category == "Estorno de Pacote"
    assert expense.amount_cents == 12000


def test_reversal_never_takes_stamps_below_zero(client, salon):
    instance_id = add_client_package(salon.maria_id, salon.manicure_id)

    response = client.delete(f"/clients/{salon.maria_id}/packages/{instance_id}")

    assert response.status_code == 200
    assert db.session.get(Client, salon.maria_id).stamps_earned == 0


def test_partially_used_package_is_refunded_in_full_with_warning(client, salon):
    instance_id = add_client_package(salon.maria_id, salon.manicure_id, remaining=1, total=4)

    response = client.delete(f"/clients/{salon.maria_id}/packages/{instance_id}")
    data = response.get_json()

    assert response.status_code == 200
    warnings = [n for n in data["notices"] if n["level"] == "warning"]
    assert warnings[0]["title"] == "Pacote Parcialmente Utilizado"
    assert FinancialTransaction.query.filter_by(type="expense").one().amount_cents == 12000


def test_free_package_removal_reports_refund_error(client, salon):
    instance_id = add_client_package(salon.maria_id, salon.manicure_id, paid_price_cents=0)

    response = client.delete(f"/clients/{salon.maria_id}/packages/{instance_id}")
    data = response.get_json()

    assert response.status_code == 200
    assert "Erro no Estorno" in [n["title"] for n in data["notices"]]
    assert FinancialTransaction.query.count() == 0


def test_package_of_another_client_404(client, salon):
    other = Client(name="Joana Souza")
    db.session.add(other)
    db.session.commit()
    instance_id = add_client_package(other.client_id, salon.manicure_id)

    response = client.delete(f"/clients/{salon.maria_id}/packages/{instance_id}")

    assert response.status_code == 404
    assert db.session.get(ClientPackage, instance_id) is not None
