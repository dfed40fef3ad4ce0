"""Cash-flow entries, filters and the monthly summary."""
from __future__ import annotations

from datetime import date

from nailstudio import finance
from nailstudio.models import FinancialTransaction


def test_manual_expense_accepts_comma_amount(client, salon):
    response = client.post(
        "/finance/transactions",
        json={
            "description": "Compra de esmaltes",
            "amount": "50,00",
            "category": "Material",
            "type": "expense",
            "payment_method": "Pix",
        },
    )
    data = response.get_json()

    assert response.status_code == 201
    assert data["transaction"]["amount"] == "50.00"
    assert data["transaction"]["date"] == date.today().isoformat()
    assert data["transaction"]["type"] == "expense"


def test_manual_entry_validation(client, salon):
    response = client.post(
        "/finance/transactions",
        json={"description": "x", "amount": "abc", "category": "", "type": "gift"},
    )
    fields = response.get_json()["fields"]

    assert response.status_code == 400
    assert {"description", "amount", "category", "type"} <= set(fields)
    assert FinancialTransaction.query.count() == 0


def test_listing_filters_and_summary(client, salon):
    client.post(f"/clients/{salon.maria_id}/packages", json={"package_id": salon.package_id})
    client.post(
        "/finance/transactions",
        json={"description": "Aluguel do mês", "amount": "50", "category": "Aluguel"},
    )

    everything = client.get(f"/finance/transactions?month={date.today():%Y-%m}").get_json()
    assert len(everything["transactions"]) == 2
    assert everything["summary"] == {"income": "120.00", "expense": "50.00", "net": "70.00"}

    incomes = client.get("/finance/transactions?type=income").get_json()
    assert [t["category"] for t in incomes["transactions"]] == ["Venda de Pacote"]


def test_monthly_summary_endpoint(client, salon):
    client.post(f"/clients/{salon.maria_id}/packages", json={"package_id": salon.package_id})

    data = client.get("/finance/summary").get_json()

    assert data["income"] == "120.00"
    assert data["net"] == "120.00"
    assert data["income_by_payment_method"] == {"Não Informado": "120.00"}


def test_bad_month_filter_400(client, salon):
    response = client.get("/finance/transactions?month=2026-13")

    assert response.status_code == 400
    assert "month" in response.get_json()["fields"]


def test_clear_all_requires_confirmation(client, salon):
    client.post(f"/clients/{salon.maria_id}/packages", json={"package_id": salon.package_id})

    assert client.delete("/finance/transactions", json={}).status_code == 400
    assert FinancialTransaction.query.count() == 1

    response = client.delete("/finance/transactions", json={"confirm": True})
    assert response.get_json() == {"status": "cleared", "deleted": 1}
    assert FinancialTransaction.query.count() == 0


def test_cash_flow_summary_math():
    entries = [
        FinancialTransaction(type="income", amount_cents=12000),
        FinancialTransaction(type="income", amount_cents=3500),
        FinancialTransaction(type="expense", amount_cents=20000),
    ]

    assert finance.cash_flow_summary(entries) == {
        "income_cents": 15500,
        "expense_cents": 20000,
        "net_cents": -4500,
    }
