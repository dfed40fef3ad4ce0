"""Financial recorder: one cash-flow entry per monetary event."""
from __future__ import annotations

from collections.abc import Iterable
from datetime import date

from .extensions import db
from .models import Appointment, Client, ClientPackage, FinancialTransaction, Package
from .money import format_brl
from .notices import NoticeLog

CATEGORY_PACKAGE_SALE = "Venda de Pacote"
CATEGORY_SERVICES = "Serviços Prestados"
CATEGORY_PACKAGE_REFUND = "Estorno de Pacote"

TRANSACTION_TYPES = ("income", "expense")


def record_transaction(
    *,
    description: str,
    amount_cents: int,
    on_date: date,
    category: str,
    type: str,
    payment_method: str | None = None,
    appointment_id: int | None = None,
    client_id: int | None = None,
) -> FinancialTransaction:
    """Append a transaction to the current session (committed by the caller)."""
    transaction = FinancialTransaction(
        description=description,
        amount_cents=amount_cents,
        date=on_date,
        category=category,
        type=type,
        payment_method=payment_method,
        appointment_id=appointment_id,
        client_id=client_id,
    )
    db.session.add(transaction)
    return transaction


def record_package_sale(
    client: Client, package: Package, sold_on: date, notices: NoticeLog
) -> FinancialTransaction:
    transaction = record_transaction(
        description=f"Venda Pacote: {package.name} - Cliente: {client.name}",
        amount_cents=package.price_cents,
        on_date=sold_on,
        category=CATEGORY_PACKAGE_SALE,
        type="income",
        client_id=client.client_id,
    )
    notices.success(
        "Receita Registrada",
        f"Entrada de {format_brl(package.price_cents)} registrada no caixa.",
    )
    return transaction


def record_appointment_income(
    appointment: Appointment, service_names: list[str], notices: NoticeLog
) -> FinancialTransaction | None:
    """Record the appointment's total as income; nothing when it is not positive."""
    amount_cents = appointment.total_amount_cents or 0
    if amount_cents <= 0:
        return None

    transaction = record_transaction(
        description=f"Receita Serviços: {appointment.client_name} - {', '.join(service_names)}",
        amount_cents=amount_cents,
        on_date=appointment.date,
        category=CATEGORY_SERVICES,
        type="income",
        payment_method=appointment.payment_method or "Não Pago",
        appointment_id=appointment.appointment_id,
        client_id=appointment.client_id,
    )
    notices.success(
        "Receita Registrada",
        f"{format_brl(amount_cents)} de {appointment.client_name} registrado no caixa.",
    )
    return transaction


def record_package_refund(
    client: Client, instance: ClientPackage, refunded_on: date, notices: NoticeLog
) -> FinancialTransaction | None:
    amount_cents = instance.paid_price_cents or 0
    if amount_cents <= 0:
        notices.error("Erro no Estorno", "Valor do pacote inválido para estorno financeiro.")
        return None

    transaction = record_transaction(
        description=f"Estorno Pacote: {instance.package_name} - Cliente: {client.name}",
        amount_cents=amount_cents,
        on_date=refunded_on,
        category=CATEGORY_PACKAGE_REFUND,
        type="expense",
        client_id=client.client_id,
    )
    notices.info(
        "Estorno Registrado",
        f"Estorno de {format_brl(amount_cents)} registrado no caixa.",
    )
    return transaction


def cash_flow_summary(transactions: Iterable[FinancialTransaction]) -> dict[str, int]:
    income = 0
    expense = 0
    for transaction in transactions:
        if transaction.type == "income":
            income += transaction.amount_cents
        else:
            expense += transaction.amount_cents
    return {
        "income_cents": income,
        "expense_cents": expense,
        "net_cents": income - expense,
    }
