"""Side effects of an appointment being marked as completed."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from flask import current_app
from sqlalchemy import func

from . import finance, loyalty, packages
from .extensions import db
from .models import Appointment, Client, FinancialTransaction, Service
from .notices import NoticeLog


def find_client_by_name(name: str) -> Client | None:
    """Case-insensitive exact match on the trimmed name; first registered client wins."""
    wanted = (name or "").strip().lower()
    if not wanted:
        return None
    return (
        Client.query.filter(func.lower(func.trim(Client.name)) == wanted)
        .order_by(Client.client_id)
        .first()
    )


def resolve_client(appointment: Appointment) -> Client | None:
    if appointment.client_id is not None:
        client = db.session.get(Client, appointment.client_id)
        if client is not None:
            return client
    return find_client_by_name(appointment.client_name)


def service_names_for(service_ids: list[int]) -> dict[int, str]:
    if not service_ids:
        return {}
    services = Service.query.filter(Service.service_id.in_(service_ids)).all()
    return {service.service_id: service.name for service in services}


@dataclass
class CompletionResult:
    client: Client | None
    consumption: packages.Consumption
    stamp_awarded: bool
    transaction: FinancialTransaction | None

    def to_dict(self) -> dict[str, object]:
        return {
            "client_id": self.client.client_id if self.client else None,
            "package_service_consumed": self.consumption.package_service_consumed,
            "debited_service_ids": [service_id for service_id, _ in self.consumption.debited],
            "stamp_awarded": self.stamp_awarded,
            "transaction_id": self.transaction.transaction_id if self.transaction else None,
        }


def complete_appointment(appointment: Appointment, today: date, notices: NoticeLog) -> CompletionResult:
    """Consume package credits or award a stamp, then record the income.

    Runs once, when the appointment enters ``Concluído``. All changes are
    staged on the session; the caller commits them together with the status.
    """
    if appointment.appointment_id is None:
        db.session.flush()
    service_ids = list(appointment.service_ids or [])
    names = service_names_for(service_ids)
    client = resolve_client(appointment)
    consumption = packages.Consumption()
    stamp_awarded = False

    if client is None:
        notices.warning(
            "Atenção: Cliente não Encontrado",
            f'O cliente "{appointment.client_name}" não foi encontrado. '
            "Selos e pacotes não puderam ser processados.",
        )
    else:
        if appointment.client_id is None:
            appointment.client_id = client.client_id
        consumption = packages.consume_credits(
            client,
            service_ids,
            today,
            notices,
            order=current_app.config.get("PACKAGE_CONSUMPTION_ORDER", packages.ORDER_SOONEST_EXPIRY),
            service_names=names,
        )
        if consumption.package_service_consumed:
            notices.info(
                "Serviço de Pacote",
                f"Serviço consumido do pacote de {client.name}. Selo não adicionado.",
            )
        else:
            loyalty.award_stamp(client, notices)
            stamp_awarded = True

    transaction = finance.record_appointment_income(
        appointment, [names.get(service_id, "Serviço") for service_id in service_ids], notices
    )
    db.session.flush()
    current_app.logger.info(
        "Appointment %s completed: client=%s packages_debited=%d stamp=%s income=%s",
        appointment.appointment_id,
        client.client_id if client else None,
        len(consumption.debited),
        stamp_awarded,
        transaction.amount_cents if transaction else 0,
    )
    return CompletionResult(client, consumption, stamp_awarded, transaction)
