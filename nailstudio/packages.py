"""Client package instances: selling, consuming credits, reversing and expiring."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta

from . import finance, loyalty
from .errors import LedgerError
from .extensions import db
from .models import Client, ClientPackage, ClientPackageService, Package
from .notices import NoticeLog

ORDER_SOONEST_EXPIRY = "soonest_expiry"
ORDER_PURCHASE = "purchase_order"
CONSUMPTION_ORDERS = (ORDER_SOONEST_EXPIRY, ORDER_PURCHASE)


def is_eligible(instance: ClientPackage, today: date) -> bool:
    """Active and not past its expiry date (the expiry day itself still counts)."""
    if instance.status != "Ativo":
        return False
    return instance.expiry_date is None or instance.expiry_date >= today


def consumption_order(instances: list[ClientPackage], order: str) -> list[ClientPackage]:
    """Return instances in the order they should pay for a service.

    ``soonest_expiry`` puts the instance closest to expiring first, instances
    without an expiry date last, and keeps purchase order between ties.
    ``purchase_order`` keeps the client's list order.
    """
    if order not in CONSUMPTION_ORDERS:
        raise ValueError(f"Unknown package consumption order: {order!r}")
    if order == ORDER_PURCHASE:
        return list(instances)
    return sorted(
        instances,
        key=lambda pkg: (pkg.expiry_date is None, pkg.expiry_date or date.max, pkg.position),
    )


def sell_package(client: Client, package: Package, today: date, notices: NoticeLog) -> ClientPackage:
    """Attach a new instance of ``package`` to the client, record income, award a stamp."""
    if package.status != "Ativo":
        raise LedgerError(
            f'O pacote "{package.name}" não está ativo.', error="package_inactive"
        )
    if not package.items:
        raise LedgerError(
            f'O pacote "{package.name}" não possui serviços.', error="package_empty"
        )

    next_position = max((pkg.position for pkg in client.purchased_packages), default=-1) + 1
    instance = ClientPackage(
        package_id=package.package_id,
        package_name=package.name,
        position=next_position,
        purchase_date=today,
        expiry_date=today + timedelta(days=package.validity_days or 0),
        paid_price_cents=package.price_cents,
        original_price_cents=package.original_price_cents,
        status="Ativo",
        services=[
            ClientPackageService(
                service_id=item.service_id,
                total_quantity=item.quantity,
                remaining_quantity=item.quantity,
            )
            for item in package.items
        ],
    )
    client.purchased_packages.append(instance)
    notices.success("Pacote Vendido!", f'Pacote "{package.name}" vendido para {client.name}.')

    finance.record_package_sale(client, package, today, notices)
    loyalty.award_stamp(client, notices, reason="Compra de pacote.")
    return instance


@dataclass
class Consumption:
    """What a completed appointment took from the client's packages."""

    debited: list[tuple[int, ClientPackage]] = field(default_factory=list)
    used_up: list[ClientPackage] = field(default_factory=list)

    @property
    def package_service_consumed(self) -> bool:
        return bool(self.debited)


def consume_credits(
    client: Client,
    service_ids: list[int],
    today: date,
    notices: NoticeLog,
    *,
    order: str = ORDER_SOONEST_EXPIRY,
    service_names: dict[int, str] | None = None,
) -> Consumption:
    """Debit at most one credit per service from the client's eligible packages."""
    service_names = service_names or {}
    consumption = Consumption()
    candidates = consumption_order(
        [pkg for pkg in client.purchased_packages if is_eligible(pkg, today)], order
    )

    for service_id in service_ids:
        for instance in candidates:
            if instance.status != "Ativo":
                continue
            item = next(
                (
                    entry
                    for entry in instance.services
                    if entry.service_id == service_id and entry.remaining_quantity > 0
                ),
                None,
            )
            if item is None:
                continue

            item.remaining_quantity -= 1
            consumption.debited.append((service_id, instance))
            service_name = service_names.get(service_id, "Serviço")
            notices.info(
                "Serviço de Pacote Utilizado",
                f'1x {service_name} debitado do pacote "{instance.package_name}". '
                f"Restam: {item.remaining_quantity}.",
            )
            if all(entry.remaining_quantity == 0 for entry in instance.services):
                instance.status = "Utilizado"
                consumption.used_up.append(instance)
                notices.success(
                    "Pacote Concluído!",
                    f'O pacote "{instance.package_name}" foi totalmente utilizado.',
                )
            break

    return consumption


def remove_client_package(
    client: Client, instance: ClientPackage, today: date, notices: NoticeLog
) -> None:
    """Delete a sold instance, refund its paid price and take back the sale stamp."""
    if instance.is_partially_used():
        notices.warning(
            "Pacote Parcialmente Utilizado",
            f'O pacote "{instance.package_name}" já teve serviços utilizados; '
            "o estorno é do valor integral pago.",
        )

    client.purchased_packages.remove(instance)
    db.session.delete(instance)
    notices.info(
        "Pacote Removido do Cliente",
        f'Pacote "{instance.package_name}" removido de {client.name}.',
    )

    finance.record_package_refund(client, instance, today, notices)
    loyalty.remove_stamp(client, notices)


def uncovered_services(client: Client, service_ids: list[int], today: date) -> list[int]:
    """Services from ``service_ids`` that none of the client's eligible packages cover."""
    missing = []
    eligible = [pkg for pkg in client.purchased_packages if is_eligible(pkg, today)]
    for service_id in service_ids:
        covered = any(
            entry.service_id == service_id and entry.remaining_quantity > 0
            for pkg in eligible
            for entry in pkg.services
        )
        if not covered:
            missing.append(service_id)
    return missing


def expire_overdue(today: date) -> int:
    """Flip active instances past their expiry date to ``Expirado``."""
    overdue = ClientPackage.query.filter(
        ClientPackage.status == "Ativo",
        ClientPackage.expiry_date.isnot(None),
        ClientPackage.expiry_date < today,
    ).all()
    for instance in overdue:
        instance.status = "Expirado"
    return len(overdue)
