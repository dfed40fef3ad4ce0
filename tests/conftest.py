"""pytest configuration: app, test client and a seeded salon."""
from __future__ import annotations

import sys
from dataclasses import dataclass
from datetime import date, time, timedelta
from pathlib import Path

import pytest

# Ensure the project root is available on sys.path so tests can import the app package.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from nailstudio import create_app  # noqa: E402
from nailstudio.config import TestingConfig  # noqa: E402
from nailstudio.extensions import db  # noqa: E402
from nailstudio.models import (Appointment, Client, ClientPackage,  # noqa: E402
                               ClientPackageService, Package, PackageItem, Professional,
                               Service)


@pytest.fixture
def app():
    flask_app = create_app(TestingConfig)
    with flask_app.app_context():
        db.create_all()
        yield flask_app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@dataclass
class Salon:
    maria_id: int
    manicure_id: int
    pedicure_id: int
    spa_id: int
    professional_id: int
    package_id: int


@pytest.fixture
def salon(app) -> Salon:
    """One client, three services, one professional and a manicure package."""
    maria = Client(name="Maria Silva", email="maria@example.com", phone="11987654321")
    manicure = Service(name="Manicure", category="Mãos", price_cents=3500, duration_minutes=45)
    pedicure = Service(name="Pedicure", category="Pés", price_cents=4500, duration_minutes=60)
    spa = Service(name="Spa dos Pés", category="Pés", price_cents=8000, duration_minutes=90)
    ana = Professional(name="Ana Paula", specialty="Manicure", commission_rate=10)
    db.session.add_all([maria, manicure, pedicure, spa, ana])
    db.session.flush()

    package = Package(
        name="Pacote Mãos",
        price_cents=12000,
        original_price_cents=14000,
        validity_days=90,
        status="Ativo",
        items=[PackageItem(service_id=manicure.service_id, quantity=4)],
    )
    db.session.add(package)
    db.session.commit()
    return Salon(
        maria_id=maria.client_id,
        manicure_id=manicure.service_id,
        pedicure_id=pedicure.service_id,
        spa_id=spa.service_id,
        professional_id=ana.professional_id,
        package_id=package.package_id,
    )


def add_client_package(
    client_id: int,
    service_id: int,
    *,
    remaining: int = 4,
    total: int = 4,
    expiry_date: date | None = None,
    position: int = 0,
    status: str = "Ativo",
    paid_price_cents: int = 12000,
    name: str = "Pacote Mãos",
) -> int:
    instance = ClientPackage(
        client_id=client_id,
        package_name=name,
        position=position,
        purchase_date=date.today() - timedelta(days=1),
        expiry_date=expiry_date if expiry_date is not None else date.today() + timedelta(days=30),
        paid_price_cents=paid_price_cents,
        status=status,
        services=[
            ClientPackageService(
                service_id=service_id, total_quantity=total, remaining_quantity=remaining
            )
        ],
    )
    db.session.add(instance)
    db.session.commit()
    return instance.client_package_id


def add_appointment(
    salon: Salon,
    service_ids: list[int],
    *,
    client_name: str = "Maria Silva",
    client_id: int | None = None,
    total_amount_cents: int = 3500,
    status: str = "Agendado",
    on_date: date | None = None,
    start: time = time(10, 0),
    end: time = time(11, 0),
) -> int:
    appointment = Appointment(
        client_id=client_id,
        client_name=client_name,
        professional_id=salon.professional_id,
        service_ids=service_ids,
        date=on_date or date.today(),
        start_time=start,
        end_time=end,
        status=status,
        total_amount_cents=total_amount_cents,
        payment_method="Pix",
    )
    db.session.add(appointment)
    db.session.commit()
    return appointment.appointment_id
