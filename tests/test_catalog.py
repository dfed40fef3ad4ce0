"""Services, catalog packages and professionals."""
from __future__ import annotations

from conftest import add_appointment, add_client_package

from nailstudio.extensions import db
from nailstudio.models import ClientPackage, Package, PackageItem, Professional


def test_create_service_with_comma_price(client):
    response = client.post(
        "/services",
        json={"name": "Alongamento em Gel", "category": "Mãos", "price": "150,50", "duration_minutes": 120},
    )
    data = response.get_json()

    assert response.status_code == 201
    assert data["service"]["price"] == "150.50"
    assert data["service"]["price_cents"] == 15050


def test_create_service_validation(client):
    response = client.post("/services", json={"name": "", "price": "-5", "duration_minutes": 0})

    assert response.status_code == 400
    assert set(response.get_json()["fields"]) == {"name", "price", "duration_minutes"}


def test_update_and_list_services(client, salon):
    response = client.put(f"/services/{salon.manicure_id}", json={"price": "40"})
    assert response.get_json()["service"]["price"] == "40.00"

    names = [s["name"] for s in client.get("/services").get_json()["services"]]
    assert names == ["Manicure", "Pedicure", "Spa dos Pés"]


def test_delete_service_drops_it_from_packages(client, salon):
    response = client.delete(f"/services/{salon.manicure_id}")

    assert response.status_code == 200
    assert PackageItem.query.count() == 0


def test_update_package_keeps_sold_instances(client, salon):
    instance_id = add_client_package(salon.maria_id, salon.manicure_id)

    response = client.put(
        f"/packages/{salon.package_id}",
        json={"price": "99,90", "services": [{"service_id": salon.pedicure_id, "quantity": 2}]},
    )

    assert response.status_code == 200
    assert response.get_json()["package"]["price"] == "99.90"
    instance = db.session.get(ClientPackage, instance_id)
    assert instance.paid_price_cents == 12000
    assert instance.services[0].service_id == salon.manicure_id


def test_list_packages_by_status(client, salon):
    client.post("/packages", json={"name": "Pacote Antigo", "price": "10", "status": "Inativo",
                                   "services": [{"service_id": salon.spa_id, "quantity": 1}]})

    active = client.get("/packages?status=Ativo").get_json()["packages"]

    assert [p["name"] for p in active] == ["Pacote Mãos"]


def test_delete_package_detaches_sold_instances(client, salon):
    client.post(f"/clients/{salon.maria_id}/packages", json={"package_id": salon.package_id})

    response = client.delete(f"/packages/{salon.package_id}")

    assert response.status_code == 200
    assert db.session.get(Package, salon.package_id) is None
    instance = ClientPackage.query.one()
    assert instance.package_id is None
    assert instance.package_name == "Pacote Mãos"


def test_professional_crud(client):
    created = client.post(
        "/professionals", json={"name": "Carla Dias", "specialty": "Pedicure", "commission_rate": "12,5"}
    ).get_json()["professional"]
    assert created["commission_rate"] == 12.5

    response = client.put(f"/professionals/{created['id']}", json={"commission_rate": 150})
    assert response.status_code == 400

    assert client.delete(f"/professionals/{created['id']}").status_code == 200
    assert Professional.query.count() == 0


def test_professional_with_appointments_cannot_be_deleted(client, salon):
    add_appointment(salon, [salon.manicure_id])

    response = client.delete(f"/professionals/{salon.professional_id}")

    assert response.status_code == 409
    assert response.get_json()["error"] == "professional_has_appointments"
