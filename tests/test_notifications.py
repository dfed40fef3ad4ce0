"""Staff and client notifications."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

from nailstudio.extensions import db
from nailstudio.models import Client, ClientNotification, Notification


def _add(title: str, minutes_ago: int, is_read: bool = False) -> int:
    notification = Notification(
        title=title,
        description=title,
        notification_type="info",
        is_read=is_read,
        created_at=datetime.now(timezone.utc) - timedelta(minutes=minutes_ago),
    )
    db.session.add(notification)
    db.session.commit()
    return notification.notification_id


def test_list_newest_first_with_unread_count(client):
    _add("Antiga", 30, is_read=True)
    _add("Nova", 1)

    data = client.get("/notifications").get_json()

    assert [n["title"] for n in data["notifications"]] == ["Nova", "Antiga"]
    assert data["unread_count"] == 1
    assert data["pagination"]["total"] == 2


def test_unread_only_and_pagination(client):
    for index in range(3):
        _add(f"N{index}", index)

    data = client.get("/notifications?unread_only=true&limit=2&page=2").get_json()

    assert len(data["notifications"]) == 1
    assert data["pagination"]["pages"] == 2


def test_invalid_pagination_400(client):
    response = client.get("/notifications?page=abc")

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_parameters"


def test_create_and_mark_read(client):
    created = client.post(
        "/notifications", json={"title": "Lembrete", "description": "Fechar o caixa", "type": "warning"}
    ).get_json()["notification"]

    response = client.put(f"/notifications/{created['id']}/read")

    assert response.status_code == 200
    assert response.get_json()["notification"]["is_read"] is True


def test_mark_unknown_notification_404(client):
    response = client.put("/notifications/999/read")

    assert response.status_code == 404
    assert response.get_json()["error"] == "notification_not_found"


def test_read_all_then_clear_read(client):
    _add("A", 2)
    _add("B", 1)

    assert client.put("/notifications/read-all").get_json()["updated"] == 2
    assert client.delete("/notifications/read").get_json()["deleted"] == 2
    assert Notification.query.count() == 0


def test_client_notifications_and_broadcast(client, salon):
    db.session.add(Client(name="Joana Souza"))
    db.session.commit()

    response = client.post(
        f"/clients/{salon.maria_id}/notifications",
        json={"title": "Seu pacote", "description": "Restam 2 manicures", "type": "info"},
    )
    assert response.status_code == 201

    response = client.post(
        "/client-notifications/broadcast",
        json={"title": "Promoção", "description": "20% off nos pés", "type": "promo"},
    )
    assert response.get_json()["recipients"] == 2

    data = client.get(f"/clients/{salon.maria_id}/notifications").get_json()
    assert data["unread_count"] == 2
    assert ClientNotification.query.count() == 3

    notification_id = data["notifications"][0]["id"]
    assert client.put(f"/client-notifications/{notification_id}/read").status_code == 200


def test_client_notification_for_unknown_client_404(client):
    response = client.post(
        "/clients/999/notifications", json={"title": "Oi", "description": "Olá"}
    )

    assert response.status_code == 404
