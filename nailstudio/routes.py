"""HTTP routes for the NailStudio backend."""
from __future__ import annotations

import re
from datetime import date, timedelta

from flask import Blueprint, Flask, current_app, jsonify, request
from sqlalchemy import or_, text
from sqlalchemy.exc import SQLAlchemyError

from . import loyalty, packages
from .completion import complete_appointment, find_client_by_name, service_names_for
from .errors import InvalidTransition, LedgerError, NotFound, ValidationFailed
from .extensions import db
from .models import (APPOINTMENT_STATUSES, PACKAGE_STATUSES, PAYMENT_METHODS, STATUS_COMPLETED,
                     TERMINAL_APPOINTMENT_STATUSES, Appointment, Client, ClientNotification,
                     ClientPackage, Conversation, FinancialTransaction, Package, PackageItem,
                     Professional, Service)
from .notices import NoticeLog
from .scheduling import FREQUENCIES, overlaps, recurring_dates
from .validation import (choice, hhmm, iso_date, json_body, money_cents, non_negative_int,
                         optional_text, query_date, raise_if_errors, required_text)

bp = Blueprint("api", __name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _today() -> date:
    return date.today()


def _get_or_404(model, object_id: int, label: str):
    instance = db.session.get(model, object_id)
    if instance is None:
        raise NotFound(f"{label} not found")
    return instance


def _database_error(exc: SQLAlchemyError, message: str):
    db.session.rollback()
    current_app.logger.exception(message, exc_info=exc)
    return jsonify({"error": "database_error"}), 500


def _client_payload(client: Client) -> dict[str, object]:
    data = client.to_dict()
    data["loyalty"] = loyalty.summarize_client(client).to_dict()
    return data


@bp.get("/health")
def health_check() -> tuple[dict[str, str], int]:
    """
    Expose a simple uptime check endpoint.
    ---
    tags:
      - Health
    responses:
      200:
        description: Service is healthy and running.
    """
    return jsonify({"status": "ok"}), 200


@bp.get("/db-health")
def database_health() -> tuple[dict[str, str], int]:
    """Check connectivity to the configured database."""
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        current_app.logger.exception("Database connectivity check failed", exc_info=exc)
        return jsonify({"database": "unavailable"}), 500

    return jsonify({"database": "ok"}), 200


# ============================================================================
# Clients
# ============================================================================

def _client_fields(data: dict, errors: dict[str, str], *, partial: bool) -> dict[str, object]:
    fields: dict[str, object] = {}
    if not partial or "name" in data:
        fields["name"] = required_text(data, "name", errors, min_length=3)
    if not partial or "email" in data:
        email = (optional_text(data, "email") or "").lower()
        if email and not EMAIL_PATTERN.match(email):
            errors["email"] = "Invalid e-mail format"
        fields["email"] = email
    if not partial or "phone" in data:
        phone = optional_text(data, "phone") or ""
        if phone and len(re.sub(r"\D", "", phone)) < 10:
            errors["phone"] = "Phone must have at least 10 digits"
        fields["phone"] = phone
    for key in ("stamps_earned", "mimos_redeemed"):
        if key in data:
            fields[key] = non_negative_int(data, key, errors, default=0)
    return fields


@bp.get("/clients")
def list_clients() -> tuple[dict[str, object], int]:
    """List clients, optionally filtered by name or e-mail.
    ---
    tags:
      - Clients
    parameters:
      - name: query
        in: query
        type: string
        description: Case-insensitive match on name or e-mail
    responses:
      200:
        description: Clients with their loyalty summary
      500:
        description: Database error
    """
    try:
        query = request.args.get("query", "").strip()
        client_query = Client.query
        if query:
            client_query = client_query.filter(
                or_(Client.name.ilike(f"%{query}%"), Client.email.ilike(f"%{query}%"))
            )
        clients = client_query.order_by(Client.name).all()
        return jsonify({"clients": [_client_payload(c) for c in clients]}), 200
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to list clients")


@bp.post("/clients")
def create_client() -> tuple[dict[str, object], int]:
    data = json_body()
    errors: dict[str, str] = {}
    fields = _client_fields(data, errors, partial=False)
    raise_if_errors(errors)

    stamps = fields.pop("stamps_earned", 0)
    mimos = fields.pop("mimos_redeemed", 0)
    if mimos > loyalty.mimos_earned_total(stamps):
        raise ValidationFailed({"mimos_redeemed": "Cannot exceed the mimos earned"})

    try:
        client = Client(stamps_earned=stamps, mimos_redeemed=mimos, **fields)
        db.session.add(client)
        db.session.commit()
        current_app.logger.info("Client %s registered", client.client_id)
        return jsonify({"client": _client_payload(client)}), 201
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to create client")


@bp.get("/clients/<int:client_id>")
def get_client(client_id: int) -> tuple[dict[str, object], int]:
    client = _get_or_404(Client, client_id, "Client")
    return jsonify({"client": _client_payload(client)}), 200


@bp.put("/clients/<int:client_id>")
def update_client(client_id: int) -> tuple[dict[str, object], int]:
    """Update a client's details.

    Staff may also correct the stamp and mimo counters directly; the
    redeemed count can never exceed the mimos the stamps have earned.
    """
    client = _get_or_404(Client, client_id, "Client")
    data = json_body()
    errors: dict[str, str] = {}
    fields = _client_fields(data, errors, partial=True)
    raise_if_errors(errors)

    stamps = fields.get("stamps_earned", client.stamps_earned or 0)
    mimos = fields.get("mimos_redeemed", client.mimos_redeemed or 0)
    if mimos > loyalty.mimos_earned_total(stamps):
        raise ValidationFailed({"mimos_redeemed": "Cannot exceed the mimos earned"})

    try:
        old_name = client.name
        for key, value in fields.items():
            setattr(client, key, value)
        if client.name != old_name:
            Conversation.query.filter_by(conversation_id=client.client_id).update(
                {"client_name": client.name}
            )
        db.session.commit()
        return jsonify({"client": _client_payload(client)}), 200
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to update client")


@bp.delete("/clients/<int:client_id>")
def delete_client(client_id: int) -> tuple[dict[str, str], int]:
    """Remove a client and the records only they own.

    Appointments and cash-flow entries stay, unlinked from the client id.
    """
    client = _get_or_404(Client, client_id, "Client")
    try:
        Appointment.query.filter_by(client_id=client_id).update({"client_id": None})
        FinancialTransaction.query.filter_by(client_id=client_id).update({"client_id": None})
        ClientNotification.query.filter_by(client_id=client_id).delete()
        conversation = db.session.get(Conversation, client_id)
        if conversation is not None:
            db.session.delete(conversation)
        db.session.delete(client)
        db.session.commit()
        current_app.logger.info("Client %s removed", client_id)
        return jsonify({"status": "deleted"}), 200
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to delete client")


@bp.get("/clients/<int:client_id>/appointments")
def get_client_appointments(client_id: int) -> tuple[dict[str, object], int]:
    """Appointment history for a client, newest first."""
    client = _get_or_404(Client, client_id, "Client")
    try:
        wanted = client.name.strip().casefold()
        candidates = Appointment.query.filter(
            or_(Appointment.client_id == client_id, Appointment.client_id.is_(None))
        ).all()
        history = [
            apt
            for apt in candidates
            if apt.client_id == client_id or apt.client_name.strip().casefold() == wanted
        ]
        history.sort(key=lambda apt: (apt.date, apt.start_time), reverse=True)
        return jsonify({"appointments": [apt.to_dict() for apt in history]}), 200
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to fetch client appointments")


# ============================================================================
# Loyalty
# ============================================================================

@bp.get("/loyalty")
def list_loyalty_cards() -> tuple[dict[str, object], int]:
    try:
        query = request.args.get("query", "").strip()
        client_query = Client.query
        if query:
            client_query = client_query.filter(Client.name.ilike(f"%{query}%"))
        cards = [
            {"client": c.to_dict_basic(), "loyalty": loyalty.summarize_client(c).to_dict()}
            for c in client_query.order_by(Client.name).all()
        ]
        return jsonify({"cards": cards}), 200
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to list loyalty cards")


@bp.get("/clients/<int:client_id>/loyalty")
def get_client_loyalty(client_id: int) -> tuple[dict[str, object], int]:
    client = _get_or_404(Client, client_id, "Client")
    return jsonify({"client_id": client_id, "loyalty": loyalty.summarize_client(client).to_dict()}), 200


def _loyalty_response(client: Client, notices: NoticeLog):
    return jsonify(
        {
            "client_id": client.client_id,
            "loyalty": loyalty.summarize_client(client).to_dict(),
            "notices": notices.to_list(),
        }
    )


@bp.post("/clients/<int:client_id>/loyalty/stamps")
def award_client_stamp(client_id: int) -> tuple[dict[str, object], int]:
    client = _get_or_404(Client, client_id, "Client")
    notices = NoticeLog()
    try:
        loyalty.award_stamp(client, notices)
        db.session.commit()
        return _loyalty_response(client, notices), 200
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to award stamp")


@bp.post("/clients/<int:client_id>/loyalty/redeem")
def redeem_client_mimo(client_id: int) -> tuple[dict[str, object], int]:
    """Redeem one mimo.
    ---
    tags:
      - Loyalty
    responses:
      200:
        description: Mimo redeemed
      404:
        description: Client not found
      409:
        description: No mimos available
    """
    client = _get_or_404(Client, client_id, "Client")
    notices = NoticeLog()
    try:
        loyalty.redeem_mimo(client, notices)
        db.session.commit()
        return _loyalty_response(client, notices), 200
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to redeem mimo")


@bp.post("/clients/<int:client_id>/loyalty/reset")
def reset_client_card(client_id: int) -> tuple[dict[str, object], int]:
    client = _get_or_404(Client, client_id, "Client")
    notices = NoticeLog()
    try:
        loyalty.reset_card(client, notices)
        db.session.commit()
        return _loyalty_response(client, notices), 200
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to reset loyalty card")


# ============================================================================
# Client packages
# ============================================================================

@bp.post("/clients/<int:client_id>/packages")
def sell_client_package(client_id: int) -> tuple[dict[str, object], int]:
    """Sell a catalog package to a client.

    Records the income and awards one stamp for the purchase, all in one
    commit.
    ---
    tags:
      - Packages
    parameters:
      - in: body
        name: body
        required: true
        schema:
          properties:
            package_id:
              type: integer
    responses:
      201:
        description: Package sold
      400:
        description: Invalid input or inactive package
      404:
        description: Client or package not found
    """
    client = _get_or_404(Client, client_id, "Client")
    data = json_body()
    errors: dict[str, str] = {}
    package_id = non_negative_int(data, "package_id", errors, required=True)
    raise_if_errors(errors)
    package = _get_or_404(Package, package_id, "Package")

    notices = NoticeLog()
    try:
        instance = packages.sell_package(client, package, _today(), notices)
        db.session.commit()
        return (
            jsonify(
                {
                    "client_package": instance.to_dict(),
                    "client": _client_payload(client),
                    "notices": notices.to_list(),
                }
            ),
            201,
        )
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to sell package")


@bp.delete("/clients/<int:client_id>/packages/<int:client_package_id>")
def delete_client_package(client_id: int, client_package_id: int) -> tuple[dict[str, object], int]:
    """Remove a sold package, refund its paid price and take back one stamp."""
    client = _get_or_404(Client, client_id, "Client")
    instance = db.session.get(ClientPackage, client_package_id)
    if instance is None or instance.client_id != client.client_id:
        raise NotFound("Client package not found")

    notices = NoticeLog()
    try:
        packages.remove_client_package(client, instance, _today(), notices)
        db.session.commit()
        return jsonify({"client": _client_payload(client), "notices": notices.to_list()}), 200
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to delete client package")


# ============================================================================
# Services
# ============================================================================

def _service_fields(data: dict, errors: dict[str, str], *, partial: bool) -> dict[str, object]:
    fields: dict[str, object] = {}
    if not partial or "name" in data:
        fields["name"] = required_text(data, "name", errors)
    if not partial or "price" in data:
        fields["price_cents"] = money_cents(data, "price", errors, required=True)
    if not partial or "duration_minutes" in data:
        duration = non_negative_int(data, "duration_minutes", errors, required=True)
        if duration == 0:
            errors["duration_minutes"] = "duration_minutes must be positive"
        fields["duration_minutes"] = duration
    if not partial or "category" in data:
        fields["category"] = optional_text(data, "category")
    if not partial or "description" in data:
        fields["description"] = optional_text(data, "description", default=None)
    return fields


@bp.get("/services")
def list_services() -> tuple[dict[str, list[dict[str, object]]], int]:
    try:
        services = Service.query.order_by(Service.category, Service.name).all()
        return jsonify({"services": [s.to_dict() for s in services]}), 200
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to list services")


@bp.post("/services")
def create_service() -> tuple[dict[str, object], int]:
    data = json_body()
    errors: dict[str, str] = {}
    fields = _service_fields(data, errors, partial=False)
    raise_if_errors(errors)
    try:
        service = Service(**fields)
        db.session.add(service)
        db.session.commit()
        return jsonify({"service": service.to_dict()}), 201
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to create service")


@bp.put("/services/<int:service_id>")
def update_service(service_id: int) -> tuple[dict[str, object], int]:
    service = _get_or_404(Service, service_id, "Service")
    data = json_body()
    errors: dict[str, str] = {}
    fields = _service_fields(data, errors, partial=True)
    raise_if_errors(errors)
    try:
        for key, value in fields.items():
            setattr(service, key, value)
        db.session.commit()
        return jsonify({"service": service.to_dict()}), 200
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to update service")


@bp.delete("/services/<int:service_id>")
def delete_service(service_id: int) -> tuple[dict[str, str], int]:
    service = _get_or_404(Service, service_id, "Service")
    try:
        PackageItem.query.filter_by(service_id=service_id).delete()
        db.session.delete(service)
        db.session.commit()
        return jsonify({"status": "deleted"}), 200
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to delete service")


# ============================================================================
# Package catalog
# ============================================================================

def _package_items(data: dict, errors: dict[str, str]) -> list[PackageItem]:
    raw_items = data.get("services")
    if not isinstance(raw_items, list) or not raw_items:
        errors["services"] = "At least one service is required"
        return []

    items = []
    for index, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            errors[f"services[{index}]"] = "Each entry needs service_id and quantity"
            continue
        item_errors: dict[str, str] = {}
        service_id = non_negative_int(raw, "service_id", item_errors, required=True)
        quantity = non_negative_int(raw, "quantity", item_errors, required=True)
        if quantity == 0:
            item_errors["quantity"] = "quantity must be positive"
        if service_id is not None and db.session.get(Service, service_id) is None:
            item_errors["service_id"] = "Unknown service"
        for key, message in item_errors.items():
            errors[f"services[{index}].{key}"] = message
        if not item_errors:
            items.append(PackageItem(service_id=service_id, quantity=quantity))
    return items


def _package_fields(data: dict, errors: dict[str, str], *, partial: bool) -> dict[str, object]:
    fields: dict[str, object] = {}
    if not partial or "name" in data:
        fields["name"] = required_text(data, "name", errors, min_length=3)
    if not partial or "short_description" in data:
        fields["short_description"] = optional_text(data, "short_description", default=None)
    if not partial or "price" in data:
        fields["price_cents"] = money_cents(data, "price", errors, required=True)
    if not partial or "original_price" in data:
        fields["original_price_cents"] = money_cents(data, "original_price", errors)
    if not partial or "validity_days" in data:
        fields["validity_days"] = non_negative_int(
            data,
            "validity_days",
            errors,
            default=current_app.config.get("DEFAULT_PACKAGE_VALIDITY_DAYS", 90),
        )
    if not partial or "status" in data:
        fields["status"] = choice(data, "status", PACKAGE_STATUSES, errors, default="Ativo")
    if not partial or "theme_color" in data:
        fields["theme_color"] = choice(data, "theme_color", ("primary", "accent"), errors, default="primary")
    if not partial or "services" in data:
        fields["items"] = _package_items(data, errors)
    return fields


@bp.get("/packages")
def list_packages() -> tuple[dict[str, object], int]:
    try:
        package_query = Package.query
        status = request.args.get("status", "").strip()
        if status:
            package_query = package_query.filter(Package.status == status)
        return jsonify({"packages": [p.to_dict() for p in package_query.order_by(Package.name).all()]}), 200
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to list packages")


@bp.post("/packages")
def create_package() -> tuple[dict[str, object], int]:
    data = json_body()
    errors: dict[str, str] = {}
    fields = _package_fields(data, errors, partial=False)
    raise_if_errors(errors)
    try:
        package = Package(**fields)
        db.session.add(package)
        db.session.commit()
        return jsonify({"package": package.to_dict()}), 201
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to create package")


@bp.put("/packages/<int:package_id>")
def update_package(package_id: int) -> tuple[dict[str, object], int]:
    """Update a catalog package. Instances already sold keep their own snapshot."""
    package = _get_or_404(Package, package_id, "Package")
    data = json_body()
    errors: dict[str, str] = {}
    fields = _package_fields(data, errors, partial=True)
    raise_if_errors(errors)
    try:
        for key, value in fields.items():
            setattr(package, key, value)
        db.session.commit()
        return jsonify({"package": package.to_dict()}), 200
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to update package")


@bp.delete("/packages/<int:package_id>")
def delete_package(package_id: int) -> tuple[dict[str, str], int]:
    package = _get_or_404(Package, package_id, "Package")
    try:
        ClientPackage.query.filter_by(package_id=package_id).update({"package_id": None})
        db.session.delete(package)
        db.session.commit()
        return jsonify({"status": "deleted"}), 200
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to delete package")


# ============================================================================
# Professionals
# ============================================================================

def _professional_fields(data: dict, errors: dict[str, str], *, partial: bool) -> dict[str, object]:
    fields: dict[str, object] = {}
    if not partial or "name" in data:
        fields["name"] = required_text(data, "name", errors, min_length=3)
    if not partial or "specialty" in data:
        fields["specialty"] = optional_text(data, "specialty")
    if not partial or "avatar_url" in data:
        fields["avatar_url"] = optional_text(data, "avatar_url", default=None)
    if not partial or "commission_rate" in data:
        rate = data.get("commission_rate")
        if rate in (None, ""):
            fields["commission_rate"] = None
        else:
            try:
                rate = float(str(rate).replace(",", "."))
            except ValueError:
                rate = -1
            if not 0 <= rate <= 100:
                errors["commission_rate"] = "commission_rate must be a percentage between 0 and 100"
            fields["commission_rate"] = rate
    return fields


@bp.get("/professionals")
def list_professionals() -> tuple[dict[str, object], int]:
    try:
        professionals = Professional.query.order_by(Professional.name).all()
        return jsonify({"professionals": [p.to_dict() for p in professionals]}), 200
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to list professionals")


@bp.post("/professionals")
def create_professional() -> tuple[dict[str, object], int]:
    data = json_body()
    errors: dict[str, str] = {}
    fields = _professional_fields(data, errors, partial=False)
    raise_if_errors(errors)
    try:
        professional = Professional(**fields)
        db.session.add(professional)
        db.session.commit()
        return jsonify({"professional": professional.to_dict()}), 201
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to create professional")


@bp.get("/professionals/<int:professional_id>")
def get_professional(professional_id: int) -> tuple[dict[str, object], int]:
    professional = _get_or_404(Professional, professional_id, "Professional")
    return jsonify({"professional": professional.to_dict()}), 200


@bp.put("/professionals/<int:professional_id>")
def update_professional(professional_id: int) -> tuple[dict[str, object], int]:
    professional = _get_or_404(Professional, professional_id, "Professional")
    data = json_body()
    errors: dict[str, str] = {}
    fields = _professional_fields(data, errors, partial=True)
    raise_if_errors(errors)
    try:
        for key, value in fields.items():
            setattr(professional, key, value)
        db.session.commit()
        return jsonify({"professional": professional.to_dict()}), 200
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to update professional")


@bp.delete("/professionals/<int:professional_id>")
def delete_professional(professional_id: int) -> tuple[dict[str, str], int]:
    professional = _get_or_404(Professional, professional_id, "Professional")
    if Appointment.query.filter_by(professional_id=professional_id).first() is not None:
        raise LedgerError(
            "Professional still has appointments on the agenda",
            error="professional_has_appointments",
            status_code=409,
        )
    try:
        db.session.delete(professional)
        db.session.commit()
        return jsonify({"status": "deleted"}), 200
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to delete professional")


# ============================================================================
# Appointments
# ============================================================================

def _service_id_list(data: dict, errors: dict[str, str]) -> list[int]:
    raw = data.get("service_ids")
    if not isinstance(raw, list) or not raw:
        errors["service_ids"] = "Select at least one service"
        return []
    try:
        service_ids = [int(value) for value in raw]
    except (TypeError, ValueError):
        errors["service_ids"] = "service_ids must be a list of integers"
        return []
    known = {s.service_id for s in Service.query.filter(Service.service_id.in_(service_ids)).all()}
    unknown = [sid for sid in service_ids if sid not in known]
    if unknown:
        errors["service_ids"] = f"Unknown services: {', '.join(str(sid) for sid in unknown)}"
    return service_ids


def _services_total_cents(service_ids: list[int]) -> int:
    services = {s.service_id: s for s in Service.query.filter(Service.service_id.in_(service_ids)).all()}
    return sum(services[sid].price_cents for sid in service_ids if sid in services)


def _appointment_fields(data: dict, errors: dict[str, str], *, partial: bool) -> dict[str, object]:
    fields: dict[str, object] = {}
    if not partial or "client_id" in data or "client_name" in data:
        client = None
        client_id = non_negative_int(data, "client_id", errors)
        if client_id is not None:
            client = db.session.get(Client, client_id)
            if client is None:
                errors["client_id"] = "Unknown client"
        client_name = optional_text(data, "client_name") or (client.name if client else "")
        if not client_name:
            errors["client_name"] = "client_name or client_id is required"
        elif client is None:
            client = find_client_by_name(client_name)
        fields["client_name"] = client_name
        fields["client_id"] = client.client_id if client else None
    if not partial or "service_ids" in data:
        fields["service_ids"] = _service_id_list(data, errors)
    if not partial or "professional_id" in data:
        professional_id = non_negative_int(data, "professional_id", errors, required=True)
        if professional_id is not None and db.session.get(Professional, professional_id) is None:
            errors["professional_id"] = "Unknown professional"
        fields["professional_id"] = professional_id
    if not partial or "date" in data:
        fields["date"] = iso_date(data, "date", errors)
    if not partial or "start_time" in data:
        fields["start_time"] = hhmm(data, "start_time", errors)
    if not partial or "end_time" in data:
        fields["end_time"] = hhmm(data, "end_time", errors)
    if not partial or "status" in data:
        fields["status"] = choice(data, "status", APPOINTMENT_STATUSES, errors, default="Agendado")
    if not partial or "payment_method" in data:
        fields["payment_method"] = choice(data, "payment_method", PAYMENT_METHODS, errors, default="Não Pago")
    for key in ("discount", "extra_amount", "total_amount"):
        if not partial or key in data:
            fields[f"{key}_cents"] = money_cents(data, key, errors, default=None if key == "total_amount" else 0)
    for key in ("discount_justification", "extra_amount_justification"):
        if not partial or key in data:
            fields[key] = optional_text(data, key)
    return fields


def _check_times(appointment_or_fields, errors: dict[str, str]) -> None:
    start = appointment_or_fields.get("start_time")
    end = appointment_or_fields.get("end_time")
    if start is not None and end is not None and end <= start:
        errors["end_time"] = "end_time must be after start_time"


def _warn_on_overlap(appointment: Appointment, notices: NoticeLog) -> None:
    same_day = Appointment.query.filter(
        Appointment.professional_id == appointment.professional_id,
        Appointment.date == appointment.date,
        Appointment.status != "Cancelado",
    ).all()
    for other in same_day:
        if other is appointment or other.appointment_id == appointment.appointment_id:
            continue
        if overlaps(appointment.start_time, appointment.end_time, other.start_time, other.end_time):
            notices.warning(
                "Horário Ocupado",
                f"O profissional já tem um agendamento das {other.start_time:%H:%M} "
                f"às {other.end_time:%H:%M} neste dia.",
            )
            return


def _appointment_response(appointment: Appointment, notices: NoticeLog, completion=None):
    payload = {"appointment": appointment.to_dict(), "notices": notices.to_list()}
    if completion is not None:
        payload["completion"] = completion.to_dict()
    return payload


@bp.get("/appointments")
def list_appointments() -> tuple[dict[str, list[dict[str, object]]], int]:
    """List appointments with optional filters.
    ---
    tags:
      - Appointments
    parameters:
      - name: start
        in: query
        type: string
        description: First date (YYYY-MM-DD), inclusive
      - name: end
        in: query
        type: string
        description: Last date (YYYY-MM-DD), inclusive
      - name: professional_id
        in: query
        type: integer
      - name: status
        in: query
        type: string
      - name: client_id
        in: query
        type: integer
    responses:
      200:
        description: Appointments ordered by date and start time
    """
    start = query_date("start")
    end = query_date("end")
    try:
        appointment_query = Appointment.query
        if start:
            appointment_query = appointment_query.filter(Appointment.date >= start)
        if end:
            appointment_query = appointment_query.filter(Appointment.date <= end)
        professional_id = request.args.get("professional_id", type=int)
        if professional_id:
            appointment_query = appointment_query.filter(Appointment.professional_id == professional_id)
        client_id = request.args.get("client_id", type=int)
        if client_id:
            appointment_query = appointment_query.filter(Appointment.client_id == client_id)
        status = request.args.get("status", "").strip()
        if status:
            appointment_query = appointment_query.filter(Appointment.status == status)
        appointments = appointment_query.order_by(Appointment.date, Appointment.start_time).all()
        return jsonify({"appointments": [a.to_dict() for a in appointments]}), 200
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to list appointments")


@bp.get("/appointments/day")
def get_day_agenda() -> tuple[dict[str, object], int]:
    day = query_date("date") or _today()
    try:
        appointment_query = Appointment.query.filter(Appointment.date == day)
        professional_id = request.args.get("professional_id", type=int)
        if professional_id:
            appointment_query = appointment_query.filter(Appointment.professional_id == professional_id)
        appointments = appointment_query.order_by(Appointment.start_time).all()
        return (
            jsonify(
                {
                    "date": day.isoformat(),
                    "appointments": [a.to_dict() for a in appointments],
                    "total": len(appointments),
                    "confirmed": sum(1 for a in appointments if a.status == "Confirmado"),
                }
            ),
            200,
        )
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to fetch day agenda")


@bp.get("/appointments/package-alerts")
def get_package_alerts() -> tuple[dict[str, object], int]:
    """Services about to be booked that the client could have bought a package for.

    A service is flagged when some active catalog package includes it but none
    of the client's usable package instances has a credit left for it.
    """
    errors: dict[str, str] = {}
    try:
        service_ids = [int(v) for v in request.args.get("service_ids", "").split(",") if v.strip()]
    except ValueError:
        errors["service_ids"] = "service_ids must be a comma separated list of integers"
        service_ids = []
    raise_if_errors(errors)

    client_id = request.args.get("client_id", type=int)
    client = db.session.get(Client, client_id) if client_id else None
    if client is None:
        client = find_client_by_name(request.args.get("client_name", ""))
    if client is None or not service_ids:
        return jsonify({"alerts": []}), 200

    try:
        sold_in_packages = {
            item.service_id
            for item in PackageItem.query.join(Package).filter(Package.status == "Ativo").all()
        }
        names = service_names_for(service_ids)
        alerts = [
            {"service_id": sid, "service_name": names.get(sid, "Serviço")}
            for sid in packages.uncovered_services(client, service_ids, _today())
            if sid in sold_in_packages and sid in names
        ]
        return jsonify({"client_id": client.client_id, "alerts": alerts}), 200
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to compute package alerts")


@bp.post("/appointments")
def create_appointment() -> tuple[dict[str, object], int]:
    """Book an appointment.

    ``total_amount`` defaults to the sum of the service prices minus the
    discount plus the extra amount. Booking straight into ``Concluído`` runs
    the completion side effects.
    """
    data = json_body()
    errors: dict[str, str] = {}
    fields = _appointment_fields(data, errors, partial=False)
    _check_times(fields, errors)
    raise_if_errors(errors)

    if fields["total_amount_cents"] is None:
        fields["total_amount_cents"] = max(
            _services_total_cents(fields["service_ids"])
            - fields["discount_cents"]
            + fields["extra_amount_cents"],
            0,
        )

    notices = NoticeLog()
    try:
        appointment = Appointment(**fields)
        db.session.add(appointment)
        db.session.flush()
        _warn_on_overlap(appointment, notices)
        completion = None
        if appointment.status == STATUS_COMPLETED:
            completion = complete_appointment(appointment, _today(), notices)
        db.session.commit()
        return jsonify(_appointment_response(appointment, notices, completion)), 201
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to create appointment")


@bp.get("/appointments/<int:appointment_id>")
def get_appointment(appointment_id: int) -> tuple[dict[str, dict[str, object]], int]:
    appointment = _get_or_404(Appointment, appointment_id, "Appointment")
    return jsonify({"appointment": appointment.to_dict()}), 200


@bp.put("/appointments/<int:appointment_id>")
def update_appointment(appointment_id: int) -> tuple[dict[str, object], int]:
    appointment = _get_or_404(Appointment, appointment_id, "Appointment")
    if appointment.status in TERMINAL_APPOINTMENT_STATUSES:
        raise InvalidTransition(f"Cannot modify an appointment with status {appointment.status}")

    data = json_body()
    errors: dict[str, str] = {}
    fields = _appointment_fields(data, errors, partial=True)
    _check_times(
        {
            "start_time": fields.get("start_time", appointment.start_time),
            "end_time": fields.get("end_time", appointment.end_time),
        },
        errors,
    )
    raise_if_errors(errors)
    if fields.get("total_amount_cents", 0) is None:
        fields.pop("total_amount_cents")

    notices = NoticeLog()
    try:
        was_completed = appointment.status == STATUS_COMPLETED
        for key, value in fields.items():
            setattr(appointment, key, value)
        _warn_on_overlap(appointment, notices)
        completion = None
        if not was_completed and appointment.status == STATUS_COMPLETED:
            completion = complete_appointment(appointment, _today(), notices)
        db.session.commit()
        return jsonify(_appointment_response(appointment, notices, completion)), 200
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to update appointment")


@bp.put("/appointments/<int:appointment_id>/status")
def update_appointment_status(appointment_id: int) -> tuple[dict[str, object], int]:
    """Move an appointment through Agendado -> Confirmado -> Concluído / Cancelado.

    Entering ``Concluído`` consumes package credits or awards a stamp, and
    records the income, in the same commit as the status change.
    ---
    tags:
      - Appointments
    parameters:
      - in: body
        name: body
        required: true
        schema:
          properties:
            status:
              type: string
              enum: [Agendado, Confirmado, Concluído, Cancelado]
    responses:
      200:
        description: Appointment status updated successfully
      400:
        description: Invalid status or transition
      404:
        description: Appointment not found
      500:
        description: Database error
    """
    appointment = _get_or_404(Appointment, appointment_id, "Appointment")
    data = json_body()
    if "status" not in data:
        raise ValidationFailed({"status": "status is required"})
    new_status = data["status"]
    if new_status not in APPOINTMENT_STATUSES:
        raise LedgerError(
            f"Status must be one of: {', '.join(APPOINTMENT_STATUSES)}", error="invalid_status"
        )

    notices = NoticeLog()
    if new_status == appointment.status:
        return jsonify(_appointment_response(appointment, notices)), 200
    if appointment.status in TERMINAL_APPOINTMENT_STATUSES:
        raise InvalidTransition(f"Cannot change status of an appointment with status {appointment.status}")

    try:
        appointment.status = new_status
        completion = None
        if new_status == STATUS_COMPLETED:
            completion = complete_appointment(appointment, _today(), notices)
            notices.success("Status Atualizado", "Agendamento concluído com sucesso!")
        elif new_status == "Confirmado":
            notices.success("Status Atualizado", "Agendamento confirmado com sucesso!")
        elif new_status == "Cancelado":
            notices.info("Agendamento Cancelado", "Agendamento cancelado.")
        else:
            notices.info("Status Atualizado", "Status do agendamento atualizado com sucesso.")
        db.session.commit()
        return jsonify(_appointment_response(appointment, notices, completion)), 200
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to update appointment status")


@bp.delete("/appointments/<int:appointment_id>")
def delete_appointment(appointment_id: int) -> tuple[dict[str, object], int]:
    appointment = _get_or_404(Appointment, appointment_id, "Appointment")
    try:
        FinancialTransaction.query.filter_by(appointment_id=appointment_id).update(
            {"appointment_id": None}
        )
        db.session.delete(appointment)
        db.session.commit()
        return jsonify({"status": "deleted"}), 200
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to delete appointment")


@bp.post("/clients/<int:client_id>/recurring-appointments")
def create_recurring_appointments(client_id: int) -> tuple[dict[str, object], int]:
    """Create a weekly or biweekly series of appointments for a client.
    ---
    tags:
      - Appointments
    parameters:
      - in: body
        name: body
        required: true
        schema:
          properties:
            service_ids:
              type: array
              items:
                type: integer
            professional_id:
              type: integer
            frequency:
              type: string
              enum: [weekly, biweekly]
            day_of_week:
              type: integer
              description: 0 = Sunday, required for weekly series
            start_date:
              type: string
            end_date:
              type: string
            start_time:
              type: string
            end_time:
              type: string
    responses:
      201:
        description: Appointments created
      400:
        description: Invalid input
    """
    client = _get_or_404(Client, client_id, "Client")
    data = json_body()
    errors: dict[str, str] = {}
    service_ids = _service_id_list(data, errors)
    professional_id = non_negative_int(data, "professional_id", errors, required=True)
    if professional_id is not None and db.session.get(Professional, professional_id) is None:
        errors["professional_id"] = "Unknown professional"
    frequency = choice(data, "frequency", FREQUENCIES, errors)
    day_of_week = non_negative_int(data, "day_of_week", errors)
    if frequency == "weekly" and (day_of_week is None or day_of_week > 6):
        errors["day_of_week"] = "day_of_week (0-6) is required for weekly series"
    start_date = iso_date(data, "start_date", errors)
    end_date = iso_date(data, "end_date", errors)
    times = {"start_time": hhmm(data, "start_time", errors), "end_time": hhmm(data, "end_time", errors)}
    _check_times(times, errors)
    if start_date and end_date:
        max_days = current_app.config.get("RECURRING_MAX_DAYS", 366)
        if end_date < start_date:
            errors["end_date"] = "end_date must not be before start_date"
        elif end_date - start_date > timedelta(days=max_days):
            errors["end_date"] = f"A series may span at most {max_days} days"
    raise_if_errors(errors)

    total_cents = _services_total_cents(service_ids)
    try:
        created = [
            Appointment(
                client_id=client.client_id,
                client_name=client.name,
                service_ids=service_ids,
                professional_id=professional_id,
                date=day,
                start_time=times["start_time"],
                end_time=times["end_time"],
                status="Agendado",
                total_amount_cents=total_cents,
            )
            for day in recurring_dates(start_date, end_date, frequency, day_of_week)
        ]
        db.session.add_all(created)
        db.session.commit()
        current_app.logger.info(
            "Created %d recurring appointments for client %s", len(created), client_id
        )
        notices = NoticeLog()
        notices.success(
            "Agendamentos Criados!",
            f"{len(created)} agendamentos recorrentes foram criados para {client.name}.",
        )
        return (
            jsonify(
                {
                    "appointments": [a.to_dict() for a in created],
                    "total": len(created),
                    "notices": notices.to_list(),
                }
            ),
            201,
        )
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to create recurring appointments")


def register_routes(app: Flask) -> None:
    from .routes_extended import bp_ext

    app.register_blueprint(bp)
    app.register_blueprint(bp_ext)
