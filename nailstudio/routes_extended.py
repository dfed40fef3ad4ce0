"""Back-office routes: cash flow, inventory, notifications, messaging, settings, reports, backup."""
from __future__ import annotations

from collections import Counter
from datetime import date, datetime, timezone

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError

from . import backup, finance
from .errors import LedgerError, NotFound, ValidationFailed
from .extensions import db
from .models import (PAYMENT_METHODS, AppSettings, Appointment, Client, ClientNotification,
                     ClientPackage, Conversation, FinancialTransaction, Message, Notification,
                     Product, Professional, Service)
from .money import format_cents, percent_of
from .validation import (choice, iso_date, json_body, money_cents, non_negative_int,
                         optional_text, query_date, raise_if_errors, required_text)

bp_ext = Blueprint("api_ext", __name__)


def _database_error(exc: SQLAlchemyError, message: str):
    db.session.rollback()
    current_app.logger.exception(message, exc_info=exc)
    return jsonify({"error": "database_error"}), 500


def _pagination() -> tuple[int, int]:
    try:
        page = max(1, int(request.args.get("page", 1)))
        limit = min(50, max(1, int(request.args.get("limit", 20))))
    except (TypeError, ValueError) as exc:
        raise LedgerError("page and limit must be integers", error="invalid_parameters") from exc
    return page, limit


def _month_bounds(value: str | None) -> tuple[date, date]:
    """First day of the month and first day of the next one for ``YYYY-MM``."""
    if value:
        try:
            first = datetime.strptime(value, "%Y-%m").date()
        except ValueError as exc:
            raise ValidationFailed({"month": "Invalid month format, use YYYY-MM"}) from exc
    else:
        first = date.today().replace(day=1)
    if first.month == 12:
        return first, first.replace(year=first.year + 1, month=1)
    return first, first.replace(month=first.month + 1)


# ============================================================================
# Cash flow
# ============================================================================

@bp_ext.get("/finance/transactions")
def list_transactions() -> tuple[dict[str, object], int]:
    """List cash-flow entries, newest first.
    ---
    tags:
      - Finance
    parameters:
      - name: month
        in: query
        type: string
        description: YYYY-MM
      - name: date
        in: query
        type: string
        description: YYYY-MM-DD, overrides month
      - name: type
        in: query
        type: string
        enum: [income, expense]
      - name: payment_method
        in: query
        type: string
      - name: category
        in: query
        type: string
    responses:
      200:
        description: Transactions and the cash-flow summary for the same filter
      400:
        description: Invalid filter
    """
    day = query_date("date")
    month = request.args.get("month", "").strip()
    try:
        query = FinancialTransaction.query
        if day:
            query = query.filter(FinancialTransaction.date == day)
        elif month:
            first, next_first = _month_bounds(month)
            query = query.filter(
                FinancialTransaction.date >= first, FinancialTransaction.date < next_first
            )
        for name in ("type", "payment_method", "category"):
            value = request.args.get(name, "").strip()
            if value:
                query = query.filter(getattr(FinancialTransaction, name) == value)
        transactions = query.order_by(
            FinancialTransaction.date.desc(), FinancialTransaction.transaction_id.desc()
        ).all()
        summary = finance.cash_flow_summary(transactions)
        return (
            jsonify(
                {
                    "transactions": [t.to_dict() for t in transactions],
                    "summary": {key.replace("_cents", ""): format_cents(value) for key, value in summary.items()},
                }
            ),
            200,
        )
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to list transactions")


@bp_ext.post("/finance/transactions")
def create_transaction() -> tuple[dict[str, object], int]:
    """Record a manual entry, usually an expense typed in by staff."""
    data = json_body()
    errors: dict[str, str] = {}
    description = required_text(data, "description", errors, min_length=3)
    amount_cents = money_cents(data, "amount", errors, required=True)
    if amount_cents == 0:
        errors["amount"] = "amount must be greater than zero"
    on_date = iso_date(data, "date", errors, required=False) or date.today()
    category = required_text(data, "category", errors)
    transaction_type = choice(data, "type", finance.TRANSACTION_TYPES, errors, default="expense")
    payment_method = None
    if data.get("payment_method"):
        payment_method = choice(data, "payment_method", PAYMENT_METHODS, errors)
    client_id = non_negative_int(data, "client_id", errors)
    if client_id is not None and db.session.get(Client, client_id) is None:
        errors["client_id"] = "Unknown client"
    raise_if_errors(errors)

    try:
        transaction = finance.record_transaction(
            description=description,
            amount_cents=amount_cents,
            on_date=on_date,
            category=category,
            type=transaction_type,
            payment_method=payment_method,
            client_id=client_id,
        )
        db.session.commit()
        current_app.logger.info(
            "Manual %s of %s recorded", transaction_type, format_cents(amount_cents)
        )
        return jsonify({"transaction": transaction.to_dict()}), 201
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to record transaction")


@bp_ext.get("/finance/summary")
def get_cash_flow_summary() -> tuple[dict[str, object], int]:
    first, next_first = _month_bounds(request.args.get("month", "").strip())
    try:
        transactions = FinancialTransaction.query.filter(
            FinancialTransaction.date >= first, FinancialTransaction.date < next_first
        ).all()
        summary = finance.cash_flow_summary(transactions)
        by_method: dict[str, int] = {}
        for transaction in transactions:
            if transaction.type == "income":
                method = transaction.payment_method or "Não Informado"
                by_method[method] = by_method.get(method, 0) + transaction.amount_cents
        return (
            jsonify(
                {
                    "month": first.strftime("%Y-%m"),
                    "income": format_cents(summary["income_cents"]),
                    "expense": format_cents(summary["expense_cents"]),
                    "net": format_cents(summary["net_cents"]),
                    "income_by_payment_method": {k: format_cents(v) for k, v in by_method.items()},
                }
            ),
            200,
        )
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to compute cash-flow summary")


@bp_ext.delete("/finance/transactions")
def clear_transactions() -> tuple[dict[str, object], int]:
    """Delete every cash-flow entry. Requires ``{"confirm": true}``."""
    data = json_body()
    if data.get("confirm") is not True:
        raise ValidationFailed({"confirm": "Set confirm to true to clear all transactions"})
    try:
        deleted = FinancialTransaction.query.delete()
        db.session.commit()
        current_app.logger.warning("Cleared %d financial transactions", deleted)
        return jsonify({"status": "cleared", "deleted": deleted}), 200
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to clear transactions")


# ============================================================================
# Inventory
# ============================================================================

def _product_fields(data: dict, errors: dict[str, str], *, partial: bool) -> dict[str, object]:
    fields: dict[str, object] = {}
    for key in ("name", "category"):
        if not partial or key in data:
            fields[key] = required_text(data, key, errors)
    for key in ("stock", "low_stock_threshold"):
        if not partial or key in data:
            fields[key] = non_negative_int(data, key, errors, default=0)
    for key in ("cost_price", "selling_price"):
        if not partial or key in data:
            fields[f"{key}_cents"] = money_cents(data, key, errors)
    for key in ("supplier", "unit", "sku", "notes"):
        if not partial or key in data:
            fields[key] = optional_text(data, key, default=None)
    if not partial or "last_restock_date" in data:
        fields["last_restock_date"] = iso_date(data, "last_restock_date", errors, required=False)
    return fields


@bp_ext.get("/products")
def list_products() -> tuple[dict[str, object], int]:
    try:
        query = Product.query
        search = request.args.get("query", "").strip()
        if search:
            query = query.filter(
                or_(Product.name.ilike(f"%{search}%"), Product.category.ilike(f"%{search}%"))
            )
        if request.args.get("low_stock", "false").lower() == "true":
            query = query.filter(Product.stock <= Product.low_stock_threshold)
        products = query.order_by(Product.name).all()
        return jsonify({"products": [p.to_dict() for p in products]}), 200
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to list products")


@bp_ext.post("/products")
def create_product() -> tuple[dict[str, object], int]:
    data = json_body()
    errors: dict[str, str] = {}
    fields = _product_fields(data, errors, partial=False)
    raise_if_errors(errors)
    try:
        product = Product(**fields)
        db.session.add(product)
        db.session.commit()
        return jsonify({"product": product.to_dict()}), 201
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to create product")


@bp_ext.put("/products/<int:product_id>")
def update_product(product_id: int) -> tuple[dict[str, object], int]:
    """Update a product.

    When the stock drops from above the low-stock threshold to at or below it,
    a staff alert is raised.
    ---
    tags:
      - Inventory
    responses:
      200:
        description: Product updated
      404:
        description: Product not found
    """
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFound("Product not found")
    data = json_body()
    errors: dict[str, str] = {}
    fields = _product_fields(data, errors, partial=True)
    raise_if_errors(errors)

    try:
        was_low = product.is_low_stock
        for key, value in fields.items():
            setattr(product, key, value)
        alert = None
        if not was_low and product.is_low_stock:
            alert = Notification(
                title="Estoque Baixo",
                description=(
                    f'O produto "{product.name}" está com estoque baixo '
                    f"({product.stock} {product.unit or 'un.'})."
                ),
                notification_type="alert",
                link_to="/estoque",
            )
            db.session.add(alert)
            current_app.logger.warning("Product %s reached low stock (%d)", product_id, product.stock)
        db.session.commit()
        payload = {"product": product.to_dict()}
        if alert is not None:
            payload["notification"] = alert.to_dict()
        return jsonify(payload), 200
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to update product")


@bp_ext.delete("/products/<int:product_id>")
def delete_product(product_id: int) -> tuple[dict[str, str], int]:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFound("Product not found")
    try:
        db.session.delete(product)
        db.session.commit()
        return jsonify({"status": "deleted"}), 200
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to delete product")


# ============================================================================
# Staff notifications
# ============================================================================

NOTIFICATION_TYPES = ("info", "success", "warning", "alert")
CLIENT_NOTIFICATION_TYPES = ("info", "success", "promo", "warning")


@bp_ext.get("/notifications")
def get_notifications() -> tuple[dict[str, object], int]:
    """List staff notifications with pagination.
    ---
    tags:
      - Notifications
    parameters:
      - name: page
        in: query
        type: integer
        default: 1
      - name: limit
        in: query
        type: integer
        default: 20
        maximum: 50
      - name: unread_only
        in: query
        type: boolean
        default: false
    responses:
      200:
        description: List of notifications with pagination
      400:
        description: Invalid parameters
      500:
        description: Database error
    """
    page, limit = _pagination()
    unread_only = request.args.get("unread_only", "false").lower() == "true"
    try:
        query = Notification.query
        if unread_only:
            query = query.filter(Notification.is_read.is_(False))

        total = query.count()
        notifications = (
            query.order_by(Notification.created_at.desc(), Notification.notification_id.desc())
            .limit(limit)
            .offset((page - 1) * limit)
            .all()
        )
        return (
            jsonify(
                {
                    "notifications": [n.to_dict() for n in notifications],
                    "pagination": {
                        "page": page,
                        "limit": limit,
                        "total": total,
                        "pages": (total + limit - 1) // limit,
                    },
                    "unread_count": Notification.query.filter(
                        Notification.is_read.is_(False)
                    ).count(),
                }
            ),
            200,
        )
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to fetch notifications")


@bp_ext.post("/notifications")
def create_notification() -> tuple[dict[str, object], int]:
    data = json_body()
    errors: dict[str, str] = {}
    title = required_text(data, "title", errors)
    description = required_text(data, "description", errors)
    notification_type = choice(data, "type", NOTIFICATION_TYPES, errors, default="info")
    raise_if_errors(errors)
    try:
        notification = Notification(
            title=title,
            description=description,
            notification_type=notification_type,
            link_to=optional_text(data, "link_to", default=None),
        )
        db.session.add(notification)
        db.session.commit()
        return jsonify({"notification": notification.to_dict()}), 201
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to create notification")


@bp_ext.put("/notifications/<int:notification_id>/read")
def mark_notification_read(notification_id: int) -> tuple[dict[str, object], int]:
    notification = db.session.get(Notification, notification_id)
    if notification is None:
        raise NotFound("Notification not found", error="notification_not_found")
    try:
        notification.is_read = True
        db.session.commit()
        return jsonify({"notification": notification.to_dict()}), 200
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to mark notification read")


@bp_ext.put("/notifications/read-all")
def mark_all_notifications_read() -> tuple[dict[str, object], int]:
    try:
        updated = Notification.query.filter(Notification.is_read.is_(False)).update({"is_read": True})
        db.session.commit()
        return jsonify({"status": "all_marked_read", "updated": updated}), 200
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to mark all read")


@bp_ext.delete("/notifications/read")
def clear_read_notifications() -> tuple[dict[str, object], int]:
    try:
        deleted = Notification.query.filter(Notification.is_read.is_(True)).delete()
        db.session.commit()
        return jsonify({"status": "cleared", "deleted": deleted}), 200
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to clear read notifications")


# ============================================================================
# Client notifications
# ============================================================================

def _client_notification_fields(data: dict) -> dict[str, object]:
    errors: dict[str, str] = {}
    fields = {
        "title": required_text(data, "title", errors),
        "description": required_text(data, "description", errors),
        "notification_type": choice(data, "type", CLIENT_NOTIFICATION_TYPES, errors, default="info"),
        "link_to": optional_text(data, "link_to", default=None),
    }
    raise_if_errors(errors)
    return fields


@bp_ext.get("/clients/<int:client_id>/notifications")
def get_client_notifications(client_id: int) -> tuple[dict[str, object], int]:
    if db.session.get(Client, client_id) is None:
        raise NotFound("Client not found")
    try:
        notifications = (
            ClientNotification.query.filter_by(client_id=client_id)
            .order_by(ClientNotification.created_at.desc(), ClientNotification.notification_id.desc())
            .all()
        )
        return (
            jsonify(
                {
                    "notifications": [n.to_dict() for n in notifications],
                    "unread_count": sum(1 for n in notifications if not n.is_read),
                }
            ),
            200,
        )
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to fetch client notifications")


@bp_ext.post("/clients/<int:client_id>/notifications")
def create_client_notification(client_id: int) -> tuple[dict[str, object], int]:
    if db.session.get(Client, client_id) is None:
        raise NotFound("Client not found")
    fields = _client_notification_fields(json_body())
    try:
        notification = ClientNotification(client_id=client_id, **fields)
        db.session.add(notification)
        db.session.commit()
        return jsonify({"notification": notification.to_dict()}), 201
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to create client notification")


@bp_ext.post("/client-notifications/broadcast")
def broadcast_client_notification() -> tuple[dict[str, object], int]:
    """Send the same notification to every registered client."""
    fields = _client_notification_fields(json_body())
    try:
        client_ids = [row.client_id for row in db.session.query(Client.client_id).all()]
        db.session.add_all(
            [ClientNotification(client_id=client_id, **fields) for client_id in client_ids]
        )
        db.session.commit()
        current_app.logger.info("Broadcast notification to %d clients", len(client_ids))
        return jsonify({"status": "sent", "recipients": len(client_ids)}), 201
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to broadcast notification")


@bp_ext.put("/client-notifications/<int:notification_id>/read")
def mark_client_notification_read(notification_id: int) -> tuple[dict[str, object], int]:
    notification = db.session.get(ClientNotification, notification_id)
    if notification is None:
        raise NotFound("Notification not found", error="notification_not_found")
    try:
        notification.is_read = True
        db.session.commit()
        return jsonify({"notification": notification.to_dict()}), 200
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to mark client notification read")


# ============================================================================
# Messaging
# ============================================================================

def _parse_since(value: str) -> datetime | None:
    value = value.strip()
    if not value:
        return None
    try:
        since = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as exc:
        raise ValidationFailed({"since": "Invalid timestamp, use ISO 8601"}) from exc
    if since.tzinfo is not None:
        since = since.astimezone(timezone.utc).replace(tzinfo=None)
    return since


@bp_ext.get("/conversations")
def list_conversations() -> tuple[dict[str, object], int]:
    try:
        conversations = Conversation.query.order_by(Conversation.last_message_at.desc()).all()
        return (
            jsonify(
                {
                    "conversations": [c.to_dict() for c in conversations],
                    "unread_count": sum(1 for c in conversations if c.unread_by_admin),
                }
            ),
            200,
        )
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to list conversations")


@bp_ext.get("/conversations/<int:client_id>/messages")
def get_messages(client_id: int) -> tuple[dict[str, object], int]:
    """Messages of a conversation in send order.
    ---
    tags:
      - Messaging
    parameters:
      - name: client_id
        in: path
        type: integer
        required: true
      - name: since
        in: query
        type: string
        description: Only messages sent after this ISO timestamp (polling cursor)
    responses:
      200:
        description: Messages, oldest first
      404:
        description: Client not found
    """
    if db.session.get(Client, client_id) is None:
        raise NotFound("Client not found")
    since = _parse_since(request.args.get("since", ""))
    try:
        query = Message.query.filter(Message.conversation_id == client_id)
        if since is not None:
            query = query.filter(Message.created_at > since)
        messages = query.order_by(Message.created_at, Message.message_id).all()
        return jsonify({"messages": [m.to_dict() for m in messages]}), 200
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to fetch messages")


@bp_ext.post("/conversations/<int:client_id>/messages")
def send_message(client_id: int) -> tuple[dict[str, object], int]:
    """Send a message and refresh the conversation summary.

    A client's message flags the conversation unread for the admin and the
    other way around.
    """
    client = db.session.get(Client, client_id)
    if client is None:
        raise NotFound("Client not found")
    data = json_body()
    errors: dict[str, str] = {}
    text = required_text(data, "text", errors)
    sender_type = choice(data, "sender_type", ("admin", "client"), errors)
    raise_if_errors(errors)
    sender_id = optional_text(data, "sender_id") or (
        str(client_id) if sender_type == "client" else "admin"
    )

    try:
        conversation = db.session.get(Conversation, client_id)
        if conversation is None:
            conversation = Conversation(conversation_id=client_id, client_name=client.name)
            db.session.add(conversation)
        message = Message(sender_type=sender_type, sender_id=sender_id, text=text)
        conversation.messages.append(message)
        db.session.flush()

        conversation.client_name = client.name
        conversation.last_message = text
        conversation.last_message_at = message.created_at
        if sender_type == "client":
            conversation.unread_by_admin = True
        else:
            conversation.unread_by_client = True
        db.session.commit()
        return (
            jsonify({"message": message.to_dict(), "conversation": conversation.to_dict()}),
            201,
        )
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to send message")


@bp_ext.put("/conversations/<int:client_id>/read")
def mark_conversation_read(client_id: int) -> tuple[dict[str, object], int]:
    conversation = db.session.get(Conversation, client_id)
    if conversation is None:
        raise NotFound("Conversation not found")
    data = json_body()
    errors: dict[str, str] = {}
    reader = choice(data, "reader", ("admin", "client"), errors)
    raise_if_errors(errors)
    try:
        if reader == "admin":
            conversation.unread_by_admin = False
        else:
            conversation.unread_by_client = False
        db.session.commit()
        return jsonify({"conversation": conversation.to_dict()}), 200
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to mark conversation read")


# ============================================================================
# Settings
# ============================================================================

@bp_ext.get("/settings")
def get_settings() -> tuple[dict[str, object], int]:
    try:
        settings = db.session.get(AppSettings, AppSettings.MAIN_ID) or AppSettings(
            settings_id=AppSettings.MAIN_ID
        )
        return jsonify({"settings": settings.to_dict()}), 200
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to load settings")


@bp_ext.put("/settings")
def update_settings() -> tuple[dict[str, object], int]:
    """Partial update of the salon settings; unknown keys are rejected."""
    data = json_body()
    errors = {
        key: "Unknown setting" for key in data if key not in AppSettings.EDITABLE_FIELDS
    }
    if "opening_hours" in data and not isinstance(data["opening_hours"], list):
        errors["opening_hours"] = "opening_hours must be a list"
    for key, value in data.items():
        if key != "opening_hours" and key in AppSettings.EDITABLE_FIELDS:
            if value is not None and not isinstance(value, str):
                errors[key] = f"{key} must be a string"
    raise_if_errors(errors)

    try:
        settings = db.session.get(AppSettings, AppSettings.MAIN_ID)
        if settings is None:
            settings = AppSettings(settings_id=AppSettings.MAIN_ID)
            db.session.add(settings)
        for key, value in data.items():
            setattr(settings, key, value)
        db.session.commit()
        return jsonify({"settings": settings.to_dict()}), 200
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to update settings")


# ============================================================================
# Reports
# ============================================================================

def _loyalty_client_count() -> int:
    with_packages = db.select(ClientPackage.client_id).distinct()
    return Client.query.filter(
        or_(Client.stamps_earned > 0, Client.client_id.in_(with_packages))
    ).count()


@bp_ext.get("/reports/dashboard")
def get_dashboard() -> tuple[dict[str, object], int]:
    today = date.today()
    first, next_first = _month_bounds(None)
    try:
        todays = (
            Appointment.query.filter(Appointment.date == today)
            .order_by(Appointment.start_time)
            .all()
        )
        month_income = finance.cash_flow_summary(
            FinancialTransaction.query.filter(
                FinancialTransaction.type == "income",
                FinancialTransaction.date >= first,
                FinancialTransaction.date < next_first,
            ).all()
        )["income_cents"]
        return (
            jsonify(
                {
                    "date": today.isoformat(),
                    "appointments_today": [a.to_dict() for a in todays],
                    "appointments_today_count": len(todays),
                    "confirmed_today_count": sum(1 for a in todays if a.status == "Confirmado"),
                    "total_clients": Client.query.count(),
                    "month_income": format_cents(month_income),
                    "loyalty_clients": _loyalty_client_count(),
                }
            ),
            200,
        )
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to build dashboard")


@bp_ext.get("/reports/monthly")
def get_monthly_report() -> tuple[dict[str, object], int]:
    """Monthly figures for the reports page.
    ---
    tags:
      - Reports
    parameters:
      - name: month
        in: query
        type: string
        description: YYYY-MM, defaults to the current month
    responses:
      200:
        description: Cash flow, clients, packages and commissions for the month
      400:
        description: Invalid month
    """
    first, next_first = _month_bounds(request.args.get("month", "").strip())
    try:
        summary = finance.cash_flow_summary(
            FinancialTransaction.query.filter(
                FinancialTransaction.date >= first, FinancialTransaction.date < next_first
            ).all()
        )
        completed = Appointment.query.filter(
            Appointment.status == "Concluído",
            Appointment.date >= first,
            Appointment.date < next_first,
        ).all()

        service_counts = Counter(
            service_id for appointment in completed for service_id in appointment.service_ids or []
        )
        most_popular = None
        if service_counts:
            service_id, count = service_counts.most_common(1)[0]
            service = db.session.get(Service, service_id)
            most_popular = {
                "service_id": service_id,
                "name": service.name if service else None,
                "count": count,
            }

        totals_by_professional: dict[int, int] = {}
        for appointment in completed:
            totals_by_professional[appointment.professional_id] = (
                totals_by_professional.get(appointment.professional_id, 0)
                + (appointment.total_amount_cents or 0)
            )
        commissions = []
        for professional in Professional.query.order_by(Professional.name).all():
            total = totals_by_professional.get(professional.professional_id, 0)
            commissions.append(
                {
                    "professional_id": professional.professional_id,
                    "name": professional.name,
                    "commission_rate": float(professional.commission_rate)
                    if professional.commission_rate is not None
                    else None,
                    "services_total": format_cents(total),
                    "commission": format_cents(percent_of(total, professional.commission_rate)),
                }
            )

        new_clients = sum(
            1
            for client in Client.query.all()
            if client.created_at and first <= client.created_at.date() < next_first
        )
        return (
            jsonify(
                {
                    "month": first.strftime("%Y-%m"),
                    "income": format_cents(summary["income_cents"]),
                    "expense": format_cents(summary["expense_cents"]),
                    "net": format_cents(summary["net_cents"]),
                    "completed_appointments": len(completed),
                    "most_popular_service": most_popular,
                    "total_clients": Client.query.count(),
                    "new_clients": new_clients,
                    "loyalty_clients": _loyalty_client_count(),
                    "packages_sold": ClientPackage.query.filter(
                        ClientPackage.purchase_date >= first,
                        ClientPackage.purchase_date < next_first,
                    ).count(),
                    "active_packages": ClientPackage.query.filter(
                        ClientPackage.status == "Ativo"
                    ).count(),
                    "commissions": commissions,
                }
            ),
            200,
        )
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to build monthly report")


# ============================================================================
# Backup
# ============================================================================

@bp_ext.get("/backup")
def export_backup() -> tuple[dict[str, object], int]:
    try:
        data = backup.export_all()
        return (
            jsonify({"exported_at": datetime.now(timezone.utc).isoformat(), "data": data}),
            200,
        )
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to export backup")


@bp_ext.post("/backup/restore")
def restore_backup() -> tuple[dict[str, object], int]:
    """Replace the whole database with an exported backup.

    Accepts either the ``GET /backup`` envelope or its bare ``data`` object.
    """
    body = json_body()
    data = body.get("data", body)
    try:
        restored = backup.restore_all(data)
        db.session.commit()
        current_app.logger.warning("Database restored from backup: %s", restored)
        return jsonify({"status": "restored", "restored": restored}), 200
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to restore backup")
