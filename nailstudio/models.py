"""Database models for the NailStudio backend."""
from __future__ import annotations

from datetime import datetime, timezone

from .extensions import db
from .money import format_cents


def utc_now() -> datetime:
    """Return a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


APPOINTMENT_STATUSES = ("Agendado", "Confirmado", "Concluído", "Cancelado")
TERMINAL_APPOINTMENT_STATUSES = ("Concluído", "Cancelado")
STATUS_COMPLETED = "Concluído"

PAYMENT_METHODS = ("Pix", "Dinheiro", "Cartão de Crédito", "Cartão de Débito", "Não Pago")

PACKAGE_INSTANCE_STATUSES = ("Ativo", "Utilizado", "Expirado", "Cancelado")
PACKAGE_STATUSES = ("Ativo", "Inativo")


def _iso(value) -> str | None:
    return value.isoformat() if value else None


def _hhmm(value) -> str | None:
    return value.strftime("%H:%M") if value else None


class Client(db.Model):
    """Salon client with loyalty card state."""

    __tablename__ = "clients"

    client_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    email = db.Column(db.String(255), nullable=False, server_default="")
    phone = db.Column(db.String(30), nullable=False, server_default="")
    stamps_earned = db.Column(db.Integer, nullable=False, default=0)
    mimos_redeemed = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    purchased_packages = db.relationship(
        "ClientPackage",
        back_populates="client",
        order_by="ClientPackage.position",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        db.CheckConstraint("stamps_earned >= 0", name="ck_clients_stamps_non_negative"),
        db.CheckConstraint("mimos_redeemed >= 0", name="ck_clients_mimos_non_negative"),
    )

    def to_dict_basic(self) -> dict[str, object]:
        return {
            "id": self.client_id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
        }

    def to_dict(self) -> dict[str, object]:
        data = self.to_dict_basic()
        data.update(
            {
                "stamps_earned": self.stamps_earned or 0,
                "mimos_redeemed": self.mimos_redeemed or 0,
                "purchased_packages": [pkg.to_dict() for pkg in self.purchased_packages],
                "created_at": _iso(self.created_at),
                "updated_at": _iso(self.updated_at),
            }
        )
        return data


class ClientPackage(db.Model):
    """A package sold to a client, with its remaining service credits."""

    __tablename__ = "client_packages"

    client_package_id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.client_id"), nullable=False)
    package_id = db.Column(
        db.Integer, db.ForeignKey("packages.package_id", ondelete="SET NULL"), nullable=True
    )
    package_name = db.Column(db.String(150), nullable=False)
    position = db.Column(db.Integer, nullable=False, default=0)
    purchase_date = db.Column(db.Date, nullable=False)
    expiry_date = db.Column(db.Date, nullable=True)
    paid_price_cents = db.Column(db.Integer, nullable=False)
    original_price_cents = db.Column(db.Integer, nullable=True)
    status = db.Column(
        db.Enum(
            *PACKAGE_INSTANCE_STATUSES,
            name="client_package_status",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        default="Ativo",
    )
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    client = db.relationship("Client", back_populates="purchased_packages")
    services = db.relationship(
        "ClientPackageService",
        back_populates="client_package",
        order_by="ClientPackageService.item_id",
        cascade="all, delete-orphan",
    )

    def is_partially_used(self) -> bool:
        return any(item.remaining_quantity < item.total_quantity for item in self.services)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.client_package_id,
            "package_id": self.package_id,
            "package_name": self.package_name,
            "purchase_date": _iso(self.purchase_date),
            "expiry_date": _iso(self.expiry_date),
            "paid_price": format_cents(self.paid_price_cents),
            "original_price": format_cents(self.original_price_cents),
            "status": self.status,
            "services": [item.to_dict() for item in self.services],
        }


class ClientPackageService(db.Model):
    __tablename__ = "client_package_services"

    item_id = db.Column(db.Integer, primary_key=True)
    client_package_id = db.Column(
        db.Integer, db.ForeignKey("client_packages.client_package_id"), nullable=False
    )
    service_id = db.Column(db.Integer, nullable=False)
    total_quantity = db.Column(db.Integer, nullable=False)
    remaining_quantity = db.Column(db.Integer, nullable=False)

    client_package = db.relationship("ClientPackage", back_populates="services")

    __table_args__ = (
        db.CheckConstraint(
            "remaining_quantity >= 0 AND remaining_quantity <= total_quantity",
            name="ck_package_credit_bounds",
        ),
    )

    def to_dict(self) -> dict[str, object]:
        return {
            "service_id": self.service_id,
            "total_quantity": self.total_quantity,
            "remaining_quantity": self.remaining_quantity,
        }


class Service(db.Model):
    """Services offered by the salon."""

    __tablename__ = "services"

    service_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    category = db.Column(db.String(100), nullable=False, server_default="")
    description = db.Column(db.Text)
    price_cents = db.Column(db.Integer, nullable=False)
    duration_minutes = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.service_id,
            "name": self.name,
            "category": self.category,
            "description": self.description,
            "price": format_cents(self.price_cents),
            "price_cents": self.price_cents,
            "duration_minutes": self.duration_minutes,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class Package(db.Model):
    """Package of service credits offered for sale."""

    __tablename__ = "packages"

    package_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    short_description = db.Column(db.Text)
    price_cents = db.Column(db.Integer, nullable=False)
    original_price_cents = db.Column(db.Integer, nullable=True)
    validity_days = db.Column(db.Integer, nullable=False, default=90)
    status = db.Column(
        db.Enum(
            *PACKAGE_STATUSES,
            name="package_status",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        default="Ativo",
    )
    theme_color = db.Column(db.String(20), nullable=False, default="primary")
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    items = db.relationship(
        "PackageItem",
        back_populates="package",
        order_by="PackageItem.item_id",
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.package_id,
            "name": self.name,
            "short_description": self.short_description,
            "services": [item.to_dict() for item in self.items],
            "price": format_cents(self.price_cents),
            "original_price": format_cents(self.original_price_cents),
            "validity_days": self.validity_days,
            "status": self.status,
            "theme_color": self.theme_color,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class PackageItem(db.Model):
    __tablename__ = "package_items"

    item_id = db.Column(db.Integer, primary_key=True)
    package_id = db.Column(db.Integer, db.ForeignKey("packages.package_id"), nullable=False)
    service_id = db.Column(db.Integer, db.ForeignKey("services.service_id"), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)

    package = db.relationship("Package", back_populates="items")

    def to_dict(self) -> dict[str, object]:
        return {"service_id": self.service_id, "quantity": self.quantity}


class Professional(db.Model):
    __tablename__ = "professionals"

    professional_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    specialty = db.Column(db.String(150), nullable=False, server_default="")
    avatar_url = db.Column(db.String(500))
    commission_rate = db.Column(db.Numeric(5, 2), nullable=True)  # percent, e.g. 10 for 10%
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.professional_id,
            "name": self.name,
            "specialty": self.specialty,
            "avatar_url": self.avatar_url,
            "commission_rate": float(self.commission_rate) if self.commission_rate is not None else None,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class Appointment(db.Model):
    """Scheduled or completed visit."""

    __tablename__ = "appointments"

    appointment_id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.client_id"), nullable=True)
    # Display copy of the client's name; client_id is the link.
    client_name = db.Column(db.String(150), nullable=False)
    professional_id = db.Column(
        db.Integer, db.ForeignKey("professionals.professional_id"), nullable=False
    )
    service_ids = db.Column(db.JSON, nullable=False, default=list)
    date = db.Column(db.Date, nullable=False)
    start_time = db.Column(db.Time, nullable=False)
    end_time = db.Column(db.Time, nullable=False)
    status = db.Column(
        db.Enum(
            *APPOINTMENT_STATUSES,
            name="appointment_status",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        default="Agendado",
    )
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_justification = db.Column(db.Text, nullable=False, server_default="")
    extra_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    extra_amount_justification = db.Column(db.Text, nullable=False, server_default="")
    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    payment_method = db.Column(
        db.Enum(
            *PAYMENT_METHODS,
            name="payment_method",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        default="Não Pago",
    )
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    client = db.relationship("Client")
    professional = db.relationship("Professional")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.appointment_id,
            "client_id": self.client_id,
            "client_name": self.client_name,
            "professional_id": self.professional_id,
            "professional_name": self.professional.name if self.professional else None,
            "service_ids": list(self.service_ids or []),
            "date": _iso(self.date),
            "start_time": _hhmm(self.start_time),
            "end_time": _hhmm(self.end_time),
            "status": self.status,
            "discount": format_cents(self.discount_cents),
            "discount_justification": self.discount_justification,
            "extra_amount": format_cents(self.extra_amount_cents),
            "extra_amount_justification": self.extra_amount_justification,
            "total_amount": format_cents(self.total_amount_cents),
            "payment_method": self.payment_method,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class FinancialTransaction(db.Model):
    """Append-only cash-flow entry."""

    __tablename__ = "financial_transactions"

    transaction_id = db.Column(db.Integer, primary_key=True)
    description = db.Column(db.String(300), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    date = db.Column(db.Date, nullable=False)
    category = db.Column(db.String(100), nullable=False)
    type = db.Column(
        db.Enum(
            "income",
            "expense",
            name="transaction_type",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
    )
    payment_method = db.Column(
        db.Enum(
            *PAYMENT_METHODS,
            name="transaction_payment_method",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=True,
    )
    appointment_id = db.Column(
        db.Integer, db.ForeignKey("appointments.appointment_id", ondelete="SET NULL"), nullable=True
    )
    client_id = db.Column(
        db.Integer, db.ForeignKey("clients.client_id", ondelete="SET NULL"), nullable=True
    )
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.transaction_id,
            "description": self.description,
            "amount": format_cents(self.amount_cents),
            "amount_cents": self.amount_cents,
            "date": _iso(self.date),
            "category": self.category,
            "type": self.type,
            "payment_method": self.payment_method,
            "appointment_id": self.appointment_id,
            "client_id": self.client_id,
            "created_at": _iso(self.created_at),
        }


class Product(db.Model):
    """Inventory item."""

    __tablename__ = "products"

    product_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    category = db.Column(db.String(100), nullable=False)
    stock = db.Column(db.Integer, nullable=False, default=0)
    low_stock_threshold = db.Column(db.Integer, nullable=False, default=0)
    supplier = db.Column(db.String(200))
    unit = db.Column(db.String(20))
    cost_price_cents = db.Column(db.Integer, nullable=True)
    selling_price_cents = db.Column(db.Integer, nullable=True)
    sku = db.Column(db.String(100))
    last_restock_date = db.Column(db.Date, nullable=True)
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    @property
    def is_low_stock(self) -> bool:
        return self.stock <= self.low_stock_threshold

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.product_id,
            "name": self.name,
            "category": self.category,
            "stock": self.stock,
            "low_stock_threshold": self.low_stock_threshold,
            "is_low_stock": self.is_low_stock,
            "supplier": self.supplier,
            "unit": self.unit,
            "cost_price": format_cents(self.cost_price_cents),
            "selling_price": format_cents(self.selling_price_cents),
            "sku": self.sku,
            "last_restock_date": _iso(self.last_restock_date),
            "notes": self.notes,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class Notification(db.Model):
    """Staff-facing notification."""

    __tablename__ = "notifications"

    notification_id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=False)
    notification_type = db.Column(
        db.Enum(
            "info",
            "success",
            "warning",
            "alert",
            name="notification_type",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
    )
    is_read = db.Column(db.Boolean, nullable=False, default=False)
    link_to = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.notification_id,
            "title": self.title,
            "description": self.description,
            "type": self.notification_type,
            "is_read": self.is_read,
            "link_to": self.link_to,
            "created_at": _iso(self.created_at),
        }


class ClientNotification(db.Model):
    __tablename__ = "client_notifications"

    notification_id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.client_id"), nullable=False)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=False)
    notification_type = db.Column(
        db.Enum(
            "info",
            "success",
            "promo",
            "warning",
            name="client_notification_type",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
    )
    is_read = db.Column(db.Boolean, nullable=False, default=False)
    link_to = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.notification_id,
            "client_id": self.client_id,
            "title": self.title,
            "description": self.description,
            "type": self.notification_type,
            "is_read": self.is_read,
            "link_to": self.link_to,
            "created_at": _iso(self.created_at),
        }


class Conversation(db.Model):
    """One conversation per client; the id is the client's id."""

    __tablename__ = "conversations"

    conversation_id = db.Column(db.Integer, db.ForeignKey("clients.client_id"), primary_key=True)
    client_name = db.Column(db.String(150), nullable=False)
    last_message = db.Column(db.Text, nullable=False, server_default="")
    last_message_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    unread_by_admin = db.Column(db.Boolean, nullable=False, default=False)
    unread_by_client = db.Column(db.Boolean, nullable=False, default=False)

    messages = db.relationship(
        "Message",
        back_populates="conversation",
        order_by="Message.created_at",
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.conversation_id,
            "client_id": self.conversation_id,
            "client_name": self.client_name,
            "last_message": self.last_message,
            "last_message_at": _iso(self.last_message_at),
            "unread_by_admin": self.unread_by_admin,
            "unread_by_client": self.unread_by_client,
        }


class Message(db.Model):
    __tablename__ = "messages"

    message_id = db.Column(db.Integer, primary_key=True)
    conversation_id = db.Column(
        db.Integer, db.ForeignKey("conversations.conversation_id"), nullable=False
    )
    sender_type = db.Column(
        db.Enum(
            "admin",
            "client",
            name="message_sender_type",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
    )
    sender_id = db.Column(db.String(50), nullable=False)
    text = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    conversation = db.relationship("Conversation", back_populates="messages")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.message_id,
            "conversation_id": self.conversation_id,
            "sender_type": self.sender_type,
            "sender_id": self.sender_id,
            "text": self.text,
            "created_at": _iso(self.created_at),
        }


class AppSettings(db.Model):
    """Single-row salon settings."""

    __tablename__ = "app_settings"

    MAIN_ID = 1
    EDITABLE_FIELDS = (
        "salon_name",
        "salon_tagline",
        "salon_address",
        "salon_phone",
        "salon_logo_url",
        "user_name",
        "whatsapp_scheduling_message",
        "client_login_title",
        "client_login_description",
        "stamp_validity_message",
        "theme",
        "theme_color",
        "background_color",
        "opening_hours",
    )

    settings_id = db.Column(db.Integer, primary_key=True)
    salon_name = db.Column(db.String(150))
    salon_tagline = db.Column(db.String(255))
    salon_address = db.Column(db.String(255))
    salon_phone = db.Column(db.String(30))
    salon_logo_url = db.Column(db.String(500))
    user_name = db.Column(db.String(150))
    whatsapp_scheduling_message = db.Column(db.Text)
    client_login_title = db.Column(db.String(255))
    client_login_description = db.Column(db.Text)
    stamp_validity_message = db.Column(db.Text)
    theme = db.Column(db.String(50))
    theme_color = db.Column(db.String(20))
    background_color = db.Column(db.String(20))
    opening_hours = db.Column(db.JSON, nullable=True, default=list)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    def to_dict(self) -> dict[str, object]:
        data = {field: getattr(self, field) for field in self.EDITABLE_FIELDS}
        data["opening_hours"] = self.opening_hours or []
        data["updated_at"] = _iso(self.updated_at)
        return data
