"""Whole-database export to one JSON document, and the destructive restore."""
from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation

from flask import current_app
from sqlalchemy import Boolean, Date, DateTime, Enum, Integer, Numeric, String, Time

from .errors import ValidationFailed
from .extensions import db
from .models import (AppSettings, Appointment, Client, ClientNotification, ClientPackage,
                     ClientPackageService, Conversation, FinancialTransaction, Message,
                     Notification, Package, PackageItem, Product, Professional, Service)

# Parents before children; restore inserts in this order and wipes in reverse.
BACKUP_MODELS = (
    Client,
    Service,
    Package,
    PackageItem,
    ClientPackage,
    ClientPackageService,
    Professional,
    Appointment,
    FinancialTransaction,
    Product,
    Notification,
    ClientNotification,
    Conversation,
    Message,
    AppSettings,
)


def _dump_value(value):
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value


def _load_value(column, value):
    """Convert a JSON value back to the column's Python type.

    Raises ``ValueError`` with a readable message when the value does not fit.
    """
    if value is None:
        if not column.nullable and not column.primary_key:
            raise ValueError("must not be null")
        return None
    column_type = column.type
    if isinstance(column_type, Boolean):
        if not isinstance(value, bool):
            raise ValueError("must be true or false")
        return value
    if isinstance(column_type, Integer):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError("must be an integer")
        return value
    if isinstance(column_type, (DateTime, Date, Time)):
        if not isinstance(value, str):
            raise ValueError("must be an ISO formatted string")
        if isinstance(column_type, DateTime):
            return datetime.fromisoformat(value)
        if isinstance(column_type, Date):
            return date.fromisoformat(value)
        return time.fromisoformat(value)
    if isinstance(column_type, Numeric):
        if isinstance(value, bool):
            raise ValueError("must be a number")
        try:
            number = Decimal(str(value))
        except InvalidOperation as exc:
            raise ValueError("must be a number") from exc
        if not number.is_finite():
            raise ValueError("must be a number")
        return number
    if isinstance(column_type, Enum):
        if value not in column_type.enums:
            raise ValueError(f"must be one of: {', '.join(column_type.enums)}")
        return value
    if isinstance(column_type, String):
        if not isinstance(value, str):
            raise ValueError("must be a string")
        return value
    return value


def export_all() -> dict[str, list[dict[str, object]]]:
    data: dict[str, list[dict[str, object]]] = {}
    for model in BACKUP_MODELS:
        table = model.__table__
        rows = db.session.execute(table.select()).mappings().all()
        data[table.name] = [{key: _dump_value(value) for key, value in row.items()} for row in rows]
        current_app.logger.info("Backed up %d rows from %s", len(rows), table.name)
    return data


def _prepare_rows(table, rows: object, errors: dict[str, str]) -> list[dict[str, object]]:
    if not isinstance(rows, list):
        errors[table.name] = "collection must be a list"
        return []
    prepared = []
    for index, row in enumerate(rows):
        if not isinstance(row, dict):
            errors[f"{table.name}[{index}]"] = "row must be an object"
            continue
        values = {}
        for column in table.columns:
            if column.name not in row:
                continue
            try:
                values[column.name] = _load_value(column, row[column.name])
            except ValueError as exc:
                errors[f"{table.name}[{index}].{column.name}"] = str(exc)
        prepared.append(values)
    return prepared


def restore_all(data: object) -> dict[str, int]:
    """Replace every collection with the backup's contents.

    The backup must be an object holding at least the collections listed in
    ``BACKUP_REQUIRED_COLLECTIONS``. Every row is checked before anything is
    deleted. Rows are staged on the session; the caller commits or rolls back.
    """
    required = current_app.config.get("BACKUP_REQUIRED_COLLECTIONS", ())
    if not isinstance(data, dict):
        raise ValidationFailed({"backup": "must be a JSON object"}, "Invalid backup file")
    missing = [name for name in required if not isinstance(data.get(name), list)]
    if missing:
        raise ValidationFailed(
            {name: "collection missing from backup" for name in missing},
            "Invalid backup file",
        )

    known = {model.__table__.name for model in BACKUP_MODELS}
    for name in data:
        if name not in known:
            current_app.logger.warning("Ignoring unknown collection %r in backup", name)

    errors: dict[str, str] = {}
    prepared: dict[str, list[dict[str, object]]] = {}
    for model in BACKUP_MODELS:
        table = model.__table__
        if table.name in data:
            prepared[table.name] = _prepare_rows(table, data[table.name], errors)
    if errors:
        raise ValidationFailed(errors, "Invalid backup file")

    for model in reversed(BACKUP_MODELS):
        db.session.execute(model.__table__.delete())

    restored: dict[str, int] = {}
    for model in BACKUP_MODELS:
        table = model.__table__
        rows = prepared.get(table.name, [])
        if rows:
            db.session.execute(table.insert(), rows)
        restored[table.name] = len(rows)
        current_app.logger.info("Restored %d rows into %s", len(rows), table.name)
    return restored
