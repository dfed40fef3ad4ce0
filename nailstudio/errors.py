"""Domain errors and their JSON rendering."""
from __future__ import annotations

from flask import Flask, jsonify


class LedgerError(Exception):
    """Base error carrying the API error code and HTTP status."""

    error = "invalid_request"
    status_code = 400

    def __init__(self, message: str, *, error: str | None = None, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if error is not None:
            self.error = error
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict[str, object]:
        return {"error": self.error, "message": self.message}


class NotFound(LedgerError):
    error = "not_found"
    status_code = 404


class ValidationFailed(LedgerError):
    error = "invalid_input"

    def __init__(self, fields: dict[str, str], message: str = "Invalid input"):
        super().__init__(message)
        self.fields = fields

    def to_dict(self) -> dict[str, object]:
        data = super().to_dict()
        data["fields"] = self.fields
        return data


class NoMimosAvailable(LedgerError):
    error = "no_mimos_available"
    status_code = 409


class InvalidTransition(LedgerError):
    error = "invalid_transition"


def register_error_handlers(app: Flask) -> None:
    from .extensions import db

    @app.errorhandler(LedgerError)
    def handle_ledger_error(exc: LedgerError):
        # Nothing staged by a rejected request may reach a later commit.
        db.session.rollback()
        return jsonify(exc.to_dict()), exc.status_code
