"""Configuration objects for the NailStudio backend."""
from __future__ import annotations

import os


class Config:
    """Default settings, overridable through environment variables."""

    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", "sqlite:///nailstudio.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    CORS_ORIGINS = [
        origin.strip()
        for origin in os.environ.get("CORS_ORIGINS", "*").split(",")
        if origin.strip()
    ]

    # Which eligible package instance pays for a service first:
    # "soonest_expiry" or "purchase_order".
    PACKAGE_CONSUMPTION_ORDER = os.environ.get("PACKAGE_CONSUMPTION_ORDER", "soonest_expiry")
    DEFAULT_PACKAGE_VALIDITY_DAYS = int(os.environ.get("DEFAULT_PACKAGE_VALIDITY_DAYS", 90))

    # Longest span, in days, of one recurring series.
    RECURRING_MAX_DAYS = int(os.environ.get("RECURRING_MAX_DAYS", 366))

    # Collections that must be present in an uploaded backup before restoring.
    BACKUP_REQUIRED_COLLECTIONS = ("clients", "appointments", "services")


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
