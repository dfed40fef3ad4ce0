from __future__ import annotations

from collections.abc import Mapping

from flask import Flask

from .config import Config
from .errors import register_error_handlers
from .extensions import cors, db
from .routes import register_routes


def create_app(config_object=None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)

    app.config.from_object(Config)
    app.config.from_envvar("APP_SETTINGS", silent=True)
    if isinstance(config_object, Mapping):
        app.config.from_mapping(config_object)
    elif config_object:
        app.config.from_object(config_object)

    db.init_app(app)

    # Allow the salon front end to talk to the backend
    cors.init_app(
        app,
        origins=app.config["CORS_ORIGINS"],
        supports_credentials=True,
        allow_headers=["Content-Type"],
        methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    )

    register_error_handlers(app)
    register_routes(app)

    return app
