# backend/pmsrecon/__init__.py
from __future__ import annotations

import logging

from flask import Flask

from .config import Config
from .extensions import db, migrate


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(app.config["LOG_LEVEL"])
    logging.getLogger(__name__).setLevel(app.config["LOG_LEVEL"])

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.pumps import pumps_bp
    from .routes.readings import readings_bp
    from .routes.calculations import calculations_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(pumps_bp)
    app.register_blueprint(readings_bp)
    app.register_blueprint(calculations_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
