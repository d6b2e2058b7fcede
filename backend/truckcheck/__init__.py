# backend/truckcheck/__init__.py
from flask import Flask

from .config import Config
from .extensions import db, migrate


def create_app(config_overrides: dict | None = None, invoice_directory=None) -> Flask:
    """
    Build the application.

    config_overrides are applied on top of Config before extensions bind.
    invoice_directory replaces the HTTP client with any object exposing
    fetch_invoice(invoice_number, invoice_type).
    """
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    if invoice_directory is not None:
        app.extensions["invoice_directory"] = invoice_directory

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.checkouts import checkouts_bp
    from .routes.aliases import aliases_bp
    from .routes.inventory import inventory_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(checkouts_bp)
    app.register_blueprint(aliases_bp)
    app.register_blueprint(inventory_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
