# backend/bms/__init__.py
from flask import Flask

from .cache import Cache, InMemoryTTLCache
from .config import Config
from .extensions import db, migrate
from .logging_setup import configure_logging
from .tracing import register_request_tracing


def create_app(config_object=None, overrides: dict | None = None, cache: Cache | None = None) -> Flask:
    """
    Application factory.

    config_object defaults to Config; overrides are applied on top before any
    extension is initialised. cache may be any Cache implementation; by
    default an InMemoryTTLCache sized from CACHE_DEFAULT_TTL/CACHE_MAX_ENTRIES.
    """
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_object or Config)
    if overrides:
        app.config.update(overrides)

    configure_logging(app)
    register_request_tracing(app)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    if cache is None:
        cache = InMemoryTTLCache(
            default_ttl=app.config["CACHE_DEFAULT_TTL"],
            max_entries=app.config["CACHE_MAX_ENTRIES"],
        )
    app.extensions["bms_cache"] = cache

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.companies import companies_bp
    from .routes.users import users_bp
    from .routes.customers import customers_bp
    from .routes.items import items_bp
    from .routes.invoices import invoices_bp
    from .routes.receipts import receipts_bp
    from .routes.expenses import expenses_bp
    from .routes.notifications import notifications_bp
    from .routes.reports import reports_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(companies_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(items_bp)
    app.register_blueprint(invoices_bp)
    app.register_blueprint(receipts_bp)
    app.register_blueprint(expenses_bp)
    app.register_blueprint(notifications_bp)
    app.register_blueprint(reports_bp)

    from .errors import register_error_handlers
    register_error_handlers(app)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
