# backend/bookstock/__init__.py
from flask import Flask, request

from .config import Config
from .extensions import db, migrate


def create_app(config_object=Config, config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_object)
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.locations import warehouses_bp, stores_bp
    from .routes.ledger import ledger_bp
    from .routes.vendors import vendors_bp
    from .routes.purchase_requests import purchase_requests_bp
    from .routes.purchase_orders import purchase_orders_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(warehouses_bp)
    app.register_blueprint(stores_bp)
    app.register_blueprint(ledger_bp)
    app.register_blueprint(vendors_bp)
    app.register_blueprint(purchase_requests_bp)
    app.register_blueprint(purchase_orders_bp)

    allowed_origins = set(app.config.get("CORS_ALLOWED_ORIGINS", []))
    actor_header = app.config.get("ACTOR_HEADER", "X-Actor-Id")

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = f"{actor_header}, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
