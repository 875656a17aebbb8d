# backend/wardrobe/__init__.py
from flask import Flask

from .config import Config
from .extensions import db, migrate


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    # Overrides land before init_app: Flask-SQLAlchemy builds engines there
    if config_overrides:
        app.config.update(config_overrides)

    # app.logger is "wardrobe"; service loggers ("wardrobe.ledger") propagate to it
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.items import items_bp
    from .routes.customers import customers_bp
    from .routes.sales import sales_bp
    from .routes.purchases import purchases_bp
    from .routes.loans import loans_bp
    from .routes.write_offs import write_offs_bp
    from .routes.reports import reports_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(items_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(purchases_bp)
    app.register_blueprint(loans_bp)
    app.register_blueprint(write_offs_bp)
    app.register_blueprint(reports_bp)

    # Post-commit hooks; run after every committed ledger transaction
    from .services.transaction_processor import log_committed_transaction
    app.extensions["ledger_hooks"] = [log_committed_transaction]

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
