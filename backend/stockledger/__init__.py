# backend/stockledger/__init__.py
import logging

from flask import Flask

from .config import Config
from .extensions import db, migrate


def create_app(test_config=None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    log_level = str(app.config.get("LOG_LEVEL", "INFO")).upper()
    logging.getLogger("stockledger").setLevel(log_level)
    app.logger.setLevel(log_level)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.catalog import stores_bp, products_bp
    from .routes.stock import stock_bp
    from .routes.sales import sales_bp
    from .routes.returns import returns_bp
    from .routes.adjustments import adjustments_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(stores_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(stock_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(returns_bp)
    app.register_blueprint(adjustments_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
