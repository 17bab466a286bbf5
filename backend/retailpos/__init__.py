# backend/retailpos/__init__.py
from flask import Flask, request

from .config import Config
from .extensions import db
from .services import concurrency



def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    # Initialize extensions
    concurrency.init_app(app)
    db.init_app(app)

    # Import models so create_all sees every table
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.categories import categories_bp
    from .routes.products import products_bp
    from .routes.customers import customers_bp
    from .routes.documents import documents_bp
    from .routes.sales import sales_bp
    from .routes.returns import returns_bp
    from .routes.registers import registers_bp
    from .routes.reports import reports_bp
    from .routes.settings import settings_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(categories_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(documents_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(returns_bp)
    app.register_blueprint(registers_bp)
    app.register_blueprint(reports_bp)
    app.register_blueprint(settings_bp)

    allowed_origins = set(app.config.get("CORS_ALLOWED_ORIGINS") or ())

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,OPTIONS"
        return response

    # The store lives in memory: the schema is created with the app
    with app.app_context():
        db.create_all()

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    app.logger.info("Retail POS API ready (%s)", app.config["SQLALCHEMY_DATABASE_URI"])
    return app
