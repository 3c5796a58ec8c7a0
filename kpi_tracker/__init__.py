"""
KPI Tracker
Flask Application Factory.

Usage:
    from kpi_tracker import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

from flask import Flask
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy.exc import SQLAlchemyError

from kpi_tracker.config import config
from kpi_tracker.models import db
from kpi_tracker.middleware.logging_config import configure_logging
from kpi_tracker.middleware.timing import init_request_timing
from kpi_tracker.middleware.security_headers import init_security_headers
from kpi_tracker.middleware.rate_limiter import init_rate_limits
from kpi_tracker.middleware.jwt_auth import init_jwt_middleware
from kpi_tracker.middleware.tenant_context import init_tenant_context
from kpi_tracker.storage import init_storage
from kpi_tracker.utils.errors import register_error_handlers

logger = logging.getLogger(__name__)

# ── SQLite FK enforcement (global engine event) ─────────────────────────
from sqlalchemy import event as _sa_event, engine as _sa_engine


@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],                     # no global limit — apply per-blueprint
    storage_uri=os.getenv("REDIS_URL", "memory://"),
)


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config[config_name]())

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Security headers, request timing ─────────────────────────────────
    init_security_headers(app)
    init_request_timing(app)

    # ── JWT auth middleware (sets g.principal) ───────────────────────────
    init_jwt_middleware(app)

    # ── Tenant context middleware (sets g.tenant from JWT) ───────────────
    init_tenant_context(app)

    # ── Domain exceptions → JSON error envelope ──────────────────────────
    register_error_handlers(app)

    # ── Import all models so Alembic can detect them ─────────────────────
    from kpi_tracker.models import auth as _auth_models        # noqa: F401
    from kpi_tracker.models import project as _project_models  # noqa: F401
    from kpi_tracker.models import kpi as _kpi_models          # noqa: F401

    os.makedirs(app.instance_path, exist_ok=True)

    # ── Auto-create tables (safe for production — CREATE IF NOT EXISTS) ──
    with app.app_context():
        try:
            db.create_all()
            app.logger.info("db.create_all() completed successfully")
        except SQLAlchemyError as e:
            app.logger.warning("db.create_all() failed: %s", e)

    init_storage(app, db)

    # ── Default KPI template + legacy KPI set ────────────────────────────
    if app.config.get("KPI_SEED_ON_STARTUP"):
        from kpi_tracker.services.kpi_template_service import seed_kpis
        with app.app_context():
            try:
                seed_kpis()
            except SQLAlchemyError as e:
                db.session.rollback()
                app.logger.warning("KPI seeding failed: %s", e)

    # ── Blueprints ───────────────────────────────────────────────────────
    from kpi_tracker.blueprints.auth_bp import auth_bp
    from kpi_tracker.blueprints.project_bp import project_bp
    from kpi_tracker.blueprints.kpi_bp import kpi_bp
    from kpi_tracker.blueprints.dashboard_bp import dashboard_bp
    from kpi_tracker.blueprints.platform_admin_bp import platform_admin_bp
    from kpi_tracker.blueprints.health_bp import health_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(project_bp)
    app.register_blueprint(kpi_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(platform_admin_bp)
    app.register_blueprint(health_bp)

    # ── Rate limiting (per blueprint) ────────────────────────────────────
    init_rate_limits(app, limiter)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("seed-kpis")
    def seed_kpis_cmd():
        """Provision the default KPI template and the legacy KPI set."""
        from kpi_tracker.services.kpi_template_service import seed_kpis
        template_id = seed_kpis()
        logger.info("Default KPI template %s ready.", template_id)

    return app
