"""
SolarHub Back-Office
Flask Application Factory.

Usage:
    from solarhub import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

import click
from flask import Flask, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate

from solarhub.config import config
from solarhub.models import db
from solarhub.middleware.actor import init_actor_context
from solarhub.middleware.logging_config import configure_logging
from solarhub.middleware.rate_limiter import init_rate_limits
from solarhub.middleware.timing import init_request_timing

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
    default_limits=[],                     # limits are set per blueprint
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
    config_class = config[config_name]
    # ProductionConfig validates its environment in __init__
    app.config.from_object(config_class())

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

    # ── Acting user (X-User-Id / X-User-Role) ────────────────────────────
    init_actor_context(app)

    # ── Request timing middleware ────────────────────────────────────────
    init_request_timing(app)

    # ── Request guards (input length + Content-Type) ─────────────────────
    app.config.setdefault("MAX_CONTENT_LENGTH", 20 * 1024 * 1024)  # snapshots can be large

    @app.before_request
    def _guard_request():
        from flask import abort
        if request.method in ("POST", "PUT", "PATCH") and request.path.startswith("/api/"):
            ct = request.content_type or ""
            if request.data and "json" not in ct:
                abort(415, description="Content-Type must be application/json")

    # ── Import all models so Alembic can detect them ─────────────────────
    from solarhub.models import audit as _audit_models                  # noqa: F401
    from solarhub.models import dashboard as _dashboard_models          # noqa: F401
    from solarhub.models import deletion_policy as _policy_models       # noqa: F401
    from solarhub.models import directory as _directory_models          # noqa: F401
    from solarhub.models import document as _document_models            # noqa: F401
    from solarhub.models import progress as _progress_models            # noqa: F401
    from solarhub.models import project as _project_models              # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS) ────────────────────────
    with app.app_context():
        try:
            db.create_all()
            app.logger.info("db.create_all() completed successfully")
        except Exception as e:
            app.logger.warning("db.create_all() failed: %s", e)

    # ── Blueprints ───────────────────────────────────────────────────────
    from solarhub.blueprints.audit_bp import audit_bp
    from solarhub.blueprints.dashboard_bp import dashboard_bp
    from solarhub.blueprints.deletion_bp import deletion_bp
    from solarhub.blueprints.directory_bp import directory_bp
    from solarhub.blueprints.documents_bp import documents_bp
    from solarhub.blueprints.health_bp import health_bp
    from solarhub.blueprints.progress_bp import progress_bp
    from solarhub.blueprints.projects_bp import projects_bp
    from solarhub.blueprints.system_bp import system_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(projects_bp)
    app.register_blueprint(documents_bp)
    app.register_blueprint(directory_bp)
    app.register_blueprint(deletion_bp)
    app.register_blueprint(audit_bp)
    app.register_blueprint(progress_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(system_bp)

    # ── Rate limits (per blueprint) ──────────────────────────────────────
    init_rate_limits(app, limiter)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("purge-expired")
    def purge_expired_cmd():
        """Physically remove soft-deleted rows past their retention period."""
        from solarhub.services.deletion_service import purge_expired
        purged = purge_expired()
        total = sum(purged.values())
        logger.info("Retention purge removed %d row(s): %s", total, purged)
        click.echo(f"Purged {total} row(s)")

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(404)
    def not_found(e):
        return {"error": "Not found", "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(415)
    def unsupported_media_type(e):
        return {"error": e.description}, 415

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return {"error": "Internal server error"}, 500

    return app
