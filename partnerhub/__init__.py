"""
PartnerHub — Partner Relationship Management Portal
Flask Application Factory.

Usage:
    from partnerhub import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

import click
from flask import Flask
from flask_cors import CORS
from sqlalchemy import engine as _sa_engine
from sqlalchemy import event as _sa_event

from partnerhub.config import config
from partnerhub.middleware.logging_config import configure_logging
from partnerhub.middleware.timing import init_request_timing
from partnerhub.models import db

logger = logging.getLogger(__name__)


# ── SQLite FK enforcement (global engine event) ─────────────────────────
@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: One of "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    config_cls = config[config_name]
    # ProductionConfig validates required env vars on instantiation
    app.config.from_object(config_cls() if config_name == "production" else config_cls)

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    init_request_timing(app)

    # ── Import all models so create_all sees them ───────────────────────
    from partnerhub.models import approval as _approval_models          # noqa: F401
    from partnerhub.models import audit as _audit_models                # noqa: F401
    from partnerhub.models import contract as _contract_models          # noqa: F401
    from partnerhub.models import message as _message_models            # noqa: F401
    from partnerhub.models import notification as _notification_models  # noqa: F401
    from partnerhub.models import partner as _partner_models            # noqa: F401
    from partnerhub.models import reminder as _reminder_models          # noqa: F401

    if app.config["SQLALCHEMY_DATABASE_URI"].startswith("sqlite:///") and not app.testing:
        os.makedirs(app.instance_path, exist_ok=True)

    with app.app_context():
        try:
            db.create_all()
            app.logger.info("db.create_all() completed successfully")
        except Exception as e:
            app.logger.warning("db.create_all() failed: %s", e)

    # ── Blueprints ───────────────────────────────────────────────────────
    from partnerhub.blueprints.approval_bp import approval_bp
    from partnerhub.blueprints.contract_bp import contract_bp
    from partnerhub.blueprints.dashboard_bp import dashboard_bp
    from partnerhub.blueprints.notification_bp import notification_bp
    from partnerhub.blueprints.partner_bp import partner_bp

    app.register_blueprint(approval_bp)
    app.register_blueprint(contract_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(notification_bp)
    app.register_blueprint(partner_bp)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("send-reminders")
    @click.option("--today", default=None, help="Override the run date (YYYY-MM-DD).")
    def send_reminders_cmd(today):
        """Send the deadline reminders that are due today."""
        from partnerhub.services.reminder_service import run_reminders
        from partnerhub.utils.helpers import parse_date
        sent = run_reminders(parse_date(today) if today else None)
        logger.info("Sent %s reminder notifications.", sent)

    @app.cli.command("expire-contracts")
    @click.option("--today", default=None, help="Override the run date (YYYY-MM-DD).")
    def expire_contracts_cmd(today):
        """Expire contracts whose expires_on date has passed."""
        from partnerhub.services.contract_service import expire_due_contracts
        from partnerhub.utils.helpers import parse_date
        expired = expire_due_contracts(parse_date(today) if today else None)
        logger.info("Expired %s contracts.", expired)

    # ── Health check ─────────────────────────────────────────────────────
    @app.route("/api/v1/health")
    def health():
        return {"status": "ok", "app": "PartnerHub"}

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(404)
    def not_found(e):
        from flask import request
        return {"error": "Not found", "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return {"error": "Internal server error"}, 500

    return app
