import logging

import click
from flask import Flask, jsonify, request
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from config import Config
from routes import health_bp, auth_bp, booking_bp, payments_bp, provider_bp

from models import db
from flask_migrate import Migrate
from core.errors import AppError, InternalFailure
from core.gateway import StripeGateway
from core.settlement import SettlementEngine
from utils.seed import seed_roles, grant_role
from utils.auth_context import load_current_user
from security.csrf import csrf_applies, require_csrf

logger = logging.getLogger(__name__)


def create_app(config_object=Config, gateway=None):
    app = Flask(__name__)
    app.config.from_object(config_object)

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("stripe").setLevel(logging.WARNING)

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(booking_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(provider_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    # Payment gateway and settlement engine are built once from config
    if gateway is None:
        gateway = StripeGateway(
            api_key=app.config.get("STRIPE_SECRET_KEY"),
            webhook_secret=app.config.get("STRIPE_WEBHOOK_SECRET"),
            tolerance=app.config.get("STRIPE_WEBHOOK_TOLERANCE_SECONDS", 300),
        )
    app.extensions["payment_gateway"] = gateway
    app.extensions["settlement"] = SettlementEngine(
        gateway,
        fee_percentage=app.config["PLATFORM_FEE_PERCENTAGE"],
        currency=app.config["SETTLEMENT_CURRENCY"],
    )

    @app.before_request
    def _load_user():
        load_current_user()

    @app.before_request
    def _csrf_protect():
        # Only cookie-authenticated, state-changing requests carry CSRF risk
        if csrf_applies():
            failure = require_csrf()
            if failure:
                return failure

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    register_error_handlers(app)
    register_cli(app)

    return app


def register_error_handlers(app):
    @app.errorhandler(AppError)
    def _app_error(exc):
        if exc.status_code >= 500:
            db.session.rollback()
            logger.error("%s %s failed: %s", request.method, request.path, exc.message)
        if isinstance(exc, InternalFailure) and not app.config.get("DEBUG"):
            return jsonify(error=InternalFailure.default_message), exc.status_code
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(SQLAlchemyError)
    def _db_error(exc):
        db.session.rollback()
        logger.exception("database error on %s %s", request.method, request.path)
        message = str(exc) if app.config.get("DEBUG") else InternalFailure.default_message
        return jsonify(error=message), 500

    @app.errorhandler(HTTPException)
    def _http_error(exc):
        return jsonify(error=exc.description), exc.code

    @app.errorhandler(Exception)
    def _unexpected(exc):
        db.session.rollback()
        logger.exception("unhandled error on %s %s", request.method, request.path)
        message = str(exc) if app.config.get("DEBUG") else InternalFailure.default_message
        return jsonify(error=message), 500

#-------------------------

def register_cli(app):
    from models.user import User

    @app.cli.command("seed-roles")
    def seed_roles_command():
        """Create the CUSTOMER/PROVIDER/ADMIN role rows (idempotent)."""
        seed_roles()
        click.echo("Roles seeded")

    @app.cli.command("make-admin")
    @click.argument("email")
    def make_admin(email):
        """Promote a user to ADMIN by email (bootstrap)."""
        user = User.query.filter_by(email=email.strip().lower()).first()
        if not user:
            click.echo("User not found")
            return

        if not grant_role(user, "ADMIN"):
            click.echo(f"{user.email} is already an admin")
            return
        db.session.commit()
        click.echo(f"{user.email} promoted to ADMIN")

#-------------------------


if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
