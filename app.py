import click
from flask import Flask, request, g, jsonify
from flask_migrate import Migrate
from sqlalchemy import inspect
from sqlalchemy.exc import OperationalError

from config import Config
from routes import health_bp, auth_bp, admin_bp, client_bp

from models import db
from models.user import User
from utils.accounts import find_by_email, set_role
from utils.errors import AccountError
from utils.roles import Role
from utils.seed import seed_superadmin
from utils.auth_context import load_current_user, refresh_session_cookie
from security.csrf import require_csrf


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(client_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    # Ensure the protected superadmin exists (safe & idempotent)
    with app.app_context():
        if app.config.get("AUTO_CREATE_TABLES"):
            db.create_all()
        if inspect(db.engine).has_table(User.__tablename__):
            seed_superadmin()
        else:
            app.logger.warning("Table %s missing; run `flask db upgrade`. Superadmin seed skipped.", User.__tablename__)

    @app.before_request
    def _load_user():
        load_current_user()

    @app.before_request
    def _csrf_protect():
        # Only protect state-changing requests
        if request.method in ("POST", "PUT", "PATCH", "DELETE"):
            # Only enforce CSRF if user is already authenticated (cookie session)
            if getattr(g, "user", None) is not None:
                failure = require_csrf()
                if failure:
                    return failure

    @app.errorhandler(AccountError)
    def _account_error(exc):
        db.session.rollback()
        return jsonify(error=str(exc)), exc.status_code

    @app.errorhandler(OperationalError)
    def _store_unavailable(exc):
        db.session.rollback()
        app.logger.error("Database unavailable: %s", exc)
        return jsonify(error="Service temporarily unavailable"), 503

    @app.after_request
    def add_security_headers(resp):
        refresh_session_cookie(resp)
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    register_cli(app)

    return app

#-------------------------

def register_cli(app):
    @app.cli.command("make-admin")
    @click.argument("email")
    def make_admin(email):
        """Promote an existing user to admin by email."""
        user = find_by_email(email)
        if not user:
            click.echo("User not found")
            return

        user = set_role(user.id, Role.ADMIN)
        click.echo(f"{user.email} promoted to admin")

    @app.cli.command("ensure-superadmin")
    def ensure_superadmin():
        """Re-run the superadmin reconciliation."""
        user = seed_superadmin()
        if user is None:
            click.echo("SUPERADMIN_EMAIL not set")
            return
        protected = User.query.filter_by(is_protected=True).count()
        click.echo(f"{user.email} is the protected admin ({protected} protected account(s))")

#-------------------------


if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5000)
