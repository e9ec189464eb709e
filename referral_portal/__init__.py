import os
import logging

import click
from flask import Flask, redirect, render_template, url_for
from flask_login import current_user

from referral_portal.config import config_by_name
from referral_portal.extensions import db, login_manager, csrf, limiter, schema_probe


def create_app(config_name=None):
    """Application factory."""

    if config_name is None:
        config_name = os.environ.get("FLASK_ENV", "development")

    app = Flask(__name__)
    app.config.from_object(config_by_name[config_name])

    # --- Validate required env vars (skip in testing) ---
    if config_name != "testing":
        try:
            config_by_name[config_name].validate()
        except RuntimeError as e:
            app.logger.warning(f"Config validation: {e}")

    # --- Init extensions ---
    db.init_app(app)
    login_manager.init_app(app)
    csrf.init_app(app)
    limiter.init_app(app)
    schema_probe.init_app(app)

    # --- Import models so create_all() sees the shared tables ---
    with app.app_context():
        from referral_portal import models  # noqa: F401

    # --- Register blueprints ---
    from referral_portal.blueprints.auth import auth_bp
    from referral_portal.blueprints.portal import portal_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(portal_bp)

    # --- Root routes ---
    @app.route("/")
    def index():
        """Landing page for visitors, dashboard for signed-in referrers."""
        if current_user.is_authenticated:
            return redirect(url_for("portal.dashboard"))
        return render_template("index.html")

    @app.route("/terms")
    def terms():
        """Referral program terms and conditions."""
        from referral_portal.terms import (
            COMPANY_LEGAL_NAME,
            REFERRAL_FEE_RATE,
            REFERRAL_TERMS,
        )

        return render_template(
            "terms.html",
            company_name=COMPANY_LEGAL_NAME,
            fee_rate=REFERRAL_FEE_RATE,
            sections=REFERRAL_TERMS,
        )

    # --- Error handlers ---
    @app.errorhandler(403)
    def forbidden(e):
        return render_template("errors/403.html"), 403

    @app.errorhandler(404)
    def not_found(e):
        return render_template("errors/404.html"), 404

    @app.errorhandler(500)
    def server_error(e):
        return render_template("errors/500.html"), 500

    # --- CLI commands ---
    register_cli(app)

    # --- Security headers ---
    @app.after_request
    def add_security_headers(response):
        """Add security headers to every response."""
        # Prevent MIME type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"
        # Prevent clickjacking
        response.headers["X-Frame-Options"] = "DENY"
        # Control referrer information
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        # Permissions Policy (restrict browser features)
        response.headers["Permissions-Policy"] = (
            "camera=(), microphone=(), geolocation=(), payment=()"
        )
        # Content Security Policy; profile pictures are arbitrary https URLs
        response.headers["Content-Security-Policy"] = (
            "default-src 'self'; "
            "script-src 'self' 'unsafe-inline'; "
            "style-src 'self' 'unsafe-inline' https://fonts.googleapis.com; "
            "img-src 'self' data: https:; "
            "font-src 'self' https://fonts.gstatic.com; "
            "base-uri 'self'; "
            "form-action 'self'; "
            "frame-ancestors 'none';"
        )
        # Strict Transport Security (only in production)
        if not app.debug:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )
        return response

    # --- Logging ---
    if not app.debug:
        logging.basicConfig(level=logging.INFO)

    return app


def register_cli(app):
    """Register custom CLI commands with the Flask app."""

    @app.cli.command("probe-schema")
    def probe_schema():
        """Report whether the CRM customer table has linked_referrer.

        Usage:
            flask probe-schema
        """
        schema_probe.reset()
        with db.engine.connect() as connection:
            capabilities = schema_probe.get(connection)

        state = "present" if capabilities.has_linked_referrer else "absent"
        source = (
            "config override"
            if app.config.get("CUSTOMER_LINKED_REFERRER") is not None
            else "introspection"
        )
        click.echo(f"customer.linked_referrer: {state} ({source})")

    @app.cli.command("create-dev-schema")
    @click.option("--yes", is_flag=True, help="Skip the confirmation prompt.")
    def create_dev_schema(yes):
        """Create the customer and referral tables on a local database.

        The production schema belongs to the CRM; use this only for a
        throwaway development database.

        Usage:
            flask create-dev-schema
            flask create-dev-schema --yes
        """
        url = db.engine.url.render_as_string(hide_password=True)
        if not yes:
            click.confirm(f"Create referral tables on {url}?", abort=True)
        db.create_all()
        click.echo(f"Created customer and referral tables on {url}")
