import os
import logging

import click
from flask import Flask, jsonify

from ridephotos.config import config_by_name
from ridephotos.extensions import db, migrate, login_manager, limiter, stripe_gateway


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
    migrate.init_app(app, db)
    login_manager.init_app(app)
    limiter.init_app(app)
    stripe_gateway.init_app(app)

    # --- Import models so Alembic can discover them ---
    with app.app_context():
        from ridephotos import models  # noqa: F401

    # --- Fulfillment pipeline ---
    from ridephotos.services.fulfillment_service import FulfillmentService
    app.extensions["fulfillment"] = FulfillmentService.from_config(app.config)

    # --- Register blueprints ---
    from ridephotos.blueprints.webhooks import webhooks_bp
    from ridephotos.blueprints.checkout import checkout_bp

    app.register_blueprint(webhooks_bp)
    app.register_blueprint(checkout_bp)

    # --- Error handlers (JSON API, no templates) ---
    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"error": "Method not allowed"}), 405

    @app.errorhandler(429)
    def rate_limited(e):
        return jsonify({"error": "Too many requests"}), 429

    @app.errorhandler(500)
    def server_error(e):
        return jsonify({"error": "Internal server error"}), 500

    # --- CLI commands ---
    register_cli(app)

    # --- Security headers ---
    @app.after_request
    def add_security_headers(response):
        """Add security headers to every response."""
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
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

    @app.cli.command("fulfill-session")
    @click.argument("session_id")
    def fulfill_session(session_id):
        """Fulfill a paid Checkout Session by hand (missed or failed webhook).

        Safe to re-run: an already fulfilled session is reported as duplicate.

        Usage:
            flask fulfill-session cs_live_a1B2c3...
        """
        import stripe

        from ridephotos.services.stripe_service import reconcile_checkout_session

        try:
            result = reconcile_checkout_session(
                session_id, stripe_gateway, app.extensions["fulfillment"]
            )
        except stripe.StripeError as e:
            raise click.ClickException(f"Stripe error: {e}")

        if result is None:
            raise click.ClickException(
                f"Session {session_id} is not a paid one-time payment, nothing to fulfill."
            )

        click.echo(f"Status:      {result.status}")
        click.echo(f"Purchase:    {result.purchase_id or '-'}")
        click.echo(f"Unlocked:    {result.unlocked}")
        click.echo(f"Leaderboard: {result.leaderboard}")
        if result.failures:
            click.echo(f"Failed steps ({len(result.failures)}):")
            for failure in result.failures:
                click.echo(f"  - {failure.name}: {failure.error}")

    @app.cli.command("sync-subscription")
    @click.argument("customer_id")
    def sync_subscription(customer_id):
        """Resync the local subscription mirror for a Stripe customer.

        Usage:
            flask sync-subscription cus_ABC123
        """
        import stripe

        from ridephotos.services.subscription_service import sync_customer_subscription

        try:
            sub = sync_customer_subscription(customer_id, stripe_gateway)
            db.session.commit()
        except stripe.StripeError as e:
            db.session.rollback()
            raise click.ClickException(f"Stripe error: {e}")

        click.echo(f"Customer:     {sub.customer_id}")
        click.echo(f"Status:       {sub.status}")
        click.echo(f"Subscription: {sub.subscription_id or '-'}")
