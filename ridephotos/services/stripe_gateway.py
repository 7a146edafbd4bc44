"""Stripe gateway — the one place that talks to the Stripe API.

Constructed once per process in extensions.py and bound to the app's
Stripe credentials in create_app(). Services receive it as a parameter
instead of configuring the global ``stripe.api_key``, so tests can hand
in a fake.
"""

import json
import logging

import stripe

logger = logging.getLogger(__name__)


def _as_dict(obj):
    """Convert a Stripe object to a plain dict for safer access."""
    if obj is None:
        return {}
    if isinstance(obj, dict):
        return obj
    return obj.to_dict()


class StripeGateway:
    """Thin wrapper around the Stripe SDK bound to one account."""

    def __init__(self, app=None):
        self.api_key = None
        self.webhook_secret = None
        self.webhook_tolerance = stripe.Webhook.DEFAULT_TOLERANCE
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        self.api_key = app.config.get("STRIPE_SECRET_KEY")
        self.webhook_secret = app.config.get("STRIPE_WEBHOOK_SECRET")
        self.webhook_tolerance = app.config.get(
            "STRIPE_WEBHOOK_TOLERANCE", stripe.Webhook.DEFAULT_TOLERANCE
        )
        app.extensions["stripe_gateway"] = self

    # ── Webhooks ──

    def verify_event(self, payload, sig_header):
        """Verify a webhook signature and parse the event.

        ``payload`` must be the raw request body. The signature covers the
        literal bytes Stripe sent, so it is checked before (and independently
        of) JSON parsing.

        Returns the event as a plain dict.
        Raises stripe.SignatureVerificationError on a bad signature and
        ValueError on a body that is not UTF-8 JSON.
        """
        if isinstance(payload, bytes):
            payload = payload.decode("utf-8")
        stripe.WebhookSignature.verify_header(
            payload, sig_header, self.webhook_secret, self.webhook_tolerance
        )
        return json.loads(payload)

    # ── Customers & Checkout ──

    def create_customer(self, email=None, user_id=None):
        """Create a Stripe customer and return its ID."""
        params = {"metadata": {"user_id": str(user_id)}}
        if email:
            params["email"] = email
        customer = stripe.Customer.create(api_key=self.api_key, **params)
        logger.info(f"Created Stripe customer {customer.id} for user {user_id}")
        return customer.id

    def create_checkout_session(self, **params):
        """Open a hosted Checkout Session. Returns (session_id, url)."""
        session = stripe.checkout.Session.create(api_key=self.api_key, **params)
        return session.id, session.url

    def retrieve_checkout_session(self, session_id):
        """Fetch a Checkout Session as a plain dict."""
        session = stripe.checkout.Session.retrieve(session_id, api_key=self.api_key)
        return _as_dict(session)

    # ── Subscriptions ──

    def latest_subscription(self, customer_id):
        """Return the customer's most recent subscription (any status) or None.

        The default payment method is expanded so card display fields are
        available without a second call.
        """
        subscriptions = stripe.Subscription.list(
            customer=customer_id,
            limit=1,
            status="all",
            expand=["data.default_payment_method"],
            api_key=self.api_key,
        )
        if not subscriptions.data:
            return None
        return _as_dict(subscriptions.data[0])
