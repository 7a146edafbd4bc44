"""Webhooks blueprint — /stripe/webhooks

Receives Stripe webhook events.
Raw body is required for signature verification.
"""

import logging

from flask import Blueprint, current_app, jsonify, make_response, request

from ridephotos.extensions import stripe_gateway
from ridephotos.services.stripe_service import handle_webhook_event, verify_webhook_signature

logger = logging.getLogger(__name__)

webhooks_bp = Blueprint("webhooks", __name__, url_prefix="/stripe")


@webhooks_bp.route("/webhooks", methods=["OPTIONS"])
def stripe_webhook_preflight():
    """Preflight: 204, no body."""
    return make_response("", 204)


@webhooks_bp.route("/webhooks", methods=["POST"])
def stripe_webhook():
    """Receive and process Stripe webhook events.

    1. Get raw body bytes (the signature covers the literal bytes)
    2. Verify signature with STRIPE_WEBHOOK_SECRET
    3. Pass to handle_webhook_event (idempotent per checkout session)
    4. Return 200 to acknowledge receipt

    Bad or missing signatures get a 400 and are never retried into a
    mutation. Only unexpected processing errors answer 500.
    """
    payload = request.get_data()
    sig_header = request.headers.get("Stripe-Signature")

    if not sig_header:
        logger.error("Webhook received without Stripe-Signature header")
        return make_response("No signature found", 400)

    # --- Verify signature ---
    try:
        event = verify_webhook_signature(payload, sig_header, stripe_gateway)
    except Exception as e:
        logger.warning(f"Webhook signature verification failed: {e}")
        return make_response(f"Webhook signature verification failed: {e}", 400)

    # --- Process event ---
    success, message = handle_webhook_event(
        event, stripe_gateway, current_app.extensions["fulfillment"]
    )

    if success:
        return jsonify({"received": True}), 200
    else:
        logger.error(f"Webhook processing failed: {message}")
        return jsonify({"error": message}), 500
