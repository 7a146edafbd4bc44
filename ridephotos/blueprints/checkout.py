"""Checkout blueprint — /api/cart/*

JSON API used by the web and mobile clients.

Routes:
- POST /api/cart/checkout         — create a Checkout Session for the cart
- GET  /api/cart/checkout/status  — has this session been fulfilled yet?

Callers authenticate with a Supabase access token
(``Authorization: Bearer <jwt>``), see extensions.load_user_from_request.
"""

import logging

import stripe
from flask import Blueprint, current_app, jsonify, make_response, request
from flask_login import current_user, login_required

from ridephotos.extensions import limiter, stripe_gateway
from ridephotos.models.purchase import Purchase
from ridephotos.services.stripe_service import (
    CheckoutError,
    create_cart_checkout_session,
    reconcile_checkout_session,
)

logger = logging.getLogger(__name__)

checkout_bp = Blueprint("checkout", __name__, url_prefix="/api/cart")


def _checkout_rate_limit():
    return current_app.config["CHECKOUT_RATE_LIMIT"]


def _cors_response(response):
    """Add CORS headers so the browser client can call the API."""
    response.headers["Access-Control-Allow-Origin"] = current_app.config["CORS_ALLOW_ORIGIN"]
    response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
    response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
    return response


@checkout_bp.after_request
def add_cors_headers(response):
    return _cors_response(response)


@checkout_bp.route("/checkout", methods=["OPTIONS"])
@checkout_bp.route("/checkout/status", methods=["OPTIONS"])
def checkout_preflight():
    """Handle CORS preflight requests."""
    return make_response("", 204)


# ──────────────────────────────────────────────
# POST /api/cart/checkout
# ──────────────────────────────────────────────

@checkout_bp.route("/checkout", methods=["POST"])
@limiter.limit(_checkout_rate_limit)
@login_required
def checkout():
    """Create a Stripe Checkout Session for the caller's cart.

    Body: { "items": [ {photoId, quantity, price, type, selectedDate?,
            title?, speed?, url?, description?}, ... ],
            "successUrl"?: str, "cancelUrl"?: str }

    Returns: { sessionId, url }
    """
    data = request.get_json(silent=True) or {}

    try:
        session_id, url = create_cart_checkout_session(
            user=current_user,
            items=data.get("items"),
            gateway=stripe_gateway,
            success_url=data.get("successUrl"),
            cancel_url=data.get("cancelUrl"),
        )
    except CheckoutError as e:
        return jsonify({"error": str(e)}), 400
    except stripe.StripeError as e:
        logger.error(f"Checkout error for user {current_user.id}: {e}", exc_info=True)
        return jsonify({"error": "Payment provider error, please try again."}), 502

    logger.info(f"Created checkout session {session_id} for user {current_user.id}")
    return jsonify({"sessionId": session_id, "url": url})


# ──────────────────────────────────────────────
# GET /api/cart/checkout/status — success page poll
# ──────────────────────────────────────────────

@checkout_bp.route("/checkout/status", methods=["GET"])
@login_required
def checkout_status():
    """Report whether a checkout session has been fulfilled.

    Polled by the success page. If the webhook has not landed yet the
    session is fetched from Stripe and fulfilled here (idempotent).

    Returns: { fulfilled: bool, purchase_id: str | null }
    """
    session_id = request.args.get("session_id", "").strip()
    if not session_id:
        return jsonify({"error": "session_id is required"}), 400

    purchase = Purchase.query.filter_by(
        stripe_checkout_session_id=session_id,
        user_id=current_user.id,
    ).first()
    if purchase:
        return jsonify({"fulfilled": True, "purchase_id": purchase.id})

    try:
        result = reconcile_checkout_session(
            session_id,
            stripe_gateway,
            current_app.extensions["fulfillment"],
            user_id=current_user.id,
        )
    except stripe.StripeError as e:
        logger.warning(f"Could not reconcile checkout session {session_id}: {e}")
        return jsonify({"fulfilled": False, "purchase_id": None})

    if result is None or result.purchase_id is None:
        return jsonify({"fulfilled": False, "purchase_id": None})

    return jsonify({"fulfilled": True, "purchase_id": result.purchase_id})
