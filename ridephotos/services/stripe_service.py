"""Stripe service — checkout sessions and webhook handling.

Responsible for:
- Creating Stripe Checkout Sessions for the photo cart
- Verifying incoming webhooks against the raw body
- Classifying events and dispatching to fulfillment or subscription sync
- Reconciling a checkout session without a webhook (status poll, CLI)

Idempotency lives in the handlers themselves: fulfillment keys on the
checkout session id, subscription sync is a plain upsert.
"""

import logging
import math

import stripe
from flask import current_app

from ridephotos.extensions import db
from ridephotos.services.billing_service import (
    get_stripe_customer_for_user,
    save_stripe_customer,
)
from ridephotos.services.cart_items import serialize_cart_snapshot
from ridephotos.services.subscription_service import sync_customer_subscription
from ridephotos.utils.money import to_minor_units

logger = logging.getLogger(__name__)

CHECKOUT_EVENTS = {
    "checkout.session.completed",
    "checkout.session.async_payment_succeeded",
}

# Subscription-lifecycle events that trigger a mirror resync.
SUBSCRIPTION_EVENTS = {
    "customer.subscription.created",
    "customer.subscription.updated",
    "customer.subscription.deleted",
    "customer.subscription.paused",
    "customer.subscription.resumed",
    "customer.subscription.pending_update_applied",
    "customer.subscription.pending_update_expired",
    "customer.subscription.trial_will_end",
    "invoice.paid",
    "invoice.payment_failed",
    "invoice.payment_action_required",
    "invoice.upcoming",
    "invoice.marked_uncollectible",
    "invoice.payment_succeeded",
    "payment_intent.succeeded",
    "payment_intent.payment_failed",
    "payment_intent.canceled",
}

CART_ITEM_TYPES = {"photo", "pass", "ticket"}


class CheckoutError(ValueError):
    """Client-side problem with a checkout request (HTTP 400)."""


class EmptyCartError(CheckoutError):
    pass


# ──────────────────────────────────────────────
# Checkout Sessions
# ──────────────────────────────────────────────

def _line_item(item, currency):
    """Build one Stripe price_data line item from a client cart entry."""
    is_photo = item.get("type") == "photo"

    if is_photo:
        speed = item.get("speed")
        description = f"Geschwindigkeit: {speed} km/h" if speed is not None else ""
    else:
        description = item.get("description") or ""

    product_data = {"name": item.get("title") or "Foto"}
    if description:
        # Stripe rejects empty descriptions
        product_data["description"] = description
    if is_photo and item.get("url"):
        product_data["images"] = [item["url"]]

    return {
        "price_data": {
            "currency": currency,
            "product_data": product_data,
            "unit_amount": to_minor_units(item.get("price")),
        },
        "quantity": int(item.get("quantity") or 1),
    }


def _validate_cart(items):
    if not items or not isinstance(items, list):
        raise EmptyCartError("Cart is empty")
    for item in items:
        if not isinstance(item, dict) or item.get("type") not in CART_ITEM_TYPES:
            raise CheckoutError("Invalid cart item")
        if item["type"] == "photo" and not item.get("photoId"):
            raise CheckoutError("Photo cart item is missing photoId")

        quantity = item.get("quantity")
        if quantity is not None and (
            isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1
        ):
            raise CheckoutError("Cart item quantity must be a positive integer")

        price = item.get("price")
        if price is not None and (
            isinstance(price, bool)
            or not isinstance(price, (int, float))
            or not math.isfinite(price)
            or price < 0
        ):
            raise CheckoutError("Cart item price must be a non-negative number")


def create_cart_checkout_session(user, items, gateway, success_url=None, cancel_url=None):
    """Create a one-time payment Checkout Session for the caller's cart.

    Gets or creates a Stripe customer for the user (persisted in
    stripe_customers), builds one line item per cart entry and embeds the
    user id and a cart snapshot as session metadata — the webhook fulfills
    from that snapshot, not from the live cart.

    Returns (session_id, url).
    Raises CheckoutError on a bad cart, stripe.StripeError on API failures.
    """
    _validate_cart(items)

    app_base_url = current_app.config["APP_BASE_URL"]
    currency = current_app.config["CHECKOUT_CURRENCY"]

    stored = get_stripe_customer_for_user(user.id)
    if stored:
        customer_id = stored.customer_id
    else:
        customer_id = gateway.create_customer(email=user.email, user_id=user.id)
        save_stripe_customer(user.id, customer_id)

    def _create_session(customer):
        return gateway.create_checkout_session(
            customer=customer,
            payment_method_types=["card"],
            line_items=[_line_item(item, currency) for item in items],
            mode="payment",
            success_url=success_url or f"{app_base_url}/success?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=cancel_url or f"{app_base_url}/cart",
            metadata={
                "user_id": str(user.id),
                "cart_items": serialize_cart_snapshot(items),
            },
        )

    try:
        return _create_session(customer_id)
    except stripe.InvalidRequestError as e:
        # Stored customer may be from Test mode or another account (e.g. after switching to Live)
        if "No such customer" in str(e) and stored:
            customer_id = gateway.create_customer(email=user.email, user_id=user.id)
            save_stripe_customer(user.id, customer_id)
            return _create_session(customer_id)
        raise


def reconcile_checkout_session(checkout_session_id, gateway, fulfillment, user_id=None):
    """Fulfill a checkout session fetched straight from Stripe.

    Used when the webhook hasn't arrived yet (status poll) or by hand
    (CLI). When ``user_id`` is given the session must belong to that user.
    Fulfillment is idempotent, so racing the webhook is harmless.

    Returns a FulfillmentResult, or None if the session is not a paid
    one-time payment (or not the caller's).
    """
    session = gateway.retrieve_checkout_session(checkout_session_id)
    metadata = session.get("metadata") or {}

    if user_id is not None and metadata.get("user_id") != str(user_id):
        logger.warning(f"Checkout session {checkout_session_id} does not belong to user {user_id}")
        return None

    customer_id = session.get("customer")
    if not customer_id or session.get("mode") != "payment" or session.get("payment_status") != "paid":
        return None

    result = fulfillment.fulfill(session, customer_id)
    db.session.commit()
    return result


# ──────────────────────────────────────────────
# Webhook Handling
# ──────────────────────────────────────────────

def verify_webhook_signature(payload, sig_header, gateway):
    """Verify a Stripe webhook signature and parse the event.

    ``payload`` must be the raw request body bytes.
    Returns the verified event as a dict.
    Raises stripe.SignatureVerificationError on invalid signature.
    """
    return gateway.verify_event(payload, sig_header)


def handle_webhook_event(event, gateway, fulfillment):
    """Process a verified Stripe webhook event.

    Commits on success. Unexpected errors roll back and come back as
    (False, message) so the blueprint answers 500 and Stripe retries.

    Returns (success: bool, message: str).
    """
    event_id = event.get("id")
    event_type = event.get("type")
    logger.info(f"[{event_id}] Processing event: {event_type}")

    try:
        message = _dispatch(event, gateway, fulfillment)
        db.session.commit()
    except Exception as e:
        logger.error(f"[{event_id}] Error handling {event_type}: {e}", exc_info=True)
        db.session.rollback()
        return False, str(e)

    return True, message


def _dispatch(event, gateway, fulfillment):
    """Classify an event and run its handler. Returns a short outcome label."""
    event_id = event.get("id")
    event_type = event.get("type") or ""
    data_object = (event.get("data") or {}).get("object")

    if not data_object:
        logger.info(f"[{event_id}] No data in event")
        return "ignored"

    # One-time payments are handled on checkout.session.completed only; the
    # invoice-less payment_intent leg of the same payment would double-fulfill.
    if event_type.startswith("payment_intent.") and data_object.get("invoice") is None:
        logger.info(f"[{event_id}] Skipping standalone payment_intent (no invoice)")
        return "ignored"

    customer_id = data_object.get("customer")
    if not customer_id or not isinstance(customer_id, str):
        logger.info(f"[{event_id}] No customer in event data")
        return "ignored"

    if event_type in CHECKOUT_EVENTS:
        return _handle_checkout_session(event, data_object, customer_id, gateway, fulfillment)

    if event_type in SUBSCRIPTION_EVENTS:
        logger.info(f"[{event_id}] Starting subscription sync for customer: {customer_id}")
        sync_customer_subscription(customer_id, gateway)
        return "subscription_synced"

    logger.info(f"[{event_id}] Unhandled event type {event_type}, acknowledging")
    return "ignored"


def _handle_checkout_session(event, session, customer_id, gateway, fulfillment):
    """Route a completed checkout session by mode."""
    event_id = event.get("id")
    mode = session.get("mode")

    if mode == "subscription":
        logger.info(f"[{event_id}] Processing subscription checkout session")
        sync_customer_subscription(customer_id, gateway)
        return "subscription_synced"

    if mode == "payment" and session.get("payment_status") == "paid":
        logger.info(f"[{event_id}] Processing one-time payment checkout session")
        result = fulfillment.fulfill(session, customer_id, event_id=event_id)
        return result.status

    logger.info(
        f"[{event_id}] Checkout session {session.get('id')} not fulfillable yet "
        f"(mode={mode}, payment_status={session.get('payment_status')})"
    )
    return "ignored"
