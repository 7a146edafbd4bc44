"""Subscription sync — mirror a customer's Stripe subscription locally.

No product is sold as a subscription today; the path is kept so that
subscription-lifecycle webhooks leave an accurate stripe_subscriptions row
instead of being dropped. It never touches photo entitlements.
"""

import logging
from datetime import datetime, timezone

from ridephotos.services.billing_service import upsert_subscription

logger = logging.getLogger(__name__)


def _extract_period(sub_data, key):
    """Extract current_period_start / current_period_end from a subscription.

    In newer Stripe API versions the period bounds moved from the
    subscription top level to items.data[0]. This helper checks both.

    Returns a timezone-aware datetime or None.
    """
    ts = sub_data.get(key)

    if not ts:
        items = sub_data.get("items")
        if items and items.get("data") and len(items["data"]) > 0:
            ts = items["data"][0].get(key)

    if ts:
        return datetime.fromtimestamp(ts, tz=timezone.utc)
    return None


def _extract_price_id(sub_data):
    items = sub_data.get("items")
    if items and items.get("data"):
        return (items["data"][0].get("price") or {}).get("id")
    return None


def _extract_card(sub_data):
    """Return (brand, last4) of the expanded default payment method."""
    payment_method = sub_data.get("default_payment_method")
    if not isinstance(payment_method, dict):
        # Not expanded (plain ID) or missing
        return None, None
    card = payment_method.get("card") or {}
    return card.get("brand"), card.get("last4")


def sync_customer_subscription(customer_id, gateway):
    """Fetch the customer's latest subscription and upsert the mirror row.

    A customer without any subscription gets the "not_started" sentinel.
    Stripe and database errors propagate so the webhook is retried.
    Returns the StripeSubscription instance.
    """
    sub_data = gateway.latest_subscription(customer_id)

    if sub_data is None:
        logger.info(f"No subscriptions found for customer: {customer_id}")
        return upsert_subscription(customer_id, status="not_started")

    brand, last4 = _extract_card(sub_data)

    # Stripe uses cancel_at_period_end OR cancel_at (a future timestamp)
    # to indicate the subscription is set to cancel. Treat either as cancelling.
    is_cancelling = bool(
        sub_data.get("cancel_at_period_end", False)
        or sub_data.get("cancel_at") is not None
    )

    sub = upsert_subscription(
        customer_id,
        status=sub_data.get("status"),
        subscription_id=sub_data.get("id"),
        price_id=_extract_price_id(sub_data),
        current_period_start=_extract_period(sub_data, "current_period_start"),
        current_period_end=_extract_period(sub_data, "current_period_end"),
        cancel_at_period_end=is_cancelling,
        payment_method_brand=brand,
        payment_method_last4=last4,
    )
    logger.info(f"Synced subscription {sub.subscription_id} ({sub.status}) for customer: {customer_id}")
    return sub
