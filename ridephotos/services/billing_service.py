"""Billing service — DB sync helpers for Stripe customers and subscriptions.

Responsible for:
- Mapping Stripe customer IDs to users (and back)
- Getting or creating StripeCustomer records
- Upserting the stripe_subscriptions mirror row for a customer
"""

import logging

from ridephotos.extensions import db
from ridephotos.models.billing import StripeCustomer, StripeSubscription

logger = logging.getLogger(__name__)


def get_user_id_from_stripe_customer(customer_id):
    """Look up user_id from a Stripe customer ID.

    Returns user_id string or None.
    """
    customer = StripeCustomer.query.filter_by(customer_id=customer_id).first()
    if customer:
        return customer.user_id
    return None


def get_stripe_customer_for_user(user_id):
    """Return the StripeCustomer row for a user, or None."""
    return StripeCustomer.query.filter_by(user_id=user_id).first()


def save_stripe_customer(user_id, customer_id):
    """Point a user at a Stripe customer, creating the mapping if needed.

    Returns the StripeCustomer instance (committed).
    """
    customer = get_stripe_customer_for_user(user_id)

    if customer:
        # Replaced customer (e.g. the account switched from test to live mode)
        if customer.customer_id != customer_id:
            logger.info(
                f"Replacing Stripe customer {customer.customer_id} -> {customer_id} "
                f"for user {user_id}"
            )
            customer.customer_id = customer_id
            db.session.commit()
        return customer

    customer = StripeCustomer(user_id=user_id, customer_id=customer_id)
    db.session.add(customer)
    db.session.commit()
    return customer


def upsert_subscription(customer_id, status, subscription_id=None, price_id=None,
                        current_period_start=None, current_period_end=None,
                        cancel_at_period_end=False, payment_method_brand=None,
                        payment_method_last4=None):
    """Create or update the StripeSubscription mirror row for a customer.

    Keyed by customer: a customer has at most one mirrored subscription.
    Card fields are only overwritten when Stripe reported a card.
    Returns the StripeSubscription instance.
    """
    sub = StripeSubscription.query.filter_by(customer_id=customer_id).first()

    if sub is None:
        sub = StripeSubscription(customer_id=customer_id, status=status)
        db.session.add(sub)

    sub.status = status
    sub.subscription_id = subscription_id
    sub.price_id = price_id
    sub.current_period_start = current_period_start
    sub.current_period_end = current_period_end
    sub.cancel_at_period_end = cancel_at_period_end
    if payment_method_brand or payment_method_last4:
        sub.payment_method_brand = payment_method_brand
        sub.payment_method_last4 = payment_method_last4

    db.session.flush()
    return sub
