"""Billing models.

- StripeCustomer: links a user to a Stripe customer ID.
- StripeSubscription: mirror of the customer's latest Stripe subscription,
  keyed by customer. Not used for photo entitlements.
- StripeOrder: legacy order audit row, written best-effort after a
  one-time payment is fulfilled.
"""

import uuid

from ridephotos.extensions import db


class StripeCustomer(db.Model):
    __tablename__ = "stripe_customers"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id = db.Column(db.String(36), unique=True, nullable=False)
    customer_id = db.Column(db.String(255), unique=True, nullable=False)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    def __repr__(self):
        return f"<StripeCustomer stripe={self.customer_id}>"


class StripeSubscription(db.Model):
    __tablename__ = "stripe_subscriptions"

    # -- Valid statuses (synced from Stripe, plus our own sentinel) --
    STATUSES = [
        "not_started",
        "incomplete",
        "incomplete_expired",
        "trialing",
        "active",
        "past_due",
        "canceled",
        "unpaid",
        "paused",
    ]

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    customer_id = db.Column(db.String(255), unique=True, nullable=False)
    subscription_id = db.Column(db.String(255), nullable=True)
    price_id = db.Column(db.String(255), nullable=True)
    current_period_start = db.Column(db.DateTime(timezone=True), nullable=True)
    current_period_end = db.Column(db.DateTime(timezone=True), nullable=True)
    cancel_at_period_end = db.Column(db.Boolean, default=False)
    payment_method_brand = db.Column(db.String(50), nullable=True)
    payment_method_last4 = db.Column(db.String(4), nullable=True)
    status = db.Column(db.String(50), nullable=False)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self):
        return f"<StripeSubscription {self.customer_id} ({self.status})>"


class StripeOrder(db.Model):
    __tablename__ = "stripe_orders"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    checkout_session_id = db.Column(db.String(255), nullable=False)
    payment_intent_id = db.Column(db.String(255), nullable=True)
    customer_id = db.Column(db.String(255), nullable=False)
    amount_subtotal = db.Column(db.Integer, nullable=True)
    amount_total = db.Column(db.Integer, nullable=True)
    currency = db.Column(db.String(3), nullable=True)
    payment_status = db.Column(db.String(50), nullable=True)
    status = db.Column(db.String(50), nullable=False, default="paid")
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    def __repr__(self):
        return f"<StripeOrder {self.checkout_session_id}>"
