"""Purchase models.

- Purchase: one row per paid Stripe Checkout Session. The unique
  stripe_checkout_session_id is the fulfillment idempotency key.
- PurchaseItem: one row per cart line of a purchase.
"""

import uuid

from ridephotos.extensions import db


class Purchase(db.Model):
    __tablename__ = "purchases"

    STATUSES = ["paid", "refunded", "failed"]

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id = db.Column(db.String(36), nullable=False, index=True)
    photo_id = db.Column(db.String(36), nullable=True)  # representative photo, display only
    park_id = db.Column(db.String(36), nullable=True)
    stripe_checkout_session_id = db.Column(
        db.String(255), unique=True, nullable=False
    )  # e.g. "cs_test_a1B2..."
    stripe_payment_intent_id = db.Column(db.String(255), nullable=True)
    amount_cents = db.Column(db.Integer, nullable=True)
    currency = db.Column(db.String(3), nullable=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)
    status = db.Column(db.String(50), nullable=False, default="paid")  # paid | refunded | failed
    total_amount_cents = db.Column(db.Integer, nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    # --- Relationships ---
    items = db.relationship(
        "PurchaseItem", back_populates="purchase", lazy="dynamic"
    )

    def __repr__(self):
        return f"<Purchase {self.stripe_checkout_session_id} ({self.status})>"


class PurchaseItem(db.Model):
    __tablename__ = "purchase_items"

    ITEM_TYPES = ["photo", "photopass", "ticket"]

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    purchase_id = db.Column(
        db.String(36), db.ForeignKey("purchases.id"), nullable=False, index=True
    )
    item_type = db.Column(db.String(20), nullable=False)  # photo | photopass | ticket
    photo_id = db.Column(db.String(36), nullable=True)
    product_code = db.Column(
        db.String(255), nullable=True
    )  # e.g. "tagesfotopass:2024-06-01"
    unit_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    quantity = db.Column(db.Integer, nullable=False, default=1)

    # --- Relationships ---
    purchase = db.relationship("Purchase", back_populates="items")

    def __repr__(self):
        return f"<PurchaseItem {self.item_type} {self.photo_id or self.product_code}>"
