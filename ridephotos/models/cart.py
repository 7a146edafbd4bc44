"""Cart item model — the live, server-side cart.

Only read by clients. Fulfillment never derives what was bought from
this table (the checkout metadata snapshot is the source of truth); it
just clears the buyer's rows once payment succeeded.
"""

import uuid

from ridephotos.extensions import db


class CartItem(db.Model):
    __tablename__ = "cart_items"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id = db.Column(db.String(36), nullable=False, index=True)
    photo_id = db.Column(db.String(36), nullable=True)
    item_type = db.Column(db.String(20), nullable=False, default="photo")  # photo | pass | ticket
    quantity = db.Column(db.Integer, nullable=False, default=1)
    unit_price = db.Column(db.Numeric(10, 2), nullable=True)
    selected_date = db.Column(db.Date, nullable=True)
    title = db.Column(db.String(255), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    def __repr__(self):
        return f"<CartItem {self.item_type} {self.photo_id or self.title}>"
