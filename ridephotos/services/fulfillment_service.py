"""Fulfillment service — turn a paid Checkout Session into entitlements.

Called for one-time ("payment" mode) checkout sessions, from the webhook
and from the status-poll / CLI reconciliation paths. Safe to run any number
of times for the same session:

1. Purchase lookup by stripe_checkout_session_id (skip if present)
2. Buyer via stripe_customers, park via profile (or DEFAULT_PARK_ID)
3. Cart snapshot from session metadata
4. Purchase insert — the unique session id closes the duplicate race
5. Per cart item: purchase_items row, unlocks, leaderboard rows
6. Clear the live cart, write the legacy order audit row

Steps 5 and 6 are isolated per write (see effects.py): one failing photo
is logged and recorded on the result, the rest of the cart still goes
through. The payment already succeeded, so partial success with loud
logging is preferred to failing the whole webhook.

The service flushes but never commits; the caller owns the transaction.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError

from ridephotos.extensions import db
from ridephotos.models.billing import StripeOrder
from ridephotos.models.cart import CartItem
from ridephotos.models.photo import Photo
from ridephotos.models.profile import Profile
from ridephotos.models.purchase import Purchase, PurchaseItem
from ridephotos.services.billing_service import get_user_id_from_stripe_customer
from ridephotos.services.cart_items import PassItem, PhotoItem, TicketItem, decode_cart_items
from ridephotos.services.effects import best_effort, run_isolated
from ridephotos.services.entitlement_service import (
    day_window,
    grant_photo_unlock,
    grant_photo_unlocks,
    photos_in_window,
    upsert_leaderboard_entries,
    upsert_leaderboard_entry,
)

logger = logging.getLogger(__name__)

PASS_PRODUCT_PREFIX = "tagesfotopass"


@dataclass
class FulfillmentResult:
    status: str  # fulfilled | duplicate | no_user | empty_cart
    purchase_id: str | None = None
    unlocked: int = 0
    leaderboard: int = 0
    failures: list = field(default_factory=list)

    @property
    def fulfilled(self):
        return self.status == "fulfilled"


class FulfillmentService:
    """One-time payment fulfillment.

    Constructed once per app in create_app() with the park fallback from
    config. ``clock`` is injectable so tests can pin the purchase time.
    """

    def __init__(self, default_park_id, clock=None):
        self.default_park_id = default_park_id
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    @classmethod
    def from_config(cls, config):
        return cls(default_park_id=config["DEFAULT_PARK_ID"])

    # ──────────────────────────────────────────────
    # Entry point
    # ──────────────────────────────────────────────

    def fulfill(self, session, customer_id, event_id=None):
        """Fulfill a paid checkout session for a Stripe customer.

        Args:
            session: Checkout Session as a dict (webhook payload or API fetch)
            customer_id: Stripe customer ID the session was paid by
            event_id: webhook event ID, only used to tag log lines

        Returns a FulfillmentResult. Raises on "must succeed" failures
        (store unreachable, unexpected Purchase insert error).
        """
        checkout_session_id = session["id"]
        tag = f"[{event_id or checkout_session_id}]"
        logger.info(f"{tag} Processing payment for session: {checkout_session_id}")

        existing = find_purchase(checkout_session_id)
        if existing:
            logger.info(f"{tag} Purchase already processed for session: {checkout_session_id}")
            return FulfillmentResult(status="duplicate", purchase_id=existing.id)

        user_id = get_user_id_from_stripe_customer(customer_id)
        if not user_id:
            logger.error(f"{tag} No user found for customer: {customer_id}")
            return FulfillmentResult(status="no_user")

        metadata = session.get("metadata") or {}
        metadata_user_id = metadata.get("user_id")
        if metadata_user_id and metadata_user_id != user_id:
            logger.warning(
                f"{tag} Session metadata user {metadata_user_id} differs from "
                f"customer mapping {user_id}; using customer mapping"
            )

        items = decode_cart_items(metadata.get("cart_items"))
        logger.info(f"{tag} Cart items: {len(items)}")
        if not items:
            logger.error(f"{tag} No cart items in metadata")
            return FulfillmentResult(status="empty_cart")

        park_id = self._resolve_park_id(user_id)
        paid_at = self.clock()

        purchase = Purchase(
            user_id=user_id,
            photo_id=self._representative_photo_id(items, park_id, paid_at, tag),
            park_id=park_id,
            stripe_checkout_session_id=checkout_session_id,
            stripe_payment_intent_id=session.get("payment_intent"),
            amount_cents=session.get("amount_total"),
            currency=session.get("currency"),
            paid_at=paid_at,
            status="paid",
            total_amount_cents=session.get("amount_total"),
        )
        try:
            with db.session.begin_nested():
                db.session.add(purchase)
        except IntegrityError:
            # A concurrent delivery of the same event inserted first.
            logger.info(f"{tag} Purchase for session {checkout_session_id} created concurrently, skipping")
            winner = find_purchase(checkout_session_id)
            return FulfillmentResult(status="duplicate", purchase_id=winner.id if winner else None)

        logger.info(f"{tag} Created purchase: {purchase.id}")
        result = FulfillmentResult(status="fulfilled", purchase_id=purchase.id)

        for item in items:
            if isinstance(item, PhotoItem):
                self._fulfill_photo(result, purchase, user_id, park_id, item, tag)
            elif isinstance(item, PassItem):
                self._fulfill_pass(result, purchase, user_id, park_id, paid_at, item, tag)
            elif isinstance(item, TicketItem):
                self._fulfill_ticket(result, purchase, item, tag)

        logger.info(f"{tag} Unlocked {result.unlocked} photos, {result.leaderboard} leaderboard entries")

        # The checkout is paid no matter what failed above; never let the
        # cart offer already-paid items again.
        cleared = run_isolated(f"{tag} clear cart", _clear_cart, user_id)
        if cleared.ok:
            logger.info(f"{tag} Cleared {cleared.value} cart items for user")
        else:
            result.failures.append(cleared)

        best_effort(f"{tag} stripe_orders audit", _record_order, session, customer_id)

        if result.failures:
            logger.error(
                f"{tag} Partially fulfilled session {checkout_session_id}: "
                f"{len(result.failures)} failed step(s): "
                f"{', '.join(f.name for f in result.failures)}"
            )
        else:
            logger.info(f"{tag} Successfully processed cart purchase for session: {checkout_session_id}")
        return result

    # ──────────────────────────────────────────────
    # Resolution helpers
    # ──────────────────────────────────────────────

    def _resolve_park_id(self, user_id):
        profile = db.session.get(Profile, user_id)
        if profile and profile.park_id:
            return profile.park_id
        return self.default_park_id

    def _pass_day(self, item, paid_at):
        return item.selected_date or paid_at.date()

    def _representative_photo_id(self, items, park_id, paid_at, tag):
        """First photo in the cart, else the first photo of the pass day.

        Display convenience only; a failed lookup yields None.
        """
        for item in items:
            if isinstance(item, PhotoItem):
                return item.photo_id

        for item in items:
            if isinstance(item, PassItem):
                start, end = day_window(self._pass_day(item, paid_at))
                lookup = best_effort(
                    f"{tag} representative photo lookup",
                    _earliest_photo_id, park_id, start, end,
                )
                return lookup.value if lookup.ok else None

        return None

    # ──────────────────────────────────────────────
    # Per-item fulfillment
    # ──────────────────────────────────────────────

    def _record(self, result, effect):
        if not effect.ok:
            result.failures.append(effect)
        return effect

    def _fulfill_photo(self, result, purchase, user_id, park_id, item, tag):
        logger.info(f"{tag} Processing photo: {item.photo_id}")

        self._record(result, run_isolated(
            f"{tag} purchase_item photo {item.photo_id}",
            _add_purchase_item, purchase.id, "photo", item,
            photo_id=item.photo_id,
        ))

        photo = db.session.get(Photo, item.photo_id)
        unlock_park_id = photo.park_id if photo and photo.park_id else park_id

        unlock = self._record(result, run_isolated(
            f"{tag} unlock photo {item.photo_id}",
            grant_photo_unlock, user_id, item.photo_id, unlock_park_id,
            unlocked_at=purchase.paid_at,
        ))
        if unlock.ok:
            result.unlocked += 1

        if photo is None:
            logger.warning(f"{tag} Photo {item.photo_id} not found, no leaderboard entry")
            return

        entry = self._record(result, run_isolated(
            f"{tag} leaderboard photo {item.photo_id}",
            upsert_leaderboard_entry, user_id, photo, park_id,
        ))
        if entry.ok and entry.value:
            result.leaderboard += 1

    def _fulfill_pass(self, result, purchase, user_id, park_id, paid_at, item, tag):
        day = self._pass_day(item, paid_at)
        start, end = day_window(day)
        logger.info(f"{tag} Processing day pass for {day.isoformat()} in park {park_id}")

        self._record(result, run_isolated(
            f"{tag} purchase_item photopass {day.isoformat()}",
            _add_purchase_item, purchase.id, "photopass", item,
            product_code=f"{PASS_PRODUCT_PREFIX}:{day.isoformat()}",
        ))

        lookup = self._record(result, run_isolated(
            f"{tag} day pass photos {day.isoformat()}",
            photos_in_window, park_id, start, end,
        ))
        if not lookup.ok:
            return

        photos = lookup.value
        if not photos:
            # Valid: passes can be bought before the ride day.
            logger.info(f"{tag} No photos yet for day pass {day.isoformat()} in park {park_id}")
            return

        unlock = self._record(result, run_isolated(
            f"{tag} day pass unlock {day.isoformat()}",
            grant_photo_unlocks, user_id, [(p.id, p.park_id or park_id) for p in photos],
            unlocked_at=paid_at,
        ))
        if unlock.ok:
            result.unlocked += len(photos)

        entries = self._record(result, run_isolated(
            f"{tag} day pass leaderboard {day.isoformat()}",
            upsert_leaderboard_entries, user_id, photos, park_id,
        ))
        if entries.ok:
            result.leaderboard += entries.value

    def _fulfill_ticket(self, result, purchase, item, tag):
        # Tickets are park entry, not photo content: record, unlock nothing.
        logger.info(f"{tag} Recording ticket: {item.title or 'ticket'}")
        self._record(result, run_isolated(
            f"{tag} purchase_item ticket",
            _add_purchase_item, purchase.id, "ticket", item,
            product_code="ticket",
        ))


# ──────────────────────────────────────────────
# Store writes
# ──────────────────────────────────────────────

def find_purchase(checkout_session_id):
    return Purchase.query.filter_by(
        stripe_checkout_session_id=checkout_session_id
    ).first()


def _earliest_photo_id(park_id, start, end):
    photo = (
        Photo.query
        .filter(
            Photo.park_id == park_id,
            Photo.captured_at >= start,
            Photo.captured_at < end,
        )
        .order_by(Photo.captured_at.asc())
        .first()
    )
    return photo.id if photo else None


def _add_purchase_item(purchase_id, item_type, cart_item, photo_id=None, product_code=None):
    row = PurchaseItem(
        purchase_id=purchase_id,
        item_type=item_type,
        photo_id=photo_id,
        product_code=product_code,
        unit_amount_cents=cart_item.unit_amount_cents,
        quantity=cart_item.quantity,
    )
    db.session.add(row)
    return row


def _clear_cart(user_id):
    return CartItem.query.filter_by(user_id=user_id).delete(synchronize_session=False)


def _record_order(session, customer_id):
    db.session.add(StripeOrder(
        checkout_session_id=session["id"],
        payment_intent_id=session.get("payment_intent"),
        customer_id=customer_id,
        amount_subtotal=session.get("amount_subtotal"),
        amount_total=session.get("amount_total"),
        currency=session.get("currency"),
        payment_status=session.get("payment_status"),
        status="paid",
    ))
