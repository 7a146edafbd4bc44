"""Cart snapshot — the "what was bought" contract between checkout and webhook.

The Checkout Session Initiator serializes the cart into the session's
``cart_items`` metadata key; the webhook reads it back. Stripe metadata is
an untyped string bag, so the array is decoded here at the boundary into a
closed set of variants:

- PhotoItem:  a single photo (requires photoId)
- PassItem:   a day-pass for one park day (optional selectedDate)
- TicketItem: a park ticket, no photo entitlement

Entries with an unknown ``type`` (or a photo without a photoId) are
skipped with a warning rather than passed through untyped.
"""

import json
import logging
import math
import re
from dataclasses import dataclass
from datetime import date, datetime

from ridephotos.utils.money import to_minor_units

logger = logging.getLogger(__name__)

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# Keys written into Stripe metadata, in client (camelCase) naming.
SNAPSHOT_KEYS = ("photoId", "quantity", "price", "type", "selectedDate", "title")


@dataclass(frozen=True)
class PhotoItem:
    photo_id: str
    price: float = 0.0
    quantity: int = 1
    title: str | None = None

    type = "photo"

    @property
    def unit_amount_cents(self):
        return to_minor_units(self.price)


@dataclass(frozen=True)
class PassItem:
    selected_date: date | None = None
    price: float = 0.0
    quantity: int = 1
    title: str | None = None

    type = "pass"

    @property
    def unit_amount_cents(self):
        return to_minor_units(self.price)


@dataclass(frozen=True)
class TicketItem:
    price: float = 0.0
    quantity: int = 1
    title: str | None = None

    type = "ticket"

    @property
    def unit_amount_cents(self):
        return to_minor_units(self.price)


def parse_selected_date(value):
    """Parse a strict ``YYYY-MM-DD`` string. Returns a date or None."""
    if not isinstance(value, str) or not DATE_PATTERN.match(value):
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        # Right shape, impossible date (e.g. 2024-02-30)
        return None


def _quantity(value):
    try:
        quantity = int(value)
    except (TypeError, ValueError, OverflowError):
        return 1
    return quantity if quantity > 0 else 1


def _price(value):
    if isinstance(value, bool):
        return 0.0
    try:
        price = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(price):
        logger.warning(f"Ignoring non-finite cart item price {value!r}")
        return 0.0
    return price


def decode_cart_item(raw):
    """Decode one metadata entry into a variant, or None if unusable."""
    if not isinstance(raw, dict):
        logger.warning(f"Skipping cart item that is not an object: {raw!r}")
        return None

    item_type = raw.get("type")
    price = _price(raw.get("price"))
    quantity = _quantity(raw.get("quantity"))
    title = raw.get("title")

    if item_type == "photo":
        photo_id = raw.get("photoId")
        if not photo_id:
            logger.warning("Skipping photo cart item without photoId")
            return None
        return PhotoItem(photo_id=str(photo_id), price=price, quantity=quantity, title=title)

    if item_type == "pass":
        selected = raw.get("selectedDate")
        selected_date = parse_selected_date(selected)
        if selected and selected_date is None:
            logger.warning(f"Ignoring malformed pass date {selected!r}, will use purchase date")
        return PassItem(selected_date=selected_date, price=price, quantity=quantity, title=title)

    if item_type == "ticket":
        return TicketItem(price=price, quantity=quantity, title=title)

    logger.warning(f"Skipping cart item with unrecognized type {item_type!r}")
    return None


def decode_cart_items(raw):
    """Decode the ``cart_items`` metadata value.

    Accepts the JSON string from Stripe metadata (or an already-parsed
    list). Malformed JSON decodes to an empty cart.

    Returns a list of PhotoItem / PassItem / TicketItem in original order.
    """
    if not raw:
        return []

    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError as e:
            logger.error(f"cart_items metadata is not valid JSON: {e}")
            return []

    if not isinstance(raw, list):
        logger.error(f"cart_items metadata is not a list: {type(raw).__name__}")
        return []

    items = []
    for entry in raw:
        item = decode_cart_item(entry)
        if item is not None:
            items.append(item)
    return items


def serialize_cart_snapshot(items):
    """Serialize client cart entries into the ``cart_items`` metadata value.

    Keeps only the contract keys (Stripe caps metadata values at 500
    characters, so urls, speeds and descriptions stay out).
    """
    snapshot = []
    for item in items:
        entry = {key: item.get(key) for key in SNAPSHOT_KEYS if item.get(key) is not None}
        snapshot.append(entry)
    return json.dumps(snapshot, separators=(",", ":"))
