"""Shared test fixtures for the ride photo fulfillment test suite.

Provides:
- app: Flask app configured for testing (in-memory SQLite, rate limits off)
- client: Flask test client
- db_session: clean database per test (tables created/dropped)
- seed_data: a buyer with a Stripe customer mapping, photos in two parks,
  and a live cart
- post_webhook: send a webhook signed with the test webhook secret
- auth_as: fake a valid Supabase access token for a user
"""

import hashlib
import hmac
import json
import time
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy import event

from ridephotos import create_app
from ridephotos.extensions import db as _db
from ridephotos.models.billing import StripeCustomer
from ridephotos.models.cart import CartItem
from ridephotos.models.photo import Photo
from ridephotos.models.profile import Profile

WEBHOOK_SECRET = "whsec_test_fake"

USER_ID = "0b8f6c1e-5d2a-4c1b-9a7e-3f1d2c4b5a60"
CUSTOMER_ID = "cus_test_123"
PARK_ID = "22222222-2222-2222-2222-222222222222"
OTHER_PARK_ID = "33333333-3333-3333-3333-333333333333"


def _sign_payload(payload, secret=WEBHOOK_SECRET, timestamp=None):
    """Build a Stripe-Signature header for ``payload`` (a str)."""
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def _make_event(event_type, data_object, event_id="evt_test_001"):
    return {
        "id": event_id,
        "object": "event",
        "type": event_type,
        "data": {"object": data_object},
    }


def _make_checkout_session(cart_items, session_id="cs_test_001", customer=CUSTOMER_ID,
                          user_id=USER_ID, amount_total=499, **overrides):
    """A completed one-time payment Checkout Session as Stripe sends it."""
    session = {
        "id": session_id,
        "object": "checkout.session",
        "mode": "payment",
        "payment_status": "paid",
        "customer": customer,
        "payment_intent": "pi_test_001",
        "amount_subtotal": amount_total,
        "amount_total": amount_total,
        "currency": "eur",
        "metadata": {
            "user_id": user_id,
            "cart_items": json.dumps(cart_items),
        },
    }
    session.update(overrides)
    return session


@pytest.fixture(scope="session")
def app():
    """Create the Flask application configured for testing."""
    app = create_app("testing")

    # pysqlite emits no BEGIN before a SAVEPOINT, so releasing the first
    # savepoint commits. Emit BEGIN ourselves so rollback covers nested writes.
    with app.app_context():
        engine = _db.engine

        @event.listens_for(engine, "connect")
        def _disable_pysqlite_begin(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine, "begin")
        def _emit_begin(conn):
            conn.exec_driver_sql("BEGIN")

    yield app


@pytest.fixture(autouse=True)
def db_session(app):
    """Create all tables before each test, drop after."""
    with app.app_context():
        _db.create_all()
        yield _db.session
        _db.session.rollback()
        _db.drop_all()


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture
def post_webhook(client):
    """POST an event to /stripe/webhooks with a valid signature."""

    def _post(event):
        payload = json.dumps(event)
        return client.post(
            "/stripe/webhooks",
            data=payload,
            content_type="application/json",
            headers={"Stripe-Signature": _sign_payload(payload)},
        )

    return _post


@pytest.fixture
def auth_as():
    """Make Supabase accept ``Bearer good-token`` as the given user.

    Usage:
        with auth_as(USER_ID):
            client.post(..., headers=AUTH_HEADERS)
    """

    def _auth_as(user_id, email="rider@example.com"):
        response = MagicMock(status_code=200)
        response.json.return_value = {"id": user_id, "email": email}
        return patch("ridephotos.services.auth_service.requests.get", return_value=response)

    return _auth_as


@pytest.fixture
def seed_data(app, db_session):
    """Seed a buyer, their Stripe customer mapping, photos and a live cart.

    Photos in PARK_ID: five on 2024-06-01 (one of them without a recorded
    speed), one on 2024-06-02. One photo on 2024-06-01 in OTHER_PARK_ID.

    Returns a dict of plain IDs for easy access in tests.
    """
    profile = Profile(id=USER_ID, email="rider@example.com", park_id=PARK_ID)
    _db.session.add(profile)
    _db.session.add(StripeCustomer(user_id=USER_ID, customer_id=CUSTOMER_ID))

    day_photos = []
    for hour, speed in [(9, 48.5), (10, 51.0), (11, None), (12, 39.75), (15, 55.2)]:
        photo = Photo(
            park_id=PARK_ID,
            captured_at=datetime(2024, 6, 1, hour, 30, tzinfo=timezone.utc),
            storage_path=f"{PARK_ID}/2024-06-01/ride_{hour:02d}30_4210.jpg",
            speed_kmh=speed,
        )
        _db.session.add(photo)
        day_photos.append(photo)

    next_day_photo = Photo(
        park_id=PARK_ID,
        captured_at=datetime(2024, 6, 2, 0, 5, tzinfo=timezone.utc),
        storage_path=f"{PARK_ID}/2024-06-02/ride_0005_3900.jpg",
        speed_kmh=39.0,
    )
    other_park_photo = Photo(
        park_id=OTHER_PARK_ID,
        captured_at=datetime(2024, 6, 1, 10, 0, tzinfo=timezone.utc),
        storage_path=f"{OTHER_PARK_ID}/2024-06-01/ride_1000_6000.jpg",
        speed_kmh=60.0,
    )
    _db.session.add_all([next_day_photo, other_park_photo])
    _db.session.flush()

    _db.session.add_all([
        CartItem(user_id=USER_ID, photo_id=day_photos[0].id, item_type="photo", unit_price=4.99),
        CartItem(user_id=USER_ID, item_type="pass", unit_price=19.99),
        CartItem(user_id="someone-else", photo_id=day_photos[1].id, item_type="photo", unit_price=4.99),
    ])
    _db.session.commit()

    return {
        "user_id": USER_ID,
        "customer_id": CUSTOMER_ID,
        "park_id": PARK_ID,
        "day_photo_ids": [p.id for p in day_photos],
        "no_speed_photo_id": day_photos[2].id,
        "fast_photo_id": day_photos[4].id,
        "next_day_photo_id": next_day_photo.id,
        "other_park_photo_id": other_park_photo.id,
    }


@pytest.fixture
def sign_payload():
    """Stripe-Signature header builder: sign_payload(payload, secret=..., timestamp=...)."""
    return _sign_payload


@pytest.fixture
def make_event():
    """Event envelope builder: make_event(type, data_object, event_id=...)."""
    return _make_event


@pytest.fixture
def make_checkout_session():
    """Paid one-time Checkout Session builder: make_checkout_session(cart_items, **overrides)."""
    return _make_checkout_session
