"""Tests for the webhooks blueprint and Stripe event classification.

Covers:
- Webhook signature verification (missing, invalid, wrong secret, stale)
- Preflight and method handling
- Events that are acknowledged but never fulfilled
- checkout.session.completed end to end (photo purchase)
- Idempotent replay of the same checkout session
- Unknown customer mapping (200, nothing written)
- Non-finite prices in the cart snapshot
- Unexpected processing errors (500 so Stripe retries, nothing kept)
"""

import json
import time
from unittest.mock import patch

from ridephotos.models.cart import CartItem
from ridephotos.models.purchase import Purchase, PurchaseItem
from ridephotos.models.entitlement import LeaderboardEntry, UnlockedPhoto


class TestWebhookSignature:
    """Tests for webhook signature validation."""

    def test_missing_signature_returns_400(self, client, seed_data):
        """POST /stripe/webhooks without signature -> 400."""
        resp = client.post(
            "/stripe/webhooks",
            data="{}",
            content_type="application/json",
        )
        assert resp.status_code == 400
        assert b"No signature found" in resp.data

    def test_invalid_signature_returns_400(self, client, seed_data, make_checkout_session, make_event):
        """Garbage signature header -> 400, nothing written."""
        session = make_checkout_session([{"type": "photo", "photoId": seed_data["fast_photo_id"], "price": 4.99}])
        payload = json.dumps(make_event("checkout.session.completed", session))

        resp = client.post(
            "/stripe/webhooks",
            data=payload,
            content_type="application/json",
            headers={"Stripe-Signature": "t=123,v1=deadbeef"},
        )
        assert resp.status_code == 400
        assert b"Webhook signature verification failed" in resp.data
        assert Purchase.query.count() == 0

    def test_wrong_secret_returns_400(self, client, seed_data, make_checkout_session, make_event, sign_payload):
        """Signed with a different endpoint secret -> 400."""
        session = make_checkout_session([{"type": "photo", "photoId": seed_data["fast_photo_id"], "price": 4.99}])
        payload = json.dumps(make_event("checkout.session.completed", session))

        resp = client.post(
            "/stripe/webhooks",
            data=payload,
            content_type="application/json",
            headers={"Stripe-Signature": sign_payload(payload, secret="whsec_other")},
        )
        assert resp.status_code == 400
        assert Purchase.query.count() == 0

    def test_tampered_body_returns_400(self, client, seed_data, make_event, sign_payload):
        """Signature over one body, different body sent -> 400."""
        original = json.dumps(make_event("checkout.session.completed", {"customer": "cus_test_123"}))
        tampered = original.replace("cus_test_123", "cus_attacker")

        resp = client.post(
            "/stripe/webhooks",
            data=tampered,
            content_type="application/json",
            headers={"Stripe-Signature": sign_payload(original)},
        )
        assert resp.status_code == 400

    def test_stale_timestamp_returns_400(self, client, seed_data, make_event, sign_payload):
        """Signature older than the tolerance window -> 400."""
        payload = json.dumps(make_event("customer.subscription.updated", {"customer": "cus_test_123"}))
        stale = int(time.time()) - 3600

        resp = client.post(
            "/stripe/webhooks",
            data=payload,
            content_type="application/json",
            headers={"Stripe-Signature": sign_payload(payload, timestamp=stale)},
        )
        assert resp.status_code == 400


class TestWebhookMethods:
    """OPTIONS preflight and unsupported methods."""

    def test_options_returns_204(self, client):
        resp = client.options("/stripe/webhooks")
        assert resp.status_code == 204
        assert resp.data == b""

    def test_get_returns_405(self, client):
        resp = client.get("/stripe/webhooks")
        assert resp.status_code == 405


class TestIgnoredEvents:
    """Events acknowledged with 200 that must not write anything."""

    def test_payment_intent_without_invoice_ignored(self, post_webhook, seed_data, make_event):
        """payment_intent.succeeded for a one-time payment is skipped."""
        event = make_event("payment_intent.succeeded", {
            "id": "pi_test_001",
            "object": "payment_intent",
            "customer": "cus_test_123",
            "invoice": None,
        })
        with patch("ridephotos.services.stripe_service.sync_customer_subscription") as mock_sync:
            resp = post_webhook(event)

        assert resp.status_code == 200
        assert resp.get_json() == {"received": True}
        mock_sync.assert_not_called()
        assert Purchase.query.count() == 0

    def test_event_without_customer_ignored(self, post_webhook, seed_data, make_checkout_session, make_event):
        session = make_checkout_session(
            [{"type": "photo", "photoId": seed_data["fast_photo_id"], "price": 4.99}],
            customer=None,
        )
        resp = post_webhook(make_event("checkout.session.completed", session))

        assert resp.status_code == 200
        assert Purchase.query.count() == 0

    def test_event_without_data_ignored(self, post_webhook, seed_data):
        event = {"id": "evt_empty", "type": "checkout.session.completed", "data": {}}
        resp = post_webhook(event)
        assert resp.status_code == 200
        assert Purchase.query.count() == 0

    def test_unpaid_checkout_session_ignored(self, post_webhook, seed_data, make_checkout_session, make_event):
        """Delayed payment methods complete the session before paying."""
        session = make_checkout_session(
            [{"type": "photo", "photoId": seed_data["fast_photo_id"], "price": 4.99}],
            payment_status="unpaid",
        )
        resp = post_webhook(make_event("checkout.session.completed", session))

        assert resp.status_code == 200
        assert Purchase.query.count() == 0

    def test_unknown_event_type_acknowledged(self, post_webhook, seed_data, make_event):
        event = make_event("customer.updated", {"id": "cus_test_123", "customer": "cus_test_123"})
        resp = post_webhook(event)
        assert resp.status_code == 200
        assert Purchase.query.count() == 0


class TestCheckoutCompleted:
    """checkout.session.completed -> purchase + entitlements."""

    def test_single_photo_purchase(self, post_webhook, seed_data, make_checkout_session, make_event):
        photo_id = seed_data["fast_photo_id"]
        session = make_checkout_session(
            [{"type": "photo", "photoId": photo_id, "price": 4.99, "quantity": 1}],
        )

        resp = post_webhook(make_event("checkout.session.completed", session))
        assert resp.status_code == 200

        purchase = Purchase.query.one()
        assert purchase.user_id == seed_data["user_id"]
        assert purchase.stripe_checkout_session_id == "cs_test_001"
        assert purchase.stripe_payment_intent_id == "pi_test_001"
        assert purchase.amount_cents == 499
        assert purchase.total_amount_cents == 499
        assert purchase.currency == "eur"
        assert purchase.status == "paid"
        assert purchase.photo_id == photo_id
        assert purchase.park_id == seed_data["park_id"]

        item = PurchaseItem.query.one()
        assert item.item_type == "photo"
        assert item.photo_id == photo_id
        assert item.unit_amount_cents == 499
        assert item.quantity == 1

        unlock = UnlockedPhoto.query.one()
        assert unlock.user_id == seed_data["user_id"]
        assert unlock.photo_id == photo_id

        entry = LeaderboardEntry.query.one()
        assert entry.photo_id == photo_id
        assert entry.speed_kmh == 55.2
        assert entry.ride_date.isoformat() == "2024-06-01"

    def test_async_payment_succeeded_fulfills(self, post_webhook, seed_data, make_checkout_session, make_event):
        session = make_checkout_session(
            [{"type": "photo", "photoId": seed_data["fast_photo_id"], "price": 4.99}],
        )
        resp = post_webhook(make_event("checkout.session.async_payment_succeeded", session))

        assert resp.status_code == 200
        assert Purchase.query.count() == 1

    def test_replay_is_idempotent(self, post_webhook, seed_data, make_checkout_session, make_event):
        """The same session delivered twice yields one set of rows."""
        session = make_checkout_session([
            {"type": "photo", "photoId": seed_data["fast_photo_id"], "price": 4.99},
            {"type": "pass", "selectedDate": "2024-06-01", "price": 19.99},
        ])

        first = post_webhook(make_event("checkout.session.completed", session, event_id="evt_a"))
        second = post_webhook(make_event("checkout.session.completed", session, event_id="evt_b"))

        assert first.status_code == 200
        assert second.status_code == 200
        assert Purchase.query.count() == 1
        assert PurchaseItem.query.count() == 2
        assert UnlockedPhoto.query.count() == 5
        assert LeaderboardEntry.query.count() == 5

    def test_unknown_customer_returns_200_without_purchase(self, post_webhook, seed_data, make_checkout_session, make_event):
        """No stripe_customers mapping -> acknowledged, nothing fulfilled."""
        session = make_checkout_session(
            [{"type": "photo", "photoId": seed_data["fast_photo_id"], "price": 4.99}],
            customer="cus_unknown_999",
        )
        resp = post_webhook(make_event("checkout.session.completed", session))

        assert resp.status_code == 200
        assert Purchase.query.count() == 0
        assert UnlockedPhoto.query.count() == 0

    def test_unexpected_error_returns_500(self, post_webhook, seed_data, make_checkout_session, make_event):
        """A must-succeed step failing -> 500 so Stripe retries."""
        session = make_checkout_session(
            [{"type": "photo", "photoId": seed_data["fast_photo_id"], "price": 4.99}],
        )
        with patch(
            "ridephotos.services.fulfillment_service.find_purchase",
            side_effect=RuntimeError("database unavailable"),
        ):
            resp = post_webhook(make_event("checkout.session.completed", session))

        assert resp.status_code == 500
        assert resp.get_json()["error"] == "database unavailable"
        assert Purchase.query.count() == 0

    def test_error_after_purchase_insert_rolls_back(self, post_webhook, seed_data, make_checkout_session, make_event):
        """A failure late in fulfillment discards the purchase and its unlocks."""
        session = make_checkout_session(
            [{"type": "photo", "photoId": seed_data["fast_photo_id"], "price": 4.99}],
        )
        with patch(
            "ridephotos.services.fulfillment_service.best_effort",
            side_effect=RuntimeError("connection lost"),
        ):
            resp = post_webhook(make_event("checkout.session.completed", session))

        assert resp.status_code == 500
        assert Purchase.query.count() == 0
        assert PurchaseItem.query.count() == 0
        assert UnlockedPhoto.query.count() == 0
        assert LeaderboardEntry.query.count() == 0
        assert CartItem.query.filter_by(user_id=seed_data["user_id"]).count() == 2

    def test_non_finite_price_does_not_fail_the_event(self, post_webhook, seed_data, make_checkout_session, make_event):
        """NaN and Infinity prices are recorded as 0, the rest of the cart goes through."""
        photo_id = seed_data["fast_photo_id"]
        session = make_checkout_session([
            {"type": "photo", "photoId": photo_id, "price": 4.99},
            {"type": "ticket", "price": "NaN"},
            {"type": "ticket", "price": float("inf")},
        ])

        resp = post_webhook(make_event("checkout.session.completed", session))

        assert resp.status_code == 200
        assert Purchase.query.count() == 1
        tickets = PurchaseItem.query.filter_by(item_type="ticket").all()
        assert [t.unit_amount_cents for t in tickets] == [0, 0]
        assert PurchaseItem.query.filter_by(item_type="photo").one().unit_amount_cents == 499
        assert UnlockedPhoto.query.one().photo_id == photo_id


class TestSubscriptionEvents:
    """Subscription lifecycle events resync the mirror."""

    def test_subscription_event_triggers_sync(self, post_webhook, seed_data, make_event):
        event = make_event("customer.subscription.updated", {
            "id": "sub_test_001",
            "object": "subscription",
            "customer": "cus_test_123",
        })
        with patch("ridephotos.services.stripe_service.sync_customer_subscription") as mock_sync:
            resp = post_webhook(event)

        assert resp.status_code == 200
        mock_sync.assert_called_once()
        assert mock_sync.call_args[0][0] == "cus_test_123"

    def test_subscription_checkout_triggers_sync(self, post_webhook, seed_data, make_checkout_session, make_event):
        session = make_checkout_session([], mode="subscription", subscription="sub_test_001")
        with patch("ridephotos.services.stripe_service.sync_customer_subscription") as mock_sync:
            resp = post_webhook(make_event("checkout.session.completed", session))

        assert resp.status_code == 200
        mock_sync.assert_called_once()
        assert Purchase.query.count() == 0

    def test_invoice_payment_intent_triggers_sync(self, post_webhook, seed_data, make_event):
        """payment_intent events that belong to an invoice are subscription traffic."""
        event = make_event("payment_intent.succeeded", {
            "id": "pi_sub_001",
            "object": "payment_intent",
            "customer": "cus_test_123",
            "invoice": "in_test_001",
        })
        with patch("ridephotos.services.stripe_service.sync_customer_subscription") as mock_sync:
            resp = post_webhook(event)

        assert resp.status_code == 200
        mock_sync.assert_called_once()
