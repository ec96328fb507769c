import json
from datetime import timedelta
from types import SimpleNamespace

import pytest
import stripe
from sqlalchemy import select

from alianah.extensions import db, mail
from alianah.models import Donation, Order, RecurringDonation, StripeEvent, utcnow


@pytest.fixture()
def fake_stripe(monkeypatch):
    sessions = []

    def _create(**params):
        sessions.append(params)
        n = len(sessions)
        return SimpleNamespace(id=f"cs_test_{n}", url=f"https://checkout.stripe.com/c/pay/cs_test_{n}")

    monkeypatch.setattr(stripe.checkout.Session, "create", _create)
    monkeypatch.setattr(stripe.Webhook, "construct_event", lambda payload, sig, secret: None)
    return sessions


def _basket(appeal_id, **overrides):
    body = {
        "items": [
            {
                "appealId": appeal_id,
                "appealTitle": "Emergency Appeal",
                "amountPence": 2500,
                "frequency": "ONE_OFF",
                "donationType": "SADAQAH",
            }
        ],
        "donor": {"firstName": "Amina", "lastName": "Khan", "email": "Amina@Example.com"},
    }
    body.update(overrides)
    return body


def _send_event(client, event):
    return client.post(
        "/api/webhooks/stripe",
        data=json.dumps(event),
        headers={"Stripe-Signature": "t=1,v1=test", "Content-Type": "application/json"},
    )


def _checkout_completed(order_number, event_id="evt_1", **obj):
    data = {
        "id": "cs_test_1",
        "mode": "payment",
        "payment_status": "paid",
        "payment_intent": "pi_abc",
        "metadata": {"orderNumber": order_number},
        "customer_details": {"email": "amina@example.com"},
        "created": 1_760_000_000,
    }
    data.update(obj)
    return {"id": event_id, "type": "checkout.session.completed", "livemode": False, "data": {"object": data}}


def test_checkout_creates_pending_order_and_session(app, client, make_appeal, fake_stripe):
    appeal_id = make_appeal("Emergency Appeal")
    resp = client.post("/api/checkout", json=_basket(appeal_id))
    assert resp.status_code == 201, resp.get_json()
    body = resp.get_json()
    assert body["sessionId"] == "cs_test_1"
    assert body["checkoutUrl"].startswith("https://checkout.stripe.com/")
    assert body["orderNumber"].startswith("786-1")

    params = fake_stripe[0]
    assert params["mode"] == "payment"
    assert params["metadata"] == {"orderNumber": body["orderNumber"]}
    assert params["line_items"][0]["price_data"]["unit_amount"] == 2500

    with app.app_context():
        order = db.session.scalar(select(Order).where(Order.order_number == body["orderNumber"]))
        assert order.status == "PENDING"
        assert order.donor_email == "amina@example.com"
        assert order.stripe_session_id == "cs_test_1"
        donation = db.session.scalar(select(Donation).where(Donation.order_number == order.order_number))
        assert donation.status == "PENDING"
        assert donation.amount_pence == 2500

    status = client.get(f"/api/checkout/order/{body['orderNumber']}")
    assert status.get_json()["order"]["status"] == "PENDING"


def test_checkout_rejects_bad_basket(client, make_appeal, fake_stripe):
    appeal_id = make_appeal("Emergency Appeal")
    empty = client.post("/api/checkout", json=_basket(appeal_id, items=[]))
    assert empty.status_code == 400
    assert "items" in empty.get_json()["issues"]

    mismatch = client.post("/api/checkout", json=_basket(appeal_id, subtotalPence=999))
    assert mismatch.status_code == 400
    assert "subtotalPence" in mismatch.get_json()["issues"]

    no_email = _basket(appeal_id)
    no_email["donor"]["email"] = "not-an-email"
    assert client.post("/api/checkout", json=no_email).status_code == 400

    gift_aid = _basket(appeal_id)
    gift_aid["donor"]["giftAid"] = True
    resp = client.post("/api/checkout", json=gift_aid)
    assert resp.status_code == 400
    assert "donor.address" in resp.get_json()["issues"]
    assert fake_stripe == []


def test_recurring_item_uses_subscription_mode(app, client, make_appeal, fake_stripe):
    appeal_id = make_appeal("Orphan Support")
    basket = _basket(appeal_id)
    basket["items"][0]["frequency"] = "MONTHLY"
    resp = client.post("/api/checkout", json=basket)
    assert resp.status_code == 201
    params = fake_stripe[0]
    assert params["mode"] == "subscription"
    assert params["line_items"][0]["price_data"]["recurring"] == {"interval": "month"}
    with app.app_context():
        assert db.session.scalar(select(RecurringDonation)).status == "PENDING"


def test_webhook_finalizes_order_once(app, client, make_appeal, fake_stripe):
    appeal_id = make_appeal("Emergency Appeal")
    order_number = client.post("/api/checkout", json=_basket(appeal_id)).get_json()["orderNumber"]

    with mail.record_messages() as outbox:
        first = _send_event(client, _checkout_completed(order_number))
        replay = _send_event(client, _checkout_completed(order_number))
    assert first.status_code == 200
    assert replay.status_code == 200
    assert len(outbox) == 1
    assert order_number in outbox[0].subject

    with app.app_context():
        order = db.session.scalar(select(Order).where(Order.order_number == order_number))
        assert order.status == "COMPLETED"
        donation = db.session.scalar(select(Donation).where(Donation.order_number == order_number))
        assert donation.status == "COMPLETED"
        assert donation.transaction_id == "pi_abc"
        assert db.session.scalar(select(StripeEvent).where(StripeEvent.event_id == "evt_1")) is not None


def test_unpaid_checkout_session_is_left_pending(app, client, make_appeal, fake_stripe):
    appeal_id = make_appeal("Emergency Appeal")
    order_number = client.post("/api/checkout", json=_basket(appeal_id)).get_json()["orderNumber"]
    resp = _send_event(client, _checkout_completed(order_number, payment_status="unpaid"))
    assert resp.status_code == 200
    with app.app_context():
        assert db.session.scalar(select(Order.status).where(Order.order_number == order_number)) == "PENDING"


def test_webhook_requires_signature(client, monkeypatch):
    def _reject(payload, sig, secret):
        raise stripe.SignatureVerificationError("bad signature", sig)

    monkeypatch.setattr(stripe.Webhook, "construct_event", _reject)
    assert client.post("/api/webhooks/stripe", data="{}").status_code == 400
    bad = client.post("/api/webhooks/stripe", data="{}", headers={"Stripe-Signature": "t=1,v1=nope"})
    assert bad.status_code == 400


def test_subscription_events_update_recurring(app, client, make_donor, fake_stripe):
    donor_id = make_donor()
    with app.app_context():
        db.session.add(RecurringDonation(donor_id=donor_id, amount_pence=1000, status="ACTIVE", subscription_id="sub_1"))
        db.session.commit()

    failed = {"id": "evt_f", "type": "invoice.payment_failed", "data": {"object": {"id": "in_1", "subscription": "sub_1"}}}
    assert _send_event(client, failed).status_code == 200
    with app.app_context():
        assert db.session.scalar(select(RecurringDonation.status)) == "FAILED"

    deleted = {"id": "evt_d", "type": "customer.subscription.deleted", "data": {"object": {"id": "sub_1"}}}
    assert _send_event(client, deleted).status_code == 200
    with app.app_context():
        assert db.session.scalar(select(RecurringDonation.status)) == "CANCELLED"


def test_abandoned_checkout_cron(app, client, make_appeal, fake_stripe):
    appeal_id = make_appeal("Emergency Appeal")
    order_number = client.post("/api/checkout", json=_basket(appeal_id)).get_json()["orderNumber"]
    with app.app_context():
        order = db.session.scalar(select(Order).where(Order.order_number == order_number))
        order.created_at = utcnow() - timedelta(hours=2)
        db.session.commit()

    assert client.get("/api/cron/abandoned-checkout").status_code == 401

    with mail.record_messages() as outbox:
        resp = client.get("/api/cron/abandoned-checkout", headers={"Authorization": "Bearer test-cron-secret"})
    assert resp.status_code == 200
    assert resp.get_json()["sentFirst"] == 1
    assert resp.get_json()["sentSecond"] == 0
    assert len(outbox) == 1
    assert f"resume={order_number}" in outbox[0].body

    with app.app_context():
        assert db.session.scalar(select(Order.status).where(Order.order_number == order_number)) == "ABANDONED"
