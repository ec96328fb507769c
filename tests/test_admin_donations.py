from types import SimpleNamespace

import stripe
from sqlalchemy import select

from alianah.extensions import db, mail
from alianah.models import AuditLog, Donation, FundraiserCashDonation, OfflineIncome, RecurringDonation


def _completed_donation(app, donor_id, appeal_id, amount=5000, txn="pi_123"):
    with app.app_context():
        donation = Donation(
            donor_id=donor_id,
            appeal_id=appeal_id,
            amount_pence=amount,
            status="COMPLETED",
            order_number="786-100000001",
            transaction_id=txn,
        )
        db.session.add(donation)
        db.session.commit()
        return donation.id


def test_list_donations_filters_by_status_and_search(app, admin_client, make_appeal, make_donor):
    appeal_id = make_appeal("Orphans")
    donor_id = make_donor(email="fatima@example.com", first_name="Fatima")
    _completed_donation(app, donor_id, appeal_id)
    with app.app_context():
        db.session.add(Donation(donor_id=donor_id, appeal_id=appeal_id, amount_pence=100, status="PENDING"))
        db.session.commit()

    body = admin_client.get("/api/admin/donations?status=completed").get_json()
    assert body["total"] == 1
    assert body["donations"][0]["status"] == "COMPLETED"

    assert admin_client.get("/api/admin/donations?q=fatima").get_json()["total"] == 2
    assert admin_client.get("/api/admin/donations?q=nobody").get_json()["total"] == 0


def test_full_refund(app, admin_client, make_appeal, make_donor, monkeypatch):
    donation_id = _completed_donation(app, make_donor(), make_appeal("Orphans"))
    calls = {}
    monkeypatch.setattr(
        stripe.PaymentIntent, "retrieve", lambda *a, **k: SimpleNamespace(amount=5000, amount_refunded=0)
    )

    def _refund(**params):
        calls.update(params)
        return SimpleNamespace(id="re_1", status="succeeded")

    monkeypatch.setattr(stripe.Refund, "create", _refund)

    with mail.record_messages() as outbox:
        resp = admin_client.post(f"/api/admin/donations/{donation_id}/refund", json={"reason": "Duplicate gift"})
    assert resp.status_code == 200, resp.get_json()
    body = resp.get_json()
    assert body["refund"] == {"id": "re_1", "status": "succeeded"}
    assert body["donation"]["status"] == "REFUNDED"
    assert body["donation"]["refundedPence"] == 5000
    assert calls["payment_intent"] == "pi_123"
    assert "amount" not in calls
    assert len(outbox) == 1

    with app.app_context():
        assert db.session.scalar(select(AuditLog).where(AuditLog.action == "REFUND")) is not None


def test_partial_refund_cannot_exceed_remaining(app, admin_client, make_appeal, make_donor, monkeypatch):
    donation_id = _completed_donation(app, make_donor(), make_appeal("Orphans"))
    monkeypatch.setattr(
        stripe.PaymentIntent, "retrieve", lambda *a, **k: SimpleNamespace(amount=5000, amount_refunded=4000)
    )
    monkeypatch.setattr(stripe.Refund, "create", lambda **k: SimpleNamespace(id="re_2", status="succeeded"))

    too_much = admin_client.post(
        f"/api/admin/donations/{donation_id}/refund",
        json={"type": "partial", "amountPence": 1500, "reason": "Partial"},
    )
    assert too_much.status_code == 400

    ok = admin_client.post(
        f"/api/admin/donations/{donation_id}/refund",
        json={"type": "partial", "amountPence": 1000, "reason": "Partial"},
    )
    assert ok.status_code == 200
    assert ok.get_json()["donation"]["refundedPence"] == 1000


def test_refund_requires_payment_intent_and_admin(app, admin_client, login_as, make_appeal, make_donor):
    donation_id = _completed_donation(app, make_donor(), make_appeal("Orphans"), txn="sub_123")
    resp = admin_client.post(f"/api/admin/donations/{donation_id}/refund", json={"reason": "Nope"})
    assert resp.status_code == 400

    assert admin_client.post("/api/admin/donations/missing/refund", json={"reason": "Nope"}).status_code == 404

    viewer = login_as("VIEWER")
    assert viewer.post(f"/api/admin/donations/{donation_id}/refund", json={"reason": "Nope"}).status_code == 403


def test_refund_stripe_error_is_502(app, admin_client, make_appeal, make_donor, monkeypatch):
    donation_id = _completed_donation(app, make_donor(), make_appeal("Orphans"))

    def _boom(*a, **k):
        raise stripe.InvalidRequestError("No such payment_intent", "id")

    monkeypatch.setattr(stripe.PaymentIntent, "retrieve", _boom)
    resp = admin_client.post(f"/api/admin/donations/{donation_id}/refund", json={"reason": "Try"})
    assert resp.status_code == 502
    with app.app_context():
        assert db.session.get(Donation, donation_id).status == "COMPLETED"


def test_cancel_recurring(app, admin_client, make_donor, monkeypatch):
    donor_id = make_donor()
    with app.app_context():
        row = RecurringDonation(donor_id=donor_id, amount_pence=1000, status="ACTIVE", subscription_id="sub_9")
        db.session.add(row)
        db.session.commit()
        recurring_id = row.id

    cancelled = []
    monkeypatch.setattr(stripe.Subscription, "cancel", lambda sid, **k: cancelled.append(sid))
    resp = admin_client.post(f"/api/admin/recurring/{recurring_id}/cancel")
    assert resp.status_code == 200
    assert cancelled == ["sub_9"]
    with app.app_context():
        assert db.session.get(RecurringDonation, recurring_id).status == "CANCELLED"


def test_cash_donation_review(app, admin_client, make_fundraiser):
    fundraiser_id = make_fundraiser()
    with app.app_context():
        row = FundraiserCashDonation(fundraiser_id=fundraiser_id, amount_pence=2000, donor_name="Bilal")
        db.session.add(row)
        db.session.commit()
        cash_id = row.id

    pending = admin_client.get("/api/admin/fundraisers/cash-donations/pending").get_json()["cashDonations"]
    assert [p["id"] for p in pending] == [cash_id]
    assert pending[0]["fundraiser"]["slug"] == "run4water"

    bad = admin_client.patch(f"/api/admin/fundraisers/cash-donations/{cash_id}", json={"status": "MAYBE"})
    assert bad.status_code == 400

    resp = admin_client.patch(f"/api/admin/fundraisers/cash-donations/{cash_id}", json={"status": "APPROVED"})
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["status"] == "APPROVED"
    assert body["reviewedAt"] is not None

    again = admin_client.patch(f"/api/admin/fundraisers/cash-donations/{cash_id}", json={"status": "REJECTED"})
    assert again.status_code == 400
    assert admin_client.get("/api/admin/fundraisers/cash-donations/pending").get_json()["cashDonations"] == []

    missing = admin_client.patch("/api/admin/fundraisers/cash-donations/nope", json={"status": "APPROVED"})
    assert missing.status_code == 404


def test_offline_income(app, admin_client, make_appeal):
    appeal_id = make_appeal("Masjid Build")
    resp = admin_client.post(
        "/api/admin/offline-income",
        json={
            "amountPence": 12500,
            "donationType": "SADAQAH",
            "source": "bank_transfer",
            "receivedAt": "2026-03-01T10:00:00Z",
            "appealId": appeal_id,
        },
    )
    assert resp.status_code == 201
    income = resp.get_json()["income"]
    assert income["amountPence"] == 12500

    with app.app_context():
        row = db.session.scalar(select(OfflineIncome))
        assert row.source == "BANK_TRANSFER"
        assert row.donation_number.startswith("786-1")

    assert admin_client.get("/api/admin/offline-income").get_json()["total"] == 1

    bad_date = admin_client.post(
        "/api/admin/offline-income", json={"amountPence": 100, "source": "CASH", "receivedAt": "yesterday"}
    )
    assert bad_date.status_code == 400
    unknown = admin_client.post(
        "/api/admin/offline-income",
        json={"amountPence": 100, "source": "CASH", "receivedAt": "2026-03-01", "appealId": "nope"},
    )
    assert unknown.status_code == 404


def test_unknown_campaign_kind(admin_client):
    assert admin_client.get("/api/admin/campaign-donations/bricks").status_code == 404
