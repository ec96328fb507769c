from sqlalchemy import select

from alianah.extensions import db, mail
from alianah.models import Donation, FundraiserLoginOtp


def _login_fundraiser(app, client, email="runner@example.com"):
    with mail.record_messages() as outbox:
        assert client.post("/api/fundraisers/otp/send", json={"email": email}).status_code == 200
    assert len(outbox) == 1
    with app.app_context():
        code = db.session.scalar(select(FundraiserLoginOtp.code).where(FundraiserLoginOtp.email == email))
    resp = client.post("/api/fundraisers/otp/verify", json={"email": email, "code": code})
    assert resp.status_code == 200
    assert "fundraiser_session=" in resp.headers["Set-Cookie"]


def test_create_fundraiser_page(client, make_appeal):
    appeal_id = make_appeal("Water for Life", allow_fundraising=True)
    resp = client.post(
        "/api/fundraisers",
        json={
            "appealId": appeal_id,
            "title": "Skydive for wells",
            "fundraiserName": "Zara",
            "email": "Zara@Example.com",
            "targetAmountPence": 50000,
        },
    )
    assert resp.status_code == 201
    slug = resp.get_json()["slug"]
    assert len(slug) == 12

    page = client.get(f"/api/fundraisers/{slug}").get_json()["fundraiser"]
    assert page["title"] == "Skydive for wells"
    assert page["totalRaisedPence"] == 0
    assert page["donationCount"] == 0


def test_fundraising_must_be_enabled_on_appeal(client, make_appeal):
    appeal_id = make_appeal("General Fund", allow_fundraising=False)
    resp = client.post(
        "/api/fundraisers",
        json={"appealId": appeal_id, "title": "X", "fundraiserName": "Y", "email": "y@example.com", "targetAmountPence": 100},
    )
    assert resp.status_code == 403


def test_page_totals_include_approved_cash(app, client, make_fundraiser, make_donor):
    fundraiser_id = make_fundraiser()
    donor_id = make_donor()
    with app.app_context():
        db.session.add(
            Donation(
                donor_id=donor_id,
                fundraiser_id=fundraiser_id,
                amount_pence=1500,
                status="COMPLETED",
                order_number="786-100000001",
                transaction_id="pi_1",
            )
        )
        db.session.commit()

    page = client.get("/api/fundraisers/run4water").get_json()["fundraiser"]
    assert page["totalRaisedPence"] == 1500
    assert page["donationCount"] == 1


def test_owner_login_and_cash_reporting(app, client, make_fundraiser):
    fundraiser_id = make_fundraiser()
    assert client.get("/api/fundraisers/mine").status_code == 401

    _login_fundraiser(app, client)
    mine = client.get("/api/fundraisers/mine").get_json()["fundraisers"]
    assert [f["id"] for f in mine] == [fundraiser_id]

    created = client.post(
        f"/api/fundraisers/{fundraiser_id}/cash-donations", json={"amountPence": 2000, "donorName": "Uncle Idris"}
    )
    assert created.status_code == 201
    assert created.get_json()["cashDonation"]["status"] == "PENDING_REVIEW"

    listed = client.get(f"/api/fundraisers/{fundraiser_id}/cash-donations").get_json()["cashDonations"]
    assert len(listed) == 1
    # pending cash is not counted until reviewed
    assert client.get("/api/fundraisers/run4water").get_json()["fundraiser"]["totalRaisedPence"] == 0


def test_other_fundraisers_pages_are_hidden(app, client, make_fundraiser):
    other_id = make_fundraiser(slug="someone-else", email="other@example.com")
    _login_fundraiser(app, client)
    assert client.get(f"/api/fundraisers/{other_id}/donations").status_code == 404
    assert client.post(f"/api/fundraisers/{other_id}/cash-donations", json={"amountPence": 100}).status_code == 404


def test_wrong_otp_is_rejected(client):
    client.post("/api/fundraisers/otp/send", json={"email": "runner@example.com"})
    resp = client.post("/api/fundraisers/otp/verify", json={"email": "runner@example.com", "code": "000000x"})
    assert resp.status_code == 400


def test_public_cash_donation(client, make_fundraiser):
    fundraiser_id = make_fundraiser()
    resp = client.post(f"/api/fundraisers/{fundraiser_id}/public-cash-donation", json={"amountPence": 500})
    assert resp.status_code == 201
    assert client.post("/api/fundraisers/nope/public-cash-donation", json={"amountPence": 500}).status_code == 404
