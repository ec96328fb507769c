from datetime import datetime, timedelta

from sqlalchemy import select

from alianah.extensions import db, mail
from alianah.models import AdminUser, Donation, Order, utcnow
from alianah.services.analytics import format_bucket_label, get_bucket_key, resolve_date_range


def test_organization_settings_defaults_then_update(admin_client):
    current = admin_client.get("/api/admin/settings/organization").get_json()["settings"]
    assert current["charityName"] == "Alianah Humanity Welfare"

    resp = admin_client.put(
        "/api/admin/settings/organization",
        json={
            "charityName": "Alianah UK",
            "supportEmail": "Help@Alianah.org",
            "websiteUrl": "https://alianah.org",
            "charityNumber": "1160076",
        },
    )
    assert resp.status_code == 200
    assert resp.get_json()["settings"]["supportEmail"] == "help@alianah.org"
    assert admin_client.get("/api/admin/settings/organization").get_json()["settings"]["charityName"] == "Alianah UK"

    bad = admin_client.put("/api/admin/settings/organization", json={"charityName": "X", "supportEmail": "nope"})
    assert bad.status_code == 400


def test_settings_are_admin_only(login_as):
    staff = login_as("STAFF")
    assert staff.get("/api/admin/settings/admin-users").status_code == 403
    assert staff.get("/api/admin/audit").status_code == 403
    assert staff.get("/api/admin/analytics").status_code == 403


def test_invite_admin_user(app, admin_client):
    with mail.record_messages() as outbox:
        resp = admin_client.post("/api/admin/settings/admin-users", json={"email": "New@Alianah.org", "role": "VIEWER"})
    assert resp.status_code == 201
    body = resp.get_json()
    assert body["emailSent"] is True
    assert body["user"]["role"] == "VIEWER"
    assert body["user"]["hasPassword"] is False
    assert len(outbox) == 1

    with app.app_context():
        user = db.session.scalar(select(AdminUser).where(AdminUser.email == "new@alianah.org"))
        assert user.invite_token in outbox[0].body
        assert user.invite_expires_at > utcnow() + timedelta(days=6)

    dup = admin_client.post("/api/admin/settings/admin-users", json={"email": "new@alianah.org"})
    assert dup.status_code == 409
    bad_role = admin_client.post("/api/admin/settings/admin-users", json={"email": "x@alianah.org", "role": "OWNER"})
    assert bad_role.status_code == 400

    users = admin_client.get("/api/admin/settings/admin-users").get_json()["users"]
    assert {u["email"] for u in users} == {"admin@alianah.org", "new@alianah.org"}


def test_audit_log_lists_recent_actions(admin_client):
    admin_client.post("/api/admin/appeals", json={"title": "Audited"})
    entries = admin_client.get("/api/admin/audit?action=create").get_json()["entries"]
    assert len(entries) == 1
    assert entries[0]["entityType"] == "appeal"

    logins = admin_client.get("/api/admin/audit?action=LOGIN").get_json()
    assert logins["total"] == 1


def _donation(donor_id, appeal_id, amount, order, txn, **kwargs):
    return Donation(
        donor_id=donor_id,
        appeal_id=appeal_id,
        amount_pence=amount,
        status="COMPLETED",
        order_number=order,
        transaction_id=txn,
        completed_at=kwargs.pop("completed_at", utcnow()),
        **kwargs,
    )


def test_analytics_summary_deduplicates(app, admin_client, make_appeal, make_donor):
    appeal_id = make_appeal("Food Packs")
    donor_id = make_donor()
    with app.app_context():
        db.session.add_all(
            [
                _donation(donor_id, appeal_id, 2000, "786-100000001", "pi_1", donation_type="ZAKAT"),
                _donation(donor_id, appeal_id, 2000, "786-100000001", "pi_1", donation_type="ZAKAT"),
                _donation(donor_id, appeal_id, 1000, "786-100000002", "pi_2"),
                _donation(donor_id, appeal_id, 9000, "786-100000003", "pi_3", completed_at=utcnow() - timedelta(days=60)),
                Order(order_number="786-100000001", status="COMPLETED", donor_first_name="A", donor_last_name="B", donor_email="a@b.com"),
                Order(order_number="786-100000004", status="ABANDONED", donor_first_name="A", donor_last_name="B", donor_email="a@b.com"),
            ]
        )
        db.session.commit()

    body = admin_client.get("/api/admin/analytics?range=last_7&interval=day").get_json()
    totals = body["totals"]
    assert totals["amountPence"] == 3000
    assert totals["donations"] == 2
    assert totals["averagePence"] == 1500
    assert totals["conversionRate"] == 50
    assert body["topAppeals"][0] == {"label": "Food Packs", "amountPence": 3000, "count": 2}
    assert {g["label"] for g in body["byDonationType"]} == {"ZAKAT", "GENERAL"}
    assert sum(point["amountPence"] for point in body["series"]) == 3000


def test_date_helpers():
    now = datetime(2026, 3, 18, 15, 30)
    start, end = resolve_date_range("this_month", now=now)
    assert start == datetime(2026, 3, 1)
    assert end.date().isoformat() == "2026-03-31"

    start, end = resolve_date_range("custom", "2026-01-01", "2026-01-31", now=now)
    assert (start.day, end.day) == (1, 31)
    # unknown range name falls back to the last seven days
    start, _ = resolve_date_range("forever", now=now)
    assert start == datetime(2026, 3, 12)

    assert get_bucket_key(now, "week") == "2026-03-16"
    assert format_bucket_label(get_bucket_key(now, "month"), "month") == "2026-03"


def test_giftaid_schedule_mark_eligible_and_claim(app, admin_client, make_appeal, make_donor):
    appeal_id = make_appeal("Orphans")
    donor_id = make_donor(address="1 High Street", postcode="E1 1AA")
    with app.app_context():
        db.session.add_all(
            [
                _donation(donor_id, appeal_id, 1000, "786-100000001", "pi_1", gift_aid=True),
                _donation(donor_id, appeal_id, 2000, "786-100000002", "pi_2", gift_aid=False),
            ]
        )
        db.session.commit()

    schedule = admin_client.get("/api/admin/giftaid").get_json()
    assert schedule["eligible"]["summary"] == {"totalAmountPence": 1000, "totalCount": 1}
    assert schedule["ineligible"]["summary"]["totalCount"] == 1
    assert schedule["eligible"]["rows"][0]["postcode"] == "E1 1AA"

    assert admin_client.patch("/api/admin/giftaid", json={}).status_code == 400
    assert admin_client.patch("/api/admin/giftaid", json={"donorId": "nope"}).status_code == 404
    marked = admin_client.patch("/api/admin/giftaid", json={"donorId": donor_id})
    assert marked.get_json()["updated"] == 1

    claimed = admin_client.post("/api/admin/giftaid/claim", json={})
    assert claimed.get_json()["updated"] == 2
    rows = admin_client.get("/api/admin/giftaid").get_json()["eligible"]["rows"]
    assert all(r["giftAidClaimed"] for r in rows)
