from datetime import timedelta

from sqlalchemy import select

from alianah.extensions import db, mail
from alianah.models import AdminLoginOtp, AdminUser, AuditLog, utcnow
from alianah.security.sessions import can_access_route

PASSWORD = "Sup3r!Secret#pass"


def _add_admin(app, email="two@alianah.org", role="ADMIN", two_factor=True, **kwargs):
    with app.app_context():
        user = AdminUser(email=email, role=role, two_factor_enabled=two_factor, **kwargs)
        if kwargs.get("invite_token") is None:
            user.set_password(PASSWORD)
        db.session.add(user)
        db.session.commit()


def test_login_without_two_factor_sets_session_cookie(app, client):
    _add_admin(app, two_factor=False)
    resp = client.post("/api/admin/login", json={"email": "TWO@alianah.org ", "password": PASSWORD})
    assert resp.status_code == 200
    assert resp.get_json()["role"] == "ADMIN"
    cookie = resp.headers["Set-Cookie"]
    assert cookie.startswith("admin_session=")
    assert "HttpOnly" in cookie
    assert "SameSite=Strict" in cookie

    me = client.get("/api/admin/me")
    assert me.status_code == 200
    assert me.get_json()["user"]["email"] == "two@alianah.org"


def test_wrong_password_and_unknown_email_look_the_same(app, client):
    _add_admin(app)
    a = client.post("/api/admin/login", json={"email": "two@alianah.org", "password": "nope"})
    b = client.post("/api/admin/login", json={"email": "ghost@alianah.org", "password": "nope"})
    assert a.status_code == b.status_code == 401
    assert a.get_json()["message"] == b.get_json()["message"]


def test_two_factor_login_emails_code_then_verifies(app, client):
    _add_admin(app)
    with mail.record_messages() as outbox:
        resp = client.post("/api/admin/login", json={"email": "two@alianah.org", "password": PASSWORD})
    assert resp.status_code == 200
    assert resp.get_json()["requiresTwoFactor"] is True
    assert "Set-Cookie" not in resp.headers
    assert len(outbox) == 1
    assert outbox[0].recipients == ["two@alianah.org"]

    with app.app_context():
        code = db.session.scalar(select(AdminLoginOtp.code).where(AdminLoginOtp.email == "two@alianah.org"))
    assert code in outbox[0].body

    bad = client.post("/api/admin/otp/verify", json={"email": "two@alianah.org", "code": "abc"})
    assert bad.status_code == 400

    ok = client.post("/api/admin/otp/verify", json={"email": "two@alianah.org", "code": code})
    assert ok.status_code == 200
    assert client.get("/api/admin/me").status_code == 200

    # single use
    again = client.post("/api/admin/otp/verify", json={"email": "two@alianah.org", "code": code})
    assert again.status_code == 401


def test_expired_code_is_rejected(app, client):
    _add_admin(app)
    with app.app_context():
        db.session.add(AdminLoginOtp(email="two@alianah.org", code="123456", expires_at=utcnow() - timedelta(seconds=1)))
        db.session.commit()
    resp = client.post("/api/admin/otp/verify", json={"email": "two@alianah.org", "code": "123456"})
    assert resp.status_code == 401


def test_invite_link_sets_password_once(app, client):
    _add_admin(
        app,
        email="new@alianah.org",
        role="STAFF",
        invite_token="invite-token-123",
        invite_expires_at=utcnow() + timedelta(days=7),
    )
    weak = client.post("/api/admin/set-password", json={"token": "invite-token-123", "password": "short"})
    assert weak.status_code == 400
    assert "at least 12" in weak.get_json()["message"]

    resp = client.post("/api/admin/set-password", json={"token": "invite-token-123", "password": PASSWORD})
    assert resp.status_code == 200
    assert resp.get_json()["role"] == "STAFF"

    reused = client.post("/api/admin/set-password", json={"token": "invite-token-123", "password": PASSWORD})
    assert reused.status_code == 400

    with app.app_context():
        user = db.session.scalar(select(AdminUser).where(AdminUser.email == "new@alianah.org"))
        assert user.check_password(PASSWORD)
        assert user.invite_token is None
        actions = db.session.scalars(select(AuditLog.action).where(AuditLog.admin_user_id == user.id)).all()
    assert "PASSWORD_SET" in actions


def test_forgot_password_is_generic(app, client):
    _add_admin(app)
    with mail.record_messages() as outbox:
        known = client.post("/api/admin/forgot-password", json={"email": "two@alianah.org"})
        unknown = client.post("/api/admin/forgot-password", json={"email": "ghost@alianah.org"})
    assert known.status_code == unknown.status_code == 200
    assert known.get_json()["message"] == unknown.get_json()["message"]
    assert len(outbox) == 1


def test_logout_clears_session(admin_client):
    resp = admin_client.post("/api/admin/logout")
    assert resp.status_code == 200
    assert admin_client.get("/api/admin/me").status_code == 401


def test_admin_api_requires_session(client):
    resp = client.get("/api/admin/appeals")
    assert resp.status_code == 401
    assert resp.get_json()["ok"] is False


def test_route_table_by_role():
    assert can_access_route("ADMIN", "/admin/settings")
    assert not can_access_route("STAFF", "/admin/settings")
    assert not can_access_route("STAFF", "/admin/appeals/abc")
    assert can_access_route("STAFF", "/admin/fundraisers")
    assert not can_access_route("STAFF", "/admin/water-projects")
    assert can_access_route("STAFF", "/admin/water-projects/pumps")
    assert not can_access_route("VIEWER", "/admin/donors")
    assert not can_access_route("VIEWER", "/admin/appeals/new")
    assert can_access_route("VIEWER", "/admin/appeals")


def test_staff_and_viewer_gates(login_as):
    staff = login_as("STAFF")
    assert staff.get("/api/admin/appeals").status_code == 403
    assert staff.get("/api/admin/settings/organization").status_code == 403
    assert staff.get("/api/admin/fundraisers/cash-donations/pending").status_code == 200

    viewer = login_as("VIEWER")
    assert viewer.get("/api/admin/appeals").status_code == 200
    assert viewer.post("/api/admin/appeals", json={"title": "Nope"}).status_code == 403


def test_denied_responses_carry_request_id(client, login_as):
    resp = client.get("/api/admin/appeals", headers={"X-Request-ID": "rid-unauth"})
    assert resp.status_code == 401
    assert resp.get_json()["request_id"] == "rid-unauth"

    resp = client.get("/api/fundraisers/mine", headers={"X-Request-ID": "rid-fundraiser"})
    assert resp.status_code == 401
    assert resp.get_json()["request_id"] == "rid-fundraiser"

    staff = login_as("STAFF")
    resp = staff.get("/api/admin/settings/organization", headers={"X-Request-ID": "rid-forbidden"})
    assert resp.status_code == 403
    assert resp.get_json()["request_id"] == "rid-forbidden"
