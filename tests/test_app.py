from types import SimpleNamespace

import stripe
from flask import Flask
from sqlalchemy import func, select

from alianah import _init_talisman, create_app
from alianah.extensions import db
from alianah.models import Appeal, Donation, RecurringDonation
from alianah.security.tokens import create_portal_token


def test_healthz_echoes_request_id(client):
    resp = client.get("/healthz", headers={"X-Request-ID": "abc123"})
    assert resp.status_code == 200
    assert resp.get_json() == {"status": "ok", "env": "testing", "request_id": "abc123"}
    assert resp.headers["X-Request-ID"] == "abc123"
    assert "X-Response-Time-ms" in resp.headers


def test_version(client):
    assert "version" in client.get("/version").get_json()


def test_unknown_route_is_json(client):
    resp = client.get("/api/nope")
    assert resp.status_code == 404
    assert resp.get_json()["ok"] is False


def test_security_headers(client):
    resp = client.get("/healthz")
    assert resp.headers["X-Content-Type-Options"] == "nosniff"


def test_disabled_blueprints_are_skipped(monkeypatch):
    monkeypatch.setenv("DISABLE_BPS", "zakat")
    app = create_app("testing")
    assert app.test_client().get("/api/zakat/prices").status_code == 404


def test_portal_session(app, client, make_donor, monkeypatch):
    donor_id = make_donor(email="monthly@example.com")
    with app.app_context():
        db.session.add(RecurringDonation(donor_id=donor_id, amount_pence=1000, status="ACTIVE", subscription_id="sub_1"))
        db.session.commit()
        token = create_portal_token("monthly@example.com")

    monkeypatch.setattr(stripe.Subscription, "retrieve", lambda sid, **k: SimpleNamespace(customer="cus_1"))
    created = {}

    def _portal(**params):
        created.update(params)
        return SimpleNamespace(url="https://billing.stripe.com/p/session/1")

    monkeypatch.setattr(stripe.billing_portal.Session, "create", _portal)

    resp = client.post("/api/stripe/portal-session", json={"token": token})
    assert resp.status_code == 200
    assert resp.get_json()["url"] == "https://billing.stripe.com/p/session/1"
    assert created["customer"] == "cus_1"

    assert client.post("/api/stripe/portal-session", json={"token": "short"}).status_code == 400
    assert client.post("/api/stripe/portal-session", json={"token": token.replace(".", ".x", 1)}).status_code == 401

    with app.app_context():
        stranger = create_portal_token("stranger@example.com")
    assert client.post("/api/stripe/portal-session", json={"token": stranger}).status_code == 404


def test_seed_demo_command(app):
    result = app.test_cli_runner().invoke(args=["seed-demo", "--donations", "5", "--seed", "7"])
    assert result.exit_code == 0, result.output
    with app.app_context():
        assert db.session.scalar(select(func.count(Appeal.id))) == 3
        assert db.session.scalar(select(func.count(Donation.id))) == 5


def test_create_admin_command(app):
    runner = app.test_cli_runner()
    result = runner.invoke(args=["create-admin", "Ops@Alianah.org", "--role", "STAFF", "--password", "Sup3r!Secret#pass"])
    assert result.exit_code == 0, result.output

    resp = app.test_client().post("/api/admin/login", json={"email": "ops@alianah.org", "password": "Sup3r!Secret#pass"})
    assert resp.get_json()["requiresTwoFactor"] is True


def _bare_app(env):
    app = Flask("headers-check")
    app.config["ENV"] = env
    _init_talisman(app)

    @app.get("/ping")
    def ping():
        return "pong"

    return app


def test_talisman_only_in_production():
    prod = _bare_app("production").test_client()
    secure = prod.get("/ping", base_url="https://api.alianah.org")
    assert secure.status_code == 200
    assert "Strict-Transport-Security" in secure.headers
    assert "Content-Security-Policy" not in secure.headers
    assert prod.get("/ping", base_url="http://api.alianah.org").status_code in (301, 302)

    dev = _bare_app("development").test_client()
    resp = dev.get("/ping", base_url="http://localhost")
    assert resp.status_code == 200
    assert "Strict-Transport-Security" not in resp.headers
