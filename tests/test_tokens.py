from alianah.security.tokens import (
    create_portal_token,
    create_session_token,
    sign_payload,
    unsign_payload,
    verify_portal_token,
    verify_session_token,
)

SECRET = "portal-secret"
NOW = 1_700_000_000


def test_portal_token_round_trip():
    token = create_portal_token("donor@example.com", now=NOW, secret=SECRET)
    assert verify_portal_token(token, now=NOW + 10, secret=SECRET) == {"email": "donor@example.com"}


def test_portal_token_rejects_tampered_signature():
    token = create_portal_token("donor@example.com", now=NOW, secret=SECRET)
    payload, sig = token.split(".")
    flipped = ("A" if sig[0] != "A" else "B") + sig[1:]
    assert verify_portal_token(f"{payload}.{flipped}", now=NOW, secret=SECRET) is None


def test_portal_token_rejects_other_secret():
    token = create_portal_token("donor@example.com", now=NOW, secret=SECRET)
    assert verify_portal_token(token, now=NOW, secret="someone-else") is None


def test_portal_token_expires():
    token = create_portal_token("donor@example.com", ttl_seconds=60, now=NOW, secret=SECRET)
    assert verify_portal_token(token, now=NOW + 60, secret=SECRET) is not None
    assert verify_portal_token(token, now=NOW + 61, secret=SECRET) is None


def test_malformed_tokens_never_raise():
    for bad in ("", "abc", "a.b.c", "!!!.???", None):
        assert unsign_payload(bad, SECRET) is None
        assert verify_portal_token(bad, now=NOW, secret=SECRET) is None


def test_portal_token_uses_app_secret(app):
    with app.app_context():
        token = create_portal_token("donor@example.com")
        assert verify_portal_token(token) == {"email": "donor@example.com"}
    assert verify_portal_token(token, secret=app.config["PORTAL_LINK_SECRET"]) is not None


def test_session_token_lowercases_and_expires():
    token = create_session_token(" Admin@Alianah.org ", 60, "session-secret", now=NOW)
    assert verify_session_token(token, "session-secret", now=NOW + 30) == "admin@alianah.org"
    assert verify_session_token(token, "session-secret", now=NOW + 61) is None
    assert verify_session_token(token, "wrong-secret", now=NOW) is None


def test_signed_payloads_with_bad_claims_are_rejected():
    exp = NOW + 600
    bad_payloads = [
        {"exp": exp},
        {"email": "", "exp": exp},
        {"email": 5, "exp": exp},
        {"email": ["donor@example.com"], "exp": exp},
        {"email": "donor@example.com"},
        {"email": "donor@example.com", "exp": "later"},
        {"email": "donor@example.com", "exp": None},
        {"email": "donor@example.com", "exp": True},
    ]
    for payload in bad_payloads:
        token = sign_payload(payload, SECRET)
        assert unsign_payload(token, SECRET) == payload
        assert verify_portal_token(token, now=NOW, secret=SECRET) is None


def test_signed_non_object_payload_is_rejected():
    token = sign_payload(["donor@example.com", NOW + 600], SECRET)
    assert unsign_payload(token, SECRET) is None
    assert verify_portal_token(token, now=NOW, secret=SECRET) is None


def test_portal_token_valid_until_exp_inclusive():
    token = sign_payload({"email": "donor@example.com", "exp": NOW}, SECRET)
    assert verify_portal_token(token, now=NOW - 1, secret=SECRET) == {"email": "donor@example.com"}
    assert verify_portal_token(token, now=NOW, secret=SECRET) == {"email": "donor@example.com"}
    assert verify_portal_token(token, now=NOW + 1, secret=SECRET) is None
