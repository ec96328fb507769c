from alianah.security.rate_limit import (
    LOCKOUT_SECONDS,
    LOGIN_POLICY,
    OTP_POLICY,
    MemoryStore,
    RateLimiter,
    RateLimitPolicy,
)


class FakeClock:
    def __init__(self, start=1_700_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def test_five_attempts_allowed_then_locked_out():
    clock = FakeClock()
    limiter = RateLimiter(MemoryStore(), clock=clock)

    for _ in range(5):
        assert limiter.check("login:ip:1.2.3.4", LOGIN_POLICY).allowed

    result = limiter.check("login:ip:1.2.3.4", LOGIN_POLICY)
    assert not result.allowed
    assert result.retry_after == LOCKOUT_SECONDS == 1800


def test_locked_identifier_reports_remaining_lockout():
    clock = FakeClock()
    limiter = RateLimiter(MemoryStore(), clock=clock)
    for _ in range(6):
        limiter.check("otp:email:a@b.com", OTP_POLICY)

    clock.advance(600)
    result = limiter.check("otp:email:a@b.com", OTP_POLICY)
    assert not result.allowed
    assert result.retry_after == LOCKOUT_SECONDS - 600


def test_new_window_after_lockout_expires():
    clock = FakeClock()
    limiter = RateLimiter(MemoryStore(), clock=clock)
    for _ in range(6):
        limiter.check("login:email:x@y.com", LOGIN_POLICY)

    clock.advance(LOCKOUT_SECONDS + 1)
    assert limiter.check("login:email:x@y.com", LOGIN_POLICY).allowed
    # count restarted at one, so four more fit in the window
    for _ in range(4):
        assert limiter.check("login:email:x@y.com", LOGIN_POLICY).allowed
    assert not limiter.check("login:email:x@y.com", LOGIN_POLICY).allowed


def test_window_expiry_resets_count_without_lockout():
    clock = FakeClock()
    limiter = RateLimiter(MemoryStore(), clock=clock)
    policy = RateLimitPolicy(window_seconds=60, max_attempts=2)

    assert limiter.check("k", policy).allowed
    assert limiter.check("k", policy).allowed
    clock.advance(61)
    assert limiter.check("k", policy).allowed


def test_identifiers_are_independent():
    limiter = RateLimiter(MemoryStore(), clock=FakeClock())
    for _ in range(6):
        limiter.check("login:ip:1.1.1.1", LOGIN_POLICY)
    assert limiter.check("login:ip:2.2.2.2", LOGIN_POLICY).allowed


def test_login_endpoint_returns_429_with_retry_after(client):
    for _ in range(5):
        resp = client.post("/api/admin/login", json={"email": "nobody@alianah.org", "password": "wrong"})
        assert resp.status_code == 401

    resp = client.post("/api/admin/login", json={"email": "nobody@alianah.org", "password": "wrong"})
    assert resp.status_code == 429
    assert resp.headers["Retry-After"] == "1800"
    assert resp.get_json()["retryAfter"] == 1800
