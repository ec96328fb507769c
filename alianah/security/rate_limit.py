# alianah/security/rate_limit.py
"""
Fixed-window attempt limiter with lockout.

Each identifier (``login:ip:1.2.3.4``, ``otp:email:a@b.com`` ...) owns a record
``{count, reset_at, locked_until}``:

- first attempt opens a window with count 1
- while locked (now < locked_until) every attempt is rejected
- once the window has passed a fresh window starts at count 1
- the attempt that finds count already at the maximum locks the identifier
  for the lockout period and is rejected
- anything else increments the count and is allowed

State lives in a pluggable store. ``MemoryStore`` is process-local (each worker
has its own counters); ``RedisStore`` shares them across instances and expires
keys with a TTL. Select with ``RATE_LIMIT_STORAGE_URL``.
"""

from __future__ import annotations

import json
import logging
import math
import threading
import time
from dataclasses import asdict, dataclass
from typing import Callable, Dict, Optional

from flask import current_app, request
from redis import Redis

log = logging.getLogger(__name__)

MINUTE = 60
LOCKOUT_SECONDS = 30 * MINUTE


@dataclass(frozen=True)
class RateLimitPolicy:
    window_seconds: int
    max_attempts: int
    lockout_seconds: int = LOCKOUT_SECONDS


LOGIN_POLICY = RateLimitPolicy(window_seconds=15 * MINUTE, max_attempts=5)
OTP_POLICY = RateLimitPolicy(window_seconds=5 * MINUTE, max_attempts=5)
SET_PASSWORD_POLICY = RateLimitPolicy(window_seconds=15 * MINUTE, max_attempts=5)


@dataclass
class RateLimitRecord:
    count: int
    reset_at: float
    locked_until: Optional[float] = None


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    retry_after: Optional[int] = None


# ----------------------------
# Stores
# ----------------------------
class MemoryStore:
    def __init__(self) -> None:
        self._data: Dict[str, RateLimitRecord] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[RateLimitRecord]:
        with self._lock:
            rec = self._data.get(key)
            return RateLimitRecord(**asdict(rec)) if rec else None

    def set(self, key: str, record: RateLimitRecord, ttl_seconds: int) -> None:
        with self._lock:
            self._data[key] = record

    def clear(self) -> None:
        with self._lock:
            self._data.clear()


class RedisStore:
    def __init__(self, client: Redis, prefix: str = "ratelimit:") -> None:
        self.client = client
        self.prefix = prefix

    @classmethod
    def from_url(cls, url: str) -> "RedisStore":
        return cls(Redis.from_url(url))

    def get(self, key: str) -> Optional[RateLimitRecord]:
        raw = self.client.get(self.prefix + key)
        if not raw:
            return None
        return RateLimitRecord(**json.loads(raw))

    def set(self, key: str, record: RateLimitRecord, ttl_seconds: int) -> None:
        self.client.set(self.prefix + key, json.dumps(asdict(record)), ex=max(1, int(ttl_seconds)))


# ----------------------------
# Limiter
# ----------------------------
class RateLimiter:
    def __init__(self, store=None, clock: Callable[[], float] = time.time) -> None:
        self.store = store if store is not None else MemoryStore()
        self.clock = clock

    def check(self, identifier: str, policy: RateLimitPolicy) -> RateLimitResult:
        now = self.clock()
        rec = self.store.get(identifier)

        if rec is None:
            self._save(identifier, RateLimitRecord(count=1, reset_at=now + policy.window_seconds), now)
            return RateLimitResult(allowed=True)

        if rec.locked_until is not None and now < rec.locked_until:
            return RateLimitResult(allowed=False, retry_after=math.ceil(rec.locked_until - now))

        if now > rec.reset_at:
            self._save(identifier, RateLimitRecord(count=1, reset_at=now + policy.window_seconds), now)
            return RateLimitResult(allowed=True)

        if rec.count >= policy.max_attempts:
            rec.locked_until = now + policy.lockout_seconds
            self._save(identifier, rec, now)
            return RateLimitResult(allowed=False, retry_after=policy.lockout_seconds)

        rec.count += 1
        self._save(identifier, rec, now)
        return RateLimitResult(allowed=True)

    def _save(self, identifier: str, rec: RateLimitRecord, now: float) -> None:
        expires = max(rec.reset_at, rec.locked_until or 0)
        self.store.set(identifier, rec, math.ceil(expires - now))


def build_rate_limiter(storage_url: Optional[str]) -> RateLimiter:
    url = (storage_url or "memory://").strip()
    if url.startswith(("redis://", "rediss://", "unix://")):
        log.info("Rate limiter using shared redis store")
        return RateLimiter(RedisStore.from_url(url))
    return RateLimiter(MemoryStore())


def init_rate_limiter(app) -> RateLimiter:
    limiter = build_rate_limiter(app.config.get("RATE_LIMIT_STORAGE_URL"))
    app.extensions["rate_limiter"] = limiter
    return limiter


def get_rate_limiter() -> RateLimiter:
    return current_app.extensions["rate_limiter"]


def check_login_rate_limit(identifier: str) -> RateLimitResult:
    return get_rate_limiter().check(identifier, LOGIN_POLICY)


def check_otp_rate_limit(identifier: str) -> RateLimitResult:
    return get_rate_limiter().check(identifier, OTP_POLICY)


def check_set_password_rate_limit(identifier: str) -> RateLimitResult:
    return get_rate_limiter().check(identifier, SET_PASSWORD_POLICY)


def get_client_ip() -> str:
    """First X-Forwarded-For hop, then X-Real-IP, else 'unknown'."""
    forwarded = request.headers.get("X-Forwarded-For") or ""
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = (request.headers.get("X-Real-IP") or "").strip()
    return real_ip or "unknown"
