# alianah/security/tokens.py
"""
HMAC-SHA256 signed tokens: ``base64url(json payload) + "." + base64url(signature)``.

The signature covers the encoded payload string. Base64url is unpadded.
Used for the subscription self-service (portal) link, the admin session cookie
and the fundraiser session cookie; each with its own secret.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import logging
import os
import time
from typing import Any, Dict, Optional

from flask import current_app, has_app_context

log = logging.getLogger(__name__)

PORTAL_TOKEN_TTL_SECONDS = 60 * 60


def b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def b64url_decode(data: str) -> bytes:
    pad = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode((data + pad).encode("ascii"))


def _signature(secret: str, payload_b64: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), payload_b64.encode("ascii"), hashlib.sha256).digest()
    return b64url_encode(digest)


def sign_payload(payload: Dict[str, Any], secret: str) -> str:
    if not secret:
        raise RuntimeError("Signing secret is not configured")
    body = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    payload_b64 = b64url_encode(body)
    return f"{payload_b64}.{_signature(secret, payload_b64)}"


def unsign_payload(token: str, secret: Optional[str]) -> Optional[Dict[str, Any]]:
    """Return the decoded payload when the signature matches, else None. Never raises."""
    if not secret or not isinstance(token, str):
        return None
    try:
        parts = token.split(".")
        if len(parts) != 2:
            return None
        payload_b64, sig = parts
        expected = _signature(secret, payload_b64)
        if not hmac.compare_digest(expected.encode("ascii"), sig.encode("ascii")):
            return None
        payload = json.loads(b64url_decode(payload_b64).decode("utf-8"))
    except (ValueError, UnicodeError, TypeError):
        return None
    return payload if isinstance(payload, dict) else None


def _config_secret(key: str) -> Optional[str]:
    if has_app_context():
        v = current_app.config.get(key)
        if v:
            return str(v)
    return os.getenv(key) or None


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


# ----------------------------
# Portal (manage-subscription) links
# ----------------------------
def create_portal_token(
    email: str,
    ttl_seconds: int = PORTAL_TOKEN_TTL_SECONDS,
    *,
    now: Optional[float] = None,
    secret: Optional[str] = None,
) -> str:
    secret = secret or _config_secret("PORTAL_LINK_SECRET")
    if not secret:
        raise RuntimeError("PORTAL_LINK_SECRET is not set")
    issued = int(now if now is not None else time.time())
    return sign_payload({"email": email, "exp": issued + int(ttl_seconds)}, secret)


def verify_portal_token(
    token: str,
    *,
    now: Optional[float] = None,
    secret: Optional[str] = None,
) -> Optional[Dict[str, str]]:
    """``{"email": ...}`` for a genuine, unexpired token; None otherwise."""
    payload = unsign_payload(token, secret or _config_secret("PORTAL_LINK_SECRET"))
    if payload is None:
        return None
    email = payload.get("email")
    exp = payload.get("exp")
    if not isinstance(email, str) or not email or not _is_number(exp):
        return None
    current = int(now if now is not None else time.time())
    if current > exp:
        return None
    return {"email": email}


# ----------------------------
# Session cookies (exp in milliseconds)
# ----------------------------
def create_session_token(email: str, max_age_seconds: int, secret: str, *, now: Optional[float] = None) -> str:
    issued_ms = int((now if now is not None else time.time()) * 1000)
    return sign_payload(
        {"email": email.strip().lower(), "exp": issued_ms + int(max_age_seconds) * 1000},
        secret,
    )


def verify_session_token(token: str, secret: Optional[str], *, now: Optional[float] = None) -> Optional[str]:
    """Return the lower-cased email of a valid session token, else None."""
    payload = unsign_payload(token, secret)
    if payload is None:
        return None
    email = payload.get("email")
    exp = payload.get("exp")
    if not isinstance(email, str) or not _is_number(exp):
        return None
    now_ms = int((now if now is not None else time.time()) * 1000)
    if exp < now_ms:
        return None
    return email.strip().lower()
