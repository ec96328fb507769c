# alianah/blueprints/api_utils.py
# JSON response/request helpers shared by every API blueprint.

from __future__ import annotations

from typing import Any, Dict, Optional, cast

from flask import current_app, g, jsonify, request

from alianah.security.rate_limit import RateLimitResult

_TRUTHY = {"1", "true", "yes", "on", "y"}


def _truthy(v: Any) -> bool:
    if isinstance(v, bool):
        return v
    if v is None:
        return False
    return str(v).strip().lower() in _TRUTHY


def _request_payload() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if isinstance(data, dict) and data:
        return cast(Dict[str, Any], data)
    if request.form:
        return cast(Dict[str, Any], request.form.to_dict(flat=True))
    return {}


def _json_response(payload: Dict[str, Any], status: int = 200):
    resp = jsonify(payload)
    resp.status_code = int(status)
    resp.headers.setdefault("Cache-Control", "no-store, no-cache, must-revalidate, max-age=0")
    resp.headers.setdefault("Pragma", "no-cache")
    resp.headers.setdefault("Expires", "0")
    return resp


def _json_ok(payload: Optional[Dict[str, Any]] = None, status: int = 200):
    payload = dict(payload or {})
    payload.setdefault("ok", True)
    return _json_response(payload, status)


def _json_error(message: str, status: int, extra: Optional[Dict[str, Any]] = None):
    body: Dict[str, Any] = {"ok": False, "message": message, "error": {"message": message}}
    rid = getattr(g, "request_id", None)
    if rid:
        body["request_id"] = rid
    if extra:
        body["error"].update(extra)
        for k, v in extra.items():
            if k not in body:
                body[k] = v
    return _json_response(body, status)


def _rate_limited(result: RateLimitResult):
    resp = _json_error(
        "Too many attempts. Please try again later.",
        429,
        {"retryAfter": int(result.retry_after or 0)},
    )
    resp.headers["Retry-After"] = str(int(result.retry_after or 0))
    return resp


def _base_url() -> str:
    return (current_app.config.get("PUBLIC_BASE_URL") or request.host_url or "").rstrip("/")


def _normalize_email(value: Any) -> str:
    return str(value or "").strip().lower()
