# alianah/security/headers.py
# Baseline security headers for a JSON-only API.

from __future__ import annotations

from flask import Flask, Response, request

_API_CSP = "default-src 'none'; frame-ancestors 'none'; base-uri 'none'"


def _is_prod(app: Flask) -> bool:
    return str(app.config.get("ENV") or "").strip().lower() in {"prod", "production", "live"}


def _apply_security_headers(app: Flask, resp: Response) -> Response:
    resp.headers.setdefault("X-Content-Type-Options", "nosniff")
    resp.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    resp.headers.setdefault("X-Frame-Options", "DENY")
    resp.headers.setdefault(
        "Permissions-Policy",
        "camera=(), microphone=(), geolocation=(), usb=(), interest-cohort=()",
    )

    if (request.path or "").startswith("/api/"):
        resp.headers.setdefault("Content-Security-Policy", _API_CSP)
        resp.headers.setdefault("Cache-Control", "no-store, no-cache, must-revalidate, max-age=0")

    # HSTS only when truly HTTPS in production
    if _is_prod(app):
        resp.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains; preload")

    return resp


def install_security_headers(app: Flask) -> None:
    if app.extensions.get("alianah_security_installed") is True:
        return
    app.extensions["alianah_security_installed"] = True

    @app.after_request
    def _security_after(resp: Response):
        return _apply_security_headers(app, resp)
