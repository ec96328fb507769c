# alianah/security/sessions.py
# Admin + fundraiser cookie sessions and the admin role gate.

from __future__ import annotations

from functools import wraps
from typing import Callable, Iterable, Optional

from flask import Response, current_app, g, jsonify, request

from alianah.extensions import db
from alianah.models import AdminUser

from .tokens import create_session_token, verify_session_token

ADMIN_SESSION_MAX_AGE = 7 * 24 * 60 * 60
FUNDRAISER_SESSION_COOKIE = "fundraiser_session"
FUNDRAISER_SESSION_MAX_AGE = 30 * 24 * 60 * 60

# Route families (UI paths under /admin, mirrored by /api/admin)
ADMIN_ONLY = ("/admin/settings", "/admin/donors", "/admin/documents", "/admin/audit", "/admin/analytics")
VIEWER_HIDDEN = (
    "/admin/masjids",
    "/admin/donors",
    "/admin/documents",
    "/admin/audit",
    "/admin/analytics",
    "/admin/settings",
)
STAFF_HIDDEN = (
    "/admin/appeals",
    "/admin/documents",
    "/admin/donations",
    "/admin/recurring",
    "/admin/analytics",
    "/admin/reports",
    "/admin/settings",
)
STAFF_MANAGE_PROJECTS_BLOCKED = ("/admin/water-projects", "/admin/sponsorships")
VIEWER_NO_CREATE = (
    "/admin/collections/new",
    "/admin/appeals/new",
    "/admin/masjids/new",
    "/admin/water-projects/new",
    "/admin/sponsorships/new",
)


def _under(path: str, prefixes: Iterable[str]) -> bool:
    return any(path == p or path.startswith(p + "/") for p in prefixes)


def can_access_route(role: str, pathname: str) -> bool:
    path = pathname.rstrip("/") or "/admin"

    if _under(path, ADMIN_ONLY):
        return role == "ADMIN"
    if role == "VIEWER" and _under(path, VIEWER_HIDDEN):
        return False
    if role == "STAFF" and _under(path, STAFF_HIDDEN):
        return False
    # exact match only: staff still reach pumps, wells, orphans ...
    if role == "STAFF" and path in STAFF_MANAGE_PROJECTS_BLOCKED:
        return False
    if role == "VIEWER" and _under(path, VIEWER_NO_CREATE):
        return False
    return True


# ----------------------------
# Cookie helpers
# ----------------------------
def _is_production() -> bool:
    return str(current_app.config.get("ENV", "")).lower() == "production"


def admin_cookie_name() -> str:
    return "__Host-admin_session" if _is_production() else "admin_session"


def set_admin_session(resp: Response, email: str) -> Response:
    token = create_session_token(email, ADMIN_SESSION_MAX_AGE, current_app.config["ADMIN_SESSION_SECRET"])
    resp.set_cookie(
        admin_cookie_name(),
        token,
        max_age=ADMIN_SESSION_MAX_AGE,
        httponly=True,
        secure=_is_production(),
        samesite="Strict",
        path="/",
    )
    return resp


def clear_admin_session(resp: Response) -> Response:
    secure = _is_production()
    for name in ("admin_session", "__Host-admin_session"):
        resp.set_cookie(name, "", max_age=0, httponly=True, secure=secure, samesite="Strict", path="/")
    return resp


def set_fundraiser_session(resp: Response, email: str) -> Response:
    token = create_session_token(
        email, FUNDRAISER_SESSION_MAX_AGE, current_app.config.get("FUNDRAISER_SESSION_SECRET") or ""
    )
    resp.set_cookie(
        FUNDRAISER_SESSION_COOKIE,
        token,
        max_age=FUNDRAISER_SESSION_MAX_AGE,
        httponly=True,
        secure=_is_production(),
        samesite="Lax",
        path="/",
    )
    return resp


def clear_fundraiser_session(resp: Response) -> Response:
    resp.set_cookie(FUNDRAISER_SESSION_COOKIE, "", max_age=0, httponly=True, samesite="Lax", path="/")
    return resp


# ----------------------------
# Current principals
# ----------------------------
def get_admin_user() -> Optional[AdminUser]:
    if "admin_user" in g:
        return g.admin_user
    user = None
    token = request.cookies.get(admin_cookie_name())
    email = verify_session_token(token, current_app.config.get("ADMIN_SESSION_SECRET")) if token else None
    if email:
        user = db.session.query(AdminUser).filter(AdminUser.email == email).first()
    g.admin_user = user
    return user


def get_fundraiser_email() -> Optional[str]:
    token = request.cookies.get(FUNDRAISER_SESSION_COOKIE)
    if not token:
        return None
    return verify_session_token(token, current_app.config.get("FUNDRAISER_SESSION_SECRET"))


def _deny(message: str, status: int):
    body = {"ok": False, "error": {"message": message}, "message": message}
    rid = getattr(g, "request_id", None)
    if rid:
        body["request_id"] = rid
    resp = jsonify(body)
    resp.status_code = status
    return resp


def require_admin_role(*roles: str) -> Callable:
    """View decorator: 401 without a session, 403 when the role is not listed."""

    def _wrap(fn: Callable) -> Callable:
        @wraps(fn)
        def _inner(*args, **kwargs):
            user = get_admin_user()
            if user is None:
                return _deny("Unauthorized", 401)
            if roles and user.role not in roles:
                return _deny("Forbidden", 403)
            return fn(*args, **kwargs)

        return _inner

    return _wrap


def require_fundraiser(fn: Callable) -> Callable:
    @wraps(fn)
    def _inner(*args, **kwargs):
        email = get_fundraiser_email()
        if not email:
            return _deny("Unauthorized", 401)
        g.fundraiser_email = email
        return fn(*args, **kwargs)

    return _inner


def admin_api_gate(public_endpoints: Iterable[str] = ()) -> Callable[[], Optional[Response]]:
    """
    before_request hook for /api/admin blueprints.

    The API path is mapped onto the admin UI path (/api/admin/x -> /admin/x)
    so the same route table decides access.
    """
    public = set(public_endpoints)

    def _gate():
        if request.method == "OPTIONS" or request.endpoint in public:
            return None
        user = get_admin_user()
        if user is None:
            return _deny("Unauthorized", 401)
        ui_path = request.path.replace("/api/admin", "/admin", 1)
        if not can_access_route(user.role, ui_path):
            return _deny("Forbidden", 403)
        if user.role == "VIEWER" and request.method not in ("GET", "HEAD"):
            return _deny("Forbidden", 403)
        return None

    return _gate
