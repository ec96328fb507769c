# alianah/blueprints/admin_auth.py
"""
Admin authentication API.

Mount: /api/admin

  POST /login             password, then an emailed 6-digit code when 2FA is on
  POST /otp/verify        exchange the emailed code for a session cookie
  POST /set-password      invite or reset link -> password + session
  POST /forgot-password   email a reset link (generic response)
  POST /logout
  GET  /me

Every credential-bearing endpoint is rate limited per IP and, where an email
is known, per email.
"""

from __future__ import annotations

import secrets
from datetime import timedelta

from flask import Blueprint, current_app
from sqlalchemy import or_, select

from alianah.extensions import csrf, db
from alianah.forms import EmailForm, LoginForm, OtpVerifyForm, SetPasswordForm
from alianah.models import AdminLoginOtp, AdminUser, utcnow
from alianah.security.rate_limit import (
    check_login_rate_limit,
    check_otp_rate_limit,
    check_set_password_rate_limit,
    get_client_ip,
)
from alianah.security.sessions import clear_admin_session, get_admin_user, require_admin_role, set_admin_session
from alianah.services import emails
from alianah.services.audit import record_audit

from .api_utils import _base_url, _json_error, _json_ok, _normalize_email, _rate_limited, _request_payload

bp = Blueprint("admin_auth", __name__)
csrf.exempt(bp)

OTP_TTL = timedelta(minutes=10)
RESET_TTL = timedelta(hours=1)
INVALID_CREDENTIALS = "Invalid email or password"


def _six_digit_code() -> str:
    return f"{secrets.randbelow(10 ** 6):06d}"


def _start_session(user: AdminUser):
    user.last_login_at = utcnow()
    record_audit(user, "LOGIN", "session", user.id)
    db.session.commit()
    resp = _json_ok({"success": True, "email": user.email, "role": user.role})
    return set_admin_session(resp, user.email)


@bp.post("/login")
def login():
    ip = get_client_ip()
    limited = check_login_rate_limit(f"login:ip:{ip}")
    if not limited.allowed:
        return _rate_limited(limited)

    payload = _request_payload()
    form = LoginForm.from_json({**payload, "email": _normalize_email(payload.get("email"))})
    if not form.validate():
        return _json_error("Invalid request", 400, {"issues": form.issues()})
    email = form.email.data

    limited = check_login_rate_limit(f"login:email:{email}")
    if not limited.allowed:
        return _rate_limited(limited)

    user = db.session.scalar(select(AdminUser).where(AdminUser.email == email))
    if user is None:
        return _json_error(INVALID_CREDENTIALS, 401)
    if not user.password_hash:
        return _json_error("Please set your password using the link sent to your email", 401)
    if not user.check_password(form.password.data):
        return _json_error(INVALID_CREDENTIALS, 401)

    if not user.two_factor_enabled:
        return _start_session(user)

    db.session.query(AdminLoginOtp).filter(
        AdminLoginOtp.email == email, AdminLoginOtp.used.is_(False)
    ).delete(synchronize_session=False)
    code = _six_digit_code()
    db.session.add(AdminLoginOtp(email=email, code=code, expires_at=utcnow() + OTP_TTL))
    db.session.commit()

    try:
        emails.send_admin_login_code(email, code)
    except Exception:
        current_app.logger.exception("admin_auth: failed to send login code")
        return _json_error("Failed to send login code. Please try again.", 500)

    return _json_ok({"requiresTwoFactor": True, "email": email})


@bp.post("/otp/verify")
def verify_otp():
    ip = get_client_ip()
    limited = check_otp_rate_limit(f"otp:ip:{ip}")
    if not limited.allowed:
        return _rate_limited(limited)

    payload = _request_payload()
    form = OtpVerifyForm.from_json({**payload, "email": _normalize_email(payload.get("email"))})
    if not form.validate():
        return _json_error("Invalid request", 400, {"issues": form.issues()})
    email = form.email.data

    limited = check_otp_rate_limit(f"otp:email:{email}")
    if not limited.allowed:
        return _rate_limited(limited)

    otp = db.session.scalar(
        select(AdminLoginOtp)
        .where(
            AdminLoginOtp.email == email,
            AdminLoginOtp.code == form.code.data,
            AdminLoginOtp.used.is_(False),
            AdminLoginOtp.expires_at > utcnow(),
        )
        .order_by(AdminLoginOtp.created_at.desc())
    )
    if otp is None:
        return _json_error("Invalid or expired code", 401)

    user = db.session.scalar(select(AdminUser).where(AdminUser.email == email))
    if user is None:
        return _json_error(INVALID_CREDENTIALS, 401)

    otp.used = True
    return _start_session(user)


@bp.post("/set-password")
def set_password():
    limited = check_set_password_rate_limit(f"set-password:ip:{get_client_ip()}")
    if not limited.allowed:
        return _rate_limited(limited)

    form = SetPasswordForm.from_json(_request_payload())
    if not form.validate():
        issues = form.issues()
        message = (issues.get("password") or ["Invalid request"])[0]
        return _json_error(message, 400, {"issues": issues})

    now = utcnow()
    token = form.token.data
    user = db.session.scalar(
        select(AdminUser).where(
            or_(
                (AdminUser.invite_token == token) & (AdminUser.invite_expires_at > now),
                (AdminUser.password_reset_token == token) & (AdminUser.password_reset_expires_at > now),
            )
        )
    )
    if user is None:
        return _json_error("Invalid or expired link. Please request a new one.", 400)

    user.set_password(form.password.data)
    user.invite_token = None
    user.invite_expires_at = None
    user.password_reset_token = None
    user.password_reset_expires_at = None
    record_audit(user, "PASSWORD_SET", "admin_user", user.id)
    return _start_session(user)


@bp.post("/forgot-password")
def forgot_password():
    limited = check_set_password_rate_limit(f"forgot-password:ip:{get_client_ip()}")
    if not limited.allowed:
        return _rate_limited(limited)

    payload = _request_payload()
    form = EmailForm.from_json({**payload, "email": _normalize_email(payload.get("email"))})
    if not form.validate():
        return _json_error("Invalid request", 400, {"issues": form.issues()})

    generic = {"message": "If an account exists for that email, a reset link has been sent."}
    user = db.session.scalar(select(AdminUser).where(AdminUser.email == form.email.data))
    if user is None or not user.password_hash:
        return _json_ok(generic)

    user.password_reset_token = secrets.token_urlsafe(24)
    user.password_reset_expires_at = utcnow() + RESET_TTL
    db.session.commit()

    url = f"{_base_url()}/login/set-password?token={user.password_reset_token}"
    try:
        emails.send_admin_password_reset(user.email, url)
    except Exception:
        current_app.logger.exception("admin_auth: failed to send reset email")
        user.password_reset_token = None
        user.password_reset_expires_at = None
        db.session.commit()
        return _json_error("Failed to send reset email. Please try again.", 500)

    return _json_ok(generic)


@bp.post("/logout")
def logout():
    user = get_admin_user()
    if user is not None:
        record_audit(user, "LOGOUT", "session", user.id)
        db.session.commit()
    return clear_admin_session(_json_ok({"success": True}))


@bp.get("/me")
@require_admin_role()
def me():
    return _json_ok({"user": get_admin_user().as_dict()})
