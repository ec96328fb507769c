# alianah/blueprints/admin_settings.py
"""
Admin settings, staff, audit, analytics and gift aid.

Mount: /api/admin

  GET   /settings/organization
  PUT   /settings/organization
  GET   /settings/admin-users
  POST  /settings/admin-users        invite by email (7-day set-password link)
  GET   /audit                       ?action=&entityType=&page=&perPage=
  GET   /analytics                   ?range=&interval=&from=&to=
  GET   /giftaid                     ?start=&end=
  PATCH /giftaid                     {donorId, start?, end?} mark a donor's donations eligible
  POST  /giftaid/claim               {start?, end?} mark eligible donations claimed

Settings, audit and analytics are ADMIN-only through the route table.
"""

from __future__ import annotations

import secrets
from datetime import timedelta

from flask import Blueprint, current_app, request
from sqlalchemy import select

from alianah.extensions import csrf, db
from alianah.forms import InviteAdminForm, OrganizationSettingsForm
from alianah.models import AdminUser, AuditLog, Donor, utcnow
from alianah.security.sessions import admin_api_gate, get_admin_user
from alianah.services import emails
from alianah.services.analytics import donation_summary
from alianah.services.audit import record_audit
from alianah.services.giftaid import build_schedule, mark_claimed, mark_donor_eligible
from alianah.services.org_settings import get_organization_settings, save_organization_settings

from .api_utils import _base_url, _json_error, _json_ok, _normalize_email, _request_payload

bp = Blueprint("admin_settings", __name__)
csrf.exempt(bp)
bp.before_request(admin_api_gate())

INVITE_TTL = timedelta(days=7)
AUDIT_PER_PAGE = 50


# ----------------------------
# Organization
# ----------------------------
@bp.get("/settings/organization")
def get_organization():
    return _json_ok({"settings": get_organization_settings().as_dict()})


@bp.put("/settings/organization")
def put_organization():
    form = OrganizationSettingsForm.from_json(_request_payload())
    if not form.validate():
        return _json_error("Invalid request", 400, {"issues": form.issues()})

    settings = save_organization_settings(
        charity_name=form.charityName.data.strip(),
        support_email=form.supportEmail.data.strip().lower(),
        website_url=form.websiteUrl.data.strip(),
        charity_number=(form.charityNumber.data or "").strip() or None,
    )
    record_audit(get_admin_user(), "UPDATE", "organization_settings", None, settings.as_dict())
    db.session.commit()
    return _json_ok({"settings": settings.as_dict()})


# ----------------------------
# Staff
# ----------------------------
@bp.get("/settings/admin-users")
def list_admin_users():
    users = db.session.scalars(select(AdminUser).order_by(AdminUser.created_at.asc())).all()
    return _json_ok({"users": [u.as_dict() for u in users]})


@bp.post("/settings/admin-users")
def invite_admin_user():
    payload = _request_payload()
    form = InviteAdminForm.from_json({**payload, "email": _normalize_email(payload.get("email"))})
    if not form.validate():
        return _json_error("Invalid request", 400, {"issues": form.issues()})

    email = form.email.data
    if db.session.scalar(select(AdminUser.id).where(AdminUser.email == email)):
        return _json_error("An admin with this email already exists", 409)

    user = AdminUser(
        email=email,
        role=form.role.data or "STAFF",
        first_name=(form.firstName.data or "").strip() or None,
        last_name=(form.lastName.data or "").strip() or None,
        invite_token=secrets.token_urlsafe(24),
        invite_expires_at=utcnow() + INVITE_TTL,
    )
    db.session.add(user)
    db.session.flush()
    record_audit(get_admin_user(), "INVITE", "admin_user", user.id, {"email": email, "role": user.role})
    db.session.commit()

    url = f"{_base_url()}/login/set-password?token={user.invite_token}"
    try:
        emails.send_admin_invite(email, url, user.role)
    except Exception:
        current_app.logger.exception("admin_settings: invite email to %s failed", email)
        return _json_ok({"user": user.as_dict(), "emailSent": False}, 201)

    return _json_ok({"user": user.as_dict(), "emailSent": True}, 201)


# ----------------------------
# Audit log
# ----------------------------
@bp.get("/audit")
def list_audit():
    q = select(AuditLog).order_by(AuditLog.created_at.desc())
    action = (request.args.get("action") or "").strip().upper()
    if action:
        q = q.where(AuditLog.action == action)
    entity_type = (request.args.get("entityType") or "").strip()
    if entity_type:
        q = q.where(AuditLog.entity_type == entity_type)
    page = max(request.args.get("page", 1, type=int) or 1, 1)
    per_page = max(1, min(request.args.get("perPage", AUDIT_PER_PAGE, type=int) or AUDIT_PER_PAGE, 200))
    pagination = db.paginate(q, page=page, per_page=per_page, error_out=False)
    return _json_ok(
        {
            "entries": [row.as_dict() for row in pagination.items],
            "page": pagination.page,
            "perPage": pagination.per_page,
            "total": pagination.total,
        }
    )


# ----------------------------
# Analytics
# ----------------------------
@bp.get("/analytics")
def analytics():
    return _json_ok(
        donation_summary(
            request.args.get("range"),
            request.args.get("interval"),
            request.args.get("from"),
            request.args.get("to"),
        )
    )


# ----------------------------
# Gift aid
# ----------------------------
@bp.get("/giftaid")
def giftaid_schedule():
    return _json_ok(build_schedule(request.args.get("start"), request.args.get("end")))


@bp.patch("/giftaid")
def giftaid_mark_eligible():
    payload = _request_payload()
    donor_id = str(payload.get("donorId") or "").strip()
    if not donor_id:
        return _json_error("Invalid request", 400, {"issues": {"donorId": ["Donor is required"]}})
    if db.session.get(Donor, donor_id) is None:
        return _json_error("Donor not found", 404)

    updated = mark_donor_eligible(donor_id, payload.get("start"), payload.get("end"))
    record_audit(get_admin_user(), "GIFT_AID_ELIGIBLE", "donor", donor_id, {"updated": updated})
    db.session.commit()
    return _json_ok({"success": True, "updated": updated})


@bp.post("/giftaid/claim")
def giftaid_claim():
    payload = _request_payload()
    updated = mark_claimed(payload.get("start"), payload.get("end"))
    record_audit(get_admin_user(), "GIFT_AID_CLAIMED", "giftaid", None, {"updated": updated})
    db.session.commit()
    return _json_ok({"success": True, "updated": updated})
