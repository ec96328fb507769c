# alianah/blueprints/fundraisers.py
"""
Public fundraiser API.

Mount: /api/fundraisers

  POST /                                  create a page for an appeal
  GET  /<slug>                            public page data + totals
  POST /otp/send | /otp/verify | /logout  fundraiser login by emailed code
  GET  /mine                              pages owned by the session email
  GET  /<id>/donations                    owner only
  GET  /<id>/cash-donations               owner only
  POST /<id>/cash-donations               owner reports cash (PENDING_REVIEW)
  POST /<id>/public-cash-donation         anyone, active pages only
"""

from __future__ import annotations

import secrets
from datetime import timedelta

from flask import Blueprint, g
from sqlalchemy import select

from alianah.extensions import csrf, db
from alianah.forms import CashDonationForm, EmailForm, FundraiserCreateForm, OtpVerifyForm, parse_datetime
from alianah.models import (
    Appeal,
    Donation,
    Fundraiser,
    FundraiserCashDonation,
    FundraiserLoginOtp,
    WaterProjectDonation,
    utcnow,
)
from alianah.security.rate_limit import check_otp_rate_limit, get_client_ip
from alianah.security.sessions import clear_fundraiser_session, require_fundraiser, set_fundraiser_session
from alianah.services import emails
from alianah.services.fundraiser_totals import get_fundraiser_total_raised_and_count

from .api_utils import _json_error, _json_ok, _normalize_email, _rate_limited, _request_payload

bp = Blueprint("fundraisers", __name__)
csrf.exempt(bp)

OTP_TTL = timedelta(minutes=10)


def _new_slug() -> str:
    # 12 url-safe characters
    while True:
        slug = secrets.token_urlsafe(9)
        if not db.session.scalar(select(Fundraiser.id).where(Fundraiser.slug == slug)):
            return slug


def _owned_fundraiser(fundraiser_id: str):
    return db.session.scalar(
        select(Fundraiser).where(Fundraiser.id == fundraiser_id, Fundraiser.email == g.fundraiser_email)
    )


def _with_totals(f: Fundraiser):
    data = f.as_dict()
    data.update(get_fundraiser_total_raised_and_count(f.id, f.is_water_fundraiser).as_dict())
    return data


@bp.post("")
def create_fundraiser():
    payload = _request_payload()
    form = FundraiserCreateForm.from_json({**payload, "email": _normalize_email(payload.get("email"))})
    if not form.validate():
        return _json_error("Invalid request", 400, {"issues": form.issues()})

    appeal = db.session.get(Appeal, form.appealId.data)
    if appeal is None:
        return _json_error("Appeal not found", 404)
    if not appeal.allow_fundraising:
        return _json_error("Fundraising is not enabled for this appeal", 403)
    if not appeal.is_active:
        return _json_error("This appeal is not active", 403)

    fundraiser = Fundraiser(
        appeal_id=appeal.id,
        title=form.title.data.strip(),
        slug=_new_slug(),
        fundraiser_name=form.fundraiserName.data.strip(),
        email=form.email.data,
        message=(form.message.data or "").strip() or None,
        target_amount_pence=form.targetAmountPence.data,
        is_active=True,
    )
    db.session.add(fundraiser)
    db.session.commit()
    return _json_ok({"slug": fundraiser.slug, "id": fundraiser.id}, 201)


@bp.get("/<slug>")
def get_fundraiser(slug: str):
    fundraiser = db.session.scalar(select(Fundraiser).where(Fundraiser.slug == slug, Fundraiser.is_active.is_(True)))
    if fundraiser is None:
        return _json_error("Fundraiser not found", 404)
    return _json_ok({"fundraiser": _with_totals(fundraiser)})


# ----------------------------
# Fundraiser login
# ----------------------------
@bp.post("/otp/send")
def send_otp():
    payload = _request_payload()
    form = EmailForm.from_json({**payload, "email": _normalize_email(payload.get("email"))})
    if not form.validate():
        return _json_error("Invalid email", 400, {"issues": form.issues()})
    email = form.email.data

    db.session.query(FundraiserLoginOtp).filter(
        FundraiserLoginOtp.email == email, FundraiserLoginOtp.used.is_(False)
    ).delete(synchronize_session=False)
    code = f"{secrets.randbelow(10 ** 6):06d}"
    db.session.add(FundraiserLoginOtp(email=email, code=code, expires_at=utcnow() + OTP_TTL))
    db.session.commit()

    # delivery is best-effort; the code stays valid either way
    emails.send_fundraiser_login_code(email, code)
    return _json_ok({"success": True})


@bp.post("/otp/verify")
def verify_otp():
    limited = check_otp_rate_limit(f"fundraiser-otp-verify:ip:{get_client_ip()}")
    if not limited.allowed:
        return _rate_limited(limited)

    payload = _request_payload()
    form = OtpVerifyForm.from_json({**payload, "email": _normalize_email(payload.get("email"))})
    if not form.validate():
        return _json_error("Invalid request", 400, {"issues": form.issues()})
    email = form.email.data

    limited = check_otp_rate_limit(f"fundraiser-otp-verify:email:{email}")
    if not limited.allowed:
        return _rate_limited(limited)

    otp = db.session.scalar(
        select(FundraiserLoginOtp)
        .where(
            FundraiserLoginOtp.email == email,
            FundraiserLoginOtp.code == form.code.data,
            FundraiserLoginOtp.used.is_(False),
            FundraiserLoginOtp.expires_at > utcnow(),
        )
        .order_by(FundraiserLoginOtp.created_at.desc())
    )
    if otp is None:
        return _json_error("Invalid or expired OTP", 400)

    otp.used = True
    db.session.commit()
    return set_fundraiser_session(_json_ok({"success": True}), email)


@bp.post("/logout")
def logout():
    return clear_fundraiser_session(_json_ok({"success": True}))


@bp.get("/mine")
@require_fundraiser
def my_fundraisers():
    rows = db.session.scalars(
        select(Fundraiser).where(Fundraiser.email == g.fundraiser_email).order_by(Fundraiser.created_at.desc())
    ).all()
    return _json_ok({"fundraisers": [_with_totals(f) for f in rows]})


@bp.get("/<fundraiser_id>/donations")
@require_fundraiser
def fundraiser_donations(fundraiser_id: str):
    fundraiser = _owned_fundraiser(fundraiser_id)
    if fundraiser is None:
        return _json_error("Fundraiser not found", 404)

    if fundraiser.is_water_fundraiser:
        rows = db.session.scalars(
            select(WaterProjectDonation)
            .where(WaterProjectDonation.fundraiser_id == fundraiser.id)
            .order_by(WaterProjectDonation.created_at.desc())
        ).all()
    else:
        rows = db.session.scalars(
            select(Donation).where(Donation.fundraiser_id == fundraiser.id).order_by(Donation.created_at.desc())
        ).all()
    return _json_ok({"donations": [r.as_dict() for r in rows]})


# ----------------------------
# Cash donations
# ----------------------------
@bp.get("/<fundraiser_id>/cash-donations")
@require_fundraiser
def list_cash_donations(fundraiser_id: str):
    fundraiser = _owned_fundraiser(fundraiser_id)
    if fundraiser is None:
        return _json_error("Fundraiser not found", 404)
    rows = db.session.scalars(
        select(FundraiserCashDonation)
        .where(FundraiserCashDonation.fundraiser_id == fundraiser.id)
        .order_by(FundraiserCashDonation.created_at.desc())
    ).all()
    return _json_ok({"cashDonations": [r.as_dict() for r in rows]})


@bp.post("/<fundraiser_id>/cash-donations")
@require_fundraiser
def create_cash_donation(fundraiser_id: str):
    fundraiser = _owned_fundraiser(fundraiser_id)
    if fundraiser is None:
        return _json_error("Fundraiser not found", 404)

    form = CashDonationForm.from_json(_request_payload())
    if not form.validate():
        return _json_error("Invalid request", 400, {"issues": form.issues()})

    row = FundraiserCashDonation(
        fundraiser_id=fundraiser.id,
        amount_pence=form.amountPence.data,
        donor_name=(form.donorName.data or "").strip() or None,
        notes=(form.notes.data or "").strip() or None,
        received_at=parse_datetime(form.receivedAt.data) or utcnow(),
        status="PENDING_REVIEW",
    )
    db.session.add(row)
    db.session.commit()
    return _json_ok({"cashDonation": row.as_dict()}, 201)


@bp.post("/<fundraiser_id>/public-cash-donation")
def public_cash_donation(fundraiser_id: str):
    fundraiser = db.session.scalar(
        select(Fundraiser).where(Fundraiser.id == fundraiser_id, Fundraiser.is_active.is_(True))
    )
    if fundraiser is None:
        return _json_error("Fundraiser not found", 404)

    form = CashDonationForm.from_json(_request_payload())
    if not form.validate():
        return _json_error("Invalid request", 400, {"issues": form.issues()})

    db.session.add(
        FundraiserCashDonation(
            fundraiser_id=fundraiser.id,
            amount_pence=form.amountPence.data,
            donor_name=(form.donorName.data or "").strip() or None,
            notes=(form.notes.data or "").strip() or None,
            received_at=utcnow(),
            status="PENDING_REVIEW",
        )
    )
    db.session.commit()
    return _json_ok({"message": "Thank you. Your cash donation has been recorded and will appear once reviewed."}, 201)
