# alianah/blueprints/admin_donations.py
"""
Admin donations API.

Mount: /api/admin

  GET   /donations                              ?status=&appealId=&q=&page=&perPage=
  POST  /donations/<id>/refund                  ADMIN only; one-off Stripe payments
  GET   /recurring                              ?status=
  POST  /recurring/<id>/cancel                  cancels the Stripe subscription
  GET   /fundraisers/cash-donations/pending
  PATCH /fundraisers/cash-donations/<id>        {status: APPROVED | REJECTED}
  GET   /campaign-donations/<kind>              kind = water | sponsorship | qurbani
  PATCH /campaign-donations/<kind>/<id>         {status}
  GET   /offline-income
  POST  /offline-income
"""

from __future__ import annotations

import stripe
from flask import Blueprint, current_app, request
from sqlalchemy import or_, select

from alianah.errors import PaymentsNotConfigured
from alianah.extensions import csrf, db
from alianah.forms import CampaignStatusForm, CashReviewForm, OfflineIncomeForm, RefundForm, parse_datetime
from alianah.models import (
    Appeal,
    Donation,
    Donor,
    FundraiserCashDonation,
    OfflineIncome,
    QurbaniDonation,
    RecurringDonation,
    SponsorshipDonation,
    WaterProjectDonation,
    utcnow,
)
from alianah.security.sessions import admin_api_gate, get_admin_user, require_admin_role
from alianah.services import emails
from alianah.services.audit import record_audit
from alianah.services.donation_number import generate_donation_number

from .api_utils import _json_error, _json_ok, _request_payload

bp = Blueprint("admin_donations", __name__)
csrf.exempt(bp)
bp.before_request(admin_api_gate())

CAMPAIGN_MODELS = {
    "water": WaterProjectDonation,
    "sponsorship": SponsorshipDonation,
    "qurbani": QurbaniDonation,
}
DEFAULT_PER_PAGE = 50
MAX_PER_PAGE = 200


def _page_args():
    page = request.args.get("page", 1, type=int) or 1
    per_page = request.args.get("perPage", DEFAULT_PER_PAGE, type=int) or DEFAULT_PER_PAGE
    return max(page, 1), max(1, min(per_page, MAX_PER_PAGE))


def _page_payload(pagination, key: str):
    return {
        key: [row.as_dict() for row in pagination.items],
        "page": pagination.page,
        "perPage": pagination.per_page,
        "total": pagination.total,
        "pages": pagination.pages,
    }


def _require_stripe() -> None:
    if not current_app.config.get("STRIPE_SECRET_KEY"):
        raise PaymentsNotConfigured("Payments are not configured")


# ----------------------------
# Donations
# ----------------------------
@bp.get("/donations")
def list_donations():
    q = select(Donation).order_by(Donation.created_at.desc())
    status = (request.args.get("status") or "").upper()
    if status:
        q = q.where(Donation.status == status)
    appeal_id = request.args.get("appealId")
    if appeal_id:
        q = q.where(Donation.appeal_id == appeal_id)
    term = (request.args.get("q") or "").strip()
    if term:
        like = f"%{term}%"
        q = q.join(Donor, Donation.donor_id == Donor.id).where(
            or_(
                Donor.email.ilike(like),
                Donor.first_name.ilike(like),
                Donor.last_name.ilike(like),
                Donation.order_number.ilike(like),
            )
        )
    page, per_page = _page_args()
    return _json_ok(_page_payload(db.paginate(q, page=page, per_page=per_page, error_out=False), "donations"))


@bp.post("/donations/<donation_id>/refund")
@require_admin_role("ADMIN")
def refund_donation(donation_id: str):
    _require_stripe()
    form = RefundForm.from_json(_request_payload())
    if not form.validate():
        return _json_error("Invalid refund request", 400, {"issues": form.issues()})
    kind = form.type.data or "full"
    amount = form.amountPence.data if kind == "partial" else None

    donation = db.session.get(Donation, donation_id)
    if donation is None:
        return _json_error("Donation not found", 404)
    if not donation.transaction_id:
        return _json_error("No Stripe payment reference found", 400)
    if not donation.transaction_id.startswith("pi_"):
        return _json_error("Refunds are only supported for one-off Stripe payments.", 400)

    try:
        intent = stripe.PaymentIntent.retrieve(donation.transaction_id)
        if amount is not None:
            remaining = int(intent.amount or 0) - int(getattr(intent, "amount_refunded", 0) or 0)
            if amount > remaining:
                return _json_error("Refund amount exceeds remaining balance", 400)
        params = {"payment_intent": donation.transaction_id, "metadata": {"reason": form.reason.data}}
        if amount is not None:
            params["amount"] = amount
        refund = stripe.Refund.create(**params)
    except stripe.StripeError as e:
        current_app.logger.exception("admin_donations: refund for %s failed", donation_id)
        return _json_error(getattr(e, "user_message", None) or "Stripe refund failed", 502)

    refunded = amount if amount is not None else donation.amount_pence
    donation.status = "REFUNDED"
    donation.refunded_pence = int(donation.refunded_pence or 0) + refunded
    record_audit(
        get_admin_user(),
        "REFUND",
        "donation",
        donation.id,
        {"type": kind, "amountPence": refunded, "reason": form.reason.data, "refundId": refund.id},
    )
    db.session.commit()

    if donation.donor is not None:
        emails.send_refund_confirmation(
            donation.donor.email,
            donation.donor.full_name or "there",
            refunded,
            donation.order_number,
        )

    return _json_ok({"donation": donation.as_dict(), "refund": {"id": refund.id, "status": refund.status}})


# ----------------------------
# Recurring
# ----------------------------
@bp.get("/recurring")
def list_recurring():
    q = select(RecurringDonation).order_by(RecurringDonation.created_at.desc())
    status = (request.args.get("status") or "").upper()
    if status:
        q = q.where(RecurringDonation.status == status)
    page, per_page = _page_args()
    return _json_ok(_page_payload(db.paginate(q, page=page, per_page=per_page, error_out=False), "recurring"))


@bp.post("/recurring/<recurring_id>/cancel")
def cancel_recurring(recurring_id: str):
    _require_stripe()
    recurring = db.session.get(RecurringDonation, recurring_id)
    if recurring is None:
        return _json_error("Recurring donation not found", 404)
    if not recurring.subscription_id:
        return _json_error("No Stripe subscription linked", 400)

    try:
        stripe.Subscription.cancel(recurring.subscription_id)
    except stripe.StripeError:
        current_app.logger.exception("admin_donations: cancel %s failed", recurring.subscription_id)
        return _json_error("Could not cancel the subscription in Stripe", 502)

    recurring.status = "CANCELLED"
    record_audit(get_admin_user(), "CANCEL", "recurring_donation", recurring.id, {"subscriptionId": recurring.subscription_id})
    db.session.commit()
    return _json_ok({"success": True})


# ----------------------------
# Fundraiser cash review
# ----------------------------
@bp.get("/fundraisers/cash-donations/pending")
def pending_cash_donations():
    rows = db.session.scalars(
        select(FundraiserCashDonation)
        .where(FundraiserCashDonation.status == "PENDING_REVIEW")
        .order_by(FundraiserCashDonation.created_at.asc())
    ).all()
    items = []
    for row in rows:
        data = row.as_dict()
        data["fundraiser"] = (
            {"id": row.fundraiser.id, "title": row.fundraiser.title, "slug": row.fundraiser.slug}
            if row.fundraiser
            else None
        )
        items.append(data)
    return _json_ok({"cashDonations": items})


@bp.patch("/fundraisers/cash-donations/<cash_id>")
def review_cash_donation(cash_id: str):
    form = CashReviewForm.from_json(_request_payload())
    if not form.validate():
        return _json_error("Invalid request", 400, {"issues": form.issues()})

    row = db.session.get(FundraiserCashDonation, cash_id)
    if row is None:
        return _json_error("Not found", 404)
    if row.status != "PENDING_REVIEW":
        return _json_error("Cash donation has already been reviewed", 400)

    admin = get_admin_user()
    row.status = form.status.data
    row.reviewed_at = utcnow()
    row.reviewed_by_id = admin.id
    row.reviewed_by = admin
    record_audit(admin, "REVIEW", "fundraiser_cash_donation", row.id, {"status": row.status})
    db.session.commit()
    return _json_ok(row.as_dict())


# ----------------------------
# Water / sponsorship / qurbani donations
# ----------------------------
@bp.get("/campaign-donations/<kind>")
def list_campaign_donations(kind: str):
    model = CAMPAIGN_MODELS.get(kind)
    if model is None:
        return _json_error("Unknown donation kind", 404)
    q = select(model).order_by(model.created_at.desc())
    status = (request.args.get("status") or "").upper()
    if status:
        q = q.where(model.status == status)
    page, per_page = _page_args()
    return _json_ok(_page_payload(db.paginate(q, page=page, per_page=per_page, error_out=False), "donations"))


@bp.patch("/campaign-donations/<kind>/<donation_id>")
def update_campaign_donation(kind: str, donation_id: str):
    model = CAMPAIGN_MODELS.get(kind)
    if model is None:
        return _json_error("Unknown donation kind", 404)
    form = CampaignStatusForm.from_json(_request_payload())
    if not form.validate():
        return _json_error("Invalid request", 400, {"issues": form.issues()})

    row = db.session.get(model, donation_id)
    if row is None:
        return _json_error("Donation not found", 404)
    previous = row.status
    row.status = form.status.data
    record_audit(get_admin_user(), "STATUS", f"{kind}_donation", row.id, {"from": previous, "to": row.status})
    db.session.commit()
    return _json_ok({"donation": row.as_dict()})


# ----------------------------
# Offline income
# ----------------------------
@bp.get("/offline-income")
def list_offline_income():
    q = select(OfflineIncome).order_by(OfflineIncome.received_at.desc())
    page, per_page = _page_args()
    return _json_ok(_page_payload(db.paginate(q, page=page, per_page=per_page, error_out=False), "income"))


@bp.post("/offline-income")
def create_offline_income():
    form = OfflineIncomeForm.from_json(_request_payload())
    if not form.validate():
        return _json_error("Invalid request", 400, {"issues": form.issues()})

    appeal_id = (form.appealId.data or "").strip() or None
    if appeal_id and db.session.get(Appeal, appeal_id) is None:
        return _json_error("Appeal not found", 404)

    admin = get_admin_user()
    income = OfflineIncome(
        donation_number=generate_donation_number(),
        amount_pence=form.amountPence.data,
        donation_type=form.donationType.data or "GENERAL",
        source=form.source.data.strip().upper(),
        received_at=parse_datetime(form.receivedAt.data),
        notes=(form.notes.data or "").strip() or None,
        appeal_id=appeal_id,
        added_by_id=admin.id,
    )
    db.session.add(income)
    db.session.flush()
    record_audit(admin, "CREATE", "offline_income", income.id, {"amountPence": income.amount_pence})
    db.session.commit()
    return _json_ok({"success": True, "income": income.as_dict()}, 201)
