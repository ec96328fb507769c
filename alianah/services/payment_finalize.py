# alianah/services/payment_finalize.py
"""
Settle an order once Stripe reports the payment.

Called from the webhook for ``checkout.session.completed``. Running it twice
for the same order is harmless: only PENDING donations change, and the
confirmation email goes out only on the first transition to COMPLETED.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from flask import current_app
from sqlalchemy import select

from alianah.extensions import db
from alianah.models import (
    Donation,
    Fundraiser,
    Order,
    RecurringDonation,
    SponsorshipDonation,
    SponsorshipProject,
    WaterProject,
    WaterProjectDonation,
    utcnow,
)
from alianah.security.tokens import create_portal_token

from . import emails

log = logging.getLogger(__name__)


def _base_url() -> str:
    return (current_app.config.get("PUBLIC_BASE_URL") or "").rstrip("/")


def manage_subscription_url(email: str) -> Optional[str]:
    try:
        token = create_portal_token(email)
    except RuntimeError:
        log.warning("PORTAL_LINK_SECRET not set; confirmation sent without manage link")
        return None
    return f"{_base_url()}/manage-subscription?token={token}"


def _notify_fundraisers(donations: List[Donation]) -> None:
    base = _base_url()
    for d in donations:
        if not d.fundraiser_id:
            continue
        fundraiser = d.fundraiser or db.session.get(Fundraiser, d.fundraiser_id)
        if fundraiser is None:
            continue
        emails.send_fundraiser_donation_notification(
            fundraiser,
            donor_name=d.donor.full_name if d.donor else "",
            amount_pence=d.amount_pence,
            fundraiser_url=f"{base}/fundraise/{fundraiser.slug}",
        )


def _settle_campaign_rows(model, project_model, project_attr: str, order_number: str, payment_ref: Optional[str], kind: str) -> int:
    rows = db.session.scalars(select(model).where(model.order_number == order_number)).all()
    for row in rows:
        if row.status == "PENDING":
            row.status = "WAITING_TO_REVIEW"
        if payment_ref and not row.transaction_id:
            row.transaction_id = payment_ref
        project = db.session.get(project_model, getattr(row, project_attr))
        if project is not None and project.status is None:
            project.status = "WAITING_TO_REVIEW"
    db.session.commit()

    for row in rows:
        if row.email_sent:
            continue
        emails.send_campaign_donation_email(row, kind)
        row.email_sent = True
    db.session.commit()
    return len(rows)


def finalize_order_by_order_number(
    order_number: str,
    *,
    paid_at: Optional[datetime] = None,
    payment_ref: Optional[str] = None,
    is_subscription: bool = False,
    subscription_id: Optional[str] = None,
    customer_email: Optional[str] = None,
    next_payment_date: Optional[datetime] = None,
) -> Optional[Order]:
    """Complete an order and everything hanging off its order number.

    Returns the order, or ``None`` when no order carries ``order_number``.
    """
    order = db.session.scalar(select(Order).where(Order.order_number == order_number))
    if order is None:
        log.warning("finalize: no order %s", order_number)
        return None

    paid_at = paid_at or utcnow()
    was_completed = order.status == "COMPLETED"

    pending = db.session.scalars(
        select(Donation).where(Donation.order_number == order_number, Donation.status == "PENDING")
    ).all()
    for d in pending:
        d.status = "COMPLETED"
        d.completed_at = paid_at
        if payment_ref:
            d.transaction_id = payment_ref

    order.status = "COMPLETED"

    if is_subscription:
        recurring = db.session.scalars(
            select(RecurringDonation).where(RecurringDonation.order_number == order_number)
        ).all()
        for r in recurring:
            r.status = "ACTIVE"
            r.last_payment_date = paid_at
            if subscription_id:
                r.subscription_id = subscription_id
            if next_payment_date:
                r.next_payment_date = next_payment_date

    db.session.commit()
    log.info("Order %s completed (%d donations)", order_number, len(pending))

    if not was_completed:
        manage_url = None
        if is_subscription or order.has_recurring_items:
            manage_url = manage_subscription_url(customer_email or order.donor_email)
        emails.send_donation_confirmation(order, manage_url)

    _settle_campaign_rows(WaterProjectDonation, WaterProject, "water_project_id", order_number, payment_ref, "water")
    _settle_campaign_rows(
        SponsorshipDonation, SponsorshipProject, "sponsorship_project_id", order_number, payment_ref, "sponsorship"
    )

    _notify_fundraisers(pending)
    return order


def mark_recurring_paid(subscription_id: str, *, paid_at: Optional[datetime] = None, next_payment_date: Optional[datetime] = None) -> int:
    rows = db.session.scalars(
        select(RecurringDonation).where(RecurringDonation.subscription_id == subscription_id)
    ).all()
    for r in rows:
        r.status = "ACTIVE"
        r.last_payment_date = paid_at or utcnow()
        if next_payment_date:
            r.next_payment_date = next_payment_date
    db.session.commit()
    return len(rows)


def set_recurring_status(subscription_id: str, status: str) -> int:
    rows = db.session.scalars(
        select(RecurringDonation).where(RecurringDonation.subscription_id == subscription_id)
    ).all()
    for r in rows:
        r.status = status
    db.session.commit()
    return len(rows)
