# alianah/blueprints/webhooks.py
"""
Stripe webhook.

Mount: /api/webhooks

  POST /stripe

Signature-verified with STRIPE_WEBHOOK_SECRET. Each event id is stored once
in StripeEvent; a replay hits the unique constraint and is acknowledged
without reprocessing. Processing errors return 500 so Stripe retries.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import stripe
from flask import Blueprint, current_app, request
from sqlalchemy.exc import IntegrityError

from alianah.extensions import csrf, db, tx_commit
from alianah.models import Donation, StripeEvent, utcnow
from alianah.services.payment_finalize import (
    finalize_order_by_order_number,
    mark_recurring_paid,
    set_recurring_status,
)

bp = Blueprint("webhooks", __name__)
csrf.exempt(bp)


def _ts(value: Any) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc).replace(tzinfo=None)
    except (TypeError, ValueError, OverflowError):
        return None


def _metadata(obj: Dict[str, Any]) -> Dict[str, Any]:
    md = obj.get("metadata")
    return md if isinstance(md, dict) else {}


def _store_event(event_id: str, etype: str, livemode: bool, object_id: str) -> None:
    db.session.add(
        StripeEvent(
            event_id=event_id,
            type=etype[:120],
            livemode=bool(livemode),
            object_id=(object_id[:255] if object_id else None),
        )
    )
    tx_commit()


# ----------------------------
# Event handlers
# ----------------------------
def _on_checkout_completed(obj: Dict[str, Any]) -> None:
    order_number = str(_metadata(obj).get("orderNumber") or obj.get("client_reference_id") or "")
    if not order_number:
        current_app.logger.warning("webhook: checkout session %s without orderNumber", obj.get("id"))
        return
    if obj.get("mode") != "subscription" and obj.get("payment_status") not in ("paid", "no_payment_required"):
        # async payment methods settle later via checkout.session.async_payment_succeeded
        return
    details = obj.get("customer_details") if isinstance(obj.get("customer_details"), dict) else {}
    is_subscription = obj.get("mode") == "subscription"
    subscription_id = str(obj.get("subscription") or "") or None
    finalize_order_by_order_number(
        order_number,
        paid_at=_ts(obj.get("created")) or utcnow(),
        payment_ref=str(obj.get("payment_intent") or subscription_id or obj.get("id") or ""),
        is_subscription=is_subscription,
        subscription_id=subscription_id,
        customer_email=details.get("email") or obj.get("customer_email"),
    )


def _on_payment_intent_succeeded(obj: Dict[str, Any]) -> None:
    donation_id = str(_metadata(obj).get("donationId") or "")
    if not donation_id:
        return
    donation = db.session.get(Donation, donation_id)
    if donation is None or donation.status != "PENDING":
        return
    donation.status = "COMPLETED"
    donation.completed_at = utcnow()
    donation.transaction_id = str(obj.get("id") or "") or None
    db.session.commit()


def _invoice_next_period_end(obj: Dict[str, Any]) -> Optional[datetime]:
    lines = (obj.get("lines") or {}).get("data") or []
    if lines and isinstance(lines[0], dict):
        return _ts((lines[0].get("period") or {}).get("end"))
    return None


def _invoice_subscription(obj: Dict[str, Any]) -> str:
    sub = obj.get("subscription")
    if not sub:
        # newer API versions nest it under parent.subscription_details
        sub = ((obj.get("parent") or {}).get("subscription_details") or {}).get("subscription")
    return str(sub or "")


def _on_invoice_paid(obj: Dict[str, Any]) -> None:
    subscription_id = _invoice_subscription(obj)
    if subscription_id:
        mark_recurring_paid(
            subscription_id,
            paid_at=_ts(obj.get("created")),
            next_payment_date=_invoice_next_period_end(obj),
        )


def _on_invoice_failed(obj: Dict[str, Any]) -> None:
    subscription_id = _invoice_subscription(obj)
    if subscription_id:
        set_recurring_status(subscription_id, "FAILED")


def _on_subscription_deleted(obj: Dict[str, Any]) -> None:
    subscription_id = str(obj.get("id") or "")
    if subscription_id:
        set_recurring_status(subscription_id, "CANCELLED")


HANDLERS = {
    "checkout.session.completed": _on_checkout_completed,
    "checkout.session.async_payment_succeeded": _on_checkout_completed,
    "payment_intent.succeeded": _on_payment_intent_succeeded,
    "invoice.payment_succeeded": _on_invoice_paid,
    "invoice.payment_failed": _on_invoice_failed,
    "customer.subscription.deleted": _on_subscription_deleted,
}


@bp.post("/stripe")
def stripe_webhook():
    payload = request.get_data(cache=False, as_text=False)
    sig = (request.headers.get("Stripe-Signature") or "").strip()
    endpoint_secret = (current_app.config.get("STRIPE_WEBHOOK_SECRET") or "").strip()

    if not endpoint_secret:
        current_app.logger.error("webhook: STRIPE_WEBHOOK_SECRET not configured")
        return ("", 500)
    if not sig:
        return ("", 400)

    try:
        stripe.Webhook.construct_event(payload, sig, endpoint_secret)
        ev = json.loads(payload.decode("utf-8"))
    except (ValueError, stripe.SignatureVerificationError):
        return ("", 400)

    event_id = str(ev.get("id") or "")
    etype = str(ev.get("type") or "")
    obj = (ev.get("data") or {}).get("object") or {}
    if not event_id or not isinstance(obj, dict):
        return ("", 400)

    try:
        _store_event(event_id, etype, bool(ev.get("livemode")), str(obj.get("id") or ""))
    except IntegrityError:
        db.session.rollback()
        current_app.logger.info("webhook: duplicate event %s ignored", event_id)
        return ("", 200)

    handler = HANDLERS.get(etype)
    if handler is None:
        return ("", 200)

    try:
        handler(obj)
    except Exception:
        db.session.rollback()
        # forget the event so Stripe's retry is processed
        db.session.query(StripeEvent).filter(StripeEvent.event_id == event_id).delete()
        db.session.commit()
        current_app.logger.exception("webhook: processing %s (%s) failed (will retry)", event_id, etype)
        return ("", 500)

    return ("", 200)
