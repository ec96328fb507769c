# alianah/services/abandoned_checkout.py
"""
Basket-recovery reminders.

First reminder one hour after a PENDING order was created (the order becomes
ABANDONED); second reminder after 24 hours for orders still ABANDONED. A
failure on one order is logged and the run moves on.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Optional
from urllib.parse import quote

from flask import current_app
from sqlalchemy import select

from alianah.extensions import db
from alianah.models import Order, utcnow

from . import emails

log = logging.getLogger(__name__)

FIRST_REMINDER_AFTER = timedelta(hours=1)
SECOND_REMINDER_AFTER = timedelta(hours=24)


@dataclass
class ReminderRun:
    sent_first: int = 0
    sent_second: int = 0
    processed_first: int = 0
    processed_second: int = 0

    def as_dict(self) -> Dict[str, int]:
        return {
            "sentFirst": self.sent_first,
            "sentSecond": self.sent_second,
            "processedFirst": self.processed_first,
            "processedSecond": self.processed_second,
        }


def resume_url(order_number: str) -> str:
    base = (current_app.config.get("PUBLIC_BASE_URL") or "").rstrip("/")
    return f"{base}/checkout?resume={quote(order_number, safe='')}"


def send_abandoned_checkout_reminders(now: Optional[datetime] = None) -> ReminderRun:
    now = now or utcnow()
    run = ReminderRun()

    pending = db.session.scalars(
        select(Order).where(Order.status == "PENDING", Order.created_at <= now - FIRST_REMINDER_AFTER)
    ).all()
    run.processed_first = len(pending)
    for order in pending:
        try:
            emails.send_abandoned_checkout(order, resume_url(order.order_number))
            order.status = "ABANDONED"
            db.session.commit()
            run.sent_first += 1
        except Exception:
            db.session.rollback()
            log.exception("Failed to send first abandonment email for order %s", order.order_number)

    second = db.session.scalars(
        select(Order).where(
            Order.status == "ABANDONED",
            Order.abandoned_email2_sent_at.is_(None),
            Order.created_at <= now - SECOND_REMINDER_AFTER,
        )
    ).all()
    run.processed_second = len(second)
    for order in second:
        try:
            emails.send_abandoned_checkout(order, resume_url(order.order_number))
            order.abandoned_email2_sent_at = now
            db.session.commit()
            run.sent_second += 1
        except Exception:
            db.session.rollback()
            log.exception("Failed to send second abandonment email for order %s", order.order_number)

    log.info("Abandoned checkout run: %s", run.as_dict())
    return run
