# alianah/services/donation_number.py
"""
Human-facing donation numbers: ``786-1`` followed by eight random digits.

A number is taken when any order, offline income record or campaign donation
already carries it. Candidates are drawn uniformly; after ``MAX_ATTEMPTS``
collisions generation fails instead of looping forever.
"""

from __future__ import annotations

import logging
import secrets

from sqlalchemy import exists, or_, select

from alianah.errors import DonationNumberExhausted
from alianah.extensions import db
from alianah.models import OfflineIncome, Order, QurbaniDonation, SponsorshipDonation, WaterProjectDonation

log = logging.getLogger(__name__)

PREFIX = "786-1"
DIGITS = 8
MAX_ATTEMPTS = 15


def _random_digits() -> str:
    return f"{secrets.randbelow(10 ** DIGITS):0{DIGITS}d}"


def donation_number_exists(candidate: str) -> bool:
    # single round trip: the per-table checks run as EXISTS subqueries
    stmt = select(
        or_(
            exists().where(Order.order_number == candidate),
            exists().where(OfflineIncome.donation_number == candidate),
            exists().where(WaterProjectDonation.donation_number == candidate),
            exists().where(SponsorshipDonation.donation_number == candidate),
            exists().where(QurbaniDonation.donation_number == candidate),
        )
    )
    return bool(db.session.execute(stmt).scalar())


def generate_donation_number(max_attempts: int = MAX_ATTEMPTS) -> str:
    for attempt in range(1, max_attempts + 1):
        candidate = f"{PREFIX}{_random_digits()}"
        if not donation_number_exists(candidate):
            return candidate
        log.warning("Donation number collision on attempt %s/%s", attempt, max_attempts)
    raise DonationNumberExhausted("Failed to generate donation number")
