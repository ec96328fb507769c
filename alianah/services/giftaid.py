# alianah/services/giftaid.py
"""
Gift Aid schedule for HMRC claims.

Completed online donations and completed water/sponsorship donations in a
date range are split into eligible (donor ticked Gift Aid) and ineligible
rows. Staff can flip a donor's rows to eligible, and mark a whole range as
claimed once submitted.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, update

from alianah.extensions import db
from alianah.models import Donation, SponsorshipDonation, WaterProjectDonation

from .analytics import resolve_date_range

# (model, status that counts as settled)
_SOURCES = (
    (Donation, "COMPLETED"),
    (WaterProjectDonation, "COMPLETE"),
    (SponsorshipDonation, "COMPLETE"),
)


def _parse(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00")).replace(tzinfo=None)
    except ValueError:
        return None


def schedule_range(start: Optional[str] = None, end: Optional[str] = None) -> Tuple[datetime, datetime]:
    """Explicit ``start``/``end`` when both parse; otherwise the current calendar month."""
    s, e = _parse(start), _parse(end)
    if s and e:
        return s, e
    return resolve_date_range("this_month")


def _row(obj) -> Dict[str, Any]:
    donor = obj.donor
    return {
        "id": obj.id,
        "donorId": obj.donor_id,
        "title": donor.title or None,
        "firstName": donor.first_name or None,
        "lastName": donor.last_name or None,
        "email": donor.email or None,
        "phone": donor.phone or None,
        "giftAidClaimed": bool(obj.gift_aid_claimed),
        "houseNumber": obj.billing_address or donor.address or None,
        "postcode": obj.billing_postcode or donor.postcode or None,
        "aggregated": None,
        "sponsored": None,
        "donationDate": obj.created_at.isoformat(),
        "amountPence": int(obj.amount_pence),
    }


def _collect(start: datetime, end: datetime, gift_aid: bool) -> List[Dict[str, Any]]:
    rows: List[Dict[str, Any]] = []
    for model, settled in _SOURCES:
        stmt = (
            select(model)
            .where(
                model.created_at >= start,
                model.created_at <= end,
                model.status == settled,
                model.gift_aid.is_(gift_aid),
            )
            .order_by(model.created_at.asc())
        )
        rows.extend(_row(obj) for obj in db.session.scalars(stmt))
    return rows


def _section(rows: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {
        "rows": rows,
        "summary": {
            "totalAmountPence": sum(r["amountPence"] for r in rows),
            "totalCount": len(rows),
        },
    }


def build_schedule(start: Optional[str] = None, end: Optional[str] = None) -> Dict[str, Any]:
    s, e = schedule_range(start, end)
    return {
        "range": {"start": s.isoformat(), "end": e.isoformat()},
        "eligible": _section(_collect(s, e, True)),
        "ineligible": _section(_collect(s, e, False)),
    }


def mark_donor_eligible(donor_id: str, start: Optional[str] = None, end: Optional[str] = None) -> int:
    s, e = schedule_range(start, end)
    updated = 0
    for model, settled in _SOURCES:
        result = db.session.execute(
            update(model)
            .where(
                model.donor_id == donor_id,
                model.created_at >= s,
                model.created_at <= e,
                model.status == settled,
                model.gift_aid.is_(False),
            )
            .values(gift_aid=True)
        )
        updated += result.rowcount or 0
    db.session.commit()
    return updated


def mark_claimed(start: Optional[str] = None, end: Optional[str] = None) -> int:
    s, e = schedule_range(start, end)
    updated = 0
    for model, settled in _SOURCES:
        result = db.session.execute(
            update(model)
            .where(
                model.created_at >= s,
                model.created_at <= e,
                model.status == settled,
                model.gift_aid.is_(True),
            )
            .values(gift_aid_claimed=True)
        )
        updated += result.rowcount or 0
    db.session.commit()
    return updated
