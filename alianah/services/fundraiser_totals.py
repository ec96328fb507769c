# alianah/services/fundraiser_totals.py
"""
Total raised for a fundraiser page.

Three disjoint sources feed a fundraiser:
  - online Donation rows (appeal fundraisers), deduplicated per transaction
  - WaterProjectDonation rows (water-pump fundraisers)
  - FundraiserCashDonation rows approved by staff

The water flag decides which online source counts; the other is forced to
zero so a contribution is never counted twice. Query errors propagate.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import func

from alianah.extensions import db
from alianah.models import Donation, FundraiserCashDonation, WaterProjectDonation

from .donation_dedup import deduplicate_by_transaction, donation_rows

WATER_PROJECT_STATUSES = ("WAITING_TO_REVIEW", "ORDERED", "COMPLETE")


@dataclass(frozen=True)
class FundraiserTotals:
    total_raised_pence: int
    donation_count: int

    def as_dict(self):
        return {"totalRaisedPence": self.total_raised_pence, "donationCount": self.donation_count}


def _online_sum_and_count(fundraiser_id: str):
    rows = donation_rows((Donation.fundraiser_id == fundraiser_id, Donation.status == "COMPLETED"))
    deduped = deduplicate_by_transaction(rows)
    return sum(int(r.amount_pence) for r in deduped), len(deduped)


def _water_sum_and_count(fundraiser_id: str):
    total, count = (
        db.session.query(func.coalesce(func.sum(WaterProjectDonation.amount_pence), 0), func.count(WaterProjectDonation.id))
        .filter(
            WaterProjectDonation.fundraiser_id == fundraiser_id,
            WaterProjectDonation.status.in_(WATER_PROJECT_STATUSES),
        )
        .one()
    )
    return int(total or 0), int(count or 0)


def _cash_sum_and_count(fundraiser_id: str):
    total, count = (
        db.session.query(
            func.coalesce(func.sum(FundraiserCashDonation.amount_pence), 0), func.count(FundraiserCashDonation.id)
        )
        .filter(FundraiserCashDonation.fundraiser_id == fundraiser_id, FundraiserCashDonation.status == "APPROVED")
        .one()
    )
    return int(total or 0), int(count or 0)


def get_fundraiser_total_raised_and_count(fundraiser_id: str, is_water_fundraiser: bool) -> FundraiserTotals:
    if is_water_fundraiser:
        online_sum, online_count = 0, 0
        water_sum, water_count = _water_sum_and_count(fundraiser_id)
    else:
        online_sum, online_count = _online_sum_and_count(fundraiser_id)
        water_sum, water_count = 0, 0
    cash_sum, cash_count = _cash_sum_and_count(fundraiser_id)

    return FundraiserTotals(
        total_raised_pence=online_sum + water_sum + cash_sum,
        donation_count=online_count + water_count + cash_count,
    )
