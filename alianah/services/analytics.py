# alianah/services/analytics.py
"""Date ranges, time buckets and the donations dashboard summary."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, select

from alianah.extensions import db
from alianah.models import Appeal, Donation, Order, utcnow

from .donation_dedup import deduplicate_by_transaction, donation_rows, get_deduplicated_group_by

RANGES = ("last_7", "last_30", "this_week", "this_month", "this_year", "custom")
INTERVALS = ("day", "week", "month", "year")


def _start_of_day(d: date) -> datetime:
    return datetime.combine(d, time.min)


def _end_of_day(d: date) -> datetime:
    return datetime.combine(d, time.max)


def _parse_day(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


def resolve_date_range(
    range_name: Optional[str] = None,
    from_value: Optional[str] = None,
    to_value: Optional[str] = None,
    *,
    now: Optional[datetime] = None,
) -> Tuple[datetime, datetime]:
    """Inclusive ``(from, to)`` datetimes. Unknown ranges fall back to ``last_7``."""
    today = (now or utcnow()).date()
    name = range_name or "last_7"

    if name == "custom":
        start, end = _parse_day(from_value), _parse_day(to_value)
        if start and end:
            return _start_of_day(start), _end_of_day(end)

    if name == "last_30":
        return _start_of_day(today - timedelta(days=29)), _end_of_day(today)
    if name == "this_week":
        monday = today - timedelta(days=today.weekday())
        return _start_of_day(monday), _end_of_day(monday + timedelta(days=6))
    if name == "this_month":
        first = today.replace(day=1)
        next_first = (first + timedelta(days=32)).replace(day=1)
        return _start_of_day(first), _end_of_day(next_first - timedelta(days=1))
    if name == "this_year":
        return _start_of_day(today.replace(month=1, day=1)), _end_of_day(today.replace(month=12, day=31))
    return _start_of_day(today - timedelta(days=6)), _end_of_day(today)


def get_bucket_key(value: datetime, interval: str) -> str:
    d = value.date() if isinstance(value, datetime) else value
    if interval == "week":
        d = d - timedelta(days=d.weekday())
    elif interval == "month":
        d = d.replace(day=1)
    elif interval == "year":
        d = d.replace(month=1, day=1)
    return d.isoformat()


def format_bucket_label(bucket_key: str, interval: str) -> str:
    if interval == "month":
        return bucket_key[:7]
    if interval == "year":
        return bucket_key[:4]
    return bucket_key


def donation_summary(range_name: Optional[str] = None, interval: Optional[str] = None,
                     from_value: Optional[str] = None, to_value: Optional[str] = None) -> Dict[str, Any]:
    interval = interval if interval in INTERVALS else "day"
    start, end = resolve_date_range(range_name, from_value, to_value)

    criteria = (
        Donation.status == "COMPLETED",
        Donation.completed_at >= start,
        Donation.completed_at <= end,
    )
    rows = deduplicate_by_transaction(donation_rows(criteria, Donation.completed_at))

    series: Dict[str, Dict[str, int]] = {}
    for row in rows:
        key = get_bucket_key(row.completed_at, interval)
        bucket = series.setdefault(key, {"amountPence": 0, "count": 0})
        bucket["amountPence"] += int(row.amount_pence or 0)
        bucket["count"] += 1

    completed_orders = db.session.scalar(
        select(func.count(Order.id)).where(
            Order.status == "COMPLETED", Order.created_at >= start, Order.created_at <= end
        )
    ) or 0
    abandoned_orders = db.session.scalar(
        select(func.count(Order.id)).where(
            Order.status == "ABANDONED", Order.created_at >= start, Order.created_at <= end
        )
    ) or 0

    by_appeal = get_deduplicated_group_by("appeal_id", *criteria)
    titles = dict(
        db.session.execute(
            select(Appeal.id, Appeal.title).where(Appeal.id.in_([g["appeal_id"] for g in by_appeal if g["appeal_id"]]))
        ).all()
    )
    top_appeals: List[Dict[str, Any]] = sorted(
        (
            {"label": titles.get(g["appeal_id"], "Unassigned"), "amountPence": g["sum"], "count": g["count"]}
            for g in by_appeal
        ),
        key=lambda x: x["amountPence"],
        reverse=True,
    )[:10]

    total = sum(int(r.amount_pence or 0) for r in rows)
    finished = completed_orders + abandoned_orders
    return {
        "range": {"from": start.isoformat(), "to": end.isoformat(), "interval": interval},
        "totals": {
            "amountPence": total,
            "donations": len(rows),
            "averagePence": (total // len(rows)) if rows else 0,
            "completedOrders": completed_orders,
            "abandonedOrders": abandoned_orders,
            "conversionRate": (completed_orders / finished * 100) if finished else 0,
        },
        "series": [
            {"date": format_bucket_label(k, interval), **series[k]} for k in sorted(series)
        ],
        "byDonationType": [
            {"label": g["donation_type"], "amountPence": g["sum"], "count": g["count"]}
            for g in get_deduplicated_group_by("donation_type", *criteria)
        ],
        "topAppeals": top_appeals,
    }
