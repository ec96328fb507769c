# alianah/services/donation_dedup.py
"""
One basket can produce several Donation rows that settle through the same
Stripe transaction. Anything that totals donations counts each
(order_number, transaction_id) pair once; the first row in creation order wins.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Sequence, TypeVar

from alianah.extensions import db
from alianah.models import Donation

T = TypeVar("T")

GROUP_BY_FIELDS = ("donation_type", "payment_method", "status", "appeal_id", "fundraiser_id", "collected_via")


def dedup_key(row: Any) -> str:
    if row.order_number and row.transaction_id:
        return f"{row.order_number}:{row.transaction_id}"
    return str(row.id)


def deduplicate_by_transaction(rows: Iterable[T]) -> List[T]:
    seen = set()
    out: List[T] = []
    for row in rows:
        key = dedup_key(row)
        if key in seen:
            continue
        seen.add(key)
        out.append(row)
    return out


def sum_deduplicated(rows: Iterable[Any]) -> int:
    return sum(int(r.amount_pence or 0) for r in deduplicate_by_transaction(rows))


def donation_rows(criteria: Sequence[Any], *extra_cols) -> List[Any]:
    q = db.session.query(
        Donation.id, Donation.amount_pence, Donation.order_number, Donation.transaction_id, *extra_cols
    )
    if criteria:
        q = q.filter(*criteria)
    return q.order_by(Donation.created_at.asc(), Donation.id.asc()).all()


def get_deduplicated_sum(*criteria: Any) -> int:
    return sum_deduplicated(donation_rows(criteria))


def get_deduplicated_count(*criteria: Any) -> int:
    return len(deduplicate_by_transaction(donation_rows(criteria)))


def get_deduplicated_group_by(by: str, *criteria: Any) -> List[Dict[str, Optional[Any]]]:
    """``[{by: value, "sum": pence, "count": n}, ...]`` over deduplicated rows."""
    if by not in GROUP_BY_FIELDS:
        raise ValueError(f"cannot group donations by {by!r}")
    col = getattr(Donation, by)
    buckets: Dict[Optional[str], Dict[str, int]] = {}
    for row in deduplicate_by_transaction(donation_rows(criteria, col.label("group_key"))):
        b = buckets.setdefault(row.group_key, {"sum": 0, "count": 0})
        b["sum"] += int(row.amount_pence or 0)
        b["count"] += 1
    return [{by: k, "sum": v["sum"], "count": v["count"]} for k, v in buckets.items()]
