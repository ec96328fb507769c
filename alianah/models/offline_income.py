from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from alianah.extensions import db

from .appeal import Appeal
from .mixins import IdMixin, TimestampMixin, iso, utcnow

OFFLINE_SOURCES = ("CASH", "BANK_TRANSFER", "CHEQUE", "OTHER")


class OfflineIncome(db.Model, IdMixin, TimestampMixin):
    """Money received outside Stripe, recorded by staff."""

    __tablename__ = "offline_income"
    __table_args__ = (CheckConstraint("amount_pence > 0", name="ck_offline_income_amount_positive"),)

    donation_number: Mapped[str] = mapped_column(db.String(20), unique=True, index=True, nullable=False)
    amount_pence: Mapped[int] = mapped_column(db.Integer, nullable=False)
    donation_type: Mapped[str] = mapped_column(db.String(10), nullable=False, default="GENERAL")
    source: Mapped[str] = mapped_column(db.String(20), nullable=False, default="CASH")
    received_at: Mapped[datetime] = mapped_column(db.DateTime, nullable=False, default=utcnow)
    notes: Mapped[Optional[str]] = mapped_column(db.Text, nullable=True)
    appeal_id: Mapped[Optional[str]] = mapped_column(
        db.ForeignKey("appeals.id", ondelete="SET NULL"), nullable=True
    )
    appeal: Mapped[Optional[Appeal]] = relationship("Appeal", lazy="joined")
    added_by_id: Mapped[Optional[str]] = mapped_column(
        db.ForeignKey("admin_users.id", ondelete="SET NULL"), nullable=True
    )

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "donationNumber": self.donation_number,
            "amountPence": int(self.amount_pence),
            "donationType": self.donation_type,
            "source": self.source,
            "receivedAt": iso(self.received_at),
            "notes": self.notes,
            "appealId": self.appeal_id,
            "appealTitle": self.appeal.title if self.appeal else None,
            "createdAt": iso(self.created_at),
        }
