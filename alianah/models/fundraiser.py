from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import CheckConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from alianah.extensions import db

from .admin import AdminUser
from .appeal import Appeal
from .mixins import IdMixin, TimestampMixin, iso, utcnow

CASH_STATUSES = ("PENDING_REVIEW", "APPROVED", "REJECTED")


class Fundraiser(db.Model, IdMixin, TimestampMixin):
    __tablename__ = "fundraisers"

    appeal_id: Mapped[str] = mapped_column(db.ForeignKey("appeals.id"), nullable=False, index=True)
    appeal: Mapped[Appeal] = relationship("Appeal", lazy="joined")
    title: Mapped[str] = mapped_column(db.String(200), nullable=False)
    slug: Mapped[str] = mapped_column(db.String(40), unique=True, index=True, nullable=False)
    fundraiser_name: Mapped[str] = mapped_column(db.String(200), nullable=False)
    email: Mapped[str] = mapped_column(db.String(255), nullable=False, index=True)
    message: Mapped[Optional[str]] = mapped_column(db.Text, nullable=True)
    target_amount_pence: Mapped[int] = mapped_column(db.Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=True)
    water_project_id: Mapped[Optional[str]] = mapped_column(
        db.ForeignKey("water_projects.id", ondelete="SET NULL"),
        nullable=True,
        doc="Set for water-pump fundraisers; totals then come from water project donations",
    )

    @property
    def is_water_fundraiser(self) -> bool:
        return bool(self.water_project_id)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "appealId": self.appeal_id,
            "appealTitle": self.appeal.title if self.appeal else None,
            "title": self.title,
            "slug": self.slug,
            "fundraiserName": self.fundraiser_name,
            "message": self.message,
            "targetAmountPence": int(self.target_amount_pence),
            "isActive": bool(self.is_active),
            "isWaterFundraiser": self.is_water_fundraiser,
            "createdAt": iso(self.created_at),
        }


class FundraiserLoginOtp(db.Model, IdMixin, TimestampMixin):
    __tablename__ = "fundraiser_login_otps"
    __table_args__ = (Index("ix_fundraiser_login_otps_email_used", "email", "used"),)

    email: Mapped[str] = mapped_column(db.String(255), nullable=False)
    code: Mapped[str] = mapped_column(db.String(6), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(db.DateTime, nullable=False)
    used: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=False)


class FundraiserCashDonation(db.Model, IdMixin, TimestampMixin):
    __tablename__ = "fundraiser_cash_donations"
    __table_args__ = (
        CheckConstraint("amount_pence > 0", name="ck_cash_amount_positive"),
        Index("ix_cash_fundraiser_status", "fundraiser_id", "status"),
    )

    fundraiser_id: Mapped[str] = mapped_column(
        db.ForeignKey("fundraisers.id", ondelete="CASCADE"), nullable=False
    )
    fundraiser: Mapped[Fundraiser] = relationship("Fundraiser", lazy="joined")
    amount_pence: Mapped[int] = mapped_column(db.Integer, nullable=False)
    donor_name: Mapped[Optional[str]] = mapped_column(db.String(200), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(db.String(1000), nullable=True)
    received_at: Mapped[datetime] = mapped_column(db.DateTime, nullable=False, default=utcnow)
    status: Mapped[str] = mapped_column(db.String(20), nullable=False, default="PENDING_REVIEW")
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(db.DateTime, nullable=True)
    reviewed_by_id: Mapped[Optional[str]] = mapped_column(
        db.ForeignKey("admin_users.id", ondelete="SET NULL"), nullable=True
    )
    reviewed_by: Mapped[Optional[AdminUser]] = relationship("AdminUser", lazy="joined")

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "fundraiserId": self.fundraiser_id,
            "amountPence": int(self.amount_pence),
            "donorName": self.donor_name,
            "notes": self.notes,
            "receivedAt": iso(self.received_at),
            "status": self.status,
            "reviewedAt": iso(self.reviewed_at),
            "reviewedBy": (
                {
                    "id": self.reviewed_by.id,
                    "firstName": self.reviewed_by.first_name,
                    "lastName": self.reviewed_by.last_name,
                    "email": self.reviewed_by.email,
                }
                if self.reviewed_by
                else None
            ),
            "createdAt": iso(self.created_at),
        }
