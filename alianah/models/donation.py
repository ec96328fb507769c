from __future__ import annotations

# -----------------------------------------------------------------------------
# Online donations (one per basket line) and the recurring schedules behind
# MONTHLY / YEARLY lines. Pence-based.
# -----------------------------------------------------------------------------
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import CheckConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from alianah.extensions import db

from .appeal import Appeal
from .donor import Donor
from .fundraiser import Fundraiser
from .mixins import IdMixin, TimestampMixin, iso

DONATION_STATUSES = ("PENDING", "COMPLETED", "ABANDONED", "REFUNDED")
RECURRING_STATUSES = ("PENDING", "ACTIVE", "CANCELLED", "FAILED")

PAYMENT_METHOD_STRIPE = "WEBSITE_STRIPE"
COLLECTED_VIA_WEBSITE = "WEBSITE"


class Donation(db.Model, IdMixin, TimestampMixin):
    __tablename__ = "donations"
    __table_args__ = (
        CheckConstraint("amount_pence > 0", name="ck_donations_amount_positive"),
        Index("ix_donations_fundraiser_status", "fundraiser_id", "status"),
        Index("ix_donations_order_status", "order_number", "status"),
    )

    donor_id: Mapped[str] = mapped_column(db.ForeignKey("donors.id"), nullable=False, index=True)
    donor: Mapped[Donor] = relationship("Donor", lazy="joined")
    appeal_id: Mapped[Optional[str]] = mapped_column(db.ForeignKey("appeals.id"), nullable=True, index=True)
    appeal: Mapped[Optional[Appeal]] = relationship("Appeal", lazy="joined")
    fundraiser_id: Mapped[Optional[str]] = mapped_column(
        db.ForeignKey("fundraisers.id", ondelete="SET NULL"), nullable=True
    )
    fundraiser: Mapped[Optional[Fundraiser]] = relationship("Fundraiser")
    product_id: Mapped[Optional[str]] = mapped_column(
        db.ForeignKey("products.id", ondelete="SET NULL"), nullable=True
    )

    amount_pence: Mapped[int] = mapped_column(db.Integer, nullable=False)
    donation_type: Mapped[str] = mapped_column(db.String(10), nullable=False, default="GENERAL")
    frequency: Mapped[str] = mapped_column(db.String(10), nullable=False, default="ONE_OFF")
    payment_method: Mapped[str] = mapped_column(db.String(30), nullable=False, default=PAYMENT_METHOD_STRIPE)
    collected_via: Mapped[str] = mapped_column(db.String(30), nullable=False, default=COLLECTED_VIA_WEBSITE)
    status: Mapped[str] = mapped_column(db.String(12), nullable=False, default="PENDING", index=True)

    gift_aid: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=False)
    gift_aid_claimed: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=False)
    billing_address: Mapped[Optional[str]] = mapped_column(db.String(255), nullable=True)
    billing_postcode: Mapped[Optional[str]] = mapped_column(db.String(20), nullable=True)

    order_number: Mapped[Optional[str]] = mapped_column(db.String(20), nullable=True)
    transaction_id: Mapped[Optional[str]] = mapped_column(
        db.String(255), nullable=True, index=True, doc="Stripe PaymentIntent (pi_...) or subscription (sub_...) id"
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(db.DateTime, nullable=True)
    refunded_pence: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "donorId": self.donor_id,
            "donorName": self.donor.full_name if self.donor else None,
            "donorEmail": self.donor.email if self.donor else None,
            "appealId": self.appeal_id,
            "appealTitle": self.appeal.title if self.appeal else None,
            "fundraiserId": self.fundraiser_id,
            "productId": self.product_id,
            "amountPence": int(self.amount_pence),
            "donationType": self.donation_type,
            "frequency": self.frequency,
            "paymentMethod": self.payment_method,
            "collectedVia": self.collected_via,
            "status": self.status,
            "giftAid": bool(self.gift_aid),
            "orderNumber": self.order_number,
            "transactionId": self.transaction_id,
            "completedAt": iso(self.completed_at),
            "refundedPence": int(self.refunded_pence or 0),
            "createdAt": iso(self.created_at),
        }


class RecurringDonation(db.Model, IdMixin, TimestampMixin):
    __tablename__ = "recurring_donations"

    donor_id: Mapped[str] = mapped_column(db.ForeignKey("donors.id"), nullable=False, index=True)
    donor: Mapped[Donor] = relationship("Donor", lazy="joined")
    appeal_id: Mapped[Optional[str]] = mapped_column(db.ForeignKey("appeals.id"), nullable=True)
    appeal: Mapped[Optional[Appeal]] = relationship("Appeal", lazy="joined")
    order_number: Mapped[Optional[str]] = mapped_column(db.String(20), nullable=True, index=True)
    amount_pence: Mapped[int] = mapped_column(db.Integer, nullable=False)
    donation_type: Mapped[str] = mapped_column(db.String(10), nullable=False, default="GENERAL")
    frequency: Mapped[str] = mapped_column(db.String(10), nullable=False, default="MONTHLY")
    payment_method: Mapped[str] = mapped_column(db.String(30), nullable=False, default=PAYMENT_METHOD_STRIPE)
    status: Mapped[str] = mapped_column(db.String(12), nullable=False, default="PENDING", index=True)
    subscription_id: Mapped[Optional[str]] = mapped_column(db.String(255), nullable=True, index=True)
    last_payment_date: Mapped[Optional[datetime]] = mapped_column(db.DateTime, nullable=True)
    next_payment_date: Mapped[Optional[datetime]] = mapped_column(db.DateTime, nullable=True)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "donorId": self.donor_id,
            "donorEmail": self.donor.email if self.donor else None,
            "appealId": self.appeal_id,
            "appealTitle": self.appeal.title if self.appeal else None,
            "orderNumber": self.order_number,
            "amountPence": int(self.amount_pence),
            "donationType": self.donation_type,
            "frequency": self.frequency,
            "status": self.status,
            "subscriptionId": self.subscription_id,
            "lastPaymentDate": iso(self.last_payment_date),
            "nextPaymentDate": iso(self.next_payment_date),
            "createdAt": iso(self.created_at),
        }
