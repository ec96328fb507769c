from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import CheckConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from alianah.extensions import db

from .mixins import IdMixin, TimestampMixin, iso

ORDER_STATUSES = ("PENDING", "COMPLETED", "ABANDONED")
FREQUENCIES = ("ONE_OFF", "MONTHLY", "YEARLY")
DONATION_TYPES = ("GENERAL", "SADAQAH", "ZAKAT", "LILLAH")


class Order(db.Model, IdMixin, TimestampMixin):
    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint("total_pence >= 0", name="ck_orders_total_nonneg"),
        Index("ix_orders_status_created", "status", "created_at"),
    )

    order_number: Mapped[str] = mapped_column(
        db.String(20), unique=True, index=True, nullable=False, doc="786-1 followed by eight digits"
    )
    status: Mapped[str] = mapped_column(db.String(20), nullable=False, default="PENDING")
    subtotal_pence: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)
    fees_pence: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)
    total_pence: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)
    cover_fees: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=False)
    gift_aid: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=False)
    marketing_email: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=False)
    marketing_sms: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=False)

    # Donor snapshot at checkout time
    donor_first_name: Mapped[str] = mapped_column(db.String(120), nullable=False)
    donor_last_name: Mapped[str] = mapped_column(db.String(120), nullable=False)
    donor_email: Mapped[str] = mapped_column(db.String(255), nullable=False, index=True)
    donor_phone: Mapped[Optional[str]] = mapped_column(db.String(40), nullable=True)
    donor_address: Mapped[Optional[str]] = mapped_column(db.String(255), nullable=True)
    donor_city: Mapped[Optional[str]] = mapped_column(db.String(120), nullable=True)
    donor_postcode: Mapped[Optional[str]] = mapped_column(db.String(20), nullable=True)
    donor_country: Mapped[Optional[str]] = mapped_column(db.String(80), nullable=True)

    stripe_session_id: Mapped[Optional[str]] = mapped_column(db.String(255), nullable=True, index=True)
    abandoned_email2_sent_at: Mapped[Optional[datetime]] = mapped_column(db.DateTime, nullable=True)

    items: Mapped[List["OrderItem"]] = relationship(
        "OrderItem", back_populates="order", cascade="all, delete-orphan", lazy="selectin"
    )

    @property
    def donor_name(self) -> str:
        return f"{self.donor_first_name or ''} {self.donor_last_name or ''}".strip()

    @property
    def has_recurring_items(self) -> bool:
        return any(i.frequency in ("MONTHLY", "YEARLY") for i in self.items)

    def as_dict(self, include_items: bool = True) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "orderNumber": self.order_number,
            "status": self.status,
            "subtotalPence": int(self.subtotal_pence),
            "feesPence": int(self.fees_pence),
            "totalPence": int(self.total_pence),
            "coverFees": bool(self.cover_fees),
            "giftAid": bool(self.gift_aid),
            "donorEmail": self.donor_email,
            "donorName": self.donor_name,
            "createdAt": iso(self.created_at),
        }
        if include_items:
            data["items"] = [i.as_dict() for i in self.items]
        return data


class OrderItem(db.Model, IdMixin, TimestampMixin):
    __tablename__ = "order_items"

    order_id: Mapped[str] = mapped_column(db.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    order: Mapped[Order] = relationship("Order", back_populates="items")
    appeal_id: Mapped[Optional[str]] = mapped_column(db.String(32), nullable=True)
    fundraiser_id: Mapped[Optional[str]] = mapped_column(db.String(32), nullable=True)
    product_id: Mapped[Optional[str]] = mapped_column(db.String(32), nullable=True)
    water_project_id: Mapped[Optional[str]] = mapped_column(db.String(32), nullable=True)
    sponsorship_project_id: Mapped[Optional[str]] = mapped_column(db.String(32), nullable=True)
    appeal_title: Mapped[str] = mapped_column(db.String(200), nullable=False)
    product_name: Mapped[Optional[str]] = mapped_column(db.String(200), nullable=True)
    frequency: Mapped[str] = mapped_column(db.String(10), nullable=False, default="ONE_OFF")
    donation_type: Mapped[str] = mapped_column(db.String(10), nullable=False, default="GENERAL")
    amount_pence: Mapped[int] = mapped_column(db.Integer, nullable=False)

    @property
    def display_title(self) -> str:
        if self.product_name:
            return f"{self.appeal_title} • {self.product_name}"
        return self.appeal_title

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.display_title,
            "appealId": self.appeal_id,
            "fundraiserId": self.fundraiser_id,
            "frequency": self.frequency,
            "donationType": self.donation_type,
            "amountPence": int(self.amount_pence),
        }
