from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy import CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from alianah.extensions import db

from .mixins import IdMixin, TimestampMixin, iso


class Appeal(db.Model, IdMixin, TimestampMixin):
    __tablename__ = "appeals"

    title: Mapped[str] = mapped_column(db.String(200), nullable=False)
    slug: Mapped[str] = mapped_column(db.String(200), unique=True, index=True, nullable=False)
    summary: Mapped[Optional[str]] = mapped_column(db.Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=True, index=True)
    allow_fundraising: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=False)
    sort_order: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0, doc="Position in listings")
    target_pence: Mapped[Optional[int]] = mapped_column(db.Integer, nullable=True)

    products: Mapped[List["Product"]] = relationship(
        "Product", back_populates="appeal", cascade="all, delete-orphan", order_by="Product.sort_order"
    )

    def as_dict(self, include_products: bool = False) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "title": self.title,
            "slug": self.slug,
            "summary": self.summary,
            "isActive": bool(self.is_active),
            "allowFundraising": bool(self.allow_fundraising),
            "sortOrder": int(self.sort_order or 0),
            "targetPence": self.target_pence,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }
        if include_products:
            data["products"] = [p.as_dict() for p in self.products]
        return data


class Product(db.Model, IdMixin, TimestampMixin):
    __tablename__ = "products"
    __table_args__ = (CheckConstraint("amount_pence > 0", name="ck_products_amount_positive"),)

    appeal_id: Mapped[str] = mapped_column(
        db.ForeignKey("appeals.id", ondelete="CASCADE"), nullable=False, index=True
    )
    appeal: Mapped[Appeal] = relationship("Appeal", back_populates="products")
    name: Mapped[str] = mapped_column(db.String(200), nullable=False)
    amount_pence: Mapped[int] = mapped_column(db.Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=True)
    sort_order: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "appealId": self.appeal_id,
            "name": self.name,
            "amountPence": int(self.amount_pence),
            "isActive": bool(self.is_active),
            "sortOrder": int(self.sort_order or 0),
        }
