from __future__ import annotations

from typing import Any, Dict, Optional

from sqlalchemy.orm import Mapped, mapped_column

from alianah.extensions import db

from .mixins import IdMixin, TimestampMixin, iso


class Donor(db.Model, IdMixin, TimestampMixin):
    __tablename__ = "donors"

    email: Mapped[str] = mapped_column(db.String(255), unique=True, index=True, nullable=False)
    title: Mapped[Optional[str]] = mapped_column(db.String(20), nullable=True)
    first_name: Mapped[str] = mapped_column(db.String(120), nullable=False)
    last_name: Mapped[str] = mapped_column(db.String(120), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(db.String(40), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(db.String(255), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(db.String(120), nullable=True)
    postcode: Mapped[Optional[str]] = mapped_column(db.String(20), nullable=True)
    country: Mapped[Optional[str]] = mapped_column(db.String(80), nullable=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "title": self.title,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "phone": self.phone,
            "address": self.address,
            "city": self.city,
            "postcode": self.postcode,
            "country": self.country,
            "createdAt": iso(self.created_at),
        }
