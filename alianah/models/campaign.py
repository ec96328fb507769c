from __future__ import annotations

# -----------------------------------------------------------------------------
# Campaign projects (water, sponsorship, qurbani) and their donations.
# Every campaign donation carries a 786-1######## donation_number and moves
# PENDING -> WAITING_TO_REVIEW (paid) -> ORDERED -> COMPLETE.
# -----------------------------------------------------------------------------
from typing import Any, Dict, Optional

from sqlalchemy import CheckConstraint
from sqlalchemy.orm import Mapped, declared_attr, mapped_column, relationship

from alianah.extensions import db

from .donor import Donor
from .mixins import IdMixin, TimestampMixin, iso

CAMPAIGN_STATUSES = ("PENDING", "WAITING_TO_REVIEW", "ORDERED", "COMPLETE")
WATER_PROJECT_TYPES = ("WATER_PUMP", "WATER_WELL", "WATER_TANK", "WUDHU_AREA")
SPONSORSHIP_PROJECT_TYPES = ("ORPHANS", "HIFZ", "FAMILIES")


class CampaignDonationMixin:
    """Columns shared by water, sponsorship and qurbani donations."""

    @declared_attr
    def donor_id(cls):
        return db.Column(db.String(32), db.ForeignKey("donors.id"), nullable=False, index=True)

    donation_number = db.Column(db.String(20), unique=True, index=True, nullable=False)
    order_number = db.Column(db.String(20), nullable=True, index=True)
    amount_pence = db.Column(db.Integer, nullable=False)
    donation_type = db.Column(db.String(10), nullable=False, default="GENERAL")
    payment_method = db.Column(db.String(30), nullable=False, default="WEBSITE_STRIPE")
    collected_via = db.Column(db.String(30), nullable=False, default="WEBSITE")
    status = db.Column(db.String(20), nullable=False, default="PENDING", index=True)
    transaction_id = db.Column(db.String(255), nullable=True)
    gift_aid = db.Column(db.Boolean, nullable=False, default=False)
    gift_aid_claimed = db.Column(db.Boolean, nullable=False, default=False)
    billing_address = db.Column(db.String(255), nullable=True)
    billing_postcode = db.Column(db.String(20), nullable=True)
    email_sent = db.Column(db.Boolean, nullable=False, default=False)
    notes = db.Column(db.Text, nullable=True)

    def _base_dict(self) -> Dict[str, Any]:
        donor = getattr(self, "donor", None)
        return {
            "id": self.id,
            "donationNumber": self.donation_number,
            "orderNumber": self.order_number,
            "donorId": self.donor_id,
            "donorName": donor.full_name if donor else None,
            "amountPence": int(self.amount_pence),
            "donationType": self.donation_type,
            "status": self.status,
            "transactionId": self.transaction_id,
            "giftAid": bool(self.gift_aid),
            "notes": self.notes,
            "createdAt": iso(self.created_at),
        }


# ----------------------------
# Water
# ----------------------------
class WaterProject(db.Model, IdMixin, TimestampMixin):
    __tablename__ = "water_projects"

    project_type: Mapped[str] = mapped_column(db.String(20), nullable=False, index=True)
    location: Mapped[Optional[str]] = mapped_column(db.String(200), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(db.Text, nullable=True)
    status: Mapped[Optional[str]] = mapped_column(db.String(20), nullable=True)
    is_active: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=True)


class WaterProjectCountry(db.Model, IdMixin, TimestampMixin):
    __tablename__ = "water_project_countries"
    __table_args__ = (CheckConstraint("price_pence > 0", name="ck_water_country_price_positive"),)

    project_type: Mapped[str] = mapped_column(db.String(20), nullable=False)
    country: Mapped[str] = mapped_column(db.String(80), nullable=False)
    price_pence: Mapped[int] = mapped_column(db.Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=True)


class WaterProjectDonation(db.Model, IdMixin, TimestampMixin, CampaignDonationMixin):
    __tablename__ = "water_project_donations"

    water_project_id: Mapped[str] = mapped_column(db.ForeignKey("water_projects.id"), nullable=False, index=True)
    water_project: Mapped[WaterProject] = relationship("WaterProject", lazy="joined")
    country_id: Mapped[str] = mapped_column(db.ForeignKey("water_project_countries.id"), nullable=False)
    country: Mapped[WaterProjectCountry] = relationship("WaterProjectCountry", lazy="joined")
    fundraiser_id: Mapped[Optional[str]] = mapped_column(
        db.ForeignKey("fundraisers.id", ondelete="SET NULL"), nullable=True, index=True
    )
    donor: Mapped[Donor] = relationship("Donor", lazy="joined")

    def as_dict(self) -> Dict[str, Any]:
        data = self._base_dict()
        data.update(
            {
                "kind": "water",
                "waterProjectId": self.water_project_id,
                "projectType": self.water_project.project_type if self.water_project else None,
                "country": self.country.country if self.country else None,
                "fundraiserId": self.fundraiser_id,
            }
        )
        return data


# ----------------------------
# Sponsorship
# ----------------------------
class SponsorshipProject(db.Model, IdMixin, TimestampMixin):
    __tablename__ = "sponsorship_projects"

    project_type: Mapped[str] = mapped_column(db.String(20), nullable=False, index=True)
    location: Mapped[Optional[str]] = mapped_column(db.String(200), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(db.Text, nullable=True)
    status: Mapped[Optional[str]] = mapped_column(db.String(20), nullable=True)
    is_active: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=True)


class SponsorshipProjectCountry(db.Model, IdMixin, TimestampMixin):
    __tablename__ = "sponsorship_project_countries"
    __table_args__ = (CheckConstraint("price_pence > 0", name="ck_sponsorship_country_price_positive"),)

    project_type: Mapped[str] = mapped_column(db.String(20), nullable=False)
    country: Mapped[str] = mapped_column(db.String(80), nullable=False)
    price_pence: Mapped[int] = mapped_column(db.Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=True)


class SponsorshipDonation(db.Model, IdMixin, TimestampMixin, CampaignDonationMixin):
    __tablename__ = "sponsorship_donations"

    sponsorship_project_id: Mapped[str] = mapped_column(
        db.ForeignKey("sponsorship_projects.id"), nullable=False, index=True
    )
    sponsorship_project: Mapped[SponsorshipProject] = relationship("SponsorshipProject", lazy="joined")
    country_id: Mapped[str] = mapped_column(db.ForeignKey("sponsorship_project_countries.id"), nullable=False)
    country: Mapped[SponsorshipProjectCountry] = relationship("SponsorshipProjectCountry", lazy="joined")
    donor: Mapped[Donor] = relationship("Donor", lazy="joined")

    def as_dict(self) -> Dict[str, Any]:
        data = self._base_dict()
        data.update(
            {
                "kind": "sponsorship",
                "sponsorshipProjectId": self.sponsorship_project_id,
                "projectType": self.sponsorship_project.project_type if self.sponsorship_project else None,
                "country": self.country.country if self.country else None,
            }
        )
        return data


# ----------------------------
# Qurbani
# ----------------------------
class QurbaniDonation(db.Model, IdMixin, TimestampMixin, CampaignDonationMixin):
    __tablename__ = "qurbani_donations"

    country: Mapped[str] = mapped_column(db.String(80), nullable=False)
    animal: Mapped[str] = mapped_column(db.String(40), nullable=False, doc="ONE_SEVENTH / SMALL / LARGE")
    names_on_behalf: Mapped[Optional[str]] = mapped_column(db.Text, nullable=True)
    donor: Mapped[Donor] = relationship("Donor", lazy="joined")

    def as_dict(self) -> Dict[str, Any]:
        data = self._base_dict()
        data.update({"kind": "qurbani", "country": self.country, "animal": self.animal})
        return data
