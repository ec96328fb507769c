from __future__ import annotations

from alianah.extensions import db

from .admin import ADMIN_ROLES, AdminLoginOtp, AdminUser, AuditLog, OrganizationSettings
from .appeal import Appeal, Product
from .campaign import (
    CAMPAIGN_STATUSES,
    QurbaniDonation,
    SponsorshipDonation,
    SponsorshipProject,
    SponsorshipProjectCountry,
    WaterProject,
    WaterProjectCountry,
    WaterProjectDonation,
)
from .donation import Donation, RecurringDonation
from .donor import Donor
from .fundraiser import CASH_STATUSES, Fundraiser, FundraiserCashDonation, FundraiserLoginOtp
from .mixins import utcnow
from .offline_income import OfflineIncome
from .order import DONATION_TYPES, FREQUENCIES, Order, OrderItem
from .stripe_event import StripeEvent

__all__ = [
    "db",
    "utcnow",
    "ADMIN_ROLES",
    "CAMPAIGN_STATUSES",
    "CASH_STATUSES",
    "DONATION_TYPES",
    "FREQUENCIES",
    "AdminUser",
    "AdminLoginOtp",
    "AuditLog",
    "OrganizationSettings",
    "Appeal",
    "Product",
    "Donor",
    "Fundraiser",
    "FundraiserLoginOtp",
    "FundraiserCashDonation",
    "Order",
    "OrderItem",
    "Donation",
    "RecurringDonation",
    "WaterProject",
    "WaterProjectCountry",
    "WaterProjectDonation",
    "SponsorshipProject",
    "SponsorshipProjectCountry",
    "SponsorshipDonation",
    "QurbaniDonation",
    "OfflineIncome",
    "StripeEvent",
]
