from .donation_number import generate_donation_number
from .fundraiser_totals import FundraiserTotals, get_fundraiser_total_raised_and_count
from .org_settings import get_organization_settings

__all__ = [
    "FundraiserTotals",
    "generate_donation_number",
    "get_fundraiser_total_raised_and_count",
    "get_organization_settings",
]
