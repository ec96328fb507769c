from .admin import (
    AppealForm,
    AppealPatchForm,
    CampaignStatusForm,
    InviteAdminForm,
    OfflineIncomeForm,
    OrganizationSettingsForm,
    ProductForm,
    ProductPatchForm,
    RefundForm,
)
from .auth import EmailForm, LoginForm, OtpVerifyForm, SetPasswordForm
from .base import JsonForm, json_formdata
from .fundraiser import CashDonationForm, CashReviewForm, FundraiserCreateForm, parse_datetime

__all__ = [
    "AppealForm",
    "AppealPatchForm",
    "CampaignStatusForm",
    "CashDonationForm",
    "CashReviewForm",
    "EmailForm",
    "FundraiserCreateForm",
    "InviteAdminForm",
    "JsonForm",
    "LoginForm",
    "OfflineIncomeForm",
    "OrganizationSettingsForm",
    "OtpVerifyForm",
    "ProductForm",
    "ProductPatchForm",
    "RefundForm",
    "SetPasswordForm",
    "json_formdata",
    "parse_datetime",
]
