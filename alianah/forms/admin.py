"""
Admin-side forms: catalogue, refunds, offline income, staff and settings.

PATCH handlers validate the whole form but only apply keys present in the
request body (``JsonForm.provided``).
"""

from wtforms import BooleanField, IntegerField, StringField
from wtforms.validators import (
    URL,
    AnyOf,
    DataRequired,
    Email,
    InputRequired,
    Length,
    NumberRange,
    Optional,
    Regexp,
    ValidationError,
)

from alianah.models import ADMIN_ROLES, CAMPAIGN_STATUSES, DONATION_TYPES

from .base import JsonForm
from .fundraiser import parse_datetime

_SLUG = Regexp(r"^[a-z0-9]+(?:-[a-z0-9]+)*$", message="Slug may only contain lowercase letters, numbers and dashes")


class AppealForm(JsonForm):
    title = StringField("Title", validators=[DataRequired(message="Title is required"), Length(max=200)])
    slug = StringField("Slug", validators=[Optional(), Length(max=200), _SLUG])
    summary = StringField("Summary", validators=[Optional(), Length(max=5000)])
    isActive = BooleanField("Active")
    allowFundraising = BooleanField("Allow fundraising")
    sortOrder = IntegerField("Sort order", validators=[Optional()])
    targetPence = IntegerField("Target", validators=[Optional(), NumberRange(min=1)])


class AppealPatchForm(AppealForm):
    title = StringField("Title", validators=[Optional(), Length(min=1, max=200)])


class ProductForm(JsonForm):
    appealId = StringField("Appeal", validators=[DataRequired(message="Appeal is required")])
    name = StringField("Name", validators=[DataRequired(message="Name is required"), Length(max=200)])
    amountPence = IntegerField(
        "Amount", validators=[InputRequired(), NumberRange(min=1, message="Amount must be positive")]
    )
    isActive = BooleanField("Active")
    sortOrder = IntegerField("Sort order", validators=[Optional()])


class ProductPatchForm(JsonForm):
    name = StringField("Name", validators=[Optional(), Length(min=1, max=200)])
    amountPence = IntegerField("Amount", validators=[Optional(), NumberRange(min=1, message="Amount must be positive")])
    isActive = BooleanField("Active")
    sortOrder = IntegerField("Sort order", validators=[Optional()])


class RefundForm(JsonForm):
    type = StringField("Type", default="full", validators=[Optional(), AnyOf(("full", "partial"))])
    amountPence = IntegerField("Amount", validators=[Optional(), NumberRange(min=1, message="Amount must be positive")])
    reason = StringField("Reason", validators=[DataRequired(message="Reason is required"), Length(min=2, max=500)])

    def validate_amountPence(self, field):
        if (self.type.data or "full") == "partial" and not field.data:
            raise ValidationError("Amount is required for a partial refund")


class OfflineIncomeForm(JsonForm):
    amountPence = IntegerField(
        "Amount", validators=[InputRequired(), NumberRange(min=1, message="Amount must be positive")]
    )
    donationType = StringField("Donation type", default="GENERAL", validators=[Optional(), AnyOf(DONATION_TYPES)])
    source = StringField("Source", validators=[DataRequired(message="Source is required"), Length(max=60)])
    receivedAt = StringField("Received at", validators=[DataRequired(message="Received date is required")])
    notes = StringField("Notes", validators=[Optional(), Length(max=1000)])
    appealId = StringField("Appeal", validators=[Optional()])

    def validate_receivedAt(self, field):
        if parse_datetime(field.data) is None:
            raise ValidationError("Invalid date")


class CampaignStatusForm(JsonForm):
    status = StringField("Status", validators=[DataRequired(), AnyOf(CAMPAIGN_STATUSES)])


class InviteAdminForm(JsonForm):
    email = StringField("Email", validators=[DataRequired(), Email(message="Invalid email")])
    role = StringField("Role", default="STAFF", validators=[Optional(), AnyOf(ADMIN_ROLES)])
    firstName = StringField("First name", validators=[Optional(), Length(max=120)])
    lastName = StringField("Last name", validators=[Optional(), Length(max=120)])


class OrganizationSettingsForm(JsonForm):
    charityName = StringField("Charity name", validators=[DataRequired(), Length(max=200)])
    supportEmail = StringField("Support email", validators=[DataRequired(), Email(message="Invalid email")])
    websiteUrl = StringField("Website", validators=[DataRequired(), URL(require_tld=False)])
    charityNumber = StringField("Charity number", validators=[Optional(), Length(max=40)])
