from datetime import datetime, timezone

from wtforms import IntegerField, StringField
from wtforms.validators import AnyOf, DataRequired, Email, InputRequired, Length, NumberRange, Optional, ValidationError

from .base import JsonForm


def parse_datetime(value):
    """ISO-8601 string -> naive UTC datetime, or None when unparseable."""
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


class FundraiserCreateForm(JsonForm):
    appealId = StringField("Appeal", validators=[DataRequired(message="Appeal is required")])
    title = StringField("Title", validators=[DataRequired(message="Title is required"), Length(max=200)])
    fundraiserName = StringField("Your name", validators=[DataRequired(message="Name is required"), Length(max=200)])
    email = StringField("Email", validators=[DataRequired(), Email(message="Invalid email")])
    message = StringField("Message", validators=[Optional(), Length(max=5000)])
    targetAmountPence = IntegerField(
        "Target",
        validators=[InputRequired(message="Target is required"), NumberRange(min=1, message="Target must be positive")],
    )


class CashDonationForm(JsonForm):
    amountPence = IntegerField(
        "Amount",
        validators=[InputRequired(message="Amount is required"), NumberRange(min=1, message="Amount must be positive")],
    )
    donorName = StringField("Donor name", validators=[Optional(), Length(max=200)])
    notes = StringField("Notes", validators=[Optional(), Length(max=1000)])
    receivedAt = StringField("Received at", validators=[Optional()])

    def validate_receivedAt(self, field):
        if field.data and parse_datetime(field.data) is None:
            raise ValidationError("Invalid date")


class CashReviewForm(JsonForm):
    status = StringField(
        "Status",
        validators=[DataRequired(), AnyOf(("APPROVED", "REJECTED"), message="Status must be APPROVED or REJECTED")],
    )
