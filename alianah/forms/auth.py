"""
Login, one-time code and password forms for admin staff and fundraisers.
"""

from wtforms import StringField
from wtforms.validators import DataRequired, Email, Length, Regexp, ValidationError

from alianah.security.passwords import password_problems

from .base import JsonForm

_SIX_DIGITS = Regexp(r"^\d{6}$", message="Code must be 6 digits")


class LoginForm(JsonForm):
    email = StringField("Email", validators=[DataRequired(), Email(message="Invalid email")])
    password = StringField("Password", validators=[DataRequired(message="Password is required")])


class EmailForm(JsonForm):
    email = StringField("Email", validators=[DataRequired(), Email(message="Invalid email")])


class OtpVerifyForm(JsonForm):
    email = StringField("Email", validators=[DataRequired(), Email(message="Invalid email")])
    code = StringField("Code", validators=[DataRequired(), Length(min=6, max=6), _SIX_DIGITS])


class SetPasswordForm(JsonForm):
    token = StringField("Token", validators=[DataRequired(message="Token is required")])
    password = StringField("Password", validators=[DataRequired(message="Password is required")])

    def validate_password(self, field):
        problems = password_problems(field.data or "")
        if problems:
            raise ValidationError(problems[0])
