# alianah/blueprints/portal.py
"""
Subscription self-service.

Mount: /api/stripe

  POST /portal-session   {token} from the emailed manage link -> Stripe billing portal URL
"""

from __future__ import annotations

import stripe
from flask import Blueprint, current_app
from sqlalchemy import select

from alianah.errors import PaymentsNotConfigured
from alianah.extensions import csrf, db
from alianah.models import Donor, RecurringDonation
from alianah.security.tokens import verify_portal_token

from .api_utils import _base_url, _json_error, _json_ok, _request_payload

bp = Blueprint("portal", __name__)
csrf.exempt(bp)

MIN_TOKEN_LENGTH = 10


def _latest_subscription_id(email: str):
    return db.session.scalar(
        select(RecurringDonation.subscription_id)
        .join(Donor, RecurringDonation.donor_id == Donor.id)
        .where(Donor.email == email, RecurringDonation.subscription_id.is_not(None))
        .order_by(RecurringDonation.updated_at.desc())
        .limit(1)
    )


@bp.post("/portal-session")
def portal_session():
    if not current_app.config.get("STRIPE_SECRET_KEY"):
        raise PaymentsNotConfigured("Payments are not configured")

    token = str(_request_payload().get("token") or "").strip()
    if len(token) < MIN_TOKEN_LENGTH:
        return _json_error("Invalid request", 400)

    verified = verify_portal_token(token)
    if verified is None:
        return _json_error("Invalid or expired link", 401)
    email = verified["email"].strip().lower()

    subscription_id = _latest_subscription_id(email)
    if not subscription_id:
        return _json_error("No active subscription found for this email", 404)

    try:
        subscription = stripe.Subscription.retrieve(subscription_id)
        customer = subscription.customer
        customer_id = customer if isinstance(customer, str) else getattr(customer, "id", None)
        if not customer_id:
            return _json_error("Could not find customer for this subscription", 500)

        session = stripe.billing_portal.Session.create(
            customer=customer_id,
            return_url=f"{_base_url()}/manage-subscription?done=1",
        )
    except stripe.StripeError:
        current_app.logger.exception("portal: stripe request failed")
        return _json_error("Could not open the billing portal. Please try again.", 502)

    return _json_ok({"url": session.url})
