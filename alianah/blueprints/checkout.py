# alianah/blueprints/checkout.py
"""
Checkout API (Stripe Checkout).

Mount: /api/checkout

  POST /                        basket + donor -> order, pending donations, Stripe session
  GET  /order/<order_number>    order status (success page, basket resume)

Payload (camelCase JSON):
  items[]: appealId, appealTitle, fundraiserId?, productId?, productName?,
           frequency ONE_OFF|MONTHLY|YEARLY, donationType, amountPence,
           waterProjectId? + waterProjectCountryId?, plaqueName?,
           sponsorshipProjectId? + sponsorshipCountryId?
  donor:   title?, firstName, lastName, email, phone?, address?, city?,
           postcode?, country?, billingAddress?, billingPostcode?,
           marketingEmail, marketingSMS, giftAid
  subtotalPence, feesPence, totalPence, coverFees

Nothing is marked paid here; the webhook finalises the order by its number.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import stripe
from email_validator import EmailNotValidError, validate_email
from flask import Blueprint, current_app
from sqlalchemy import select

from alianah.errors import PaymentsNotConfigured, ValidationFailed
from alianah.extensions import csrf, db
from alianah.models import (
    DONATION_TYPES,
    FREQUENCIES,
    Appeal,
    Donation,
    Donor,
    Fundraiser,
    Order,
    OrderItem,
    Product,
    RecurringDonation,
    SponsorshipDonation,
    SponsorshipProject,
    SponsorshipProjectCountry,
    WaterProject,
    WaterProjectCountry,
    WaterProjectDonation,
)
from alianah.services.donation_number import generate_donation_number

from .api_utils import _base_url, _json_error, _json_ok, _request_payload, _truthy

bp = Blueprint("checkout", __name__)
csrf.exempt(bp)

MAX_ITEMS = 50
STRIPE_INTERVALS = {"MONTHLY": "month", "YEARLY": "year"}


# ----------------------------
# Normalized request model
# ----------------------------
def _pence(v: Any) -> Optional[int]:
    if isinstance(v, bool) or v is None:
        return None
    if isinstance(v, float):
        if not v.is_integer():
            return None
        v = int(v)
    try:
        return int(str(v).strip())
    except ValueError:
        return None


def _str(v: Any, limit: int = 255) -> str:
    return str(v or "").strip()[:limit]


def _opt(v: Any, limit: int = 255) -> Optional[str]:
    s = _str(v, limit)
    return s or None


@dataclass(frozen=True)
class BasketItem:
    appeal_id: Optional[str]
    appeal_title: str
    fundraiser_id: Optional[str]
    product_id: Optional[str]
    product_name: Optional[str]
    frequency: str
    donation_type: str
    amount_pence: int
    water_project_id: Optional[str] = None
    water_project_country_id: Optional[str] = None
    plaque_name: Optional[str] = None
    sponsorship_project_id: Optional[str] = None
    sponsorship_country_id: Optional[str] = None

    @property
    def is_recurring(self) -> bool:
        return self.frequency != "ONE_OFF"

    @property
    def display_title(self) -> str:
        return f"{self.appeal_title} • {self.product_name}" if self.product_name else self.appeal_title


@dataclass(frozen=True)
class DonorDetails:
    title: Optional[str]
    first_name: str
    last_name: str
    email: str
    phone: Optional[str]
    address: Optional[str]
    city: Optional[str]
    postcode: Optional[str]
    country: Optional[str]
    billing_address: Optional[str]
    billing_postcode: Optional[str]
    marketing_email: bool
    marketing_sms: bool
    gift_aid: bool


@dataclass(frozen=True)
class CheckoutRequest:
    items: Tuple[BasketItem, ...]
    donor: DonorDetails
    subtotal_pence: int
    fees_pence: int
    total_pence: int
    cover_fees: bool

    @property
    def has_recurring(self) -> bool:
        return any(i.is_recurring for i in self.items)

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "CheckoutRequest":
        """Parse and validate; raises ``ValidationFailed`` with per-field issues."""
        issues: Dict[str, List[str]] = {}

        def _issue(key: str, message: str) -> None:
            issues.setdefault(key, []).append(message)

        raw_items = data.get("items")
        if not isinstance(raw_items, list) or not raw_items:
            _issue("items", "Your basket is empty")
            raw_items = []
        elif len(raw_items) > MAX_ITEMS:
            _issue("items", f"At most {MAX_ITEMS} items per checkout")

        items: List[BasketItem] = []
        for idx, raw in enumerate(raw_items[:MAX_ITEMS]):
            key = f"items.{idx}"
            if not isinstance(raw, dict):
                _issue(key, "Invalid item")
                continue
            amount = _pence(raw.get("amountPence"))
            if amount is None or amount < 1:
                _issue(f"{key}.amountPence", "Amount must be a positive whole number of pence")
            frequency = _str(raw.get("frequency") or "ONE_OFF", 10).upper()
            if frequency not in FREQUENCIES:
                _issue(f"{key}.frequency", "Invalid frequency")
            donation_type = _str(raw.get("donationType") or "GENERAL", 10).upper()
            if donation_type not in DONATION_TYPES:
                _issue(f"{key}.donationType", "Invalid donation type")
            title = _str(raw.get("appealTitle"), 200)
            if not title:
                _issue(f"{key}.appealTitle", "Title is required")
            water_id = _opt(raw.get("waterProjectId"), 32)
            sponsorship_id = _opt(raw.get("sponsorshipProjectId"), 32)
            if water_id and not _opt(raw.get("waterProjectCountryId")):
                _issue(f"{key}.waterProjectCountryId", "Country is required")
            if sponsorship_id and not _opt(raw.get("sponsorshipCountryId")):
                _issue(f"{key}.sponsorshipCountryId", "Country is required")
            if (water_id or sponsorship_id) and frequency != "ONE_OFF":
                _issue(f"{key}.frequency", "Project donations are one-off")
            if not (water_id or sponsorship_id or _opt(raw.get("appealId"))):
                _issue(f"{key}.appealId", "Appeal is required")
            items.append(
                BasketItem(
                    appeal_id=_opt(raw.get("appealId"), 32),
                    appeal_title=title,
                    fundraiser_id=_opt(raw.get("fundraiserId"), 32),
                    product_id=_opt(raw.get("productId"), 32),
                    product_name=_opt(raw.get("productName"), 200),
                    frequency=frequency,
                    donation_type=donation_type,
                    amount_pence=amount or 0,
                    water_project_id=water_id,
                    water_project_country_id=_opt(raw.get("waterProjectCountryId"), 32),
                    plaque_name=_opt(raw.get("plaqueName"), 200),
                    sponsorship_project_id=sponsorship_id,
                    sponsorship_country_id=_opt(raw.get("sponsorshipCountryId"), 32),
                )
            )

        d = data.get("donor") if isinstance(data.get("donor"), dict) else {}
        first, last = _str(d.get("firstName"), 120), _str(d.get("lastName"), 120)
        if not first:
            _issue("donor.firstName", "First name is required")
        if not last:
            _issue("donor.lastName", "Last name is required")
        email = _str(d.get("email")).lower()
        try:
            email = validate_email(email, check_deliverability=False).normalized.lower()
        except EmailNotValidError:
            _issue("donor.email", "Invalid email")
        gift_aid = _truthy(d.get("giftAid"))
        address = _opt(d.get("address"))
        postcode = _opt(d.get("postcode"), 20)
        billing_address = _opt(d.get("billingAddress")) or address
        billing_postcode = _opt(d.get("billingPostcode"), 20) or postcode
        if gift_aid and not (billing_address and billing_postcode):
            _issue("donor.address", "Address and postcode are required for Gift Aid")

        donor = DonorDetails(
            title=_opt(d.get("title"), 20),
            first_name=first,
            last_name=last,
            email=email,
            phone=_opt(d.get("phone"), 40),
            address=address,
            city=_opt(d.get("city"), 120),
            postcode=postcode,
            country=_opt(d.get("country"), 80),
            billing_address=billing_address,
            billing_postcode=billing_postcode,
            marketing_email=_truthy(d.get("marketingEmail")),
            marketing_sms=_truthy(d.get("marketingSMS")),
            gift_aid=gift_aid,
        )

        item_total = sum(i.amount_pence for i in items)
        subtotal = _pence(data.get("subtotalPence"))
        fees = _pence(data.get("feesPence")) or 0
        total = _pence(data.get("totalPence"))
        if subtotal is None:
            subtotal = item_total
        if subtotal != item_total:
            _issue("subtotalPence", "Subtotal does not match the basket")
        if fees < 0:
            _issue("feesPence", "Fees cannot be negative")
        if total is None:
            total = subtotal + fees
        if total != subtotal + fees:
            _issue("totalPence", "Total does not match subtotal plus fees")

        if issues:
            raise ValidationFailed(issues=issues)

        return cls(
            items=tuple(items),
            donor=donor,
            subtotal_pence=subtotal,
            fees_pence=fees,
            total_pence=total,
            cover_fees=_truthy(data.get("coverFees") or (d or {}).get("coverFees")),
        )


# ----------------------------
# Persistence
# ----------------------------
def _upsert_donor(details: DonorDetails) -> Donor:
    donor = db.session.scalar(select(Donor).where(Donor.email == details.email))
    if donor is None:
        donor = Donor(email=details.email)
        db.session.add(donor)
    donor.title = details.title
    donor.first_name = details.first_name
    donor.last_name = details.last_name
    for attr in ("phone", "address", "city", "postcode", "country"):
        value = getattr(details, attr)
        if value:
            setattr(donor, attr, value)
    db.session.flush()
    return donor


def _check_project(item: BasketItem, project_model, country_model, project_id, country_id, label: str, key: str):
    project = db.session.get(project_model, project_id)
    if project is None or not project.is_active:
        raise ValidationFailed(f"{label} project not found", {key: ["Project not found"]})
    country = db.session.get(country_model, country_id)
    if country is None or not country.is_active:
        raise ValidationFailed(f"{label} country not found", {key: ["Country not found"]})
    if country.project_type != project.project_type:
        raise ValidationFailed(f"{label} country does not match project", {key: ["Country does not match project"]})
    if item.amount_pence != country.price_pence:
        raise ValidationFailed(f"{label} amount does not match price", {key: ["Amount does not match price"]})
    return project, country


def _campaign_common(order: Order, donor: Donor, req: CheckoutRequest, item: BasketItem) -> Dict[str, Any]:
    return dict(
        donor_id=donor.id,
        donation_number=generate_donation_number(),
        order_number=order.order_number,
        amount_pence=item.amount_pence,
        donation_type=item.donation_type,
        status="PENDING",
        gift_aid=req.donor.gift_aid,
        billing_address=req.donor.billing_address,
        billing_postcode=req.donor.billing_postcode,
        notes=f"Plaque: {item.plaque_name}" if item.plaque_name else None,
    )


def _create_rows(order: Order, donor: Donor, req: CheckoutRequest) -> None:
    for idx, item in enumerate(req.items):
        key = f"items.{idx}"
        fundraiser_id = item.fundraiser_id
        if fundraiser_id and db.session.get(Fundraiser, fundraiser_id) is None:
            fundraiser_id = None

        if item.water_project_id:
            project, country = _check_project(
                item, WaterProject, WaterProjectCountry, item.water_project_id, item.water_project_country_id, "Water", key
            )
            db.session.add(
                WaterProjectDonation(
                    water_project_id=project.id,
                    country_id=country.id,
                    fundraiser_id=fundraiser_id,
                    **_campaign_common(order, donor, req, item),
                )
            )
            continue

        if item.sponsorship_project_id:
            project, country = _check_project(
                item,
                SponsorshipProject,
                SponsorshipProjectCountry,
                item.sponsorship_project_id,
                item.sponsorship_country_id,
                "Sponsorship",
                key,
            )
            db.session.add(
                SponsorshipDonation(
                    sponsorship_project_id=project.id,
                    country_id=country.id,
                    **_campaign_common(order, donor, req, item),
                )
            )
            continue

        appeal = db.session.get(Appeal, item.appeal_id)
        if appeal is None or not appeal.is_active:
            raise ValidationFailed("Appeal not available", {f"{key}.appealId": ["Appeal not found"]})
        product = db.session.get(Product, item.product_id) if item.product_id else None
        if product is not None and product.appeal_id != appeal.id:
            product = None

        db.session.add(
            Donation(
                donor_id=donor.id,
                appeal_id=appeal.id,
                fundraiser_id=fundraiser_id,
                product_id=product.id if product else None,
                amount_pence=item.amount_pence,
                donation_type=item.donation_type,
                frequency=item.frequency,
                status="PENDING",
                gift_aid=req.donor.gift_aid,
                billing_address=req.donor.billing_address,
                billing_postcode=req.donor.billing_postcode,
                order_number=order.order_number,
            )
        )
        if item.is_recurring:
            db.session.add(
                RecurringDonation(
                    donor_id=donor.id,
                    appeal_id=appeal.id,
                    order_number=order.order_number,
                    amount_pence=item.amount_pence,
                    donation_type=item.donation_type,
                    frequency=item.frequency,
                    status="PENDING",
                )
            )


def _create_order(req: CheckoutRequest) -> Order:
    donor = _upsert_donor(req.donor)
    order = Order(
        order_number=generate_donation_number(),
        status="PENDING",
        subtotal_pence=req.subtotal_pence,
        fees_pence=req.fees_pence,
        total_pence=req.total_pence,
        cover_fees=req.cover_fees,
        gift_aid=req.donor.gift_aid,
        marketing_email=req.donor.marketing_email,
        marketing_sms=req.donor.marketing_sms,
        donor_first_name=req.donor.first_name,
        donor_last_name=req.donor.last_name,
        donor_email=req.donor.email,
        donor_phone=req.donor.phone,
        donor_address=req.donor.address,
        donor_city=req.donor.city,
        donor_postcode=req.donor.postcode,
        donor_country=req.donor.country,
    )
    for item in req.items:
        order.items.append(
            OrderItem(
                appeal_id=item.appeal_id,
                fundraiser_id=item.fundraiser_id,
                product_id=item.product_id,
                water_project_id=item.water_project_id,
                sponsorship_project_id=item.sponsorship_project_id,
                appeal_title=item.appeal_title,
                product_name=item.product_name,
                frequency=item.frequency,
                donation_type=item.donation_type,
                amount_pence=item.amount_pence,
            )
        )
    db.session.add(order)
    db.session.flush()
    _create_rows(order, donor, req)
    return order


# ----------------------------
# Stripe
# ----------------------------
def _line_items(req: CheckoutRequest, currency: str) -> List[Dict[str, Any]]:
    lines: List[Dict[str, Any]] = []
    for item in req.items:
        price_data: Dict[str, Any] = {
            "currency": currency,
            "unit_amount": item.amount_pence,
            "product_data": {"name": item.display_title[:250]},
        }
        if item.is_recurring:
            price_data["recurring"] = {"interval": STRIPE_INTERVALS[item.frequency]}
        lines.append({"price_data": price_data, "quantity": 1})
    if req.fees_pence > 0:
        lines.append(
            {
                "price_data": {
                    "currency": currency,
                    "unit_amount": req.fees_pence,
                    "product_data": {"name": "Transaction fees"},
                },
                "quantity": 1,
            }
        )
    return lines


def _create_checkout_session(order: Order, req: CheckoutRequest):
    base = _base_url()
    currency = (current_app.config.get("CURRENCY") or "gbp").lower()
    metadata = {"orderNumber": order.order_number}
    params: Dict[str, Any] = {
        "mode": "subscription" if req.has_recurring else "payment",
        "line_items": _line_items(req, currency),
        "customer_email": order.donor_email,
        "client_reference_id": order.order_number,
        "metadata": metadata,
        "success_url": f"{base}/checkout/success?order={order.order_number}",
        "cancel_url": f"{base}/checkout?resume={order.order_number}",
    }
    if req.has_recurring:
        params["subscription_data"] = {"metadata": metadata}
    else:
        params["payment_intent_data"] = {"metadata": metadata}
    return stripe.checkout.Session.create(**params)


# ----------------------------
# Routes
# ----------------------------
@bp.post("")
def create_checkout():
    if not current_app.config.get("STRIPE_SECRET_KEY"):
        raise PaymentsNotConfigured("Payments are not configured")

    req = CheckoutRequest.from_payload(_request_payload())

    try:
        order = _create_order(req)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    try:
        session = _create_checkout_session(order, req)
    except stripe.StripeError as e:
        current_app.logger.exception("checkout: stripe session failed for %s", order.order_number)
        return _json_error("Payment provider error. Please try again.", 502, {"detail": getattr(e, "user_message", None)})

    order.stripe_session_id = session.id
    db.session.commit()
    current_app.logger.info("checkout: order %s created (%s)", order.order_number, session.id)

    return _json_ok(
        {"orderNumber": order.order_number, "checkoutUrl": session.url, "sessionId": session.id},
        201,
    )


@bp.get("/order/<order_number>")
def order_status(order_number: str):
    order = db.session.scalar(select(Order).where(Order.order_number == order_number))
    if order is None:
        return _json_error("Order not found", 404)
    return _json_ok({"order": order.as_dict()})
