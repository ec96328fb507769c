# alianah/services/emails.py
"""
Transactional email builders.

Login codes and password links are sent synchronously: the caller must know
when delivery failed. Receipts and notifications go through the background
executor and only log on failure.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from flask import current_app

from alianah.extensions import send_email, send_email_async

from .org_settings import get_organization_settings


def _ctx(**extra: Any) -> Dict[str, Any]:
    org = get_organization_settings()
    ctx: Dict[str, Any] = {"org": org}
    ctx.update(extra)
    return ctx


def _send_async(subject: str, to: str, template: str, context: Dict[str, Any]) -> None:
    send_email_async(
        current_app._get_current_object(),
        subject,
        [to],
        html_template=f"{template}.html",
        text_template=f"{template}.txt",
        context=context,
    )


def _send_now(subject: str, to: str, template: str, context: Dict[str, Any]) -> None:
    send_email(
        subject,
        [to],
        html_template=f"{template}.html",
        text_template=f"{template}.txt",
        context=context,
    )


# ----------------------------
# Auth
# ----------------------------
def send_admin_login_code(email: str, code: str) -> None:
    _send_now("Your admin login code", email, "admin_login_code", _ctx(code=code, minutes=10))


def send_fundraiser_login_code(email: str, code: str) -> None:
    _send_async("Your fundraiser login code", email, "fundraiser_login_code", _ctx(code=code, minutes=10))


def send_admin_invite(email: str, set_password_url: str, role: str) -> None:
    _send_now("You've been invited to the admin dashboard", email, "admin_invite", _ctx(url=set_password_url, role=role))


def send_admin_password_reset(email: str, reset_password_url: str) -> None:
    _send_now("Reset your admin password", email, "admin_password_reset", _ctx(url=reset_password_url))


# ----------------------------
# Donations
# ----------------------------
def _order_lines(order) -> List[Dict[str, Any]]:
    return [
        {"title": i.display_title, "amount_pence": int(i.amount_pence), "frequency": i.frequency}
        for i in order.items
    ]


def send_donation_confirmation(order, manage_subscription_url: Optional[str] = None) -> None:
    _send_async(
        f"Thank you for your donation ({order.order_number})",
        order.donor_email,
        "donation_confirmation",
        _ctx(
            donor_name=order.donor_name or "there",
            order_number=order.order_number,
            items=_order_lines(order),
            total_pence=int(order.total_pence),
            gift_aid=bool(order.gift_aid),
            manage_subscription_url=manage_subscription_url,
        ),
    )


def send_abandoned_checkout(order, resume_url: str) -> None:
    _send_now(
        "You left something in your basket",
        order.donor_email,
        "abandoned_checkout",
        _ctx(
            donor_name=order.donor_name or "there",
            order_number=order.order_number,
            items=_order_lines(order),
            total_pence=int(order.total_pence),
            resume_url=resume_url,
        ),
    )


def send_fundraiser_donation_notification(fundraiser, donor_name: str, amount_pence: int, fundraiser_url: str) -> None:
    _send_async(
        f"New donation to {fundraiser.title}",
        fundraiser.email,
        "fundraiser_donation",
        _ctx(
            fundraiser_name=fundraiser.fundraiser_name,
            fundraiser_title=fundraiser.title,
            donor_name=donor_name or "Anonymous",
            amount_pence=int(amount_pence),
            fundraiser_url=fundraiser_url,
        ),
    )


def send_campaign_donation_email(donation, kind: str) -> None:
    project = donation.water_project if kind == "water" else donation.sponsorship_project
    _send_async(
        "Thank you for your project donation",
        donation.donor.email,
        "campaign_donation",
        _ctx(
            donor_name=donation.donor.full_name or "there",
            kind=kind,
            project_type=project.project_type.replace("_", " ").title(),
            location=project.location,
            country=donation.country.country,
            amount_pence=int(donation.amount_pence),
            donation_number=donation.donation_number,
        ),
    )


def send_refund_confirmation(email: str, donor_name: str, amount_pence: int, order_number: Optional[str]) -> None:
    org = get_organization_settings()
    _send_async(
        "Your refund has been processed",
        email,
        "refund_confirmation",
        _ctx(
            donor_name=donor_name or "there",
            amount_pence=int(amount_pence),
            order_number=order_number,
            donate_url=org.website_url,
        ),
    )
