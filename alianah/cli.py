# alianah/cli.py
# flask create-admin / flask seed-demo / flask send-abandoned-reminders

import secrets
from datetime import timedelta

import click
from faker import Faker
from flask import current_app
from flask.cli import with_appcontext
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from alianah.extensions import db
from alianah.models import (
    ADMIN_ROLES,
    AdminUser,
    Appeal,
    Donation,
    Donor,
    Fundraiser,
    Product,
    utcnow,
)
from alianah.services import emails
from alianah.services.abandoned_checkout import send_abandoned_checkout_reminders

DEMO_APPEALS = [
    {"title": "Emergency Appeal", "slug": "emergency-appeal", "allow_fundraising": True, "products": []},
    {
        "title": "Orphan Support",
        "slug": "orphan-support",
        "allow_fundraising": True,
        "products": [("Feed an orphan for a month", 3000), ("School kit", 2500)],
    },
    {
        "title": "Food Packs",
        "slug": "food-packs",
        "allow_fundraising": False,
        "products": [("Family food pack", 5000), ("Ramadan hamper", 7500)],
    },
]


@click.command("create-admin")
@click.argument("email")
@click.option("--role", type=click.Choice(ADMIN_ROLES), default="ADMIN", show_default=True)
@click.option("--password", default=None, help="Set a password now instead of emailing an invite link.")
@click.option("--no-2fa", "no_2fa", is_flag=True, help="Disable the emailed login code for this user.")
@with_appcontext
def create_admin(email: str, role: str, password: str, no_2fa: bool) -> None:
    """Create an admin user (or change the role of an existing one)."""
    email = email.strip().lower()
    user = db.session.scalar(select(AdminUser).where(AdminUser.email == email))
    if user is None:
        user = AdminUser(email=email, role=role)
        db.session.add(user)
        click.echo(f"Creating {role} {email}")
    else:
        user.role = role
        click.echo(f"Updating {email} → {role}")

    user.two_factor_enabled = not no_2fa
    if password:
        user.set_password(password)
    else:
        user.invite_token = secrets.token_urlsafe(24)
        user.invite_expires_at = utcnow() + timedelta(days=7)
    db.session.commit()

    if not password:
        base = (current_app.config.get("PUBLIC_BASE_URL") or "").rstrip("/")
        url = f"{base}/login/set-password?token={user.invite_token}"
        try:
            emails.send_admin_invite(email, url, role)
            click.echo("Invite email sent.")
        except Exception as e:
            click.secho(f"Invite email failed ({e}); share this link manually:", fg="yellow")
        click.echo(url)


@click.command("seed-demo")
@click.option("--donations", default=25, show_default=True, help="Completed demo donations to create.")
@click.option("--seed", "seed_value", default=None, type=int, help="Faker seed for repeatable data.")
@with_appcontext
def seed_demo(donations: int, seed_value: int) -> None:
    """Seed appeals, products, a fundraiser and completed donations for local demos."""
    fake = Faker("en_GB")
    if seed_value is not None:
        Faker.seed(seed_value)

    try:
        appeals = []
        for i, data in enumerate(DEMO_APPEALS):
            appeal = db.session.scalar(select(Appeal).where(Appeal.slug == data["slug"]))
            if appeal is None:
                appeal = Appeal(
                    title=data["title"],
                    slug=data["slug"],
                    summary=fake.paragraph(nb_sentences=2),
                    is_active=True,
                    allow_fundraising=data["allow_fundraising"],
                    sort_order=i,
                )
                db.session.add(appeal)
                for j, (name, amount) in enumerate(data["products"]):
                    appeal.products.append(Product(name=name, amount_pence=amount, sort_order=j))
                click.echo(f"✨ Created appeal: {appeal.slug}")
            appeals.append(appeal)
        db.session.flush()

        fundraiser = db.session.scalar(select(Fundraiser).where(Fundraiser.slug == "demo-fundraiser"))
        if fundraiser is None:
            fundraiser = Fundraiser(
                appeal_id=appeals[0].id,
                title="Running for the Emergency Appeal",
                slug="demo-fundraiser",
                fundraiser_name=fake.name(),
                email=fake.email(),
                message=fake.sentence(),
                target_amount_pence=100_000,
            )
            db.session.add(fundraiser)
            db.session.flush()

        now = utcnow()
        for _ in range(donations):
            donor = Donor(email=fake.unique.email(), first_name=fake.first_name(), last_name=fake.last_name())
            db.session.add(donor)
            db.session.flush()
            appeal = fake.random_element(appeals)
            completed_at = now - timedelta(days=fake.random_int(0, 60), minutes=fake.random_int(0, 1440))
            db.session.add(
                Donation(
                    donor_id=donor.id,
                    appeal_id=appeal.id,
                    fundraiser_id=fundraiser.id if appeal.id == fundraiser.appeal_id else None,
                    amount_pence=fake.random_element((1000, 2500, 5000, 10000)),
                    donation_type=fake.random_element(("GENERAL", "SADAQAH", "ZAKAT", "LILLAH")),
                    status="COMPLETED",
                    gift_aid=fake.boolean(),
                    completed_at=completed_at,
                    transaction_id=f"pi_demo_{secrets.token_hex(8)}",
                )
            )
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        click.secho(f"❌ Seeding failed: {e}", fg="red", bold=True)
        raise SystemExit(1)

    click.secho(f"✅ Seeded {len(appeals)} appeals and {donations} donations", fg="bright_green")


@click.command("send-abandoned-reminders")
@with_appcontext
def send_abandoned_reminders() -> None:
    """Run the abandoned-checkout reminder job once."""
    result = send_abandoned_checkout_reminders()
    click.echo(", ".join(f"{k}={v}" for k, v in result.as_dict().items()))


def register_cli(app) -> None:
    for command in (create_admin, seed_demo, send_abandoned_reminders):
        app.cli.add_command(command)
