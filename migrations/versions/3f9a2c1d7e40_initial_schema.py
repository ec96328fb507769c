"""initial schema

Revision ID: 3f9a2c1d7e40
Revises:
Create Date: 2026-03-02 10:14:52.318406
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "3f9a2c1d7e40"
down_revision = None
branch_labels = None
depends_on = None


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------
def _jsonb(sa_json):
    # Portable: JSON on SQLite, JSONB on Postgres
    return sa_json.with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql")


def _id():
    return sa.Column("id", sa.String(length=32), primary_key=True, nullable=False)


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def _indexes(table, *indexes):
    """Each index: a column name, or (column name, unique)."""
    with op.batch_alter_table(table) as batch_op:
        batch_op.create_index(batch_op.f(f"ix_{table}_created_at"), ["created_at"], unique=False)
        for item in indexes:
            col, unique = item if isinstance(item, tuple) else (item, False)
            batch_op.create_index(batch_op.f(f"ix_{table}_{col}"), [col], unique=unique)


def _drop(table, *cols):
    with op.batch_alter_table(table) as batch_op:
        for col in ("created_at",) + cols:
            batch_op.drop_index(batch_op.f(f"ix_{table}_{col}"))
    op.drop_table(table)


# Columns shared by water, sponsorship and qurbani donations
def _campaign_donation_columns():
    return [
        sa.Column("donor_id", sa.String(length=32), sa.ForeignKey("donors.id"), nullable=False),
        sa.Column("donation_number", sa.String(length=20), nullable=False),
        sa.Column("order_number", sa.String(length=20), nullable=True),
        sa.Column("amount_pence", sa.Integer(), nullable=False),
        sa.Column("donation_type", sa.String(length=10), nullable=False),
        sa.Column("payment_method", sa.String(length=30), nullable=False),
        sa.Column("collected_via", sa.String(length=30), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("transaction_id", sa.String(length=255), nullable=True),
        sa.Column("gift_aid", sa.Boolean(), nullable=False),
        sa.Column("gift_aid_claimed", sa.Boolean(), nullable=False),
        sa.Column("billing_address", sa.String(length=255), nullable=True),
        sa.Column("billing_postcode", sa.String(length=20), nullable=True),
        sa.Column("email_sent", sa.Boolean(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
    ]


CAMPAIGN_INDEXES = ("donor_id", ("donation_number", True), "order_number", "status")


def upgrade():
    # --- admin_users ---
    op.create_table(
        "admin_users",
        _id(),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=True),
        sa.Column("role", sa.String(length=16), nullable=False),
        sa.Column("first_name", sa.String(length=120), nullable=True),
        sa.Column("last_name", sa.String(length=120), nullable=True),
        sa.Column("two_factor_enabled", sa.Boolean(), nullable=False),
        sa.Column("invite_token", sa.String(length=64), nullable=True, unique=True),
        sa.Column("invite_expires_at", sa.DateTime(), nullable=True),
        sa.Column("password_reset_token", sa.String(length=64), nullable=True, unique=True),
        sa.Column("password_reset_expires_at", sa.DateTime(), nullable=True),
        sa.Column("last_login_at", sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("role IN ('ADMIN', 'STAFF', 'VIEWER')", name="ck_admin_users_role"),
    )
    _indexes("admin_users", ("email", True))

    # --- admin_login_otps ---
    op.create_table(
        "admin_login_otps",
        _id(),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("code", sa.String(length=6), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("used", sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    _indexes("admin_login_otps")
    op.create_index("ix_admin_login_otps_email_used", "admin_login_otps", ["email", "used"])

    # --- audit_logs ---
    op.create_table(
        "audit_logs",
        _id(),
        sa.Column(
            "admin_user_id",
            sa.String(length=32),
            sa.ForeignKey("admin_users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("action", sa.String(length=60), nullable=False),
        sa.Column("entity_type", sa.String(length=60), nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=True),
        sa.Column("details", _jsonb(sa.JSON()), nullable=True),
        *_timestamps(),
    )
    _indexes("audit_logs", "admin_user_id", "action")
    op.create_index("ix_audit_logs_entity", "audit_logs", ["entity_type", "entity_id"])

    # --- organization_settings ---
    op.create_table(
        "organization_settings",
        _id(),
        sa.Column("charity_name", sa.String(length=200), nullable=False),
        sa.Column("support_email", sa.String(length=255), nullable=False),
        sa.Column("website_url", sa.String(length=255), nullable=False),
        sa.Column("charity_number", sa.String(length=40), nullable=True),
        *_timestamps(),
    )
    _indexes("organization_settings")

    # --- donors ---
    op.create_table(
        "donors",
        _id(),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("title", sa.String(length=20), nullable=True),
        sa.Column("first_name", sa.String(length=120), nullable=False),
        sa.Column("last_name", sa.String(length=120), nullable=False),
        sa.Column("phone", sa.String(length=40), nullable=True),
        sa.Column("address", sa.String(length=255), nullable=True),
        sa.Column("city", sa.String(length=120), nullable=True),
        sa.Column("postcode", sa.String(length=20), nullable=True),
        sa.Column("country", sa.String(length=80), nullable=True),
        *_timestamps(),
    )
    _indexes("donors", ("email", True))

    # --- appeals / products ---
    op.create_table(
        "appeals",
        _id(),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("slug", sa.String(length=200), nullable=False),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("allow_fundraising", sa.Boolean(), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        sa.Column("target_pence", sa.Integer(), nullable=True),
        *_timestamps(),
    )
    _indexes("appeals", ("slug", True), "is_active")

    op.create_table(
        "products",
        _id(),
        sa.Column(
            "appeal_id",
            sa.String(length=32),
            sa.ForeignKey("appeals.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("amount_pence", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("amount_pence > 0", name="ck_products_amount_positive"),
    )
    _indexes("products", "appeal_id")

    # --- water / sponsorship catalogues ---
    for prefix in ("water", "sponsorship"):
        op.create_table(
            f"{prefix}_projects",
            _id(),
            sa.Column("project_type", sa.String(length=20), nullable=False),
            sa.Column("location", sa.String(length=200), nullable=True),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False),
            *_timestamps(),
        )
        _indexes(f"{prefix}_projects", "project_type")

        op.create_table(
            f"{prefix}_project_countries",
            _id(),
            sa.Column("project_type", sa.String(length=20), nullable=False),
            sa.Column("country", sa.String(length=80), nullable=False),
            sa.Column("price_pence", sa.Integer(), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=False),
            *_timestamps(),
            sa.CheckConstraint("price_pence > 0", name=f"ck_{prefix}_country_price_positive"),
        )
        _indexes(f"{prefix}_project_countries")

    # --- fundraisers ---
    op.create_table(
        "fundraisers",
        _id(),
        sa.Column("appeal_id", sa.String(length=32), sa.ForeignKey("appeals.id"), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("slug", sa.String(length=40), nullable=False),
        sa.Column("fundraiser_name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("target_amount_pence", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column(
            "water_project_id",
            sa.String(length=32),
            sa.ForeignKey("water_projects.id", ondelete="SET NULL"),
            nullable=True,
        ),
        *_timestamps(),
    )
    _indexes("fundraisers", "appeal_id", ("slug", True), "email")

    op.create_table(
        "fundraiser_login_otps",
        _id(),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("code", sa.String(length=6), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("used", sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    _indexes("fundraiser_login_otps")
    op.create_index("ix_fundraiser_login_otps_email_used", "fundraiser_login_otps", ["email", "used"])

    op.create_table(
        "fundraiser_cash_donations",
        _id(),
        sa.Column(
            "fundraiser_id",
            sa.String(length=32),
            sa.ForeignKey("fundraisers.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("amount_pence", sa.Integer(), nullable=False),
        sa.Column("donor_name", sa.String(length=200), nullable=True),
        sa.Column("notes", sa.String(length=1000), nullable=True),
        sa.Column("received_at", sa.DateTime(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("reviewed_at", sa.DateTime(), nullable=True),
        sa.Column(
            "reviewed_by_id",
            sa.String(length=32),
            sa.ForeignKey("admin_users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        *_timestamps(),
        sa.CheckConstraint("amount_pence > 0", name="ck_cash_amount_positive"),
    )
    _indexes("fundraiser_cash_donations")
    op.create_index("ix_cash_fundraiser_status", "fundraiser_cash_donations", ["fundraiser_id", "status"])

    # --- orders ---
    op.create_table(
        "orders",
        _id(),
        sa.Column("order_number", sa.String(length=20), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("subtotal_pence", sa.Integer(), nullable=False),
        sa.Column("fees_pence", sa.Integer(), nullable=False),
        sa.Column("total_pence", sa.Integer(), nullable=False),
        sa.Column("cover_fees", sa.Boolean(), nullable=False),
        sa.Column("gift_aid", sa.Boolean(), nullable=False),
        sa.Column("marketing_email", sa.Boolean(), nullable=False),
        sa.Column("marketing_sms", sa.Boolean(), nullable=False),
        sa.Column("donor_first_name", sa.String(length=120), nullable=False),
        sa.Column("donor_last_name", sa.String(length=120), nullable=False),
        sa.Column("donor_email", sa.String(length=255), nullable=False),
        sa.Column("donor_phone", sa.String(length=40), nullable=True),
        sa.Column("donor_address", sa.String(length=255), nullable=True),
        sa.Column("donor_city", sa.String(length=120), nullable=True),
        sa.Column("donor_postcode", sa.String(length=20), nullable=True),
        sa.Column("donor_country", sa.String(length=80), nullable=True),
        sa.Column("stripe_session_id", sa.String(length=255), nullable=True),
        sa.Column("abandoned_email2_sent_at", sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("total_pence >= 0", name="ck_orders_total_nonneg"),
    )
    _indexes("orders", ("order_number", True), "donor_email", "stripe_session_id")
    op.create_index("ix_orders_status_created", "orders", ["status", "created_at"])

    op.create_table(
        "order_items",
        _id(),
        sa.Column(
            "order_id",
            sa.String(length=32),
            sa.ForeignKey("orders.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("appeal_id", sa.String(length=32), nullable=True),
        sa.Column("fundraiser_id", sa.String(length=32), nullable=True),
        sa.Column("product_id", sa.String(length=32), nullable=True),
        sa.Column("water_project_id", sa.String(length=32), nullable=True),
        sa.Column("sponsorship_project_id", sa.String(length=32), nullable=True),
        sa.Column("appeal_title", sa.String(length=200), nullable=False),
        sa.Column("product_name", sa.String(length=200), nullable=True),
        sa.Column("frequency", sa.String(length=10), nullable=False),
        sa.Column("donation_type", sa.String(length=10), nullable=False),
        sa.Column("amount_pence", sa.Integer(), nullable=False),
        *_timestamps(),
    )
    _indexes("order_items", "order_id")

    # --- donations / recurring_donations ---
    op.create_table(
        "donations",
        _id(),
        sa.Column("donor_id", sa.String(length=32), sa.ForeignKey("donors.id"), nullable=False),
        sa.Column("appeal_id", sa.String(length=32), sa.ForeignKey("appeals.id"), nullable=True),
        sa.Column(
            "fundraiser_id",
            sa.String(length=32),
            sa.ForeignKey("fundraisers.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "product_id",
            sa.String(length=32),
            sa.ForeignKey("products.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("amount_pence", sa.Integer(), nullable=False),
        sa.Column("donation_type", sa.String(length=10), nullable=False),
        sa.Column("frequency", sa.String(length=10), nullable=False),
        sa.Column("payment_method", sa.String(length=30), nullable=False),
        sa.Column("collected_via", sa.String(length=30), nullable=False),
        sa.Column("status", sa.String(length=12), nullable=False),
        sa.Column("gift_aid", sa.Boolean(), nullable=False),
        sa.Column("gift_aid_claimed", sa.Boolean(), nullable=False),
        sa.Column("billing_address", sa.String(length=255), nullable=True),
        sa.Column("billing_postcode", sa.String(length=20), nullable=True),
        sa.Column("order_number", sa.String(length=20), nullable=True),
        sa.Column("transaction_id", sa.String(length=255), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("refunded_pence", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.CheckConstraint("amount_pence > 0", name="ck_donations_amount_positive"),
    )
    _indexes("donations", "donor_id", "appeal_id", "status", "transaction_id")
    op.create_index("ix_donations_fundraiser_status", "donations", ["fundraiser_id", "status"])
    op.create_index("ix_donations_order_status", "donations", ["order_number", "status"])

    op.create_table(
        "recurring_donations",
        _id(),
        sa.Column("donor_id", sa.String(length=32), sa.ForeignKey("donors.id"), nullable=False),
        sa.Column("appeal_id", sa.String(length=32), sa.ForeignKey("appeals.id"), nullable=True),
        sa.Column("order_number", sa.String(length=20), nullable=True),
        sa.Column("amount_pence", sa.Integer(), nullable=False),
        sa.Column("donation_type", sa.String(length=10), nullable=False),
        sa.Column("frequency", sa.String(length=10), nullable=False),
        sa.Column("payment_method", sa.String(length=30), nullable=False),
        sa.Column("status", sa.String(length=12), nullable=False),
        sa.Column("subscription_id", sa.String(length=255), nullable=True),
        sa.Column("last_payment_date", sa.DateTime(), nullable=True),
        sa.Column("next_payment_date", sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    _indexes("recurring_donations", "donor_id", "order_number", "status", "subscription_id")

    # --- campaign donations ---
    op.create_table(
        "water_project_donations",
        _id(),
        *_campaign_donation_columns(),
        sa.Column(
            "water_project_id", sa.String(length=32), sa.ForeignKey("water_projects.id"), nullable=False
        ),
        sa.Column(
            "country_id", sa.String(length=32), sa.ForeignKey("water_project_countries.id"), nullable=False
        ),
        sa.Column(
            "fundraiser_id",
            sa.String(length=32),
            sa.ForeignKey("fundraisers.id", ondelete="SET NULL"),
            nullable=True,
        ),
        *_timestamps(),
    )
    _indexes("water_project_donations", *CAMPAIGN_INDEXES, "water_project_id", "fundraiser_id")

    op.create_table(
        "sponsorship_donations",
        _id(),
        *_campaign_donation_columns(),
        sa.Column(
            "sponsorship_project_id",
            sa.String(length=32),
            sa.ForeignKey("sponsorship_projects.id"),
            nullable=False,
        ),
        sa.Column(
            "country_id",
            sa.String(length=32),
            sa.ForeignKey("sponsorship_project_countries.id"),
            nullable=False,
        ),
        *_timestamps(),
    )
    _indexes("sponsorship_donations", *CAMPAIGN_INDEXES, "sponsorship_project_id")

    op.create_table(
        "qurbani_donations",
        _id(),
        *_campaign_donation_columns(),
        sa.Column("country", sa.String(length=80), nullable=False),
        sa.Column("animal", sa.String(length=40), nullable=False),
        sa.Column("names_on_behalf", sa.Text(), nullable=True),
        *_timestamps(),
    )
    _indexes("qurbani_donations", *CAMPAIGN_INDEXES)

    # --- offline_income ---
    op.create_table(
        "offline_income",
        _id(),
        sa.Column("donation_number", sa.String(length=20), nullable=False),
        sa.Column("amount_pence", sa.Integer(), nullable=False),
        sa.Column("donation_type", sa.String(length=10), nullable=False),
        sa.Column("source", sa.String(length=20), nullable=False),
        sa.Column("received_at", sa.DateTime(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column(
            "appeal_id",
            sa.String(length=32),
            sa.ForeignKey("appeals.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "added_by_id",
            sa.String(length=32),
            sa.ForeignKey("admin_users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        *_timestamps(),
        sa.CheckConstraint("amount_pence > 0", name="ck_offline_income_amount_positive"),
    )
    _indexes("offline_income", ("donation_number", True))

    # --- stripe_events ---
    op.create_table(
        "stripe_events",
        _id(),
        sa.Column("event_id", sa.String(length=120), nullable=False),
        sa.Column("type", sa.String(length=120), nullable=False),
        sa.Column("livemode", sa.Boolean(), nullable=False),
        sa.Column("object_id", sa.String(length=120), nullable=True),
        *_timestamps(),
    )
    _indexes("stripe_events", ("event_id", True), "type", "object_id")
    op.create_index("ix_stripe_events_type_created", "stripe_events", ["type", "created_at"])


def downgrade():
    op.drop_index("ix_stripe_events_type_created", table_name="stripe_events")
    _drop("stripe_events", "event_id", "type", "object_id")

    _drop("offline_income", "donation_number")

    campaign_cols = ("donor_id", "donation_number", "order_number", "status")
    _drop("qurbani_donations", *campaign_cols)
    _drop("sponsorship_donations", *campaign_cols, "sponsorship_project_id")
    _drop("water_project_donations", *campaign_cols, "water_project_id", "fundraiser_id")

    _drop("recurring_donations", "donor_id", "order_number", "status", "subscription_id")

    op.drop_index("ix_donations_order_status", table_name="donations")
    op.drop_index("ix_donations_fundraiser_status", table_name="donations")
    _drop("donations", "donor_id", "appeal_id", "status", "transaction_id")

    _drop("order_items", "order_id")
    op.drop_index("ix_orders_status_created", table_name="orders")
    _drop("orders", "order_number", "donor_email", "stripe_session_id")

    op.drop_index("ix_cash_fundraiser_status", table_name="fundraiser_cash_donations")
    _drop("fundraiser_cash_donations")
    op.drop_index("ix_fundraiser_login_otps_email_used", table_name="fundraiser_login_otps")
    _drop("fundraiser_login_otps")
    _drop("fundraisers", "appeal_id", "slug", "email")

    for prefix in ("sponsorship", "water"):
        _drop(f"{prefix}_project_countries")
        _drop(f"{prefix}_projects", "project_type")

    _drop("products", "appeal_id")
    _drop("appeals", "slug", "is_active")
    _drop("donors", "email")
    _drop("organization_settings")

    op.drop_index("ix_audit_logs_entity", table_name="audit_logs")
    _drop("audit_logs", "admin_user_id", "action")
    op.drop_index("ix_admin_login_otps_email_used", table_name="admin_login_otps")
    _drop("admin_login_otps")
    _drop("admin_users", "email")
