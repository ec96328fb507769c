from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import CheckConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from werkzeug.security import check_password_hash, generate_password_hash

from alianah.extensions import db

from .mixins import IdMixin, TimestampMixin, iso

ADMIN_ROLES = ("ADMIN", "STAFF", "VIEWER")


class AdminUser(db.Model, IdMixin, TimestampMixin):
    __tablename__ = "admin_users"
    __table_args__ = (
        CheckConstraint("role IN ('ADMIN', 'STAFF', 'VIEWER')", name="ck_admin_users_role"),
    )

    email: Mapped[str] = mapped_column(db.String(255), unique=True, index=True, nullable=False)
    password_hash: Mapped[Optional[str]] = mapped_column(
        db.String(255), nullable=True, doc="Null until the invite link has been used"
    )
    role: Mapped[str] = mapped_column(db.String(16), nullable=False, default="STAFF")
    first_name: Mapped[Optional[str]] = mapped_column(db.String(120), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(db.String(120), nullable=True)
    two_factor_enabled: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=True)

    invite_token: Mapped[Optional[str]] = mapped_column(db.String(64), unique=True, nullable=True)
    invite_expires_at: Mapped[Optional[datetime]] = mapped_column(db.DateTime, nullable=True)
    password_reset_token: Mapped[Optional[str]] = mapped_column(db.String(64), unique=True, nullable=True)
    password_reset_expires_at: Mapped[Optional[datetime]] = mapped_column(db.DateTime, nullable=True)
    last_login_at: Mapped[Optional[datetime]] = mapped_column(db.DateTime, nullable=True)

    def set_password(self, password: str) -> None:
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "role": self.role,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "twoFactorEnabled": bool(self.two_factor_enabled),
            "hasPassword": bool(self.password_hash),
            "lastLoginAt": iso(self.last_login_at),
            "createdAt": iso(self.created_at),
        }

    def __repr__(self) -> str:  # pragma: no cover
        return f"<AdminUser {self.email} {self.role}>"


class AdminLoginOtp(db.Model, IdMixin, TimestampMixin):
    __tablename__ = "admin_login_otps"
    __table_args__ = (Index("ix_admin_login_otps_email_used", "email", "used"),)

    email: Mapped[str] = mapped_column(db.String(255), nullable=False)
    code: Mapped[str] = mapped_column(db.String(6), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(db.DateTime, nullable=False)
    used: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=False)


class AuditLog(db.Model, IdMixin, TimestampMixin):
    __tablename__ = "audit_logs"
    __table_args__ = (Index("ix_audit_logs_entity", "entity_type", "entity_id"),)

    admin_user_id: Mapped[Optional[str]] = mapped_column(
        db.ForeignKey("admin_users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    admin_user: Mapped[Optional[AdminUser]] = relationship("AdminUser", lazy="joined")
    action: Mapped[str] = mapped_column(db.String(60), nullable=False, index=True)
    entity_type: Mapped[str] = mapped_column(db.String(60), nullable=False)
    entity_id: Mapped[Optional[str]] = mapped_column(db.String(64), nullable=True)
    details: Mapped[Optional[Dict[str, Any]]] = mapped_column(db.JSON, nullable=True)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "action": self.action,
            "entityType": self.entity_type,
            "entityId": self.entity_id,
            "details": self.details,
            "adminUser": (
                {"id": self.admin_user.id, "email": self.admin_user.email} if self.admin_user else None
            ),
            "createdAt": iso(self.created_at),
        }


class OrganizationSettings(db.Model, TimestampMixin):
    """Singleton row keyed by ``SETTINGS_ID``."""

    __tablename__ = "organization_settings"

    SETTINGS_ID = "organization"

    id: Mapped[str] = mapped_column(db.String(32), primary_key=True, default=SETTINGS_ID)
    charity_name: Mapped[str] = mapped_column(db.String(200), nullable=False)
    support_email: Mapped[str] = mapped_column(db.String(255), nullable=False)
    website_url: Mapped[str] = mapped_column(db.String(255), nullable=False)
    charity_number: Mapped[Optional[str]] = mapped_column(db.String(40), nullable=True)
