from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError

from alianah.extensions import db
from alianah.models import OrganizationSettings

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrgSettings:
    charity_name: str
    support_email: str
    website_url: str
    charity_number: Optional[str]

    def as_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        return {
            "charityName": d["charity_name"],
            "supportEmail": d["support_email"],
            "websiteUrl": d["website_url"],
            "charityNumber": d["charity_number"],
        }


DEFAULTS = OrgSettings(
    charity_name="Alianah Humanity Welfare",
    support_email="support@alianah.org",
    website_url="https://www.alianah.org",
    charity_number=None,
)


def get_organization_settings() -> OrgSettings:
    """Stored settings, or the defaults when the row is missing or unreadable."""
    try:
        row = db.session.get(OrganizationSettings, OrganizationSettings.SETTINGS_ID)
    except SQLAlchemyError:
        log.warning("Organization settings unavailable; using defaults", exc_info=True)
        db.session.rollback()
        return DEFAULTS
    if row is None:
        return DEFAULTS
    return OrgSettings(
        charity_name=row.charity_name,
        support_email=row.support_email,
        website_url=row.website_url,
        charity_number=row.charity_number,
    )


def save_organization_settings(**values: Any) -> OrgSettings:
    row = db.session.get(OrganizationSettings, OrganizationSettings.SETTINGS_ID)
    if row is None:
        current = DEFAULTS
        row = OrganizationSettings(
            id=OrganizationSettings.SETTINGS_ID,
            charity_name=current.charity_name,
            support_email=current.support_email,
            website_url=current.website_url,
            charity_number=current.charity_number,
        )
        db.session.add(row)
    for key in ("charity_name", "support_email", "website_url", "charity_number"):
        if key in values:
            setattr(row, key, values[key])
    db.session.flush()
    return get_organization_settings()
