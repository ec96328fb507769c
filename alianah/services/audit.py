from __future__ import annotations

from typing import Any, Dict, Optional

from alianah.extensions import db
from alianah.models import AdminUser, AuditLog


def record_audit(
    admin: Optional[AdminUser],
    action: str,
    entity_type: str,
    entity_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """Add an audit row to the current session; the caller commits."""
    row = AuditLog(
        admin_user_id=admin.id if admin else None,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details,
    )
    db.session.add(row)
    return row
