"""
Scheduled jobs, triggered by the platform scheduler.

Mount: /api/cron

  GET /abandoned-checkout   Authorization: Bearer $CRON_SECRET (or ?token=)
"""

from __future__ import annotations

import hmac

from flask import Blueprint, current_app, request

from alianah.extensions import csrf
from alianah.services.abandoned_checkout import send_abandoned_checkout_reminders

from .api_utils import _json_error, _json_ok

bp = Blueprint("cron", __name__)
csrf.exempt(bp)


def _authorized() -> bool:
    secret = current_app.config.get("CRON_SECRET")
    if not secret:
        return True
    auth = request.headers.get("Authorization") or ""
    if hmac.compare_digest(auth.encode(), f"Bearer {secret}".encode()):
        return True
    return hmac.compare_digest((request.args.get("token") or "").encode(), secret.encode())


@bp.get("/abandoned-checkout")
def abandoned_checkout():
    if not _authorized():
        return _json_error("Unauthorized", 401)
    return _json_ok(send_abandoned_checkout_reminders().as_dict())
