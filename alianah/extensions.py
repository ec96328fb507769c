import atexit
import logging
import os
import time
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import stripe
from flask import current_app
from flask_cors import CORS
from flask_mail import Mail, Message
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from flask_wtf.csrf import CSRFProtect
from jinja2 import Environment, FileSystemLoader, select_autoescape

log = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────
# Core singletons
# ─────────────────────────────────────────────────────────────
db = SQLAlchemy()
migrate = Migrate()
mail = Mail()
csrf = CSRFProtect()
cors = CORS()


# ─────────────────────────────────────────────────────────────
# Background tasks + clean shutdown
# ─────────────────────────────────────────────────────────────
_BG_MAX_WORKERS = int(os.getenv("BG_MAX_WORKERS", "4"))
_EXECUTOR = ThreadPoolExecutor(max_workers=_BG_MAX_WORKERS)


def run_bg(func: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
    return _EXECUTOR.submit(func, *args, **kwargs)


@atexit.register
def _shutdown_executor() -> None:
    _EXECUTOR.shutdown(wait=False, cancel_futures=True)


# ─────────────────────────────────────────────────────────────
# DB helpers
# ─────────────────────────────────────────────────────────────
def tx_commit() -> None:
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


# ─────────────────────────────────────────────────────────────
# Email helper
# ─────────────────────────────────────────────────────────────
_MAIL_ENV: Optional[Environment] = None


def format_pence(value: Any) -> str:
    try:
        return "£{:,.2f}".format(int(value or 0) / 100.0)
    except (TypeError, ValueError):
        return "£0.00"


def get_mail_env(templates_dir: Optional[str] = None) -> Environment:
    """
    Jinja environment for email templates.
    Default path: alianah/templates/emails
    """
    global _MAIL_ENV
    if templates_dir is None and _MAIL_ENV is not None:
        return _MAIL_ENV

    path = templates_dir or str(Path(__file__).resolve().parent / "templates" / "emails")
    env = Environment(loader=FileSystemLoader(path), autoescape=select_autoescape(["html", "xml"]))
    env.filters["gbp"] = format_pence
    if templates_dir is None:
        _MAIL_ENV = env
    return env


def build_message(
    subject: str,
    recipients: List[str],
    *,
    html_template: Optional[str] = None,
    text_template: Optional[str] = None,
    context: Optional[Dict[str, Any]] = None,
    sender: Optional[str] = None,
) -> Message:
    env = get_mail_env()
    ctx = context or {}
    html = env.get_template(html_template).render(**ctx) if html_template else None
    body = env.get_template(text_template).render(**ctx) if text_template else None
    return Message(
        subject=subject,
        recipients=recipients,
        sender=sender or current_app.config.get("MAIL_DEFAULT_SENDER"),
        html=html,
        body=body,
    )


def send_email(subject: str, recipients: List[str], **kwargs: Any) -> None:
    """Render and send synchronously; failures propagate to the caller."""
    mail.send(build_message(subject, recipients, **kwargs))


def send_email_async(
    app: Any,
    subject: str,
    recipients: List[str],
    *,
    max_retries: int = 2,
    retry_backoff: float = 0.5,
    **kwargs: Any,
) -> Future:
    """Best-effort send on the background executor, with retries. Never raises."""

    def _job() -> bool:
        with app.app_context():
            logger = getattr(app, "logger", log)
            try:
                msg = build_message(subject, recipients, **kwargs)
                attempts = 0
                while True:
                    try:
                        mail.send(msg)
                        return True
                    except Exception as e:
                        attempts += 1
                        if attempts > max_retries:
                            raise
                        logger.warning("Mail send failed (attempt %s/%s): %s", attempts, max_retries, e)
                        time.sleep(float(retry_backoff) * attempts)
            except Exception as e:
                logger.error("Email send permanently failed: %s", e, exc_info=True)
                return False

    if not app.config.get("MAIL_ASYNC", True):
        fut: Future = Future()
        fut.set_result(_job())
        return fut
    return run_bg(_job)


# ─────────────────────────────────────────────────────────────
# Stripe initialization
# ─────────────────────────────────────────────────────────────
def _guess_stripe_mode(api_key: Optional[str]) -> str:
    if not api_key:
        return "disabled"
    if api_key.startswith(("sk_live_", "rk_live_")):
        return "live"
    if api_key.startswith(("sk_test_", "rk_test_")):
        return "test"
    return "unknown"


def init_stripe(app: Any) -> None:
    api_key = app.config.get("STRIPE_SECRET_KEY") or ""

    if not api_key:
        app.logger.warning("Stripe NOT initialized: missing STRIPE_SECRET_KEY")
        return

    stripe.api_key = api_key
    stripe.max_network_retries = int(app.config.get("STRIPE_MAX_NETWORK_RETRIES") or 2)
    app.logger.info("Stripe initialized (%s mode)", _guess_stripe_mode(api_key))


__all__ = [
    "db",
    "migrate",
    "mail",
    "csrf",
    "cors",
    "run_bg",
    "tx_commit",
    "get_mail_env",
    "send_email",
    "send_email_async",
    "init_stripe",
]
