# alianah/config/config.py
# Canonical Alianah configuration (env-first, production-safe)

from __future__ import annotations

import os
from datetime import timedelta
from typing import Optional


# ----------------------------
# Env helpers
# ----------------------------
_TRUTHY = {"1", "true", "yes", "on", "y"}
_FALSY = {"0", "false", "no", "off", "n"}


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    v = os.getenv(name)
    if v is None:
        return default
    s = str(v).strip()
    return s if s else default


def _bool(name: str, default: bool = False) -> bool:
    v = _env(name)
    if v is None:
        return default
    s = v.strip().lower()
    if s in _TRUTHY:
        return True
    if s in _FALSY:
        return False
    return default


def _int(name: str, default: int) -> int:
    v = _env(name)
    if v is None:
        return default
    try:
        return int(str(v).strip())
    except ValueError:
        return default


def _clean_base_url(v: Optional[str]) -> str:
    return (v or "").strip().rstrip("/")


# ----------------------------
# Config classes
# ----------------------------
class BaseConfig:
    """
    Env-first config:
    - every setting can be overridden via environment variables
    - safe defaults for local dev
    """

    ENV = (_env("APP_ENV") or _env("FLASK_ENV") or "base").strip().lower()

    DEBUG = _bool("FLASK_DEBUG", False)
    TESTING = _bool("TESTING", False)

    # Security
    SECRET_KEY = _env("SECRET_KEY", "dev-change-me")
    ADMIN_SESSION_SECRET = _env("ADMIN_SESSION_SECRET", "dev-secret-change-in-production")
    FUNDRAISER_SESSION_SECRET = _env("FUNDRAISER_SESSION_SECRET", _env("ADMIN_SESSION_SECRET"))
    PORTAL_LINK_SECRET = _env("PORTAL_LINK_SECRET")
    CRON_SECRET = _env("CRON_SECRET")

    # URLs / scheme
    PUBLIC_BASE_URL = _clean_base_url(_env("PUBLIC_BASE_URL", "http://localhost:5000"))
    PREFERRED_URL_SCHEME = _env("PREFERRED_URL_SCHEME", "https")
    TRUST_PROXY = _bool("TRUST_PROXY", False)

    # Cookies
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = _env("SESSION_COOKIE_SAMESITE", "Lax")
    SESSION_COOKIE_SECURE = True
    PERMANENT_SESSION_LIFETIME = timedelta(days=_int("SESSION_DAYS", 7))

    # SQLAlchemy
    SQLALCHEMY_DATABASE_URI = _env("SQLALCHEMY_DATABASE_URI", _env("DATABASE_URL", "sqlite:///alianah-dev.db"))
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}
    AUTO_CREATE_SQLITE = _bool("AUTO_CREATE_SQLITE", True)

    # Mail (Flask-Mail)
    MAIL_SERVER = _env("MAIL_SERVER", "localhost")
    MAIL_PORT = _int("MAIL_PORT", 25)
    MAIL_USE_TLS = _bool("MAIL_USE_TLS", False)
    MAIL_USE_SSL = _bool("MAIL_USE_SSL", False)
    MAIL_USERNAME = _env("MAIL_USERNAME")
    MAIL_PASSWORD = _env("MAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = _env("MAIL_DEFAULT_SENDER", "Alianah Humanity Welfare <no-reply@alianah.org>")
    MAIL_SUPPRESS_SEND = _bool("MAIL_SUPPRESS_SEND", False)
    MAIL_ASYNC = _bool("MAIL_ASYNC", True)

    # Stripe
    STRIPE_SECRET_KEY = _env("STRIPE_SECRET_KEY", "")
    STRIPE_PUBLISHABLE_KEY = _env("STRIPE_PUBLISHABLE_KEY", "")
    STRIPE_WEBHOOK_SECRET = _env("STRIPE_WEBHOOK_SECRET", "")
    STRIPE_MAX_NETWORK_RETRIES = _int("STRIPE_MAX_NETWORK_RETRIES", 2)
    CURRENCY = _env("CURRENCY", "gbp")

    # Rate limiting ("memory://" or redis://host:port/db)
    RATE_LIMIT_STORAGE_URL = _env("RATE_LIMIT_STORAGE_URL", "memory://")

    # Zakat gold/silver prices
    GOLDAPI_API_KEY = _env("GOLDAPI_API_KEY")
    GOLDAPI_TIMEOUT = _int("GOLDAPI_TIMEOUT", 5)

    # Logging
    LOG_LEVEL = _env("LOG_LEVEL", "INFO")
    SENTRY_DSN = _env("SENTRY_DSN")

    # CORS
    CORS_ORIGINS = _env("CORS_ORIGINS", "*")

    @classmethod
    def init_app(cls, app) -> None:
        """
        Factory boot hardening.
        Called from create_app() after app.config.from_object(...)
        """
        uri = str(app.config.get("SQLALCHEMY_DATABASE_URI") or "")

        if uri.startswith("sqlite:"):
            opts = dict(app.config.get("SQLALCHEMY_ENGINE_OPTIONS") or {})
            connect_args = dict(opts.get("connect_args") or {})
            connect_args.setdefault("check_same_thread", False)
            opts["connect_args"] = connect_args
            opts.setdefault("pool_pre_ping", True)
            app.config["SQLALCHEMY_ENGINE_OPTIONS"] = opts


class DevelopmentConfig(BaseConfig):
    ENV = "development"
    DEBUG = True

    SESSION_COOKIE_SECURE = False
    PREFERRED_URL_SCHEME = _env("PREFERRED_URL_SCHEME", "http")
    PORTAL_LINK_SECRET = _env("PORTAL_LINK_SECRET", "dev-portal-secret-change-in-production")
    FUNDRAISER_SESSION_SECRET = _env(
        "FUNDRAISER_SESSION_SECRET", _env("ADMIN_SESSION_SECRET", "dev-fundraiser-secret-change-in-production")
    )


class TestingConfig(BaseConfig):
    ENV = "testing"
    TESTING = True
    DEBUG = False

    SECRET_KEY = "test-secret-key"
    ADMIN_SESSION_SECRET = "test-admin-session-secret"
    FUNDRAISER_SESSION_SECRET = "test-fundraiser-session-secret"
    PORTAL_LINK_SECRET = "test-portal-link-secret"
    CRON_SECRET = "test-cron-secret"

    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    SESSION_COOKIE_SECURE = False
    PREFERRED_URL_SCHEME = "http"
    PUBLIC_BASE_URL = "http://localhost:5000"

    MAIL_SUPPRESS_SEND = True
    MAIL_ASYNC = False
    WTF_CSRF_ENABLED = False
    RATE_LIMIT_STORAGE_URL = "memory://"
    STRIPE_SECRET_KEY = "sk_test_dummy"
    STRIPE_WEBHOOK_SECRET = "whsec_test"
    GOLDAPI_API_KEY = None
    SENTRY_DSN = None
    LOG_LEVEL = "WARNING"


class ProductionConfig(BaseConfig):
    ENV = "production"
    DEBUG = False

    SESSION_COOKIE_SECURE = True
    PREFERRED_URL_SCHEME = _env("PREFERRED_URL_SCHEME", "https")
    TRUST_PROXY = _bool("TRUST_PROXY", True)
    ADMIN_SESSION_SECRET = _env("ADMIN_SESSION_SECRET")

    @classmethod
    def init_app(cls, app) -> None:
        super().init_app(app)

        # ---- Production guardrails (fail fast) ----
        sk = app.config.get("SECRET_KEY")
        if not sk or sk == "dev-change-me":
            raise RuntimeError("SECRET_KEY must be set to a strong random value in production.")

        if not app.config.get("ADMIN_SESSION_SECRET"):
            raise RuntimeError("ADMIN_SESSION_SECRET must be set in production.")

        if not app.config.get("PORTAL_LINK_SECRET"):
            raise RuntimeError("PORTAL_LINK_SECRET must be set in production.")

        base = (app.config.get("PUBLIC_BASE_URL") or "").strip()
        if base and base.startswith("http://"):
            raise RuntimeError("PUBLIC_BASE_URL must be https:// in production.")

        if _bool("FLASK_DEBUG", False):
            raise RuntimeError("FLASK_DEBUG must be 0 in production.")
