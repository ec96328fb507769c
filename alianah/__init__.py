# alianah/__init__.py
# Alianah donations API: Flask app factory
# - JSON-only API under /api (public + admin)
# - request ids on every log line and response
# - JSON error shape everywhere

from __future__ import annotations

import logging
import os
import time
from importlib import import_module
from typing import Any, List, Optional, Tuple, Type, Union
from uuid import uuid4

import sentry_sdk
from dotenv import load_dotenv
from flask import Flask, g, request
from flask_talisman import Talisman
from sentry_sdk.integrations.flask import FlaskIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix

# never override real env vars in prod
load_dotenv(override=False)

from alianah.config import CONFIG_BY_NAME  # noqa: E402
from alianah.errors import AlianahError  # noqa: E402
from alianah.extensions import cors, csrf, db, init_stripe, mail, migrate  # noqa: E402
from alianah.security.headers import install_security_headers  # noqa: E402
from alianah.security.rate_limit import init_rate_limiter  # noqa: E402

__version__ = "1.0.0"

ConfigLike = Union[str, Type[Any]]


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------
def _resolve_config(target: Optional[ConfigLike]) -> Type[Any]:
    """
    Choose the config class.
    - explicit argument (class, "testing", or dotted path)
    - else FLASK_CONFIG
    - else APP_ENV / FLASK_ENV, defaulting to development
    """
    if target is None:
        target = (os.getenv("FLASK_CONFIG") or "").strip() or None
    if target is None:
        env = (os.getenv("APP_ENV") or os.getenv("FLASK_ENV") or "development").strip().lower()
        target = {"prod": "production", "dev": "development"}.get(env, env)

    if not isinstance(target, str):
        return target
    if target.lower() in CONFIG_BY_NAME:
        return CONFIG_BY_NAME[target.lower()]

    module_name, _, attr = target.rpartition(".")
    if not module_name:
        raise RuntimeError(f"Unknown config '{target}'")
    return getattr(import_module(module_name), attr)


def _is_prod(app: Flask) -> bool:
    return str(app.config.get("ENV", "")).lower() == "production"


def _parse_cors_origins(app: Flask) -> Union[str, List[str]]:
    raw = str(app.config.get("CORS_ORIGINS") or ("*" if not _is_prod(app) else app.config.get("PUBLIC_BASE_URL"))).strip()
    if raw in {"", "*"}:
        return raw
    if "," in raw:
        return [o.strip() for o in raw.split(",") if o.strip()]
    return raw


# -----------------------------------------------------------------------------
# Logging with request_id
# -----------------------------------------------------------------------------
class _RequestIDFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        try:
            record.request_id = getattr(g, "request_id", "-")
        except RuntimeError:
            # outside an app/request context
            record.request_id = "-"
        return True


def _configure_logging(app: Flask) -> None:
    fmt = "%(asctime)s [%(levelname)s] %(name)s [rid=%(request_id)s]: %(message)s"
    root = logging.getLogger()

    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(fmt))
        handler.addFilter(_RequestIDFilter())
        root.addHandler(handler)
    else:
        for h in root.handlers:
            h.addFilter(_RequestIDFilter())
            if not getattr(h, "formatter", None) or "%(request_id)s" not in getattr(h.formatter, "_fmt", ""):
                h.setFormatter(logging.Formatter(fmt))

    root.setLevel(str(app.config.get("LOG_LEVEL", "INFO")).upper())
    logging.getLogger("werkzeug").setLevel(str(app.config.get("WERKZEUG_LOG_LEVEL", "WARNING")).upper())
    app.logger.info("Loaded config: ENV=%s DEBUG=%s", app.config.get("ENV", "?"), app.debug)


# -----------------------------------------------------------------------------
# ProxyFix (reverse proxy / load balancer)
# -----------------------------------------------------------------------------
def _apply_proxyfix(app: Flask) -> None:
    if not app.config.get("TRUST_PROXY"):
        return
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=1)
    app.logger.info("ProxyFix enabled (trusting X-Forwarded-* headers).")


# -----------------------------------------------------------------------------
# Blueprint registration
# -----------------------------------------------------------------------------
BLUEPRINTS: List[Tuple[str, str]] = [
    ("alianah.blueprints.checkout", "/api/checkout"),
    ("alianah.blueprints.fundraisers", "/api/fundraisers"),
    ("alianah.blueprints.portal", "/api/stripe"),
    ("alianah.blueprints.zakat", "/api/zakat"),
    ("alianah.blueprints.webhooks", "/api/webhooks"),
    ("alianah.blueprints.cron", "/api/cron"),
    ("alianah.blueprints.admin_auth", "/api/admin"),
    ("alianah.blueprints.admin_catalog", "/api/admin"),
    ("alianah.blueprints.admin_donations", "/api/admin"),
    ("alianah.blueprints.admin_settings", "/api/admin"),
]


def _register_blueprints(app: Flask) -> None:
    disabled = {p.strip().lower() for p in (os.getenv("DISABLE_BPS", "")).split(",") if p.strip()}
    for dotted, prefix in BLUEPRINTS:
        if dotted.rsplit(".", 1)[-1].lower() in disabled:
            app.logger.info("Disabled module: %s", dotted)
            continue
        blueprint = import_module(dotted).bp
        app.register_blueprint(blueprint, url_prefix=prefix)
        app.logger.debug("Registered blueprint: %-18s → %s", blueprint.name, prefix)


# -----------------------------------------------------------------------------
# Integrations
# -----------------------------------------------------------------------------
def _init_sentry(app: Flask) -> None:
    dsn = (app.config.get("SENTRY_DSN") or "").strip()
    if not dsn:
        return
    sentry_sdk.init(
        dsn=dsn,
        integrations=[
            FlaskIntegration(),
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.0")),
        send_default_pii=False,
        environment=app.config.get("ENV", "development"),
        release=os.getenv("GIT_COMMIT"),
    )
    app.logger.info("Sentry initialized")


def _init_talisman(app: Flask) -> None:
    if not _is_prod(app):
        return
    # CSP and the API headers come from security.headers
    Talisman(app, content_security_policy=None)


def _init_cors(app: Flask) -> None:
    origins = _parse_cors_origins(app)
    cors.init_app(
        app,
        # admin + fundraiser sessions are cookies
        supports_credentials=origins != "*",
        resources={r"/api/*": {"origins": origins}},
        expose_headers=["X-Request-ID", "Retry-After"],
        allow_headers=["Content-Type", "Authorization", "Stripe-Signature", "X-Request-ID"],
        methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    )


def _maybe_create_sqlite_tables(app: Flask) -> None:
    uri = (app.config.get("SQLALCHEMY_DATABASE_URI") or "").strip()
    if not uri.startswith("sqlite"):
        return
    if app.config.get("AUTO_CREATE_SQLITE", True) is not True:
        return
    with app.app_context():
        db.create_all()


# -----------------------------------------------------------------------------
# Request lifecycle + errors
# -----------------------------------------------------------------------------
def _register_request_lifecycle(app: Flask) -> None:
    @app.before_request
    def _bootstrap_request():
        g.request_id = request.headers.get("X-Request-ID") or uuid4().hex
        g._start_ts = time.perf_counter()

    @app.after_request
    def _attach_request_headers(resp):
        resp.headers["X-Request-ID"] = getattr(g, "request_id", "-")
        start = getattr(g, "_start_ts", None)
        if start:
            resp.headers["X-Response-Time-ms"] = str(int((time.perf_counter() - start) * 1000))
        return resp


def _register_error_handlers(app: Flask) -> None:
    from alianah.blueprints.api_utils import _json_error

    @app.errorhandler(AlianahError)
    def _domain_err(err: AlianahError):
        if err.status_code >= 500:
            app.logger.error("%s: %s", type(err).__name__, err.message)
        return _json_error(err.message, err.status_code, err.extra or None)

    @app.errorhandler(HTTPException)
    def _http_err(err: HTTPException):
        return _json_error(err.description or err.name, err.code or 500)

    @app.errorhandler(Exception)
    def _uncaught(err: Exception):
        db.session.rollback()
        app.logger.exception("Unhandled error")
        if (request.path or "").startswith("/api/webhooks/"):
            return ("", 500)
        return _json_error("Internal Server Error", 500)


# -----------------------------------------------------------------------------
# Health endpoints
# -----------------------------------------------------------------------------
def _register_health_endpoints(app: Flask) -> None:
    @app.get("/healthz")
    def _healthz():
        return {
            "status": "ok",
            "env": app.config.get("ENV", "unknown"),
            "request_id": getattr(g, "request_id", "-"),
        }

    @app.get("/version")
    def _version():
        return {
            "version": os.getenv("GIT_COMMIT") or __version__,
            "env": app.config.get("ENV"),
            "public_base_url": app.config.get("PUBLIC_BASE_URL") or "",
        }


# -----------------------------------------------------------------------------
# App Factory
# -----------------------------------------------------------------------------
def create_app(config_class: Optional[ConfigLike] = None) -> Flask:
    app = Flask(__name__, static_folder=None)

    cfg = _resolve_config(config_class)
    app.config.from_object(cfg)
    if hasattr(cfg, "init_app"):
        cfg.init_app(app)

    app.url_map.strict_slashes = False
    app.config.setdefault("JSON_SORT_KEYS", False)
    app.config.setdefault("PROPAGATE_EXCEPTIONS", False)

    # ---- Proxy handling first
    _apply_proxyfix(app)

    # ---- Logging / integrations
    _configure_logging(app)
    _init_sentry(app)
    _init_talisman(app)
    _init_cors(app)

    # ---- Core extensions
    from alianah import models  # noqa: F401  (registers tables on db.metadata)

    csrf.init_app(app)
    db.init_app(app)
    _maybe_create_sqlite_tables(app)
    migrate.init_app(app, db, compare_type=True, render_as_batch=True)
    mail.init_app(app)
    init_stripe(app)
    init_rate_limiter(app)
    install_security_headers(app)

    # ---- Request lifecycle / errors
    _register_request_lifecycle(app)
    _register_error_handlers(app)

    # ---- Blueprints + health
    _register_blueprints(app)
    _register_health_endpoints(app)

    # ---- CLI
    from alianah.cli import register_cli

    register_cli(app)

    return app
