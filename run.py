#!/usr/bin/env python3
"""
Local launcher for the Alianah donations API.

- Local dev:        ./run.py --env development
- No reloader:      ./run.py --env development --no-reload
- Gunicorn:         gunicorn "wsgi:app"
"""

from __future__ import annotations

import argparse
import os

from alianah import create_app


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Run the Alianah donations API.")
    p.add_argument("--host", default=os.getenv("HOST", "127.0.0.1"))
    p.add_argument("--port", type=int, default=int(os.getenv("PORT", "5000")))
    p.add_argument("--env", choices=["development", "testing", "production"], help="Runtime environment")
    p.add_argument("--config", help="Explicit dotted config path or name (development/testing/production)")
    p.add_argument("--no-reload", action="store_true", help="Disable the Werkzeug reloader.")
    p.add_argument("--debug", action=argparse.BooleanOptionalAction, default=None, help="Force debug on/off.")
    return p.parse_args()


def main() -> None:
    args = parse_args()
    if args.env:
        os.environ["APP_ENV"] = args.env

    app = create_app(args.config)
    debug = args.debug if args.debug is not None else app.config.get("ENV") != "production"
    app.logger.info("Serving on http://%s:%s (env=%s debug=%s)", args.host, args.port, app.config.get("ENV"), debug)
    app.run(host=args.host, port=args.port, debug=debug, use_reloader=debug and not args.no_reload)


if __name__ == "__main__":
    main()
