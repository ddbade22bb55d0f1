"""
Dreamy Classroom — Flask Web Application

Students and merit stickers, the school calendar and class notes, kept in a
local SQLite store and optionally shared across devices through a Supabase
table keyed by a class share code.
"""

from __future__ import annotations

import atexit
import os
from typing import Any

from flask import Flask, Response

import database
from blueprints import register_blueprints
from extensions import build_services, limiter
from scheduler import create_scheduler, init_scheduler


def create_app(test_config: dict[str, Any] | None = None) -> Flask:
    app = Flask(__name__)

    # Load config
    from config import config_by_name
    env = "testing" if test_config and test_config.get("TESTING") else os.environ.get("FLASK_ENV", "development")
    cfg = config_by_name.get(env, config_by_name["development"])
    app.config.from_object(cfg)
    if test_config is not None:
        app.config.update(test_config)
    elif hasattr(cfg, "validate"):
        cfg.validate()

    app.json.ensure_ascii = False

    # Structured logging
    from logging_config import init_logging
    init_logging(app)

    # Local store schema
    database.init_app(app)

    # Rate limiter (disabled in testing)
    limiter.init_app(app)
    if app.config.get("TESTING"):
        limiter.enabled = False

    # Composition root: local store, remote link, reconciler
    scheduler = create_scheduler()
    services = build_services(app, scheduler)
    services.reconciler.start()
    init_scheduler(app, scheduler)
    if not app.config.get("TESTING"):
        atexit.register(services.shutdown)

    register_blueprints(app)

    @app.after_request
    def set_security_headers(response: Response) -> Response:
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "SAMEORIGIN"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response

    return app


if __name__ == "__main__":
    create_app().run(debug=True, port=5001, use_reloader=False)
