"""
Blueprint registration for Dreamy Classroom.

All blueprints are registered without URL prefixes; routes carry their full paths.
"""

from __future__ import annotations

from flask import request


def json_body() -> dict:
    """Request JSON as a dict. A missing body or a non-object body reads as empty."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def text_field(data: dict, key: str) -> str:
    """Stripped string value of ``key``; anything that is not a string reads as empty."""
    value = data.get(key)
    return value.strip() if isinstance(value, str) else ""


def register_blueprints(app):
    from blueprints.classroom import bp as classroom_bp
    from blueprints.sync import bp as sync_bp
    from blueprints.ai import bp as ai_bp

    app.register_blueprint(classroom_bp)
    app.register_blueprint(sync_bp)
    app.register_blueprint(ai_bp)
