"""AI classroom helper routes: activity ideas and morning encouragement."""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify

from blueprints import json_body, text_field
from classroom_ai import get_class_suggestions, get_encouragement_message
from extensions import limiter

bp = Blueprint("ai", __name__)


@bp.route("/api/ai/suggestions", methods=["POST"])
@limiter.limit("30 per hour", methods=["POST"])
def api_ai_suggestions():
    data = json_body()
    topic = text_field(data, "topic")
    if not topic:
        return jsonify({"error": "topic is required"}), 400
    text = get_class_suggestions(topic, cache_ttl=current_app.config.get("AI_CACHE_TTL", 0))
    return jsonify({"topic": topic, "suggestion": text})


@bp.route("/api/ai/encouragement")
def api_ai_encouragement():
    return jsonify({"message": get_encouragement_message()})
