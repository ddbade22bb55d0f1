"""Dashboard, students and stickers, calendar events and notes routes."""

from __future__ import annotations

import re

from flask import Blueprint, current_app, jsonify, request

from blueprints import json_body
from classroom_ai import DEFAULT_GREETING
from extensions import get_services
from remote_store import ShareCodeNotFound, SyncError

bp = Blueprint("classroom", __name__)

MONTH_RE = re.compile(r"^(\d{4})-(\d{2})$")


# ── Dashboard ─────────────────────────────────────────────

@bp.route("/")
@bp.route("/api/dashboard")
def dashboard():
    """Dashboard summary. A share code in the query string connects this device first."""
    services = get_services()
    param = current_app.config["SHARE_CODE_PARAM"]
    code = (request.args.get(param) or "").strip()

    sync_message = None
    if code and code != services.reconciler.share_code:
        try:
            services.reconciler.connect_existing(code)
            sync_message = "성공적으로 연결되었습니다! 🚀"
        except ShareCodeNotFound:
            sync_message = "데이터를 찾을 수 없습니다."
        except SyncError as e:
            current_app.logger.warning("Share link connect failed (%s): %s", code, e)
            sync_message = f"서버에 연결할 수 없습니다: {e}"

    return jsonify({
        "greeting": DEFAULT_GREETING,
        "summary": services.classroom.summary(),
        "sync": services.reconciler.status(),
        "sync_message": sync_message,
    })


# ── Students & Stickers ───────────────────────────────────

@bp.route("/api/students")
def api_students():
    classroom = get_services().classroom
    return jsonify({"students": [s.to_dict() for s in classroom.sorted_students()]})


@bp.route("/api/students", methods=["POST"])
def api_add_student():
    data = json_body()
    number = data.get("number")
    try:
        student = get_services().classroom.add_student(
            data.get("name", ""),
            int(number) if number not in (None, "") else None,
        )
    except (TypeError, ValueError) as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"success": True, "student": student.to_dict()}), 201


@bp.route("/api/students/<student_id>/stickers", methods=["POST"])
def api_update_stickers(student_id):
    data = json_body()
    try:
        amount = int(data.get("amount", 1))
    except (TypeError, ValueError):
        return jsonify({"error": "amount must be an integer"}), 400
    try:
        student = get_services().classroom.update_stickers(student_id, amount)
    except KeyError:
        return jsonify({"error": "Student not found"}), 404
    return jsonify({"success": True, "student": student.to_dict()})


@bp.route("/api/students/<student_id>", methods=["DELETE"])
def api_delete_student(student_id):
    if not get_services().classroom.delete_student(student_id):
        return jsonify({"error": "Student not found"}), 404
    return jsonify({"success": True})


# ── Calendar ──────────────────────────────────────────────

@bp.route("/api/events")
def api_events():
    classroom = get_services().classroom
    event_date = request.args.get("date", "")
    month = request.args.get("month", "")
    if event_date:
        events = classroom.events_on(event_date)
    elif month:
        match = MONTH_RE.match(month)
        if not match:
            return jsonify({"error": "month must look like YYYY-MM"}), 400
        events = classroom.events_in_month(int(match.group(1)), int(match.group(2)))
    else:
        events = classroom.events
    return jsonify({"events": [e.to_dict() for e in sorted(events, key=lambda e: e.date)]})


@bp.route("/api/events", methods=["POST"])
def api_add_event():
    data = json_body()
    try:
        event = get_services().classroom.add_event(
            data.get("date", ""),
            data.get("title", ""),
            data.get("type", "event"),
        )
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"success": True, "event": event.to_dict()}), 201


@bp.route("/api/events/<event_id>", methods=["DELETE"])
def api_delete_event(event_id):
    if not get_services().classroom.delete_event(event_id):
        return jsonify({"error": "Event not found"}), 404
    return jsonify({"success": True})


# ── Notes ─────────────────────────────────────────────────

@bp.route("/api/notes")
def api_notes():
    return jsonify({"notes": [n.to_dict() for n in get_services().classroom.notes]})
