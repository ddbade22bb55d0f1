"""Cross-device sync routes: backend settings, share codes, refresh and history."""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from blueprints import json_body, text_field
from extensions import get_services
from remote_store import NotConnected, RemoteUnavailable, ShareCodeNotFound
from share_codes import share_url

bp = Blueprint("sync", __name__)


def _status_payload(**extra):
    services = get_services()
    return jsonify({
        **services.reconciler.status(),
        "remote_url": services.remote.saved_url(),
        **extra,
    })


@bp.route("/api/sync/status")
def api_sync_status():
    return _status_payload()


# ── Backend settings ──────────────────────────────────────

@bp.route("/api/sync/settings", methods=["PUT"])
def api_save_settings():
    services = get_services()
    data = json_body()
    connected = services.remote.configure(text_field(data, "url"), text_field(data, "key"))
    services.reconciler.on_remote_reconfigured()
    message = "DB가 성공적으로 연결되었습니다! ✅" if connected else "정보를 확인해주세요."
    return _status_payload(success=connected, message=message), (200 if connected else 400)


@bp.route("/api/sync/settings", methods=["DELETE"])
def api_reset_settings():
    services = get_services()
    services.remote.reset()
    services.reconciler.on_remote_reconfigured()
    return _status_payload(success=True)


# ── Share code lifecycle ──────────────────────────────────

@bp.route("/api/sync/create", methods=["POST"])
def api_create_share_code():
    result = get_services().reconciler.connect_new()
    return _status_payload(
        success=True,
        pushed=result.pushed,
        message=f"학급 코드가 생성되었습니다: {result.share_code}",
    ), 201


@bp.route("/api/sync/connect", methods=["POST"])
def api_connect():
    data = json_body()
    code = text_field(data, "code")
    if not code:
        return jsonify({"error": "code is required"}), 400
    try:
        get_services().reconciler.connect_existing(code)
    except ShareCodeNotFound:
        return jsonify({"error": "데이터를 찾을 수 없습니다.", "code": code}), 404
    except RemoteUnavailable as e:
        return jsonify({"error": f"서버에 연결할 수 없습니다: {e}"}), 503
    return _status_payload(success=True, message="성공적으로 연결되었습니다! 🚀")


@bp.route("/api/sync/disconnect", methods=["POST"])
def api_disconnect():
    get_services().reconciler.disconnect()
    return _status_payload(success=True)


@bp.route("/api/sync/refresh", methods=["POST"])
def api_refresh():
    try:
        applied = get_services().reconciler.refresh_now()
    except NotConnected:
        return jsonify({"error": "No share code set"}), 409
    except ShareCodeNotFound:
        return jsonify({"error": "데이터를 찾을 수 없습니다."}), 404
    except RemoteUnavailable as e:
        return jsonify({"error": f"서버에 연결할 수 없습니다: {e}"}), 503
    return _status_payload(success=True, applied=applied)


@bp.route("/api/sync/share-url")
def api_share_url():
    code = get_services().reconciler.share_code
    if not code:
        return jsonify({"error": "No share code set"}), 409
    param = current_app.config["SHARE_CODE_PARAM"]
    return jsonify({"share_code": code, "url": share_url(request.host_url, code, param)})


@bp.route("/api/sync/history")
def api_sync_history():
    limit = min(max(request.args.get("limit", 20, type=int), 1), 100)
    return jsonify({"events": get_services().history.recent(limit)})
