from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request

from ...engine import coordinator
from ...errors import SyncTubeError, UnauthorizedError, ValidationError
from ...helpers.ws import get_session_from_auth_header
from ...lib.utils import normalize_room_id

rooms_bp = Blueprint("rooms", __name__, url_prefix="/api")


@rooms_bp.errorhandler(SyncTubeError)
def _on_synctube_error(e: SyncTubeError):
    if e.status >= 500:
        logging.warning("api: %s %s failed: %s", request.method, request.path, e.message)
    return jsonify(e.to_dict()), e.status


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("request body must be a JSON object")
    return data


@rooms_bp.route("/room.create", methods=["POST", "OPTIONS"])
def room_create():
    if request.method == "OPTIONS":
        # Handle CORS preflight request
        return "", 200
    data = _json_body()
    result = coordinator.create_room(
        data.get("name"),
        password=data.get("password") or None,
        participant_id=data.get("participant_id"),
        code=data.get("code") or None,
    )
    return jsonify(result), 201


@rooms_bp.route("/room.join", methods=["POST", "OPTIONS"])
def room_join():
    if request.method == "OPTIONS":
        return "", 200
    data = _json_body()
    if not data.get("code"):
        raise ValidationError("room.join: code required")
    result = coordinator.join_room(
        data["code"],
        participant_id=data.get("participant_id"),
        password=data.get("password") or None,
    )
    return jsonify(result)


@rooms_bp.route("/room.extend", methods=["POST", "OPTIONS"])
def room_extend():
    if request.method == "OPTIONS":
        return "", 200
    data = _json_body()
    if not data.get("code"):
        raise ValidationError("room.extend: code required")
    result = coordinator.extend(data["code"], data.get("extend_code"))
    return jsonify({"code": normalize_room_id(data["code"]), **result})


@rooms_bp.route("/rooms", methods=["GET"])
def rooms_list():
    return jsonify({"rooms": coordinator.list_active_rooms()})


@rooms_bp.route("/rooms/<code>", methods=["GET"])
def room_snapshot(code: str):
    code = normalize_room_id(code)
    snapshot = coordinator.snapshot(code)
    if snapshot["room"]["has_password"]:
        # Protected rooms are only readable with a session token issued by room.join
        token_room, participant_id = get_session_from_auth_header()
        if token_room != code or not participant_id:
            raise UnauthorizedError("room is password protected: session token required")
    return jsonify(snapshot)


@rooms_bp.route("/search", methods=["GET"])
def search():
    return jsonify({"videos": coordinator.search(request.args.get("q", ""))})
