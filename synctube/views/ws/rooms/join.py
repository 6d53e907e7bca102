from __future__ import annotations

import logging

from flask import current_app, request
from flask_socketio import join_room

from ....engine import coordinator
from ....errors import SyncTubeError
from ....extensions import socketio
from ....lib.utils import now_ms
from ....models import Room
from ...middleware import require_session


def register() -> None:
    @socketio.on("room.join")
    @require_session
    def _on_room_join(code: str, participant_id: str, data: dict):
        res, rej = Room.emit(code, trigger="room.join", sid=request.sid)
        try:
            # The token was issued by room.join over HTTP, after any password check
            coordinator.heartbeat(code, participant_id)
            snapshot = coordinator.snapshot(code)
            join_room(f"room:{code}")
            res(
                "room.join.result",
                {
                    "ok": True,
                    "participant_id": participant_id,
                    "is_host": snapshot["room"]["host_id"] == participant_id,
                    "heartbeat_interval": current_app.config.get("HEARTBEAT_INTERVAL_SECONDS", 15),
                    "snapshot": snapshot,
                    "serverNowMs": now_ms(),
                    "clientTimestamp": data.get("clientTimestamp"),
                },
            )
        except SyncTubeError as e:
            rej(e.message, state=e.code)
        except Exception:
            logging.exception("room.join handler error (room=%s)", code)
            rej("room.join: failed to join room")
