from __future__ import annotations

import logging

from flask import request

from ....engine import coordinator
from ....errors import SyncTubeError
from ....extensions import socketio
from ....models import Room
from ...middleware import require_session


def register() -> None:
    @socketio.on("room.control.override")
    @require_session
    def _on_room_control_override(code: str, participant_id: str, data: dict):
        res, rej = Room.emit(code, trigger="room.control.override", sid=request.sid)
        try:
            state = coordinator.play_override(code, participant_id, data.get("source_id"))
            res("room.control.override.result", {"room": state})
        except SyncTubeError as e:
            rej(e.message, state=e.code)
        except Exception:
            logging.exception("room.control.override handler error (room=%s)", code)
            rej("room.control.override: failed to play item")
