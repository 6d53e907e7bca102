from __future__ import annotations

import logging

from flask import request

from ....engine import coordinator
from ....errors import SyncTubeError
from ....extensions import socketio
from ....models import Room
from ...middleware import require_session


def register() -> None:
    @socketio.on("room.extend")
    @require_session
    def _on_room_extend(code: str, participant_id: str, data: dict):
        res, rej = Room.emit(code, trigger="room.extend", sid=request.sid)
        try:
            result = coordinator.extend(code, data.get("extend_code"))
            res("room.extend.result", result)
        except SyncTubeError as e:
            logging.info("room.extend: rejected for room=%s: %s", code, e.message)
            rej(e.message, state=e.code)
        except Exception:
            logging.exception("room.extend handler error (room=%s)", code)
            rej("room.extend: failed to extend room")
