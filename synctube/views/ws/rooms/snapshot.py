from __future__ import annotations

import logging

from flask import request

from ....engine import coordinator
from ....errors import SyncTubeError
from ....extensions import socketio
from ....models import Room
from ...middleware import require_session


def register() -> None:
    @socketio.on("room.snapshot")
    @require_session
    def _on_room_snapshot(code: str, participant_id: str, data: dict):
        res, rej = Room.emit(code, trigger="room.snapshot", sid=request.sid)
        try:
            res("room.snapshot.result", {"snapshot": coordinator.snapshot(code)})
        except SyncTubeError as e:
            rej(e.message, state=e.code)
        except Exception:
            logging.exception("room.snapshot handler error (room=%s)", code)
            rej("room.snapshot: failed to read room")
