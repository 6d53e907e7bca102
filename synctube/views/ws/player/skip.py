from __future__ import annotations

import logging

from flask import request

from ....engine import coordinator
from ....errors import SyncTubeError
from ....extensions import socketio
from ....models import Room
from ...middleware import require_session


def register() -> None:
    @socketio.on("room.control.skip")
    @require_session
    def _on_room_control_skip(code: str, participant_id: str, data: dict):
        res, rej = Room.emit(code, trigger="room.control.skip", sid=request.sid)
        try:
            result = coordinator.skip(code, participant_id, data.get("source_id"))
            res("room.control.skip.result", result)
        except SyncTubeError as e:
            rej(e.message, state=e.code)
        except Exception:
            logging.exception("room.control.skip handler error (room=%s)", code)
            rej("room.control.skip: failed to skip")

    @socketio.on("player.ended")
    @require_session
    def _on_player_ended(code: str, participant_id: str, data: dict):
        res, rej = Room.emit(code, trigger="player.ended", sid=request.sid)
        try:
            result = coordinator.track_ended(code, participant_id, data.get("source_id"))
            res("player.ended.result", result)
        except SyncTubeError as e:
            rej(e.message, state=e.code)
        except Exception:
            logging.exception("player.ended handler error (room=%s)", code)
            rej("player.ended: failed to advance")

    @socketio.on("player.error")
    @require_session
    def _on_player_error(code: str, participant_id: str, data: dict):
        res, rej = Room.emit(code, trigger="player.error", sid=request.sid)
        try:
            result = coordinator.media_error(
                code, participant_id, data.get("source_id"), data.get("reason")
            )
            res("player.error.result", result)
        except SyncTubeError as e:
            rej(e.message, state=e.code)
        except Exception:
            logging.exception("player.error handler error (room=%s)", code)
            rej("player.error: failed to advance")
