from __future__ import annotations

import logging

from flask import request

from ....engine import coordinator
from ....errors import SyncTubeError
from ....extensions import socketio
from ....models import Room
from ...middleware import require_session


def register() -> None:
    @socketio.on("room.control.toggle")
    @require_session
    def _on_room_control_toggle(code: str, participant_id: str, data: dict):
        res, rej = Room.emit(code, trigger="room.control.toggle", sid=request.sid)
        try:
            state = coordinator.toggle_play_pause(code, participant_id, data.get("position"))
            res("room.control.toggle.result", {"room": state})
        except SyncTubeError as e:
            rej(e.message, state=e.code)
        except Exception:
            logging.exception("room.control.toggle handler error (room=%s)", code)
            rej("room.control.toggle: failed to toggle playback")

    @socketio.on("room.control.play")
    @require_session
    def _on_room_control_play(code: str, participant_id: str, data: dict):
        res, rej = Room.emit(code, trigger="room.control.play", sid=request.sid)
        try:
            res("room.control.play.result", {"room": coordinator.play(code, participant_id)})
        except SyncTubeError as e:
            rej(e.message, state=e.code)
        except Exception:
            logging.exception("room.control.play handler error (room=%s)", code)
            rej("room.control.play: failed to start playback")

    @socketio.on("room.control.pause")
    @require_session
    def _on_room_control_pause(code: str, participant_id: str, data: dict):
        res, rej = Room.emit(code, trigger="room.control.pause", sid=request.sid)
        try:
            state = coordinator.pause(code, participant_id, data.get("position"))
            res("room.control.pause.result", {"room": state})
        except SyncTubeError as e:
            rej(e.message, state=e.code)
        except Exception:
            logging.exception("room.control.pause handler error (room=%s)", code)
            rej("room.control.pause: failed to pause playback")

    @socketio.on("room.control.seek")
    @require_session
    def _on_room_control_seek(code: str, participant_id: str, data: dict):
        res, rej = Room.emit(code, trigger="room.control.seek", sid=request.sid)
        try:
            state = coordinator.seek(code, participant_id, data.get("position"))
            res("room.control.seek.result", {"room": state})
        except SyncTubeError as e:
            rej(e.message, state=e.code)
        except Exception:
            logging.exception("room.control.seek handler error (room=%s)", code)
            rej("room.control.seek: failed to seek")
