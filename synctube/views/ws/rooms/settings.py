from __future__ import annotations

import logging

from flask import request

from ....engine import coordinator
from ....errors import SyncTubeError
from ....extensions import socketio
from ....models import Room
from ...middleware import require_session


def register() -> None:
    @socketio.on("room.settings.autofill.set")
    @require_session
    def _on_room_settings_autofill_set(code: str, participant_id: str, data: dict):
        res, rej = Room.emit(code, trigger="room.settings.autofill.set", sid=request.sid)
        try:
            enabled = data.get("enabled")
            if not isinstance(enabled, bool):
                return rej("room.settings.autofill.set: enabled must be a boolean", state="invalid")
            res(
                "room.settings.autofill.set.result",
                coordinator.set_autofill(code, participant_id, enabled),
            )
        except SyncTubeError as e:
            rej(e.message, state=e.code)
        except Exception:
            logging.exception("room.settings.autofill.set handler error (room=%s)", code)
            rej("room.settings.autofill.set: failed to update setting")
