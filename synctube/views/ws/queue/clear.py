from __future__ import annotations

import logging

from flask import request

from ....engine import coordinator
from ....errors import SyncTubeError
from ....extensions import socketio
from ....models import Room
from ...middleware import require_session


def register() -> None:
    @socketio.on("queue.clear")
    @require_session
    def _on_queue_clear(code: str, participant_id: str, data: dict):
        res, rej = Room.emit(code, trigger="queue.clear", sid=request.sid)
        try:
            res("queue.clear.result", coordinator.clear_queue(code, participant_id))
        except SyncTubeError as e:
            rej(e.message, state=e.code)
        except Exception:
            logging.exception("queue.clear handler error (room=%s)", code)
            rej("queue.clear: failed to clear queue")
