from __future__ import annotations

import logging

from flask import request

from ....engine import coordinator
from ....errors import SyncTubeError
from ....extensions import socketio
from ....models import Room
from ...middleware import require_session


def register() -> None:
    @socketio.on("queue.move")
    @require_session
    def _on_queue_move(code: str, participant_id: str, data: dict):
        res, rej = Room.emit(code, trigger="queue.move", sid=request.sid)
        try:
            moved = coordinator.move_queue_item(
                code, participant_id, data.get("id"), data.get("direction")
            )
            # An empty list means the item already sat at that end of the queue
            res("queue.move.result", {"moved": bool(moved), "items": moved})
        except SyncTubeError as e:
            rej(e.message, state=e.code)
        except Exception:
            logging.exception("queue.move handler error (room=%s)", code)
            rej("queue.move: failed to move item")
