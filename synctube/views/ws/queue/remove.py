from __future__ import annotations

import logging

from flask import request

from ....engine import coordinator
from ....errors import SyncTubeError
from ....extensions import socketio
from ....models import Room
from ...middleware import require_session


def register() -> None:
    @socketio.on("queue.remove")
    @require_session
    def _on_queue_remove(code: str, participant_id: str, data: dict):
        res, rej = Room.emit(code, trigger="queue.remove", sid=request.sid)
        item_id = data.get("id")
        try:
            if not item_id:
                return rej("queue.remove: no id provided", state="invalid")
            removed = coordinator.remove_from_queue(code, participant_id, item_id)
            res("queue.remove.result", {"removed": True, "item": removed})
        except SyncTubeError as e:
            rej(e.message, state=e.code)
        except Exception:
            logging.exception(
                "queue.remove handler error (id=%s) (participant=%s) (room=%s)",
                item_id,
                participant_id,
                code,
            )
            rej("queue.remove: failed to remove item")
