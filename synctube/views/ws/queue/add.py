from __future__ import annotations

import logging

from flask import request

from ....engine import coordinator
from ....errors import SyncTubeError
from ....extensions import socketio
from ....models import Room
from ...middleware import require_session


def register() -> None:
    @socketio.on("queue.add")
    @require_session
    def _on_queue_add(code: str, participant_id: str, data: dict):
        res, rej = Room.emit(code, trigger="queue.add", sid=request.sid)
        try:
            item = coordinator.add_to_queue(
                code,
                participant_id,
                {
                    "source_id": data.get("source_id"),
                    "title": data.get("title"),
                    "thumbnail_url": data.get("thumbnail_url"),
                    "duration_seconds": data.get("duration_seconds"),
                },
            )
            res("queue.add.result", {"item": item})
        except SyncTubeError as e:
            rej(e.message, state=e.code)
        except Exception:
            logging.exception(
                "queue.add handler error (room=%s) (participant=%s)", code, participant_id
            )
            rej("queue.add: failed to add item")
