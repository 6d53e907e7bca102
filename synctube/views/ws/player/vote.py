from __future__ import annotations

import logging

from flask import request

from ....engine import coordinator
from ....errors import SyncTubeError
from ....extensions import socketio
from ....models import Room
from ...middleware import require_session


def register() -> None:
    @socketio.on("vote.skip")
    @require_session
    def _on_vote_skip(code: str, participant_id: str, data: dict):
        res, rej = Room.emit(code, trigger="vote.skip", sid=request.sid)
        try:
            res("vote.skip.result", coordinator.vote(code, participant_id, data.get("source_id")))
        except SyncTubeError as e:
            rej(e.message, state=e.code)
        except Exception:
            logging.exception(
                "vote.skip handler error (room=%s) (participant=%s)", code, participant_id
            )
            rej("vote.skip: failed to record vote")
