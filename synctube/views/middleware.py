from __future__ import annotations

import logging
from functools import wraps
from typing import Callable, Optional

from flask import request

from ..extensions import socketio
from ..helpers.ws import get_session_from_socket
from ..lib.utils import normalize_room_id


def _event_name() -> Optional[str]:
    # Capture the socket event name when we are in a Socket.IO request context
    try:
        if getattr(request, "event", None):
            return request.event.get("message")
    except (AttributeError, RuntimeError):
        return None
    return None


def require_session(handler: Callable) -> Callable:
    """
    Decorator for socket handlers that act on the caller's room.

    Reads the session token from the connection's query string and passes
    (code, participant_id, data) to the handler. When the payload names a room it must
    be the room the token was issued for. Returns early with a ``room.error`` to the
    caller otherwise.

    Usage:
        @socketio.on("queue.add")
        @require_session
        def _on_queue_add(code, participant_id, data):
            ...
    """

    @wraps(handler)
    def wrapper(data: Optional[dict] = None):
        data = data if isinstance(data, dict) else {}
        code, participant_id = get_session_from_socket()
        event_name = _event_name()

        if not code or not participant_id:
            logging.warning(
                "require_session: no session token (handler=%s, event=%s, data_keys=%s)",
                handler.__name__,
                event_name,
                list(data.keys()),
            )
            socketio.emit(
                "room.error",
                {
                    "trigger": event_name,
                    "code": None,
                    "state": "unauthorized",
                    "error": "session token required",
                },
                to=request.sid,
            )
            return None, "require_session: no session"

        requested = normalize_room_id(data.get("code"))
        if requested and requested != code:
            logging.warning(
                "require_session: token for room=%s used for room=%s (handler=%s, participant=%s)",
                code,
                requested,
                handler.__name__,
                participant_id,
            )
            socketio.emit(
                "room.error",
                {
                    "trigger": event_name,
                    "code": requested,
                    "state": "unauthorized",
                    "error": "session token is for another room",
                },
                to=request.sid,
            )
            return None, "require_session: room mismatch"

        return handler(code, participant_id, data)

    return wrapper
