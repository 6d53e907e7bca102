from __future__ import annotations

from .player import register_socket_handlers as register_player_handlers
from .queue import register_socket_handlers as register_queue_handlers
from .rooms import register_socket_handlers as register_room_handlers
from .rooms import start_background_tasks_if_needed

__all__ = [
    "register_socket_handlers",
    "start_background_tasks_if_needed",
]

_registered: bool = False


def register_socket_handlers() -> None:
    # socketio is a module-level extension, so handlers are bound once per process
    global _registered
    if _registered:
        return
    register_room_handlers()
    register_queue_handlers()
    register_player_handlers()
    _registered = True
