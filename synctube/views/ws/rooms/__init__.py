from __future__ import annotations

from .extend import register as register_room_extend
from .heartbeat import register as register_room_heartbeat
from .heartbeat import start_background_tasks_if_needed
from .join import register as register_room_join
from .settings import register as register_room_settings
from .snapshot import register as register_room_snapshot

__all__ = [
    "register_socket_handlers",
    "start_background_tasks_if_needed",
]


def register_socket_handlers() -> None:
    register_room_join()
    register_room_heartbeat()
    register_room_snapshot()
    register_room_extend()
    register_room_settings()
