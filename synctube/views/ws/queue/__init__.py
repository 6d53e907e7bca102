from __future__ import annotations

from .add import register as register_queue_add
from .clear import register as register_queue_clear
from .move import register as register_queue_move
from .remove import register as register_queue_remove

__all__ = [
    "register_socket_handlers",
]


def register_socket_handlers() -> None:
    register_queue_add()
    register_queue_remove()
    register_queue_move()
    register_queue_clear()
