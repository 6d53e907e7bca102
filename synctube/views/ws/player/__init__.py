from __future__ import annotations

from .override import register as register_player_override
from .play import register as register_player_play
from .skip import register as register_player_skip
from .vote import register as register_player_vote

__all__ = [
    "register_socket_handlers",
]


def register_socket_handlers() -> None:
    register_player_play()
    register_player_skip()
    register_player_override()
    register_player_vote()
