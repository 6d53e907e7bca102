# Enable postponed annotations to avoid runtime import issues and allow future-style typing
from __future__ import annotations

from .room.room import Room
from .room.queue_item import AUTO_ADDED_BY, QueueItem
from .room.vote import Vote
from .room.presence import PresenceRecord

__all__ = [
    "Room",
    "QueueItem",
    "Vote",
    "PresenceRecord",
    "AUTO_ADDED_BY",
]
