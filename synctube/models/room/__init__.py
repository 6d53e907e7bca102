from .room import Room
from .queue_item import AUTO_ADDED_BY, QueueItem
from .vote import Vote
from .presence import PresenceRecord

__all__ = ["Room", "QueueItem", "Vote", "PresenceRecord", "AUTO_ADDED_BY"]
