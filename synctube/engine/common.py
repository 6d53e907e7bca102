from __future__ import annotations

from typing import Optional

from ..errors import UnauthorizedError
from ..models import QueueItem, Room


def is_host(room: Room, participant_id: Optional[str]) -> bool:
    return bool(participant_id) and room.host_id == participant_id


def require_host(room: Room, participant_id: Optional[str], action: str) -> None:
    """Single-writer check: only the room's host may perform ``action``."""
    if not is_host(room, participant_id):
        raise UnauthorizedError(f"{action}: host only")


def can_remove_item(room: Room, item: QueueItem, participant_id: Optional[str]) -> bool:
    """The adder of an item and the host may remove it."""
    if is_host(room, participant_id):
        return True
    return bool(participant_id) and item.added_by == participant_id
