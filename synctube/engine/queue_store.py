"""
Room-scoped ordered queue.

Play order is ``order_index`` with insertion time as the tie-breaker, so two appends
racing on the same "max + 1" both survive and keep a stable order. Reordering swaps
``order_index`` between two neighbours and never renumbers the queue.
"""
from __future__ import annotations

import logging
from typing import Optional

from ..extensions import db
from ..errors import NotFoundError, UnauthorizedError, ValidationError
from ..lib.utils import now_ms as _now_ms
from ..models import QueueItem, Room
from .common import can_remove_item, require_host

DIRECTIONS = ("up", "down")


def list_items(room: Room, fresh: bool = False) -> list[QueueItem]:
    """Queue in play order. ``fresh`` overwrites any identity-map state with the database rows."""
    query = db.session.query(QueueItem).filter_by(room_id=room.id)
    if fresh:
        query = query.populate_existing()
    return query.order_by(*QueueItem.ordering()).all()


def get_item(room: Room, item_id: int) -> QueueItem:
    item = db.session.query(QueueItem).filter_by(id=item_id, room_id=room.id).first()
    if item is None:
        raise NotFoundError(f"queue item {item_id} not found")
    return item


def now_playing(room: Room, fresh: bool = False) -> Optional[QueueItem]:
    """The queue item at ``current_order``; at most one is reported even if appends tied."""
    if room.current_item is None:
        return None
    query = db.session.query(QueueItem).filter_by(
        room_id=room.id, order_index=room.current_order
    )
    if fresh:
        query = query.populate_existing()
    candidates = query.order_by(*QueueItem.ordering()).all()
    for item in candidates:
        if item.source_id == room.current_item:
            return item
    return candidates[0] if candidates else None


def next_order_index(room: Room) -> int:
    last = (
        db.session.query(QueueItem)
        .filter_by(room_id=room.id)
        .order_by(QueueItem.order_index.desc())
        .first()
    )
    return (last.order_index + 1) if last else 0


def append(
    room: Room,
    *,
    source_id: str,
    title: str,
    added_by: str,
    thumbnail_url: Optional[str] = None,
    duration_seconds: Optional[int] = None,
    now_ms: Optional[int] = None,
) -> QueueItem:
    source_id = (source_id or "").strip()
    if not source_id:
        raise ValidationError("queue.add: source_id required")
    item = QueueItem(
        room_id=room.id,
        source_id=source_id,
        title=(title or "").strip() or source_id,
        thumbnail_url=thumbnail_url or None,
        duration_seconds=duration_seconds,
        added_by=added_by,
        order_index=next_order_index(room),
        created_at_ms=_now_ms() if now_ms is None else now_ms,
    )
    db.session.add(item)
    # A new item gives a room parked on a stuck queue something else to play
    room.stuck_item = None
    db.session.flush()
    return item


def remove(room: Room, item_id: int, participant_id: str) -> QueueItem:
    """Delete an item; only its adder or the host may do so."""
    item = get_item(room, item_id)
    if not can_remove_item(room, item, participant_id):
        raise UnauthorizedError("queue.remove: only the adder or the host can remove this item")
    db.session.delete(item)
    db.session.flush()
    return item


def reorder(room: Room, item_id: int, direction: str, participant_id: str) -> list[QueueItem]:
    """Swap an item's order_index with its neighbour. Returns the moved pair, or [] at a boundary."""
    require_host(room, participant_id, "queue.move")
    if direction not in DIRECTIONS:
        raise ValidationError("queue.move: direction must be 'up' or 'down'")

    items = list_items(room, fresh=True)
    index = next((i for i, item in enumerate(items) if item.id == item_id), None)
    if index is None:
        raise NotFoundError(f"queue item {item_id} not found")

    target_index = index - 1 if direction == "up" else index + 1
    if target_index < 0 or target_index >= len(items):
        return []

    item, neighbour = items[index], items[target_index]
    playing = now_playing(room)

    if item.order_index == neighbour.order_index:
        # Tied rows are ordered by insertion time, so exchange that instead
        if item.created_at_ms == neighbour.created_at_ms:
            item.created_at_ms += -1 if direction == "up" else 1
        else:
            item.created_at_ms, neighbour.created_at_ms = (
                neighbour.created_at_ms,
                item.created_at_ms,
            )
    else:
        item.order_index, neighbour.order_index = neighbour.order_index, item.order_index

    # "Now playing" follows the playing row, not the slot it used to occupy
    if playing is not None and playing.id in (item.id, neighbour.id):
        room.current_order = playing.order_index

    db.session.flush()
    logging.debug(
        "queue.move: room=%s item=%s direction=%s order=%s",
        room.code,
        item.id,
        direction,
        item.order_index,
    )
    return [item, neighbour]


def clear(room: Room, participant_id: str) -> int:
    """Delete every item in the room. The caller moves playback to Idle."""
    require_host(room, participant_id, "queue.clear")
    removed = (
        db.session.query(QueueItem)
        .filter_by(room_id=room.id)
        .delete(synchronize_session=False)
    )
    db.session.flush()
    return removed
