"""
Playback state machine for a room.

States are Idle (nothing loaded), Loaded-Paused and Loaded-Playing, derived from the
room's playback fields. Every transition here is host-only; the coordinator holds the
room lock around each call and commits once afterwards, so a failure in the middle of
a transition rolls back as a whole.

Position is kept as a virtual clock: ``current_position`` sampled at
``playing_since_ms``. While playing, the live offset is the sample plus the elapsed
wall time, which is what late joiners seek to.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from ..errors import NotFoundError, StuckQueueError, ValidationError
from ..extensions import db
from ..lib.utils import now_ms as _now_ms
from ..models import QueueItem, Room
from . import queue_store
from .common import require_host


@dataclass
class AdvanceResult:
    # False when the call was a duplicate of an advance that already happened
    advanced: bool
    removed: Optional[dict] = None
    next_item: Optional[QueueItem] = None
    stuck: bool = False
    skipped_override: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "advanced": self.advanced,
            "removed": self.removed,
            "next_item": self.next_item.to_dict() if self.next_item else None,
            "stuck": self.stuck,
            "skipped_override": self.skipped_override,
        }


def _start_clock(room: Room, position: float, now_ms: int) -> None:
    room.current_position = float(position)
    room.is_playing = True
    room.playing_since_ms = now_ms


def _stop_clock(room: Room, position: float) -> None:
    room.current_position = float(position)
    room.is_playing = False
    room.playing_since_ms = None


def promote(room: Room, item: QueueItem, now_ms: Optional[int] = None) -> QueueItem:
    """Make ``item`` the current item and start it from the top."""
    now_ms = _now_ms() if now_ms is None else now_ms
    room.current_item = item.source_id
    room.current_order = item.order_index
    room.stuck_item = None
    _start_clock(room, 0.0, now_ms)
    return item


def reset_to_idle(room: Room) -> None:
    room.current_item = None
    room.current_order = 0
    room.override_item = None
    room.stuck_item = None
    _stop_clock(room, 0.0)


def play(room: Room, participant_id: str, now_ms: Optional[int] = None) -> Optional[QueueItem]:
    """Loaded-Paused -> Loaded-Playing. From Idle the head of the queue is promoted.

    Returns the promoted item when playback started from Idle.
    """
    require_host(room, participant_id, "room.control.play")
    now_ms = _now_ms() if now_ms is None else now_ms
    if room.state == "idle":
        items = queue_store.list_items(room, fresh=True)
        if not items:
            raise NotFoundError("room.control.play: queue is empty")
        return promote(room, items[0], now_ms)
    if not room.is_playing:
        _start_clock(room, room.current_position or 0.0, now_ms)
    return None


def pause(
    room: Room,
    participant_id: str,
    position: Optional[float] = None,
    now_ms: Optional[int] = None,
) -> bool:
    """Loaded-Playing -> Loaded-Paused, snapshotting the position.

    The host-reported ``position`` wins; without one the virtual clock is sampled.
    Returns False when nothing was playing.
    """
    require_host(room, participant_id, "room.control.pause")
    if room.state != "playing":
        return False
    now_ms = _now_ms() if now_ms is None else now_ms
    if position is None:
        position = room.effective_position(now_ms)
    _stop_clock(room, _validate_position(position, "room.control.pause"))
    return True


def toggle(
    room: Room,
    participant_id: str,
    position: Optional[float] = None,
    now_ms: Optional[int] = None,
) -> str:
    """Flip between playing and paused; returns the resulting state."""
    if room.is_playing:
        pause(room, participant_id, position=position, now_ms=now_ms)
    else:
        play(room, participant_id, now_ms=now_ms)
    return room.state


def seek(
    room: Room, participant_id: str, position: float, now_ms: Optional[int] = None
) -> float:
    require_host(room, participant_id, "room.control.seek")
    if room.state == "idle":
        raise NotFoundError("room.control.seek: nothing is loaded")
    position = _validate_position(position, "room.control.seek")
    now_ms = _now_ms() if now_ms is None else now_ms
    room.current_position = position
    # Re-base the clock so the live offset counts from the new position
    room.playing_since_ms = now_ms if room.is_playing else None
    return position


def play_override(
    room: Room, participant_id: str, source_id: str, now_ms: Optional[int] = None
) -> str:
    """Play ``source_id`` right away without touching the queue order."""
    require_host(room, participant_id, "room.control.override")
    source_id = (source_id or "").strip()
    if not source_id:
        raise ValidationError("room.control.override: source_id required")
    now_ms = _now_ms() if now_ms is None else now_ms
    room.override_item = source_id
    room.stuck_item = None
    _start_clock(room, 0.0, now_ms)
    return source_id


def _validate_position(position, action: str) -> float:
    try:
        value = float(position)
    except (TypeError, ValueError):
        raise ValidationError(f"{action}: position must be a number")
    if value < 0:
        raise ValidationError(f"{action}: position must not be negative")
    return value


def _pick_next(items: list[QueueItem], removed_source_id: Optional[str]) -> QueueItem:
    candidate = items[0]
    if removed_source_id is None or candidate.source_id != removed_source_id:
        return candidate
    # Never promote a duplicate of what just finished
    for item in items:
        if item.source_id != removed_source_id:
            return item
    raise StuckQueueError(
        f"every remaining item repeats {removed_source_id}", source_id=removed_source_id
    )


def advance(
    room: Room,
    participant_id: str,
    expected_item: str,
    now_ms: Optional[int] = None,
) -> AdvanceResult:
    """Consume the finished item and promote the next one.

    ``expected_item`` is the source id the caller believes is playing. When it matches
    neither the current nor the override item the room has already moved on and the
    call does nothing, so duplicate completion reports (a vote-skip and a manual skip
    of the same item included) advance exactly once.
    """
    require_host(room, participant_id, "advance")
    expected_item = (expected_item or "").strip()
    if not expected_item:
        raise ValidationError("advance: the source id being skipped is required")
    if expected_item not in (
        room.current_item,
        room.override_item,
    ):
        logging.info(
            "advance: room=%s already past %s (current=%s override=%s)",
            room.code,
            expected_item,
            room.current_item,
            room.override_item,
        )
        return AdvanceResult(advanced=False)

    now_ms = _now_ms() if now_ms is None else now_ms
    result = AdvanceResult(advanced=True)

    finished = queue_store.now_playing(room, fresh=True)
    removed_source_id = None
    if finished is not None:
        removed_source_id = finished.source_id
        result.removed = finished.to_dict()
        db.session.delete(finished)
        db.session.flush()

    if room.override_item:
        result.skipped_override = room.override_item
        room.override_item = None

    items = queue_store.list_items(room, fresh=True)
    if not items:
        reset_to_idle(room)
        return result

    try:
        result.next_item = promote(room, _pick_next(items, removed_source_id), now_ms)
    except StuckQueueError as e:
        logging.warning("advance: room=%s queue stuck: %s", room.code, e.message)
        reset_to_idle(room)
        room.stuck_item = removed_source_id
        result.stuck = True
    return result


def autostart_if_idle(room: Room, now_ms: Optional[int] = None) -> Optional[QueueItem]:
    """Start the head of the queue when the room is Idle and the queue is not empty.

    A room parked by a stuck advance stays Idle until an item is added or the host
    plays.
    """
    if room.state != "idle" or room.stuck_item is not None:
        return None
    items = queue_store.list_items(room, fresh=True)
    if not items:
        return None
    return promote(room, items[0], now_ms)
