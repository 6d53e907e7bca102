"""
Presence tracking: per-participant heartbeats and the active-user count.

Rows are upserted on every heartbeat and never deleted here; a participant stops
counting once their last heartbeat falls outside the presence window.
"""
from __future__ import annotations

from typing import Optional

from flask import current_app

from ..extensions import db
from ..lib.utils import now_ms as _now_ms
from ..models import PresenceRecord, Room


def window_ms() -> int:
    return int(current_app.config.get("PRESENCE_WINDOW_SECONDS", 30)) * 1000


def heartbeat(room: Room, participant_id: str, now_ms: Optional[int] = None) -> bool:
    """Record a heartbeat. Returns True when the participant was not active before."""
    now_ms = _now_ms() if now_ms is None else now_ms
    record = (
        db.session.query(PresenceRecord)
        .filter_by(room_id=room.id, participant_id=participant_id)
        .first()
    )
    if record is None:
        db.session.add(
            PresenceRecord(room_id=room.id, participant_id=participant_id, last_seen_ms=now_ms)
        )
        return True
    was_active = now_ms - record.last_seen_ms <= window_ms()
    record.last_seen_ms = max(record.last_seen_ms, now_ms)
    return not was_active


def active_count(room: Room, now_ms: Optional[int] = None) -> int:
    now_ms = _now_ms() if now_ms is None else now_ms
    return (
        db.session.query(PresenceRecord)
        .filter(
            PresenceRecord.room_id == room.id,
            PresenceRecord.last_seen_ms >= now_ms - window_ms(),
        )
        .count()
    )


def active_participants(room: Room, now_ms: Optional[int] = None) -> list[str]:
    now_ms = _now_ms() if now_ms is None else now_ms
    rows = (
        db.session.query(PresenceRecord.participant_id)
        .filter(
            PresenceRecord.room_id == room.id,
            PresenceRecord.last_seen_ms >= now_ms - window_ms(),
        )
        .order_by(PresenceRecord.participant_id.asc())
        .all()
    )
    return [participant_id for (participant_id,) in rows]


def is_active(room: Room, participant_id: str, now_ms: Optional[int] = None) -> bool:
    now_ms = _now_ms() if now_ms is None else now_ms
    return (
        db.session.query(PresenceRecord.id)
        .filter(
            PresenceRecord.room_id == room.id,
            PresenceRecord.participant_id == participant_id,
            PresenceRecord.last_seen_ms >= now_ms - window_ms(),
        )
        .first()
        is not None
    )
