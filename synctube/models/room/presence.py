# Enable postponed annotations to avoid runtime import issues and allow future-style typing
from __future__ import annotations

import time
from typing import TYPE_CHECKING

from sqlalchemy.orm import Mapped

from ...extensions import db

if TYPE_CHECKING:
    from .room import Room


# Last heartbeat of a participant in a room; rows are never deleted, they age out
class PresenceRecord(db.Model):
    # Surrogate primary key id
    id: Mapped[int] = db.Column(db.Integer, primary_key=True)
    # Parent room id
    room_id: Mapped[int] = db.Column(
        db.Integer, db.ForeignKey("room.id"), nullable=False, index=True
    )
    room: Mapped["Room"] = db.relationship("Room", back_populates="presence")
    # Opaque, client-generated participant id
    participant_id: Mapped[str] = db.Column(db.String(64), nullable=False)
    # Epoch ms of the last heartbeat; indexed for the active-window count
    last_seen_ms: Mapped[int] = db.Column(
        db.BigInteger, nullable=False, index=True, default=lambda: int(time.time() * 1000)
    )

    # Ensure a participant has at most one presence row per room
    __table_args__ = (
        db.UniqueConstraint("room_id", "participant_id", name="uq_presence_room_participant"),
    )


__all__ = ["PresenceRecord"]
