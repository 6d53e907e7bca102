# Enable postponed annotations to avoid runtime import issues and allow future-style typing
from __future__ import annotations

import time
from typing import Optional, TYPE_CHECKING

from sqlalchemy.orm import Mapped

from ...extensions import db
from ...lib.utils import format_duration

if TYPE_CHECKING:
    from .room import Room

# Sentinel stored in added_by for items injected by the auto-filler
AUTO_ADDED_BY = "auto"


class QueueItem(db.Model):
    """A pending catalog item in a room's queue."""

    # Surrogate primary key id
    id: Mapped[int] = db.Column(db.Integer, primary_key=True)

    # Owning room; indexed to support ordered listing by room
    room_id: Mapped[int] = db.Column(
        db.Integer, db.ForeignKey("room.id"), nullable=False, index=True
    )
    room: Mapped["Room"] = db.relationship("Room", back_populates="queue_items")

    # Catalog (YouTube) video id
    source_id: Mapped[str] = db.Column(db.String(64), nullable=False, index=True)
    # Title fetched from the catalog
    title: Mapped[str] = db.Column(db.String(512), nullable=False, default="")
    # Best available thumbnail URL
    thumbnail_url: Mapped[Optional[str]] = db.Column(db.String(1024), nullable=True)
    # Duration in seconds; null when the catalog did not report one
    duration_seconds: Mapped[Optional[int]] = db.Column(db.Integer, nullable=True)
    # Participant id of the adder, or "auto" for auto-filled items
    added_by: Mapped[str] = db.Column(db.String(64), nullable=False)

    # Room-scoped play order; not required to be contiguous
    order_index: Mapped[int] = db.Column(db.Integer, nullable=False, index=True)
    # Insertion time in epoch ms; breaks order_index ties from racing appends
    created_at_ms: Mapped[int] = db.Column(
        db.BigInteger, nullable=False, default=lambda: int(time.time() * 1000)
    )

    @classmethod
    def ordering(cls) -> tuple:
        return (cls.order_index.asc(), cls.created_at_ms.asc(), cls.id.asc())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "source_id": self.source_id,
            "title": self.title,
            "thumbnail_url": self.thumbnail_url,
            "duration_seconds": self.duration_seconds,
            "duration": format_duration(self.duration_seconds),
            "added_by": self.added_by,
            "order_index": self.order_index,
            "created_at_ms": self.created_at_ms,
        }


__all__ = ["QueueItem", "AUTO_ADDED_BY"]
