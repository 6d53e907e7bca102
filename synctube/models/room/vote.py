# Enable postponed annotations to avoid runtime import issues and allow future-style typing
from __future__ import annotations

import time
from typing import TYPE_CHECKING

from sqlalchemy.orm import Mapped

from ...extensions import db

if TYPE_CHECKING:
    from .room import Room


# A participant's vote to skip a given source id in a room
class Vote(db.Model):
    # Surrogate primary key id
    id: Mapped[int] = db.Column(db.Integer, primary_key=True)
    # Parent room id; indexed for tallies
    room_id: Mapped[int] = db.Column(
        db.Integer, db.ForeignKey("room.id"), nullable=False, index=True
    )
    room: Mapped["Room"] = db.relationship("Room", back_populates="votes")
    # Source id of the item voted against
    source_id: Mapped[str] = db.Column(db.String(64), nullable=False, index=True)
    # Participant id of the voter
    voter_id: Mapped[str] = db.Column(db.String(64), nullable=False)
    # Epoch seconds when the vote was cast
    created_at: Mapped[int] = db.Column(db.Integer, default=lambda: int(time.time()))

    # One vote per voter per item
    __table_args__ = (
        db.UniqueConstraint("room_id", "source_id", "voter_id", name="uq_vote_room_item_voter"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "source_id": self.source_id,
            "voter_id": self.voter_id,
            "created_at": self.created_at,
        }


__all__ = ["Vote"]
