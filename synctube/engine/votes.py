"""
Skip-vote aggregation.

A skip is due once the votes for the current item reach half the active population,
rounded up. The threshold moves with presence: as listeners drop out of the window
fewer votes are needed, so the check is re-run on a timer and not only when a vote
arrives.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from ..extensions import db
from ..errors import ValidationError
from ..models import Room, Vote
from . import presence


@dataclass
class Tally:
    source_id: Optional[str]
    votes: int
    active_users: int
    threshold: int

    @property
    def reached(self) -> bool:
        return self.source_id is not None and self.threshold > 0 and self.votes >= self.threshold

    def to_dict(self) -> dict:
        return {
            "source_id": self.source_id,
            "votes": self.votes,
            "active_users": self.active_users,
            "threshold": self.threshold,
            "reached": self.reached,
        }


def threshold(active_users: int) -> int:
    return math.ceil(max(0, active_users) / 2)


def cast(room: Room, source_id: str, voter_id: str) -> bool:
    """Record a vote. Returns False when this voter already voted for the item."""
    source_id = (source_id or "").strip()
    if not source_id:
        raise ValidationError("vote.skip: source_id required")
    exists = (
        db.session.query(Vote.id)
        .filter_by(room_id=room.id, source_id=source_id, voter_id=voter_id)
        .first()
    )
    if exists:
        return False
    # Callers hold the room lock, so the check above cannot race another insert
    db.session.add(Vote(room_id=room.id, source_id=source_id, voter_id=voter_id))
    db.session.flush()
    return True


def count(room: Room, source_id: str) -> int:
    return db.session.query(Vote).filter_by(room_id=room.id, source_id=source_id).count()


def tally(room: Room, now_ms: Optional[int] = None) -> Tally:
    """Votes against the current item versus the threshold for the active population."""
    active_users = presence.active_count(room, now_ms)
    source_id = room.current_item
    votes = count(room, source_id) if source_id else 0
    return Tally(
        source_id=source_id,
        votes=votes,
        active_users=active_users,
        threshold=threshold(active_users),
    )


def purge(room: Room, source_id: str) -> int:
    return (
        db.session.query(Vote)
        .filter_by(room_id=room.id, source_id=source_id)
        .delete(synchronize_session=False)
    )


def purge_all(room: Room) -> int:
    return db.session.query(Vote).filter_by(room_id=room.id).delete(synchronize_session=False)
