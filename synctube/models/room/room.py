# Enable postponed annotations to avoid runtime import issues and allow future-style typing
from __future__ import annotations

import time
from typing import Callable, Optional, TYPE_CHECKING

# SQLAlchemy typing helper for mapped attributes / relationships
from sqlalchemy.orm import Mapped

# Import the SQLAlchemy instance and socketio from the shared extensions module
from ...extensions import db, socketio

if TYPE_CHECKING:
    # Imported only for static type checking to avoid circular imports
    from .presence import PresenceRecord
    from .queue_item import QueueItem
    from .vote import Vote


# A room is one shared listening session identified by a five character code
class Room(db.Model):
    # Surrogate primary key id
    id: Mapped[int] = db.Column(db.Integer, primary_key=True)
    # Public room code clients use to join (A-Z, 0-9); unique so collisions surface as conflicts
    code: Mapped[str] = db.Column(db.String(5), unique=True, index=True, nullable=False)
    # Display name chosen by the creator
    name: Mapped[str] = db.Column(db.String(128), nullable=False)
    # Optional password hash; verification is delegated to werkzeug
    password_hash: Mapped[Optional[str]] = db.Column(db.String(256), nullable=True)
    # Participant id of the host; fixed for the room's lifetime and sole writer of playback fields
    host_id: Mapped[str] = db.Column(db.String(64), nullable=False)

    # Source id of the queue item that is playing, null when idle
    current_item: Mapped[Optional[str]] = db.Column(db.String(64), nullable=True)
    # order_index of the playing queue item
    current_order: Mapped[int] = db.Column(db.Integer, default=0, nullable=False)
    # Whether playback is running
    is_playing: Mapped[bool] = db.Column(db.Boolean, default=False, nullable=False)
    # Playback offset in seconds, sampled at playing_since_ms while playing
    current_position: Mapped[float] = db.Column(db.Float, default=0.0, nullable=False)
    # Epoch ms when current_position was sampled; null while paused or idle
    playing_since_ms: Mapped[Optional[int]] = db.Column(db.BigInteger, nullable=True)
    # Host-selected "play now" source id; pre-empts current_item for rendering only
    override_item: Mapped[Optional[str]] = db.Column(db.String(64), nullable=True)
    # Source id a stuck advance refused to repeat; auto-start stays off until the queue changes
    stuck_item: Mapped[Optional[str]] = db.Column(db.String(64), nullable=True)

    # Whether the auto-filler keeps this room's queue topped up
    autofill_enabled: Mapped[bool] = db.Column(db.Boolean, default=True, nullable=False)
    # Absolute expiry (epoch seconds); the room is expired once now passes it
    expires_at: Mapped[int] = db.Column(db.Integer, nullable=False, index=True)
    # Soft-delete flag; inactive rooms cannot be joined
    active: Mapped[bool] = db.Column(db.Boolean, default=True, nullable=False)
    # Epoch seconds when the room was created
    created_at: Mapped[int] = db.Column(db.Integer, default=lambda: int(time.time()))

    # Queue, votes and presence live and die with their room
    queue_items: Mapped[list["QueueItem"]] = db.relationship(
        "QueueItem", back_populates="room", lazy=True, cascade="all, delete-orphan"
    )
    votes: Mapped[list["Vote"]] = db.relationship(
        "Vote", back_populates="room", lazy=True, cascade="all, delete-orphan"
    )
    presence: Mapped[list["PresenceRecord"]] = db.relationship(
        "PresenceRecord", back_populates="room", lazy=True, cascade="all, delete-orphan"
    )

    @property
    def state(self) -> str:
        """idle | paused | playing"""
        if self.current_item is None and self.override_item is None:
            return "idle"
        return "playing" if self.is_playing else "paused"

    @property
    def playing_item(self) -> Optional[str]:
        """Source id clients should render: the override wins over the queue item."""
        return self.override_item or self.current_item

    def is_expired(self, now: Optional[int] = None) -> bool:
        now = int(time.time()) if now is None else now
        return now > self.expires_at

    def effective_position(self, now_ms: Optional[int] = None) -> float:
        """Live playback offset in seconds according to the room's virtual clock."""
        position = float(self.current_position or 0.0)
        if self.is_playing and self.playing_since_ms:
            now_ms = int(time.time() * 1000) if now_ms is None else now_ms
            position += max(0, now_ms - self.playing_since_ms) / 1000.0
        return position

    @staticmethod
    def emit(code: str, trigger: str, sid: Optional[str] = None) -> tuple[Callable, Callable]:
        """Return (resolve, reject) helpers for emitting Socket.IO events for this room.

        - resolve(event, payload) -> emits with ``trigger`` and ``code`` injected.
        - reject(error, state='error', event='room.error') -> emits an error payload.

        Both go to ``sid`` when given (acknowledging the caller), otherwise to ``room:{code}``.
        """
        target = sid or f"room:{code}"

        def resolve(event: str, payload: Optional[dict] = None) -> None:
            payload = payload or {}
            socketio.emit(
                event,
                {
                    "trigger": trigger,
                    "code": code,
                    **payload,
                },
                to=target,
            )

        def reject(
            error: str,
            state: str = "error",
            event: str = "room.error",
        ) -> None:
            socketio.emit(
                event,
                {
                    "trigger": trigger,
                    "code": code,
                    "state": state,
                    "error": error,
                },
                to=target,
            )

        return resolve, reject

    def to_dict(self, now_ms: Optional[int] = None) -> dict:
        now_ms = int(time.time() * 1000) if now_ms is None else now_ms
        return {
            "code": self.code,
            "name": self.name,
            "has_password": bool(self.password_hash),
            "host_id": self.host_id,
            "state": self.state,
            "current_item": self.current_item,
            "current_order": self.current_order,
            "is_playing": self.is_playing,
            "current_position": self.effective_position(now_ms),
            "override_item": self.override_item,
            "stuck_item": self.stuck_item,
            "autofill_enabled": self.autofill_enabled,
            "expires_at": self.expires_at,
            "expired": self.is_expired(now_ms // 1000),
            "active": self.active,
            "created_at": self.created_at,
            "server_now_ms": now_ms,
        }


__all__ = ["Room"]
