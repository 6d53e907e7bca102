"""Room lifetime: absolute expiry and the gated extension protocol."""
from __future__ import annotations

from typing import Iterable, Optional

from flask import current_app

from ..errors import NotFoundError, UnauthorizedError
from ..lib.utils import now_s
from ..models import Room


def initial_expiry(now: Optional[int] = None) -> int:
    now = now_s() if now is None else now
    return now + int(current_app.config.get("ROOM_TTL_SECONDS", 7200))


def new_expiry(current_expiry: int, now: int, grant_seconds: int) -> int:
    """Extensions stack on a live room and restart from now on an expired one."""
    return max(now, int(current_expiry or 0)) + int(grant_seconds)


def is_valid_code(code: Optional[str], allowed: Iterable[str]) -> bool:
    return (code or "").strip() in {c.strip() for c in allowed}


def extend(room: Room, code: Optional[str] = None, now: Optional[int] = None) -> int:
    """Push the room's expiry out by the fixed grant and return the new expiry.

    The code is optional, but one that is supplied must be on the allow-list. Expired
    rooms that have not been swept yet can still be extended.
    """
    if code is not None and str(code).strip():
        if not is_valid_code(str(code), current_app.config.get("EXTEND_CODES") or []):
            raise UnauthorizedError("room.extend: invalid extension code")
    now = now_s() if now is None else now
    grant = int(current_app.config.get("EXTEND_GRANT_SECONDS", 7200))
    room.expires_at = new_expiry(room.expires_at, now, grant)
    return room.expires_at


def ensure_live(room: Room, now: Optional[int] = None) -> None:
    """Reject mutations on an expired room."""
    if room.is_expired(now):
        raise NotFoundError(f"room {room.code} has expired", expired=True)
