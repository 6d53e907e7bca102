"""
Room coordinator.

Composes presence, queue, votes, playback, auto-fill and session lifecycle into the
operations the transports call. Every mutation follows the same shape:

1. take the room lock,
2. load the room fresh and reject expired or inactive rooms,
3. run the engine call, which checks authorization before touching anything,
4. commit once (any storage failure rolls the whole operation back),
5. emit ``room.changed`` to the room channel and queue the room for reconciliation.

Reconciliation is the host-side agent: it evaluates the skip-vote threshold and starts
idle rooms, but only while the host is present. It is fed by the change events queued
here and by a fixed-interval sweep over all live rooms (see views/ws/rooms/heartbeat.py).
"""
from __future__ import annotations

import logging
import queue
import uuid
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from werkzeug.security import check_password_hash, generate_password_hash

from ..catalog import youtube
from ..errors import (
    CatalogExhaustedError,
    ConflictError,
    NotFoundError,
    SyncTubeError,
    TransientIOError,
    UnauthorizedError,
    ValidationError,
)
from ..extensions import db, socketio
from ..helpers.ws import issue_session_token
from ..lib.room_locks import room_lock
from ..lib.utils import (
    commit_or_rollback,
    generate_room_id,
    is_valid_room_id,
    normalize_room_id,
    now_ms as _now_ms,
    now_s,
)
from ..models import Room
from . import autofill, playback, presence, queue_store, session, votes
from .common import is_host, require_host

# Room codes with pending changes, drained by the reconcile loop
_events: "queue.Queue[str]" = queue.Queue()
# Only buffer events once a reconcile loop runs in this process
_events_enabled: bool = False

MAX_NAME_LENGTH = 128
MAX_PARTICIPANT_ID_LENGTH = 64


class _Mutation:
    def __init__(self, room: Room):
        self.room = room
        # Whether subscribers should be told to re-read
        self.changed = True


def _require_participant(participant_id: Optional[str]) -> str:
    participant_id = (participant_id or "").strip()
    if not participant_id:
        raise ValidationError("participant id required")
    if len(participant_id) > MAX_PARTICIPANT_ID_LENGTH:
        raise ValidationError("participant id too long")
    return participant_id


def _load_room(code: str, *, allow_expired: bool = False, now: Optional[int] = None) -> Room:
    room = db.session.query(Room).filter_by(code=code).populate_existing().first()
    if room is None or not room.active:
        raise NotFoundError(f"room {code} not found")
    if not allow_expired:
        session.ensure_live(room, now)
    return room


@contextmanager
def _mutate(code: str, entity: str, change: str, *, allow_expired: bool = False) -> Iterator[_Mutation]:
    code = normalize_room_id(code)
    with room_lock(code):
        try:
            op = _Mutation(_load_room(code, allow_expired=allow_expired))
            yield op
            commit_or_rollback(db.session)
        except SyncTubeError:
            db.session.rollback()
            raise
        except SQLAlchemyError as e:
            db.session.rollback()
            logging.warning(
                "%s.%s: room=%s storage failure, nothing written: %s", entity, change, code, e
            )
            raise TransientIOError(f"{entity}.{change}: storage unavailable") from e
    if op.changed:
        notify(code, entity, change)


def notify(code: str, entity: str, change: str) -> None:
    """Tell subscribers of ``room:{code}`` to re-read, and queue the room for reconcile."""
    socketio.emit(
        "room.changed",
        {"code": code, "entity": entity, "change": change},
        to=f"room:{code}",
    )
    if _events_enabled:
        _events.put(code)


def enable_events() -> None:
    global _events_enabled
    _events_enabled = True


def disable_events() -> None:
    global _events_enabled
    _events_enabled = False
    pending_rooms()


def pending_rooms() -> set[str]:
    """Drain the change-event queue; each room appears once however often it changed."""
    codes: set[str] = set()
    while True:
        try:
            codes.add(_events.get_nowait())
        except queue.Empty:
            return codes


def live_room_codes(now: Optional[int] = None) -> list[str]:
    now = now_s() if now is None else now
    rows = (
        db.session.query(Room.code)
        .filter(Room.active.is_(True), Room.expires_at >= now)
        .all()
    )
    return [code for (code,) in rows]


# ---------------------------------------------------------------------------
# Rooms and sessions
# ---------------------------------------------------------------------------


def create_room(
    name: str,
    password: Optional[str] = None,
    participant_id: Optional[str] = None,
    code: Optional[str] = None,
) -> dict:
    """Create a room hosted by ``participant_id`` and return its session."""
    name = (name or "").strip()
    if not name:
        raise ValidationError("room.create: name required")
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError("room.create: name too long")
    participant_id = _require_participant(participant_id or uuid.uuid4().hex)

    requested = normalize_room_id(code) if code else None
    if requested and not is_valid_room_id(requested):
        raise ValidationError("room.create: code must be 5 characters A-Z or 0-9")
    attempts = 1 if requested else max(1, int(current_app.config.get("ROOM_ID_MAX_ATTEMPTS", 10)))
    password_hash = generate_password_hash(password) if password else None

    for attempt in range(attempts):
        candidate = requested or generate_room_id()
        now = _now_ms()
        room = Room(
            code=candidate,
            name=name,
            password_hash=password_hash,
            host_id=participant_id,
            expires_at=session.initial_expiry(now // 1000),
            created_at=now // 1000,
        )
        try:
            db.session.add(room)
            db.session.flush()
            presence.heartbeat(room, participant_id, now)
            commit_or_rollback(db.session)
        except IntegrityError:
            db.session.rollback()
            if requested:
                raise ConflictError(f"room code {candidate} is taken", room_code=candidate)
            logging.info("room.create: code collision on %s (attempt %s)", candidate, attempt + 1)
            continue
        except SQLAlchemyError as e:
            db.session.rollback()
            logging.warning("room.create: storage failure: %s", e)
            raise TransientIOError("room.create: storage unavailable") from e

        logging.info("room.create: code=%s host=%s", candidate, participant_id)
        return {
            "code": candidate,
            "participant_id": participant_id,
            "token": issue_session_token(participant_id, candidate),
            "is_host": True,
            "snapshot": snapshot(candidate),
        }

    raise ConflictError("room.create: could not allocate a unique room code")


def join_room(
    code: str, participant_id: Optional[str] = None, password: Optional[str] = None
) -> dict:
    """Join a room. Expired rooms that have not been swept stay joinable so they can be extended."""
    code = normalize_room_id(code)
    participant_id = _require_participant(participant_id or uuid.uuid4().hex)
    with _mutate(code, "presence", "join", allow_expired=True) as op:
        room = op.room
        if room.password_hash and not (
            password and check_password_hash(room.password_hash, password)
        ):
            raise UnauthorizedError("room.join: wrong password")
        op.changed = presence.heartbeat(room, participant_id)
        host = is_host(room, participant_id)

    return {
        "code": code,
        "participant_id": participant_id,
        "token": issue_session_token(participant_id, code),
        "is_host": host,
        "heartbeat_interval": int(current_app.config.get("HEARTBEAT_INTERVAL_SECONDS", 15)),
        "snapshot": snapshot(code),
    }


def heartbeat(code: str, participant_id: str) -> dict:
    participant_id = _require_participant(participant_id)
    now = _now_ms()
    with _mutate(code, "presence", "heartbeat", allow_expired=True) as op:
        # Refreshing an already-active participant changes nothing anyone renders
        op.changed = presence.heartbeat(op.room, participant_id, now)
        result = {
            "active_users": presence.active_count(op.room, now),
            "expired": op.room.is_expired(now // 1000),
            "server_now_ms": now,
        }
    return result


def extend(code: str, extend_code: Optional[str] = None) -> dict:
    with _mutate(code, "room", "extend", allow_expired=True) as op:
        expires_at = session.extend(op.room, extend_code)
    logging.info("room.extend: room=%s expires_at=%s", normalize_room_id(code), expires_at)
    return {"expires_at": expires_at, "expired": False}


def set_autofill(code: str, participant_id: str, enabled: bool) -> dict:
    with _mutate(code, "room", "autofill") as op:
        require_host(op.room, participant_id, "room.settings.autofill")
        op.room.autofill_enabled = bool(enabled)
    return {"autofill_enabled": bool(enabled)}


def snapshot(code: str, now_ms: Optional[int] = None) -> dict:
    """Fresh read of everything a client renders for a room."""
    code = normalize_room_id(code)
    now = _now_ms() if now_ms is None else now_ms
    try:
        room = _load_room(code, allow_expired=True)
        items = queue_store.list_items(room, fresh=True)
        playing = queue_store.now_playing(room)
        tally = votes.tally(room, now)
        return {
            "room": room.to_dict(now),
            "queue": [item.to_dict() for item in items],
            "now_playing": playing.to_dict() if playing else None,
            "votes": tally.to_dict(),
            "active_users": tally.active_users,
            "participants": presence.active_participants(room, now),
            "expired": room.is_expired(now // 1000),
        }
    except SQLAlchemyError as e:
        db.session.rollback()
        raise TransientIOError(f"room.snapshot: storage unavailable ({e})") from e


def list_active_rooms(now_ms: Optional[int] = None) -> list[dict]:
    now = _now_ms() if now_ms is None else now_ms
    rooms = (
        db.session.query(Room)
        .filter(Room.active.is_(True), Room.expires_at >= now // 1000)
        .order_by(Room.created_at.desc())
        .all()
    )
    listing = []
    for room in rooms:
        playing = queue_store.now_playing(room)
        listing.append(
            {
                "code": room.code,
                "name": room.name,
                "has_password": bool(room.password_hash),
                "active_users": presence.active_count(room, now),
                "state": room.state,
                "playing_item": room.playing_item,
                "playing_title": playing.title if playing else None,
                "expires_at": room.expires_at,
            }
        )
    return listing


def search(query: str) -> list[dict]:
    return youtube.search(query)


# ---------------------------------------------------------------------------
# Playback (host only)
# ---------------------------------------------------------------------------


def toggle_play_pause(code: str, participant_id: str, position: Optional[float] = None) -> dict:
    with _mutate(code, "room", "toggle") as op:
        playback.toggle(op.room, participant_id, position=position)
        state = op.room.to_dict()
    return state


def play(code: str, participant_id: str) -> dict:
    with _mutate(code, "room", "play") as op:
        playback.play(op.room, participant_id)
        state = op.room.to_dict()
    return state


def pause(code: str, participant_id: str, position: Optional[float] = None) -> dict:
    with _mutate(code, "room", "pause") as op:
        op.changed = playback.pause(op.room, participant_id, position=position)
        state = op.room.to_dict()
    return state


def seek(code: str, participant_id: str, position: float) -> dict:
    with _mutate(code, "room", "seek") as op:
        playback.seek(op.room, participant_id, position)
        state = op.room.to_dict()
    return state


def play_override(code: str, participant_id: str, source_id: str) -> dict:
    with _mutate(code, "room", "override") as op:
        playback.play_override(op.room, participant_id, source_id)
        state = op.room.to_dict()
    return state


def _advance(code: str, participant_id: str, expected_item: str, change: str) -> dict:
    with _mutate(code, "room", change) as op:
        result = playback.advance(op.room, participant_id, expected_item=expected_item)
        if result.removed:
            votes.purge(op.room, result.removed["source_id"])
        if result.skipped_override:
            votes.purge(op.room, result.skipped_override)
        op.changed = result.advanced
        payload = result.to_dict()
    return payload


def skip(code: str, participant_id: str, source_id: str) -> dict:
    """Host skip of ``source_id``, the item the host's client shows as playing."""
    source_id = (source_id or "").strip()
    if not source_id:
        raise ValidationError("room.control.skip: source_id required")
    return _advance(code, participant_id, source_id, "skip")


def track_ended(code: str, participant_id: str, source_id: str) -> dict:
    """The host's player finished ``source_id``; duplicate reports advance once."""
    source_id = (source_id or "").strip()
    if not source_id:
        raise ValidationError("player.ended: source_id required")
    return _advance(code, participant_id, source_id, "ended")


def media_error(code: str, participant_id: str, source_id: str, reason: Optional[str] = None) -> dict:
    """The host's player could not play ``source_id``; move on to a different candidate."""
    source_id = (source_id or "").strip()
    if not source_id:
        raise ValidationError("player.error: source_id required")
    logging.warning(
        "player.error: room=%s source=%s reason=%s", normalize_room_id(code), source_id, reason
    )
    return _advance(code, participant_id, source_id, "media_error")


# ---------------------------------------------------------------------------
# Queue and votes (any participant, with per-operation authorization)
# ---------------------------------------------------------------------------


def _as_int(value, field_name: str, action: str) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{action}: {field_name} must be an integer")


def add_to_queue(code: str, participant_id: str, item: dict) -> dict:
    participant_id = _require_participant(participant_id)
    item = item or {}
    duration = _as_int(item.get("duration_seconds"), "duration_seconds", "queue.add")
    with _mutate(code, "queue", "add") as op:
        added = queue_store.append(
            op.room,
            source_id=item.get("source_id"),
            title=item.get("title") or "",
            thumbnail_url=item.get("thumbnail_url"),
            duration_seconds=duration,
            added_by=participant_id,
        )
        payload = added.to_dict()
    return payload


def remove_from_queue(code: str, participant_id: str, item_id) -> dict:
    item_id = _as_int(item_id, "id", "queue.remove")
    if item_id is None:
        raise ValidationError("queue.remove: id required")
    with _mutate(code, "queue", "remove") as op:
        item = queue_store.get_item(op.room, item_id)
        payload = item.to_dict()
        queue_store.remove(op.room, item_id, participant_id)
        votes.purge(op.room, payload["source_id"])
    return payload


def move_queue_item(code: str, participant_id: str, item_id, direction: str) -> list[dict]:
    item_id = _as_int(item_id, "id", "queue.move")
    if item_id is None:
        raise ValidationError("queue.move: id required")
    with _mutate(code, "queue", "move") as op:
        moved = queue_store.reorder(op.room, item_id, direction, participant_id)
        op.changed = bool(moved)
        payload = [item.to_dict() for item in moved]
    return payload


def clear_queue(code: str, participant_id: str) -> dict:
    with _mutate(code, "queue", "clear") as op:
        removed = queue_store.clear(op.room, participant_id)
        votes.purge_all(op.room)
        playback.reset_to_idle(op.room)
    return {"removed": removed}


def vote(code: str, participant_id: str, source_id: str) -> dict:
    """Record a skip vote. The threshold is acted on by reconcile(), not here."""
    participant_id = _require_participant(participant_id)
    with _mutate(code, "vote", "skip") as op:
        recorded = votes.cast(op.room, source_id, participant_id)
        op.changed = recorded
        tally = votes.tally(op.room).to_dict()
    return {"recorded": recorded, "tally": tally}


# ---------------------------------------------------------------------------
# Host-side agents
# ---------------------------------------------------------------------------


def reconcile(code: str, now_ms: Optional[int] = None) -> Optional[str]:
    """Act on a room's derived state: vote-skip when the threshold is met, else auto-start.

    Runs only while the host is present. Returns the action taken, if any.
    """
    now = _now_ms() if now_ms is None else now_ms
    action = None
    try:
        with _mutate(code, "room", "reconcile") as op:
            room = op.room
            if presence.is_active(room, room.host_id, now):
                tally = votes.tally(room, now)
                if tally.reached:
                    # Purge first so the same tally cannot fire again against the next item
                    votes.purge(room, tally.source_id)
                    result = playback.advance(
                        room, room.host_id, expected_item=tally.source_id, now_ms=now
                    )
                    if result.removed:
                        votes.purge(room, result.removed["source_id"])
                    action = "vote_skip"
                    logging.info(
                        "reconcile: room=%s vote skip of %s (%s/%s of %s active)",
                        room.code,
                        tally.source_id,
                        tally.votes,
                        tally.threshold,
                        tally.active_users,
                    )
                elif playback.autostart_if_idle(room, now) is not None:
                    action = "autostart"
                    logging.info("reconcile: room=%s auto-started %s", room.code, room.current_item)
            op.changed = action is not None
    except NotFoundError:
        return None
    return action


def autofill_tick(
    code: str,
    now_ms: Optional[int] = None,
    fetch: Optional[Callable[[], Optional[dict]]] = None,
) -> Optional[dict]:
    """One auto-fill cycle for a room. Returns the added item, if any.

    The catalog is queried outside the room lock; the trigger and the exclusion set are
    checked again under the lock before appending.
    """
    code = normalize_room_id(code)
    now = _now_ms() if now_ms is None else now_ms
    try:
        room = _load_room(code)
    except NotFoundError:
        return None
    if not room.autofill_enabled or not presence.is_active(room, room.host_id, now):
        return None
    items = queue_store.list_items(room, fresh=True)
    if not autofill.should_fill(items, now):
        return None
    excluded = autofill.exclusions(room, items)
    # End the read transaction before the network round trips
    db.session.rollback()

    try:
        candidate = autofill.find_candidate(excluded, fetch or youtube.random_candidate)
    except CatalogExhaustedError as e:
        logging.warning("autofill: room=%s skipped cycle: %s", code, e.message)
        return None

    added = None
    try:
        with _mutate(code, "queue", "autofill") as op:
            room = op.room
            items = queue_store.list_items(room, fresh=True)
            if not room.autofill_enabled or not autofill.should_fill(items, now):
                op.changed = False
            elif candidate["source_id"] in autofill.exclusions(room, items):
                logging.info(
                    "autofill: room=%s %s was queued meanwhile", code, candidate["source_id"]
                )
                op.changed = False
            else:
                added = autofill.append_candidate(room, candidate, now).to_dict()
    except NotFoundError:
        return None
    return added
