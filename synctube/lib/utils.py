# Enable postponed annotations for forward references
from __future__ import annotations

import logging
import re
import secrets
import sqlite3
import time
from typing import Optional

import redis
from flask import current_app
from sqlalchemy.exc import OperationalError as SAOperationalError

# Room codes are five characters drawn from upper-case letters and digits
ROOM_CODE_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
ROOM_CODE_LENGTH = 5
_ROOM_CODE_RE = re.compile(r"^[A-Z0-9]{5}$")

_ISO_DURATION_RE = re.compile(
    r"^P(?:(\d+)D)?(?:T(?:(\d+)H)?(?:(\d+)M)?(?:(\d+(?:\.\d+)?)S)?)?$"
)

_redis_clients: dict[str, redis.Redis] = {}


# Return current epoch time in milliseconds
def now_ms() -> int:
    return int(time.time() * 1000)


# Return current epoch time in whole seconds
def now_s() -> int:
    return int(time.time())


def generate_room_id() -> str:
    return "".join(secrets.choice(ROOM_CODE_ALPHABET) for _ in range(ROOM_CODE_LENGTH))


def is_valid_room_id(value: str) -> bool:
    return bool(value) and isinstance(value, str) and bool(_ROOM_CODE_RE.match(value))


def normalize_room_id(value: Optional[str]) -> str:
    return (value or "").strip().upper()


def parse_iso8601_duration(value: str) -> Optional[int]:
    """Parse a YouTube ISO 8601 duration (``PT4M13S``) into whole seconds.

    Returns None for missing or unparseable values. Live streams report ``P0D``,
    which parses to 0.
    """
    m = _ISO_DURATION_RE.match(value or "")
    if not m or value in ("P", "PT"):
        return None
    days = int(m.group(1) or 0)
    hours = int(m.group(2) or 0)
    minutes = int(m.group(3) or 0)
    seconds = float(m.group(4) or 0)
    return int((days * 86400) + (hours * 3600) + (minutes * 60) + seconds)


def format_duration(seconds: Optional[int]) -> str:
    if seconds is None:
        return "Unknown"
    hours, rest = divmod(int(seconds), 3600)
    minutes, secs = divmod(rest, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


# Commit a SQLAlchemy session, rolling back on any failure
def commit_or_rollback(session) -> None:
    """Commit the SQLAlchemy session; on failure roll back and re-raise.

    Nothing is retried here: after a rollback the unit of work is gone. SQLite lock
    contention is waited out by the connection's ``busy_timeout``.
    """
    try:
        session.commit()
    except (sqlite3.OperationalError, SAOperationalError) as e:
        session.rollback()
        if "database is locked" in str(e).lower():
            logging.warning("commit: database is locked, transaction rolled back")
        raise
    except Exception:
        session.rollback()
        raise


def get_redis_client() -> Optional[redis.Redis]:
    """
    Get a Redis client for room locks and background slot leases.
    Uses REDIS_URL, falling back to the Socket.IO message queue DSN.
    Returns None if Redis is not configured or unreachable.
    """
    url = current_app.config.get("REDIS_URL") or current_app.config.get(
        "SOCKETIO_MESSAGE_QUEUE", ""
    )
    if not url or not url.startswith(("redis://", "rediss://", "unix://")):
        return None

    client = _redis_clients.get(url)
    if client is not None:
        return client

    try:
        client = redis.Redis.from_url(
            url, decode_responses=True, socket_connect_timeout=2
        )
        # Test connection
        client.ping()
    except redis.exceptions.RedisError as e:
        logging.warning("Failed to connect to Redis: %s", e)
        return None
    _redis_clients[url] = client
    return client
