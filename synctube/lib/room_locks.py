"""
Per-room mutual exclusion for destructive room mutations.

Every queue mutation and every playback transition for a room runs under this lock,
so a manual skip and a vote-triggered skip landing at the same moment are applied one
after the other instead of interleaving. Inside one process a re-entrant lock per room
code serializes callers; when Redis is configured a Redis lock with a lease extends the
exclusion across workers and hosts.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

import redis
from flask import current_app

from ..errors import TransientIOError
from .utils import get_redis_client

_local_locks: dict[str, threading.RLock] = {}
_local_guard = threading.Lock()
# Re-entrancy depth per (thread, room) so nested sections do not re-take the Redis lock
_held = threading.local()


def _get_local_lock(code: str) -> threading.RLock:
    with _local_guard:
        lock = _local_locks.get(code)
        if lock is None:
            lock = threading.RLock()
            _local_locks[code] = lock
        return lock


def _depths() -> dict[str, int]:
    depths = getattr(_held, "depths", None)
    if depths is None:
        depths = {}
        _held.depths = depths
    return depths


def _lock_key(code: str) -> str:
    return f"room:lock:{code}"


@contextmanager
def room_lock(code: str, timeout: Optional[float] = None) -> Iterator[None]:
    """Hold the lock for room ``code`` for the duration of the block.

    Raises TransientIOError when the lock cannot be acquired in time; the caller has
    not mutated anything yet and may retry.
    """
    if timeout is None:
        timeout = float(current_app.config.get("ROOM_LOCK_TIMEOUT_SECONDS", 5))

    local = _get_local_lock(code)
    if not local.acquire(timeout=timeout):
        raise TransientIOError(f"room {code} is busy")

    depths = _depths()
    outermost = depths.get(code, 0) == 0
    depths[code] = depths.get(code, 0) + 1
    distributed = None
    try:
        if outermost:
            client = get_redis_client()
            if client is not None:
                lease = int(current_app.config.get("ROOM_LOCK_LEASE_SECONDS", 15))
                distributed = client.lock(
                    _lock_key(code), timeout=lease, blocking_timeout=timeout
                )
                try:
                    acquired = distributed.acquire()
                except redis.exceptions.RedisError as e:
                    raise TransientIOError(f"room {code} lock unavailable: {e}") from e
                if not acquired:
                    raise TransientIOError(f"room {code} is busy")
        try:
            yield
        finally:
            if distributed is not None:
                try:
                    distributed.release()
                except redis.exceptions.LockError:
                    # Lease expired while we held it; another worker may have taken over
                    logging.warning("room_lock: lease for room %s expired before release", code)
                except redis.exceptions.RedisError as e:
                    logging.warning("room_lock: failed to release lock for room %s: %s", code, e)
    finally:
        depths[code] -= 1
        if depths[code] == 0:
            depths.pop(code, None)
        local.release()
