"""
Background slot claiming for multi-worker deployments.

Every Gunicorn worker imports the app, but the reconcile and auto-fill loops act as the
room host's agent and must not run once per worker: two auto-fillers would both append
a filler, two reconcilers would both try to vote-skip. Workers therefore "claim" one of
N slots per task at startup and only claimants start the loop.

A file lock is preferred (released by the OS when the worker dies); a Redis lease is
the fallback when the instance directory is not usable.
"""

from __future__ import annotations

import fcntl
import logging
import os
from pathlib import Path
from typing import IO, Optional

import redis
from flask import Flask

from ..config import Config
from .utils import get_redis_client

_claims: dict[str, Optional[str]] = {}
_fds: dict[str, IO[str]] = {}
# Redis keys held per task; the lease expires unless the owning loop renews it
_leases: dict[str, str] = {}


def _lock_dir(app: Flask) -> Path:
    configured = (app.config.get("BACKGROUND_TASK_LOCK_DIR") or "").strip()
    if configured:
        base = Path(configured)
        return base if base.name in ("lock", "locks") else (base / "locks")
    version = app.config.get("VERSION", Config.VERSION)
    return Path(Config._ROOT) / "instance" / str(version) / "locks"


def _slot_name(app: Flask, task: str, index: int) -> str:
    app_name = app.config.get("APP_NAME", Config.APP_NAME)
    version = app.config.get("VERSION", Config.VERSION)
    return f"{app_name}.{version}.{task}.bgslot.{index}"


def _claim_file_slot(app: Flask, task: str, nslots: int) -> Optional[str]:
    lock_dir = _lock_dir(app)
    lock_dir.mkdir(parents=True, exist_ok=True)
    for i in range(1, nslots + 1):
        lock_path = lock_dir / f"{_slot_name(app, task, i)}.lock"
        fd = open(lock_path, "a+", encoding="utf-8")
        try:
            fcntl.flock(fd.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            fd.close()
            continue
        # Keep fd open for process lifetime to retain the lock
        fd.seek(0)
        fd.truncate()
        fd.write(f"pid={os.getpid()} task={task}\n")
        fd.flush()
        _fds[task] = fd
        return f"file:{lock_path}"
    return None


def _claim_redis_slot(app: Flask, task: str, nslots: int) -> Optional[str]:
    with app.app_context():
        client = get_redis_client()
    if client is None:
        return None
    lease = max(5, int(app.config.get("BACKGROUND_TASK_LEASE_SECONDS", 60)))
    for i in range(1, nslots + 1):
        key = f"synctube:{_slot_name(app, task, i)}"
        if client.set(key, str(os.getpid()), nx=True, ex=lease):
            _leases[task] = key
            return f"redis:{key}"
    return None


def claim_background_slot(
    app: Flask, *, task: str = "background", slots: Optional[int] = None
) -> Optional[str]:
    """
    Try to claim one of N background slots for ``task``.

    Returns a string describing the claim ("file:/path/lock" or "redis:key") when
    successful, otherwise None. The result is cached per task for the process lifetime.
    """
    if task in _claims:
        return _claims[task]

    nslots = max(0, int(slots if slots is not None else app.config.get("BACKGROUND_TASK_SLOTS", 1)))
    claim: Optional[str] = None
    if nslots > 0:
        try:
            claim = _claim_file_slot(app, task, nslots)
        except OSError as e:
            logging.warning("background_slots: file lock unavailable for %s: %s", task, e)
            try:
                claim = _claim_redis_slot(app, task, nslots)
            except redis.exceptions.RedisError as e:
                logging.warning("background_slots: redis lease failed for %s: %s", task, e)

    _claims[task] = claim
    return claim


def renew_background_slot(app: Flask, task: str) -> bool:
    """Push out the Redis lease for ``task``; call it more often than the lease lasts.

    File claims need no renewal and always report True. Returns False when the lease
    was lost (expired and taken by another worker), in which case the caller must
    stop its loop.
    """
    key = _leases.get(task)
    if key is None:
        return bool(_claims.get(task))
    with app.app_context():
        client = get_redis_client()
    if client is None:
        logging.warning("background_slots: redis unavailable, cannot renew %s", key)
        return True
    lease = max(5, int(app.config.get("BACKGROUND_TASK_LEASE_SECONDS", 60)))
    try:
        owner = client.get(key)
        if owner is not None and owner != str(os.getpid()):
            logging.warning("background_slots: lease %s now held by pid %s", key, owner)
            return False
        if owner is None:
            # Expired but unclaimed; take it back
            return bool(client.set(key, str(os.getpid()), nx=True, ex=lease))
        client.expire(key, lease)
    except redis.exceptions.RedisError as e:
        logging.warning("background_slots: failed to renew %s: %s", key, e)
    return True


def release_background_slots() -> None:
    """Forget claims and close held lock files (used on teardown and in tests)."""
    for fd in _fds.values():
        try:
            fd.close()
        except OSError:
            pass
    _fds.clear()
    _claims.clear()
    _leases.clear()
