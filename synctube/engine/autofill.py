"""
Auto-fill policy: keep a thinning queue topped up with catalog picks.

The trigger fires while the queue holds fewer than ``AUTOFILL_QUEUE_CAP`` items and
either the queue is empty or the newest item is older than the staleness window, so
an active room that keeps adding its own items is left alone.
"""
from __future__ import annotations

import logging
from typing import Callable, Iterable, Optional

from flask import current_app

from ..errors import CatalogExhaustedError
from ..lib.utils import now_ms as _now_ms
from ..models import AUTO_ADDED_BY, QueueItem, Room
from . import queue_store


def should_fill(
    items: list[QueueItem],
    now_ms: int,
    cap: Optional[int] = None,
    stale_ms: Optional[int] = None,
) -> bool:
    if cap is None:
        cap = int(current_app.config.get("AUTOFILL_QUEUE_CAP", 5))
    if stale_ms is None:
        stale_ms = int(current_app.config.get("AUTOFILL_STALE_SECONDS", 180)) * 1000
    if len(items) >= cap:
        return False
    if not items:
        return True
    newest = max(item.created_at_ms for item in items)
    return now_ms - newest > stale_ms


def exclusions(room: Room, items: Iterable[QueueItem]) -> set[str]:
    """Source ids auto-fill must not add: everything queued plus what is playing."""
    excluded = {item.source_id for item in items}
    if room.current_item:
        excluded.add(room.current_item)
    if room.override_item:
        excluded.add(room.override_item)
    return excluded


def find_candidate(
    excluded: set[str],
    fetch: Callable[[], Optional[dict]],
    tries: Optional[int] = None,
) -> dict:
    """Ask ``fetch`` for random candidates until one is not excluded.

    Raises CatalogExhaustedError after ``tries`` misses.
    """
    if tries is None:
        tries = int(current_app.config.get("AUTOFILL_MAX_TRIES", 10))
    for _ in range(max(1, tries)):
        candidate = fetch()
        if candidate and candidate.get("source_id") and candidate["source_id"] not in excluded:
            return candidate
    raise CatalogExhaustedError(f"no unique candidate after {tries} tries")


def append_candidate(room: Room, candidate: dict, now_ms: Optional[int] = None) -> QueueItem:
    item = queue_store.append(
        room,
        source_id=candidate["source_id"],
        title=candidate.get("title") or "",
        thumbnail_url=candidate.get("thumbnail_url"),
        duration_seconds=candidate.get("duration_seconds"),
        added_by=AUTO_ADDED_BY,
        now_ms=_now_ms() if now_ms is None else now_ms,
    )
    logging.info(
        "autofill: room=%s added %s (%s)", room.code, item.source_id, item.title
    )
    return item
