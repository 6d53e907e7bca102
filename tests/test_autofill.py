from __future__ import annotations

import pytest

from synctube.engine import autofill, coordinator
from synctube.errors import CatalogExhaustedError
from synctube.extensions import db
from synctube.models import AUTO_ADDED_BY, QueueItem

from .conftest import HOST, add_items, get_room, queued_source_ids

STALE_MS = 180 * 1000


def _candidate(source_id: str) -> dict:
    return {
        "source_id": source_id,
        "title": f"Auto {source_id}",
        "thumbnail_url": f"https://i.ytimg.com/vi/{source_id}/mqdefault.jpg",
        "duration_seconds": 180,
    }


def _fetch_sequence(*source_ids):
    calls = iter(source_ids)

    def fetch():
        return _candidate(next(calls))

    return fetch


def _age_queue(code: str, by_ms: int = STALE_MS + 60_000) -> None:
    room = get_room(code)
    for item in QueueItem.query.filter_by(room_id=room.id).all():
        item.created_at_ms -= by_ms
    db.session.commit()


def test_should_fill_trigger(app):
    now = 10_000_000
    fresh = QueueItem(source_id="A", created_at_ms=now - 1_000)
    stale = QueueItem(source_id="B", created_at_ms=now - STALE_MS - 1)

    assert autofill.should_fill([], now)
    assert not autofill.should_fill([fresh], now)
    assert autofill.should_fill([stale], now)
    assert not autofill.should_fill([stale] * 5, now)


def test_find_candidate_gives_up_after_bounded_tries(app):
    calls = []

    def fetch():
        calls.append(1)
        return _candidate("A")

    with pytest.raises(CatalogExhaustedError):
        autofill.find_candidate({"A"}, fetch, tries=4)
    assert len(calls) == 4


def test_fills_an_empty_queue(room_code):
    added = coordinator.autofill_tick(room_code, fetch=_fetch_sequence("Z"))

    assert added["source_id"] == "Z"
    assert added["added_by"] == AUTO_ADDED_BY
    assert queued_source_ids(room_code) == ["Z"]


def test_never_adds_queued_current_or_override_items(room_code):
    add_items(room_code, "A", "B")
    coordinator.play(room_code, HOST)
    coordinator.play_override(room_code, HOST, "O")
    _age_queue(room_code)

    added = coordinator.autofill_tick(room_code, fetch=_fetch_sequence("A", "B", "O", "Z"))

    assert added["source_id"] == "Z"
    assert queued_source_ids(room_code) == ["A", "B", "Z"]


def test_leaves_recently_active_queue_alone(room_code):
    add_items(room_code, "A")
    assert coordinator.autofill_tick(room_code, fetch=_fetch_sequence("Z")) is None
    assert queued_source_ids(room_code) == ["A"]


def test_exhausted_catalog_is_a_skipped_cycle(room_code):
    add_items(room_code, "A")
    _age_queue(room_code)

    def fetch():
        return _candidate("A")

    assert coordinator.autofill_tick(room_code, fetch=fetch) is None
    assert queued_source_ids(room_code) == ["A"]


def test_respects_the_room_toggle(room_code):
    coordinator.set_autofill(room_code, HOST, False)
    assert coordinator.autofill_tick(room_code, fetch=_fetch_sequence("Z")) is None
    assert queued_source_ids(room_code) == []


def test_needs_the_host_to_be_present(room_code):
    room = get_room(room_code)
    later = room.created_at * 1000 + 10 * 60 * 1000
    assert coordinator.autofill_tick(room_code, now_ms=later, fetch=_fetch_sequence("Z")) is None


def test_reconcile_auto_starts_an_idle_room(room_code):
    add_items(room_code, "A", "B")
    assert get_room(room_code).state == "idle"

    assert coordinator.reconcile(room_code) == "autostart"

    room = get_room(room_code)
    assert room.current_item == "A"
    assert room.is_playing is True
    assert coordinator.reconcile(room_code) is None
