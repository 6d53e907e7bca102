from __future__ import annotations

import sqlite3
import threading

import pytest
from sqlalchemy.exc import OperationalError

from synctube.engine import coordinator, playback, queue_store
from synctube.errors import NotFoundError, TransientIOError, UnauthorizedError, ValidationError
from synctube.extensions import db
from synctube.models import QueueItem

from .conftest import HOST, add_items, get_room, queued_source_ids


def test_skip_removes_current_and_promotes_next(room_code):
    add_items(room_code, "A", "B", "C")
    coordinator.play(room_code, HOST)
    assert get_room(room_code).current_item == "A"

    result = coordinator.skip(room_code, HOST, "A")

    room = get_room(room_code)
    assert result["advanced"] is True
    assert result["removed"]["source_id"] == "A"
    assert room.current_item == "B"
    b = db.session.query(QueueItem).filter_by(room_id=room.id, source_id="B").one()
    assert room.current_order == b.order_index
    assert room.current_position == 0
    assert room.is_playing is True
    assert queued_source_ids(room_code) == ["B", "C"]


def test_skip_last_item_goes_idle(room_code):
    add_items(room_code, "A")
    coordinator.play(room_code, HOST)

    coordinator.skip(room_code, HOST, "A")

    room = get_room(room_code)
    assert queued_source_ids(room_code) == []
    assert room.current_item is None
    assert room.is_playing is False
    assert room.current_position == 0
    assert room.current_order == 0
    assert room.state == "idle"


def test_duplicate_completion_reports_advance_once(room_code):
    add_items(room_code, "A", "B", "C")
    coordinator.play(room_code, HOST)

    first = coordinator.track_ended(room_code, HOST, "A")
    second = coordinator.track_ended(room_code, HOST, "A")

    assert first["advanced"] is True
    assert second["advanced"] is False
    assert queued_source_ids(room_code) == ["B", "C"]
    assert get_room(room_code).current_item == "B"


def test_media_error_moves_to_a_different_item(room_code):
    add_items(room_code, "A", "B")
    coordinator.play(room_code, HOST)

    result = coordinator.media_error(room_code, HOST, "A", reason="embed disabled")

    assert result["advanced"] is True
    assert get_room(room_code).current_item == "B"


def test_advance_skips_duplicates_of_the_finished_item(room_code):
    add_items(room_code, "A", "A", "B")
    coordinator.play(room_code, HOST)

    coordinator.skip(room_code, HOST, "A")

    room = get_room(room_code)
    assert room.current_item == "B"
    assert queued_source_ids(room_code) == ["A", "B"]


def test_advance_goes_idle_when_queue_is_stuck(room_code):
    add_items(room_code, "A", "A")
    coordinator.play(room_code, HOST)

    result = coordinator.skip(room_code, HOST, "A")

    room = get_room(room_code)
    assert result["stuck"] is True
    assert room.state == "idle"
    assert room.is_playing is False
    assert queued_source_ids(room_code) == ["A"]


def test_override_is_cleared_on_advance(room_code):
    add_items(room_code, "A", "B")
    coordinator.play(room_code, HOST)
    coordinator.play_override(room_code, HOST, "OVR")
    room = get_room(room_code)
    assert room.playing_item == "OVR"
    assert queued_source_ids(room_code) == ["A", "B"]

    result = coordinator.track_ended(room_code, HOST, "OVR")

    room = get_room(room_code)
    assert result["skipped_override"] == "OVR"
    assert room.override_item is None
    assert room.current_item == "B"


def test_only_the_host_controls_playback(room_code):
    add_items(room_code, "A", "B", added_by="guest")
    with pytest.raises(UnauthorizedError):
        coordinator.play(room_code, "guest")
    with pytest.raises(UnauthorizedError):
        coordinator.skip(room_code, "guest", "A")
    with pytest.raises(UnauthorizedError):
        coordinator.play_override(room_code, "guest", "X")
    assert get_room(room_code).state == "idle"


def test_play_from_idle_with_empty_queue_is_not_found(room_code):
    with pytest.raises(NotFoundError):
        coordinator.play(room_code, HOST)


def test_pause_snapshots_reported_position_and_play_resumes(room_code):
    add_items(room_code, "A")
    coordinator.play(room_code, HOST)

    coordinator.pause(room_code, HOST, position=42.5)
    room = get_room(room_code)
    assert room.state == "paused"
    assert room.current_position == 42.5
    assert room.playing_since_ms is None

    coordinator.toggle_play_pause(room_code, HOST)
    room = get_room(room_code)
    assert room.state == "playing"
    assert room.current_position == 42.5
    assert room.playing_since_ms is not None


def test_pause_without_position_samples_virtual_clock(app, room_code):
    add_items(room_code, "A")
    room = get_room(room_code)
    playback.play(room, HOST, now_ms=1_000_000)

    playback.pause(room, HOST, now_ms=1_012_000)

    assert room.current_position == pytest.approx(12.0)
    assert room.is_playing is False


def test_seek_validates_and_rebases_clock(app, room_code):
    add_items(room_code, "A")
    room = get_room(room_code)
    with pytest.raises(NotFoundError):
        playback.seek(room, HOST, 10, now_ms=1_000)
    playback.play(room, HOST, now_ms=1_000)
    with pytest.raises(ValidationError):
        playback.seek(room, HOST, -3, now_ms=2_000)

    playback.seek(room, HOST, 30, now_ms=5_000)

    assert room.effective_position(now_ms=7_000) == pytest.approx(32.0)


def test_at_most_one_item_reported_now_playing_with_tied_orders(app, room_code):
    room = get_room(room_code)
    # Two appends that raced on the same "max + 1"
    db.session.add(QueueItem(room_id=room.id, source_id="X", title="x", added_by=HOST, order_index=0, created_at_ms=10))
    db.session.add(QueueItem(room_id=room.id, source_id="Y", title="y", added_by=HOST, order_index=0, created_at_ms=20))
    db.session.commit()

    playback.autostart_if_idle(room, now_ms=100)
    db.session.commit()

    playing = queue_store.now_playing(room)
    assert playing.source_id == "X"
    assert [i.source_id for i in queue_store.list_items(room)] == ["X", "Y"]

    coordinator.skip(room_code, HOST, "X")
    assert get_room(room_code).current_item == "Y"


def test_skip_requires_the_source_being_skipped(room_code):
    add_items(room_code, "A", "B")
    coordinator.play(room_code, HOST)

    with pytest.raises(ValidationError):
        coordinator.skip(room_code, HOST, "")

    assert get_room(room_code).current_item == "A"


def test_stuck_queue_is_not_restarted_by_reconcile(room_code):
    add_items(room_code, "A", "A")
    coordinator.play(room_code, HOST)
    assert coordinator.skip(room_code, HOST, "A")["stuck"] is True

    assert coordinator.reconcile(room_code) is None

    room = get_room(room_code)
    assert room.state == "idle"
    assert room.stuck_item == "A"
    assert queued_source_ids(room_code) == ["A"]


def test_adding_an_item_lets_a_stuck_room_start_again(room_code):
    add_items(room_code, "A", "A")
    coordinator.play(room_code, HOST)
    coordinator.skip(room_code, HOST, "A")

    add_items(room_code, "B")

    assert get_room(room_code).stuck_item is None
    assert coordinator.reconcile(room_code) == "autostart"
    assert get_room(room_code).state == "playing"


def test_host_play_overrides_the_stuck_marker(room_code):
    add_items(room_code, "A", "A")
    coordinator.play(room_code, HOST)
    coordinator.skip(room_code, HOST, "A")

    coordinator.play(room_code, HOST)

    room = get_room(room_code)
    assert room.current_item == "A"
    assert room.stuck_item is None


def _locked_error():
    return OperationalError("COMMIT", {}, sqlite3.OperationalError("database is locked"))


def test_locked_commit_surfaces_and_keeps_the_queue(room_code, monkeypatch):
    add_items(room_code, "A", "B")
    coordinator.play(room_code, HOST)
    real_commit = db.session.commit
    calls = []

    def _commit_locked_once():
        calls.append(1)
        if len(calls) == 1:
            raise _locked_error()
        return real_commit()

    monkeypatch.setattr(db.session, "commit", _commit_locked_once)

    with pytest.raises(TransientIOError):
        coordinator.skip(room_code, HOST, "A")

    room = get_room(room_code)
    assert room.current_item == "A"
    assert queued_source_ids(room_code) == ["A", "B"]

    # The caller re-runs the whole operation
    result = coordinator.skip(room_code, HOST, "A")
    assert result["advanced"] is True
    assert get_room(room_code).current_item == "B"


def test_storage_failure_mid_advance_leaves_no_partial_mutation(room_code, monkeypatch):
    add_items(room_code, "A", "B")
    coordinator.play(room_code, HOST)

    def _broken_read(room, fresh=False):
        raise OperationalError("SELECT", {}, Exception("disk I/O error"))

    # The finished item is deleted before the queue is re-read
    monkeypatch.setattr(queue_store, "list_items", _broken_read)
    with pytest.raises(TransientIOError):
        coordinator.track_ended(room_code, HOST, "A")
    monkeypatch.undo()

    room = get_room(room_code)
    assert room.current_item == "A"
    assert room.is_playing is True
    assert queued_source_ids(room_code) == ["A", "B"]


def test_concurrent_skips_of_the_same_item_advance_once(app, room_code):
    add_items(room_code, "A", "B", "C")
    coordinator.play(room_code, HOST)
    db.session.remove()

    start = threading.Barrier(2)
    results, errors = [], []

    def _skip():
        with app.app_context():
            start.wait(5)
            try:
                results.append(coordinator.skip(room_code, HOST, "A"))
            except Exception as e:
                errors.append(e)

    threads = [threading.Thread(target=_skip) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(10)

    assert errors == []
    assert sorted(r["advanced"] for r in results) == [False, True]
    assert queued_source_ids(room_code) == ["B", "C"]
    assert get_room(room_code).current_item == "B"
