from __future__ import annotations

import pytest

from synctube.engine import coordinator, votes
from synctube.errors import NotFoundError, UnauthorizedError, ValidationError
from synctube.extensions import db
from synctube.models import QueueItem

from .conftest import HOST, add_items, get_room, queued_source_ids


def test_append_assigns_increasing_order_index(room_code):
    items = add_items(room_code, "A", "B", "C")
    assert [i["order_index"] for i in items] == [0, 1, 2]
    assert items[0]["added_by"] == HOST
    assert items[0]["duration"] == "3:20"


def test_append_requires_source_id(room_code):
    with pytest.raises(ValidationError):
        coordinator.add_to_queue(room_code, HOST, {"title": "no id"})


def test_move_up_first_and_down_last_are_noops(room_code):
    items = add_items(room_code, "A", "B", "C")

    assert coordinator.move_queue_item(room_code, HOST, items[0]["id"], "up") == []
    assert coordinator.move_queue_item(room_code, HOST, items[2]["id"], "down") == []
    assert queued_source_ids(room_code) == ["A", "B", "C"]


def test_move_swaps_exactly_two_items(room_code):
    items = add_items(room_code, "A", "B", "C")

    moved = coordinator.move_queue_item(room_code, HOST, items[2]["id"], "up")

    assert sorted(m["source_id"] for m in moved) == ["B", "C"]
    assert queued_source_ids(room_code) == ["A", "C", "B"]
    room = get_room(room_code)
    a = QueueItem.query.filter_by(room_id=room.id, source_id="A").one()
    assert a.order_index == 0


def test_move_keeps_the_playing_item_playing(room_code):
    items = add_items(room_code, "A", "B")
    coordinator.play(room_code, HOST)

    coordinator.move_queue_item(room_code, HOST, items[0]["id"], "down")

    room = get_room(room_code)
    assert queued_source_ids(room_code) == ["B", "A"]
    assert room.current_item == "A"
    assert room.current_order == 1


def test_move_is_host_only_and_validates_direction(room_code):
    items = add_items(room_code, "A", "B")
    with pytest.raises(UnauthorizedError):
        coordinator.move_queue_item(room_code, "guest", items[1]["id"], "up")
    with pytest.raises(ValidationError):
        coordinator.move_queue_item(room_code, HOST, items[1]["id"], "sideways")


def test_remove_allowed_for_adder_and_host_only(room_code):
    mine, theirs = add_items(room_code, "A", added_by="guest") + add_items(
        room_code, "B", added_by="other"
    )

    with pytest.raises(UnauthorizedError):
        coordinator.remove_from_queue(room_code, "guest", theirs["id"])

    coordinator.remove_from_queue(room_code, "guest", mine["id"])
    coordinator.remove_from_queue(room_code, HOST, theirs["id"])
    assert queued_source_ids(room_code) == []


def test_remove_unknown_item_is_not_found(room_code):
    with pytest.raises(NotFoundError):
        coordinator.remove_from_queue(room_code, HOST, 9999)


def test_clear_is_host_only_and_resets_playback(room_code):
    add_items(room_code, "A", "B")
    coordinator.play(room_code, HOST)
    coordinator.vote(room_code, "p1", "A")

    with pytest.raises(UnauthorizedError):
        coordinator.clear_queue(room_code, "guest")

    result = coordinator.clear_queue(room_code, HOST)

    room = get_room(room_code)
    assert result["removed"] == 2
    assert queued_source_ids(room_code) == []
    assert room.state == "idle"
    assert room.current_order == 0
    assert votes.count(room, "A") == 0


def test_move_between_tied_rows_leaves_the_outer_neighbour_alone(app, room_code):
    room = get_room(room_code)
    # Y and Z raced on the same "max + 1"
    for source_id, order_index, created_at_ms in (("X", 0, 10), ("Y", 1, 20), ("Z", 1, 30)):
        db.session.add(
            QueueItem(
                room_id=room.id,
                source_id=source_id,
                title=source_id,
                added_by=HOST,
                order_index=order_index,
                created_at_ms=created_at_ms,
            )
        )
    db.session.commit()
    z = QueueItem.query.filter_by(room_id=room.id, source_id="Z").one()

    moved = coordinator.move_queue_item(room_code, HOST, z.id, "up")

    assert sorted(m["source_id"] for m in moved) == ["Y", "Z"]
    assert queued_source_ids(room_code) == ["X", "Z", "Y"]
    orders = {
        i.source_id: i.order_index
        for i in QueueItem.query.filter_by(room_id=room.id).populate_existing()
    }
    assert orders == {"X": 0, "Y": 1, "Z": 1}

    coordinator.move_queue_item(room_code, HOST, z.id, "up")
    assert queued_source_ids(room_code) == ["Z", "X", "Y"]
