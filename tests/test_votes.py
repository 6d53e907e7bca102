from __future__ import annotations

import pytest

from synctube.engine import coordinator, votes
from synctube.errors import ValidationError

from .conftest import HOST, add_items, get_room, queued_source_ids


@pytest.fixture
def five_listeners(room_code):
    for participant in ("p1", "p2", "p3", "p4"):
        coordinator.heartbeat(room_code, participant)
    add_items(room_code, "A", "B", "C")
    coordinator.play(room_code, HOST)
    return room_code


@pytest.mark.parametrize(
    "active, expected",
    [(0, 0), (1, 1), (2, 1), (3, 2), (4, 2), (5, 3)],
)
def test_threshold_is_half_rounded_up(active, expected):
    assert votes.threshold(active) == expected


def test_two_of_five_votes_do_not_skip(five_listeners):
    code = five_listeners
    coordinator.vote(code, "p1", "A")
    result = coordinator.vote(code, "p2", "A")

    assert result["tally"]["votes"] == 2
    assert result["tally"]["threshold"] == 3
    assert result["tally"]["active_users"] == 5
    assert coordinator.reconcile(code) is None
    assert get_room(code).current_item == "A"


def test_three_of_five_votes_skip_exactly_once(five_listeners):
    code = five_listeners
    for voter in ("p1", "p2", "p3"):
        coordinator.vote(code, voter, "A")

    assert coordinator.reconcile(code) == "vote_skip"
    # Votes were purged before the skip, so nothing re-triggers against B
    assert coordinator.reconcile(code) is None

    room = get_room(code)
    assert room.current_item == "B"
    assert queued_source_ids(code) == ["B", "C"]
    assert votes.count(room, "A") == 0


def test_duplicate_votes_count_once(five_listeners):
    code = five_listeners
    first = coordinator.vote(code, "p1", "A")
    second = coordinator.vote(code, "p1", "A")

    assert first["recorded"] is True
    assert second["recorded"] is False
    assert second["tally"]["votes"] == 1


def test_vote_requires_source_id(five_listeners):
    with pytest.raises(ValidationError):
        coordinator.vote(five_listeners, "p1", "")


def test_vote_skip_waits_for_the_host(five_listeners):
    code = five_listeners
    for voter in ("p1", "p2", "p3"):
        coordinator.vote(code, voter, "A")

    # Far enough in the future that every heartbeat, the host's included, has aged out
    later = get_room(code).created_at * 1000 + 10 * 60 * 1000
    assert coordinator.reconcile(code, now_ms=later) is None
    assert get_room(code).current_item == "A"


def test_removing_an_item_purges_its_votes(room_code):
    items = add_items(room_code, "A", "B")
    coordinator.vote(room_code, "p1", "B")
    room = get_room(room_code)
    assert votes.count(room, "B") == 1

    coordinator.remove_from_queue(room_code, HOST, items[1]["id"])

    assert votes.count(get_room(room_code), "B") == 0


def test_manual_skip_after_vote_skip_of_the_same_item_is_a_noop(room_code):
    for participant in ("p1", "p2"):
        coordinator.heartbeat(room_code, participant)
    add_items(room_code, "A", "B", "C")
    coordinator.play(room_code, HOST)
    coordinator.vote(room_code, "p1", "A")
    coordinator.vote(room_code, "p2", "A")

    assert coordinator.reconcile(room_code) == "vote_skip"
    result = coordinator.skip(room_code, HOST, "A")

    assert result["advanced"] is False
    assert queued_source_ids(room_code) == ["B", "C"]
    assert get_room(room_code).current_item == "B"
