from __future__ import annotations

import pytest

from synctube import create_app
from synctube.engine import coordinator
from synctube.extensions import db, socketio
from synctube.lib.background_slots import release_background_slots
from synctube.models import QueueItem, Room

EXTEND_CODES = ["SECRET1", "SECRET2"]

TEST_CONFIG = {
    "TESTING": True,
    "SQLALCHEMY_DATABASE_URI": "sqlite://",
    "SOCKETIO_ASYNC_MODE": "threading",
    "SOCKETIO_MESSAGE_QUEUE": "",
    "REDIS_URL": "",
    "BACKGROUND_TASK_SLOTS": 0,
    "EXTEND_CODES": EXTEND_CODES,
    "JWT_SECRET": "test-secret",
    "SECRET_KEY": "test-secret",
    "YOUTUBE_API_KEYS": ["key-one"],
    "YOUTUBE_API_KEYS2": ["key-two"],
    "AUTOFILL_KEYWORDS": ["lofi"],
    "LOG_LEVEL": "WARNING",
}

HOST = "host-1"


@pytest.fixture
def app():
    app = create_app(dict(TEST_CONFIG))
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()
    release_background_slots()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def socket_client_for(app):
    """Factory for Socket.IO test clients connected with a session token."""
    clients = []

    def _connect(token=None):
        query = f"token={token}" if token else None
        c = socketio.test_client(app, query_string=query)
        clients.append(c)
        return c

    yield _connect
    for c in clients:
        if c.is_connected():
            c.disconnect()


@pytest.fixture
def room_code(app):
    """A fresh room hosted by HOST."""
    return coordinator.create_room("Listening party", participant_id=HOST)["code"]


def get_room(code: str) -> Room:
    return db.session.query(Room).filter_by(code=code).populate_existing().one()


def queued_source_ids(code: str) -> list[str]:
    room = get_room(code)
    items = (
        db.session.query(QueueItem)
        .filter_by(room_id=room.id)
        .populate_existing()
        .order_by(*QueueItem.ordering())
        .all()
    )
    return [item.source_id for item in items]


def add_items(code: str, *source_ids: str, added_by: str = HOST) -> list[dict]:
    return [
        coordinator.add_to_queue(
            code,
            added_by,
            {"source_id": source_id, "title": f"Song {source_id}", "duration_seconds": 200},
        )
        for source_id in source_ids
    ]
