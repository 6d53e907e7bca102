from __future__ import annotations

import jwt

from synctube.catalog import youtube

from .conftest import EXTEND_CODES, HOST, add_items


def _create(client, **body):
    body.setdefault("name", "Friday mix")
    body.setdefault("participant_id", HOST)
    return client.post("/api/room.create", json=body)


def test_health(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.get_json()["ok"] is True


def test_create_room_returns_code_and_token(app, client):
    resp = _create(client)

    assert resp.status_code == 201
    data = resp.get_json()
    assert len(data["code"]) == 5
    assert data["is_host"] is True
    payload = jwt.decode(data["token"], app.config["JWT_SECRET"], algorithms=["HS256"])
    assert payload["sub"] == HOST
    assert payload["room"] == data["code"]


def test_create_room_without_participant_id_generates_one(client):
    resp = client.post("/api/room.create", json={"name": "Anon"})
    assert resp.status_code == 201
    assert resp.get_json()["participant_id"]


def test_create_room_requires_name(client):
    resp = client.post("/api/room.create", json={"name": ""})
    assert resp.status_code == 400
    assert resp.get_json()["code"] == "invalid"


def test_join_flow_and_errors(client):
    code = _create(client, password="pw")
    code = code.get_json()["code"]

    assert client.post("/api/room.join", json={"code": "QQQQQ"}).status_code == 404
    assert client.post("/api/room.join", json={"code": code}).status_code == 403
    resp = client.post(
        "/api/room.join", json={"code": code.lower(), "participant_id": "p1", "password": "pw"}
    )
    assert resp.status_code == 200
    data = resp.get_json()
    assert data["code"] == code
    assert data["is_host"] is False
    assert data["snapshot"]["active_users"] == 2


def test_extend_endpoint(client):
    code = _create(client).get_json()["code"]

    bad = client.post("/api/room.extend", json={"code": code, "extend_code": "nope"})
    assert bad.status_code == 403
    assert bad.get_json()["code"] == "unauthorized"

    ok = client.post("/api/room.extend", json={"code": code, "extend_code": EXTEND_CODES[1]})
    assert ok.status_code == 200
    assert ok.get_json()["expired"] is False


def test_rooms_listing_and_snapshot(client):
    code = _create(client).get_json()["code"]
    add_items(code, "A", "B")

    listing = client.get("/api/rooms").get_json()["rooms"]
    assert [r["code"] for r in listing] == [code]
    assert listing[0]["active_users"] == 1
    assert listing[0]["has_password"] is False

    snap = client.get(f"/api/rooms/{code}").get_json()
    assert [i["source_id"] for i in snap["queue"]] == ["A", "B"]
    assert snap["votes"]["threshold"] == 1
    assert snap["room"]["state"] == "idle"

    assert client.get("/api/rooms/NOPE1").status_code == 404


def test_search_proxies_catalog(client, monkeypatch):
    monkeypatch.setattr(
        youtube, "search", lambda query, max_results=10: [{"source_id": "abc", "title": query}]
    )
    resp = client.get("/api/search?q=lofi")
    assert resp.status_code == 200
    assert resp.get_json()["videos"] == [{"source_id": "abc", "title": "lofi"}]


def test_protected_room_snapshot_needs_a_session_token(client):
    created = _create(client, password="pw").get_json()
    code = created["code"]

    anonymous = client.get(f"/api/rooms/{code}")
    assert anonymous.status_code == 403
    assert "queue" not in anonymous.get_json()

    other = _create(client, name="Other", participant_id="someone").get_json()
    wrong_room = client.get(
        f"/api/rooms/{code}", headers={"Authorization": f"Bearer {other['token']}"}
    )
    assert wrong_room.status_code == 403

    joined = client.post(
        "/api/room.join", json={"code": code, "participant_id": "p1", "password": "pw"}
    ).get_json()
    resp = client.get(f"/api/rooms/{code}", headers={"Authorization": f"Bearer {joined['token']}"})
    assert resp.status_code == 200
    assert set(resp.get_json()["participants"]) == {HOST, "p1"}
