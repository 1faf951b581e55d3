import pytest
from fastapi.testclient import TestClient

from battleship.main import create_app
from battleship.services.storage import JsonStore
from support import ZONE, fast_settings


@pytest.fixture
def client(tmp_path):
    path = tmp_path / "battleship.json"
    JsonStore(str(path)).set_zones([ZONE])
    app = create_app(fast_settings(store_path=str(path)))
    with TestClient(app) as c:
        for pid, name in (("alice", "Alice"), ("bob", "Bob")):
            r = c.post("/v1/world/players", json={"id": pid, "name": name})
            assert r.status_code == 200
        yield c


def _messages(client, pid):
    r = client.get(f"/v1/world/players/{pid}/messages")
    assert r.status_code == 200
    return [m["text"] for m in r.json()["messages"]]


def _start(client):
    assert client.post("/v1/events/command", json={"player_id": "alice", "args": ["invite", "Bob"]}).json()["accepted"]
    assert client.post("/v1/events/command", json={"player_id": "bob", "args": ["accept", "Alice"]}).json()["accepted"]
    sessions = client.get("/v1/sessions").json()["sessions"]
    assert len(sessions) == 1
    return sessions[0]


def test_healthz(client):
    assert client.get("/healthz").json() == {"status": "ok"}


def test_zones_are_loaded_from_the_store(client):
    zones = client.get("/v1/zones").json()["zones"]
    assert [z["name"] for z in zones] == ["dock"]


def test_invite_flow_and_session_view(client):
    session = _start(client)
    assert session["players"] == ["bob", "alice"]
    assert session["phase"] == "setup"
    assert session["confirmed"] == [False, False]
    assert session["zone"] == "dock"

    texts = _messages(client, "bob")
    assert any("You have received a Battleship invite from Alice" in t for t in texts)
    # the outbox is drained by reading it
    assert _messages(client, "bob") == []

    one = client.get(f"/v1/sessions/{session['session_id']}")
    assert one.status_code == 200
    assert one.json()["session_id"] == session["session_id"]


def test_interact(client):
    session = _start(client)
    sid = session["session_id"]
    r = client.post("/v1/events/interact", json={"player_id": "bob", "message": f"_bs:{sid}_0:2:2"})
    assert r.json() == {"accepted": True}
    assert "Click another cell to place your ship." in _messages(client, "bob")

    # alice does not own slot 0
    r = client.post("/v1/events/interact", json={"player_id": "alice", "message": f"_bs:{sid}_0:2:3"})
    assert r.json() == {"accepted": False}
    r = client.post("/v1/events/interact", json={"player_id": "bob", "message": "not a tag"})
    assert r.json() == {"accepted": False}


def test_unknown_player_and_session(client):
    assert client.post("/v1/events/interact", json={"player_id": "zed", "message": "x"}).status_code == 404
    assert client.post("/v1/events/command", json={"player_id": "zed", "args": ["leave"]}).status_code == 404
    assert client.get("/v1/world/players/zed/messages").status_code == 404
    assert client.post("/v1/world/players/zed/position", json={"position": [0, 0, 0]}).status_code == 404
    assert client.post("/v1/world/players/zed/ghost", json={"location": [0, 0, 0]}).status_code == 404
    assert client.delete("/v1/world/players/zed").status_code == 404
    assert client.get("/v1/sessions/nope").status_code == 404


def test_position_and_ghost(client):
    r = client.post("/v1/world/players/alice/position", json={"position": [1.5, 2, 3]})
    assert r.status_code == 200
    assert r.json()["position"] == [1.5, 2.0, 3.0]
    r = client.post("/v1/world/players/alice/ghost", json={"location": [1, 2, 3], "orientation": "Z_Positive_90"})
    assert r.json() == {"accepted": True}


def test_leaving_the_world_forfeits(client):
    session = _start(client)
    assert client.delete("/v1/world/players/alice").json() == {"accepted": True}
    assert client.get(f"/v1/sessions/{session['session_id']}").status_code == 404
    body = client.get("/v1/sessions").json()
    assert body == {"sessions": [], "queue": []}
    assert any("has ended early" in t for t in _messages(client, "bob"))


def test_command_errors_inside_a_handler_are_not_reported_as_missing_players(client, monkeypatch):
    async def broken(player_id, args):
        raise KeyError("zone")

    monkeypatch.setattr(client.app.state.commands, "handle", broken)
    with pytest.raises(KeyError):
        client.post("/v1/events/command", json={"player_id": "alice", "args": ["leave"]})
