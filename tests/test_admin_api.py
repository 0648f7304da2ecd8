"""Tests for the admin roster endpoints and the live roster WebSocket."""

import asyncio

import pytest
from starlette.websockets import WebSocketDisconnect

from api.ws import _stop_forwarder


def _token(headers):
    return headers["Authorization"].split(" ", 1)[1]


def _ids(state):
    return [character["id"] for character in state["characters"]]


@pytest.fixture
def players(client, register):
    """Three players with saved characters, created out of name order."""
    for uid, name in [("b", "Boruto"), ("c", "Chouji"), ("a", "Akamaru")]:
        headers = register(uid, name=name)
        client.get("/character", headers=headers)
        client.patch("/character/profile", json={"name": name}, headers=headers)
        client.post("/character/profile/save", headers=headers)


@pytest.fixture
def admin(register):
    return register("sensei", admin=True)


class TestRosterEndpoints:
    """Tests for /admin/roster."""

    def test_requires_admin_claim(self, client, register, players):
        assert client.get("/admin/roster").status_code == 401
        assert client.get("/admin/roster", headers=register("naruto")).status_code == 403

    def test_default_order_is_alphabetical(self, client, players, admin):
        resp = client.get("/admin/roster", headers=admin)
        assert resp.status_code == 200
        state = resp.json()
        assert _ids(state) == ["a", "b", "c"]
        assert state["order"] == []
        assert state["error"] is None

    def test_summaries_carry_bar_percentages(self, client, register, players, admin):
        client.post("/character/health", json={"delta": -25}, headers=register("d", name="Dan"))
        characters = client.get("/admin/roster", headers=admin).json()["characters"]
        dan = next(c for c in characters if c["id"] == "d")
        assert dan["healthPercent"] == 75
        assert dan["chakraPercent"] == 100

    def test_move_saves_live_order(self, client, players, admin):
        resp = client.post("/admin/roster/move", json={"source": 0, "destination": 2}, headers=admin)
        assert resp.status_code == 200
        assert _ids(resp.json()) == ["b", "c", "a"]

        state = client.get("/admin/roster", headers=admin).json()
        assert _ids(state) == ["b", "c", "a"]
        assert state["order"] == ["b", "c", "a"]

    def test_move_out_of_range(self, client, players, admin):
        resp = client.post("/admin/roster/move", json={"source": 0, "destination": 9}, headers=admin)
        assert resp.status_code == 400

    def test_new_character_joins_the_tail(self, client, register, players, admin):
        client.post("/admin/roster/move", json={"source": 2, "destination": 0}, headers=admin)
        client.post("/character/chakra", json={"delta": -1}, headers=register("aa", name="Aaron"))
        assert _ids(client.get("/admin/roster", headers=admin).json()) == ["c", "a", "b", "aa"]

    def test_default_and_reset_need_confirmation(self, client, players, admin):
        assert client.post("/admin/roster/default", json={}, headers=admin).status_code == 400
        assert client.post("/admin/roster/reset", json={"confirm": False}, headers=admin).status_code == 400

    def test_save_default_then_reset(self, client, players, admin):
        client.post("/admin/roster/move", json={"source": 2, "destination": 0}, headers=admin)
        resp = client.post("/admin/roster/default", json={"confirm": True}, headers=admin)
        assert resp.status_code == 200

        client.post("/admin/roster/move", json={"source": 0, "destination": 2}, headers=admin)
        assert _ids(client.get("/admin/roster", headers=admin).json()) == ["a", "b", "c"]

        resp = client.post("/admin/roster/reset", json={"confirm": True}, headers=admin)
        assert _ids(resp.json()) == ["c", "a", "b"]
        assert resp.json()["order"] == ["c", "a", "b"]

    def test_each_admin_keeps_their_own_order(self, client, register, players, admin):
        other = register("hokage", admin=True)
        client.post("/admin/roster/move", json={"source": 0, "destination": 2}, headers=admin)
        assert _ids(client.get("/admin/roster", headers=other).json()) == ["a", "b", "c"]


class TestRosterWebSocket:
    """Tests for /admin/ws."""

    def test_invalid_token_rejected(self, client):
        with pytest.raises(WebSocketDisconnect) as excinfo:
            with client.websocket_connect("/admin/ws?token=sk_nope"):
                pass
        assert excinfo.value.code == 4001

    def test_non_admin_rejected(self, client, register):
        token = _token(register("naruto"))
        with pytest.raises(WebSocketDisconnect) as excinfo:
            with client.websocket_connect(f"/admin/ws?token={token}"):
                pass
        assert excinfo.value.code == 4003

    def test_roster_sent_on_connect(self, client, players, admin):
        with client.websocket_connect(f"/admin/ws?token={_token(admin)}") as ws:
            msg = ws.receive_json()
            assert msg["type"] == "roster"
            assert _ids(msg) == ["a", "b", "c"]

    def test_player_write_is_pushed(self, client, register, players, admin):
        naruto = register("naruto", name="Naruto")
        with client.websocket_connect(f"/admin/ws?token={_token(admin)}") as ws:
            ws.receive_json()
            client.post("/character/health", json={"delta": -50}, headers=naruto)
            msg = ws.receive_json()
            assert msg["type"] == "roster"
            assert _ids(msg) == ["a", "b", "c", "naruto"]
            assert msg["characters"][3]["currentHealth"] == 50

    def test_move_is_pushed(self, client, players, admin):
        with client.websocket_connect(f"/admin/ws?token={_token(admin)}") as ws:
            ws.receive_json()
            ws.send_json({"type": "move", "source": 0, "destination": 1})
            msg = ws.receive_json()
            assert msg["type"] == "roster"
            assert _ids(msg) == ["b", "a", "c"]
            assert msg["order"] == ["b", "a", "c"]

    def test_save_default_is_acknowledged(self, client, players, admin):
        with client.websocket_connect(f"/admin/ws?token={_token(admin)}") as ws:
            ws.receive_json()
            ws.send_json({"type": "save_default"})
            assert ws.receive_json()["type"] == "error"

            ws.send_json({"type": "save_default", "confirm": True})
            assert ws.receive_json() == {"type": "default_saved", "order": ["a", "b", "c"]}

    def test_bad_messages_get_errors(self, client, players, admin):
        with client.websocket_connect(f"/admin/ws?token={_token(admin)}") as ws:
            ws.receive_json()
            ws.send_json({"type": "teleport"})
            assert ws.receive_json()["type"] == "error"

            ws.send_json({"type": "move", "source": 0, "destination": 7})
            assert ws.receive_json()["type"] == "error"

            ws.send_json(["move"])
            assert ws.receive_json() == {"type": "error", "detail": "Expected a JSON object"}

    def test_invalid_json_keeps_connection_open(self, client, players, admin):
        with client.websocket_connect(f"/admin/ws?token={_token(admin)}") as ws:
            ws.receive_json()
            ws.send_text("not json{")
            assert ws.receive_json() == {"type": "error", "detail": "Expected a JSON object"}

            ws.send_json({"type": "move", "source": 2, "destination": 0})
            assert _ids(ws.receive_json()) == ["c", "a", "b"]


class TestStopForwarder:
    """Tests for collecting the roster forwarder task."""

    def test_collects_disconnect_raised_while_sending(self):
        async def run():
            async def send_to_closed_socket():
                raise WebSocketDisconnect(code=1006)

            forwarder = asyncio.create_task(send_to_closed_socket())
            await asyncio.sleep(0)
            await _stop_forwarder(forwarder)
            return forwarder

        forwarder = asyncio.run(run())
        assert forwarder.done()

    def test_cancels_a_waiting_forwarder(self):
        async def run():
            forwarder = asyncio.create_task(asyncio.Event().wait())
            await asyncio.sleep(0)
            await _stop_forwarder(forwarder)
            return forwarder

        assert asyncio.run(run()).cancelled()
