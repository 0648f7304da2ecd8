"""Tests for the /character endpoints."""

import pytest

from engine import messages
from store.errors import StoreError


@pytest.fixture
def player(client, register):
    """Headers for a registered player who has saved a character."""
    headers = register("naruto")
    client.get("/character", headers=headers)
    client.patch("/character/profile", json={"name": "Naruto"}, headers=headers)
    client.post("/character/profile/save", headers=headers)
    return headers


class TestLoad:
    """Tests for GET /character."""

    def test_requires_auth(self, client):
        assert client.get("/character").status_code == 401

    def test_new_player_gets_default_in_edit_mode(self, client, register):
        resp = client.get("/character", headers=register("naruto"))
        assert resp.status_code == 200
        data = resp.json()
        character = data["character"]
        assert character["currentHealth"] == 100
        assert character["maxHealth"] == 100
        assert character["currentChakra"] == 50
        assert character["maxChakra"] == 50
        assert character["jutsus"] == []
        assert data["editing"] is True
        assert data["staging"] == character
        assert data["error"] is None

    def test_default_is_not_persisted(self, client, register):
        client.get("/character", headers=register("sasuke"))
        store = client.app.state.store
        assert "sasuke" not in store._collections.get("characters", {})

    def test_saved_character_loads_without_edit_mode(self, client, player):
        data = client.get("/character?refresh=true", headers=player).json()
        assert data["character"]["name"] == "Naruto"
        assert data["editing"] is False

    def test_players_have_separate_sheets(self, client, player, register):
        other = register("sasuke")
        client.post("/character/health", json={"delta": -40}, headers=other)
        mine = client.get("/character", headers=player).json()["character"]
        assert mine["currentHealth"] == 100

    def test_failed_load_replaces_content(self, client, register, monkeypatch):
        headers = register("naruto")

        async def broken_get(collection, doc_id):
            raise StoreError("backend unavailable")

        monkeypatch.setattr(client.app.state.store, "get", broken_get)
        resp = client.get("/character", headers=headers)
        assert resp.status_code == 503
        assert resp.json()["detail"] == messages.CHARACTER_LOAD_FAILED


class TestResources:
    """Tests for health and chakra adjustments."""

    def test_health_is_clamped(self, client, player):
        data = client.post("/character/health", json={"delta": 5}, headers=player).json()
        assert data["character"]["currentHealth"] == 100

        data = client.post("/character/health", json={"delta": -105}, headers=player).json()
        assert data["character"]["currentHealth"] == 0

    def test_chakra_persists(self, client, player):
        client.post("/character/chakra", json={"delta": -20}, headers=player)
        data = client.get("/character?refresh=true", headers=player).json()
        assert data["character"]["currentChakra"] == 30

    def test_write_failure_reports_error_but_keeps_value(self, client, player, monkeypatch):
        store = client.app.state.store

        async def broken_set(collection, doc_id, data, merge=True):
            raise StoreError("write rejected")

        with monkeypatch.context() as m:
            m.setattr(store, "set", broken_set)
            resp = client.post("/character/health", json={"delta": -10}, headers=player)
        assert resp.status_code == 200
        data = resp.json()
        assert data["character"]["currentHealth"] == 90
        assert data["error"] == messages.CHARACTER_SAVE_FAILED

        data = client.get("/character", headers=player).json()
        assert data["error"] is None
        assert data["character"]["currentHealth"] == 90


class TestJutsus:
    """Tests for the jutsu endpoints."""

    def _add(self, client, headers, **body):
        payload = {"name": "Rasengan", "chakraCost": 10, "healthCost": 20, **body}
        resp = client.post("/character/jutsus", json=payload, headers=headers)
        assert resp.status_code == 200, resp.text
        return resp.json()["jutsu"]

    def test_add_accepts_camel_and_snake_case(self, client, player):
        jutsu = self._add(client, player)
        assert jutsu["chakraCost"] == 10
        assert jutsu["actionType"] == "Padrão"

        resp = client.post(
            "/character/jutsus",
            json={"name": "Kage Bunshin", "chakra_cost": 15, "action_type": "Movimento"},
            headers=player,
        )
        assert resp.json()["jutsu"]["chakraCost"] == 15
        assert len(resp.json()["character"]["jutsus"]) == 2

    def test_add_rejects_blank_name(self, client, player):
        resp = client.post("/character/jutsus", json={"name": "  "}, headers=player)
        assert resp.status_code == 400

    def test_add_rejects_unknown_action_type(self, client, player):
        resp = client.post(
            "/character/jutsus",
            json={"name": "Rasengan", "actionType": "Bonus"},
            headers=player,
        )
        assert resp.status_code == 422

    def test_edit_and_delete(self, client, player):
        jutsu = self._add(client, player)
        resp = client.put(
            f"/character/jutsus/{jutsu['id']}",
            json={"name": "Oodama Rasengan", "chakraCost": 25},
            headers=player,
        )
        assert resp.status_code == 200
        edited = resp.json()["character"]["jutsus"][0]
        assert edited["name"] == "Oodama Rasengan"
        assert edited["chakraCost"] == 25
        assert edited["healthCost"] == 20

        resp = client.delete(f"/character/jutsus/{jutsu['id']}", headers=player)
        assert resp.json()["character"]["jutsus"] == []

    def test_unknown_jutsu_is_404(self, client, player):
        assert client.put("/character/jutsus/nope", json={}, headers=player).status_code == 404
        assert client.delete("/character/jutsus/nope", headers=player).status_code == 404
        assert client.post("/character/jutsus/nope/use", headers=player).status_code == 404

    def test_use_pays_costs(self, client, player):
        jutsu = self._add(client, player)
        resp = client.post(f"/character/jutsus/{jutsu['id']}/use", headers=player)
        assert resp.status_code == 200
        character = resp.json()["character"]
        assert character["currentChakra"] == 40
        assert character["currentHealth"] == 80

    def test_use_refused_when_health_would_hit_zero(self, client, player):
        jutsu = self._add(client, player, chakraCost=0, healthCost=20)
        client.post("/character/health", json={"delta": -80}, headers=player)
        resp = client.post(f"/character/jutsus/{jutsu['id']}/use", headers=player)
        assert resp.status_code == 409
        character = client.get("/character", headers=player).json()["character"]
        assert character["currentHealth"] == 20


class TestProfile:
    """Tests for staged profile edits and notes."""

    def test_first_time_setup_saves_full_document(self, client, register):
        headers = register("naruto")
        client.get("/character", headers=headers)
        resp = client.patch(
            "/character/profile",
            json={"name": "Naruto", "level": 2, "maxHealth": 120, "photo": "data:image/png;base64,AA"},
            headers=headers,
        )
        assert resp.json()["staging"]["name"] == "Naruto"
        assert resp.json()["character"]["name"] == "Novo Aventureiro"

        resp = client.post("/character/profile/save", headers=headers)
        assert resp.status_code == 200
        assert resp.json()["editing"] is False

        stored = client.app.state.store._collections["characters"]["naruto"]
        assert stored["name"] == "Naruto"
        assert stored["maxHealth"] == 120
        assert stored["currentHealth"] == 100
        assert stored["jutsus"] == []

    def test_cancel_discards(self, client, player):
        client.post("/character/profile/edit", headers=player)
        client.patch("/character/profile", json={"name": "Hokage"}, headers=player)
        resp = client.post("/character/profile/cancel", headers=player)
        assert resp.json()["character"]["name"] == "Naruto"
        assert resp.json()["staging"] is None

    def test_patch_without_edit_is_conflict(self, client, player):
        resp = client.patch("/character/profile", json={"name": "Hokage"}, headers=player)
        assert resp.status_code == 409

    def test_notes(self, client, player):
        resp = client.put("/character/notes", json={"notes": "Dattebayo"}, headers=player)
        assert resp.json()["character"]["notes"] == "Dattebayo"
        data = client.get("/character?refresh=true", headers=player).json()
        assert data["character"]["notes"] == "Dattebayo"
