"""Tests for the /api endpoints: a demo-mode quest run end to end, plus error mapping."""

import asyncio
import base64

import pytest
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock, MagicMock

from conftest import PCM_SILENCE, FakeOutput, settle
from kitchen_quest.app import create_app
from kitchen_quest.config import Settings
from kitchen_quest.game import Game
from kitchen_quest.gemini import GeminiError
from kitchen_quest.routes.kitchen import narrate
from kitchen_quest.routes.models import NarrateBody

PHOTO = {"image": base64.b64encode(b"\xff\xd8 fake jpeg").decode(), "mime_type": "image/jpeg"}


@pytest.fixture
def client():
    with TestClient(create_app(Settings(demo_mode=True))) as c:
        yield c


def _embark(client: TestClient, quest_id: str) -> dict:
    assert client.post("/api/quests/board", json={}).status_code == 200
    resp = client.post("/api/quest", json={"quest_id": quest_id})
    assert resp.status_code == 201
    return resp.json()


# ---------------------------------------------------------------------------
# Kitchen
# ---------------------------------------------------------------------------

class TestKitchenRoutes:
    def test_health(self, client: TestClient) -> None:
        assert client.get("/api/health").json() == {"status": "ok"}

    def test_settings_hide_api_key(self) -> None:
        with TestClient(create_app(Settings(api_key="secret", demo_mode=True))) as c:
            data = c.get("/api/settings").json()
        assert "api_key" not in data
        assert data["has_api_key"] is True
        assert data["demo_mode"] is True

    def test_demo_kitchen(self, client: TestClient) -> None:
        data = client.get("/api/kitchen").json()
        assert data["stats"]["knifeSkills"] == 5
        assert data["stats"]["xp"] == 750
        assert len(data["inventory"]) == 10

    def test_fridge_scan_restocks(self, client: TestClient) -> None:
        resp = client.post("/api/fridge/scan", json=PHOTO)
        assert resp.status_code == 200
        data = resp.json()
        assert len(data["inventory"]) == 10
        assert data["cdmSpeech"].startswith("Welcome to demo mode")

    def test_data_url_photo_accepted(self, client: TestClient) -> None:
        body = {"image": "data:image/png;base64," + PHOTO["image"], "mime_type": "image/png"}
        assert client.post("/api/fridge/scan", json=body).status_code == 200

    def test_invalid_photo_rejected(self, client: TestClient) -> None:
        resp = client.post("/api/fridge/scan", json={"image": "not base64!!"})
        assert resp.status_code == 422

    def test_quest_board(self, client: TestClient) -> None:
        resp = client.post("/api/quests/board", json={"budget_goal": "Under $15"})
        assert resp.status_code == 200
        assert [q["id"] for q in resp.json()] == ["quest-001", "quest-002"]

    def test_narrate(self, client: TestClient) -> None:
        resp = client.post("/api/narrate", json={"text": "Sizzle sizzle!", "speak_aloud": True})
        assert resp.json() == {"ok": True}


# ---------------------------------------------------------------------------
# Quest run
# ---------------------------------------------------------------------------

class TestQuestRoutes:
    def test_no_active_quest(self, client: TestClient) -> None:
        assert client.get("/api/quest").status_code == 404
        assert client.post("/api/quest/advance").status_code == 404

    def test_unknown_quest(self, client: TestClient) -> None:
        client.post("/api/quests/board", json={})
        assert client.post("/api/quest", json={"quest_id": "quest-999"}).status_code == 404

    def test_full_run(self, client: TestClient) -> None:
        view = _embark(client, "quest-002")
        assert view["state"] == "on_step"
        assert view["total_steps"] == 5
        assert view["step"]["id"] == 1
        assert view["step"]["miniGameType"] == "CHOP"
        assert view["instruction"] == (
            "Take the expiring peppers. Carefully cut them into very small, square-shaped pieces."
        )
        assert view["heat"] is None
        assert view["timer"]["status"] == "idle"

        assert client.post("/api/quest/capture").json() == {"ok": True}
        resp = client.post("/api/quest/evaluate", json=PHOTO)
        assert resp.status_code == 200
        assert resp.json()["evaluation"]["xpBonus"] == 50
        assert resp.json()["quest"]["xp_bonus"] == 50

        for _ in range(4):
            view = client.post("/api/quest/advance").json()
        assert view["current_index"] == 4
        assert view["step"]["id"] == 5
        assert view["heat"] == "🔥🔥🔥 (Searing!)"
        assert view["timer"] == {
            "label": "BROWN THE MEAT",
            "remaining_seconds": 420,
            "countdown": "07:00",
            "status": "stopped",
        }

        assert client.post("/api/quest/timer/start").json()["status"] == "running"
        assert client.post("/api/quest/timer/pause").json()["status"] == "stopped"
        assert client.post("/api/quest/timer/restart").status_code == 409

        view = client.post("/api/quest/advance").json()
        assert view["state"] == "complete"
        assert view["final_xp"] == 350
        assert client.post("/api/quest/advance").status_code == 409

        kitchen = client.get("/api/kitchen").json()
        assert kitchen["stats"]["xp"] == 1100
        assert kitchen["stats"]["level"] == 2
        assert kitchen["stats"]["goldSaved"] == pytest.approx(135.75)
        assert len(kitchen["inventory"]) == 7

    def test_skip(self, client: TestClient) -> None:
        _embark(client, "quest-002")
        view = client.post("/api/quest/skip").json()
        assert view["current_index"] == 1
        assert view["xp_bonus"] == 0

    def test_timer_errors(self, client: TestClient) -> None:
        _embark(client, "quest-002")
        assert client.post("/api/quest/timer/start").status_code == 409
        assert client.post("/api/quest/timer/explode").status_code == 404

    def test_abandon(self, client: TestClient) -> None:
        view = _embark(client, "quest-001")
        assert view["total_steps"] == 10
        view = client.post("/api/quest/abandon").json()
        assert view["state"] == "abandoned"
        assert client.post("/api/quest/abandon").status_code == 409
        assert client.post("/api/quest/evaluate", json=PHOTO).status_code == 409

    def test_new_quest_replaces_old(self, client: TestClient) -> None:
        _embark(client, "quest-001")
        client.post("/api/quest/advance")
        view = client.post("/api/quest", json={"quest_id": "quest-002"}).json()
        assert view["quest_id"] == "quest-002"
        assert view["current_index"] == 0


# ---------------------------------------------------------------------------
# Error mapping outside demo mode
# ---------------------------------------------------------------------------

class TestErrorMapping:
    def _app(self, backend: MagicMock):
        backend.synthesize = AsyncMock(return_value=None)
        game = Game(Settings(api_key="k"), client=backend)
        return create_app(game=game, audio_output=FakeOutput())

    def test_scan_backend_failure_is_502(self) -> None:
        backend = MagicMock()
        backend.generate_json = AsyncMock(side_effect=GeminiError("HTTP 500", status_code=500))
        with TestClient(self._app(backend)) as c:
            resp = c.post("/api/fridge/scan", json=PHOTO)
        assert resp.status_code == 502
        assert resp.json()["detail"] == "HTTP 500"

    def test_board_backend_failure_is_502(self) -> None:
        backend = MagicMock()
        backend.generate_json = AsyncMock(side_effect=GeminiError("timed out"))
        with TestClient(self._app(backend)) as c:
            assert c.post("/api/quests/board", json={}).status_code == 502

    def test_empty_quest_is_422(self) -> None:
        backend = MagicMock()
        backend.generate_json = AsyncMock(return_value=[{
            "id": "q-empty", "quest_name": "Nothing Soup", "steps": [], "xp_reward": 10,
        }])
        with TestClient(self._app(backend)) as c:
            c.post("/api/quests/board", json={})
            resp = c.post("/api/quest", json={"quest_id": "q-empty"})
            assert resp.status_code == 422
            assert c.get("/api/quest").status_code == 404

    def test_narrate_without_audio_is_503(self) -> None:
        # no lifespan, so the audio output is never opened
        c = TestClient(create_app(Settings(api_key="k")))
        resp = c.post("/api/narrate", json={"text": "Hello?", "speak_aloud": True})
        assert resp.status_code == 503


# ---------------------------------------------------------------------------
# Spoken narration outside demo mode
# ---------------------------------------------------------------------------

class TestSpokenNarration:
    async def test_cut_off_request_returns(self) -> None:
        backend = MagicMock()
        backend.synthesize = AsyncMock(return_value=PCM_SILENCE)
        game = Game(Settings(api_key="k"), client=backend)
        output = FakeOutput()
        game.audio.init(output)

        request = asyncio.create_task(narrate(NarrateBody(text="First line", speak_aloud=True), game))
        await settle()
        assert not request.done()
        game.announce("A newer line")
        await settle()
        assert request.done()
        assert request.result() == {"ok": True}

        [playing] = output.playing()
        playing.finish()
        await game.tasks.drain(timeout=1.0)
        assert len(game.tasks) == 0
        await game.close()
