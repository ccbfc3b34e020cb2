"""
Tests for the HTTP host of the NLU engines.
"""

import asyncio
import json

import pytest
from fastapi.testclient import TestClient

from app import main
from app.models import IntentDefinition, SlotDefinition
from app.storage import Storage


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(main.settings, "data_dir", str(tmp_path))
    monkeypatch.setattr(main.settings, "duckling_enabled", False)
    monkeypatch.setattr(main.settings, "log_json", False)
    return tmp_path


@pytest.fixture
def client(data_dir):
    with TestClient(main.app) as client:
        yield client


@pytest.fixture
def bot(data_dir):
    storage = Storage(str(data_dir), "travel")

    async def seed():
        await storage.save_intent(IntentDefinition(name="greet", utterances=[
            "hello", "hello there", "hi", "good morning", "hey you",
        ]))
        await storage.save_intent(IntentDefinition(
            name="book_flight",
            utterances=[
                "book a flight to [Paris](destination)",
                "I want to fly to [London](destination)",
                "reserve a plane ticket to [Rome](destination)",
                "I need a flight",
            ],
            slots=[SlotDefinition(name="destination")],
        ))

    asyncio.run(seed())
    config_dir = storage.bot_dir / "config"
    config_dir.mkdir(parents=True)
    (config_dir / "nlu.json").write_text(json.dumps({"confidence_threshold": 0.5}))
    return "travel"


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "service": "nlu", "mounted_bots": 0}


def test_unknown_bot_is_404(client):
    assert client.post("/bots/ghost/extract", json={"text": "hello"}).status_code == 404
    assert client.post("/bots/ghost/sync").status_code == 404
    assert client.delete("/bots/ghost").status_code == 404


def test_metrics_exposed(client):
    response = client.get("/metrics")

    assert response.status_code == 200
    assert "nlu_mounted_bots" in response.text


def test_mount_extract_unmount(client, bot):
    mounted = client.post(f"/bots/{bot}/mount")
    assert mounted.status_code == 200
    status = mounted.json()
    assert status["bot_id"] == bot
    assert status["model_id"]

    response = client.post(f"/bots/{bot}/extract", json={"text": "hello there"})
    assert response.status_code == 200
    result = response.json()
    assert result["errored"] is False
    assert result["intent"]["name"] == "greet"
    assert "matches" not in result["intent"]
    assert result["intents"][0]["name"] == "greet"
    assert result["slots"] == []
    assert result["entities"] == []

    synced = client.post(f"/bots/{bot}/sync").json()
    assert synced == {"bot_id": bot, "synced": False, "model_id": status["model_id"]}

    assert [b["bot_id"] for b in client.get("/bots").json()["bots"]] == [bot]

    assert client.delete(f"/bots/{bot}").json() == {"bot_id": bot, "mounted": False}
    assert client.post(f"/bots/{bot}/extract", json={"text": "hello"}).status_code == 404


def test_sync_after_intent_change(client, bot, data_dir):
    model_id = client.post(f"/bots/{bot}/mount").json()["model_id"]

    asyncio.run(Storage(str(data_dir), bot).save_intent(
        IntentDefinition(name="goodbye", utterances=["bye", "see you later", "goodbye"])
    ))
    synced = client.post(f"/bots/{bot}/sync").json()

    assert synced["synced"] is True
    assert synced["model_id"] != model_id


def test_unsafe_bot_id_rejected(client):
    response = client.post("/bots/Bad Bot/mount")

    assert response.status_code == 400
    assert client.get("/bots").json() == {"bots": []}


def test_bot_without_intents_understands_nothing(client):
    client.post("/bots/empty/mount")

    result = client.post("/bots/empty/extract", json={"text": "hello there"}).json()

    assert result["errored"] is False
    assert result["intent"] == {"name": "none", "confidence": 1.0}


class TestAuthoring:

    @pytest.fixture
    def mounted(self, client, bot):
        status = client.post(f"/bots/{bot}/mount").json()
        return bot, status["model_id"]

    def test_unmounted_bot_is_404(self, client):
        assert client.put("/bots/ghost/intents/greet", json={"utterances": ["hi"]}).status_code == 404
        assert client.get("/bots/ghost/models").status_code == 404

    def test_intent_changes_retrain_and_restore(self, client, mounted):
        bot, model_id = mounted

        saved = client.put(f"/bots/{bot}/intents/Goodbye", json={"utterances": ["bye", "see you later"]})
        assert saved.status_code == 200
        assert saved.json()["name"] == "goodbye"
        assert [i["name"] for i in client.get(f"/bots/{bot}/intents").json()] == ["book_flight", "goodbye", "greet"]

        models = client.get(f"/bots/{bot}/models").json()
        assert len(models["models"]) == 2
        assert models["model_id"] != model_id

        deleted = client.delete(f"/bots/{bot}/intents/goodbye")
        assert deleted.status_code == 200
        assert client.get(f"/bots/{bot}/models").json()["model_id"] == model_id

    def test_delete_missing_intent_is_404(self, client, mounted):
        bot, _ = mounted

        assert client.delete(f"/bots/{bot}/intents/unknown").status_code == 404

    def test_entities_used_by_next_extraction(self, client, mounted):
        bot, _ = mounted

        saved = client.put(f"/bots/{bot}/entities/City", json={
            "name": "city",
            "type": "list",
            "occurences": [{"name": "Paris", "tags": ["paname"]}],
        })
        assert saved.json()["id"] == "city"
        assert [e["name"] for e in client.get(f"/bots/{bot}/entities").json()] == ["city"]

        result = client.post(f"/bots/{bot}/extract", json={"text": "book a flight to paname"}).json()
        assert [(e["name"], e["data"]["value"]) for e in result["entities"]] == [("city", "Paris")]

        client.delete(f"/bots/{bot}/entities/city")
        assert client.get(f"/bots/{bot}/entities").json() == []
