"""
Shared fixtures for the NLU service tests.

Backends are replaced by in-memory fakes so engine logic is tested in
isolation; the concrete backends have their own test modules.
"""

import tempfile
from typing import List, Optional

import pytest
from unittest.mock import AsyncMock

from app.config import BotConfig
from app.engine import NLUEngine
from app.models import IntentDefinition, Prediction, SlotDefinition
from app.pipelines.base import IntentClassifier
from app.storage import Storage
from app.utils.retry import RetryPolicy

FAST_RETRY = RetryPolicy(interval=0, max_interval=0, timeout=5.0, max_tries=3)


class FakeIntentClassifier(IntentClassifier):
    """Records train/load calls, predicts a fixed list"""

    def __init__(self, predictions: Optional[List[Prediction]] = None):
        self.current_model_id = None
        self.predictions = predictions or []
        self.trained_with = []
        self.loaded = []
        self.train_error: Optional[Exception] = None

    async def train(self, intents, model_id):
        if self.train_error:
            raise self.train_error
        self.trained_with.append((list(intents), model_id))
        with tempfile.NamedTemporaryFile(suffix=".bin", delete=False) as f:
            f.write(f"model-{model_id}".encode())
            return f.name

    def load_model(self, model, model_id):
        self.loaded.append((model, model_id))
        self.current_model_id = model_id

    async def predict(self, text):
        return list(self.predictions)


@pytest.fixture
def intents() -> List[IntentDefinition]:
    return [
        IntentDefinition(
            name="book_flight",
            utterances=[
                "book a flight to [Paris](destination)",
                "I want to fly to [London](destination)",
            ],
            slots=[SlotDefinition(name="destination", entity=["city"])],
        ),
        IntentDefinition(name="greet", utterances=["hello", "hi there"]),
    ]


@pytest.fixture
def storage(tmp_path) -> Storage:
    return Storage(str(tmp_path), "bot-1")


@pytest.fixture
def classifier() -> FakeIntentClassifier:
    return FakeIntentClassifier()


@pytest.fixture
def make_engine(storage, classifier):
    """Build an engine over the fake backends; keyword args override them"""

    def _make(config: Optional[BotConfig] = None, **overrides) -> NLUEngine:
        language_identifier = AsyncMock()
        language_identifier.identify.return_value = "en"
        system_entity_extractor = AsyncMock()
        system_entity_extractor.extract.return_value = []
        slot_extractor = AsyncMock()
        slot_extractor.extract.return_value = []

        backends = {
            "language_identifier": language_identifier,
            "intent_classifier": classifier,
            "system_entity_extractor": system_entity_extractor,
            "slot_extractor": slot_extractor,
            "retry_policy": FAST_RETRY,
        }
        backends.update(overrides)
        return NLUEngine("bot-1", config or BotConfig(confidence_threshold=0.7), storage, **backends)

    return _make
