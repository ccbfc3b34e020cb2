"""Intent classification with a TF-IDF / logistic regression model"""

import asyncio
import io
import os
import tempfile
from typing import List, Optional, Sequence, Tuple

import joblib
import structlog
from sklearn.feature_extraction.text import TfidfVectorizer
from sklearn.linear_model import LogisticRegression
from sklearn.pipeline import make_pipeline

from ...models import IntentDefinition, Prediction
from ..base import IntentClassifier
from ..slots.pre_processor import strip_slot_markup

logger = structlog.get_logger(__name__)


class SklearnIntentClassifier(IntentClassifier):
    """Intent classifier trained on the utterances of every intent"""

    def __init__(self):
        # (model_id, artifact), replaced as a whole on load
        self._active: Optional[Tuple[str, dict]] = None

    @property
    def current_model_id(self) -> Optional[str]:
        return self._active[0] if self._active else None

    async def train(self, intents: Sequence[IntentDefinition], model_id: str) -> str:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._train, list(intents), model_id)

    def _train(self, intents: List[IntentDefinition], model_id: str) -> str:
        texts, labels = [], []
        for intent in intents:
            for utterance in intent.utterances:
                text = strip_slot_markup(utterance).strip()
                if text:
                    texts.append(text)
                    labels.append(intent.name)

        if not texts:
            raise ValueError("No utterances to train the intents model on")

        classes = sorted(set(labels))
        pipeline = None
        if len(classes) > 1:
            pipeline = make_pipeline(
                TfidfVectorizer(analyzer="char_wb", ngram_range=(2, 4), lowercase=True, sublinear_tf=True),
                LogisticRegression(max_iter=1000, C=10.0),
            )
            pipeline.fit(texts, labels)

        fd, path = tempfile.mkstemp(prefix=f"intents_{model_id}_", suffix=".bin")
        os.close(fd)
        joblib.dump({"classes": classes, "pipeline": pipeline}, path)

        logger.info("Intents model trained", model_id=model_id, intents=len(classes), utterances=len(texts))
        return path

    def load_model(self, model: bytes, model_id: str):
        artifact = joblib.load(io.BytesIO(model))
        self._active = (model_id, artifact)

    async def predict(self, text: str) -> List[Prediction]:
        active = self._active
        if active is None:
            # nothing trained yet, the selector falls back to "none"
            return []

        _, artifact = active
        pipeline = artifact["pipeline"]
        if pipeline is None:
            return [Prediction(name=artifact["classes"][0], confidence=1.0)]

        loop = asyncio.get_running_loop()
        probabilities = await loop.run_in_executor(None, pipeline.predict_proba, [text])

        ranked = sorted(zip(pipeline.classes_, probabilities[0]), key=lambda x: x[1], reverse=True)
        return [Prediction(name=str(name), confidence=float(confidence)) for name, confidence in ranked]
