"""Slot tagging with a token classifier over context-window features"""

import asyncio
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import structlog
from sklearn.feature_extraction import DictVectorizer
from sklearn.linear_model import LogisticRegression
from sklearn.pipeline import make_pipeline

from ...models import Entity, IntentDefinition, Slot, TrainingSequence
from ..base import SlotExtractor
from .pre_processor import token_spans

logger = structlog.get_logger(__name__)

OUTSIDE = "O"


def _shape(word: str) -> str:
    if word.isdigit():
        return "digit"
    if word.isupper():
        return "upper"
    if word.istitle():
        return "title"
    if word.isalpha():
        return "lower"
    return "other"


def token_features(words: Sequence[str], i: int, intent: str) -> Dict[str, float]:
    word = words[i]
    features = {
        "bias": 1.0,
        f"intent={intent}": 1.0,
        f"word={word.lower()}": 1.0,
        f"suffix3={word[-3:].lower()}": 1.0,
        f"shape={_shape(word)}": 1.0,
    }

    for offset in (-2, -1, 1, 2):
        j = i + offset
        if 0 <= j < len(words):
            features[f"{offset}:word={words[j].lower()}"] = 1.0
            features[f"{offset}:intent_word={intent}|{words[j].lower()}"] = 1.0
        elif offset == -1:
            features["BOS"] = 1.0
        elif offset == 1:
            features["EOS"] = 1.0

    return features


def _label(tag: str, slot: Optional[str]) -> str:
    return f"{tag}-{slot}" if tag != OUTSIDE and slot else OUTSIDE


class SklearnSlotTagger(SlotExtractor):
    """BIO slot tagger trained on annotated utterances"""

    def __init__(self):
        self.model = None

    async def train(self, training_set: Sequence[TrainingSequence]):
        loop = asyncio.get_running_loop()
        self.model = await loop.run_in_executor(None, self._train, list(training_set))

    def _train(self, training_set: List[TrainingSequence]):
        features, labels = [], []
        for sequence in training_set:
            words = [token.value for token in sequence.tokens]
            for i, token in enumerate(sequence.tokens):
                features.append(token_features(words, i, sequence.intent))
                labels.append(_label(token.tag, token.slot))

        if len(set(labels)) < 2:
            logger.info("No slots to learn, slot tagger disabled", sequences=len(training_set))
            return None

        model = make_pipeline(DictVectorizer(), LogisticRegression(max_iter=1000, C=10.0))
        model.fit(features, labels)
        logger.info("Slot tagger trained", sequences=len(training_set), tokens=len(labels))
        return model

    async def extract(
        self,
        text: str,
        intent_def: Optional[IntentDefinition],
        entities: Sequence[Entity],
    ) -> List[Slot]:
        model = self.model
        if model is None or intent_def is None or not intent_def.slots:
            return []

        spans = token_spans(text)
        if not spans:
            return []

        words = [span[0] for span in spans]
        features = [token_features(words, i, intent_def.name) for i in range(len(words))]

        loop = asyncio.get_running_loop()
        probabilities = await loop.run_in_executor(None, model.predict_proba, features)
        classes = model.classes_
        best = np.argmax(probabilities, axis=1)
        tags = [(str(classes[k]), float(probabilities[i][k])) for i, k in enumerate(best)]

        return self._assemble(text, spans, tags, intent_def, entities)

    def _assemble(
        self,
        text: str,
        spans: List[Tuple[str, int, int]],
        tags: List[Tuple[str, float]],
        intent_def: IntentDefinition,
        entities: Sequence[Entity],
    ) -> List[Slot]:
        slot_defs = {slot.name: slot for slot in intent_def.slots}

        # [slot name, start, end, confidences]
        chunks: List[list] = []
        previous = None
        for (_, start, end), (label, confidence) in zip(spans, tags):
            if label == OUTSIDE:
                previous = None
                continue
            tag, slot_name = label.split("-", 1)
            if slot_name not in slot_defs:
                previous = None
                continue
            if tag == "I" and previous == slot_name:
                chunks[-1][2] = end
                chunks[-1][3].append(confidence)
            else:
                chunks.append([slot_name, start, end, [confidence]])
            previous = slot_name

        slots: Dict[str, Slot] = {}
        for slot_name, start, end, confidences in chunks:
            source = text[start:end]
            confidence = float(np.mean(confidences))
            entity = next(
                (
                    e for e in entities
                    if e.name in slot_defs[slot_name].entity and e.meta.start < end and e.meta.end > start
                ),
                None,
            )
            slot = Slot(
                name=slot_name,
                value=entity.data.value if entity else source,
                source=source,
                confidence=confidence,
                entity=entity,
            )
            if slot_name not in slots or slots[slot_name].confidence < confidence:
                slots[slot_name] = slot

        return list(slots.values())
