"""Backend roles consumed by the NLU engine"""

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from ..models import Entity, IntentDefinition, Prediction, Slot, TrainingSequence


class LanguageIdentifier(ABC):

    @abstractmethod
    async def identify(self, text: str) -> str:
        """Language code of `text`"""


class IntentClassifier(ABC):
    """Trainable intent model.

    `current_model_id` is the id passed to the last successful `load_model`,
    None until a model is loaded.
    """

    current_model_id: Optional[str] = None

    @abstractmethod
    async def train(self, intents: Sequence[IntentDefinition], model_id: str) -> str:
        """Train on `intents` and return the path of the written model artifact"""

    @abstractmethod
    def load_model(self, model: bytes, model_id: str):
        """Make the serialized `model` the active one"""

    @abstractmethod
    async def predict(self, text: str) -> List[Prediction]:
        """Intent predictions for `text`, most confident first"""


class EntityExtractor(ABC):

    @abstractmethod
    async def extract(self, text: str, language: str) -> List[Entity]:
        """Entities found in `text`"""


class SlotExtractor(ABC):

    @abstractmethod
    async def train(self, training_set: Sequence[TrainingSequence]):
        """Replace the tagging model with one trained on `training_set`"""

    @abstractmethod
    async def extract(
        self,
        text: str,
        intent_def: Optional[IntentDefinition],
        entities: Sequence[Entity],
    ) -> List[Slot]:
        """Slots of `intent_def` found in `text`"""
