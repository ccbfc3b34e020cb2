"""NLU engine scoped to a single bot.

Keeps the bot's intent model in sync with its intent definitions and runs
the extraction pipeline: language, intents, entities, then slots.
"""

import asyncio
import math
import time
from pathlib import Path
from typing import List, Optional, Sequence

import structlog

from .config import BotConfig, Settings, settings as default_settings
from .fingerprint import get_intents_hash
from .metrics import record_extraction, record_sync
from .models import BotStatus, Entity, IntentDefinition, SelectedIntent, UnderstandingResult
from .pipelines.base import EntityExtractor, IntentClassifier, LanguageIdentifier, SlotExtractor
from .pipelines.entities.duckling_extractor import DucklingEntityExtractor
from .pipelines.entities.pattern_extractor import extract_list_entities, extract_pattern_entities
from .pipelines.intents.matcher import create_intent_matcher
from .pipelines.intents.sklearn_classifier import SklearnIntentClassifier
from .pipelines.language.langdetect_lid import LangDetectLanguageIdentifier
from .pipelines.slots.pre_processor import generate_training_sequence
from .pipelines.slots.sklearn_tagger import SklearnSlotTagger
from .selection import NONE_PREDICTION, find_most_confident_prediction
from .storage import Storage
from .utils.retry import RetryPolicy, retry

logger = structlog.get_logger(__name__)

DEFAULT_CONFIDENCE_THRESHOLD = 0.7


def resolve_confidence_threshold(value) -> float:
    """The configured threshold, or the default when missing, NaN or outside [0, 1]"""
    if not isinstance(value, (int, float)) or math.isnan(value) or value < 0 or value > 1:
        return DEFAULT_CONFIDENCE_THRESHOLD
    return float(value)


class NLUEngine:
    """Intent model lifecycle and extraction pipeline for one bot"""

    def __init__(
        self,
        bot_id: str,
        config: BotConfig,
        storage: Storage,
        *,
        language_identifier: LanguageIdentifier,
        intent_classifier: IntentClassifier,
        system_entity_extractor: EntityExtractor,
        slot_extractor: SlotExtractor,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.bot_id = bot_id
        self.config = config
        self.storage = storage
        self.confidence_threshold = DEFAULT_CONFIDENCE_THRESHOLD

        self.language_identifier = language_identifier
        self.intent_classifier = intent_classifier
        self.system_entity_extractor = system_entity_extractor
        self.slot_extractor = slot_extractor
        self.retry_policy = retry_policy or RetryPolicy()

        self.logger = logger.bind(bot_id=bot_id)
        self._sync_lock = asyncio.Lock()

    @classmethod
    def create(
        cls,
        bot_id: str,
        config: BotConfig,
        storage: Storage,
        settings: Settings = default_settings,
        language_identifier: Optional[LanguageIdentifier] = None,
        system_entity_extractor: Optional[EntityExtractor] = None,
    ) -> "NLUEngine":
        """Engine wired with the default backends"""
        return cls(
            bot_id,
            config,
            storage,
            language_identifier=language_identifier or LangDetectLanguageIdentifier(
                settings.default_language, settings.languages
            ),
            intent_classifier=SklearnIntentClassifier(),
            system_entity_extractor=system_entity_extractor or DucklingEntityExtractor(
                enabled=settings.duckling_enabled,
                url=settings.duckling_url,
                timeout=settings.duckling_timeout,
                tz=settings.timezone,
            ),
            slot_extractor=SklearnSlotTagger(),
            retry_policy=RetryPolicy.from_settings(settings),
        )

    async def init(self):
        self.confidence_threshold = resolve_confidence_threshold(self.config.confidence_threshold)
        if self.confidence_threshold != self.config.confidence_threshold:
            self.logger.warning("Invalid confidence threshold, using default",
                                configured=self.config.confidence_threshold,
                                threshold=self.confidence_threshold)

        if await self.needs_sync():
            await self.sync()

    async def needs_sync(self) -> bool:
        intents = await self.storage.get_intents()

        if intents:
            return self.intent_classifier.current_model_id != get_intents_hash(intents)

        return False

    async def sync(self):
        async with self._sync_lock:
            intents = await self.storage.get_intents()
            model_hash = get_intents_hash(intents)

            if await self.storage.model_exists(model_hash):
                await self._load_model(model_hash)
            else:
                await self._train_model(intents, model_hash)

            try:
                training_set = [
                    generate_training_sequence(utterance, intent.slots, intent.name)
                    for intent in intents
                    for utterance in intent.utterances
                ]
                await self.slot_extractor.train(training_set)
            except Exception as e:
                self.logger.error("Error training slot tagger", error=str(e))

    async def _load_model(self, model_hash: str):
        self.logger.debug("Restoring intents model from storage", model_hash=model_hash)
        model = await self.storage.get_model_as_buffer(model_hash)
        self.intent_classifier.load_model(model, model_hash)
        record_sync("load")

    async def _train_model(self, intents: Sequence[IntentDefinition], model_hash: str):
        try:
            self.logger.debug("The intents model needs to be updated, training model", model_hash=model_hash)
            model_path = await self.intent_classifier.train(intents, model_hash)
            model = await self._read_artifact(model_path)
            model_name = f"{int(time.time() * 1000)}__{model_hash}.bin"
            await self.storage.persist_model(model, model_name)
            self.intent_classifier.load_model(model, model_hash)
            record_sync("train")
            self.logger.info("Intents done training", model=model_name)
        except Exception as e:
            record_sync("train_failed")
            self.logger.error("Error training intents", model_hash=model_hash, error=str(e))

    @staticmethod
    async def _read_artifact(path: str) -> bytes:
        """Read the artifact written by the classifier and remove it"""

        def read_and_remove() -> bytes:
            artifact = Path(path)
            model = artifact.read_bytes()
            artifact.unlink(missing_ok=True)
            return model

        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, read_and_remove)

    async def extract(self, text: str) -> UnderstandingResult:
        """Run the extraction pipeline, retried under the engine's retry policy.

        Always returns a result. When every attempt failed, the result of the
        last attempt is returned as is: filled up to the failing stage, with
        `errored` set.
        """
        start_time = time.time()
        attempts: List[UnderstandingResult] = []

        async def attempt() -> UnderstandingResult:
            result = UnderstandingResult()
            attempts.append(result)
            await self._extract(text, result)
            return result

        try:
            result = await retry(attempt, self.retry_policy)
        except Exception as e:
            self.logger.warning("Could not extract whole NLU data", error=str(e))
            result = attempts[-1] if attempts else UnderstandingResult()

        record_extraction(
            status="errored" if result.errored else "success",
            duration=time.time() - start_time,
            confidence=result.intent.confidence if result.intent else None,
            intent=result.intent.name if result.intent else None,
        )
        return result

    async def _extract(self, text: str, result: UnderstandingResult):
        result.language = await self.language_identifier.identify(text)
        result.intents = await self.intent_classifier.predict(text)

        intent = find_most_confident_prediction(result.intents, self.confidence_threshold)
        result.intent = SelectedIntent(
            name=intent.name,
            confidence=intent.confidence,
            matches=create_intent_matcher(intent.name),
        )
        result.entities = await self._extract_entities(text, result.language)

        intent_def = None if intent is NONE_PREDICTION else await self.storage.get_intent(intent.name)
        result.slots = await self.slot_extractor.extract(text, intent_def, result.entities)
        result.errored = False

    async def _extract_entities(self, text: str, language: str) -> List[Entity]:
        custom_entity_defs = await self.storage.get_custom_entities()
        pattern_entities = extract_pattern_entities(text, [e for e in custom_entity_defs if e.type == "pattern"])
        list_entities = extract_list_entities(text, [e for e in custom_entity_defs if e.type == "list"])
        system_entities = await self.system_entity_extractor.extract(text, language)

        return [*system_entities, *pattern_entities, *list_entities]

    def status(self) -> BotStatus:
        return BotStatus(
            bot_id=self.bot_id,
            model_id=self.intent_classifier.current_model_id,
            confidence_threshold=self.confidence_threshold,
        )
