"""Hooks called by the host process around the NLU engines"""

import structlog

from .config import BotConfig, Settings
from .engine import NLUEngine
from .pipelines.entities.duckling_extractor import DucklingEntityExtractor
from .pipelines.language.langdetect_lid import LangDetectLanguageIdentifier
from .registry import EngineRegistry
from .storage import Storage, file_storage_provider
from .utils.logging import setup_logging

logger = structlog.get_logger(__name__)


def on_server_started(settings: Settings) -> EngineRegistry:
    """Configure logging and the backends shared by every bot"""
    setup_logging(settings.log_level, settings.log_json)

    language_identifier = LangDetectLanguageIdentifier(settings.default_language, settings.languages)
    system_entity_extractor = DucklingEntityExtractor(
        enabled=settings.duckling_enabled,
        url=settings.duckling_url,
        timeout=settings.duckling_timeout,
        tz=settings.timezone,
    )

    def engine_factory(bot_id: str, config: BotConfig, storage: Storage) -> NLUEngine:
        return NLUEngine.create(
            bot_id,
            config,
            storage,
            settings=settings,
            language_identifier=language_identifier,
            system_entity_extractor=system_entity_extractor,
        )

    logger.info("NLU module configured",
                data_dir=settings.data_dir,
                duckling_enabled=settings.duckling_enabled,
                duckling_url=settings.duckling_url)

    return EngineRegistry(
        file_storage_provider(settings.data_dir),
        engine_factory,
        on_close=system_entity_extractor.close,
    )


async def on_bot_mount(registry: EngineRegistry, bot_id: str) -> NLUEngine:
    return await registry.mount(bot_id)


async def on_bot_unmount(registry: EngineRegistry, bot_id: str):
    registry.unmount(bot_id)
