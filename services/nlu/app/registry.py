"""Mounted NLU engines, one per bot"""

from typing import Awaitable, Callable, Dict, List, Optional

import structlog

from .config import BotConfig
from .engine import NLUEngine
from .metrics import mounted_bots
from .storage import Storage, StorageProvider

logger = structlog.get_logger(__name__)

EngineFactory = Callable[[str, BotConfig, Storage], NLUEngine]


class EngineRegistry:
    """Owns the engine of every mounted bot.

    Unmounting only forgets the engine: extractions already running on it
    finish against its last state.
    """

    def __init__(
        self,
        storage_provider: StorageProvider,
        engine_factory: EngineFactory = NLUEngine.create,
        on_close: Optional[Callable[[], Awaitable[None]]] = None,
    ):
        self.storage_provider = storage_provider
        self.engine_factory = engine_factory
        self._on_close = on_close
        self._engines: Dict[str, NLUEngine] = {}

    async def mount(self, bot_id: str) -> NLUEngine:
        storage = self.storage_provider(bot_id)
        config = await storage.get_config()

        engine = self.engine_factory(bot_id, config, storage)
        await engine.init()

        self._engines[bot_id] = engine
        mounted_bots.set(len(self._engines))
        logger.info("NLU engine mounted", bot_id=bot_id, model_id=engine.intent_classifier.current_model_id)
        return engine

    def unmount(self, bot_id: str) -> bool:
        engine = self._engines.pop(bot_id, None)
        mounted_bots.set(len(self._engines))
        if engine:
            logger.info("NLU engine unmounted", bot_id=bot_id)
        return engine is not None

    def get(self, bot_id: str) -> Optional[NLUEngine]:
        return self._engines.get(bot_id)

    def __contains__(self, bot_id: str) -> bool:
        return bot_id in self._engines

    @property
    def bot_ids(self) -> List[str]:
        return sorted(self._engines)

    async def close(self):
        for bot_id in self.bot_ids:
            self.unmount(bot_id)
        if self._on_close:
            await self._on_close()
