"""File storage for a bot's intents, entities and trained models"""

import asyncio
import json
import re
from functools import partial
from pathlib import Path
from typing import Callable, List, Optional, Tuple

import structlog

from .config import BotConfig, load_bot_config
from .exceptions import IntentNotFoundError, InvalidBotIdError, InvalidIntentNameError, ModelNotFoundError
from .models import EntityDefinition, IntentDefinition

logger = structlog.get_logger(__name__)

INTENTS_DIR = "intents"
ENTITIES_DIR = "entities"
MODELS_DIR = "models"

MODEL_NAME_PATTERN = re.compile(r"^(\d+)__([0-9a-f]+)\.bin$")


def sanitize_filename(name: str) -> str:
    """Lowercase, drop a `.json` extension and replace unsafe characters"""
    name = name.strip().lower()
    if name.endswith(".json"):
        name = name[: -len(".json")]
    return re.sub(r"[^a-z0-9_.-]", "_", name)


def parse_model_name(filename: str) -> Optional[Tuple[int, str]]:
    """`{timestamp}__{hash}.bin` -> (timestamp, hash)"""
    match = MODEL_NAME_PATTERN.match(filename)
    if not match:
        return None
    return int(match.group(1)), match.group(2)


class Storage:
    """Per-bot file store rooted at `{data_dir}/bots/{bot_id}`"""

    def __init__(self, data_dir: str, bot_id: str):
        if bot_id in (".", "..") or sanitize_filename(bot_id) != bot_id:
            raise InvalidBotIdError(bot_id)

        self.bot_id = bot_id
        self.bot_dir = Path(data_dir) / "bots" / bot_id
        self.intents_dir = self.bot_dir / INTENTS_DIR
        self.entities_dir = self.bot_dir / ENTITIES_DIR
        self.models_dir = self.bot_dir / MODELS_DIR

    async def _run(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(func, *args))

    # Intents

    async def get_intents(self) -> List[IntentDefinition]:
        return await self._run(self._read_intents)

    async def get_intent(self, name: str) -> IntentDefinition:
        return await self._run(lambda: self._read_intent(self._intent_path(name)))

    async def save_intent(self, intent: IntentDefinition) -> IntentDefinition:
        filename = self._intent_filename(intent.name)
        content = intent.model_dump(exclude={"name", "filename"})
        await self._run(self._write_json, self.intents_dir / filename, content)
        logger.info("Intent saved", bot_id=self.bot_id, intent=filename[:-5])
        return intent.model_copy(update={"name": filename[:-5], "filename": filename})

    async def delete_intent(self, name: str):
        path = self._intent_path(name)
        if not path.exists():
            raise IntentNotFoundError(name)
        await self._run(path.unlink)

    def _intent_filename(self, name: str) -> str:
        sanitized = sanitize_filename(name)
        if not sanitized:
            raise InvalidIntentNameError("Invalid intent name, expected at least one character")
        return f"{sanitized}.json"

    def _intent_path(self, name: str) -> Path:
        """File of the intent listed under `name`, else of its sanitized name"""
        if name and name not in (".", "..") and Path(name).name == name:
            listed = self.intents_dir / f"{name}.json"
            if listed.is_file():
                return listed
        return self.intents_dir / self._intent_filename(name)

    def _read_intents(self) -> List[IntentDefinition]:
        if not self.intents_dir.exists():
            return []
        return [self._read_intent(path) for path in sorted(self.intents_dir.glob("*.json"))]

    def _read_intent(self, path: Path) -> IntentDefinition:
        if not path.exists():
            raise IntentNotFoundError(path.stem)
        content = json.loads(path.read_text(encoding="utf-8"))
        content.update(name=path.stem, filename=path.name)
        return IntentDefinition(**content)

    # Entities

    async def get_custom_entities(self) -> List[EntityDefinition]:
        return await self._run(self._read_entities)

    async def save_entity(self, entity: EntityDefinition) -> EntityDefinition:
        entity_id = sanitize_filename(entity.id or entity.name)
        entity = entity.model_copy(update={"id": entity_id})
        await self._run(self._write_json, self.entities_dir / f"{entity_id}.json", entity.model_dump())
        return entity

    async def delete_entity(self, entity_id: str):
        path = self.entities_dir / f"{sanitize_filename(entity_id)}.json"
        if path.exists():
            await self._run(path.unlink)

    def _read_entities(self) -> List[EntityDefinition]:
        if not self.entities_dir.exists():
            return []
        return [
            EntityDefinition(**json.loads(path.read_text(encoding="utf-8")))
            for path in sorted(self.entities_dir.glob("*.json"))
        ]

    # Models

    async def model_exists(self, model_hash: str) -> bool:
        return await self._run(self._find_model, model_hash) is not None

    async def get_model_as_buffer(self, model_hash: str) -> bytes:
        path = await self._run(self._find_model, model_hash)
        if path is None:
            raise ModelNotFoundError(model_hash)
        return await self._run(path.read_bytes)

    async def persist_model(self, model: bytes, model_name: str):
        await self._run(self._write_bytes, self.models_dir / model_name, model)
        logger.debug("Model persisted", bot_id=self.bot_id, model=model_name)

    async def list_models(self) -> List[str]:
        return await self._run(self._list_models)

    def _list_models(self) -> List[str]:
        if not self.models_dir.exists():
            return []
        return sorted(path.name for path in self.models_dir.glob("*.bin") if parse_model_name(path.name))

    def _find_model(self, model_hash: str) -> Optional[Path]:
        candidates = [
            (parsed[0], name)
            for name in self._list_models()
            for parsed in [parse_model_name(name)]
            if parsed[1] == model_hash
        ]
        if not candidates:
            return None
        _, newest = max(candidates)
        return self.models_dir / newest

    # Config

    async def get_config(self) -> BotConfig:
        return await self._run(load_bot_config, self.bot_dir)

    @staticmethod
    def _write_json(path: Path, content: dict):
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(content, indent=2, ensure_ascii=False), encoding="utf-8")

    @staticmethod
    def _write_bytes(path: Path, content: bytes):
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)


StorageProvider = Callable[[str], Storage]


def file_storage_provider(data_dir: str) -> StorageProvider:
    """Storage factory for every bot under `data_dir`"""
    return partial(Storage, data_dir)
