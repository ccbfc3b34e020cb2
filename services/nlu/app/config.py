"""Configuration settings for the NLU service"""

import json
from pathlib import Path
from typing import List

import structlog
from pydantic import BaseModel, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = structlog.get_logger(__name__)


class Settings(BaseSettings):
    """Application settings"""

    # Server
    port: int = 8009
    debug: bool = False

    # Storage
    data_dir: str = "/data"

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    # Language identification
    default_language: str = "en"
    languages: List[str] = ["en", "fr", "es", "de", "it", "pt"]

    # System entities (Duckling)
    duckling_enabled: bool = True
    duckling_url: str = "http://duckling:8000"
    duckling_timeout: float = 2.0
    timezone: str = "UTC"

    # Intent selection, default for every bot
    confidence_threshold: float = 0.7

    # Extraction retry policy
    retry_interval: float = 0.1  # seconds
    retry_max_interval: float = 0.5
    retry_timeout: float = 5.0
    retry_max_tries: int = 3

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="NLU_",
        case_sensitive=False,
    )


settings = Settings()


class BotConfig(BaseModel):
    """NLU module configuration scoped to a single bot"""

    confidence_threshold: float = settings.confidence_threshold


def load_bot_config(bot_dir: Path) -> BotConfig:
    """Read `config/nlu.json` from a bot directory, defaults when absent or invalid.

    The threshold is passed through as-is; range checking belongs to the engine.
    """
    config_file = bot_dir / "config" / "nlu.json"
    if not config_file.exists():
        return BotConfig()

    try:
        raw = json.loads(config_file.read_text(encoding="utf-8"))
        return BotConfig(**raw)
    except (json.JSONDecodeError, ValidationError, TypeError) as e:
        logger.error("Invalid bot NLU config, using defaults", path=str(config_file), error=str(e))
        return BotConfig()
