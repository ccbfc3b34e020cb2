"""Language identification of incoming text"""

from typing import Optional, Sequence

import structlog
from langdetect import DetectorFactory, LangDetectException, detect_langs

from ..base import LanguageIdentifier

logger = structlog.get_logger(__name__)

# langdetect is randomized unless seeded
DetectorFactory.seed = 0

MIN_TEXT_LENGTH = 3


class LangDetectLanguageIdentifier(LanguageIdentifier):
    """Text language detection with langdetect"""

    def __init__(self, default_language: str = "en", languages: Optional[Sequence[str]] = None):
        self.default_language = default_language
        self.languages = set(languages) if languages else None

    async def identify(self, text: str) -> str:
        if not text or len(text.strip()) < MIN_TEXT_LENGTH:
            return self.default_language

        try:
            detected_langs = detect_langs(text)
        except LangDetectException as e:
            logger.warning("Text language detection failed", error=str(e), text=text[:50])
            return self.default_language

        for lang in detected_langs:
            if self.languages is None or lang.lang in self.languages:
                return lang.lang

        return self.default_language
