"""Content hash of a bot's intent definitions, used as the intent model id"""

import hashlib
import json
from typing import Sequence

from .models import IntentDefinition


def get_intents_hash(intents: Sequence[IntentDefinition]) -> str:
    """Hash the full intent set.

    Intents are ordered by name before serialization so the hash does not
    depend on the order storage lists them in. Utterance and slot order is
    content and is kept as authored. An empty set hashes like any other
    serialization; callers decide what "no intents" means.
    """
    canonical = [
        intent.model_dump(mode="json", exclude={"filename"})
        for intent in sorted(intents, key=lambda intent: intent.name)
    ]
    serialized = json.dumps(canonical, sort_keys=True, ensure_ascii=False, separators=(",", ":"))
    return hashlib.md5(serialized.encode("utf-8")).hexdigest()
