"""Custom entities declared by a bot: regex patterns and value lists"""

import re
from typing import List, Sequence

import structlog

from ...models import Entity, EntityData, EntityDefinition, EntityMeta

logger = structlog.get_logger(__name__)


def _native_entity(entity_def: EntityDefinition, match: re.Match, value) -> Entity:
    return Entity(
        name=entity_def.name,
        type=entity_def.type,
        meta=EntityMeta(
            confidence=1.0,
            provider="native",
            source=match.group(),
            start=match.start(),
            end=match.end(),
        ),
        data=EntityData(value=value, unit="string"),
    )


def extract_pattern_entities(text: str, pattern_entities: Sequence[EntityDefinition]) -> List[Entity]:
    """Every non-empty match of each definition's pattern, case-insensitive"""
    entities = []

    for entity_def in pattern_entities:
        if not entity_def.pattern:
            continue
        try:
            regex = re.compile(entity_def.pattern, re.IGNORECASE)
        except re.error as e:
            logger.warning("Invalid entity pattern", entity=entity_def.name, pattern=entity_def.pattern, error=str(e))
            continue

        for match in regex.finditer(text):
            if match.group():
                entities.append(_native_entity(entity_def, match, match.group()))

    return entities


def extract_list_entities(text: str, list_entities: Sequence[EntityDefinition]) -> List[Entity]:
    """Whole-word occurrences of list values and their synonyms, case-insensitive.

    The extracted value is the canonical occurence name. Within one
    definition, longer synonyms win over overlapping shorter ones.
    """
    entities = []

    for entity_def in list_entities:
        candidates = []
        for occurence in entity_def.occurences:
            for synonym in [occurence.name, *occurence.tags]:
                if not synonym.strip():
                    continue
                regex = re.compile(rf"(?<!\w){re.escape(synonym.strip())}(?!\w)", re.IGNORECASE)
                candidates.extend((match, occurence.name) for match in regex.finditer(text))

        taken = []
        for match, value in sorted(candidates, key=lambda c: (c[0].start() - c[0].end(), c[0].start())):
            if any(match.start() < end and match.end() > start for start, end in taken):
                continue
            taken.append((match.start(), match.end()))
            entities.append(_native_entity(entity_def, match, value))

    entities.sort(key=lambda e: e.meta.start)
    return entities
