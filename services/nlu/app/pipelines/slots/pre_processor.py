"""Slot markup parsing and tokenization.

Utterances mark slot values inline, e.g. `fly to [Paris](destination)`.
"""

import re
from typing import List, Sequence, Tuple

from ...models import SlotDefinition, TrainingSequence, TrainingToken

SLOT_MARKUP = re.compile(r"\[([^\[\]]+)\]\(([^()]+)\)")
TOKEN_PATTERN = re.compile(r"\w+|[^\w\s]")


def strip_slot_markup(utterance: str) -> str:
    return SLOT_MARKUP.sub(r"\1", utterance)


def token_spans(text: str) -> List[Tuple[str, int, int]]:
    """Tokens of `text` with their character offsets"""
    return [(match.group(), match.start(), match.end()) for match in TOKEN_PATTERN.finditer(text)]


def tokenize(text: str) -> List[str]:
    return TOKEN_PATTERN.findall(text)


def generate_training_sequence(
    utterance: str,
    slots: Sequence[SlotDefinition],
    intent_name: str,
) -> TrainingSequence:
    """Turn an annotated utterance into BIO-tagged tokens.

    Marked spans whose slot is not defined on the intent are kept as
    plain text.
    """
    slot_names = {slot.name for slot in slots}
    tokens: List[TrainingToken] = []
    canonical = []
    cursor = 0

    for match in SLOT_MARKUP.finditer(utterance):
        before = utterance[cursor:match.start()]
        canonical.append(before)
        tokens.extend(TrainingToken(value=token) for token in tokenize(before))

        value, slot_name = match.group(1), match.group(2).strip()
        canonical.append(value)
        for i, token in enumerate(tokenize(value)):
            if slot_name in slot_names:
                tokens.append(TrainingToken(value=token, tag="B" if i == 0 else "I", slot=slot_name))
            else:
                tokens.append(TrainingToken(value=token))

        cursor = match.end()

    rest = utterance[cursor:]
    canonical.append(rest)
    tokens.extend(TrainingToken(value=token) for token in tokenize(rest))

    return TrainingSequence(intent=intent_name, canonical="".join(canonical), tokens=tokens)
