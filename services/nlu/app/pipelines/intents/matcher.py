import re
from typing import Callable


def create_intent_matcher(intent_name: str) -> Callable[[str], bool]:
    """Predicate telling whether a pattern designates `intent_name`.

    Matching is case-insensitive and `*` matches any run of characters,
    so `booking_*` matches `booking_flight`.
    """

    def matches(pattern: str) -> bool:
        regex = ".*".join(re.escape(part) for part in pattern.split("*"))
        return re.fullmatch(regex, intent_name, flags=re.IGNORECASE) is not None

    return matches
