from __future__ import annotations

import logging
import re
from typing import Iterable

from .errors import InputError

LOG = logging.getLogger("query_separator.query")

SOUND_KEYWORDS: tuple[str, ...] = (
    "speech", "voice", "talking", "speaking", "conversation",
    "music", "song", "melody", "instrument", "guitar", "piano", "drums",
    "noise", "background", "ambient",
    "clapping", "applause", "footsteps", "walking",
    "dog", "barking", "animal", "bird", "chirping",
    "car", "vehicle", "engine", "traffic",
    "phone", "ringing", "notification",
    "water", "flowing", "rain", "wind",
    "door", "closing", "opening", "knock",
)

SYNONYM_GROUPS: tuple[frozenset[str], ...] = (
    frozenset({"speech", "voice", "talking", "speaking", "conversation"}),
    frozenset({"music", "song", "melody", "instrument"}),
    frozenset({"dog", "barking", "animal"}),
    frozenset({"car", "vehicle", "engine"}),
    frozenset({"water", "flowing", "rain"}),
    frozenset({"noise", "background", "ambient"}),
)

_SEPARATORS = re.compile(r"[,;]|\band\b|\bor\b")


def split_query(query: str) -> list[str]:
    """Lowercase, trim and split a query on , ; and the words 'and'/'or'."""
    clean = query.lower().strip()
    return [part.strip() for part in _SEPARATORS.split(clean) if part.strip()]


def _synonym_group(keyword: str) -> frozenset[str] | None:
    return next((group for group in SYNONYM_GROUPS if keyword in group), None)


def are_similar_sounds(sound1: str, sound2: str) -> bool:
    """True when both strings mention members of the same synonym group."""
    a = sound1.lower()
    b = sound2.lower()
    for group in SYNONYM_GROUPS:
        if any(word in a for word in group) and any(word in b for word in group):
            return True
    return False


def _overlaps(a: str, b: str) -> bool:
    a = a.lower()
    b = b.lower()
    return a in b or b in a


def parse_query(query: str) -> list[str]:
    """Turn free text into an ordered list of distinct target terms.

    Each sub-query is scanned against ``SOUND_KEYWORDS`` in vocabulary order.
    A keyword is skipped when it was already collected, or when a synonym of
    it was collected from the same sub-query, so "dog barking" resolves to a
    single "dog" target while "water, rain" keeps both. When no keyword is
    found anywhere, the sub-queries themselves become literal targets.
    """
    if not query or not query.strip():
        raise InputError("Query must contain at least one non-whitespace character")

    sub_queries = split_query(query)
    if not sub_queries:
        raise InputError(f"Query {query!r} contains only separators")

    targets: list[str] = []
    for sub in sub_queries:
        groups: set[frozenset[str]] = set()
        for keyword in SOUND_KEYWORDS:
            if keyword not in sub:
                continue
            group = _synonym_group(keyword)
            if keyword not in targets and (group is None or group not in groups):
                targets.append(keyword)
            if group is not None:
                groups.add(group)

    if not targets:
        for sub in sub_queries:
            if sub not in targets:
                targets.append(sub)

    LOG.debug("Parsed query %r -> %s", query, targets)
    return targets


def match_detected_sounds(targets: Iterable[str], detected: Iterable[str]) -> list[str]:
    """Detected labels related to any target, deduplicated, in detector order."""
    targets = list(targets)
    matches: list[str] = []
    for label in detected:
        if not label or not label.strip() or label in matches:
            continue
        if any(_overlaps(label, t) or are_similar_sounds(t, label) for t in targets):
            matches.append(label)
    return matches


def matches_for_target(target: str, matched: Iterable[str]) -> list[str]:
    return match_detected_sounds([target], matched)

