"""Whitespace/particle segmentation and inflection-tolerant keyword matching.

Japanese has no word boundaries, so a query is first split on whitespace
and then on grammatical particles and polite endings.  Keywords in the
catalog are usually dictionary forms (``しみる``, ``取れた``); ``stem_matches``
lets them hit conjugated free text by trimming a known ending.
"""

from __future__ import annotations

import re

_WHITESPACE_RE = re.compile(r"[\s　]+")

# Longer endings come first so that e.g. ``について`` is removed as a whole
# instead of leaving ``ついて`` behind after splitting on ``に``.
PARTICLES: tuple[str, ...] = (
    "について", "ください", "ですか", "です", "ます", "って",
    "の", "を", "は", "が", "に", "で", "と", "も", "か", "へ",
)
_PARTICLE_RE = re.compile("|".join(map(re.escape, PARTICLES)))

SINGLE_CHAR_ENDINGS: tuple[str, ...] = ("る", "い", "く", "す", "つ", "ぬ", "ぶ", "む", "う")
MULTI_CHAR_ENDINGS: tuple[str, ...] = (
    "する", "した", "ない", "たい", "ます", "ました", "ている", "ていた", "れる", "れた",
)

MIN_FRAGMENT_LENGTH = 2
MIN_STEM_LENGTH = 2


def tokenize(text: str | None) -> list[str]:
    return [t for t in _WHITESPACE_RE.split(text or "") if t]


def split_for_match(text: str | None) -> list[str]:
    """Whitespace chunks plus their particle-split fragments, de-duplicated.

    Each chunk is kept whole and followed by its fragments of at least two
    characters; first-occurrence order is preserved.
    """
    seen: dict[str, None] = {}
    for chunk in tokenize((text or "").strip()):
        seen.setdefault(chunk, None)
        for part in _PARTICLE_RE.split(chunk):
            if len(part) >= MIN_FRAGMENT_LENGTH:
                seen.setdefault(part, None)
    return list(seen)


def stem_matches(haystack: str, keyword: str) -> bool:
    """True if *keyword*, or its stem after dropping one ending, is in *haystack*."""
    kw = (keyword or "").strip()
    if not kw:
        return False
    if kw in haystack:
        return True
    if len(kw) < 3:
        return False

    for ending in SINGLE_CHAR_ENDINGS:
        if kw.endswith(ending):
            stem = kw[:-1]
            if len(stem) >= MIN_STEM_LENGTH and stem in haystack:
                return True

    for ending in MULTI_CHAR_ENDINGS:
        if kw.endswith(ending) and len(kw) > len(ending) + 1:
            stem = kw[: -len(ending)]
            if len(stem) >= MIN_STEM_LENGTH and stem in haystack:
                return True

    return False


def bigram_overlap(needle: str, haystack: str) -> float:
    """Share of *needle*'s distinct 2-character windows found in *haystack*."""
    if len(needle) < 2 or len(haystack) < 2:
        return 0.0
    bigrams = {needle[i : i + 2] for i in range(len(needle) - 1)}
    hits = sum(1 for bg in bigrams if bg in haystack)
    return hits / len(bigrams)
