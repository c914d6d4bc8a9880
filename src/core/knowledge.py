"""Fuzzy scoring of knowledge-corpus chunks.

Three passes, each cheaper to satisfy than the last:

1. the whole symbol-stripped query appears in the chunk (+30);
2. query fragments appear verbatim (+4 plus half the fragment length, capped at 12);
3. only for weak matches so far, fragments whose character bigrams mostly
   appear in the chunk.  This absorbs single-character variants such as
   different kanji forms in transcribed documents.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from src.core.models import KnowledgeChunk, ScoredChunk
from src.core.normalize import canonicalize, strip_symbols
from src.core.tokenize import bigram_overlap, split_for_match

logger = logging.getLogger(__name__)

FULL_QUERY_POINTS = 30
FRAGMENT_MAX_POINTS = 12
BIGRAM_GATE_SCORE = 12
BIGRAM_MIN_QUERY_LENGTH = 4
BIGRAM_MIN_FRAGMENT_LENGTH = 3
BIGRAM_MIN_OVERLAP = 0.5
BIGRAM_WEIGHT = 20


def _round_half_up(value: float) -> int:
    return int(value + 0.5)


def score_chunk(
    chunk: KnowledgeChunk, norm: str, fragments: list[str],
) -> int:
    hay = canonicalize(f"{chunk.title}\n{chunk.text}".lower())
    hay_norm = strip_symbols(hay)

    score = 0
    if norm in hay_norm:
        score += FULL_QUERY_POINTS

    for frag in fragments:
        if len(frag) < 2:
            continue
        if frag in hay_norm:
            score += min(FRAGMENT_MAX_POINTS, 4 + len(frag) // 2)

    if score < BIGRAM_GATE_SCORE and len(norm) >= BIGRAM_MIN_QUERY_LENGTH:
        for frag in fragments:
            if len(frag) < BIGRAM_MIN_FRAGMENT_LENGTH:
                continue
            overlap = bigram_overlap(frag, hay_norm)
            if overlap >= BIGRAM_MIN_OVERLAP:
                score += _round_half_up(overlap * BIGRAM_WEIGHT)
    return score


def pick_relevant(
    chunks: Iterable[KnowledgeChunk],
    query: str,
    limit: int = 3,
    *,
    fragment_limit: int = 10,
) -> list[ScoredChunk]:
    """Return up to *limit* chunks with a positive score, best first."""
    lowered = canonicalize(query).lower().strip()
    norm = strip_symbols(lowered)
    if not norm:
        return []

    fragments = [strip_symbols(f) for f in split_for_match(lowered)[:fragment_limit]]

    scored: list[ScoredChunk] = []
    for chunk in chunks:
        if not chunk.text:
            continue
        score = score_chunk(chunk, norm, fragments)
        if score > 0:
            scored.append(ScoredChunk(score, chunk))

    scored.sort(key=lambda s: s.score, reverse=True)
    if scored:
        logger.debug(
            "Knowledge top hit %s/%s score=%d",
            scored[0].chunk.title, scored[0].chunk.chunk_id, scored[0].score,
        )
    return scored[:limit]
