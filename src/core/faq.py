"""Keyword scoring of catalog entries against a patient query."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from src.core.models import CatalogEntry, ScoredEntry
from src.core.tokenize import stem_matches

logger = logging.getLogger(__name__)

KEYWORD_POINTS = 10
QUESTION_POINTS = 3
MIN_QUESTION_LENGTH = 4


def score_entry(entry: CatalogEntry, query_lower: str) -> int:
    score = 0
    for kw in entry.keyword_list:
        if kw in query_lower or stem_matches(query_lower, kw):
            score += KEYWORD_POINTS

    question = entry.question.lower()
    if len(question) >= MIN_QUESTION_LENGTH and (
        question in query_lower or stem_matches(query_lower, question)
    ):
        score += QUESTION_POINTS
    return score


def pick_relevant(
    entries: Iterable[CatalogEntry], query: str, limit: int = 5,
) -> list[ScoredEntry]:
    """Return up to *limit* enabled entries with a positive score, best first.

    Ties keep catalog order.
    """
    query_lower = (query or "").lower()
    if not query_lower:
        return []

    scored: list[ScoredEntry] = []
    for entry in entries:
        if not entry.enabled or not entry.question or not entry.answer:
            continue
        score = score_entry(entry, query_lower)
        if score > 0:
            scored.append(ScoredEntry(score, entry))

    scored.sort(key=lambda s: s.score, reverse=True)
    if scored:
        logger.debug(
            "FAQ top hit %r score=%d (%d candidates)",
            scored[0].entry.question, scored[0].score, len(scored),
        )
    return scored[:limit]
