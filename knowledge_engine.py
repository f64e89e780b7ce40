"""
knowledge_engine.py
-------------------
Feature-weighted matching of an utterance against the static knowledge base.

Scoring per entry (entries with an unmet required keyword are skipped):
  +10  per entry keyword found as a substring of the utterance
  +5   per extracted topic equal to one of the entry keywords
  +15  when the entry category was already attributed to the conversation

The best entry wins only above MIN_CONFIDENT_SCORE; ties keep catalog order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from knowledge_base import KnowledgeEntry
from nlp_features import FeatureExtractor, extract_features, normalise

logger = logging.getLogger(__name__)

KEYWORD_WEIGHT      = 10
TOPIC_WEIGHT        = 5
CONTEXT_WEIGHT      = 15
MIN_CONFIDENT_SCORE = 15


@dataclass(frozen=True)
class MatchResult:
    response:   str
    confidence: float
    category:   str


def _has_required(entry: KnowledgeEntry, message: str) -> bool:
    return all(k in message for k in entry.required_keywords)


def score_entry(
    entry:    KnowledgeEntry,
    message:  str,
    topics:   Sequence[str],
    context:  Iterable[str],
) -> Optional[int]:
    """
    Score one entry against an already-normalised message.
    Returns None when a required keyword is missing.
    """
    if not _has_required(entry, message):
        return None

    score = sum(KEYWORD_WEIGHT for kw in entry.keywords if kw in message)
    score += sum(TOPIC_WEIGHT for topic in topics if topic.lower() in entry.keywords)
    if entry.category in context:
        score += CONTEXT_WEIGHT
    return score


def find_best_answer(
    message:   str,
    base:      Sequence[KnowledgeEntry],
    context:   Sequence[str] = (),
    extractor: Optional[FeatureExtractor] = None,
) -> Optional[MatchResult]:
    """
    Return the best knowledge answer for *message*, or None.

    Parameters
    ----------
    message   : str                 – raw user utterance
    base      : sequence of entries – the knowledge base, in catalog order
    context   : sequence of str     – categories already seen in the session
    extractor : FeatureExtractor    – defaults to the process-wide extractor

    Returns
    -------
    MatchResult with the raw score as confidence, or None when no entry
    scores above MIN_CONFIDENT_SCORE.
    """
    if base is None:
        raise TypeError("find_best_answer() requires a knowledge base")
    if context is None:
        raise TypeError("find_best_answer() context must be a sequence, not None")

    normalised = normalise(message)
    topics     = extract_features(normalised, extractor).topics
    context    = frozenset(context)

    best: Optional[KnowledgeEntry] = None
    best_score = 0

    for entry in base:
        score = score_entry(entry, normalised, topics, context)
        if score is not None and score > best_score:
            best, best_score = entry, score

    if best is not None and best_score > MIN_CONFIDENT_SCORE:
        logger.debug("Knowledge match %s (score=%d)", best.id, best_score)
        return MatchResult(response=best.response, confidence=best_score, category=best.category)

    logger.debug("No confident knowledge match (best score=%d)", best_score)
    return None
