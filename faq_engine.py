"""
faq_engine.py
-------------
Lexical overlap between an utterance and FAQ questions.

match_faq_question() counts topic and noun matches between two strings;
find_best_faq() keeps the FAQ item with the highest overlap.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from knowledge_base import FaqItem
from nlp_features import FeatureExtractor, extract_features, normalise

logger = logging.getLogger(__name__)

MIN_FAQ_OVERLAP = 2


def match_faq_question(
    message:      str,
    faq_question: str,
    extractor:    Optional[FeatureExtractor] = None,
) -> int:
    """
    Number of the question's topics and nouns also present in the message.
    Higher is better; the value is not bounded.
    """
    user     = extract_features(normalise(message), extractor)
    question = extract_features(normalise(faq_question), extractor)

    user_topics = {t.lower() for t in user.topics}
    user_nouns  = {n.lower() for n in user.nouns}

    topic_matches = sum(1 for t in question.topics if t.lower() in user_topics)
    noun_matches  = sum(1 for n in question.nouns if n.lower() in user_nouns)
    return topic_matches + noun_matches


def find_best_faq(
    message:     str,
    items:       Sequence[FaqItem],
    extractor:   Optional[FeatureExtractor] = None,
    min_overlap: int = MIN_FAQ_OVERLAP,
) -> Optional[FaqItem]:
    """Return the first FAQ item with the highest overlap, if it reaches *min_overlap*."""
    if items is None:
        raise TypeError("find_best_faq() requires a FAQ corpus")

    best: Optional[FaqItem] = None
    best_score = 0
    for item in items:
        score = match_faq_question(message, item.question, extractor)
        if score > best_score:
            best, best_score = item, score

    if best is not None and best_score >= min_overlap:
        logger.debug("FAQ match %r (overlap=%d)", best.question, best_score)
        return best
    return None
