"""
nlp_features.py
---------------
Adapter around the linguistic feature extractor consumed by every engine.

The engines never tokenise text themselves: they receive a ``Features``
record (topics / nouns / verbs / adjectives / terms, all lower-cased and in
document order) from an object implementing ``FeatureExtractor``.

The production extractor wraps a spaCy French pipeline.  A process-wide
default extractor sits behind a single reference so it can be swapped in one
assignment (tests install a lexicon-driven fake, hosts may install their own).
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from typing import Optional, Protocol, Tuple

logger = logging.getLogger(__name__)

DEFAULT_SPACY_MODEL = os.environ.get("CHATBOT_SPACY_MODEL", "fr_core_news_sm")

_NOUN_TAGS      = {"NOUN", "PROPN"}
_VERB_TAGS      = {"VERB", "AUX"}
_ADJECTIVE_TAGS = {"ADJ"}


@dataclass(frozen=True)
class Features:
    topics:     Tuple[str, ...] = ()
    nouns:      Tuple[str, ...] = ()
    verbs:      Tuple[str, ...] = ()
    adjectives: Tuple[str, ...] = ()
    terms:      Tuple[str, ...] = ()


class FeatureExtractor(Protocol):
    def extract(self, text: str) -> Features:
        ...


def normalise(text: str) -> str:
    """Lower-case and strip an utterance."""
    return (text or "").lower().strip()


# --------------------------------------------------------------------------- #
#  spaCy adapter                                                               #
# --------------------------------------------------------------------------- #

class SpacyFeatureExtractor:
    """
    Feature extractor backed by a spaCy pipeline.

    Parameters
    ----------
    model_name : str – installed spaCy package name (default fr_core_news_sm)

    The pipeline is loaded on first use; an uninstalled model raises the
    ``OSError`` spaCy emits, which callers are expected to propagate.
    """

    def __init__(self, model_name: str = DEFAULT_SPACY_MODEL):
        self.model_name = model_name
        self._nlp = None
        self._lock = threading.Lock()

    def _pipeline(self):
        if self._nlp is None:
            with self._lock:
                if self._nlp is None:
                    import spacy

                    logger.info("Loading spaCy model %s", self.model_name)
                    self._nlp = spacy.load(self.model_name)
        return self._nlp

    def extract(self, text: str) -> Features:
        doc = self._pipeline()(normalise(text))

        terms, nouns, verbs, adjectives = [], [], [], []
        for token in doc:
            if token.is_punct or token.is_space:
                continue
            word = token.text.lower()
            terms.append(word)
            if token.pos_ in _NOUN_TAGS:
                nouns.append(word)
            elif token.pos_ in _VERB_TAGS:
                verbs.append(word)
            elif token.pos_ in _ADJECTIVE_TAGS:
                adjectives.append(word)

        return Features(
            topics     = tuple(ent.text.lower() for ent in doc.ents),
            nouns      = tuple(nouns),
            verbs      = tuple(verbs),
            adjectives = tuple(adjectives),
            terms      = tuple(terms),
        )


# --------------------------------------------------------------------------- #
#  Process-wide default                                                        #
# --------------------------------------------------------------------------- #

_default_extractor: Optional[FeatureExtractor] = None
_default_lock = threading.Lock()


def get_default_extractor() -> FeatureExtractor:
    global _default_extractor
    if _default_extractor is None:
        with _default_lock:
            if _default_extractor is None:
                _default_extractor = SpacyFeatureExtractor()
    return _default_extractor


def set_default_extractor(extractor: Optional[FeatureExtractor]) -> None:
    """Swap the default extractor; ``None`` restores the spaCy adapter on next use."""
    global _default_extractor
    with _default_lock:
        _default_extractor = extractor


def extract_features(text: str, extractor: Optional[FeatureExtractor] = None) -> Features:
    return (extractor or get_default_extractor()).extract(text)
