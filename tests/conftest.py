"""Shared fixtures: a lexicon-driven feature extractor replacing spaCy."""

from __future__ import annotations

import re

import pytest

from nlp_features import Features, set_default_extractor

_TOKEN = re.compile(r"[\w'-]+")

DEFAULT_NOUNS = frozenset({
    "commande", "paiement", "prix", "frais", "commission", "commissions", "service",
    "services", "problème", "sécurité", "protection", "client", "freelance", "compte",
    "profil", "processus", "étape", "avis", "retour", "tarif", "budget",
})
DEFAULT_VERBS = frozenset({
    "veux", "souhaite", "cherche", "payer", "proposer", "offrir", "fonctionner", "protéger",
})
DEFAULT_ADJECTIVES = frozenset({
    "cassé", "cher", "sécurisé", "fiable", "simple", "rapide", "mauvais",
})


class FakeExtractor:
    """
    Tags tokens by dictionary lookup.  Topics are the configured phrases
    found in the text; terms stay empty unless ``with_terms`` is set so the
    weighted intent stage only sees substring hits.
    """

    def __init__(
        self,
        nouns=DEFAULT_NOUNS,
        verbs=DEFAULT_VERBS,
        adjectives=DEFAULT_ADJECTIVES,
        topics=(),
        with_terms=False,
    ):
        self.nouns      = frozenset(nouns)
        self.verbs      = frozenset(verbs)
        self.adjectives = frozenset(adjectives)
        self.topics     = tuple(topics)
        self.with_terms = with_terms
        self.calls      = []

    def extract(self, text: str) -> Features:
        self.calls.append(text)
        lowered = text.lower()
        tokens  = _TOKEN.findall(lowered)
        return Features(
            topics     = tuple(t for t in self.topics if t in lowered),
            nouns      = tuple(t for t in tokens if t in self.nouns),
            verbs      = tuple(t for t in tokens if t in self.verbs),
            adjectives = tuple(t for t in tokens if t in self.adjectives),
            terms      = tuple(tokens) if self.with_terms else (),
        )


class StaticExtractor:
    """Returns the same Features for any text."""

    def __init__(self, features: Features):
        self.features = features

    def extract(self, text: str) -> Features:
        return self.features


@pytest.fixture(autouse=True)
def fake_extractor():
    extractor = FakeExtractor()
    set_default_extractor(extractor)
    yield extractor
    set_default_extractor(None)


@pytest.fixture
def empty_extractor():
    return StaticExtractor(Features())
