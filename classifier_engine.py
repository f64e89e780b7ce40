"""
classifier_engine.py
--------------------
Session bookkeeping classifiers:
  1. Topical categories  – fixed keyword taxonomy (payment, security, ...)
  2. Persona             – is the speaker acting as a client or a freelance?

Both are rule tables evaluated in declaration order; an empty result or
UserType.UNDETERMINED is a normal outcome.
"""

from __future__ import annotations

import logging
from enum import Enum
from types import MappingProxyType
from typing import Optional

from nlp_features import FeatureExtractor, extract_features, normalise

logger = logging.getLogger(__name__)


class Category(str, Enum):
    PAYMENT    = "payment"
    SECURITY   = "security"
    PROCESS    = "process"
    ONBOARDING = "onboarding"
    SUPPORT    = "support"
    QUALITY    = "quality"


class UserType(str, Enum):
    CLIENT       = "client"
    FREELANCE    = "freelance"
    UNDETERMINED = "undetermined"


# --------------------------------------------------------------------------- #
#  Category taxonomy                                                           #
# --------------------------------------------------------------------------- #

CATEGORY_KEYWORDS = MappingProxyType({
    Category.PAYMENT:    ("paiement", "prix", "coût", "tarif", "commission", "frais", "argent"),
    Category.SECURITY:   ("sécurité", "confiance", "protection", "garantie", "fiable", "sûr"),
    Category.PROCESS:    ("étape", "processus", "fonctionnement", "comment", "marche", "délai"),
    Category.ONBOARDING: ("début", "commencer", "inscription", "rejoindre", "créer", "profile"),
    Category.SUPPORT:    ("support", "aide", "assistance", "contact", "besoin", "question"),
    Category.QUALITY:    ("qualité", "bon", "niveau", "compétence", "expérience", "expert"),
})


def analyze_conversation_context(
    message:   str,
    extractor: Optional[FeatureExtractor] = None,
) -> tuple:
    """
    Categories whose keywords appear among the utterance's topics / nouns /
    verbs, or as a substring of the normalised utterance.

    Returns
    -------
    tuple[Category, ...] in taxonomy declaration order (possibly empty).
    """
    normalised = normalise(message)
    features   = extract_features(normalised, extractor)
    words      = {w.lower() for w in (*features.topics, *features.nouns, *features.verbs)}

    found = tuple(
        category
        for category, keywords in CATEGORY_KEYWORDS.items()
        if any(kw in words or kw in normalised for kw in keywords)
    )
    logger.debug("Categories for %r: %s", normalised, [c.value for c in found])
    return found


# --------------------------------------------------------------------------- #
#  Persona                                                                     #
# --------------------------------------------------------------------------- #

# Direct declarations: (persona noun, exact replies, declaration prefixes,
# co-occurring word pairs, substrings).  Client rules are checked first.
_DECLARATIONS = (
    (
        UserType.CLIENT,
        "client",
        ("client", "je suis client", "en tant que client"),
        ("je suis client", "en tant que client"),
        (("besoin", "service"),),
        ("cherche un freelance",),
    ),
    (
        UserType.FREELANCE,
        "freelance",
        ("freelance", "je suis freelance", "en tant que freelance"),
        ("je suis freelance", "en tant que freelance"),
        (("offrir", "service"),),
        ("proposer mes services",),
    ),
)

CLIENT_KEYWORDS = (
    "client", "projet", "entreprise", "besoin", "acheter",
    "service", "commande", "achat", "recherche",
)
FREELANCE_KEYWORDS = (
    "freelance", "travailler", "compétence", "offrir", "service",
    "vendre", "talent", "missions", "prestation",
)


def _direct_declaration(message: str, topics: set, nouns: set) -> Optional[UserType]:
    for user_type, noun, exact, prefixes, pairs, substrings in _DECLARATIONS:
        if noun in topics or noun in nouns:
            return user_type
        if message in exact or message.startswith(prefixes):
            return user_type
        if any(a in message and b in message for a, b in pairs):
            return user_type
        if any(s in message for s in substrings):
            return user_type
    return None


def determine_user_type(
    message:   str,
    extractor: Optional[FeatureExtractor] = None,
) -> UserType:
    """
    Decide whether the speaker is a client or a freelance.

    A direct declaration ("je suis client", "proposer mes services", ...)
    wins immediately.  Otherwise each keyword list votes once per keyword
    present; the strictly higher count wins, a tie is UNDETERMINED.
    """
    normalised = normalise(message)
    features   = extract_features(normalised, extractor)

    declared = _direct_declaration(
        normalised,
        {t.lower() for t in features.topics},
        {n.lower() for n in features.nouns},
    )
    if declared is not None:
        logger.debug("Persona declared: %s", declared.value)
        return declared

    client_score    = sum(1 for kw in CLIENT_KEYWORDS if kw in normalised)
    freelance_score = sum(1 for kw in FREELANCE_KEYWORDS if kw in normalised)
    logger.debug("Persona vote client=%d freelance=%d", client_score, freelance_score)

    if client_score > freelance_score:
        return UserType.CLIENT
    if freelance_score > client_score:
        return UserType.FREELANCE
    return UserType.UNDETERMINED
