"""
context_engine.py
-----------------
Conversation-context resolver.

Looks at the last exchanges of a session to decide whether the new utterance
continues the previous turn (connector words, acknowledgements, or a word
shared with one of the last three queries).  Follow-ups get a reply keyed by
polarity and by the category of the last exchange; otherwise plain
satisfaction / dissatisfaction vocabulary yields a feedback reply.

The session history is owned by the host; this module only reads it.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple

from intent_engine import IntentGroup
from nlp_features import normalise

logger = logging.getLogger(__name__)

RECENT_EXCHANGES  = 3
FEEDBACK_CATEGORY = "feedback"

_WORD = re.compile(r"[\w'-]+")


@dataclass(frozen=True)
class ConversationExchange:
    query:     str
    response:  str
    category:  str
    timestamp: datetime


@dataclass(frozen=True)
class UserInfo:
    is_freelance: Optional[bool] = None
    is_client:    Optional[bool] = None
    interests:    frozenset      = field(default_factory=frozenset)


@dataclass(frozen=True)
class ConversationContext:
    last_category:     str = ""
    conversation_flow: Tuple[ConversationExchange, ...] = ()
    user_info:         UserInfo = field(default_factory=UserInfo)


@dataclass(frozen=True)
class ContextualResponse:
    response:   str
    category:   str
    confidence: str = "high"


class Polarity(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL  = "neutral"


# --------------------------------------------------------------------------- #
#  Patterns & vocabulary                                                       #
# --------------------------------------------------------------------------- #

FOLLOW_UP_PATTERNS = tuple(re.compile(p, re.IGNORECASE) for p in (
    r"^(et|mais|donc|alors|ensuite|puis|après)(\s|$)",
    r"^(oui|non|peut-être|effectivement|absolument|pas du tout|exactement)(\s|$)",
    r"^(d'accord|ok|bien|parfait|super|génial|excellent)(\s|$)",
    r"^(je comprends|je vois|je sais|je pense|je crois)(\s|$)",
))

POSITIVE_PATTERN = re.compile(r"^(oui|ok|d'accord|bien|parfait|super|génial|excellent)", re.IGNORECASE)
NEGATIVE_PATTERN = re.compile(r"^(non|pas|jamais|impossible|difficile)", re.IGNORECASE)

SATISFACTION_WORDS = (
    "merci", "super", "parfait", "excellent", "génial", "top", "cool", "bien", "ok", "d'accord",
)
DISSATISFACTION_WORDS = (
    "pas content", "déçu", "insatisfait", "problème", "difficile", "compliqué", "cher", "trop",
)

_LEAD_INS = {
    Polarity.POSITIVE: "Je suis ravi que cela vous convienne ! Pour continuer sur le sujet {category}, ",
    Polarity.NEGATIVE: "Je comprends votre préoccupation. Concernant {category}, ",
    Polarity.NEUTRAL:  "Pour continuer sur le sujet {category}, ",
}

_CONTINUATIONS = {
    IntentGroup.SERVICE_INQUIRY: (
        "je peux vous donner plus de détails sur nos services spécifiques. "
        "Que souhaitez-vous savoir en particulier ?"
    ),
    IntentGroup.PROCESS_QUESTION: (
        "je peux vous expliquer plus en détail les étapes suivantes. "
        "Avez-vous des questions sur une étape particulière ?"
    ),
    IntentGroup.PRICING_INQUIRY: (
        "je peux vous fournir plus d'informations sur nos tarifs et conditions. "
        "Y a-t-il un aspect particulier qui vous intéresse ?"
    ),
}
DEFAULT_CONTINUATION = "que souhaitez-vous savoir de plus ?"

SATISFIED_REPLY = (
    "Je suis ravi d'avoir pu vous aider ! Y a-t-il autre chose à propos de "
    "Vynal Platform sur laquelle je pourrais vous renseigner ?"
)
DISSATISFIED_REPLY = (
    "Je suis désolé que notre réponse ne vous ait pas entièrement satisfait. "
    "Pourriez-vous me préciser ce qui ne vous convient pas ? "
    "Je ferai de mon mieux pour vous aider."
)


# --------------------------------------------------------------------------- #
#  Helpers                                                                     #
# --------------------------------------------------------------------------- #

def _words(text: str) -> set:
    return set(_WORD.findall(text.lower()))


def is_follow_up(message: str, recent: Tuple[ConversationExchange, ...]) -> bool:
    """
    True when *message* (normalised) opens with a connector / acknowledgement
    or shares a word with one of the *recent* queries.
    """
    if any(p.search(message) for p in FOLLOW_UP_PATTERNS):
        return True
    message_words = _words(message)
    return any(message_words & _words(exchange.query) for exchange in recent)


def classify_polarity(message: str) -> Polarity:
    if POSITIVE_PATTERN.search(message):
        return Polarity.POSITIVE
    if NEGATIVE_PATTERN.search(message):
        return Polarity.NEGATIVE
    return Polarity.NEUTRAL


def continuation_for(category: str) -> str:
    try:
        group = IntentGroup(category)
    except ValueError:
        return DEFAULT_CONTINUATION
    return _CONTINUATIONS.get(group, DEFAULT_CONTINUATION)


# --------------------------------------------------------------------------- #
#  Public API                                                                  #
# --------------------------------------------------------------------------- #

def generate_contextual_response(
    message: str,
    context: ConversationContext,
) -> Optional[ContextualResponse]:
    """
    Context-aware reply for a follow-up or a feedback utterance, else None.

    Parameters
    ----------
    message : str                 – raw user utterance
    context : ConversationContext – session snapshot owned by the host

    Returns None immediately when the session has no history.
    """
    if context is None:
        raise TypeError("generate_contextual_response() requires a ConversationContext")

    flow = context.conversation_flow
    if not flow:
        return None

    normalised = normalise(message)
    last       = flow[-1]
    recent     = tuple(flow[-RECENT_EXCHANGES:])

    if is_follow_up(normalised, recent):
        polarity = classify_polarity(normalised)
        reply = _LEAD_INS[polarity].format(category=last.category) + continuation_for(last.category)
        logger.debug("Follow-up (%s) on category %s", polarity.value, last.category)
        return ContextualResponse(response=reply, category=last.category)

    if any(word in normalised for word in SATISFACTION_WORDS):
        return ContextualResponse(response=SATISFIED_REPLY, category=FEEDBACK_CATEGORY)

    if any(word in normalised for word in DISSATISFACTION_WORDS):
        return ContextualResponse(response=DISSATISFIED_REPLY, category=FEEDBACK_CATEGORY)

    return None
