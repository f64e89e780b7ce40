from __future__ import annotations

from datetime import datetime, timezone

import pytest

from context_engine import (
    DEFAULT_CONTINUATION,
    DISSATISFIED_REPLY,
    SATISFIED_REPLY,
    ContextualResponse,
    ConversationContext,
    ConversationExchange,
    Polarity,
    classify_polarity,
    continuation_for,
    generate_contextual_response,
)
from intent_engine import IntentGroup


def _context(*turns):
    flow = tuple(
        ConversationExchange(query=q, response="...", category=c, timestamp=datetime.now(timezone.utc))
        for q, c in turns
    )
    return ConversationContext(last_category=flow[-1].category if flow else "", conversation_flow=flow)


def test_empty_history_returns_none():
    assert generate_contextual_response("et ensuite ?", ConversationContext()) is None


def test_missing_context_raises():
    with pytest.raises(TypeError):
        generate_contextual_response("et ensuite ?", None)


def test_connector_continues_last_category():
    context = _context(("quel est le prix", "pricing_inquiry"))
    reply = generate_contextual_response("Et ensuite ?", context)
    assert reply == ContextualResponse(
        response   = "Pour continuer sur le sujet pricing_inquiry, je peux vous fournir plus "
                     "d'informations sur nos tarifs et conditions. "
                     "Y a-t-il un aspect particulier qui vous intéresse ?",
        category   = "pricing_inquiry",
        confidence = "high",
    )


def test_positive_acknowledgement():
    context = _context(("comment ça marche", "process_question"))
    reply = generate_contextual_response("oui parfait", context)
    assert reply.response.startswith("Je suis ravi que cela vous convienne ! Pour continuer sur le sujet process_question, ")
    assert reply.category == "process_question"


def test_negative_reply_on_category_without_continuation():
    context = _context(("quel paiement", "payment"))
    reply = generate_contextual_response("non merci", context)
    assert reply.response == f"Je comprends votre préoccupation. Concernant payment, {DEFAULT_CONTINUATION}"


def test_shared_word_with_recent_query_is_a_follow_up():
    context = _context(("quel est le prix", "pricing_inquiry"))
    reply = generate_contextual_response("tarif du prix", context)
    assert reply.category == "pricing_inquiry"


def test_shared_punctuation_alone_is_not_a_follow_up():
    context = _context(("quel est le prix ?", "pricing_inquiry"))
    assert generate_contextual_response("quoi ?", context) is None


def test_words_are_compared_without_surrounding_punctuation():
    context = _context(("le prix?", "pricing_inquiry"))
    reply = generate_contextual_response("prix!", context)
    assert reply.category == "pricing_inquiry"


def test_only_last_three_queries_are_compared():
    context = _context(
        ("paypal", "payment"),
        ("a", "general"),
        ("b", "general"),
        ("c", "general"),
    )
    assert generate_contextual_response("paypal", context) is None


def test_satisfaction_feedback():
    context = _context(("xyz", "general"))
    assert generate_contextual_response("vraiment top", context) == ContextualResponse(
        response=SATISFIED_REPLY, category="feedback",
    )


def test_dissatisfaction_feedback():
    context = _context(("quel est le prix", "pricing_inquiry"))
    reply = generate_contextual_response("Je suis déçu", context)
    assert reply.response == DISSATISFIED_REPLY
    assert reply.category == "feedback"


def test_satisfaction_is_checked_first():
    context = _context(("xyz", "general"))
    assert generate_contextual_response("pas content mais merci", context).response == SATISFIED_REPLY


def test_unrelated_message_is_none():
    context = _context(("quel est le prix", "pricing_inquiry"))
    assert generate_contextual_response("parlez-moi du design", context) is None


@pytest.mark.parametrize("message, expected", [
    ("ok d'accord", Polarity.POSITIVE),
    ("non", Polarity.NEGATIVE),
    ("difficile à dire", Polarity.NEGATIVE),
    ("et puis", Polarity.NEUTRAL),
])
def test_polarity(message, expected):
    assert classify_polarity(message) is expected


def test_continuations():
    assert continuation_for(IntentGroup.SERVICE_INQUIRY.value).startswith("je peux vous donner")
    assert continuation_for(IntentGroup.COMPLAINT.value) == DEFAULT_CONTINUATION
    assert continuation_for("payment") == DEFAULT_CONTINUATION
