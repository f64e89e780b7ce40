from __future__ import annotations

from datetime import datetime, timezone

import pytest

from chatbot_engine import (
    DEFAULT_RESPONSE,
    EMPTY_MESSAGE_RESPONSE,
    GROUP_CLAUSES,
    GROUP_RESPONSES,
    INTENT_RESPONSES,
    SUPPORT_NOTE,
    BotReply,
    ChatbotEngine,
    Strategy,
    Turn,
    append_context_notes,
    build_engine,
    first_success,
    get_bot_response,
)
from classifier_engine import UserType
from context_engine import ConversationContext, ConversationExchange
from intent_engine import Intent, IntentGroup
from knowledge_base import FaqCorpus, FaqItem

FEES_FAQ = FaqItem("Quels sont les frais et la commission ?", "Commission sur les projets réussis.")
CORPUS = FaqCorpus(
    items             = (FEES_FAQ,),
    payment_process   = "Les fonds sont bloqués jusqu'à validation.",
    security_features = ("Paiement en escrow", "Vérification d'identité", "Chiffrement"),
)


@pytest.fixture(scope="module")
def engine():
    return build_engine()


@pytest.fixture
def bare_engine():
    """No knowledge entries, so later strategies get a chance."""
    return ChatbotEngine((), CORPUS)


def test_response_tables_are_exhaustive():
    assert set(INTENT_RESPONSES) == set(Intent)
    assert set(GROUP_RESPONSES) == set(IntentGroup)
    assert set(GROUP_CLAUSES) == set(IntentGroup)


def test_engine_requires_a_knowledge_base():
    with pytest.raises(TypeError):
        ChatbotEngine(None)


def test_empty_message_gets_greeting(engine):
    reply = engine.respond("   ")
    assert reply.response == EMPTY_MESSAGE_RESPONSE
    assert reply.source is Strategy.EMPTY


def test_knowledge_answer(engine):
    reply = engine.respond("Quels moyens de paiement pour payer ?")
    assert reply.source is Strategy.KNOWLEDGE
    assert reply.category == "payment"
    assert reply.confidence == 45
    assert reply.categories == ("payment",)
    assert "À propos du paiement" not in reply.response


def test_knowledge_answer_gets_session_notes(engine):
    reply = engine.respond("Quels moyens de paiement pour payer ?", session_categories=("security",))
    assert reply.source is Strategy.KNOWLEDGE
    assert reply.response.endswith(
        "Concernant la sécurité : Vynal Platform garantit Système de paiement sécurisé (escrow) "
        "et Vérification d'identité pour tous les utilisateurs."
    )


def test_specific_intent_answer(engine):
    reply = engine.respond("Où en est ma commande ?")
    assert reply.source is Strategy.INTENT
    assert reply.response == INTENT_RESPONSES[Intent.COMMANDE_INFO]
    assert reply.intent == "commande_info"
    assert reply.confidence == pytest.approx(0.9)
    assert reply.user_type is UserType.CLIENT


def test_composite_intent_answer(engine):
    reply = engine.respond("c'est cassé, y a-t-il des frais ?")
    assert reply.source is Strategy.EXPANDED
    assert reply.intent == "pricing_inquiry"
    assert reply.response.startswith(
        "Votre question semble porter sur plusieurs aspects. Concernant pricing inquiry, "
        + GROUP_CLAUSES[IntentGroup.PRICING_INQUIRY]
    )
    assert "Vous semblez également vous intéresser à complaint. Nous prenons" in reply.response


def test_group_answer(bare_engine):
    reply = bare_engine.respond("est-ce sécurisé ? puis-je faire confiance")
    assert reply.source is Strategy.EXPANDED
    assert reply.response == GROUP_RESPONSES[IntentGroup.SECURITY_CONCERNS]
    assert reply.confidence == pytest.approx(0.7)


def test_faq_answer(bare_engine):
    reply = bare_engine.respond("frais et commission")
    assert reply.source is Strategy.FAQ
    assert reply.response == FEES_FAQ.answer


def test_default_answer(bare_engine):
    reply = bare_engine.respond("xyz")
    assert reply.source is Strategy.DEFAULT
    assert reply.response == DEFAULT_RESPONSE
    assert reply.category == "general"


def test_context_short_circuits_the_chain(engine):
    exchange = ConversationExchange(
        query     = "quel est le prix",
        response  = "...",
        category  = "pricing_inquiry",
        timestamp = datetime.now(timezone.utc),
    )
    context = ConversationContext(last_category="pricing_inquiry", conversation_flow=(exchange,))
    reply = engine.respond("et ensuite, les paiements ?", context)
    assert reply.source is Strategy.CONTEXT
    assert reply.category == "pricing_inquiry"
    assert reply.categories == ()


def test_first_success_stops_at_first_reply():
    calls = []

    def miss(turn):
        calls.append("miss")
        return None

    def hit(turn):
        calls.append("hit")
        return BotReply(response="ok", category="x", source=Strategy.FAQ)

    def never(turn):
        calls.append("never")
        return None

    turn = Turn(message="m", context=ConversationContext())
    reply = first_success(
        [(Strategy.KNOWLEDGE, miss), (Strategy.FAQ, hit), (Strategy.DEFAULT, never)], turn,
    )
    assert reply.response == "ok"
    assert calls == ["miss", "hit"]
    assert first_success([(Strategy.KNOWLEDGE, miss)], turn) is None


class TestContextNotes:

    def test_payment_note(self):
        text = append_context_notes("Réponse.", ("payment",), CORPUS)
        assert text == "Réponse.\n\nÀ propos du paiement : Les fonds sont bloqués jusqu'à validation."

    def test_topic_already_mentioned_is_skipped(self):
        assert append_context_notes("Le support répond.", ("support",), CORPUS) == "Le support répond."

    def test_support_note(self):
        assert append_context_notes("Réponse.", ("support",), CORPUS).endswith(SUPPORT_NOTE)

    def test_security_note_needs_two_features(self):
        corpus = FaqCorpus(security_features=("seule",))
        assert append_context_notes("Réponse.", ("security",), corpus) == "Réponse."

    def test_no_session_categories(self):
        assert append_context_notes("Réponse.", (), CORPUS) == "Réponse."


def test_module_level_helper_uses_shipped_data():
    assert get_bot_response("") == EMPTY_MESSAGE_RESPONSE
    assert get_bot_response("Où en est ma commande ?") == INTENT_RESPONSES[Intent.COMMANDE_INFO]
