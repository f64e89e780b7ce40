from __future__ import annotations

import pytest

from knowledge_base import KnowledgeEntry
from knowledge_engine import MatchResult, find_best_answer, score_entry
from nlp_features import Features

from conftest import FakeExtractor, StaticExtractor

PAYMENT = KnowledgeEntry(
    id       = "payment_1",
    keywords = ("prix", "commission", "paiement"),
    category = "payment",
    response = "Commission de 10% sur les transactions.",
)
SUPPORT = KnowledgeEntry(
    id       = "support_1",
    keywords = ("aide", "support"),
    category = "support",
    response = "Notre équipe de support est là pour vous aider.",
)


def test_keyword_hits_score_ten_each():
    result = find_best_answer("Quel est le prix de vos commissions ?", [PAYMENT], [])
    assert result == MatchResult(
        response   = PAYMENT.response,
        confidence = 20,
        category   = "payment",
    )


def test_single_keyword_is_not_confident():
    assert find_best_answer("le prix", [PAYMENT], []) is None


def test_session_category_adds_context_weight():
    # 10 from "prix" alone is not enough, the session context tips it over
    result = find_best_answer("le prix", [PAYMENT], ["payment"])
    assert result is not None
    assert result.confidence == 25


def test_exactly_fifteen_is_rejected():
    assert find_best_answer("bonjour", [PAYMENT], ["payment"]) is None


def test_topics_found_in_keywords_add_five():
    extractor = FakeExtractor(topics=("paiement",))
    result = find_best_answer("paiement et prix", [PAYMENT], [], extractor)
    assert result.confidence == 25


def test_highest_score_wins_and_ties_keep_catalog_order():
    twin = KnowledgeEntry(id="twin", keywords=PAYMENT.keywords, category="payment", response="twin")
    result = find_best_answer("prix commission", [PAYMENT, twin], [])
    assert result.response == PAYMENT.response

    result = find_best_answer("aide support prix", [PAYMENT, SUPPORT], ["support"])
    assert result.category == "support"


def test_required_keywords_gate_the_entry():
    gated = KnowledgeEntry(
        id                = "refund",
        keywords          = ("prix", "commission"),
        required_keywords = ("remboursement",),
        category          = "payment",
        response          = "refund",
    )
    assert score_entry(gated, "prix commission", (), frozenset()) is None
    assert score_entry(gated, "remboursement prix commission", (), frozenset()) == 20


def test_empty_base_returns_none():
    assert find_best_answer("prix commission", [], []) is None


def test_message_is_normalised():
    assert find_best_answer("  PRIX ET COMMISSION  ", [PAYMENT], []).confidence == 20


def test_none_base_or_context_raises():
    with pytest.raises(TypeError):
        find_best_answer("prix", None, [])
    with pytest.raises(TypeError):
        find_best_answer("prix", [PAYMENT], None)


def test_entry_without_keywords_is_rejected():
    with pytest.raises(ValueError):
        KnowledgeEntry(id="empty", keywords=(), category="general", response="x")


def test_explicit_extractor_overrides_default(fake_extractor):
    extractor = StaticExtractor(Features(topics=("commission",)))
    result = find_best_answer("prix commission", [PAYMENT], [], extractor)
    assert result.confidence == 25
    assert fake_extractor.calls == []


def test_mixed_case_keywords_still_match():
    entry = KnowledgeEntry(
        id       = "shouty",
        keywords = ("PRIX", "Commission", "Paiement"),
        category = "payment",
        response = "ok",
    )
    assert find_best_answer("prix commission", [entry], []).confidence == 20

    extractor = FakeExtractor(topics=("paiement",))
    assert find_best_answer("paiement et prix", [entry], [], extractor).confidence == 25
