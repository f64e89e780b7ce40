from __future__ import annotations

import pytest

from faq_engine import find_best_faq, match_faq_question
from knowledge_base import FaqItem

from conftest import FakeExtractor

FEES     = FaqItem("Quels sont les frais et la commission ?", "Une commission sur les projets réussis.")
SECURITY = FaqItem("Comment fonctionne la sécurité du paiement ?", "Paiement en escrow.")
DELAYS   = FaqItem("Comment gérer les délais ?", "Calendrier convenu ensemble.")


def test_overlap_counts_question_nouns_found_in_message():
    assert match_faq_question("Quels frais sur la commission ?", FEES.question) == 2
    assert match_faq_question("Et la commission ?", FEES.question) == 1
    assert match_faq_question("bonjour", FEES.question) == 0


def test_topics_count_too():
    extractor = FakeExtractor(nouns=(), topics=("vynal",))
    assert match_faq_question("vynal", "Qu'est-ce que Vynal ?", extractor) == 1


def test_best_item_needs_two_overlaps():
    items = [DELAYS, FEES, SECURITY]
    assert find_best_faq("frais et commission", items) is FEES
    assert find_best_faq("la commission", items) is None


def test_first_item_kept_on_equal_overlap():
    twin = FaqItem(FEES.question, "autre réponse")
    assert find_best_faq("frais et commission", [FEES, twin]) is FEES


def test_min_overlap_is_configurable():
    assert find_best_faq("la commission", [FEES], min_overlap=1) is FEES


def test_missing_corpus_raises():
    with pytest.raises(TypeError):
        find_best_faq("frais", None)
    assert find_best_faq("frais", []) is None
