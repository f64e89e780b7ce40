"""
chatbot_engine.py  –  Vynal Platform support assistant
=======================================================
Turns one user utterance (plus the session's conversation context) into a
reply.

Matching pipeline (highest → lowest priority, first success wins):
  1. Conversation context  – follow-ups and feedback on the previous turn
  2. Knowledge base        – keyword / topic / session-category scoring
  3. Specific intent       – regex-first intent catalog
  4. Expanded intent       – intent groups, composite intents
  5. FAQ overlap           – topic / noun overlap with the FAQ corpus
  6. DEFAULT_RESPONSE

Before steps 2–5 the category and persona classifiers run so the host can
keep its session bookkeeping up to date.  The engine itself never mutates the
session: it reads a ConversationContext snapshot and returns a BotReply.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Callable, Optional, Sequence, Tuple, Union

from classifier_engine import UserType, analyze_conversation_context, determine_user_type
from context_engine import ConversationContext, generate_contextual_response
from faq_engine import find_best_faq
from intent_engine import (
    UNKNOWN_INTENT,
    ExpandedIntentResult,
    Intent,
    IntentGroup,
    detect_specific_intent,
    expand_intent_detection,
)
from knowledge_base import FaqCorpus, KnowledgeEntry, load_faq, load_knowledge_base
from knowledge_engine import find_best_answer
from nlp_features import FeatureExtractor

logger = logging.getLogger(__name__)

# Specific / expanded intents only answer above this confidence
MIN_INTENT_CONFIDENCE = 0.6


class Strategy(str, Enum):
    EMPTY     = "empty"
    CONTEXT   = "context"
    KNOWLEDGE = "knowledge"
    INTENT    = "intent"
    EXPANDED  = "expanded"
    FAQ       = "faq"
    DEFAULT   = "default"


@dataclass(frozen=True)
class BotReply:
    response:   str
    category:   str
    source:     Strategy
    confidence: Union[float, str] = 0.0
    categories: Tuple[str, ...]   = ()
    user_type:  UserType          = UserType.UNDETERMINED
    intent:     Optional[str]     = None


@dataclass(frozen=True)
class Turn:
    message:            str
    context:            ConversationContext
    session_categories: Tuple[str, ...] = ()


# ═══════════════════════════════════════════════════════════════════════════
#  RESPONSES
# ═══════════════════════════════════════════════════════════════════════════

INTENT_RESPONSES = MappingProxyType({
    Intent.COMMANDE_INFO: (
        "Pour suivre votre commande sur Vynal Platform, connectez-vous à votre compte et "
        "accédez à la section 'Mes commandes'. Vous y trouverez l'état d'avancement, les "
        "communications avec le freelance et les délais prévus. Pour une question précise sur "
        "une commande, contactez directement le prestataire via la messagerie intégrée."
    ),
    Intent.PAIEMENT_INFO: (
        "Vynal Platform propose plusieurs méthodes de paiement sécurisées : cartes bancaires, "
        "PayPal et solutions de paiement mobile africaines. Les paiements sont retenus en "
        "garantie jusqu'à ce que vous approuviez le travail livré. Les freelances sont "
        "généralement payés dans les 48h après validation. La commission varie de 5% à 10% "
        "selon le volume de transactions."
    ),
    Intent.PROFIL_EDIT: (
        "Pour modifier votre profil, connectez-vous, cliquez sur votre photo en haut à droite "
        "puis sélectionnez 'Mon profil' ou 'Paramètres'. Vous pourrez y modifier vos "
        "informations personnelles, votre photo, votre description, vos compétences et vos "
        "réalisations. Pensez à sauvegarder avant de quitter la page."
    ),
    Intent.AIDE_TECHNIQUE: (
        "Je suis désolé que vous rencontriez des difficultés techniques. Pourriez-vous me "
        "préciser ce qui ne fonctionne pas ? Vous pouvez aussi contacter notre support "
        "technique à support@vynalplatform.com, du lundi au vendredi de 9h à 18h, avec une "
        "réponse sous 24 heures."
    ),
    Intent.VENTE_CLIENTS: (
        "Pour attirer plus de clients : optimisez votre profil avec une photo professionnelle "
        "et une description détaillée, mettez en valeur vos compétences et votre portfolio, "
        "proposez des prix compétitifs au début, répondez rapidement aux demandes et demandez "
        "des avis après chaque projet."
    ),
    Intent.CREATION_COMPTE: (
        "Pour créer un compte, cliquez sur 'S'inscrire' en haut à droite de la page "
        "d'accueil. Inscrivez-vous avec votre email ou via Google/Facebook, indiquez si vous "
        "êtes freelance ou client, puis complétez votre profil. L'inscription est gratuite et "
        "prend moins de 5 minutes."
    ),
})

GROUP_RESPONSES = MappingProxyType({
    IntentGroup.SERVICE_INQUIRY: (
        "Vynal Platform propose une large gamme de services professionnels fournis par des "
        "freelances qualifiés : design, développement web, rédaction, marketing digital et bien "
        "plus encore. Avez-vous un domaine particulier qui vous intéresse ?"
    ),
    IntentGroup.PROCESS_QUESTION: (
        "Le processus est simple : parcourez les services, contactez le freelance pour discuter "
        "de vos besoins, définissez les modalités (délai, budget, livrables), effectuez le "
        "paiement sécurisé et recevez votre travail. Y a-t-il une étape sur laquelle vous "
        "aimeriez plus de détails ?"
    ),
    IntentGroup.PRICING_INQUIRY: (
        "Les prix varient selon les services et les freelances : chaque prestataire fixe ses "
        "propres tarifs. Vynal prélève une commission de 5% à 10% selon le volume de "
        "transactions, et vous ne payez que lorsque vous êtes satisfait du travail livré. "
        "Avez-vous une question spécifique concernant les tarifs ?"
    ),
    IntentGroup.COMPLAINT: (
        "Je suis désolé d'apprendre que vous rencontrez des difficultés. Pourriez-vous me donner "
        "plus de détails sur ce qui ne fonctionne pas correctement ? Notre équipe de support est "
        "également disponible via support@vynalplatform.com."
    ),
    IntentGroup.SECURITY_CONCERNS: (
        "La sécurité est notre priorité : paiement sécurisé avec protection acheteur, "
        "vérification des freelances, chiffrement SSL de toutes les données et système "
        "d'évaluation transparent. Avez-vous une préoccupation particulière ?"
    ),
    IntentGroup.FEEDBACK: (
        "Merci pour votre retour ! Nous prenons très au sérieux les commentaires de nos "
        "utilisateurs pour améliorer constamment Vynal Platform. N'hésitez pas à partager vos "
        "suggestions."
    ),
})

# Short clauses used when one reply must cover two intents
GROUP_CLAUSES = MappingProxyType({
    IntentGroup.SERVICE_INQUIRY:   "nous proposons une variété de services professionnels dans les domaines du digital, du design, de la rédaction et plus encore",
    IntentGroup.PROCESS_QUESTION:  "notre processus est simple et sécurisé avec sélection du freelance, paiement sécurisé et livraison garantie",
    IntentGroup.PRICING_INQUIRY:   "les prix varient selon les services et les freelances, avec une commission de 5% à 10% prélevée par la plateforme",
    IntentGroup.COMPLAINT:         "nous prenons très au sérieux tous les problèmes rencontrés et notre équipe support est à votre disposition pour les résoudre",
    IntentGroup.SECURITY_CONCERNS: "nous utilisons des protocoles de sécurité avancés pour protéger vos données et transactions",
    IntentGroup.FEEDBACK:          "vos retours sont essentiels pour nous aider à améliorer constamment nos services",
})
DEFAULT_CLAUSE = "n'hésitez pas à me poser des questions plus précises pour que je puisse mieux vous aider"

SUPPORT_NOTE = (
    "Notre équipe de support est disponible 24/7 pour répondre à toutes vos questions et "
    "vous accompagner tout au long de votre parcours sur la plateforme."
)

EMPTY_MESSAGE_RESPONSE = (
    "Bonjour ! Je suis Eddine. Comment puis-je vous aider concernant Vynal Platform ?"
)

DEFAULT_RESPONSE = (
    "Je suis Eddine, l'assistant de Vynal Platform. Pour mieux vous aider, pourriez-vous me "
    "préciser votre question ? Je peux vous renseigner sur :\n\n"
    "• Le fonctionnement de la plateforme\n"
    "• La création de compte\n"
    "• La vente de services\n"
    "• L'achat de services\n"
    "• Les paiements\n"
    "• Le support"
)


def _response_for_intent(name: str) -> Optional[str]:
    for enum_cls, table in ((Intent, INTENT_RESPONSES), (IntentGroup, GROUP_RESPONSES)):
        try:
            return table[enum_cls(name)]
        except ValueError:
            continue
    return None


def _clause_for_intent(name: str) -> str:
    try:
        return GROUP_CLAUSES[IntentGroup(name)]
    except ValueError:
        return DEFAULT_CLAUSE


def _label(name: str) -> str:
    return name.replace("_", " ")


def composite_reply(result: ExpandedIntentResult) -> str:
    """One reply covering the main intent and the first secondary intent."""
    secondary = result.secondary_intents[0].intent
    second_clause = _clause_for_intent(secondary)
    return (
        f"Votre question semble porter sur plusieurs aspects. Concernant "
        f"{_label(result.main_intent)}, {_clause_for_intent(result.main_intent)}.\n\n"
        f"Vous semblez également vous intéresser à {_label(secondary)}. "
        f"{second_clause[:1].upper()}{second_clause[1:]}.\n\n"
        f"Y a-t-il un aspect particulier sur lequel vous souhaitez plus d'informations ?"
    )


def append_context_notes(response: str, categories: Sequence[str], faq: FaqCorpus) -> str:
    """
    Complete a knowledge answer with what the session already asked about
    (payment, security, support) when the answer itself does not cover it.
    """
    seen = set(categories)
    enhanced = response

    if "payment" in seen and "paiement" not in response and faq.payment_process:
        enhanced += f"\n\nÀ propos du paiement : {faq.payment_process}"

    if "security" in seen and "sécurité" not in response and len(faq.security_features) >= 2:
        first, second = faq.security_features[:2]
        enhanced += f"\n\nConcernant la sécurité : Vynal Platform garantit {first} et {second}."

    if "support" in seen and "support" not in response:
        enhanced += f"\n\n{SUPPORT_NOTE}"

    return enhanced


# ═══════════════════════════════════════════════════════════════════════════
#  STRATEGY CHAIN
# ═══════════════════════════════════════════════════════════════════════════

StrategyFn = Callable[[Turn], Optional[BotReply]]


def first_success(
    strategies: Sequence[Tuple[Strategy, StrategyFn]],
    turn:       Turn,
) -> Optional[BotReply]:
    """Run *strategies* in order and return the first non-None reply."""
    for name, strategy in strategies:
        reply = strategy(turn)
        if reply is not None:
            logger.debug("Strategy %s answered", name.value)
            return reply
    return None


class ChatbotEngine:
    """
    Immutable snapshot of the knowledge data plus the strategy chain.

    A host that reloads its data builds a new engine and swaps the reference;
    a running respond() call keeps using the snapshot it started with.
    """

    def __init__(
        self,
        knowledge_base: Sequence[KnowledgeEntry],
        faq:            Optional[FaqCorpus] = None,
        extractor:      Optional[FeatureExtractor] = None,
    ):
        if knowledge_base is None:
            raise TypeError("ChatbotEngine requires a knowledge base")
        self.knowledge_base = tuple(knowledge_base)
        self.faq            = faq or FaqCorpus()
        self.extractor      = extractor

        self.strategies: Tuple[Tuple[Strategy, StrategyFn], ...] = (
            (Strategy.KNOWLEDGE, self._knowledge),
            (Strategy.INTENT,    self._specific_intent),
            (Strategy.EXPANDED,  self._expanded_intent),
            (Strategy.FAQ,       self._faq),
        )

    # ── strategies ─────────────────────────────────────────────────────────

    def _context(self, turn: Turn) -> Optional[BotReply]:
        contextual = generate_contextual_response(turn.message, turn.context)
        if contextual is None:
            return None
        return BotReply(
            response   = contextual.response,
            category   = contextual.category,
            source     = Strategy.CONTEXT,
            confidence = contextual.confidence,
        )

    def _knowledge(self, turn: Turn) -> Optional[BotReply]:
        match = find_best_answer(
            turn.message, self.knowledge_base, turn.session_categories, self.extractor,
        )
        if match is None:
            return None
        return BotReply(
            response   = append_context_notes(match.response, turn.session_categories, self.faq),
            category   = match.category,
            source     = Strategy.KNOWLEDGE,
            confidence = match.confidence,
        )

    def _specific_intent(self, turn: Turn) -> Optional[BotReply]:
        match = detect_specific_intent(turn.message, self.extractor)
        if match is None or match.confidence <= MIN_INTENT_CONFIDENCE:
            return None
        return BotReply(
            response   = INTENT_RESPONSES[match.intent],
            category   = match.intent.value,
            source     = Strategy.INTENT,
            confidence = match.confidence,
            intent     = match.intent.value,
        )

    def _expanded_intent(self, turn: Turn) -> Optional[BotReply]:
        result = expand_intent_detection(turn.message, self.extractor)

        if result.is_composite_intent and result.main_intent != UNKNOWN_INTENT:
            response = composite_reply(result)
        elif result.confidence > MIN_INTENT_CONFIDENCE:
            response = _response_for_intent(result.main_intent)
        else:
            response = None

        if response is None:
            return None
        return BotReply(
            response   = response,
            category   = result.main_intent,
            source     = Strategy.EXPANDED,
            confidence = result.confidence,
            intent     = result.main_intent,
        )

    def _faq(self, turn: Turn) -> Optional[BotReply]:
        item = find_best_faq(turn.message, self.faq.items, self.extractor)
        if item is None:
            return None
        return BotReply(response=item.answer, category="faq", source=Strategy.FAQ)

    # ── public ─────────────────────────────────────────────────────────────

    def respond(
        self,
        message:            str,
        context:            Optional[ConversationContext] = None,
        session_categories: Sequence[str] = (),
    ) -> BotReply:
        """
        Build the reply for one turn.

        Parameters
        ----------
        message            : str                 – raw user utterance
        context            : ConversationContext – session snapshot (empty if None)
        session_categories : sequence of str     – categories seen earlier in the session

        Returns
        -------
        BotReply – never None; DEFAULT_RESPONSE when no strategy matches.
        """
        if not message or not message.strip():
            return BotReply(response=EMPTY_MESSAGE_RESPONSE, category="greeting", source=Strategy.EMPTY)

        context = context if context is not None else ConversationContext()

        contextual = self._context(Turn(message, context))
        if contextual is not None:
            return contextual

        categories = tuple(c.value for c in analyze_conversation_context(message, self.extractor))
        user_type  = determine_user_type(message, self.extractor)
        known      = tuple(dict.fromkeys((*session_categories, *categories)))

        turn  = Turn(message=message, context=context, session_categories=known)
        reply = first_success(self.strategies, turn)
        if reply is None:
            logger.info("No strategy matched %r", message)
            reply = BotReply(response=DEFAULT_RESPONSE, category="general", source=Strategy.DEFAULT)

        return BotReply(
            response   = reply.response,
            category   = reply.category,
            source     = reply.source,
            confidence = reply.confidence,
            categories = categories,
            user_type  = user_type,
            intent     = reply.intent,
        )


# --------------------------------------------------------------------------- #
#  Module-level default engine                                                 #
# --------------------------------------------------------------------------- #

_default_engine: Optional[ChatbotEngine] = None
_engine_lock = threading.Lock()


def build_engine(
    kb_path:   Optional[str] = None,
    faq_path:  Optional[str] = None,
    extractor: Optional[FeatureExtractor] = None,
) -> ChatbotEngine:
    """Load the data files and build a fresh engine snapshot."""
    return ChatbotEngine(load_knowledge_base(kb_path), load_faq(faq_path), extractor)


def get_engine() -> ChatbotEngine:
    """Shared engine, built from the default data files on first use."""
    global _default_engine
    if _default_engine is None:
        with _engine_lock:
            if _default_engine is None:
                _default_engine = build_engine()
    return _default_engine


def set_engine(engine: ChatbotEngine) -> None:
    """Swap the shared engine, e.g. after reloading the data files."""
    global _default_engine
    with _engine_lock:
        _default_engine = engine


def get_bot_response(user_message: str, context: Optional[ConversationContext] = None) -> str:
    """Reply text for *user_message* using the default engine."""
    return get_engine().respond(user_message, context).response
