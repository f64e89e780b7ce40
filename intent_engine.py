"""
intent_engine.py  –  Intent detection
=====================================
Two intent catalogs are scored here.

Specific intents (fine-grained user goals), detect_specific_intent():
  1. Regex stage     – the first catalog regex that matches wins at 0.9
  2. Weighted stage  – keyword / term / phonetic scoring, kept when >= 7

Intent groups (coarse thematic buckets), expand_intent_detection():
  noun / verb / topic / adjective / phrase hits per group, merged with the
  specific intent as a baseline, plus composite-intent detection.

Both catalogs are compiled once at import and never mutated.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Optional, Tuple

from nlp_features import Features, FeatureExtractor, extract_features, normalise
from phonetics import calculate_similarity

logger = logging.getLogger(__name__)


class Intent(str, Enum):
    COMMANDE_INFO   = "commande_info"
    PAIEMENT_INFO   = "paiement_info"
    PROFIL_EDIT     = "profil_edit"
    AIDE_TECHNIQUE  = "aide_technique"
    VENTE_CLIENTS   = "vente_clients"
    CREATION_COMPTE = "creation_compte"


class IntentGroup(str, Enum):
    SERVICE_INQUIRY   = "service_inquiry"
    PROCESS_QUESTION  = "process_question"
    PRICING_INQUIRY   = "pricing_inquiry"
    COMPLAINT         = "complaint"
    SECURITY_CONCERNS = "security_concerns"
    FEEDBACK          = "feedback"


UNKNOWN_INTENT = "unknown"


@dataclass(frozen=True)
class IntentPattern:
    keywords:       Tuple[str, ...]
    regexes:        Tuple[re.Pattern, ...]
    required_words: Tuple[str, ...] = ()


@dataclass(frozen=True)
class IntentGroupFeatures:
    nouns:      frozenset
    verbs:      frozenset
    topics:     frozenset
    adjectives: frozenset
    phrases:    Tuple[str, ...]


@dataclass(frozen=True)
class IntentMatch:
    intent:     Intent
    confidence: float


@dataclass(frozen=True)
class ScoredIntent:
    intent:     str
    confidence: float


@dataclass(frozen=True)
class ExpandedIntentResult:
    main_intent:         str
    confidence:          float
    secondary_intents:   Tuple[ScoredIntent, ...] = ()
    is_composite_intent: bool = False


# --------------------------------------------------------------------------- #
#  Scoring constants                                                           #
# --------------------------------------------------------------------------- #

REGEX_CONFIDENCE   = 0.9
MAX_CONFIDENCE     = 0.9
SCORE_SCALE        = 20
MIN_INTENT_SCORE   = 7
SIMILARITY_CUTOFF  = 0.7

SUBSTRING_WEIGHT   = 5
EXACT_TERM_WEIGHT  = 4
PARTIAL_WEIGHT     = 2
PHONETIC_WEIGHT    = 3
ACTION_VERB_WEIGHT = 3
QUESTION_WEIGHT    = 5

GROUP_NOUN_WEIGHT      = 3
GROUP_VERB_WEIGHT      = 3
GROUP_TOPIC_WEIGHT     = 4
GROUP_ADJECTIVE_WEIGHT = 2
GROUP_PHRASE_WEIGHT    = 5
MIN_GROUP_SCORE        = 3

BASELINE_CONFIDENCE = 0.1
QUESTION_BONUS      = 0.1
COMPOSITE_GAP       = 0.2

ACTION_VERBS = frozenset({
    "veux", "souhaite", "besoin", "demande", "cherche", "dois", "aider", "aide", "faut",
})
QUESTION_WORDS = ("comment", "pourquoi", "qui", "quand", "où", "quoi")


def _compile(*patterns: str) -> Tuple[re.Pattern, ...]:
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


def _keywords(*words: str) -> Tuple[str, ...]:
    return tuple(dict.fromkeys(words))


# --------------------------------------------------------------------------- #
#  Specific-intent catalog                                                     #
# --------------------------------------------------------------------------- #

INTENT_PATTERNS = MappingProxyType({
    Intent.COMMANDE_INFO: IntentPattern(
        keywords=_keywords(
            "commande", "commander", "achat", "projet", "mission", "statut",
            "suivi", "livraison", "service",
        ),
        regexes=_compile(
            r"ma (commande|mission|projet|service)",
            r"où (en est|est) ma (commande|mission|projet|service)",
            r"(statut|suivi|état) (de ma|d'une|du|de mon) (commande|mission|projet|service)",
            r"(quand|comment) (sera|est|va être) (livrée?|terminée?|finie?)",
        ),
    ),
    Intent.PAIEMENT_INFO: IntentPattern(
        keywords=_keywords(
            "paiement", "payer", "argent", "recevoir", "virement", "solde",
            "délai", "quand", "budget", "prix", "coût", "facture",
        ),
        regexes=_compile(
            r"(quand|comment) (serais-je|vais-je être|suis-je|puis-je être) payé",
            r"(où|comment|quand) (est|sont|sera|seront) (mon|mes) paiement",
            r"(combien|quel est le|quels sont les) (coût|prix|tarif|montant|frais)",
            r"(mode de|méthode de|comment) paiement",
        ),
    ),
    Intent.PROFIL_EDIT: IntentPattern(
        keywords=_keywords(
            "profil", "modifier", "changer", "mettre à jour", "éditer",
            "portfolio", "informations", "compte", "image", "photo",
        ),
        regexes=_compile(
            r"(comment|puis-je|je veux|je souhaite) (modifier|changer|mettre à jour|éditer) (mon|le) profil",
            r"(changer|modifier|mettre à jour|éditer) (photo|image|avatar|description|présentation|portfolio)",
            r"(comment|où) (ajouter|supprimer|modifier) (des|les|mes) (informations|compétences|réalisations)",
        ),
    ),
    Intent.AIDE_TECHNIQUE: IntentPattern(
        keywords=_keywords(
            "problème", "aide", "erreur", "bug", "fonctionne pas", "technique",
            "support", "aidez", "aider", "besoin",
        ),
        regexes=_compile(
            r"(j'ai|il y a|il y'a) (un|des) problème",
            r"(ça ne|ne|pas) (marche|fonctionne) pas",
            r"(besoin|demande) d'aide",
            r"(comment|puis-je|qui peut) (résoudre|régler|fixer|réparer) (ce|un|mon|le) problème",
            r"(erreur|bug|plantage|blocage)",
        ),
    ),
    Intent.VENTE_CLIENTS: IntentPattern(
        keywords=_keywords(
            "vendre", "client", "plus", "avoir", "trouver", "augmenter",
            "améliorer", "obtenir", "ventes", "revenus",
        ),
        regexes=_compile(
            r"(comment|puis-je|pour) (avoir|trouver|obtenir|attirer) (plus de|des) clients",
            r"(comment|puis-je|pour) (vendre|améliorer|augmenter) (plus|mes ventes|mon chiffre)",
            r"(améliorer|augmenter) (mes|les) revenus",
            r"(comment|puis-je) (développer|améliorer) (ma clientèle|mon business|mon activité)",
        ),
    ),
    Intent.CREATION_COMPTE: IntentPattern(
        keywords=_keywords(
            "créer", "inscription", "nouveau", "compte", "profil",
            "commencer", "démarrer", "enregistrer",
        ),
        regexes=_compile(
            r"(comment|puis-je|je veux) (créer|ouvrir|faire) (un|mon) (compte|profil)",
            r"(s'inscrire|inscription|enregistrement)",
            r"(comment|par où) (commencer|débuter|démarrer)",
        ),
    ),
})


# --------------------------------------------------------------------------- #
#  Intent-group catalog                                                        #
# --------------------------------------------------------------------------- #

INTENT_GROUPS = MappingProxyType({
    IntentGroup.SERVICE_INQUIRY: IntentGroupFeatures(
        nouns=frozenset({
            "service", "prestation", "offre", "catalogue", "option", "choix",
            "proposition", "solution", "expertise", "compétence",
        }),
        verbs=frozenset({
            "proposer", "offrir", "rechercher", "chercher", "vouloir", "souhaiter",
            "avoir besoin", "besoin", "demander", "consulter",
        }),
        topics=frozenset({
            "service", "prestation", "proposition", "travail", "projet",
            "expertise", "compétence", "solution",
        }),
        adjectives=frozenset({
            "disponible", "possible", "intéressant", "nouveau", "spécial",
            "particulier", "adapté", "pertinent", "convenable",
        }),
        phrases=(
            "que proposez-vous", "quels services", "que faites-vous", "comment fonctionne",
            "j'ai besoin de", "je recherche", "pouvez-vous faire", "est-il possible d'avoir",
            "quelles sont vos prestations", "que pouvez-vous faire", "quelles solutions proposez-vous",
            "quelles sont vos compétences", "que savez-vous faire", "quelles sont vos expertises",
        ),
    ),
    IntentGroup.PROCESS_QUESTION: IntentGroupFeatures(
        nouns=frozenset({
            "processus", "étape", "démarche", "procédure", "fonctionnement",
            "méthode", "façon", "manière", "approche", "déroulement",
        }),
        verbs=frozenset({
            "fonctionner", "marcher", "procéder", "faire", "dérouler",
            "passer", "avancer", "progresser", "commencer", "terminer",
        }),
        topics=frozenset({
            "processus", "fonctionnement", "méthode", "façon", "manière",
            "procédure", "démarche", "approche",
        }),
        adjectives=frozenset({
            "simple", "complexe", "facile", "difficile", "long", "rapide",
            "efficace", "pratique", "concret", "clair",
        }),
        phrases=(
            "comment ça marche", "comment fonctionne", "quelles sont les étapes",
            "quel est le processus", "comment se déroule", "comment faire pour",
            "par où commencer", "quelle est la procédure", "comment procéder",
            "quelle est la démarche", "comment avancer", "quelle est la méthode",
        ),
    ),
    IntentGroup.PRICING_INQUIRY: IntentGroupFeatures(
        nouns=frozenset({
            "prix", "tarif", "coût", "commission", "montant", "frais",
            "pourcentage", "budget", "investissement", "facturation",
        }),
        verbs=frozenset({
            "coûter", "payer", "débourser", "facturer", "valoir",
            "revenir à", "investir", "budgéter", "financer", "rémunérer",
        }),
        topics=frozenset({
            "prix", "argent", "paiement", "tarification", "commission",
            "budget", "coût", "investissement",
        }),
        adjectives=frozenset({
            "cher", "abordable", "coûteux", "élevé", "bas", "raisonnable",
            "compétitif", "accessible", "modéré", "juste",
        }),
        phrases=(
            "combien coûte", "quel est le prix", "quels sont les tarifs", "est-ce que c'est cher",
            "y a-t-il des frais", "montant des commissions", "prix de",
            "quel est le budget nécessaire", "quel est l'investissement", "combien dois-je prévoir",
            "quels sont les frais", "comment sont calculés les prix", "quelle est la tarification",
        ),
    ),
    IntentGroup.COMPLAINT: IntentGroupFeatures(
        nouns=frozenset({
            "problème", "souci", "difficulté", "erreur", "bug", "défaut", "dysfonctionnement",
        }),
        verbs=frozenset({
            "planter", "buguer", "échouer", "rater", "bloquer", "coincer", "arrêter",
        }),
        topics=frozenset({"problème", "erreur", "panne", "bug", "plainte"}),
        adjectives=frozenset({
            "cassé", "défectueux", "mauvais", "incorrect", "faux", "erroné",
        }),
        phrases=(
            "ne fonctionne pas", "ne marche pas", "j'ai un problème avec", "ça bug",
            "c'est cassé", "erreur de", "ça plante", "impossible de",
        ),
    ),
    IntentGroup.SECURITY_CONCERNS: IntentGroupFeatures(
        nouns=frozenset({
            "sécurité", "protection", "confiance", "fiabilité", "risque", "danger", "menace",
        }),
        verbs=frozenset({
            "sécuriser", "protéger", "garantir", "assurer", "menacer", "risquer",
        }),
        topics=frozenset({"sécurité", "confiance", "protection", "risque", "confidentialité"}),
        adjectives=frozenset({
            "sécurisé", "fiable", "sûr", "dangereux", "risqué", "confidentiel",
        }),
        phrases=(
            "est-ce sécurisé", "puis-je faire confiance", "comment protéger", "risque de",
            "données personnelles", "information confidentielle", "garantie de",
        ),
    ),
    IntentGroup.FEEDBACK: IntentGroupFeatures(
        nouns=frozenset({
            "avis", "opinion", "retour", "commentaire", "expérience", "satisfaction",
        }),
        verbs=frozenset({
            "penser", "croire", "considérer", "estimer", "apprécier", "aimer", "détester",
        }),
        topics=frozenset({"avis", "opinion", "évaluation", "critique", "satisfaction"}),
        adjectives=frozenset({
            "bon", "mauvais", "excellent", "terrible", "satisfaisant", "décevant",
        }),
        phrases=(
            "que pensez-vous de", "j'aime bien", "je n'aime pas", "mon expérience a été",
            "c'est très bien", "c'est nul", "je suis satisfait", "je suis déçu",
        ),
    ),
})


# --------------------------------------------------------------------------- #
#  Specific-intent detection                                                   #
# --------------------------------------------------------------------------- #

def _normalise_confidence(score: float) -> float:
    return min(score / SCORE_SCALE, MAX_CONFIDENCE)


def is_question(message: str) -> bool:
    return "?" in message or message.startswith(QUESTION_WORDS)


def _regex_intent(message: str) -> Optional[Intent]:
    for intent, pattern in INTENT_PATTERNS.items():
        for regex in pattern.regexes:
            if regex.search(message):
                return intent
    return None


def _keyword_score(keyword: str, message: str, terms: Tuple[str, ...]) -> int:
    if keyword in message:
        return SUBSTRING_WEIGHT

    score = 0
    for term in terms:
        if term == keyword:
            score += EXACT_TERM_WEIGHT
        elif term in keyword or keyword in term:
            score += PARTIAL_WEIGHT
        elif calculate_similarity(term, keyword) > SIMILARITY_CUTOFF:
            score += PHONETIC_WEIGHT
    return score


def score_intent(pattern: IntentPattern, message: str, features: Features) -> Optional[int]:
    """
    Weighted score of one intent for a normalised message.
    Returns None when the intent declares required words and none is present.
    """
    terms = tuple(t.lower() for t in features.terms)

    if pattern.required_words and not any(
        word in message or any(word in t for t in terms)
        for word in pattern.required_words
    ):
        return None

    score = sum(_keyword_score(kw, message, terms) for kw in pattern.keywords)
    score += sum(ACTION_VERB_WEIGHT for verb in features.verbs if verb.lower() in ACTION_VERBS)
    if is_question(message):
        score += QUESTION_WEIGHT
    return score


def detect_specific_intent(
    message:   str,
    extractor: Optional[FeatureExtractor] = None,
) -> Optional[IntentMatch]:
    """
    Detect a fine-grained intent.

    Returns
    -------
    IntentMatch(intent, 0.9) on a regex hit, IntentMatch(intent, score/20
    capped at 0.9) when the weighted score reaches MIN_INTENT_SCORE, else None.
    """
    normalised = normalise(message)

    intent = _regex_intent(normalised)
    if intent is not None:
        logger.debug("Regex intent %s for %r", intent.value, normalised)
        return IntentMatch(intent=intent, confidence=REGEX_CONFIDENCE)

    features = extract_features(normalised, extractor)

    best: Optional[Intent] = None
    best_score = 0
    for intent, pattern in INTENT_PATTERNS.items():
        score = score_intent(pattern, normalised, features)
        if score is not None and score > best_score:
            best, best_score = intent, score

    if best is not None and best_score >= MIN_INTENT_SCORE:
        logger.debug("Weighted intent %s (score=%d)", best.value, best_score)
        return IntentMatch(intent=best, confidence=_normalise_confidence(best_score))
    return None


# --------------------------------------------------------------------------- #
#  Expanded (group) detection                                                  #
# --------------------------------------------------------------------------- #

def score_group(group: IntentGroupFeatures, message: str, features: Features) -> int:
    score  = sum(GROUP_NOUN_WEIGHT for n in features.nouns if n.lower() in group.nouns)
    score += sum(GROUP_VERB_WEIGHT for v in features.verbs if v.lower() in group.verbs)
    score += sum(GROUP_TOPIC_WEIGHT for t in features.topics if t.lower() in group.topics)
    score += sum(GROUP_ADJECTIVE_WEIGHT for a in features.adjectives if a.lower() in group.adjectives)
    score += sum(GROUP_PHRASE_WEIGHT for p in group.phrases if p in message)
    return score


def rank_intent_groups(message: str, features: Features) -> Tuple[ScoredIntent, ...]:
    """Groups scoring above MIN_GROUP_SCORE, best first (catalog order on ties)."""
    scored = []
    for group, group_features in INTENT_GROUPS.items():
        score = score_group(group_features, message, features)
        if score > MIN_GROUP_SCORE:
            scored.append((group, score))

    scored.sort(key=lambda item: item[1], reverse=True)
    return tuple(
        ScoredIntent(intent=group.value, confidence=_normalise_confidence(score))
        for group, score in scored
    )


def expand_intent_detection(
    message:   str,
    extractor: Optional[FeatureExtractor] = None,
) -> ExpandedIntentResult:
    """
    Combine the specific intent with the intent-group scores.

    The specific intent (or "unknown" at 0.1) is the baseline; the top group
    replaces it when more confident.  A literal "?" adds 0.1 (capped at 0.9).
    The result is composite when the first secondary intent is within 0.2 of
    the main confidence.
    """
    normalised = normalise(message)
    features   = extract_features(normalised, extractor)
    specific   = detect_specific_intent(normalised, extractor)

    main_intent = specific.intent.value if specific else UNKNOWN_INTENT
    confidence  = specific.confidence if specific else BASELINE_CONFIDENCE

    ranked = rank_intent_groups(normalised, features)
    if ranked and ranked[0].confidence > confidence:
        main_intent = ranked[0].intent
        confidence  = ranked[0].confidence
        secondary   = ranked[1:]
    else:
        secondary = ranked

    if "?" in normalised:
        confidence = min(confidence + QUESTION_BONUS, MAX_CONFIDENCE)

    composite = bool(secondary) and (confidence - secondary[0].confidence) < COMPOSITE_GAP

    logger.debug(
        "Expanded intent %s (%.2f), secondary=%s, composite=%s",
        main_intent, confidence, [s.intent for s in secondary], composite,
    )
    return ExpandedIntentResult(
        main_intent         = main_intent,
        confidence          = confidence,
        secondary_intents   = secondary,
        is_composite_intent = composite,
    )
