"""
knowledge_base.py
=================
Load the static knowledge base and FAQ corpus from data/*.json into
immutable records.

Storage format: data/knowledge_base.json is an ordered array:
[
    {
        "id":                <string>,
        "keywords":          [<lowercase string>, ...],     # non-empty
        "required_keywords": [<lowercase string>, ...],     # optional
        "category":          <string>,
        "response":          <string>
    },
    ...
]

data/faq.json:
{
    "faq":               [{"question": <string>, "answer": <string>}, ...],
    "payment_process":   <string>,
    "security_features": [<string>, ...]
}

Array order matters: it is the tie-breaking order of the knowledge matcher.

Public API
----------
load_knowledge_base(path=None) -> tuple[KnowledgeEntry, ...]
load_faq(path=None)            -> FaqCorpus

Unlike the rest of the engine, a missing or malformed data file is a
configuration error: it is logged and re-raised as KnowledgeBaseError.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Optional

logger = logging.getLogger(__name__)

# ── Storage paths ─────────────────────────────────────────────────────────────
# CHATBOT_KB_PATH / CHATBOT_FAQ_PATH override the shipped files
_DATA_DIR         = os.path.join(os.path.dirname(__file__), "data")
DEFAULT_KB_PATH   = os.environ.get("CHATBOT_KB_PATH") or os.path.join(_DATA_DIR, "knowledge_base.json")
DEFAULT_FAQ_PATH  = os.environ.get("CHATBOT_FAQ_PATH") or os.path.join(_DATA_DIR, "faq.json")


class KnowledgeBaseError(ValueError):
    """Raised when a knowledge data file is missing or malformed."""


@dataclass(frozen=True)
class KnowledgeEntry:
    id:                str
    keywords:          tuple
    category:          str
    response:          str
    required_keywords: tuple = ()

    def __post_init__(self):
        # matching compares against the lower-cased message
        object.__setattr__(self, "keywords", _lowercase_tuple(self.keywords))
        object.__setattr__(self, "required_keywords", _lowercase_tuple(self.required_keywords))
        if not self.keywords:
            raise ValueError(f"knowledge entry {self.id!r} has no keywords")


@dataclass(frozen=True)
class FaqItem:
    question: str
    answer:   str


@dataclass(frozen=True)
class FaqCorpus:
    items:             tuple = ()
    payment_process:   str   = ""
    security_features: tuple = field(default_factory=tuple)


# ── Low-level I/O helpers ─────────────────────────────────────────────────────

def _read_json(path: str) -> Any:
    try:
        with open(path, "r", encoding="utf-8") as fh:
            return json.load(fh)
    except (OSError, json.JSONDecodeError) as exc:
        logger.error("Could not load %s: %s", path, exc)
        raise KnowledgeBaseError(f"cannot read {path}: {exc}") from exc


def _lowercase_tuple(values: Any) -> tuple:
    """Return a lowercase, stripped tuple, keeping first occurrences only."""
    seen: set = set()
    out: list = []
    for value in values or []:
        normalised = str(value).strip().lower()
        if normalised and normalised not in seen:
            seen.add(normalised)
            out.append(normalised)
    return tuple(out)


def _entry_from_record(record: dict, index: int) -> KnowledgeEntry:
    if not isinstance(record, dict):
        raise KnowledgeBaseError(f"entry #{index} is not an object")
    try:
        return KnowledgeEntry(
            id                = str(record.get("id") or f"entry_{index}"),
            keywords          = _lowercase_tuple(record["keywords"]),
            required_keywords = _lowercase_tuple(record.get("required_keywords")),
            category          = str(record["category"]),
            response          = str(record["response"]),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise KnowledgeBaseError(f"entry #{index} is invalid: {exc}") from exc


# ── Public API ────────────────────────────────────────────────────────────────

def load_knowledge_base(path: Optional[str] = None) -> tuple:
    """
    Read the knowledge base at *path* (default data/knowledge_base.json).

    Returns
    -------
    tuple[KnowledgeEntry, ...] in file order.
    """
    path = path or DEFAULT_KB_PATH
    records = _read_json(path)
    if not isinstance(records, list):
        raise KnowledgeBaseError(f"{path} must contain a JSON array")

    entries = tuple(_entry_from_record(r, i) for i, r in enumerate(records))
    logger.info("Loaded %d knowledge entries from %s", len(entries), path)
    return entries


def load_faq(path: Optional[str] = None) -> FaqCorpus:
    """Read the FAQ corpus at *path* (default data/faq.json)."""
    path = path or DEFAULT_FAQ_PATH
    data = _read_json(path)
    if not isinstance(data, dict):
        raise KnowledgeBaseError(f"{path} must contain a JSON object")

    items = []
    for i, item in enumerate(data.get("faq", [])):
        if not isinstance(item, dict) or not item.get("question") or not item.get("answer"):
            raise KnowledgeBaseError(f"faq item #{i} needs a question and an answer")
        items.append(FaqItem(question=str(item["question"]), answer=str(item["answer"])))

    corpus = FaqCorpus(
        items             = tuple(items),
        payment_process   = str(data.get("payment_process", "")),
        security_features = tuple(str(f) for f in data.get("security_features", [])),
    )
    logger.info("Loaded %d FAQ items from %s", len(corpus.items), path)
    return corpus
