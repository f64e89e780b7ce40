"""
app.py
------
Flask entry point for the Vynal Platform support assistant.

Routes
------
POST /api/session        → Open a chat session, returns its id
POST /api/chat           → One chat turn {"message", "session_id"?} → reply JSON
GET  /api/session/<id>   → Session snapshot (persona, categories, history)
POST /api/faq/match      → Best FAQ item for {"message"} or null
POST /api/reload         → Reload knowledge data and swap the engine
GET  /health             → Simple health-check endpoint
"""

import os
import logging
import threading
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from collections import OrderedDict
from typing import Any, List, Optional

from flask import Flask, request, jsonify

from chatbot_engine import BotReply, ChatbotEngine, build_engine, get_engine, set_engine
from classifier_engine import UserType
from context_engine import ConversationContext, ConversationExchange, UserInfo
from faq_engine import find_best_faq
from knowledge_base import KnowledgeBaseError

# --------------------------------------------------------------------------- #
#  App configuration                                                           #
# --------------------------------------------------------------------------- #

logging.basicConfig(
    level  = os.environ.get("LOG_LEVEL", "INFO").upper(),
    format = "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = Flask(__name__)

# Exchanges kept per session
HISTORY_LIMIT = int(os.environ.get("CHATBOT_HISTORY_LIMIT", 20))

# Sessions kept in memory; the least recently used one is dropped first
MAX_SESSIONS = int(os.environ.get("CHATBOT_MAX_SESSIONS", 1000))

SERVICE_NAME = "vynal-chatbot"


# --------------------------------------------------------------------------- #
#  Engine & session store                                                      #
# --------------------------------------------------------------------------- #

def reload_engine() -> ChatbotEngine:
    """
    Build a fresh engine from the data files, then swap it in.
    A failed load leaves the current engine in place.
    """
    fresh = build_engine()
    set_engine(fresh)
    logger.info("Engine reloaded (%d knowledge entries)", len(fresh.knowledge_base))
    return fresh


@dataclass
class ChatSession:
    id:         str
    context:    ConversationContext = field(default_factory=ConversationContext)
    categories: List[str]           = field(default_factory=list)
    user_type:  UserType            = UserType.UNDETERMINED


_sessions: "OrderedDict[str, ChatSession]" = OrderedDict()
_sessions_lock = threading.Lock()


def _new_session() -> ChatSession:
    session = ChatSession(id=uuid.uuid4().hex)
    with _sessions_lock:
        _sessions[session.id] = session
        while len(_sessions) > MAX_SESSIONS:
            evicted, _ = _sessions.popitem(last=False)
            logger.info("Evicted chat session %s", evicted)
    logger.info("Opened chat session %s", session.id)
    return session


def _get_session(session_id: Any) -> Optional[ChatSession]:
    if not isinstance(session_id, str):
        return None
    with _sessions_lock:
        session = _sessions.get(session_id)
        if session is not None:
            _sessions.move_to_end(session_id)
        return session


def _record_turn(session: ChatSession, message: str, reply: BotReply) -> None:
    """Append the exchange and fold this turn's categories / persona into the session."""
    exchange = ConversationExchange(
        query     = message,
        response  = reply.response,
        category  = reply.category,
        timestamp = datetime.now(timezone.utc),
    )
    with _sessions_lock:
        for category in reply.categories:
            if category not in session.categories:
                session.categories.append(category)

        if session.user_type is UserType.UNDETERMINED and reply.user_type is not UserType.UNDETERMINED:
            session.user_type = reply.user_type

        info = session.context.user_info
        if session.user_type is not UserType.UNDETERMINED and info.is_client is None:
            info = UserInfo(
                is_freelance = session.user_type is UserType.FREELANCE,
                is_client    = session.user_type is UserType.CLIENT,
                interests    = info.interests,
            )
        info = replace(info, interests=info.interests | frozenset(reply.categories))

        flow = (*session.context.conversation_flow, exchange)[-HISTORY_LIMIT:]
        session.context = ConversationContext(
            last_category     = reply.category,
            conversation_flow = flow,
            user_info         = info,
        )


def _reply_json(reply: BotReply) -> dict:
    return {
        "response":   reply.response,
        "category":   reply.category,
        "source":     reply.source.value,
        "confidence": reply.confidence,
        "categories": list(reply.categories),
        "user_type":  reply.user_type.value,
        "intent":     reply.intent,
    }


def _session_json(session: ChatSession) -> dict:
    with _sessions_lock:
        context = session.context
        return {
            "session_id":    session.id,
            "user_type":     session.user_type.value,
            "categories":    list(session.categories),
            "last_category": context.last_category,
            "interests":     sorted(context.user_info.interests),
            "exchanges": [
                {
                    "query":     ex.query,
                    "response":  ex.response,
                    "category":  ex.category,
                    "timestamp": ex.timestamp.isoformat(),
                }
                for ex in context.conversation_flow
            ],
        }


def _json_message() -> Optional[str]:
    payload = request.get_json(silent=True) or {}
    message = payload.get("message")
    return message if isinstance(message, str) else None


# --------------------------------------------------------------------------- #
#  API routes                                                                  #
# --------------------------------------------------------------------------- #

@app.route("/api/session", methods=["POST"])
def open_session():
    session = _new_session()
    return jsonify({"session_id": session.id}), 201


@app.route("/api/chat", methods=["POST"])
def chat():
    """
    One chat turn.

    Body: {"message": str, "session_id": str (optional)}
    An unknown or missing session id opens a new session.
    """
    message = _json_message()
    if message is None:
        return jsonify({"error": "'message' must be a string."}), 400

    payload = request.get_json(silent=True) or {}
    session = _get_session(payload.get("session_id")) or _new_session()

    with _sessions_lock:
        context    = session.context
        categories = tuple(session.categories)

    reply = get_engine().respond(message, context, categories)
    _record_turn(session, message, reply)

    body = _reply_json(reply)
    body["session_id"] = session.id
    return jsonify(body)


@app.route("/api/session/<session_id>", methods=["GET"])
def session_snapshot(session_id: str):
    session = _get_session(session_id)
    if session is None:
        return jsonify({"error": f"Unknown session '{session_id}'."}), 404
    return jsonify(_session_json(session))


@app.route("/api/faq/match", methods=["POST"])
def faq_match():
    message = _json_message()
    if message is None:
        return jsonify({"error": "'message' must be a string."}), 400

    engine = get_engine()
    item = find_best_faq(message, engine.faq.items, engine.extractor)
    if item is None:
        return jsonify({"match": None})
    return jsonify({"match": {"question": item.question, "answer": item.answer}})


@app.route("/api/reload", methods=["POST"])
def reload_data():
    try:
        engine = reload_engine()
    except KnowledgeBaseError as exc:
        logger.error("Reload failed: %s", exc)
        return jsonify({"error": str(exc)}), 422
    return jsonify({
        "status":            "reloaded",
        "knowledge_entries": len(engine.knowledge_base),
        "faq_items":         len(engine.faq.items),
    })


@app.route("/health")
def health():
    return jsonify({"status": "ok", "service": SERVICE_NAME})


# --------------------------------------------------------------------------- #
#  Error handlers                                                              #
# --------------------------------------------------------------------------- #

@app.errorhandler(404)
def not_found(e):
    return jsonify({"error": "Endpoint not found."}), 404


@app.errorhandler(405)
def method_not_allowed(e):
    return jsonify({"error": "Method not allowed."}), 405


@app.errorhandler(500)
def server_error(e):
    logger.exception("Unhandled error: %s", e)
    return jsonify({"error": "Internal server error."}), 500


# --------------------------------------------------------------------------- #
#  Entry point                                                                 #
# --------------------------------------------------------------------------- #

if __name__ == "__main__":
    port  = int(os.environ.get("PORT", 5000))
    debug = os.environ.get("FLASK_DEBUG", "false").lower() == "true"
    app.run(host="0.0.0.0", port=port, debug=debug)
