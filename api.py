from flask import Flask, jsonify, request
from flask_cors import CORS
import asyncio
import logging
import threading
from datetime import datetime
from functools import wraps
from typing import Any, Dict, Optional

from config import config
from knowledge import ConversationContext, ConversationMessage, KnowledgeStore
from query_handling.engine import DecisionEngine
from response import build_providers

app = Flask(__name__)
CORS(app)  # Chat tester and dashboard are served from another origin

logger = logging.getLogger("Inap")


# Global state management
class APIState:
    def __init__(self):
        self._store: Optional[KnowledgeStore] = None
        self._engine: Optional[DecisionEngine] = None
        self._lock = threading.Lock()

    def configure(self, store: KnowledgeStore, engine: DecisionEngine):
        """Install a prebuilt store and engine (used by tests and embedding hosts)."""
        with self._lock:
            self._store = store
            self._engine = engine

    def _ensure_initialized(self):
        if self._engine is None:
            with self._lock:
                if self._engine is None:
                    logger.info("Initializing Inap assistant...")
                    config.setup()
                    embedding_provider, chat_provider = build_providers(config)
                    self._store = KnowledgeStore.from_config(config)
                    self._engine = DecisionEngine.from_config(config, chat_provider, embedding_provider)
                    logger.info("Inap assistant initialized successfully")

    def get_store(self) -> KnowledgeStore:
        self._ensure_initialized()
        return self._store

    def get_engine(self) -> DecisionEngine:
        self._ensure_initialized()
        return self._engine


api_state = APIState()


# Utility functions
def validate_request_data(data, required_fields):
    """Validate request data has required fields."""
    if not data:
        return False, "Missing request body"

    for field in required_fields:
        if field not in data:
            return False, f"Missing '{field}' in request body"

    return True, None


def standardize_response(data=None, error=None, status_code=200):
    """Standardize API response format."""
    response_data = {
        "success": error is None,
        "timestamp": datetime.now().isoformat()
    }

    if data:
        response_data.update(data)

    if error:
        response_data["error"] = error

    return jsonify(response_data), status_code


def build_conversation(data: Dict[str, Any]) -> ConversationContext:
    """Conversation context from the optional request fields."""
    messages = []
    for item in data.get('recent_messages') or []:
        if isinstance(item, str):
            messages.append(ConversationMessage(text=item))
        elif isinstance(item, dict):
            text = item.get('text') or item.get('message') or ''
            from_customer = item.get('is_from_customer', item.get('isFromCustomer', True))
            messages.append(ConversationMessage(text=str(text), is_from_customer=bool(from_customer)))

    return ConversationContext(
        phone_number=ConversationContext.normalize_phone_number(data.get('phone_number')),
        recent_messages=tuple(messages),
        current_property=data.get('current_property'),
    )


def log_processing_trace(payload: Dict[str, Any]):
    details = payload.get('processingDetails', {})
    logger.info(
        f"Decision: {details.get('finalDecision')} | search: {details.get('searchMethod')} | "
        f"candidates: {details.get('candidatesFound')} | confidence: {payload.get('confidence'):.3f} "
        f"({details.get('confidenceCategory')}) | {payload.get('processingTimeMs')}ms"
    )
    if details.get('fallbackReason'):
        logger.warning(f"Lexical fallback used: {details['fallbackReason']}")
    if details.get('error'):
        logger.warning(f"Processing note: {details['error']}")
    for step in details.get('processingSteps', []):
        logger.debug(f"  - {step}")


# Error handler
@app.errorhandler(Exception)
def handle_exception(e):
    """Global exception handler."""
    logger.error(f"Unhandled exception: {e}", exc_info=True)
    return standardize_response(error="Internal server error", status_code=500)


def with_assistant(f):
    """Decorator that makes sure the assistant is initialized before the view runs."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            api_state.get_engine()
        except Exception as e:
            logger.error(f"Error in {f.__name__}: {e}", exc_info=True)
            return standardize_response(error=str(e), status_code=500)
        return f(*args, **kwargs)
    return decorated_function


# Chat endpoints
@app.route("/chat/query", methods=["POST"])
@with_assistant
def chat_query():
    """Run one customer message through the decision engine."""
    data = request.get_json(silent=True)
    is_valid, error_msg = validate_request_data(data, ['message'])
    if not is_valid:
        return standardize_response(error=error_msg, status_code=400)

    message = str(data['message']).strip()
    if not message:
        return standardize_response(error="Message cannot be empty", status_code=400)

    snapshot = api_state.get_store().get_snapshot()
    conversation = build_conversation(data)
    result = asyncio.run(api_state.get_engine().process_message(message, snapshot, conversation))

    payload = result.to_payload()
    log_processing_trace(payload)
    return standardize_response(payload)


@app.route("/health", methods=["GET"])
def health():
    """Liveness plus a summary of the loaded knowledge."""
    store = api_state.get_store()
    snapshot = store.get_snapshot()
    return standardize_response({
        "status": "ok",
        "environment": config.ENV,
        "faqs": len(snapshot.faqs),
        "active_faqs": len(snapshot.active_faqs),
        "homestays": len(snapshot.homestays),
        "chat_configured": api_state.get_engine().chat_configured(),
        "store_stats": dict(store.stats),
    })


@app.route("/knowledge/reload", methods=["POST"])
def reload_knowledge():
    """Drop the cached snapshot after the FAQ or homestay exports changed."""
    store = api_state.get_store()
    store.invalidate()
    snapshot = store.get_snapshot()
    return standardize_response({
        "message": "Knowledge snapshot reloaded",
        "faqs": len(snapshot.faqs),
        "homestays": len(snapshot.homestays),
    })


if __name__ == '__main__':
    app.run(host=config.API_HOST, debug=False, port=config.API_PORT)
