from __future__ import annotations

import logging
import os
import uuid
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Query

from .catalog import Catalog
from .config import load_settings
from .errors import ConfigurationError, InvalidInputError, SessionNotInitializedError
from .gemini_client import GeminiClient
from .models import (
    ChatMessage,
    ChatRequest,
    ChatResponse,
    MessageRole,
    Product,
    SessionSummary,
    SessionTranscript,
)
from .orchestrator import ConversationSession, ShoppingAssistant
from .prompt_loader import load_system_instruction
from .recipes import RecipeBook
from .session_store import SessionStore
from .tools import ToolExecutor, build_tool_declarations
from .utils import decode_image_data

BASE_DIR = Path(__file__).resolve().parent

MISSING_KEY_TEXT = "Error: API_KEY is missing. Please configure your environment."
REJECTED_KEY_TEXT = "Error: API_KEY was rejected by the AI service. Please check your configuration."
GENERIC_ERROR_TEXT = "Sorry, something went wrong. Please try again."

log_level_name = os.getenv("LOG_LEVEL", "INFO").upper()
log_level = getattr(logging, log_level_name, logging.INFO)
if not logging.getLogger().handlers:
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

logging.getLogger("amazie").setLevel(log_level)
logger = logging.getLogger("amazie.app")

ENV_PATH = BASE_DIR.parent / ".env"
if ENV_PATH.exists():
    load_dotenv(ENV_PATH, override=True)

app = FastAPI(title="Amazie Shopping Assistant")

settings = load_settings()
catalog = Catalog.from_file(settings.catalog_path)
recipes = RecipeBook.from_file(settings.recipes_path)
session_store = SessionStore(settings.sessions_path, max_sessions=settings.max_sessions)

gemini = GeminiClient(
    settings,
    system_instruction=load_system_instruction(settings.prompts_dir),
    tool_declarations=build_tool_declarations(settings.enable_recipe_tool),
)
assistant = ShoppingAssistant(
    chat_factory=gemini,
    executor=ToolExecutor(catalog, recipes, max_results=settings.max_tool_results),
)

if not settings.gemini_api_key:
    logger.warning("GEMINI_API_KEY is not set; chat requests will get a configuration error message")


@app.get("/api/health")
def health() -> dict:
    return {
        "status": "ok",
        "model": gemini.model_name,
        "products": len(catalog),
        "categories": catalog.categories(),
    }


@app.post("/api/chat", response_model=ChatResponse)
def chat(request: ChatRequest) -> ChatResponse:
    """Purpose: Handle one widget submission and return the messages it appended.
    Inputs/Outputs: Input is ChatRequest (session_id, text, image); output is ChatResponse.
    Side Effects / State: Creates/establishes sessions and appends to their transcripts.
    Dependencies: Uses ShoppingAssistant, SessionStore, and settings.
    Failure Modes: Empty or undecodable input returns 400; configuration and sequencing
        errors become system messages instead of HTTP errors.
    If Removed: The widget cannot converse with the assistant.
    Testing Notes: Missing key, plain reply, tool reply, and rejected key paths.
    """
    # Reject empty submissions before touching any session.
    text = request.text or ""
    if not text.strip() and not request.image:
        raise HTTPException(status_code=400, detail="A message needs text or an image")
    if request.image:
        try:
            decode_image_data(request.image)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

    session = _resolve_session(request.session_id)
    if not settings.gemini_api_key:
        notice = session_store.add_message(session.session_id, MessageRole.SYSTEM, MISSING_KEY_TEXT)
        return ChatResponse(session_id=session.session_id, messages=[notice])

    appended: List[ChatMessage] = []
    if not session.is_established:
        try:
            session = session_store.put(
                assistant.initialize_session(
                    settings.gemini_api_key,
                    session_id=session.session_id,
                    history=session.messages,
                )
            )
        except ConfigurationError:
            logger.exception("session=%s could not be established", session.session_id)
            appended.append(session_store.add_message(session.session_id, MessageRole.SYSTEM, REJECTED_KEY_TEXT))
            return ChatResponse(session_id=session.session_id, messages=appended)

    appended.append(session_store.add_message(session.session_id, MessageRole.USER, text, image=request.image))
    try:
        result = assistant.send_turn(session, text, request.image)
    except ConfigurationError:
        logger.exception("session=%s credential rejected", session.session_id)
        session.chat = None
        appended.append(session_store.add_message(session.session_id, MessageRole.SYSTEM, REJECTED_KEY_TEXT))
    except (SessionNotInitializedError, InvalidInputError):
        logger.exception("session=%s turn could not be sent", session.session_id)
        appended.append(session_store.add_message(session.session_id, MessageRole.SYSTEM, GENERIC_ERROR_TEXT))
    else:
        appended.append(
            session_store.add_message(session.session_id, MessageRole.MODEL, result.text, products=result.products)
        )
    return ChatResponse(session_id=session.session_id, messages=appended)


@app.get("/api/sessions", response_model=List[SessionSummary])
def list_sessions() -> List[SessionSummary]:
    return session_store.list_sessions()


@app.get("/api/sessions/{session_id}", response_model=SessionTranscript)
def get_session(session_id: str) -> SessionTranscript:
    """Return the transcript of a session, 404 if it is unknown."""
    if session_store.get(session_id) is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return SessionTranscript(session_id=session_id, messages=session_store.get_messages(session_id))


@app.get("/api/products", response_model=List[Product])
def search_products(
    query: Optional[str] = None,
    category: Optional[str] = None,
    max_price: Optional[float] = Query(default=None, ge=0),
) -> List[Product]:
    if not query and not category and max_price is None:
        return list(catalog.products)
    return catalog.search(query, category, max_price)


@app.get("/api/products/{sku}", response_model=Product)
def get_product(sku: int) -> Product:
    product = catalog.get(sku)
    if product is None:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


def _resolve_session(session_id: Optional[str]) -> ConversationSession:
    # Unknown ids start a fresh local session under that id.
    if session_id:
        existing = session_store.get(session_id)
        if existing is not None:
            return existing
    return session_store.put(ConversationSession(session_id=session_id or uuid.uuid4().hex))
