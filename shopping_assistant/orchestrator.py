"""Conversation orchestration for the shopping assistant.

Role:
    Owns the per-turn exchange with the remote chat service: send the user's
    message, run any requested tools against the local catalog, send the tool
    results back, and return the final text with the products found.

Turn state machine:
    IDLE -> AWAITING_FIRST_REPLY -> DONE                          (plain text reply)
    IDLE -> AWAITING_FIRST_REPLY -> AWAITING_TOOL_RESULTS
         -> AWAITING_FINAL_REPLY -> DONE                          (tool-call round-trip)

Error policy:
    ConfigurationError, SessionNotInitializedError and InvalidInputError reach the
    caller. Every other failure inside a turn is logged and replaced by
    APOLOGY_TEXT with no products.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Protocol, Tuple

from .errors import ConfigurationError, InvalidInputError, SessionNotInitializedError
from .models import ChatMessage, ModelReply, Product, ReplyKind, TurnResult
from .tools import ToolExecutor, ToolOutcome
from .turn_runner import TurnRunner, TurnStep
from .utils import decode_image_data

logger = logging.getLogger("amazie.orchestrator")

IMAGE_ONLY_PROMPT = "Find products in the database that look like this image."
FALLBACK_PRODUCTS_TEXT = "Here are some products I found."
APOLOGY_TEXT = (
    "Sorry, I encountered an error processing your request. Please check your API key or connection."
)


class RemoteChat(Protocol):
    def send_user_message(self, text: Optional[str], image: Optional[Tuple[str, bytes]] = None) -> ModelReply:
        ...

    def send_tool_results(self, outcomes: List[ToolOutcome]) -> ModelReply:
        ...


class ChatFactory(Protocol):
    def start_chat(self, credential: str, history: Optional[List[ChatMessage]] = None) -> RemoteChat:
        ...


class TurnState(str, Enum):
    IDLE = "idle"
    AWAITING_FIRST_REPLY = "awaiting_first_reply"
    AWAITING_TOOL_RESULTS = "awaiting_tool_results"
    AWAITING_FINAL_REPLY = "awaiting_final_reply"
    DONE = "done"


@dataclass
class ConversationSession:
    """Explicit handle for one conversation: the remote chat plus the local transcript."""
    session_id: str
    chat: Optional[RemoteChat] = None
    messages: List[ChatMessage] = field(default_factory=list)
    updated_at: float = field(default_factory=time.time)

    @property
    def is_established(self) -> bool:
        return self.chat is not None


@dataclass
class TurnContext:
    """Mutable context passed through each turn step."""
    session_id: str
    text: str
    image: Optional[Tuple[str, bytes]]
    state: TurnState = TurnState.IDLE
    first_reply: Optional[ModelReply] = None
    outcomes: List[ToolOutcome] = field(default_factory=list)
    products: List[Product] = field(default_factory=list)
    final_text: str = ""

    def transition(self, state: TurnState) -> None:
        logger.debug("session=%s state=%s->%s", self.session_id, self.state.value, state.value)
        self.state = state

    @property
    def is_text_reply(self) -> bool:
        return self.first_reply is not None and self.first_reply.kind == ReplyKind.TEXT


class ShoppingAssistant:
    """Mediates user turns between the widget and the remote chat service."""

    def __init__(self, chat_factory: ChatFactory, executor: ToolExecutor) -> None:
        self._chat_factory = chat_factory
        self._executor = executor

    def initialize_session(
        self,
        credential: str,
        session_id: Optional[str] = None,
        history: Optional[List[ChatMessage]] = None,
    ) -> ConversationSession:
        """Purpose: Establish a conversation bound to the persona and declared tools.
        Inputs/Outputs: Inputs are the credential, an optional id, and an optional
            transcript to resume; output is a ConversationSession owned by the caller.
        Side Effects / State: Opens a remote chat; nothing is stored globally.
        Dependencies: Uses the chat factory (GeminiClient in production).
        Failure Modes: Raises ConfigurationError when the credential is missing.
        If Removed: No turn can be sent.
        Testing Notes: Empty credential raises before the factory is called.
        """
        # Refuse to open a chat without a credential.
        if not credential or not credential.strip():
            raise ConfigurationError("API_KEY is missing. Please configure your environment.")
        chat = self._chat_factory.start_chat(credential, history=history)
        session = ConversationSession(
            session_id=session_id or uuid.uuid4().hex,
            chat=chat,
            messages=list(history or []),
        )
        logger.info("session=%s established resumed_messages=%s", session.session_id, len(session.messages))
        return session

    def send_turn(
        self,
        session: Optional[ConversationSession],
        text: str,
        image_data: Optional[str] = None,
    ) -> TurnResult:
        """Purpose: Run one user turn through the remote chat, including any tool calls.
        Inputs/Outputs: Inputs are the session, text (may be empty), and an optional image
            data URI; output is TurnResult(text, products).
        Side Effects / State: Advances the server-side conversation by one or two exchanges.
        Dependencies: Uses TurnRunner steps and the ToolExecutor.
        Failure Modes: SessionNotInitializedError, InvalidInputError and ConfigurationError
            propagate; all other failures return APOLOGY_TEXT with no products.
        If Removed: The widget has no way to talk to the assistant.
        Testing Notes: Plain-text reply, tool round-trip, empty final text, and network
            failures in either round.
        """
        # Validate the turn before any network traffic.
        if session is None or not session.is_established:
            raise SessionNotInitializedError("Chat session not initialized")
        clean_text = (text or "").strip()
        image = _decode_image(image_data) if image_data else None
        if not clean_text and image is None:
            raise InvalidInputError("A message needs text or an image")
        if image is not None and not clean_text:
            clean_text = IMAGE_ONLY_PROMPT

        context = TurnContext(session_id=session.session_id, text=clean_text, image=image)
        runner = self._build_runner(session.chat)
        logger.debug("session=%s plan=%s", session.session_id, runner.step_names)
        try:
            steps = runner.run(context)
        except ConfigurationError:
            raise
        except Exception:
            logger.exception("session=%s turn failed state=%s", session.session_id, context.state.value)
            return TurnResult(text=APOLOGY_TEXT)

        session.updated_at = time.time()
        logger.info(
            "session=%s turn done steps=%s tools=%s products=%s",
            session.session_id,
            steps,
            [outcome.name for outcome in context.outcomes],
            [product.sku for product in context.products],
        )
        return TurnResult(text=context.final_text, products=list(context.products) or None)

    def _build_runner(self, chat: RemoteChat) -> TurnRunner[TurnContext]:
        def first_reply(context: TurnContext) -> None:
            context.transition(TurnState.AWAITING_FIRST_REPLY)
            context.first_reply = chat.send_user_message(context.text, context.image)

        def direct_text(context: TurnContext) -> None:
            context.final_text = context.first_reply.text if context.first_reply else ""

        def run_tools(context: TurnContext) -> None:
            context.transition(TurnState.AWAITING_TOOL_RESULTS)
            for call in context.first_reply.tool_calls:
                outcome = self._executor.execute(call)
                context.outcomes.append(outcome)
                # The last search call decides the products shown for the turn.
                if outcome.products is not None:
                    context.products = list(outcome.products)

        def final_reply(context: TurnContext) -> None:
            context.transition(TurnState.AWAITING_FINAL_REPLY)
            reply = chat.send_tool_results(context.outcomes)
            context.final_text = reply.text or FALLBACK_PRODUCTS_TEXT

        def finish(context: TurnContext) -> None:
            context.transition(TurnState.DONE)

        return TurnRunner(
            steps=[
                TurnStep("first_reply", first_reply),
                TurnStep("direct_text", direct_text, skip_if=lambda c: not c.is_text_reply),
                TurnStep("run_tools", run_tools, skip_if=lambda c: c.is_text_reply),
                TurnStep("final_reply", final_reply, skip_if=lambda c: c.is_text_reply),
                TurnStep("finish", finish),
            ]
        )


def _decode_image(image_data: str) -> Tuple[str, bytes]:
    try:
        return decode_image_data(image_data)
    except ValueError as exc:
        raise InvalidInputError(str(exc)) from exc
