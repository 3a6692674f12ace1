from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any, Dict, List, Optional, Tuple

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions
from google.generativeai.types import HarmBlockThreshold, HarmCategory

from .config import Settings
from .errors import ConfigurationError, RemoteServiceError
from .models import ChatMessage, MessageRole, ModelReply, ToolCall
from .tools import ToolOutcome

logger = logging.getLogger("amazie.gemini")

DEFAULT_SAFETY_SETTINGS = [
    {
        "category": HarmCategory.HARM_CATEGORY_HARASSMENT,
        "threshold": HarmBlockThreshold.BLOCK_ONLY_HIGH,
    },
    {
        "category": HarmCategory.HARM_CATEGORY_HATE_SPEECH,
        "threshold": HarmBlockThreshold.BLOCK_ONLY_HIGH,
    },
    {
        "category": HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT,
        "threshold": HarmBlockThreshold.BLOCK_ONLY_HIGH,
    },
    {
        "category": HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT,
        "threshold": HarmBlockThreshold.BLOCK_ONLY_HIGH,
    },
]

AUTH_ERRORS = (google_exceptions.PermissionDenied, google_exceptions.Unauthenticated)


class GeminiChat:
    """One server-side Gemini conversation with manual function calling."""

    def __init__(self, chat: Any) -> None:
        self._chat = chat

    def send_user_message(self, text: Optional[str], image: Optional[Tuple[str, bytes]] = None) -> ModelReply:
        """Purpose: Send a user turn (image part first, then text) and parse the reply.
        Inputs/Outputs: Inputs are optional text and optional (mime, bytes); output is ModelReply.
        Side Effects / State: Appends the turn to the server-side chat history.
        Dependencies: Uses ChatSession.send_message and _to_model_reply.
        Failure Modes: Auth failures raise ConfigurationError; anything else raises
            RemoteServiceError.
        If Removed: No user turn reaches the model.
        Testing Notes: Verify part order and that SDK errors are translated.
        """
        # Build parts in the order the model should read them.
        parts: List[Any] = []
        if image is not None:
            mime_type, data = image
            parts.append({"mime_type": mime_type, "data": data})
        if text:
            parts.append(text)
        return self._send(parts)

    def send_tool_results(self, outcomes: List[ToolOutcome]) -> ModelReply:
        """Send every tool result of the turn back in one request."""
        parts = [_function_response_part(outcome) for outcome in outcomes]
        return self._send(parts)

    def _send(self, parts: List[Any]) -> ModelReply:
        try:
            response = self._chat.send_message(parts)
        except AUTH_ERRORS as exc:
            raise ConfigurationError(f"Gemini rejected the API key: {exc}") from exc
        except google_exceptions.InvalidArgument as exc:
            if "api key" in str(exc).lower():
                raise ConfigurationError(f"Gemini rejected the API key: {exc}") from exc
            raise RemoteServiceError(str(exc)) from exc
        except Exception as exc:
            raise RemoteServiceError(str(exc)) from exc
        return _to_model_reply(response)


class GeminiClient:
    """Thin wrapper around the Gemini SDK that opens tool-enabled chats."""

    def __init__(self, settings: Settings, system_instruction: str, tool_declarations: List[Dict[str, Any]]) -> None:
        """Purpose: Hold the model name, persona, and tool declarations for new chats.
        Inputs/Outputs: Inputs are Settings, the system instruction, and declarations; no return.
        Side Effects / State: None until a chat is started.
        Dependencies: Uses google.generativeai and Settings from config.
        Failure Modes: Raises ValueError if the model name is missing.
        If Removed: Sessions cannot be bound to the remote service.
        Testing Notes: Patch genai.GenerativeModel and inspect constructor kwargs.
        """
        # Keep chat configuration; SDK configuration is deferred to start_chat.
        self._model_name = _normalize_model_name(settings.gemini_model)
        if not self._model_name:
            raise ValueError("Gemini model name is required")
        self._system_instruction = system_instruction
        self._tool_declarations = list(tool_declarations)
        self._configured_key: Optional[str] = None
        self._model: Optional[genai.GenerativeModel] = None

    @property
    def model_name(self) -> str:
        return self._model_name

    def start_chat(self, credential: str, history: Optional[List[ChatMessage]] = None) -> GeminiChat:
        """Purpose: Open a chat bound to the persona and tools, optionally resuming a transcript.
        Inputs/Outputs: Inputs are the credential and prior messages; output is a GeminiChat.
        Side Effects / State: Configures the SDK API key and caches the model instance.
        Dependencies: Uses genai.configure, genai.GenerativeModel, and _history_contents.
        Failure Modes: Raises ConfigurationError when the credential is empty.
        If Removed: initialize_session has no remote chat to hand out.
        Testing Notes: Empty credential raises; history skips welcome/system messages.
        """
        # Reconfigure only when the credential changes.
        if not credential or not credential.strip():
            raise ConfigurationError("GEMINI_API_KEY is required")
        if credential != self._configured_key or self._model is None:
            genai.configure(api_key=credential)
            self._model = genai.GenerativeModel(
                self._model_name,
                system_instruction=self._system_instruction,
                tools=[{"function_declarations": self._tool_declarations}],
                safety_settings=DEFAULT_SAFETY_SETTINGS,
            )
            self._configured_key = credential
            logger.info(
                "gemini model ready model=%s tools=%s",
                self._model_name,
                [declaration["name"] for declaration in self._tool_declarations],
            )
        chat = self._model.start_chat(
            history=_history_contents(history or []),
            enable_automatic_function_calling=False,
        )
        return GeminiChat(chat)


def _function_response_part(outcome: ToolOutcome) -> genai.protos.Part:
    fields: Dict[str, Any] = {"name": outcome.name, "response": outcome.response}
    if outcome.call_id:
        fields["id"] = outcome.call_id
    return genai.protos.Part(function_response=genai.protos.FunctionResponse(**fields))


def _to_model_reply(response: Any) -> ModelReply:
    """Purpose: Convert an SDK response into text and function-call requests.
    Inputs/Outputs: Input is a GenerateContentResponse; output is ModelReply.
    Side Effects / State: None.
    Dependencies: Reads candidates[0].content.parts; uses _to_plain for args.
    Failure Modes: Raises RemoteServiceError when there is no candidate (blocked prompt).
    If Removed: The orchestrator cannot tell replies from tool requests.
    Testing Notes: Mixed text/function_call parts and an empty candidate list.
    """
    # Walk parts once; function calls win over text in the reply kind.
    candidates = list(getattr(response, "candidates", None) or [])
    if not candidates:
        feedback = getattr(response, "prompt_feedback", None)
        raise RemoteServiceError(f"Gemini returned no candidates (prompt_feedback={feedback})")
    content = getattr(candidates[0], "content", None)
    texts: List[str] = []
    calls: List[ToolCall] = []
    for part in list(getattr(content, "parts", None) or []):
        function_call = getattr(part, "function_call", None)
        if function_call is not None and getattr(function_call, "name", ""):
            calls.append(
                ToolCall(
                    name=function_call.name,
                    args=_to_plain(getattr(function_call, "args", None)),
                    call_id=getattr(function_call, "id", None) or None,
                )
            )
            continue
        text = getattr(part, "text", "")
        if text:
            texts.append(text)
    return ModelReply(text="".join(texts).strip(), tool_calls=tuple(calls))


def _to_plain(value: Any) -> Any:
    """Recursively turn proto map/repeated composites into dicts and lists."""
    if value is None:
        return None
    if isinstance(value, Mapping):
        return {str(key): _to_plain(item) for key, item in value.items()}
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
        return [_to_plain(item) for item in value]
    return value


def _history_contents(messages: List[ChatMessage]) -> List[Dict[str, Any]]:
    """Text-only user/model pairs from a transcript, for resuming a chat."""
    contents: List[Dict[str, Any]] = []
    for index, message in enumerate(messages):
        if message.role != MessageRole.USER or not message.text:
            continue
        following = messages[index + 1] if index + 1 < len(messages) else None
        if following is None or following.role != MessageRole.MODEL or not following.text:
            continue
        contents.append({"role": "user", "parts": [message.text]})
        contents.append({"role": "model", "parts": [following.text]})
    return contents


def _normalize_model_name(name: Optional[str]) -> str:
    """Strip the "models/" prefix and whitespace from a model name."""
    if not name:
        return ""
    cleaned = name.strip()
    if cleaned.startswith("models/"):
        return cleaned.split("/", 1)[1]
    return cleaned
