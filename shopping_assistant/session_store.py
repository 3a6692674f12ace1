from __future__ import annotations

import json
import logging
import threading
import time
from pathlib import Path
from typing import Dict, List, Optional

from .models import ChatMessage, MessageRole, Product, SessionSummary
from .orchestrator import ConversationSession

logger = logging.getLogger("amazie.sessions")

WELCOME_MESSAGE_ID = "welcome"
WELCOME_TEXT = "สวัสดีครับ 🙏 อยากให้ Amazie แนะนำอะไรสอบถามผมได้เลยนะครับ !"


class SessionStore:
    """Conversation sessions keyed by id, with optional JSON transcript persistence."""

    def __init__(self, path: Optional[Path] = None, max_sessions: Optional[int] = None) -> None:
        """Purpose: Initialize the session store and hydrate transcripts from disk if available.
        Inputs/Outputs: Optional transcript file and session cap; no return.
        Side Effects / State: Loads persisted transcripts as sessions without a remote chat.
        Dependencies: Calls _load; relies on ChatMessage/SessionSummary models.
        Failure Modes: JSON decode errors are logged and leave empty caches.
        If Removed: Each request would start a brand-new conversation.
        Testing Notes: A store built over a saved file exposes the saved transcripts.
        """
        # Keep configuration and preload persisted transcripts if present.
        self._path = path
        self._max_sessions = max_sessions
        self._sessions: Dict[str, ConversationSession] = {}
        self._summaries: Dict[str, SessionSummary] = {}
        self._lock = threading.RLock()
        self._load()

    def _load(self) -> None:
        """Purpose: Load persisted transcripts from disk into memory.
        Inputs/Outputs: Reads the transcript file; no return value.
        Side Effects / State: Populates _sessions and _summaries; restored sessions have
            no remote chat until the caller re-establishes one.
        Dependencies: ChatMessage and SessionSummary validate each record.
        Failure Modes: A missing or corrupt file leaves the store empty.
        If Removed: Transcripts are lost on restart.
        Testing Notes: Reloaded sessions are not established.
        """
        # Read and decode persisted JSON if present.
        if not self._path or not self._path.exists():
            return
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.warning("session file is not valid JSON path=%s", self._path)
            return
        sessions = data.get("sessions", {})
        summaries = data.get("summaries", {})
        for session_id, messages in sessions.items():
            summary = summaries.get(session_id) or {}
            self._sessions[session_id] = ConversationSession(
                session_id=session_id,
                messages=[ChatMessage(**message) for message in messages],
                updated_at=float(summary.get("updated_at") or time.time()),
            )
        for session_id, summary in summaries.items():
            if session_id in self._sessions:
                self._summaries[session_id] = SessionSummary(**summary)
        logger.info("sessions restored count=%s path=%s", len(self._sessions), self._path)
        if self._prune_sessions():
            self._persist()

    def _persist(self) -> None:
        """Purpose: Persist transcripts and summaries to disk.
        Inputs/Outputs: Writes the transcript file when a path is configured.
        Side Effects / State: Writes a JSON file with sessions/summaries.
        Dependencies: pydantic model_dump in JSON mode.
        Failure Modes: OSError propagates to the request.
        If Removed: Transcripts are never saved across restarts.
        Testing Notes: Products attached to replies survive a reload.
        """
        # Serialize current caches to disk for persistence.
        if not self._path:
            return
        payload = {
            "sessions": {
                session_id: [message.model_dump(mode="json") for message in session.messages]
                for session_id, session in self._sessions.items()
            },
            "summaries": {session_id: summary.model_dump() for session_id, summary in self._summaries.items()},
        }
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")

    def put(self, session: ConversationSession) -> ConversationSession:
        """Purpose: Register a session, seeding the welcome message for new conversations.
        Inputs/Outputs: Input is a ConversationSession; output is the stored session.
        Side Effects / State: Replaces any session with the same id and persists.
        Dependencies: Uses _prune_sessions and _persist.
        Failure Modes: OSError from persisting propagates.
        If Removed: Established sessions cannot be looked up on later turns.
        Testing Notes: A fresh session gets exactly one welcome message from the model.
        """
        # Seed the greeting once, then index the session and its summary.
        with self._lock:
            if not session.messages:
                session.messages.append(
                    ChatMessage(id=WELCOME_MESSAGE_ID, role=MessageRole.MODEL, text=WELCOME_TEXT)
                )
            self._sessions[session.session_id] = session
            if session.session_id not in self._summaries:
                self._summaries[session.session_id] = SessionSummary(
                    session_id=session.session_id,
                    title=_title_from(session.messages),
                    updated_at=session.updated_at,
                )
            self._prune_sessions()
            self._persist()
            return session

    def get(self, session_id: str) -> Optional[ConversationSession]:
        with self._lock:
            return self._sessions.get(session_id)

    def add_message(
        self,
        session_id: str,
        role: MessageRole,
        text: str,
        image: Optional[str] = None,
        products: Optional[List[Product]] = None,
    ) -> ChatMessage:
        """Purpose: Append a message to a session transcript and update its summary.
        Inputs/Outputs: Inputs are session_id, role, text, optional image/products; output
            is the appended ChatMessage.
        Side Effects / State: Mutates the transcript and persists to disk.
        Dependencies: Uses _next_message_id, SessionSummary, _prune_sessions, _persist.
        Failure Modes: Raises KeyError for an unknown session; persist can raise IO errors.
        If Removed: Chat history is not recorded.
        Testing Notes: Ids increase strictly even when two messages share a millisecond.
        """
        # Create an immutable ChatMessage and keep session metadata in sync.
        with self._lock:
            session = self._sessions[session_id]
            timestamp = time.time()
            message = ChatMessage(
                id=_next_message_id(session.messages, timestamp),
                role=role,
                text=text,
                image=image,
                products=products or None,
            )
            session.messages.append(message)
            session.updated_at = timestamp

            summary = self._summaries.get(session_id)
            if summary is None or (summary.title == "New Chat" and role == MessageRole.USER):
                self._summaries[session_id] = SessionSummary(
                    session_id=session_id,
                    title=_title_from(session.messages),
                    updated_at=timestamp,
                )
            else:
                summary.updated_at = timestamp
            self._prune_sessions()
            self._persist()
            return message

    def get_messages(self, session_id: str) -> List[ChatMessage]:
        """Transcript of a session, oldest first; empty for unknown sessions."""
        with self._lock:
            session = self._sessions.get(session_id)
            return list(session.messages) if session else []

    def list_sessions(self) -> List[SessionSummary]:
        """Summaries sorted by most recent activity."""
        with self._lock:
            return sorted(self._summaries.values(), key=lambda s: s.updated_at, reverse=True)

    def _prune_sessions(self) -> bool:
        """Purpose: Enforce max_sessions by dropping the least recently updated sessions.
        Inputs/Outputs: Returns True when at least one session was dropped.
        Side Effects / State: Mutates _sessions/_summaries caches.
        Dependencies: ConversationSession.updated_at.
        Failure Modes: None; a cap of zero or less disables pruning.
        If Removed: Memory grows with every new visitor.
        Testing Notes: With a cap of two the oldest of three sessions goes.
        """
        # Remove least-recent sessions when above the configured cap.
        if not self._max_sessions or self._max_sessions <= 0:
            return False
        if len(self._sessions) <= self._max_sessions:
            return False

        ordered = sorted(self._sessions.values(), key=lambda s: s.updated_at, reverse=True)
        keep_ids = {session.session_id for session in ordered[: self._max_sessions]}
        removed = [session_id for session_id in list(self._sessions) if session_id not in keep_ids]
        for session_id in removed:
            self._sessions.pop(session_id, None)
            self._summaries.pop(session_id, None)
        logger.info("sessions pruned removed=%s", removed)
        return bool(removed)


def _next_message_id(messages: List[ChatMessage], timestamp: float) -> str:
    # Millisecond submission time, bumped past the last numeric id.
    candidate = int(timestamp * 1000)
    for message in reversed(messages):
        if message.id.isdigit():
            candidate = max(candidate, int(message.id) + 1)
            break
    return str(candidate)


def _title_from(messages: List[ChatMessage]) -> str:
    for message in messages:
        if message.role == MessageRole.USER and message.text.strip():
            return message.text.strip().splitlines()[0][:48]
    return "New Chat"
