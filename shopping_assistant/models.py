from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class Product(BaseModel):
    """Immutable catalog record."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    sku: int
    name: str
    description: str
    price: float
    currency: str
    image_url: str = Field(alias="imageUrl")
    category: str
    tags: List[str] = Field(default_factory=list)


class MessageRole(str, Enum):
    USER = "user"
    MODEL = "model"
    SYSTEM = "system"


class ChatMessage(BaseModel):
    """One entry of a conversation transcript; never mutated once appended."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    role: MessageRole
    text: str = ""
    image: Optional[str] = None
    products: Optional[List[Product]] = None
    is_thinking: Optional[bool] = Field(default=None, alias="isThinking")


class SearchParams(BaseModel):
    """Arguments of a searchProducts tool call."""
    query: Optional[str] = None
    category: Optional[str] = None
    max_price: Optional[float] = Field(default=None, alias="maxPrice")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class TurnResult(BaseModel):
    """Outcome of one user turn: final text plus products found by search."""
    text: str
    products: Optional[List[Product]] = None


class ChatRequest(BaseModel):
    """Request payload for the chat API."""
    session_id: Optional[str] = Field(default=None)
    text: str = ""
    image: Optional[str] = None


class ChatResponse(BaseModel):
    """Messages appended to the transcript by one submission."""
    session_id: str
    messages: List[ChatMessage]


class SessionTranscript(BaseModel):
    """Full transcript of one session, oldest message first."""
    session_id: str
    messages: List[ChatMessage]


class SessionSummary(BaseModel):
    """Lightweight session summary for listing."""
    session_id: str
    title: str
    updated_at: float


class ReplyKind(str, Enum):
    TEXT = "text"
    TOOL_CALLS = "tool_calls"


@dataclass(frozen=True)
class ToolCall:
    """A remote request to run a named local function."""
    name: str
    args: Any = None
    call_id: Optional[str] = None


@dataclass(frozen=True)
class ModelReply:
    """Provider-neutral view of one remote chat response."""
    text: str = ""
    tool_calls: Tuple[ToolCall, ...] = ()

    @property
    def kind(self) -> ReplyKind:
        return ReplyKind.TOOL_CALLS if self.tool_calls else ReplyKind.TEXT
