from typing import List, Optional, Tuple

import pytest

from shopping_assistant.catalog import Catalog
from shopping_assistant.config import BASE_DIR
from shopping_assistant.models import ChatMessage, ModelReply, ToolCall
from shopping_assistant.recipes import RecipeBook
from shopping_assistant.tools import ToolExecutor


class FakeChat:
    """Scripted stand-in for a remote chat: replays replies, records what was sent."""

    def __init__(self, replies):
        self.replies = list(replies)
        self.user_messages: List[Tuple[Optional[str], Optional[Tuple[str, bytes]]]] = []
        self.tool_results = []

    def _next(self) -> ModelReply:
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    def send_user_message(self, text, image=None):
        self.user_messages.append((text, image))
        return self._next()

    def send_tool_results(self, outcomes):
        self.tool_results.append(list(outcomes))
        return self._next()


class FakeChatFactory:
    def __init__(self, chat: Optional[FakeChat] = None, error: Optional[Exception] = None):
        self.chat = chat or FakeChat([])
        self.error = error
        self.calls: List[Tuple[str, Optional[List[ChatMessage]]]] = []

    def start_chat(self, credential, history=None):
        self.calls.append((credential, history))
        if self.error is not None:
            raise self.error
        return self.chat


def search_call(call_id: Optional[str] = "call-1", **args) -> ToolCall:
    return ToolCall(name="searchProducts", args=args, call_id=call_id)


@pytest.fixture(scope="session")
def catalog() -> Catalog:
    return Catalog.from_file(BASE_DIR / "data" / "products.json")


@pytest.fixture(scope="session")
def recipes() -> RecipeBook:
    return RecipeBook.from_file(BASE_DIR / "data" / "recipes.json")


@pytest.fixture
def executor(catalog, recipes) -> ToolExecutor:
    return ToolExecutor(catalog, recipes, max_results=3)
