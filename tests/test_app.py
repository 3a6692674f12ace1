from dataclasses import replace

import pytest
from fastapi.testclient import TestClient

from conftest import FakeChat, FakeChatFactory, search_call
from shopping_assistant import app as app_module
from shopping_assistant.errors import ConfigurationError
from shopping_assistant.models import ModelReply
from shopping_assistant.orchestrator import ShoppingAssistant
from shopping_assistant.session_store import WELCOME_MESSAGE_ID, SessionStore

client = TestClient(app_module.app)


@pytest.fixture
def wire(monkeypatch, executor):
    """Swap the module-level components for fakes; returns a configurator."""

    def configure(replies=(), api_key="test-key", factory_error=None):
        chat = FakeChat(replies)
        factory = FakeChatFactory(chat, error=factory_error)
        monkeypatch.setattr(app_module, "settings", replace(app_module.settings, gemini_api_key=api_key))
        monkeypatch.setattr(app_module, "session_store", SessionStore())
        monkeypatch.setattr(app_module, "assistant", ShoppingAssistant(factory, executor))
        return chat, factory

    return configure


def test_health():
    resp = client.get("/api/health")
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["status"] == "ok"
    assert body["categories"] == ["Clothing", "Electronics", "Home", "Food"]


def test_missing_key_returns_system_message(wire):
    chat, factory = wire(api_key="")
    resp = client.post("/api/chat", json={"text": "hello"})
    assert resp.status_code == 200, resp.text
    [message] = resp.json()["messages"]
    assert message["role"] == "system"
    assert message["text"] == "Error: API_KEY is missing. Please configure your environment."
    assert factory.calls == []


def test_empty_submission_is_rejected(wire):
    wire()
    assert client.post("/api/chat", json={"text": "   "}).status_code == 400
    assert client.post("/api/chat", json={"text": "", "image": "data:image/png;base64,@@"}).status_code == 400


def test_chat_with_products(wire):
    chat, _ = wire(
        replies=[
            ModelReply(tool_calls=(search_call(query="red dress"),)),
            ModelReply(text="This one is lovely."),
        ]
    )
    resp = client.post("/api/chat", json={"text": "red dress please"})
    assert resp.status_code == 200, resp.text
    body = resp.json()
    user, model = body["messages"]
    assert user["role"] == "user" and user["text"] == "red dress please"
    assert model["role"] == "model" and model["text"] == "This one is lovely."
    assert [p["sku"] for p in model["products"]] == [1001]

    transcript = client.get(f"/api/sessions/{body['session_id']}").json()["messages"]
    assert [m["id"] for m in transcript][0] == WELCOME_MESSAGE_ID
    assert len(transcript) == 3


def test_session_is_reused_across_turns(wire):
    chat, factory = wire(replies=[ModelReply(text="Hi!"), ModelReply(text="Sure.")])
    first = client.post("/api/chat", json={"text": "hello"}).json()
    second = client.post("/api/chat", json={"session_id": first["session_id"], "text": "more"}).json()
    assert second["session_id"] == first["session_id"]
    assert len(factory.calls) == 1
    assert [text for text, _ in chat.user_messages] == ["hello", "more"]
    [summary] = client.get("/api/sessions").json()
    assert summary["title"] == "hello"


def test_rejected_key_becomes_system_message(wire):
    wire(replies=[ConfigurationError("Gemini rejected the API key")])
    resp = client.post("/api/chat", json={"text": "hello"})
    assert resp.status_code == 200, resp.text
    assert resp.json()["messages"][-1]["role"] == "system"


def test_unknown_session_is_404(wire):
    wire()
    assert client.get("/api/sessions/nope").status_code == 404


def test_products_endpoint():
    resp = client.get("/api/products", params={"category": "Food", "max_price": 50})
    assert resp.status_code == 200, resp.text
    assert [p["sku"] for p in resp.json()] == [4002, 4004, 4005]
    assert len(client.get("/api/products").json()) == 19


def test_transcript_uses_same_wire_names_as_chat(wire):
    wire(
        replies=[
            ModelReply(tool_calls=(search_call(query="red dress"),)),
            ModelReply(text="This one is lovely."),
        ]
    )
    chat_body = client.post("/api/chat", json={"text": "red dress please"}).json()
    resp = client.get(f"/api/sessions/{chat_body['session_id']}")
    assert resp.status_code == 200, resp.text
    transcript = resp.json()["messages"]
    chat_product = chat_body["messages"][-1]["products"][0]
    transcript_product = transcript[-1]["products"][0]
    assert transcript_product == chat_product
    assert "imageUrl" in transcript_product and "image_url" not in transcript_product
    assert set(transcript[-1]) == set(chat_body["messages"][-1])
    assert "isThinking" in transcript[-1]


def test_session_setup_failure_becomes_system_message(wire):
    chat, factory = wire(factory_error=ConfigurationError("Gemini rejected the API key"))
    resp = client.post("/api/chat", json={"text": "hello"})
    assert resp.status_code == 200, resp.text
    [message] = resp.json()["messages"]
    assert message["role"] == "system"
    assert message["text"] == app_module.REJECTED_KEY_TEXT
    assert len(factory.calls) == 1
    assert chat.user_messages == []


def test_single_product_lookup():
    resp = client.get("/api/products/4001")
    assert resp.status_code == 200, resp.text
    assert resp.json()["name"] == "Green Curry Paste"
    assert client.get("/api/products/9999").status_code == 404
