import json

from shopping_assistant.models import MessageRole
from shopping_assistant.orchestrator import ConversationSession
from shopping_assistant.session_store import WELCOME_MESSAGE_ID, WELCOME_TEXT, SessionStore


def test_new_session_gets_welcome_message():
    store = SessionStore()
    session = store.put(ConversationSession(session_id="s1"))
    [welcome] = session.messages
    assert welcome.id == WELCOME_MESSAGE_ID
    assert welcome.role == MessageRole.MODEL
    assert welcome.text == WELCOME_TEXT
    assert store.list_sessions()[0].title == "New Chat"


def test_message_ids_are_unique_and_title_follows_first_user_message():
    store = SessionStore()
    store.put(ConversationSession(session_id="s1"))
    first = store.add_message("s1", MessageRole.USER, "Looking for headphones\nunder 5000")
    second = store.add_message("s1", MessageRole.MODEL, "Here you go")
    assert int(second.id) > int(first.id)
    assert [m.id for m in store.get_messages("s1")] == [WELCOME_MESSAGE_ID, first.id, second.id]
    assert store.list_sessions()[0].title == "Looking for headphones"


def test_unknown_session_has_no_messages():
    store = SessionStore()
    assert store.get("missing") is None
    assert store.get_messages("missing") == []


def test_prunes_least_recent_sessions():
    store = SessionStore(max_sessions=2)
    for session_id, updated_at in [("old", 1.0), ("mid", 2.0), ("new", 3.0)]:
        store.put(ConversationSession(session_id=session_id, updated_at=updated_at))
    assert store.get("old") is None
    assert [s.session_id for s in store.list_sessions()] == ["new", "mid"]


def test_transcripts_persist_and_reload_without_chat(tmp_path, catalog):
    path = tmp_path / "sessions.json"
    store = SessionStore(path)
    store.put(ConversationSession(session_id="s1", chat=object()))
    store.add_message("s1", MessageRole.USER, "red dress")
    store.add_message("s1", MessageRole.MODEL, "Found one", products=[catalog.get(1001)])

    data = json.loads(path.read_text(encoding="utf-8"))
    assert len(data["sessions"]["s1"]) == 3

    restored = SessionStore(path).get("s1")
    assert restored.is_established is False
    assert restored.messages[-1].products[0].sku == 1001
    assert restored.messages[1].text == "red dress"
