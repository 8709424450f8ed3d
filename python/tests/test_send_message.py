"""Integration tests for the buffered message exchange.

Tests cover:
- Happy path: user turn + assistant turn persisted and returned
- Title policy: first exchange renames the chat, later ones don't
- Generation failure: user turn kept, no assistant turn, HTTP 200 with error
- Validation: empty / whitespace / over-long content rejected before any write
- New-chat variant: chat created with the first message, titled afterwards
- Title rename storage failure does not fail the exchange
"""

from uuid import UUID, uuid4

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from euroassist.db.models import Chat, Message
from euroassist.errors import ApiErrorCode, InvalidRequestError, StorageError
from euroassist.schemas.chat import MAX_MESSAGE_CONTENT_LENGTH
from euroassist.services import chats
from euroassist.services.llm import GENERATION_FAILED_MESSAGE
from euroassist.services.send_message import NEW_CHAT_TITLE, validate_message_content
from tests.helpers import create_chat, register_user
from tests.support.fake_assistant import DEFAULT_ANSWER, DEFAULT_FAKE_TITLE


def _messages(db_session, chat_id: str) -> list[Message]:
    return db_session.scalars(
        select(Message)
        .where(Message.chat_id == UUID(chat_id))
        .order_by(Message.created_at, Message.id)
    ).all()


# =============================================================================
# Existing chat
# =============================================================================


class TestSendMessage:
    def test_happy_path(self, auth_client, db_session, fake_assistant):
        chat = create_chat(auth_client)

        response = auth_client.post(
            f"/api/chats/{chat['id']}/messages",
            json={"content": "  Is studying in Germany free?  "},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["userMessage"]["role"] == "user"
        assert data["userMessage"]["content"] == "Is studying in Germany free?"
        assert data["assistantMessage"]["role"] == "assistant"
        assert data["assistantMessage"]["content"] == DEFAULT_ANSWER
        assert "error" not in data

        stored = _messages(db_session, chat["id"])
        assert [m.role for m in stored] == ["user", "assistant"]
        assert fake_assistant.questions == ["Is studying in Germany free?"]

    def test_first_exchange_sets_title(self, auth_client, fake_assistant):
        chat = create_chat(auth_client, title="Placeholder")

        auth_client.post(f"/api/chats/{chat['id']}/messages", json={"content": "Fees?"})

        updated = auth_client.get(f"/api/chats/{chat['id']}").json()["chat"]
        assert updated["title"] == DEFAULT_FAKE_TITLE
        assert fake_assistant.title_requests == ["Fees?"]

    def test_second_exchange_keeps_title(self, auth_client, fake_assistant):
        chat = create_chat(auth_client)
        auth_client.post(f"/api/chats/{chat['id']}/messages", json={"content": "First"})
        fake_assistant.title = "Something else"

        auth_client.post(f"/api/chats/{chat['id']}/messages", json={"content": "Second"})

        updated = auth_client.get(f"/api/chats/{chat['id']}").json()
        assert updated["chat"]["title"] == DEFAULT_FAKE_TITLE
        assert len(updated["messages"]) == 4
        assert fake_assistant.title_requests == ["First"]

    def test_generation_failure_keeps_user_message(
        self, auth_client, db_session, fake_assistant
    ):
        fake_assistant.fail = True
        chat = create_chat(auth_client, title="Original")

        response = auth_client.post(
            f"/api/chats/{chat['id']}/messages", json={"content": "Hello?"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["userMessage"]["content"] == "Hello?"
        assert data["error"] == GENERATION_FAILED_MESSAGE
        assert "assistantMessage" not in data

        stored = _messages(db_session, chat["id"])
        assert [m.role for m in stored] == ["user"]
        # No title change after a failed exchange
        assert auth_client.get(f"/api/chats/{chat['id']}").json()["chat"]["title"] == "Original"
        assert fake_assistant.title_requests == []

    def test_retry_after_failure_does_not_title(self, auth_client, fake_assistant):
        """A failed first exchange leaves 1 message; the retry makes 3, not 2."""
        chat = create_chat(auth_client, title="Original")
        fake_assistant.fail = True
        auth_client.post(f"/api/chats/{chat['id']}/messages", json={"content": "One"})
        fake_assistant.fail = False

        auth_client.post(f"/api/chats/{chat['id']}/messages", json={"content": "Two"})

        assert auth_client.get(f"/api/chats/{chat['id']}").json()["chat"]["title"] == "Original"

    @pytest.mark.parametrize("content", ["", "   ", "\n\t"])
    def test_empty_content_rejected(self, auth_client, db_session, fake_assistant, content):
        chat = create_chat(auth_client)

        response = auth_client.post(
            f"/api/chats/{chat['id']}/messages", json={"content": content}
        )

        assert response.status_code == 400
        assert response.json()["code"] == "E_MESSAGE_EMPTY"
        assert response.json()["errors"][0]["path"] == ["content"]
        assert _messages(db_session, chat["id"]) == []
        assert fake_assistant.questions == []

    def test_missing_content_rejected(self, auth_client):
        chat = create_chat(auth_client)

        response = auth_client.post(f"/api/chats/{chat['id']}/messages", json={})

        assert response.status_code == 400
        assert response.json()["code"] == "E_INVALID_REQUEST"

    def test_too_long_content_rejected(self, auth_client, db_session):
        chat = create_chat(auth_client)

        response = auth_client.post(
            f"/api/chats/{chat['id']}/messages",
            json={"content": "x" * (MAX_MESSAGE_CONTENT_LENGTH + 1)},
        )

        assert response.status_code == 400
        assert response.json()["code"] == "E_MESSAGE_TOO_LONG"
        assert _messages(db_session, chat["id"]) == []

    def test_unknown_chat_is_404(self, auth_client, fake_assistant):
        response = auth_client.post(
            f"/api/chats/{uuid4()}/messages", json={"content": "Hello"}
        )

        assert response.status_code == 404
        assert response.json()["code"] == "E_CHAT_NOT_FOUND"
        assert fake_assistant.questions == []

    def test_other_users_chat_is_404(self, make_client, db_session):
        alice = make_client()
        bob = make_client()
        register_user(alice)
        register_user(bob)
        chat = create_chat(alice)

        response = bob.post(f"/api/chats/{chat['id']}/messages", json={"content": "Hi"})

        assert response.status_code == 404
        assert _messages(db_session, chat["id"]) == []

    def test_title_rename_failure_is_not_fatal(self, auth_client, monkeypatch):
        def failing_rename(*args, **kwargs):
            raise StorageError()

        monkeypatch.setattr(chats, "rename_chat", failing_rename)
        chat = create_chat(auth_client, title="Original")

        response = auth_client.post(
            f"/api/chats/{chat['id']}/messages", json={"content": "Hello"}
        )

        assert response.status_code == 200
        assert response.json()["assistantMessage"]["content"] == DEFAULT_ANSWER
        assert auth_client.get(f"/api/chats/{chat['id']}").json()["chat"]["title"] == "Original"

    def test_title_count_failure_is_not_fatal(self, auth_client, db_session, monkeypatch):
        def failing_count(*args, **kwargs):
            raise OperationalError("SELECT count(*)", {}, Exception("connection lost"))

        monkeypatch.setattr(chats, "count_messages", failing_count)
        chat = create_chat(auth_client, title="Original")

        response = auth_client.post(
            f"/api/chats/{chat['id']}/messages", json={"content": "Hello"}
        )

        assert response.status_code == 200
        assert response.json()["assistantMessage"]["content"] == DEFAULT_ANSWER
        assert [m.role for m in _messages(db_session, chat["id"])] == ["user", "assistant"]
        assert auth_client.get(f"/api/chats/{chat['id']}").json()["chat"]["title"] == "Original"

    def test_requires_auth(self, client):
        response = client.post(f"/api/chats/{uuid4()}/messages", json={"content": "Hi"})

        assert response.status_code == 401


# =============================================================================
# New chat
# =============================================================================


class TestSendMessageNewChat:
    def test_creates_chat_and_titles_it(self, auth_client, db_session, fake_assistant):
        response = auth_client.post(
            "/api/chats/messages", json={"content": "Cheapest cities to study in Spain?"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["chat"]["title"] == DEFAULT_FAKE_TITLE
        assert data["userMessage"]["chatId"] == data["chat"]["id"]
        assert data["assistantMessage"]["content"] == DEFAULT_ANSWER

        listed = auth_client.get("/api/chats").json()
        assert [c["id"] for c in listed] == [data["chat"]["id"]]
        assert len(_messages(db_session, data["chat"]["id"])) == 2

    def test_generation_failure_keeps_new_chat(self, auth_client, db_session, fake_assistant):
        fake_assistant.fail = True

        response = auth_client.post("/api/chats/messages", json={"content": "Hello"})

        assert response.status_code == 200
        data = response.json()
        assert data["chat"]["title"] == NEW_CHAT_TITLE
        assert data["error"] == GENERATION_FAILED_MESSAGE
        assert "assistantMessage" not in data
        assert len(_messages(db_session, data["chat"]["id"])) == 1

    def test_empty_content_creates_nothing(self, auth_client, db_session):
        response = auth_client.post("/api/chats/messages", json={"content": "  "})

        assert response.status_code == 400
        assert response.json()["code"] == "E_MESSAGE_EMPTY"
        assert db_session.scalars(select(Chat)).all() == []


# =============================================================================
# Validation helper
# =============================================================================


class TestValidateMessageContent:
    def test_strips(self):
        assert validate_message_content("  hi  ") == "hi"

    def test_none_is_empty(self):
        with pytest.raises(InvalidRequestError) as exc_info:
            validate_message_content(None)
        assert exc_info.value.code == ApiErrorCode.E_MESSAGE_EMPTY

    def test_limit_applies_after_strip(self):
        padded = "  " + "x" * MAX_MESSAGE_CONTENT_LENGTH + "  "
        assert len(validate_message_content(padded)) == MAX_MESSAGE_CONTENT_LENGTH
