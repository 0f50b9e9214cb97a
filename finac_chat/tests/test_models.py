from datetime import timezone

import pytest

from finac_chat.domain.exceptions import ValidationError
from finac_chat.domain.models import ChatMessage, ChatSession, ChatSummary


def test_message_from_payload():
    m = ChatMessage.from_payload(
        {
            "id": "m1",
            "chatId": "c1",
            "role": "ASSISTANT",
            "content": "ok",
            "responseType": "TABLE",
            "metadata": {"table": {"headers": ["a"], "rows": [[1]]}},
            "createdAt": "2025-01-02T03:04:05.000Z",
        }
    )
    assert m.response_type == "TABLE"
    assert m.created_at.tzinfo is not None
    assert m.created_at.astimezone(timezone.utc).hour == 3


def test_message_rejects_unknown_role():
    with pytest.raises(ValidationError):
        ChatMessage.from_payload({"id": "m1", "role": "system", "createdAt": "2025-01-01T00:00:00Z"})


def test_session_and_summary_from_payload():
    now = "2025-01-01T00:00:00Z"
    chat = {
        "id": "c1",
        "title": "Groceries",
        "createdAt": now,
        "updatedAt": now,
        "messages": [
            {"id": "m1", "chatId": "c1", "role": "USER", "content": "hi", "responseType": None, "createdAt": now},
        ],
    }
    session = ChatSession.from_payload(chat)
    assert session.id == "c1"
    assert [m.content for m in session.messages] == ["hi"]
    summary = ChatSummary.from_payload(chat)
    assert summary.title == "Groceries"
    assert summary.preview[0].id == "m1"


def test_non_object_items_are_rejected():
    with pytest.raises(ValidationError) as exc:
        ChatSession.from_payload({"id": "c1", "messages": ["oops"]})
    assert exc.value.code == "BAD_MESSAGE"

    with pytest.raises(ValidationError) as exc:
        ChatSession.from_payload({"id": "c1", "messages": {"id": "m1"}})
    assert exc.value.code == "BAD_MESSAGE"

    with pytest.raises(ValidationError) as exc:
        ChatSummary.from_payload(["c1"])
    assert exc.value.code == "BAD_CHAT"
