"""Tests for chat posting, history and deletion authorization."""
from datetime import datetime, timedelta
from unittest.mock import MagicMock

import duckdb
import pytest

from coderelay.chat.schemas import ChatMessage, ChatMessageInput
from coderelay.chat.service import ChatService, can_author_delete
from coderelay.chat.store import ChatMessageStore
from coderelay.errors import (
    InvalidPayloadError,
    NotFoundError,
    PermissionDeniedError,
    StorageError,
)

T0 = datetime(2026, 3, 1, 12, 0, 0)
OWNER = "1"
AUTHOR = "2"
STRANGER = "3"


class Clock:
    """Settable clock shared by the store (createdAt) and service (now)."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock():
    return Clock(T0)


@pytest.fixture
def chat(store, workspaces, clock):
    store.clock = clock
    workspaces.create_workspace("ws-1", owner_id=OWNER, name="Demo")
    return ChatService(store, workspaces, clock=clock)


@pytest.fixture
def message(chat):
    return chat.post_message("ws-1", AUTHOR, "bob", "hello")


class TestPostAndHistory:

    def test_post_returns_storage_record(self, chat, clock):
        msg = chat.post_message("ws-1", AUTHOR, "bob", "hello")
        assert msg.id >= 1
        assert msg.createdAt == T0
        assert msg.roomId == "ws-1"
        assert msg.to_event() == {
            "id": msg.id,
            "displayName": "bob",
            "userId": AUTHOR,
            "body": "hello",
            "timestamp": "2026-03-01T12:00:00Z",
        }

    def test_ids_are_monotonic(self, chat):
        ids = [chat.post_message("ws-1", AUTHOR, "bob", f"m{i}").id for i in range(3)]
        assert ids == sorted(ids)
        assert len(set(ids)) == 3

    def test_history_ordered_by_creation_time_not_arrival(self, chat, clock):
        # Arrival order m_late, m_early, m_mid; storage times differ.
        clock.now = T0 + timedelta(seconds=30)
        chat.post_message("ws-1", AUTHOR, "bob", "late")
        clock.now = T0
        chat.post_message("ws-1", OWNER, "alice", "early")
        clock.now = T0 + timedelta(seconds=10)
        chat.post_message("ws-1", STRANGER, "carol", "mid")

        assert [m.body for m in chat.fetch_history("ws-1")] == ["early", "mid", "late"]

    def test_history_is_scoped_to_room(self, chat):
        chat.post_message("ws-1", AUTHOR, "bob", "here")
        chat.post_message("ws-2", AUTHOR, "bob", "elsewhere")
        assert [m.body for m in chat.fetch_history("ws-1")] == ["here"]

    def test_message_too_long(self, store, workspaces):
        chat = ChatService(store, workspaces, max_message_length=5)
        with pytest.raises(InvalidPayloadError):
            chat.post_message("ws-1", AUTHOR, "bob", "123456")
        assert store.count_messages("ws-1") == 0


class TestDeleteMessage:

    def test_author_within_grace_period(self, chat, store, clock, message):
        clock.now = T0 + timedelta(minutes=4, seconds=59)
        assert chat.delete_message("ws-1", message.id, AUTHOR) == message.id
        assert store.get_message(message.id, "ws-1") is None

    def test_author_exactly_at_boundary_is_allowed(self, chat, clock, message):
        clock.now = T0 + timedelta(minutes=5)
        assert chat.delete_message("ws-1", message.id, AUTHOR) == message.id

    def test_author_after_grace_period(self, chat, store, clock, message):
        clock.now = T0 + timedelta(minutes=5, seconds=1)
        with pytest.raises(PermissionDeniedError) as exc_info:
            chat.delete_message("ws-1", message.id, AUTHOR)
        assert exc_info.value.message == "You can only delete messages within 5 minutes of sending"
        assert store.get_message(message.id, "ws-1") is not None

    def test_stranger_denied_regardless_of_time(self, chat, clock, message):
        clock.now = T0
        with pytest.raises(PermissionDeniedError) as exc_info:
            chat.delete_message("ws-1", message.id, STRANGER)
        assert "permission" in exc_info.value.message

    def test_owner_deletes_any_message_any_time(self, chat, store, clock, message):
        clock.now = T0 + timedelta(days=30)
        assert chat.delete_message("ws-1", message.id, OWNER) == message.id
        assert store.count_messages("ws-1") == 0

    def test_unknown_workspace(self, chat, message):
        with pytest.raises(NotFoundError, match="Workspace not found"):
            chat.delete_message("missing", message.id, OWNER)

    def test_unknown_message(self, chat):
        with pytest.raises(NotFoundError, match="Message not found"):
            chat.delete_message("ws-1", 999, OWNER)

    def test_message_from_other_room_is_not_found(self, chat, workspaces):
        workspaces.create_workspace("ws-2", owner_id=OWNER)
        other = chat.post_message("ws-2", AUTHOR, "bob", "elsewhere")
        with pytest.raises(NotFoundError, match="Message not found"):
            chat.delete_message("ws-1", other.id, OWNER)

    def test_custom_grace_period(self, store, workspaces, clock):
        store.clock = clock
        workspaces.create_workspace("ws-9", owner_id=OWNER)
        chat = ChatService(store, workspaces, grace=timedelta(minutes=1), clock=clock)
        msg = chat.post_message("ws-9", AUTHOR, "bob", "hi")
        clock.now = T0 + timedelta(minutes=2)
        with pytest.raises(PermissionDeniedError, match="within 1 minutes"):
            chat.delete_message("ws-9", msg.id, AUTHOR)


class TestDeleteAll:

    def test_non_owner_denied(self, chat, store, message):
        chat.post_message("ws-1", AUTHOR, "bob", "again")
        with pytest.raises(PermissionDeniedError, match="Only workspace owner"):
            chat.delete_all_messages("ws-1", AUTHOR)
        assert store.count_messages("ws-1") == 2

    def test_owner_clears_room(self, chat, store, workspaces, message):
        workspaces.create_workspace("ws-2", owner_id=OWNER)
        chat.post_message("ws-2", AUTHOR, "bob", "kept")
        chat.delete_all_messages("ws-1", OWNER)
        assert store.count_messages("ws-1") == 0
        assert store.count_messages("ws-2") == 1

    def test_unknown_workspace(self, chat):
        with pytest.raises(NotFoundError):
            chat.delete_all_messages("missing", OWNER)


class TestStorageFailures:

    def test_insert_failure_is_wrapped(self, workspaces):
        store = MagicMock(spec=ChatMessageStore)
        store.insert_message.side_effect = duckdb.IOException("disk full")
        chat = ChatService(store, workspaces)
        with pytest.raises(StorageError, match="Failed to save message"):
            chat.post_message("ws-1", AUTHOR, "bob", "hi")

    def test_history_failure_is_wrapped(self, workspaces):
        store = MagicMock(spec=ChatMessageStore)
        store.list_messages.side_effect = duckdb.IOException("gone")
        with pytest.raises(StorageError, match="Failed to load chat history"):
            ChatService(store, workspaces).fetch_history("ws-1")

    def test_delete_failure_is_wrapped(self, workspaces):
        workspaces.create_workspace("ws-1", owner_id=OWNER)
        store = MagicMock(spec=ChatMessageStore)
        store.get_message.return_value = ChatMessage(
            id=1, roomId="ws-1", userId=AUTHOR, body="x", createdAt=T0
        )
        store.delete_message.side_effect = duckdb.IOException("locked")
        with pytest.raises(StorageError, match="Failed to delete message"):
            ChatService(store, workspaces).delete_message("ws-1", 1, OWNER)


def test_can_author_delete_boundary():
    msg = ChatMessage(id=1, roomId="r", userId="u", body="b", createdAt=T0)
    grace = timedelta(minutes=5)
    assert can_author_delete(msg, T0 + grace, grace)
    assert not can_author_delete(msg, T0 + grace + timedelta(microseconds=1), grace)


class TestChatPayloads:

    def test_numeric_user_id_is_coerced(self):
        payload = ChatMessageInput.model_validate(
            {"roomId": "ws-1", "userId": 42, "body": "hi", "clientTimestamp": "2020-01-01"}
        )
        assert payload.userId == "42"

    def test_blank_body_rejected(self):
        with pytest.raises(ValueError):
            ChatMessageInput.model_validate({"roomId": "ws-1", "userId": "1", "body": "   "})

    def test_integral_float_user_id_is_coerced(self):
        payload = ChatMessageInput.model_validate({"roomId": "ws-1", "userId": 7.0, "body": "hi"})
        assert payload.userId == "7"

    @pytest.mark.parametrize("user_id", [float("inf"), float("-inf"), float("nan"), 1.9, True])
    def test_non_integral_user_id_rejected(self, user_id):
        # 1.9 must not silently become "1" (the owner in these tests).
        with pytest.raises(ValueError):
            ChatMessageInput.model_validate({"roomId": "ws-1", "userId": user_id, "body": "hi"})
