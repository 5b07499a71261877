# tests/storage/test_memory.py
"""Tests for the in-memory chat repository."""

import pytest

from chatcore.exceptions import StorageError
from chatcore.models import Chat, ChatFile, Feedback, FileItem, Role
from chatcore.storage import ChatRepository, InMemoryChatRepository


@pytest.fixture
def repository():
    return InMemoryChatRepository(files=[ChatFile(id="f1", name="notes.txt")])


@pytest.fixture
def chat():
    return Chat(id="chat-1", user_id="user-1", workspace_id="ws-1", name="First")


def test_is_a_chat_repository(repository):
    assert isinstance(repository, ChatRepository)


class TestChats:

    @pytest.mark.asyncio
    async def test_create_and_update(self, repository, chat):
        await repository.create_chat(chat)
        updated = await repository.update_chat("chat-1", {"finish_reason": "stop"})
        assert updated.finish_reason == "stop"
        assert repository.chats["chat-1"].finish_reason == "stop"

    @pytest.mark.asyncio
    async def test_duplicate_chat_rejected(self, repository, chat):
        await repository.create_chat(chat)
        with pytest.raises(StorageError):
            await repository.create_chat(chat)

    @pytest.mark.asyncio
    async def test_update_missing_chat(self, repository):
        with pytest.raises(StorageError):
            await repository.update_chat("nope", {})

    @pytest.mark.asyncio
    async def test_chat_files_deduplicated(self, repository):
        await repository.create_chat_files("chat-1", ["f1", "f2"])
        await repository.create_chat_files("chat-1", ["f2", "f3"])
        assert repository.chat_files["chat-1"] == ["f1", "f2", "f3"]


class TestMessages:

    @pytest.mark.asyncio
    async def test_create_returns_rows_in_order(self, repository, history_factory):
        rows = await repository.create_messages([cm.message for cm in history_factory(3)])
        assert [r.sequence_number for r in rows] == [0, 1, 2]
        assert [m.id for m in repository.chat_history("chat-1")] == ["msg-0", "msg-1", "msg-2"]

    @pytest.mark.asyncio
    async def test_update_message(self, repository, history_factory):
        await repository.create_messages([cm.message for cm in history_factory(2)])
        updated = await repository.update_message("msg-1", {"content": "new"})
        assert updated.content == "new"
        assert updated.updated_at is not None
        assert updated.role == Role.ASSISTANT

    @pytest.mark.asyncio
    async def test_update_missing_message(self, repository):
        with pytest.raises(StorageError):
            await repository.update_message("nope", {"content": "x"})

    @pytest.mark.asyncio
    async def test_delete_including_and_after(self, repository, history_factory):
        await repository.create_messages([cm.message for cm in history_factory(10)])
        await repository.create_message_file_items("msg-7", [FileItem(content="x")])

        await repository.delete_messages_including_and_after("chat-1", 5)

        assert [m.sequence_number for m in repository.chat_history("chat-1")] == [0, 1, 2, 3, 4]
        assert "msg-7" not in repository.message_file_items

    @pytest.mark.asyncio
    async def test_delete_only_touches_given_chat(self, repository, history_factory):
        await repository.create_messages([cm.message for cm in history_factory(2, chat_id="chat-1")])
        other = [cm.message.model_copy(update={"id": f"other-{i}"})
                 for i, cm in enumerate(history_factory(2, chat_id="chat-2"))]
        await repository.create_messages(other)

        await repository.delete_messages_including_and_after("chat-1", 0)

        assert repository.chat_history("chat-1") == []
        assert len(repository.chat_history("chat-2")) == 2


class TestFeedbackAndFiles:

    @pytest.mark.asyncio
    async def test_latest_feedback_wins(self, repository):
        first = Feedback(message_id="m1", chat_id="c", user_id="u", feedback="bad", reason="wrong")
        second = Feedback(message_id="m1", chat_id="c", user_id="u", feedback="good")
        await repository.create_message_feedback(first)
        stored = await repository.create_message_feedback(second)
        assert stored == [second]
        assert repository.feedback["m1"].feedback == "good"

    @pytest.mark.asyncio
    async def test_get_file_by_id(self, repository):
        assert (await repository.get_file_by_id("f1")).name == "notes.txt"
        assert await repository.get_file_by_id("missing") is None
