# tests/chat/test_helpers.py
"""Tests for the chat turn building blocks."""

from unittest.mock import AsyncMock

import pytest

from chatcore.chat import (create_temp_messages, extract_urls,
                           handle_create_chat, handle_create_messages,
                           handle_retrieval, validate_chat_settings)
from chatcore.exceptions import ChatValidationError
from chatcore.llm_list import GPT3_5, GPT4
from chatcore.models import (Assistant, ChatFile, ChatSettings, FileItem,
                             MessageImage, Profile, Role, Workspace)
from chatcore.plugins import PluginID
from chatcore.services import BackendClient
from chatcore.storage import InMemoryChatRepository

PROFILE = Profile(user_id="user-1")
WORKSPACE = Workspace(id="ws-1")


class TestValidateChatSettings:

    def test_valid_turn(self, chat_settings):
        validate_chat_settings(chat_settings, GPT3_5, PROFILE, WORKSPACE, False, "Hello")

    @pytest.mark.parametrize("overrides, message", [
        ({"chat_settings": None}, "Chat settings not found"),
        ({"model_data": None}, "Model not found"),
        ({"profile": None}, "Profile not found"),
        ({"workspace": None}, "Workspace not found"),
        ({"message_content": ""}, "Message content not found"),
    ])
    def test_missing_inputs(self, chat_settings, overrides, message):
        args = {
            "chat_settings": chat_settings,
            "model_data": GPT3_5,
            "profile": PROFILE,
            "workspace": WORKSPACE,
            "message_content": "Hello",
        }
        args.update(overrides)
        with pytest.raises(ChatValidationError, match=message):
            validate_chat_settings(
                args["chat_settings"], args["model_data"], args["profile"], args["workspace"],
                False, args["message_content"],
            )

    def test_first_failure_wins(self):
        with pytest.raises(ChatValidationError, match="Chat settings not found"):
            validate_chat_settings(None, None, None, None, False, None)

    def test_continuation_needs_no_content(self, chat_settings):
        validate_chat_settings(chat_settings, GPT3_5, PROFILE, WORKSPACE, True, None)

    def test_images_require_image_input(self, chat_settings):
        images = [MessageImage(base64="data:image/png;base64,AAAA")]
        with pytest.raises(ChatValidationError, match="image input"):
            validate_chat_settings(chat_settings, GPT3_5, PROFILE, WORKSPACE, False, "Look", images)
        validate_chat_settings(chat_settings, GPT4, PROFILE, WORKSPACE, False, "Look", images)


def test_extract_urls():
    text = "see https://a.example/x and http://b.example, then nothing"
    assert extract_urls(text) == ["https://a.example/x", "http://b.example,"]
    assert extract_urls(None) == []
    assert extract_urls("no links here") == []


class TestCreateTempMessages:

    def test_new_turn_on_empty_history(self, chat_settings):
        user, assistant = create_temp_messages("Hi", [], chat_settings, [], False, PluginID.NONE)

        assert user.message.role == "user"
        assert user.message.content == "Hi"
        assert user.message.sequence_number == 0
        assert user.message.id.startswith("temp-user-")
        assert assistant.message.role == "assistant"
        assert assistant.message.content == ""
        assert assistant.message.sequence_number == 1
        assert assistant.message.id.startswith("temp-assistant-")

    def test_sequence_follows_history(self, chat_settings, history_factory):
        user, assistant = create_temp_messages("Hi", history_factory(4), chat_settings, [], False, PluginID.NONE)
        assert (user.message.sequence_number, assistant.message.sequence_number) == (4, 5)

    def test_images_model_and_plugin(self, chat_settings):
        user, assistant = create_temp_messages(
            "Scan", [], chat_settings, ["data:image/png;base64,AAAA"], False, PluginID.NUCLEI, "gpt-4-turbo-preview",
        )
        assert user.message.image_paths == ["data:image/png;base64,AAAA"]
        assert user.message.model == "gpt-4-turbo-preview"
        assert assistant.message.plugin == "nuclei"

    def test_continuation_copies_last_assistant(self, chat_settings, history_factory):
        history = history_factory(2)
        user, assistant = create_temp_messages(None, history, chat_settings, [], True, PluginID.NONE)

        assert user is None
        assert assistant.message.id == "msg-1"
        assert assistant.message.content == history[1].message.content
        assert assistant.message is not history[1].message

    def test_continuation_requires_assistant_last(self, chat_settings, history_factory):
        with pytest.raises(ChatValidationError):
            create_temp_messages(None, history_factory(3), chat_settings, [], True, PluginID.NONE)


class TestHandleRetrieval:

    @pytest.mark.asyncio
    async def test_deduplicates_files(self):
        backend = AsyncMock(spec=BackendClient)
        backend.retrieve.return_value = [FileItem(content="chunk")]
        f1, f2 = ChatFile(id="f1"), ChatFile(id="f2")

        items = await handle_retrieval(backend, "q", [f1], [f1, f2], "openai", 3)

        assert [i.content for i in items] == ["chunk"]
        backend.retrieve.assert_awaited_once_with("q", [f1, f2], "openai", 3)

    @pytest.mark.asyncio
    async def test_no_files_skips_backend(self):
        backend = AsyncMock(spec=BackendClient)
        assert await handle_retrieval(backend, "q", [], [], "openai", 3) == []
        backend.retrieve.assert_not_awaited()


class TestHandleCreateChat:

    @pytest.mark.asyncio
    async def test_creates_chat_with_truncated_name_and_files(self):
        repository = InMemoryChatRepository()
        settings = ChatSettings(model="gpt-4-turbo-preview", temperature=0.3)
        assistant = Assistant(id="asst-1", name="Ada", model="gpt-4-turbo-preview")

        chat = await handle_create_chat(
            repository, settings, PROFILE, WORKSPACE, "x" * 150, assistant, [ChatFile(id="f1")], "stop",
        )

        assert len(chat.name) == 100
        assert chat.assistant_id == "asst-1"
        assert chat.workspace_id == "ws-1"
        assert chat.temperature == 0.3
        assert chat.finish_reason == "stop"
        assert repository.chats[chat.id] == chat
        assert repository.chat_files[chat.id] == ["f1"]

    @pytest.mark.asyncio
    async def test_no_files_attached(self, chat_settings):
        repository = InMemoryChatRepository()
        chat = await handle_create_chat(repository, chat_settings, PROFILE, WORKSPACE, "Hi", None, [], "stop")
        assert chat.assistant_id is None
        assert chat.id not in repository.chat_files


class TestHandleCreateMessages:

    @pytest.fixture
    def repository(self):
        return InMemoryChatRepository()

    @pytest.mark.asyncio
    async def test_new_turn_stores_pair(self, repository, chat_settings):
        chat = await handle_create_chat(repository, chat_settings, PROFILE, WORKSPACE, "Hi", None, [], "stop")
        temp_user, temp_assistant = create_temp_messages("Hi", [], chat_settings, [], False, PluginID.NONE)
        item = FileItem(file_id="f1", content="chunk")
        image = MessageImage(base64="data:image/png;base64,AAAA")

        messages, images = await handle_create_messages(
            repository, [], chat, PROFILE, temp_user, temp_assistant, "Answer", [item], [image], False, False,
        )

        stored = repository.chat_history(chat.id)
        assert [m.content for m in stored] == ["Hi", "Answer"]
        assert all(m.user_id == "user-1" for m in stored)
        assert not any(m.id.startswith("temp-") for m in stored)
        assert [cm.message.id for cm in messages] == [m.id for m in stored]
        assert messages[0].file_items == [item]
        assert repository.message_file_items[stored[0].id] == [item]
        assert images[0].message_id == stored[0].id
        assert images[0].base64 == image.base64

    @pytest.mark.asyncio
    async def test_edit_replaces_tail(self, repository, chat_settings, history_factory):
        chat = await handle_create_chat(repository, chat_settings, PROFILE, WORKSPACE, "Hi", None, [], "stop")
        history = history_factory(6, chat_id=chat.id)
        await repository.create_messages([cm.message for cm in history])
        base = history[:2]
        temp_user, temp_assistant = create_temp_messages("edited", base, chat_settings, [], False, PluginID.NONE)

        messages, _ = await handle_create_messages(
            repository, base, chat, PROFILE, temp_user, temp_assistant, "new answer", [], [], False, False,
            edit_sequence_number=2,
        )

        stored = repository.chat_history(chat.id)
        assert [m.sequence_number for m in stored] == [0, 1, 2, 3]
        assert [m.content for m in stored][2:] == ["edited", "new answer"]
        assert len(messages) == 4

    @pytest.mark.asyncio
    async def test_regeneration_updates_last_row(self, repository, chat_settings, history_factory):
        chat = await handle_create_chat(repository, chat_settings, PROFILE, WORKSPACE, "Hi", None, [], "stop")
        history = history_factory(2, chat_id=chat.id)
        await repository.create_messages([cm.message for cm in history])
        _, temp_assistant = create_temp_messages("m0", history, chat_settings, [], False, PluginID.NONE)

        messages, images = await handle_create_messages(
            repository, history, chat, PROFILE, None, temp_assistant, "regenerated", [], [], True, False,
        )

        assert repository.messages["msg-1"].content == "regenerated"
        assert repository.messages["msg-1"].updated_at is not None
        assert [cm.message.content for cm in messages][-1] == "regenerated"
        assert images == []

    @pytest.mark.asyncio
    async def test_new_turn_requires_user_message(self, repository, chat_settings):
        chat = await handle_create_chat(repository, chat_settings, PROFILE, WORKSPACE, "Hi", None, [], "stop")
        _, temp_assistant = create_temp_messages("Hi", [], chat_settings, [], False, PluginID.NONE)
        with pytest.raises(ValueError):
            await handle_create_messages(
                repository, [], chat, PROFILE, None, temp_assistant, "x", [], [], False, False,
            )


def test_role_values_of_temp_messages(chat_settings):
    user, assistant = create_temp_messages("Hi", [], chat_settings, [], False, PluginID.NONE)
    assert Role(user.message.role) == Role.USER
    assert Role(assistant.message.role) == Role.ASSISTANT
