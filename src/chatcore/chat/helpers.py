# src/chatcore/chat/helpers.py
"""
Building blocks of a chat turn: validation, temporary messages, retrieval and
persistence of the finished turn.
"""

import logging
import re
import uuid
from typing import List, Optional, Sequence, Tuple

from ..context import last_sequence_number
from ..exceptions import ChatValidationError
from ..llm_list import LLM
from ..models import (Assistant, Chat, ChatFile, ChatMessage, ChatSettings,
                      FileItem, Message, MessageImage, Profile, Role,
                      Workspace)
from ..plugins import PluginID, is_command
from ..services import BackendClient
from ..storage import ChatRepository

logger = logging.getLogger(__name__)

URL_PATTERN = re.compile(r"https?://[^\s]+")
CHAT_NAME_MAX_LENGTH = 100

__all__ = [
    "create_temp_messages",
    "extract_urls",
    "handle_create_chat",
    "handle_create_messages",
    "handle_retrieval",
    "is_command",
    "validate_chat_settings",
]


def validate_chat_settings(
    chat_settings: Optional[ChatSettings],
    model_data: Optional[LLM],
    profile: Optional[Profile],
    selected_workspace: Optional[Workspace],
    is_continuation: bool,
    message_content: Optional[str],
    new_message_images: Sequence[MessageImage] = (),
) -> None:
    """
    Raise :class:`ChatValidationError` when the turn cannot be sent.

    Runs before any network call or state change.
    """
    if not chat_settings:
        raise ChatValidationError("Chat settings not found")
    if not model_data:
        raise ChatValidationError("Model not found")
    if not profile:
        raise ChatValidationError("Profile not found")
    if not selected_workspace:
        raise ChatValidationError("Workspace not found")
    if not is_continuation and not message_content:
        raise ChatValidationError("Message content not found")
    if new_message_images and not model_data.image_input:
        raise ChatValidationError(f"Model '{model_data.model_name}' does not support image input")


def extract_urls(text: Optional[str]) -> List[str]:
    """All http(s) URLs in ``text``, in order of appearance."""
    if not text:
        return []
    return URL_PATTERN.findall(text)


def create_temp_messages(
    message_content: Optional[str],
    chat_messages: Sequence[ChatMessage],
    chat_settings: ChatSettings,
    b64_images: Sequence[str],
    is_continuation: bool,
    selected_plugin: PluginID,
    model: Optional[str] = None,
) -> Tuple[Optional[ChatMessage], ChatMessage]:
    """
    Create the optimistic user message and assistant placeholder.

    For a continuation there is no user message; the placeholder is a copy
    of the last assistant message so new text extends it.

    Returns:
        ``(temp_user, temp_assistant)``
    """
    model_id = model or chat_settings.model
    plugin = PluginID(selected_plugin)

    if is_continuation:
        if not chat_messages or chat_messages[-1].message.role != Role.ASSISTANT:
            raise ChatValidationError("There is no assistant message to continue")
        last = chat_messages[-1]
        return None, ChatMessage(message=last.message.model_copy(), file_items=list(last.file_items))

    next_sequence = last_sequence_number(chat_messages) + 1 if chat_messages else 0
    temp_user = ChatMessage(message=Message(
        id=f"temp-user-{uuid.uuid4()}",
        role=Role.USER,
        content=message_content or "",
        image_paths=list(b64_images),
        sequence_number=next_sequence,
        model=model_id,
        plugin=plugin,
    ))
    temp_assistant = ChatMessage(message=Message(
        id=f"temp-assistant-{uuid.uuid4()}",
        role=Role.ASSISTANT,
        content="",
        sequence_number=next_sequence + 1,
        model=model_id,
        plugin=plugin,
    ))
    return temp_user, temp_assistant


def _unique_files(*groups: Sequence[ChatFile]) -> List[ChatFile]:
    seen = set()
    files = []
    for group in groups:
        for f in group:
            if f.id not in seen:
                seen.add(f.id)
                files.append(f)
    return files


async def handle_retrieval(
    backend: BackendClient,
    user_input: str,
    new_message_files: Sequence[ChatFile],
    chat_files: Sequence[ChatFile],
    embeddings_provider: str,
    source_count: int,
) -> List[FileItem]:
    """
    Retrieve the file chunks most relevant to ``user_input``.

    Raises:
        BackendError: If the retrieval endpoint fails. The turn fails with it.
    """
    files = _unique_files(new_message_files, chat_files)
    if not files:
        return []
    return await backend.retrieve(user_input, files, embeddings_provider, source_count)


async def handle_create_chat(
    repository: ChatRepository,
    chat_settings: ChatSettings,
    profile: Profile,
    selected_workspace: Workspace,
    message_content: str,
    selected_assistant: Optional[Assistant],
    new_message_files: Sequence[ChatFile],
    finish_reason: str,
) -> Chat:
    """Create the chat on its first turn and attach the files sent with it."""
    chat = Chat(
        user_id=profile.user_id,
        workspace_id=selected_workspace.id,
        assistant_id=selected_assistant.id if selected_assistant else None,
        name=message_content[:CHAT_NAME_MAX_LENGTH],
        model=chat_settings.model,
        prompt=chat_settings.prompt,
        temperature=chat_settings.temperature,
        context_length=chat_settings.context_length,
        include_profile_context=chat_settings.include_profile_context,
        include_workspace_instructions=chat_settings.include_workspace_instructions,
        embeddings_provider=chat_settings.embeddings_provider,
        finish_reason=finish_reason,
    )
    created = await repository.create_chat(chat)
    if new_message_files:
        await repository.create_chat_files(created.id, [f.id for f in new_message_files])
    logger.info(f"Created chat '{created.id}' in workspace '{selected_workspace.id}'.")
    return created


async def handle_create_messages(
    repository: ChatRepository,
    base_messages: Sequence[ChatMessage],
    chat: Chat,
    profile: Profile,
    temp_user: Optional[ChatMessage],
    temp_assistant: ChatMessage,
    generated_text: str,
    retrieved_file_items: Sequence[FileItem],
    new_message_images: Sequence[MessageImage],
    is_regeneration: bool,
    is_continuation: bool,
    edit_sequence_number: Optional[int] = None,
) -> Tuple[List[ChatMessage], List[MessageImage]]:
    """
    Persist the finished turn.

    ``base_messages`` is the history the turn started from (already cut at
    the edit point for edits). Regeneration and continuation rewrite the last
    assistant row; every other turn stores a new user/assistant pair.

    Returns:
        The chat message list with temporary entries replaced by stored rows,
        and the images that were stored with the new user message.
    """
    if is_regeneration or is_continuation:
        last = base_messages[-1]
        updated = await repository.update_message(last.message.id, {"content": generated_text})
        return [*base_messages[:-1], ChatMessage(message=updated, file_items=list(last.file_items))], []

    if temp_user is None:
        raise ValueError("A user message is required for a new turn.")

    if edit_sequence_number is not None:
        await repository.delete_messages_including_and_after(chat.id, edit_sequence_number)

    user_row = temp_user.message.model_copy(update={
        "id": str(uuid.uuid4()),
        "chat_id": chat.id,
        "user_id": profile.user_id,
    })
    assistant_row = temp_assistant.message.model_copy(update={
        "id": str(uuid.uuid4()),
        "chat_id": chat.id,
        "user_id": profile.user_id,
        "content": generated_text,
    })
    stored_user, stored_assistant = await repository.create_messages([user_row, assistant_row])

    if retrieved_file_items:
        await repository.create_message_file_items(stored_user.id, list(retrieved_file_items))

    images = [
        MessageImage(message_id=stored_user.id, path=image.path or image.base64, base64=image.base64, url=image.url)
        for image in new_message_images
    ]

    logger.debug(f"Stored messages {stored_user.sequence_number} and {stored_assistant.sequence_number} "
                 f"in chat '{chat.id}'.")
    return [
        *base_messages,
        ChatMessage(message=stored_user, file_items=list(retrieved_file_items)),
        ChatMessage(message=stored_assistant),
    ], images
