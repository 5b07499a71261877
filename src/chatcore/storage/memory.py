# src/chatcore/storage/memory.py
"""
In-memory implementation of :class:`ChatRepository`.

Useful for tests, demos and for running the orchestrator without a database.
Nothing survives the process.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..exceptions import StorageError
from ..models import Chat, ChatFile, Feedback, FileItem, Message
from .base import ChatRepository

logger = logging.getLogger(__name__)


class InMemoryChatRepository(ChatRepository):
    """Dictionary-backed repository."""

    def __init__(self, files: Optional[List[ChatFile]] = None):
        self.chats: Dict[str, Chat] = {}
        self.messages: Dict[str, Message] = {}
        self.message_file_items: Dict[str, List[FileItem]] = {}
        self.chat_files: Dict[str, List[str]] = {}
        self.feedback: Dict[str, Feedback] = {}
        self.files: Dict[str, ChatFile] = {f.id: f for f in files or []}

    async def create_chat(self, chat: Chat) -> Chat:
        if chat.id in self.chats:
            raise StorageError(f"Chat '{chat.id}' already exists.")
        self.chats[chat.id] = chat
        logger.debug(f"Created chat '{chat.id}'.")
        return chat

    async def update_chat(self, chat_id: str, patch: Dict[str, Any]) -> Chat:
        chat = self.chats.get(chat_id)
        if chat is None:
            raise StorageError(f"Chat '{chat_id}' not found.")
        updated = chat.model_validate({**chat.model_dump(), **patch})
        self.chats[chat_id] = updated
        return updated

    async def create_messages(self, messages: List[Message]) -> List[Message]:
        now = datetime.now(timezone.utc)
        stored = []
        for message in messages:
            row = message.model_copy(update={"created_at": now})
            self.messages[row.id] = row
            stored.append(row)
        return stored

    async def update_message(self, message_id: str, patch: Dict[str, Any]) -> Message:
        message = self.messages.get(message_id)
        if message is None:
            raise StorageError(f"Message '{message_id}' not found.")
        updated = message.model_validate({**message.model_dump(), **patch, "updated_at": datetime.now(timezone.utc)})
        self.messages[message_id] = updated
        return updated

    async def delete_messages_including_and_after(self, chat_id: str, sequence_number: int) -> None:
        doomed = [
            m.id for m in self.messages.values()
            if m.chat_id == chat_id and m.sequence_number >= sequence_number
        ]
        for message_id in doomed:
            del self.messages[message_id]
            self.message_file_items.pop(message_id, None)
            self.feedback.pop(message_id, None)

    async def create_message_file_items(self, message_id: str, file_items: List[FileItem]) -> None:
        self.message_file_items.setdefault(message_id, []).extend(file_items)

    async def create_chat_files(self, chat_id: str, file_ids: List[str]) -> None:
        attached = self.chat_files.setdefault(chat_id, [])
        attached.extend(fid for fid in file_ids if fid not in attached)

    async def create_message_feedback(self, feedback: Feedback) -> List[Feedback]:
        self.feedback[feedback.message_id] = feedback
        return [feedback]

    async def get_file_by_id(self, file_id: str) -> Optional[ChatFile]:
        return self.files.get(file_id)

    def chat_history(self, chat_id: str) -> List[Message]:
        """Persisted messages of a chat ordered by sequence number."""
        return sorted(
            (m for m in self.messages.values() if m.chat_id == chat_id),
            key=lambda m: m.sequence_number,
        )
