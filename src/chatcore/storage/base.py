# src/chatcore/storage/base.py
"""
Abstract Base Class for the persistence collaborator.

chatcore does not own a database. Everything it needs to persist a turn goes
through this interface; host applications implement it on top of their own
data layer.
"""

import abc
from typing import Any, Dict, List, Optional

from ..models import Chat, ChatFile, Feedback, FileItem, Message


class ChatRepository(abc.ABC):
    """
    Persistence operations used by the turn orchestrator.

    Implementations raise :class:`chatcore.exceptions.StorageError` (or let
    their own errors propagate); the orchestrator treats any failure during
    finalization as a failed turn and rolls back its in-memory state.
    """

    @abc.abstractmethod
    async def create_chat(self, chat: Chat) -> Chat:
        """Persist a new chat row and return it as stored."""
        pass

    @abc.abstractmethod
    async def update_chat(self, chat_id: str, patch: Dict[str, Any]) -> Chat:
        """Apply a partial update to a chat row and return the updated row."""
        pass

    @abc.abstractmethod
    async def create_messages(self, messages: List[Message]) -> List[Message]:
        """Persist new messages and return them as stored, in input order."""
        pass

    @abc.abstractmethod
    async def update_message(self, message_id: str, patch: Dict[str, Any]) -> Message:
        """Apply a partial update to a message row."""
        pass

    @abc.abstractmethod
    async def delete_messages_including_and_after(self, chat_id: str, sequence_number: int) -> None:
        """Delete every message of a chat whose sequence number is >= ``sequence_number``."""
        pass

    @abc.abstractmethod
    async def create_message_file_items(self, message_id: str, file_items: List[FileItem]) -> None:
        """Link retrieved file items to the message they answered."""
        pass

    @abc.abstractmethod
    async def create_chat_files(self, chat_id: str, file_ids: List[str]) -> None:
        """Attach files to a chat."""
        pass

    @abc.abstractmethod
    async def create_message_feedback(self, feedback: Feedback) -> List[Feedback]:
        """Create or replace the feedback of a message and return the stored rows."""
        pass

    @abc.abstractmethod
    async def get_file_by_id(self, file_id: str) -> Optional[ChatFile]:
        """Return a file row, or None if it does not exist."""
        pass
