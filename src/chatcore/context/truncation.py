# src/chatcore/context/truncation.py
"""
History truncation against a token ceiling.

The truncator works on a copy of the conversation (oldest to newest):

1. fail fast when the newest user message alone exceeds the ceiling;
2. inline each historical message's retrieved file items into its content;
3. clip oversized assistant messages to a short prefix;
4. walk from newest to oldest, admitting messages while they fit in the
   budget left after the system prompt, stopping at the first one that does
   not fit;
5. prepend the system message.

The walk is greedy and strictly recency-first: once a message misses, every
older message is dropped even if it would have fit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from ..exceptions import OversizeInputError
from ..models import ChatMessage, ChatSettings, Message, Role
from ..plugins import PluginID
from .retrieval import build_retrieval_text, inline_message_retrieval
from .tokens import TokenCounter

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "\n... [output truncated]"
DEFAULT_MESSAGE_SIZE_LIMIT = 12000
DEFAULT_MESSAGE_SIZE_KEEP = 2000


def last_sequence_number(chat_messages: Sequence[ChatMessage]) -> int:
    """Highest sequence number in the list, or 0 for an empty list."""
    return max((cm.message.sequence_number for cm in chat_messages), default=0)


@dataclass
class TruncationResult:
    """
    Outcome of one truncation pass.

    Attributes:
        messages: System message followed by the admitted history, oldest first.
        chunk_size: The ceiling the pass ran against.
        prompt_tokens: Tokens spent on the system prompt.
        used_tokens: Prompt tokens plus the tokens of every admitted message.
        remaining_tokens: Budget left after the walk.
        dropped_count: Number of history messages left out.
        clipped_ids: Ids of assistant messages that were clipped.
    """

    messages: List[Message]
    chunk_size: int
    prompt_tokens: int
    used_tokens: int
    remaining_tokens: int
    dropped_count: int = 0
    clipped_ids: List[str] = field(default_factory=list)


class HistoryTruncator:
    """Fits chat history into a model's chunk size. Never mutates its inputs."""

    def __init__(
        self,
        counter: TokenCounter,
        message_size_limit: int = DEFAULT_MESSAGE_SIZE_LIMIT,
        message_size_keep: int = DEFAULT_MESSAGE_SIZE_KEEP,
    ) -> None:
        self._counter = counter
        self.message_size_limit = message_size_limit
        self.message_size_keep = message_size_keep

    def check_last_user_message(self, chat_messages: Sequence[ChatMessage], chunk_size: int) -> None:
        """
        Raise :class:`OversizeInputError` if the newest user message alone
        exceeds ``chunk_size``. Compared against the raw chunk size, not the
        budget left after the system prompt.
        """
        last_user = next((cm.message for cm in reversed(chat_messages) if cm.message.role == Role.USER), None)
        if last_user is None:
            return
        tokens = self._counter.count(last_user.content)
        if tokens > chunk_size:
            logger.info(f"Newest user message has {tokens} tokens, over the chunk size of {chunk_size}.")
            raise OversizeInputError(limit=chunk_size, actual=tokens)

    def inline_file_items(self, chat_messages: Sequence[ChatMessage]) -> List[ChatMessage]:
        """
        Rewrite every message that has a successor and carries file items so
        its content holds the query and the retrieval block; clear its items.
        """
        processed: List[ChatMessage] = []
        for index, chat_message in enumerate(chat_messages):
            is_last = index == len(chat_messages) - 1
            if is_last or not chat_message.file_items:
                processed.append(chat_message)
                continue
            retrieval_text = build_retrieval_text(chat_message.file_items)
            processed.append(ChatMessage(
                message=chat_message.message.model_copy(
                    update={"content": inline_message_retrieval(chat_message.message.content, retrieval_text)}
                ),
                file_items=[],
                feedback=chat_message.feedback,
            ))
        return processed

    def clip_oversized(self, message: Message) -> Message:
        """Clip an assistant message longer than the size limit to its kept prefix plus a marker."""
        if message.role != Role.ASSISTANT or len(message.content) <= self.message_size_limit:
            return message
        return message.model_copy(
            update={"content": message.content[:self.message_size_keep] + TRUNCATION_MARKER}
        )

    def truncate(
        self,
        chat_messages: Sequence[ChatMessage],
        chunk_size: int,
        system_prompt: str,
        chat_settings: Optional[ChatSettings] = None,
    ) -> TruncationResult:
        """
        Run the full truncation pass.

        Args:
            chat_messages: Conversation, oldest first. Usually ends with the
                           user message and the assistant placeholder.
            chunk_size: Token ceiling for system prompt plus history.
            system_prompt: The assembled system prompt.
            chat_settings: Used for the model id stamped on the system message.

        Raises:
            OversizeInputError: If the newest user message alone exceeds ``chunk_size``.
        """
        self.check_last_user_message(chat_messages, chunk_size)

        prompt_tokens = self._counter.count(system_prompt)
        remaining_tokens = chunk_size - prompt_tokens
        used_tokens = prompt_tokens

        processed = self.inline_file_items(chat_messages)

        candidates: List[Message] = []
        clipped_ids: List[str] = []
        for chat_message in processed:
            clipped = self.clip_oversized(chat_message.message)
            if clipped is not chat_message.message:
                clipped_ids.append(clipped.id)
            candidates.append(clipped)

        admitted: List[Message] = []
        for message in reversed(candidates):
            message_tokens = self._counter.count(message.content)
            if message_tokens <= remaining_tokens:
                remaining_tokens -= message_tokens
                used_tokens += message_tokens
                admitted.insert(0, message)
            else:
                break

        system_message = Message(
            id=str(len(processed)),
            role=Role.SYSTEM,
            content=system_prompt,
            model=chat_settings.model if chat_settings else "",
            plugin=PluginID.NONE,
            sequence_number=last_sequence_number(processed) + 1,
        )
        admitted.insert(0, system_message)

        dropped_count = len(candidates) - (len(admitted) - 1)
        if dropped_count:
            logger.debug(f"History truncated: kept {len(admitted) - 1} of {len(candidates)} messages "
                         f"({used_tokens}/{chunk_size} tokens).")

        return TruncationResult(
            messages=admitted,
            chunk_size=chunk_size,
            prompt_tokens=prompt_tokens,
            used_tokens=used_tokens,
            remaining_tokens=remaining_tokens,
            dropped_count=dropped_count,
            clipped_ids=clipped_ids,
        )
