# src/chatcore/context/builder.py
"""
Final message assembly.

Turns a :class:`ChatPayload` into the ordered list of wire-format messages a
hosted chat transport sends to the model: system prompt, truncated history,
image parts, and the retrieval block spliced into the user's query.
"""

import logging
from typing import List, Optional, Sequence

from ..config import ChatCoreSettings, get_settings
from ..models import (BuiltChatMessage, ChatPayload, ContentPart, ImageUrl,
                      ImageUrlPart, Message, MessageImage, Profile, Role,
                      TextPart)
from ..plugins import PluginID
from .prompt import build_base_prompt
from .retrieval import build_retrieval_text, render_file_query
from .tokens import TokenCounter, get_token_counter, model_chunk_size
from .truncation import HistoryTruncator

logger = logging.getLogger(__name__)

EMPTY_ASSISTANT_FILLER = "Sure."


def _resolve_image_url(path: str, chat_images: Sequence[MessageImage]) -> str:
    if path.startswith("data"):
        return path
    chat_image = next((image for image in chat_images if image.path == path), None)
    if chat_image is None:
        logger.debug(f"No cached image for path '{path}'; sending an empty URL.")
        return ""
    return chat_image.base64


def to_built_message(message: Message, chat_images: Sequence[MessageImage]) -> BuiltChatMessage:
    """Convert an internal message to wire format, expanding attached images into parts."""
    if not message.image_paths:
        return BuiltChatMessage(role=message.role, content=message.content)

    parts: List[ContentPart] = [TextPart(text=message.content)]
    for path in message.image_paths:
        parts.append(ImageUrlPart(image_url=ImageUrl(url=_resolve_image_url(path, chat_images))))
    return BuiltChatMessage(role=message.role, content=parts)


def _with_file_query(message: BuiltChatMessage, retrieval_text: str) -> BuiltChatMessage:
    rendered = render_file_query(message.text, retrieval_text)
    if isinstance(message.content, str):
        return BuiltChatMessage(role=message.role, content=rendered)
    images = [part for part in message.content if isinstance(part, ImageUrlPart)]
    return BuiltChatMessage(role=message.role, content=[TextPart(text=rendered), *images])


def _wants_file_query(selected_plugin: PluginID) -> bool:
    if selected_plugin == PluginID.NONE:
        return True
    return selected_plugin != PluginID.AUTO_PLUGIN_SELECTOR


async def build_final_messages(
    payload: ChatPayload,
    profile: Optional[Profile],
    chat_images: Sequence[MessageImage],
    selected_plugin: Optional[PluginID] = PluginID.NONE,
    *,
    counter: Optional[TokenCounter] = None,
    settings: Optional[ChatCoreSettings] = None,
) -> List[BuiltChatMessage]:
    """
    Build the wire-ready message list for one turn.

    Args:
        payload: The turn's settings, history and retrieved file items.
        profile: The user's profile; its context is used when the settings ask for it.
        chat_images: Image cache used to resolve non-data image paths.
        selected_plugin: The effective plugin for the turn.
        counter: Token counter. Defaults to the tiktoken counter for the model.
        settings: Defaults to :func:`chatcore.config.get_settings`.

    Raises:
        OversizeInputError: If the newest user message alone exceeds the chunk size.
    """
    settings = settings or get_settings()
    plugin = PluginID(selected_plugin) if selected_plugin is not None else PluginID.NONE
    chat_settings = payload.chat_settings
    counter = counter or get_token_counter(chat_settings.model, settings.tokenizer_encoding)

    built_prompt = build_base_prompt(
        chat_settings.prompt,
        (profile.profile_context or "") if (profile and chat_settings.include_profile_context) else "",
        payload.workspace_instructions if chat_settings.include_workspace_instructions else "",
        payload.assistant,
        plugin,
    )

    chunk_size = model_chunk_size(
        chat_settings,
        plugin,
        model_chunk_sizes=settings.model_chunk_sizes or None,
        plugin_chunk_size=settings.plugin_chunk_size,
    )

    truncator = HistoryTruncator(
        counter,
        message_size_limit=settings.message_size_limit,
        message_size_keep=settings.message_size_keep,
    )
    result = truncator.truncate(payload.chat_messages, chunk_size, built_prompt, chat_settings)

    final_messages = [to_built_message(message, chat_images) for message in result.messages]

    # The query sits second to last, before the assistant placeholder. Never
    # rewrite the system message at index 0.
    query_index = len(final_messages) - 2
    if payload.message_file_items and _wants_file_query(plugin) and query_index >= 1:
        retrieval_text = build_retrieval_text(payload.message_file_items)
        final_messages[query_index] = _with_file_query(final_messages[query_index], retrieval_text)

    logger.debug(f"Built {len(final_messages)} messages for model '{chat_settings.model}' "
                 f"({result.used_tokens}/{chunk_size} tokens, plugin '{plugin.value}').")
    return final_messages


def filter_empty_assistant_messages(messages: List[BuiltChatMessage]) -> None:
    """Remove assistant messages whose content is blank. In place and idempotent."""
    for i in range(len(messages) - 1, -1, -1):
        if messages[i].role == Role.ASSISTANT and messages[i].text.strip() == "":
            del messages[i]


def ensure_assistant_messages_not_empty(messages: List[BuiltChatMessage]) -> None:
    """Replace blank assistant content with a neutral filler. In place and idempotent."""
    for i in range(len(messages) - 1, -1, -1):
        if messages[i].role == Role.ASSISTANT and messages[i].text.strip() == "":
            messages[i] = BuiltChatMessage(role=Role.ASSISTANT, content=EMPTY_ASSISTANT_FILLER)
