# src/chatcore/context/tokens.py
"""
Token counting and per-model context ceilings.

Counting goes through the small :class:`TokenCounter` protocol so prompt
assembly can run with the real tiktoken encoder in production and with the
deterministic :class:`EstimateCounter` in tests.
"""

from __future__ import annotations

import logging
import math
from functools import lru_cache
from typing import Mapping, Optional, Protocol

import tiktoken

from ..models import ChatSettings
from ..plugins import PluginID

logger = logging.getLogger(__name__)

DEFAULT_ENCODING = "cl100k_base"

# Fixed ceilings for models whose downstream provider enforces a smaller hard
# limit than the chat's configured context length.
DEFAULT_MODEL_CHUNK_SIZES: dict[str, int] = {
    "gpt-4-turbo-preview": 12000,
    "mistral-large": 8000,
    "mistral-medium": 8000,
}
DEFAULT_PLUGIN_CHUNK_SIZE = 8000


class TokenCounter(Protocol):
    """Protocol for counting tokens in text."""

    def count(self, text: str) -> int:
        ...


class EstimateCounter:
    """Character-based estimate: one token per ``chars_per_token`` characters, rounded up."""

    def __init__(self, chars_per_token: int = 4) -> None:
        if chars_per_token <= 0:
            raise ValueError("chars_per_token must be positive.")
        self.chars_per_token = chars_per_token

    def count(self, text: str) -> int:
        if not text:
            return 0
        return math.ceil(len(text) / self.chars_per_token)


class TiktokenCounter:
    """
    Counts tokens with the tiktoken encoding of the target model family.

    Unknown model ids fall back to ``fallback_encoding``; the GPT-3.5/4
    encoding is a close enough proxy for the other hosted models.
    """

    def __init__(self, model: Optional[str] = None, fallback_encoding: str = DEFAULT_ENCODING) -> None:
        self.model = model
        if model:
            try:
                self._encoding = tiktoken.encoding_for_model(model)
                logger.debug(f"Loaded tiktoken encoding for model: {model}")
                return
            except KeyError:
                logger.debug(f"No tiktoken encoding registered for '{model}'. Using '{fallback_encoding}'.")
        self._encoding = tiktoken.get_encoding(fallback_encoding)

    @property
    def encoding_name(self) -> str:
        return self._encoding.name

    def count(self, text: str) -> int:
        if not text:
            return 0
        # Special-token text typed by a user is counted as plain text.
        return len(self._encoding.encode(text, disallowed_special=()))


@lru_cache(maxsize=32)
def get_token_counter(model: Optional[str] = None, fallback_encoding: str = DEFAULT_ENCODING) -> TiktokenCounter:
    """Cached :class:`TiktokenCounter` per (model, encoding)."""
    return TiktokenCounter(model=model, fallback_encoding=fallback_encoding)


def model_chunk_size(
    chat_settings: ChatSettings,
    selected_plugin: Optional[PluginID] = None,
    model_chunk_sizes: Optional[Mapping[str, int]] = None,
    plugin_chunk_size: int = DEFAULT_PLUGIN_CHUNK_SIZE,
) -> int:
    """
    Token ceiling applied to system prompt plus history for one turn.

    The chat's ``context_length`` is the default; models listed in
    ``model_chunk_sizes`` get their fixed value; any active plugin forces
    ``plugin_chunk_size`` whatever the model.
    """
    overrides = DEFAULT_MODEL_CHUNK_SIZES if model_chunk_sizes is None else model_chunk_sizes

    chunk_size = chat_settings.context_length
    if chat_settings.model in overrides:
        chunk_size = overrides[chat_settings.model]

    if selected_plugin is not None and PluginID(selected_plugin) != PluginID.NONE:
        chunk_size = plugin_chunk_size

    return chunk_size
