# src/chatcore/context/__init__.py
"""
Prompt assembly and context-window budgeting for chatcore.
"""

from .builder import (build_final_messages,
                      ensure_assistant_messages_not_empty,
                      filter_empty_assistant_messages)
from .prompt import build_base_prompt
from .retrieval import (build_retrieval_text, inline_message_retrieval,
                        render_file_query)
from .tokens import (EstimateCounter, TiktokenCounter, TokenCounter,
                     get_token_counter, model_chunk_size)
from .truncation import (TRUNCATION_MARKER, HistoryTruncator,
                         TruncationResult, last_sequence_number)

__all__ = [
    "EstimateCounter",
    "HistoryTruncator",
    "TRUNCATION_MARKER",
    "TiktokenCounter",
    "TokenCounter",
    "TruncationResult",
    "build_base_prompt",
    "build_final_messages",
    "build_retrieval_text",
    "ensure_assistant_messages_not_empty",
    "filter_empty_assistant_messages",
    "get_token_counter",
    "inline_message_retrieval",
    "last_sequence_number",
    "model_chunk_size",
    "render_file_query",
]
