# src/chatcore/chat/__init__.py
"""
Chat turn orchestration: session state, turn helpers and the handler.
"""

from .handler import ChatHandler, LoggingNotifier
from .helpers import (create_temp_messages, extract_urls, handle_create_chat,
                      handle_create_messages, handle_retrieval, is_command,
                      validate_chat_settings)
from .state import (ChatSession, MessageListTransaction, Navigator, Notifier,
                    TurnPhase, UIState)

__all__ = [
    "ChatHandler",
    "ChatSession",
    "LoggingNotifier",
    "MessageListTransaction",
    "Navigator",
    "Notifier",
    "TurnPhase",
    "UIState",
    "create_temp_messages",
    "extract_urls",
    "handle_create_chat",
    "handle_create_messages",
    "handle_retrieval",
    "is_command",
    "validate_chat_settings",
]
