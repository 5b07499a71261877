# src/chatcore/__init__.py
"""
chatcore - Prompt assembly, context budgeting and turn orchestration for chat front ends.

The library builds the message list sent to hosted LLM providers (system
prompt, truncated history, images and retrieved file content), and runs
chat turns end to end: validation, web ingestion, plugin routing,
streaming, cancellation and persistence.
"""

from importlib.metadata import PackageNotFoundError, version

from .cancellation import CancellationToken, TurnCancelled
from .chat import (ChatHandler, ChatSession, LoggingNotifier,
                   MessageListTransaction, TurnPhase, UIState)
from .config import ChatCoreSettings, get_settings, load_settings
from .context import (EstimateCounter, HistoryTruncator, TiktokenCounter,
                      build_base_prompt, build_final_messages,
                      build_retrieval_text, model_chunk_size)
from .exceptions import (BackendError, ChatCoreError, ChatValidationError,
                         ConfigError, ContextError, IngestionWarning,
                         OversizeInputError, StorageError, TransportError)
from .llm_list import LLM, LLM_LIST
from .logging_config import configure_logging
from .models import (DEFAULT_PROMPT, Assistant, BuiltChatMessage, Chat,
                     ChatFile, ChatMessage, ChatPayload, ChatSettings,
                     Feedback, FileItem, Message, MessageImage, Preset,
                     Profile, Role, Workspace)
from .plugins import PluginID
from .services import BackendClient
from .storage import ChatRepository, InMemoryChatRepository
from .transports import (HostedChatTransport, HttpChatTransport,
                         OpenAIChatTransport, StreamCallbacks,
                         TransportResult, TurnRequest)

try:
    __version__ = version("chatcore")
except PackageNotFoundError:
    # Package is not installed, use a fallback
    __version__ = "0.1.0-dev"

__all__ = [
    # Orchestration
    "ChatHandler",
    "ChatSession",
    "LoggingNotifier",
    "MessageListTransaction",
    "TurnPhase",
    "UIState",
    "CancellationToken",
    "TurnCancelled",

    # Context
    "EstimateCounter",
    "HistoryTruncator",
    "TiktokenCounter",
    "build_base_prompt",
    "build_final_messages",
    "build_retrieval_text",
    "model_chunk_size",

    # Models
    "DEFAULT_PROMPT",
    "Assistant",
    "BuiltChatMessage",
    "Chat",
    "ChatFile",
    "ChatMessage",
    "ChatPayload",
    "ChatSettings",
    "Feedback",
    "FileItem",
    "LLM",
    "LLM_LIST",
    "Message",
    "MessageImage",
    "PluginID",
    "Preset",
    "Profile",
    "Role",
    "Workspace",

    # Collaborators
    "BackendClient",
    "ChatRepository",
    "InMemoryChatRepository",
    "HostedChatTransport",
    "HttpChatTransport",
    "OpenAIChatTransport",
    "StreamCallbacks",
    "TransportResult",
    "TurnRequest",

    # Configuration and logging
    "ChatCoreSettings",
    "configure_logging",
    "get_settings",
    "load_settings",

    # Exceptions
    "BackendError",
    "ChatCoreError",
    "ChatValidationError",
    "ConfigError",
    "ContextError",
    "IngestionWarning",
    "OversizeInputError",
    "StorageError",
    "TransportError",
]
