# src/chatcore/chat/state.py
"""
Session state owned by the turn orchestrator.

Turn-affecting fields (settings, messages, files, the cancellation token and
the generating flag) live on :class:`ChatSession`. Picker and display flags
that only matter to a UI live on :class:`UIState` and never influence a turn.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Protocol, Sequence

from ..cancellation import CancellationToken
from ..llm_list import LLM
from ..models import (Assistant, Chat, ChatFile, ChatMessage, ChatSettings,
                      MessageImage, Preset, Profile, Workspace)
from ..plugins import PluginID

logger = logging.getLogger(__name__)


class TurnPhase(str, Enum):
    """Lifecycle of one chat turn."""
    IDLE = "idle"
    VALIDATING = "validating"
    WEB_PREPROCESSING = "web_preprocessing"
    DISPATCHED = "dispatched"
    STREAMING = "streaming"
    ABORTING = "aborting"
    FINALIZING = "finalizing"
    ERROR = "error"


class Notifier(Protocol):
    """Surfaces user-visible notifications."""

    def warning(self, message: str) -> None:
        ...

    def error(self, message: str) -> None:
        ...


class Navigator(Protocol):
    """Moves the host application to another route."""

    def push(self, path: str) -> None:
        ...


@dataclass
class UIState:
    is_prompt_picker_open: bool = False
    is_at_picker_open: bool = False
    is_tool_picker_open: bool = False
    is_ready_to_chat: bool = True
    show_files_display: bool = False

    def close_pickers(self) -> None:
        self.is_prompt_picker_open = False
        self.is_at_picker_open = False

    def reset(self) -> None:
        self.close_pickers()
        self.show_files_display = False


@dataclass
class ChatSession:
    """
    Mutable state of one chat session.

    Only one turn may be generating at a time. ``is_generating`` is backed by
    an :class:`asyncio.Event` that is set whenever the session is idle, so a
    stop request can await the end of the turn instead of polling.
    """

    chat_settings: Optional[ChatSettings] = None
    profile: Optional[Profile] = None
    selected_workspace: Optional[Workspace] = None
    selected_chat: Optional[Chat] = None
    selected_assistant: Optional[Assistant] = None
    selected_preset: Optional[Preset] = None
    chats: List[Chat] = field(default_factory=list)

    chat_messages: List[ChatMessage] = field(default_factory=list)
    user_input: str = ""

    files: List[ChatFile] = field(default_factory=list)
    chat_files: List[ChatFile] = field(default_factory=list)
    new_message_files: List[ChatFile] = field(default_factory=list)
    chat_images: List[MessageImage] = field(default_factory=list)
    new_message_images: List[MessageImage] = field(default_factory=list)

    models: List[LLM] = field(default_factory=list)
    available_local_models: List[LLM] = field(default_factory=list)
    available_openrouter_models: List[LLM] = field(default_factory=list)

    use_retrieval: bool = False
    source_count: int = 4
    is_rag_enabled: bool = False
    web_ingestion_enabled: bool = False

    selected_plugin: PluginID = PluginID.NONE
    selected_tools: List[str] = field(default_factory=list)
    tool_in_use: str = "none"
    first_token_received: bool = False

    cancel_token: Optional[CancellationToken] = None
    phase: TurnPhase = TurnPhase.IDLE
    last_error: Optional[str] = None

    _generating: bool = field(default=False, init=False, repr=False)
    _idle: asyncio.Event = field(default_factory=asyncio.Event, init=False, repr=False)

    def __post_init__(self) -> None:
        self._idle.set()

    @property
    def is_generating(self) -> bool:
        return self._generating

    @is_generating.setter
    def is_generating(self, value: bool) -> None:
        self._generating = value
        if value:
            self._idle.clear()
        else:
            self._idle.set()

    async def wait_until_idle(self) -> None:
        """Return once no turn is generating."""
        await self._idle.wait()

    def reset_turn_state(self) -> None:
        """Clear everything tied to the current chat, keeping selections and catalogues."""
        self.user_input = ""
        self.chat_messages = []
        self.selected_chat = None
        self.is_generating = False
        self.first_token_received = False
        self.chat_files = []
        self.chat_images = []
        self.new_message_files = []
        self.new_message_images = []
        self.use_retrieval = False
        self.selected_tools = []
        self.tool_in_use = "none"
        self.phase = TurnPhase.IDLE
        self.last_error = None


class MessageListTransaction:
    """
    Optimistic update of ``session.chat_messages``.

    Captures the snapshot on construction. Speculative lists are installed
    with :meth:`apply`; :meth:`commit` keeps the final list and leaving the
    ``with`` block without a commit restores the exact snapshot.

    Usage:
        with MessageListTransaction(session, chat_messages) as txn:
            txn.apply(sent_messages)
            ...
            txn.commit(persisted_messages)
    """

    def __init__(self, session: ChatSession, snapshot: Sequence[ChatMessage]):
        self._session = session
        self.snapshot: List[ChatMessage] = list(snapshot)
        self.committed = False

    def apply(self, messages: Sequence[ChatMessage]) -> None:
        self._session.chat_messages = list(messages)

    def commit(self, messages: Optional[Sequence[ChatMessage]] = None) -> None:
        if messages is not None:
            self._session.chat_messages = list(messages)
        self.committed = True

    def rollback(self) -> None:
        self._session.chat_messages = list(self.snapshot)
        logger.debug(f"Message list restored to {len(self.snapshot)} entries.")

    def __enter__(self) -> "MessageListTransaction":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if not self.committed:
            self.rollback()
        return False
