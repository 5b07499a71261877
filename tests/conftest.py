# tests/conftest.py
"""
Shared fixtures for chatcore tests.

Provides a deterministic token counter, settings that never touch the
network, and small factories for messages and sessions.
"""

import sys
from pathlib import Path
from typing import List, Optional

import pytest

# Ensure source is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from chatcore.config import ChatCoreSettings  # noqa: E402
from chatcore.context import EstimateCounter  # noqa: E402
from chatcore.models import (ChatMessage, ChatSettings, FileItem,  # noqa: E402
                             Message, Role)


# =============================================================================
# Counters and settings
# =============================================================================


@pytest.fixture
def estimate_counter():
    """Create a deterministic EstimateCounter (4 chars/token)."""
    return EstimateCounter(chars_per_token=4)


@pytest.fixture
def settings():
    """Settings with the packaged defaults and no stop grace period."""
    return ChatCoreSettings(
        message_size_limit=12000,
        message_size_keep=2000,
        plugin_chunk_size=8000,
        stop_grace_period=0.0,
        openai_api_key="sk-test",
        backend_base_url="http://backend.test",
    )


@pytest.fixture
def chat_settings():
    return ChatSettings(model="gpt-3.5-turbo", context_length=4096)


# =============================================================================
# Factories
# =============================================================================


def make_message(
    role: Role,
    content: str,
    sequence_number: int = 0,
    chat_id: str = "chat-1",
    message_id: Optional[str] = None,
    image_paths: Optional[List[str]] = None,
) -> Message:
    kwargs = {}
    if message_id is not None:
        kwargs["id"] = message_id
    return Message(
        role=role,
        content=content,
        sequence_number=sequence_number,
        chat_id=chat_id,
        user_id="user-1",
        model="gpt-3.5-turbo",
        image_paths=image_paths or [],
        **kwargs,
    )


def make_chat_message(
    role: Role,
    content: str,
    sequence_number: int = 0,
    file_items: Optional[List[FileItem]] = None,
    **kwargs,
) -> ChatMessage:
    return ChatMessage(
        message=make_message(role, content, sequence_number, **kwargs),
        file_items=file_items or [],
    )


def make_history(count: int, chat_id: str = "chat-1", content_length: int = 8) -> List[ChatMessage]:
    """Alternating user/assistant history with sequence numbers 0..count-1."""
    history = []
    for i in range(count):
        role = Role.USER if i % 2 == 0 else Role.ASSISTANT
        history.append(make_chat_message(
            role,
            f"m{i}".ljust(content_length, "x"),
            sequence_number=i,
            chat_id=chat_id,
            message_id=f"msg-{i}",
        ))
    return history


@pytest.fixture
def message_factory():
    return make_message


@pytest.fixture
def chat_message_factory():
    return make_chat_message


@pytest.fixture
def history_factory():
    return make_history


# =============================================================================
# aiohttp stand-ins
# =============================================================================


class _FakeContent:
    def __init__(self, chunks):
        self._chunks = list(chunks)

    async def iter_any(self):
        for chunk in self._chunks:
            yield chunk


class FakeResponse:
    """Minimal async-context-manager response used in place of aiohttp's."""

    def __init__(self, status=200, chunks=(), json_data=None, text="", reason="OK"):
        self.status = status
        self.reason = reason
        self.content = _FakeContent(chunks)
        self._json = json_data if json_data is not None else {}
        self._text = text

    async def json(self, content_type=None):
        return self._json

    async def text(self):
        return self._text

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """Records POSTs and answers them with queued responses."""

    def __init__(self, *responses, error=None):
        self.responses = list(responses)
        self.error = error
        self.calls = []
        self.closed = False

    def post(self, url, json=None):
        self.calls.append((url, json))
        if self.error is not None:
            raise self.error
        return self.responses.pop(0)

    async def close(self):
        self.closed = True


@pytest.fixture
def fake_response():
    return FakeResponse


@pytest.fixture
def fake_session():
    return FakeSession
