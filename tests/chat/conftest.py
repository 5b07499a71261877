# tests/chat/conftest.py
"""
Shared fixtures for turn orchestration tests.

Provides a scriptable transport, a mocked backend client, a ready session
and a handler wired to an in-memory repository.
"""

import asyncio
from typing import List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from chatcore.chat import ChatHandler, ChatSession, UIState
from chatcore.context import build_final_messages
from chatcore.models import (Assistant, ChatSettings, Preset, Profile,
                             Workspace)
from chatcore.services import BackendClient
from chatcore.storage import InMemoryChatRepository
from chatcore.transports import HostedChatTransport


class FakeTransport(HostedChatTransport):
    """
    Scriptable transport.

    Attributes:
        chunks: Text deltas streamed for every turn.
        error: Raised instead of streaming when set.
        gate: When set, the stream hangs after the chunks until the gate opens.
        build: Run the real message builder first, so oversize input fails.
        requests: Every TurnRequest received.
        plugin_calls: ``(plugin_id, file_data)`` of every plugin turn.
    """

    def __init__(self, chunks=("Hi", " there"), error: Optional[Exception] = None,
                 gate: Optional[asyncio.Event] = None, build: bool = False,
                 counter=None, settings=None):
        self.chunks = list(chunks)
        self.error = error
        self.gate = gate
        self.build = build
        self.counter = counter
        self.settings = settings
        self.requests: List = []
        self.plugin_calls: List = []

    def get_name(self):
        return "fake"

    async def _stream(self):
        for chunk in self.chunks:
            yield chunk
        if self.gate is not None:
            await self.gate.wait()

    async def _run(self, request, callbacks):
        self.requests.append(request)
        if self.build:
            await build_final_messages(
                request.payload, request.profile, request.chat_images, request.selected_plugin,
                counter=self.counter, settings=self.settings,
            )
        if self.error is not None:
            raise self.error
        return await self.consume_stream(self._stream(), request.cancel_token, callbacks)

    async def handle_hosted_chat(self, request, callbacks):
        return await self._run(request, callbacks)

    async def handle_hosted_plugins_chat(self, request, callbacks, plugin_id, file_data):
        self.plugin_calls.append((plugin_id, file_data))
        callbacks.tool_in_use(plugin_id.value)
        return await self._run(request, callbacks)


@pytest.fixture
def transport(estimate_counter, settings):
    return FakeTransport(counter=estimate_counter, settings=settings)


@pytest.fixture
def backend():
    return AsyncMock(spec=BackendClient)


@pytest.fixture
def repository():
    return InMemoryChatRepository()


@pytest.fixture
def notifier():
    return MagicMock()


@pytest.fixture
def navigator():
    return MagicMock()


@pytest.fixture
def workspace():
    return Workspace(id="ws-1", user_id="user-1", name="Home", instructions="Be nice.")


@pytest.fixture
def session(workspace):
    return ChatSession(
        chat_settings=ChatSettings(model="gpt-3.5-turbo", context_length=4096),
        profile=Profile(user_id="user-1", username="ada"),
        selected_workspace=workspace,
    )


@pytest.fixture
def ui():
    return UIState(is_prompt_picker_open=True, is_at_picker_open=True)


@pytest.fixture
def handler(session, repository, transport, backend, ui, notifier, navigator, settings):
    return ChatHandler(
        session,
        repository,
        transport,
        backend,
        ui=ui,
        notifier=notifier,
        navigator=navigator,
        settings=settings,
    )


@pytest.fixture
def assistant():
    return Assistant(id="asst-1", name="Ada", model="gpt-4-turbo-preview", prompt="Be terse.", temperature=0.1)


@pytest.fixture
def preset():
    return Preset(id="preset-1", name="Precise", model="mistral-large", temperature=0.0)
