# src/chatcore/transports/openai_transport.py
"""
Hosted chat transport that calls the OpenAI API directly.

Useful when no chat backend is deployed. Plugin turns need the backend's
plugin runners and are therefore not supported here.
"""

import json
import logging
from typing import Any, AsyncGenerator, Dict, List, Optional, Tuple

from openai import AsyncOpenAI, OpenAIError

from ..config import ChatCoreSettings, get_settings
from ..context import (TokenCounter, build_final_messages,
                       ensure_assistant_messages_not_empty,
                       filter_empty_assistant_messages)
from ..exceptions import ConfigError, TransportError
from ..plugins import PluginID
from .base import (HostedChatTransport, StreamCallbacks, TransportResult,
                   TurnRequest)

logger = logging.getLogger(__name__)


class OpenAIChatTransport(HostedChatTransport):
    """Streams chat completions with the official ``openai`` SDK."""

    _client: Optional[AsyncOpenAI] = None

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        settings: Optional[ChatCoreSettings] = None,
        counter: Optional[TokenCounter] = None,
        client: Optional[AsyncOpenAI] = None,
        log_raw_payloads: bool = False,
    ):
        self._settings = settings or get_settings()
        self._counter = counter
        self.log_raw_payloads_enabled = log_raw_payloads

        if client is not None:
            self._client = client
            return

        api_key = api_key or self._settings.openai_api_key
        if not api_key:
            raise ConfigError("OpenAI API key not found. Set OPENAI_API_KEY or pass api_key.")
        try:
            self._client = AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=self._settings.request_timeout)
            logger.debug("AsyncOpenAI client initialized for chat transport.")
        except Exception as e:
            logger.error(f"Failed to initialize AsyncOpenAI client: {e}", exc_info=True)
            raise ConfigError(f"OpenAI client initialization failed: {e}")

    def get_name(self) -> str:
        return "openai"

    async def _stream_deltas(self, request: TurnRequest, messages: List[Dict[str, Any]]) -> AsyncGenerator[Tuple[str, Optional[str]], None]:
        chat_settings = request.payload.chat_settings
        model_name = request.model_data.hosted_id or chat_settings.model

        if self.log_raw_payloads_enabled and logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"RAW LLM REQUEST ({self.get_name()} @ {model_name}): {json.dumps(messages, indent=2)}")

        try:
            stream = await self._client.chat.completions.create(  # type: ignore[union-attr]
                model=model_name,
                messages=messages,  # type: ignore[arg-type]
                temperature=chat_settings.temperature,
                stream=True,
            )
            try:
                async for chunk in stream:
                    if not chunk.choices:
                        continue
                    choice = chunk.choices[0]
                    yield (choice.delta.content or "", choice.finish_reason)
            finally:
                await stream.close()
        except OpenAIError as e:
            logger.error(f"OpenAI API error while streaming '{model_name}': {e}")
            raise TransportError(self.get_name(), f"OpenAI API Error: {e}")

    async def handle_hosted_chat(self, request: TurnRequest, callbacks: StreamCallbacks) -> TransportResult:
        built = await build_final_messages(
            request.payload,
            request.profile,
            request.chat_images,
            request.selected_plugin,
            counter=self._counter,
            settings=self._settings,
        )
        # The unsent placeholder is dropped; the API rejects empty assistant turns.
        filter_empty_assistant_messages(built)
        ensure_assistant_messages_not_empty(built)
        messages = [m.to_wire() for m in built]
        logger.debug(f"Sending {len(messages)} messages to OpenAI model '{request.payload.chat_settings.model}'.")
        return await self.consume_stream(self._stream_deltas(request, messages), request.cancel_token, callbacks)

    async def handle_hosted_plugins_chat(
        self,
        request: TurnRequest,
        callbacks: StreamCallbacks,
        plugin_id: PluginID,
        file_data: List[dict],
    ) -> TransportResult:
        raise TransportError(self.get_name(), f"Plugin '{PluginID(plugin_id).value}' requires the chat backend.")

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            logger.info("AsyncOpenAI client closed.")
        self._client = None
