# src/chatcore/transports/http_transport.py
"""
Hosted chat transport that talks to the chat backend over HTTP.

The backend exposes one streaming route per provider
(``/api/chat/{provider}``) plus ``/api/chat/plugins`` for plugin turns. Both
answer with a plain UTF-8 text stream.
"""

import codecs
import json
import logging
from typing import Any, AsyncGenerator, Dict, List, Optional

import aiohttp

from ..config import ChatCoreSettings, get_settings
from ..context import TokenCounter, build_final_messages
from ..exceptions import TransportError
from ..plugins import PluginID
from .base import (HostedChatTransport, StreamCallbacks, TransportResult,
                   TurnRequest)

logger = logging.getLogger(__name__)


class HttpChatTransport(HostedChatTransport):
    """
    Streams chat turns from the backend's chat routes using aiohttp.

    The message list is built locally with :func:`build_final_messages`, so
    oversize input is rejected before any request is made.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        settings: Optional[ChatCoreSettings] = None,
        counter: Optional[TokenCounter] = None,
        session: Optional[aiohttp.ClientSession] = None,
        log_raw_payloads: bool = False,
    ):
        self._settings = settings or get_settings()
        self.base_url = (base_url or self._settings.backend_base_url).rstrip("/")
        self._counter = counter
        self._session = session
        self._owns_session = session is None
        self.log_raw_payloads_enabled = log_raw_payloads
        logger.debug(f"HttpChatTransport initialized for '{self.base_url}'.")

    def get_name(self) -> str:
        return "http"

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=None, sock_connect=self._settings.request_timeout)
            )
            self._owns_session = True
        return self._session

    async def _build_body(self, request: TurnRequest) -> Dict[str, Any]:
        messages = await build_final_messages(
            request.payload,
            request.profile,
            request.chat_images,
            request.selected_plugin,
            counter=self._counter,
            settings=self._settings,
        )
        return {
            "chatSettings": request.payload.chat_settings.model_dump(),
            "messages": [m.to_wire() for m in messages],
            "isRetrieval": bool(request.payload.message_file_items),
            "isContinuation": request.is_continuation,
            "isRagEnabled": request.is_rag_enabled,
        }

    async def _stream_text(self, url: str, body: Dict[str, Any]) -> AsyncGenerator[str, None]:
        if self.log_raw_payloads_enabled and logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"RAW CHAT REQUEST ({self.get_name()} -> {url}): {json.dumps(body, indent=2)}")

        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        try:
            async with self._get_session().post(url, json=body) as response:
                if response.status >= 400:
                    detail = await response.text()
                    raise TransportError(self.get_name(), f"{url} answered {response.status}: {detail[:500]}")
                async for raw in response.content.iter_any():
                    text = decoder.decode(raw)
                    if text:
                        yield text
                tail = decoder.decode(b"", final=True)
                if tail:
                    yield tail
        except aiohttp.ClientError as e:
            logger.error(f"HTTP error while streaming from '{url}': {e}")
            raise TransportError(self.get_name(), f"Network error: {e}")

    async def handle_hosted_chat(self, request: TurnRequest, callbacks: StreamCallbacks) -> TransportResult:
        body = await self._build_body(request)
        provider = request.model_data.provider
        url = f"{self.base_url}/api/chat/{provider}"
        logger.debug(f"Dispatching hosted chat: provider='{provider}', {len(body['messages'])} messages.")
        return await self.consume_stream(self._stream_text(url, body), request.cancel_token, callbacks)

    async def handle_hosted_plugins_chat(
        self,
        request: TurnRequest,
        callbacks: StreamCallbacks,
        plugin_id: PluginID,
        file_data: List[dict],
    ) -> TransportResult:
        body = await self._build_body(request)
        body["selectedPlugin"] = PluginID(plugin_id).value
        body["fileData"] = file_data
        url = f"{self.base_url}/api/chat/plugins"
        logger.debug(f"Dispatching plugin chat: plugin='{body['selectedPlugin']}', {len(file_data)} files.")
        callbacks.tool_in_use(body["selectedPlugin"])
        return await self.consume_stream(self._stream_text(url, body), request.cancel_token, callbacks)

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
            logger.info("HttpChatTransport session closed.")
        self._session = None
