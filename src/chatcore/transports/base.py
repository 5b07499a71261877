# src/chatcore/transports/base.py
"""
Abstract Base Class for hosted chat transports.

A transport turns a :class:`ChatPayload` into a streamed model response. It
forwards partial text through :class:`StreamCallbacks`, must respect the
turn's :class:`CancellationToken`, and returns the full text together with
the provider's finish reason.
"""

import abc
import asyncio
import logging
from dataclasses import dataclass, field
from typing import AsyncIterator, List, Optional, Tuple, Union

from ..cancellation import CancellationToken, TurnCancelled
from ..llm_list import LLM
from ..models import ChatPayload, MessageImage, Profile
from ..plugins import PluginID

logger = logging.getLogger(__name__)

FINISH_REASON_ABORTED = "aborted"

# A stream yields either text deltas or (text, finish_reason) once the
# provider reports why it stopped.
StreamItem = Union[str, Tuple[str, Optional[str]]]


@dataclass
class TransportResult:
    full_text: str
    finish_reason: str = ""


@dataclass
class TurnRequest:
    """
    Everything a transport needs to run one turn.

    Attributes:
        payload: The turn's settings, history and retrieved file items.
        profile: The user's profile.
        model_data: The resolved model description.
        cancel_token: The turn's cancellation token.
        is_regeneration: True when the previous assistant answer is being replaced.
        is_continuation: True when the previous assistant answer is being extended.
        is_rag_enabled: Whether the backend's own retrieval is switched on.
        selected_plugin: The effective plugin after routing.
        new_message_images: Images attached to the message being sent.
        chat_images: Image cache of the chat, used to resolve image paths.
    """

    payload: ChatPayload
    profile: Optional[Profile]
    model_data: LLM
    cancel_token: CancellationToken
    is_regeneration: bool = False
    is_continuation: bool = False
    is_rag_enabled: bool = False
    selected_plugin: PluginID = PluginID.NONE
    new_message_images: List[MessageImage] = field(default_factory=list)
    chat_images: List[MessageImage] = field(default_factory=list)


class StreamCallbacks:
    """
    Receives streaming progress. The orchestrator subclasses this to update
    session state; the defaults do nothing.
    """

    def first_token(self) -> None:
        pass

    def update_text(self, full_text: str) -> None:
        pass

    def tool_in_use(self, tool: str) -> None:
        pass


class HostedChatTransport(abc.ABC):
    """
    Interface for the hosted-chat and hosted-plugin-chat transports.
    """

    @abc.abstractmethod
    def get_name(self) -> str:
        pass

    @abc.abstractmethod
    async def handle_hosted_chat(self, request: TurnRequest, callbacks: StreamCallbacks) -> TransportResult:
        """
        Stream a regular model answer for the turn.

        Raises:
            TransportError: On network or provider failures.
            OversizeInputError: If the newest user message does not fit the model.
        """
        pass

    @abc.abstractmethod
    async def handle_hosted_plugins_chat(
        self,
        request: TurnRequest,
        callbacks: StreamCallbacks,
        plugin_id: PluginID,
        file_data: List[dict],
    ) -> TransportResult:
        """
        Stream an answer produced by a plugin.

        Args:
            plugin_id: The concrete plugin to run.
            file_data: ``[{"fileName": ..., "fileContent": ...}]`` extracted from attachments.
        """
        pass

    async def close(self) -> None:
        """Release network resources. Optional for implementations."""
        pass

    async def consume_stream(
        self,
        stream: AsyncIterator[StreamItem],
        cancel_token: CancellationToken,
        callbacks: StreamCallbacks,
        initial_text: str = "",
    ) -> TransportResult:
        """
        Accumulate a text stream into a :class:`TransportResult`.

        Each read is raced against the cancellation token, so a cancel ends
        the turn even while the provider is silent. A cancelled stream returns
        the text received so far with the ``aborted`` finish reason.
        """
        full_text = initial_text
        finish_reason = ""
        got_first = False
        iterator = stream.__aiter__()
        cancel_wait = asyncio.ensure_future(cancel_token.wait())
        try:
            while True:
                cancel_token.raise_if_cancelled()
                next_item = asyncio.ensure_future(iterator.__anext__())
                done, _ = await asyncio.wait({next_item, cancel_wait}, return_when=asyncio.FIRST_COMPLETED)
                if next_item not in done:
                    next_item.cancel()
                    await asyncio.wait({next_item})
                    raise TurnCancelled(cancel_token.reason or "cancelled")
                try:
                    item = next_item.result()
                except StopAsyncIteration:
                    break

                if isinstance(item, tuple):
                    delta, reason = item
                    finish_reason = reason or finish_reason
                else:
                    delta = item
                if not delta:
                    continue
                if not got_first:
                    got_first = True
                    callbacks.first_token()
                full_text += delta
                callbacks.update_text(full_text)
        except TurnCancelled:
            logger.info(f"{self.get_name()}: stream cancelled after {len(full_text)} characters.")
            return TransportResult(full_text=full_text, finish_reason=FINISH_REASON_ABORTED)
        finally:
            cancel_wait.cancel()
            aclose = getattr(iterator, "aclose", None)
            if aclose is not None:
                await aclose()

        return TransportResult(full_text=full_text, finish_reason=finish_reason or "stop")
