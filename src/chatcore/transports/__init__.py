# src/chatcore/transports/__init__.py
"""
Hosted chat transports for chatcore.
"""

from .base import (FINISH_REASON_ABORTED, HostedChatTransport,
                   StreamCallbacks, TransportResult, TurnRequest)
from .http_transport import HttpChatTransport
from .openai_transport import OpenAIChatTransport

__all__ = [
    "FINISH_REASON_ABORTED",
    "HostedChatTransport",
    "HttpChatTransport",
    "OpenAIChatTransport",
    "StreamCallbacks",
    "TransportResult",
    "TurnRequest",
]
