# src/chatcore/exceptions.py
"""
Custom exceptions for the chatcore library.

This module defines a hierarchy of custom exception classes so that the
turn orchestrator can tell user-correctable failures (validation, oversize
input) apart from transport failures, and non-fatal ingestion problems apart
from both.
"""

from typing import Optional


class ChatCoreError(Exception):
    """Base class for all chatcore specific errors."""
    def __init__(self, message: str = "An unspecified error occurred in chatcore."):
        super().__init__(message)


class ConfigError(ChatCoreError):
    """Raised for errors related to configuration loading or validation."""
    def __init__(self, message: str = "Configuration error."):
        super().__init__(message)


class ChatValidationError(ChatCoreError):
    """
    Raised when chat settings, the selected model or the message content are
    not usable for a turn. Raised before any network call or state mutation.
    """
    def __init__(self, message: str = "Chat validation failed."):
        super().__init__(message)


class ContextError(ChatCoreError):
    """Base class for errors related to prompt assembly and context budgeting."""
    def __init__(self, message: str = "Context management error."):
        super().__init__(message)


class OversizeInputError(ContextError):
    """Raised when the newest user message alone exceeds the model's chunk size."""
    user_message = "The message you submitted was too long, please submit something shorter."

    def __init__(self, limit: int = 0, actual: int = 0, message: Optional[str] = None):
        self.limit = limit
        self.actual = actual
        super().__init__(message or self.user_message)


class TransportError(ChatCoreError):
    """Raised for failures while dispatching or streaming a chat turn."""
    def __init__(self, transport_name: str = "Unknown", message: str = "Transport error."):
        self.transport_name = transport_name
        super().__init__(f"Error with transport '{transport_name}': {message}")


class BackendError(ChatCoreError):
    """Raised when an auxiliary backend endpoint answers with an error."""
    def __init__(self, endpoint: str = "Unknown", status: Optional[int] = None, message: str = "Backend request failed."):
        self.endpoint = endpoint
        self.status = status
        status_part = f" (status {status})" if status is not None else ""
        super().__init__(f"Request to '{endpoint}' failed{status_part}: {message}")


class StorageError(ChatCoreError):
    """Raised for errors related to persistence operations."""
    def __init__(self, message: str = "Storage error."):
        super().__init__(message)


class IngestionWarning(ChatCoreError):
    """
    Raised when a URL fails to embed or a file extraction call fails.

    Never fatal for a turn: the orchestrator converts it into a warning
    notification and carries on.
    """
    def __init__(self, message: str = "Failed to process attachments."):
        super().__init__(message)
