# src/chatcore/storage/__init__.py
"""
Persistence collaborator interface and an in-memory implementation.
"""

from .base import ChatRepository
from .memory import InMemoryChatRepository

__all__ = ["ChatRepository", "InMemoryChatRepository"]
