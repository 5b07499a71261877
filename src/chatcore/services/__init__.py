# src/chatcore/services/__init__.py
"""
Clients for auxiliary backend services.
"""

from .backend import (EMBED_SUCCESS_MESSAGE, NO_PLUGIN_OVERRIDE,
                      BackendClient)

__all__ = [
    "BackendClient",
    "EMBED_SUCCESS_MESSAGE",
    "NO_PLUGIN_OVERRIDE",
]
