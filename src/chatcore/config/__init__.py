# src/chatcore/config/__init__.py
"""
Configuration for chatcore.

Settings are validated with pydantic-settings and layered over the packaged
``default_config.toml``.
"""

from .settings import (DEFAULT_CONFIG_PATH, ChatCoreSettings, get_settings,
                       load_settings)

__all__ = [
    "ChatCoreSettings",
    "DEFAULT_CONFIG_PATH",
    "get_settings",
    "load_settings",
]
