# src/chatcore/plugins.py
"""
Plugin identifiers and routing metadata.

A plugin is a named alternate processing path offered next to the default
model call. chatcore never executes a plugin itself; it only decides whether
a turn is routed to the hosted plugin transport and with which id.
"""

import re
from enum import Enum
from typing import Iterable


class PluginID(str, Enum):
    """Known plugin identifiers as sent over the wire."""
    NONE = "none"
    AUTO_PLUGIN_SELECTOR = "auto-plugin-selector"
    WEB_SCRAPER = "web-scraper"
    NUCLEI = "nuclei"
    NAABU = "naabu"
    ALTERX = "alterx"
    DNSX = "dnsx"
    HTTPX = "httpx"
    KATANA = "katana"
    SUBFINDER = "subfinder"
    GAU = "gau"
    CVEMAP = "cvemap"

    @classmethod
    def _missing_(cls, value: object):  # type: ignore[misc]
        """Case-insensitive lookup; unknown ids are left to the caller."""
        if isinstance(value, str):
            lower_value = value.lower()
            for member in cls:
                if member.value == lower_value:
                    return member
        return None


# Plugins that accept the text of uploaded files as their input list.
FILE_COMMAND_PLUGINS = (
    PluginID.NUCLEI,
    PluginID.NAABU,
    PluginID.ALTERX,
    PluginID.DNSX,
    PluginID.HTTPX,
    PluginID.KATANA,
)

# Plugins that never go through the hosted plugin transport.
NON_ROUTED_PLUGINS = frozenset({
    PluginID.NONE,
    PluginID.WEB_SCRAPER,
    PluginID.AUTO_PLUGIN_SELECTOR,
})

_WEB_SCRAPER_HELP = (
    "\n\nWeb Scraper Plugin:\n"
    "Web pages linked in the user's message have been fetched and attached as sources. "
    "Base the answer on the fetched page content, cite the page a statement comes from, "
    "and say so when a page could not be read."
)


def plugin_help(plugin_id: PluginID) -> str:
    """Return the system-prompt help text for a plugin, or an empty string."""
    if plugin_id == PluginID.WEB_SCRAPER:
        return _WEB_SCRAPER_HELP
    return ""


def is_routed_plugin(plugin_id: PluginID) -> bool:
    """True when the plugin is a concrete tool handled by the plugin transport."""
    return bool(plugin_id) and plugin_id not in NON_ROUTED_PLUGINS


def is_command(allowed_commands: Iterable[str], message: str) -> bool:
    """
    Check whether ``message`` is a slash command for one of ``allowed_commands``.

    ``/nuclei -target x`` matches ``nuclei``; leading text before the slash does
    not.
    """
    if not message.startswith("/"):
        return False

    trimmed = message.strip().lower()
    for command_name in allowed_commands:
        name = command_name.value if isinstance(command_name, PluginID) else str(command_name)
        pattern = re.compile(rf"^/{re.escape(name)}(?:\s+(-[a-z]+|\S+))*$")
        if pattern.match(trimmed):
            return True
    return False
