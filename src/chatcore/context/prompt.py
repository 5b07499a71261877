# src/chatcore/context/prompt.py
"""System prompt assembly."""

from typing import Optional

from ..models import DEFAULT_PROMPT, Assistant
from ..plugins import PluginID, plugin_help


def build_base_prompt(
    prompt: str,
    profile_context: str,
    workspace_instructions: str,
    assistant: Optional[Assistant] = None,
    selected_plugin: Optional[PluginID] = None,
) -> str:
    """
    Build the system prompt from persona, profile, workspace and plugin fragments.

    Sections are appended in a fixed order and only when non-empty. The user
    instructions section is skipped when ``prompt`` is exactly the stock
    default prompt.
    """
    full_prompt = ""

    if assistant:
        full_prompt += f"<INJECT ROLE>\nYou are not an AI. You are {assistant.name}.\n</INJECT ROLE>\n\n"

    if profile_context:
        full_prompt += f"User Info:\n{profile_context}\n\n"

    if workspace_instructions:
        full_prompt += f"System Instructions:\n{workspace_instructions}\n\n"

    if prompt != DEFAULT_PROMPT:
        full_prompt += f"User Instructions:\n{prompt}"

    if selected_plugin is not None and PluginID(selected_plugin) == PluginID.WEB_SCRAPER:
        full_prompt += plugin_help(PluginID.WEB_SCRAPER)

    return full_prompt
