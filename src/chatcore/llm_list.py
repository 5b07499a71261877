# src/chatcore/llm_list.py
"""
Catalogue of hosted models known to the chat front end.

The orchestrator resolves the selected model id against this list plus the
custom, local and OpenRouter models available to the session.
"""

from typing import Iterable, List, Optional

from pydantic import BaseModel


class LLM(BaseModel):
    """Description of a selectable model."""
    model_id: str
    model_name: str
    provider: str
    hosted_id: str = ""
    platform_link: str = ""
    image_input: bool = False


GPT4 = LLM(
    model_id="gpt-4-turbo-preview",
    model_name="GPT-4 Turbo",
    provider="openai",
    hosted_id="gpt-4-turbo-preview",
    platform_link="https://platform.openai.com/docs/overview",
    image_input=True,
)

GPT3_5 = LLM(
    model_id="gpt-3.5-turbo",
    model_name="GPT-3.5 Turbo",
    provider="openai",
    hosted_id="gpt-3.5-turbo",
    platform_link="https://platform.openai.com/docs/overview",
)

MISTRAL_MEDIUM = LLM(
    model_id="mistral-medium",
    model_name="Mistral Medium",
    provider="mistral",
    hosted_id="mistral-medium",
    platform_link="https://docs.mistral.ai/",
)

MISTRAL_LARGE = LLM(
    model_id="mistral-large",
    model_name="Mistral Large",
    provider="mistral",
    hosted_id="mistral-large",
    platform_link="https://docs.mistral.ai/",
)

LLM_LIST: List[LLM] = [GPT4, GPT3_5, MISTRAL_MEDIUM, MISTRAL_LARGE]


def find_model(model_id: Optional[str], *catalogues: Iterable[LLM]) -> Optional[LLM]:
    """Return the first model whose id matches, searching catalogues in order."""
    if not model_id:
        return None
    for catalogue in catalogues:
        for llm in catalogue:
            if llm.model_id == model_id:
                return llm
    return None
