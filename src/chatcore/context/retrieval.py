# src/chatcore/context/retrieval.py
"""
Rendering of retrieved file fragments for prompt injection.

The ``<BEGIN SOURCE>`` / ``<END SOURCE>`` delimiters and the closing
"not available" instruction are relied on by the instruction template, so
they are fixed literals.
"""

from typing import Iterable

from ..models import FileItem

BEGIN_SOURCE = "<BEGIN SOURCE>"
END_SOURCE = "<END SOURCE>"

FILE_QUERY_TEMPLATE = (
    "Assist with the user's query: '{query}' using uploaded files.\n"
    "Each <BEGIN SOURCE>...<END SOURCE> section represents part of the overall file.\n"
    "Assess each section for information pertinent to the query.\n"
    "\n"
    "{retrieval_text}\n"
    "\n"
    "Draw insights directly from file content to provide specific guidance.\n"
    "Ensure answers are actionable, focusing on practical relevance.\n"
    "Highlight or address any ambiguities found in the content.\n"
    "State clearly if information related to the query is not available."
)


def build_retrieval_text(file_items: Iterable[FileItem]) -> str:
    """Wrap each fragment in source delimiters, joined by a blank line, order preserved."""
    return "\n\n".join(f"{BEGIN_SOURCE}\n{item.content}\n{END_SOURCE}" for item in file_items)


def render_file_query(query: str, retrieval_text: str) -> str:
    """Wrap the user's query and the retrieval block in the file-answering instructions."""
    # Plain replace so braces inside file content are left alone.
    return FILE_QUERY_TEMPLATE.replace("{retrieval_text}", retrieval_text).replace("{query}", query, 1)


def inline_message_retrieval(query: str, retrieval_text: str) -> str:
    """History form of a message whose retrieved file content is inlined once."""
    return f'User Query: "{query}"\n\nFile Content:\n{retrieval_text}'
