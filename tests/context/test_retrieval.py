# tests/context/test_retrieval.py
"""Tests for retrieval text formatting."""

from chatcore.context.retrieval import (BEGIN_SOURCE, END_SOURCE,
                                        build_retrieval_text,
                                        inline_message_retrieval,
                                        render_file_query)
from chatcore.models import FileItem


class TestBuildRetrievalText:

    def test_empty_input_is_empty_string(self):
        assert build_retrieval_text([]) == ""

    def test_single_item_has_one_delimiter_pair(self):
        text = build_retrieval_text([FileItem(content="alpha")])
        assert text.count(BEGIN_SOURCE) == 1
        assert text.count(END_SOURCE) == 1
        assert text == "<BEGIN SOURCE>\nalpha\n<END SOURCE>"

    def test_delimiters_match_instruction_template(self):
        text = build_retrieval_text([FileItem(content="alpha")])
        assert text.count("<BEGIN SOURCE>") == 1
        assert text.count("<END SOURCE>") == 1
        assert "</END SOURCE>" not in text
        assert "<BEGIN SOURCE>...<END SOURCE>" in render_file_query("q", text)

    def test_items_joined_by_blank_line_in_order(self):
        text = build_retrieval_text([FileItem(content="one"), FileItem(content="two")])
        assert text == "<BEGIN SOURCE>\none\n<END SOURCE>\n\n<BEGIN SOURCE>\ntwo\n<END SOURCE>"


class TestRenderFileQuery:

    def test_contains_query_sources_and_unavailable_instruction(self):
        rendered = render_file_query("What is X?", build_retrieval_text([FileItem(content="X is 1")]))
        assert "'What is X?'" in rendered
        assert "<BEGIN SOURCE>\nX is 1\n<END SOURCE>" in rendered
        assert rendered.endswith("State clearly if information related to the query is not available.")

    def test_braces_in_content_are_kept(self):
        rendered = render_file_query("q", "{not_a_field} {query}")
        assert "{not_a_field}" in rendered


def test_inline_message_retrieval():
    assert inline_message_retrieval("hi", "SRC") == 'User Query: "hi"\n\nFile Content:\nSRC'
