# tests/context/test_tokens.py
"""Tests for token counting and per-model chunk sizes."""

from unittest.mock import MagicMock, patch

import pytest

from chatcore.context.tokens import (DEFAULT_PLUGIN_CHUNK_SIZE, EstimateCounter,
                                     TiktokenCounter, model_chunk_size)
from chatcore.models import ChatSettings
from chatcore.plugins import PluginID


class TestEstimateCounter:

    def test_empty_text_is_zero(self, estimate_counter):
        assert estimate_counter.count("") == 0

    def test_rounds_up(self, estimate_counter):
        assert estimate_counter.count("abcde") == 2
        assert estimate_counter.count("abcd") == 1

    def test_rejects_non_positive_ratio(self):
        with pytest.raises(ValueError):
            EstimateCounter(chars_per_token=0)


class TestTiktokenCounter:

    def test_unknown_model_falls_back_to_default_encoding(self):
        fake_encoding = MagicMock()
        fake_encoding.encode.return_value = [1, 2, 3]
        with patch("chatcore.context.tokens.tiktoken") as tiktoken_mock:
            tiktoken_mock.encoding_for_model.side_effect = KeyError("mistral-large")
            tiktoken_mock.get_encoding.return_value = fake_encoding

            counter = TiktokenCounter(model="mistral-large")

            tiktoken_mock.get_encoding.assert_called_once_with("cl100k_base")
            assert counter.count("hello world") == 3
            fake_encoding.encode.assert_called_once_with("hello world", disallowed_special=())

    def test_known_model_uses_model_encoding(self):
        fake_encoding = MagicMock()
        with patch("chatcore.context.tokens.tiktoken") as tiktoken_mock:
            tiktoken_mock.encoding_for_model.return_value = fake_encoding
            TiktokenCounter(model="gpt-4")
            tiktoken_mock.encoding_for_model.assert_called_once_with("gpt-4")
            tiktoken_mock.get_encoding.assert_not_called()

    def test_empty_text_skips_encoder(self):
        fake_encoding = MagicMock()
        with patch("chatcore.context.tokens.tiktoken") as tiktoken_mock:
            tiktoken_mock.get_encoding.return_value = fake_encoding
            assert TiktokenCounter().count("") == 0
            fake_encoding.encode.assert_not_called()


class TestModelChunkSize:

    def test_defaults_to_context_length(self):
        settings = ChatSettings(model="gpt-3.5-turbo", context_length=4096)
        assert model_chunk_size(settings) == 4096

    @pytest.mark.parametrize("model,expected", [
        ("gpt-4-turbo-preview", 12000),
        ("mistral-large", 8000),
        ("mistral-medium", 8000),
    ])
    def test_fixed_model_ceilings(self, model, expected):
        settings = ChatSettings(model=model, context_length=128000)
        assert model_chunk_size(settings) == expected

    def test_active_plugin_forces_plugin_ceiling(self):
        settings = ChatSettings(model="gpt-4-turbo-preview", context_length=128000)
        assert model_chunk_size(settings, PluginID.NUCLEI) == DEFAULT_PLUGIN_CHUNK_SIZE

    def test_no_plugin_keeps_model_ceiling(self):
        settings = ChatSettings(model="gpt-4-turbo-preview", context_length=128000)
        assert model_chunk_size(settings, PluginID.NONE) == 12000
        assert model_chunk_size(settings, None) == 12000

    def test_custom_override_table(self):
        settings = ChatSettings(model="gpt-3.5-turbo", context_length=16000)
        assert model_chunk_size(settings, model_chunk_sizes={"gpt-3.5-turbo": 3000}) == 3000
        # A custom table replaces the built-in one.
        settings = ChatSettings(model="mistral-large", context_length=32000)
        assert model_chunk_size(settings, model_chunk_sizes={}) == 32000

    def test_custom_plugin_chunk_size(self):
        settings = ChatSettings(model="gpt-3.5-turbo", context_length=16000)
        assert model_chunk_size(settings, PluginID.WEB_SCRAPER, plugin_chunk_size=5000) == 5000
