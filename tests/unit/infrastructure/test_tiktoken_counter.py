"""Tests for tiktoken-based token counting."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

from repochat.infrastructure.tokenizers.tiktoken_counter import TiktokenCounter


def test_counts_encoded_tokens():
    encoding = MagicMock()
    encoding.encode.return_value = [1, 2, 3]
    with patch("repochat.infrastructure.tokenizers.tiktoken_counter.tiktoken") as tk:
        tk.encoding_for_model.return_value = encoding
        assert TiktokenCounter("gpt-4o")("hello there") == 3

    tk.encoding_for_model.assert_called_once_with("gpt-4o")
    encoding.encode.assert_called_once_with("hello there", disallowed_special=())


def test_unknown_model_falls_back_to_cl100k():
    encoding = MagicMock()
    encoding.encode.return_value = [1]
    with patch("repochat.infrastructure.tokenizers.tiktoken_counter.tiktoken") as tk:
        tk.encoding_for_model.side_effect = KeyError("nope")
        tk.get_encoding.return_value = encoding
        counter = TiktokenCounter("local-model")
        counter("a")
        counter("b")

    tk.get_encoding.assert_called_once_with("cl100k_base")
