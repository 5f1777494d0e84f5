"""Tests for the OpenAI-compatible streaming generator."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import openai
import pytest

from repochat.core.errors import ExternalServiceError
from repochat.infrastructure.llm.openai_client import OpenAIGenerator


def _chunk(content):
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=content))])


class _Stream:
    def __init__(self, chunks, error=None):
        self._chunks = list(chunks)
        self._error = error

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self._chunks:
            return self._chunks.pop(0)
        if self._error:
            raise self._error
        raise StopAsyncIteration


@pytest.fixture
def client():
    with patch("repochat.infrastructure.llm.openai_client.AsyncOpenAI") as cls:
        instance = MagicMock()
        instance.chat.completions.create = AsyncMock()
        instance.close = AsyncMock()
        cls.return_value = instance
        yield cls, instance


async def _collect(generator):
    return [t async for t in generator]


@pytest.mark.asyncio
async def test_stream_yields_non_empty_deltas(client):
    _, instance = client
    instance.chat.completions.create.return_value = _Stream(
        [_chunk("Hel"), _chunk(None), _chunk("lo"), SimpleNamespace(choices=[])]
    )

    tokens = await _collect(OpenAIGenerator(api_key="k").stream("prompt"))

    assert tokens == ["Hel", "lo"]


@pytest.mark.asyncio
async def test_stream_sends_sampling_params(client):
    cls, instance = client
    instance.chat.completions.create.return_value = _Stream([])
    generator = OpenAIGenerator(
        base_url="http://localhost:11434/v1", api_key="ollama", model="qwen2.5:7b",
        max_tokens=2048, temperature=0.7, top_p=0.8, top_k=40, timeout=12.0,
    )

    await _collect(generator.stream("prompt"))

    cls.assert_called_once_with(base_url="http://localhost:11434/v1", api_key="ollama", timeout=12.0)
    kwargs = instance.chat.completions.create.call_args.kwargs
    assert kwargs["messages"] == [{"role": "user", "content": "prompt"}]
    assert kwargs["model"] == "qwen2.5:7b"
    assert kwargs["temperature"] == 0.7
    assert kwargs["top_p"] == 0.8
    assert kwargs["max_tokens"] == 2048
    assert kwargs["stream"] is True
    assert kwargs["extra_body"] == {"top_k": 40}


@pytest.mark.asyncio
async def test_top_k_omitted_by_default(client):
    _, instance = client
    instance.chat.completions.create.return_value = _Stream([])

    await _collect(OpenAIGenerator(api_key="k").stream("prompt"))

    assert instance.chat.completions.create.call_args.kwargs["extra_body"] is None


@pytest.mark.asyncio
async def test_request_errors_are_wrapped(client):
    _, instance = client
    instance.chat.completions.create.side_effect = openai.OpenAIError("401 unauthorized")

    with pytest.raises(ExternalServiceError) as exc_info:
        await _collect(OpenAIGenerator(api_key="k").stream("prompt"))

    assert isinstance(exc_info.value.__cause__, openai.OpenAIError)


@pytest.mark.asyncio
async def test_mid_stream_errors_are_wrapped(client):
    _, instance = client
    instance.chat.completions.create.return_value = _Stream([_chunk("a")], error=openai.OpenAIError("reset"))

    received = []
    with pytest.raises(ExternalServiceError):
        async for token in OpenAIGenerator(api_key="k").stream("prompt"):
            received.append(token)

    assert received == ["a"]


@pytest.mark.asyncio
async def test_close(client):
    _, instance = client
    await OpenAIGenerator(api_key="k").close()
    instance.close.assert_awaited_once()
