"""Tests for prompt assembly and the streaming pipeline."""

from __future__ import annotations

import asyncio

import pytest

from conftest import FakeProvider, make_doc
from repochat.core.errors import ExternalServiceError, NoActiveProviderError
from repochat.core.models.chat import ChatRequest
from repochat.core.services.chat_service import (
    REDUCED_NOTE,
    ChatService,
    build_prompt,
    build_reduced_prompt,
)
from repochat.core.services.memory_service import SessionStore
from repochat.core.services.provider_registry import ProviderRegistry


def make_service(provider: FakeProvider) -> ChatService:
    registry = ProviderRegistry()
    registry.register(provider)
    return ChatService(registry, SessionStore())


async def collect(stream):
    return [f async for f in stream]


# ------------------------------------------------------------------
# Prompt assembly
# ------------------------------------------------------------------


def test_build_prompt_includes_all_sections():
    request = ChatRequest(query="what does load do?", file_path="pkg/a.py", file_content="def load(): ...")
    docs = [make_doc("pkg/config.py", "def load_config(): ...")]

    prompt = build_prompt(request, docs, history="<turn>\n</turn>\n")

    assert "<conversation_history>" in prompt
    assert '<current_file path="pkg/a.py">' in prompt
    assert "[1] pkg/config.py:\ndef load_config(): ..." in prompt
    assert prompt.endswith("<query>\nwhat does load do?\n</query>")


def test_build_prompt_omits_empty_sections():
    prompt = build_prompt(ChatRequest(query="hi"), [])
    assert "<conversation_history>" not in prompt
    assert "<current_file" not in prompt
    assert "<context>" not in prompt


def test_reduced_prompt_drops_history_file_and_context():
    request = ChatRequest(query="q", file_content="secret file")
    prompt = build_reduced_prompt(request)

    assert REDUCED_NOTE in prompt
    assert "secret file" not in prompt
    assert "<context>" not in prompt


# ------------------------------------------------------------------
# Streaming
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_clean_stream_delivers_fragments_in_order():
    provider = FakeProvider("p", fragments=("a", "b", "c"))
    service = make_service(provider)

    fragments = await collect(service.stream(ChatRequest(query="q")))

    assert [f.text for f in fragments] == ["a", "b", "c"]
    assert not any(f.is_error for f in fragments)


@pytest.mark.asyncio
async def test_clean_completion_appends_turn_to_memory():
    provider = FakeProvider("p", fragments=("Hello", " world"))
    service = make_service(provider)

    await service.stream(ChatRequest(query="greet me", session_id="s1")).text()

    [turn] = service.sessions.get("s1").get_turns()
    assert turn.user_query == "greet me"
    assert turn.assistant_response == "Hello world"


@pytest.mark.asyncio
async def test_history_and_context_reach_the_prompt():
    doc = make_doc("pkg/config.py", "def load_config(): ...")
    provider = FakeProvider("p", documents=(doc,))
    service = make_service(provider)
    service.sessions.get("s").add_turn("earlier question", "earlier answer")

    await service.stream(ChatRequest(query="q", repo_id="/tmp/repo", session_id="s")).text()

    assert provider.prepared == ["/tmp/repo"]
    assert "earlier question" in provider.prompts[0]
    assert "pkg/config.py" in provider.prompts[0]


@pytest.mark.asyncio
async def test_cancel_after_two_of_five_fragments():
    provider = FakeProvider("p", fragments=("1", "2", "3", "4", "5"))
    provider.delay = 0.01
    service = make_service(provider)

    stream = service.stream(ChatRequest(query="q", session_id="s"))
    received = []
    async for fragment in stream:
        received.append(fragment)
        if len(received) == 2:
            stream.cancel()

    await asyncio.sleep(0.05)

    assert [f.text for f in received] == ["1", "2"]
    assert not any(f.is_error for f in received)
    assert stream.task.cancelled()
    assert provider.produced < 5
    assert service.sessions.get("s").get_turns() == []


@pytest.mark.asyncio
async def test_aclose_stops_producer():
    provider = FakeProvider("p", fragments=tuple("abcdef"))
    provider.delay = 0.01
    service = make_service(provider)

    async with service.stream(ChatRequest(query="q")) as stream:
        first = await stream.__anext__()

    assert first.text == "a"
    assert stream.task.done()
    assert provider.produced < 6


@pytest.mark.asyncio
async def test_failure_before_output_retries_once_with_reduced_prompt():
    provider = FakeProvider("p", fragments=("ok",))
    provider.failures = [ExternalServiceError("boom")]
    service = make_service(provider)

    fragments = await collect(service.stream(ChatRequest(query="q", file_content="big file")))

    assert [f.text for f in fragments] == ["ok"]
    assert len(provider.prompts) == 2
    assert "big file" in provider.prompts[0]
    assert REDUCED_NOTE in provider.prompts[1]


@pytest.mark.asyncio
async def test_second_failure_emits_single_terminal_error():
    provider = FakeProvider("p")
    provider.failures = [ExternalServiceError("boom"), ExternalServiceError("still down")]
    service = make_service(provider)

    fragments = await collect(service.stream(ChatRequest(query="q", session_id="s")))

    assert len(fragments) == 1
    assert fragments[0].is_error
    assert "still down" in fragments[0].text
    assert len(provider.prompts) == 2
    assert service.sessions.get("s").get_turns() == []


@pytest.mark.asyncio
async def test_failure_mid_stream_ends_with_error_without_retry():
    class Flaky(FakeProvider):
        async def generate_streaming_response(self, prompt):
            self.prompts.append(prompt)
            yield "partial"
            raise ExternalServiceError("connection reset")

    provider = Flaky("p")
    service = make_service(provider)

    fragments = await collect(service.stream(ChatRequest(query="q")))

    assert [f.text for f in fragments[:-1]] == ["partial"]
    assert fragments[-1].is_error
    assert len(provider.prompts) == 1


@pytest.mark.asyncio
async def test_stream_without_active_provider():
    service = ChatService(ProviderRegistry())
    with pytest.raises(NoActiveProviderError):
        service.stream(ChatRequest(query="q"))
