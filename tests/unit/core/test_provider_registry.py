"""Tests for the provider registry."""

from __future__ import annotations

import pytest

from conftest import FakeProvider
from repochat.core.errors import (
    AlreadyRegisteredError,
    ConfigurationError,
    NoActiveProviderError,
    NotFoundError,
)
from repochat.core.protocols.provider import RAGProvider
from repochat.core.services.provider_registry import ProviderRegistry


@pytest.fixture
def registry():
    return ProviderRegistry()


def test_fake_provider_satisfies_protocol():
    assert isinstance(FakeProvider("p"), RAGProvider)


def test_first_registration_becomes_active(registry):
    first, second = FakeProvider("openai"), FakeProvider("ollama")
    registry.register(first)
    registry.register(second)

    assert registry.get_active() is first
    assert first.initialized and second.initialized


def test_duplicate_registration_fails_and_keeps_first_active(registry):
    first = FakeProvider("openai")
    registry.register(first)

    with pytest.raises(AlreadyRegisteredError, match="already registered"):
        registry.register(FakeProvider("openai"))

    assert registry.get_active() is first
    assert registry.list_providers() == ["openai"]


def test_failed_initialize_aborts_registration(registry):
    with pytest.raises(ConfigurationError):
        registry.register(FakeProvider("openai", fail_initialize=True))

    assert registry.list_providers() == []
    with pytest.raises(NoActiveProviderError):
        registry.get_active()


def test_set_active_unknown_raises(registry):
    registry.register(FakeProvider("openai"))
    with pytest.raises(NotFoundError):
        registry.set_active("missing")
    assert registry.active_name == "openai"


def test_set_active_switches_provider(registry):
    registry.register(FakeProvider("openai"))
    ollama = FakeProvider("ollama")
    registry.register(ollama)

    registry.set_active("ollama")

    assert registry.get_active() is ollama


def test_get_active_without_providers(registry):
    with pytest.raises(NoActiveProviderError):
        registry.get_active()


def test_unregister_closes_and_hands_off_active(registry):
    first, second = FakeProvider("openai"), FakeProvider("ollama")
    registry.register(first)
    registry.register(second)

    registry.unregister("openai")

    assert first.closed
    assert registry.get_active() is second
    assert "openai" not in registry


def test_unregister_last_clears_active(registry):
    registry.register(FakeProvider("openai"))
    registry.unregister("openai")

    assert registry.active_name is None
    with pytest.raises(NoActiveProviderError):
        registry.get_active()


def test_unregister_unknown_raises(registry):
    with pytest.raises(NotFoundError):
        registry.unregister("missing")


def test_active_is_always_registered(registry):
    for name in ("a", "b", "c"):
        registry.register(FakeProvider(name))
    registry.set_active("b")
    for name in ("b", "a"):
        registry.unregister(name)
        assert registry.active_name in registry.list_providers()


def test_get_and_list(registry):
    p = FakeProvider("zeta")
    registry.register(p)
    registry.register(FakeProvider("alpha"))

    assert registry.get("zeta") is p
    assert registry.list_providers() == ["alpha", "zeta"]
    with pytest.raises(NotFoundError):
        registry.get("missing")


def test_close_all(registry):
    providers = [FakeProvider("a"), FakeProvider("b")]
    for p in providers:
        registry.register(p)

    registry.close_all()

    assert all(p.closed for p in providers)
    assert registry.list_providers() == []


@pytest.mark.asyncio
async def test_aclose_all_awaits_provider_close(registry):
    providers = [FakeProvider("a"), FakeProvider("b")]
    for p in providers:
        registry.register(p)

    await registry.aclose_all()

    assert all(p.closed for p in providers)
    assert registry.list_providers() == []
    assert registry.active_name is None
