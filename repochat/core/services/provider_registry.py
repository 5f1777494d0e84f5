"""Provider registry - named backends with one active provider."""

import logging
import threading
from typing import Optional

from ..errors import AlreadyRegisteredError, NoActiveProviderError, NotFoundError
from ..protocols.provider import RAGProvider

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Holds interchangeable providers.

    Invariant: the active provider, when set, is always registered.
    """

    def __init__(self):
        self._providers: dict[str, RAGProvider] = {}
        self._active: Optional[str] = None
        self._lock = threading.RLock()

    def register(self, provider: RAGProvider) -> None:
        """Initialize and add a provider.

        The first successful registration becomes active.

        Raises:
            AlreadyRegisteredError: If the name is taken.
            ConfigurationError: If the provider fails to initialize. The
                registry is left unchanged.
        """
        with self._lock:
            if provider.name in self._providers:
                raise AlreadyRegisteredError(f"Provider {provider.name} already registered")

            provider.initialize()
            self._providers[provider.name] = provider
            if self._active is None:
                self._active = provider.name
            logger.info(f"Registered provider: {provider.name}")

    def _remove(self, name: str) -> RAGProvider:
        with self._lock:
            provider = self._providers.pop(name, None)
            if provider is None:
                raise NotFoundError(f"Provider {name} not registered")

            if self._active == name:
                self._active = min(self._providers) if self._providers else None
                logger.info(f"Active provider is now: {self._active}")
        return provider

    def unregister(self, name: str) -> None:
        """Close and remove a provider, handing off the active role if needed."""
        provider = self._remove(name)
        try:
            provider.close()
        finally:
            logger.info(f"Unregistered provider: {name}")

    async def aunregister(self, name: str) -> None:
        """Like unregister, awaiting the provider's async close."""
        provider = self._remove(name)
        try:
            await provider.aclose()
        finally:
            logger.info(f"Unregistered provider: {name}")

    def set_active(self, name: str) -> None:
        with self._lock:
            if name not in self._providers:
                raise NotFoundError(f"Provider {name} not registered")
            self._active = name
        logger.info(f"Active provider: {name}")

    def get_active(self) -> RAGProvider:
        with self._lock:
            if self._active is None:
                raise NoActiveProviderError("No active provider")
            return self._providers[self._active]

    @property
    def active_name(self) -> Optional[str]:
        return self._active

    def get(self, name: str) -> RAGProvider:
        with self._lock:
            if name not in self._providers:
                raise NotFoundError(f"Provider {name} not registered")
            return self._providers[name]

    def list_providers(self) -> list[str]:
        with self._lock:
            return sorted(self._providers)

    def close_all(self) -> None:
        for name in self.list_providers():
            try:
                self.unregister(name)
            except Exception as e:
                logger.error(f"Failed to close provider {name}: {e}")

    async def aclose_all(self) -> None:
        for name in self.list_providers():
            try:
                await self.aunregister(name)
            except Exception as e:
                logger.error(f"Failed to close provider {name}: {e}")

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._providers
