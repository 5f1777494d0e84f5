"""Generation protocol for dependency injection."""
from typing import AsyncIterator, Protocol, runtime_checkable


@runtime_checkable
class GeneratorProtocol(Protocol):
    """Protocol for a streaming completion client."""

    def stream(self, prompt: str) -> AsyncIterator[str]:
        """Stream a completion for a fully assembled prompt.

        Args:
            prompt: Prompt text.

        Yields:
            Text fragments in production order.

        Raises:
            ExternalServiceError: If the backend rejects or drops the request.
        """
        ...

    async def close(self) -> None:
        """Release the underlying HTTP client."""
        ...
