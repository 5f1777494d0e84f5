import logging
from typing import AsyncIterator, Optional

import openai
from openai import AsyncOpenAI

from repochat.core.errors import ExternalServiceError

logger = logging.getLogger(__name__)


class OpenAIGenerator:
    """Streaming completion client for any OpenAI-compatible endpoint."""

    def __init__(
        self,
        base_url: str = "https://api.openai.com/v1",
        api_key: str = "",
        model: str = "gpt-4o",
        max_tokens: int = 2048,
        temperature: float = 0.7,
        top_p: float = 0.8,
        top_k: Optional[int] = None,
        timeout: float = 60.0,
    ):
        """Initialize generator.

        Args:
            base_url: API URL (hosted OpenAI or Ollama's /v1).
            api_key: API key. Ollama accepts any non-empty value.
            model: Model name.
            max_tokens: Max response tokens.
            temperature: Sampling temperature.
            top_p: Nucleus sampling mass.
            top_k: Top-k sampling. Only sent when set, hosted OpenAI rejects it.
            timeout: Request timeout in seconds.
        """
        self._client = AsyncOpenAI(base_url=base_url, api_key=api_key, timeout=timeout)
        self._model = model
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._top_p = top_p
        self._top_k = top_k

    @property
    def model(self) -> str:
        return self._model

    async def stream(self, prompt: str) -> AsyncIterator[str]:
        """Stream chat response.

        Args:
            prompt: Fully assembled prompt, sent as a single user message.

        Yields:
            Response tokens.

        Raises:
            ExternalServiceError: On any API or transport failure.
        """
        extra_body = {"top_k": self._top_k} if self._top_k is not None else None

        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=self._max_tokens,
                temperature=self._temperature,
                top_p=self._top_p,
                stream=True,
                extra_body=extra_body,
            )

            async for chunk in response:
                if chunk.choices and chunk.choices[0].delta.content:
                    yield chunk.choices[0].delta.content
        except openai.OpenAIError as e:
            logger.error(f"Completion stream failed ({self._model}): {e}")
            raise ExternalServiceError(f"Completion request failed: {e}") from e

    async def close(self) -> None:
        await self._client.close()
