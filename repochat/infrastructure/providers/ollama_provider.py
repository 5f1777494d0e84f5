from repochat.core.errors import ConfigurationError
from repochat.core.protocols.llm import GeneratorProtocol
from repochat.infrastructure.llm.openai_client import OpenAIGenerator

from .base import BaseRAGProvider


class OllamaProvider(BaseRAGProvider):
    """Local Ollama server through its OpenAI-compatible API."""

    name = "ollama"

    def _validate(self) -> None:
        if not self._settings.ollama_base_url:
            raise ConfigurationError("OLLAMA_BASE_URL is not set")

    def _create_generator(self) -> GeneratorProtocol:
        return OpenAIGenerator(
            base_url=self._settings.ollama_base_url,
            api_key="ollama",
            model=self._settings.ollama_model,
            max_tokens=self._settings.llm_max_tokens,
            temperature=self._settings.llm_temperature,
            top_p=self._settings.llm_top_p,
            top_k=self._settings.llm_top_k,
            timeout=self._settings.request_timeout,
        )
