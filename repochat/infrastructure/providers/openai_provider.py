from repochat.core.errors import ConfigurationError
from repochat.core.protocols.llm import GeneratorProtocol
from repochat.infrastructure.llm.openai_client import OpenAIGenerator

from .base import BaseRAGProvider


class OpenAIProvider(BaseRAGProvider):
    """Hosted OpenAI chat completions."""

    name = "openai"

    def _validate(self) -> None:
        if not self._settings.openai_api_key:
            raise ConfigurationError("OPENAI_API_KEY is not set")

    def _create_generator(self) -> GeneratorProtocol:
        return OpenAIGenerator(
            base_url=self._settings.openai_base_url,
            api_key=self._settings.openai_api_key,
            model=self._settings.openai_model,
            max_tokens=self._settings.llm_max_tokens,
            temperature=self._settings.llm_temperature,
            top_p=self._settings.llm_top_p,
            timeout=self._settings.request_timeout,
        )
