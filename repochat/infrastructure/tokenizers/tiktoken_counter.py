import logging
from functools import cached_property

import tiktoken

logger = logging.getLogger(__name__)

FALLBACK_ENCODING = "cl100k_base"


class TiktokenCounter:
    """Counts tokens with the model's tiktoken encoding."""

    def __init__(self, model: str = "gpt-4o"):
        self._model = model

    @cached_property
    def encoding(self) -> tiktoken.Encoding:
        try:
            return tiktoken.encoding_for_model(self._model)
        except KeyError:
            logger.warning(
                f"tiktoken has no encoding for {self._model}, using {FALLBACK_ENCODING}"
            )
            return tiktoken.get_encoding(FALLBACK_ENCODING)

    def __call__(self, text: str) -> int:
        return len(self.encoding.encode(text, disallowed_special=()))
