"""Embedder protocol for dependency injection."""
from typing import Protocol, runtime_checkable

import numpy as np


@runtime_checkable
class EmbedderProtocol(Protocol):
    """Text -> vector. Configuring one switches retrieval to vector mode."""

    @property
    def dimension(self) -> int:
        """Length of every produced vector."""
        ...

    def encode(self, texts: str | list[str]) -> np.ndarray:
        """Encode text(s) to embeddings.

        Args:
            texts: Single text or list of texts to encode.

        Returns:
            1-D array for a single text, 2-D array (one row per text) for a list.
        """
        ...

    def warmup(self) -> None:
        """Pre-load the model so the first query is not slowed down."""
        ...
