import logging
from functools import cached_property
from typing import Optional

import numpy as np
from sentence_transformers import SentenceTransformer

logger = logging.getLogger(__name__)


class SentenceTransformerEmbedder:
    """Local embedding model producing L2-normalised vectors."""

    def __init__(
        self,
        model_name: str = "sentence-transformers/all-MiniLM-L6-v2",
        device: Optional[str] = None,
        batch_size: int = 32,
    ):
        self._model_name = model_name
        self._device = device
        self._batch_size = batch_size

    @cached_property
    def model(self) -> SentenceTransformer:
        logger.info(f"Loading embedding model: {self._model_name}")
        return SentenceTransformer(self._model_name, device=self._device)

    @property
    def dimension(self) -> int:
        return self.model.get_sentence_embedding_dimension()

    def warmup(self) -> None:
        _ = self.model
        logger.info(f"Embedding model warmed up ({self.dimension} dims)")

    def encode(self, texts: str | list[str]) -> np.ndarray:
        if isinstance(texts, list) and not texts:
            return np.empty((0, self.dimension), dtype=np.float32)
        return self.model.encode(
            texts,
            batch_size=self._batch_size,
            convert_to_numpy=True,
            normalize_embeddings=True,
            show_progress_bar=False,
        )
