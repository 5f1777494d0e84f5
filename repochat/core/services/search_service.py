"""Search service - core retrieval logic."""

import logging
from typing import Optional

from ..errors import EmptyCorpusError
from ..models.document import Document, RetrievalCandidate
from ..strategies.scoring import LexicalScorer, Scorer

logger = logging.getLogger(__name__)


class RetrievalEngine:
    """Ranks a corpus against a query with a scorer chosen at startup."""

    def __init__(self, scorer: Optional[Scorer] = None, top_k: int = 20):
        """Initialize retrieval engine.

        Args:
            scorer: Lexical or vector scorer. Defaults to lexical.
            top_k: Number of candidates returned when callers pass no k.
        """
        self._scorer = scorer or LexicalScorer()
        self._top_k = top_k

    @property
    def scorer(self) -> Scorer:
        return self._scorer

    def retrieve(
        self, query: str, corpus: list[Document], k: Optional[int] = None
    ) -> list[RetrievalCandidate]:
        """Rank documents for a query.

        Args:
            query: Free-text query.
            corpus: Documents to rank. Never modified.
            k: Maximum number of candidates. Larger than the corpus returns
                every scored candidate.

        Returns:
            Candidates sorted by descending score; ties keep corpus order.

        Raises:
            EmptyCorpusError: If the corpus has no documents.
            ValueError: If k is negative.
            ExternalServiceError: If the vector backend fails.
        """
        if not corpus:
            raise EmptyCorpusError("Cannot retrieve from an empty corpus")

        k = self._top_k if k is None else k
        if k < 0:
            raise ValueError(f"k must be non-negative, got {k}")
        candidates = sorted(
            self._scorer.score(query, corpus, k),
            key=lambda c: c.score,
            reverse=True,
        )[:k]

        logger.info(
            f"Retrieve: returned {len(candidates)}/{len(corpus)} docs for '{query[:50]}...'"
        )
        return candidates
