"""Vector store protocol for dependency injection."""
from typing import Optional, Protocol, runtime_checkable

from ..models.document import VectorHit


@runtime_checkable
class VectorStoreProtocol(Protocol):
    """Protocol for an external nearest-neighbour index."""

    def ensure_collection(self) -> str:
        """Create the collection if missing and return its id."""
        ...

    def upsert(
        self,
        ids: list[str],
        embeddings: list[list[float]],
        documents: list[str],
        metadatas: list[dict],
    ) -> None:
        """Insert or replace entries.

        Args:
            ids: Entry IDs.
            embeddings: Entry embeddings.
            documents: Raw texts.
            metadatas: Payloads used to rebuild documents on the way out.
        """
        ...

    def query(
        self,
        query_embedding: list[float],
        n_results: int = 5,
        where: Optional[dict] = None,
    ) -> list[VectorHit]:
        """Search by embedding.

        Args:
            query_embedding: Query vector.
            n_results: Number of results to return.
            where: Optional metadata equality filter.

        Returns:
            Hits ordered by descending similarity.
        """
        ...

    def delete(self, ids: list[str]) -> None:
        """Remove entries by id."""
        ...
