"""Durable corpus cache protocol."""
from typing import Optional, Protocol, runtime_checkable

from ..models.document import Document


@runtime_checkable
class CorpusCacheProtocol(Protocol):
    """Keyed persistence of one document set per repository."""

    def load(self, repo_id: str) -> Optional[list[Document]]:
        """Return the cached corpus, or None if nothing is stored."""
        ...

    def save(self, repo_id: str, documents: list[Document]) -> None:
        """Persist the corpus, replacing any previous entry."""
        ...

    def delete(self, repo_id: str) -> None:
        """Drop the cached corpus. Missing entries are ignored."""
        ...
