"""Capability protocols implemented by RAG providers.

A backend implements only the capabilities it supports; RAGProvider is the
full set the registry hands out to callers.
"""
from typing import AsyncIterator, Optional, Protocol, runtime_checkable

from ..models.document import Document


@runtime_checkable
class Retriever(Protocol):

    def prepare_retriever(self, repo_id: str, auth_token: Optional[str] = None) -> str:
        """Build or load the corpus for a repository and return its id."""
        ...

    def retrieve_documents(
        self, query: str, session_id: str = "default", repo_id: Optional[str] = None
    ) -> list[Document]:
        """Return documents relevant to the query, best first.

        Searches repo_id when given, the last prepared repository otherwise.
        Candidates are re-ranked with keywords from the session's recent turns.
        """
        ...


@runtime_checkable
class Generator(Protocol):

    def generate_streaming_response(self, prompt: str) -> AsyncIterator[str]:
        """Stream generated text fragments for a prompt."""
        ...


@runtime_checkable
class DocumentStore(Protocol):

    def index_document(self, document: Document) -> None:
        ...

    def get_document(self, document_id: str) -> Document:
        """Raises NotFoundError for unknown ids."""
        ...

    def delete_document(self, document_id: str) -> None:
        """Raises NotFoundError for unknown ids."""
        ...


@runtime_checkable
class RAGProvider(Retriever, Generator, DocumentStore, Protocol):
    """Named backend combining every capability."""

    name: str

    def initialize(self) -> None:
        """Validate credentials and build clients. Raises ConfigurationError."""
        ...

    def close(self) -> None:
        ...

    async def aclose(self) -> None:
        ...
