"""Protocol interfaces for dependency injection."""
from .embedder import EmbedderProtocol
from .vector_store import VectorStoreProtocol
from .llm import GeneratorProtocol
from .corpus_cache import CorpusCacheProtocol
from .provider import DocumentStore, Generator, RAGProvider, Retriever

__all__ = [
    "EmbedderProtocol",
    "VectorStoreProtocol",
    "GeneratorProtocol",
    "CorpusCacheProtocol",
    "DocumentStore",
    "Generator",
    "RAGProvider",
    "Retriever",
]
