"""Core business services."""
from .search_service import RetrievalEngine
from .chat_service import ChatService, GenerationStream
from .ingest_service import DocumentIndexer, IndexingJob, derive_repo_id
from .memory_service import ConversationMemory, SessionStore
from .provider_registry import ProviderRegistry

__all__ = [
    "RetrievalEngine",
    "ChatService",
    "GenerationStream",
    "DocumentIndexer",
    "IndexingJob",
    "derive_repo_id",
    "ConversationMemory",
    "SessionStore",
    "ProviderRegistry",
]
