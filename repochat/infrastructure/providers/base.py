import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import AsyncIterator, Optional

from repochat.config.settings import Settings
from repochat.core.errors import ConfigurationError, EmptyCorpusError, NotFoundError
from repochat.core.locks import RWLock
from repochat.core.models.document import Document
from repochat.core.protocols.llm import GeneratorProtocol
from repochat.core.services.ingest_service import DocumentIndexer, derive_repo_id
from repochat.core.services.memory_service import SessionStore
from repochat.core.services.search_service import RetrievalEngine
from repochat.core.strategies.scoring import ContextRerankStrategy

logger = logging.getLogger(__name__)


class BaseRAGProvider(ABC):
    """Retrieval, generation and document storage over one completion backend.

    Subclasses only validate their credentials and build the generator.
    """

    name: str = ""

    def __init__(
        self,
        settings: Settings,
        indexer: DocumentIndexer,
        engine: RetrievalEngine,
        sessions: Optional[SessionStore] = None,
        reranker: Optional[ContextRerankStrategy] = None,
    ):
        """Initialize provider.

        Args:
            settings: Application settings.
            indexer: Builds and caches corpora.
            engine: Ranks a corpus against a query.
            sessions: Conversation memory per session id.
            reranker: Re-ranks candidates with conversation keywords.
        """
        self._settings = settings
        self._indexer = indexer
        self._engine = engine
        self._sessions = sessions or SessionStore(
            settings.memory_window, settings.memory_relevance_threshold
        )
        self._reranker = reranker or ContextRerankStrategy()

        self._generator: Optional[GeneratorProtocol] = None
        self._corpora: dict[str, list[Document]] = {}
        self._sources: dict[str, str] = {}
        self._current: Optional[str] = None
        self._lock = RWLock()
        self._pending_close: set[asyncio.Task] = set()

        indexer.on_invalidate(self._invalidate)

    @abstractmethod
    def _validate(self) -> None:
        """Raise ConfigurationError if credentials are missing."""
        ...

    @abstractmethod
    def _create_generator(self) -> GeneratorProtocol:
        ...

    @property
    def sessions(self) -> SessionStore:
        return self._sessions

    @property
    def current_repo(self) -> Optional[str]:
        return self._current

    def initialize(self) -> None:
        self._validate()
        self._generator = self._create_generator()
        logger.info(f"Provider {self.name} initialized")

    def _detach(self) -> Optional[GeneratorProtocol]:
        with self._lock.write():
            generator, self._generator = self._generator, None
            self._corpora.clear()
            self._sources.clear()
            self._current = None
        return generator

    def close(self) -> None:
        """Release the generator. Prefer aclose() from async code."""
        generator = self._detach()
        if generator is None:
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(generator.close())
        else:
            task = loop.create_task(generator.close())
            self._pending_close.add(task)
            task.add_done_callback(self._pending_close.discard)
        logger.info(f"Provider {self.name} closed")

    async def aclose(self) -> None:
        generator = self._detach()
        if generator is None:
            return
        await generator.close()
        logger.info(f"Provider {self.name} closed")

    # Retriever

    def _load(self, source: str) -> tuple[str, list[Document]]:
        key = derive_repo_id(source)
        with self._lock.read():
            corpus = self._corpora.get(key)
        if corpus is None:
            corpus = self._indexer.index(source, key)
            with self._lock.write():
                self._sources[key] = source
                corpus = self._corpora.setdefault(key, corpus)
        return key, corpus

    def _invalidate(self, repo_id: str) -> None:
        with self._lock.write():
            dropped = self._corpora.pop(repo_id, None)
        if dropped is not None:
            logger.info(f"Provider {self.name}: dropped loaded corpus for {repo_id}")

    def _current_corpus(self) -> tuple[Optional[str], list[Document]]:
        with self._lock.read():
            key = self._current
            if key is None:
                return None, []
            corpus = self._corpora.get(key)
            source = self._sources[key]
        if corpus is None:
            key, corpus = self._load(source)
        return key, corpus

    def prepare_retriever(self, repo_id: str, auth_token: Optional[str] = None) -> str:
        """Load the corpus of a local checkout and make it current.

        Args:
            repo_id: Local checkout path. Its derived id keys the cache.
            auth_token: Unused; repositories arrive already materialized.

        Returns:
            Derived repository id.
        """
        key, _ = self._load(repo_id)
        with self._lock.write():
            self._current = key
        logger.info(f"Provider {self.name}: retriever ready for {key}")
        return key

    def retrieve_documents(
        self, query: str, session_id: str = "default", repo_id: Optional[str] = None
    ) -> list[Document]:
        """Rank a corpus for a query, re-ranked with the session's context.

        Args:
            query: Free-text query.
            session_id: Conversation whose recent turns drive re-ranking.
            repo_id: Checkout to search. Defaults to the current repository.
        """
        if repo_id is not None:
            _, corpus = self._load(repo_id)
        else:
            key, corpus = self._current_corpus()
            if key is None:
                raise EmptyCorpusError("No repository prepared")

        candidates = self._engine.retrieve(query, list(corpus), self._settings.rag_top_k)

        memory = self._sessions.get(session_id)
        keywords = memory.context_keywords(query)
        if keywords:
            candidates = self._reranker.apply(keywords, candidates)

        return [c.document for c in candidates]

    # Generator

    async def generate_streaming_response(self, prompt: str) -> AsyncIterator[str]:
        if self._generator is None:
            raise ConfigurationError(f"Provider {self.name} is not initialized")
        async for fragment in self._generator.stream(prompt):
            yield fragment

    # DocumentStore

    def _require_repo(self) -> tuple[str, list[Document]]:
        repo_id, corpus = self._current_corpus()
        if repo_id is None:
            raise NotFoundError("No repository prepared")
        return repo_id, corpus

    def index_document(self, document: Document) -> None:
        repo_id, loaded = self._require_repo()
        if document.metadata.extra.get("repo_id") != repo_id:
            extra = {**document.metadata.extra, "repo_id": repo_id}
            document = replace(document, metadata=replace(document.metadata, extra=extra))

        with self._lock.write():
            corpus = list(self._corpora.get(repo_id, loaded))
            for i, existing in enumerate(corpus):
                if existing.id == document.id:
                    corpus[i] = document
                    break
            else:
                corpus.append(document)
            self._corpora[repo_id] = corpus

        self._indexer.store(repo_id, corpus, changed=[document])
        logger.debug(f"Indexed document {document.id} into {repo_id}")

    def get_document(self, document_id: str) -> Document:
        _, corpus = self._require_repo()
        for document in corpus:
            if document.id == document_id:
                return document
        raise NotFoundError(f"Document {document_id} not found")

    def delete_document(self, document_id: str) -> None:
        repo_id, loaded = self._require_repo()
        with self._lock.write():
            corpus = self._corpora.get(repo_id, loaded)
            removed = [d for d in corpus if d.id == document_id]
            if not removed:
                raise NotFoundError(f"Document {document_id} not found")
            corpus = [d for d in corpus if d.id != document_id]
            self._corpora[repo_id] = corpus

        self._indexer.store(repo_id, corpus, removed=removed)
        logger.debug(f"Deleted document {document_id} from {repo_id}")
