import logging
from dataclasses import dataclass, field
from typing import Any, Callable, TypeVar

from .config.settings import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class Container:
    _factories: dict[type, Callable[[], Any]] = field(default_factory=dict)
    _singletons: dict[type, Any] = field(default_factory=dict)
    _singleton_flags: set[type] = field(default_factory=set)

    def register(
        self, interface: type[T], factory: Callable[[], T], singleton: bool = False
    ) -> None:
        """Register factory for interface.

        Args:
            interface: Interface type.
            factory: Factory function.
            singleton: Whether to cache instance.
        """
        self._factories[interface] = factory
        if singleton:
            self._singleton_flags.add(interface)

    def resolve(self, interface: type[T]) -> T:
        if interface in self._singletons:
            return self._singletons[interface]

        if interface not in self._factories:
            raise KeyError(f"No factory registered for {interface}")

        instance = self._factories[interface]()

        if interface in self._singleton_flags:
            self._singletons[interface] = instance

        return instance

    def reset(self) -> None:
        """Reset singletons (for testing)."""
        self._singletons.clear()


def configure_container(settings: Settings) -> Container:
    """Build a container with all dependencies.

    The scorer is chosen here, once: vector mode when an embedding model is
    configured, lexical mode otherwise.

    Args:
        settings: Application settings.

    Returns:
        New configured container.
    """
    from .core.errors import RepoChatError
    from .core.protocols.corpus_cache import CorpusCacheProtocol
    from .core.protocols.embedder import EmbedderProtocol
    from .core.protocols.vector_store import VectorStoreProtocol
    from .core.services.chat_service import ChatService
    from .core.services.ingest_service import DocumentIndexer
    from .core.services.memory_service import SessionStore
    from .core.services.provider_registry import ProviderRegistry
    from .core.services.search_service import RetrievalEngine
    from .core.strategies.scoring import (
        ContextRerankStrategy,
        LexicalScorer,
        Scorer,
        ScoringWeights,
        VectorScorer,
    )
    from .infrastructure.cache.json_cache import JsonCorpusCache
    from .infrastructure.providers import OllamaProvider, OpenAIProvider
    from .infrastructure.tokenizers.tiktoken_counter import TiktokenCounter

    container = Container()
    vector_mode = bool(settings.embedding_model)

    weights = ScoringWeights(
        title_weight=settings.title_weight,
        phrase_text_bonus=settings.phrase_text_bonus,
        phrase_title_bonus=settings.phrase_title_bonus,
        importance_high=settings.importance_high,
        importance_medium=settings.importance_medium,
    )
    container.register(ScoringWeights, lambda: weights, singleton=True)

    container.register(
        CorpusCacheProtocol,
        lambda: JsonCorpusCache(settings.cache_dir),
        singleton=True,
    )

    if vector_mode:
        from .infrastructure.embeddings.sentence_transformer import (
            SentenceTransformerEmbedder,
        )
        from .infrastructure.vector_stores.chroma_store import ChromaVectorStore

        container.register(
            EmbedderProtocol,
            lambda: SentenceTransformerEmbedder(
                settings.embedding_model,
                batch_size=settings.embedding_batch_size,
            ),
            singleton=True,
        )

        container.register(
            VectorStoreProtocol,
            lambda: ChromaVectorStore(
                host=settings.chroma_host,
                port=settings.chroma_port,
                collection_name=settings.chroma_collection,
                space=settings.chroma_space,
                timeout=settings.request_timeout,
            ),
            singleton=True,
        )

        container.register(
            Scorer,
            lambda: VectorScorer(
                embedder=container.resolve(EmbedderProtocol),
                vector_store=container.resolve(VectorStoreProtocol),
            ),
            singleton=True,
        )
    else:
        container.register(
            Scorer,
            lambda: LexicalScorer(container.resolve(ScoringWeights)),
            singleton=True,
        )

    container.register(
        DocumentIndexer,
        lambda: DocumentIndexer(
            cache=container.resolve(CorpusCacheProtocol),
            token_counter=TiktokenCounter(settings.token_model),
            embedder=container.resolve(EmbedderProtocol) if vector_mode else None,
            vector_store=container.resolve(VectorStoreProtocol) if vector_mode else None,
            excluded_dirs=settings.excluded_dirs,
            excluded_files=settings.excluded_files,
            max_tokens=settings.max_file_tokens,
        ),
        singleton=True,
    )

    container.register(
        RetrievalEngine,
        lambda: RetrievalEngine(
            scorer=container.resolve(Scorer),
            top_k=settings.rag_top_k,
        ),
        singleton=True,
    )

    container.register(
        SessionStore,
        lambda: SessionStore(
            window=settings.memory_window,
            threshold=settings.memory_relevance_threshold,
        ),
        singleton=True,
    )

    def build_registry() -> ProviderRegistry:
        registry = ProviderRegistry()
        for provider_cls in (OpenAIProvider, OllamaProvider):
            provider = provider_cls(
                settings=settings,
                indexer=container.resolve(DocumentIndexer),
                engine=container.resolve(RetrievalEngine),
                sessions=container.resolve(SessionStore),
                reranker=ContextRerankStrategy(container.resolve(ScoringWeights)),
            )
            try:
                registry.register(provider)
            except RepoChatError as e:
                logger.warning(f"Provider {provider.name} not registered: {e}")

        if settings.default_provider in registry:
            registry.set_active(settings.default_provider)
        return registry

    container.register(ProviderRegistry, build_registry, singleton=True)

    container.register(
        ChatService,
        lambda: ChatService(
            registry=container.resolve(ProviderRegistry),
            sessions=container.resolve(SessionStore),
        ),
        singleton=True,
    )

    logger.info(f"Container configured ({'vector' if vector_mode else 'lexical'} retrieval)")
    return container
