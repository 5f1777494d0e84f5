"""Ingest service - repository indexing."""

import asyncio
import logging
import os
import re
import threading
from pathlib import Path
from typing import Callable, Iterable, Iterator, Optional

from ..errors import CancellationError, ExternalServiceError
from ..locks import KeyedLock
from ..models.document import Document, DocumentMetadata, document_id_for
from ..protocols.corpus_cache import CorpusCacheProtocol
from ..protocols.embedder import EmbedderProtocol
from ..protocols.vector_store import VectorStoreProtocol

logger = logging.getLogger(__name__)

DEFAULT_EXCLUDED_DIRS = (
    ".venv", "venv", "node_modules", ".git", "__pycache__",
    ".pytest_cache", "dist", "build", "docs", ".idea", ".vscode",
)
DEFAULT_EXCLUDED_FILES = (
    "package-lock.json", "yarn.lock", "poetry.lock", "Pipfile.lock",
    ".DS_Store", "Thumbs.db", ".env", ".gitignore",
)

_README_RE = re.compile(r"^(readme|contributing|changelog|architecture)\b", re.IGNORECASE)
_SEPARATOR_RE = re.compile(r"[/\\]")


def derive_repo_id(source: str) -> str:
    """Directory-safe repository id from a URL or local path.

    "https://github.com/owner/repo.git" -> "github.com_owner_repo"
    """
    repo_id = source.strip()
    for scheme in ("https://", "http://"):
        if repo_id.startswith(scheme):
            repo_id = repo_id[len(scheme):]
    repo_id = repo_id.rstrip("/\\")
    if repo_id.endswith(".git"):
        repo_id = repo_id[: -len(".git")]
    return _SEPARATOR_RE.sub("_", repo_id)


def is_implementation_path(relative_path: str) -> bool:
    """False for test and app entry files, True for everything else."""
    name = Path(relative_path).name
    if name.startswith("test_") or name.startswith("app_"):
        return False
    return "test" not in relative_path.lower()


class IndexingJob:
    """Handle for a background indexing run.

    Awaiting the job yields the corpus. Cancelling stops the worker at the
    next file boundary and leaves the cache untouched.
    """

    def __init__(self, repo_id: str, task: "asyncio.Task[list[Document]]", stop: threading.Event):
        self.repo_id = repo_id
        self._task = task
        self._stop = stop

    def __await__(self):
        return self._task.__await__()

    @property
    def done(self) -> bool:
        return self._task.done()

    @property
    def cancelled(self) -> bool:
        return self._task.cancelled()

    def cancel(self) -> None:
        self._stop.set()
        self._task.cancel()

    async def result(self) -> list[Document]:
        return await self._task


class DocumentIndexer:
    """Builds and caches the document corpus of a checked-out repository."""

    def __init__(
        self,
        cache: Optional[CorpusCacheProtocol] = None,
        token_counter: Optional[Callable[[str], int]] = None,
        embedder: Optional[EmbedderProtocol] = None,
        vector_store: Optional[VectorStoreProtocol] = None,
        excluded_dirs: Iterable[str] = DEFAULT_EXCLUDED_DIRS,
        excluded_files: Iterable[str] = DEFAULT_EXCLUDED_FILES,
        max_tokens: int = 8192,
        batch_size: int = 50,
    ):
        """Initialize indexer.

        Args:
            cache: Durable corpus cache. None disables the cache fast path.
            token_counter: Callable returning the token count of a text.
            embedder: Embedding service, only needed for vector retrieval.
            vector_store: Vector index receiving the embeddings.
            excluded_dirs: Directory names never descended into.
            excluded_files: File names never read.
            max_tokens: Files above this token count are left out entirely.
            batch_size: Batch size for vector upserts.
        """
        self._cache = cache
        self._token_counter = token_counter
        self._embedder = embedder
        self._vector_store = vector_store
        self._excluded_dirs = frozenset(excluded_dirs)
        self._excluded_files = frozenset(excluded_files)
        self._max_tokens = max_tokens
        self._batch_size = batch_size
        self._build_locks = KeyedLock()
        self._listeners: list[Callable[[str], None]] = []

        self._loader = None

    @property
    def loader(self):
        """Lazy load source file loader."""
        if self._loader is None:
            from repochat.infrastructure.document_loaders import SourceFileLoader

            self._loader = SourceFileLoader()
        return self._loader

    @property
    def token_counter(self) -> Callable[[str], int]:
        if self._token_counter is None:
            from repochat.infrastructure.tokenizers.tiktoken_counter import TiktokenCounter

            self._token_counter = TiktokenCounter()
        return self._token_counter

    def _walk(self, root: Path) -> Iterator[Path]:
        """Eligible files under root in sorted order."""
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames[:] = sorted(d for d in dirnames if d not in self._excluded_dirs)
            for filename in sorted(filenames):
                if filename in self._excluded_files:
                    continue
                file_path = Path(dirpath) / filename
                if self.loader.supports(file_path):
                    yield file_path

    def _importance(self, file_path: Path, is_code: bool, is_implementation: bool) -> str:
        if is_code:
            return "high" if is_implementation else "medium"
        if _README_RE.match(file_path.name):
            return "medium"
        return "low"

    def _build_document(self, root: Path, file_path: Path, repo_id: str) -> Optional[Document]:
        relative_path = file_path.relative_to(root).as_posix()

        try:
            content = self.loader.load(file_path)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Skip unreadable file {relative_path}: {e}")
            return None

        token_count = self.token_counter(content)
        if token_count > self._max_tokens:
            logger.warning(
                f"Skip {relative_path}: {token_count} tokens exceeds {self._max_tokens}"
            )
            return None

        is_code = self.loader.is_code(file_path)
        is_implementation = is_code and is_implementation_path(relative_path)

        return Document(
            id=document_id_for(relative_path),
            title=relative_path,
            text=content,
            metadata=DocumentMetadata(
                file_path=relative_path,
                content_type=self.loader.content_type(file_path),
                is_code=is_code,
                is_implementation=is_implementation,
                importance=self._importance(file_path, is_code, is_implementation),
                token_count=token_count,
                extra={"repo_id": repo_id},
            ),
        )

    def _entry_id(self, repo_id: str, document: Document) -> str:
        return f"{repo_id}:{document.id}"

    def _upsert_vectors(self, repo_id: str, documents: list[Document]) -> None:
        if self._embedder is None or self._vector_store is None or not documents:
            return

        total_indexed = 0
        for i in range(0, len(documents), self._batch_size):
            batch = documents[i : i + self._batch_size]
            try:
                embeddings = self._embedder.encode([d.text for d in batch]).tolist()
                self._vector_store.upsert(
                    ids=[self._entry_id(repo_id, d) for d in batch],
                    embeddings=embeddings,
                    documents=[d.text for d in batch],
                    metadatas=[d.to_index_metadata(repo_id) for d in batch],
                )
            except ExternalServiceError:
                raise
            except Exception as e:
                raise ExternalServiceError(f"Embedding batch failed for {repo_id}: {e}") from e

            total_indexed += len(batch)
            logger.info(f"Indexed batch: {total_indexed}/{len(documents)}")

    def _drop_vectors(self, repo_id: str, documents: list[Document]) -> None:
        if self._vector_store is None or not documents:
            return
        self._vector_store.delete([self._entry_id(repo_id, d) for d in documents])

    def _build(
        self, root: Path, repo_id: str, stop: Optional[threading.Event] = None
    ) -> list[Document]:
        documents: list[Document] = []
        for file_path in self._walk(root):
            if stop is not None and stop.is_set():
                raise CancellationError(f"Indexing of {repo_id} cancelled")
            document = self._build_document(root, file_path, repo_id)
            if document is not None:
                documents.append(document)

        self._upsert_vectors(repo_id, documents)
        if self._cache is not None:
            self._cache.save(repo_id, documents)

        logger.info(f"Indexing complete: {len(documents)} docs for {repo_id}")
        return documents

    def index(
        self,
        root: str | Path,
        repo_id: Optional[str] = None,
        stop: Optional[threading.Event] = None,
    ) -> list[Document]:
        """Return the corpus for a repository, building it on first request.

        A non-empty cached corpus is returned as is without touching the
        file tree.

        Args:
            root: Local checkout of the repository.
            repo_id: Cache key. Derived from root when omitted.
            stop: Event checked between files. Setting it aborts the build.

        Returns:
            Documents in sorted path order.

        Raises:
            CancellationError: If stop was set during the build.
        """
        root = Path(root)
        repo_id = repo_id or derive_repo_id(str(root))

        with self._build_locks.hold(repo_id):
            if self._cache is not None:
                cached = self._cache.load(repo_id)
                if cached:
                    logger.info(f"Using cached corpus for {repo_id}: {len(cached)} docs")
                    return cached

            return self._build(root, repo_id, stop)

    def rebuild(
        self,
        repo_id: str,
        root: str | Path,
        stop: Optional[threading.Event] = None,
    ) -> list[Document]:
        """Discard the cached corpus and index again."""
        try:
            with self._build_locks.hold(repo_id):
                self._forget(repo_id)
                return self._build(Path(root), repo_id, stop)
        finally:
            self._notify(repo_id)

    def delete(self, repo_id: str) -> None:
        try:
            with self._build_locks.hold(repo_id):
                self._forget(repo_id)
        finally:
            self._notify(repo_id)

    def on_invalidate(self, callback: Callable[[str], None]) -> None:
        """Call back with the repository id after every rebuild or delete."""
        self._listeners.append(callback)

    def _notify(self, repo_id: str) -> None:
        for callback in list(self._listeners):
            callback(repo_id)

    def store(
        self,
        repo_id: str,
        documents: list[Document],
        changed: Iterable[Document] = (),
        removed: Iterable[Document] = (),
    ) -> None:
        """Persist an edited corpus. Only changed documents are re-embedded."""
        with self._build_locks.hold(repo_id):
            self._drop_vectors(repo_id, list(removed))
            self._upsert_vectors(repo_id, list(changed))
            if self._cache is not None:
                self._cache.save(repo_id, documents)

    def _forget(self, repo_id: str) -> None:
        if self._cache is None:
            return
        cached = self._cache.load(repo_id) or []
        self._drop_vectors(repo_id, cached)
        self._cache.delete(repo_id)
        logger.info(f"Dropped corpus for {repo_id}")

    def start(
        self,
        root: str | Path,
        repo_id: Optional[str] = None,
        rebuild: bool = False,
    ) -> IndexingJob:
        """Index in a worker thread. Must be called from a running event loop."""
        repo_id = repo_id or derive_repo_id(str(root))
        stop = threading.Event()
        if rebuild:
            work = asyncio.to_thread(self.rebuild, repo_id, root, stop)
        else:
            work = asyncio.to_thread(self.index, root, repo_id, stop)
        task = asyncio.get_running_loop().create_task(work, name=f"index:{repo_id}")
        logger.info(f"Started background indexing for {repo_id}")
        return IndexingJob(repo_id, task, stop)
