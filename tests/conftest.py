"""Shared pytest fixtures."""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, Optional

import pytest

from repochat.config.settings import Settings
from repochat.core.errors import ConfigurationError, NotFoundError
from repochat.core.models.document import Document, DocumentMetadata, document_id_for


def make_doc(
    path: str,
    text: str,
    importance: str = "low",
    is_code: bool = False,
    repo_id: Optional[str] = None,
) -> Document:
    extra = {"repo_id": repo_id} if repo_id else {}
    return Document(
        id=document_id_for(path),
        title=path,
        text=text,
        metadata=DocumentMetadata(
            file_path=path,
            content_type=path.rsplit(".", 1)[-1],
            is_code=is_code,
            is_implementation=is_code,
            importance=importance,
            token_count=len(text.split()),
            extra=extra,
        ),
    )


class FakeProvider:
    """In-memory provider with scripted generation."""

    def __init__(
        self,
        name: str,
        fragments: tuple[str, ...] = ("Hello", " world"),
        fail_initialize: bool = False,
        documents: tuple[Document, ...] = (),
    ):
        self.name = name
        self.fragments = list(fragments)
        self.fail_initialize = fail_initialize
        self.initialized = False
        self.closed = False
        self.prompts: list[str] = []
        self.produced = 0
        self.failures: list[Exception] = []
        self.delay = 0.0
        self.documents = {d.id: d for d in documents}
        self.prepared: list[str] = []

    def initialize(self) -> None:
        if self.fail_initialize:
            raise ConfigurationError(f"{self.name}: missing credentials")
        self.initialized = True

    def close(self) -> None:
        self.closed = True

    async def aclose(self) -> None:
        self.closed = True

    def prepare_retriever(self, repo_id: str, auth_token: Optional[str] = None) -> str:
        self.prepared.append(repo_id)
        return repo_id

    def retrieve_documents(
        self, query: str, session_id: str = "default", repo_id: Optional[str] = None
    ) -> list[Document]:
        return list(self.documents.values())

    async def generate_streaming_response(self, prompt: str) -> AsyncIterator[str]:
        self.prompts.append(prompt)
        if self.failures:
            raise self.failures.pop(0)
        for fragment in self.fragments:
            if self.delay:
                await asyncio.sleep(self.delay)
            self.produced += 1
            yield fragment

    def index_document(self, document: Document) -> None:
        self.documents[document.id] = document

    def get_document(self, document_id: str) -> Document:
        if document_id not in self.documents:
            raise NotFoundError(document_id)
        return self.documents[document_id]

    def delete_document(self, document_id: str) -> None:
        if document_id not in self.documents:
            raise NotFoundError(document_id)
        del self.documents[document_id]


@pytest.fixture
def settings(tmp_path):
    """Settings isolated from any local .env file."""
    return Settings(
        _env_file=None,
        openai_api_key="sk-test",
        cache_dir=str(tmp_path / "cache"),
        embedding_model="",
    )


@pytest.fixture
def sample_repo(tmp_path):
    """Small checkout with code, docs, tests and excluded content."""
    root = tmp_path / "repo"
    (root / "pkg").mkdir(parents=True)
    (root / "tests").mkdir()
    (root / "node_modules" / "lib").mkdir(parents=True)

    (root / "README.md").write_text("# Demo\nA demo project about parsing config files.\n")
    (root / "pkg" / "config.py").write_text("def load_config(path):\n    return open(path).read()\n")
    (root / "pkg" / "app_main.py").write_text("from pkg.config import load_config\n")
    (root / "pkg" / "notes.txt").write_text("misc notes\n")
    (root / "tests" / "test_config.py").write_text("def test_load():\n    assert True\n")
    (root / "node_modules" / "lib" / "index.js").write_text("module.exports = {}\n")
    (root / "package-lock.json").write_text("{}\n")
    (root / "image.png").write_bytes(b"\x89PNG")
    return root
