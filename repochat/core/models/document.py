"""Document domain models."""
import hashlib
import json
from dataclasses import dataclass, field, replace
from typing import Any, Optional


def document_id_for(file_path: str) -> str:
    """Stable document id derived from a repository-relative path."""
    return hashlib.sha256(file_path.encode("utf-8")).hexdigest()[:16]


@dataclass(frozen=True)
class DocumentMetadata:
    """Metadata attached to every indexed document."""
    file_path: str
    content_type: str
    is_code: bool = False
    is_implementation: bool = False
    importance: str = "low"  # "high" | "medium" | "low"
    token_count: int = 0
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "file_path": self.file_path,
            "type": self.content_type,
            "is_code": self.is_code,
            "is_implementation": self.is_implementation,
            "importance": self.importance,
            "token_count": self.token_count,
            **self.extra,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "DocumentMetadata":
        known = {"file_path", "type", "is_code", "is_implementation", "importance", "token_count"}
        return cls(
            file_path=str(data.get("file_path", "")),
            content_type=str(data.get("type", "")),
            is_code=bool(data.get("is_code", False)),
            is_implementation=bool(data.get("is_implementation", False)),
            importance=str(data.get("importance", "low")),
            token_count=int(data.get("token_count", 0)),
            extra={k: v for k, v in data.items() if k not in known},
        )


@dataclass(frozen=True)
class Document:
    """Unit of retrieval. Text never changes; edits produce a new Document."""
    id: str
    title: str
    text: str
    metadata: DocumentMetadata
    vector: Optional[list[float]] = None

    @property
    def importance(self) -> str:
        return self.metadata.importance

    def with_text(self, text: str, token_count: Optional[int] = None) -> "Document":
        metadata = self.metadata
        if token_count is not None:
            metadata = replace(metadata, token_count=token_count)
        return replace(self, text=text, metadata=metadata, vector=None)

    def with_vector(self, vector: list[float]) -> "Document":
        return replace(self, vector=list(vector))

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "title": self.title,
            "text": self.text,
            "meta_data": self.metadata.to_dict(),
        }
        if self.vector is not None:
            data["vector"] = self.vector
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Document":
        metadata = DocumentMetadata.from_dict(data.get("meta_data") or {})
        title = data.get("title") or metadata.file_path
        return cls(
            id=data.get("id") or document_id_for(metadata.file_path or title),
            title=title,
            text=data.get("text", ""),
            metadata=metadata,
            vector=data.get("vector"),
        )

    def to_index_metadata(self, repo_id: str) -> dict:
        """Flat scalar payload stored next to the vector."""
        return {
            "doc_id": self.id,
            "title": self.title,
            "repo_id": repo_id,
            "meta_json": json.dumps(self.metadata.to_dict(), ensure_ascii=False),
        }

    @classmethod
    def from_index(cls, text: str, metadata: dict) -> "Document":
        """Rebuild a document from a vector index hit."""
        meta = json.loads(metadata.get("meta_json") or "{}")
        meta.setdefault("repo_id", metadata.get("repo_id"))
        return cls.from_dict({
            "id": metadata.get("doc_id"),
            "title": metadata.get("title"),
            "text": text,
            "meta_data": meta,
        })


@dataclass
class RetrievalCandidate:
    """Scored document produced per query, never persisted."""
    document: Document
    score: float


@dataclass
class VectorHit:
    """Raw nearest-neighbour hit as returned by the vector index."""
    id: str
    text: str
    metadata: dict
    score: float
