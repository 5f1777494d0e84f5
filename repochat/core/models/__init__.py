"""Domain models."""
from .document import (
    Document,
    DocumentMetadata,
    RetrievalCandidate,
    VectorHit,
    document_id_for,
)
from .chat import ChatRequest, DialogTurn, Fragment

__all__ = [
    "Document",
    "DocumentMetadata",
    "RetrievalCandidate",
    "VectorHit",
    "document_id_for",
    "ChatRequest",
    "DialogTurn",
    "Fragment",
]
