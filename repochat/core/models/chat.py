"""Chat domain models."""
import uuid
from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class DialogTurn:
    """One user query and the assistant's answer to it."""
    user_query: str
    assistant_response: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))


@dataclass(frozen=True)
class Fragment:
    """Piece of streamed output. An error fragment always ends the stream."""
    text: str
    is_error: bool = False


@dataclass
class ChatRequest:
    """Inputs for one streamed answer."""
    query: str
    repo_id: Optional[str] = None
    session_id: str = "default"
    file_path: Optional[str] = None
    file_content: Optional[str] = None
