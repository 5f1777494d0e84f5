"""Chat service - coordinates retrieval, memory and streaming generation."""

import asyncio
import logging
from contextlib import aclosing
from typing import Optional

from ..errors import RepoChatError
from ..models.chat import ChatRequest, Fragment
from ..models.document import Document
from ..protocols.provider import RAGProvider
from .memory_service import SessionStore
from .provider_registry import ProviderRegistry

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are an expert assistant for a software repository.

- Answer the user's question using the repository context below.
- Refer to files by their path when you use them.
- If the context does not contain the answer, say so instead of guessing.
- Use Markdown for code and lists."""

REDUCED_NOTE = (
    "Note: repository context was omitted from this request after an earlier "
    "failure. Answer from general knowledge and say that the answer may be incomplete."
)

_END = object()


def format_context(documents: list[Document]) -> str:
    """Format retrieved documents as numbered context blocks."""
    return "\n\n".join(
        f"[{i}] {doc.title}:\n{doc.text}" for i, doc in enumerate(documents, 1)
    )


def build_prompt(
    request: ChatRequest,
    documents: list[Document],
    history: str = "",
) -> str:
    """Assemble the full prompt.

    Sections appear only when they have content: history, current file,
    retrieved context, then the query.
    """
    parts = [SYSTEM_PROMPT]
    if history:
        parts.append(f"<conversation_history>\n{history}</conversation_history>")
    if request.file_content:
        parts.append(
            f'<current_file path="{request.file_path or ""}">\n'
            f"{request.file_content}\n</current_file>"
        )
    if documents:
        parts.append(f"<context>\n{format_context(documents)}\n</context>")
    parts.append(f"<query>\n{request.query}\n</query>")
    return "\n\n".join(parts)


def build_reduced_prompt(request: ChatRequest) -> str:
    """Fallback prompt without history, file content or retrieved context."""
    return "\n\n".join([SYSTEM_PROMPT, REDUCED_NOTE, f"<query>\n{request.query}\n</query>"])


class GenerationStream:
    """Caller side of one streamed answer.

    Iterate to receive Fragments in production order. The stream ends after
    a clean completion, after one error fragment, or as soon as it is
    cancelled. Cancelling keeps what was already delivered and discards
    anything still in flight.
    """

    def __init__(self, queue: asyncio.Queue, task: asyncio.Task):
        self._queue = queue
        self._task = task
        self._finished = False

    @property
    def task(self) -> asyncio.Task:
        return self._task

    def __aiter__(self) -> "GenerationStream":
        return self

    async def __anext__(self) -> Fragment:
        if self._finished:
            raise StopAsyncIteration

        getter = asyncio.ensure_future(self._queue.get())
        try:
            done, _ = await asyncio.wait(
                {getter, self._task}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            getter.cancel()
            self.cancel()
            raise

        if getter in done:
            item = getter.result()
        else:
            # Producer exited; anything it left behind is still deliverable.
            getter.cancel()
            if self._finished or self._queue.empty():
                self._finished = True
                raise StopAsyncIteration
            item = self._queue.get_nowait()

        if item is _END or self._finished:
            self._finished = True
            raise StopAsyncIteration
        return item

    def cancel(self) -> None:
        if not self._finished:
            logger.info("Generation cancelled by caller")
        self._finished = True
        self._task.cancel()

    async def aclose(self) -> None:
        self.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass

    async def __aenter__(self) -> "GenerationStream":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def text(self) -> str:
        """Drain the stream and join ordinary fragments."""
        return "".join([f.text async for f in self if not f.is_error])


class ChatService:
    """Streams answers from the active provider."""

    def __init__(self, registry: ProviderRegistry, sessions: Optional[SessionStore] = None):
        """Initialize chat service.

        Args:
            registry: Provider registry; the active provider serves requests.
            sessions: Conversation memory per session id.
        """
        self._registry = registry
        self._sessions = sessions or SessionStore()

    @property
    def sessions(self) -> SessionStore:
        return self._sessions

    def stream(self, request: ChatRequest) -> GenerationStream:
        """Start generating an answer. Must be called from a running event loop.

        Raises:
            NoActiveProviderError: If no provider is registered.
        """
        provider = self._registry.get_active()
        queue: asyncio.Queue = asyncio.Queue(maxsize=1)
        task = asyncio.get_running_loop().create_task(
            self._produce(provider, request, queue),
            name=f"generate:{request.session_id}",
        )
        return GenerationStream(queue, task)

    async def _retrieve(self, provider: RAGProvider, request: ChatRequest) -> list[Document]:
        try:
            if request.repo_id:
                await asyncio.to_thread(provider.prepare_retriever, request.repo_id)
            return await asyncio.to_thread(
                provider.retrieve_documents,
                request.query,
                request.session_id,
                request.repo_id or None,
            )
        except RepoChatError as e:
            logger.warning(f"Retrieval skipped for '{request.query[:50]}...': {e}")
            return []

    async def _forward(self, provider: RAGProvider, prompt: str, queue: asyncio.Queue, parts: list[str]) -> None:
        async with aclosing(provider.generate_streaming_response(prompt)) as fragments:
            async for text in fragments:
                await queue.put(Fragment(text))
                parts.append(text)

    async def _produce(self, provider: RAGProvider, request: ChatRequest, queue: asyncio.Queue) -> None:
        memory = self._sessions.get(request.session_id)
        parts: list[str] = []

        try:
            documents = await self._retrieve(provider, request)
            prompt = build_prompt(request, documents, memory.get_formatted_history())
            try:
                await self._forward(provider, prompt, queue, parts)
            except Exception as e:
                if parts:
                    raise
                logger.warning(f"Generation failed, retrying with reduced prompt: {e}")
                await self._forward(provider, build_reduced_prompt(request), queue, parts)
        except asyncio.CancelledError:
            logger.info(f"Generation stopped after {len(parts)} fragments")
            raise
        except Exception as e:
            logger.error(f"Generation failed for '{request.query[:50]}...': {e}")
            await queue.put(Fragment(f"Error generating response: {e}", is_error=True))
            await queue.put(_END)
            return

        memory.add_turn(request.query, "".join(parts))
        logger.info(f"Generation complete: {len(parts)} fragments via {provider.name}")
        await queue.put(_END)
