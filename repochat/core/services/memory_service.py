"""Conversation memory - per-session dialogue log."""

import logging
import threading

from ..locks import RWLock
from ..models.chat import DialogTurn
from ..strategies.scoring import tokenize

logger = logging.getLogger(__name__)


def similarity_score(a: str, b: str) -> float:
    """Jaccard overlap of the distinct whitespace-separated words.

    Only words longer than one character count as matches.

    Args:
        a: First text (already lower-cased by callers).
        b: Second text.

    Returns:
        matches / (|a| + |b| - matches), 0 if either side is empty.
    """
    a_words = set(a.split())
    b_words = set(b.split())
    if not a_words or not b_words:
        return 0.0

    matches = sum(1 for word in a_words & b_words if len(word) > 1)
    return matches / (len(a_words) + len(b_words) - matches)


class ConversationMemory:
    """Append-only log of dialogue turns guarded by a reader/writer lock."""

    def __init__(self, window: int = 3, threshold: float = 0.3):
        """Initialize memory.

        Args:
            window: Number of most recent turns considered for relevance.
            threshold: Minimum similarity for a turn to count as relevant.
        """
        self._turns: list[DialogTurn] = []
        self._lock = RWLock()
        self._window = window
        self._threshold = threshold

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._turns)

    def add_turn(self, user_query: str, assistant_response: str) -> DialogTurn:
        turn = DialogTurn(user_query=user_query, assistant_response=assistant_response)
        with self._lock.write():
            self._turns.append(turn)
        logger.debug(f"Memory: added turn {turn.id} ('{user_query[:50]}')")
        return turn

    def get_turns(self) -> list[DialogTurn]:
        with self._lock.read():
            return list(self._turns)

    def get_formatted_history(self) -> str:
        with self._lock.read():
            return "".join(
                f"<turn>\n<user>{t.user_query}</user>\n"
                f"<assistant>{t.assistant_response}</assistant>\n</turn>\n"
                for t in self._turns
            )

    def relevant_turns(self, query: str) -> list[DialogTurn]:
        """Turns from the recent window that resemble the query.

        Falls back to the whole window when nothing clears the threshold, so
        the result is empty only when the memory is.
        """
        with self._lock.read():
            recent = self._turns[-self._window:] if self._window > 0 else []

        query_lower = query.lower()
        relevant = [
            t for t in recent
            if similarity_score(query_lower, t.user_query.lower()) > self._threshold
        ]
        return relevant or recent

    def get_relevant_context(self, query: str) -> str:
        return "".join(
            f"Question: {t.user_query}\nAnswer: {t.assistant_response}\n\n"
            for t in self.relevant_turns(query)
        )

    def context_keywords(self, query: str) -> list[str]:
        """Keywords of the relevant turns, repeats kept, in order of appearance."""
        words: list[str] = []
        for turn in self.relevant_turns(query):
            words.extend(tokenize(turn.user_query))
            words.extend(tokenize(turn.assistant_response))
        return words

    def clear(self) -> None:
        with self._lock.write():
            self._turns.clear()


class SessionStore:
    """Session id -> ConversationMemory. Sessions never share a log."""

    def __init__(self, window: int = 3, threshold: float = 0.3):
        self._window = window
        self._threshold = threshold
        self._sessions: dict[str, ConversationMemory] = {}
        self._guard = threading.Lock()

    def get(self, session_id: str) -> ConversationMemory:
        with self._guard:
            memory = self._sessions.get(session_id)
            if memory is None:
                memory = ConversationMemory(self._window, self._threshold)
                self._sessions[session_id] = memory
            return memory

    def drop(self, session_id: str) -> None:
        with self._guard:
            self._sessions.pop(session_id, None)

    def __contains__(self, session_id: str) -> bool:
        with self._guard:
            return session_id in self._sessions
