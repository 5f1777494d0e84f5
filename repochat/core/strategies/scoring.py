import logging
import math
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, Optional

from ..errors import ExternalServiceError
from ..models.document import Document, RetrievalCandidate
from ..protocols.embedder import EmbedderProtocol
from ..protocols.vector_store import VectorStoreProtocol

logger = logging.getLogger(__name__)

STOPWORDS = frozenset({
    "a", "an", "and", "are", "as", "at", "be", "but", "by", "can", "do", "does",
    "for", "from", "has", "have", "how", "i", "if", "in", "into", "is", "it",
    "its", "me", "my", "no", "not", "of", "on", "or", "so", "that", "the",
    "their", "then", "there", "these", "this", "to", "was", "we", "what",
    "when", "where", "which", "who", "why", "will", "with", "you", "your",
})

_WORD_RE = re.compile(r"\w+")


def tokenize(text: str) -> list[str]:
    """Lower-cased word tokens, dropping single characters and stopwords."""
    return [
        t for t in _WORD_RE.findall(text.lower())
        if len(t) > 1 and t not in STOPWORDS
    ]


@dataclass(frozen=True)
class ScoringWeights:
    """Tunable constants for lexical scoring and context re-ranking."""
    title_weight: float = 2.0
    phrase_text_bonus: float = 5.0
    phrase_title_bonus: float = 10.0
    importance_high: float = 1.5
    importance_medium: float = 1.2
    context_text_weight: float = 1.0
    context_title_weight: float = 2.0

    def importance_factor(self, importance: str) -> float:
        if importance == "high":
            return self.importance_high
        if importance == "medium":
            return self.importance_medium
        return 1.0


class Scorer(ABC):
    """Base class for retrieval scorers."""

    @abstractmethod
    def score(
        self, query: str, corpus: list[Document], top_k: int
    ) -> list[RetrievalCandidate]:
        """Score the corpus. Order of the result is the scan order."""
        ...


class LexicalScorer(Scorer):
    """TF-IDF with title and verbatim-phrase bonuses."""

    def __init__(self, weights: Optional[ScoringWeights] = None):
        self._weights = weights or ScoringWeights()

    def score(
        self, query: str, corpus: list[Document], top_k: int
    ) -> list[RetrievalCandidate]:
        terms = list(dict.fromkeys(tokenize(query)))
        phrase = query.strip().lower()

        texts = [d.text.lower() for d in corpus]
        titles = [d.title.lower() for d in corpus]

        doc_freq = {
            term: sum(1 for text in texts if term in text) for term in terms
        }
        vocabulary = {
            term for term in terms
            if doc_freq[term] or any(term in title for title in titles)
        }
        total = len(corpus)

        candidates = []
        for doc, text, title in zip(corpus, texts, titles):
            score = 0.0
            for term in terms:
                if term not in vocabulary:
                    continue
                df = doc_freq[term]
                idf = math.log(total / df) if df else 0.0
                if text:
                    score += text.count(term) / len(text) * idf
                if title:
                    score += self._weights.title_weight * title.count(term) / len(title)

            if phrase and phrase in text:
                score += self._weights.phrase_text_bonus
            if phrase and phrase in title:
                score += self._weights.phrase_title_bonus

            score *= self._weights.importance_factor(doc.importance)
            if score > 0:
                candidates.append(RetrievalCandidate(document=doc, score=score))

        logger.debug(f"Lexical: {len(candidates)}/{total} docs scored for '{query[:50]}'")
        return candidates


class VectorScorer(Scorer):
    """Nearest-neighbour similarity from the external vector index."""

    def __init__(self, embedder: EmbedderProtocol, vector_store: VectorStoreProtocol):
        self._embedder = embedder
        self._vector_store = vector_store

    def score(
        self, query: str, corpus: list[Document], top_k: int
    ) -> list[RetrievalCandidate]:
        corpus_ids = {d.id for d in corpus}
        repo_ids = {d.metadata.extra.get("repo_id") for d in corpus}
        where = {"repo_id": repo_ids.pop()} if len(repo_ids) == 1 and None not in repo_ids else None

        try:
            query_embedding = self._embedder.encode(query).tolist()
            hits = self._vector_store.query(
                query_embedding=query_embedding,
                n_results=min(top_k, len(corpus)),
                where=where,
            )
        except ExternalServiceError:
            raise
        except Exception as e:
            raise ExternalServiceError(f"Vector search failed: {e}") from e

        candidates = []
        for hit in hits:
            doc = Document.from_index(hit.text, hit.metadata)
            if doc.id not in corpus_ids:
                continue
            candidates.append(RetrievalCandidate(document=doc, score=hit.score))

        logger.debug(f"Vector: {len(candidates)} hits for '{query[:50]}'")
        return candidates


class ContextRerankStrategy:
    """Re-rank candidates by keywords drawn from conversation context.

    Never drops a candidate; only the order changes.
    """

    def __init__(self, weights: Optional[ScoringWeights] = None):
        self._weights = weights or ScoringWeights()

    def apply(
        self, keywords: Iterable[str], candidates: list[RetrievalCandidate]
    ) -> list[RetrievalCandidate]:
        keywords = list(keywords)
        if not keywords or not candidates:
            return list(candidates)

        rescored = []
        for candidate in candidates:
            doc = candidate.document
            text = doc.text.lower()
            title = doc.title.lower()
            score = 0.0
            for keyword in keywords:
                if keyword in text:
                    score += self._weights.context_text_weight
                if keyword in title:
                    score += self._weights.context_title_weight
            score *= self._weights.importance_factor(doc.importance)
            rescored.append(RetrievalCandidate(document=doc, score=score))

        rescored.sort(key=lambda c: c.score, reverse=True)
        logger.info(f"Context rerank: {len(rescored)} docs, {len(keywords)} keywords")
        return rescored
