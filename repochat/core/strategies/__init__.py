"""Scoring and re-ranking strategies."""
from .scoring import (
    ContextRerankStrategy,
    LexicalScorer,
    Scorer,
    ScoringWeights,
    VectorScorer,
    tokenize,
)

__all__ = [
    "ContextRerankStrategy",
    "LexicalScorer",
    "Scorer",
    "ScoringWeights",
    "VectorScorer",
    "tokenize",
]
