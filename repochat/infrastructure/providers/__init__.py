"""RAG provider implementations."""
from .base import BaseRAGProvider
from .ollama_provider import OllamaProvider
from .openai_provider import OpenAIProvider

__all__ = ["BaseRAGProvider", "OllamaProvider", "OpenAIProvider"]
