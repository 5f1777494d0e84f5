"""Document loader implementations."""
from .text_loader import SourceFileLoader

__all__ = ["SourceFileLoader"]
