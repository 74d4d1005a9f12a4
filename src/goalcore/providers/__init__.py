# src/goalcore/providers/__init__.py
"""Text-completion providers used by the worker registry."""

from .base import BaseCompletionProvider
from .cache import CachedCompletionProvider, ResponseCache

__all__ = ["BaseCompletionProvider", "CachedCompletionProvider", "ResponseCache"]
