# src/goalcore/providers/base.py
"""
Abstract Base Class for text-completion providers.

Workers never talk to a model service directly; they go through a
``BaseCompletionProvider`` so the service (Ollama, a cache in front of it,
or a scripted fake in tests) can be swapped without touching the registry.
"""

import abc
from typing import Optional


class BaseCompletionProvider(abc.ABC):
    """
    Abstract Base Class for text-completion integrations.

    Implementations return the completion text for a single prompt and
    raise ``ProviderError`` for any failure of the underlying service.
    """

    @abc.abstractmethod
    def get_name(self) -> str:
        """Return the unique identifier name for this provider."""
        pass

    @abc.abstractmethod
    async def complete(
        self,
        prompt: str,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> str:
        """
        Produce a completion for ``prompt``.

        Args:
            prompt: The full prompt text.
            model: Model identifier; None uses the provider default.
            temperature: Sampling temperature; None uses the model default.

        Returns:
            The generated text.

        Raises:
            ProviderError: If the service call fails.
        """
        pass

    async def close(self) -> None:
        """Release any network resources held by the provider."""
        return None
