# src/goalcore/providers/ollama_provider.py
"""
Ollama completion provider for goalcore.

Uses the official ``ollama`` library's ``AsyncClient`` generate endpoint to
turn a single prompt into completion text.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from ollama import AsyncClient, ResponseError

from ..exceptions import ConfigError, ProviderError
from .base import BaseCompletionProvider

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemma3:latest"


class OllamaProvider(BaseCompletionProvider):
    """
    goalcore provider for interacting with a local Ollama server.
    """
    _client: Optional[AsyncClient] = None

    def __init__(self, config: Dict[str, Any]):
        """
        Initializes the OllamaProvider.

        Args:
            config: Dictionary (usually ``ProviderConfig.model_dump()``) containing:
                    'host' (optional): Host URL for the Ollama server.
                    'default_model' (optional): Default Ollama model to use.
                    'timeout' (optional): Request timeout in seconds.
        """
        self.host = config.get("host")
        self.default_model = config.get("default_model") or DEFAULT_MODEL
        timeout_val = config.get("timeout")
        self.timeout = float(timeout_val) if timeout_val is not None else None

        client_args: Dict[str, Any] = {}
        if self.host:
            client_args["host"] = self.host
        if self.timeout is not None:
            client_args["timeout"] = self.timeout
        try:
            self._client = AsyncClient(**client_args)
        except Exception as e:
            logger.error(f"Failed to initialize Ollama AsyncClient: {e}", exc_info=True)
            raise ConfigError(f"Ollama client initialization failed: {e}")
        logger.debug(f"Ollama AsyncClient initialized (Host: {self.host or 'default library host'})")

    def get_name(self) -> str:
        """Returns the provider name: 'ollama'."""
        return "ollama"

    async def complete(
        self,
        prompt: str,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> str:
        if not self._client:
            raise ProviderError(self.get_name(), "Ollama client not initialized.")

        model_name = model or self.default_model
        options = {"temperature": temperature} if temperature is not None else None
        logger.debug(f"Sending generate request to Ollama: model='{model_name}', prompt_chars={len(prompt)}")

        try:
            response = await self._client.generate(
                model=model_name,
                prompt=prompt,
                stream=False,
                options=options,
            )
        except ResponseError as e:
            error_detail = e.error if getattr(e, "error", None) else str(e)
            logger.error(f"Ollama API error: HTTP {e.status_code} - {error_detail}")
            if e.status_code == 404:
                raise ProviderError(
                    self.get_name(),
                    f"Model '{model_name}' not found by Ollama. "
                    f"Ensure it is pulled: `ollama pull {model_name}`. Details: {error_detail}",
                )
            raise ProviderError(self.get_name(), f"Ollama API Error (HTTP {e.status_code}): {error_detail}")
        except asyncio.TimeoutError:
            logger.error(f"Request to Ollama API timed out (configured timeout: {self.timeout or 'library default'}).")
            raise ProviderError(self.get_name(), "Request to Ollama API timed out.")
        except Exception as e:
            logger.error(f"Unexpected error during Ollama completion: {e}", exc_info=True)
            if "connect" in str(e).lower():
                raise ProviderError(
                    self.get_name(),
                    f"Could not connect to Ollama server at {self.host or 'default address'}. "
                    f"Is Ollama running? Details: {e}",
                )
            raise ProviderError(self.get_name(), f"An unexpected error occurred with Ollama: {e}")

        text = response["response"]
        if not isinstance(text, str):
            raise ProviderError(self.get_name(), "Invalid response format from Ollama.")
        return text

    async def close(self) -> None:
        """Closes the underlying Ollama client session if applicable."""
        if not self._client:
            return
        inner = getattr(self._client, "_client", None)
        if inner is not None and hasattr(inner, "aclose"):
            try:
                await inner.aclose()
                logger.debug("OllamaProvider client closed.")
            except Exception as e:
                logger.error(f"Error closing OllamaProvider client: {e}", exc_info=True)
        self._client = None
