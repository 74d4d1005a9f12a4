# tests/conftest.py
"""
Shared fixtures for the goalcore test suite.

Provides a scripted completion provider (no model service needed), an
agent catalogue in a temporary directory and a registry wired to both.
"""

import asyncio
import sys
from pathlib import Path
from typing import Callable, Dict, List, Optional, Set

import pytest

# Add source to path for testing
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from goalcore.exceptions import ProviderError  # noqa: E402
from goalcore.providers.base import BaseCompletionProvider  # noqa: E402


class FakeCompletionProvider(BaseCompletionProvider):
    """
    Scripted provider keyed by model name.

    Args:
        responses: model -> fixed response text.
        delays: model -> seconds to sleep before answering.
        failures: models whose calls raise ``ProviderError``.
        responder: Fallback ``(prompt, model, temperature) -> text``.
    """

    def __init__(
        self,
        responses: Optional[Dict[str, str]] = None,
        delays: Optional[Dict[str, float]] = None,
        failures: Optional[Set[str]] = None,
        responder: Optional[Callable[[str, Optional[str], Optional[float]], str]] = None,
    ):
        self.responses = dict(responses or {})
        self.delays = dict(delays or {})
        self.failures = set(failures or ())
        self.responder = responder
        self.calls: List[dict] = []
        self.closed = False

    def get_name(self) -> str:
        return "fake"

    async def complete(self, prompt, model=None, temperature=None):
        self.calls.append({"prompt": prompt, "model": model, "temperature": temperature})
        delay = self.delays.get(model)
        if delay:
            await asyncio.sleep(delay)
        if model in self.failures:
            raise ProviderError("fake", f"model {model} unavailable")
        if model in self.responses:
            return self.responses[model]
        if self.responder is not None:
            return self.responder(prompt, model, temperature)
        return f"{model} says ok"

    async def close(self):
        self.closed = True


@pytest.fixture
def fake_provider():
    return FakeCompletionProvider()


@pytest.fixture
def agents_dir(tmp_path):
    """Directory for workers.json / workflows.json."""
    return tmp_path / "agents"


@pytest.fixture
def catalog(agents_dir):
    from goalcore.agents.catalog import AgentCatalog

    return AgentCatalog(str(agents_dir))


@pytest.fixture
def registry(fake_provider):
    """Registry without persistence and with a short invocation timeout."""
    from goalcore.agents.registry import WorkerRegistry

    return WorkerRegistry(fake_provider, invocation_timeout=0.5)
