# src/goalcore/providers/cache.py
"""
Response Cache for text-completion providers.

Identical prompts sent to the same model at the same temperature are served
from an in-memory cache that is persisted to a JSON file between runs.

Cache Key: SHA256(json{prompt: stripped+lowercased, model, round(temperature, 2)})

Eviction happens when either the entry count exceeds ``max_entries`` or the
serialized size exceeds ``max_size_mb``.  Entries are removed in
least-recently-accessed order; each eviction pass removes
``max(overflow, 10% of entries)``.

Usage:
    cache = ResponseCache(path="~/.local/share/goalcore/response_cache.json")
    provider = CachedCompletionProvider(OllamaProvider({}), cache)
    text = await provider.complete("Explain binary search trees", "gemma3:latest", 0.3)
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import re
import threading
import time
from collections import OrderedDict
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from .base import BaseCompletionProvider

logger = logging.getLogger(__name__)

_ERROR_MARKERS = ("Unable to process request", "Error", "No factual information available")
_VOLATILE_PATTERNS = [
    re.compile(r"\b\d{4}-\d{2}-\d{2}\b"),
    re.compile(r"\b\d{2}:\d{2}:\d{2}\b"),
    re.compile(r"\buser\b", re.IGNORECASE),
    re.compile(r"\byou\b", re.IGNORECASE),
    re.compile(r"\btoday\b", re.IGNORECASE),
    re.compile(r"\bnow\b", re.IGNORECASE),
]


@dataclass
class CacheEntry:
    """A single cached completion."""

    response: str
    model: str
    temperature: float
    created_at: float
    last_accessed: float
    hits: int = 0

    def size_bytes(self) -> int:
        return len(json.dumps(asdict(self)).encode("utf-8"))


class ResponseCache:
    """LRU-ordered completion cache with count and size ceilings.

    Attributes:
        max_entries: Maximum number of entries before eviction.
        max_size_bytes: Maximum serialized size before eviction.
        hits: Total cache hits since construction.
        misses: Total cache misses since construction.
    """

    def __init__(
        self,
        path: Optional[str] = None,
        max_entries: int = 1000,
        max_size_mb: float = 10.0,
        unused_days: int = 7,
    ) -> None:
        self.path = Path(os.path.expanduser(path)) if path else None
        self.max_entries = max_entries
        self.max_size_bytes = int(max_size_mb * 1024 * 1024)
        self.unused_days = unused_days
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._size_bytes = 0
        self._lock = threading.RLock()
        self.hits = 0
        self.misses = 0

    @staticmethod
    def make_key(prompt: str, model: str, temperature: float) -> str:
        """Content hash of the normalized prompt, model and rounded temperature."""
        payload = json.dumps(
            {
                "prompt": prompt.strip().lower(),
                "model": model,
                "temperature": round(float(temperature), 2),
            },
            sort_keys=True,
        )
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()

    @staticmethod
    def should_cache(prompt: str, response: str) -> bool:
        """Whether a prompt/response pair is stable enough to reuse."""
        if len(prompt) < 20 or len(prompt) > 5000:
            return False
        if len(response) < 10:
            return False
        if any(marker in response for marker in _ERROR_MARKERS):
            return False
        return not any(p.search(response) for p in _VOLATILE_PATTERNS)

    def get(self, prompt: str, model: str, temperature: float) -> Optional[str]:
        key = self.make_key(prompt, model, temperature)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None
            entry.hits += 1
            entry.last_accessed = time.time()
            self._entries.move_to_end(key)
            self.hits += 1
            logger.debug(f"Response cache hit for key {key[:8]}... ({entry.hits} hits)")
            return entry.response

    def set(self, prompt: str, response: str, model: str, temperature: float) -> None:
        key = self.make_key(prompt, model, temperature)
        now = time.time()
        entry = CacheEntry(
            response=response,
            model=model,
            temperature=round(float(temperature), 2),
            created_at=now,
            last_accessed=now,
        )
        with self._lock:
            previous = self._entries.pop(key, None)
            if previous is not None:
                self._size_bytes -= previous.size_bytes()
            self._entries[key] = entry
            self._size_bytes += entry.size_bytes()
            self._evict_if_needed()

    def _evict_if_needed(self) -> None:
        count = len(self._entries)
        if count <= self.max_entries and self._size_bytes <= self.max_size_bytes:
            return

        overflow = max(count - self.max_entries, 0)
        if self._size_bytes > self.max_size_bytes:
            # Size overflow is expressed as an entry count using the mean entry size.
            mean = self._size_bytes / count
            overflow = max(overflow, int((self._size_bytes - self.max_size_bytes) / mean) + 1)
        to_remove = min(count, max(overflow, count // 10))

        oldest = sorted(self._entries.items(), key=lambda item: item[1].last_accessed)
        for key, entry in oldest[:to_remove]:
            del self._entries[key]
            self._size_bytes -= entry.size_bytes()
        logger.debug(f"Evicted {to_remove} response cache entries ({len(self._entries)} remain)")

    def sweep_unused(self, days: Optional[int] = None) -> int:
        """Drop entries with zero hits created more than ``days`` ago."""
        cutoff = time.time() - (days if days is not None else self.unused_days) * 86400
        with self._lock:
            stale = [k for k, e in self._entries.items() if e.hits == 0 and e.created_at < cutoff]
            for key in stale:
                self._size_bytes -= self._entries.pop(key).size_bytes()
        if stale:
            logger.info(f"Response cache sweep removed {len(stale)} unused entries")
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._size_bytes = 0
            self.hits = 0
            self.misses = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            total = self.hits + self.misses
            return {
                "size": len(self._entries),
                "max_entries": self.max_entries,
                "size_bytes": self._size_bytes,
                "max_size_bytes": self.max_size_bytes,
                "hits": self.hits,
                "misses": self.misses,
                "hit_rate": self.hits / total if total > 0 else 0.0,
                "entry_hits": sum(e.hits for e in self._entries.values()),
            }

    # ---- persistence ----

    def load(self) -> int:
        """Load entries from ``path``; returns the number loaded."""
        if self.path is None or not self.path.exists():
            return 0
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read response cache {self.path}: {e}")
            return 0
        with self._lock:
            self._entries.clear()
            self._size_bytes = 0
            for key, data in sorted(raw.items(), key=lambda kv: kv[1].get("last_accessed", 0)):
                entry = CacheEntry(**data)
                self._entries[key] = entry
                self._size_bytes += entry.size_bytes()
            self._evict_if_needed()
            count = len(self._entries)
        logger.info(f"Loaded {count} cached responses from {self.path}")
        return count

    def save(self) -> None:
        """Write every entry to ``path`` atomically."""
        if self.path is None:
            return
        with self._lock:
            payload = {k: asdict(e) for k, e in self._entries.items()}
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(payload), encoding="utf-8")
        os.replace(tmp, self.path)
        logger.debug(f"Saved {len(payload)} cached responses to {self.path}")


class CachedCompletionProvider(BaseCompletionProvider):
    """Wraps a provider so repeated prompts are answered from a ResponseCache."""

    def __init__(
        self,
        inner: BaseCompletionProvider,
        cache: ResponseCache,
        default_model: str = "default",
        default_temperature: float = 0.3,
    ) -> None:
        self.inner = inner
        self.cache = cache
        self.default_model = default_model
        self.default_temperature = default_temperature

    def get_name(self) -> str:
        return f"cached:{self.inner.get_name()}"

    async def complete(
        self,
        prompt: str,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> str:
        key_model = model or self.default_model
        key_temp = temperature if temperature is not None else self.default_temperature

        cached = self.cache.get(prompt, key_model, key_temp)
        if cached is not None:
            return cached

        response = await self.inner.complete(prompt, model=model, temperature=temperature)
        if self.cache.should_cache(prompt, response):
            self.cache.set(prompt, response, key_model, key_temp)
        return response

    async def close(self) -> None:
        self.cache.save()
        await self.inner.close()
