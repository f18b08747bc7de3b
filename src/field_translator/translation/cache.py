"""Process-local translation cache.

A bounded LRU mapping ``(text, source_language, target_language) ->
translated text``.  Entries never expire; the size bound caps memory when
source texts are highly variable.

The cache holds *completed* translations only.  In-flight requests are
tracked by ``TranslationClient``, which writes here only after a backend
call succeeded.  A failed or cancelled call therefore never leaves an entry.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import NamedTuple

logger = logging.getLogger(__name__)


class CacheKey(NamedTuple):
    """Identity of one translation."""

    text: str
    source_language: str
    target_language: str


class TranslationCache:
    """Bounded LRU cache of finished translations."""

    def __init__(self, max_entries: int = 10_000) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self.max_entries = max_entries
        self._entries: OrderedDict[CacheKey, str] = OrderedDict()
        self.evictions = 0

    def get(self, key: CacheKey) -> str | None:
        """Return the cached translation and mark it recently used."""
        try:
            value = self._entries[key]
        except KeyError:
            return None
        self._entries.move_to_end(key)
        return value

    def put(self, key: CacheKey, value: str) -> None:
        """Store ``value``, evicting the least recently used entry when full."""
        self._entries[key] = value
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            self.evictions += 1
            logger.debug("Evicted cached translation for %r", evicted.text[:40])

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()
