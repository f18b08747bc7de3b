"""Caching, coalescing, retrying translation client.

``TranslationClient.get_translation`` is the one call the interceptor makes
for every field value.  Between the interceptor and the backend it layers:

1. **Cache** - a hit returns immediately with no external call.
2. **Coalescing** - concurrent misses for the same
   ``(text, source_language, target_language)`` key share a single
   in-flight task.  There is at most one outstanding backend call per key;
   every waiter receives the same result or the same error.
3. **Concurrency bound** - an ``asyncio.Semaphore`` caps backend calls in
   flight across the whole process at ``max_concurrency``.  Cache hits and
   coalesced waiters never take a slot.
4. **Deadline** - every attempt runs under ``request_timeout_ms``; expiry
   raises ``TranslationTimeout``.
5. **Retry** - ``TranslationTimeout`` and transient
   ``TranslationBackendError`` are retried up to ``retry_limit`` more times
   with exponential backoff (``tenacity``).  On exhaustion the last error is
   raised to the caller.

Cancellation
------------
Waiters await the shared task through ``asyncio.shield`` so that one
cancelled read does not kill a call other reads are waiting for.  When the
*last* waiter for a key goes away, the task is cancelled and dropped from
the in-flight table.  The cache is written only after a backend call
returns successfully, inside the task itself, so a cancelled or failed call
never stores anything.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass
from typing import Any

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from field_translator.config import TranslationConfig
from field_translator.errors import (
    TranslationBackendError,
    TranslationError,
    TranslationTimeout,
)
from field_translator.translation.backend import HttpTranslationBackend, TranslationBackend
from field_translator.translation.cache import CacheKey, TranslationCache

logger = logging.getLogger(__name__)

# Ceiling for a single backoff sleep, whatever the base delay.
_MAX_BACKOFF_SECONDS = 5.0


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, TranslationError) and exc.retryable


@dataclass
class ClientStats:
    """Counters describing what the client has done since startup."""

    cache_hits: int = 0
    cache_misses: int = 0
    coalesced: int = 0
    backend_calls: int = 0
    failures: int = 0


class _Flight:
    """One in-flight backend task and the number of callers awaiting it."""

    __slots__ = ("task", "waiters")

    def __init__(self, task: asyncio.Task[str]) -> None:
        self.task = task
        self.waiters = 0


class TranslationClient:
    """Front door to the translation backend for the whole process.

    One instance is created at startup and shared by every interceptor, so
    the cache, the in-flight table and the concurrency bound are all
    process-wide.

    Args:
        config:  Frozen translator configuration.
        backend: Anything satisfying ``TranslationBackend``.  Defaults to an
                 ``HttpTranslationBackend`` pointed at
                 ``config.backend_endpoint``.
        cache:   Cache instance.  Defaults to a fresh ``TranslationCache``
                 bounded by ``config.cache_max_entries``.
    """

    def __init__(
        self,
        config: TranslationConfig,
        backend: TranslationBackend | None = None,
        cache: TranslationCache | None = None,
    ) -> None:
        self.config = config
        self.backend: TranslationBackend = backend or HttpTranslationBackend(
            config.backend_endpoint,
            timeout_seconds=config.request_timeout_seconds,
            text_format=config.text_format,
        )
        self.cache = cache if cache is not None else TranslationCache(config.cache_max_entries)
        self._inflight: dict[CacheKey, _Flight] = {}
        self._semaphore = asyncio.Semaphore(config.max_concurrency)
        self._stats = ClientStats()

    # ── Public API ────────────────────────────────────────────────────────────

    async def get_translation(
        self,
        text: str,
        source_language: str | None = None,
        target_language: str | None = None,
    ) -> str:
        """Return ``text`` translated from ``source_language`` to ``target_language``.

        Languages default to the configured pair.

        Raises:
            TranslationBackendError: the backend failed for good.
            TranslationTimeout: every attempt ran out of time.
        """
        if not text:
            return text

        key = CacheKey(
            text,
            source_language or self.config.source_language,
            target_language or self.config.target_language,
        )

        cached = self.cache.get(key)
        if cached is not None:
            self._stats.cache_hits += 1
            return cached

        flight = self._inflight.get(key)
        # A finished task is only waiting for its done callback
        if flight is None or flight.task.done():
            self._stats.cache_misses += 1
            flight = _Flight(asyncio.create_task(self._fetch(key)))
            self._inflight[key] = flight
            flight.task.add_done_callback(lambda _task, k=key, f=flight: self._land(k, f))
        else:
            self._stats.coalesced += 1
            logger.debug("Coalescing translation request for %r", key.text[:40])

        flight.waiters += 1
        try:
            return await asyncio.shield(flight.task)
        finally:
            flight.waiters -= 1
            if flight.waiters == 0 and not flight.task.done():
                # Nobody is left to receive the result
                flight.task.cancel()
                self._land(key, flight)

    def stats(self) -> dict[str, Any]:
        """Snapshot of the client counters plus cache occupancy."""
        snapshot = asdict(self._stats)
        snapshot["cache_size"] = len(self.cache)
        snapshot["cache_evictions"] = self.cache.evictions
        snapshot["in_flight"] = len(self._inflight)
        return snapshot

    async def aclose(self) -> None:
        """Cancel in-flight calls and release the backend."""
        for flight in list(self._inflight.values()):
            flight.task.cancel()
        self._inflight.clear()
        close = getattr(self.backend, "aclose", None)
        if close is not None:
            await close()

    # ── Internals ─────────────────────────────────────────────────────────────

    def _land(self, key: CacheKey, flight: _Flight) -> None:
        """Drop ``flight`` from the in-flight table if it is still the current one."""
        if self._inflight.get(key) is flight:
            del self._inflight[key]

    async def _fetch(self, key: CacheKey) -> str:
        """Run the retried backend call for ``key`` and cache the result."""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.config.retry_limit + 1),
            wait=wait_exponential(
                multiplier=self.config.retry_backoff_seconds,
                max=_MAX_BACKOFF_SECONDS,
            ),
            retry=retry_if_exception(_is_retryable),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    result = await self._attempt(key)
        except TranslationError:
            self._stats.failures += 1
            raise

        self.cache.put(key, result)
        return result

    async def _attempt(self, key: CacheKey) -> str:
        """One deadline-bounded backend call, holding a concurrency slot."""
        timeout = self.config.request_timeout_seconds
        async with self._semaphore:
            self._stats.backend_calls += 1
            try:
                return await asyncio.wait_for(
                    self.backend.translate(key.text, key.source_language, key.target_language),
                    timeout=timeout,
                )
            except TimeoutError as exc:
                raise TranslationTimeout(timeout) from exc
            except TranslationError:
                raise
            except Exception as exc:
                raise TranslationBackendError(
                    "translation backend failed",
                    detail=f"{type(exc).__name__}: {exc}",
                    retryable=False,
                ) from exc
