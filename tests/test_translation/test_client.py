"""
Tests for TranslationClient.

These tests verify the properties the interceptor relies on:

1. Cache hits make no backend call
2. Concurrent misses for one key are coalesced into a single call
3. Transient failures are retried, permanent ones are not
4. Failed and cancelled calls never populate the cache
5. Backend calls in flight never exceed max_concurrency
"""

import asyncio
import dataclasses

import pytest

from field_translator.errors import TranslationBackendError, TranslationTimeout
from field_translator.translation.cache import CacheKey, TranslationCache
from field_translator.translation.client import TranslationClient, _Flight

# =============================================================================
# CACHING
# =============================================================================


class TestCaching:
    """Cache hit / miss behaviour."""

    @pytest.mark.unit
    async def test_translates_through_backend(self, client, backend):
        result = await client.get_translation("Great Book", "en", "it")

        assert result == "Ottimo libro"
        assert backend.calls[("Great Book", "en", "it")] == 1

    @pytest.mark.unit
    async def test_second_identical_call_hits_cache(self, client, backend):
        first = await client.get_translation("Great Book", "en", "it")
        second = await client.get_translation("Great Book", "en", "it")

        assert first == second == "Ottimo libro"
        assert backend.total_calls == 1
        assert client.stats()["cache_hits"] == 1

    @pytest.mark.unit
    async def test_languages_default_to_config(self, client, backend):
        await client.get_translation("Great Book")

        assert ("Great Book", "en", "it") in backend.calls

    @pytest.mark.unit
    async def test_language_pair_is_part_of_key(self, client, backend):
        await client.get_translation("Great Book", "en", "it")
        await client.get_translation("Great Book", "en", "de")

        assert backend.total_calls == 2

    @pytest.mark.unit
    async def test_empty_text_makes_no_call(self, client, backend):
        assert await client.get_translation("", "en", "it") == ""
        assert backend.total_calls == 0

    @pytest.mark.unit
    async def test_prefilled_cache_is_used(self, config, backend):
        cache = TranslationCache()
        cache.put(CacheKey("Hello", "en", "it"), "Ciao")
        client = TranslationClient(config, backend=backend, cache=cache)

        assert await client.get_translation("Hello", "en", "it") == "Ciao"
        assert backend.total_calls == 0


# =============================================================================
# COALESCING
# =============================================================================


class TestCoalescing:
    """At most one outstanding backend call per key."""

    @pytest.mark.unit
    async def test_concurrent_misses_share_one_call(self, client, backend):
        backend.gate = asyncio.Event()

        tasks = [
            asyncio.create_task(client.get_translation("Great Book", "en", "it")) for _ in range(5)
        ]
        await asyncio.sleep(0)
        backend.gate.set()
        results = await asyncio.gather(*tasks)

        assert results == ["Ottimo libro"] * 5
        assert backend.total_calls == 1
        assert client.stats()["coalesced"] == 4

    @pytest.mark.unit
    async def test_coalesced_waiters_share_the_failure(self, client, backend):
        backend.failures["Broken"] = TranslationBackendError("bad request", status_code=400)
        backend.gate = asyncio.Event()

        tasks = [
            asyncio.create_task(client.get_translation("Broken", "en", "it")) for _ in range(3)
        ]
        await asyncio.sleep(0)
        backend.gate.set()
        results = await asyncio.gather(*tasks, return_exceptions=True)

        assert all(isinstance(r, TranslationBackendError) for r in results)
        assert backend.total_calls == 1

    @pytest.mark.unit
    async def test_finished_flight_is_not_joined(self, client, backend):
        async def failed_call() -> str:
            raise TranslationBackendError("bad request", status_code=400)

        # A failed task still listed because its done callback has not run yet
        stale = asyncio.create_task(failed_call())
        with pytest.raises(TranslationBackendError):
            await stale
        client._inflight[CacheKey("Great Book", "en", "it")] = _Flight(stale)

        result = await client.get_translation("Great Book", "en", "it")

        assert result == "Ottimo libro"
        assert backend.total_calls == 1
        assert client.stats()["coalesced"] == 0
        assert client.stats()["in_flight"] == 0

    @pytest.mark.unit
    async def test_in_flight_table_is_emptied_after_completion(self, client):
        await client.get_translation("Great Book", "en", "it")

        assert client.stats()["in_flight"] == 0


# =============================================================================
# RETRY
# =============================================================================


class TestRetry:
    """Transient failures are retried up to retry_limit."""

    @pytest.mark.unit
    async def test_transient_failure_is_retried(self, client, backend):
        backend.fail_times["Great Book"] = 2

        result = await client.get_translation("Great Book", "en", "it")

        assert result == "Ottimo libro"
        assert backend.total_calls == 3

    @pytest.mark.unit
    async def test_gives_up_after_retry_limit(self, client, backend):
        backend.fail_times["Great Book"] = 10

        with pytest.raises(TranslationBackendError):
            await client.get_translation("Great Book", "en", "it")

        # One attempt plus retry_limit=2 retries
        assert backend.total_calls == 3
        assert client.stats()["failures"] == 1

    @pytest.mark.unit
    async def test_permanent_failure_is_not_retried(self, client, backend):
        backend.failures["Great Book"] = TranslationBackendError("bad request", status_code=400)

        with pytest.raises(TranslationBackendError):
            await client.get_translation("Great Book", "en", "it")

        assert backend.total_calls == 1

    @pytest.mark.unit
    async def test_zero_retry_limit_makes_one_attempt(self, config, backend):
        client = TranslationClient(dataclasses.replace(config, retry_limit=0), backend=backend)
        backend.fail_times["Great Book"] = 1

        with pytest.raises(TranslationBackendError):
            await client.get_translation("Great Book", "en", "it")

        assert backend.total_calls == 1

    @pytest.mark.unit
    async def test_failure_is_not_cached(self, client, backend):
        backend.fail_times["Great Book"] = 3

        with pytest.raises(TranslationBackendError):
            await client.get_translation("Great Book", "en", "it")
        assert CacheKey("Great Book", "en", "it") not in client.cache

        # Backend recovered: the next read tries again
        assert await client.get_translation("Great Book", "en", "it") == "Ottimo libro"

    @pytest.mark.unit
    async def test_unexpected_backend_exception_is_wrapped(self, client, backend):
        backend.failures["Great Book"] = RuntimeError("kaput")

        with pytest.raises(TranslationBackendError, match="translation backend failed"):
            await client.get_translation("Great Book", "en", "it")

        assert backend.total_calls == 1


# =============================================================================
# DEADLINE
# =============================================================================


class TestDeadline:
    """Each attempt runs under request_timeout_ms."""

    @pytest.mark.unit
    async def test_slow_backend_raises_timeout(self, config, backend):
        client = TranslationClient(
            dataclasses.replace(config, request_timeout_ms=20, retry_limit=1), backend=backend
        )
        backend.delay = 0.5

        with pytest.raises(TranslationTimeout):
            await client.get_translation("Great Book", "en", "it")

        # Timeouts are retried
        assert backend.total_calls == 2
        assert CacheKey("Great Book", "en", "it") not in client.cache


# =============================================================================
# CONCURRENCY BOUND
# =============================================================================


class TestConcurrencyBound:
    """max_concurrency caps backend calls in flight."""

    @pytest.mark.unit
    async def test_backend_calls_never_exceed_limit(self, config, backend):
        client = TranslationClient(dataclasses.replace(config, max_concurrency=3), backend=backend)
        backend.delay = 0.01

        texts = [f"text {i}" for i in range(12)]
        results = await asyncio.gather(*(client.get_translation(t, "en", "it") for t in texts))

        assert results == [f"it:{t}" for t in texts]
        assert backend.max_in_flight == 3
        assert backend.total_calls == 12


# =============================================================================
# CANCELLATION
# =============================================================================


class TestCancellation:
    """Cancelled callers never corrupt the cache."""

    @pytest.mark.unit
    async def test_cancelled_sole_waiter_cancels_backend_call(self, client, backend):
        backend.gate = asyncio.Event()

        task = asyncio.create_task(client.get_translation("Great Book", "en", "it"))
        await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        await asyncio.sleep(0.01)

        assert CacheKey("Great Book", "en", "it") not in client.cache
        assert client.stats()["in_flight"] == 0
        assert backend.in_flight == 0

    @pytest.mark.unit
    async def test_other_waiter_still_gets_result(self, client, backend):
        backend.gate = asyncio.Event()

        first = asyncio.create_task(client.get_translation("Great Book", "en", "it"))
        second = asyncio.create_task(client.get_translation("Great Book", "en", "it"))
        await asyncio.sleep(0.01)
        first.cancel()
        backend.gate.set()

        assert await second == "Ottimo libro"
        assert first.cancelled()
        assert backend.total_calls == 1
        assert client.cache.get(CacheKey("Great Book", "en", "it")) == "Ottimo libro"

    @pytest.mark.unit
    async def test_new_request_after_abandoned_call_starts_fresh(self, client, backend):
        backend.gate = asyncio.Event()

        task = asyncio.create_task(client.get_translation("Great Book", "en", "it"))
        await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        backend.gate.set()
        assert await client.get_translation("Great Book", "en", "it") == "Ottimo libro"
        assert backend.total_calls == 2


# =============================================================================
# LIFECYCLE
# =============================================================================


class TestLifecycle:
    @pytest.mark.unit
    async def test_aclose_closes_backend(self, config, backend):
        client = TranslationClient(config, backend=backend)

        await client.aclose()

        assert backend.closed is True

    @pytest.mark.unit
    def test_default_backend_uses_config(self, config):
        client = TranslationClient(config)

        assert client.backend.endpoint == "http://mt.test/translate"
        assert client.cache.max_entries == config.cache_max_entries
