"""
Shared pytest fixtures for the field translator test suite.

This module provides fixtures that are automatically available to all test files:
- A frozen ``TranslationConfig`` with fast retry settings
- ``FakeBackend``: an in-memory translation backend that counts calls and can
  be told to fail, stall, or fail only for particular texts
- A ``TranslationClient`` wired to the fake backend
- Service metadata for the ``CatalogService.Books`` example

No test in this suite touches the network.  HTTP-level behaviour of
``HttpTranslationBackend`` is exercised with ``respx``.
"""

import asyncio
from collections import Counter
from collections.abc import AsyncGenerator

import pytest

from field_translator.config import TranslationConfig
from field_translator.core.metadata import (
    ElementDescriptor,
    EntityDescriptor,
    ServiceDescriptor,
)
from field_translator.errors import TranslationBackendError
from field_translator.translation.client import TranslationClient

# ============================================================================
# FAKE BACKEND
# ============================================================================


class FakeBackend:
    """
    In-memory stand-in for the translation backend.

    Attributes:
        translations: ``text -> translated text``.  Texts not listed are
                      translated as ``"<target>:<text>"``.
        calls: Counter of ``(text, source, target)`` -> number of calls.
        failures: ``text -> exception`` raised on every call for that text.
        fail_times: ``text -> n``; the first ``n`` calls for that text raise
                    a transient ``TranslationBackendError``.
        gate: When set, every call waits on this event before answering.
        in_flight / max_in_flight: concurrency observed by the backend.
    """

    def __init__(self, translations: dict[str, str] | None = None) -> None:
        self.translations = dict(translations or {})
        self.calls: Counter = Counter()
        self.failures: dict[str, BaseException] = {}
        self.fail_times: dict[str, int] = {}
        self.gate: asyncio.Event | None = None
        self.delay: float = 0.0
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    @property
    def total_calls(self) -> int:
        return sum(self.calls.values())

    async def translate(self, text: str, source_language: str, target_language: str) -> str:
        self.calls[(text, source_language, target_language)] += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.gate is not None:
                await self.gate.wait()
            if self.delay:
                await asyncio.sleep(self.delay)
            if text in self.failures:
                raise self.failures[text]
            if self.fail_times.get(text, 0) > 0:
                self.fail_times[text] -= 1
                raise TranslationBackendError("backend unavailable", status_code=503)
            return self.translations.get(text, f"{target_language}:{text}")
        finally:
            self.in_flight -= 1

    async def aclose(self) -> None:
        self.closed = True


# ============================================================================
# CONFIG / CLIENT FIXTURES
# ============================================================================


@pytest.fixture
def config() -> TranslationConfig:
    """Italian target, no backoff delay, short deadline."""
    return TranslationConfig(
        target_language="it",
        source_language="en",
        backend_endpoint="http://mt.test/translate",
        max_concurrency=10,
        retry_limit=2,
        request_timeout_ms=1000,
        retry_backoff_ms=0,
    )


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend({"Great Book": "Ottimo libro"})


@pytest.fixture
async def client(
    config: TranslationConfig, backend: FakeBackend
) -> AsyncGenerator[TranslationClient, None]:
    """A client backed by ``FakeBackend``; closed after the test."""
    translation_client = TranslationClient(config, backend=backend)
    yield translation_client
    await translation_client.aclose()


# ============================================================================
# METADATA FIXTURES
# ============================================================================


@pytest.fixture
def catalog_services() -> list[ServiceDescriptor]:
    """
    ``CatalogService`` with ``Books`` (description and genre translatable)
    and ``Authors`` (nothing translatable).
    """
    books = EntityDescriptor(
        name="Books",
        elements=(
            ElementDescriptor("ID"),
            ElementDescriptor("title"),
            ElementDescriptor("description", translatable=True),
            ElementDescriptor("genre", translatable=True),
        ),
    )
    authors = EntityDescriptor(
        name="Authors",
        elements=(ElementDescriptor("ID"), ElementDescriptor("name")),
    )
    return [ServiceDescriptor(name="CatalogService", entities=(books, authors))]
