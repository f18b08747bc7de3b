"""HTTP backend for machine translation.

``HttpTranslationBackend`` is a thin async wrapper around the translation
service endpoint.  It is the only place in the package that makes a network
call.  Caching, coalescing and retrying live one level up in
``TranslationClient``; this class makes exactly one request per call.

Wire contract
-------------
Request (``POST``, JSON body)::

    {"text": "Great Book", "sourceLanguage": "en",
     "targetLanguage": "it", "format": "text"}

Success (2xx)::

    {"translatedText": "Ottimo libro"}

Anything else is a failure:

- transport timeout          -> ``TranslationTimeout`` (retryable)
- connection/transport error -> ``TranslationBackendError`` (retryable)
- non-2xx status             -> ``TranslationBackendError`` (retryable only
                                for 408/425/429/5xx)
- non-JSON body or missing / non-string ``translatedText``
                             -> ``TranslationBackendError`` (not retryable)

Any object with an async ``translate(text, source_language,
target_language)`` method satisfies ``TranslationBackend`` and can be handed
to the client instead, which is how tests swap in in-memory fakes.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

import httpx

from field_translator.errors import TranslationBackendError, TranslationTimeout

logger = logging.getLogger(__name__)

# Longest slice of an error response body kept on the exception.
_MAX_DETAIL_CHARS = 200


@runtime_checkable
class TranslationBackend(Protocol):
    """Anything that can translate one string."""

    async def translate(self, text: str, source_language: str, target_language: str) -> str: ...


class HttpTranslationBackend:
    """Async client for the translation backend HTTP endpoint.

    Usable as an async context manager; outside one, the underlying
    ``httpx.AsyncClient`` is created lazily on first use and released by
    ``aclose()``.

    Attributes:
        endpoint:        Full URL of the translate endpoint.
        timeout_seconds: Transport timeout for one request.
        text_format:     Value of the ``format`` field in every request.
    """

    def __init__(
        self,
        endpoint: str,
        *,
        timeout_seconds: float = 5.0,
        text_format: str = "text",
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.endpoint = endpoint
        self.timeout_seconds = timeout_seconds
        self.text_format = text_format
        self._http_client = http_client
        self._owns_client = http_client is None

    # -------------------------------------------------------------------------
    # Context Manager Protocol
    # -------------------------------------------------------------------------

    async def __aenter__(self) -> HttpTranslationBackend:
        _ = self.http_client
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    @property
    def http_client(self) -> httpx.AsyncClient:
        """The underlying ``httpx.AsyncClient``, created on first access."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout_seconds)
            self._owns_client = True
        return self._http_client

    async def aclose(self) -> None:
        """Close the HTTP client if this backend created it."""
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
        self._http_client = None

    # -------------------------------------------------------------------------
    # Translate
    # -------------------------------------------------------------------------

    def _build_payload(self, text: str, source_language: str, target_language: str) -> dict:
        return {
            "text": text,
            "sourceLanguage": source_language,
            "targetLanguage": target_language,
            "format": self.text_format,
        }

    async def translate(self, text: str, source_language: str, target_language: str) -> str:
        """POST one string to the backend and return the translation.

        Raises:
            TranslationTimeout: the request timed out.
            TranslationBackendError: transport failure, non-2xx status or
                                     malformed body.
        """
        payload = self._build_payload(text, source_language, target_language)

        try:
            response = await self.http_client.post(self.endpoint, json=payload)
        except httpx.TimeoutException as exc:
            logger.warning(
                "Translation backend timed out after %.1fs (endpoint=%s)",
                self.timeout_seconds,
                self.endpoint,
            )
            raise TranslationTimeout(self.timeout_seconds) from exc
        except httpx.TransportError as exc:
            logger.warning("Cannot reach translation backend at %s: %s", self.endpoint, exc)
            raise TranslationBackendError(
                "translation backend unreachable",
                detail=f"{self.endpoint}: {exc}",
            ) from exc

        if not response.is_success:
            raise TranslationBackendError(
                "translation backend returned an error",
                status_code=response.status_code,
                detail=response.text[:_MAX_DETAIL_CHARS],
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise TranslationBackendError(
                "translation backend returned invalid JSON",
                status_code=response.status_code,
                detail=response.text[:_MAX_DETAIL_CHARS],
                retryable=False,
            ) from exc

        translated = data.get("translatedText") if isinstance(data, dict) else None
        if not isinstance(translated, str):
            raise TranslationBackendError(
                "translation backend response has no translatedText",
                status_code=response.status_code,
                detail=str(data)[:_MAX_DETAIL_CHARS],
                retryable=False,
            )
        return translated
