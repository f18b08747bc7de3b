"""
Exception taxonomy for the field translator.

Every error raised by this package derives from ``TranslatorError`` so that
host applications can catch the whole family with a single ``except``.

=============================================================================
PROPAGATION POLICY
=============================================================================

    ConfigError              -> raised at load time, fatal to startup
    RegistryBuildError       -> metadata unreadable as a whole, fatal to startup
    MetadataScanError        -> one entity is malformed, logged and skipped
    TranslationBackendError  -> retried if transient, then surfaced to caller
    TranslationTimeout       -> retried, then surfaced to caller
    FieldTranslationFailure  -> terminal for one field, built and logged, never escapes
                                the interceptor

Reads always complete. An untranslated field is the degraded fallback.
=============================================================================
"""

from __future__ import annotations

# HTTP statuses that are retried. Other 4xx statuses fail immediately.
TRANSIENT_STATUS_CODES = frozenset({408, 425, 429, 500, 502, 503, 504})


class TranslatorError(Exception):
    """Base class for every error raised by ``field_translator``."""


class ConfigError(TranslatorError, ValueError):
    """Configuration is missing a required option or holds an invalid value."""


# =============================================================================
# REGISTRY ERRORS
# =============================================================================


class MetadataScanError(TranslatorError):
    """
    Metadata for a single entity could not be scanned.

    Non-fatal: the Registry Builder logs it and moves on to the next entity.

    Attributes:
        entity: Name of the entity being scanned (may be ``"<unknown>"``
                when the name itself is unreadable).
        reason: Human-readable description of what was wrong.
    """

    def __init__(self, entity: str, reason: str) -> None:
        super().__init__(f"cannot scan entity {entity!r}: {reason}")
        self.entity = entity
        self.reason = reason


class RegistryBuildError(TranslatorError):
    """The service metadata could not be accessed at all."""


# =============================================================================
# BACKEND ERRORS
# =============================================================================


class TranslationError(TranslatorError):
    """
    Base class for failures talking to the translation backend.

    Attributes:
        retryable: ``True`` when the failure is transient and the call may
                   succeed if repeated.
    """

    def __init__(self, message: str, *, retryable: bool = False) -> None:
        super().__init__(message)
        self.retryable = retryable


class TranslationBackendError(TranslationError):
    """
    The backend was unreachable, answered with a non-success status, or sent
    a body we could not understand.

    Attributes:
        status_code: HTTP status of the response, ``0`` when no response was
                     received.
        detail:      Extra context (response excerpt, transport error text).
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int = 0,
        detail: str = "",
        retryable: bool | None = None,
    ) -> None:
        if retryable is None:
            retryable = status_code == 0 or status_code in TRANSIENT_STATUS_CODES
        super().__init__(message, retryable=retryable)
        self.status_code = status_code
        self.detail = detail

    def __str__(self) -> str:
        base = super().__str__()
        if self.detail:
            return f"{base}: {self.detail}"
        return base


class TranslationTimeout(TranslationError):
    """The backend did not answer within the configured deadline."""

    def __init__(self, timeout_seconds: float) -> None:
        super().__init__(
            f"translation backend did not answer within {timeout_seconds:.3f}s",
            retryable=True,
        )
        self.timeout_seconds = timeout_seconds


# =============================================================================
# INTERCEPTOR ERRORS
# =============================================================================


class FieldTranslationFailure(TranslatorError):
    """
    Translation of one field of one record failed for good.

    Built and logged by the interceptor after the client has given up. The field
    keeps its original value; siblings are unaffected.
    """

    def __init__(self, entity: str, field: str, record_index: int, cause: BaseException) -> None:
        super().__init__(
            f"{entity}[{record_index}].{field} left untranslated: {cause}"
        )
        self.entity = entity
        self.field = field
        self.record_index = record_index
        self.cause = cause
