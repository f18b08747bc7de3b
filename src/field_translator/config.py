"""
Translator configuration management.

Settings are loaded from several sources with a clear priority order:

    1. Environment variables (highest priority) - for containerized deployments
    2. Config file (config/translator.ini) - for static deployments
    3. Built-in defaults (lowest priority) - sensible fallbacks

Host applications that already hold their settings in a dict (for example a
``translation`` block of a larger application config) can skip the loader
entirely and call ``TranslationConfig.from_dict``.

Usage:
    from field_translator.config import load_config

    settings = load_config()
    print(settings.translation.target_language)
    print(settings.logging.level)

Environment Variable Mapping:
    TRANSLATOR_TARGET_LANGUAGE     -> translation.target_language
    TRANSLATOR_SOURCE_LANGUAGE     -> translation.source_language
    TRANSLATOR_BACKEND_ENDPOINT    -> translation.backend_endpoint
    TRANSLATOR_MAX_CONCURRENCY     -> translation.max_concurrency
    TRANSLATOR_RETRY_LIMIT         -> translation.retry_limit
    TRANSLATOR_REQUEST_TIMEOUT_MS  -> translation.request_timeout_ms
    TRANSLATOR_CACHE_MAX_ENTRIES   -> translation.cache_max_entries
    TRANSLATOR_LOG_LEVEL           -> logging.level
"""

from __future__ import annotations

import configparser
import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Literal

from field_translator.errors import ConfigError

# =============================================================================
# PATH CONFIGURATION
# =============================================================================

# Project root directory (contains src/, config/)
PROJECT_ROOT = Path(__file__).parent.parent.parent

CONFIG_DIR = PROJECT_ROOT / "config"
CONFIG_FILE = CONFIG_DIR / "translator.ini"
CONFIG_EXAMPLE = CONFIG_DIR / "translator.example.ini"

DEFAULT_BACKEND_ENDPOINT = "http://localhost:5000/translate"


# =============================================================================
# TRANSLATION SETTINGS
# =============================================================================

# camelCase spellings accepted by from_dict, mapped to dataclass field names.
_CAMEL_CASE_KEYS = {
    "targetLanguage": "target_language",
    "sourceLanguage": "source_language",
    "backendEndpoint": "backend_endpoint",
    "maxConcurrency": "max_concurrency",
    "retryLimit": "retry_limit",
    "requestTimeoutMs": "request_timeout_ms",
    "retryBackoffMs": "retry_backoff_ms",
    "cacheMaxEntries": "cache_max_entries",
}


@dataclass(frozen=True)
class TranslationConfig:
    """Immutable, process-wide configuration for read-time field translation.

    Built once at startup and shared by the client and every interceptor.
    Frozen so that no runtime code can change the language pair or the
    concurrency bound behind an in-flight batch.

    Attributes:
        target_language:    Language every translatable field is rendered
                            into.  Required; there is no sensible default.
        source_language:    Language the stored values are written in.
        backend_endpoint:   Full URL of the translation backend endpoint.
        max_concurrency:    Upper bound on backend calls in flight at once.
        retry_limit:        Extra attempts after the first one for transient
                            failures.  ``0`` disables retrying.
        request_timeout_ms: Per-attempt deadline for a backend call.
        retry_backoff_ms:   Base delay of the exponential backoff between
                            attempts.
        cache_max_entries:  LRU bound of the translation cache.
        text_format:        ``format`` field forwarded to the backend
                            (``"text"`` or ``"html"``).
    """

    target_language: str
    source_language: str = "en"
    backend_endpoint: str = DEFAULT_BACKEND_ENDPOINT
    max_concurrency: int = 10
    retry_limit: int = 2
    request_timeout_ms: int = 5000
    retry_backoff_ms: int = 200
    cache_max_entries: int = 10_000
    text_format: str = "text"

    def __post_init__(self) -> None:
        if not self.target_language or not str(self.target_language).strip():
            raise ConfigError("targetLanguage is required")
        if not self.source_language:
            raise ConfigError("sourceLanguage must not be empty")
        if self.max_concurrency < 1:
            raise ConfigError(f"maxConcurrency must be >= 1, got {self.max_concurrency}")
        if self.retry_limit < 0:
            raise ConfigError(f"retryLimit must be >= 0, got {self.retry_limit}")
        if self.request_timeout_ms <= 0:
            raise ConfigError(f"requestTimeoutMs must be > 0, got {self.request_timeout_ms}")
        if self.retry_backoff_ms < 0:
            raise ConfigError(f"retryBackoffMs must be >= 0, got {self.retry_backoff_ms}")
        if self.cache_max_entries < 1:
            raise ConfigError(f"cacheMaxEntries must be >= 1, got {self.cache_max_entries}")

    @property
    def request_timeout_seconds(self) -> float:
        """Per-attempt deadline in seconds, as ``httpx`` and ``asyncio`` expect."""
        return self.request_timeout_ms / 1000.0

    @property
    def retry_backoff_seconds(self) -> float:
        """Base backoff delay in seconds."""
        return self.retry_backoff_ms / 1000.0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TranslationConfig:
        """Build a config from a plain mapping.

        Both the camelCase option names used by host application configs
        (``targetLanguage``, ``maxConcurrency`` ...) and the snake_case field
        names are accepted.  ``format`` maps to ``text_format``.  Unknown
        keys are ignored so that a shared config block can carry options for
        other components.

        Raises:
            ConfigError: ``targetLanguage`` is missing or a numeric option is
                         out of range or not a number.
        """
        known = {f.name for f in fields(cls)}
        kwargs: dict[str, Any] = {}
        for key, value in data.items():
            name = _CAMEL_CASE_KEYS.get(key, key)
            if name == "format":
                name = "text_format"
            if name in known and value is not None:
                kwargs[name] = value

        if "target_language" not in kwargs:
            raise ConfigError("targetLanguage is required")

        try:
            for name in (
                "max_concurrency",
                "retry_limit",
                "request_timeout_ms",
                "retry_backoff_ms",
                "cache_max_entries",
            ):
                if name in kwargs:
                    kwargs[name] = int(kwargs[name])
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"invalid numeric option: {exc}") from exc

        for name in ("target_language", "source_language", "backend_endpoint", "text_format"):
            if name in kwargs:
                kwargs[name] = str(kwargs[name]).strip()

        return cls(**kwargs)


# =============================================================================
# LOGGING SETTINGS
# =============================================================================

_LOG_FORMATS = {
    "simple": "%(levelname)s %(message)s",
    "detailed": "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
}


@dataclass
class LoggingSettings:
    """Logging configuration."""

    level: str = "INFO"
    format: Literal["simple", "detailed"] = "detailed"


def configure_logging(settings: LoggingSettings) -> None:
    """Apply ``settings`` to the root logger.

    Library code never calls this; only entry points (the CLI) do.
    """
    logging.basicConfig(
        level=getattr(logging, settings.level.upper(), logging.INFO),
        format=_LOG_FORMATS.get(settings.format, _LOG_FORMATS["detailed"]),
        force=True,
    )


# =============================================================================
# AGGREGATE SETTINGS
# =============================================================================


@dataclass
class Settings:
    """
    Complete translator settings.

    Aggregates the frozen ``TranslationConfig`` with the mutable logging
    section.  Returned by ``load_config``.
    """

    translation: TranslationConfig
    logging: LoggingSettings = field(default_factory=LoggingSettings)


# =============================================================================
# CONFIGURATION LOADING
# =============================================================================


def _load_from_ini(parser: configparser.ConfigParser) -> tuple[dict[str, Any], LoggingSettings]:
    """Read the ``[translation]`` and ``[logging]`` sections of a parsed INI file."""
    options: dict[str, Any] = {}
    if parser.has_section("translation"):
        for key, value in parser.items("translation"):
            options[key] = value

    log_settings = LoggingSettings()
    if parser.has_section("logging"):
        if parser.has_option("logging", "level"):
            log_settings.level = parser.get("logging", "level").upper()
        if parser.has_option("logging", "format"):
            val = parser.get("logging", "format").lower()
            if val in _LOG_FORMATS:
                log_settings.format = val  # type: ignore[assignment]

    return options, log_settings


_ENV_OPTIONS = {
    "TRANSLATOR_TARGET_LANGUAGE": "target_language",
    "TRANSLATOR_SOURCE_LANGUAGE": "source_language",
    "TRANSLATOR_BACKEND_ENDPOINT": "backend_endpoint",
    "TRANSLATOR_MAX_CONCURRENCY": "max_concurrency",
    "TRANSLATOR_RETRY_LIMIT": "retry_limit",
    "TRANSLATOR_REQUEST_TIMEOUT_MS": "request_timeout_ms",
    "TRANSLATOR_CACHE_MAX_ENTRIES": "cache_max_entries",
}


def _apply_env_overrides(options: dict[str, Any], log_settings: LoggingSettings) -> None:
    """Apply environment variable overrides in place."""
    for env_name, option in _ENV_OPTIONS.items():
        if value := os.getenv(env_name):
            options[option] = value
    if env_log := os.getenv("TRANSLATOR_LOG_LEVEL"):
        log_settings.level = env_log.upper()


def load_config(
    path: Path | str | None = None,
    overrides: dict[str, Any] | None = None,
) -> Settings:
    """
    Load settings from all sources with proper priority.

    Priority (highest wins):
        1. ``overrides`` (explicit values, e.g. CLI flags)
        2. Environment variables
        3. ``path`` if given, else config/translator.ini, else
           config/translator.example.ini
        4. Built-in defaults

    Args:
        path: Explicit INI file.  A missing explicit file is an error; the
              default locations are optional.
        overrides: Options that win over every other source.

    Returns:
        Settings: Fully populated and validated settings.

    Raises:
        ConfigError: The explicit file is missing, or the merged options are
                     invalid (no target language, bad numbers).
    """
    config_file: Path | None = None
    if path is not None:
        config_file = Path(path)
        if not config_file.exists():
            raise ConfigError(f"config file not found: {config_file}")
    elif CONFIG_FILE.exists():
        config_file = CONFIG_FILE
    elif CONFIG_EXAMPLE.exists():
        config_file = CONFIG_EXAMPLE

    options: dict[str, Any] = {}
    log_settings = LoggingSettings()
    if config_file is not None:
        parser = configparser.ConfigParser()
        parser.read(config_file)
        options, log_settings = _load_from_ini(parser)

    _apply_env_overrides(options, log_settings)

    if overrides:
        options.update({k: v for k, v in overrides.items() if v is not None})

    return Settings(translation=TranslationConfig.from_dict(options), logging=log_settings)


def get_config_summary(settings: Settings) -> dict[str, Any]:
    """Return the effective settings as a flat dict for diagnostics."""
    cfg = settings.translation
    return {
        "target_language": cfg.target_language,
        "source_language": cfg.source_language,
        "backend_endpoint": cfg.backend_endpoint,
        "max_concurrency": cfg.max_concurrency,
        "retry_limit": cfg.retry_limit,
        "request_timeout_ms": cfg.request_timeout_ms,
        "retry_backoff_ms": cfg.retry_backoff_ms,
        "cache_max_entries": cfg.cache_max_entries,
        "format": cfg.text_format,
        "log_level": settings.logging.level,
    }
