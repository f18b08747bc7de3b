"""Translation orchestration: registry, client, interceptor and plugin wiring."""

from field_translator.translation.client import TranslationClient
from field_translator.translation.interceptor import InterceptorBinding, TranslationInterceptor
from field_translator.translation.plugin import TranslationPlugin, install, register_interceptors
from field_translator.translation.registry import TranslationRegistry, build_registry

__all__ = [
    "InterceptorBinding",
    "TranslationClient",
    "TranslationInterceptor",
    "TranslationPlugin",
    "TranslationRegistry",
    "build_registry",
    "install",
    "register_interceptors",
]
