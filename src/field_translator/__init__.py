"""Read-time translation of entity fields for data-serving layers.

At startup the translator scans entity metadata for fields marked
``translatable``; on every read it rewrites those fields into the configured
target language through an external machine-translation backend.

Package structure
-----------------
config.py                   TranslationConfig, layered settings loader.
errors.py                   Exception taxonomy.
core/metadata.py            HasTranslatableFlag and metadata descriptors.
core/hooks.py               ServingHooks - the startup and read hook points.
translation/registry.py     Registry Builder.
translation/backend.py      HttpTranslationBackend - the only network call.
translation/cache.py        Bounded LRU TranslationCache.
translation/client.py       TranslationClient - cache, coalescing, retry.
translation/interceptor.py  TranslationInterceptor - per-entity read handler.
translation/plugin.py       TranslationPlugin - wires everything to the hooks.
cli.py                      ``field-translator`` command.
"""

from field_translator.config import TranslationConfig
from field_translator.core.hooks import ServingHooks
from field_translator.translation.plugin import TranslationPlugin, install

__version__ = "0.1.0"

__all__ = ["ServingHooks", "TranslationConfig", "TranslationPlugin", "install", "__version__"]
