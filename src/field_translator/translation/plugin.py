"""Plugin wiring: connects the translator to the serving hooks.

``TranslationPlugin`` is the single public entry-point a host application
uses.  It owns the process-wide ``TranslationClient`` and, once startup has
completed, the write-once ``TranslationRegistry``.

Typical call flow
-----------------
1. host creates ``ServingHooks`` and calls ``install(hooks, config)``
2. host loads its services and awaits ``hooks.emit_served(services)``
3. ``on_served`` builds the registry and attaches one
   ``TranslationInterceptor`` per entity with translatable fields
4. every read awaits ``hooks.emit_after_read(entity, records)``; the
   interceptor rewrites the bound fields before the response leaves
5. at shutdown the host awaits ``plugin.aclose()``

Entities without translatable fields get no interceptor at all, so their
reads never reach the translation backend.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import Any

from field_translator.config import TranslationConfig
from field_translator.core.hooks import ServingHooks, Unsubscribe
from field_translator.translation.client import TranslationClient
from field_translator.translation.interceptor import InterceptorBinding, TranslationInterceptor
from field_translator.translation.registry import TranslationRegistry, build_registry

logger = logging.getLogger(__name__)


def register_interceptors(
    registry: TranslationRegistry,
    hooks: ServingHooks,
    client: TranslationClient,
    config: TranslationConfig,
) -> dict[str, tuple[TranslationInterceptor, Unsubscribe]]:
    """Attach one interceptor per registry entry to the read hook.

    Each interceptor gets its own ``InterceptorBinding`` built from the
    registry entry, never a list shared with another entity.

    Returns:
        ``entity -> (interceptor, unsubscribe)`` for every registration.
    """
    registered: dict[str, tuple[TranslationInterceptor, Unsubscribe]] = {}
    for entity, field_names in registry.items():
        interceptor = TranslationInterceptor(
            InterceptorBinding(entity=entity, fields=field_names), client, config
        )
        registered[entity] = (interceptor, hooks.after_read(entity, interceptor))
        logger.debug("Registered translation interceptor for %s", entity)
    return registered


class TranslationPlugin:
    """Owns the registry, the client and the interceptor registrations.

    Args:
        hooks:  The serving layer's hook surface.
        config: Frozen translator configuration.
        client: Shared client; built from ``config`` when omitted.
    """

    def __init__(
        self,
        hooks: ServingHooks,
        config: TranslationConfig,
        client: TranslationClient | None = None,
    ) -> None:
        self.hooks = hooks
        self.config = config
        self.client = client or TranslationClient(config)
        self._registry: TranslationRegistry | None = None
        self._registrations: dict[str, tuple[TranslationInterceptor, Unsubscribe]] = {}
        self._unsubscribe_served: Unsubscribe | None = None

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    def install(self) -> TranslationPlugin:
        """Subscribe to the startup hook.  Returns ``self`` for chaining."""
        if self._unsubscribe_served is None:
            self._unsubscribe_served = self.hooks.on_served(self.on_served)
        return self

    async def on_served(self, services: Iterable[Any]) -> None:
        """Startup handler: build the registry and attach interceptors.

        Runs once.  A repeated startup event is logged and ignored so the
        registry stays write-once.

        Raises:
            RegistryBuildError: the service metadata is unreadable as a whole.
        """
        if self._registry is not None:
            logger.warning("Translation registry already built; ignoring repeated startup event")
            return

        registry = build_registry(services)
        self._registrations = register_interceptors(registry, self.hooks, self.client, self.config)
        self._registry = registry
        logger.info(
            "Read-time translation active for %d entities (%s -> %s)",
            len(registry),
            self.config.source_language,
            self.config.target_language,
        )

    async def aclose(self) -> None:
        """Detach every handler and close the client."""
        for _, unsubscribe in self._registrations.values():
            unsubscribe()
        self._registrations = {}
        if self._unsubscribe_served is not None:
            self._unsubscribe_served()
            self._unsubscribe_served = None
        await self.client.aclose()

    # ── Read-only accessors ───────────────────────────────────────────────────

    @property
    def registry(self) -> TranslationRegistry:
        """The translation registry.

        Raises:
            RuntimeError: the startup hook has not run yet.
        """
        if self._registry is None:
            raise RuntimeError("translation registry is not built yet; emit the served hook first")
        return self._registry

    @property
    def is_ready(self) -> bool:
        return self._registry is not None

    @property
    def interceptors(self) -> Mapping[str, TranslationInterceptor]:
        """Registered interceptors by entity name."""
        return MappingProxyType({entity: pair[0] for entity, pair in self._registrations.items()})


def install(
    hooks: ServingHooks,
    config: TranslationConfig | Mapping[str, Any],
    client: TranslationClient | None = None,
) -> TranslationPlugin:
    """Create a plugin for ``hooks`` and subscribe it to the startup hook.

    ``config`` may be a ``TranslationConfig`` or a raw options mapping such
    as ``{"targetLanguage": "it"}``.
    """
    if not isinstance(config, TranslationConfig):
        config = TranslationConfig.from_dict(dict(config))
    return TranslationPlugin(hooks, config, client).install()
