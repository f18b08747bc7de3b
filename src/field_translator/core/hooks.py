"""
Serving-layer hook points.

The translator plugs into a data-serving runtime at exactly two places:

    served        fired ONCE after every service and its entity metadata is
                  loaded, before read traffic is accepted
    after:READ    fired per entity after a read produced its records and
                  before the response is sent

``ServingHooks`` is the in-process model of those two hook points.  A host
application either uses it directly (emitting ``served`` from its startup
code and ``after:READ`` from its read path) or adapts its own hook API to
the same shape.

=============================================================================
HOOK SEMANTICS
=============================================================================

1. HANDLERS RUN IN REGISTRATION ORDER
   - Deterministic, like the order of ``on_served`` / ``after_read`` calls

2. ASYNC HANDLERS ARE AWAITED
   - The emitter does not return until every handler completed
   - For ``after:READ`` this is the synchronization point: the response
     must not leave before all translations have finished or failed

3. STARTUP FAILURES ARE FATAL, READ FAILURES ARE NOT
   - An exception from a ``served`` handler propagates to the host
   - An exception from an ``after:READ`` handler is logged and the batch
     from before that handler is passed on, so reads always complete

=============================================================================
USAGE
=============================================================================

    hooks = ServingHooks()

    async def translate_books(records):
        ...

    unsubscribe = hooks.after_read("CatalogService.Books", translate_books)

    await hooks.emit_served(services)
    records = await hooks.emit_after_read("CatalogService.Books", records)

=============================================================================
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

logger = logging.getLogger(__name__)


# =============================================================================
# HOOK NAMES
# =============================================================================

SERVED = "served"
AFTER_READ = "after:READ"


# =============================================================================
# TYPE ALIASES
# =============================================================================

# Startup handler: receives the loaded services
ServedHandler = Callable[[Iterable[Any]], None | Awaitable[None]]

# Read handler: receives the batch, may return a replacement batch
ReadHandler = Callable[[Any], Any]

# An unsubscribe function takes no args and returns nothing
Unsubscribe = Callable[[], None]


def _read_key(entity: str) -> str:
    return f"{AFTER_READ}:{entity}"


class ServingHooks:
    """
    Registry of startup and read handlers with awaiting emitters.

    Not thread-safe.  The serving runtime is single-threaded with async
    suspension, the same as everything else in this package.
    """

    def __init__(self) -> None:
        # Maps hook key -> handlers in registration order
        self._handlers: dict[str, list[Callable[..., Any]]] = {}
        self.debug: bool = False

    # =========================================================================
    # SUBSCRIBE
    # =========================================================================

    def _subscribe(self, key: str, handler: Callable[..., Any]) -> Unsubscribe:
        self._handlers.setdefault(key, []).append(handler)

        if self.debug:
            logger.debug("SUBSCRIBE: %r (total handlers: %d)", key, len(self._handlers[key]))

        def unsubscribe() -> None:
            """Remove this handler from the subscription list."""
            try:
                self._handlers.get(key, []).remove(handler)
            except ValueError:
                # Handler already removed
                return
            if self.debug:
                logger.debug("UNSUBSCRIBE: %r", key)

        return unsubscribe

    def on_served(self, handler: ServedHandler) -> Unsubscribe:
        """Subscribe to the one-time startup hook."""
        return self._subscribe(SERVED, handler)

    def after_read(self, entity: str, handler: ReadHandler) -> Unsubscribe:
        """Subscribe to reads of ``entity``.

        Args:
            entity: Fully qualified entity name, as it appears in the
                    translation registry.
            handler: Sync or async callable receiving the batch.  A
                     non-``None`` return value replaces the batch for the
                     next handler and for the caller.
        """
        return self._subscribe(_read_key(entity), handler)

    # =========================================================================
    # EMIT
    # =========================================================================

    async def emit_served(self, services: Iterable[Any]) -> None:
        """Fire the startup hook.

        Exceptions propagate so that the host fails to start.
        """
        for handler in list(self._handlers.get(SERVED, [])):
            result = handler(services)
            if inspect.isawaitable(result):
                await result
        if self.debug:
            logger.debug("EMIT: %r", SERVED)

    async def emit_after_read(self, entity: str, records: Any) -> Any:
        """Fire the read hook for ``entity`` and return the final batch.

        Every handler is awaited before this coroutine returns.
        """
        for handler in list(self._handlers.get(_read_key(entity), [])):
            try:
                result = handler(records)
                if inspect.isawaitable(result):
                    result = await result
            except Exception:
                # A broken handler must not fail the read
                logger.exception("after:READ handler failed for %r", entity)
                continue
            if result is not None:
                records = result
        return records

    # =========================================================================
    # INTROSPECTION
    # =========================================================================

    def handler_count(self, hook: str, entity: str | None = None) -> int:
        """Number of handlers for ``served`` or for ``after:READ`` of ``entity``."""
        key = _read_key(entity) if hook == AFTER_READ and entity is not None else hook
        return len(self._handlers.get(key, []))

    def read_entities(self) -> list[str]:
        """Entities that currently have at least one read handler."""
        prefix = f"{AFTER_READ}:"
        return [
            key[len(prefix) :]
            for key, handlers in self._handlers.items()
            if key.startswith(prefix) and handlers
        ]
