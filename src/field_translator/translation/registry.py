"""Registry Builder: which entities have translatable fields.

``build_registry`` walks every service, every entity and every element in
declaration order and records the names of elements marked
``translatable``.  The result is a ``TranslationRegistry``: an immutable
``entity name -> tuple of field names`` mapping built once at startup and
only read afterwards.

Entity naming
-------------
Entities are keyed as ``<service>.<entity>`` so that two services exposing
an entity with the same short name do not collide.  An entity whose name
already contains a dot is assumed to be qualified and is kept as-is.

Failure isolation
-----------------
A malformed entity (unreadable name, elements that are not a list, an
element without a name) raises ``MetadataScanError`` internally.  It is
logged and only that entity is skipped; the scan carries on.  A service
whose entity list cannot be read is skipped the same way.  If the
services collection itself cannot be walked, ``RegistryBuildError`` is
raised and the startup hook fails.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from types import MappingProxyType
from typing import Any

from field_translator.errors import MetadataScanError, RegistryBuildError

logger = logging.getLogger(__name__)


class TranslationRegistry(Mapping[str, tuple[str, ...]]):
    """Read-only ``entity -> translatable field names`` mapping.

    An entity is present iff it has at least one translatable field.
    Field tuples keep element declaration order.
    """

    def __init__(self, entries: Mapping[str, tuple[str, ...]] | None = None) -> None:
        self._entries = MappingProxyType(
            {name: tuple(field_names) for name, field_names in (entries or {}).items() if field_names}
        )

    def __getitem__(self, entity: str) -> tuple[str, ...]:
        return self._entries[entity]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"TranslationRegistry({dict(self._entries)!r})"

    def fields_for(self, entity: str) -> tuple[str, ...]:
        """Translatable fields of ``entity``; empty tuple when it has none."""
        return self._entries.get(entity, ())

    def as_dict(self) -> dict[str, list[str]]:
        """Plain, JSON-friendly copy of the registry."""
        return {name: list(field_names) for name, field_names in self._entries.items()}


def qualified_name(service_name: str, entity_name: str) -> str:
    """Return the registry key for ``entity_name`` inside ``service_name``."""
    if "." in entity_name or not service_name:
        return entity_name
    return f"{service_name}.{entity_name}"


def _scan_entity(entity: Any) -> tuple[str, list[str]]:
    """Return ``(entity name, translatable field names)`` for one entity.

    Raises:
        MetadataScanError: anything about the entity's metadata is unusable.
    """
    name = getattr(entity, "name", None)
    if not isinstance(name, str) or not name:
        raise MetadataScanError("<unknown>", "entity has no name")

    try:
        elements = entity.elements
        hits: list[str] = []
        for element in elements:
            element_name = getattr(element, "name", None)
            if not isinstance(element_name, str) or not element_name:
                raise MetadataScanError(name, f"element without a name: {element!r}")
            if bool(getattr(element, "translatable", False)) and element_name not in hits:
                hits.append(element_name)
    except MetadataScanError:
        raise
    except Exception as exc:
        raise MetadataScanError(name, str(exc) or type(exc).__name__) from exc

    return name, hits


def build_registry(services: Iterable[Any]) -> TranslationRegistry:
    """Scan ``services`` and build the translation registry.

    Args:
        services: Objects with a ``name`` and an iterable ``entities``;
                  entities have a ``name`` and iterable ``elements``;
                  elements satisfy ``HasTranslatableFlag``.

    Returns:
        The immutable registry.

    Raises:
        RegistryBuildError: ``services`` could not be iterated at all.  A
                            service whose entity list is unreadable is
                            logged and skipped.
    """
    entries: dict[str, list[str]] = {}
    scanned = 0
    skipped = 0

    try:
        service_list = list(services)
    except Exception as exc:
        raise RegistryBuildError(f"cannot read service metadata: {exc}") from exc

    for service in service_list:
        service_name = str(getattr(service, "name", "") or "")
        try:
            entities = list(service.entities)
        except Exception as exc:
            skipped += 1
            failure = MetadataScanError(service_name or "<unknown>", f"cannot read entities: {exc}")
            logger.warning("Skipping service during translation scan: %s", failure)
            continue

        for entity in entities:
            scanned += 1
            try:
                entity_name, hits = _scan_entity(entity)
            except MetadataScanError as exc:
                skipped += 1
                logger.warning("Skipping entity during translation scan: %s", exc)
                continue

            if not hits:
                continue

            key = qualified_name(service_name, entity_name)
            existing = entries.setdefault(key, [])
            existing.extend(f for f in hits if f not in existing)
            logger.debug("Translatable fields for %s: %s", key, ", ".join(hits))

    registry = TranslationRegistry({k: tuple(v) for k, v in entries.items()})
    logger.info(
        "Translation registry built: %d of %d entities have translatable fields (%d skipped)",
        len(registry),
        scanned,
        skipped,
    )
    return registry
