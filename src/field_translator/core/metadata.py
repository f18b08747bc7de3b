"""
Entity metadata boundary.

The serving layer owns its own representation of services, entities and
elements.  The translator only ever asks one question of an element: *is it
marked for translation?*  This module pins that question down as the
``HasTranslatableFlag`` capability and provides immutable descriptors plus
adapters, so the rest of the package never pokes at foreign metadata
directly.

=============================================================================
ADAPTATION RULES
=============================================================================

An element read from raw metadata (dict or foreign object) is translatable
when any of these annotation spellings is present and truthy:

    translatable      @translatable      @Translatable

Anything else (missing key, ``False``, ``None``, ``0``, or a string such as
``"false"``, ``"no"``, ``"off"``, ``"0"``) means "not marked".

Raw metadata shape accepted by ``service_from_dict`` / ``load_services``:

    services:
      - name: CatalogService
        entities:
          - name: Books
            elements:
              - name: title
              - name: description
                "@translatable": true

``elements`` may also be a mapping ``{element_name: {annotations...}}``,
which keeps declaration order because YAML and JSON mappings load in order.
``entities`` accepts the same mapping form ``{entity_name: {elements: ...}}``.
=============================================================================
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import yaml

TRANSLATABLE_ANNOTATIONS = ("translatable", "@translatable", "@Translatable")

_FALSE_STRINGS = frozenset({"", "false", "0", "no", "off"})


# =============================================================================
# CAPABILITY INTERFACE
# =============================================================================


@runtime_checkable
class HasTranslatableFlag(Protocol):
    """Anything with a ``name`` and a boolean ``translatable`` attribute."""

    name: str
    translatable: bool


# =============================================================================
# DESCRIPTORS
# =============================================================================


@dataclass(frozen=True)
class ElementDescriptor:
    """A single field of an entity."""

    name: str
    translatable: bool = False
    annotations: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)


@dataclass(frozen=True)
class EntityDescriptor:
    """A queryable entity and its elements, in declaration order."""

    name: str
    elements: tuple[HasTranslatableFlag, ...] = ()


@dataclass(frozen=True)
class ServiceDescriptor:
    """A service exposing one or more entities."""

    name: str
    entities: tuple[EntityDescriptor, ...] = ()


# =============================================================================
# ADAPTERS
# =============================================================================


def _flag_is_set(value: Any) -> bool:
    # Quoted YAML/JSON flags arrive as strings
    if isinstance(value, str):
        return value.strip().lower() not in _FALSE_STRINGS
    return bool(value)


def is_marked_translatable(annotations: Mapping[str, Any]) -> bool:
    """Return ``True`` if any recognised translation annotation is truthy.

    String values are read as flags: ``"false"``, ``"0"``, ``"no"``,
    ``"off"`` and the empty string do not mark an element.
    """
    return any(_flag_is_set(annotations.get(key)) for key in TRANSLATABLE_ANNOTATIONS)


def adapt_element(raw: Any, name: str | None = None) -> HasTranslatableFlag:
    """Adapt one raw element into something satisfying ``HasTranslatableFlag``.

    Accepts an object that already satisfies the protocol (returned as-is),
    a mapping of annotations, or a foreign object with ``name`` and
    ``translatable`` attributes.

    Args:
        raw:  The element metadata.
        name: Element name when the caller knows it from context (mapping
              form of ``elements``).  Overrides any ``name`` inside ``raw``.

    Raises:
        TypeError:  ``raw`` has no usable shape.
        ValueError: The element has no name.
    """
    if name is None and isinstance(raw, HasTranslatableFlag):
        return raw

    if raw is None:
        raw = {}

    if isinstance(raw, Mapping):
        element_name = name if name is not None else raw.get("name")
        if not element_name:
            raise ValueError("element has no name")
        return ElementDescriptor(
            name=str(element_name),
            translatable=is_marked_translatable(raw),
            annotations=dict(raw),
        )

    element_name = name if name is not None else getattr(raw, "name", None)
    if not element_name:
        raise TypeError(f"unsupported element metadata: {raw!r}")
    flags = {key: getattr(raw, key, None) for key in ("translatable",)}
    return ElementDescriptor(name=str(element_name), translatable=is_marked_translatable(flags))


def entity_from_dict(data: Mapping[str, Any]) -> EntityDescriptor:
    """Build an ``EntityDescriptor`` from raw metadata.

    Raises:
        ValueError: missing name or malformed elements.
        TypeError:  ``elements`` is neither a list nor a mapping.
    """
    if not isinstance(data, Mapping):
        raise TypeError(f"entity metadata must be a mapping, got {type(data).__name__}")
    entity_name = data.get("name")
    if not entity_name:
        raise ValueError("entity has no name")

    raw_elements = data.get("elements", ())
    if isinstance(raw_elements, Mapping):
        elements = tuple(adapt_element(meta, name=str(key)) for key, meta in raw_elements.items())
    elif isinstance(raw_elements, Iterable) and not isinstance(raw_elements, str | bytes):
        elements = tuple(adapt_element(meta) for meta in raw_elements)
    else:
        raise TypeError(f"elements of {entity_name!r} must be a list or mapping")

    return EntityDescriptor(name=str(entity_name), elements=elements)


def service_from_dict(data: Mapping[str, Any]) -> ServiceDescriptor:
    """Build a ``ServiceDescriptor`` from raw metadata.

    Entities are adapted lazily by the Registry Builder, not here, so that
    one malformed entity does not prevent the service from loading.  Raw
    entity dicts are therefore kept as ``_RawEntity`` wrappers.

    ``entities`` may be a list or a mapping ``{entity_name: {elements...}}``,
    the same two forms ``elements`` accepts.

    Raises:
        ValueError: ``data`` is not a mapping or ``entities`` is neither a
                    list nor a mapping.
    """
    if not isinstance(data, Mapping):
        raise ValueError(f"service metadata must be a mapping, got {type(data).__name__}")
    service_name = data.get("name") or "default"
    raw_entities = data.get("entities") or ()
    if isinstance(raw_entities, Mapping):
        raw_entities = [_named_entity(key, meta) for key, meta in raw_entities.items()]
    elif not isinstance(raw_entities, Iterable) or isinstance(raw_entities, str | bytes):
        raise ValueError(f"entities of service {service_name!r} must be a list or mapping")
    return ServiceDescriptor(
        name=str(service_name),
        entities=tuple(_RawEntity(raw) for raw in raw_entities),  # type: ignore[misc]
    )


def _named_entity(key: Any, meta: Any) -> dict[str, Any]:
    """Entity metadata from the mapping form, named after its key.

    The value is either the entity's own mapping or directly its elements.
    """
    if meta is None:
        return {"name": str(key)}
    if isinstance(meta, Mapping):
        return {**meta, "name": str(key)}
    return {"name": str(key), "elements": meta}


class _RawEntity:
    """Defers entity adaptation until the registry scan touches it."""

    def __init__(self, raw: Any) -> None:
        self._raw = raw

    @property
    def name(self) -> str:
        if isinstance(self._raw, Mapping) and self._raw.get("name"):
            return str(self._raw["name"])
        return "<unknown>"

    @property
    def elements(self) -> tuple[HasTranslatableFlag, ...]:
        return entity_from_dict(self._raw).elements

    def __repr__(self) -> str:
        return f"_RawEntity(name={self.name!r})"


# =============================================================================
# FILE LOADER
# =============================================================================


def load_services(path: Path | str) -> list[ServiceDescriptor]:
    """Load service metadata from a YAML or JSON file.

    The document is either ``{"services": [...]}`` or a bare list of
    services.  ``.json`` files are parsed with ``json``; everything else
    with ``yaml.safe_load``.

    Raises:
        FileNotFoundError: ``path`` does not exist.
        ValueError:        the document is not valid YAML/JSON or has the
                           wrong top-level shape.
    """
    path = Path(path)
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix.lower() == ".json":
            document = json.loads(text)
        else:
            document = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ValueError(f"{path}: invalid YAML: {exc}") from exc

    if isinstance(document, Mapping):
        document = document.get("services", [])
    if not isinstance(document, list):
        raise ValueError(f"{path}: expected a list of services")

    return [service_from_dict(raw) for raw in document]
