"""Per-entity read interceptor.

``TranslationInterceptor`` is attached to the ``after:READ`` hook of one
entity.  It receives the batch of records a read produced and, before the
response leaves, rewrites every translatable field in place with its
translation.

Caller contract
---------------
``await interceptor(records)`` always returns the batch it was given
(same object, same order).  It never raises a translation failure: a field
whose translation failed keeps its original value and the failure is
logged as a ``FieldTranslationFailure``.  This is the graceful-degradation
guarantee - the translator never breaks a read.

Accepted batch shapes:

- a list (or other iterable) of dict records - translated and returned in
  original order; a non-list iterable is materialised into a list
- a single dict record - translated and returned
- ``None`` - returned unchanged

Scheduling
----------
Records are processed concurrently, one task per record.  Within a record,
fields are translated sequentially in binding order.  The process-wide bound
on backend calls is enforced by ``TranslationClient``; this class only fans
out.  Cancelling the read cancels the record tasks, which in turn releases
their hold on any shared in-flight backend call.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, MutableMapping
from dataclasses import dataclass
from typing import Any

from field_translator.config import TranslationConfig
from field_translator.errors import FieldTranslationFailure
from field_translator.translation.client import TranslationClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InterceptorBinding:
    """The entity an interceptor serves and the fields it rewrites.

    Frozen, with ``fields`` held as a tuple, so each interceptor owns its
    own list and nothing can change it after registration.
    """

    entity: str
    fields: tuple[str, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", tuple(self.fields))


def _needs_translation(record: MutableMapping[str, Any], field: str) -> bool:
    """Absent, ``None``, empty and non-string values are left alone."""
    value = record.get(field)
    return isinstance(value, str) and value != ""


class TranslationInterceptor:
    """Rewrites the bound fields of every record in a read batch."""

    def __init__(
        self,
        binding: InterceptorBinding,
        client: TranslationClient,
        config: TranslationConfig,
    ) -> None:
        self.binding = binding
        self.client = client
        self.config = config

    def __repr__(self) -> str:
        return f"TranslationInterceptor(entity={self.binding.entity!r}, fields={self.binding.fields!r})"

    async def __call__(self, records: Any) -> Any:
        if records is None:
            return None

        if isinstance(records, MutableMapping):
            await self._translate_record(0, records)
            return records

        if not isinstance(records, list):
            if not isinstance(records, Iterable):
                logger.warning(
                    "Ignoring read result of type %s for %s",
                    type(records).__name__,
                    self.binding.entity,
                )
                return records
            records = list(records)

        tasks = [
            self._translate_record(index, record)
            for index, record in enumerate(records)
            if isinstance(record, MutableMapping)
        ]
        if tasks:
            await asyncio.gather(*tasks)
        return records

    async def _translate_record(self, index: int, record: MutableMapping[str, Any]) -> None:
        for field in self.binding.fields:
            if not _needs_translation(record, field):
                continue
            original = record[field]
            try:
                record[field] = await self.client.get_translation(
                    original,
                    self.config.source_language,
                    self.config.target_language,
                )
            except Exception as exc:
                failure = FieldTranslationFailure(self.binding.entity, field, index, exc)
                logger.warning("%s", failure)
