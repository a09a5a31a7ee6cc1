"""
In-memory storage adapter.

Reference implementation of the StorageAdapter contract, keeping raw
records in dictionaries namespaced by the model's storage key (or its
name). Used by tests and examples; it survives only as long as the
process.
"""

from __future__ import annotations

import asyncio
import copy
import itertools
import logging
from collections import defaultdict
from typing import TYPE_CHECKING, Any, Mapping

from recordmap.core.exceptions import NotFoundError
from recordmap.storage.adapter import RawRecord, StorageAdapter

if TYPE_CHECKING:
    from recordmap.model.model_type import ModelType

logger = logging.getLogger(__name__)


class MemoryStorage(StorageAdapter):
    """
    Dictionary-backed adapter with auto-incrementing integer keys.

    Args:
        latency: Seconds every call sleeps before answering; an
            ``options["latency"]`` value overrides it per call so tests can
            make completions arrive out of submission order.
    """

    option_keys = frozenset({"latency"})

    def __init__(self, latency: float = 0.0):
        self.latency = latency
        self._tables: dict[str, dict[Any, dict[str, Any]]] = defaultdict(dict)
        self._sequences: dict[str, itertools.count] = defaultdict(lambda: itertools.count(1))
        self._failures: dict[str, list[BaseException]] = defaultdict(list)
        self.calls: list[tuple[str, str, Any]] = []

    def namespace(self, model: ModelType) -> str:
        return model.storage_key or model.name

    def seed(self, model: ModelType, *records: Mapping[str, Any]) -> list[dict[str, Any]]:
        """Insert raw records directly, assigning keys where missing."""
        table = self._tables[self.namespace(model)]
        stored = []
        for raw in records:
            row = dict(raw)
            if row.get(model.primary_key) is None:
                row[model.primary_key] = self._next_id(model, table)
            table[row[model.primary_key]] = row
            stored.append(copy.deepcopy(row))
        return stored

    def rows(self, model: ModelType) -> list[dict[str, Any]]:
        return [copy.deepcopy(row) for row in self._tables[self.namespace(model)].values()]

    def fail_next(self, operation: str, error: BaseException) -> None:
        """Make the next ``operation`` call (create/read/update/destroy) raise ``error``."""
        self._failures[operation].append(error)

    async def create(
        self,
        model: ModelType,
        encoded: RawRecord,
        options: Mapping[str, Any],
    ) -> RawRecord | None:
        await self._enter("create", model, None, options)
        table = self._tables[self.namespace(model)]
        row = dict(encoded)
        if row.get(model.primary_key) is None:
            row[model.primary_key] = self._next_id(model, table)
        table[row[model.primary_key]] = row
        return copy.deepcopy(row)

    async def read(
        self,
        model: ModelType,
        id_or_query: Any,
        options: Mapping[str, Any],
    ) -> RawRecord | list[RawRecord] | None:
        await self._enter("read", model, id_or_query, options)
        table = self._tables[self.namespace(model)]

        if self.is_query(id_or_query):
            query = id_or_query or {}
            return [
                copy.deepcopy(row)
                for row in table.values()
                if all(row.get(key) == value for key, value in query.items())
            ]

        row = table.get(id_or_query)
        return copy.deepcopy(row) if row is not None else None

    async def update(
        self,
        model: ModelType,
        record_id: Any,
        encoded: RawRecord,
        options: Mapping[str, Any],
    ) -> RawRecord | None:
        await self._enter("update", model, record_id, options)
        table = self._tables[self.namespace(model)]
        if record_id not in table:
            raise NotFoundError(
                f"{model.name} {record_id!r} not found",
                model=model.name,
                record_id=record_id,
            )
        table[record_id].update(encoded)
        return copy.deepcopy(table[record_id])

    async def destroy(
        self,
        model: ModelType,
        record_id: Any,
        options: Mapping[str, Any],
    ) -> None:
        await self._enter("destroy", model, record_id, options)
        table = self._tables[self.namespace(model)]
        if table.pop(record_id, None) is None:
            raise NotFoundError(
                f"{model.name} {record_id!r} not found",
                model=model.name,
                record_id=record_id,
            )

    async def _enter(
        self,
        operation: str,
        model: ModelType,
        target: Any,
        options: Mapping[str, Any],
    ) -> None:
        self.calls.append((operation, self.namespace(model), target))
        latency = (options or {}).get("latency", self.latency)
        if latency:
            await asyncio.sleep(latency)
        else:
            await asyncio.sleep(0)

        pending = self._failures.get(operation)
        if pending:
            error = pending.pop(0)
            logger.debug(f"Injected {operation} failure for {self.namespace(model)}: {error!r}")
            raise error

    def _next_id(self, model: ModelType, table: dict[Any, Any]) -> int:
        sequence = self._sequences[self.namespace(model)]
        candidate = next(sequence)
        while candidate in table:
            candidate = next(sequence)
        return candidate
