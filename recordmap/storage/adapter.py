"""
Storage adapter contract.

The core never stores anything itself; every create/read/update/destroy
goes through an object implementing this interface. All methods are
coroutines and report failure by raising. The core wraps any exception
that is not already a RecordMapError in StorageError and never retries.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, ClassVar, Mapping, Union

if TYPE_CHECKING:
    from recordmap.model.model_type import ModelType

RawRecord = Mapping[str, Any]
Query = Union[Mapping[str, Any], None]


class StorageAdapter(ABC):
    """
    Pluggable backend connector for model types.

    ``option_keys`` names the options this adapter consumes itself;
    ModelType.load leaves them out of the query it passes to ``read``.
    """

    option_keys: ClassVar[frozenset[str]] = frozenset()

    @abstractmethod
    async def create(
        self,
        model: ModelType,
        encoded: RawRecord,
        options: Mapping[str, Any],
    ) -> RawRecord | None:
        """Persist a new record; return its stored form (including the primary key)."""

    @abstractmethod
    async def read(
        self,
        model: ModelType,
        id_or_query: Any,
        options: Mapping[str, Any],
    ) -> RawRecord | list[RawRecord] | None:
        """
        Read by primary key or by query.

        A scalar primary key returns one raw record, or None when nothing
        matches (raising NotFoundError is equally acceptable). A mapping or
        None is a query and returns a list of raw records.
        """

    @abstractmethod
    async def update(
        self,
        model: ModelType,
        record_id: Any,
        encoded: RawRecord,
        options: Mapping[str, Any],
    ) -> RawRecord | None:
        """Persist changes to an existing record; return its stored form or None."""

    @abstractmethod
    async def destroy(
        self,
        model: ModelType,
        record_id: Any,
        options: Mapping[str, Any],
    ) -> None:
        """Remove a record."""

    @staticmethod
    def is_query(id_or_query: Any) -> bool:
        return id_or_query is None or isinstance(id_or_query, Mapping)
