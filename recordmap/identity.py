"""
Identity map.

Keeps one canonical Record per primary-key value for a single model type.
Records without a primary-key value are never registered.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, Iterator, Mapping

from recordmap.core.config import MergePolicy

if TYPE_CHECKING:
    from recordmap.model.record import Record

logger = logging.getLogger(__name__)


class IdentityMap:
    """
    Registry of live records for one model type, in insertion order.

    ``factory(primary_key_value)`` builds a record for a key the map has
    not seen yet.
    """

    def __init__(
        self,
        factory: Callable[[Any], Record],
        merge_policy: MergePolicy = MergePolicy.OVERWRITE,
        name: str = "",
    ):
        self._factory = factory
        self._records: dict[Any, Record] = {}
        self.merge_policy = merge_policy
        self.name = name

    def ensure(
        self,
        primary_key_value: Any,
        attributes: Mapping[str, Any] | None = None,
        record: Record | None = None,
    ) -> Record:
        """
        Return the canonical record for ``primary_key_value``.

        Args:
            primary_key_value: Key to resolve; None always yields a new unregistered record
            attributes: Decoded attributes to merge onto the resolved record
            record: Instance to register when the key is not mapped yet

        Returns:
            The single record registered under the key
        """
        if primary_key_value is None:
            candidate = record if record is not None else self._factory(None)
            if attributes:
                candidate.apply_decoded(attributes, self.merge_policy)
            return candidate

        existing = self._records.get(primary_key_value)
        if existing is not None:
            if attributes:
                existing.apply_decoded(attributes, self.merge_policy)
            if record is not None and record is not existing:
                logger.debug(
                    f"{self.name}: merged duplicate instance for key {primary_key_value!r}"
                )
            return existing

        candidate = record if record is not None else self._factory(primary_key_value)
        if attributes:
            candidate.apply_decoded(attributes, self.merge_policy)
        self._records[primary_key_value] = candidate
        logger.debug(f"{self.name}: registered key {primary_key_value!r}")
        return candidate

    def get(self, primary_key_value: Any) -> Record | None:
        if primary_key_value is None:
            return None
        return self._records.get(primary_key_value)

    def remove(self, primary_key_value: Any) -> None:
        if self._records.pop(primary_key_value, None) is not None:
            logger.debug(f"{self.name}: removed key {primary_key_value!r}")

    def clear(self) -> None:
        count = len(self._records)
        self._records.clear()
        logger.debug(f"{self.name}: cleared {count} record(s)")

    def all(self) -> list[Record]:
        return list(self._records.values())

    def __contains__(self, primary_key_value: object) -> bool:
        return primary_key_value in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[Record]:
        return iter(self.all())

    def __repr__(self) -> str:
        return f"IdentityMap({self.name!r}, size={len(self)})"
