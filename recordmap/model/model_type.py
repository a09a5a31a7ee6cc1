"""
Model types.

A ModelType binds an immutable ModelDefinition to a storage adapter and
owns the identity map of its records. It exposes the class-level
operations: find, fetch, load, all, create, clear.

Usage:
    Post = ModelType(definition, storage=MemoryStorage())

    post = await Post.create({"title": "Hello"})
    same = await Post.fetch(post.id)
    assert same is post

    Post.find(3, lambda error, record: ...)   # callback style
"""

from __future__ import annotations

import asyncio
from typing import Any, Coroutine, Mapping

from recordmap.core.config import ConcurrencyPolicy
from recordmap.core.exceptions import (
    NotFoundError,
    RecordMapError,
    UsageError,
    log_error,
    wrap_storage_error,
)
from recordmap.core.logging_config import get_logger, log_context
from recordmap.encoding.pipeline import TransformPipeline
from recordmap.identity import IdentityMap
from recordmap.model.callbacks import Callback, deliver
from recordmap.model.definition import ModelDefinition
from recordmap.model.record import Record
from recordmap.storage.adapter import StorageAdapter
from recordmap.validation.engine import ValidationEngine

logger = get_logger(__name__)


def _ignore(error: RecordMapError | None, result: Any) -> None:
    return None


class ModelType:
    """Class-level orchestrator for one kind of record."""

    def __init__(self, definition: ModelDefinition, storage: StorageAdapter | None = None):
        self.definition = definition
        self.storage = storage
        self.pipeline = TransformPipeline(definition.encoders, definition.primary_key)
        self.validation = ValidationEngine(definition.validators)
        self.identity_map = IdentityMap(
            self._build,
            merge_policy=definition.merge_policy,
            name=definition.name,
        )
        self._background: set[asyncio.Task] = set()

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def primary_key(self) -> str:
        return self.definition.primary_key

    @property
    def storage_key(self) -> str | None:
        return self.definition.storage_key

    @property
    def concurrency_policy(self) -> ConcurrencyPolicy:
        return self.definition.concurrency_policy

    @property
    def loaded(self) -> list[Record]:
        """Records currently in the identity map, in insertion order."""
        return self.identity_map.all()

    @property
    def first(self) -> Record | None:
        records = self.identity_map.all()
        return records[0] if records else None

    @property
    def last(self) -> Record | None:
        records = self.identity_map.all()
        return records[-1] if records else None

    # ---- construction -----------------------------------------------------

    def new(self, attributes: Mapping[str, Any] | None = None, **kwargs: Any) -> Record:
        """Construct a record without touching storage or the identity map."""
        return Record(self, {**(attributes or {}), **kwargs})

    __call__ = new

    def _build(self, primary_key_value: Any) -> Record:
        if primary_key_value is None:
            return Record(self)
        return Record(self, {self.primary_key: primary_key_value})

    def get(self, record_id: Any) -> Record | None:
        """Identity-map lookup only; never reaches storage."""
        return self.identity_map.get(record_id)

    def create_from_json(self, raw: Mapping[str, Any]) -> Record:
        """Decode raw data and merge it into the identity map."""
        return self._materialize(raw)

    def require_storage(self) -> StorageAdapter:
        if self.storage is None:
            raise UsageError(
                f"{self.name} has no storage adapter and cannot persist",
                details={"model": self.name},
            )
        return self.storage

    # ---- class-level operations ------------------------------------------

    def find(
        self,
        record_id: Any,
        callback: Callback | None = None,
        options: dict[str, Any] | None = None,
    ) -> Record:
        """
        Start reading one record; deliver the canonical record to ``callback``.

        Returns a transient record immediately. It is not guaranteed to be
        the instance delivered to the callback, so bind to the callback
        argument.

        Raises:
            UsageError: No callback, no primary key, no storage, or no running loop
        """
        if callback is None:
            raise UsageError(f"{self.name}.find requires a callback")
        if record_id is None:
            raise UsageError(f"{self.name}.find requires a primary key value")
        self.require_storage()
        loop = self._running_loop("find")

        transient = self._build(record_id)
        self._spawn(loop, deliver(transient.load(options or {}), callback), "find")
        return transient

    async def fetch(self, record_id: Any, options: dict[str, Any] | None = None) -> Record:
        """Read one record and return the canonical instance."""
        if record_id is None:
            raise UsageError(f"{self.name}.fetch requires a primary key value")
        self.require_storage()
        transient = self._build(record_id)
        return await transient.load(options or {})

    async def load(
        self,
        options: dict[str, Any] | None = None,
        callback: Callback | None = None,
    ) -> list[Record] | None:
        """
        Read many records; ``options`` minus the adapter's ``option_keys`` is the query.

        Resolves to the canonical records in the order the adapter returned
        them; an empty result is an empty list.
        """
        return await deliver(self._load_all(options or {}), callback)

    def all(self, callback: Callback | None = None) -> list[Record]:
        """
        Return the current identity-map membership and refresh it in the background.

        The background load may finish before or after the caller looks at
        the returned list; ``callback`` receives its outcome.
        """
        records = self.identity_map.all()
        if self.storage is None:
            logger.debug(f"{self.name}.all: no storage adapter, returning loaded records only")
            return records
        loop = self._running_loop("all")
        self._spawn(loop, self.load(callback=callback or _ignore), "all")
        return records

    async def create(
        self,
        attributes: Mapping[str, Any] | None = None,
        callback: Callback | None = None,
        options: dict[str, Any] | None = None,
    ) -> Record | None:
        """Construct a new record and save it."""
        record = self.new(attributes)
        return await record.save(options, callback)

    async def find_or_create(
        self,
        attributes: Mapping[str, Any],
        callback: Callback | None = None,
    ) -> Record | None:
        """Fetch the record named by the primary key in ``attributes``, creating it if absent."""
        async def run() -> Record:
            record_id = attributes.get(self.primary_key)
            if record_id is not None:
                try:
                    return await self.fetch(record_id)
                except NotFoundError:
                    logger.debug(f"{self.name} {record_id!r} not found, creating")
            return await self.new(attributes).save()

        return await deliver(run(), callback)

    def clear(self) -> None:
        """Empty the identity map; storage is untouched."""
        self.identity_map.clear()

    async def wait_for_background(self) -> None:
        """Wait until every find/all task started so far has finished."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # ---- internals --------------------------------------------------------

    async def _load_all(self, options: dict[str, Any]) -> list[Record]:
        storage = self.require_storage()
        with log_context(model=self.name, operation="load"):
            try:
                query = {k: v for k, v in options.items() if k not in storage.option_keys}
                raw = await storage.read(self, query or None, options)
            except Exception as e:
                error = wrap_storage_error(e, "read", self.storage_key)
                log_error(error, operation=self.name)
                raise error from e

            if raw is None:
                rows: list[Any] = []
            elif isinstance(raw, Mapping):
                rows = [raw]
            else:
                rows = list(raw)

            try:
                records = [self._materialize(row) for row in rows]
            except RecordMapError as e:
                log_error(e, operation=self.name)
                raise

            logger.debug_with_context(f"Loaded {len(records)} {self.name} record(s)")
            return records

    def _materialize(self, raw: Mapping[str, Any]) -> Record:
        record = Record(self)
        decoded = self.pipeline.decode(raw, record)
        canonical = self.identity_map.ensure(
            decoded.get(self.primary_key),
            attributes=decoded,
            record=record,
        )
        if canonical.id is not None:
            canonical._settle_from_storage()
        return canonical

    def _running_loop(self, operation: str) -> asyncio.AbstractEventLoop:
        try:
            return asyncio.get_running_loop()
        except RuntimeError as e:
            raise UsageError(f"{self.name}.{operation} requires a running event loop") from e

    def _spawn(
        self,
        loop: asyncio.AbstractEventLoop,
        coro: Coroutine[Any, Any, Any],
        operation: str,
    ) -> asyncio.Task:
        task = loop.create_task(coro, name=f"recordmap:{self.name}.{operation}")
        self._background.add(task)
        task.add_done_callback(self._background_done)
        return task

    def _background_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(
                f"Background {task.get_name()} failed: {error!r}",
                exc_info=(type(error), error, error.__traceback__),
            )

    def __repr__(self) -> str:
        return f"ModelType({self.name!r}, loaded={len(self.identity_map)})"
