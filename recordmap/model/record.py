"""
Record lifecycle.

A Record holds the application-land attributes of one backend record,
tracks which keys changed since the last successful sync, and sequences
load/save/destroy against the storage adapter of its model type.

States:
    new         constructed without a primary key, never persisted
    unloaded    constructed from a bare primary key, nothing fetched yet
    loading     read in flight
    loaded      in sync with storage (dirtiness is tracked by dirty_keys)
    validating  save is running the validators
    saving      create/update in flight
    destroying  destroy in flight
    destroyed   removed from storage and from the identity map
    error       last operation failed; the record can retry
"""

from __future__ import annotations

import asyncio
import itertools
from contextlib import asynccontextmanager
from enum import Enum
from typing import TYPE_CHECKING, Any, AsyncIterator, Mapping

from recordmap.core.config import ConcurrencyPolicy, MergePolicy
from recordmap.core.exceptions import (
    ConcurrentOperationError,
    InvalidStateError,
    NotFoundError,
    RecordMapError,
    UsageError,
    ValidationFailedError,
    log_error,
    wrap_storage_error,
)
from recordmap.core.logging_config import get_logger, log_context
from recordmap.model.callbacks import Callback, deliver
from recordmap.validation.errors import ErrorsSet

if TYPE_CHECKING:
    from recordmap.model.model_type import ModelType

logger = get_logger(__name__)


class RecordState(str, Enum):
    """Lifecycle states of a record."""
    UNLOADED = "unloaded"
    NEW = "new"
    LOADING = "loading"
    LOADED = "loaded"
    VALIDATING = "validating"
    SAVING = "saving"
    DESTROYING = "destroying"
    DESTROYED = "destroyed"
    ERROR = "error"


_SETTLED = {RecordState.NEW, RecordState.UNLOADED, RecordState.LOADED, RecordState.ERROR}

TRANSITIONS: dict[RecordState, set[RecordState]] = {
    RecordState.LOADING: _SETTLED,
    RecordState.VALIDATING: _SETTLED,
    RecordState.SAVING: {RecordState.VALIDATING},
    RecordState.DESTROYING: _SETTLED,
    RecordState.LOADED: {RecordState.LOADING, RecordState.SAVING, *_SETTLED},
    RecordState.DESTROYED: {RecordState.DESTROYING, RecordState.NEW, RecordState.ERROR},
    RecordState.ERROR: {
        RecordState.LOADING,
        RecordState.VALIDATING,
        RecordState.SAVING,
        RecordState.DESTROYING,
        *_SETTLED,
    },
}


class Record:
    """One in-memory instance of a backend record."""

    def __init__(self, model: ModelType, attributes: Mapping[str, Any] | None = None):
        self.model = model
        self._attributes: dict[str, Any] = {}
        self._changes: dict[str, int] = {}
        self._generation = itertools.count(1)
        self._persisted = False
        self._lock = asyncio.Lock()
        self.errors = ErrorsSet()
        self.last_error: RecordMapError | None = None

        for key, value in (attributes or {}).items():
            self._attributes[key] = value
            if key != model.primary_key:
                self._touch(key)

        # A bare primary key names an existing record; anything else is new,
        # even with a client-assigned key.
        bare_key = self.id is not None and set(self._attributes) == {model.primary_key}
        self.state = RecordState.UNLOADED if bare_key else RecordState.NEW
        self._constructed_new = not bare_key

    # ---- attributes -------------------------------------------------------

    @property
    def id(self) -> Any:
        return self._attributes.get(self.model.primary_key)

    @id.setter
    def id(self, value: Any) -> None:
        self.set(self.model.primary_key, value)

    @property
    def attributes(self) -> dict[str, Any]:
        return dict(self._attributes)

    @property
    def dirty_keys(self) -> set[str]:
        return set(self._changes)

    @property
    def is_dirty(self) -> bool:
        return bool(self._changes)

    @property
    def is_new(self) -> bool:
        """True until the record has been persisted; saving a new record creates it."""
        if self.id is None:
            return True
        return self._constructed_new and not self._persisted

    @property
    def is_persisted(self) -> bool:
        return self._persisted

    @property
    def is_valid(self) -> bool:
        """Outcome of the most recent validation."""
        return not self.errors

    def get(self, key: str, default: Any = None) -> Any:
        return self._attributes.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Set an attribute and mark it dirty; the state does not change."""
        if key == self.model.primary_key and self._persisted and value != self.id:
            raise UsageError(
                f"Cannot change the primary key of a persisted {self.model.name} record",
                details={"model": self.model.name, "id": self.id},
            )
        self._attributes[key] = value
        self._touch(key)

    def update_attributes(self, attributes: Mapping[str, Any]) -> Record:
        for key, value in attributes.items():
            self.set(key, value)
        return self

    def __getitem__(self, key: str) -> Any:
        return self._attributes[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self.set(key, value)

    def __contains__(self, key: object) -> bool:
        return key in self._attributes

    def apply_decoded(
        self,
        attributes: Mapping[str, Any],
        policy: MergePolicy = MergePolicy.OVERWRITE,
    ) -> None:
        """
        Merge freshly decoded attributes without dirtying them.

        OVERWRITE replaces local values and forgets their pending changes;
        PRESERVE_DIRTY leaves keys in ``dirty_keys`` untouched.
        """
        for key, value in attributes.items():
            if policy is MergePolicy.PRESERVE_DIRTY and key in self._changes:
                continue
            self._attributes[key] = value
            self._changes.pop(key, None)

    def _touch(self, key: str) -> None:
        self._changes[key] = next(self._generation)

    # ---- encoding ---------------------------------------------------------

    def to_json(self) -> dict[str, Any]:
        """Encode the current attributes for storage."""
        return self.model.pipeline.encode(self._attributes, self)

    def from_json(self, raw: Mapping[str, Any]) -> Record:
        """Decode ``raw`` onto this record, overwriting without dirtying."""
        self.apply_decoded(self.model.pipeline.decode(raw, self))
        return self

    # ---- operations -------------------------------------------------------

    async def validate(self, callback: Callback | None = None) -> bool:
        """
        Run every validator against this record.

        The callback receives ``(None, record)`` once all rules finished;
        validity is read from ``record.errors``.
        """
        async def run() -> Record:
            await self.model.validation.validate(self)
            return self

        await deliver(run(), callback)
        return not self.errors

    async def load(self, options: dict[str, Any] | None = None, callback: Callback | None = None) -> Record | None:
        """Read this record from storage; resolves to the canonical record."""
        return await deliver(self._load(options or {}), callback)

    reload = load

    async def save(self, options: dict[str, Any] | None = None, callback: Callback | None = None) -> Record | None:
        """Validate, then create or update; resolves to the canonical record."""
        return await deliver(self._save(options or {}), callback)

    async def destroy(self, options: dict[str, Any] | None = None, callback: Callback | None = None) -> Record | None:
        """Destroy in storage and drop from the identity map."""
        return await deliver(self._destroy(options or {}), callback)

    async def _load(self, options: dict[str, Any]) -> Record:
        storage = self.model.require_storage()
        if self.id is None:
            raise InvalidStateError(
                f"Cannot load a {self.model.name} record without a primary key",
                state=self.state.value,
            )

        async with self._guard("load"):
            self._transition(RecordState.LOADING)
            with log_context(model=self.model.name, record_id=self.id, operation="load"):
                try:
                    raw = await storage.read(self.model, self.id, options)
                except Exception as e:
                    raise self._fail(wrap_storage_error(e, "read", self.model.storage_key)) from e

                raw = _single(raw)
                if raw is None:
                    raise self._fail(NotFoundError(
                        f"{self.model.name} {self.id!r} not found",
                        model=self.model.name,
                        record_id=self.id,
                    ))

                try:
                    decoded = self.model.pipeline.decode(raw, self)
                except RecordMapError as e:
                    raise self._fail(e)

                canonical = self.model.identity_map.ensure(
                    decoded.get(self.model.primary_key, self.id),
                    attributes=decoded,
                    record=self,
                )
                if canonical is not self:
                    self.apply_decoded(decoded)
                    canonical._settle_from_storage()
                self._mark_loaded()
                logger.debug_with_context(f"Loaded {self.model.name} {self.id!r}")
                return canonical

    async def _save(self, options: dict[str, Any]) -> Record:
        storage = self.model.require_storage()
        self._reject_if_destroyed("save")

        async with self._guard("save"):
            self._reject_if_destroyed("save")
            self._transition(RecordState.VALIDATING)
            with log_context(model=self.model.name, record_id=self.id, operation="save"):
                try:
                    valid = await self.model.validation.validate(self)
                except RecordMapError as e:
                    raise self._fail(e)
                if not valid:
                    raise self._fail(ValidationFailedError(self.errors, model=self.model.name))

                try:
                    encoded = self.to_json()
                except RecordMapError as e:
                    raise self._fail(e)

                sent = dict(self._changes)
                creating = self.is_new
                operation = "create" if creating else "update"
                self._transition(RecordState.SAVING)
                try:
                    if creating:
                        raw = await storage.create(self.model, encoded, options)
                    else:
                        raw = await storage.update(self.model, self.id, encoded, options)
                except Exception as e:
                    raise self._fail(wrap_storage_error(e, operation, self.model.storage_key)) from e

                raw = _single(raw)
                if creating:
                    # The row exists now; a retry after a failed decode must update it.
                    self._persisted = True
                    try:
                        self._install_primary_key(raw)
                    except RecordMapError as e:
                        raise self._fail(e)

                try:
                    decoded = self.model.pipeline.decode(raw, self) if raw else {}
                except RecordMapError as e:
                    raise self._fail(e)

                changed_in_flight = {
                    key for key, generation in self._changes.items()
                    if sent.get(key) != generation
                }
                self.apply_decoded(
                    {k: v for k, v in decoded.items() if k not in changed_in_flight}
                )
                for key in sent:
                    if key not in changed_in_flight:
                        self._changes.pop(key, None)

                if self.id is None:
                    logger.warning(
                        f"{self.model.name} {operation} returned no primary key; "
                        "record stays unmapped"
                    )
                canonical = self.model.identity_map.ensure(self.id, record=self)
                if canonical is not self:
                    canonical.apply_decoded(self._attributes)
                    canonical._settle_from_storage()
                self._mark_loaded()
                logger.debug_with_context(f"Saved ({operation}) {self.model.name} {self.id!r}")
                return canonical

    async def _destroy(self, options: dict[str, Any]) -> Record:
        storage = self.model.require_storage()
        self._reject_if_destroyed("destroy")

        async with self._guard("destroy"):
            self._reject_if_destroyed("destroy")
            if self.is_new:
                self._transition(RecordState.DESTROYED)
                logger.debug(f"Discarded unsaved {self.model.name} record")
                return self

            self._transition(RecordState.DESTROYING)
            with log_context(model=self.model.name, record_id=self.id, operation="destroy"):
                try:
                    await storage.destroy(self.model, self.id, options)
                except Exception as e:
                    raise self._fail(wrap_storage_error(e, "destroy", self.model.storage_key)) from e

                self.model.identity_map.remove(self.id)
                self._transition(RecordState.DESTROYED)
                logger.debug_with_context(f"Destroyed {self.model.name} {self.id!r}")
                return self

    # ---- state machine ----------------------------------------------------

    @asynccontextmanager
    async def _guard(self, operation: str) -> AsyncIterator[None]:
        if self._lock.locked() and self.model.concurrency_policy is ConcurrencyPolicy.REJECT:
            raise ConcurrentOperationError(
                f"Cannot {operation} {self.model.name} {self.id!r} while another operation is in flight",
                details={"model": self.model.name, "state": self.state.value},
            )
        async with self._lock:
            yield

    def _transition(self, target: RecordState) -> None:
        if self.state not in TRANSITIONS[target]:
            raise InvalidStateError(
                f"{self.model.name} record cannot go from {self.state.value} to {target.value}",
                state=self.state.value,
            )
        logger.debug(f"{self.model.name} {self.id!r}: {self.state.value} -> {target.value}")
        self.state = target

    def _mark_loaded(self) -> None:
        self._persisted = True
        self.last_error = None
        self.state = RecordState.LOADED

    def _settle_from_storage(self) -> None:
        """Mark loaded after another instance synced it, unless busy with its own operation."""
        self._persisted = True
        if self.state in _SETTLED:
            self.state = RecordState.LOADED

    def _install_primary_key(self, raw: Any) -> None:
        if self.id is not None or not isinstance(raw, Mapping):
            return
        key = self.model.pipeline.decode_primary_key(raw, self)
        if key is not None:
            self._attributes[self.model.primary_key] = key

    def _fail(self, error: RecordMapError) -> RecordMapError:
        self.state = RecordState.ERROR
        self.last_error = error
        log_error(error, operation=self.model.name)
        return error

    def _reject_if_destroyed(self, operation: str) -> None:
        if self.state is RecordState.DESTROYED:
            raise InvalidStateError(
                f"Cannot {operation} a destroyed {self.model.name} record",
                state=self.state.value,
            )

    def __repr__(self) -> str:
        return f"<{self.model.name} id={self.id!r} state={self.state.value}>"


def _single(raw: Any) -> Any:
    """Unwrap a single-element list some adapters return for id reads."""
    if isinstance(raw, (list, tuple)):
        return raw[0] if raw else None
    return raw
