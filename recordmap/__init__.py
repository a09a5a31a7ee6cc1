"""
recordmap - identity-mapped records over pluggable storage.

Maps backend records to in-memory Record objects, keeps exactly one
instance per primary key, and gives every model the same asynchronous
create/read/update/destroy contract whatever storage answers it.

Usage:
    from recordmap import MemoryStorage, ModelBuilder, ModelType

    definition = (
        ModelBuilder("post")
        .encode("title")
        .validate("title", presence=True)
        .build()
    )
    Post = ModelType(definition, storage=MemoryStorage())

    post = await Post.create({"title": "Hello"})
"""

import logging

from recordmap.core import (
    ConcurrencyPolicy,
    ConcurrentOperationError,
    DefinitionError,
    InvalidStateError,
    MergePolicy,
    NotFoundError,
    RecordMapError,
    RecordMapSettings,
    RuleError,
    StorageError,
    UsageError,
    ValidationFailedError,
    get_settings,
    set_settings,
    setup_logging,
)
from recordmap.encoding import EncodingRule, TransformPipeline
from recordmap.identity import IdentityMap
from recordmap.model import (
    DefinitionLoader,
    ModelBuilder,
    ModelDefinition,
    ModelType,
    Record,
    RecordState,
    load_definitions,
)
from recordmap.storage import MemoryStorage, StorageAdapter
from recordmap.validation import ErrorsSet, ValidationEngine, Validator, deferred_rule

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [
    "ConcurrencyPolicy",
    "ConcurrentOperationError",
    "DefinitionError",
    "InvalidStateError",
    "MergePolicy",
    "NotFoundError",
    "RecordMapError",
    "RecordMapSettings",
    "RuleError",
    "StorageError",
    "UsageError",
    "ValidationFailedError",
    "get_settings",
    "set_settings",
    "setup_logging",
    "EncodingRule",
    "TransformPipeline",
    "IdentityMap",
    "DefinitionLoader",
    "ModelBuilder",
    "ModelDefinition",
    "ModelType",
    "Record",
    "RecordState",
    "load_definitions",
    "MemoryStorage",
    "StorageAdapter",
    "ErrorsSet",
    "ValidationEngine",
    "Validator",
    "deferred_rule",
]
