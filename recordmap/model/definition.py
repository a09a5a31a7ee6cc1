"""
Model definitions.

A ModelDefinition is the immutable configuration of one model type: its
primary key, storage key, ordered encoding rules and ordered validation
rules. Definitions are assembled with ModelBuilder and never mutated
afterwards; a derived type starts from its parent's definition and may
only add to it.

Usage:
    post = (
        ModelBuilder("post")
        .storage_key("posts")
        .encode("title", "body")
        .encode("published_at", codec="datetime")
        .validate("title", presence=True, max_length=120)
        .build()
    )

    featured = ModelBuilder.extending(post, "featured_post").encode("rank", codec="int").build()
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from recordmap.core.config import ConcurrencyPolicy, MergePolicy, RecordMapSettings, get_settings
from recordmap.core.exceptions import DefinitionError
from recordmap.encoding.converters import get_codec
from recordmap.encoding.rules import DecodeSpec, EncodeSpec, EncodingRule
from recordmap.validation.engine import ValidationRule
from recordmap.validation.validators import CustomCheck, build_validators

DEFAULT_TIMESTAMP_KEYS = ("created_at", "updated_at")


@dataclass(frozen=True)
class ModelDefinition:
    """Immutable configuration of a model type."""

    name: str
    primary_key: str = "id"
    storage_key: str | None = None
    encoders: tuple[EncodingRule, ...] = ()
    validators: tuple[ValidationRule, ...] = ()
    merge_policy: MergePolicy = MergePolicy.OVERWRITE
    concurrency_policy: ConcurrencyPolicy = ConcurrencyPolicy.QUEUE
    extends: str | None = None
    lineage: tuple[str, ...] = field(default=(), compare=False)

    def encoder_for(self, key: str) -> EncodingRule | None:
        for rule in self.encoders:
            if rule.key == key:
                return rule
        return None

    @property
    def encoded_keys(self) -> list[str]:
        return [rule.key for rule in self.encoders]

    def is_a(self, name: str) -> bool:
        """True when this definition is ``name`` or derives from it."""
        return name == self.name or name in self.lineage

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "primary_key": self.primary_key,
            "storage_key": self.storage_key,
            "encoders": [rule.to_dict() for rule in self.encoders],
            "validators": [rule.to_dict() for rule in self.validators],
            "merge_policy": self.merge_policy.value,
            "concurrency_policy": self.concurrency_policy.value,
            "extends": self.extends,
        }


class ModelBuilder:
    """Step-by-step construction of a ModelDefinition."""

    def __init__(self, name: str, settings: RecordMapSettings | None = None):
        if not name:
            raise DefinitionError("A model definition needs a name")
        settings = settings or get_settings()
        self._name = name
        self._primary_key = settings.default_primary_key
        self._storage_key: str | None = None
        self._encoders: list[EncodingRule] = []
        self._validators: list[ValidationRule] = []
        self._merge_policy = settings.merge_policy
        self._concurrency_policy = settings.concurrency_policy
        self._parent: ModelDefinition | None = None

    @classmethod
    def extending(
        cls,
        parent: ModelDefinition,
        name: str,
        settings: RecordMapSettings | None = None,
    ) -> ModelBuilder:
        """Start a derived definition that inherits everything from ``parent``."""
        builder = cls(name, settings)
        builder._parent = parent
        builder._primary_key = parent.primary_key
        builder._storage_key = parent.storage_key
        builder._encoders = list(parent.encoders)
        builder._validators = list(parent.validators)
        builder._merge_policy = parent.merge_policy
        builder._concurrency_policy = parent.concurrency_policy
        return builder

    def primary_key(self, key: str, override: bool = False) -> ModelBuilder:
        if not key:
            raise DefinitionError("Primary key name cannot be empty")
        if self._parent and key != self._parent.primary_key and not override:
            raise DefinitionError(
                f"'{self._name}' would replace inherited primary key "
                f"'{self._parent.primary_key}' with '{key}'; pass override=True",
                details={"model": self._name},
            )
        self._primary_key = key
        return self

    def storage_key(self, key: str | None) -> ModelBuilder:
        self._storage_key = key
        return self

    def encode(
        self,
        *keys: str,
        encode: EncodeSpec = None,
        decode: DecodeSpec = None,
        as_key: str | None = None,
        codec: str | None = None,
        override: bool = False,
    ) -> ModelBuilder:
        """
        Register encoding rules for ``keys``.

        Args:
            keys: Attribute names
            encode: Encode function, None for identity, False to never send
            decode: Decode function, None for identity, False to never accept
            as_key: Storage-side key name (single key only)
            codec: Named codec supplying whichever direction was left as None
            override: Replace an existing rule for the same key

        Raises:
            DefinitionError: No keys, a duplicate key without override, or an unknown codec
        """
        if not keys:
            raise DefinitionError("encode() needs at least one key")
        if as_key and len(keys) > 1:
            raise DefinitionError("as_key can only be used with a single key")

        if codec is not None:
            named = get_codec(codec)
            if encode is None:
                encode = named.encode
            if decode is None:
                decode = named.decode

        for key in keys:
            rule = EncodingRule(key=key, encode=encode, decode=decode, as_key=as_key)
            self._add_encoder(rule, override)
        return self

    def encode_timestamps(self, *keys: str) -> ModelBuilder:
        """Encode timestamp keys (default created_at, updated_at) as ISO datetimes."""
        return self.encode(*(keys or DEFAULT_TIMESTAMP_KEYS), codec="datetime")

    def validate(
        self,
        *keys: str,
        check: CustomCheck | None = None,
        **options: Any,
    ) -> ModelBuilder:
        """
        Register validation rules for ``keys``.

        Built-in rules come from keyword options (``presence=True``,
        ``max_length=10``...); ``check`` adds a custom rule.
        """
        if not keys:
            raise DefinitionError("validate() needs at least one key")
        for validator in build_validators(check=check, **options):
            self._validators.append(ValidationRule(keys=tuple(keys), validator=validator))
        return self

    def merge_policy(self, policy: MergePolicy | str) -> ModelBuilder:
        self._merge_policy = MergePolicy(policy)
        return self

    def concurrency_policy(self, policy: ConcurrencyPolicy | str) -> ModelBuilder:
        self._concurrency_policy = ConcurrencyPolicy(policy)
        return self

    def build(self) -> ModelDefinition:
        lineage: tuple[str, ...] = ()
        if self._parent is not None:
            lineage = (self._parent.name, *self._parent.lineage)

        return ModelDefinition(
            name=self._name,
            primary_key=self._primary_key,
            storage_key=self._storage_key,
            encoders=tuple(self._encoders),
            validators=tuple(self._validators),
            merge_policy=self._merge_policy,
            concurrency_policy=self._concurrency_policy,
            extends=self._parent.name if self._parent else None,
            lineage=lineage,
        )

    def _add_encoder(self, rule: EncodingRule, override: bool) -> None:
        for index, existing in enumerate(self._encoders):
            if existing.key != rule.key:
                continue
            if not override:
                raise DefinitionError(
                    f"'{self._name}' already encodes '{rule.key}'; pass override=True to replace it",
                    details={"model": self._name, "key": rule.key},
                )
            self._encoders[index] = rule
            return
        self._encoders.append(rule)
