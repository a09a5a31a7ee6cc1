"""
Model definition loader for YAML configuration files.

File layout:

    models:
      post:
        primary_key: id
        storage_key: posts
        encode:
          title:
          published_at: {codec: datetime}
          author_name: {as: author}
          password: {decode: false}
        timestamps: true
        validate:
          title: {presence: true, max_length: 120}
      featured_post:
        extends: post
        encode:
          rank: {codec: int}
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from recordmap.core.config import RecordMapSettings, get_settings
from recordmap.core.exceptions import DefinitionError
from recordmap.model.definition import ModelBuilder, ModelDefinition

logger = logging.getLogger(__name__)

ENCODE_OPTIONS = {"codec", "as", "encode", "decode", "override"}


class DefinitionLoader:
    """Load model definitions from a YAML file or mapping."""

    def __init__(self, path: str | Path | None = None, settings: RecordMapSettings | None = None):
        self.settings = settings or get_settings()
        configured = path or self.settings.definitions_path
        self.path = Path(configured) if configured else None

    def _load_yaml(self) -> dict[str, Any]:
        if self.path is None:
            raise DefinitionError("No definitions path configured")
        if not self.path.exists():
            raise DefinitionError(
                f"Definitions file not found: {self.path}",
                details={"path": str(self.path)},
            )

        with open(self.path, "r", encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise DefinitionError(f"Invalid YAML in {self.path}: {e}") from e

        return data or {}

    def load(self) -> dict[str, ModelDefinition]:
        """Load every definition in the configured file."""
        return self.load_data(self._load_yaml())

    def load_data(self, data: dict[str, Any]) -> dict[str, ModelDefinition]:
        """Build definitions from already-parsed data, parents before children."""
        models = data.get("models") or {}
        if not isinstance(models, dict):
            raise DefinitionError("'models' must be a mapping of name to definition")

        definitions: dict[str, ModelDefinition] = {}
        for name in models:
            self._resolve(name, models, definitions, ())

        logger.info(f"Loaded {len(definitions)} model definition(s)")
        return definitions

    def _resolve(
        self,
        name: str,
        models: dict[str, Any],
        definitions: dict[str, ModelDefinition],
        chain: tuple[str, ...],
    ) -> ModelDefinition:
        if name in definitions:
            return definitions[name]
        if name in chain:
            raise DefinitionError(
                f"Circular extends: {' -> '.join((*chain, name))}",
                details={"model": name},
            )
        if name not in models:
            raise DefinitionError(f"Unknown parent model: {name}", details={"model": name})

        model_data = models[name] or {}
        parent_name = model_data.get("extends")
        if parent_name:
            parent = self._resolve(parent_name, models, definitions, (*chain, name))
            builder = ModelBuilder.extending(parent, name, self.settings)
        else:
            builder = ModelBuilder(name, self.settings)

        definitions[name] = self._parse_model(builder, model_data)
        return definitions[name]

    def _parse_model(self, builder: ModelBuilder, data: dict[str, Any]) -> ModelDefinition:
        if "primary_key" in data:
            builder.primary_key(data["primary_key"], override=bool(data.get("override_primary_key")))
        if "storage_key" in data:
            builder.storage_key(data["storage_key"])
        if "merge_policy" in data:
            builder.merge_policy(data["merge_policy"])
        if "concurrency_policy" in data:
            builder.concurrency_policy(data["concurrency_policy"])

        for key, options in (data.get("encode") or {}).items():
            self._parse_encoder(builder, key, options or {})

        timestamps = data.get("timestamps")
        if timestamps is True:
            builder.encode_timestamps()
        elif isinstance(timestamps, list):
            builder.encode_timestamps(*timestamps)

        for key, options in (data.get("validate") or {}).items():
            self._parse_validation(builder, key, options or {})

        return builder.build()

    def _parse_encoder(self, builder: ModelBuilder, key: str, options: dict[str, Any]) -> None:
        unknown = set(options) - ENCODE_OPTIONS
        if unknown:
            raise DefinitionError(
                f"Unknown encode options for '{key}': {sorted(unknown)}",
                details={"key": key},
            )
        for direction in ("encode", "decode"):
            if direction in options and options[direction] is not False:
                raise DefinitionError(
                    f"'{direction}' for '{key}' can only be false in YAML; use a codec for conversions"
                )

        builder.encode(
            key,
            encode=options.get("encode"),
            decode=options.get("decode"),
            as_key=options.get("as"),
            codec=options.get("codec"),
            override=bool(options.get("override", False)),
        )

    def _parse_validation(self, builder: ModelBuilder, key: str, options: dict[str, Any]) -> None:
        options = dict(options)
        for pair_option in ("length_within", "length_in"):
            if pair_option in options and isinstance(options[pair_option], list):
                options[pair_option] = tuple(options[pair_option])
        builder.validate(key, **options)


def load_definitions(path: str | Path | None = None) -> dict[str, ModelDefinition]:
    """Load definitions from ``path`` or the configured definitions_path."""
    return DefinitionLoader(path).load()
