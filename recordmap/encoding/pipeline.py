"""
Transformation pipeline.

Applies a model's ordered EncodingRules in either direction. Rules run in
declaration order, so a decode rule can read what an earlier rule already
installed in the result; an encode rule can fan one attribute out into
several output keys by writing into the output itself and returning None.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from recordmap.core.exceptions import RuleError
from recordmap.encoding.rules import EncodingRule

logger = logging.getLogger(__name__)


class _WriteTrackingDict(dict):
    """Dict that remembers whether a rule function wrote into it."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.written = False

    def __setitem__(self, key: Any, value: Any) -> None:
        self.written = True
        super().__setitem__(key, value)

    def __delitem__(self, key: Any) -> None:
        self.written = True
        super().__delitem__(key)

    def update(self, *args: Any, **kwargs: Any) -> None:
        self.written = True
        super().update(*args, **kwargs)

    def setdefault(self, key: Any, default: Any = None) -> Any:
        self.written = True
        return super().setdefault(key, default)

    def pop(self, key: Any, *args: Any) -> Any:
        self.written = True
        return super().pop(key, *args)


class TransformPipeline:
    """Ordered encode/decode over a fixed set of rules."""

    def __init__(self, rules: Iterable[EncodingRule], primary_key: str = "id"):
        self.rules: tuple[EncodingRule, ...] = tuple(rules)
        self.primary_key = primary_key
        self._covers_primary_key = any(
            rule.key == primary_key and rule.decodes for rule in self.rules
        )

    @property
    def keys(self) -> list[str]:
        return [rule.key for rule in self.rules]

    def decode(self, raw: Mapping[str, Any], record: Any = None) -> dict[str, Any]:
        """
        Decode raw storage data into application-land attributes.

        Args:
            raw: Backend-shaped mapping
            record: Record the data is being decoded for, passed to rule functions

        Returns:
            Attributes for every covered key present in ``raw``

        Raises:
            RuleError: A decode function raised
        """
        if raw is None:
            return {}
        if not isinstance(raw, Mapping):
            raise RuleError(
                f"Cannot decode {type(raw).__name__}, expected a mapping",
                phase="decode",
            )

        result = _WriteTrackingDict()

        if not self._covers_primary_key and self.primary_key in raw:
            dict.__setitem__(result, self.primary_key, raw[self.primary_key])

        for rule in self.rules:
            if not rule.decodes or rule.storage_key not in raw:
                continue

            result.written = False
            try:
                value = rule.decoder(raw[rule.storage_key], rule.key, raw, result, record)
            except Exception as e:
                raise RuleError(
                    f"Decoding '{rule.key}' failed: {e}",
                    key=rule.key,
                    phase="decode",
                ) from e

            if value is None and rule.decode is not None and result.written:
                continue
            dict.__setitem__(result, rule.key, value)

        return dict(result)

    def decode_primary_key(self, raw: Mapping[str, Any], record: Any = None) -> Any:
        """Decode only the primary key of ``raw``; None when it is absent."""
        for rule in self.rules:
            if rule.key == self.primary_key and rule.decodes:
                if rule.storage_key not in raw:
                    return None
                try:
                    return rule.decoder(raw[rule.storage_key], rule.key, raw, {}, record)
                except Exception as e:
                    raise RuleError(
                        f"Decoding '{rule.key}' failed: {e}",
                        key=rule.key,
                        phase="decode",
                    ) from e
        return raw.get(self.primary_key)

    def encode(self, attributes: Mapping[str, Any], record: Any = None) -> dict[str, Any]:
        """
        Encode application-land attributes into raw storage data.

        Attributes absent from ``attributes`` are skipped; rules with
        ``encode=False`` contribute nothing.

        Raises:
            RuleError: An encode function raised
        """
        output = _WriteTrackingDict()

        for rule in self.rules:
            if not rule.encodes or rule.key not in attributes:
                continue

            output.written = False
            try:
                value = rule.encoder(attributes[rule.key], rule.key, output, record)
            except Exception as e:
                raise RuleError(
                    f"Encoding '{rule.key}' failed: {e}",
                    key=rule.key,
                    phase="encode",
                ) from e

            if value is None and rule.encode is not None and output.written:
                continue
            dict.__setitem__(output, rule.storage_key, value)

        return dict(output)
