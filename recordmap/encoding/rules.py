"""
Encoding rules.

An EncodingRule says how one attribute crosses the boundary between the
application-land record and backend-land raw data:

    EncodingRule("title")                                  # identity both ways
    EncodingRule("author_name", as_key="author")           # re-keyed
    EncodingRule("password", decode=False)                 # write-only
    EncodingRule("total", encode=False)                    # read-only
    EncodingRule("tags", decode=split_tags, encode=join_tags)

Decode functions are called as ``decode(value, key, raw, result, record)``
and encode functions as ``encode(value, key, output, record)``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Literal, Union

DecodeFunc = Callable[[Any, str, dict, dict, Any], Any]
EncodeFunc = Callable[[Any, str, dict, Any], Any]

# None means identity, False means the direction is suppressed.
DecodeSpec = Union[DecodeFunc, Literal[False], None]
EncodeSpec = Union[EncodeFunc, Literal[False], None]


def identity_decode(value: Any, key: str, raw: dict, result: dict, record: Any) -> Any:
    return value


def identity_encode(value: Any, key: str, output: dict, record: Any) -> Any:
    return value


@dataclass(frozen=True)
class EncodingRule:
    """Per-key encode/decode rule."""

    key: str
    encode: EncodeSpec = None
    decode: DecodeSpec = None
    as_key: str | None = None

    def __post_init__(self) -> None:
        if not self.key:
            raise ValueError("EncodingRule requires a key")
        for direction in ("encode", "decode"):
            func = getattr(self, direction)
            if func is not None and func is not False and not callable(func):
                raise TypeError(f"{direction} for '{self.key}' must be callable, None or False")

    @property
    def storage_key(self) -> str:
        return self.as_key or self.key

    @property
    def decodes(self) -> bool:
        return self.decode is not False

    @property
    def encodes(self) -> bool:
        return self.encode is not False

    @property
    def decoder(self) -> DecodeFunc:
        return self.decode or identity_decode

    @property
    def encoder(self) -> EncodeFunc:
        return self.encode or identity_encode

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "as": self.storage_key,
            "encode": _describe(self.encode),
            "decode": _describe(self.decode),
        }


def _describe(func: Any) -> Any:
    if func is False:
        return False
    if func is None:
        return "identity"
    return getattr(func, "__name__", repr(func))
