"""
Encoding Module.

Per-key encode/decode rules, the pipeline that applies them, and the
named value codecs definitions can refer to.
"""

from .converters import CONVERTERS, Codec, DateConverter, ValueConverter, get_codec, register_codec
from .pipeline import TransformPipeline
from .rules import EncodingRule, identity_decode, identity_encode

__all__ = [
    "CONVERTERS",
    "Codec",
    "DateConverter",
    "ValueConverter",
    "get_codec",
    "register_codec",
    "TransformPipeline",
    "EncodingRule",
    "identity_decode",
    "identity_encode",
]
