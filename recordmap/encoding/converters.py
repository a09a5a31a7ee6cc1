"""
Value conversion utilities.

Safe scalar conversions used by the numeric validators and by the named
codecs that model definitions can refer to by string (``codec="datetime"``).

Usage:
    from recordmap.encoding.converters import ValueConverter, get_codec

    ValueConverter.to_float("1,234.5")     # 1234.5
    decode, encode = get_codec("datetime")
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable

from recordmap.core.exceptions import DefinitionError


class ValueConverter:
    """
    Safe value conversion.

    Every method returns ``default`` instead of raising when the input
    cannot be converted.
    """

    @staticmethod
    def to_float(value: Any, default: float | None = None) -> float | None:
        """
        Safely convert value to float.

        Examples:
            >>> ValueConverter.to_float("123.45")
            123.45
            >>> ValueConverter.to_float("invalid", default=0.0)
            0.0
        """
        if value is None or isinstance(value, bool):
            return default

        if isinstance(value, float):
            return value
        if isinstance(value, (int, Decimal)):
            return float(value)

        if isinstance(value, str):
            cleaned = value.strip().replace(",", "")
            if not cleaned or cleaned in ("-", "--"):
                return default
            try:
                return float(cleaned)
            except ValueError:
                return default

        try:
            return float(value)
        except (TypeError, ValueError):
            return default

    @staticmethod
    def to_finite_float(value: Any) -> float | None:
        """Convert to float, treating NaN and infinities as unparseable."""
        result = ValueConverter.to_float(value)
        if result is None or not math.isfinite(result):
            return None
        return result

    @staticmethod
    def to_int(value: Any, default: int | None = None) -> int | None:
        """Safely convert value to integer, truncating floats."""
        if value is None:
            return default

        if isinstance(value, int) and not isinstance(value, bool):
            return value

        if isinstance(value, float):
            if not math.isfinite(value):
                return default
            return int(value)

        if isinstance(value, str):
            cleaned = value.strip().replace(",", "")
            if not cleaned or cleaned in ("-", "--"):
                return default
            try:
                if "." in cleaned:
                    return int(float(cleaned))
                return int(cleaned)
            except ValueError:
                return default

        try:
            return int(value)
        except (TypeError, ValueError):
            return default

    @staticmethod
    def to_str(value: Any, default: str | None = None) -> str | None:
        """Safely convert value to string."""
        if value is None:
            return default
        return value if isinstance(value, str) else str(value)

    @staticmethod
    def to_decimal(value: Any, default: Decimal | None = None) -> Decimal | None:
        """Safely convert value to Decimal."""
        if value is None:
            return default

        try:
            if isinstance(value, Decimal):
                return value
            if isinstance(value, str):
                cleaned = value.strip().replace(",", "")
                if not cleaned or cleaned in ("-", "--"):
                    return default
                return Decimal(cleaned)
            return Decimal(str(value))
        except (InvalidOperation, ValueError):
            return default

    @staticmethod
    def to_bool(value: Any, default: bool | None = None) -> bool | None:
        """Safely convert value to boolean."""
        if value is None:
            return default

        if isinstance(value, bool):
            return value

        if isinstance(value, str):
            lower = value.strip().lower()
            if lower in ("true", "yes", "1", "on"):
                return True
            if lower in ("false", "no", "0", "off"):
                return False
            return default

        if isinstance(value, (int, float)):
            return bool(value)

        return default


class DateConverter:
    """Date and datetime conversion, ISO-8601 first."""

    COMMON_FORMATS = [
        "%Y-%m-%d",
        "%Y/%m/%d",
        "%Y-%m-%d %H:%M:%S",
        "%Y-%m-%dT%H:%M:%S",
        "%Y-%m-%dT%H:%M:%SZ",
        "%Y-%m-%dT%H:%M:%S%z",
    ]

    @classmethod
    def to_datetime(cls, value: Any, default: datetime | None = None) -> datetime | None:
        """Safely convert value to datetime."""
        if value is None:
            return default

        if isinstance(value, datetime):
            return value

        if isinstance(value, date):
            return datetime.combine(value, datetime.min.time())

        if isinstance(value, str):
            cleaned = value.strip()
            if not cleaned:
                return default

            try:
                return datetime.fromisoformat(cleaned.replace("Z", "+00:00"))
            except ValueError:
                pass

            for fmt in cls.COMMON_FORMATS:
                try:
                    return datetime.strptime(cleaned, fmt)
                except ValueError:
                    continue

        return default

    @classmethod
    def to_date(cls, value: Any, default: date | None = None) -> date | None:
        """Safely convert value to date."""
        if isinstance(value, date) and not isinstance(value, datetime):
            return value
        result = cls.to_datetime(value)
        return result.date() if result is not None else default

    @staticmethod
    def to_iso(value: Any) -> Any:
        """Render dates as ISO strings, leave everything else alone."""
        if isinstance(value, (datetime, date)):
            return value.isoformat()
        return value


@dataclass(frozen=True)
class Codec:
    """A named decode/encode pair usable from definitions."""
    name: str
    decode: Callable[..., Any]
    encode: Callable[..., Any]


def _decoder(convert: Callable[[Any], Any]) -> Callable[..., Any]:
    def decode(value: Any, key: str, raw: dict, result: dict, record: Any) -> Any:
        return convert(value)
    decode.__name__ = f"decode_{getattr(convert, '__name__', 'value')}"
    return decode


def _encoder(convert: Callable[[Any], Any]) -> Callable[..., Any]:
    def encode(value: Any, key: str, output: dict, record: Any) -> Any:
        return convert(value)
    encode.__name__ = f"encode_{getattr(convert, '__name__', 'value')}"
    return encode


def _decimal_to_str(value: Any) -> Any:
    return str(value) if isinstance(value, Decimal) else value


CONVERTERS: dict[str, Codec] = {
    "str": Codec("str", _decoder(ValueConverter.to_str), _encoder(ValueConverter.to_str)),
    "int": Codec("int", _decoder(ValueConverter.to_int), _encoder(ValueConverter.to_int)),
    "float": Codec("float", _decoder(ValueConverter.to_float), _encoder(ValueConverter.to_float)),
    "decimal": Codec("decimal", _decoder(ValueConverter.to_decimal), _encoder(_decimal_to_str)),
    "bool": Codec("bool", _decoder(ValueConverter.to_bool), _encoder(ValueConverter.to_bool)),
    "date": Codec("date", _decoder(DateConverter.to_date), _encoder(DateConverter.to_iso)),
    "datetime": Codec("datetime", _decoder(DateConverter.to_datetime), _encoder(DateConverter.to_iso)),
}


def get_codec(name: str) -> Codec:
    """Look up a named codec, raising DefinitionError for unknown names."""
    codec = CONVERTERS.get(name)
    if codec is None:
        raise DefinitionError(
            f"Unknown codec: {name}. Valid: {sorted(CONVERTERS)}",
            details={"codec": name},
        )
    return codec


def register_codec(
    name: str,
    decode: Callable[[Any], Any],
    encode: Callable[[Any], Any],
) -> Codec:
    """Register a named codec from two single-argument conversion functions."""
    codec = Codec(name, _decoder(decode), _encoder(encode))
    CONVERTERS[name] = codec
    return codec
