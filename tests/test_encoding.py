"""
Tests for the encoding layer.

Tests for converters, codecs, encoding rules and the transform pipeline.
"""

import pytest
from datetime import date, datetime, timezone
from decimal import Decimal

from recordmap.core.exceptions import DefinitionError, RuleError
from recordmap.encoding.converters import (
    CONVERTERS,
    DateConverter,
    ValueConverter,
    get_codec,
    register_codec,
)
from recordmap.encoding.pipeline import TransformPipeline
from recordmap.encoding.rules import EncodingRule
from recordmap.model.definition import ModelBuilder
from recordmap.model.model_type import ModelType


class TestValueConverter:
    """Tests for ValueConverter class."""

    def test_to_float_with_comma_string(self):
        assert ValueConverter.to_float("1,234.5") == 1234.5

    def test_to_float_with_dash(self):
        assert ValueConverter.to_float("-") is None
        assert ValueConverter.to_float("--", default=0.0) == 0.0

    def test_to_float_rejects_bool(self):
        assert ValueConverter.to_float(True) is None

    def test_to_finite_float(self):
        assert ValueConverter.to_finite_float("2.5") == 2.5
        assert ValueConverter.to_finite_float(float("nan")) is None
        assert ValueConverter.to_finite_float("inf") is None

    def test_to_int_truncates(self):
        assert ValueConverter.to_int("12.9") == 12
        assert ValueConverter.to_int(7.2) == 7

    def test_to_int_invalid(self):
        assert ValueConverter.to_int("abc") is None
        assert ValueConverter.to_int(float("inf"), default=-1) == -1

    def test_to_decimal(self):
        assert ValueConverter.to_decimal("1.10") == Decimal("1.10")
        assert ValueConverter.to_decimal("nope") is None

    def test_to_bool(self):
        assert ValueConverter.to_bool("yes") is True
        assert ValueConverter.to_bool("off") is False
        assert ValueConverter.to_bool("maybe") is None
        assert ValueConverter.to_bool(0) is False

    def test_to_str(self):
        assert ValueConverter.to_str(5) == "5"
        assert ValueConverter.to_str(None, default="") == ""


class TestDateConverter:
    """Tests for DateConverter class."""

    def test_iso_with_zulu(self):
        result = DateConverter.to_datetime("2024-01-02T03:04:05Z")
        assert result == datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

    def test_slash_format(self):
        assert DateConverter.to_datetime("2024/01/02") == datetime(2024, 1, 2)

    def test_unparseable(self):
        assert DateConverter.to_datetime("yesterday") is None

    def test_to_date_from_datetime(self):
        assert DateConverter.to_date(datetime(2024, 5, 6, 7, 8)) == date(2024, 5, 6)

    def test_to_iso(self):
        assert DateConverter.to_iso(date(2024, 5, 6)) == "2024-05-06"
        assert DateConverter.to_iso("already") == "already"


class TestCodecs:
    """Tests for named codecs."""

    def test_unknown_codec(self):
        with pytest.raises(DefinitionError):
            get_codec("uuid")

    def test_datetime_codec_round_trip(self):
        codec = get_codec("datetime")
        moment = datetime(2024, 1, 2, 3, 4, 5)
        encoded = codec.encode(moment, "at", {}, None)
        assert encoded == "2024-01-02T03:04:05"
        assert codec.decode(encoded, "at", {}, {}, None) == moment

    def test_decimal_codec_encodes_string(self):
        codec = get_codec("decimal")
        assert codec.encode(Decimal("9.99"), "price", {}, None) == "9.99"

    def test_register_codec(self):
        try:
            register_codec("upper", str.upper, str.lower)
            definition = ModelBuilder("shout").encode("word", codec="upper").build()
            pipeline = TransformPipeline(definition.encoders)
            assert pipeline.decode({"word": "hey"}) == {"word": "HEY"}
            assert pipeline.encode({"word": "HEY"}) == {"word": "hey"}
        finally:
            CONVERTERS.pop("upper", None)


class TestEncodingRule:
    """Tests for EncodingRule."""

    def test_storage_key_defaults_to_key(self):
        assert EncodingRule("title").storage_key == "title"
        assert EncodingRule("author_name", as_key="author").storage_key == "author"

    def test_directions(self):
        rule = EncodingRule("password", decode=False)
        assert rule.encodes
        assert not rule.decodes

    def test_non_callable_rejected(self):
        with pytest.raises(TypeError):
            EncodingRule("title", encode="upper")

    def test_to_dict(self):
        rule = EncodingRule("total", encode=False)
        assert rule.to_dict() == {"key": "total", "as": "total", "encode": False, "decode": "identity"}


class TestTransformPipelineDecode:
    """Tests for decoding raw data into attributes."""

    def test_identity_and_uncovered_keys(self):
        pipeline = TransformPipeline([EncodingRule("title")])
        raw = {"id": 4, "title": "Hello", "internal": "x"}
        assert pipeline.decode(raw) == {"id": 4, "title": "Hello"}

    def test_absent_keys_are_skipped(self):
        pipeline = TransformPipeline([EncodingRule("title"), EncodingRule("body")])
        assert pipeline.decode({"title": "Hello"}) == {"title": "Hello"}

    def test_as_key(self):
        pipeline = TransformPipeline([EncodingRule("author_name", as_key="author")])
        assert pipeline.decode({"author": "Ann"}) == {"author_name": "Ann"}

    def test_decode_false_never_accepts(self):
        pipeline = TransformPipeline([EncodingRule("password", decode=False)])
        assert pipeline.decode({"password": "secret"}) == {}

    def test_identity_installs_none(self):
        pipeline = TransformPipeline([EncodingRule("title")])
        assert pipeline.decode({"title": None}) == {"title": None}

    def test_custom_none_without_writes_installs_none(self):
        pipeline = TransformPipeline([EncodingRule("title", decode=lambda v, k, raw, result, rec: None)])
        assert pipeline.decode({"title": "x"}) == {"title": None}

    def test_custom_none_after_writing_suppresses_key(self):
        def split(value, key, raw, result, record):
            result["lat"], result["lng"] = value

        pipeline = TransformPipeline([EncodingRule("location", decode=split)])
        assert pipeline.decode({"location": [1.5, 2.5]}) == {"lat": 1.5, "lng": 2.5}

    def test_later_rule_reads_earlier_result(self):
        def display(value, key, raw, result, record):
            return f"{result['first_name']} {value}"

        pipeline = TransformPipeline([
            EncodingRule("first_name"),
            EncodingRule("last_name"),
            EncodingRule("display_name", as_key="last_name", decode=display, encode=False),
        ])
        decoded = pipeline.decode({"first_name": "Ada", "last_name": "Lovelace"})
        assert decoded["display_name"] == "Ada Lovelace"

    def test_covered_primary_key_uses_its_rule(self):
        pipeline = TransformPipeline(
            [EncodingRule("id", decode=lambda v, k, raw, result, rec: int(v))],
            primary_key="id",
        )
        assert pipeline.decode({"id": "12"}) == {"id": 12}

    def test_decode_failure_is_rule_error(self):
        pipeline = TransformPipeline([EncodingRule("ratio", decode=lambda v, k, raw, result, rec: 1 / v)])
        with pytest.raises(RuleError) as exc_info:
            pipeline.decode({"ratio": 0})
        assert exc_info.value.key == "ratio"
        assert exc_info.value.phase == "decode"
        assert isinstance(exc_info.value.__cause__, ZeroDivisionError)

    def test_non_mapping_is_rule_error(self):
        with pytest.raises(RuleError):
            TransformPipeline([EncodingRule("title")]).decode(["title"])

    def test_none_raw_decodes_to_nothing(self):
        assert TransformPipeline([EncodingRule("title")]).decode(None) == {}


class TestTransformPipelineEncode:
    """Tests for encoding attributes into raw data."""

    def test_identity_and_as_key(self):
        pipeline = TransformPipeline([
            EncodingRule("title"),
            EncodingRule("author_name", as_key="author"),
        ])
        encoded = pipeline.encode({"title": "Hello", "author_name": "Ann", "draft": True})
        assert encoded == {"title": "Hello", "author": "Ann"}

    def test_encode_false_never_sends(self):
        pipeline = TransformPipeline([EncodingRule("total", encode=False)])
        assert pipeline.encode({"total": 10}) == {}

    def test_fan_out(self):
        def split(value, key, output, record):
            first, _, last = value.partition(" ")
            output["first_name"] = first
            output["last_name"] = last

        pipeline = TransformPipeline([EncodingRule("name", encode=split)])
        assert pipeline.encode({"name": "Ada Lovelace"}) == {
            "first_name": "Ada",
            "last_name": "Lovelace",
        }

    def test_encode_receives_record(self):
        seen = []

        def remember(value, key, output, record):
            seen.append(record)
            return value

        pipeline = TransformPipeline([EncodingRule("title", encode=remember)])
        marker = object()
        pipeline.encode({"title": "x"}, marker)
        assert seen == [marker]

    def test_encode_failure_is_rule_error(self):
        def explode(value, key, output, record):
            raise ValueError("bad")

        pipeline = TransformPipeline([EncodingRule("title", encode=explode)])
        with pytest.raises(RuleError) as exc_info:
            pipeline.encode({"title": "x"})
        assert exc_info.value.phase == "encode"

    def test_round_trip_for_identity_rules(self):
        pipeline = TransformPipeline([EncodingRule("title"), EncodingRule("body")])
        attributes = {"title": "Hello", "body": "World"}
        assert pipeline.decode(pipeline.encode(attributes)) == attributes


class TestRecordJson:
    """Tests for Record.to_json / from_json."""

    def test_name_round_trip(self):
        Product = ModelType(ModelBuilder("product").encode("name").build())
        record = Product.new().from_json({"name": "Snowdevil"})
        assert record.get("name") == "Snowdevil"
        assert record.to_json() == {"name": "Snowdevil"}

    def test_from_json_does_not_dirty(self):
        Product = ModelType(ModelBuilder("product").encode("name").build())
        record = Product.new().from_json({"name": "Snowdevil"})
        assert record.dirty_keys == set()
