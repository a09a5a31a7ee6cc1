"""
Tests for validation.

Tests for ErrorsSet, the built-in validators, custom and deferred rules,
and the aggregating ValidationEngine.
"""

import asyncio

import pytest

from recordmap.core.exceptions import DefinitionError, RuleError
from recordmap.model.definition import ModelBuilder
from recordmap.model.model_type import ModelType
from recordmap.validation.engine import ValidationEngine, ValidationRule
from recordmap.validation.errors import ErrorsSet
from recordmap.validation.validators import (
    CustomValidator,
    LengthValidator,
    NumericValidator,
    PresenceValidator,
    build_validators,
    deferred_rule,
)


def make_type(builder):
    return ModelType(builder.build())


def check(validator, value, **attributes):
    """Run one synchronous validator against a stand-in record dict."""
    errors = ErrorsSet()
    validator.validate(errors, {"value": value, **attributes}, "value")
    return errors.on("value")


class TestErrorsSet:
    """Tests for ErrorsSet."""

    def test_empty_is_valid(self):
        errors = ErrorsSet()
        assert not errors
        assert len(errors) == 0

    def test_add_and_on(self):
        errors = ErrorsSet()
        errors.add("title", "must be present")
        errors.add("title", "must be at least 3 characters")
        errors.add("body", "is reserved")
        assert len(errors) == 3
        assert errors.on("title") == ["must be present", "must be at least 3 characters"]
        assert errors.keys == ["title", "body"]
        assert "body" in errors
        assert "author" not in errors

    def test_duplicates_are_kept(self):
        errors = ErrorsSet()
        errors.add("title", "is invalid")
        errors.add("title", "is invalid")
        assert len(errors) == 2

    def test_full_messages(self):
        errors = ErrorsSet()
        errors.add("first_name", "must be present")
        assert errors.full_messages() == ["First name must be present"]

    def test_equality_ignores_order(self):
        left, right = ErrorsSet(), ErrorsSet()
        left.add("a", "x")
        left.add("b", "y")
        right.add("b", "y")
        right.add("a", "x")
        assert left == right

    def test_clear(self):
        errors = ErrorsSet()
        errors.add("a", "x")
        errors.clear()
        assert errors.to_dict() == {}


class TestBuiltinValidators:
    """Tests for the built-in validators."""

    def test_presence(self):
        validator = PresenceValidator(presence=True)
        assert check(validator, None) == ["must be present"]
        assert check(validator, "") == ["must be present"]
        assert check(validator, []) == ["must be present"]
        assert check(validator, 0) == []
        assert check(validator, "x") == []

    def test_numeric(self):
        validator = NumericValidator(numeric=True)
        assert check(validator, "12.5") == []
        assert check(validator, "abc") == ["must be a number"]
        assert check(validator, float("nan")) == ["must be a number"]
        assert check(validator, None) == ["must be a number"]

    def test_numeric_false_is_a_no_op(self):
        [validator] = build_validators(numeric=False)
        assert check(validator, "abc") == []
        assert check(NumericValidator(numeric=False, greater_than=0), "abc") == ["must be a number"]

    def test_numeric_bounds(self):
        validator = NumericValidator(greater_than=0, less_than_or_equal_to=10)
        assert check(validator, 5) == []
        assert check(validator, 0) == ["must be greater than 0"]
        assert check(validator, 11) == ["must be less than or equal to 10"]

    def test_only_integer(self):
        validator = NumericValidator(only_integer=True)
        assert check(validator, "3") == []
        assert check(validator, 3.5) == ["must be an integer"]

    def test_length(self):
        validator = LengthValidator(min_length=2, max_length=4)
        assert check(validator, "abc") == []
        assert check(validator, "a") == ["must be at least 2 characters"]
        assert check(validator, "abcde") == ["must be at most 4 characters"]

    def test_length_treats_none_as_empty(self):
        assert check(LengthValidator(min_length=1), None) == ["must be at least 1 characters"]
        assert check(LengthValidator(max_length=3), None) == []

    def test_length_within(self):
        validator = LengthValidator(length_within=(2, 3))
        assert check(validator, "a") == ["must be at least 2 characters"]
        assert check(validator, "abcd") == ["must be at most 3 characters"]

    def test_length_within_needs_pair(self):
        with pytest.raises(DefinitionError):
            LengthValidator(length_within=5)

    def test_exact_length(self):
        [validator] = build_validators(length=2)
        assert check(validator, "ab") == []
        assert check(validator, "abc") == ["must be 2 characters"]

    def test_pattern(self):
        [validator] = build_validators(pattern=r"^[a-z]+$")
        assert check(validator, "abc") == []
        assert check(validator, "ABC") == ["is not valid"]

    def test_invalid_pattern(self):
        with pytest.raises(DefinitionError):
            build_validators(pattern="(")

    def test_email(self):
        [validator] = build_validators(email=True)
        assert check(validator, "ann@example.com") == []
        assert check(validator, "ann@") == ["is not a valid email address"]

    def test_inclusion_and_exclusion(self):
        [included] = build_validators(inclusion=["draft", "live"])
        [excluded] = build_validators(exclusion=["admin"])
        assert check(included, "draft") == []
        assert check(included, "gone") == ["is not included in the list"]
        assert check(excluded, "admin") == ["is reserved"]
        assert check(excluded, "ann") == []

    def test_confirmation(self):
        [validator] = build_validators(confirmation=True)
        assert check(validator, "pw", value_confirmation="pw") == []
        assert check(validator, "pw", value_confirmation="other") == ["and confirmation do not match"]

    def test_allow_blank_and_message(self):
        [validator] = build_validators(min_length=3, allow_blank=True, message="too short")
        assert check(validator, "") == []
        assert check(validator, "ab") == ["too short"]

    def test_one_call_can_build_several_validators(self):
        validators = build_validators(presence=True, max_length=5)
        assert [type(v).__name__ for v in validators] == ["PresenceValidator", "LengthValidator"]

    def test_unknown_option(self):
        with pytest.raises(DefinitionError):
            build_validators(presense=True)

    def test_nothing_to_build(self):
        with pytest.raises(DefinitionError):
            build_validators()

    def test_custom_must_be_callable(self):
        with pytest.raises(DefinitionError):
            CustomValidator("not callable")


class TestValidationEngine:
    """Tests for rule aggregation."""

    @pytest.mark.asyncio
    async def test_presence_scenario(self):
        Person = make_type(ModelBuilder("person").encode("name").validate("name", presence=True))
        person = Person.new()

        assert await person.validate() is False
        assert person.errors.on("name") == ["must be present"]
        assert not person.is_valid

        person.set("name", "Ann")
        assert await person.validate() is True
        assert len(person.errors) == 0

    @pytest.mark.asyncio
    async def test_every_key_of_a_rule_is_checked(self):
        Person = make_type(ModelBuilder("person").validate("first", "last", presence=True))
        person = Person.new()
        await person.validate()
        assert person.errors.keys == ["first", "last"]

    @pytest.mark.asyncio
    async def test_aggregates_failures_that_finish_out_of_order(self):
        def delayed(delay, fail):
            async def rule(errors, record, key):
                await asyncio.sleep(delay)
                if fail:
                    errors.add(key, "failed")
            return rule

        builder = ModelBuilder("thing")
        plan = [(0.03, True), (0.0, False), (0.01, True), (0.02, False), (0.0, True)]
        for index, (delay, fail) in enumerate(plan):
            builder.validate(f"field_{index}", check=delayed(delay, fail))
        record = make_type(builder).new()

        assert await record.validate() is False
        assert len(record.errors) == 3
        assert sorted(record.errors.keys) == ["field_0", "field_2", "field_4"]

    @pytest.mark.asyncio
    async def test_deferred_rule_waits_for_done(self):
        @deferred_rule
        def later(errors, record, key, done):
            def finish():
                errors.add(key, "taken")
                done()
            asyncio.get_running_loop().call_later(0.01, finish)

        record = make_type(ModelBuilder("user").validate("login", check=later)).new()
        assert await record.validate() is False
        assert record.errors.on("login") == ["taken"]

    @pytest.mark.asyncio
    async def test_rule_that_never_completes_keeps_validation_pending(self):
        @deferred_rule
        def never(errors, record, key, done):
            return None

        record = make_type(ModelBuilder("user").validate("login", check=never)).new()
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(record.validate(), timeout=0.05)

    @pytest.mark.asyncio
    async def test_validation_clears_previous_errors(self):
        record = make_type(ModelBuilder("user").validate("login", presence=True)).new()
        await record.validate()
        record.set("login", "ann")
        await record.validate()
        assert record.errors.to_dict() == {}

    @pytest.mark.asyncio
    async def test_raising_rule_becomes_rule_error_after_others_finish(self):
        finished = []

        def explode(errors, record, key):
            raise ValueError("boom")

        async def slow(errors, record, key):
            await asyncio.sleep(0.01)
            finished.append(key)

        engine = ValidationEngine([
            ValidationRule(keys=("a",), validator=CustomValidator(explode)),
            ValidationRule(keys=("b",), validator=CustomValidator(slow)),
        ])
        with pytest.raises(RuleError) as exc_info:
            await engine.run({}, ErrorsSet())
        assert exc_info.value.key == "a"
        assert exc_info.value.phase == "validate"
        assert finished == ["b"]

    @pytest.mark.asyncio
    async def test_no_rules_is_valid(self):
        assert await ValidationEngine([]).run({}, ErrorsSet()) is True

    @pytest.mark.asyncio
    async def test_validate_callback_receives_record(self, collect):
        record = make_type(ModelBuilder("user").validate("login", presence=True)).new()
        callback, outcome = collect()
        await record.validate(callback)
        error, result = await outcome
        assert error is None
        assert result is record
        assert "login" in result.errors
