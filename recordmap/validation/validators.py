"""
Built-in and custom validators.

A validator is invoked once per key as ``validate(errors, record, key)``.
Built-ins are synchronous and finish immediately; custom validators may
return an awaitable and finish whenever it completes. Validators never
stop other validators from running: a failure is recorded in ``errors``
and nothing more.

Options accepted by ``build_validators`` (and ``ModelBuilder.validate``):

| option                                  | validator            |
|-----------------------------------------|----------------------|
| presence                                | PresenceValidator    |
| numeric, greater_than, ..., only_integer| NumericValidator     |
| min_length, max_length, length,         | LengthValidator      |
| length_within, length_in                |                      |
| pattern                                 | PatternValidator     |
| inclusion / exclusion                   | Inclusion/Exclusion  |
| confirmation                            | ConfirmationValidator|
| email                                   | EmailValidator       |

``message`` and ``allow_blank`` apply to every validator built from the
same call.
"""

from __future__ import annotations

import asyncio
import inspect
import operator
import re
from collections.abc import Sized
from typing import TYPE_CHECKING, Any, Awaitable, Callable, ClassVar

from recordmap.core.exceptions import DefinitionError
from recordmap.encoding.converters import ValueConverter

if TYPE_CHECKING:
    from recordmap.validation.errors import ErrorsSet

CustomCheck = Callable[["ErrorsSet", Any, str], "Awaitable[None] | None"]
DeferredCheck = Callable[["ErrorsSet", Any, str, Callable[[], None]], None]

SHARED_OPTIONS = ("message", "allow_blank")


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    return isinstance(value, Sized) and len(value) == 0


class Validator:
    """Base class for validators."""

    triggers: ClassVar[tuple[str, ...]] = ()
    default_message: ClassVar[str] = "is invalid"

    def __init__(self, **options: Any):
        self.options = options
        self.message: str | None = options.get("message")
        self.allow_blank: bool = bool(options.get("allow_blank", False))

    @classmethod
    def handles(cls, options: dict[str, Any]) -> bool:
        return any(option in options for option in cls.triggers)

    @property
    def name(self) -> str:
        return type(self).__name__

    def validate(self, errors: ErrorsSet, record: Any, key: str) -> Awaitable[None] | None:
        value = record.get(key)
        if self.allow_blank and _is_blank(value):
            return None
        for message in self.check(value, record, key):
            errors.add(key, self.message or message)
        return None

    def check(self, value: Any, record: Any, key: str) -> list[str]:
        """Return the failure messages for ``value`` (empty when valid)."""
        raise NotImplementedError

    def __repr__(self) -> str:
        options = {k: v for k, v in self.options.items() if k not in SHARED_OPTIONS}
        return f"{self.name}({options!r})"


class PresenceValidator(Validator):
    """Passes when the value is not None and has a length above zero."""

    triggers = ("presence",)
    default_message = "must be present"

    def check(self, value: Any, record: Any, key: str) -> list[str]:
        if not self.options.get("presence"):
            return []
        if _is_blank(value):
            return [self.default_message]
        return []


class NumericValidator(Validator):
    """Passes when the value is, or parses to, a finite number within bounds."""

    triggers = (
        "numeric",
        "greater_than",
        "greater_than_or_equal_to",
        "equal_to",
        "less_than",
        "less_than_or_equal_to",
        "only_integer",
    )

    COMPARISONS: ClassVar[dict[str, tuple[Callable[[float, float], bool], str]]] = {
        "greater_than": (operator.gt, "must be greater than {}"),
        "greater_than_or_equal_to": (operator.ge, "must be greater than or equal to {}"),
        "equal_to": (operator.eq, "must be equal to {}"),
        "less_than": (operator.lt, "must be less than {}"),
        "less_than_or_equal_to": (operator.le, "must be less than or equal to {}"),
    }

    def check(self, value: Any, record: Any, key: str) -> list[str]:
        constrained = any(option in self.options for option in self.triggers if option != "numeric")
        if "numeric" in self.options and not self.options["numeric"] and not constrained:
            return []

        number = ValueConverter.to_finite_float(value)
        if number is None:
            return ["must be a number"]

        messages = []
        if self.options.get("only_integer") and not number.is_integer():
            messages.append("must be an integer")

        for option, (compare, template) in self.COMPARISONS.items():
            bound = self.options.get(option)
            if bound is not None and not compare(number, bound):
                messages.append(template.format(bound))
        return messages


class LengthValidator(Validator):
    """Compares ``len(value)``; None counts as length zero."""

    triggers = ("min_length", "max_length", "length", "length_within", "length_in")

    def __init__(self, **options: Any):
        super().__init__(**options)
        within = options.get("length_within", options.get("length_in"))
        if within is not None:
            try:
                low, high = within
            except (TypeError, ValueError) as e:
                raise DefinitionError(
                    f"length_within expects a (low, high) pair, got {within!r}"
                ) from e
            self.options.setdefault("min_length", low)
            self.options.setdefault("max_length", high)

    def check(self, value: Any, record: Any, key: str) -> list[str]:
        if value is None:
            size = 0
        elif isinstance(value, Sized):
            size = len(value)
        else:
            size = len(str(value))

        messages = []
        min_length = self.options.get("min_length")
        max_length = self.options.get("max_length")
        exact = self.options.get("length")

        if min_length is not None and size < min_length:
            messages.append(f"must be at least {min_length} characters")
        if max_length is not None and size > max_length:
            messages.append(f"must be at most {max_length} characters")
        if exact is not None and size != exact:
            messages.append(f"must be {exact} characters")
        return messages


class PatternValidator(Validator):
    """Passes when the string form of the value matches a regular expression."""

    triggers = ("pattern",)
    default_message = "is not valid"

    def __init__(self, **options: Any):
        super().__init__(**options)
        pattern = options["pattern"]
        try:
            self.regex = re.compile(pattern) if isinstance(pattern, str) else pattern
        except re.error as e:
            raise DefinitionError(f"Invalid pattern {pattern!r}: {e}") from e

    def check(self, value: Any, record: Any, key: str) -> list[str]:
        if value is None or not self.regex.search(str(value)):
            return [self.default_message]
        return []


class EmailValidator(PatternValidator):
    """Loose address check: something@something.tld."""

    triggers = ("email",)
    default_message = "is not a valid email address"
    EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

    def __init__(self, **options: Any):
        options = {**options, "pattern": self.EMAIL_PATTERN}
        super().__init__(**options)

    def check(self, value: Any, record: Any, key: str) -> list[str]:
        if not self.options.get("email"):
            return []
        return super().check(value, record, key)


class InclusionValidator(Validator):
    """Passes when the value is one of the allowed values."""

    triggers = ("inclusion",)
    default_message = "is not included in the list"

    def check(self, value: Any, record: Any, key: str) -> list[str]:
        if value not in self.options["inclusion"]:
            return [self.default_message]
        return []


class ExclusionValidator(Validator):
    """Passes when the value is none of the reserved values."""

    triggers = ("exclusion",)
    default_message = "is reserved"

    def check(self, value: Any, record: Any, key: str) -> list[str]:
        if value in self.options["exclusion"]:
            return [self.default_message]
        return []


class ConfirmationValidator(Validator):
    """Passes when ``<key>_confirmation`` (or a named key) holds the same value."""

    triggers = ("confirmation",)
    default_message = "and confirmation do not match"

    def check(self, value: Any, record: Any, key: str) -> list[str]:
        confirmation = self.options["confirmation"]
        confirm_key = confirmation if isinstance(confirmation, str) else f"{key}_confirmation"
        if record.get(confirm_key) != value:
            return [self.default_message]
        return []


class CustomValidator(Validator):
    """
    Wraps a user function ``check(errors, record, key)``.

    The function records failures itself. When it returns an awaitable the
    rule completes only when that awaitable does.
    """

    def __init__(self, check: CustomCheck, **options: Any):
        if not callable(check):
            raise DefinitionError(f"Custom validator must be callable, got {check!r}")
        super().__init__(**options)
        self.func = check

    @property
    def name(self) -> str:
        return getattr(self.func, "__name__", type(self.func).__name__)

    def validate(self, errors: ErrorsSet, record: Any, key: str) -> Awaitable[None] | None:
        if self.allow_blank and _is_blank(record.get(key)):
            return None
        return self.func(errors, record, key)

    def __repr__(self) -> str:
        return f"CustomValidator({self.name})"


def deferred_rule(func: DeferredCheck) -> CustomCheck:
    """
    Adapt a ``done``-callback style rule into an awaitable one.

    ``func(errors, record, key, done)`` may call ``done()`` at any later
    point, from any callback on the running loop. Validation waits until it
    does; a rule that never calls ``done`` keeps validation pending forever.
    """

    def check(errors: ErrorsSet, record: Any, key: str) -> Awaitable[None]:
        loop = asyncio.get_running_loop()
        finished: asyncio.Future[None] = loop.create_future()

        def done() -> None:
            if not finished.done():
                finished.set_result(None)

        func(errors, record, key, done)
        return finished

    check.__name__ = getattr(func, "__name__", "deferred_rule")
    return check


BUILTIN_VALIDATORS: tuple[type[Validator], ...] = (
    PresenceValidator,
    NumericValidator,
    LengthValidator,
    PatternValidator,
    EmailValidator,
    InclusionValidator,
    ExclusionValidator,
    ConfirmationValidator,
)


def build_validators(check: CustomCheck | None = None, **options: Any) -> list[Validator]:
    """
    Build validator instances from keyword options.

    Raises:
        DefinitionError: An option no validator understands, or nothing to build
    """
    known = set(SHARED_OPTIONS)
    for validator_class in BUILTIN_VALIDATORS:
        known.update(validator_class.triggers)
    unknown = set(options) - known
    if unknown:
        raise DefinitionError(
            f"Unknown validation options: {sorted(unknown)}",
            details={"options": sorted(unknown)},
        )

    shared = {k: options[k] for k in SHARED_OPTIONS if k in options}
    validators: list[Validator] = []
    for validator_class in BUILTIN_VALIDATORS:
        if validator_class.handles(options):
            selected = {k: options[k] for k in validator_class.triggers if k in options}
            validators.append(validator_class(**selected, **shared))

    if check is not None:
        validators.append(CustomValidator(check, **shared))

    if not validators:
        raise DefinitionError("validate() needs at least one rule option or a custom check")
    return validators


def is_awaitable(result: Any) -> bool:
    return inspect.isawaitable(result)
