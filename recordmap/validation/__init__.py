"""
Validation Module.

Provides the ErrorsSet, built-in and custom validators, and the engine
that runs them all to a single aggregated result.
"""

from .engine import ValidationEngine, ValidationRule
from .errors import ErrorsSet, ValidationIssue
from .validators import (
    BUILTIN_VALIDATORS,
    ConfirmationValidator,
    CustomValidator,
    EmailValidator,
    ExclusionValidator,
    InclusionValidator,
    LengthValidator,
    NumericValidator,
    PatternValidator,
    PresenceValidator,
    Validator,
    build_validators,
    deferred_rule,
)

__all__ = [
    "ValidationEngine",
    "ValidationRule",
    "ErrorsSet",
    "ValidationIssue",
    "BUILTIN_VALIDATORS",
    "ConfirmationValidator",
    "CustomValidator",
    "EmailValidator",
    "ExclusionValidator",
    "InclusionValidator",
    "LengthValidator",
    "NumericValidator",
    "PatternValidator",
    "PresenceValidator",
    "Validator",
    "build_validators",
    "deferred_rule",
]
