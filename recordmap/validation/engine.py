"""
Validation engine.

Runs every validation rule of a model against a record and aggregates the
outcome into the record's ErrorsSet. All rules start together and the
engine waits for every one of them; there is no short-circuit and no
timeout, so a rule that never completes leaves validation pending.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Iterable

from recordmap.core.exceptions import RuleError
from recordmap.validation.validators import Validator, is_awaitable

if TYPE_CHECKING:
    from recordmap.validation.errors import ErrorsSet

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidationRule:
    """One validator applied to one or more keys."""
    keys: tuple[str, ...]
    validator: Validator

    def to_dict(self) -> dict[str, Any]:
        return {"keys": list(self.keys), "validator": repr(self.validator)}


class ValidationEngine:
    """Aggregates a fixed set of validation rules."""

    def __init__(self, rules: Iterable[ValidationRule]):
        self.rules: tuple[ValidationRule, ...] = tuple(rules)

    async def validate(self, record: Any) -> bool:
        """Validate ``record`` into its own ``errors`` set."""
        return await self.run(record, record.errors)

    async def run(self, record: Any, errors: ErrorsSet) -> bool:
        """
        Run every rule against ``record``, collecting failures into ``errors``.

        ``errors`` is cleared first. Returns True when no rule recorded an
        error.

        Raises:
            RuleError: A validator raised; raised only after all other rules finished
        """
        errors.clear()
        pending = [
            self._invoke(rule.validator, errors, record, key)
            for rule in self.rules
            for key in rule.keys
        ]
        if pending:
            outcomes = await asyncio.gather(*pending, return_exceptions=True)
            failures = [outcome for outcome in outcomes if isinstance(outcome, BaseException)]
            for failure in failures:
                if isinstance(failure, asyncio.CancelledError):
                    raise failure
            if failures:
                raise failures[0]

        logger.debug(
            f"Validated {type(record).__name__} with {len(pending)} rule(s): "
            f"{len(errors)} error(s)"
        )
        return not errors

    async def _invoke(
        self,
        validator: Validator,
        errors: ErrorsSet,
        record: Any,
        key: str,
    ) -> None:
        try:
            result = validator.validate(errors, record, key)
            if is_awaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except RuleError:
            raise
        except Exception as e:
            raise RuleError(
                f"Validator {validator.name} failed on '{key}': {e}",
                key=key,
                phase="validate",
            ) from e
