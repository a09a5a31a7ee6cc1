"""Validation error collection attached to a record."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Any, Iterator


@dataclass(frozen=True)
class ValidationIssue:
    """One (key, message) pair."""
    key: str
    message: str

    @property
    def full_message(self) -> str:
        return f"{self.key.replace('_', ' ').capitalize()} {self.message}"


class ErrorsSet:
    """
    Multiset of (key, message) pairs for one record.

    Empty exactly when the record is considered valid. Duplicate pairs are
    kept, so ``len(errors)`` counts every failing rule.
    """

    def __init__(self) -> None:
        self._issues: list[ValidationIssue] = []

    def add(self, key: str, message: str) -> ValidationIssue:
        issue = ValidationIssue(key, message)
        self._issues.append(issue)
        return issue

    def clear(self) -> None:
        self._issues.clear()

    def on(self, key: str) -> list[str]:
        """Messages recorded against ``key``."""
        return [issue.message for issue in self._issues if issue.key == key]

    @property
    def keys(self) -> list[str]:
        return list(dict.fromkeys(issue.key for issue in self._issues))

    def full_messages(self) -> list[str]:
        return [issue.full_message for issue in self._issues]

    def to_dict(self) -> dict[str, list[str]]:
        result: dict[str, list[str]] = {}
        for issue in self._issues:
            result.setdefault(issue.key, []).append(issue.message)
        return result

    def __len__(self) -> int:
        return len(self._issues)

    def __bool__(self) -> bool:
        return bool(self._issues)

    def __iter__(self) -> Iterator[ValidationIssue]:
        return iter(list(self._issues))

    def __contains__(self, key: object) -> bool:
        return any(issue.key == key for issue in self._issues)

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, ErrorsSet):
            return NotImplemented
        return Counter(self._issues) == Counter(other._issues)

    def __repr__(self) -> str:
        return f"ErrorsSet({self.to_dict()!r})"
