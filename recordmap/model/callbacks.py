"""
Error-first callback delivery.

Every public asynchronous operation is a coroutine. When the caller passes
``callback``, the outcome is delivered as ``callback(error, result)`` and the
coroutine resolves to the result (or None on failure) without raising;
without a callback, awaiting the coroutine raises the error. The callback
may itself be a coroutine function.
"""

from __future__ import annotations

import inspect
from typing import Any, Awaitable, Callable, Optional, TypeVar

from recordmap.core.exceptions import RecordMapError

T = TypeVar("T")

Callback = Callable[[Optional[RecordMapError], Any], Any]


async def deliver(
    operation: Awaitable[T],
    callback: Callback | None,
) -> T | None:
    """Await ``operation`` and route its outcome to ``callback`` when given."""
    try:
        result = await operation
    except RecordMapError as error:
        if callback is None:
            raise
        await _invoke(callback, error, None)
        return None

    if callback is not None:
        await _invoke(callback, None, result)
    return result


async def _invoke(callback: Callback, error: RecordMapError | None, result: Any) -> None:
    outcome = callback(error, result)
    if inspect.isawaitable(outcome):
        await outcome
