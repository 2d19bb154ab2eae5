# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Typed success/failure results for construction APIs.

Factory helpers in :mod:`mcpkit.server.factory` never let a fault escape past
their boundary.  Instead they return either :class:`Success` or
:class:`Failure`, and callers branch on the outcome::

    result = await create_transport(config)
    match result:
        case Success(value=transport):
            server.connect(transport)
        case Failure(error=exc):
            log.error("transport unavailable: %s", exc)
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, NoReturn, TypeAlias, TypeVar, Union


T = TypeVar("T")
U = TypeVar("U")
E = TypeVar("E", bound=BaseException)


@dataclass(frozen=True, slots=True)
class Success(Generic[T]):
    """Holds the value produced by a successful operation."""

    value: T

    @property
    def is_success(self) -> bool:
        return True

    @property
    def is_failure(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value

    def value_or(self, default: object) -> T:
        return self.value


@dataclass(frozen=True, slots=True)
class Failure(Generic[E]):
    """Holds the exception captured from a failed operation."""

    error: E

    @property
    def is_success(self) -> bool:
        return False

    @property
    def is_failure(self) -> bool:
        return True

    def unwrap(self) -> NoReturn:
        raise self.error

    def value_or(self, default: U) -> U:
        return default


Result: TypeAlias = Union[Success[T], Failure[E]]


def fold(result: Result[T, E], on_success: Callable[[T], U], on_failure: Callable[[E], U]) -> U:
    """Collapse *result* into a single value."""
    if isinstance(result, Success):
        return on_success(result.value)
    return on_failure(result.error)


def catching(func: Callable[[], T]) -> Result[T, Exception]:
    """Run *func* and capture any :class:`Exception` it raises.

    ``BaseException`` subclasses (cancellation, ``KeyboardInterrupt``) are not
    captured.
    """
    try:
        return Success(func())
    except Exception as exc:
        return Failure(exc)


async def catching_async(func: Callable[[], Awaitable[T]]) -> Result[T, Exception]:
    """Await *func()* and capture any :class:`Exception` it raises."""
    try:
        return Success(await func())
    except Exception as exc:
        return Failure(exc)


__all__ = ["Failure", "Result", "Success", "catching", "catching_async", "fold"]
