"""
insights/results.py

Typed outcome of a collaborator call whose failure is recoverable.

The scan orchestrator wraps calls like the scan-run write, the idempotency
guard query and the digest send with :func:`capture` and inspects the
returned :class:`Ok` / :class:`Err` instead of catching exceptions inline.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    message: str
    exception: BaseException | None = None

    @property
    def ok(self) -> bool:
        return False


Result = Union[Ok[T], Err]


def capture(fn: Callable[..., T], *args: Any, **kwargs: Any) -> Ok[T] | Err:
    """
    Call *fn* and wrap its outcome.

    Only :class:`Exception` subclasses are converted; ``KeyboardInterrupt``
    and ``SystemExit`` still propagate.
    """
    try:
        return Ok(fn(*args, **kwargs))
    except Exception as exc:
        return Err(message=f"{type(exc).__name__}: {exc}", exception=exc)
