from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class BestEffort(Generic[T]):
    """
    Outcome of a bookkeeping side effect (audit write, cache maintenance).

    Callers may inspect it but are never required to; a failed side effect
    is recorded here and logged instead of being raised into the business
    operation that triggered it.
    """

    ok: bool
    value: Optional[T] = None
    error: Optional[BaseException] = None

    @classmethod
    def success(cls, value: Optional[T] = None) -> "BestEffort[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: BaseException) -> "BestEffort[T]":
        return cls(ok=False, error=error)


def run_best_effort(
    log: logging.Logger,
    event: str,
    fn: Callable[..., T],
    *args: Any,
    context: Optional[Dict[str, Any]] = None,
    **kwargs: Any,
) -> BestEffort[T]:
    try:
        return BestEffort.success(fn(*args, **kwargs))
    except Exception as e:
        log.warning(
            event,
            extra={
                "extra": {
                    "event": event,
                    "error_type": type(e).__name__,
                    "message": str(e),
                    **(context or {}),
                }
            },
        )
        return BestEffort.failure(e)
