"""
Saga step creation.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable

from combinators import lift as L
from kungfu import LazyCoroResult, Result

from cashier.saga._types import Compensator, SagaStep


def step[T, E](
    action: LazyCoroResult[T, E],
    compensate: Compensator[T] | None = None,
    *,
    name: str = "step",
) -> SagaStep[T, E]:
    """
    Compensated step from a lazy action.

    Example:
        insert = S.step(
            L.wrap_async(lambda: orders.insert(order)),
            compensate=lambda o: orders.delete(o.id),
            name="insert_order",
        )
    """
    return SagaStep(action=action, compensate=compensate, name=name)


def from_result[T, E](
    action: Callable[[], Awaitable[Result[T, E]]],
    compensate: Compensator[T] | None = None,
    *,
    name: str = "step",
) -> SagaStep[T, E]:
    """Step from an async callable that already returns Result."""
    return SagaStep(action=L.wrap_async(action), compensate=compensate, name=name)


def from_async[T, E](
    action: Callable[[], Awaitable[T]],
    on_error: Callable[[Exception], E],
    compensate: Compensator[T] | None = None,
    *,
    name: str = "step",
) -> SagaStep[T, E]:
    """
    Step from a raising async callable. Exceptions become Error(on_error(e)).

    Example:
        S.from_async(
            lambda: api.capture(payment_id),
            on_error=lambda e: CaptureError(str(e)),
            compensate=api.refund,
        )
    """
    return SagaStep(
        action=L.catching_async(action, on_error=on_error),
        compensate=compensate,
        name=name,
    )


__all__ = ("step", "from_result", "from_async")
