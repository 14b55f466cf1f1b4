"""
Saga types — steps, chains and outcomes.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from kungfu import LazyCoroResult

# ═══════════════════════════════════════════════════════════════════════════════
# Compensator: Undo Action
# ═══════════════════════════════════════════════════════════════════════════════

type Compensator[T] = Callable[[T], Awaitable[None]]
"""Receives the value the step produced and undoes it."""

# ═══════════════════════════════════════════════════════════════════════════════
# SagaStep / Then
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class SagaStep[T, E]:
    """
    One step: lazy action + optional compensator.

    The compensator is recorded only when the action returns Ok.
    """

    action: LazyCoroResult[T, E]
    compensate: Compensator[T] | None
    name: str = "step"

    def then[U, E2](self, f: Callable[[T], SagaStep[U, E2]]) -> Then[T, U, E, E2]:
        return Then(self, f)


@dataclass(frozen=True, slots=True)
class Then[T, U, E, E2]:
    """
    Sequential composition: run `inner`, feed its value to `f`, run the result.

    `inner` may itself be a Then, so chains nest to any depth.
    """

    inner: SagaStep[T, E] | Then[object, T, E, E]
    f: Callable[[T], SagaStep[U, E2]]

    def then[V, E3](self, g: Callable[[U], SagaStep[V, E3]]) -> Then[U, V, E | E2, E3]:
        return Then(self, g)  # type: ignore[arg-type]


type SagaExpr[T, E] = SagaStep[T, E] | Then[object, T, E, E]

# ═══════════════════════════════════════════════════════════════════════════════
# Outcomes
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class SagaResult[T]:
    value: T
    steps_executed: int
    compensators_recorded: int


@dataclass(frozen=True, slots=True)
class SagaError[E]:
    """
    Failed saga.

    Note: rollback_complete=False — какой-то компенсатор упал,
    состояние требует ручного разбора (ошибка залогирована).
    """

    error: E
    step_failed: int
    step_name: str
    compensators_run: int
    compensators_failed: int

    @property
    def rollback_complete(self) -> bool:
        return self.compensators_failed == 0


__all__ = (
    "Compensator",
    "SagaStep",
    "Then",
    "SagaExpr",
    "SagaResult",
    "SagaError",
)
