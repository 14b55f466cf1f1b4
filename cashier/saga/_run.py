"""
Saga execution with automatic rollback.

Compensators run in reverse order of the steps that succeeded. A failing
compensator does not stop the rollback: it is logged and counted.
"""

from __future__ import annotations

from typing import Any

from kungfu import Error, Ok, Result

from cashier._log import get_logger
from cashier.saga._types import Compensator, SagaError, SagaExpr, SagaResult, SagaStep, Then

log = get_logger("saga")

type Recorded = tuple[str, Any, Compensator[Any]]


class _Failed(Exception):
    """Internal: carries the step error out of the recursive walk."""

    def __init__(self, error: object, step_name: str) -> None:
        self.error = error
        self.step_name = step_name


class _Trail:
    """Executed steps and their recorded compensators."""

    __slots__ = ("steps", "compensators")

    def __init__(self) -> None:
        self.steps = 0
        self.compensators: list[Recorded] = []

    async def run_step(self, step: SagaStep[Any, Any]) -> Any:
        self.steps += 1
        result = await step.action
        match result:
            case Ok(value):
                if step.compensate is not None:
                    self.compensators.append((step.name, value, step.compensate))
                return value
            case Error(e):
                raise _Failed(e, step.name)

    async def walk(self, expr: SagaExpr[Any, Any]) -> Any:
        match expr:
            case SagaStep():
                return await self.run_step(expr)
            case Then(inner=inner, f=f):
                value = await self.walk(inner)
                return await self.run_step(f(value))

    async def rollback(self) -> tuple[int, int]:
        """Run compensators in reverse. Returns (run, failed)."""
        ran = 0
        failed = 0
        for name, value, compensate in reversed(self.compensators):
            try:
                await compensate(value)
                ran += 1
                log.info("saga_compensated", step=name)
            except Exception:
                failed += 1
                log.exception("saga_compensation_failed", step=name)
        return ran, failed


async def run[T, E](saga: SagaExpr[T, E]) -> Result[SagaResult[T], SagaError[E]]:
    """
    Execute a step or a Then chain of any depth.

    Example:
        from cashier import saga as S

        commit = (
            S.step(insert_order, compensate=delete_order, name="insert_order")
            .then(lambda order: S.step(complete_transaction(order), name="complete"))
        )

        match await S.run(commit):
            case Ok(r):
                print(r.value)
            case Error(e):
                print(e.error, e.step_name, e.rollback_complete)
    """
    trail = _Trail()
    try:
        value = await trail.walk(saga)
    except _Failed as failure:
        ran, failed = await trail.rollback()
        log.warning(
            "saga_failed",
            step=failure.step_name,
            compensators_run=ran,
            compensators_failed=failed,
        )
        return Error(SagaError(
            error=failure.error,  # type: ignore[arg-type]
            step_failed=trail.steps,
            step_name=failure.step_name,
            compensators_run=ran,
            compensators_failed=failed,
        ))

    return Ok(SagaResult(
        value=value,
        steps_executed=trail.steps,
        compensators_recorded=len(trail.compensators),
    ))


__all__ = ("run",)
