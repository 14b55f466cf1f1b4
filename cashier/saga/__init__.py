"""
Saga — multi-step writes with compensation.

    from cashier import saga as S

    saga = S.step(action, compensate).then(lambda v: S.step(action2(v), compensate2))
    result = await S.run(saga)
"""

from cashier.saga._types import (
    Compensator,
    SagaStep,
    Then,
    SagaExpr,
    SagaResult,
    SagaError,
)
from cashier.saga._step import step, from_result, from_async
from cashier.saga._run import run

__all__ = (
    "Compensator",
    "SagaStep",
    "Then",
    "SagaExpr",
    "SagaResult",
    "SagaError",
    "step",
    "from_result",
    "from_async",
    "run",
)
