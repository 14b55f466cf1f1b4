"""
Checkout errors — what the controller hands back to the UI.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto

from cashier.session._forms import FieldIssue
from cashier.session._types import Step


class CheckoutErrorKind(Enum):
    """Kinds of checkout errors."""

    VALIDATION = auto()  # Local input check failed, step unchanged
    CONFLICT = auto()  # Not retryable, restart from restart_from
    TRANSIENT = auto()  # Backend hiccup, retry the same action
    BUSY = auto()  # Another transition is in flight on this session
    BLOCKED = auto()  # OTP attempts exhausted
    UNAUTHENTICATED = auto()
    NOT_FOUND = auto()
    INVALID_STEP = auto()  # Action not allowed in the current step


@dataclass(frozen=True, slots=True)
class CheckoutError:
    """
    Checkout error.

    Note: step — шаг, на котором пользователь остаётся; данные сессии не тронуты.
    """

    kind: CheckoutErrorKind
    message: str
    step: Step | None = None
    restart_from: Step | None = None
    issues: tuple[FieldIssue, ...] = ()
    cause: object | None = None

    @property
    def retryable(self) -> bool:
        return self.kind in (CheckoutErrorKind.TRANSIENT, CheckoutErrorKind.BUSY)


__all__ = ("CheckoutErrorKind", "CheckoutError")
