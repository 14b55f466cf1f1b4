"""
Ledger types — payment transactions and their guarded lifecycle.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from typing import Any

from cashier._types import Money, OrderId, TransactionId, UserId


# ═══════════════════════════════════════════════════════════════════════════════
# Status: Transaction Lifecycle
# ═══════════════════════════════════════════════════════════════════════════════


class TransactionStatus(Enum):
    """
    Status of a payment transaction.

    Lifecycle:
        PENDING_OTP → OTP_VERIFIED → COMPLETED
                    ↘            ↘
                      FAILED (terminal)
    """

    PENDING_OTP = "pending_otp"
    OTP_VERIFIED = "otp_verified"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TransactionStatus.COMPLETED, TransactionStatus.FAILED)


# Target status → statuses it may be entered from.
TRANSITIONS: Mapping[TransactionStatus, frozenset[TransactionStatus]] = {
    TransactionStatus.OTP_VERIFIED: frozenset({TransactionStatus.PENDING_OTP}),
    TransactionStatus.COMPLETED: frozenset({TransactionStatus.OTP_VERIFIED}),
    TransactionStatus.FAILED: frozenset(
        {TransactionStatus.PENDING_OTP, TransactionStatus.OTP_VERIFIED}
    ),
}


# ═══════════════════════════════════════════════════════════════════════════════
# Records
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class NewTransaction:
    """
    Input for ledger.create().

    Note: только last four + brand — полный номер карты и CVV в леджер не попадают.
    """

    user_id: UserId
    amount: Money
    currency: str
    card_last_four: str
    card_brand: str
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class PaymentTransaction:
    """A stored payment transaction."""

    id: TransactionId
    user_id: UserId
    amount: Money
    currency: str
    card_last_four: str
    card_brand: str
    status: TransactionStatus
    otp_verified: bool
    otp_code: str | None
    order_id: OrderId | None
    failure_reason: str | None
    metadata: Mapping[str, Any]
    created_at: datetime
    updated_at: datetime

    @property
    def is_pending(self) -> bool:
        return self.status == TransactionStatus.PENDING_OTP

    @property
    def is_verified(self) -> bool:
        return self.status == TransactionStatus.OTP_VERIFIED

    @property
    def is_completed(self) -> bool:
        return self.status == TransactionStatus.COMPLETED

    @property
    def is_failed(self) -> bool:
        return self.status == TransactionStatus.FAILED


# ═══════════════════════════════════════════════════════════════════════════════
# Errors
# ═══════════════════════════════════════════════════════════════════════════════


class LedgerErrorKind(Enum):
    """Kinds of ledger errors."""

    CONFLICT = auto()  # Current status does not allow the transition
    NOT_FOUND = auto()  # Unknown transaction id
    STORAGE = auto()  # Backend failure


@dataclass(frozen=True, slots=True)
class LedgerError:
    """
    Ledger operation error.

    Note: status — фактический статус при CONFLICT (если известен).
    """

    kind: LedgerErrorKind
    message: str
    status: TransactionStatus | None = None
    cause: Exception | None = None


def conflict(
    transaction_id: TransactionId,
    target: TransactionStatus,
    actual: TransactionStatus,
) -> LedgerError:
    return LedgerError(
        LedgerErrorKind.CONFLICT,
        f"{transaction_id.value}: cannot move {actual.value} → {target.value}",
        status=actual,
    )


def not_found(transaction_id: TransactionId) -> LedgerError:
    return LedgerError(
        LedgerErrorKind.NOT_FOUND,
        f"Transaction not found: {transaction_id.value}",
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "TransactionStatus",
    "TRANSITIONS",
    "NewTransaction",
    "PaymentTransaction",
    "LedgerErrorKind",
    "LedgerError",
    "conflict",
    "not_found",
)
