"""
Order types — committed orders, commit requests and receipts.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from enum import Enum, auto
from typing import Any

from cashier._types import Money, OrderId, ProductId, TransactionId, UserId


# ═══════════════════════════════════════════════════════════════════════════════
# Order
# ═══════════════════════════════════════════════════════════════════════════════


class OrderStatus(Enum):
    PAID = "paid"


@dataclass(frozen=True, slots=True)
class Order:
    """
    A committed order.

    Note: ровно один completed PaymentTransaction ссылается на заказ;
    transaction_id уникален на уровне хранилища.
    """

    id: OrderId
    buyer_id: UserId
    seller_id: UserId
    product_id: ProductId
    transaction_id: TransactionId
    quantity: int
    total_price: Money
    currency: str
    status: OrderStatus
    shipping: Mapping[str, Any]
    created_at: datetime


# ═══════════════════════════════════════════════════════════════════════════════
# Commit
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CommitRequest:
    """Everything the commit needs besides the ledger record itself."""

    transaction_id: TransactionId
    buyer_id: UserId
    seller_id: UserId
    product_id: ProductId
    quantity: int
    shipping: Mapping[str, Any]


@dataclass(frozen=True, slots=True)
class CommitReceipt:
    """
    Successful commit.

    replayed=True — заказ уже существовал (повторный или конкурентный коммит).
    """

    order_id: OrderId
    transaction_id: TransactionId
    total_price: Money
    currency: str
    replayed: bool


class CommitErrorKind(Enum):
    """Kinds of commit errors."""

    CONFLICT = auto()  # Transaction is not in a committable state
    NOT_FOUND = auto()  # Unknown transaction
    STORAGE = auto()  # Ledger or order store failed; retryable


@dataclass(frozen=True, slots=True)
class CommitError:
    kind: CommitErrorKind
    message: str
    cause: object | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Store Error
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class OrderStoreError:
    """Order storage operation error."""

    message: str
    cause: Exception | None = None


__all__ = (
    "OrderStatus",
    "Order",
    "CommitRequest",
    "CommitReceipt",
    "CommitErrorKind",
    "CommitError",
    "OrderStoreError",
)
