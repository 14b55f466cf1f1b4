"""
Core types for cashier.

Re-exports from kungfu/combinators + identity types shared by every module.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Never
import uuid

# Re-export from kungfu
from kungfu import Result, Ok, Error, LazyCoroResult

# Re-export from combinators
from combinators import LCR

# ═══════════════════════════════════════════════════════════════════════════════
# Lazy Computation Aliases
# ═══════════════════════════════════════════════════════════════════════════════

type Lazy[T, E] = LazyCoroResult[T, E]
"""Lazy async computation that may fail."""

type Pure[T] = Lazy[T, Never]
"""Lazy computation that cannot fail."""

# ═══════════════════════════════════════════════════════════════════════════════
# Identities
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class UserId:
    value: str


@dataclass(frozen=True, slots=True)
class ProductId:
    value: str


@dataclass(frozen=True, slots=True)
class TransactionId:
    value: str

    @staticmethod
    def new() -> TransactionId:
        return TransactionId(f"tx_{uuid.uuid4().hex[:16]}")


@dataclass(frozen=True, slots=True)
class OrderId:
    value: str

    @staticmethod
    def new() -> OrderId:
        return OrderId(f"ord_{uuid.uuid4().hex[:12]}")


# ═══════════════════════════════════════════════════════════════════════════════
# Money
# ═══════════════════════════════════════════════════════════════════════════════

type Money = Decimal
"""Amounts are Decimal in the major unit (dollars, not cents)."""

CENT = Decimal("0.01")


def to_money(value: Decimal | int | float | str) -> Money:
    """Quantize to cents. Floats go through str() to avoid binary noise."""
    if isinstance(value, float):
        value = str(value)
    return Decimal(value).quantize(CENT)


def to_cents(amount: Money) -> int:
    return int(to_money(amount) * 100)


def from_cents(cents: int) -> Money:
    return (Decimal(cents) / 100).quantize(CENT)


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    # Re-exports from kungfu
    "Result",
    "Ok",
    "Error",
    "LazyCoroResult",
    # Re-exports from combinators
    "LCR",
    # Type aliases
    "Lazy",
    "Pure",
    # Identities
    "UserId",
    "ProductId",
    "TransactionId",
    "OrderId",
    # Money
    "Money",
    "CENT",
    "to_money",
    "to_cents",
    "from_cents",
)
