"""
Catalog types — product snapshot and the external collaborator protocols.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum, auto
from typing import Protocol

from cashier._types import Money, ProductId, Result, UserId, to_money


# ═══════════════════════════════════════════════════════════════════════════════
# Product
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Product:
    """
    Product as the checkout sees it. Read once when the session starts.

    Note: price_min/price_max — диапазон цены из каталога;
    при оформлении берём price_min, иначе price_max, иначе 0.
    """

    id: ProductId
    title: str
    seller_id: UserId
    price_min: Money | None = None
    price_max: Money | None = None
    moq: int | None = None
    images: tuple[str, ...] = ()

    @property
    def unit_price(self) -> Money:
        if self.price_min is not None:
            return to_money(self.price_min)
        if self.price_max is not None:
            return to_money(self.price_max)
        return to_money(Decimal(0))

    @property
    def min_quantity(self) -> int:
        """Minimum order quantity. Missing or zero MOQ means 1."""
        return max(self.moq or 1, 1)


# ═══════════════════════════════════════════════════════════════════════════════
# Errors
# ═══════════════════════════════════════════════════════════════════════════════


class CatalogErrorKind(Enum):
    NOT_FOUND = auto()
    UNAVAILABLE = auto()  # Backend could not answer


@dataclass(frozen=True, slots=True)
class CatalogError:
    kind: CatalogErrorKind
    message: str
    cause: Exception | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Protocols: external collaborators
# ═══════════════════════════════════════════════════════════════════════════════


class Catalog(Protocol):
    """Product lookup."""

    async def get_product(self, product_id: ProductId) -> Result[Product, CatalogError]:
        ...


class Identity(Protocol):
    """Authenticated user, or None for an anonymous visitor."""

    def current_user(self) -> UserId | None:
        ...


__all__ = (
    "Product",
    "CatalogErrorKind",
    "CatalogError",
    "Catalog",
    "Identity",
)
