"""
In-memory catalog and identity — for tests and embedding.
"""

from __future__ import annotations

from collections.abc import Iterable

from cashier._types import Error, Ok, ProductId, Result, UserId
from cashier.catalog._types import CatalogError, CatalogErrorKind, Product


class MemoryCatalog:
    """Dict-backed catalog."""

    def __init__(self, products: Iterable[Product] = ()) -> None:
        self._products: dict[ProductId, Product] = {p.id: p for p in products}

    def add(self, product: Product) -> None:
        self._products[product.id] = product

    async def get_product(self, product_id: ProductId) -> Result[Product, CatalogError]:
        product = self._products.get(product_id)
        if product is None:
            return Error(
                CatalogError(
                    CatalogErrorKind.NOT_FOUND,
                    f"Product not found: {product_id.value}",
                )
            )
        return Ok(product)


class StaticIdentity:
    """Identity that always reports the same user (or nobody)."""

    def __init__(self, user: UserId | None) -> None:
        self._user = user

    def current_user(self) -> UserId | None:
        return self._user


__all__ = ("MemoryCatalog", "StaticIdentity")
