"""
Catalog — product lookup and identity, the checkout's read-only inputs.

    from cashier import catalog as C

    catalog = C.MemoryCatalog([C.Product(ProductId("p1"), "Widget", UserId("s1"), price_min=Decimal("10"), moq=5)])
    identity = C.StaticIdentity(UserId("buyer"))
"""

from cashier.catalog._types import (
    Product,
    CatalogErrorKind,
    CatalogError,
    Catalog,
    Identity,
)
from cashier.catalog._memory import MemoryCatalog, StaticIdentity

__all__ = (
    "Product",
    "CatalogErrorKind",
    "CatalogError",
    "Catalog",
    "Identity",
    "MemoryCatalog",
    "StaticIdentity",
)
