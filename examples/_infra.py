"""Shared infrastructure for examples."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Coroutine
from decimal import Decimal

from cashier import ProductId, UserId
from cashier.catalog import MemoryCatalog, Product, StaticIdentity


# Fixtures
BUYER = UserId("buyer_42")

WIDGET = Product(
    id=ProductId("widget"),
    title="Steel Widget",
    seller_id=UserId("seller_7"),
    price_min=Decimal("10.00"),
    price_max=Decimal("12.50"),
    moq=5,
)

SHIPPING = {
    "fullName": "Ada Buyer",
    "phone": "+1 (555) 010-2030",
    "email": "ada@shop.co",
    "street": "12 Market Street",
    "city": "Springfield",
    "stateProvince": "IL",
    "postalCode": "62701",
    "country": "US",
}

CARD = {
    "cardholderName": "Ada Buyer",
    "cardNumber": "4242 4242 4242 4242",
    "expiryMonth": "08",
    "expiryYear": "29",
    "cvv": "123",
}


def catalog() -> MemoryCatalog:
    return MemoryCatalog([WIDGET])


def identity() -> StaticIdentity:
    return StaticIdentity(BUYER)


# Helpers
def banner(title: str) -> None:
    print(f"\n{'─' * 50}\n{title}\n{'─' * 50}")


def run(main: Callable[[], Coroutine[object, object, None]]) -> None:
    asyncio.run(main())
