"""Shared fixtures: a frozen clock, memory backends and valid forms."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
import pytest_asyncio

from cashier import CheckoutPolicy, ProductId, UserId
from cashier.catalog import MemoryCatalog, Product, StaticIdentity
from cashier.ledger import MemoryLedger
from cashier.orders import MemoryOrderStore
from cashier.relay import MemoryRelay, RelayDispatcher
from cashier.session import CheckoutController


class Clock:
    """Manually advanced clock."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now += timedelta(**delta)


@pytest.fixture
def clock() -> Clock:
    return Clock(datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def policy(clock: Clock) -> CheckoutPolicy:
    return CheckoutPolicy().with_clock(clock).with_relay(timeout_seconds=1.0)


@pytest.fixture
def buyer() -> UserId:
    return UserId("buyer_1")


@pytest.fixture
def product() -> Product:
    return Product(
        id=ProductId("prod_1"),
        title="Steel Widget",
        seller_id=UserId("seller_1"),
        price_min=Decimal("10"),
        price_max=Decimal("12"),
        moq=5,
    )


@pytest.fixture
def catalog(product: Product) -> MemoryCatalog:
    return MemoryCatalog([product])


@pytest.fixture
def identity(buyer: UserId) -> StaticIdentity:
    return StaticIdentity(buyer)


@pytest.fixture
def ledger(clock: Clock) -> MemoryLedger:
    return MemoryLedger(clock=clock)


@pytest.fixture
def orders() -> MemoryOrderStore:
    return MemoryOrderStore()


@pytest.fixture
def relay() -> MemoryRelay:
    return MemoryRelay()


@pytest.fixture
def dispatcher(relay: MemoryRelay, policy: CheckoutPolicy) -> RelayDispatcher:
    return RelayDispatcher(relay, policy)


@pytest.fixture
def shipping_form() -> dict[str, str]:
    return {
        "fullName": "Ada Buyer",
        "phone": "+1 (555) 010-2030",
        "email": "ada@shop.co",
        "street": "12 Market Street",
        "city": "Springfield",
        "stateProvince": "IL",
        "postalCode": "62701",
        "country": "US",
    }


@pytest.fixture
def card_form() -> dict[str, str]:
    return {
        "cardholderName": "Ada Buyer",
        "cardNumber": "4242 4242 4242 4242",
        "expiryMonth": "08",
        "expiryYear": "29",
        "cvv": "123",
    }


@pytest_asyncio.fixture
async def checkout(
    identity: StaticIdentity,
    catalog: MemoryCatalog,
    product: Product,
    ledger: MemoryLedger,
    orders: MemoryOrderStore,
    dispatcher: RelayDispatcher,
    policy: CheckoutPolicy,
):
    started = await CheckoutController.start(
        identity,
        product.id,
        catalog,
        ledger=ledger,
        orders=orders,
        dispatcher=dispatcher,
        policy=policy,
    )
    controller = started.unwrap()
    yield controller
    await dispatcher.drain()
