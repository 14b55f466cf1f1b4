"""
Commit service — idempotent order creation keyed on the transaction.
"""

import asyncio
from datetime import datetime, timezone
from decimal import Decimal

import pytest
import pytest_asyncio

from cashier import OrderId, ProductId, TransactionId, UserId, create_database
from cashier._types import Ok
from cashier.ledger import (
    MemoryLedger,
    NewTransaction,
    PaymentTransaction,
    SQLAlchemyLedger,
    TransactionStatus,
)
from cashier.orders import (
    CommitErrorKind,
    CommitRequest,
    CommitService,
    MemoryOrderStore,
    Order,
    OrderStatus,
    SQLAlchemyOrderStore,
)


async def open_transaction(ledger, *, verified: bool = True) -> PaymentTransaction:
    tx = (
        await ledger.create(
            NewTransaction(
                user_id=UserId("buyer_1"),
                amount=Decimal("50.00"),
                currency="USD",
                card_last_four="4242",
                card_brand="Visa",
            )
        )
    ).unwrap()
    if verified:
        tx = (await ledger.mark_verified(tx.id, "123456")).unwrap()
    return tx


def request_for(tx: PaymentTransaction, quantity: int = 5) -> CommitRequest:
    return CommitRequest(
        transaction_id=tx.id,
        buyer_id=UserId("buyer_1"),
        seller_id=UserId("seller_1"),
        product_id=ProductId("prod_1"),
        quantity=quantity,
        shipping={"full_name": "Ada Buyer", "city": "Springfield"},
    )


def stored_order(tx: PaymentTransaction, order_id: str) -> Order:
    return Order(
        id=OrderId(order_id),
        buyer_id=UserId("buyer_1"),
        seller_id=UserId("seller_1"),
        product_id=ProductId("prod_1"),
        transaction_id=tx.id,
        quantity=5,
        total_price=tx.amount,
        currency=tx.currency,
        status=OrderStatus.PAID,
        shipping={"full_name": "Ada Buyer", "city": "Springfield"},
        created_at=datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc),
    )


class LinkedDuringRollback(MemoryOrderStore):
    """A second commit links the ledger right after the rollback deletes the order."""

    def __init__(self, ledger: MemoryLedger) -> None:
        super().__init__()
        self._ledger = ledger

    async def delete(self, order_id: OrderId):
        order = (await self.get(order_id)).unwrap()
        result = await super().delete(order_id)
        await self._ledger.mark_completed(order.transaction_id, order_id)
        return result


@pytest.fixture
def service(ledger: MemoryLedger, orders: MemoryOrderStore, clock) -> CommitService:
    return CommitService(ledger, orders, clock=clock)


class TestCommit:
    @pytest.mark.asyncio
    async def test_commits_verified_transaction(
        self, service: CommitService, ledger: MemoryLedger, orders: MemoryOrderStore
    ):
        tx = await open_transaction(ledger)

        receipt = (await service.commit(request_for(tx))).unwrap()

        assert receipt.replayed is False
        assert receipt.total_price == Decimal("50.00")
        stored_tx = (await ledger.get(tx.id)).unwrap()
        assert stored_tx.status == TransactionStatus.COMPLETED
        assert stored_tx.order_id == receipt.order_id
        [order] = orders.all()
        assert order.id == receipt.order_id
        assert order.transaction_id == tx.id
        assert order.shipping["city"] == "Springfield"

    @pytest.mark.asyncio
    async def test_total_comes_from_ledger(
        self, service: CommitService, ledger: MemoryLedger, orders: MemoryOrderStore
    ):
        tx = await open_transaction(ledger)

        # quantity in the request does not reprice the order
        receipt = (await service.commit(request_for(tx, quantity=9))).unwrap()

        assert receipt.total_price == tx.amount
        assert orders.all()[0].total_price == tx.amount

    @pytest.mark.asyncio
    async def test_replay_returns_same_order(
        self, service: CommitService, ledger: MemoryLedger, orders: MemoryOrderStore
    ):
        tx = await open_transaction(ledger)

        first = (await service.commit(request_for(tx))).unwrap()
        second = (await service.commit(request_for(tx))).unwrap()

        assert second.order_id == first.order_id
        assert second.replayed is True
        assert len(orders.all()) == 1

    @pytest.mark.asyncio
    async def test_concurrent_commits_create_one_order(
        self, service: CommitService, ledger: MemoryLedger, orders: MemoryOrderStore
    ):
        tx = await open_transaction(ledger)

        results = await asyncio.gather(
            service.commit(request_for(tx)),
            service.commit(request_for(tx)),
        )

        receipts = [r.unwrap() for r in results]
        assert receipts[0].order_id == receipts[1].order_id
        assert len(orders.all()) == 1
        assert sorted(r.replayed for r in receipts) == [False, True]
        assert (await ledger.get(tx.id)).unwrap().order_id == receipts[0].order_id


class TestRejected:
    @pytest.mark.asyncio
    async def test_pending_transaction(
        self, service: CommitService, ledger: MemoryLedger, orders: MemoryOrderStore
    ):
        tx = await open_transaction(ledger, verified=False)

        result = await service.commit(request_for(tx))

        assert result.error.kind == CommitErrorKind.CONFLICT
        assert orders.all() == []

    @pytest.mark.asyncio
    async def test_failed_transaction(
        self, service: CommitService, ledger: MemoryLedger, orders: MemoryOrderStore
    ):
        tx = await open_transaction(ledger)
        await ledger.mark_failed(tx.id, "abandoned")

        result = await service.commit(request_for(tx))

        assert result.error.kind == CommitErrorKind.CONFLICT
        assert orders.all() == []

    @pytest.mark.asyncio
    async def test_unknown_transaction(self, service: CommitService, ledger: MemoryLedger):
        tx = await open_transaction(ledger)
        request = request_for(tx)
        missing = CommitRequest(
            transaction_id=TransactionId("tx_missing"),
            buyer_id=request.buyer_id,
            seller_id=request.seller_id,
            product_id=request.product_id,
            quantity=request.quantity,
            shipping=request.shipping,
        )

        result = await service.commit(missing)

        assert result.error.kind == CommitErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_ledger_unavailable(self, service: CommitService, ledger: MemoryLedger):
        tx = await open_transaction(ledger)
        ledger.fail_next("get")

        result = await service.commit(request_for(tx))

        assert result.error.kind == CommitErrorKind.STORAGE


class TestRollback:
    @pytest.mark.asyncio
    async def test_failed_completion_removes_order(
        self, service: CommitService, ledger: MemoryLedger, orders: MemoryOrderStore
    ):
        tx = await open_transaction(ledger)
        ledger.fail_next("mark_completed")

        result = await service.commit(request_for(tx))

        assert result.error.kind == CommitErrorKind.STORAGE
        assert orders.all() == []
        assert (await ledger.get(tx.id)).unwrap().status == TransactionStatus.OTP_VERIFIED

        retried = (await service.commit(request_for(tx))).unwrap()
        assert retried.replayed is False
        assert len(orders.all()) == 1

    @pytest.mark.asyncio
    async def test_insert_failure_leaves_ledger_alone(
        self, service: CommitService, ledger: MemoryLedger, orders: MemoryOrderStore
    ):
        tx = await open_transaction(ledger)
        orders.fail_next("insert_once")

        result = await service.commit(request_for(tx))

        assert result.error.kind == CommitErrorKind.STORAGE
        assert "mark_completed" not in ledger.calls
        assert (await ledger.get(tx.id)).unwrap().status == TransactionStatus.OTP_VERIFIED


class TestRecovery:
    @pytest.mark.asyncio
    async def test_adopts_order_left_by_interrupted_commit(
        self, service: CommitService, ledger: MemoryLedger, orders: MemoryOrderStore
    ):
        tx = await open_transaction(ledger)
        # order written, process gone before the ledger flip
        await orders.insert_once(stored_order(tx, "ord_interrupted"))

        receipt = (await service.commit(request_for(tx))).unwrap()

        assert receipt.order_id == OrderId("ord_interrupted")
        assert receipt.replayed is True
        stored_tx = (await ledger.get(tx.id)).unwrap()
        assert stored_tx.status == TransactionStatus.COMPLETED
        assert stored_tx.order_id == OrderId("ord_interrupted")
        assert len(orders.all()) == 1

    @pytest.mark.asyncio
    async def test_adoption_waits_for_ledger(
        self, service: CommitService, ledger: MemoryLedger, orders: MemoryOrderStore
    ):
        tx = await open_transaction(ledger)
        await orders.insert_once(stored_order(tx, "ord_interrupted"))
        ledger.fail_next("mark_completed")

        result = await service.commit(request_for(tx))

        assert result.error.kind == CommitErrorKind.STORAGE
        # someone else's order is never rolled back
        assert [o.id for o in orders.all()] == [OrderId("ord_interrupted")]
        assert (await ledger.get(tx.id)).unwrap().status == TransactionStatus.OTP_VERIFIED

        retried = (await service.commit(request_for(tx))).unwrap()
        assert retried.order_id == OrderId("ord_interrupted")

    @pytest.mark.asyncio
    async def test_failed_completion_never_hands_out_deleted_order(
        self, service: CommitService, ledger: MemoryLedger, orders: MemoryOrderStore
    ):
        tx = await open_transaction(ledger)
        ledger.fail_next("mark_completed")

        results = await asyncio.gather(
            service.commit(request_for(tx)),
            service.commit(request_for(tx)),
        )

        for result in results:
            if isinstance(result, Ok):
                assert (await orders.get(result.value.order_id)).unwrap() is not None

        final = (await service.commit(request_for(tx))).unwrap()
        assert (await orders.get(final.order_id)).unwrap() is not None
        assert (await ledger.get(tx.id)).unwrap().order_id == final.order_id
        assert len(orders.all()) == 1

    @pytest.mark.asyncio
    async def test_rollback_restores_order_linked_meanwhile(
        self, ledger: MemoryLedger, clock
    ):
        orders = LinkedDuringRollback(ledger)
        service = CommitService(ledger, orders, clock=clock)
        tx = await open_transaction(ledger)
        ledger.fail_next("mark_completed")

        result = await service.commit(request_for(tx))

        assert result.error.kind == CommitErrorKind.STORAGE
        stored_tx = (await ledger.get(tx.id)).unwrap()
        assert stored_tx.status == TransactionStatus.COMPLETED
        [order] = orders.all()
        assert order.id == stored_tx.order_id

        replay = (await service.commit(request_for(tx))).unwrap()
        assert replay.order_id == order.id


class TestSQLAlchemyCommit:
    @pytest_asyncio.fixture
    async def stores(self, tmp_path):
        session_factory, engine = await create_database(
            f"sqlite+aiosqlite:///{tmp_path / 'commit.db'}"
        )
        yield SQLAlchemyLedger(session_factory), SQLAlchemyOrderStore(session_factory)
        await engine.dispose()

    @pytest.mark.asyncio
    async def test_concurrent_commits_share_one_order(self, stores):
        ledger, orders = stores
        service = CommitService(ledger, orders)
        tx = await open_transaction(ledger)

        results = await asyncio.gather(
            service.commit(request_for(tx)),
            service.commit(request_for(tx)),
        )

        receipts = [r.unwrap() for r in results]
        assert receipts[0].order_id == receipts[1].order_id
        stored = (await orders.get_by_transaction(tx.id)).unwrap()
        assert stored is not None
        assert stored.id == receipts[0].order_id
        assert (await ledger.get(tx.id)).unwrap().order_id == stored.id
