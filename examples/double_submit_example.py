"""
Double submit — five concurrent commits, one order.

Run: uv run python examples/double_submit_example.py
"""

import tempfile
from decimal import Decimal
from pathlib import Path

from combinators import batch, lift as L
from kungfu import Ok, Error

from cashier import create_database
from cashier.ledger import NewTransaction, SQLAlchemyLedger
from cashier.orders import CommitRequest, CommitService, SQLAlchemyOrderStore
from examples._infra import BUYER, SHIPPING, WIDGET, banner, run


async def main() -> None:
    banner("Double Submit")

    # file-backed: concurrent sessions need their own connections
    workdir = tempfile.TemporaryDirectory()
    url = f"sqlite+aiosqlite:///{Path(workdir.name) / 'cashier.db'}"
    session_factory, engine = await create_database(url)
    ledger = SQLAlchemyLedger(session_factory)
    orders = SQLAlchemyOrderStore(session_factory)
    service = CommitService(ledger, orders)

    try:
        # 1. A verified payment
        tx = (await ledger.create(NewTransaction(
            user_id=BUYER,
            amount=Decimal("50.00"),
            currency="USD",
            card_last_four="4242",
            card_brand="Visa",
        ))).unwrap()
        await ledger.mark_verified(tx.id, "123456")
        print(f"1. Transaction {tx.id.value} verified\n")

        request = CommitRequest(
            transaction_id=tx.id,
            buyer_id=BUYER,
            seller_id=WIDGET.seller_id,
            product_id=WIDGET.id,
            quantity=5,
            shipping=SHIPPING,
        )

        # 2. Five commits at once (via combinators.batch)
        print("2. Concurrent commits (5):")
        result = await batch(
            range(5),
            handler=lambda _: L.wrap_async(lambda: service.commit(request)),
            concurrency=5,
        )
        match result:
            case Ok(receipts):
                for r in receipts:
                    print(f"   {r.order_id.value} replayed={r.replayed}")
                print(f"   Distinct orders: {len({r.order_id for r in receipts})} (only 1!)\n")
            case Error(e):
                print(f"   ✗ {e.kind.name}: {e.message}\n")

        # 3. Late retry
        print("3. Retry after the fact:")
        match await service.commit(request):
            case Ok(r):
                print(f"   {r.order_id.value} replayed={r.replayed}")
            case Error(e):
                print(f"   ✗ {e.kind.name}: {e.message}")

        stored = (await ledger.get(tx.id)).unwrap()
        print(f"\nLedger: {stored.status.value} → {stored.order_id.value if stored.order_id else '-'}")

    finally:
        await engine.dispose()
        workdir.cleanup()


if __name__ == "__main__":
    run(main)
