"""
Saga — commit an order, roll it back when the ledger refuses.

The ledger write fails once, the inserted order is deleted, a retry succeeds.
"""

from decimal import Decimal

from kungfu import Ok, Error

from cashier.ledger import MemoryLedger, NewTransaction
from cashier.orders import CommitRequest, CommitService, MemoryOrderStore
from examples._infra import BUYER, SHIPPING, WIDGET, banner, run


async def main() -> None:
    banner("Saga: Commit With Rollback")

    ledger = MemoryLedger()
    orders = MemoryOrderStore()
    service = CommitService(ledger, orders)

    tx = (await ledger.create(NewTransaction(
        user_id=BUYER,
        amount=Decimal("50.00"),
        currency="USD",
        card_last_four="4242",
        card_brand="Visa",
    ))).unwrap()
    await ledger.mark_verified(tx.id, "123456")

    request = CommitRequest(
        transaction_id=tx.id,
        buyer_id=BUYER,
        seller_id=WIDGET.seller_id,
        product_id=WIDGET.id,
        quantity=5,
        shipping=SHIPPING,
    )

    # Ledger unavailable for the completion write
    ledger.fail_next("mark_completed")

    for attempt in (1, 2):
        print(f"\nAttempt {attempt}...")
        match await service.commit(request):
            case Ok(r):
                print(f"  ✓ Order {r.order_id.value}")
            case Error(e):
                print(f"  ✗ {e.kind.name}: {e.message}")
        print(f"  Orders stored: {len(orders.all())}")


if __name__ == "__main__":
    run(main)
