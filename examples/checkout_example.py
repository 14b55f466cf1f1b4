"""
Checkout — one buyer from shipping form to confirmation.

Run: uv run python examples/checkout_example.py
"""

from kungfu import Ok, Error

from cashier import CheckoutPolicy, configure_logging
from cashier.ledger import MemoryLedger
from cashier.orders import MemoryOrderStore
from cashier.relay import MemoryRelay, RelayDispatcher
from cashier.session import CheckoutController
from examples._infra import CARD, SHIPPING, WIDGET, banner, catalog, identity, run


async def main() -> None:
    configure_logging(json=False)
    banner("Checkout: Steel Widget")

    policy = CheckoutPolicy()
    ledger = MemoryLedger()
    orders = MemoryOrderStore()
    relay = MemoryRelay()
    dispatcher = RelayDispatcher(relay, policy)

    match await CheckoutController.start(
        identity(), WIDGET.id, catalog(),
        ledger=ledger, orders=orders, dispatcher=dispatcher, policy=policy,
    ):
        case Ok(checkout):
            pass
        case Error(e):
            print(f"✗ Cannot start: {e.message}")
            return

    # Below MOQ: clamped to 5
    await checkout.set_quantity(2)
    print(f"Quantity: {checkout.session.quantity}")

    steps = [
        ("details", lambda: checkout.submit_details(SHIPPING)),
        ("payment", lambda: checkout.submit_payment(CARD)),
        ("processing", checkout.payment_processed),
        ("bad code", lambda: checkout.submit_otp("12ab56")),
        ("code", lambda: checkout.submit_otp("123456")),
        ("commit", checkout.otp_processed),
        ("confirm", checkout.confirm),
    ]
    for label, action in steps:
        match await action():
            case Ok(step):
                print(f"  ✓ {label:<10} → {step.value}")
            case Error(e):
                print(f"  ✗ {label:<10} {e.kind.name}: {e.message}")

    await dispatcher.drain()

    session = checkout.session
    print(f"\nOrder: {session.order_id.value if session.order_id else '-'}")
    print(f"Total: {session.confirmed_total} {policy.currency}")
    print(f"Relay saw: {[s.event.value for s in relay.received]}")
    print(f"Card as relayed: {relay.received[0].masked_card}")


if __name__ == "__main__":
    run(main)
