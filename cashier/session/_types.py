"""
Session types — steps, captured details and the per-attempt session.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any

from cashier._types import Money, OrderId, TransactionId, UserId
from cashier.catalog import Product
from cashier.otp import OtpChallenge


# ═══════════════════════════════════════════════════════════════════════════════
# Step: checkout state
# ═══════════════════════════════════════════════════════════════════════════════


class Step(Enum):
    """
    Checkout steps, forward order.

        DETAILS → PAYMENT → PROCESSING_PAYMENT → OTP → PROCESSING_OTP → REVIEW → CONFIRMATION

    Backward: PAYMENT → DETAILS, OTP → PAYMENT, REVIEW → DETAILS | PAYMENT.
    """

    DETAILS = "details"
    PAYMENT = "payment"
    PROCESSING_PAYMENT = "processing_payment"
    OTP = "otp"
    PROCESSING_OTP = "processing_otp"
    REVIEW = "review"
    CONFIRMATION = "confirmation"


# ═══════════════════════════════════════════════════════════════════════════════
# Captured details
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class ShippingDetails:
    full_name: str
    phone: str
    email: str
    street: str
    city: str
    state_province: str
    postal_code: str
    country: str

    def snapshot(self) -> dict[str, Any]:
        return asdict(self)

    @property
    def ship_to(self) -> str:
        return f"{self.full_name}, {self.city}, {self.country}"


@dataclass(frozen=True, slots=True)
class PaymentDetails:
    """
    Card as the session keeps it.

    Note: полного номера и CVV здесь нет и быть не может.
    """

    cardholder: str
    masked_number: str
    last_four: str
    brand: str
    expiry_month: str
    expiry_year: str


@dataclass(frozen=True, slots=True)
class Priced:
    """Price fixed when the transaction is created."""

    unit_price: Money
    quantity: int
    amount: Money


# ═══════════════════════════════════════════════════════════════════════════════
# Session
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(slots=True)
class CheckoutSession:
    """
    One checkout attempt. Mutated only by CheckoutController.

    Invariants:
        quantity >= product.min_quantity
        transaction_id set once, never reassigned
        order_id set at most once
    """

    user_id: UserId
    product: Product
    quantity: int
    step: Step = Step.DETAILS
    shipping: ShippingDetails | None = None
    payment: PaymentDetails | None = None
    transaction_id: TransactionId | None = None
    order_id: OrderId | None = None
    priced: Priced | None = None
    confirmed_total: Money | None = None
    otp: OtpChallenge | None = None
    blocked: bool = False


__all__ = (
    "Step",
    "ShippingDetails",
    "PaymentDetails",
    "Priced",
    "CheckoutSession",
)
