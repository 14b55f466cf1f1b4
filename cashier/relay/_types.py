"""
Relay types — the redacted summary sent for out-of-band review.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Protocol

from cashier._types import Money


class RelayEvent(Enum):
    TRANSACTION_CREATED = "transaction_created"
    OTP_VERIFIED = "otp_verified"


def mask_card(last_four: str) -> str:
    return f"**** **** **** {last_four}"


@dataclass(frozen=True, slots=True)
class RelaySummary:
    """
    What the relay gets to see.

    Note: нет полей для полного номера карты и CVV — редакция на уровне типа.
    """

    event: RelayEvent
    transaction_id: str
    user_id: str
    amount: Money
    currency: str
    card_brand: str
    card_last_four: str
    cardholder: str
    product_id: str
    product_title: str
    quantity: int
    ship_to: str
    occurred_at: datetime

    @property
    def masked_card(self) -> str:
        return mask_card(self.card_last_four)

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready dict."""
        return {
            "event": self.event.value,
            "transaction_id": self.transaction_id,
            "user_id": self.user_id,
            "amount": str(self.amount),
            "currency": self.currency,
            "card": {
                "brand": self.card_brand,
                "masked": self.masked_card,
                "last_four": self.card_last_four,
                "holder": self.cardholder,
            },
            "product": {
                "id": self.product_id,
                "title": self.product_title,
                "quantity": self.quantity,
            },
            "ship_to": self.ship_to,
            "occurred_at": self.occurred_at.isoformat(),
        }


class Relay(Protocol):
    """
    Best-effort notification channel.

    Returns True when the summary was accepted. May raise; the dispatcher
    turns exceptions into logged failures.
    """

    async def notify(self, summary: RelaySummary) -> bool:
        ...


__all__ = ("RelayEvent", "mask_card", "RelaySummary", "Relay")
