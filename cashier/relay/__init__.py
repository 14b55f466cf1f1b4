"""
Relay — best-effort notification of transaction events.

    from cashier import relay as R

    dispatcher = R.RelayDispatcher(R.WebhookRelay(url), policy)
    dispatcher.fire(summary)
"""

from cashier.relay._types import RelayEvent, mask_card, RelaySummary, Relay
from cashier.relay._relay import WebhookRelay, MemoryRelay
from cashier.relay._dispatch import RelayFailure, RelayDispatcher

__all__ = (
    "RelayEvent",
    "mask_card",
    "RelaySummary",
    "Relay",
    "WebhookRelay",
    "MemoryRelay",
    "RelayFailure",
    "RelayDispatcher",
)
