"""
Orders — the commit service and order storage.

    from cashier import orders as O

    service = O.CommitService(ledger, O.MemoryOrderStore())
    result = await service.commit(O.CommitRequest(tx_id, buyer, seller, product, 5, shipping))
"""

from cashier.orders._types import (
    OrderStatus,
    Order,
    CommitRequest,
    CommitReceipt,
    CommitErrorKind,
    CommitError,
    OrderStoreError,
)
from cashier.orders._store import OrderStore, MemoryOrderStore
from cashier.orders._sqlalchemy import SQLAlchemyOrderStore
from cashier.orders._commit import CommitService

__all__ = (
    "OrderStatus",
    "Order",
    "CommitRequest",
    "CommitReceipt",
    "CommitErrorKind",
    "CommitError",
    "OrderStoreError",
    "OrderStore",
    "MemoryOrderStore",
    "SQLAlchemyOrderStore",
    "CommitService",
)
