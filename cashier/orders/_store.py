"""
Order store — protocol + in-memory backend.

insert_once() is the idempotency guard: at most one order per
transaction_id. A second insert for the same transaction writes nothing and
returns the order that is already there.
"""

from __future__ import annotations

import asyncio
from typing import Protocol

from cashier._types import Error, Ok, OrderId, Result, TransactionId
from cashier.orders._types import Order, OrderStoreError


class OrderStore(Protocol):
    """Order storage protocol."""

    async def insert_once(self, order: Order) -> Result[Order, OrderStoreError]:
        """
        Insert unless an order for order.transaction_id exists.

        Returns the stored order for that transaction: `order` itself when
        inserted, the existing one otherwise (compare ids to tell).
        """
        ...

    async def get(self, order_id: OrderId) -> Result[Order | None, OrderStoreError]:
        ...

    async def get_by_transaction(
        self, transaction_id: TransactionId
    ) -> Result[Order | None, OrderStoreError]:
        ...

    async def delete(self, order_id: OrderId) -> Result[bool, OrderStoreError]:
        """Delete order. Returns Ok(True) if existed. Used by commit rollback."""
        ...


class MemoryOrderStore:
    """
    In-memory order store.

    Note: только для single-instance / тестов.
    """

    def __init__(self) -> None:
        self._orders: dict[OrderId, Order] = {}
        self._by_transaction: dict[TransactionId, OrderId] = {}
        self._lock = asyncio.Lock()
        self._failures: dict[str, int] = {}

    def fail_next(self, operation: str, times: int = 1) -> None:
        self._failures[operation] = self._failures.get(operation, 0) + times

    def _injected_failure(self, operation: str) -> OrderStoreError | None:
        left = self._failures.get(operation, 0)
        if left <= 0:
            return None
        self._failures[operation] = left - 1
        return OrderStoreError(f"{operation}: storage unavailable")

    def all(self) -> list[Order]:
        return list(self._orders.values())

    async def insert_once(self, order: Order) -> Result[Order, OrderStoreError]:
        if (err := self._injected_failure("insert_once")) is not None:
            return Error(err)

        async with self._lock:
            existing = self._by_transaction.get(order.transaction_id)
            if existing is not None:
                return Ok(self._orders[existing])
            self._orders[order.id] = order
            self._by_transaction[order.transaction_id] = order.id
            return Ok(order)

    async def get(self, order_id: OrderId) -> Result[Order | None, OrderStoreError]:
        async with self._lock:
            return Ok(self._orders.get(order_id))

    async def get_by_transaction(
        self, transaction_id: TransactionId
    ) -> Result[Order | None, OrderStoreError]:
        async with self._lock:
            order_id = self._by_transaction.get(transaction_id)
            return Ok(self._orders[order_id] if order_id is not None else None)

    async def delete(self, order_id: OrderId) -> Result[bool, OrderStoreError]:
        if (err := self._injected_failure("delete")) is not None:
            return Error(err)

        async with self._lock:
            order = self._orders.pop(order_id, None)
            if order is None:
                return Ok(False)
            del self._by_transaction[order.transaction_id]
            return Ok(True)


__all__ = ("OrderStore", "MemoryOrderStore")
