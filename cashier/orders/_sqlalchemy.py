"""
SQLAlchemy order store — INSERT ... ON CONFLICT (transaction_id) DO NOTHING.
"""

from __future__ import annotations

from typing import Any, cast

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cashier._db import OrderTable
from cashier._types import (
    Error,
    Ok,
    OrderId,
    ProductId,
    Result,
    TransactionId,
    UserId,
    from_cents,
    to_cents,
)
from cashier.orders._types import Order, OrderStatus, OrderStoreError


class SQLAlchemyOrderStore:
    """Order store over the orders table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def insert_once(self, order: Order) -> Result[Order, OrderStoreError]:
        try:
            async with self._session_factory() as session:
                stmt = _insert_stmt(session, order)
                await session.execute(stmt)
                await session.commit()

                row = (
                    await session.execute(
                        select(OrderTable).where(
                            OrderTable.transaction_id == order.transaction_id.value
                        )
                    )
                ).scalar_one_or_none()
        except Exception as e:
            return Error(OrderStoreError(f"Failed to insert order: {e}", e))

        if row is None:
            return Error(OrderStoreError("Order vanished right after insert"))
        return Ok(_to_order(row))

    async def get(self, order_id: OrderId) -> Result[Order | None, OrderStoreError]:
        try:
            async with self._session_factory() as session:
                row = await session.get(OrderTable, order_id.value)
        except Exception as e:
            return Error(OrderStoreError(f"Failed to get order: {e}", e))
        return Ok(_to_order(row) if row is not None else None)

    async def get_by_transaction(
        self, transaction_id: TransactionId
    ) -> Result[Order | None, OrderStoreError]:
        try:
            async with self._session_factory() as session:
                row = (
                    await session.execute(
                        select(OrderTable).where(
                            OrderTable.transaction_id == transaction_id.value
                        )
                    )
                ).scalar_one_or_none()
        except Exception as e:
            return Error(OrderStoreError(f"Failed to get order: {e}", e))
        return Ok(_to_order(row) if row is not None else None)

    async def delete(self, order_id: OrderId) -> Result[bool, OrderStoreError]:
        try:
            async with self._session_factory() as session:
                cursor = cast(
                    CursorResult[Any],
                    await session.execute(
                        delete(OrderTable).where(OrderTable.id == order_id.value)
                    ),
                )
                await session.commit()
        except Exception as e:
            return Error(OrderStoreError(f"Failed to delete order: {e}", e))
        return Ok(cursor.rowcount > 0)


def _insert_stmt(session: AsyncSession, order: Order) -> Any:
    """INSERT ... ON CONFLICT DO NOTHING for the session's dialect."""
    values = dict(
        id=order.id.value,
        buyer_id=order.buyer_id.value,
        seller_id=order.seller_id.value,
        product_id=order.product_id.value,
        transaction_id=order.transaction_id.value,
        quantity=order.quantity,
        total_cents=to_cents(order.total_price),
        currency=order.currency,
        status=order.status.value,
        shipping=dict(order.shipping),
        created_at=order.created_at,
    )
    dialect = session.bind.dialect.name if session.bind is not None else "sqlite"
    insert = pg_insert if dialect == "postgresql" else sqlite_insert
    return (
        insert(OrderTable)
        .values(**values)
        .on_conflict_do_nothing(index_elements=["transaction_id"])
    )


def _to_order(row: OrderTable) -> Order:
    return Order(
        id=OrderId(row.id),
        buyer_id=UserId(row.buyer_id),
        seller_id=UserId(row.seller_id),
        product_id=ProductId(row.product_id),
        transaction_id=TransactionId(row.transaction_id),
        quantity=row.quantity,
        total_price=from_cents(row.total_cents),
        currency=row.currency,
        status=OrderStatus(row.status),
        shipping=dict(row.shipping),
        created_at=row.created_at,
    )


__all__ = ("SQLAlchemyOrderStore",)
