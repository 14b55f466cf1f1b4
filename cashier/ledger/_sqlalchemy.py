"""
SQLAlchemy ledger — conditional UPDATE keyed on the expected status.

    session_factory, _ = await create_database(url)
    ledger = SQLAlchemyLedger(session_factory)

    result = await ledger.mark_verified(tx_id, "123456")
    # UPDATE payment_transactions SET status='otp_verified', ...
    #  WHERE id = :id AND status IN ('pending_otp')
    # rowcount == 0 → NOT_FOUND or CONFLICT (re-read to tell which)
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any, cast

from sqlalchemy import update
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cashier._db import TransactionTable
from cashier._log import get_logger
from cashier._types import (
    Error,
    Ok,
    OrderId,
    Result,
    TransactionId,
    UserId,
    from_cents,
    to_cents,
)
from cashier.ledger._types import (
    TRANSITIONS,
    LedgerError,
    LedgerErrorKind,
    NewTransaction,
    PaymentTransaction,
    TransactionStatus,
    conflict,
    not_found,
)

log = get_logger("ledger")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SQLAlchemyLedger:
    """Ledger over the payment_transactions table."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock

    async def create(
        self, new: NewTransaction
    ) -> Result[PaymentTransaction, LedgerError]:
        now = self._clock()
        row = TransactionTable(
            id=TransactionId.new().value,
            user_id=new.user_id.value,
            amount_cents=to_cents(new.amount),
            currency=new.currency,
            card_last_four=new.card_last_four,
            card_brand=new.card_brand,
            status=TransactionStatus.PENDING_OTP.value,
            otp_verified=False,
            otp_code=None,
            order_id=None,
            failure_reason=None,
            meta=dict(new.metadata),
            created_at=now,
            updated_at=now,
        )
        try:
            async with self._session_factory() as session:
                session.add(row)
                await session.commit()
        except Exception as e:
            return Error(_storage("Failed to create transaction", e))

        record = _to_record(row)
        log.info(
            "transaction_created",
            transaction_id=record.id.value,
            amount=str(record.amount),
            currency=record.currency,
        )
        return Ok(record)

    async def get(
        self, transaction_id: TransactionId
    ) -> Result[PaymentTransaction, LedgerError]:
        try:
            async with self._session_factory() as session:
                row = await session.get(TransactionTable, transaction_id.value)
        except Exception as e:
            return Error(_storage("Failed to get transaction", e))

        if row is None:
            return Error(not_found(transaction_id))
        return Ok(_to_record(row))

    async def mark_verified(
        self, transaction_id: TransactionId, otp_code: str
    ) -> Result[PaymentTransaction, LedgerError]:
        return await self._transition(
            transaction_id,
            TransactionStatus.OTP_VERIFIED,
            {"otp_verified": True, "otp_code": otp_code},
        )

    async def mark_completed(
        self, transaction_id: TransactionId, order_id: OrderId
    ) -> Result[PaymentTransaction, LedgerError]:
        return await self._transition(
            transaction_id,
            TransactionStatus.COMPLETED,
            {"order_id": order_id.value},
        )

    async def mark_failed(
        self, transaction_id: TransactionId, reason: str
    ) -> Result[PaymentTransaction, LedgerError]:
        return await self._transition(
            transaction_id,
            TransactionStatus.FAILED,
            {"failure_reason": reason},
        )

    async def _transition(
        self,
        transaction_id: TransactionId,
        target: TransactionStatus,
        values: dict[str, Any],
    ) -> Result[PaymentTransaction, LedgerError]:
        allowed = [s.value for s in TRANSITIONS[target]]
        stmt = (
            update(TransactionTable)
            .where(
                TransactionTable.id == transaction_id.value,
                TransactionTable.status.in_(allowed),
            )
            .values(status=target.value, updated_at=self._clock(), **values)
        )

        try:
            async with self._session_factory() as session:
                cursor = cast(CursorResult[Any], await session.execute(stmt))
                await session.commit()
                row = await session.get(TransactionTable, transaction_id.value)
        except Exception as e:
            return Error(_storage(f"Failed to move to {target.value}", e))

        if row is None:
            return Error(not_found(transaction_id))
        if cursor.rowcount == 0:
            return Error(
                conflict(transaction_id, target, TransactionStatus(row.status))
            )

        log.info(
            "transaction_transitioned",
            transaction_id=transaction_id.value,
            status=target.value,
        )
        return Ok(_to_record(row))


def _storage(message: str, cause: Exception) -> LedgerError:
    return LedgerError(LedgerErrorKind.STORAGE, f"{message}: {cause}", cause=cause)


def _to_record(row: TransactionTable) -> PaymentTransaction:
    return PaymentTransaction(
        id=TransactionId(row.id),
        user_id=UserId(row.user_id),
        amount=from_cents(row.amount_cents),
        currency=row.currency,
        card_last_four=row.card_last_four,
        card_brand=row.card_brand,
        status=TransactionStatus(row.status),
        otp_verified=row.otp_verified,
        otp_code=row.otp_code,
        order_id=OrderId(row.order_id) if row.order_id else None,
        failure_reason=row.failure_reason,
        metadata=dict(row.meta),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


__all__ = ("SQLAlchemyLedger",)
