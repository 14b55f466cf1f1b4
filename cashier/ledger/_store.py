"""
Ledger store — Result-based protocol + in-memory backend.

Every status write is a guarded transition: the record moves only from a
status listed in TRANSITIONS, otherwise CONFLICT and nothing is written.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timezone
from typing import Protocol

from cashier._log import get_logger
from cashier._types import Error, Ok, OrderId, Result, TransactionId, to_money
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


# ═══════════════════════════════════════════════════════════════════════════════
# Ledger Protocol
# ═══════════════════════════════════════════════════════════════════════════════


class Ledger(Protocol):
    """
    Transaction ledger protocol.

    Note: нет generic update — только переходы статуса,
    невалидный переход невозможно выразить.
    """

    async def create(
        self, new: NewTransaction
    ) -> Result[PaymentTransaction, LedgerError]:
        """Insert a fresh PENDING_OTP transaction with a new id."""
        ...

    async def get(
        self, transaction_id: TransactionId
    ) -> Result[PaymentTransaction, LedgerError]:
        ...

    async def mark_verified(
        self, transaction_id: TransactionId, otp_code: str
    ) -> Result[PaymentTransaction, LedgerError]:
        """PENDING_OTP → OTP_VERIFIED, records the submitted code."""
        ...

    async def mark_completed(
        self, transaction_id: TransactionId, order_id: OrderId
    ) -> Result[PaymentTransaction, LedgerError]:
        """OTP_VERIFIED → COMPLETED, links the order."""
        ...

    async def mark_failed(
        self, transaction_id: TransactionId, reason: str
    ) -> Result[PaymentTransaction, LedgerError]:
        """PENDING_OTP | OTP_VERIFIED → FAILED."""
        ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ═══════════════════════════════════════════════════════════════════════════════
# Memory Ledger: For Testing
# ═══════════════════════════════════════════════════════════════════════════════


class MemoryLedger:
    """
    In-memory ledger.

    Note: single-process only. asyncio.Lock делает check-and-set атомарным
    между корутинами.

    fail_next() makes the next call(s) of an operation return STORAGE,
    to simulate an unavailable backend.
    """

    def __init__(self, clock: Callable[[], datetime] = _utcnow) -> None:
        self._records: dict[TransactionId, PaymentTransaction] = {}
        self._lock = asyncio.Lock()
        self._clock = clock
        self._failures: dict[str, int] = {}
        self.calls: list[str] = []

    def fail_next(self, operation: str, times: int = 1) -> None:
        self._failures[operation] = self._failures.get(operation, 0) + times

    def _injected_failure(self, operation: str) -> LedgerError | None:
        self.calls.append(operation)
        left = self._failures.get(operation, 0)
        if left <= 0:
            return None
        self._failures[operation] = left - 1
        return LedgerError(LedgerErrorKind.STORAGE, f"{operation}: storage unavailable")

    async def create(
        self, new: NewTransaction
    ) -> Result[PaymentTransaction, LedgerError]:
        if (err := self._injected_failure("create")) is not None:
            return Error(err)

        async with self._lock:
            now = self._clock()
            record = PaymentTransaction(
                id=TransactionId.new(),
                user_id=new.user_id,
                amount=to_money(new.amount),
                currency=new.currency,
                card_last_four=new.card_last_four,
                card_brand=new.card_brand,
                status=TransactionStatus.PENDING_OTP,
                otp_verified=False,
                otp_code=None,
                order_id=None,
                failure_reason=None,
                metadata=dict(new.metadata),
                created_at=now,
                updated_at=now,
            )
            self._records[record.id] = record

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
        if (err := self._injected_failure("get")) is not None:
            return Error(err)

        async with self._lock:
            record = self._records.get(transaction_id)
        if record is None:
            return Error(not_found(transaction_id))
        return Ok(record)

    async def mark_verified(
        self, transaction_id: TransactionId, otp_code: str
    ) -> Result[PaymentTransaction, LedgerError]:
        return await self._transition(
            "mark_verified",
            transaction_id,
            TransactionStatus.OTP_VERIFIED,
            otp_verified=True,
            otp_code=otp_code,
        )

    async def mark_completed(
        self, transaction_id: TransactionId, order_id: OrderId
    ) -> Result[PaymentTransaction, LedgerError]:
        return await self._transition(
            "mark_completed",
            transaction_id,
            TransactionStatus.COMPLETED,
            order_id=order_id,
        )

    async def mark_failed(
        self, transaction_id: TransactionId, reason: str
    ) -> Result[PaymentTransaction, LedgerError]:
        return await self._transition(
            "mark_failed",
            transaction_id,
            TransactionStatus.FAILED,
            failure_reason=reason,
        )

    async def _transition(
        self,
        operation: str,
        transaction_id: TransactionId,
        target: TransactionStatus,
        **changes: object,
    ) -> Result[PaymentTransaction, LedgerError]:
        if (err := self._injected_failure(operation)) is not None:
            return Error(err)

        async with self._lock:
            current = self._records.get(transaction_id)
            if current is None:
                return Error(not_found(transaction_id))
            if current.status not in TRANSITIONS[target]:
                return Error(conflict(transaction_id, target, current.status))

            updated = replace(
                current,
                status=target,
                updated_at=self._clock(),
                **changes,  # type: ignore[arg-type]
            )
            self._records[transaction_id] = updated

        log.info(
            "transaction_transitioned",
            transaction_id=transaction_id.value,
            status=target.value,
        )
        return Ok(updated)


__all__ = ("Ledger", "MemoryLedger")
