"""
Ledger — durable payment transactions with guarded status transitions.

    from cashier import ledger as LG

    ledger = LG.MemoryLedger()
    tx = await ledger.create(LG.NewTransaction(user, amount, "USD", "4242", "Visa"))

    match await ledger.mark_verified(tx_id, "123456"):
        case Ok(tx): ...
        case Error(LG.LedgerError(kind=LG.LedgerErrorKind.CONFLICT)): ...
"""

from cashier.ledger._types import (
    TransactionStatus,
    TRANSITIONS,
    NewTransaction,
    PaymentTransaction,
    LedgerErrorKind,
    LedgerError,
)
from cashier.ledger._store import Ledger, MemoryLedger
from cashier.ledger._sqlalchemy import SQLAlchemyLedger

__all__ = (
    "TransactionStatus",
    "TRANSITIONS",
    "NewTransaction",
    "PaymentTransaction",
    "LedgerErrorKind",
    "LedgerError",
    "Ledger",
    "MemoryLedger",
    "SQLAlchemyLedger",
)
