"""
cashier — checkout orchestration: ledger, OTP gate, idempotent order commit.

    from cashier import session as CS  # Checkout state machine
    from cashier import ledger as LG   # Payment transactions
    from cashier import orders as O    # Order commit service
    from cashier import relay as R     # Best-effort notifications
    from cashier import saga as S      # Compensated multi-step writes
"""

from cashier import saga
from cashier import catalog
from cashier import ledger
from cashier import orders
from cashier import otp
from cashier import relay
from cashier import session
from cashier._db import create_database
from cashier._log import configure_logging, get_logger
from cashier._types import (
    Lazy,
    Pure,
    LCR,
    UserId,
    ProductId,
    TransactionId,
    OrderId,
    Money,
    to_money,
)
from cashier.policy import CheckoutPolicy

__version__ = "0.1.0"

__all__ = (
    "saga",
    "catalog",
    "ledger",
    "orders",
    "otp",
    "relay",
    "session",
    "create_database",
    "configure_logging",
    "get_logger",
    "Lazy",
    "Pure",
    "LCR",
    "UserId",
    "ProductId",
    "TransactionId",
    "OrderId",
    "Money",
    "to_money",
    "CheckoutPolicy",
)
