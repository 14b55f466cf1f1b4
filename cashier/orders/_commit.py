"""
Order commit — ALL routing as nodnod nodes.

Architecture:
    CommitSpec (injected)
         │
         ▼
    SpecNode
         │
         ▼
    FetchTransactionNode (ledger.get)
         │
         ├── LedgerFailureNode ───┐
         ├── CompletedNode ───────┤
         ├── VerifiedNode ────────┼── CommitOutcome (@polymorphic)
         └── UncommittableNode ───┘           │
                                              ▼
                                       FinalResultNode

The only writing branch is VerifiedNode → execute: a two-step saga
    insert_once(order)  ⟲ delete(order)
    mark_completed(transaction, order)
so a failed ledger write never leaves an orphan order behind.

An order already stored for the transaction (a concurrent commit, or one
interrupted between the two writes) is adopted: the ledger is linked to it
and success is reported only once the ledger shows that link.

Note: НЕ используем 'from __future__ import annotations' потому что
nodnod использует type hints в runtime для dependency resolution.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone

from nodnod import NodeError, case, polymorphic

from cashier import _graph as G
from cashier import saga as S
from cashier._log import get_logger
from cashier._types import Error, Ok, OrderId, Result
from cashier.ledger import Ledger, LedgerError, LedgerErrorKind, PaymentTransaction
from cashier.orders._store import OrderStore
from cashier.orders._types import (
    CommitError,
    CommitErrorKind,
    CommitReceipt,
    CommitRequest,
    Order,
    OrderStatus,
)

log = get_logger("orders")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


_LEDGER_KINDS = {
    LedgerErrorKind.CONFLICT: CommitErrorKind.CONFLICT,
    LedgerErrorKind.NOT_FOUND: CommitErrorKind.NOT_FOUND,
    LedgerErrorKind.STORAGE: CommitErrorKind.STORAGE,
}


def _from_ledger(err: LedgerError) -> CommitError:
    return CommitError(_LEDGER_KINDS[err.kind], err.message, err)


# ═══════════════════════════════════════════════════════════════════════════════
# Input: CommitSpec (injected)
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class CommitSpec:
    """One commit attempt with its collaborators."""

    request: CommitRequest
    ledger: Ledger
    orders: OrderStore
    clock: Callable[[], datetime]


@G.node
class SpecNode:
    def __init__(self, spec: CommitSpec) -> None:
        self.spec = spec

    @classmethod
    def __compose__(cls, spec: CommitSpec) -> "SpecNode":
        return cls(spec)


# ═══════════════════════════════════════════════════════════════════════════════
# Fetch Transaction
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class FetchTransactionNode:
    """Reads the ledger record the commit is about."""

    def __init__(
        self,
        spec: CommitSpec,
        transaction: PaymentTransaction | None,
        error: LedgerError | None = None,
    ) -> None:
        self.spec = spec
        self.transaction = transaction
        self.error = error

    @classmethod
    async def __compose__(cls, spec_node: SpecNode) -> "FetchTransactionNode":
        spec = spec_node.spec
        match await spec.ledger.get(spec.request.transaction_id):
            case Ok(transaction):
                return cls(spec, transaction)
            case Error(err):
                return cls(spec, None, err)


# ═══════════════════════════════════════════════════════════════════════════════
# State Nodes: Each validates one ledger state
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class LedgerFailureNode:
    """Validates: the ledger read failed."""

    def __init__(self, error: LedgerError) -> None:
        self.error = error

    @classmethod
    def __compose__(cls, fetch: FetchTransactionNode) -> "LedgerFailureNode":
        if fetch.error is None:
            raise NodeError("Ledger read succeeded")
        return cls(fetch.error)


@G.node
class CompletedNode:
    """Validates: COMPLETED with a linked order."""

    def __init__(self, transaction: PaymentTransaction, order_id: OrderId) -> None:
        self.transaction = transaction
        self.order_id = order_id

    @classmethod
    def __compose__(cls, fetch: FetchTransactionNode) -> "CompletedNode":
        tx = fetch.transaction
        if tx is None:
            raise NodeError("No transaction")
        if not tx.is_completed or tx.order_id is None:
            raise NodeError("Not completed")
        return cls(tx, tx.order_id)


@G.node
class VerifiedNode:
    """Validates: OTP_VERIFIED, the only committable state."""

    def __init__(self, spec: CommitSpec, transaction: PaymentTransaction) -> None:
        self.spec = spec
        self.transaction = transaction

    @classmethod
    def __compose__(cls, fetch: FetchTransactionNode) -> "VerifiedNode":
        tx = fetch.transaction
        if tx is None:
            raise NodeError("No transaction")
        if not tx.is_verified:
            raise NodeError("Not verified")
        return cls(fetch.spec, tx)


@G.node
class UncommittableNode:
    """Validates: transaction exists but is neither verified nor committed."""

    def __init__(self, transaction: PaymentTransaction) -> None:
        self.transaction = transaction

    @classmethod
    def __compose__(cls, fetch: FetchTransactionNode) -> "UncommittableNode":
        tx = fetch.transaction
        if tx is None:
            raise NodeError("No transaction")
        if tx.is_verified or (tx.is_completed and tx.order_id is not None):
            raise NodeError("Committable")
        return cls(tx)


# ═══════════════════════════════════════════════════════════════════════════════
# Outcome Types
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class OutcomeOk:
    receipt: CommitReceipt


@dataclass(frozen=True)
class OutcomeError:
    error: CommitError


type Outcome = OutcomeOk | OutcomeError


# ═══════════════════════════════════════════════════════════════════════════════
# Saga: insert + complete
# ═══════════════════════════════════════════════════════════════════════════════


def _commit_saga(
    spec: CommitSpec, transaction: PaymentTransaction, order: Order
) -> S.SagaExpr[CommitReceipt, CommitError]:
    ledger, orders = spec.ledger, spec.orders

    async def insert() -> Result[Order, CommitError]:
        match await orders.insert_once(order):
            case Ok(stored):
                return Ok(stored)
            case Error(err):
                return Error(CommitError(CommitErrorKind.STORAGE, err.message, err))

    async def undo_insert(stored: Order) -> None:
        if stored.id != order.id:
            return
        match await orders.delete(stored.id):
            case Ok(_):
                log.warning("order_rolled_back", order_id=stored.id.value)
            case Error(err):
                raise RuntimeError(err.message)
        # a concurrent commit may have linked this order meanwhile
        match await _is_linked(ledger, transaction, stored):
            case Ok(False):
                return
            case Error(err):
                raise RuntimeError(err.message)
        match await orders.insert_once(stored):
            case Ok(_):
                log.warning("order_restored", order_id=stored.id.value)
            case Error(err):
                raise RuntimeError(err.message)

    def complete(stored: Order) -> S.SagaStep[CommitReceipt, CommitError]:
        adopted = stored.id != order.id

        async def link() -> Result[CommitReceipt, CommitError]:
            match await ledger.mark_completed(transaction.id, stored.id):
                case Ok(_):
                    pass
                case Error(err) if err.kind == LedgerErrorKind.CONFLICT:
                    # the other commit may have linked this same order first
                    match await _is_linked(ledger, transaction, stored):
                        case Ok(False):
                            return Error(_from_ledger(err))
                        case Error(read_err):
                            return Error(_from_ledger(read_err))
                case Error(err):
                    return Error(_from_ledger(err))

            if adopted:
                # unique transaction_id: another commit inserted first,
                # its rollback may have raced our link
                log.info(
                    "order_commit_adopted",
                    transaction_id=transaction.id.value,
                    order_id=stored.id.value,
                )
                match await orders.insert_once(stored):
                    case Ok(present) if present.id == stored.id:
                        pass
                    case Ok(present):
                        return Error(CommitError(
                            CommitErrorKind.STORAGE,
                            f"Order {stored.id.value} was replaced by {present.id.value}, retry",
                        ))
                    case Error(err):
                        return Error(CommitError(CommitErrorKind.STORAGE, err.message, err))

            return Ok(_receipt(stored, replayed=adopted))

        return S.from_result(link, name="mark_completed")

    return S.from_result(insert, compensate=undo_insert, name="insert_order").then(
        complete
    )


async def _is_linked(
    ledger: Ledger, transaction: PaymentTransaction, stored: Order
) -> Result[bool, LedgerError]:
    match await ledger.get(transaction.id):
        case Ok(current):
            return Ok(current.is_completed and current.order_id == stored.id)
        case Error(err):
            return Error(err)


def _receipt(order: Order, *, replayed: bool) -> CommitReceipt:
    return CommitReceipt(
        order_id=order.id,
        transaction_id=order.transaction_id,
        total_price=order.total_price,
        currency=order.currency,
        replayed=replayed,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Polymorphic Outcome: Each case uses a validated state node
# ═══════════════════════════════════════════════════════════════════════════════


@polymorphic[Outcome]
class CommitOutcome:
    """Router — the state nodes already did the checks."""

    @case
    def ledger_failure(cls, node: LedgerFailureNode) -> Outcome:
        return OutcomeError(_from_ledger(node.error))

    @case
    def replay(cls, node: CompletedNode) -> Outcome:
        """Already committed: hand back the linked order."""
        tx = node.transaction
        log.info(
            "order_replayed",
            transaction_id=tx.id.value,
            order_id=node.order_id.value,
        )
        return OutcomeOk(
            CommitReceipt(
                order_id=node.order_id,
                transaction_id=tx.id,
                total_price=tx.amount,
                currency=tx.currency,
                replayed=True,
            )
        )

    @case
    def rejected(cls, node: UncommittableNode) -> Outcome:
        tx = node.transaction
        log.warning(
            "order_commit_rejected",
            transaction_id=tx.id.value,
            status=tx.status.value,
        )
        return OutcomeError(
            CommitError(
                CommitErrorKind.CONFLICT,
                f"Transaction {tx.id.value} is {tx.status.value}, not otp_verified",
            )
        )

    @case
    async def execute(cls, node: VerifiedNode) -> Outcome:
        """Insert the order and complete the transaction, compensating on failure."""
        spec, tx = node.spec, node.transaction
        request = spec.request
        order = Order(
            id=OrderId.new(),
            buyer_id=request.buyer_id,
            seller_id=request.seller_id,
            product_id=request.product_id,
            transaction_id=tx.id,
            quantity=request.quantity,
            # price fixed at the payment step, never re-read from the catalog
            total_price=tx.amount,
            currency=tx.currency,
            status=OrderStatus.PAID,
            shipping=dict(request.shipping),
            created_at=spec.clock(),
        )

        match await S.run(_commit_saga(spec, tx, order)):
            case Ok(done):
                receipt = done.value
                if not receipt.replayed:
                    log.info(
                        "order_committed",
                        transaction_id=tx.id.value,
                        order_id=receipt.order_id.value,
                        total=str(receipt.total_price),
                    )
                return OutcomeOk(receipt)
            case Error(failed):
                if not failed.rollback_complete:
                    log.error(
                        "order_commit_rollback_incomplete",
                        transaction_id=tx.id.value,
                        order_id=order.id.value,
                    )
                return OutcomeError(failed.error)


# ═══════════════════════════════════════════════════════════════════════════════
# Final Node
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class FinalResultNode:
    """Converts Outcome to typed Result."""

    def __init__(self, outcome: Outcome) -> None:
        self.outcome = outcome

    @classmethod
    def __compose__(cls, outcome: CommitOutcome) -> "FinalResultNode":
        return cls(outcome.value)

    def to_result(self) -> Result[CommitReceipt, CommitError]:
        match self.outcome:
            case OutcomeOk(receipt=receipt):
                return Ok(receipt)
            case OutcomeError(error=error):
                return Error(error)


# ═══════════════════════════════════════════════════════════════════════════════
# Public API
# ═══════════════════════════════════════════════════════════════════════════════


class CommitService:
    """
    The single writer of orders.

    Example:
        service = CommitService(ledger, orders)

        match await service.commit(request):
            case Ok(receipt):
                print(receipt.order_id, receipt.replayed)
            case Error(err):
                print(err.kind, err.message)

    Note: идемпотентен — повторный вызов для того же transaction_id
    возвращает тот же order_id.
    """

    def __init__(
        self,
        ledger: Ledger,
        orders: OrderStore,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._ledger = ledger
        self._orders = orders
        self._clock = clock

    async def commit(self, request: CommitRequest) -> Result[CommitReceipt, CommitError]:
        spec = CommitSpec(request, self._ledger, self._orders, self._clock)
        node = await G.run(FinalResultNode).inject(spec)
        return node.to_result()


__all__ = (
    "CommitSpec",
    "SpecNode",
    "FetchTransactionNode",
    "LedgerFailureNode",
    "CompletedNode",
    "VerifiedNode",
    "UncommittableNode",
    "Outcome",
    "OutcomeOk",
    "OutcomeError",
    "CommitOutcome",
    "FinalResultNode",
    "CommitService",
)
