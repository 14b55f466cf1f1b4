"""
Checkout controller — drives one buyer through the step graph.

    match await CheckoutController.start(
        identity, ProductId("p1"), catalog,
        ledger=ledger, orders=orders, dispatcher=dispatcher,
    ):
        case Ok(checkout):
            await checkout.set_quantity(3)
            await checkout.submit_details(shipping_form)
            await checkout.submit_payment(card_form)
            await checkout.payment_processed()
            await checkout.submit_otp("123456")
            await checkout.otp_processed()
            await checkout.confirm()
        case Error(err):
            ...

Every operation returns Result[Step, CheckoutError]. On Error the session
stays on its current step with its data intact.
"""

from __future__ import annotations

import uuid
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from cashier._log import get_logger
from cashier._types import Error, Ok, ProductId, Result, TransactionId, to_money
from cashier.catalog import Catalog, CatalogErrorKind, Identity
from cashier.ledger import (
    Ledger,
    LedgerError,
    LedgerErrorKind,
    NewTransaction,
    PaymentTransaction,
    TransactionStatus,
)
from cashier.orders import CommitErrorKind, CommitRequest, CommitService, OrderStore
from cashier.otp import OtpGate, OtpRejectionKind
from cashier.policy import CheckoutPolicy
from cashier.relay import RelayDispatcher, RelayEvent, RelaySummary
from cashier.session._errors import CheckoutError, CheckoutErrorKind
from cashier.session._forms import parse_payment, parse_shipping
from cashier.session._types import CheckoutSession, Priced, Step

log = get_logger("checkout")

type Outcome = Result[Step, CheckoutError]


# ═══════════════════════════════════════════════════════════════════════════════
# Ledger status → resume step
# ═══════════════════════════════════════════════════════════════════════════════

_RESUME_AFTER_PAYMENT = {
    TransactionStatus.PENDING_OTP: Step.PROCESSING_PAYMENT,
    TransactionStatus.OTP_VERIFIED: Step.PROCESSING_OTP,
    TransactionStatus.COMPLETED: Step.REVIEW,
}

_BACK = {
    Step.PAYMENT: Step.DETAILS,
    Step.OTP: Step.PAYMENT,
    Step.REVIEW: Step.PAYMENT,
}


class CheckoutController:
    """
    State machine for one CheckoutSession.

    Note: один переход за раз — второй вызов во время in-flight перехода
    сразу получает BUSY и не трогает ни леджер, ни релей.
    """

    def __init__(
        self,
        session: CheckoutSession,
        *,
        ledger: Ledger,
        commit: CommitService,
        dispatcher: RelayDispatcher,
        policy: CheckoutPolicy,
    ) -> None:
        self._session = session
        self._ledger = ledger
        self._commit = commit
        self._dispatcher = dispatcher
        self._policy = policy
        self._gate = OtpGate(policy)
        self._busy = False
        self.id = uuid.uuid4().hex[:12]

    # ───────────────────────────────────────────────────────────────────────────
    # Start
    # ───────────────────────────────────────────────────────────────────────────

    @classmethod
    async def start(
        cls,
        identity: Identity,
        product_id: ProductId,
        catalog: Catalog,
        *,
        ledger: Ledger,
        orders: OrderStore,
        dispatcher: RelayDispatcher,
        policy: CheckoutPolicy | None = None,
    ) -> Result[CheckoutController, CheckoutError]:
        """Authenticate, read the product once, open a session at DETAILS."""
        policy = policy or CheckoutPolicy()

        user = identity.current_user()
        if user is None:
            return Error(CheckoutError(
                CheckoutErrorKind.UNAUTHENTICATED,
                "Sign in to check out",
            ))

        match await catalog.get_product(product_id):
            case Ok(product):
                pass
            case Error(err) if err.kind == CatalogErrorKind.NOT_FOUND:
                return Error(CheckoutError(CheckoutErrorKind.NOT_FOUND, err.message, cause=err))
            case Error(err):
                return Error(CheckoutError(CheckoutErrorKind.TRANSIENT, err.message, cause=err))

        session = CheckoutSession(
            user_id=user,
            product=product,
            quantity=product.min_quantity,
        )
        controller = cls(
            session,
            ledger=ledger,
            commit=CommitService(ledger, orders, clock=policy.clock),
            dispatcher=dispatcher,
            policy=policy,
        )
        log.info(
            "checkout_started",
            checkout_id=controller.id,
            user_id=user.value,
            product_id=product_id.value,
            quantity=session.quantity,
        )
        return Ok(controller)

    @property
    def session(self) -> CheckoutSession:
        return self._session

    @property
    def step(self) -> Step:
        return self._session.step

    # ───────────────────────────────────────────────────────────────────────────
    # Guard
    # ───────────────────────────────────────────────────────────────────────────

    async def _transition(
        self,
        action: str,
        allowed: frozenset[Step],
        body: Callable[[], Awaitable[Outcome]],
    ) -> Outcome:
        session = self._session
        if self._busy:
            return Error(CheckoutError(
                CheckoutErrorKind.BUSY,
                f"{action}: another action is still running",
                step=session.step,
            ))
        if session.blocked:
            return Error(CheckoutError(
                CheckoutErrorKind.BLOCKED,
                "Checkout is blocked after too many invalid codes",
                step=session.step,
            ))
        if session.step not in allowed:
            return Error(CheckoutError(
                CheckoutErrorKind.INVALID_STEP,
                f"{action} is not allowed at {session.step.value}",
                step=session.step,
            ))

        self._busy = True
        before = session.step
        try:
            outcome = await body()
        finally:
            self._busy = False

        match outcome:
            case Ok(after):
                session.step = after
                if after != before:
                    log.info(
                        "checkout_step",
                        checkout_id=self.id,
                        action=action,
                        from_step=before.value,
                        to_step=after.value,
                    )
            case Error(err):
                log.info(
                    "checkout_action_failed",
                    checkout_id=self.id,
                    action=action,
                    step=before.value,
                    kind=err.kind.name,
                    reason=err.message,
                )
        return outcome

    def _error(
        self,
        kind: CheckoutErrorKind,
        message: str,
        *,
        restart_from: Step | None = None,
        cause: object | None = None,
    ) -> Outcome:
        if kind == CheckoutErrorKind.CONFLICT and restart_from is None:
            restart_from = Step.DETAILS
        return Error(CheckoutError(
            kind,
            message,
            step=self._session.step,
            restart_from=restart_from,
            cause=cause,
        ))

    def _ledger_error(self, err: LedgerError) -> Outcome:
        if err.kind == LedgerErrorKind.STORAGE:
            return self._error(CheckoutErrorKind.TRANSIENT, "Payment service unavailable, try again", cause=err)
        return self._error(CheckoutErrorKind.CONFLICT, err.message, cause=err)

    # ───────────────────────────────────────────────────────────────────────────
    # DETAILS
    # ───────────────────────────────────────────────────────────────────────────

    async def set_quantity(self, quantity: int) -> Outcome:
        """Clamp to the product MOQ. Locked once a transaction exists."""

        async def body() -> Outcome:
            session = self._session
            if session.transaction_id is not None:
                return self._error(
                    CheckoutErrorKind.INVALID_STEP,
                    "Quantity is fixed once payment has been submitted",
                )
            session.quantity = max(int(quantity), session.product.min_quantity)
            return Ok(session.step)

        return await self._transition(
            "set_quantity", frozenset({Step.DETAILS, Step.PAYMENT}), body
        )

    async def submit_details(self, form: Mapping[str, Any]) -> Outcome:
        async def body() -> Outcome:
            session = self._session
            match parse_shipping(form):
                case Ok(shipping):
                    pass
                case Error(issues):
                    return Error(CheckoutError(
                        CheckoutErrorKind.VALIDATION,
                        "Check the shipping details",
                        step=session.step,
                        issues=issues,
                    ))
            if session.order_id is not None and shipping != session.shipping:
                return self._error(
                    CheckoutErrorKind.INVALID_STEP,
                    "The order is already placed, its shipping address can no longer change",
                    restart_from=Step.REVIEW,
                )
            session.quantity = max(session.quantity, session.product.min_quantity)
            session.shipping = shipping
            return Ok(Step.PAYMENT)

        return await self._transition("submit_details", frozenset({Step.DETAILS}), body)

    # ───────────────────────────────────────────────────────────────────────────
    # PAYMENT
    # ───────────────────────────────────────────────────────────────────────────

    async def submit_payment(self, form: Mapping[str, Any]) -> Outcome:
        """
        Validate the card, then create the transaction, or resume the one
        this session already has. The card is fixed once the transaction exists.
        """

        async def body() -> Outcome:
            session = self._session
            if session.shipping is None:
                return Error(CheckoutError(
                    CheckoutErrorKind.VALIDATION,
                    "Shipping details are missing",
                    step=session.step,
                    restart_from=Step.DETAILS,
                ))

            match parse_payment(form, today=self._policy.now().date()):
                case Ok(payment):
                    pass
                case Error(issues):
                    return Error(CheckoutError(
                        CheckoutErrorKind.VALIDATION,
                        "Check the card details",
                        step=session.step,
                        issues=issues,
                    ))

            if session.transaction_id is not None:
                if session.payment is not None and payment != session.payment:
                    # the ledger already holds this card
                    return self._error(
                        CheckoutErrorKind.INVALID_STEP,
                        f"This checkout already pays with {session.payment.masked_number}, "
                        "the card can no longer change",
                        restart_from=Step.REVIEW if session.order_id is not None else None,
                    )
                return await self._resume_transaction(session.transaction_id)

            unit_price = session.product.unit_price
            amount = to_money(unit_price * session.quantity)
            created = await self._ledger.create(NewTransaction(
                user_id=session.user_id,
                amount=amount,
                currency=self._policy.currency,
                card_last_four=payment.last_four,
                card_brand=payment.brand,
                metadata={
                    "product_id": session.product.id.value,
                    "product_title": session.product.title,
                    "quantity": session.quantity,
                    "unit_price": str(unit_price),
                },
            ))
            match created:
                case Ok(tx):
                    pass
                case Error(err):
                    return self._ledger_error(err)

            session.transaction_id = tx.id
            session.payment = payment
            session.priced = Priced(unit_price, session.quantity, amount)
            self._notify(RelayEvent.TRANSACTION_CREATED, tx)
            return Ok(Step.PROCESSING_PAYMENT)

        return await self._transition("submit_payment", frozenset({Step.PAYMENT}), body)

    async def _resume_transaction(self, transaction_id: TransactionId) -> Outcome:
        session = self._session
        match await self._ledger.get(transaction_id):
            case Ok(tx):
                pass
            case Error(err):
                return self._ledger_error(err)

        if tx.status == TransactionStatus.FAILED:
            return self._error(
                CheckoutErrorKind.CONFLICT,
                "This payment can no longer be completed, start a new checkout",
            )
        if tx.status == TransactionStatus.COMPLETED and session.order_id is None:
            session.order_id = tx.order_id
            session.confirmed_total = tx.amount

        log.info(
            "checkout_resumed",
            checkout_id=self.id,
            transaction_id=tx.id.value,
            status=tx.status.value,
        )
        return Ok(_RESUME_AFTER_PAYMENT[tx.status])

    # ───────────────────────────────────────────────────────────────────────────
    # OTP
    # ───────────────────────────────────────────────────────────────────────────

    async def payment_processed(self) -> Outcome:
        """Processing screen finished. Opens the OTP window."""

        async def body() -> Outcome:
            session = self._session
            session.otp = (
                self._gate.renew(session.otp)
                if session.otp is not None
                else self._gate.open()
            )
            return Ok(Step.OTP)

        return await self._transition(
            "payment_processed", frozenset({Step.PROCESSING_PAYMENT}), body
        )

    async def resend_otp(self) -> Outcome:
        """New window, same attempt count."""

        async def body() -> Outcome:
            session = self._session
            session.otp = (
                self._gate.renew(session.otp)
                if session.otp is not None
                else self._gate.open()
            )
            return Ok(Step.OTP)

        return await self._transition("resend_otp", frozenset({Step.OTP}), body)

    async def submit_otp(self, code: str | None) -> Outcome:
        async def body() -> Outcome:
            session = self._session
            transaction_id = session.transaction_id
            if transaction_id is None or session.otp is None:
                return self._error(CheckoutErrorKind.CONFLICT, "No payment awaits a code")

            match self._gate.check(session.otp, code):
                case Ok(accepted):
                    session.otp = accepted.challenge
                case Error(rejection):
                    session.otp = rejection.challenge
                    if rejection.kind == OtpRejectionKind.EXHAUSTED:
                        return await self._block(transaction_id, rejection.message)
                    return self._error(CheckoutErrorKind.VALIDATION, rejection.message)

            match await self._ledger.mark_verified(transaction_id, accepted.code):
                case Ok(tx):
                    self._notify(RelayEvent.OTP_VERIFIED, tx)
                    return Ok(Step.PROCESSING_OTP)
                case Error(err) if err.status in (
                    TransactionStatus.OTP_VERIFIED,
                    TransactionStatus.COMPLETED,
                ):
                    # verified by an earlier submission of this session
                    return Ok(Step.PROCESSING_OTP)
                case Error(err):
                    return self._ledger_error(err)

        return await self._transition("submit_otp", frozenset({Step.OTP}), body)

    async def _block(self, transaction_id: TransactionId, reason: str) -> Outcome:
        self._session.blocked = True

        match await self._ledger.mark_failed(transaction_id, "otp_attempts_exhausted"):
            case Ok(_):
                pass
            case Error(err):
                log.error(
                    "checkout_block_not_recorded",
                    checkout_id=self.id,
                    transaction_id=transaction_id.value,
                    reason=err.message,
                )
        log.warning(
            "checkout_blocked",
            checkout_id=self.id,
            transaction_id=transaction_id.value,
        )
        return self._error(CheckoutErrorKind.BLOCKED, reason)

    # ───────────────────────────────────────────────────────────────────────────
    # Commit
    # ───────────────────────────────────────────────────────────────────────────

    async def otp_processed(self) -> Outcome:
        """Processing screen finished. Commits the order exactly once."""

        async def body() -> Outcome:
            session = self._session
            if (
                session.shipping is None
                or session.payment is None
                or session.transaction_id is None
            ):
                return self._error(CheckoutErrorKind.CONFLICT, "Checkout data is incomplete")

            request = CommitRequest(
                transaction_id=session.transaction_id,
                buyer_id=session.user_id,
                seller_id=session.product.seller_id,
                product_id=session.product.id,
                quantity=session.quantity,
                shipping=session.shipping.snapshot(),
            )
            match await self._commit.commit(request):
                case Ok(receipt):
                    if session.order_id is None:
                        session.order_id = receipt.order_id
                    session.confirmed_total = receipt.total_price
                    return Ok(Step.REVIEW)
                case Error(err) if err.kind == CommitErrorKind.STORAGE:
                    return self._error(
                        CheckoutErrorKind.TRANSIENT,
                        "Could not place the order, try again",
                        cause=err,
                    )
                case Error(err):
                    return self._error(CheckoutErrorKind.CONFLICT, err.message, cause=err)

        return await self._transition(
            "otp_processed", frozenset({Step.PROCESSING_OTP}), body
        )

    # ───────────────────────────────────────────────────────────────────────────
    # Navigation
    # ───────────────────────────────────────────────────────────────────────────

    async def edit_shipping(self) -> Outcome:
        async def body() -> Outcome:
            return Ok(Step.DETAILS)

        return await self._transition(
            "edit_shipping", frozenset({Step.PAYMENT, Step.REVIEW}), body
        )

    async def edit_payment(self) -> Outcome:
        async def body() -> Outcome:
            return Ok(Step.PAYMENT)

        return await self._transition(
            "edit_payment", frozenset({Step.OTP, Step.REVIEW}), body
        )

    async def back(self) -> Outcome:
        async def body() -> Outcome:
            return Ok(_BACK[self._session.step])

        return await self._transition("back", frozenset(_BACK), body)

    async def confirm(self) -> Outcome:
        """Display-only. No external calls."""

        async def body() -> Outcome:
            if self._session.order_id is None:
                return self._error(CheckoutErrorKind.INVALID_STEP, "No order to confirm")
            return Ok(Step.CONFIRMATION)

        return await self._transition("confirm", frozenset({Step.REVIEW}), body)

    # ───────────────────────────────────────────────────────────────────────────
    # Relay
    # ───────────────────────────────────────────────────────────────────────────

    def _notify(self, event: RelayEvent, tx: PaymentTransaction) -> None:
        session = self._session
        self._dispatcher.fire(RelaySummary(
            event=event,
            transaction_id=tx.id.value,
            user_id=tx.user_id.value,
            amount=tx.amount,
            currency=tx.currency,
            card_brand=tx.card_brand,
            card_last_four=tx.card_last_four,
            cardholder=session.payment.cardholder if session.payment else "",
            product_id=session.product.id.value,
            product_title=session.product.title,
            quantity=session.quantity,
            ship_to=session.shipping.ship_to if session.shipping else "",
            occurred_at=self._policy.now(),
        ))


__all__ = ("CheckoutController",)
