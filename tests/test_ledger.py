"""
Ledger tests — guarded transitions on the memory backend.
"""

from decimal import Decimal

import pytest
from structlog.testing import capture_logs

from cashier import OrderId, TransactionId, UserId
from cashier.ledger import (
    LedgerErrorKind,
    MemoryLedger,
    NewTransaction,
    TransactionStatus,
)


def new_transaction(amount: str = "50.00") -> NewTransaction:
    return NewTransaction(
        user_id=UserId("buyer_1"),
        amount=Decimal(amount),
        currency="USD",
        card_last_four="4242",
        card_brand="Visa",
        metadata={"product_id": "prod_1", "quantity": 5},
    )


class TestCreate:
    @pytest.mark.asyncio
    async def test_starts_pending(self, ledger: MemoryLedger):
        tx = (await ledger.create(new_transaction())).unwrap()

        assert tx.status == TransactionStatus.PENDING_OTP
        assert tx.otp_verified is False
        assert tx.order_id is None
        assert tx.id.value.startswith("tx_")
        assert tx.metadata["quantity"] == 5

    @pytest.mark.asyncio
    async def test_amount_quantized_to_cents(self, ledger: MemoryLedger):
        tx = (await ledger.create(new_transaction("19.999"))).unwrap()
        assert tx.amount == Decimal("20.00")

    @pytest.mark.asyncio
    async def test_every_create_gets_fresh_id(self, ledger: MemoryLedger):
        first = (await ledger.create(new_transaction())).unwrap()
        second = (await ledger.create(new_transaction())).unwrap()
        assert first.id != second.id

    @pytest.mark.asyncio
    async def test_logs_creation(self, ledger: MemoryLedger):
        with capture_logs() as logs:
            tx = (await ledger.create(new_transaction())).unwrap()

        created = [e for e in logs if e["event"] == "transaction_created"]
        assert len(created) == 1
        assert created[0]["transaction_id"] == tx.id.value
        assert created[0]["component"] == "ledger"


class TestTransitions:
    @pytest.mark.asyncio
    async def test_forward_path(self, ledger: MemoryLedger):
        tx = (await ledger.create(new_transaction())).unwrap()

        verified = (await ledger.mark_verified(tx.id, "123456")).unwrap()
        assert verified.status == TransactionStatus.OTP_VERIFIED
        assert verified.otp_verified is True
        assert verified.otp_code == "123456"

        order_id = OrderId("ord_1")
        completed = (await ledger.mark_completed(tx.id, order_id)).unwrap()
        assert completed.status == TransactionStatus.COMPLETED
        assert completed.order_id == order_id

    @pytest.mark.asyncio
    async def test_cannot_complete_pending(self, ledger: MemoryLedger):
        tx = (await ledger.create(new_transaction())).unwrap()

        result = await ledger.mark_completed(tx.id, OrderId("ord_1"))

        err = result.error
        assert err.kind == LedgerErrorKind.CONFLICT
        assert err.status == TransactionStatus.PENDING_OTP
        stored = (await ledger.get(tx.id)).unwrap()
        assert stored.status == TransactionStatus.PENDING_OTP
        assert stored.order_id is None

    @pytest.mark.asyncio
    async def test_second_verify_is_conflict(self, ledger: MemoryLedger):
        tx = (await ledger.create(new_transaction())).unwrap()
        await ledger.mark_verified(tx.id, "111111")

        result = await ledger.mark_verified(tx.id, "222222")

        assert result.error.kind == LedgerErrorKind.CONFLICT
        assert result.error.status == TransactionStatus.OTP_VERIFIED
        assert (await ledger.get(tx.id)).unwrap().otp_code == "111111"

    @pytest.mark.asyncio
    async def test_fail_from_pending_and_verified(self, ledger: MemoryLedger):
        pending = (await ledger.create(new_transaction())).unwrap()
        verified = (await ledger.create(new_transaction())).unwrap()
        await ledger.mark_verified(verified.id, "123456")

        for tid in (pending.id, verified.id):
            failed = (await ledger.mark_failed(tid, "otp_attempts_exhausted")).unwrap()
            assert failed.status == TransactionStatus.FAILED
            assert failed.failure_reason == "otp_attempts_exhausted"

    @pytest.mark.asyncio
    async def test_terminal_states_are_final(self, ledger: MemoryLedger):
        tx = (await ledger.create(new_transaction())).unwrap()
        await ledger.mark_failed(tx.id, "abandoned")

        for result in (
            await ledger.mark_verified(tx.id, "123456"),
            await ledger.mark_completed(tx.id, OrderId("ord_1")),
            await ledger.mark_failed(tx.id, "again"),
        ):
            assert result.error.kind == LedgerErrorKind.CONFLICT
            assert result.error.status == TransactionStatus.FAILED

    @pytest.mark.asyncio
    async def test_completed_cannot_fail(self, ledger: MemoryLedger):
        tx = (await ledger.create(new_transaction())).unwrap()
        await ledger.mark_verified(tx.id, "123456")
        await ledger.mark_completed(tx.id, OrderId("ord_1"))

        result = await ledger.mark_failed(tx.id, "late")

        assert result.error.status == TransactionStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_unknown_transaction(self, ledger: MemoryLedger):
        missing = TransactionId("tx_missing")

        assert (await ledger.get(missing)).error.kind == LedgerErrorKind.NOT_FOUND
        assert (
            await ledger.mark_verified(missing, "123456")
        ).error.kind == LedgerErrorKind.NOT_FOUND


class TestInjectedFailures:
    @pytest.mark.asyncio
    async def test_storage_error_writes_nothing(self, ledger: MemoryLedger):
        tx = (await ledger.create(new_transaction())).unwrap()
        ledger.fail_next("mark_verified")

        result = await ledger.mark_verified(tx.id, "123456")

        assert result.error.kind == LedgerErrorKind.STORAGE
        assert (await ledger.get(tx.id)).unwrap().status == TransactionStatus.PENDING_OTP
        # next call goes through
        assert (await ledger.mark_verified(tx.id, "123456")).unwrap().is_verified

    @pytest.mark.asyncio
    async def test_calls_are_recorded(self, ledger: MemoryLedger):
        ledger.fail_next("create")
        await ledger.create(new_transaction())
        await ledger.create(new_transaction())

        assert ledger.calls == ["create", "create"]
