"""
Relay — redacted summaries, detached best-effort delivery.
"""

import json
from datetime import datetime, timezone
from decimal import Decimal

import httpx
import pytest
from structlog.testing import capture_logs

from cashier import CheckoutPolicy
from cashier.relay import (
    MemoryRelay,
    RelayDispatcher,
    RelayEvent,
    RelaySummary,
    WebhookRelay,
    mask_card,
)


@pytest.fixture
def summary() -> RelaySummary:
    return RelaySummary(
        event=RelayEvent.TRANSACTION_CREATED,
        transaction_id="tx_0001",
        user_id="buyer_1",
        amount=Decimal("50.00"),
        currency="USD",
        card_brand="Visa",
        card_last_four="4242",
        cardholder="Ada Buyer",
        product_id="prod_1",
        product_title="Steel Widget",
        quantity=5,
        ship_to="Ada Buyer, Springfield, US",
        occurred_at=datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc),
    )


class TestSummary:
    def test_masks_card(self, summary: RelaySummary):
        assert mask_card("4242") == "**** **** **** 4242"
        assert summary.to_payload()["card"]["masked"] == "**** **** **** 4242"

    def test_payload_is_json_ready(self, summary: RelaySummary):
        payload = json.loads(json.dumps(summary.to_payload()))

        assert payload["event"] == "transaction_created"
        assert payload["amount"] == "50.00"
        assert payload["product"]["quantity"] == 5

    def test_no_secret_fields(self, summary: RelaySummary):
        text = json.dumps(summary.to_payload()).lower()

        assert "cvv" not in text
        assert "otp" not in text
        assert "4242424242424242" not in text


class TestDispatcher:
    @pytest.mark.asyncio
    async def test_delivers_in_background(self, summary: RelaySummary, policy: CheckoutPolicy):
        relay = MemoryRelay()
        dispatcher = RelayDispatcher(relay, policy)

        with capture_logs() as logs:
            task = dispatcher.fire(summary)
            await dispatcher.drain()

        assert task.result() is True
        assert relay.received == [summary]
        assert dispatcher.pending == 0
        assert any(e["event"] == "relay_delivered" for e in logs)

    @pytest.mark.asyncio
    async def test_exception_is_logged_not_raised(
        self, summary: RelaySummary, policy: CheckoutPolicy
    ):
        relay = MemoryRelay()
        relay.fail_with(ConnectionError("relay down"))
        dispatcher = RelayDispatcher(relay, policy)

        with capture_logs() as logs:
            task = dispatcher.fire(summary)
            await dispatcher.drain()

        assert task.result() is False
        [failed] = [e for e in logs if e["event"] == "relay_failed"]
        assert "relay down" in failed["reason"]
        assert failed["transaction_id"] == "tx_0001"

    @pytest.mark.asyncio
    async def test_refusal_counts_as_failure(
        self, summary: RelaySummary, policy: CheckoutPolicy
    ):
        relay = MemoryRelay()
        relay.refuse()
        dispatcher = RelayDispatcher(relay, policy)

        task = dispatcher.fire(summary)
        await dispatcher.drain()

        assert task.result() is False
        assert relay.received == []

    @pytest.mark.asyncio
    async def test_slow_relay_times_out(self, summary: RelaySummary, policy: CheckoutPolicy):
        relay = MemoryRelay(delay=0.5)
        dispatcher = RelayDispatcher(relay, policy.with_relay(timeout_seconds=0.05))

        task = dispatcher.fire(summary)
        await dispatcher.drain()

        assert task.result() is False
        assert relay.received == []

    @pytest.mark.asyncio
    async def test_bounded_retry(self, summary: RelaySummary, policy: CheckoutPolicy):
        relay = MemoryRelay()
        relay.refuse()
        dispatcher = RelayDispatcher(relay, policy.with_relay(attempts=3))

        task = dispatcher.fire(summary)
        await dispatcher.drain()

        assert task.result() is False
        assert relay.calls == 3

    @pytest.mark.asyncio
    async def test_single_attempt_by_default(
        self, summary: RelaySummary, policy: CheckoutPolicy
    ):
        relay = MemoryRelay()
        relay.fail_with(TimeoutError("slow"))
        dispatcher = RelayDispatcher(relay, policy)

        dispatcher.fire(summary)
        await dispatcher.drain()

        assert relay.calls == 1


class TestWebhookRelay:
    @pytest.mark.asyncio
    async def test_posts_json(self, summary: RelaySummary):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(202)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            relay = WebhookRelay(
                "https://hooks.test/checkout",
                client=client,
                headers={"X-Relay-Key": "k"},
            )
            assert await relay.notify(summary) is True

        [request] = seen
        assert request.method == "POST"
        assert request.headers["X-Relay-Key"] == "k"
        assert json.loads(request.content)["transaction_id"] == "tx_0001"

    @pytest.mark.asyncio
    async def test_error_status_is_refusal(self, summary: RelaySummary):
        transport = httpx.MockTransport(lambda request: httpx.Response(500))

        async with httpx.AsyncClient(transport=transport) as client:
            relay = WebhookRelay("https://hooks.test/checkout", client=client)
            assert await relay.notify(summary) is False
