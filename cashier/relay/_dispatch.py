"""
Relay dispatcher — detached, bounded, never raises into the caller.

    dispatcher = RelayDispatcher(relay, policy)
    dispatcher.fire(summary)      # returns immediately
    ...
    await dispatcher.drain()      # shutdown / tests

Each delivery is one combinators pipeline:
    catching_async(relay.notify) → timeout → retry
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

import combinators as C
from combinators import RetryPolicy
from combinators import lift as L

from cashier._log import get_logger
from cashier._types import Error, LazyCoroResult, Ok, Result
from cashier.policy import CheckoutPolicy
from cashier.relay._types import Relay, RelaySummary

log = get_logger("relay")


@dataclass(frozen=True, slots=True)
class RelayFailure:
    reason: str
    cause: Exception | None = None

    @staticmethod
    def from_exception(exc: Exception) -> RelayFailure:
        return RelayFailure(f"{type(exc).__name__}: {exc}", exc)


class RelayDispatcher:
    """Fire-and-forget delivery with timeout and bounded retry from policy."""

    def __init__(self, relay: Relay, policy: CheckoutPolicy) -> None:
        self._relay = relay
        self._policy = policy
        self._tasks: set[asyncio.Task[bool]] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def fire(self, summary: RelaySummary) -> asyncio.Task[bool]:
        """Schedule delivery and return at once. The task never raises."""
        task = asyncio.create_task(
            self._deliver(summary),
            name=f"relay:{summary.event.value}:{summary.transaction_id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for every outstanding delivery."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _delivery(self, summary: RelaySummary) -> LazyCoroResult[None, object]:
        async def accepted(delivered: bool) -> Result[None, RelayFailure]:
            if delivered:
                return Ok(None)
            return Error(RelayFailure("relay refused the summary"))

        attempt = L.catching_async(
            lambda: self._relay.notify(summary),
            on_error=RelayFailure.from_exception,
        ).then(accepted)

        bounded = C.timeout(attempt, seconds=self._policy.relay_timeout_seconds)
        return C.retry(
            bounded,
            policy=RetryPolicy.fixed(
                self._policy.relay_attempts,
                delay_seconds=self._policy.relay_retry_delay_seconds,
            ),
        )

    async def _deliver(self, summary: RelaySummary) -> bool:
        try:
            result = await self._delivery(summary)
        except asyncio.CancelledError:
            log.warning(
                "relay_cancelled",
                event=summary.event.value,
                transaction_id=summary.transaction_id,
            )
            raise

        match result:
            case Ok(_):
                log.info(
                    "relay_delivered",
                    event=summary.event.value,
                    transaction_id=summary.transaction_id,
                )
                return True
            case Error(failure):
                reason = failure.reason if isinstance(failure, RelayFailure) else str(failure)
                log.warning(
                    "relay_failed",
                    event=summary.event.value,
                    transaction_id=summary.transaction_id,
                    attempts=self._policy.relay_attempts,
                    reason=reason,
                )
                return False


__all__ = ("RelayFailure", "RelayDispatcher")
