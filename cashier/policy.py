"""
Checkout policy — behavior configuration.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ═══════════════════════════════════════════════════════════════════════════════
# Policy: Full Configuration
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CheckoutPolicy:
    """
    Checkout configuration.

    Fluent builder pattern — chain methods to configure.

    Example:
        policy = (
            CheckoutPolicy()
            .with_currency("EUR")
            .with_otp(length=6, max_attempts=3, expiry=timedelta(minutes=5))
            .with_relay(timeout_seconds=2.0, attempts=2)
        )

    Note: Immutable — each method returns new CheckoutPolicy.
    """

    currency: str = "USD"
    otp_length: int = 6
    otp_max_attempts: int = 3
    otp_expiry: timedelta = timedelta(minutes=5)
    # Note: relay is best-effort. attempts=1 means a single try, no retry.
    relay_timeout_seconds: float = 5.0
    relay_attempts: int = 1
    relay_retry_delay_seconds: float = 0.0
    clock: Callable[[], datetime] = field(default=_utcnow)

    def with_currency(self, currency: str) -> CheckoutPolicy:
        """ISO 4217 code used for every transaction."""
        if len(currency) != 3:
            raise ValueError(f"Currency must be a 3-letter code, got {currency!r}")
        return replace(self, currency=currency.upper())

    def with_otp(
        self,
        *,
        length: int | None = None,
        max_attempts: int | None = None,
        expiry: timedelta | None = None,
        expiry_seconds: float | None = None,
    ) -> CheckoutPolicy:
        """
        Passcode format and challenge limits.

        Example:
            .with_otp(length=4)
            .with_otp(max_attempts=5, expiry_seconds=60)
        """
        if expiry is None and expiry_seconds is not None:
            expiry = timedelta(seconds=expiry_seconds)

        policy = replace(
            self,
            otp_length=length if length is not None else self.otp_length,
            otp_max_attempts=(
                max_attempts if max_attempts is not None else self.otp_max_attempts
            ),
            otp_expiry=expiry if expiry is not None else self.otp_expiry,
        )
        if policy.otp_length < 1:
            raise ValueError("otp length must be >= 1")
        if policy.otp_max_attempts < 1:
            raise ValueError("otp max_attempts must be >= 1")
        return policy

    def with_relay(
        self,
        *,
        timeout_seconds: float | None = None,
        attempts: int | None = None,
        retry_delay_seconds: float | None = None,
    ) -> CheckoutPolicy:
        """
        Relay delivery limits.

        Example:
            .with_relay(timeout_seconds=2.0)
            .with_relay(attempts=3, retry_delay_seconds=0.5)
        """
        policy = replace(
            self,
            relay_timeout_seconds=(
                timeout_seconds
                if timeout_seconds is not None
                else self.relay_timeout_seconds
            ),
            relay_attempts=attempts if attempts is not None else self.relay_attempts,
            relay_retry_delay_seconds=(
                retry_delay_seconds
                if retry_delay_seconds is not None
                else self.relay_retry_delay_seconds
            ),
        )
        if policy.relay_attempts < 1:
            raise ValueError("relay attempts must be >= 1")
        return policy

    def with_clock(self, clock: Callable[[], datetime]) -> CheckoutPolicy:
        """Replace the time source (tests freeze or advance it)."""
        return replace(self, clock=clock)

    def now(self) -> datetime:
        return self.clock()


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = ("CheckoutPolicy",)
