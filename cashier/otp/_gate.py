"""
OTP gate — local checks before the ledger is touched.

    gate = OtpGate(policy)
    challenge = gate.open()

    match gate.check(challenge, "123456"):
        case Ok(accepted):
            await ledger.mark_verified(tx_id, accepted.code)
        case Error(rejection):
            challenge = rejection.challenge  # attempt counted
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum, auto

from cashier._types import Error, Ok, Result
from cashier.policy import CheckoutPolicy


# ═══════════════════════════════════════════════════════════════════════════════
# Challenge: one OTP window
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class OtpChallenge:
    """
    One challenge window.

    Note: attempts — число отклонённых кодов; resend() продлевает окно,
    но счётчик не сбрасывает.
    """

    issued_at: datetime
    expires_at: datetime
    attempts: int
    max_attempts: int

    @property
    def remaining(self) -> int:
        return max(self.max_attempts - self.attempts, 0)

    @property
    def exhausted(self) -> bool:
        return self.attempts >= self.max_attempts

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


# ═══════════════════════════════════════════════════════════════════════════════
# Verdicts
# ═══════════════════════════════════════════════════════════════════════════════


class OtpRejectionKind(Enum):
    MALFORMED = auto()  # Not exactly N digits
    EXPIRED = auto()  # Window closed; resend needed
    EXHAUSTED = auto()  # No attempts left; session is blocked


@dataclass(frozen=True, slots=True)
class OtpRejection:
    kind: OtpRejectionKind
    message: str
    challenge: OtpChallenge


@dataclass(frozen=True, slots=True)
class OtpAccepted:
    code: str
    challenge: OtpChallenge


# ═══════════════════════════════════════════════════════════════════════════════
# Gate
# ═══════════════════════════════════════════════════════════════════════════════


class OtpGate:
    """Format, attempt and expiry rules from CheckoutPolicy."""

    def __init__(self, policy: CheckoutPolicy) -> None:
        self._policy = policy
        self._pattern = re.compile(rf"^[0-9]{{{policy.otp_length}}}$")

    def open(self) -> OtpChallenge:
        now = self._policy.now()
        return OtpChallenge(
            issued_at=now,
            expires_at=now + self._policy.otp_expiry,
            attempts=0,
            max_attempts=self._policy.otp_max_attempts,
        )

    def renew(self, challenge: OtpChallenge) -> OtpChallenge:
        now = self._policy.now()
        return replace(challenge, issued_at=now, expires_at=now + self._policy.otp_expiry)

    def check(
        self, challenge: OtpChallenge, code: str | None
    ) -> Result[OtpAccepted, OtpRejection]:
        if challenge.exhausted:
            return Error(self._exhausted(challenge))

        if challenge.is_expired(self._policy.now()):
            return Error(
                OtpRejection(
                    OtpRejectionKind.EXPIRED,
                    "Code expired, request a new one",
                    challenge,
                )
            )

        submitted = code or ""
        if self._pattern.fullmatch(submitted):
            return Ok(OtpAccepted(submitted, challenge))

        counted = replace(challenge, attempts=challenge.attempts + 1)
        if counted.exhausted:
            return Error(self._exhausted(counted))
        return Error(
            OtpRejection(
                OtpRejectionKind.MALFORMED,
                f"Enter the {self._policy.otp_length}-digit code "
                f"({counted.remaining} attempts left)",
                counted,
            )
        )

    def _exhausted(self, challenge: OtpChallenge) -> OtpRejection:
        return OtpRejection(
            OtpRejectionKind.EXHAUSTED,
            "Too many invalid codes",
            challenge,
        )


__all__ = (
    "OtpChallenge",
    "OtpRejectionKind",
    "OtpRejection",
    "OtpAccepted",
    "OtpGate",
)
