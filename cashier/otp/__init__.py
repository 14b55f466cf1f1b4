"""
OTP — passcode format, attempt and expiry rules.
"""

from cashier.otp._gate import (
    OtpChallenge,
    OtpRejectionKind,
    OtpRejection,
    OtpAccepted,
    OtpGate,
)

__all__ = (
    "OtpChallenge",
    "OtpRejectionKind",
    "OtpRejection",
    "OtpAccepted",
    "OtpGate",
)
