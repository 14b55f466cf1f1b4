"""
Forms — pydantic validation for the Details and Payment steps.

Both accept snake_case or camelCase keys (fullName, cardNumber, ...).

    match parse_payment({"cardNumber": "4242 4242 4242 4242", ...}, today=date.today()):
        case Ok(payment):   # PaymentDetails, card number already reduced to last four
            ...
        case Error(issues):  # tuple[FieldIssue, ...]
            ...
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from cashier._types import Error, Ok, Result
from cashier.relay import mask_card
from cashier.session._types import PaymentDetails, ShippingDetails


@dataclass(frozen=True, slots=True)
class FieldIssue:
    field: str
    message: str


_CONFIG = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
    str_strip_whitespace=True,
    frozen=True,
)


# ═══════════════════════════════════════════════════════════════════════════════
# Shipping
# ═══════════════════════════════════════════════════════════════════════════════


class ShippingForm(BaseModel):
    model_config = _CONFIG

    full_name: str = Field(min_length=2)
    phone: str = Field(min_length=10, pattern=r"^[0-9+\s()-]+$")
    email: EmailStr
    street: str = Field(min_length=5)
    city: str = Field(min_length=2)
    state_province: str = Field(min_length=2)
    postal_code: str = Field(min_length=3)
    country: str = Field(min_length=2)

    def to_details(self) -> ShippingDetails:
        return ShippingDetails(
            full_name=self.full_name,
            phone=self.phone,
            email=str(self.email),
            street=self.street,
            city=self.city,
            state_province=self.state_province,
            postal_code=self.postal_code,
            country=self.country,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Payment
# ═══════════════════════════════════════════════════════════════════════════════


_BRANDS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"^4"), "Visa"),
    (re.compile(r"^[52]"), "Mastercard"),
    (re.compile(r"^3[47]"), "American Express"),
    (re.compile(r"^6(?:011|5)"), "Discover"),
)


def detect_brand(digits: str) -> str:
    for pattern, brand in _BRANDS:
        if pattern.match(digits):
            return brand
    return "Unknown"


class PaymentForm(BaseModel):
    """
    Raw card input.

    Note: экземпляр живёт только внутри parse_payment — наружу уходит
    PaymentDetails без номера и CVV.
    """

    model_config = _CONFIG

    cardholder_name: str = Field(min_length=3)
    card_number: str
    expiry_month: str = Field(pattern=r"^(0[1-9]|1[0-2])$")
    expiry_year: str = Field(pattern=r"^[0-9]{2}$")
    cvv: str = Field(pattern=r"^[0-9]{3,4}$")

    @field_validator("card_number")
    @classmethod
    def card_number_shape(cls, value: str) -> str:
        spaces = sum(1 for ch in value if ch.isspace())
        digits = "".join(value.split())
        if not 12 <= len(digits) <= 16 or spaces > 3 or not digits.isascii() or not digits.isdigit():
            raise ValueError("Card number must be 12-16 digits and max 3 spaces")
        return digits

    @model_validator(mode="after")
    def not_expired(self, info: ValidationInfo) -> PaymentForm:
        today = (info.context or {}).get("today")
        if today is None:
            return self
        year = 2000 + int(self.expiry_year)
        month = int(self.expiry_month)
        if (year, month) < (today.year, today.month):
            raise ValueError("Card has expired")
        return self

    def to_details(self) -> PaymentDetails:
        last_four = self.card_number[-4:]
        return PaymentDetails(
            cardholder=self.cardholder_name,
            masked_number=mask_card(last_four),
            last_four=last_four,
            brand=detect_brand(self.card_number),
            expiry_month=self.expiry_month,
            expiry_year=self.expiry_year,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Parsing
# ═══════════════════════════════════════════════════════════════════════════════


def _issues(exc: ValidationError) -> tuple[FieldIssue, ...]:
    return tuple(
        FieldIssue(
            field=".".join(str(part) for part in err["loc"]) or "form",
            message=err["msg"].removeprefix("Value error, "),
        )
        for err in exc.errors()
    )


def parse_shipping(data: Mapping[str, Any]) -> Result[ShippingDetails, tuple[FieldIssue, ...]]:
    try:
        form = ShippingForm.model_validate(dict(data))
    except ValidationError as exc:
        return Error(_issues(exc))
    return Ok(form.to_details())


def parse_payment(
    data: Mapping[str, Any], *, today: date
) -> Result[PaymentDetails, tuple[FieldIssue, ...]]:
    try:
        form = PaymentForm.model_validate(dict(data), context={"today": today})
    except ValidationError as exc:
        return Error(_issues(exc))
    return Ok(form.to_details())


__all__ = (
    "FieldIssue",
    "ShippingForm",
    "PaymentForm",
    "detect_brand",
    "parse_shipping",
    "parse_payment",
)
