"""
Session — the checkout state machine.

    from cashier import session as CS

    match await CS.CheckoutController.start(identity, product_id, catalog, ...):
        case Ok(checkout):
            step = await checkout.submit_details(form)
"""

from cashier.session._types import (
    Step,
    ShippingDetails,
    PaymentDetails,
    Priced,
    CheckoutSession,
)
from cashier.session._forms import (
    FieldIssue,
    ShippingForm,
    PaymentForm,
    detect_brand,
    parse_shipping,
    parse_payment,
)
from cashier.session._errors import CheckoutErrorKind, CheckoutError
from cashier.session._controller import CheckoutController

__all__ = (
    "Step",
    "ShippingDetails",
    "PaymentDetails",
    "Priced",
    "CheckoutSession",
    "FieldIssue",
    "ShippingForm",
    "PaymentForm",
    "detect_brand",
    "parse_shipping",
    "parse_payment",
    "CheckoutErrorKind",
    "CheckoutError",
    "CheckoutController",
)
