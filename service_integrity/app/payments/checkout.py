"""
Signed checkout redirects for PayFast.
"""

import re
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional

from shared.errors import PaymentNotConfiguredError, ValidationError
from shared.logging import get_logger

from service_integrity.app.payments.gateway import PayFastGateway
from service_integrity.app.signature.codec import SIGNATURE_FIELD, gateway_urlencode

_PAYMENT_ID_RE = re.compile(r"^[a-zA-Z0-9_-]{1,100}$")
_CENTS = Decimal("0.01")

logger = get_logger("payments.checkout")


@dataclass
class CheckoutItem:
    name: str
    price: Decimal
    quantity: int = 1


@dataclass
class CheckoutOptions:
    customer_email: str
    payment_id: str
    items: List[CheckoutItem] = field(default_factory=list)
    customer_first_name: Optional[str] = None
    customer_last_name: Optional[str] = None
    customer_phone: Optional[str] = None
    return_url: Optional[str] = None
    cancel_url: Optional[str] = None
    notify_url: Optional[str] = None


def validate_payment_id(payment_id: str) -> bool:
    """Payment ids are 1-100 characters of ``[a-zA-Z0-9_-]``."""
    return bool(payment_id) and _PAYMENT_ID_RE.fullmatch(payment_id) is not None


def _total_amount(items: List[CheckoutItem]) -> Decimal:
    total = sum((Decimal(item.price) * item.quantity for item in items), Decimal("0"))
    return total.quantize(_CENTS, rounding=ROUND_HALF_UP)


def build_checkout_fields(gateway: PayFastGateway, options: CheckoutOptions,
                          site_url: str, store_name: str) -> Dict[str, str]:
    """Field map for the payment form, including its signature.

    Optional fields left blank are dropped before signing so the signed set
    and the submitted set are the same.
    """
    if not gateway.is_configured():
        raise PaymentNotConfiguredError(gateway.name)

    if not validate_payment_id(options.payment_id):
        raise ValidationError("Invalid payment id", details={"field": "payment_id"})
    if not options.items:
        raise ValidationError("Checkout requires at least one item", details={"field": "items"})
    for item in options.items:
        if item.quantity < 1 or Decimal(item.price) < 0:
            raise ValidationError("Invalid checkout item", details={"field": "items"})

    amount = _total_amount(options.items)
    minimum, maximum, currency = gateway.amount_limits()
    if amount < minimum or amount > maximum:
        raise ValidationError(
            "Amount outside the gateway limits",
            details={"min": str(minimum), "max": str(maximum), "currency": currency}
        )

    if len(options.items) == 1:
        item_name = options.items[0].name
    else:
        item_name = f"{len(options.items)} items from {store_name}"

    site = site_url.rstrip("/")
    fields = {
        "merchant_id": gateway.merchant_id,
        "merchant_key": gateway.merchant_key,
        "return_url": options.return_url or f"{site}/checkout/success",
        "cancel_url": options.cancel_url or f"{site}/checkout/cancel",
        "notify_url": options.notify_url or f"{site}{gateway.ITN_PATH}",
        "name_first": options.customer_first_name or "",
        "name_last": options.customer_last_name or "",
        "email_address": options.customer_email,
        "cell_number": options.customer_phone or "",
        "m_payment_id": options.payment_id,
        "amount": f"{amount:.2f}",
        "item_name": item_name,
    }
    fields = {key: value for key, value in fields.items() if value != ""}
    fields[SIGNATURE_FIELD] = gateway.generate_signature(fields)

    logger.info(
        "Checkout prepared",
        payment_id=options.payment_id,
        amount=fields["amount"],
        item_count=len(options.items),
        sandbox=gateway.sandbox
    )
    return fields


def build_checkout_url(gateway: PayFastGateway, fields: Dict[str, str]) -> str:
    """Processing endpoint with the signed fields as its query string."""
    query = "&".join(
        f"{key}={gateway_urlencode(value)}"
        for key, value in fields.items()
        if value != ""
    )
    return f"{gateway.resolve_processing_endpoint()}?{query}"
