"""
Payments package.

Gateway identities that sign and verify with the provider protocol, the
checkout builder, ITN parsing and the refund API client. Persisting payments
and acting on notifications belong to the order subsystem.
"""

from .gateway import PayFastGateway, PaymentGateway, get_payment_gateway
from .checkout import CheckoutItem, CheckoutOptions, build_checkout_fields, build_checkout_url, validate_payment_id
from .notification import PaymentNotification, PaymentStatus, NotificationSink, log_notification
from .refund_client import PayFastRefundClient, RefundResult

__all__ = [
    "PayFastGateway",
    "PaymentGateway",
    "get_payment_gateway",
    "CheckoutItem",
    "CheckoutOptions",
    "build_checkout_fields",
    "build_checkout_url",
    "validate_payment_id",
    "PaymentNotification",
    "PaymentStatus",
    "NotificationSink",
    "log_notification",
    "PayFastRefundClient",
    "RefundResult",
]
