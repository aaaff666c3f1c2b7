"""
Inbound payment notifications (ITN).

Parsing happens only after the signature has been checked. The parsed
notification is handed to a sink owned by the order subsystem; nothing here
persists it.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Awaitable, Callable, Dict, Mapping, Optional, Union

from shared.errors import ValidationError
from shared.logging import get_logger

logger = get_logger("payments.notification")


class PaymentStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"
    PENDING = "pending"


_STATUS_MAP = {
    "COMPLETE": PaymentStatus.SUCCESS,
    "FAILED": PaymentStatus.FAILED,
    "CANCELLED": PaymentStatus.CANCELLED,
    "PENDING": PaymentStatus.PENDING,
}


def map_payment_status(raw_status: Optional[str]) -> PaymentStatus:
    """Unknown or missing statuses are treated as pending."""
    return _STATUS_MAP.get((raw_status or "").upper(), PaymentStatus.PENDING)


@dataclass(frozen=True)
class PaymentNotification:
    order_id: Optional[str]
    gateway_payment_id: Optional[str]
    status: PaymentStatus
    raw_status: Optional[str]
    amount: Decimal
    fields: Dict[str, str] = field(default_factory=dict, repr=False)

    @classmethod
    def from_fields(cls, fields: Mapping[str, str]) -> "PaymentNotification":
        raw_amount = fields.get("amount_gross") or "0"
        try:
            amount = Decimal(raw_amount)
        except InvalidOperation:
            raise ValidationError("Malformed amount in payment notification",
                                  details={"field": "amount_gross"})
        if not amount.is_finite():
            raise ValidationError("Malformed amount in payment notification",
                                  details={"field": "amount_gross"})

        raw_status = fields.get("payment_status")
        return cls(
            order_id=fields.get("m_payment_id"),
            gateway_payment_id=fields.get("pf_payment_id"),
            status=map_payment_status(raw_status),
            raw_status=raw_status,
            amount=amount,
            fields=dict(fields),
        )


NotificationSink = Callable[[PaymentNotification], Union[None, Awaitable[None]]]


def log_notification(notification: PaymentNotification) -> None:
    """Default sink: record receipt only."""
    logger.info(
        "Payment notification received",
        order_id=notification.order_id,
        gateway_payment_id=notification.gateway_payment_id,
        status=notification.status.value,
        amount=str(notification.amount)
    )
