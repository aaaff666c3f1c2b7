"""
Payment gateway identities.

A gateway owns the merchant credentials and environment for one provider and
signs or verifies field maps with that provider's protocol.
"""

from decimal import Decimal
from typing import Any, Callable, Dict, Mapping, Optional, Protocol, Tuple, runtime_checkable

from shared.config import BaseConfig
from shared.errors import PaymentGatewayError
from shared.logging import get_logger
from shared.metrics import MetricsCollector

from service_integrity.app.signature import codec


@runtime_checkable
class PaymentGateway(Protocol):
    """Capability every payment provider exposes to handlers."""

    name: str

    def generate_signature(self, fields: Mapping[str, Any]) -> str:
        ...

    def validate_signature(self, fields: Mapping[str, Any]) -> bool:
        ...

    def resolve_processing_endpoint(self) -> str:
        ...


class PayFastGateway:
    """PayFast merchant identity."""

    name = "payfast"

    PROCESS_URLS = {
        True: "https://sandbox.payfast.co.za/eng/process",
        False: "https://www.payfast.co.za/eng/process",
    }
    REFUND_URLS = {
        True: "https://sandbox.payfast.co.za/eng/query/refund",
        False: "https://www.payfast.co.za/eng/query/refund",
    }
    ITN_PATH = "/api/webhooks/payfast"
    CURRENCY = "ZAR"
    MIN_AMOUNT = Decimal("0.01")
    MAX_AMOUNT = Decimal("1000000.00")

    def __init__(self, merchant_id: str, merchant_key: str, passphrase: Optional[str] = None,
                 sandbox: bool = False, metrics: Optional[MetricsCollector] = None):
        self.merchant_id = merchant_id
        self.merchant_key = merchant_key
        self.passphrase = passphrase or None
        self.sandbox = sandbox
        self.metrics = metrics
        self.logger = get_logger("payments.payfast")

    @classmethod
    def from_config(cls, config: BaseConfig, metrics: Optional[MetricsCollector] = None) -> "PayFastGateway":
        return cls(
            merchant_id=config.payfast_merchant_id,
            merchant_key=config.payfast_merchant_key,
            passphrase=config.payfast_passphrase.get_secret_value(),
            sandbox=config.use_payfast_sandbox,
            metrics=metrics,
        )

    def __repr__(self) -> str:
        return f"PayFastGateway(merchant_id={self.merchant_id!r}, sandbox={self.sandbox})"

    def is_configured(self) -> bool:
        return bool(self.merchant_id and self.merchant_key and self.passphrase)

    def generate_signature(self, fields: Mapping[str, Any]) -> str:
        """Sign ``fields`` as given; merchant credentials are not injected."""
        return codec.sign(fields, self.passphrase)

    def validate_signature(self, fields: Mapping[str, Any]) -> bool:
        valid = codec.verify(fields, self.passphrase)
        if self.metrics:
            self.metrics.record_signature_verification(self.name, valid)
        if not valid:
            self.logger.warning(
                "Signature verification failed",
                field_names=sorted(fields),
                sandbox=self.sandbox
            )
        return valid

    def resolve_processing_endpoint(self) -> str:
        return self.PROCESS_URLS[self.sandbox]

    def resolve_refund_endpoint(self) -> str:
        return self.REFUND_URLS[self.sandbox]

    def amount_limits(self) -> Tuple[Decimal, Decimal, str]:
        """(min, max, currency) accepted for a single payment."""
        return self.MIN_AMOUNT, self.MAX_AMOUNT, self.CURRENCY


GatewayFactory = Callable[[BaseConfig, Optional[MetricsCollector]], PaymentGateway]

GATEWAY_FACTORIES: Dict[str, GatewayFactory] = {
    PayFastGateway.name: PayFastGateway.from_config,
}


def get_payment_gateway(name: str, config: BaseConfig,
                        metrics: Optional[MetricsCollector] = None) -> PaymentGateway:
    """Build the gateway registered under ``name``."""
    factory = GATEWAY_FACTORIES.get(name.lower())
    if factory is None:
        raise PaymentGatewayError(name, "Unknown payment gateway")
    return factory(config, metrics)
