"""
PayFast refund API client.
"""

import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Optional

import httpx

from shared.errors import PaymentGatewayError, PaymentNotConfiguredError
from shared.logging import get_logger
from shared.retry import RetryConfig, RetryError, retry_on_exception

from service_integrity.app.payments.gateway import PayFastGateway
from service_integrity.app.signature.codec import SIGNATURE_FIELD

_REFUND_ID_RE = re.compile(r"REFUND_ID=(\w+)")


@dataclass
class RefundResult:
    success: bool
    refund_id: Optional[str] = None
    amount: Optional[Decimal] = None
    error: Optional[str] = None


class PayFastRefundClient:
    """Submits signed refund requests for captured payments."""

    def __init__(self, gateway: PayFastGateway, timeout: float = 10.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None,
                 retry_config: Optional[RetryConfig] = None):
        self.gateway = gateway
        self.timeout = timeout
        self.transport = transport
        self.retry_config = retry_config or RetryConfig(max_attempts=3, base_delay=0.5)
        self.logger = get_logger("payments.refund_client")

    def build_refund_fields(self, pf_payment_id: str, amount: Optional[Decimal] = None) -> Dict[str, str]:
        fields = {
            "merchant_id": self.gateway.merchant_id,
            "merchant_key": self.gateway.merchant_key,
            "pf_payment_id": pf_payment_id,
        }
        if amount:
            fields["amount"] = f"{Decimal(amount):.2f}"
        fields[SIGNATURE_FIELD] = self.gateway.generate_signature(fields)
        return fields

    async def refund(self, pf_payment_id: str, amount: Optional[Decimal] = None,
                     reason: Optional[str] = None) -> RefundResult:
        """Full refund unless ``amount`` is given."""
        if not self.gateway.is_configured():
            raise PaymentNotConfiguredError(self.gateway.name)

        fields = self.build_refund_fields(pf_payment_id, amount)

        # Connection failures mean the request never reached PayFast, so they
        # are the only ones safe to retry.
        @retry_on_exception((httpx.ConnectError, httpx.ConnectTimeout), config=self.retry_config)
        async def _post() -> httpx.Response:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                return await client.post(self.gateway.resolve_refund_endpoint(), data=fields)

        try:
            response = await _post()
        except RetryError as e:
            self.logger.error("Refund request could not reach gateway", pf_payment_id=pf_payment_id,
                              error=str(e.last_exception))
            raise PaymentGatewayError(self.gateway.name, "Refund request failed",
                                      details={"attempts": e.attempts})
        except httpx.HTTPError as e:
            self.logger.error("Refund request failed", pf_payment_id=pf_payment_id, error=str(e))
            raise PaymentGatewayError(self.gateway.name, "Refund request failed")

        if response.status_code >= 400:
            self.logger.error(
                "Refund API error",
                pf_payment_id=pf_payment_id,
                status_code=response.status_code
            )
            raise PaymentGatewayError(
                self.gateway.name,
                f"Refund API error: {response.status_code}",
                details={"status_code": response.status_code}
            )

        body = response.text
        if "SUCCESS" in body:
            match = _REFUND_ID_RE.search(body)
            self.logger.info("Refund accepted", pf_payment_id=pf_payment_id, reason=reason)
            return RefundResult(
                success=True,
                refund_id=match.group(1) if match else None,
                amount=amount,
            )

        self.logger.warning("Refund declined", pf_payment_id=pf_payment_id)
        return RefundResult(success=False, amount=amount, error=body or "Refund failed")
