"""
Request integrity and payment security service for the storefront.
"""

import asyncio
import inspect
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Tuple

from fastapi import Request
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, Field

from shared.base_service import BaseService
from shared.config import ServiceConfig
from shared.errors import InvalidSignatureError, PaymentNotConfiguredError

from service_integrity.app.csrf.guard import TOKEN_ENDPOINT, CsrfGuard
from service_integrity.app.domain.integrity_middleware import RequestIntegrityMiddleware
from service_integrity.app.payments.checkout import (
    CheckoutItem,
    CheckoutOptions,
    build_checkout_fields,
    build_checkout_url,
)
from service_integrity.app.payments.gateway import PayFastGateway
from service_integrity.app.payments.notification import NotificationSink, PaymentNotification, log_notification
from service_integrity.app.ratelimit.fixed_window import FixedWindowRateLimiter
from service_integrity.app.ratelimit.store import InMemoryRateLimitStore


class CheckoutItemRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    price: Decimal = Field(ge=0)
    quantity: int = Field(default=1, ge=1)


class CheckoutRequest(BaseModel):
    customer_email: str = Field(min_length=3, max_length=255)
    payment_id: str
    items: List[CheckoutItemRequest]
    customer_first_name: Optional[str] = None
    customer_last_name: Optional[str] = None
    customer_phone: Optional[str] = None
    return_url: Optional[str] = None
    cancel_url: Optional[str] = None


class IntegrityService(BaseService):
    """Storefront integrity service implementation."""

    def __init__(self, config: Optional[ServiceConfig] = None,
                 notification_sink: Optional[NotificationSink] = None,
                 clock: Optional[Callable[[], int]] = None):
        self._clock = clock
        self.notification_sink = notification_sink or log_notification
        self._sweep_task: Optional[asyncio.Task] = None
        super().__init__("storefront", 8000, config=config)

        @self.app.on_event("startup")
        async def _startup():
            self._sweep_task = asyncio.create_task(self._sweep_loop())

        @self.app.on_event("shutdown")
        async def _shutdown():
            if self._sweep_task:
                self._sweep_task.cancel()
                try:
                    await self._sweep_task
                except asyncio.CancelledError:
                    pass
                self._sweep_task = None

        self._setup_security_routes()
        self._setup_payment_routes()

        # Expose service instance via app state for introspection/testing
        self.app.state.integrity_service = self

    def _init_components(self):
        sweep_interval_ms = int(self.config.rate_limit_sweep_interval_seconds * 1000)
        self.rate_limit_store = InMemoryRateLimitStore(clock=self._clock, sweep_interval_ms=sweep_interval_ms)
        self.rate_limiter = FixedWindowRateLimiter(self.rate_limit_store, metrics=self.metrics)
        self.csrf_guard = CsrfGuard(
            secure_cookies=self.config.secure_cookies,
            token_bytes=self.config.csrf_token_bytes,
        )
        self.payment_gateway = PayFastGateway.from_config(self.config, metrics=self.metrics)

    def _service_middleware(self) -> List[Tuple[type, Dict[str, Any]]]:
        return [
            (RequestIntegrityMiddleware, {
                "rate_limiter": self.rate_limiter,
                "csrf_guard": self.csrf_guard,
                "metrics": self.metrics,
            }),
        ]

    async def _check_dependencies(self) -> Dict[str, str]:
        return {
            "payfast": "configured" if self.payment_gateway.is_configured() else "unconfigured",
        }

    async def _sweep_loop(self):
        """Drop expired rate limit entries once per sweep interval."""
        interval = self.config.rate_limit_sweep_interval_seconds
        while True:
            await asyncio.sleep(interval)
            removed = self.rate_limit_store.sweep()
            self.metrics.set_rate_limit_entries(len(self.rate_limit_store))
            if removed:
                self.logger.debug("Rate limit sweep", removed=removed)

    def _setup_security_routes(self):

        @self.app.get(TOKEN_ENDPOINT)
        async def issue_csrf_token():
            """Issue a fresh double-submit token and set its cookie."""
            token = self.csrf_guard.issue_token()
            response = JSONResponse({"token": token.value})
            token.apply(response)
            return response

    def _setup_payment_routes(self):

        @self.app.post(PayFastGateway.ITN_PATH)
        async def payfast_notification(request: Request):
            """PayFast ITN. Authenticated by signature, never by cookies."""
            if not self.payment_gateway.is_configured():
                raise PaymentNotConfiguredError(self.payment_gateway.name)

            form = await request.form()
            fields = {key: str(value) for key, value in form.items()}

            if not self.payment_gateway.validate_signature(fields):
                raise InvalidSignatureError()

            notification = PaymentNotification.from_fields(fields)
            result = self.notification_sink(notification)
            if inspect.isawaitable(result):
                await result

            return PlainTextResponse("OK")

        @self.app.post("/api/checkout")
        async def create_checkout(body: CheckoutRequest):
            """Signed redirect to the PayFast processing page."""
            options = CheckoutOptions(
                customer_email=body.customer_email,
                payment_id=body.payment_id,
                items=[CheckoutItem(name=item.name, price=item.price, quantity=item.quantity)
                       for item in body.items],
                customer_first_name=body.customer_first_name,
                customer_last_name=body.customer_last_name,
                customer_phone=body.customer_phone,
                return_url=body.return_url,
                cancel_url=body.cancel_url,
            )
            fields = build_checkout_fields(
                self.payment_gateway,
                options,
                site_url=self.config.site_url,
                store_name=self.config.store_name,
            )
            return {
                "redirect_url": build_checkout_url(self.payment_gateway, fields),
                "payment_id": body.payment_id,
                "fields": fields,
            }


def create_app(config: Optional[ServiceConfig] = None, **kwargs):
    """Create FastAPI application."""
    service = IntegrityService(config=config, **kwargs)
    return service.app


if __name__ == "__main__":
    service = IntegrityService()
    service.run()
