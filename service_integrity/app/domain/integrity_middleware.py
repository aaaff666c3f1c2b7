"""
Request integrity middleware for the storefront.

Every request under ``/api/`` is counted against its endpoint class first;
state-changing requests then pass through the CSRF guard. Webhooks skip the
CSRF guard and are authenticated by payment signature in their handlers.
"""

from typing import Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response
from starlette.types import ASGIApp

from shared.errors import CsrfError, RateLimitError
from shared.logging import get_logger, set_client_context
from shared.metrics import MetricsCollector

from service_integrity.app.csrf.guard import CsrfGuard
from service_integrity.app.ratelimit.fixed_window import (
    FixedWindowRateLimiter,
    RateLimitResult,
    get_client_identifier,
)

API_PREFIX = "/api/"


def categorize_endpoint(path: str) -> Optional[str]:
    """Endpoint class for ``path``; ``None`` means not rate limited."""
    if not path.startswith(API_PREFIX):
        return None
    if path.startswith("/api/webhooks/"):
        return "webhook"
    if path.startswith("/api/auth/") or path.startswith("/api/admin/login") or path.startswith("/api/admin/auth"):
        return "auth"
    if path.startswith("/api/admin/"):
        return "admin"
    return "public"


class RequestIntegrityMiddleware(BaseHTTPMiddleware):
    """Rate limit, then CSRF, in front of route handlers.

    Rejections are rendered here: exceptions raised inside HTTP middleware
    never reach the application's exception handlers.
    """

    def __init__(self, app: ASGIApp, rate_limiter: FixedWindowRateLimiter, csrf_guard: CsrfGuard,
                 metrics: Optional[MetricsCollector] = None):
        super().__init__(app)
        self.rate_limiter = rate_limiter
        self.csrf_guard = csrf_guard
        self.metrics = metrics
        self.logger = get_logger("integrity.middleware")

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        endpoint_class = categorize_endpoint(path)

        rate_result: Optional[RateLimitResult] = None
        if endpoint_class is not None:
            client_id = get_client_identifier(request.headers)
            set_client_context(client_id)
            rate_result = self.rate_limiter.check_endpoint(endpoint_class, client_id)

            if not rate_result.allowed:
                retry_after = rate_result.retry_after_seconds(self.rate_limiter.now_ms())
                error = RateLimitError(retry_after)
                self.logger.warning(
                    "Request rate limited",
                    endpoint_class=endpoint_class,
                    path=path,
                    retry_after=retry_after
                )
                return self._reject(error, rate_result, {"Retry-After": str(retry_after)})

        try:
            self.csrf_guard.verify(request)
        except CsrfError as error:
            if self.metrics:
                self.metrics.record_csrf_rejection(error.code)
            return self._reject(error, rate_result)

        response = await call_next(request)
        if rate_result is not None:
            response.headers.update(rate_result.headers())
        return response

    def _reject(self, error, rate_result: Optional[RateLimitResult], extra_headers=None) -> JSONResponse:
        headers = dict(rate_result.headers()) if rate_result is not None else {}
        if extra_headers:
            headers.update(extra_headers)
        return JSONResponse(
            status_code=error.status_code,
            content=error.to_response().model_dump(),
            headers=headers,
        )
