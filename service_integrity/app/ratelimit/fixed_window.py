"""
Fixed-window rate limiter for storefront endpoints.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from shared.logging import get_logger
from shared.metrics import MetricsCollector

from service_integrity.app.ratelimit.store import RateLimitStore

UNKNOWN_CLIENT = "unknown"

_MINUTE_MS = 60 * 1000


@dataclass(frozen=True)
class EndpointClass:
    max_requests: int
    window_ms: int
    key_prefix: str


# auth guards credential guessing and stays well below public/admin
ENDPOINT_CLASSES: Dict[str, EndpointClass] = {
    "public": EndpointClass(max_requests=100, window_ms=15 * _MINUTE_MS, key_prefix="api:public"),
    "admin": EndpointClass(max_requests=200, window_ms=15 * _MINUTE_MS, key_prefix="api:admin"),
    "auth": EndpointClass(max_requests=10, window_ms=15 * _MINUTE_MS, key_prefix="api:auth"),
    "webhook": EndpointClass(max_requests=10, window_ms=_MINUTE_MS, key_prefix="api:webhook"),
}


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_at: int  # epoch milliseconds
    limit: int

    def retry_after_seconds(self, now_ms: int) -> int:
        """Whole seconds until the window resets, never less than one."""
        return max(1, math.ceil((self.reset_at - now_ms) / 1000))

    def reset_at_iso(self) -> str:
        moment = datetime.fromtimestamp(self.reset_at / 1000, tz=timezone.utc)
        return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")

    def headers(self) -> Dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": self.reset_at_iso(),
        }


class FixedWindowRateLimiter:
    """Counts requests per key in fixed windows over an injected store."""

    def __init__(self, store: RateLimitStore, metrics: Optional[MetricsCollector] = None):
        self.store = store
        self.metrics = metrics
        self.logger = get_logger("ratelimit.fixed_window")

    def check(self, key: str, max_requests: int, window_ms: int) -> RateLimitResult:
        if max_requests < 1:
            raise ValueError("max_requests must be >= 1")

        entry = self.store.hit(key, window_ms)
        if entry.count > max_requests:
            self.logger.warning(
                "Rate limit exceeded",
                key=key,
                count=entry.count,
                limit=max_requests
            )
            return RateLimitResult(allowed=False, remaining=0, reset_at=entry.reset_at, limit=max_requests)

        return RateLimitResult(
            allowed=True,
            remaining=max_requests - entry.count,
            reset_at=entry.reset_at,
            limit=max_requests,
        )

    def check_endpoint(self, endpoint_class: str, client_id: str) -> RateLimitResult:
        """Apply the static limits of ``endpoint_class`` to ``client_id``."""
        config = ENDPOINT_CLASSES.get(endpoint_class)
        if config is None:
            raise KeyError(f"Unknown endpoint class: {endpoint_class}")

        result = self.check(f"{config.key_prefix}:{client_id}", config.max_requests, config.window_ms)
        if self.metrics:
            self.metrics.record_rate_limit_decision(endpoint_class, result.allowed)
        return result

    def now_ms(self) -> int:
        return self.store.now_ms()


def get_client_identifier(headers: Any) -> str:
    """Client key from proxy headers; everything else shares one bucket."""
    forwarded_for = headers.get("X-Forwarded-For")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first

    for header in ("X-Real-IP", "CF-Connecting-IP"):
        value = headers.get(header)
        if value and value.strip():
            return value.strip()

    return UNKNOWN_CLIENT
