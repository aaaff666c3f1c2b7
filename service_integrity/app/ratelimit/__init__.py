"""
Rate limiting package.

Fixed-window counters per client and endpoint class, kept in an injected
store. The in-memory store only bounds traffic within a single process.
"""

from .store import InMemoryRateLimitStore, RateLimitEntry, RateLimitStore
from .fixed_window import (
    ENDPOINT_CLASSES,
    EndpointClass,
    FixedWindowRateLimiter,
    RateLimitResult,
    get_client_identifier,
)

__all__ = [
    "InMemoryRateLimitStore",
    "RateLimitEntry",
    "RateLimitStore",
    "ENDPOINT_CLASSES",
    "EndpointClass",
    "FixedWindowRateLimiter",
    "RateLimitResult",
    "get_client_identifier",
]
