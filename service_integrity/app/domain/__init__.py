"""
Domain utilities for the integrity service.

Cross-cutting request processing that sits in front of storefront route
handlers.
"""

from .integrity_middleware import RequestIntegrityMiddleware, categorize_endpoint

__all__ = [
    "RequestIntegrityMiddleware",
    "categorize_endpoint",
]
