"""
CSRF protection for state-changing storefront requests.
"""

from .guard import CSRF_COOKIE_NAME, CSRF_HEADER_NAME, CsrfGuard, CsrfToken

__all__ = [
    "CSRF_COOKIE_NAME",
    "CSRF_HEADER_NAME",
    "CsrfGuard",
    "CsrfToken",
]
