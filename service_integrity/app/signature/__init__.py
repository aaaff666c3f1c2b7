"""
Payment signature package.

Holds the byte-exact canonicalization and MD5 signing rules shared with the
payment gateway. Everything here is pure and synchronous.
"""

from .codec import canonicalize, gateway_urlencode, sign, verify

__all__ = [
    "canonicalize",
    "gateway_urlencode",
    "sign",
    "verify",
]
