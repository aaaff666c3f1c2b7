"""
Timing-safe primitives shared by the CSRF guard and the signature verifier.
"""

import hashlib
import hmac
import secrets
from typing import Union

_Text = Union[str, bytes]


def _as_bytes(value: _Text) -> bytes:
    if isinstance(value, bytes):
        return value
    return value.encode("utf-8")


def constant_time_equals(a: _Text, b: _Text) -> bool:
    """Compare two secrets without leaking where, or whether, lengths differ.

    Both sides are reduced to fixed-width SHA-256 digests before
    ``hmac.compare_digest`` so the final comparison always covers 32 bytes.
    """
    left = hashlib.sha256(_as_bytes(a)).digest()
    right = hashlib.sha256(_as_bytes(b)).digest()
    return hmac.compare_digest(left, right)


def generate_token_hex(num_bytes: int = 32) -> str:
    """Hex-encoded token from the OS CSPRNG."""
    if num_bytes < 16:
        raise ValueError("tokens must carry at least 16 bytes of entropy")
    return secrets.token_bytes(num_bytes).hex()
