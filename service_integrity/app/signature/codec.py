"""
Gateway signature codec.

Canonicalizes a payment field map into the query string the gateway hashes
on its side, then digests it with MD5. The gateway's protocol fixes MD5;
switching to any other digest breaks interoperability.
"""

import hashlib
from typing import Any, Mapping, Optional
from urllib.parse import quote

from shared.security import constant_time_equals

SIGNATURE_FIELD = "signature"
PASSPHRASE_FIELD = "passphrase"

# Characters ECMAScript encodeURIComponent leaves untouched beyond RFC 3986
# unreserved; quote() always keeps A-Z a-z 0-9 _ . - ~
_COMPONENT_SAFE = "!*'()"


def gateway_urlencode(value: str) -> str:
    """Percent-encode a value the way the gateway's legacy urlencode does.

    Identical to URL-component encoding except that an encoded space is
    written as ``+``.
    """
    return quote(value, safe=_COMPONENT_SAFE).replace("%20", "+")


def _normalize(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return str(value)


def canonicalize(fields: Mapping[str, Any], passphrase: Optional[str] = None) -> str:
    """Build the string to hash.

    Keys are sorted by codepoint. The ``signature`` key, ``None`` values and
    empty-string values are left out. A non-empty passphrase is appended last.
    """
    pairs = []
    for key in sorted(fields):
        if key == SIGNATURE_FIELD:
            continue
        value = _normalize(fields[key])
        if value is None or value == "":
            continue
        pairs.append(f"{key}={gateway_urlencode(value)}")

    canonical = "&".join(pairs)
    if passphrase:
        canonical = f"{canonical}&{PASSPHRASE_FIELD}={gateway_urlencode(passphrase)}"
    return canonical


def sign(fields: Mapping[str, Any], passphrase: Optional[str] = None) -> str:
    """Lowercase hex MD5 of the canonical string (32 characters)."""
    canonical = canonicalize(fields, passphrase)
    return hashlib.md5(canonical.encode("utf-8")).hexdigest()


def verify(fields: Mapping[str, Any], passphrase: Optional[str] = None) -> bool:
    """Check the ``signature`` carried in ``fields`` against the rest of them."""
    received = _normalize(fields.get(SIGNATURE_FIELD))
    if not received:
        return False

    rest = {key: value for key, value in fields.items() if key != SIGNATURE_FIELD}
    expected = sign(rest, passphrase)
    return constant_time_equals(received.lower(), expected)
