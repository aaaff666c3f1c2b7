"""
Double-submit cookie CSRF protection.

The token lives in a JavaScript-readable cookie and must be echoed in the
``X-CSRF-Token`` header. Nothing is stored server side: a request is valid
exactly when both copies are present and equal.
"""

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Tuple

from shared.errors import CsrfTokenMismatchError, CsrfTokenMissingError
from shared.logging import get_logger
from shared.security import constant_time_equals, generate_token_hex

CSRF_COOKIE_NAME = "csrf-token"
CSRF_HEADER_NAME = "X-CSRF-Token"
CSRF_TOKEN_BYTES = 32
CSRF_TOKEN_MAX_AGE = 60 * 60 * 24

SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})
TOKEN_ENDPOINT = "/api/csrf-token"
DEFAULT_EXEMPT_PREFIXES: Tuple[str, ...] = (
    "/api/webhooks/",
    TOKEN_ENDPOINT,
)


@dataclass(frozen=True)
class CsrfCookie:
    """Cookie attributes for the token, in Starlette ``set_cookie`` terms."""

    name: str
    value: str
    max_age: int
    secure: bool
    httponly: bool = False
    samesite: str = "strict"
    path: str = "/"


@dataclass(frozen=True)
class CsrfToken:
    value: str
    cookie: CsrfCookie

    def apply(self, response: Any) -> None:
        """Set the token cookie on a Starlette response."""
        response.set_cookie(
            key=self.cookie.name,
            value=self.cookie.value,
            max_age=self.cookie.max_age,
            path=self.cookie.path,
            secure=self.cookie.secure,
            httponly=self.cookie.httponly,
            samesite=self.cookie.samesite,
        )


class CsrfGuard:
    """Issues and verifies double-submit tokens."""

    def __init__(self, secure_cookies: bool = False, token_bytes: int = CSRF_TOKEN_BYTES,
                 exempt_prefixes: Optional[Iterable[str]] = None):
        if token_bytes < 16:
            raise ValueError("token_bytes must be at least 16")
        self.secure_cookies = secure_cookies
        self.token_bytes = token_bytes
        self.exempt_prefixes = tuple(exempt_prefixes) if exempt_prefixes is not None else DEFAULT_EXEMPT_PREFIXES
        self.logger = get_logger("csrf.guard")

    def issue_token(self) -> CsrfToken:
        value = generate_token_hex(self.token_bytes)
        cookie = CsrfCookie(
            name=CSRF_COOKIE_NAME,
            value=value,
            max_age=CSRF_TOKEN_MAX_AGE,
            secure=self.secure_cookies,
        )
        return CsrfToken(value=value, cookie=cookie)

    def is_exempt(self, method: str, path: str) -> bool:
        if method.upper() in SAFE_METHODS:
            return True
        return any(path.startswith(prefix) for prefix in self.exempt_prefixes)

    def verify(self, request: Any) -> None:
        """Raise ``CsrfTokenMissingError`` or ``CsrfTokenMismatchError`` on failure.

        ``request`` needs ``method``, ``url.path``, ``cookies`` and ``headers``,
        which Starlette requests provide.
        """
        if self.is_exempt(request.method, request.url.path):
            return

        cookie_token = request.cookies.get(CSRF_COOKIE_NAME)
        header_token = _header(request.headers, CSRF_HEADER_NAME)

        if not cookie_token or not header_token:
            self.logger.warning("CSRF token missing", method=request.method, path=request.url.path)
            raise CsrfTokenMissingError()

        if not constant_time_equals(cookie_token, header_token):
            self.logger.warning("CSRF token mismatch", method=request.method, path=request.url.path)
            raise CsrfTokenMismatchError()

    def is_valid(self, request: Any) -> bool:
        try:
            self.verify(request)
        except (CsrfTokenMissingError, CsrfTokenMismatchError):
            return False
        return True


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    # Starlette Headers are case-insensitive, plain mappings are not
    value = headers.get(name)
    if value is None and not hasattr(headers, "getlist"):
        lowered = name.lower()
        for key, candidate in headers.items():
            if key.lower() == lowered:
                return candidate
    return value
