"""
Unit tests for double-submit CSRF protection.
"""

import re
from types import SimpleNamespace

import pytest
from starlette.responses import Response

from service_integrity.app.csrf.guard import CSRF_COOKIE_NAME, CSRF_HEADER_NAME, CsrfGuard
from shared.errors import CsrfError, CsrfTokenMismatchError, CsrfTokenMissingError


def make_request(method="POST", path="/api/checkout", cookie=None, header=None):
    cookies = {CSRF_COOKIE_NAME: cookie} if cookie is not None else {}
    headers = {CSRF_HEADER_NAME: header} if header is not None else {}
    return SimpleNamespace(method=method, url=SimpleNamespace(path=path), cookies=cookies, headers=headers)


class TestCsrfGuard:
    """Test cases for CsrfGuard."""

    @pytest.fixture
    def guard(self):
        return CsrfGuard()

    @pytest.fixture
    def token(self, guard):
        return guard.issue_token().value

    def test_issued_token_is_64_hex_chars(self, guard):
        assert re.fullmatch(r"[0-9a-f]{64}", guard.issue_token().value)

    def test_tokens_are_unique(self, guard):
        assert len({guard.issue_token().value for _ in range(50)}) == 50

    def test_cookie_attributes(self, guard):
        cookie = guard.issue_token().cookie
        assert cookie.name == "csrf-token"
        assert cookie.httponly is False
        assert cookie.samesite == "strict"
        assert cookie.path == "/"
        assert cookie.max_age == 86400
        assert cookie.secure is False

    def test_secure_cookie_in_production(self):
        assert CsrfGuard(secure_cookies=True).issue_token().cookie.secure is True

    def test_apply_sets_cookie_header(self, guard):
        token = guard.issue_token()
        response = Response()
        token.apply(response)

        set_cookie = response.headers["set-cookie"]
        assert set_cookie.startswith(f"csrf-token={token.value};")
        assert "SameSite=strict" in set_cookie
        assert "HttpOnly" not in set_cookie

    def test_short_tokens_refused(self):
        with pytest.raises(ValueError):
            CsrfGuard(token_bytes=8)

    @pytest.mark.parametrize("method", ["GET", "HEAD", "OPTIONS", "get"])
    def test_safe_methods_pass_without_token(self, guard, method):
        guard.verify(make_request(method=method))

    def test_matching_tokens_pass(self, guard, token):
        guard.verify(make_request(cookie=token, header=token))
        assert guard.is_valid(make_request(method="DELETE", cookie=token, header=token)) is True

    def test_header_lookup_case_insensitive(self, guard, token):
        request = make_request(cookie=token)
        request.headers = {"x-csrf-token": token}
        assert guard.is_valid(request) is True

    def test_missing_header(self, guard, token):
        with pytest.raises(CsrfTokenMissingError):
            guard.verify(make_request(cookie=token))

    def test_missing_cookie(self, guard, token):
        with pytest.raises(CsrfTokenMissingError):
            guard.verify(make_request(header=token))

    def test_empty_values_count_as_missing(self, guard):
        with pytest.raises(CsrfTokenMissingError):
            guard.verify(make_request(cookie="", header=""))

    def test_mismatched_tokens(self, guard, token):
        other = guard.issue_token().value
        with pytest.raises(CsrfTokenMismatchError):
            guard.verify(make_request(cookie=token, header=other))

    def test_different_length_tokens_mismatch(self, guard, token):
        with pytest.raises(CsrfTokenMismatchError):
            guard.verify(make_request(cookie=token, header=token[:10]))

    def test_failures_share_public_message(self, guard, token):
        for request in (make_request(), make_request(cookie=token, header="nope")):
            with pytest.raises(CsrfError) as exc_info:
                guard.verify(request)
            assert exc_info.value.message == "Invalid CSRF token"
            assert exc_info.value.status_code == 403

    @pytest.mark.parametrize("path", ["/api/webhooks/payfast", "/api/csrf-token"])
    def test_exempt_paths(self, guard, path):
        assert guard.is_valid(make_request(path=path)) is True

    def test_custom_exemptions_replace_defaults(self):
        guard = CsrfGuard(exempt_prefixes=["/api/internal/"])
        assert guard.is_valid(make_request(path="/api/internal/sync")) is True
        assert guard.is_valid(make_request(path="/api/webhooks/payfast")) is False
