"""
Unit tests for the request integrity middleware.
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from service_integrity.app.csrf.guard import CsrfGuard
from service_integrity.app.domain.integrity_middleware import RequestIntegrityMiddleware, categorize_endpoint
from service_integrity.app.ratelimit.fixed_window import FixedWindowRateLimiter
from service_integrity.app.ratelimit.store import InMemoryRateLimitStore
from shared.metrics import MetricsCollector
from shared.test_helpers import FakeClock

TOKEN = "a" * 64


class TestCategorizeEndpoint:

    @pytest.mark.parametrize("path,expected", [
        ("/api/webhooks/payfast", "webhook"),
        ("/api/auth/login", "auth"),
        ("/api/admin/login", "auth"),
        ("/api/admin/auth/refresh", "auth"),
        ("/api/admin/orders", "admin"),
        ("/api/products", "public"),
        ("/api/checkout", "public"),
        ("/health", None),
        ("/metrics", None),
        ("/apiary", None),
    ])
    def test_categories(self, path, expected):
        assert categorize_endpoint(path) == expected


class TestRequestIntegrityMiddleware:
    """Test cases for RequestIntegrityMiddleware."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def metrics(self):
        return MetricsCollector("middleware-test")

    @pytest.fixture
    def app(self, clock, metrics):
        app = FastAPI()
        limiter = FixedWindowRateLimiter(InMemoryRateLimitStore(clock=clock), metrics=metrics)
        app.add_middleware(
            RequestIntegrityMiddleware,
            rate_limiter=limiter,
            csrf_guard=CsrfGuard(),
            metrics=metrics,
        )

        @app.get("/api/products")
        async def products():
            return {"products": []}

        @app.post("/api/orders")
        async def create_order():
            return {"created": True}

        @app.post("/api/auth/login")
        async def login():
            return {"ok": True}

        @app.post("/api/webhooks/payfast")
        async def webhook():
            return {"ok": True}

        @app.get("/health")
        async def health():
            return {"status": "ok"}

        return app

    @pytest.fixture
    def client(self, app):
        return TestClient(app)

    def test_get_passes_with_rate_headers(self, client):
        response = client.get("/api/products")
        assert response.status_code == 200
        assert response.headers["X-RateLimit-Limit"] == "100"
        assert response.headers["X-RateLimit-Remaining"] == "99"
        assert response.headers["X-RateLimit-Reset"].endswith("Z")

    def test_non_api_paths_not_limited(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert "X-RateLimit-Limit" not in response.headers

    def test_post_without_token_rejected(self, client, metrics):
        response = client.post("/api/orders")

        assert response.status_code == 403
        body = response.json()
        assert body["code"] == "CSRF_TOKEN_MISSING"
        assert body["message"] == "Invalid CSRF token"
        assert response.headers["X-RateLimit-Remaining"] == "99"
        assert metrics.registry.get_sample_value("csrf_rejections_total", {"code": "CSRF_TOKEN_MISSING"}) == 1

    def test_post_with_mismatched_token_rejected(self, client):
        client.cookies.set("csrf-token", TOKEN)
        response = client.post("/api/orders", headers={"X-CSRF-Token": "b" * 64})
        assert response.status_code == 403
        assert response.json()["code"] == "CSRF_TOKEN_MISMATCH"

    def test_post_with_matching_token_passes(self, client):
        client.cookies.set("csrf-token", TOKEN)
        response = client.post("/api/orders", headers={"X-CSRF-Token": TOKEN})
        assert response.status_code == 200
        assert response.json() == {"created": True}

    def test_webhook_skips_csrf(self, client):
        response = client.post("/api/webhooks/payfast")
        assert response.status_code == 200
        assert response.headers["X-RateLimit-Limit"] == "10"

    def test_auth_limit_returns_429(self, client, clock):
        client.cookies.set("csrf-token", TOKEN)
        headers = {"X-CSRF-Token": TOKEN, "X-Forwarded-For": "203.0.113.7"}
        for _ in range(10):
            assert client.post("/api/auth/login", headers=headers).status_code == 200

        clock.advance(1500)
        response = client.post("/api/auth/login", headers=headers)

        assert response.status_code == 429
        assert response.json()["code"] == "RATE_LIMIT_EXCEEDED"
        assert response.headers["Retry-After"] == str(15 * 60 - 1)
        assert response.headers["X-RateLimit-Remaining"] == "0"

    def test_rate_limit_checked_before_csrf(self, client):
        for _ in range(10):
            client.post("/api/auth/login")
        response = client.post("/api/auth/login")
        assert response.status_code == 429

    def test_clients_limited_separately(self, client):
        for _ in range(11):
            client.post("/api/webhooks/payfast", headers={"X-Forwarded-For": "198.51.100.1"})
        response = client.post("/api/webhooks/payfast", headers={"X-Forwarded-For": "198.51.100.2"})
        assert response.status_code == 200

    def test_window_reset_allows_again(self, client, clock):
        for _ in range(11):
            client.post("/api/webhooks/payfast")
        clock.advance(60_000)
        response = client.post("/api/webhooks/payfast")
        assert response.status_code == 200
        assert response.headers["X-RateLimit-Remaining"] == "9"
