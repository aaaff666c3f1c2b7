"""
Unit tests for the storefront integrity service.
"""

import asyncio
from decimal import Decimal
from urllib.parse import parse_qsl, urlsplit

import pytest
from fastapi.testclient import TestClient

from service_integrity.app.main import IntegrityService, create_app
from service_integrity.app.payments.gateway import PayFastGateway
from service_integrity.app.payments.notification import PaymentStatus
from service_integrity.app.signature.codec import verify
from shared.test_helpers import FakeClock, TestDataFactory, create_test_config

ITN_PATH = "/api/webhooks/payfast"


class TestIntegrityService:
    """Test cases for IntegrityService."""

    @pytest.fixture
    def notifications(self):
        return []

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def service(self, notifications, clock):
        return IntegrityService(config=create_test_config(), notification_sink=notifications.append, clock=clock)

    @pytest.fixture
    def client(self, service):
        return TestClient(service.app)

    @pytest.fixture
    def csrf_client(self, client):
        """Client holding a CSRF cookie and echoing it in the header."""
        token = client.get("/api/csrf-token").json()["token"]
        client.headers["X-CSRF-Token"] = token
        return client

    def test_create_app_exposes_service(self):
        app = create_app(config=create_test_config())
        assert isinstance(app.state.integrity_service, IntegrityService)

    def test_health_reports_gateway(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "storefront"
        assert data["dependencies"] == {"payfast": "configured"}

    def test_request_id_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"

    def test_csrf_token_endpoint(self, client):
        response = client.get("/api/csrf-token")

        assert response.status_code == 200
        token = response.json()["token"]
        assert len(token) == 64
        assert client.cookies.get("csrf-token") == token
        set_cookie = response.headers["set-cookie"]
        assert "HttpOnly" not in set_cookie
        assert "SameSite=strict" in set_cookie
        assert "Secure" not in set_cookie

    def test_csrf_cookie_secure_in_production(self):
        service = IntegrityService(config=create_test_config(env="production"))
        response = TestClient(service.app).get("/api/csrf-token")
        assert "Secure" in response.headers["set-cookie"]

    def test_checkout_requires_csrf(self, client):
        response = client.post("/api/checkout", json=TestDataFactory.create_checkout_payload())
        assert response.status_code == 403
        assert response.json()["code"] == "CSRF_TOKEN_MISSING"
        assert "X-Request-ID" in response.headers

    def test_checkout_returns_signed_redirect(self, csrf_client):
        response = csrf_client.post("/api/checkout", json=TestDataFactory.create_checkout_payload())

        assert response.status_code == 200
        data = response.json()
        assert data["payment_id"] == "ORDER-1001"
        assert data["fields"]["amount"] == "250.00"
        assert data["fields"]["notify_url"] == "https://shop.example.com/api/webhooks/payfast"
        assert verify(data["fields"], "salt") is True

        url = urlsplit(data["redirect_url"])
        assert f"{url.scheme}://{url.netloc}{url.path}" == "https://sandbox.payfast.co.za/eng/process"
        assert dict(parse_qsl(url.query)) == data["fields"]

    def test_checkout_invalid_payment_id(self, csrf_client):
        payload = TestDataFactory.create_checkout_payload(payment_id="bad id!")
        response = csrf_client.post("/api/checkout", json=payload)
        assert response.status_code == 422
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_checkout_malformed_body(self, csrf_client):
        payload = TestDataFactory.create_checkout_payload(items=[{"name": "Bowl", "price": "-1"}])
        response = csrf_client.post("/api/checkout", json=payload)
        assert response.status_code == 422
        body = response.json()
        assert body["code"] == "VALIDATION_ERROR"
        assert body["request_id"]

    def test_checkout_unconfigured(self):
        service = IntegrityService(config=create_test_config(payfast_passphrase=""))
        client = TestClient(service.app)
        client.headers["X-CSRF-Token"] = client.get("/api/csrf-token").json()["token"]

        response = client.post("/api/checkout", json=TestDataFactory.create_checkout_payload())

        assert response.status_code == 503
        assert response.json()["code"] == "PAYMENT_NOT_CONFIGURED"

    def test_webhook_accepts_signed_notification(self, client, service, notifications):
        fields = TestDataFactory.create_signed_itn(service.payment_gateway)

        response = client.post(ITN_PATH, data=fields)

        assert response.status_code == 200
        assert response.text == "OK"
        assert len(notifications) == 1
        assert notifications[0].status is PaymentStatus.SUCCESS
        assert notifications[0].amount == Decimal("250.00")

    def test_webhook_rejects_bad_signature(self, client, service, notifications):
        fields = TestDataFactory.create_signed_itn(service.payment_gateway)
        fields["amount_gross"] = "1.00"

        response = client.post(ITN_PATH, data=fields)

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_SIGNATURE"
        assert notifications == []
        assert service.metrics.registry.get_sample_value(
            "signature_verifications_total", {"gateway": "payfast", "result": "invalid"}
        ) == 1

    def test_webhook_rejects_missing_signature(self, client):
        response = client.post(ITN_PATH, data=TestDataFactory.create_itn_fields())
        assert response.status_code == 400

    def test_webhook_signed_with_other_passphrase(self, client, notifications):
        other = PayFastGateway("10000100", "46f0cd694581a", passphrase="pepper", sandbox=True)
        response = client.post(ITN_PATH, data=TestDataFactory.create_signed_itn(other))
        assert response.status_code == 400
        assert notifications == []

    def test_webhook_rate_limited(self, client, service):
        fields = TestDataFactory.create_signed_itn(service.payment_gateway)
        statuses = [client.post(ITN_PATH, data=fields).status_code for _ in range(11)]

        assert statuses == [200] * 10 + [429]

    def test_webhook_async_sink(self, clock):
        received = []

        async def sink(notification):
            await asyncio.sleep(0)
            received.append(notification)

        service = IntegrityService(config=create_test_config(), notification_sink=sink, clock=clock)
        fields = TestDataFactory.create_signed_itn(service.payment_gateway, payment_status="CANCELLED")

        response = TestClient(service.app).post(ITN_PATH, data=fields)

        assert response.status_code == 200
        assert received[0].status is PaymentStatus.CANCELLED

    def test_sink_failure_is_internal_error(self, clock):
        def sink(notification):
            raise RuntimeError("order store unavailable")

        service = IntegrityService(config=create_test_config(), notification_sink=sink, clock=clock)
        fields = TestDataFactory.create_signed_itn(service.payment_gateway)

        response = TestClient(service.app, raise_server_exceptions=False).post(ITN_PATH, data=fields)

        assert response.status_code == 500
        assert response.json()["code"] == "INTERNAL_ERROR"

    def test_metrics_endpoint(self, client):
        client.get("/api/csrf-token")
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "rate_limit_decisions_total" in response.text

    def test_sweep_task_lifecycle(self, service):
        with TestClient(service.app) as client:
            assert client.get("/health").status_code == 200
            assert service._sweep_task is not None
        assert service._sweep_task is None
