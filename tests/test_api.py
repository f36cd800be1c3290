"""HTTP route layer over a fake-adapter orchestrator."""

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from framepay.common.errors import ProviderUnavailable
from framepay.services.api_gateway import main
from framepay.services.payments.models import Coupon, DiscountType, PaymentMethod

from conftest import VALID_PAN


@pytest.fixture
def client(orchestrator):
    main.app.dependency_overrides[main.get_orchestrator] = lambda: orchestrator
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


def test_create_pix_uses_camel_case(client):
    resp = client.post(
        "/api/payment/pix/create",
        json={"amount": 1500, "description": "Frame print", "customerId": "cust_1", "expirationMinutes": 15},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["id"] == "pix_1"
    assert body["status"] == "pending"
    assert body["method"] == "pix"
    assert "requestedAt" in body


def test_invalid_body_is_400(client):
    resp = client.post("/api/payment/pix/create", json={"amount": 0, "description": "x", "customerId": "c"})

    assert resp.status_code == 400
    assert resp.json()["kind"] == "invalid_argument"


def test_status_scan_and_not_found(client, adapters):
    adapters[PaymentMethod.CREDIT_CARD].statuses["pi_1"] = ["succeeded"]

    found = client.get("/api/payment/pix/status", params={"id": "pi_1"})
    missing = client.get("/api/payment/pix/status", params={"id": "nope"})

    assert found.status_code == 200
    assert found.json()["status"] == "approved"
    assert found.json()["method"] == "credit_card"
    assert missing.status_code == 404
    assert missing.json() == {"error": "payment nope not found on any provider", "kind": "not_found"}


def test_status_requires_id(client):
    assert client.get("/api/payment/pix/status").status_code == 400


def test_provider_unavailable_is_500(client, adapters):
    adapters[PaymentMethod.PIX].create_error = ProviderUnavailable("abacatepay down")

    resp = client.post("/api/payment/pix/create", json={"amount": 100, "description": "x", "customerId": "c"})

    assert resp.status_code == 500
    assert resp.json() == {"error": "abacatepay down", "kind": "provider_unavailable"}


def test_card_process_returns_masked_number(client):
    resp = client.post(
        "/api/payment/card/process",
        json={
            "amount": 10000,
            "description": "Frame print",
            "customerId": "cust_1",
            "installments": 2,
            "card": {
                "number": VALID_PAN,
                "expiryMonth": "12",
                "expiryYear": "2030",
                "cvv": "123",
                "holderName": "Ana Souza",
            },
        },
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "processing"
    assert body["maskedCardNumber"] == "************4242"
    assert VALID_PAN not in resp.text


def test_card_process_rejects_pix_method(client):
    resp = client.post(
        "/api/payment/card/process",
        json={
            "amount": 10000,
            "description": "x",
            "customerId": "c",
            "method": "pix",
            "card": {"number": VALID_PAN, "expiryMonth": "1", "expiryYear": "30", "cvv": "123", "holderName": "A"},
        },
    )
    assert resp.status_code == 400


def test_card_validate(client):
    resp = client.post("/api/payment/card/validate", json={"cardNumber": "4242 4242 4242 4242"})

    assert resp.json() == {"valid": True, "cardNumber": "************4242"}


def test_installments(client):
    resp = client.get("/api/payment/card/installments", params={"amount": 10000})

    assert resp.status_code == 200
    options = resp.json()["options"]
    assert options[2]["count"] == 3
    assert options[2]["perInstallmentAmount"] == 3334
    assert options[2]["finalInstallmentAmount"] == 3332
    assert client.get("/api/payment/card/installments", params={"amount": 0}).status_code == 400


def test_simulate_then_status(client):
    created = client.post("/api/payment/pix/create", json={"amount": 100, "description": "x", "customerId": "c"}).json()

    simulated = client.post("/api/payment/pix/simulate", json={"id": created["id"]})
    status = client.get("/api/payment/pix/status", params={"id": created["id"], "method": "pix"})

    assert simulated.json()["success"] is True
    assert status.json()["status"] == "approved"


def test_simulate_forbidden_in_production(client, monkeypatch):
    monkeypatch.setattr(main.settings, "environment", "production")
    assert client.post("/api/payment/pix/simulate", json={"id": "pix_1"}).status_code == 403


def test_providers_health_summary(client, adapters):
    adapters[PaymentMethod.DEBIT_CARD].reachable = False

    body = client.get("/api/payment/health").json()

    assert body["overallHealth"] == "66.7%"
    assert body["status"] == "healthy"
    assert body["supportedMethods"] == ["pix", "credit_card", "debit_card"]
    assert body["details"] == {"totalProviders": 3, "healthyProviders": 2, "degradedProviders": 1}
    assert body["providers"]["fake_debit_card"]["reachable"] is False


def test_liveness_and_metrics(client):
    assert client.get("/health").json() == {"ok": True}
    metrics = client.get("/metrics")
    assert metrics.status_code == 200
    assert "http_requests_total" in metrics.text


def test_coupon_validate(client, adapters):
    adapters[PaymentMethod.PIX].coupons["LOVEFRAME20"] = Coupon(
        code="LOVEFRAME20", discount_type=DiscountType.PERCENTAGE, discount=Decimal("0.2"), redeems_count=3
    )

    resp = client.post("/api/payment/coupon/validate", json={"couponCode": "loveframe20"})
    missing = client.post("/api/payment/coupon/validate", json={"couponCode": "NOPE"})

    assert resp.status_code == 200
    assert resp.json() == {
        "valid": True,
        "discount": 0.2,
        "discountType": "percentage",
        "coupon": {"id": "LOVEFRAME20", "notes": None, "maxRedeems": -1, "redeemsCount": 3},
    }
    assert missing.status_code == 404
    assert client.post("/api/payment/coupon/validate", json={}).status_code == 400
