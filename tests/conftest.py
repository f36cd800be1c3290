"""Shared fixtures: fake provider adapters and a wired orchestrator."""

import os

os.environ.setdefault("TRACING_ENABLED", "false")
os.environ.setdefault("ENVIRONMENT", "test")

import asyncio

import pytest

from framepay.common.errors import NotFound
from framepay.common.state_machine import CanonicalStatus
from framepay.common.status_store import InMemoryTerminalStatusStore
from framepay.services.payments.models import (
    Coupon,
    PaymentMethod,
    PaymentRecord,
    PaymentRequest,
    ProviderHealth,
    RawStatus,
)
from framepay.services.payments.service import PaymentOrchestrator
from framepay.services.provider_adapter.base import ProviderAdapter

VALID_PAN = "4242424242424242"


class FakeAdapter(ProviderAdapter):
    """In-memory rail. `statuses` scripts what each poll returns.

    A scripted entry is either a native status string or an exception to raise;
    the last entry repeats once the script runs out.
    """

    def __init__(
        self,
        method: PaymentMethod,
        name: str | None = None,
        initial_status: CanonicalStatus = CanonicalStatus.PENDING,
        supports_simulation: bool = False,
    ) -> None:
        self.method = method
        self.name = name or f"fake_{method.value}"
        self.initial_status = initial_status
        self.supports_simulation = supports_simulation
        self.statuses: dict[str, list] = {}
        self.created: list[PaymentRequest] = []
        self.fetch_calls: list[str] = []
        self.simulated: list[tuple[str, bool]] = []
        self.create_error: Exception | None = None
        self.create_delay = 0.0
        self.fetch_delay = 0.0
        self.health_delay = 0.0
        self.reachable = True
        self.closed = False
        self.coupons: dict[str, Coupon] = {}

    async def create_payment(self, req: PaymentRequest) -> PaymentRecord:
        self.created.append(req)
        if self.create_delay:
            await asyncio.sleep(self.create_delay)
        if self.create_error is not None:
            raise self.create_error
        payment_id = f"{self.method.value}_{len(self.created)}"
        self.statuses.setdefault(payment_id, ["PENDING" if self.method == PaymentMethod.PIX else "processing"])
        return PaymentRecord(
            id=payment_id,
            method=self.method,
            canonical_status=self.initial_status,
            amount=req.amount,
            description=req.description,
            provider=self.name,
            installments=req.installments if req.card else None,
            masked_card_number=req.card.masked_number if req.card else None,
        )

    async def fetch_status(self, payment_id: str) -> RawStatus:
        self.fetch_calls.append(payment_id)
        if self.fetch_delay:
            await asyncio.sleep(self.fetch_delay)
        script = self.statuses.get(payment_id)
        if not script:
            raise NotFound(f"{payment_id} unknown", provider=self.name)
        outcome = script.pop(0) if len(script) > 1 else script[0]
        if isinstance(outcome, Exception):
            raise outcome
        return RawStatus(id=payment_id, method=self.method, native_status=outcome, amount=1000)

    async def simulate_payment(self, payment_id: str, approve: bool = True) -> None:
        if not self.supports_simulation:
            return await super().simulate_payment(payment_id, approve)
        self.simulated.append((payment_id, approve))
        self.statuses[payment_id] = ["PAID" if approve else "CANCELLED"]

    async def validate_coupon(self, code: str) -> Coupon:
        coupon = self.coupons.get(code.upper())
        if coupon is None:
            raise NotFound(f"coupon {code} not found", provider=self.name)
        return coupon

    async def health_check(self) -> ProviderHealth:
        if self.health_delay:
            await asyncio.sleep(self.health_delay)
        return ProviderHealth(
            provider_name=self.name,
            method=self.method,
            reachable=self.reachable,
            latency_ms=1,
            last_error=None if self.reachable else "down",
        )

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def adapters() -> dict[PaymentMethod, FakeAdapter]:
    return {
        PaymentMethod.PIX: FakeAdapter(PaymentMethod.PIX, supports_simulation=True),
        PaymentMethod.CREDIT_CARD: FakeAdapter(PaymentMethod.CREDIT_CARD, initial_status=CanonicalStatus.PROCESSING),
        PaymentMethod.DEBIT_CARD: FakeAdapter(PaymentMethod.DEBIT_CARD, initial_status=CanonicalStatus.PROCESSING),
    }


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def orchestrator(adapters, sleeps) -> PaymentOrchestrator:
    async def fake_sleep(seconds: float) -> None:
        sleeps.append(seconds)

    return PaymentOrchestrator(
        adapters,
        status_store=InMemoryTerminalStatusStore(),
        provider_timeout_seconds=0.5,
        health_check_timeout_seconds=0.2,
        status_retry_attempts=3,
        status_retry_base_delay_seconds=0.1,
        sleep=fake_sleep,
    )


def pix_request(**overrides) -> PaymentRequest:
    fields = {
        "amount": 1000,
        "description": "Frame print",
        "customer_id": "cust_1",
        "method": PaymentMethod.PIX,
    }
    fields.update(overrides)
    return PaymentRequest(**fields)


def card_request(method: PaymentMethod = PaymentMethod.CREDIT_CARD, **overrides) -> PaymentRequest:
    fields = {
        "amount": 10000,
        "description": "Frame print",
        "customer_id": "cust_1",
        "method": method,
        "card": {
            "number": VALID_PAN,
            "expiry_month": "12",
            "expiry_year": "2030",
            "cvv": "123",
            "holder_name": "Ana Souza",
        },
    }
    fields.update(overrides)
    return PaymentRequest(**fields)
