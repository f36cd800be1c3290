"""Canonical payment data model shared by adapters, orchestrator and routes."""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from framepay.common.state_machine import CanonicalStatus
from framepay.services.payments.cards import mask_card_number


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PaymentMethod(str, Enum):
    PIX = "pix"
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"


# Fixed priority used when a status lookup carries no method hint.
SCAN_ORDER: tuple[PaymentMethod, ...] = (
    PaymentMethod.PIX,
    PaymentMethod.CREDIT_CARD,
    PaymentMethod.DEBIT_CARD,
)


class CardDetails(BaseModel):
    """Raw card data. Only `masked_number` may leave the adapter."""

    number: str = Field(min_length=1, repr=False, exclude=True)
    expiry_month: str = Field(min_length=1, max_length=2)
    expiry_year: str = Field(min_length=2, max_length=4)
    cvv: str = Field(min_length=3, max_length=4, repr=False, exclude=True)
    holder_name: str = Field(min_length=1)

    @property
    def masked_number(self) -> str:
        return mask_card_number(self.number)


class PaymentRequest(BaseModel):
    amount: int
    description: str
    customer_id: str = ""
    method: PaymentMethod
    metadata: dict[str, str] = Field(default_factory=dict)
    card: CardDetails | None = None
    installments: int = 1
    expiration_minutes: int | None = None


class PaymentRecord(BaseModel):
    id: str
    method: PaymentMethod
    canonical_status: CanonicalStatus
    amount: int
    description: str = ""
    provider: str
    created_at: datetime = Field(default_factory=utcnow)
    requested_at: datetime | None = None
    expires_at: datetime | None = None
    qr_code: str | None = None
    copy_paste_code: str | None = None
    installments: int | None = None
    masked_card_number: str | None = None
    raw_provider_payload: Any = Field(default=None, exclude=True, repr=False)


class RawStatus(BaseModel):
    """What an adapter read from its provider, before normalization."""

    id: str
    method: PaymentMethod
    native_status: str
    amount: int | None = None
    paid_at: datetime | None = None
    payload: Any = Field(default=None, exclude=True, repr=False)


class PaymentStatusResult(BaseModel):
    id: str
    method: PaymentMethod
    status: CanonicalStatus
    amount: int | None = None
    paid_at: datetime | None = None
    updated_at: datetime = Field(default_factory=utcnow)


class InstallmentOption(BaseModel):
    count: int
    per_installment_amount: int
    final_installment_amount: int
    total_amount: int
    interest_applied: bool
    interest_rate: Decimal = Decimal("0")


class ProviderHealth(BaseModel):
    provider_name: str
    method: PaymentMethod
    reachable: bool
    latency_ms: int = 0
    last_error: str | None = None


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class Coupon(BaseModel):
    """A redeemable discount code.

    `discount` is a fraction of the amount for percentage coupons (20% is
    `0.2`) and an amount in minor units for fixed coupons.
    """

    code: str
    discount_type: DiscountType
    discount: Decimal
    notes: str | None = None
    max_redeems: int = -1
    redeems_count: int = 0
