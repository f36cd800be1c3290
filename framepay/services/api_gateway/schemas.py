"""API request/response schemas for the payment routes.

JSON bodies use camelCase keys for the web client; snake_case is accepted too.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from framepay.common.state_machine import CanonicalStatus
from framepay.services.payments.models import (
    CardDetails,
    Coupon,
    DiscountType,
    InstallmentOption,
    PaymentMethod,
    PaymentRecord,
    PaymentRequest,
    ProviderHealth,
)


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PixCreateRequest(ApiModel):
    """Payload accepted by `POST /api/payment/pix/create`."""

    amount: int = Field(gt=0, description="Amount in centavos")
    description: str = Field(min_length=1)
    customer_id: str = Field(min_length=1)
    metadata: dict[str, str] = Field(default_factory=dict)
    expiration_minutes: int | None = Field(default=None, gt=0)

    def to_payment_request(self) -> PaymentRequest:
        return PaymentRequest(method=PaymentMethod.PIX, **self.model_dump())


class CardPayload(ApiModel):
    number: str = Field(min_length=1, repr=False)
    expiry_month: str = Field(min_length=1, max_length=2)
    expiry_year: str = Field(min_length=2, max_length=4)
    cvv: str = Field(min_length=3, max_length=4, repr=False)
    holder_name: str = Field(min_length=1)


class CardProcessRequest(ApiModel):
    """Payload accepted by `POST /api/payment/card/process`."""

    amount: int = Field(gt=0, description="Amount in centavos")
    description: str = Field(min_length=1)
    customer_id: str = Field(min_length=1)
    metadata: dict[str, str] = Field(default_factory=dict)
    card: CardPayload
    installments: int = Field(default=1, ge=1)
    method: PaymentMethod = PaymentMethod.CREDIT_CARD

    def to_payment_request(self) -> PaymentRequest:
        return PaymentRequest(
            amount=self.amount,
            description=self.description,
            customer_id=self.customer_id,
            metadata=self.metadata,
            method=self.method,
            installments=self.installments,
            card=CardDetails(**self.card.model_dump()),
        )


class PaymentResponse(ApiModel):
    id: str
    method: PaymentMethod
    status: CanonicalStatus
    amount: int
    description: str
    provider: str
    created_at: datetime
    requested_at: datetime | None = None
    expires_at: datetime | None = None
    qr_code: str | None = None
    copy_paste_code: str | None = None
    installments: int | None = None
    masked_card_number: str | None = None

    @classmethod
    def from_record(cls, record: PaymentRecord) -> "PaymentResponse":
        return cls(status=record.canonical_status, **record.model_dump(exclude={"canonical_status"}))


class PaymentStatusResponse(ApiModel):
    id: str
    method: PaymentMethod
    status: CanonicalStatus
    amount: int | None = None
    paid_at: datetime | None = None
    updated_at: datetime


class SimulateRequest(ApiModel):
    id: str = Field(min_length=1)
    action: Literal["approve", "reject"] = "approve"
    method: PaymentMethod = PaymentMethod.PIX


class SimulateResponse(ApiModel):
    success: bool
    message: str


class CardValidateRequest(ApiModel):
    card_number: str = Field(min_length=1)


class CardValidateResponse(ApiModel):
    valid: bool
    card_number: str


class InstallmentOptionResponse(ApiModel):
    count: int
    per_installment_amount: int
    final_installment_amount: int
    total_amount: int
    interest_applied: bool
    interest_rate: float

    @classmethod
    def from_option(cls, option: InstallmentOption) -> "InstallmentOptionResponse":
        return cls(**option.model_dump(exclude={"interest_rate"}), interest_rate=float(option.interest_rate))


class InstallmentsResponse(ApiModel):
    amount: int
    options: list[InstallmentOptionResponse]


class ProviderHealthResponse(ApiModel):
    provider_name: str
    method: PaymentMethod
    reachable: bool
    latency_ms: int
    last_error: str | None = None

    @classmethod
    def from_health(cls, health: ProviderHealth) -> "ProviderHealthResponse":
        return cls(**health.model_dump())


class HealthDetails(ApiModel):
    total_providers: int
    healthy_providers: int
    degraded_providers: int


class ProvidersHealthResponse(ApiModel):
    timestamp: datetime
    overall_health: str
    status: Literal["healthy", "degraded"]
    providers: dict[str, ProviderHealthResponse]
    supported_methods: list[PaymentMethod]
    details: HealthDetails


class CouponValidateRequest(ApiModel):
    coupon_code: str = Field(min_length=1)


class CouponDetails(ApiModel):
    id: str
    notes: str | None = None
    max_redeems: int
    redeems_count: int


class CouponValidateResponse(ApiModel):
    valid: bool = True
    discount: float
    discount_type: DiscountType
    coupon: CouponDetails

    @classmethod
    def from_coupon(cls, coupon: Coupon) -> "CouponValidateResponse":
        return cls(
            discount=float(coupon.discount),
            discount_type=coupon.discount_type,
            coupon=CouponDetails(
                id=coupon.code,
                notes=coupon.notes,
                max_redeems=coupon.max_redeems,
                redeems_count=coupon.redeems_count,
            ),
        )
