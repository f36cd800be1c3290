"""PIX rail over the AbacatePay QR code API."""

from datetime import datetime
from decimal import Decimal
from typing import Any

from framepay.common.errors import InvalidArgument, InvalidRequest, NotFound, ProviderError
from framepay.common.state_machine import CanonicalStatus
from framepay.services.payments.models import (
    Coupon,
    DiscountType,
    PaymentMethod,
    PaymentRecord,
    PaymentRequest,
    RawStatus,
    utcnow,
)
from framepay.services.provider_adapter.base import HttpProviderAdapter


def _parse_timestamp(value: Any) -> datetime | None:
    if not value or not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _unwrap(body: Any) -> tuple[Any, Any]:
    """AbacatePay wraps payloads as `{"data": ..., "error": ...}`."""

    if not isinstance(body, dict):
        return None, None
    if "data" in body or "error" in body:
        return body.get("data"), body.get("error")
    return body, None


class PixAdapter(HttpProviderAdapter):
    name = "abacatepay_pix"
    method = PaymentMethod.PIX
    initial_status = CanonicalStatus.PENDING
    supports_simulation = True

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"}

    async def create_payment(self, req: PaymentRequest) -> PaymentRecord:
        payload: dict[str, Any] = {
            "amount": req.amount,
            "description": req.description,
            "customer_id": req.customer_id,
            "metadata": req.metadata,
        }
        if req.expiration_minutes:
            payload["expires_in"] = req.expiration_minutes * 60
        if req.metadata.get("couponCode"):
            payload["coupon_code"] = req.metadata["couponCode"]

        body = await self._request("create_payment", "POST", "/pixQrCode/create", json=payload)
        data, error = _unwrap(body)
        if error and not data:
            raise InvalidRequest(f"{self.name} rejected payment: {error}", provider=self.name)
        if not data or not str(data.get("id") or "").strip():
            raise ProviderError(f"{self.name}: no payment id in response: {str(body)[:500]}", provider=self.name)

        return PaymentRecord(
            id=str(data["id"]),
            method=self.method,
            canonical_status=self.initial_status_for(data.get("status")),
            amount=int(data.get("amount") or req.amount),
            description=data.get("description") or req.description,
            provider=self.name,
            created_at=_parse_timestamp(data.get("createdAt") or data.get("created_at")) or utcnow(),
            expires_at=_parse_timestamp(data.get("expiresAt") or data.get("expires_at")),
            qr_code=data.get("brCodeBase64"),
            copy_paste_code=data.get("brCode"),
            raw_provider_payload=body,
        )

    async def fetch_status(self, payment_id: str) -> RawStatus:
        body = await self._request("fetch_status", "GET", "/pixQrCode/check", params={"id": payment_id})
        data, _ = _unwrap(body)
        if not data:
            raise NotFound(f"{self.name} has no payment {payment_id}", provider=self.name)
        amount = data.get("amount")
        return RawStatus(
            id=str(data.get("id") or payment_id),
            method=self.method,
            native_status=str(data.get("status") or ""),
            amount=int(amount) if amount is not None else None,
            paid_at=_parse_timestamp(data.get("paidAt") or data.get("paid_at")),
            payload=body,
        )

    async def simulate_payment(self, payment_id: str, approve: bool = True) -> None:
        if not approve:
            raise InvalidArgument(f"{self.name} can only simulate approvals", provider=self.name)
        await self._request(
            "simulate_payment",
            "POST",
            "/pixQrCode/simulate-payment",
            params={"id": payment_id},
            json={},
        )

    async def validate_coupon(self, code: str) -> Coupon:
        body = await self._request("validate_coupon", "GET", "/coupon/list")
        data, _ = _unwrap(body)
        coupons = data if isinstance(data, list) else []
        wanted = code.strip().upper()
        coupon = next((c for c in coupons if isinstance(c, dict) and str(c.get("id") or "").upper() == wanted), None)
        if coupon is None:
            raise NotFound(f"coupon {code} not found", provider=self.name)
        if coupon.get("status") != "ACTIVE":
            raise InvalidRequest(f"coupon {code} is inactive or expired", provider=self.name)

        raw_max = coupon.get("maxRedeems")
        max_redeems = -1 if raw_max is None else int(raw_max)
        redeems_count = int(coupon.get("redeemsCount") or 0)
        if max_redeems != -1 and redeems_count >= max_redeems:
            raise InvalidRequest(f"coupon {code} has reached its redemption limit", provider=self.name)

        raw_discount = Decimal(str(coupon.get("discount") or 0))
        if coupon.get("discountKind") == "FIXED":
            discount_type, discount = DiscountType.FIXED, raw_discount
        else:
            discount_type, discount = DiscountType.PERCENTAGE, raw_discount / 100
        return Coupon(
            code=str(coupon["id"]),
            discount_type=discount_type,
            discount=discount,
            notes=coupon.get("notes"),
            max_redeems=max_redeems,
            redeems_count=redeems_count,
        )

    async def _ping(self) -> str | None:
        resp = await self.client.get("/health", headers=self._headers())
        if resp.is_success:
            return None
        return f"HTTP {resp.status_code}"


def build_pix_adapter(settings, **kwargs: Any) -> PixAdapter:
    return PixAdapter(
        api_key=settings.abacatepay_api_key,
        base_url=settings.abacatepay_base_url,
        timeout_seconds=settings.provider_timeout_seconds,
        **kwargs,
    )
