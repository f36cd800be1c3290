"""Credit and debit card rails over Stripe PaymentIntents.

Both rails share one Stripe account. The rail that created an intent is kept
in the intent metadata (`rail`), so a status lookup on the wrong rail reports
`NotFound` and the orchestrator's scan moves on to the right one.
"""

from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

import httpx

from framepay.common.errors import NotFound, ProviderError
from framepay.common.logging import logger
from framepay.common.state_machine import CanonicalStatus
from framepay.services.payments.cards import normalize_card_number
from framepay.services.payments.models import PaymentMethod, PaymentRecord, PaymentRequest, RawStatus, utcnow
from framepay.services.provider_adapter.base import HttpProviderAdapter


STRIPE_API_VERSION = "2023-10-16"
PAYMENT_INTENT_PREFIX = "pi_"


def form_encode(obj: dict[str, Any], prefix: str = "") -> dict[str, str]:
    """Flatten nested dicts into Stripe's bracketed form keys (`card[number]`)."""

    out: dict[str, str] = {}
    for key, value in obj.items():
        if value is None:
            continue
        form_key = f"{prefix}[{key}]" if prefix else key
        if isinstance(value, dict):
            out.update(form_encode(value, form_key))
        elif isinstance(value, bool):
            out[form_key] = "true" if value else "false"
        else:
            out[form_key] = str(value)
    return out


def _from_unix(value: Any) -> datetime | None:
    if isinstance(value, (int, float)) and value > 0:
        return datetime.fromtimestamp(value, tz=timezone.utc)
    return None


class StripeCardAdapter(HttpProviderAdapter):
    """Shared Stripe implementation; subclasses pin the rail."""

    initial_status = CanonicalStatus.PROCESSING

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Stripe-Version": STRIPE_API_VERSION,
        }

    def _error_detail(self, resp: httpx.Response) -> str:
        try:
            body = resp.json()
        except ValueError:
            return resp.text[:500]
        error = (body.get("error") if isinstance(body, dict) else None) or {}
        code = error.get("decline_code") or error.get("code") or "unknown"
        return f"{code}: {error.get('message', 'Unknown error')}"

    async def _post_form(self, op: str, path: str, payload: dict[str, Any]) -> Any:
        return await self._request(
            op,
            "POST",
            path,
            data=form_encode(payload),
            headers={"Idempotency-Key": str(uuid4())},
        )

    def _installment_options(self, installments: int) -> dict[str, Any] | None:
        if installments <= 1:
            return None
        return {
            "card": {
                "installments": {
                    "enabled": True,
                    "plan": {"count": installments, "interval": "month", "type": "fixed_count"},
                }
            }
        }

    async def create_payment(self, req: PaymentRequest) -> PaymentRecord:
        card = req.card
        payment_method = await self._post_form(
            "create_payment_method",
            "/payment_methods",
            {
                "type": "card",
                "card": {
                    "number": normalize_card_number(card.number),
                    "exp_month": card.expiry_month,
                    "exp_year": card.expiry_year,
                    "cvc": card.cvv,
                },
                "billing_details": {"name": card.holder_name},
            },
        )
        payment_method_id = payment_method.get("id") if isinstance(payment_method, dict) else None
        if not payment_method_id:
            raise ProviderError(f"{self.name}: no payment method id in response", provider=self.name)

        intent = await self._post_form(
            "create_payment",
            "/payment_intents",
            {
                "amount": req.amount,
                "currency": "brl",
                "description": req.description,
                "payment_method": payment_method_id,
                "confirm": True,
                "metadata": {**req.metadata, "customer_id": req.customer_id, "rail": self.method.value},
                "payment_method_options": self._installment_options(req.installments),
            },
        )
        if not isinstance(intent, dict) or not intent.get("id"):
            raise ProviderError(f"{self.name}: no payment intent id in response", provider=self.name)

        logger.info(
            "card_intent_created provider=%s intent=%s card=%s status=%s",
            self.name,
            intent["id"],
            card.masked_number,
            intent.get("status"),
        )
        return PaymentRecord(
            id=intent["id"],
            method=self.method,
            canonical_status=self.initial_status_for(intent.get("status")),
            amount=int(intent.get("amount") or req.amount),
            description=intent.get("description") or req.description,
            provider=self.name,
            created_at=_from_unix(intent.get("created")) or utcnow(),
            installments=req.installments,
            masked_card_number=card.masked_number,
            raw_provider_payload=intent,
        )

    async def fetch_status(self, payment_id: str) -> RawStatus:
        if not payment_id.startswith(PAYMENT_INTENT_PREFIX):
            raise NotFound(f"{payment_id} is not a Stripe payment intent", provider=self.name)
        intent = await self._request(
            "fetch_status",
            "GET",
            f"/payment_intents/{payment_id}",
            params={"expand[]": "latest_charge"},
        )
        rail = (intent.get("metadata") or {}).get("rail")
        if rail and rail != self.method.value:
            raise NotFound(f"{payment_id} belongs to the {rail} rail", provider=self.name)

        charge = intent.get("latest_charge")
        paid_at = None
        if isinstance(charge, dict) and intent.get("status") == "succeeded":
            paid_at = _from_unix(charge.get("created"))
        amount = intent.get("amount")
        return RawStatus(
            id=intent.get("id") or payment_id,
            method=self.method,
            native_status=str(intent.get("status") or ""),
            amount=int(amount) if amount is not None else None,
            paid_at=paid_at,
            payload=intent,
        )

    async def _ping(self) -> str | None:
        resp = await self.client.get("/balance", headers=self._headers())
        if resp.status_code == 401:
            return "unauthorized"
        if resp.status_code >= 500:
            return f"HTTP {resp.status_code}"
        return None


class CreditCardAdapter(StripeCardAdapter):
    name = "stripe_credit_card"
    method = PaymentMethod.CREDIT_CARD


class DebitCardAdapter(StripeCardAdapter):
    name = "stripe_debit_card"
    method = PaymentMethod.DEBIT_CARD

    def _installment_options(self, installments: int) -> dict[str, Any] | None:
        return None


def build_card_adapters(settings, **kwargs: Any) -> tuple[CreditCardAdapter, DebitCardAdapter]:
    common = {
        "api_key": settings.stripe_secret_key,
        "base_url": settings.stripe_base_url,
        "timeout_seconds": settings.provider_timeout_seconds,
        **kwargs,
    }
    return CreditCardAdapter(**common), DebitCardAdapter(**common)
