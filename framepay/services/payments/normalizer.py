"""Map each rail's native status vocabulary onto `CanonicalStatus`.

Unknown values become `error`, never `approved`.
"""

from framepay.common.state_machine import CanonicalStatus
from framepay.services.payments.models import PaymentMethod


# AbacatePay PIX QR codes.
PIX_STATUS_MAP: dict[str, CanonicalStatus] = {
    "PENDING": CanonicalStatus.PENDING,
    "PROCESSING": CanonicalStatus.PROCESSING,
    "PAID": CanonicalStatus.APPROVED,
    "COMPLETED": CanonicalStatus.APPROVED,
    "EXPIRED": CanonicalStatus.EXPIRED,
    "CANCELLED": CanonicalStatus.DECLINED,
    "CANCELED": CanonicalStatus.DECLINED,
    "FAILED": CanonicalStatus.DECLINED,
    "ERROR": CanonicalStatus.DECLINED,
    # Refunds reverse the charge; an earlier approved latch still wins.
    "REFUNDED": CanonicalStatus.DECLINED,
}

# Stripe PaymentIntents, shared by the credit and debit rails.
CARD_STATUS_MAP: dict[str, CanonicalStatus] = {
    "requires_confirmation": CanonicalStatus.PENDING,
    "requires_action": CanonicalStatus.PENDING,
    "processing": CanonicalStatus.PROCESSING,
    "requires_capture": CanonicalStatus.PROCESSING,
    "succeeded": CanonicalStatus.APPROVED,
    # A failed authorization sends the intent back to requires_payment_method.
    "requires_payment_method": CanonicalStatus.DECLINED,
    "canceled": CanonicalStatus.DECLINED,
}

STATUS_MAPS: dict[PaymentMethod, dict[str, CanonicalStatus]] = {
    PaymentMethod.PIX: PIX_STATUS_MAP,
    PaymentMethod.CREDIT_CARD: CARD_STATUS_MAP,
    PaymentMethod.DEBIT_CARD: CARD_STATUS_MAP,
}


def _key(method: PaymentMethod, raw_status: str) -> str:
    raw_status = raw_status.strip()
    return raw_status.upper() if method == PaymentMethod.PIX else raw_status.lower()


def normalize(method: PaymentMethod, raw_status: object) -> CanonicalStatus:
    if not isinstance(raw_status, str) or not raw_status.strip():
        return CanonicalStatus.ERROR
    table = STATUS_MAPS.get(method, {})
    return table.get(_key(method, raw_status), CanonicalStatus.ERROR)
