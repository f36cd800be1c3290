"""Build the orchestrator and its collaborators from settings."""

from typing import Any

from redis import asyncio as aioredis

from framepay.common.config import CommonSettings
from framepay.common.rate_limit import build_rate_limiter
from framepay.common.status_store import InMemoryTerminalStatusStore, RedisTerminalStatusStore
from framepay.services.payments.installments import InstallmentPolicy
from framepay.services.payments.models import PaymentMethod
from framepay.services.payments.service import PaymentOrchestrator
from framepay.services.provider_adapter.card import build_card_adapters
from framepay.services.provider_adapter.pix import build_pix_adapter


def build_orchestrator(settings: CommonSettings, **adapter_kwargs: Any) -> PaymentOrchestrator:
    """Wire adapters, rate limiter and terminal-status store.

    Redis backs both the rate limiter and the status latch when `REDIS_URL` is
    set; otherwise both stay in process memory. Extra keyword arguments (for
    example an httpx `transport`) are passed to every adapter.
    """

    rdb = aioredis.Redis.from_url(settings.redis_url, decode_responses=True) if settings.redis_url else None
    rate_limiter = build_rate_limiter(settings.provider_rate_limit_per_minute, rdb)
    if rdb is not None:
        status_store = RedisTerminalStatusStore(rdb, ttl_seconds=settings.terminal_status_ttl_seconds)
    else:
        status_store = InMemoryTerminalStatusStore(ttl_seconds=settings.terminal_status_ttl_seconds)

    pix = build_pix_adapter(settings, rate_limiter=rate_limiter, **adapter_kwargs)
    credit, debit = build_card_adapters(settings, rate_limiter=rate_limiter, **adapter_kwargs)

    return PaymentOrchestrator(
        {
            PaymentMethod.PIX: pix,
            PaymentMethod.CREDIT_CARD: credit,
            PaymentMethod.DEBIT_CARD: debit,
        },
        status_store=status_store,
        installment_policy=InstallmentPolicy.from_settings(settings),
        provider_timeout_seconds=settings.provider_timeout_seconds,
        health_check_timeout_seconds=settings.health_check_timeout_seconds,
        health_cache_ttl_seconds=settings.health_cache_ttl_seconds,
        status_retry_attempts=settings.status_retry_attempts,
        status_retry_base_delay_seconds=settings.status_retry_base_delay_seconds,
        service_name=settings.service_name,
        on_close=rdb.aclose if rdb is not None else None,
    )
