"""Payment orchestration facade.

Validates canonical requests, dispatches them to the adapter registered for the
payment method, normalizes polled statuses into the canonical state machine and
aggregates provider health. Holds no per-payment state of its own; terminal
statuses are latched through the injected `TerminalStatusStore`.
"""

import asyncio
from collections.abc import Awaitable, Callable, Mapping
from time import monotonic
from typing import TypeVar

from framepay.common.errors import (
    InvalidArgument,
    NotFound,
    PaymentError,
    ProviderError,
    ProviderNotConfigured,
    ProviderTimeout,
    ProviderUnavailable,
)
from framepay.common.logging import logger, payment_id_ctx
from framepay.common.metrics import (
    payment_failure_total,
    payment_requests_total,
    provider_up,
    retries_total,
    terminal_status_conflicts_total,
)
from framepay.common.state_machine import (
    INITIAL_STATES,
    CanonicalStatus,
    InvalidTransition,
    is_terminal,
    validate_transition,
)
from framepay.common.status_store import InMemoryTerminalStatusStore, TerminalStatusStore
from framepay.services.payments import cards
from framepay.services.payments.installments import InstallmentPolicy, compute_options
from framepay.services.payments.models import (
    SCAN_ORDER,
    Coupon,
    InstallmentOption,
    PaymentMethod,
    PaymentRecord,
    PaymentRequest,
    PaymentStatusResult,
    ProviderHealth,
    RawStatus,
    utcnow,
)
from framepay.services.payments.normalizer import normalize
from framepay.services.provider_adapter.base import ProviderAdapter

T = TypeVar("T")

CARD_METHODS = frozenset({PaymentMethod.CREDIT_CARD, PaymentMethod.DEBIT_CARD})


class PaymentOrchestrator:
    """Single entry point the HTTP layer uses for every payment operation."""

    def __init__(
        self,
        adapters: Mapping[PaymentMethod, ProviderAdapter],
        *,
        status_store: TerminalStatusStore | None = None,
        installment_policy: InstallmentPolicy | None = None,
        provider_timeout_seconds: float = 30.0,
        health_check_timeout_seconds: float = 3.0,
        health_cache_ttl_seconds: float = 0.0,
        status_retry_attempts: int = 3,
        status_retry_base_delay_seconds: float = 0.5,
        service_name: str = "framepay",
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        on_close: Callable[[], Awaitable[None]] | None = None,
    ) -> None:
        # Registry is ordered by scan priority and keyed by method only.
        self.adapters: dict[PaymentMethod, ProviderAdapter] = {
            method: adapters[method] for method in SCAN_ORDER if method in adapters
        }
        self.status_store = status_store or InMemoryTerminalStatusStore()
        self.installment_policy = installment_policy or InstallmentPolicy()
        self.provider_timeout_seconds = provider_timeout_seconds
        self.health_check_timeout_seconds = health_check_timeout_seconds
        self.health_cache_ttl_seconds = health_cache_ttl_seconds
        self.status_retry_attempts = max(1, status_retry_attempts)
        self.status_retry_base_delay_seconds = status_retry_base_delay_seconds
        self.service_name = service_name
        self._sleep = sleep
        self._on_close = on_close
        self._health_cache: tuple[float, dict[str, ProviderHealth]] | None = None

    def validate_card(self, card_number: str) -> bool:
        return cards.validate_card(card_number)

    def mask_card(self, card_number: str) -> str:
        return cards.mask_card_number(card_number)

    def compute_installments(self, amount: int) -> list[InstallmentOption]:
        return compute_options(amount, self.installment_policy)

    def supported_methods(self) -> list[PaymentMethod]:
        return list(self.adapters)

    def _adapter_for(self, method: PaymentMethod) -> ProviderAdapter:
        adapter = self.adapters.get(method)
        if adapter is None:
            raise ProviderUnavailable(f"no provider configured for {method.value}")
        return adapter

    def _validate_request(self, req: PaymentRequest, allowed: frozenset[PaymentMethod]) -> None:
        if req.method not in allowed:
            expected = ", ".join(sorted(m.value for m in allowed))
            raise InvalidArgument(f"method must be one of: {expected}")
        if isinstance(req.amount, bool) or req.amount <= 0:
            raise InvalidArgument("amount must be greater than zero")
        if not req.description.strip():
            raise InvalidArgument("description is required")
        if not req.customer_id.strip():
            raise InvalidArgument("customer_id is required")
        if req.expiration_minutes is not None and req.expiration_minutes <= 0:
            raise InvalidArgument("expiration_minutes must be greater than zero")

        if req.method in CARD_METHODS:
            if req.card is None:
                raise InvalidArgument("card details are required for card payments")
            if not cards.validate_card(req.card.number):
                raise InvalidArgument(f"card number {req.card.masked_number} is not valid")
            if not 1 <= req.installments <= self.installment_policy.max_installments:
                raise InvalidArgument(
                    f"installments must be between 1 and {self.installment_policy.max_installments}"
                )
            if req.method == PaymentMethod.DEBIT_CARD and req.installments != 1:
                raise InvalidArgument("debit card payments cannot be split into installments")

    async def _bounded(self, call: Awaitable[T], adapter: ProviderAdapter, op: str) -> T:
        """Run one adapter call under the caller timeout."""

        try:
            return await asyncio.wait_for(call, self.provider_timeout_seconds)
        except asyncio.TimeoutError as exc:
            raise ProviderTimeout(
                f"{adapter.name} {op} timed out after {self.provider_timeout_seconds}s",
                provider=adapter.name,
            ) from exc

    async def _create(self, req: PaymentRequest, allowed: frozenset[PaymentMethod]) -> PaymentRecord:
        self._validate_request(req, allowed)
        adapter = self._adapter_for(req.method)
        requested_at = utcnow()
        payment_requests_total.labels(service=self.service_name, method=req.method.value).inc()
        # Single attempt; creation is never retried.
        try:
            record = await self._bounded(adapter.create_payment(req), adapter, "create_payment")
        except PaymentError as exc:
            payment_failure_total.labels(
                service=self.service_name, method=req.method.value, kind=exc.kind.value
            ).inc()
            logger.error(
                "payment_create_failed method=%s provider=%s kind=%s error=%s",
                req.method.value,
                adapter.name,
                exc.kind.value,
                exc.message,
            )
            raise
        if record.canonical_status not in INITIAL_STATES:
            raise ProviderError(
                f"{adapter.name} created payment {record.id} in non-initial status {record.canonical_status.value}",
                provider=adapter.name,
            )

        payment_id_ctx.set(record.id)
        logger.info(
            "payment_created id=%s method=%s provider=%s status=%s amount=%s card=%s",
            record.id,
            record.method.value,
            record.provider,
            record.canonical_status.value,
            record.amount,
            record.masked_card_number or "-",
        )
        return record.model_copy(update={"requested_at": requested_at})

    async def create_pix_payment(self, req: PaymentRequest) -> PaymentRecord:
        return await self._create(req, frozenset({PaymentMethod.PIX}))

    async def create_card_payment(self, req: PaymentRequest) -> PaymentRecord:
        return await self._create(req, CARD_METHODS)

    async def _fetch_with_retry(self, adapter: ProviderAdapter, payment_id: str) -> RawStatus:
        """Fetch status, retrying transport failures with exponential backoff."""

        attempt = 1
        while True:
            try:
                return await self._bounded(adapter.fetch_status(payment_id), adapter, "fetch_status")
            except ProviderNotConfigured:
                raise
            except ProviderUnavailable as exc:
                if attempt >= self.status_retry_attempts:
                    raise
                retries_total.labels(service=self.service_name, dependency=adapter.name).inc()
                backoff_seconds = self.status_retry_base_delay_seconds * 2 ** (attempt - 1)
                logger.warning(
                    "status fetch retry provider=%s payment_id=%s attempt=%s backoff_s=%s kind=%s",
                    adapter.name,
                    payment_id,
                    attempt,
                    backoff_seconds,
                    exc.kind.value,
                )
                await self._sleep(backoff_seconds)
                attempt += 1

    async def _scan(self, payment_id: str) -> RawStatus:
        """Try adapters in priority order; the first non-NotFound answer wins."""

        failures: list[PaymentError] = []
        for adapter in self.adapters.values():
            try:
                return await self._fetch_with_retry(adapter, payment_id)
            except NotFound:
                continue
            except PaymentError as exc:
                failures.append(exc)
                logger.warning(
                    "status scan soft miss provider=%s payment_id=%s kind=%s",
                    adapter.name,
                    payment_id,
                    exc.kind.value,
                )
        if not failures:
            raise NotFound(f"payment {payment_id} not found on any provider")
        raise ProviderUnavailable(
            f"payment {payment_id} could not be located: {len(failures)} of {len(self.adapters)} providers failed"
        )

    async def _reconcile(self, payment_id: str, method: PaymentMethod, observed: CanonicalStatus) -> CanonicalStatus:
        try:
            return await self._apply_latch(payment_id, method, observed)
        except PaymentError as exc:
            # Latch store outage: fall back to the observed status.
            logger.warning(
                "terminal_latch_failed payment_id=%s observed=%s kind=%s error=%s",
                payment_id,
                observed.value,
                exc.kind.value,
                exc.message,
            )
            return observed

    async def _apply_latch(
        self, payment_id: str, method: PaymentMethod, observed: CanonicalStatus
    ) -> CanonicalStatus:
        latched = await self.status_store.get(payment_id)
        if latched is not None:
            try:
                validate_transition(latched, observed)
            except InvalidTransition:
                terminal_status_conflicts_total.labels(service=self.service_name, method=method.value).inc()
                logger.warning(
                    "terminal status kept payment_id=%s latched=%s observed=%s",
                    payment_id,
                    latched.value,
                    observed.value,
                )
            return latched
        if is_terminal(observed):
            return await self.status_store.latch(payment_id, observed)
        return observed

    async def check_payment_status(
        self, payment_id: str, method: PaymentMethod | None = None
    ) -> PaymentStatusResult:
        payment_id = (payment_id or "").strip()
        if not payment_id:
            raise InvalidArgument("payment id is required")
        payment_id_ctx.set(payment_id)

        if method is not None:
            raw = await self._fetch_with_retry(self._adapter_for(method), payment_id)
        else:
            raw = await self._scan(payment_id)

        observed = normalize(raw.method, raw.native_status)
        if observed == CanonicalStatus.ERROR:
            logger.warning(
                "unrecognized provider status payment_id=%s method=%s native=%r",
                payment_id,
                raw.method.value,
                raw.native_status,
            )
        status = await self._reconcile(payment_id, raw.method, observed)
        return PaymentStatusResult(
            id=payment_id,
            method=raw.method,
            status=status,
            amount=raw.amount,
            paid_at=raw.paid_at,
        )

    async def simulate_payment(
        self, payment_id: str, approve: bool = True, method: PaymentMethod = PaymentMethod.PIX
    ) -> None:
        """Development-only: ask the provider to settle or reject a test payment."""

        payment_id = (payment_id or "").strip()
        if not payment_id:
            raise InvalidArgument("payment id is required")
        adapter = self._adapter_for(method)
        if not adapter.supports_simulation:
            raise InvalidArgument(f"{method.value} payments cannot be simulated")
        await self._bounded(adapter.simulate_payment(payment_id, approve), adapter, "simulate_payment")
        logger.info("payment_simulated id=%s method=%s approve=%s", payment_id, method.value, approve)

    async def validate_coupon(self, code: str) -> Coupon:
        """Look up a discount code on the PIX provider, where coupons are managed."""

        code = (code or "").strip()
        if not code:
            raise InvalidArgument("coupon code is required")
        adapter = self._adapter_for(PaymentMethod.PIX)
        coupon = await self._bounded(adapter.validate_coupon(code), adapter, "validate_coupon")
        logger.info(
            "coupon_validated code=%s type=%s discount=%s", coupon.code, coupon.discount_type.value, coupon.discount
        )
        return coupon

    async def _ping(self, adapter: ProviderAdapter) -> ProviderHealth:
        started = monotonic()
        try:
            return await asyncio.wait_for(adapter.health_check(), self.health_check_timeout_seconds)
        except asyncio.TimeoutError:
            error = "timeout"
        except Exception as exc:
            error = str(exc) or type(exc).__name__
        provider_up.labels(provider=adapter.name).set(0)
        return ProviderHealth(
            provider_name=adapter.name,
            method=adapter.method,
            reachable=False,
            latency_ms=int((monotonic() - started) * 1000),
            last_error=error,
        )

    async def check_providers_health(self) -> dict[str, ProviderHealth]:
        """Check every adapter concurrently; always returns one entry per adapter."""

        cached = self._health_cache
        if cached is not None and monotonic() - cached[0] < self.health_cache_ttl_seconds:
            return dict(cached[1])

        results = await asyncio.gather(*(self._ping(adapter) for adapter in self.adapters.values()))
        health = {result.provider_name: result for result in results}
        if self.health_cache_ttl_seconds > 0:
            self._health_cache = (monotonic(), health)
        return dict(health)

    async def aclose(self) -> None:
        for adapter in self.adapters.values():
            await adapter.aclose()
        if self._on_close is not None:
            await self._on_close()
