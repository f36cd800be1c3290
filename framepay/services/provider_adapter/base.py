"""Shared provider adapter contract and HTTP plumbing.

Every rail implements create/fetch/health the same way. Provider failures are
re-kinded here into `framepay.common.errors`, so nothing above this module sees
HTTP status codes or provider payloads. Adapters make a single bounded attempt
per call; retry policy belongs to the orchestrator.
"""

from abc import ABC, abstractmethod
from time import perf_counter
from typing import Any

import httpx

from framepay.common.errors import (
    InvalidArgument,
    InvalidRequest,
    NotFound,
    PaymentError,
    ProviderError,
    ProviderNotConfigured,
    ProviderTimeout,
    ProviderUnavailable,
    RateLimited,
)
from framepay.common.logging import logger, provider_ctx
from framepay.common.metrics import provider_call_seconds, provider_errors_total, provider_up
from framepay.common.rate_limit import NoopRateLimiter, RateLimiter
from framepay.common.state_machine import INITIAL_STATES, CanonicalStatus
from framepay.common.tracing import get_tracer
from framepay.services.payments.models import (
    Coupon,
    PaymentMethod,
    PaymentRecord,
    PaymentRequest,
    ProviderHealth,
    RawStatus,
)
from framepay.services.payments.normalizer import normalize


class ProviderAdapter(ABC):
    """One payment rail behind the uniform create/fetch/health contract."""

    name: str
    method: PaymentMethod
    initial_status: CanonicalStatus = CanonicalStatus.PENDING
    supports_simulation: bool = False

    @abstractmethod
    async def create_payment(self, req: PaymentRequest) -> PaymentRecord:
        ...

    @abstractmethod
    async def fetch_status(self, payment_id: str) -> RawStatus:
        ...

    @abstractmethod
    async def health_check(self) -> ProviderHealth:
        """Check reachability. Never raises; failures land in `last_error`."""
        ...

    async def simulate_payment(self, payment_id: str, approve: bool = True) -> None:
        raise InvalidArgument(f"{self.name} does not support payment simulation", provider=self.name)

    async def validate_coupon(self, code: str) -> Coupon:
        raise InvalidArgument(f"{self.name} does not support coupons", provider=self.name)

    async def aclose(self) -> None:
        return None

    def initial_status_for(self, native_status: Any) -> CanonicalStatus:
        """Canonical status for a freshly created payment.

        Creation always starts the record in an initial state; anything the
        provider reports beyond that is picked up by the first status poll.
        """

        status = normalize(self.method, native_status)
        return status if status in INITIAL_STATES else self.initial_status


class HttpProviderAdapter(ProviderAdapter):
    """Adapter talking JSON/form HTTP to one provider base URL."""

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str,
        timeout_seconds: float = 30.0,
        rate_limiter: RateLimiter | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.rate_limiter = rate_limiter or NoopRateLimiter()
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout_seconds,
            transport=transport,
        )

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    @abstractmethod
    def _headers(self) -> dict[str, str]:
        ...

    @abstractmethod
    async def _ping(self) -> str | None:
        """Lightweight reachability call; return an error description or None."""
        ...

    def _error_detail(self, resp: httpx.Response) -> str:
        return resp.text[:500]

    def _ensure_configured(self) -> None:
        if not self.configured:
            raise ProviderNotConfigured(f"{self.name} is not configured", provider=self.name)

    def _raise_for_status(self, resp: httpx.Response, op: str) -> None:
        if resp.is_success:
            return
        detail = f"{self.name} {op} failed with HTTP {resp.status_code}: {self._error_detail(resp)}"
        if resp.status_code == 404:
            raise NotFound(detail, provider=self.name)
        if resp.status_code == 429:
            raise RateLimited(detail, provider=self.name)
        if resp.status_code >= 500:
            raise ProviderUnavailable(detail, provider=self.name)
        raise InvalidRequest(detail, provider=self.name)

    async def _request(
        self,
        op: str,
        http_method: str,
        path: str,
        *,
        headers: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> Any:
        """Perform one outbound call and return the decoded JSON body."""

        self._ensure_configured()
        token = provider_ctx.set(self.name)
        started = perf_counter()
        try:
            with get_tracer().start_as_current_span(f"provider.{op}") as span:
                span.set_attribute("provider.name", self.name)
                await self.rate_limiter.hit(self.name)
                try:
                    resp = await self.client.request(
                        http_method,
                        path,
                        headers={**self._headers(), **(headers or {})},
                        **kwargs,
                    )
                except httpx.TimeoutException as exc:
                    raise ProviderTimeout(f"{self.name} {op} timed out", provider=self.name) from exc
                except httpx.HTTPError as exc:
                    raise ProviderUnavailable(f"{self.name} {op} transport error: {exc}", provider=self.name) from exc
                span.set_attribute("http.status_code", resp.status_code)
                self._raise_for_status(resp, op)
                try:
                    return resp.json()
                except ValueError as exc:
                    raise ProviderError(f"{self.name} {op} returned invalid JSON: {resp.text[:500]}", provider=self.name) from exc
        except PaymentError as exc:
            provider_errors_total.labels(provider=self.name, op=op, kind=exc.kind.value).inc()
            logger.warning("provider_call_failed provider=%s op=%s kind=%s", self.name, op, exc.kind.value)
            raise
        finally:
            provider_call_seconds.labels(provider=self.name, op=op).observe(perf_counter() - started)
            provider_ctx.reset(token)

    async def health_check(self) -> ProviderHealth:
        if not self.configured:
            provider_up.labels(provider=self.name).set(0)
            return ProviderHealth(
                provider_name=self.name,
                method=self.method,
                reachable=False,
                last_error="not configured",
            )
        started = perf_counter()
        try:
            error = await self._ping()
        except httpx.TimeoutException:
            error = "timeout"
        except Exception as exc:
            error = str(exc) or type(exc).__name__
        latency_ms = int((perf_counter() - started) * 1000)
        provider_up.labels(provider=self.name).set(0 if error else 1)
        return ProviderHealth(
            provider_name=self.name,
            method=self.method,
            reachable=error is None,
            latency_ms=latency_ms,
            last_error=error,
        )

    async def aclose(self) -> None:
        await self.client.aclose()
