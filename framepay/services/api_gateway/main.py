"""Public HTTP entrypoint for payment operations.

Routes are a thin layer over `PaymentOrchestrator`: they parse parameters,
call one orchestrator operation and render the result. Errors are mapped to
HTTP status by error kind only.
"""

from contextlib import asynccontextmanager
from time import perf_counter
from uuid import uuid4

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from framepay.common.config import settings
from framepay.common.errors import ErrorKind, PaymentError, http_status_for
from framepay.common.logging import configure_logging, logger, trace_id_ctx
from framepay.common.metrics import http_request_duration_seconds, http_requests_total, metrics_response
from framepay.common.startup import log_startup_config
from framepay.common.tracing import instrument_app, setup_tracing
from framepay.services.api_gateway.schemas import (
    CardProcessRequest,
    CardValidateRequest,
    CardValidateResponse,
    CouponValidateRequest,
    CouponValidateResponse,
    HealthDetails,
    InstallmentOptionResponse,
    InstallmentsResponse,
    PaymentResponse,
    PaymentStatusResponse,
    PixCreateRequest,
    ProviderHealthResponse,
    ProvidersHealthResponse,
    SimulateRequest,
    SimulateResponse,
)
from framepay.services.payments.factory import build_orchestrator
from framepay.services.payments.models import PaymentMethod, utcnow
from framepay.services.payments.service import PaymentOrchestrator

configure_logging()
setup_tracing(settings.service_name)
log_startup_config(
    settings,
    [
        "environment",
        "redis_url",
        "abacatepay_api_key",
        "abacatepay_base_url",
        "stripe_secret_key",
        "stripe_base_url",
        "provider_timeout_seconds",
        "health_check_timeout_seconds",
        "provider_rate_limit_per_minute",
        "installments_max",
    ],
)
orchestrator = build_orchestrator(settings)


def get_orchestrator() -> PaymentOrchestrator:
    return orchestrator


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await orchestrator.aclose()


app = FastAPI(title="FramePay Payments API", lifespan=lifespan)
instrument_app(app)


@app.middleware("http")
async def metrics_middleware(request: Request, call_next):
    """Record request count and latency, and bind the correlation id for logs."""

    trace_id_ctx.set(request.headers.get("x-correlation-id") or str(uuid4()))
    start = perf_counter()
    route = request.url.path
    method = request.method
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        route_obj = request.scope.get("route")
        if route_obj is not None and getattr(route_obj, "path", None):
            route = route_obj.path
        return response
    finally:
        elapsed = max(0.0, perf_counter() - start)
        http_request_duration_seconds.labels(
            service=settings.service_name,
            route=route,
            method=method,
        ).observe(elapsed)
        http_requests_total.labels(
            service=settings.service_name,
            route=route,
            method=method,
            status_code=str(status_code),
        ).inc()


@app.exception_handler(PaymentError)
async def payment_error_handler(request: Request, exc: PaymentError) -> JSONResponse:
    status_code = http_status_for(exc.kind)
    if status_code >= 500:
        logger.error("request_failed path=%s kind=%s error=%s", request.url.path, exc.kind.value, exc.message)
    return JSONResponse(status_code=status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    del request
    return JSONResponse(
        status_code=400,
        content={
            "error": "invalid request parameters",
            "kind": ErrorKind.INVALID_ARGUMENT.value,
            "details": jsonable_encoder(exc.errors()),
        },
    )


@app.post("/api/payment/pix/create", response_model=PaymentResponse, response_model_by_alias=True)
async def create_pix_payment(
    req: PixCreateRequest,
    service: PaymentOrchestrator = Depends(get_orchestrator),
):
    """Create a PIX QR code charge."""

    record = await service.create_pix_payment(req.to_payment_request())
    return PaymentResponse.from_record(record)


@app.get("/api/payment/pix/status", response_model=PaymentStatusResponse, response_model_by_alias=True)
async def payment_status(
    payment_id: str = Query(alias="id", min_length=1),
    method: PaymentMethod | None = Query(default=None),
    service: PaymentOrchestrator = Depends(get_orchestrator),
):
    """Canonical status of any payment; scans every rail when `method` is omitted."""

    result = await service.check_payment_status(payment_id, method)
    return PaymentStatusResponse(**result.model_dump())


@app.post("/api/payment/pix/simulate", response_model=SimulateResponse)
async def simulate_payment(
    req: SimulateRequest,
    service: PaymentOrchestrator = Depends(get_orchestrator),
):
    if settings.is_production:
        raise HTTPException(status_code=403, detail="simulation is not available in production")
    approve = req.action == "approve"
    await service.simulate_payment(req.id, approve=approve, method=req.method)
    return SimulateResponse(success=True, message=f"payment {req.id} simulated: {req.action}")


@app.post("/api/payment/card/process", response_model=PaymentResponse, response_model_by_alias=True)
async def process_card_payment(
    req: CardProcessRequest,
    service: PaymentOrchestrator = Depends(get_orchestrator),
):
    """Authorize a credit or debit card payment."""

    record = await service.create_card_payment(req.to_payment_request())
    return PaymentResponse.from_record(record)


@app.post("/api/payment/card/validate", response_model=CardValidateResponse, response_model_by_alias=True)
def validate_card(
    req: CardValidateRequest,
    service: PaymentOrchestrator = Depends(get_orchestrator),
):
    return CardValidateResponse(
        valid=service.validate_card(req.card_number),
        card_number=service.mask_card(req.card_number),
    )


@app.get("/api/payment/card/installments", response_model=InstallmentsResponse, response_model_by_alias=True)
def installment_options(
    amount: int = Query(description="Amount in centavos"),
    service: PaymentOrchestrator = Depends(get_orchestrator),
):
    options = service.compute_installments(amount)
    return InstallmentsResponse(
        amount=amount,
        options=[InstallmentOptionResponse.from_option(option) for option in options],
    )


@app.post("/api/payment/coupon/validate", response_model=CouponValidateResponse, response_model_by_alias=True)
async def validate_coupon(
    req: CouponValidateRequest,
    service: PaymentOrchestrator = Depends(get_orchestrator),
):
    """Check a discount code; unknown codes are 404, inactive or exhausted ones 400."""

    coupon = await service.validate_coupon(req.coupon_code)
    return CouponValidateResponse.from_coupon(coupon)


@app.get("/api/payment/health", response_model=ProvidersHealthResponse, response_model_by_alias=True)
async def providers_health(service: PaymentOrchestrator = Depends(get_orchestrator)):
    """Reachability of every configured provider plus an overall summary."""

    health = await service.check_providers_health()
    total = len(health)
    healthy = sum(1 for item in health.values() if item.reachable)
    overall = (healthy / total) * 100 if total else 0.0
    return ProvidersHealthResponse(
        timestamp=utcnow(),
        overall_health=f"{overall:.1f}%",
        status="healthy" if overall > 50 else "degraded",
        providers={name: ProviderHealthResponse.from_health(item) for name, item in health.items()},
        supported_methods=service.supported_methods(),
        details=HealthDetails(
            total_providers=total,
            healthy_providers=healthy,
            degraded_providers=total - healthy,
        ),
    )


@app.get("/metrics")
def metrics():
    """Prometheus scrape endpoint."""

    return metrics_response()


@app.get("/health")
def health():
    """Container liveness endpoint."""

    return {"ok": True}
