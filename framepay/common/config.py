"""Central environment-driven settings for the payment service.

The process loads this once at startup. Provider credentials, timeouts and the
installment policy are all controlled by environment variables (see
`.env.example`).
"""

from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict


class CommonSettings(BaseSettings):
    """Typed view of runtime configuration from environment variables."""

    service_name: str = "framepay"
    environment: str = "development"
    log_level: str = "INFO"
    tracing_enabled: bool = True
    tracing_sample_ratio: float = 1.0
    otel_exporter_otlp_endpoint: str = "http://otel-collector:4318/v1/traces"
    redis_url: str | None = None

    abacatepay_api_key: str = ""
    abacatepay_base_url: str = "https://api.abacatepay.com/v1"
    stripe_secret_key: str = ""
    stripe_base_url: str = "https://api.stripe.com/v1"

    provider_timeout_seconds: float = 30.0
    health_check_timeout_seconds: float = 3.0
    health_cache_ttl_seconds: float = 0.0
    status_retry_attempts: int = 3
    status_retry_base_delay_seconds: float = 0.5
    provider_rate_limit_per_minute: int = 0
    terminal_status_ttl_seconds: int = 86400

    installments_max: int = 12
    installments_interest_free: int = 3
    installments_interest_rate: Decimal = Decimal("0.0299")
    installments_min_amount: int = 1
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


settings = CommonSettings()
