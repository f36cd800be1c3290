"""Canonical error taxonomy shared by adapters, orchestrator and HTTP layer.

Every provider failure is re-raised as one of these at the adapter boundary, so
callers branch on `kind` and never on provider payloads or message text.
"""

from enum import Enum


class ErrorKind(str, Enum):
    INVALID_ARGUMENT = "invalid_argument"
    INVALID_REQUEST = "invalid_request"
    NOT_FOUND = "not_found"
    PROVIDER_UNAVAILABLE = "provider_unavailable"
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    ERROR = "error"


class PaymentError(Exception):
    """Base class for every failure surfaced by the payment core."""

    kind: ErrorKind = ErrorKind.ERROR

    def __init__(self, message: str, *, provider: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.provider = provider

    def to_dict(self) -> dict[str, str]:
        return {"error": self.message, "kind": self.kind.value}


class InvalidArgument(PaymentError):
    """Malformed or missing caller input. Never retried."""

    kind = ErrorKind.INVALID_ARGUMENT


class InvalidRequest(PaymentError):
    """The provider rejected the payload (including card declines)."""

    kind = ErrorKind.INVALID_REQUEST


class NotFound(PaymentError):
    kind = ErrorKind.NOT_FOUND


class ProviderUnavailable(PaymentError):
    """Transport failure or missing configuration; safe for the caller to retry."""

    kind = ErrorKind.PROVIDER_UNAVAILABLE


class ProviderTimeout(ProviderUnavailable):
    kind = ErrorKind.TIMEOUT


class ProviderNotConfigured(ProviderUnavailable):
    """Credentials are missing; retrying cannot help until the process is reconfigured."""


class RateLimited(PaymentError):
    kind = ErrorKind.RATE_LIMITED


class ProviderError(PaymentError):
    """Uncategorized provider or normalization failure."""

    kind = ErrorKind.ERROR


_HTTP_STATUS = {
    ErrorKind.INVALID_ARGUMENT: 400,
    ErrorKind.INVALID_REQUEST: 400,
    ErrorKind.NOT_FOUND: 404,
}


def http_status_for(kind: ErrorKind) -> int:
    """Map an error kind to the HTTP status rendered by the route layer."""

    return _HTTP_STATUS.get(kind, 500)
