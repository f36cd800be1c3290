"""JSON logging bound to the current request, payment and provider.

Card numbers must never reach the log stream in clear; `ContextFilter` masks
any PAN-shaped digit run left in a rendered message.
"""

import logging
import re
import sys
from contextvars import ContextVar

from pythonjsonlogger.json import JsonFormatter

from framepay.common.config import settings


trace_id_ctx: ContextVar[str] = ContextVar("trace_id", default="")
payment_id_ctx: ContextVar[str] = ContextVar("payment_id", default="")
provider_ctx: ContextVar[str] = ContextVar("provider", default="")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(service_name)s %(trace_id)s %(payment_id)s %(provider)s %(message)s"

# 13-19 digits, optionally grouped by spaces or hyphens.
_PAN_PATTERN = re.compile(r"(?<!\d)(?:\d[ -]?){12,18}\d(?!\d)")


def scrub_pan(text: str) -> str:
    return _PAN_PATTERN.sub(lambda m: "*" * (len(m.group()) - 4) + m.group()[-4:], text)


class ContextFilter(logging.Filter):
    """Attach correlation fields to every record and mask stray card numbers."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.service_name = settings.service_name
        record.trace_id = trace_id_ctx.get()
        record.payment_id = payment_id_ctx.get()
        record.provider = provider_ctx.get()
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            return True
        scrubbed = scrub_pan(message)
        if scrubbed != message:
            record.msg, record.args = scrubbed, None
        return True


def configure_logging() -> None:
    """Install the JSON stdout handler on the root logger."""

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(ContextFilter())
    handler.setFormatter(JsonFormatter(LOG_FORMAT))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(settings.log_level)
    # httpx logs every request line at INFO, query strings included.
    logging.getLogger("httpx").setLevel(logging.WARNING)


logger = logging.getLogger("framepay")
