"""Log scrubbing and redacted startup config."""

import logging

from framepay.common.config import CommonSettings
from framepay.common.logging import ContextFilter, payment_id_ctx, scrub_pan
from framepay.common.startup import redacted_config


def test_scrub_pan_masks_card_numbers_only():
    assert scrub_pan("card=4242424242424242 ok") == "card=************4242 ok"
    assert scrub_pan("card=4242 4242 4242 4242") == "card=***************4242"
    assert scrub_pan("amount=10000 id=pix_123") == "amount=10000 id=pix_123"


def test_context_filter_injects_fields_and_scrubs():
    record = logging.LogRecord("framepay", logging.INFO, __file__, 1, "charge card=%s", ("4242424242424242",), None)
    token = payment_id_ctx.set("pi_1")
    try:
        assert ContextFilter().filter(record) is True
    finally:
        payment_id_ctx.reset(token)

    assert record.payment_id == "pi_1"
    assert record.getMessage() == "charge card=************4242"


def test_redacted_config_hides_secrets():
    config = CommonSettings(stripe_secret_key="sk_live_x", abacatepay_api_key="", redis_url=None)

    view = redacted_config(config, ["stripe_secret_key", "abacatepay_api_key", "redis_url", "installments_max"])

    assert view == {
        "STRIPE_SECRET_KEY": "<redacted>",
        "ABACATEPAY_API_KEY": "<empty>",
        "REDIS_URL": "<unset>",
        "INSTALLMENTS_MAX": "12",
    }
