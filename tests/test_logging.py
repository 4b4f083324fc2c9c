import logging
from storefront.common.constants import request_id_ctx, visitor_ctx
from storefront.common.logging_setup import get_logger, redact_extra


def test_redact_extra_masks_visitors_and_drops_secrets():
    out = redact_extra({"device_id": "a1b2c3d4e5f6g7h8", "auth_token": "tok-asha-123",
                        "upi_id": "asha@okbank", "total": 1299, "reason": None})

    assert out["device_id"] == "a1b2c3...7h8"
    assert out["auth_token"] == "[REDACTED]"
    assert out["upi_id"] == "[REDACTED]"
    assert out["total"] == 1299
    assert out["reason"] is None


def test_context_logger_captures_request_and_visitor(caplog):
    rid = request_id_ctx.set("req-1")
    dev = visitor_ctx.set("dev-1")
    try:
        with caplog.at_level(logging.INFO, logger="bloomcart.test"):
            get_logger("bloomcart.test").info("cart.add", extra={"product_id": "1"})
    finally:
        request_id_ctx.reset(rid)
        visitor_ctx.reset(dev)

    record = caplog.records[-1]
    assert record.getMessage() == "cart.add"
    assert record.request_id == "req-1"
    assert record.device_id == "dev-1"
    assert record.product_id == "1"
