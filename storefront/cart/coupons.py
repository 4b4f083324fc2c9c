from decimal import Decimal
from typing import Any, Dict, Optional
from pydantic import ValidationError
from storefront.cart import logger
from storefront.cart.constants import BLANK_COUPON_MESSAGE, DEFAULT_COUPON_REJECTION
from storefront.cart.models import AppliedCoupon, CouponDecision
from storefront.common.custom_exceptions import TransportError
from storefront.common.formatters import parse_price


def normalize_code(code: Optional[str]) -> str:
    return (code or "").strip().upper()


def coupon_from_payload(code: str, payload: Dict[str, Any]) -> AppliedCoupon:
    details = payload.get("coupon") or {}
    discount = parse_price(payload.get("discountAmount"), item_ref=code)
    if discount < 0:
        logger.warning("coupon.negative_discount", extra={"code": code, "discount": str(discount)})
        discount = Decimal(0)

    value = details.get("value")
    max_discount = details.get("maxDiscount")
    return AppliedCoupon(
        code=code,
        id=details.get("id"),
        description=details.get("description"),
        type=details.get("type"),
        value=parse_price(value, item_ref=code) if value is not None else None,
        max_discount=parse_price(max_discount, item_ref=code) if max_discount is not None else None,
        discount_amount=discount,
    )


class CouponEvaluator:
    """Checks a coupon code with the shop's validation endpoint.

    Blank codes are refused locally. Codes are upper-cased so applying the
    same coupon twice is idempotent. Rejections carry the shop's message
    as-is for display; transport failures raise TransportError.
    """

    def __init__(self, api):
        self.api = api

    async def evaluate(self, code: Optional[str], subtotal: Decimal, user_id: Optional[str] = None) -> CouponDecision:
        normalized = normalize_code(code)
        if not normalized:
            return CouponDecision(accepted=False, kind="validation", reason=BLANK_COUPON_MESSAGE)

        payload = await self.api.validate_coupon(normalized, subtotal, user_id=user_id)

        if not payload.get("valid"):
            reason = payload.get("error") or payload.get("message") or DEFAULT_COUPON_REJECTION
            logger.info("coupon.rejected", extra={"code": normalized, "reason": reason})
            return CouponDecision(accepted=False, kind="business", code=normalized, reason=reason)

        try:
            coupon = coupon_from_payload(normalized, payload)
        except ValidationError as exc:
            raise TransportError("The shop sent an unreadable coupon response.", payload=payload) from exc

        logger.info("coupon.accepted", extra={"code": normalized, "discount": str(coupon.discount_amount)})
        return CouponDecision(accepted=True, kind="accepted", code=normalized, coupon=coupon)
