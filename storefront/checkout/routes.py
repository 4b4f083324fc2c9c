from fastapi import APIRouter, Depends, status
from storefront.api.dependencies import get_context
from storefront.cart.routes import cart_view
from storefront.checkout import logger
from storefront.checkout.models import Address, PaymentData
from storefront.common.utils import success
from storefront.context import StorefrontContext

checkout_router = APIRouter()


@checkout_router.get("")
async def checkout_summary(ctx: StorefrontContext = Depends(get_context)):
    return success({"cart": cart_view(ctx), "checkout": ctx.checkout.snapshot()})


@checkout_router.put("/address")
async def set_address(payload: Address, ctx: StorefrontContext = Depends(get_context)):
    ctx.checkout.set_address(payload)
    return success({"checkout": ctx.checkout.snapshot()})


@checkout_router.put("/payment")
async def set_payment(payload: PaymentData, ctx: StorefrontContext = Depends(get_context)):
    complete = ctx.checkout.set_payment(payload)
    return success({"complete": complete, "checkout": ctx.checkout.snapshot()})


@checkout_router.post("/place", status_code=status.HTTP_201_CREATED)
async def place_order(ctx: StorefrontContext = Depends(get_context)):
    user_id = ctx.user.id if ctx.user else None
    result = await ctx.checkout.place_order(ctx.api, user_id)
    logger.info("checkout.success", extra={"user_id": user_id})
    return success({"result": result, "cart": cart_view(ctx)})
