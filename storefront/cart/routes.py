from typing import Any, Dict
from fastapi import APIRouter, Depends, status
from storefront.api.dependencies import get_context
from storefront.cart import logger
from storefront.cart.models import AddItemIn, ApplyCouponIn, UpdateQuantityIn
from storefront.common.custom_exceptions import BusinessRejection, TransportError
from storefront.common.formatters import format_inr
from storefront.common.utils import success
from storefront.context import StorefrontContext

carts_router = APIRouter()


def cart_view(ctx: StorefrontContext) -> Dict[str, Any]:
    data = ctx.cart.snapshot()
    data["payment_charge"] = str(ctx.checkout.payment_charge)
    data["payable_amount"] = str(ctx.checkout.payable_amount)
    data["display"] = {
        "total_price": format_inr(ctx.cart.total_price),
        "discount_amount": format_inr(ctx.cart.discount_amount),
        "final_amount": format_inr(ctx.cart.final_amount),
        "payable_amount": format_inr(ctx.checkout.payable_amount),
    }
    return data


async def _after_lines_changed(ctx: StorefrontContext):
    if ctx.cart.applied_coupon is not None:
        await ctx.cart.revalidate_coupon()


@carts_router.get("")
async def get_cart(ctx: StorefrontContext = Depends(get_context)):
    return success(cart_view(ctx))


@carts_router.post("/items", status_code=status.HTTP_201_CREATED)
async def add_to_cart(payload: AddItemIn, ctx: StorefrontContext = Depends(get_context)):
    try:
        product = await ctx.api.get_product(payload.product_id)
    except TransportError as exc:
        if exc.upstream_status == 404:
            raise BusinessRejection("Product not found", status_code=status.HTTP_404_NOT_FOUND) from exc
        raise

    if product.in_stock is False:
        raise BusinessRejection(f"{product.name} is out of stock")

    await ctx.cart.add_item_synced(product, payload.quantity)
    logger.info("cart.add", extra={"product_id": product.id, "quantity": ctx.cart.quantity_of(product.id),
                                   "user_id": ctx.cart.user_id})
    await _after_lines_changed(ctx)
    return success(cart_view(ctx))


@carts_router.patch("/items/{product_id}")
async def update_cart_item(product_id: str, payload: UpdateQuantityIn,
                           ctx: StorefrontContext = Depends(get_context)):
    await ctx.cart.update_quantity_synced(product_id, payload.quantity)
    await _after_lines_changed(ctx)
    return success(cart_view(ctx))


@carts_router.delete("/items/{product_id}")
async def remove_cart_item(product_id: str, ctx: StorefrontContext = Depends(get_context)):
    await ctx.cart.remove_item_synced(product_id)
    await _after_lines_changed(ctx)
    return success(cart_view(ctx))


@carts_router.delete("")
async def clear_cart(ctx: StorefrontContext = Depends(get_context)):
    await ctx.cart.clear_synced()
    return success(cart_view(ctx))


@carts_router.post("/coupon")
async def apply_coupon(payload: ApplyCouponIn, ctx: StorefrontContext = Depends(get_context)):
    result = await ctx.cart.apply_coupon(payload.code)
    data = cart_view(ctx)
    data["coupon_result"] = result.model_dump(mode="json")
    return success(data)


@carts_router.delete("/coupon")
async def remove_coupon(ctx: StorefrontContext = Depends(get_context)):
    ctx.cart.remove_coupon()
    return success(cart_view(ctx))


@carts_router.delete("/error")
async def dismiss_errors(ctx: StorefrontContext = Depends(get_context)):
    ctx.cart.clear_error()
    ctx.cart.clear_coupon_error()
    return success(cart_view(ctx))
