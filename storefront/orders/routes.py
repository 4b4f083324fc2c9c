from fastapi import APIRouter, Depends
from storefront.api.dependencies import get_context, require_user
from storefront.common.utils import success
from storefront.context import StorefrontContext
from storefront.orders.services import order_detail, order_history

orders_router = APIRouter(dependencies=[Depends(require_user)])


@orders_router.get("")
async def list_orders(ctx: StorefrontContext = Depends(get_context)):
    return success({"orders": await order_history(ctx.api)})


@orders_router.get("/{order_id}")
async def get_order(order_id: str, ctx: StorefrontContext = Depends(get_context)):
    return success({"order": await order_detail(ctx.api, order_id)})
