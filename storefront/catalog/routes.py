from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends, status
from storefront.api.dependencies import get_context
from storefront.cart.models import Product
from storefront.catalog import logger
from storefront.common.custom_exceptions import BusinessRejection, TransportError
from storefront.common.formatters import format_inr, parse_price
from storefront.common.utils import success
from storefront.context import StorefrontContext

catalog_router = APIRouter()


def product_view(ctx: StorefrontContext, product: Product) -> Dict[str, Any]:
    data = product.model_dump(mode="json", by_alias=True)
    data["display_price"] = format_inr(parse_price(product.price, item_ref=product.id))
    data["in_cart"] = ctx.cart.contains(product.id)
    data["cart_quantity"] = ctx.cart.quantity_of(product.id)
    return data


@catalog_router.get("")
async def list_products(category: Optional[str] = None, ctx: StorefrontContext = Depends(get_context)):
    products = await ctx.api.list_products(category)
    logger.debug("catalog.list", extra={"category": category, "count": len(products)})
    return success({"products": [product_view(ctx, p) for p in products]})


@catalog_router.get("/{product_id}")
async def get_product(product_id: str, ctx: StorefrontContext = Depends(get_context)):
    try:
        product = await ctx.api.get_product(product_id)
    except TransportError as exc:
        if exc.upstream_status == 404:
            raise BusinessRejection("Product not found", status_code=status.HTTP_404_NOT_FOUND) from exc
        raise
    return success({"product": product_view(ctx, product)})
