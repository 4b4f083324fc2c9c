from typing import Optional
from fastapi import APIRouter, Depends, Query
from storefront.api.dependencies import get_context
from storefront.common.custom_exceptions import BusinessRejection
from storefront.common.utils import success
from storefront.context import StorefrontContext
from storefront.delivery import logger
from storefront.delivery.eligibility import filter_options
from storefront.delivery.models import DeliverySelectionIn

delivery_router = APIRouter()


@delivery_router.get("/options")
async def list_options(distance_km: Optional[float] = Query(None, ge=0),
                       ctx: StorefrontContext = Depends(get_context)):
    options = await ctx.cart.load_delivery_options()
    eligible = filter_options(options, distance_km)
    selected = ctx.cart.sync_delivery_selection(eligible, distance_km)
    logger.debug("delivery.options", extra={"distance_km": distance_km, "total": len(options),
                                            "eligible": len(eligible)})
    return success({
        "options": [o.model_dump(mode="json") for o in eligible],
        "selected": selected.model_dump(mode="json") if selected else None,
        "distance_km": distance_km,
    })


@delivery_router.put("/selection")
async def select_option(payload: DeliverySelectionIn, ctx: StorefrontContext = Depends(get_context)):
    options = await ctx.cart.load_delivery_options()
    eligible = filter_options(options, payload.distance_km)
    option = next((o for o in eligible if o.id == payload.option_id), None)
    if option is None:
        raise BusinessRejection("This delivery option is not available for your address")
    ctx.cart.set_delivery_option(option)
    return success({"selected": option.model_dump(mode="json")})
