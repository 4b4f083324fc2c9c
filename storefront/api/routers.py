from fastapi import APIRouter
from storefront.api import version_prefix
from storefront.auth.routes import auth_router
from storefront.cart.routes import carts_router
from storefront.catalog.routes import catalog_router
from storefront.checkout.routes import checkout_router
from storefront.common.routes import home_router
from storefront.delivery.routes import delivery_router
from storefront.orders.routes import orders_router


public_routers = APIRouter(prefix=version_prefix)

public_routers.include_router(auth_router, prefix="/auth", tags=["auth"])
public_routers.include_router(catalog_router, prefix="/products", tags=["catalog"])
public_routers.include_router(carts_router, prefix="/cart", tags=["cart"])
public_routers.include_router(delivery_router, prefix="/delivery", tags=["delivery"])
public_routers.include_router(checkout_router, prefix="/checkout", tags=["checkout"])
public_routers.include_router(orders_router, prefix="/orders", tags=["orders"])
public_routers.include_router(home_router, tags=["home"])
